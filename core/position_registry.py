"""
Position Registry: process-wide store of open positions.

Written by the trade-execution collaborator when a buy fills or a position is
closed; read by the scheduler at stop time to warn about unmanaged exposure.
"""
import logging
import threading
from typing import Dict, Optional, Tuple

from core.models import Position

logger = logging.getLogger(__name__)


class PositionRegistry:
    """
    Thread-safe map of symbol -> Position.

    Snapshots returned by `list()` are tuples, so readers never observe a
    registry mid-update.
    """

    _default: Optional["PositionRegistry"] = None
    _default_lock = threading.Lock()

    def __init__(self):
        self._lock = threading.Lock()
        self._positions: Dict[str, Position] = {}

    @classmethod
    def default(cls) -> "PositionRegistry":
        """Return the process-wide registry, creating it on first use."""
        with cls._default_lock:
            if cls._default is None:
                cls._default = cls()
            return cls._default

    @classmethod
    def _reset_for_testing(cls) -> None:
        """
        Drop the process-wide registry.
        WARNING: Only call from test fixtures/teardown.
        """
        with cls._default_lock:
            cls._default = None

    def open_position(self, position: Position) -> None:
        """
        Record a newly opened position.

        Raises:
            ValueError: if a position for the same symbol is already open
        """
        with self._lock:
            if position.symbol in self._positions:
                raise ValueError(f"Position already open for {position.symbol}")
            self._positions[position.symbol] = position
        logger.debug(f"Registered position {position.symbol} @ {position.entry_price}")

    def close_position(self, symbol: str) -> Optional[Position]:
        """Remove and return the position for `symbol` (None if not held)."""
        with self._lock:
            closed = self._positions.pop(symbol, None)
        if closed is None:
            logger.debug(f"close_position: no open position for {symbol}")
        return closed

    def has_position(self, symbol: str) -> bool:
        with self._lock:
            return symbol in self._positions

    def list(self) -> Tuple[Position, ...]:
        with self._lock:
            return tuple(self._positions.values())

    def get_current_positions(self) -> Tuple[Position, ...]:
        return self.list()

    def __len__(self) -> int:
        with self._lock:
            return len(self._positions)
