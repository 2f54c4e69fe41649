"""Shared exception types for the bot orchestrator and its collaborators."""

from typing import List, Optional


class InitializationError(RuntimeError):
    """Raised when a service handle required for a run cannot be created."""

    def __init__(self, stage: str, original: Optional[Exception] = None):
        message = f"{stage}: {original}" if original else stage
        super().__init__(message)
        self.stage = stage
        self.original = original


class CycleError(RuntimeError):
    """Raised inside a cycle when the analysis or trade stage fails."""

    def __init__(self, stage: str, original: Optional[Exception] = None):
        message = f"{stage} failed: {original}" if original else f"{stage} failed"
        super().__init__(message)
        self.stage = stage
        self.original = original


class ConfigError(ValueError):
    """Raised when app.yaml (plus environment overrides) does not validate."""

    def __init__(self, errors: List[str]):
        super().__init__(f"Invalid configuration: {len(errors)} error(s) found")
        self.errors = errors


class RpcError(RuntimeError):
    """Solana JSON-RPC returned an error object or an unusable payload."""


class MarketDataError(RuntimeError):
    """Market-data endpoint could not be reached or returned garbage."""
