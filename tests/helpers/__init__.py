"""Test helpers for the bot orchestrator test suite"""

from tests.helpers.cycle_stubs import (
    VALID_PUBKEY,
    StubExecutor,
    StubInitializer,
    StubTrader,
    make_services,
    make_token,
    open_position,
)

__all__ = [
    "VALID_PUBKEY",
    "StubExecutor",
    "StubInitializer",
    "StubTrader",
    "make_services",
    "make_token",
    "open_position",
]
