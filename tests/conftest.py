"""
Pytest configuration and fixtures for the bot orchestrator tests.

This conftest.py provides shared fixtures and hooks for all tests.
"""
import pytest


@pytest.fixture(autouse=True)
def reset_singletons():
    """
    Reset process-wide singletons between tests to ensure test isolation.

    This is applied automatically to all tests (autouse=True).
    """
    from core.position_registry import PositionRegistry
    from infra.metrics import MetricsRecorder

    MetricsRecorder._reset_for_testing()
    PositionRegistry._reset_for_testing()

    yield

    MetricsRecorder._reset_for_testing()
    PositionRegistry._reset_for_testing()


@pytest.fixture
def registry():
    from core.position_registry import PositionRegistry
    return PositionRegistry()


@pytest.fixture
def audit(tmp_path):
    from core.audit_log import AuditLogger
    return AuditLogger(audit_file=str(tmp_path / "audit.jsonl"))
