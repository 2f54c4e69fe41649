"""Infrastructure modules for the bot orchestrator"""

from .metrics import MetricsRecorder, CycleStats  # noqa: F401
from .healthcheck import HealthServer  # noqa: F401
from .timer import RepeatingTimer  # noqa: F401

__all__ = [
	"MetricsRecorder",
	"CycleStats",
	"HealthServer",
	"RepeatingTimer",
]
