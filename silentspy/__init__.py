"""silentspy: silent on success, precise on failure.

Condenses the lifecycle of a multi-module, possibly parallel build into a
dense line protocol:
  - lifecycle state machine that drops successful-build noise
  - per-unit output attribution with bounded head/tail buffers
  - test and compiler results recovered from on-disk artifacts
  - fail-safe degradation to full passthrough on any internal error

Activate with ``MSE_ACTIVE=true``.
"""

__version__ = "0.1.0"
__description__ = "Dense, deterministic, machine-parsable build output"

from silentspy.core.coordinator import SessionCoordinator
from silentspy.models.events import BuildEvent
from silentspy.spy import SilentSpy

__all__ = ["SilentSpy", "SessionCoordinator", "BuildEvent", "__version__"]
