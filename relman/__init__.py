"""relman: release version manager for a long-running compiled service.

Builds a requested source revision into an isolated, versioned output
directory, swaps a single ``active_release`` pointer to it, and supports
rolling back to, or discarding, previously built versions:
  - Source variant resolution (performance fork / downstream fork / upstream)
  - Build orchestration with degraded-success handling
  - Version Store keyed by sanitized revision name
  - Active Release Pointer swap with timestamped backups
  - Interactive rollback and multi-select cleanup
  - Verification and supervised restart of the service
"""

__version__ = "0.2.0"
__description__ = "Release version manager: build, switch, roll back and clean compiled releases"

from relman.core.manager import ReleaseManager
from relman.config import ManagerConfig, load_config

__all__ = ["ReleaseManager", "ManagerConfig", "load_config", "__version__"]
