"""
vzdump-unthrottle - lift Proxmox VM disk throttling while vzdump backs it up.

Used as a vzdump hook script: on backup-start the throttled disk settings of
the VM are saved and throttling is removed (or capped by a backup profile);
on backup-end/backup-abort the saved settings are put back.
"""

__version__ = "0.2.0"
__author__ = "vzdump-unthrottle Team"

from unthrottle.models import BackupThrottleProfile, DiskRecord, ThrottleSnapshot
from unthrottle.throttle import ThrottleConfigManager, ThrottleResult

__all__ = [
    "BackupThrottleProfile",
    "DiskRecord",
    "ThrottleConfigManager",
    "ThrottleResult",
    "ThrottleSnapshot",
    "__version__",
]
