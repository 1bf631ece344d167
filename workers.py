# workers.py — background housekeeping (orphaned uploads)

import os, time, logging
from typing import Optional

from utils import Settings

logger = logging.getLogger(__name__)


def sweep_stale_uploads(settings: Settings, now: Optional[float] = None) -> int:
    """
    Remove uploads left behind by a process that died mid-batch.
    Cut outputs are never touched.
    """
    cutoff = (now if now is not None else time.time()) - settings.stale_upload_hours * 3600
    removed = 0
    try:
        entries = list(os.scandir(settings.upload_dir))
    except FileNotFoundError:
        return 0
    for entry in entries:
        try:
            if entry.is_file() and entry.stat().st_mtime < cutoff:
                os.remove(entry.path)
                removed += 1
        except OSError as e:
            logger.warning("⚠️ Could not remove stale upload %s: %s", entry.path, e)
    if removed:
        logger.info("🧹 Removed %d stale uploads", removed)
    return removed
