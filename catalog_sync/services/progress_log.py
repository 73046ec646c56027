# catalog_sync/services/progress_log.py
import logging
from datetime import datetime, timezone
from typing import List, Optional

logger = logging.getLogger(__name__)


def _timestamp() -> str:
    # Same shape as JavaScript's toISOString(), which the dashboard parses
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class ProgressLog:
    """
    Append-only, timestamped record of one sync run.

    Entries are returned to the caller verbatim and mirrored to the
    application log as they are written.
    """

    def __init__(self, sink: Optional[logging.Logger] = None):
        self._entries: List[str] = []
        self._sink = sink or logger

    def log(self, message: str) -> str:
        entry = f"[{_timestamp()}] {message}"
        self._entries.append(entry)
        self._sink.info(message)
        return entry

    @property
    def entries(self) -> List[str]:
        return list(self._entries)

    def __len__(self) -> int:
        return len(self._entries)
