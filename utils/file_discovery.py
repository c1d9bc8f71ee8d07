"""Locating MyWhoosh activity files and tracking which ones were synced."""

import re
from datetime import datetime, timedelta
from functools import cmp_to_key
from pathlib import Path
from typing import List, Optional, Sequence, Union

from config.settings import (
    ACTIVITY_FILE_PATTERN,
    OUTPUT_TIMESTAMP_FORMAT,
    SYNC_WINDOW_DAYS,
    SYNCED_SUFFIX,
)

_DIGITS_RE = re.compile(r'\d+')


def version_key(name: str) -> List[int]:
    """Numbers appearing in a file name, in order ('MyNewActivity-3.8.5.fit' -> [3, 8, 5])."""
    return [int(part) for part in _DIGITS_RE.findall(name)]


def compare_versions(a: Sequence[int], b: Sequence[int]) -> int:
    """Compare component-wise, left to right; the longer sequence wins a tie."""
    for x, y in zip(a, b):
        if x != y:
            return x - y
    return len(a) - len(b)


def find_most_recent_fit_file(directory: Union[str, Path],
                              pattern: str = ACTIVITY_FILE_PATTERN) -> Path:
    """Return the activity file with the highest version number.

    Raises:
        FileNotFoundError: If no file matches ``pattern``
    """
    directory = Path(directory)
    matches = list(directory.glob(pattern))
    if not matches:
        raise FileNotFoundError(f"No {pattern} files in {directory}")

    key = cmp_to_key(lambda p, q: compare_versions(version_key(p.name), version_key(q.name)))
    return max(matches, key=key)


def sync_marker_path(fit_path: Union[str, Path]) -> Path:
    fit_path = Path(fit_path)
    return fit_path.with_name(fit_path.name + SYNCED_SUFFIX)


def is_synced(fit_path: Union[str, Path]) -> bool:
    """Check if a sync marker exists next to the FIT file."""
    return sync_marker_path(fit_path).exists()


def mark_synced(fit_path: Union[str, Path], now: Optional[datetime] = None) -> Path:
    """Write the sync marker next to the FIT file."""
    now = now or datetime.now().astimezone()
    marker = sync_marker_path(fit_path)
    marker.write_text(now.isoformat(timespec='seconds'), encoding='utf-8')
    return marker


def find_unsynced_fit_files(directory: Union[str, Path], days: int = SYNC_WINDOW_DAYS,
                            now: Optional[datetime] = None) -> List[Path]:
    """FIT files modified within the last ``days`` days and not yet synced.

    Returned oldest first so uploads happen in chronological order.
    """
    directory = Path(directory)
    now = now or datetime.now()
    cutoff = (now - timedelta(days=days)).timestamp()

    candidates = []
    for path in directory.glob('*.fit'):
        try:
            mtime = path.stat().st_mtime
        except OSError:
            continue
        if mtime < cutoff or is_synced(path):
            continue
        candidates.append((mtime, path))

    candidates.sort(key=lambda item: item[0])
    return [path for _, path in candidates]


def generate_output_filename(input_path: Union[str, Path], now: Optional[datetime] = None) -> str:
    """'<stem>_<timestamp>.fit' for the corrected copy of ``input_path``."""
    now = now or datetime.now()
    return f"{Path(input_path).stem}_{now.strftime(OUTPUT_TIMESTAMP_FORMAT)}.fit"
