"""
CSV export of the audit log and the batch import template.
"""

import csv
import io
import time
from pathlib import Path
from typing import Iterable, Optional

from .exceptions import PersistenceError
from .models import TxLogEntry


CSV_HEADER = "at,action,status,hash,note"

TEMPLATE_TEXT = "0x...\n0x...\n"


def export_csv(entries: Iterable[TxLogEntry]) -> bytes:
    """
    Serialize log entries as UTF-8 CSV.

    Entries are written in the order given; callers pass them oldest-first.
    Every data field is double-quoted with embedded quotes doubled.

    Args:
        entries: Log entries in chronological order

    Returns:
        CSV document as bytes
    """
    buffer = io.StringIO()
    buffer.write(CSV_HEADER + "\n")
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    for entry in entries:
        writer.writerow([
            entry.at,
            entry.action,
            entry.status.value,
            entry.tx_hash or "",
            entry.note or "",
        ])
    return buffer.getvalue().encode("utf-8")


def export_filename(prefix: str = "sbt-logs", now_ms: Optional[int] = None) -> str:
    """File name for an export, unique per millisecond."""
    if now_ms is None:
        now_ms = time.time_ns() // 1_000_000
    return f"{prefix}-{now_ms}.csv"


def template_filename(now_ms: Optional[int] = None) -> str:
    """File name for the batch import template."""
    if now_ms is None:
        now_ms = time.time_ns() // 1_000_000
    return f"batch-template-{now_ms}.txt"


def template_text() -> str:
    """Two placeholder lines showing the expected import shape."""
    return TEMPLATE_TEXT


def write_export(path: Path, data: bytes) -> Path:
    """
    Write export bytes to disk.

    If ``path`` is an existing directory the file is created inside it
    under a fresh timestamped name.

    Raises:
        PersistenceError: If the file cannot be written
    """
    target = path / export_filename() if path.is_dir() else path
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)
    except OSError as e:
        raise PersistenceError(
            file_path=str(target),
            message=f"Failed to write export: {e}",
        )
    return target
