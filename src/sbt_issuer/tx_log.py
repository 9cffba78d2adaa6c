"""
Append-only, bounded audit log of issuance actions.

Entries are stored newest-first. Once the capacity is reached the oldest
entry is evicted on every append; nothing else ever removes or edits an
entry.
"""

from collections import deque
from typing import Iterator, Optional

from .config import DEFAULT_LOG_CAPACITY, MAX_LOG_CAPACITY
from .enums import TxStatus
from .exporter import export_csv
from .models import TxLogEntry, now_iso


class TxLog:
    """Newest-first ring of TxLogEntry records."""

    def __init__(self, capacity: int = DEFAULT_LOG_CAPACITY) -> None:
        if not 1 <= capacity <= MAX_LOG_CAPACITY:
            raise ValueError(f"Invalid capacity: {capacity}")
        self._capacity = capacity
        # appendleft on a bounded deque drops from the right, i.e. the oldest
        self._entries: deque[TxLogEntry] = deque(maxlen=capacity)

    @property
    def capacity(self) -> int:
        return self._capacity

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[TxLogEntry]:
        return iter(self.snapshot())

    def append(self, entry: TxLogEntry) -> None:
        """Insert an entry at the front, evicting the oldest on overflow."""
        self._entries.appendleft(entry)

    def record(
        self,
        action: str,
        status: TxStatus,
        tx_hash: Optional[str] = None,
        note: Optional[str] = None,
    ) -> TxLogEntry:
        """Create a timestamped entry, append it and return it."""
        entry = TxLogEntry(
            at=now_iso(),
            action=action,
            status=status,
            tx_hash=tx_hash,
            note=note,
        )
        self.append(entry)
        return entry

    def snapshot(self) -> list[TxLogEntry]:
        """Entries newest-first."""
        return list(self._entries)

    def chronological(self) -> list[TxLogEntry]:
        """Entries oldest-first."""
        return list(reversed(self._entries))

    def export(self) -> bytes:
        """CSV bytes with rows in chronological order."""
        return export_csv(self.chronological())
