"""
Property-based tests for the audit log and its CSV export.
"""

import csv
import io
from pathlib import Path

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from sbt_issuer.enums import TxStatus
from sbt_issuer.exceptions import PersistenceError
from sbt_issuer.exporter import (
    CSV_HEADER,
    export_csv,
    export_filename,
    template_filename,
    template_text,
    write_export,
)
from sbt_issuer.models import TxLogEntry
from sbt_issuer.tx_log import TxLog


field_text = st.characters(blacklist_categories=("Cs", "Cc"))


@st.composite
def log_entry(draw) -> TxLogEntry:
    """Generate arbitrary log entries, including awkward note text."""
    return TxLogEntry(
        at=draw(st.just("2026-01-01T00:00:00.000Z")),
        action=draw(st.text(alphabet=field_text, min_size=1, max_size=30)),
        status=draw(st.sampled_from(list(TxStatus))),
        tx_hash=draw(st.one_of(st.none(), st.text(alphabet="0123456789abcdef", min_size=64, max_size=64).map(lambda h: "0x" + h))),
        note=draw(st.one_of(st.none(), st.text(alphabet=field_text, max_size=40))),
    )


def parse_export(data: bytes) -> list[list[str]]:
    text = data.decode("utf-8")
    return list(csv.reader(io.StringIO(text, newline="")))


class TestLogCapacityProperty:
    """The log never holds more than its capacity."""

    @given(count=st.integers(min_value=0, max_value=450))
    @settings(max_examples=50)
    def test_bounded(self, count: int) -> None:
        log = TxLog()
        for i in range(count):
            log.record(f"action-{i}", TxStatus.SUCCESS)

        assert len(log) == min(count, 200)
        if count:
            assert log.snapshot()[0].action == f"action-{count - 1}"
            assert log.chronological()[0].action == f"action-{max(0, count - 200)}"

    def test_two_hundred_and_first_evicts_oldest(self) -> None:
        log = TxLog()
        for i in range(200):
            log.record(f"action-{i}", TxStatus.PENDING)
        log.record("newest", TxStatus.SUCCESS)

        actions = [e.action for e in log.snapshot()]
        assert len(actions) == 200
        assert actions[0] == "newest"
        assert "action-0" not in actions
        assert actions[-1] == "action-1"

    @given(capacity=st.integers(min_value=1, max_value=20), count=st.integers(min_value=0, max_value=60))
    @settings(max_examples=100)
    def test_custom_capacity(self, capacity: int, count: int) -> None:
        log = TxLog(capacity=capacity)
        for i in range(count):
            log.record(str(i), TxStatus.PENDING)
        assert len(log) == min(count, capacity)

    @pytest.mark.parametrize("capacity", [0, -1, 201, 1000])
    def test_invalid_capacity(self, capacity: int) -> None:
        with pytest.raises(ValueError):
            TxLog(capacity=capacity)


class TestLogAppendOnlyProperty:
    """Entries are never edited after insertion."""

    @given(entries=st.lists(log_entry(), min_size=1, max_size=30))
    @settings(max_examples=100)
    def test_snapshot_preserves_entries(self, entries: list[TxLogEntry]) -> None:
        log = TxLog()
        for entry in entries:
            log.append(entry)

        assert log.chronological() == entries
        assert log.snapshot() == list(reversed(entries))

    def test_snapshot_is_a_copy(self) -> None:
        log = TxLog()
        log.record("mint(0xabc)", TxStatus.PENDING)
        snap = log.snapshot()
        snap.clear()
        assert len(log) == 1

    def test_record_stamps_time(self) -> None:
        log = TxLog()
        entry = log.record("revoke(7)", TxStatus.PENDING, note="n")
        assert entry.at.endswith("Z")
        assert "T" in entry.at
        assert log.snapshot() == [entry]


class TestExportProperty:
    """Export is chronological, fully quoted and lossless."""

    def test_header_and_order(self) -> None:
        log = TxLog()
        log.record("A", TxStatus.PENDING)
        log.record("B", TxStatus.SUCCESS)
        log.record("C", TxStatus.ERROR)

        data = log.export()
        lines = data.decode("utf-8").split("\n")

        assert lines[0] == CSV_HEADER
        rows = parse_export(data)[1:]
        assert [r[1] for r in rows] == ["A", "B", "C"]
        assert [r[2] for r in rows] == ["pending", "success", "error"]

    def test_embedded_quotes_are_doubled(self) -> None:
        entry = TxLogEntry(
            at="2026-01-01T00:00:00.000Z",
            action="mint(0x1)",
            status=TxStatus.ERROR,
            note='he said "no"',
        )
        text = export_csv([entry]).decode("utf-8")
        assert '"he said ""no"""' in text

    def test_every_field_is_quoted(self) -> None:
        entry = TxLogEntry(at="t", action="a", status=TxStatus.PENDING)
        body = export_csv([entry]).decode("utf-8").split("\n")[1]
        assert body == '"t","a","pending","",""'

    @given(entries=st.lists(log_entry(), max_size=20))
    @settings(max_examples=100)
    def test_fields_survive_export(self, entries: list[TxLogEntry]) -> None:
        rows = parse_export(export_csv(entries))

        assert rows[0] == CSV_HEADER.split(",")
        assert len(rows) == len(entries) + 1
        for entry, row in zip(entries, rows[1:]):
            assert row == [
                entry.at,
                entry.action,
                entry.status.value,
                entry.tx_hash or "",
                entry.note or "",
            ]

    def test_empty_log_exports_header_only(self) -> None:
        assert TxLog().export() == (CSV_HEADER + "\n").encode("utf-8")


class TestExportFiles:
    """File naming and writing."""

    def test_export_filename(self) -> None:
        assert export_filename(now_ms=1700000000123) == "sbt-logs-1700000000123.csv"
        assert export_filename("ftd", now_ms=5) == "ftd-5.csv"

    def test_template(self) -> None:
        assert template_filename(now_ms=42) == "batch-template-42.txt"
        assert template_text() == "0x...\n0x...\n"

    def test_write_into_directory(self, tmp_path: Path) -> None:
        target = write_export(tmp_path, b"x")
        assert target.parent == tmp_path
        assert target.name.startswith("sbt-logs-")
        assert target.read_bytes() == b"x"

    def test_write_to_file_path(self, tmp_path: Path) -> None:
        target = write_export(tmp_path / "sub" / "log.csv", b"data")
        assert target.read_bytes() == b"data"

    def test_write_failure(self, tmp_path: Path) -> None:
        blocker = tmp_path / "blocker"
        blocker.write_text("file")
        with pytest.raises(PersistenceError) as exc_info:
            write_export(blocker / "log.csv", b"data")
        assert exc_info.value.code == "io_error"
        assert exc_info.value.file_path == str(blocker / "log.csv")
