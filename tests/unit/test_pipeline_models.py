import dataclasses

import pytest

from medchain.pipeline.models import IngestionRecord, IngestionStatus

SUBJECT = "0x5aAeb6053F3E94C9b9A09f33669435E7Ef1BeAed"


def _make_record(**changes: object) -> IngestionRecord:
    record = IngestionRecord(subject=SUBJECT, filename="report.pdf")
    return dataclasses.replace(record, **changes)  # type: ignore[arg-type]


class TestIngestionRecordDefaults:
    def test_starts_pending(self) -> None:
        record = _make_record()
        assert record.status == IngestionStatus.PENDING
        assert record.fingerprint is None
        assert record.cid is None
        assert record.resume_attempts == 0

    def test_ids_are_unique(self) -> None:
        assert _make_record().id != _make_record().id

    def test_timestamps_are_utc(self) -> None:
        record = _make_record()
        assert record.created_at.tzinfo is not None
        assert record.created_at.utcoffset().total_seconds() == 0  # type: ignore[union-attr]

    def test_is_immutable(self) -> None:
        record = _make_record()
        with pytest.raises(dataclasses.FrozenInstanceError):
            record.status = IngestionStatus.ANCHORED  # type: ignore[misc]


class TestAdvance:
    def test_forward_path(self) -> None:
        record = _make_record()
        stored = record.advance(IngestionStatus.STORED, cid="bafkreiabc")
        anchored = stored.advance(IngestionStatus.ANCHORED, tx_ref="0xabc", block_ref=7)

        assert stored.cid == "bafkreiabc"
        assert anchored.status == IngestionStatus.ANCHORED
        assert anchored.block_ref == 7
        assert record.status == IngestionStatus.PENDING

    def test_advance_touches_updated_at(self) -> None:
        record = _make_record()
        stored = record.advance(IngestionStatus.STORED, cid="bafkreiabc")
        assert stored.updated_at >= record.updated_at
        assert stored.created_at == record.created_at

    def test_failed_can_be_resumed_to_anchored(self) -> None:
        failed = _make_record(status=IngestionStatus.FAILED, cid="bafkreiabc")
        assert failed.advance(IngestionStatus.ANCHORED).status == IngestionStatus.ANCHORED

    @pytest.mark.parametrize(
        ("start", "target"),
        [
            (IngestionStatus.PENDING, IngestionStatus.ANCHORED),
            (IngestionStatus.STORED, IngestionStatus.PENDING),
            (IngestionStatus.ANCHORED, IngestionStatus.FAILED),
            (IngestionStatus.ANCHORED, IngestionStatus.STORED),
            (IngestionStatus.FAILED, IngestionStatus.STORED),
        ],
    )
    def test_rejects_illegal_transitions(
        self, start: IngestionStatus, target: IngestionStatus
    ) -> None:
        with pytest.raises(ValueError, match="Illegal status transition"):
            _make_record(status=start).advance(target)


class TestProgress:
    def test_reports_known_state(self) -> None:
        record = _make_record(
            status=IngestionStatus.STORED,
            fingerprint="0x" + "a" * 64,
            cid="bafkreiabc",
        )
        assert record.progress() == {
            "id": record.id,
            "status": "stored",
            "fingerprint": "0x" + "a" * 64,
            "cid": "bafkreiabc",
            "tx_ref": None,
            "block_ref": None,
        }
