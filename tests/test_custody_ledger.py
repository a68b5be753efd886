"""
Custody Ledger Tests
====================

Validates:
  1. Every new exhibit has a receipt event at position 0.
  2. Events are returned oldest first with a continuous hash chain.
  3. The ORM refuses to rewrite, truncate or delete a ledger.
  4. A ledger corrupted outside the ORM fails validation on read.
  5. The exported report is byte-deterministic and does not mutate the ledger.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

import pytest
from sqlalchemy import update

from cyberlab.core.errors import LedgerIntegrityError, NotFoundError
from cyberlab.models.enums import CustodyEventType, ExhibitStatus
from cyberlab.models.exhibit import Exhibit
from cyberlab.services import custody_ledger, exhibits
from cyberlab.services.custody_ledger import GENESIS_HASH

FIXED_TS = datetime(2026, 3, 14, 9, 30, tzinfo=timezone.utc)


@pytest.fixture()
def exhibit(make_case, make_exhibit):
    return make_exhibit(make_case())


def _corrupt(db, exhibit, chain):
    # Core UPDATE bypasses the ORM flush guard, like a manual DB edit would
    db.execute(
        update(Exhibit.__table__)
        .where(Exhibit.__table__.c.id == exhibit.id)
        .values(chain_of_custody=chain)
    )
    db.commit()
    db.expire_all()


class TestHistory:
    def test_new_exhibit_has_receipt_event(self, db, exhibit, exhibit_officer):
        events = custody_ledger.history(db, exhibit.id)
        assert len(events) == 1
        first = events[0]
        assert first.event_type is CustodyEventType.received
        assert first.new_status is ExhibitStatus.received
        assert first.officer_name == exhibit_officer.name
        assert first.officer_badge == exhibit_officer.badge_number
        assert first.prev_hash == GENESIS_HASH

    def test_events_are_ordered_and_chained(self, db, exhibit, supervisor, analyst):
        exhibits.assign_exhibit(db, supervisor, exhibit.id, analyst.id)
        exhibits.change_exhibit_status(db, analyst, exhibit.id, "analysis_complete")

        events = custody_ledger.history(db, exhibit.id)
        assert [e.sequence for e in events] == [0, 1, 2]
        assert [e.event_type for e in events] == [
            CustodyEventType.received,
            CustodyEventType.assigned,
            CustodyEventType.status_change,
        ]
        for prev, cur in zip(events, events[1:]):
            assert cur.prev_hash == prev.event_hash

        result = custody_ledger.verify_chain(db, exhibit.id)
        assert result.valid
        assert result.event_count == 3
        assert result.head_hash == events[-1].event_hash

    def test_unknown_exhibit(self, db):
        with pytest.raises(NotFoundError):
            custody_ledger.history(db, uuid.uuid4())


class TestAppendOnlyGuard:
    def test_truncation_is_rejected(self, db, exhibit, supervisor, analyst):
        exhibits.assign_exhibit(db, supervisor, exhibit.id, analyst.id)
        exhibit.chain_of_custody = exhibit.chain_of_custody[:1]
        with pytest.raises(LedgerIntegrityError):
            db.flush()
        db.rollback()

    def test_rewrite_is_rejected(self, db, exhibit):
        tampered = [dict(exhibit.chain_of_custody[0], description="nothing happened")]
        exhibit.chain_of_custody = tampered + [tampered[0]]
        with pytest.raises(LedgerIntegrityError):
            db.flush()
        db.rollback()

    def test_delete_is_rejected(self, db, exhibit):
        db.delete(exhibit)
        with pytest.raises(LedgerIntegrityError):
            db.flush()
        db.rollback()

    def test_exhibit_without_receipt_cannot_be_stored(self, db, make_case):
        case = make_case()
        db.add(Exhibit(
            exhibit_number="CYB/LAB/0001/A9",
            lab_item=9,
            case_id=case.id,
            exhibit_type="other",
            device_name="Orphan",
            received_by="nobody",
            chain_of_custody=[],
        ))
        with pytest.raises(LedgerIntegrityError):
            db.flush()
        db.rollback()


class TestCorruptionOnRead:
    def test_schema_violation(self, db, exhibit):
        bad = [dict(exhibit.chain_of_custody[0], event_type="teleported")]
        _corrupt(db, exhibit, bad)
        with pytest.raises(LedgerIntegrityError) as exc:
            custody_ledger.history(db, exhibit.id)
        assert exc.value.detail["position"] == 0

    def test_not_a_list(self, db, exhibit):
        _corrupt(db, exhibit, {"events": []})
        with pytest.raises(LedgerIntegrityError):
            custody_ledger.history(db, exhibit.id)

    def test_edited_event_breaks_hash_chain(self, db, exhibit, supervisor, analyst):
        exhibits.assign_exhibit(db, supervisor, exhibit.id, analyst.id)
        chain = [dict(e) for e in exhibit.chain_of_custody]
        chain[0]["location"] = "Somewhere else"
        _corrupt(db, exhibit, chain)

        result = custody_ledger.verify_chain(db, exhibit.id)
        assert not result.valid
        assert result.broken_at == 0
        assert result.reason == "event_hash mismatch"


class TestExportReport:
    def test_report_is_deterministic(self, db, exhibit, supervisor, analyst):
        exhibits.assign_exhibit(db, supervisor, exhibit.id, analyst.id, notes="Urgent")
        first = custody_ledger.export_report(db, exhibit.id, generated_at=FIXED_TS)
        second = custody_ledger.export_report(db, exhibit.id, generated_at=FIXED_TS)
        assert first.text == second.text
        assert first.sha256 == second.sha256

    def test_report_contents(self, db, exhibit, supervisor, analyst):
        exhibits.assign_exhibit(db, supervisor, exhibit.id, analyst.id, notes="Urgent")
        report = custody_ledger.export_report(db, exhibit.id, generated_at=FIXED_TS)
        text = report.text

        assert text.startswith("CHAIN OF CUSTODY REPORT\n")
        assert f"Exhibit Number: {exhibit.exhibit_number}" in text
        assert "CUSTODY CHAIN EVENTS (2 Total)" in text
        assert "Event #1" in text and "Event #2" in text
        assert "Status Change: received -> in analysis" in text
        assert "Notes: Urgent" in text
        assert "Hash Chain: VERIFIED" in text
        assert f"Chain Head SHA-256: {report.head_hash}" in text
        assert "Report Generated: 2026-03-14 09:30:00 UTC" in text
        assert report.event_count == 2
        assert report.chain_valid

    def test_export_does_not_mutate_ledger(self, db, exhibit):
        before = list(exhibit.chain_of_custody)
        version = exhibit.version
        custody_ledger.export_report(db, exhibit.id, generated_at=FIXED_TS)
        db.expire_all()
        reloaded = db.get(Exhibit, exhibit.id)
        assert reloaded.chain_of_custody == before
        assert reloaded.version == version

    def test_report_flags_broken_chain(self, db, exhibit):
        chain = [dict(exhibit.chain_of_custody[0], notes="inserted later")]
        _corrupt(db, exhibit, chain)
        report = custody_ledger.export_report(db, exhibit.id, generated_at=FIXED_TS)
        assert not report.chain_valid
        assert "Hash Chain: BROKEN at event #1" in report.text

    def test_filename_is_path_safe(self, db, exhibit):
        report = custody_ledger.export_report(db, exhibit.id, generated_at=FIXED_TS)
        assert "/" not in report.filename
