"""
Exhibit Registry Tests
======================

Validates:
  1. Registration validates required fields per exhibit type.
  2. Only intake roles may register exhibits.
  3. Every lifecycle mutation appends exactly one custody event carrying
     previous_status / new_status.
  4. Illegal status edges raise InvalidTransitionError and leave no trace.
  5. Legacy status spellings are accepted as input.
"""

from __future__ import annotations

import uuid

import pytest

from cyberlab.core.errors import (
    AuthorizationError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from cyberlab.models.enums import CustodyEventType, ExhibitStatus
from cyberlab.services import custody_ledger, exhibits


class TestRegistration:
    def test_register_computer(self, db, make_case, make_exhibit, exhibit_officer):
        case = make_case()
        exhibit = make_exhibit(case)
        assert exhibit.status is ExhibitStatus.received
        assert exhibit.case_id == case.id
        assert exhibit.received_by == exhibit_officer.id
        assert len(custody_ledger.history(db, exhibit.id)) == 1

    def test_mobile_device_requires_brand_and_imei(self, make_case, make_exhibit):
        case = make_case()
        with pytest.raises(ValidationError) as exc:
            make_exhibit(case, exhibit_type="mobile_device", device_name="Phone")
        assert exc.value.detail["missing"] == ["brand", "imei"]

    def test_mobile_device_with_required_fields(self, make_case, make_exhibit):
        exhibit = make_exhibit(
            make_case(),
            exhibit_type="mobile_device",
            device_name="Galaxy A14",
            brand="Samsung",
            imei="356938035643809",
        )
        assert exhibit.imei == "356938035643809"

    def test_device_name_required(self, make_case, make_exhibit):
        with pytest.raises(ValidationError):
            make_exhibit(make_case(), device_name="   ")

    def test_unknown_type(self, make_case, make_exhibit):
        with pytest.raises(ValidationError):
            make_exhibit(make_case(), exhibit_type="toaster")

    def test_investigator_cannot_register(self, db, make_case, investigator):
        case = make_case()
        with pytest.raises(AuthorizationError):
            exhibits.register_exhibit(
                db, investigator, case.id, exhibit_type="computer", device_name="PC"
            )

    def test_unknown_case(self, db, exhibit_officer):
        with pytest.raises(NotFoundError):
            exhibits.register_exhibit(
                db, exhibit_officer, uuid.uuid4(), exhibit_type="computer", device_name="PC"
            )

    def test_list_by_case_in_item_order(self, db, make_case, make_exhibit, investigator):
        case = make_case()
        make_exhibit(case, device_name="One")
        make_exhibit(case, device_name="Two")
        listed = exhibits.list_exhibits(db, investigator, case.id)
        assert [e.device_name for e in listed] == ["One", "Two"]


class TestAssignment:
    def test_assign_moves_to_in_analysis(self, db, make_case, make_exhibit, supervisor, analyst):
        exhibit = make_exhibit(make_case())
        exhibits.assign_exhibit(db, supervisor, exhibit.id, analyst.id)

        assert exhibit.status is ExhibitStatus.in_analysis
        assert exhibit.assigned_analyst_id == analyst.id
        events = custody_ledger.history(db, exhibit.id)
        assert len(events) == 2
        last = events[-1]
        assert last.event_type is CustodyEventType.assigned
        assert last.previous_status is ExhibitStatus.received
        assert last.new_status is ExhibitStatus.in_analysis

    def test_reassign_appends_another_event(
        self, db, make_case, make_exhibit, supervisor, analyst, other_analyst
    ):
        exhibit = make_exhibit(make_case())
        exhibits.assign_exhibit(db, supervisor, exhibit.id, analyst.id)
        exhibits.assign_exhibit(db, supervisor, exhibit.id, other_analyst.id)

        events = custody_ledger.history(db, exhibit.id)
        assert len(events) == 3
        assert events[-1].previous_status is ExhibitStatus.in_analysis
        assert events[-1].new_status is ExhibitStatus.in_analysis
        assert "Reassigned" in events[-1].description
        assert exhibit.assigned_analyst_id == other_analyst.id

    def test_cannot_assign_released_exhibit(self, db, make_case, make_exhibit, supervisor, exhibit_officer, analyst):
        exhibit = make_exhibit(make_case())
        exhibits.return_exhibit(db, exhibit_officer, exhibit.id, returned_to="Owner")
        with pytest.raises(InvalidTransitionError):
            exhibits.assign_exhibit(db, supervisor, exhibit.id, analyst.id)


class TestStatusChanges:
    @pytest.fixture()
    def in_analysis(self, db, make_case, make_exhibit, supervisor, analyst):
        exhibit = make_exhibit(make_case())
        return exhibits.assign_exhibit(db, supervisor, exhibit.id, analyst.id)

    def test_assigned_analyst_completes_analysis(self, db, in_analysis, analyst):
        exhibits.change_exhibit_status(db, analyst, in_analysis.id, "analysis_complete")
        assert in_analysis.status is ExhibitStatus.analysis_complete
        last = custody_ledger.history(db, in_analysis.id)[-1]
        assert last.event_type is CustodyEventType.status_change
        assert last.previous_status is ExhibitStatus.in_analysis
        assert last.new_status is ExhibitStatus.analysis_complete

    def test_legacy_alias_accepted(self, db, in_analysis, analyst):
        exhibits.change_exhibit_status(db, analyst, in_analysis.id, "analyzed")
        assert in_analysis.status is ExhibitStatus.analysis_complete

    def test_unknown_status(self, db, in_analysis, analyst):
        with pytest.raises(ValidationError):
            exhibits.change_exhibit_status(db, analyst, in_analysis.id, "vaporised")

    def test_other_analyst_is_rejected(self, db, in_analysis, other_analyst):
        with pytest.raises(AuthorizationError):
            exhibits.change_exhibit_status(db, other_analyst, in_analysis.id, "analysis_complete")

    def test_illegal_edge_leaves_no_event(self, db, in_analysis, analyst):
        before = len(custody_ledger.history(db, in_analysis.id))
        with pytest.raises(InvalidTransitionError) as exc:
            exhibits.change_exhibit_status(db, analyst, in_analysis.id, "destroyed")
        assert exc.value.detail["current"] == "in_analysis"
        assert len(custody_ledger.history(db, in_analysis.id)) == before
        assert in_analysis.status is ExhibitStatus.in_analysis

    def test_full_lifecycle(self, db, in_analysis, analyst, exhibit_officer, admin):
        exhibits.change_exhibit_status(db, analyst, in_analysis.id, "analysis_complete")
        exhibits.return_exhibit(db, exhibit_officer, in_analysis.id, returned_to="Complainant")
        exhibits.change_exhibit_status(db, admin, in_analysis.id, "archived")

        events = custody_ledger.history(db, in_analysis.id)
        assert [e.event_type for e in events] == [
            CustodyEventType.received,
            CustodyEventType.assigned,
            CustodyEventType.status_change,
            CustodyEventType.returned,
            CustodyEventType.status_change,
        ]
        assert in_analysis.status is ExhibitStatus.archived

        with pytest.raises(InvalidTransitionError):
            exhibits.change_exhibit_status(db, admin, in_analysis.id, "released")


class TestTransfer:
    def test_transfer_records_location(self, db, make_case, make_exhibit, exhibit_officer):
        exhibit = make_exhibit(make_case())
        exhibits.transfer_custody(db, exhibit_officer, exhibit.id, to_location="Safe 3")

        assert exhibit.storage_location == "Safe 3"
        assert exhibit.status is ExhibitStatus.received
        last = custody_ledger.history(db, exhibit.id)[-1]
        assert last.event_type is CustodyEventType.transferred
        assert last.location == "Safe 3"

    def test_transfer_requires_destination(self, db, make_case, make_exhibit, exhibit_officer):
        exhibit = make_exhibit(make_case())
        with pytest.raises(ValidationError):
            exhibits.transfer_custody(db, exhibit_officer, exhibit.id, to_location=" ")

    def test_analyst_cannot_transfer(self, db, make_case, make_exhibit, analyst):
        exhibit = make_exhibit(make_case())
        with pytest.raises(AuthorizationError):
            exhibits.transfer_custody(db, analyst, exhibit.id, to_location="Desk")
