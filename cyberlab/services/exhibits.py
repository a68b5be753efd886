"""
Exhibit Registry
================
Registration and lifecycle of evidence items.

Every mutation in this module:
  1. checks the principal against the role policy,
  2. checks the requested edge against ``EXHIBIT_TRANSITIONS``,
  3. appends exactly one custody event through the ledger,
  4. writes an activity entry,
all inside one unit of work. The ``version`` column turns a concurrent
writer on the same exhibit into ConflictError.
"""

from __future__ import annotations

import logging
import uuid

from sqlalchemy import select
from sqlalchemy.orm import Session

from cyberlab.auth.principal import Principal
from cyberlab.auth.role_policy import ANALYSTS, require
from cyberlab.core.database import unit_of_work
from cyberlab.core.errors import (
    AuthorizationError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from cyberlab.models.enums import (
    EXHIBIT_TRANSITIONS,
    CustodyEventType,
    ExhibitStatus,
    ExhibitType,
)
from cyberlab.models.exhibit import Exhibit
from cyberlab.services.activity import record_activity
from cyberlab.services.cases import ensure_not_terminal, load_case
from cyberlab.services.custody_ledger import append_event
from cyberlab.services.identifiers import next_exhibit_number

logger = logging.getLogger(__name__)

# Fields an intake officer must supply per exhibit type
REQUIRED_FIELDS: dict[ExhibitType, tuple[str, ...]] = {
    ExhibitType.mobile_device: ("device_name", "brand", "imei"),
    ExhibitType.computer: ("device_name",),
    ExhibitType.storage_media: ("device_name",),
    ExhibitType.network_device: ("device_name",),
    ExhibitType.other: ("device_name",),
}


def load_exhibit(db: Session, exhibit_id: uuid.UUID) -> Exhibit:
    exhibit = db.get(Exhibit, exhibit_id)
    if exhibit is None:
        raise NotFoundError("Exhibit not found", exhibit_id=str(exhibit_id))
    return exhibit


def _check_edge(exhibit: Exhibit, target: ExhibitStatus) -> None:
    if target not in EXHIBIT_TRANSITIONS[exhibit.status]:
        raise InvalidTransitionError(
            f"Exhibit cannot move from {exhibit.status.value} to {target.value}",
            exhibit_number=exhibit.exhibit_number,
            current=exhibit.status.value,
            requested=target.value,
            allowed=sorted(s.value for s in EXHIBIT_TRANSITIONS[exhibit.status]),
        )


def _parse_status(value: str | ExhibitStatus) -> ExhibitStatus:
    try:
        return ExhibitStatus.parse(value)
    except ValueError as exc:
        raise ValidationError("Unknown exhibit status", status=str(value)) from exc


def _log_activity(db: Session, principal: Principal, exhibit: Exhibit, kind: str, text: str, **meta):
    record_activity(
        db,
        subject_id=exhibit.id,
        case_id=exhibit.case_id,
        actor=principal,
        activity_type=kind,
        description=f"{exhibit.exhibit_number}: {text}",
        metadata={"exhibit_number": exhibit.exhibit_number, **meta},
    )


# ---------------------------------------------------------------------------
# Registration
# ---------------------------------------------------------------------------


def register_exhibit(
    db: Session,
    principal: Principal,
    case_id: uuid.UUID,
    *,
    exhibit_type: ExhibitType,
    device_name: str,
    brand: str | None = None,
    model: str | None = None,
    serial_number: str | None = None,
    imei: str | None = None,
    mac_address: str | None = None,
    description: str | None = None,
    storage_location: str | None = None,
    notes: str | None = None,
) -> Exhibit:
    """Register an exhibit against a case and record its receipt."""
    require(principal, "exhibit.register")
    try:
        exhibit_type = ExhibitType(exhibit_type)
    except ValueError as exc:
        raise ValidationError("Unknown exhibit type", exhibit_type=str(exhibit_type)) from exc

    values = {
        "device_name": device_name,
        "brand": brand,
        "model": model,
        "serial_number": serial_number,
        "imei": imei,
        "mac_address": mac_address,
    }
    missing = [f for f in REQUIRED_FIELDS[exhibit_type] if not (values.get(f) or "").strip()]
    if missing:
        raise ValidationError(
            f"Missing required fields for {exhibit_type.value}",
            missing=missing,
        )

    with unit_of_work(db):
        case = load_case(db, case_id)
        ensure_not_terminal(case)
        item, number = next_exhibit_number(db, case)

        exhibit = Exhibit(
            exhibit_number=number,
            lab_item=item,
            exhibit_type=exhibit_type,
            status=ExhibitStatus.received,
            description=description,
            storage_location=storage_location,
            received_by=principal.id,
            chain_of_custody=[],
            **{k: (v.strip() if v else None) for k, v in values.items()},
        )
        exhibit.case = case
        append_event(
            exhibit,
            event_type=CustodyEventType.received,
            description=f"Exhibit {number} received into the lab",
            officer=principal,
            location=storage_location,
            new_status=ExhibitStatus.received,
            notes=notes,
        )
        db.add(exhibit)
        db.flush()
        _log_activity(db, principal, exhibit, "exhibit_registered", "registered", item=item)

    logger.info("Exhibit %s registered on %s", exhibit.exhibit_number, case.lab_number)
    return exhibit


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------


def assign_exhibit(
    db: Session,
    principal: Principal,
    exhibit_id: uuid.UUID,
    analyst_id: str,
    *,
    notes: str | None = None,
) -> Exhibit:
    """Assign (or reassign) an analyst; the exhibit moves to in_analysis."""
    require(principal, "exhibit.assign")
    if not (analyst_id or "").strip():
        raise ValidationError("analyst_id is required", field="analyst_id")

    with unit_of_work(db):
        exhibit = load_exhibit(db, exhibit_id)
        _check_edge(exhibit, ExhibitStatus.in_analysis)
        previous_status = exhibit.status
        previous_analyst = exhibit.assigned_analyst_id

        if previous_analyst and previous_analyst != analyst_id:
            text = f"Reassigned from analyst {previous_analyst} to {analyst_id}"
        else:
            text = f"Assigned to analyst {analyst_id}"

        exhibit.assigned_analyst_id = analyst_id
        exhibit.status = ExhibitStatus.in_analysis
        append_event(
            exhibit,
            event_type=CustodyEventType.assigned,
            description=text,
            officer=principal,
            location=exhibit.storage_location,
            previous_status=previous_status,
            new_status=ExhibitStatus.in_analysis,
            notes=notes,
        )
        _log_activity(
            db, principal, exhibit, "exhibit_assigned", text,
            analyst_id=analyst_id, previous_analyst_id=previous_analyst,
        )
    return exhibit


def change_exhibit_status(
    db: Session,
    principal: Principal,
    exhibit_id: uuid.UUID,
    new_status: str | ExhibitStatus,
    *,
    notes: str | None = None,
    location: str | None = None,
) -> Exhibit:
    require(principal, "exhibit.status")
    target = _parse_status(new_status)

    with unit_of_work(db):
        exhibit = load_exhibit(db, exhibit_id)
        if principal.role in ANALYSTS and exhibit.assigned_analyst_id != principal.id:
            raise AuthorizationError(
                "Only the assigned analyst may change this exhibit's status",
                exhibit_number=exhibit.exhibit_number,
            )
        _check_edge(exhibit, target)
        previous = exhibit.status
        exhibit.status = target
        if location:
            exhibit.storage_location = location
        append_event(
            exhibit,
            event_type=CustodyEventType.status_change,
            description=f"Status changed from {previous.value} to {target.value}",
            officer=principal,
            location=location or exhibit.storage_location,
            previous_status=previous,
            new_status=target,
            notes=notes,
        )
        _log_activity(
            db, principal, exhibit, "exhibit_status_changed",
            f"{previous.value} -> {target.value}",
            **{"from": previous.value, "to": target.value},
        )
    return exhibit


def transfer_custody(
    db: Session,
    principal: Principal,
    exhibit_id: uuid.UUID,
    *,
    to_location: str,
    notes: str | None = None,
) -> Exhibit:
    """Move an exhibit to a new storage location without changing its status."""
    require(principal, "exhibit.transfer")
    if not (to_location or "").strip():
        raise ValidationError("to_location is required", field="to_location")

    with unit_of_work(db):
        exhibit = load_exhibit(db, exhibit_id)
        if not EXHIBIT_TRANSITIONS[exhibit.status]:
            raise InvalidTransitionError(
                f"Exhibit is {exhibit.status.value} and cannot be transferred",
                exhibit_number=exhibit.exhibit_number,
            )
        origin = exhibit.storage_location
        exhibit.storage_location = to_location.strip()
        append_event(
            exhibit,
            event_type=CustodyEventType.transferred,
            description=f"Transferred from {origin or 'unrecorded location'} to {exhibit.storage_location}",
            officer=principal,
            location=exhibit.storage_location,
            previous_status=exhibit.status,
            new_status=exhibit.status,
            notes=notes,
        )
        _log_activity(
            db, principal, exhibit, "exhibit_transferred",
            f"moved to {exhibit.storage_location}",
            origin=origin, destination=exhibit.storage_location,
        )
    return exhibit


def return_exhibit(
    db: Session,
    principal: Principal,
    exhibit_id: uuid.UUID,
    *,
    returned_to: str,
    notes: str | None = None,
) -> Exhibit:
    """Release an exhibit back to its owner or the investigating officer."""
    require(principal, "exhibit.return")
    if not (returned_to or "").strip():
        raise ValidationError("returned_to is required", field="returned_to")

    with unit_of_work(db):
        exhibit = load_exhibit(db, exhibit_id)
        _check_edge(exhibit, ExhibitStatus.released)
        previous = exhibit.status
        exhibit.status = ExhibitStatus.released
        append_event(
            exhibit,
            event_type=CustodyEventType.returned,
            description=f"Returned to {returned_to.strip()}",
            officer=principal,
            location=exhibit.storage_location,
            previous_status=previous,
            new_status=ExhibitStatus.released,
            notes=notes,
        )
        _log_activity(
            db, principal, exhibit, "exhibit_returned",
            f"returned to {returned_to.strip()}",
            returned_to=returned_to.strip(),
        )
    return exhibit


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------


def get_exhibit(db: Session, principal: Principal, exhibit_id: uuid.UUID) -> Exhibit:
    require(principal, "exhibit.view")
    return load_exhibit(db, exhibit_id)


def list_exhibits(db: Session, principal: Principal, case_id: uuid.UUID) -> list[Exhibit]:
    require(principal, "exhibit.view")
    load_case(db, case_id)
    stmt = select(Exhibit).where(Exhibit.case_id == case_id).order_by(Exhibit.lab_item)
    return list(db.execute(stmt).scalars())
