"""Authenticated principal supplied by the external identity provider."""

from __future__ import annotations

import enum
from dataclasses import dataclass


class Role(str, enum.Enum):
    """Closed set of roles issued by the identity provider."""

    investigator = "investigator"
    case_officer = "case_officer"
    forensic_analyst = "forensic_analyst"
    analyst = "analyst"
    exhibit_officer = "exhibit_officer"
    supervisor = "supervisor"
    officer_commanding_unit = "officer_commanding_unit"
    commanding_officer = "commanding_officer"
    chief_of_cyber = "chief_of_cyber"
    administrator = "administrator"
    admin = "admin"


@dataclass(frozen=True)
class Principal:
    """
    The actor performing an operation.

    Passed explicitly into every service call; authorization is a pure
    function of (principal, requested action).
    """

    id: str
    role: Role
    name: str = ""
    badge_number: str = ""

    @property
    def display_name(self) -> str:
        return self.name or self.id

    @property
    def badge(self) -> str:
        return self.badge_number or "N/A"
