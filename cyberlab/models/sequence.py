"""IdentifierSequence model — one atomic counter row per numbering scope."""

from __future__ import annotations

from sqlalchemy import Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from cyberlab.core.database import Base


class IdentifierSequence(Base):
    __tablename__ = "identifier_sequences"

    # e.g. "lab:2026" or "exhibit:FB/CYBER/2026/0003"
    scope: Mapped[str] = mapped_column(String(128), primary_key=True)
    last_value: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
