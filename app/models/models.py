"""
Case Screening Database Models
SQLAlchemy ORM models for the statute cache and screened cases.

All datetime columns use DateTime(timezone=True) for proper UTC handling.
Use utc_now() from app.core.utc for all timestamp defaults.
"""

import enum
import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import (
    Boolean,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database import Base
from app.core.utc import utc_now


# Type alias for timezone-aware DateTime columns
DateTimeTZ = DateTime(timezone=True)


def _new_id() -> str:
    return str(uuid.uuid4())


# =============================================================================
# Case Status
# =============================================================================

class CaseStatus(str, enum.Enum):
    """Lifecycle of a screened case."""
    processing = "processing"   # Created, analysis running
    completed = "completed"     # Analysis produced a result (possibly with omissions)
    flagged = "flagged"         # Analysis failed entirely after the case was created


# =============================================================================
# Statute Cache
# =============================================================================

class StatuteCacheEntry(Base):
    """
    Validated statute text, keyed by (jurisdiction, normalized_key).

    Rows are written once and never updated in place. The content column
    holds JSON: {"title", "text", "url", "fetched_at_iso"}.
    """
    __tablename__ = "statute_cache"
    __table_args__ = (
        UniqueConstraint("jurisdiction", "normalized_key", name="uq_statute_cache_key"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    jurisdiction: Mapped[str] = mapped_column(String(16), index=True)
    normalized_key: Mapped[str] = mapped_column(String(64))
    content_json: Mapped[str] = mapped_column(Text)
    fetched_at: Mapped[datetime] = mapped_column(DateTimeTZ, default=utc_now)


# =============================================================================
# Cases
# =============================================================================

class Case(Base):
    """One screening request whose result was persisted."""
    __tablename__ = "cases"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    case_number: Mapped[Optional[str]] = mapped_column(String(100), nullable=True, index=True)
    defendant_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    status: Mapped[CaseStatus] = mapped_column(
        Enum(CaseStatus, native_enum=False, length=20),
        default=CaseStatus.processing,
    )
    narrative: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTimeTZ, default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(DateTimeTZ, default=utc_now, onupdate=utc_now)

    documents: Mapped[list["CaseDocument"]] = relationship(
        back_populates="case", cascade="all, delete-orphan"
    )
    violations: Mapped[list["Violation"]] = relationship(
        back_populates="case", cascade="all, delete-orphan"
    )
    criminal_records: Mapped[list["CriminalRecord"]] = relationship(
        back_populates="case", cascade="all, delete-orphan"
    )


class CaseDocument(Base):
    """Summary of one submitted document (the bytes are not retained)."""
    __tablename__ = "case_documents"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    case_id: Mapped[str] = mapped_column(ForeignKey("cases.id", ondelete="CASCADE"), index=True)
    position: Mapped[int] = mapped_column(Integer)
    file_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    media_type: Mapped[str] = mapped_column(String(100))
    page_count: Mapped[int] = mapped_column(Integer, default=0)
    text_length: Mapped[int] = mapped_column(Integer, default=0)
    image_count: Mapped[int] = mapped_column(Integer, default=0)
    ocr_pages: Mapped[int] = mapped_column(Integer, default=0)
    scanned: Mapped[bool] = mapped_column(Boolean, default=False)
    error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    case: Mapped["Case"] = relationship(back_populates="documents")


class Violation(Base):
    """Element screening of one resolved statute against the case narrative."""
    __tablename__ = "violations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    case_id: Mapped[str] = mapped_column(ForeignKey("cases.id", ondelete="CASCADE"), index=True)
    code: Mapped[str] = mapped_column(String(64))
    jurisdiction: Mapped[str] = mapped_column(String(16))
    source: Mapped[str] = mapped_column(String(100))
    title: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    overall: Mapped[str] = mapped_column(String(16))
    elements_json: Mapped[str] = mapped_column(Text)

    case: Mapped["Case"] = relationship(back_populates="violations")


class CriminalRecord(Base):
    """One prior charge parsed from a criminal-history section."""
    __tablename__ = "criminal_records"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    case_id: Mapped[str] = mapped_column(ForeignKey("cases.id", ondelete="CASCADE"), index=True)
    incident_label: Mapped[str] = mapped_column(String(100))
    offense: Mapped[str] = mapped_column(Text)
    arrest_date: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    tracking_number: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    case: Mapped["Case"] = relationship(back_populates="criminal_records")
