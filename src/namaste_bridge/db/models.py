"""
Database models for the NAMASTE terminology bridge.

SQLAlchemy models for the source vocabulary, the target vocabularies and the
curated mapping table.
"""

from datetime import datetime
from typing import Optional
from sqlalchemy import Boolean, DateTime, Float, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from namaste_bridge.db.session import Base


class NamasteCode(Base):
    """NAMASTE (Ayurveda, Siddha, Unani) source concept."""
    __tablename__ = "namaste_codes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    code: Mapped[str] = mapped_column(String(100), unique=True, index=True, nullable=False)
    display: Mapped[str] = mapped_column(String(500), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    category: Mapped[Optional[str]] = mapped_column(String(100), index=True, nullable=True)
    ayush_system: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False
    )

    def __repr__(self) -> str:
        return f"<NamasteCode(code='{self.code}', display='{self.display}')>"


class Icd11Tm2Code(Base):
    """ICD-11 Traditional Medicine Module 2 concept."""
    __tablename__ = "icd11_tm2_codes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    code: Mapped[str] = mapped_column(String(100), unique=True, index=True, nullable=False)
    display: Mapped[str] = mapped_column(String(500), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    equivalence: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    def __repr__(self) -> str:
        return f"<Icd11Tm2Code(code='{self.code}', display='{self.display}')>"


class SnomedCtCode(Base):
    """SNOMED CT concept with its semantic tag."""
    __tablename__ = "snomed_ct_codes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    code: Mapped[str] = mapped_column(String(50), unique=True, index=True, nullable=False)
    term: Mapped[str] = mapped_column(String(500), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    semantic_tag: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    def __repr__(self) -> str:
        return f"<SnomedCtCode(code='{self.code}', term='{self.term}')>"


class LoincCode(Base):
    """LOINC observation code."""
    __tablename__ = "loinc_codes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    code: Mapped[str] = mapped_column(String(50), unique=True, index=True, nullable=False)
    long_name: Mapped[str] = mapped_column(String(500), nullable=False)
    short_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    component: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    loinc_property: Mapped[Optional[str]] = mapped_column("property", String(50), nullable=True)
    loinc_system: Mapped[Optional[str]] = mapped_column("system", String(100), nullable=True)
    active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    def __repr__(self) -> str:
        return f"<LoincCode(code='{self.code}', long_name='{self.long_name}')>"


class TerminologyMapping(Base):
    """
    Curated NAMASTE to ICD-11 mapping.

    SNOMED CT and LOINC columns are bridge terminologies riding on the mapping.
    At most one row exists per (ayush_code, icd11_code) pair.
    """
    __tablename__ = "terminology_mappings"
    __table_args__ = (
        UniqueConstraint("ayush_code", "icd11_code", name="uq_mapping_source_target"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    ayush_code: Mapped[str] = mapped_column(String(100), index=True, nullable=False)
    ayush_term: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    icd11_code: Mapped[str] = mapped_column(String(100), index=True, nullable=False)
    icd11_term: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    snomed_ct_code: Mapped[Optional[str]] = mapped_column(String(50), index=True, nullable=True)
    snomed_ct_term: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    semantic_tag: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    loinc_code: Mapped[Optional[str]] = mapped_column(String(50), index=True, nullable=True)
    loinc_term: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    mapping_confidence: Mapped[float] = mapped_column(
        Float,
        default=0.5,
        nullable=False,
        comment="Confidence score between 0.0 and 1.0"
    )
    equivalence: Mapped[str] = mapped_column(
        String(20),
        default="related",
        nullable=False,
        comment="equivalent, wider, inexact, related"
    )
    mapping_method: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    clinical_evidence: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(20), default="pending", index=True, nullable=False)
    cross_validated: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    curator: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        onupdate=func.now(),
        nullable=True
    )

    def __repr__(self) -> str:
        return f"<TerminologyMapping({self.ayush_code} -> {self.icd11_code}, status='{self.status}')>"
