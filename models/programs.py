import uuid
from datetime import datetime
from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey, Integer, JSON, Text, UniqueConstraint
from sqlalchemy.orm import relationship

from db import Base


def _uuid() -> str:
    return str(uuid.uuid4())


class Program(Base):
    __tablename__ = "programs"

    id = Column(String(36), primary_key=True, default=_uuid)
    title = Column(String(255), nullable=False)
    university = Column(String(255))
    country = Column(String(64))
    description = Column(Text)
    is_active = Column(Boolean, default=True, nullable=False, index=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    requirement = relationship("ProgramRequirement", back_populates="program", uselist=False, cascade="all, delete-orphan")


class ProgramRequirement(Base):
    __tablename__ = "program_requirements"

    id = Column(String(36), primary_key=True, default=_uuid)
    program_id = Column(String(36), ForeignKey("programs.id", ondelete="CASCADE"), unique=True, nullable=False)

    minimum_education_level = Column(String(32))
    # [{"test_type": "IELTS", "minimum_score": 6.0, "required": true}, ...]
    test_requirements = Column(JSON, default=list, nullable=False)
    minimum_gpa = Column(String(16))
    required_documents = Column(JSON, default=list, nullable=False)
    accepted_fields = Column(JSON, default=list, nullable=False)
    eligible_nationalities = Column(JSON, default=list, nullable=False)
    work_experience_required = Column(Boolean, default=False, nullable=False)
    minimum_work_experience_years = Column(Integer)
    additional_requirements = Column(Text)

    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    program = relationship("Program", back_populates="requirement")


class EligibilityResult(Base):
    __tablename__ = "eligibility_results"
    __table_args__ = (UniqueConstraint("user_id", "program_id", name="uq_eligibility_user_program"),)

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    program_id = Column(String(36), ForeignKey("programs.id", ondelete="CASCADE"), nullable=False, index=True)

    eligibility_score = Column(Integer, nullable=False)
    is_eligible = Column(Boolean, nullable=False)
    breakdown = Column(JSON, default=list, nullable=False)
    recommendation_notes = Column(Text)
    last_calculated_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    program = relationship("Program")
