import uuid
from datetime import datetime
from sqlalchemy import Column, String, Boolean, Date, DateTime, ForeignKey, JSON, Text
from sqlalchemy.orm import relationship

from db import Base


def _uuid() -> str:
    return str(uuid.uuid4())


class AcademicProfile(Base):
    __tablename__ = "academic_profiles"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False, index=True)

    # Self-reported levels (EducationLevel values)
    current_education_level = Column(String(32))
    highest_education_level = Column(String(32))
    intended_study_level = Column(String(32))

    field_of_study = Column(String(255))
    preferred_countries = Column(JSON, default=list, nullable=False)
    nationality = Column(String(64))
    gpa = Column(String(32))
    grading_system = Column(String(32))
    institution_name = Column(String(255))

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    user = relationship("User", back_populates="academic_profile")
    education_history = relationship(
        "EducationHistoryEntry",
        back_populates="profile",
        cascade="all, delete-orphan",
        order_by="EducationHistoryEntry.start_date.desc()",
    )
    test_scores = relationship("TestScore", back_populates="profile", cascade="all, delete-orphan")
    documents = relationship("UserDocument", back_populates="profile", cascade="all, delete-orphan")


class EducationHistoryEntry(Base):
    __tablename__ = "education_history"

    id = Column(String(36), primary_key=True, default=_uuid)
    profile_id = Column(String(36), ForeignKey("academic_profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    education_level = Column(String(32), nullable=False)
    institution_name = Column(String(255), nullable=False)
    field_of_study = Column(String(255))
    start_date = Column(Date)
    end_date = Column(Date)
    graduated = Column(Boolean, default=False, nullable=False)
    grade = Column(String(32))
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    profile = relationship("AcademicProfile", back_populates="education_history")


class TestScore(Base):
    __tablename__ = "test_scores"
    __test__ = False

    id = Column(String(36), primary_key=True, default=_uuid)
    profile_id = Column(String(36), ForeignKey("academic_profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    test_type = Column(String(16), nullable=False)
    test_date = Column(Date)
    expiry_date = Column(Date)

    overall_score = Column(String(16))
    reading_score = Column(String(16))
    writing_score = Column(String(16))
    listening_score = Column(String(16))
    speaking_score = Column(String(16))
    quantitative_score = Column(String(16))
    verbal_score = Column(String(16))
    analytical_writing = Column(String(16))
    score_document_url = Column(Text)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    profile = relationship("AcademicProfile", back_populates="test_scores")


class UserDocument(Base):
    __tablename__ = "user_documents"

    id = Column(String(36), primary_key=True, default=_uuid)
    profile_id = Column(String(36), ForeignKey("academic_profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    document_type = Column(String(48), nullable=False)
    file_name = Column(String(255))
    file_url = Column(Text, nullable=False)

    # Only ever written by the admin review endpoint
    is_verified = Column(Boolean, default=False, nullable=False)
    verified_by = Column(String(36))
    verified_at = Column(DateTime)
    review_notes = Column(Text)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    profile = relationship("AcademicProfile", back_populates="documents")
