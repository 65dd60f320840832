import uuid
from datetime import datetime
from sqlalchemy import Column, String, Date, DateTime, ForeignKey, JSON, Text, UniqueConstraint
from sqlalchemy.orm import relationship

from db import Base
from models.enums import ApplicationStatus


class Application(Base):
    """
    A student's application to a program, prepared as a draft and then
    submitted for admin review.

        status:  DRAFT -> SUBMITTED -> UNDER_REVIEW -> ACCEPTED | REJECTED

    The program columns are a snapshot taken when the application is
    created, so later catalog edits do not rewrite what was submitted.
    """
    __tablename__ = "applications"
    __table_args__ = (UniqueConstraint("user_id", "program_id", name="uq_application_user_program"),)

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    program_id = Column(String(36), ForeignKey("programs.id", ondelete="SET NULL"), index=True)
    status = Column(String(16), nullable=False, default=ApplicationStatus.DRAFT.value, index=True)

    program_name = Column(String(255), nullable=False, default="")
    program_country = Column(String(64))
    program_university = Column(String(255))

    # Personal
    first_name = Column(String(128))
    middle_name = Column(String(128))
    last_name = Column(String(128))
    date_of_birth = Column(Date)
    place_of_birth = Column(String(128))
    nationality = Column(String(64))
    sex = Column(String(16))

    # Contact
    email = Column(String(255))
    phone = Column(String(32))
    address = Column(Text)
    city = Column(String(128))
    country = Column(String(64))
    emergency_contact_name = Column(String(255))
    emergency_contact_phone = Column(String(32))
    emergency_contact_relation = Column(String(64))

    # Passport
    passport_number = Column(String(64))
    passport_issue_date = Column(Date)
    passport_expiry_date = Column(Date)
    passport_issue_country = Column(String(64))

    # Academic background
    current_education_level = Column(String(32))
    gpa = Column(String(32))
    education = Column(JSON, default=list, nullable=False)
    work_experience = Column(JSON, default=list, nullable=False)

    motivation = Column(Text)
    # {"PASSPORT_COPY": "https://...", ...}
    documents = Column(JSON, default=dict, nullable=False)

    review_notes = Column(Text)
    reviewed_by = Column(String(36))

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
    submitted_at = Column(DateTime)
    reviewed_at = Column(DateTime)

    user = relationship("User")
    program = relationship("Program")
