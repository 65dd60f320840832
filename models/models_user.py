import uuid
from datetime import datetime, timedelta
from sqlalchemy import Column, String, Boolean, DateTime
from sqlalchemy.orm import relationship
from db import Base
import os

ROLE_STUDENT = "student"
ROLE_ADMIN = "admin"


class User(Base):
    __tablename__ = "users"
    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    email = Column(String(255), unique=True, index=True, nullable=False)
    full_name = Column(String(255))
    role = Column(String(32), nullable=False, default=ROLE_STUDENT)
    password_hash = Column(String(255), nullable=False)
    is_verified = Column(Boolean, default=False, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    otp_code = Column(String(10), nullable=True)
    otp_expires = Column(DateTime(timezone=False), nullable=True)
    created_at = Column(DateTime(timezone=False), default=datetime.utcnow, nullable=False)

    academic_profile = relationship("AcademicProfile", back_populates="user", uselist=False, cascade="all, delete-orphan")

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN

    def set_otp(self, code: str, minutes_valid: int | None = None):
        mv = minutes_valid or int(os.getenv("OTP_EXP_MIN", "5"))
        self.otp_code = code
        self.otp_expires = datetime.utcnow() + timedelta(minutes=mv)

    def clear_otp(self):
        self.otp_code = None
        self.otp_expires = None
