# Export all ORM models so Base.metadata knows every table
from .models_user import User
from .academic import AcademicProfile, EducationHistoryEntry, TestScore, UserDocument
from .programs import Program, ProgramRequirement, EligibilityResult
from .orders import Order
from .notifications import Notification
from .applications import Application

__all__ = [
    "User",
    "AcademicProfile",
    "EducationHistoryEntry",
    "TestScore",
    "UserDocument",
    "Program",
    "ProgramRequirement",
    "EligibilityResult",
    "Order",
    "Notification",
    "Application",
]
