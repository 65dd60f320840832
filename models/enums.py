"""
Enumerations shared by the ORM models, request schemas and the eligibility engine.

Values are stored as plain strings in the database.
"""

from enum import Enum


class EducationLevel(str, Enum):
    HIGH_SCHOOL = "HIGH_SCHOOL"
    CERTIFICATE = "CERTIFICATE"
    FOUNDATION = "FOUNDATION"
    DIPLOMA = "DIPLOMA"
    PROFESSIONAL = "PROFESSIONAL"
    UNDERGRADUATE = "UNDERGRADUATE"
    POSTGRADUATE_DIPLOMA = "POSTGRADUATE_DIPLOMA"
    MASTERS = "MASTERS"
    DOCTORATE = "DOCTORATE"


class TestType(str, Enum):
    __test__ = False

    IELTS = "IELTS"
    TOEFL = "TOEFL"
    DUOLINGO = "DUOLINGO"
    PTE = "PTE"
    SAT = "SAT"
    ACT = "ACT"
    GRE = "GRE"
    GMAT = "GMAT"
    WASSCE = "WASSCE"


class DocumentType(str, Enum):
    PASSPORT_COPY = "PASSPORT_COPY"
    PASSPORT_PHOTO = "PASSPORT_PHOTO"
    BIRTH_CERTIFICATE = "BIRTH_CERTIFICATE"
    SHS_TRANSCRIPT = "SHS_TRANSCRIPT"
    UNIVERSITY_TRANSCRIPT = "UNIVERSITY_TRANSCRIPT"
    WASSCE_RESULT = "WASSCE_RESULT"
    BECE_RESULT = "BECE_RESULT"
    DEGREE_CERTIFICATE = "DEGREE_CERTIFICATE"
    CV_RESUME = "CV_RESUME"
    STATEMENT_OF_PURPOSE = "STATEMENT_OF_PURPOSE"
    ACADEMIC_REFERENCE_LETTER = "ACADEMIC_REFERENCE_LETTER"
    FINANCIAL_GUARANTEE = "FINANCIAL_GUARANTEE"
    WORK_EXPERIENCE_LETTER = "WORK_EXPERIENCE_LETTER"
    MEDICAL_CERTIFICATE = "MEDICAL_CERTIFICATE"
    OTHER = "OTHER"


class GradingSystem(str, Enum):
    GPA_4 = "GPA_4"
    GPA_5 = "GPA_5"
    PERCENTAGE = "PERCENTAGE"
    CLASS = "CLASS"
    OTHER = "OTHER"


class OrderKind(str, Enum):
    FLIGHT = "flight"
    HOTEL = "hotel"
    PACKAGE = "package"
    CONSULTATION = "consultation"
    VISA = "visa"
    ITINERARY = "itinerary"
    SERVICE = "service"


class PaymentStatus(str, Enum):
    UNPAID = "UNPAID"
    PAID = "PAID"


class OrderStatus(str, Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"


class ApplicationStatus(str, Enum):
    DRAFT = "DRAFT"
    SUBMITTED = "SUBMITTED"
    UNDER_REVIEW = "UNDER_REVIEW"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"


class NotificationKind(str, Enum):
    PAYMENT_RECEIVED = "PAYMENT_RECEIVED"
    BOOKING_STATUS_CHANGE = "BOOKING_STATUS_CHANGE"
    DOCUMENT_VERIFIED = "DOCUMENT_VERIFIED"
    APPLICATION_STATUS_CHANGE = "APPLICATION_STATUS_CHANGE"
    ADMIN_ALERT = "ADMIN_ALERT"
    SYSTEM = "SYSTEM"
