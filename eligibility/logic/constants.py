"""
Eligibility Engine Constants

Education ranks, the scoring table and note thresholds used by the calculator.
This is the single place scoring weights are defined.
"""

from typing import Dict, FrozenSet

from models.enums import EducationLevel

# =============================================================================
# EDUCATION HIERARCHY
# =============================================================================

EDUCATION_LEVEL_RANK: Dict[str, int] = {
    EducationLevel.HIGH_SCHOOL.value: 1,
    EducationLevel.CERTIFICATE.value: 2,
    EducationLevel.FOUNDATION.value: 2,
    EducationLevel.DIPLOMA.value: 3,
    EducationLevel.PROFESSIONAL.value: 3,
    EducationLevel.UNDERGRADUATE.value: 4,
    EducationLevel.POSTGRADUATE_DIPLOMA.value: 5,
    EducationLevel.MASTERS.value: 6,
    EducationLevel.DOCTORATE.value: 7,
}

# =============================================================================
# SUB-CHECKS
# =============================================================================

CHECK_EDUCATION_LEVEL = "education_level"
CHECK_TEST_SCORES = "test_scores"
CHECK_GPA = "gpa"
CHECK_DOCUMENTS = "documents"
CHECK_WORK_EXPERIENCE = "work_experience"
CHECK_FIELD_OF_STUDY = "field_of_study"
CHECK_NATIONALITY = "nationality"
CHECK_DESTINATION = "destination"

# Evaluation and breakdown order
CHECK_ORDER = (
    CHECK_EDUCATION_LEVEL,
    CHECK_TEST_SCORES,
    CHECK_GPA,
    CHECK_DOCUMENTS,
    CHECK_WORK_EXPERIENCE,
    CHECK_FIELD_OF_STUDY,
    CHECK_NATIONALITY,
    CHECK_DESTINATION,
)

# =============================================================================
# SCORING TABLE
# =============================================================================

# Points per satisfied sub-check. Only applicable checks count towards the
# possible total, so the weights need not sum to anything in particular.
SCORING_WEIGHTS: Dict[str, int] = {
    CHECK_EDUCATION_LEVEL: 35,   # largest: the admission gate
    CHECK_TEST_SCORES: 25,
    CHECK_GPA: 10,
    CHECK_DOCUMENTS: 10,
    CHECK_WORK_EXPERIENCE: 5,
    CHECK_FIELD_OF_STUDY: 5,
    CHECK_NATIONALITY: 5,
    CHECK_DESTINATION: 5,
}

# Checks that force ineligibility when applicable and unmet.
# test_scores is only mandatory when a declared test is marked required.
MANDATORY_CHECKS: FrozenSet[str] = frozenset({CHECK_EDUCATION_LEVEL})

# Work experience is evidenced by this uploaded document
WORK_EXPERIENCE_DOCUMENT = "WORK_EXPERIENCE_LETTER"

# =============================================================================
# RECOMMENDATION NOTES
# =============================================================================

PARTIAL_MATCH_THRESHOLD = 50

NOTE_ELIGIBLE = "You meet the requirements for this program. You can proceed with your application."
NOTE_CLOSE_MATCH = "You partially meet the requirements. Complete the missing items to improve your eligibility."
NOTE_NOT_ELIGIBLE = "You do not currently meet the minimum requirements. Complete your profile and upload required documents."
