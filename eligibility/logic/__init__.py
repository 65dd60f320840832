"""
Eligibility Logic Module

Deterministic scoring of a user's academic record against program requirements.
"""

from .contracts import (
    ApplicantSnapshot,
    ProgramCriteria,
    EligibilityConfig,
    EligibilityOutcome,
    CheckOutcome,
    RecomputeSummary,
)
from .calculator import evaluate, evaluate_all
from .runner import recompute_eligibility, recompute_for_all_users, get_or_create_profile, list_results

__all__ = [
    # Entry points
    "recompute_eligibility",
    "recompute_for_all_users",
    "get_or_create_profile",
    "list_results",
    "evaluate",
    "evaluate_all",

    # Contracts
    "ApplicantSnapshot",
    "ProgramCriteria",
    "EligibilityConfig",
    "EligibilityOutcome",
    "CheckOutcome",
    "RecomputeSummary",
]
