"""
Repository classes for the data access layer.

Each entity repository lives in its own module; they are re-exported here so
callers can write ``from volunteer_eval.infrastructure.repositories import VolunteerRepo``.
"""

from __future__ import annotations

from .repositories_alert import AlertRepo  # re-export
from .repositories_audit import AuditTrailRepo  # re-export
from .repositories_criterion import CriterionRepo  # re-export
from .repositories_evaluation import EvaluationRepo  # re-export
from .repositories_freeze import FreezeRepo  # re-export
from .repositories_note import NoteRepo  # re-export
from .repositories_volunteer import VolunteerRepo  # re-export

__all__ = [
    "AlertRepo",
    "AuditTrailRepo",
    "CriterionRepo",
    "EvaluationRepo",
    "FreezeRepo",
    "NoteRepo",
    "VolunteerRepo",
]
