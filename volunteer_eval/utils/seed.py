from __future__ import annotations

from typing import Any

from sqlalchemy import inspect, select
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session

from volunteer_eval.infrastructure.logging import get_logger
from volunteer_eval.infrastructure.models import Base, CriterionORM

logger = get_logger("seed")

DEFAULT_CRITERIA: list[dict[str, Any]] = [
    {
        "name": "Attendance",
        "description": "Shows up to scheduled shifts on time",
        "category": "basic",
        "data_type": "numeric",
        "max_score": 10,
        "weight": 2,
    },
    {
        "name": "Task completion",
        "description": "Finishes assigned tasks to the agreed standard",
        "category": "basic",
        "data_type": "numeric",
        "max_score": 10,
        "weight": 2,
    },
    {
        "name": "Group interaction",
        "description": "Takes part in team chats and group activities",
        "category": "basic",
        "data_type": "numeric",
        "max_score": 10,
        "weight": 1,
    },
    {
        "name": "Commitment level",
        "description": "Overall reliability during the month",
        "category": "responsibility",
        "data_type": "choice",
        "max_score": 10,
        "weight": 1,
        "choices": {"excellent": 10, "good": 8, "average": 6, "weak": 3},
    },
    {
        "name": "File keeping",
        "description": "Keeps volunteer files complete and up to date",
        "category": "responsibility",
        "data_type": "boolean",
        "max_score": 5,
        "weight": 1,
        "applies_to_role": "file_manager",
        "is_required": False,
    },
    {
        "name": "Extra initiatives",
        "description": "Proposed or ran an activity beyond the assigned work",
        "category": "bonus",
        "data_type": "numeric",
        "max_score": 5,
        "weight": 1,
        "is_required": False,
    },
    {
        "name": "Evaluator comments",
        "category": "bonus",
        "data_type": "text",
        "max_score": 1,
        "weight": 0,
        "is_required": False,
        "show_in_report": False,
    },
]


def initialise_database(engine: Engine) -> bool:
    """
    Ensure all ORM tables exist.

    Returns:
        True if every table already existed before this call, False if at least one table
        needed to be created.
    """

    inspector = inspect(engine)
    existing_tables = set(inspector.get_table_names())
    expected_tables = [table.name for table in Base.metadata.sorted_tables]
    already_exists = all(table in existing_tables for table in expected_tables)
    Base.metadata.create_all(engine)
    return already_exists


def seed_default_criteria(session: Session) -> int:
    """Insert the default criteria catalogue, skipping names that already exist. Returns the count added."""
    existing = set(session.scalars(select(CriterionORM.name)))
    added = 0
    for sort_order, entry in enumerate(DEFAULT_CRITERIA, start=1):
        if entry["name"] in existing:
            continue
        session.add(CriterionORM(sort_order=sort_order, **entry))
        added += 1
    session.flush()
    logger.info("Seeded %d default criteria", added)
    return added
