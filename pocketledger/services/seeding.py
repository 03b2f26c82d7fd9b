"""
Starter categories for newly verified users.
"""

import logging
import uuid

from sqlmodel import Session

from ..models.base import utcnow
from ..models.category import Category


logger = logging.getLogger(__name__)

DEFAULT_CATEGORIES = [
    {"name": "Food", "color": "#10B981", "icon": "🍽️"},
    {"name": "Travel", "color": "#3B82F6", "icon": "✈️"},
    {"name": "Stationery", "color": "#F59E0B", "icon": "📝"},
    {"name": "Fast Food", "color": "#EF4444", "icon": "🍕"},
    {"name": "Shopping", "color": "#8B5CF6", "icon": "🛍️"},
    {"name": "Entertainment", "color": "#EC4899", "icon": "🎬"},
]


def seed_default_categories(session: Session, user_id: uuid.UUID) -> int:
    """Insert the default categories for ``user_id``; returns how many were created.

    Seeding must never break a login, so any failure is logged, rolled back and
    reported as 0.
    """
    now = utcnow()
    try:
        categories = [
            Category(
                user_id=user_id,
                name=item["name"],
                color=item["color"],
                icon=item["icon"],
                created_at=now,
                updated_at=now,
            )
            for item in DEFAULT_CATEGORIES
        ]
        session.add_all(categories)
        session.commit()
    except Exception:
        logger.exception("Error creating default categories for user %s", user_id)
        session.rollback()
        return 0

    logger.info("Created %d default categories for user %s", len(categories), user_id)
    return len(categories)
