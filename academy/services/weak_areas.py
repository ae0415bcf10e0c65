"""Weak-concept ledger.

Tracks incorrect answers by concept tag, one row per (user, concept):
  - a new concept gets a row with error_count = misses in this attempt
  - an existing concept is incremented by that amount and re-stamped
Counts never decrease; there is no mastery/decay rule.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Iterable, Mapping, Sequence
from datetime import datetime
from typing import Any

from sqlalchemy.orm import Session

from academy.config import settings
from academy.core.clock import utcnow
from academy.db.models import WeakArea
from academy.schemas.progress import ReviewItem

logger = logging.getLogger(__name__)


def tally_misses(misses: Iterable[Any]) -> dict[str, int]:
    """Count misses per concept tag, keeping first-seen order.

    *misses* are ConceptMiss objects, ``(concept_tag, question_id)`` pairs
    (tuples or decoded JSON lists) or mappings keyed ``concept_tag`` (or ``conceptTag``).
    """
    counts: dict[str, int] = {}
    for miss in misses:
        if isinstance(miss, Mapping):
            tag = miss.get("concept_tag") or miss.get("conceptTag")
        elif isinstance(miss, Sequence) and not isinstance(miss, str):
            tag = miss[0] if miss else None
        else:
            tag = miss.concept_tag
        if not tag:
            continue
        counts[tag] = counts.get(tag, 0) + 1
    return counts


def update_weak_areas(
    db: Session,
    user_id: uuid.UUID,
    misses: Iterable[Any],
    now: datetime | None = None,
) -> list[WeakArea]:
    """Apply one graded attempt's concept misses to the ledger.

    Flushes but does not commit; the submission transaction owns the commit.
    """
    counts = tally_misses(misses)
    if not counts:
        return []

    now = now or utcnow()
    existing = {
        row.concept_tag: row
        for row in db.query(WeakArea)
        .filter(WeakArea.user_id == user_id, WeakArea.concept_tag.in_(list(counts)))
        .all()
    }

    touched: list[WeakArea] = []
    for tag, amount in counts.items():
        row = existing.get(tag)
        if row is None:
            row = WeakArea(
                user_id=user_id,
                concept_tag=tag,
                error_count=amount,
                last_tested_at=now,
                created_at=now,
            )
            db.add(row)
        else:
            row.error_count += amount
            row.last_tested_at = now
        touched.append(row)

    db.flush()
    logger.debug("Weak areas updated for %s: %s", user_id, counts)
    return touched


def get_weak_areas(db: Session, user_id: uuid.UUID) -> list[WeakArea]:
    """All ledger rows for a user, highest error count first."""
    return (
        db.query(WeakArea)
        .filter(WeakArea.user_id == user_id)
        .order_by(WeakArea.error_count.desc(), WeakArea.concept_tag)
        .all()
    )


def get_required_reviews(db: Session, user_id: uuid.UUID) -> list[str]:
    """Concept tags whose error count reached the review threshold."""
    rows = (
        db.query(WeakArea)
        .filter(
            WeakArea.user_id == user_id,
            WeakArea.error_count >= settings.WEAK_AREA_REVIEW_THRESHOLD,
        )
        .order_by(WeakArea.error_count.desc(), WeakArea.concept_tag)
        .all()
    )
    return [r.concept_tag for r in rows]


def review_items(rows: Iterable[Any]) -> list[ReviewItem]:
    """Required reviews for display, flagging the ones that block term advancement."""
    return [
        ReviewItem(
            concept_tag=r.concept_tag,
            error_count=r.error_count,
            blocking=r.error_count >= settings.WEAK_AREA_BLOCKING_THRESHOLD,
        )
        for r in rows
        if r.error_count >= settings.WEAK_AREA_REVIEW_THRESHOLD
    ]
