"""Retry eligibility and post-failure escalation.

Eligibility is a hard gate: attempt count per rolling period, then a
cooldown measured from the most recent attempt.  The retry *action* is
advisory messaging chosen from the attempt number alone; callers consult
both.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime, timedelta
from typing import Any

from academy.core.clock import as_utc, utcnow
from academy.schemas.assessment import RetryAction, RetryEligibility
from academy.services.tiers import AssessmentTier, TierPolicy


def retry_eligibility(
    tier: AssessmentTier,
    prior_attempts: Iterable[Any],
    now: datetime | None = None,
    policy: TierPolicy | None = None,
) -> RetryEligibility:
    """Decide whether another attempt is allowed right now.

    *prior_attempts* are objects with a ``created_at`` datetime, in any order.
    """
    policy = policy or AssessmentTier(tier).policy
    now = as_utc(now) if now is not None else utcnow()
    period = timedelta(days=policy.period_days)
    period_start = now - period

    stamps = [as_utc(a.created_at) for a in prior_attempts]
    recent = [ts for ts in stamps if ts >= period_start]

    if len(recent) >= policy.max_attempts:
        return RetryEligibility(eligible=False, next_eligible_at=min(recent) + period)

    if stamps and policy.cooldown_hours > 0:
        cooldown_end = max(stamps) + timedelta(hours=policy.cooldown_hours)
        if now < cooldown_end:
            return RetryEligibility(eligible=False, next_eligible_at=cooldown_end)

    return RetryEligibility(eligible=True)


def retry_action(
    tier: AssessmentTier,
    attempt_number: int,
    weak_concepts: list[str] | None = None,
    policy: TierPolicy | None = None,
) -> RetryAction:
    """Pick the escalation step after failed attempt number *attempt_number*."""
    tier = AssessmentTier(tier)
    policy = policy or tier.policy
    concepts = list(weak_concepts or [])
    threshold = f"{policy.pass_threshold:g}%"

    if tier is AssessmentTier.LESSON_CHECK:
        if attempt_number <= 1:
            return RetryAction(
                type="retry",
                message=f"Your score was below {threshold}. Review the corrective feedback and retry.",
            )
        if attempt_number == 2:
            return RetryAction(
                type="revisit_lesson",
                message=(
                    "You have not passed after two attempts. "
                    "Revisit the lesson content before your next attempt."
                ),
            )
        return RetryAction(
            type="review_required",
            message=(
                "This lesson and its prerequisites have been flagged for review. "
                "A targeted review is required before progression."
            ),
        )

    if tier is AssessmentTier.MODULE_EXAM:
        if attempt_number <= 2:
            return RetryAction(
                type="retry",
                message=(
                    f"Your score was below {threshold}. Review the corrective feedback. "
                    f"A minimum {policy.cooldown_hours}-hour interval is required before your next attempt."
                ),
                cooldown_hours=policy.cooldown_hours,
            )
        return RetryAction(
            type="module_review",
            message=(
                "You have not passed after three attempts within the allowed period. "
                "All module lessons have been flagged for review."
            ),
            concepts_to_review=concepts,
        )

    if tier is AssessmentTier.TERM_EXAM:
        if attempt_number <= 1:
            return RetryAction(
                type="retry",
                message=(
                    f"Your score was below {threshold}. A full term review is required. "
                    f"A minimum {policy.cooldown_hours}-hour interval is required before your next attempt."
                ),
                cooldown_hours=policy.cooldown_hours,
            )
        return RetryAction(
            type="term_review",
            message=(
                "You have not passed after two attempts within the allowed period. "
                "A mandatory review cycle has been initiated."
            ),
            concepts_to_review=concepts,
        )

    return RetryAction(
        type="module_review",
        message=(
            "The cumulative review has identified concepts requiring re-study. "
            "Targeted review assignments have been generated."
        ),
        concepts_to_review=concepts,
    )
