"""Tests for retry eligibility and the post-failure escalation ladder."""

from datetime import timedelta
from types import SimpleNamespace

from academy.services.retry import retry_action, retry_eligibility
from academy.services.tiers import AssessmentTier, policy_for


def _attempts(now, *hours_ago):
    return [SimpleNamespace(created_at=now - timedelta(hours=h)) for h in hours_ago]


def test_first_attempt_is_always_eligible(now):
    for tier in AssessmentTier:
        result = retry_eligibility(tier, [], now=now)
        assert result.eligible is True
        assert result.next_eligible_at is None


def test_module_exam_period_limit(now):
    prior = _attempts(now, 30, 100, 150)
    result = retry_eligibility(AssessmentTier.MODULE_EXAM, prior, now=now)
    assert result.eligible is False
    assert result.next_eligible_at == now - timedelta(hours=150) + timedelta(days=7)


def test_term_exam_cooldown(now):
    prior = _attempts(now, 10)
    result = retry_eligibility(AssessmentTier.TERM_EXAM, prior, now=now)
    assert result.eligible is False
    assert result.next_eligible_at == now - timedelta(hours=10) + timedelta(hours=48)


def test_cooldown_elapsed(now):
    prior = _attempts(now, 49)
    assert retry_eligibility(AssessmentTier.TERM_EXAM, prior, now=now).eligible is True


def test_attempts_outside_period_do_not_count(now):
    prior = _attempts(now, 200, 250, 300)  # all older than 7 days
    assert retry_eligibility(AssessmentTier.MODULE_EXAM, prior, now=now).eligible is True


def test_lesson_check_has_no_cooldown(now):
    prior = _attempts(now, 0.1)
    assert retry_eligibility(AssessmentTier.LESSON_CHECK, prior, now=now).eligible is True

    prior = _attempts(now, 0.1, 1, 2)
    result = retry_eligibility(AssessmentTier.LESSON_CHECK, prior, now=now)
    assert result.eligible is False
    assert result.next_eligible_at == now - timedelta(hours=2) + timedelta(days=1)


def test_naive_timestamps_are_treated_as_utc(now):
    prior = [SimpleNamespace(created_at=(now - timedelta(hours=10)).replace(tzinfo=None))]
    result = retry_eligibility(AssessmentTier.TERM_EXAM, prior, now=now)
    assert result.next_eligible_at == now + timedelta(hours=38)


def test_policy_override(now):
    policy = policy_for(AssessmentTier.TERM_EXAM, {"cooldown_hours": 0, "max_attempts": 5})
    prior = _attempts(now, 1, 2)
    assert retry_eligibility(AssessmentTier.TERM_EXAM, prior, now=now, policy=policy).eligible is True


# ── Escalation ────────────────────────────────────────────────────────────


def test_lesson_check_escalation():
    assert retry_action(AssessmentTier.LESSON_CHECK, 1).type == "retry"
    assert "80%" in retry_action(AssessmentTier.LESSON_CHECK, 1).message
    assert retry_action(AssessmentTier.LESSON_CHECK, 2).type == "revisit_lesson"
    assert retry_action(AssessmentTier.LESSON_CHECK, 3).type == "review_required"
    assert retry_action(AssessmentTier.LESSON_CHECK, 7).type == "review_required"


def test_module_exam_escalation():
    first = retry_action(AssessmentTier.MODULE_EXAM, 1)
    assert first.type == "retry"
    assert first.cooldown_hours == 24
    assert retry_action(AssessmentTier.MODULE_EXAM, 2).type == "retry"

    third = retry_action(AssessmentTier.MODULE_EXAM, 3, ["limits", "series"])
    assert third.type == "module_review"
    assert third.concepts_to_review == ["limits", "series"]


def test_term_exam_escalation():
    first = retry_action(AssessmentTier.TERM_EXAM, 1)
    assert first.type == "retry"
    assert first.cooldown_hours == 48
    assert retry_action(AssessmentTier.TERM_EXAM, 2, ["proofs"]).type == "term_review"


def test_cumulative_review_always_targets_review():
    action = retry_action(AssessmentTier.CUMULATIVE_REVIEW, 1, ["graphs"])
    assert action.type == "module_review"
    assert action.concepts_to_review == ["graphs"]
