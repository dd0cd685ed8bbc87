"""Shared evaluation loop for the per-order rule tables."""

from sibcs_classifier.chemistry import clamp, round_half_up
from sibcs_classifier.models import Candidate, CandidateMode, EvidenceKind
from sibcs_classifier.rules import BASE_SCORE, EvaluationContext, OrderRuleSet

MISSING_CRITICAL_PENALTY = 10
MIN_EFFECTIVE_CAP = 40


def evaluate_order(rule_set: OrderRuleSet, context: EvaluationContext) -> Candidate:
    """Score one soil order against a profile.

    Rules are applied in table order; scores accumulate from the base score.
    The cap/clamp pass runs last.
    """
    candidate = Candidate(
        order=rule_set.order,
        score=BASE_SCORE,
        cap=rule_set.cap,
        effective_cap=rule_set.cap,
    )

    for rule in rule_set.rules:
        if not rule.when(context):
            continue
        if rule.kind is EvidenceKind.POSITIVE:
            candidate.add_positive(rule.key, rule.detail, rule.delta)
        else:
            candidate.add_conflict(rule.key, rule.detail, rule.delta)
        if rule.cap is not None:
            candidate.cap = rule.cap

    for missing in rule_set.missing:
        if missing.when(context):
            candidate.add_missing(missing.detail)

    if rule_set.deterministic_when is not None and rule_set.deterministic_when(context):
        candidate.mode = CandidateMode.DETERMINISTIC

    return apply_cap(candidate)


def apply_cap(candidate: Candidate) -> Candidate:
    """Lower the ceiling per missing-critical item and clamp the score into it."""
    penalty = MISSING_CRITICAL_PENALTY * candidate.missing_count
    candidate.effective_cap = max(MIN_EFFECTIVE_CAP, candidate.cap - penalty)
    candidate.score = int(
        clamp(round_half_up(candidate.score), 0, candidate.effective_cap)
    )
    return candidate
