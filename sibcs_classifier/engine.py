"""Soil order classification entry point."""

from collections.abc import Mapping
from typing import Any

from sibcs_classifier.derived import build_derived_metrics, sort_layers
from sibcs_classifier.evaluator import evaluate_order
from sibcs_classifier.logging_config import get_logger
from sibcs_classifier.models import ClassificationResult, SoilProfile
from sibcs_classifier.ranking import rank_candidates
from sibcs_classifier.rules import RULE_TABLES, EvaluationContext

logger = get_logger(__name__)


def classify(profile: SoilProfile | Mapping[str, Any]) -> ClassificationResult:
    """Score a soil profile against all thirteen orders.

    The computation is pure: the caller's layers are not reordered, no state
    is kept between calls, and identical input always yields the same
    ranking.

    Args:
        profile: SoilProfile, or a mapping accepted by SoilProfile

    Returns:
        ClassificationResult with thirteen ranked candidates and the derived
        metrics they were scored from
    """
    if not isinstance(profile, SoilProfile):
        profile = SoilProfile.model_validate(profile)

    derived = build_derived_metrics(profile)
    context = EvaluationContext(
        layers=tuple(sort_layers(profile.layers)),
        field=profile.field,
        derived=derived,
    )

    candidates = [evaluate_order(rule_set, context) for rule_set in RULE_TABLES]
    ranked = rank_candidates(candidates)

    top = ranked[0]
    logger.debug(
        f"Classified profile with {len(context.layers)} layers: "
        f"top={top.order.value} score={top.score} mode={top.mode.value}"
    )
    return ClassificationResult(ranked=ranked, derived=derived)
