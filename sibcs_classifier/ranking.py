"""Candidate ordering."""

from collections.abc import Iterable
from types import MappingProxyType

from sibcs_classifier.models import Candidate, SoilOrder

# Most distinctive orders first; breaks ties left by score and missing data
SPECIFICITY_PRIORITY = MappingProxyType(
    {
        SoilOrder.ORGANOSSOLOS: 1,
        SoilOrder.GLEISSOLOS: 2,
        SoilOrder.PLINTOSSOLOS: 3,
        SoilOrder.VERTISSOLOS: 4,
        SoilOrder.PLANOSSOLOS: 5,
        SoilOrder.ESPODOSSOLOS: 6,
        SoilOrder.NEOSSOLOS: 7,
        SoilOrder.CAMBISSOLOS: 8,
        SoilOrder.LUVISSOLOS: 9,
        SoilOrder.ARGISSOLOS: 10,
        SoilOrder.NITOSSOLOS: 11,
        SoilOrder.LATOSSOLOS: 12,
        SoilOrder.CHERNOSSOLOS: 13,
    }
)


def ranking_key(candidate: Candidate) -> tuple[int, int, int]:
    return (
        -candidate.score,
        candidate.missing_count,
        SPECIFICITY_PRIORITY[candidate.order],
    )


def rank_candidates(candidates: Iterable[Candidate]) -> list[Candidate]:
    """Sort by score (desc), missing-critical count (asc), then specificity."""
    return sorted(candidates, key=ranking_key)
