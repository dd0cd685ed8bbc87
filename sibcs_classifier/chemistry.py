"""Exchange-complex calculations for a single soil layer."""

import math

from sibcs_classifier.models import ChemistryIndicators, LayerInput

UNKNOWN_CHEMISTRY = ChemistryIndicators()


def is_finite(value: float | None) -> bool:
    return value is not None and math.isfinite(value)


def round2(value: float | None) -> float | None:
    """Round half-up to two decimals; unknown stays unknown."""
    if not is_finite(value):
        return None
    return math.floor(value * 100 + 0.5) / 100


def round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def clamp(value: float, lower: float, upper: float) -> float:
    return max(lower, min(upper, value))


def calculate_layer_chemistry(layer: LayerInput | None) -> ChemistryIndicators:
    """Compute SB, T, V% and m% for one layer.

    Ca, Mg, K and H+Al are all required; if any of them is missing every
    indicator is unknown. Na counts as zero when absent. V% needs T > 0 and
    m% needs a known Al with SB + Al > 0.

    Args:
        layer: Layer with cation readings in cmolc/dm3, or None

    Returns:
        ChemistryIndicators rounded to two decimals
    """
    if layer is None:
        return UNKNOWN_CHEMISTRY

    ca, mg, k, h_al = layer.ca, layer.mg, layer.k, layer.h_al
    if not (is_finite(ca) and is_finite(mg) and is_finite(k) and is_finite(h_al)):
        return UNKNOWN_CHEMISTRY

    na = layer.na if is_finite(layer.na) else 0.0
    al = layer.al

    sb = ca + mg + k + na
    t = sb + h_al
    v_pct = 100 * sb / t if t > 0 else None
    m_pct = 100 * al / (sb + al) if is_finite(al) and sb + al > 0 else None

    return ChemistryIndicators(
        sb=round2(sb),
        t=round2(t),
        v_pct=round2(v_pct),
        m_pct=round2(m_pct),
    )
