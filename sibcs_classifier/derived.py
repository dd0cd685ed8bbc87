"""Profile-level metrics computed once per classification."""

from collections.abc import Sequence

from sibcs_classifier.chemistry import calculate_layer_chemistry, is_finite, round2
from sibcs_classifier.logging_config import get_logger
from sibcs_classifier.models import (
    DerivedMetrics,
    FieldInput,
    LayerInput,
    SoilProfile,
    TriState,
)

logger = get_logger(__name__)

ABRUPT_LOW_CLAY_PCT = 20.0
ABRUPT_MIN_INCREASE_PCT = 20.0
SANDY_CLAY_MAX_PCT = 15.0
HOMOGENEOUS_MAX_DIFF_PCT = 10.0


def sort_layers(layers: Sequence[LayerInput]) -> list[LayerInput]:
    """Return a new list ordered by top depth (stable for equal tops)."""
    return sorted(layers, key=lambda layer: layer.top_cm)


def detect_abrupt_textural_change(layers: Sequence[LayerInput]) -> bool | None:
    """Compare clay in the first two layers.

    Below 20% surface clay the subsurface must at least double it; from 20%
    up it must rise by 20 percentage points. Unknown without two clay
    readings.
    """
    if len(layers) < 2:
        return None
    surface_clay = layers[0].clay_pct
    subsurface_clay = layers[1].clay_pct
    if not (is_finite(surface_clay) and is_finite(subsurface_clay)):
        return None
    if surface_clay < ABRUPT_LOW_CLAY_PCT:
        return subsurface_clay >= 2 * surface_clay
    return subsurface_clay - surface_clay >= ABRUPT_MIN_INCREASE_PCT


def select_bt_layer(
    layers: Sequence[LayerInput], field: FieldInput
) -> LayerInput | None:
    """Pick the layer whose chemistry stands in for the diagnostic B horizon.

    With Bt confirmed this is the clay-richest sub-surface layer; otherwise
    the second layer.
    """
    if not layers:
        return None
    if len(layers) == 1:
        return layers[0]
    if field.morph_diag.has_bt == TriState.YES:
        with_clay = [layer for layer in layers[1:] if is_finite(layer.clay_pct)]
        if with_clay:
            # max() keeps the shallowest of equally clayey layers
            return max(with_clay, key=lambda layer: layer.clay_pct)
    return layers[1]


def median(values: Sequence[float | None]) -> float | None:
    known = sorted(value for value in values if is_finite(value))
    if not known:
        return None
    mid = len(known) // 2
    if len(known) % 2 == 1:
        return round2(known[mid])
    return round2((known[mid - 1] + known[mid]) / 2)


def all_clay_at_most(layers: Sequence[LayerInput], threshold: float) -> bool | None:
    known = [layer.clay_pct for layer in layers if is_finite(layer.clay_pct)]
    if not known:
        return None
    return all(value <= threshold for value in known)


def texture_is_homogeneous(layers: Sequence[LayerInput]) -> bool | None:
    if len(layers) < 2:
        return None
    first, second = layers[0].clay_pct, layers[1].clay_pct
    if not (is_finite(first) and is_finite(second)):
        return None
    return abs(second - first) <= HOMOGENEOUS_MAX_DIFF_PCT


def resolve_profile_depth(
    layers: Sequence[LayerInput], field: FieldInput
) -> float | None:
    if is_finite(field.profile_depth_cm):
        return field.profile_depth_cm
    if not layers:
        return None
    return max(layer.bottom_cm for layer in layers)


def any_b_diagnostic_present(field: FieldInput) -> bool | None:
    """True when Bw, Bt, Bi or Bn is confirmed.

    Unknown only when all five morphological diagnostics (the four B
    horizons and the chernozemic A) are unknown; a mix of "no" and
    "unknown" resolves to False.
    """
    diag = field.morph_diag
    if any(flag == TriState.YES for flag in diag.b_horizons):
        return True
    every_flag = (*diag.b_horizons, diag.has_a_chernozemic)
    if all(flag == TriState.UNKNOWN for flag in every_flag):
        return None
    return False


def build_derived_metrics(profile: SoilProfile) -> DerivedMetrics:
    """Build the shared metrics snapshot for a profile.

    Layers are sorted by top depth first, so the result does not depend on
    the order the caller listed them in.

    Args:
        profile: Classifier input

    Returns:
        Frozen DerivedMetrics
    """
    layers = sort_layers(profile.layers)
    field = profile.field

    surface = layers[0] if layers else None
    bt_layer = select_bt_layer(layers, field)
    bt_chemistry = calculate_layer_chemistry(bt_layer)
    surface_chemistry = calculate_layer_chemistry(surface)

    derived = DerivedMetrics(
        abrupt_textural_change=detect_abrupt_textural_change(layers),
        median_clay_pct=median([layer.clay_pct for layer in layers]),
        clay_all_le_15=all_clay_at_most(layers, SANDY_CLAY_MAX_PCT),
        texture_homogeneous=texture_is_homogeneous(layers),
        depth_cm=resolve_profile_depth(layers, field),
        ph_surface=surface.ph_h2o if surface else None,
        om_surface_pct=surface.om_pct if surface else None,
        sand_surface_pct=surface.sand_pct if surface else None,
        v_pct_surface=surface_chemistry.v_pct,
        sb_bt=bt_chemistry.sb,
        t_bt=bt_chemistry.t,
        v_pct_bt=bt_chemistry.v_pct,
        m_pct_bt=bt_chemistry.m_pct,
        bt_layer_used=bt_layer.label if bt_layer else None,
        any_b_diag_present=any_b_diagnostic_present(field),
    )

    logger.debug(
        f"Derived metrics for {len(layers)} layers: "
        f"abrupt={derived.abrupt_textural_change}, "
        f"median_clay={derived.median_clay_pct}, bt_layer={derived.bt_layer_used}"
    )
    return derived
