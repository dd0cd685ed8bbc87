"""
Per-order scoring tables.

Each soil order is described by an ``OrderRuleSet``: its cap, an ordered
tuple of scoring rules, the conditions that register a missing-critical
item, and the combination that makes the candidate deterministic. The
tables are interpreted by ``evaluator.evaluate_order``. Weights and caps are
fixed per release.
"""

from collections.abc import Callable
from dataclasses import dataclass
from types import MappingProxyType

from sibcs_classifier.chemistry import is_finite
from sibcs_classifier.models import (
    DerivedMetrics,
    EvidenceKind,
    FieldInput,
    LayerInput,
    SoilOrder,
    TriState,
    WaterSaturation,
)

BASE_SCORE = 10

ORDER_CAPS = MappingProxyType(
    {
        SoilOrder.ORGANOSSOLOS: 100,
        SoilOrder.GLEISSOLOS: 95,
        SoilOrder.PLINTOSSOLOS: 95,
        SoilOrder.VERTISSOLOS: 95,
        SoilOrder.PLANOSSOLOS: 90,
        SoilOrder.ESPODOSSOLOS: 75,
        SoilOrder.NEOSSOLOS: 90,
        SoilOrder.CAMBISSOLOS: 90,
        SoilOrder.ARGISSOLOS: 90,
        SoilOrder.LUVISSOLOS: 90,
        SoilOrder.NITOSSOLOS: 90,
        SoilOrder.LATOSSOLOS: 90,
        SoilOrder.CHERNOSSOLOS: 80,
    }
)

# Organossolos resting only on a 20-39 cm histic layer under permanent saturation
ORGANOSSOLOS_SATURATED_HISTIC_CAP = 80


@dataclass(frozen=True)
class EvaluationContext:
    """Normalized input handed to every rule."""

    layers: tuple[LayerInput, ...]
    field: FieldInput
    derived: DerivedMetrics


Condition = Callable[[EvaluationContext], bool]


@dataclass(frozen=True)
class ScoreRule:
    """Adds ``delta`` to the score when ``when`` holds.

    ``cap`` replaces the order cap when the rule fires.
    """

    key: str
    detail: str
    delta: int
    kind: EvidenceKind
    when: Condition
    cap: int | None = None


@dataclass(frozen=True)
class MissingRule:
    """Registers a missing-critical item when ``when`` holds."""

    detail: str
    when: Condition


@dataclass(frozen=True)
class OrderRuleSet:
    order: SoilOrder
    rules: tuple[ScoreRule, ...]
    missing: tuple[MissingRule, ...] = ()
    deterministic_when: Condition | None = None

    @property
    def cap(self) -> int:
        return ORDER_CAPS[self.order]


def positive(key: str, detail: str, delta: int, when: Condition, **kwargs) -> ScoreRule:
    return ScoreRule(key, detail, delta, EvidenceKind.POSITIVE, when, **kwargs)


def conflict(key: str, detail: str, delta: int, when: Condition) -> ScoreRule:
    return ScoreRule(key, detail, delta, EvidenceKind.CONFLICT, when)


# Condition builders


def field_is(name: str, state: TriState) -> Condition:
    return lambda ctx: getattr(ctx.field, name) == state


def horizon_is(name: str, state: TriState) -> Condition:
    return lambda ctx: getattr(ctx.field.morph_diag, name) == state


def metric_at_least(name: str, threshold: float) -> Condition:
    def check(ctx: EvaluationContext) -> bool:
        value = getattr(ctx.derived, name)
        return value is not None and value >= threshold

    return check


def metric_above(name: str, threshold: float) -> Condition:
    def check(ctx: EvaluationContext) -> bool:
        value = getattr(ctx.derived, name)
        return value is not None and value > threshold

    return check


def metric_below(name: str, threshold: float) -> Condition:
    def check(ctx: EvaluationContext) -> bool:
        value = getattr(ctx.derived, name)
        return value is not None and value < threshold

    return check


def metric_at_most(name: str, threshold: float) -> Condition:
    def check(ctx: EvaluationContext) -> bool:
        value = getattr(ctx.derived, name)
        return value is not None and value <= threshold

    return check


def metric_is(name: str, expected: bool | None) -> Condition:
    return lambda ctx: getattr(ctx.derived, name) is expected


def all_of(*conditions: Condition) -> Condition:
    return lambda ctx: all(condition(ctx) for condition in conditions)


def any_of(*conditions: Condition) -> Condition:
    return lambda ctx: any(condition(ctx) for condition in conditions)


def negate(condition: Condition) -> Condition:
    return lambda ctx: not condition(ctx)


def always(ctx: EvaluationContext) -> bool:
    return True


YES, NO, UNKNOWN = TriState.YES, TriState.NO, TriState.UNKNOWN


def saturated(ctx: EvaluationContext) -> bool:
    return ctx.field.water_saturation != WaterSaturation.NEVER


def never_saturated(ctx: EvaluationContext) -> bool:
    return ctx.field.water_saturation == WaterSaturation.NEVER


def histic_at_least(threshold: float) -> Condition:
    def check(ctx: EvaluationContext) -> bool:
        histic = ctx.field.histic_thickness_cm
        return is_finite(histic) and histic >= threshold

    return check


def histic_below(threshold: float) -> Condition:
    def check(ctx: EvaluationContext) -> bool:
        histic = ctx.field.histic_thickness_cm
        return is_finite(histic) and histic < threshold

    return check


def histic_unknown(ctx: EvaluationContext) -> bool:
    return not is_finite(ctx.field.histic_thickness_cm)


def organic_matter_low_everywhere(ctx: EvaluationContext) -> bool:
    known = [layer.om_pct for layer in ctx.layers if is_finite(layer.om_pct)]
    return bool(known) and all(value <= 2 for value in known)


def organic_matter_rises_below_surface(ctx: EvaluationContext) -> bool:
    surface_om = ctx.derived.om_surface_pct
    if surface_om is None or surface_om > 2 or len(ctx.layers) < 2:
        return False
    subsurface_om = ctx.layers[1].om_pct
    return is_finite(subsurface_om) and subsurface_om >= surface_om + 0.5


def rock_contact_below(threshold: float) -> Condition:
    def check(ctx: EvaluationContext) -> bool:
        rock = ctx.field.contact_rock_cm
        return is_finite(rock) and rock < threshold

    return check


def moderate_depth_over_saprolite(ctx: EvaluationContext) -> bool:
    depth = ctx.derived.depth_cm
    rock = ctx.field.contact_rock_cm
    return (
        is_finite(depth)
        and 50 <= depth <= 100
        and is_finite(rock)
        and rock > 50
    )


def thick_dark_surface(ctx: EvaluationContext) -> bool:
    if not ctx.layers:
        return False
    om = ctx.derived.om_surface_pct
    return ctx.layers[0].thickness_cm >= 25 and om is not None and om >= 3


def no_b_diagnostic(ctx: EvaluationContext) -> bool:
    return all(flag == NO for flag in ctx.field.morph_diag.b_horizons)


_histic_saturated = all_of(
    negate(histic_at_least(40)),
    histic_at_least(20),
    lambda ctx: ctx.field.water_saturation == WaterSaturation.PERMANENT,
)

ORGANOSSOLOS_RULES = OrderRuleSet(
    order=SoilOrder.ORGANOSSOLOS,
    rules=(
        positive(
            "histic_ge_40", "Organic layer at least 40 cm thick.", 50, histic_at_least(40)
        ),
        positive(
            "histic_ge_20_sat_perm",
            "Organic layer 20-39 cm thick under permanent saturation.",
            30,
            _histic_saturated,
            cap=ORGANOSSOLOS_SATURATED_HISTIC_CAP,
        ),
        positive("sat_not_never", "Water saturation present.", 10, saturated),
        conflict("histic_lt_20", "Organic layer thinner than 20 cm.", -40, histic_below(20)),
        conflict(
            "om_low_no_histic",
            "Low organic matter without a significant organic layer.",
            -30,
            all_of(negate(histic_at_least(20)), organic_matter_low_everywhere),
        ),
    ),
    missing=(
        MissingRule("Report the organic layer thickness (histic_thickness_cm).", histic_unknown),
    ),
    deterministic_when=any_of(histic_at_least(40), _histic_saturated),
)

GLEISSOLOS_RULES = OrderRuleSet(
    order=SoilOrder.GLEISSOLOS,
    rules=(
        positive("sat_present", "Recurrent water saturation.", 35, saturated),
        conflict("sat_never", "Water saturation reported as never.", -30, never_saturated),
        positive("gley_yes", "Gley matrix present.", 35, field_is("gley_matrix", YES)),
        positive("mottles_yes", "Redox mottles present.", 10, field_is("mottles", YES)),
        conflict(
            "no_redox_signals",
            "No redox features (gley matrix or mottles).",
            -20,
            all_of(field_is("gley_matrix", NO), field_is("mottles", NO)),
        ),
    ),
    missing=(
        MissingRule("Confirm the gley matrix in the field.", field_is("gley_matrix", UNKNOWN)),
    ),
    deterministic_when=all_of(saturated, field_is("gley_matrix", YES)),
)

PLINTOSSOLOS_RULES = OrderRuleSet(
    order=SoilOrder.PLINTOSSOLOS,
    rules=(
        positive(
            "plinthite_yes",
            "Plinthite or petroplinthite present.",
            55,
            field_is("plinthite", YES),
        ),
        positive(
            "petro_continuous",
            "Continuous petroplinthite reported.",
            10,
            field_is("petroplinthite_continuous", YES),
        ),
        positive(
            "sat_present", "Water saturation supports plinthite formation.", 10, saturated
        ),
        conflict(
            "no_hydromorphism",
            "No associated hydromorphic features.",
            -25,
            all_of(never_saturated, field_is("gley_matrix", NO), field_is("mottles", NO)),
        ),
        conflict(
            "plinthite_unknown", "Plinthite not reported.", -20, field_is("plinthite", UNKNOWN)
        ),
    ),
    missing=(
        MissingRule(
            "Confirm plinthite/petroplinthite in the field.", field_is("plinthite", UNKNOWN)
        ),
    ),
    deterministic_when=field_is("plinthite", YES),
)

VERTISSOLOS_RULES = OrderRuleSet(
    order=SoilOrder.VERTISSOLOS,
    rules=(
        positive("cracks_yes", "Seasonal cracks present.", 45, field_is("seasonal_cracks", YES)),
        positive("slick_yes", "Slickensides present.", 35, field_is("slickensides", YES)),
        positive("clay_ge_30", "Median clay >= 30%.", 10, metric_at_least("median_clay_pct", 30)),
        conflict("clay_lt_25", "Median clay < 25%.", -30, metric_below("median_clay_pct", 25)),
        conflict("cracks_no", "Seasonal cracks absent.", -20, field_is("seasonal_cracks", NO)),
    ),
    missing=(
        MissingRule(
            "Confirm wide cracks during the dry season.",
            field_is("seasonal_cracks", UNKNOWN),
        ),
        MissingRule("Confirm slickensides in the profile.", field_is("slickensides", UNKNOWN)),
    ),
    deterministic_when=all_of(
        field_is("seasonal_cracks", YES),
        field_is("slickensides", YES),
        metric_at_least("median_clay_pct", 30),
    ),
)

PLANOSSOLOS_RULES = OrderRuleSet(
    order=SoilOrder.PLANOSSOLOS,
    rules=(
        positive(
            "bpl_yes", "Dense planic B layer present.", 40, field_is("dense_planic_layer", YES)
        ),
        positive(
            "abrupt_true",
            "Abrupt textural change confirmed.",
            30,
            metric_is("abrupt_textural_change", True),
        ),
        positive(
            "sat_sometimes",
            "Intermittent saturation consistent with a perched water table.",
            10,
            lambda ctx: ctx.field.water_saturation == WaterSaturation.SOMETIMES,
        ),
        conflict(
            "texture_homogeneous",
            "Homogeneous texture contradicts a planic signature.",
            -25,
            metric_is("texture_homogeneous", True),
        ),
        conflict("bpl_no", "Planic layer reported as absent.", -20, field_is("dense_planic_layer", NO)),
    ),
    missing=(
        MissingRule(
            "Confirm the dense planic B layer.", field_is("dense_planic_layer", UNKNOWN)
        ),
        MissingRule(
            "Report texture for at least two layers to assess the abrupt change.",
            metric_is("abrupt_textural_change", None),
        ),
    ),
    deterministic_when=all_of(
        field_is("dense_planic_layer", YES), metric_is("abrupt_textural_change", True)
    ),
)

ESPODOSSOLOS_RULES = OrderRuleSet(
    order=SoilOrder.ESPODOSSOLOS,
    rules=(
        positive(
            "e_horizon_yes",
            "Bleached eluvial E horizon reported.",
            25,
            field_is("eluvial_e_horizon", YES),
        ),
        positive("sand_ge_70", "Surface sand >= 70%.", 15, metric_at_least("sand_surface_pct", 70)),
        positive("ph_le_5", "Surface pH <= 5.0.", 15, metric_at_most("ph_surface", 5.0)),
        positive(
            "om_pattern",
            "Low surface organic matter increasing below the surface.",
            10,
            organic_matter_rises_below_surface,
        ),
        conflict(
            "clay_ge_25",
            "High median clay conflicts with a spodic signature.",
            -30,
            metric_at_least("median_clay_pct", 25),
        ),
        conflict(
            "e_horizon_no", "E horizon reported as absent.", -20, field_is("eluvial_e_horizon", NO)
        ),
    ),
    missing=(
        MissingRule(
            "Confirm the spodic horizon (Bh/Bs/Bhs) in the morphological description.",
            always,
        ),
    ),
)

NEOSSOLOS_RULES = OrderRuleSet(
    order=SoilOrder.NEOSSOLOS,
    rules=(
        positive("no_b_diag", "No diagnostic B horizon reported.", 40, no_b_diagnostic),
        positive(
            "rock_lt_50", "Rock contact shallower than 50 cm.", 20, rock_contact_below(50)
        ),
        positive(
            "clay_all_le_15",
            "Clay <= 15% in every layer.",
            20,
            metric_is("clay_all_le_15", True),
        ),
        positive(
            "fluvial_yes",
            "Fluvial stratification present.",
            15,
            field_is("fluvial_stratification", YES),
        ),
        conflict(
            "any_b_yes",
            "A diagnostic B horizon conflicts with Neossolos.",
            -30,
            metric_is("any_b_diag_present", True),
        ),
    ),
    missing=(
        MissingRule(
            "Confirm presence or absence of Bw, Bt, Bi and Bn.",
            all_of(negate(no_b_diagnostic), metric_is("any_b_diag_present", None)),
        ),
    ),
    deterministic_when=no_b_diagnostic,
)

CAMBISSOLOS_RULES = OrderRuleSet(
    order=SoilOrder.CAMBISSOLOS,
    rules=(
        positive("bi_yes", "Incipient B horizon (Bi) reported.", 50, horizon_is("has_bi", YES)),
        positive(
            "depth_saprolite_proxy",
            "Moderate depth consistent with a young profile.",
            10,
            moderate_depth_over_saprolite,
        ),
        conflict(
            "other_b_diag",
            "Bt, Bw or Bn present conflicts with Cambissolos.",
            -30,
            any_of(horizon_is("has_bt", YES), horizon_is("has_bw", YES), horizon_is("has_bn", YES)),
        ),
    ),
    missing=(MissingRule("Confirm the Bi horizon.", horizon_is("has_bi", UNKNOWN)),),
    deterministic_when=horizon_is("has_bi", YES),
)

_V_BT_MISSING = "Compute V% in the Bt layer (Ca, Mg, K, Na and H+Al)."

ARGISSOLOS_RULES = OrderRuleSet(
    order=SoilOrder.ARGISSOLOS,
    rules=(
        positive("bt_yes", "Textural B horizon (Bt) reported.", 35, horizon_is("has_bt", YES)),
        positive(
            "abrupt_true",
            "Abrupt textural change consistent with Bt.",
            25,
            metric_is("abrupt_textural_change", True),
        ),
        positive("v_bt_lt_50", "V% in Bt < 50.", 15, metric_below("v_pct_bt", 50)),
        conflict(
            "texture_homogeneous",
            "Homogeneous texture conflicts with an argic signature.",
            -20,
            metric_is("texture_homogeneous", True),
        ),
        conflict(
            "v_bt_ge_50", "V% in Bt >= 50 favours Luvissolos.", -20, metric_at_least("v_pct_bt", 50)
        ),
    ),
    missing=(
        MissingRule(_V_BT_MISSING, metric_is("v_pct_bt", None)),
        MissingRule("Confirm the Bt horizon in the morphology.", horizon_is("has_bt", UNKNOWN)),
    ),
    deterministic_when=all_of(horizon_is("has_bt", YES), metric_below("v_pct_bt", 50)),
)

LUVISSOLOS_RULES = OrderRuleSet(
    order=SoilOrder.LUVISSOLOS,
    rules=(
        positive("bt_yes", "Textural B horizon (Bt) reported.", 35, horizon_is("has_bt", YES)),
        positive(
            "abrupt_true",
            "Abrupt textural change consistent with Bt.",
            25,
            metric_is("abrupt_textural_change", True),
        ),
        positive("v_bt_ge_50", "V% in Bt >= 50.", 20, metric_at_least("v_pct_bt", 50)),
        conflict(
            "v_bt_lt_50", "V% in Bt < 50 favours Argissolos.", -20, metric_below("v_pct_bt", 50)
        ),
    ),
    missing=(MissingRule(_V_BT_MISSING, metric_is("v_pct_bt", None)),),
    deterministic_when=all_of(horizon_is("has_bt", YES), metric_at_least("v_pct_bt", 50)),
)

NITOSSOLOS_RULES = OrderRuleSet(
    order=SoilOrder.NITOSSOLOS,
    rules=(
        positive("bn_yes", "Nitic B horizon (Bn) reported.", 50, horizon_is("has_bn", YES)),
        positive(
            "clay_high",
            "High median clay consistent with Nitossolos.",
            15,
            metric_at_least("median_clay_pct", 35),
        ),
        positive("depth_gt_150", "Deep profile (> 150 cm).", 10, metric_above("depth_cm", 150)),
        conflict(
            "abrupt_true",
            "Abrupt change favours Bt over Bn.",
            -25,
            metric_is("abrupt_textural_change", True),
        ),
    ),
    missing=(MissingRule("Confirm the Bn horizon in the field.", horizon_is("has_bn", UNKNOWN)),),
    deterministic_when=horizon_is("has_bn", YES),
)

LATOSSOLOS_RULES = OrderRuleSet(
    order=SoilOrder.LATOSSOLOS,
    rules=(
        positive("bw_yes", "Latosolic B horizon (Bw) reported.", 40, horizon_is("has_bw", YES)),
        positive(
            "granular_proxy",
            "Confirmed Bw (proxy for granular structure).",
            10,
            horizon_is("has_bw", YES),
        ),
        positive("depth_gt_200", "Very deep profile (> 200 cm).", 15, metric_above("depth_cm", 200)),
        positive(
            "texture_homogeneous",
            "Low textural gradient.",
            15,
            metric_is("texture_homogeneous", True),
        ),
        conflict(
            "bt_or_bn_yes",
            "Bt or Bn present lowers the likelihood of Latossolos.",
            -25,
            any_of(horizon_is("has_bt", YES), horizon_is("has_bn", YES)),
        ),
    ),
    missing=(
        MissingRule("Confirm the Bw horizon in the morphology.", horizon_is("has_bw", UNKNOWN)),
    ),
    deterministic_when=horizon_is("has_bw", YES),
)

CHERNOSSOLOS_RULES = OrderRuleSet(
    order=SoilOrder.CHERNOSSOLOS,
    rules=(
        positive(
            "a_cherno_yes",
            "Chernozemic A horizon reported.",
            40,
            horizon_is("has_a_chernozemic", YES),
        ),
        positive(
            "dark_a_proxy",
            "Thick surface layer with high organic matter (dark A proxy).",
            15,
            thick_dark_surface,
        ),
        positive("v_a_ge_50", "Surface V% >= 50.", 15, metric_at_least("v_pct_surface", 50)),
        conflict(
            "acid_low_v",
            "Strongly acidic surface with low V% conflicts with Chernossolos.",
            -30,
            all_of(metric_at_most("ph_surface", 5), metric_below("v_pct_surface", 50)),
        ),
    ),
    missing=(
        MissingRule(
            "Confirm the chernozemic A horizon.", horizon_is("has_a_chernozemic", UNKNOWN)
        ),
    ),
)

# Evaluation order; ranking does not depend on it
RULE_TABLES: tuple[OrderRuleSet, ...] = (
    ORGANOSSOLOS_RULES,
    GLEISSOLOS_RULES,
    PLINTOSSOLOS_RULES,
    VERTISSOLOS_RULES,
    PLANOSSOLOS_RULES,
    ESPODOSSOLOS_RULES,
    NEOSSOLOS_RULES,
    CAMBISSOLOS_RULES,
    ARGISSOLOS_RULES,
    LUVISSOLOS_RULES,
    NITOSSOLOS_RULES,
    LATOSSOLOS_RULES,
    CHERNOSSOLOS_RULES,
)
