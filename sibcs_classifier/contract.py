"""
Classification contract around the engine.

Validates and normalizes a data-entry request, runs ``classify`` and turns
the ranked candidates into a display-ready response with agronomic alerts
and next steps. Nothing here changes engine scores.
"""

import re
from collections.abc import Mapping
from typing import Any

from sibcs_classifier.checklist import (
    ExpectedImpact,
    NextStep,
    StepAction,
    build_order_confirmation_steps,
    list_checklist_questions,
    unanswered_questions,
)
from sibcs_classifier.chemistry import clamp, is_finite, round2, round_half_up
from sibcs_classifier.config import AlertThresholds, AppSettings, get_settings
from sibcs_classifier.contract_models import (
    UNDETERMINED_ORDER,
    AgronomicAlert,
    AlertSeverity,
    AlertType,
    Alternative,
    Audit,
    AuditMetrics,
    CationUnit,
    ChecklistSummary,
    ClassificationRequest,
    ClassificationResponse,
    ContentUnit,
    LayerChemistry,
    LayerTexture,
    MissingItem,
    PrimaryResult,
    RequestLayer,
    ValidationReport,
)
from sibcs_classifier.engine import classify
from sibcs_classifier.logging_config import get_logger
from sibcs_classifier.models import (
    Candidate,
    CandidateMode,
    DerivedMetrics,
    Evidence,
    LayerInput,
    SoilProfile,
    WaterSaturation,
    format_depth,
)

logger = get_logger(__name__)

# Missing items mentioning these are resolved in the lab rather than the field
_LAB_KEYWORDS = re.compile(r"(?<![a-z])(ca|mg|k|na|h\+al|clay|texture|ph|v%)(?![a-z])")


def _per_ten(value: float | None, convert: bool) -> float | None:
    if not is_finite(value):
        return None
    return value / 10 if convert else value


def normalize_request(request: ClassificationRequest) -> ClassificationRequest:
    """Convert readings to %, and cations to cmolc/dm3.

    Texture and organic matter in g/kg and cations in mmolc/dm3 are divided
    by ten. Returns a new request; the input is left untouched.
    """
    units = request.meta.units
    texture_g_kg = units.texture == ContentUnit.G_KG
    om_g_kg = units.om == ContentUnit.G_KG
    cations_mmolc = units.cations == CationUnit.MMOLC_DM3

    layers = []
    for layer in request.lab_layers:
        texture = LayerTexture(
            clay_pct=_per_ten(layer.texture.clay_pct, texture_g_kg),
            sand_pct=_per_ten(layer.texture.sand_pct, texture_g_kg),
            silt_pct=_per_ten(layer.texture.silt_pct, texture_g_kg),
        )
        chem = layer.chem.model_copy(
            update={
                "ca": _per_ten(layer.chem.ca, cations_mmolc),
                "mg": _per_ten(layer.chem.mg, cations_mmolc),
                "k": _per_ten(layer.chem.k, cations_mmolc),
                "na": _per_ten(layer.chem.na, cations_mmolc),
                "al": _per_ten(layer.chem.al, cations_mmolc),
                "h_al": _per_ten(layer.chem.h_al, cations_mmolc),
                "om_pct": _per_ten(layer.chem.om_pct, om_g_kg),
            }
        )
        layers.append(layer.model_copy(update={"texture": texture, "chem": chem}))

    normalized_units = units.model_copy(
        update={
            "cations": CationUnit.CMOLC_DM3,
            "om": ContentUnit.PERCENT,
            "texture": ContentUnit.PERCENT,
        }
    )
    meta = request.meta.model_copy(update={"units": normalized_units})
    return request.model_copy(update={"meta": meta, "lab_layers": layers})


def _depth_label(layer: RequestLayer) -> str:
    return "-".join(
        format_depth(value) if is_finite(value) else "?"
        for value in (layer.top_cm, layer.bottom_cm)
    )


def _sorted_request_layers(layers: list[RequestLayer]) -> list[RequestLayer]:
    return sorted(
        layers,
        key=lambda layer: layer.top_cm if is_finite(layer.top_cm) else float("inf"),
    )


def validate_request(
    request: ClassificationRequest, settings: AppSettings | None = None
) -> ValidationReport:
    """Check a request for structural and range problems.

    Args:
        request: Request as received (before unit normalization)
        settings: Optional settings; defaults to the loaded configuration

    Returns:
        ValidationReport with errors (invalid input) and warnings (suspicious
        input)
    """
    limits = (settings or get_settings()).validation
    errors: list[str] = []
    warnings: list[str] = []

    if not request.lab_layers:
        errors.append("lab_layers must contain at least one layer.")

    layers = _sorted_request_layers(request.lab_layers)
    for index, layer in enumerate(layers, start=1):
        prefix = f"Layer {index}"
        if not (is_finite(layer.top_cm) and is_finite(layer.bottom_cm)):
            errors.append(f"{prefix}: top_cm and bottom_cm must be numeric.")
        elif layer.top_cm >= layer.bottom_cm:
            errors.append(f"{prefix}: top_cm must be less than bottom_cm.")

        if index > 1:
            previous = layers[index - 2]
            if (
                is_finite(previous.bottom_cm)
                and is_finite(layer.top_cm)
                and layer.top_cm < previous.bottom_cm
            ):
                errors.append(
                    f"Overlapping layers: {_depth_label(previous)} "
                    f"and {_depth_label(layer)}."
                )

        texture = layer.texture
        if all(
            is_finite(value)
            for value in (texture.clay_pct, texture.sand_pct, texture.silt_pct)
        ):
            total = texture.clay_pct + texture.sand_pct + texture.silt_pct
            if request.meta.units.texture == ContentUnit.G_KG:
                total = total / 10
            if total < limits.texture_sum_min or total > limits.texture_sum_max:
                errors.append(
                    f"{prefix}: texture sum outside "
                    f"{limits.texture_sum_min:g}-{limits.texture_sum_max:g} "
                    f"(value: {round2(total)})."
                )

        readings = {
            **texture.model_dump(),
            **layer.chem.model_dump(),
        }
        for key, value in readings.items():
            if is_finite(value) and value < 0:
                errors.append(f"{prefix}: {key} cannot be negative.")

        ph = layer.chem.ph_h2o
        if is_finite(ph) and (ph < limits.ph_min or ph > limits.ph_max):
            errors.append(
                f"{prefix}: ph_h2o outside {limits.ph_min:g}-{limits.ph_max:g}."
            )

        if request.meta.units.cations == CationUnit.CMOLC_DM3:
            for key in ("ca", "mg", "k", "na", "al", "h_al"):
                value = getattr(layer.chem, key)
                if is_finite(value) and value > limits.cation_warning_cmolc:
                    warnings.append(
                        f"{prefix}: {key} is very high for cmolc/dm3 "
                        "(check the source unit)."
                    )

    return ValidationReport(valid=not errors, errors=errors, warnings=warnings)


def to_profile(request: ClassificationRequest) -> SoilProfile:
    """Build the engine input from a (normalized) request.

    Layers without numeric depths cannot be placed in the profile and are
    left out.
    """
    layers = []
    for layer in request.lab_layers:
        if not (is_finite(layer.top_cm) and is_finite(layer.bottom_cm)):
            logger.warning("Skipping layer without numeric depths")
            continue
        chem: LayerChemistry = layer.chem
        layers.append(
            LayerInput(
                top_cm=layer.top_cm,
                bottom_cm=layer.bottom_cm,
                clay_pct=layer.texture.clay_pct,
                sand_pct=layer.texture.sand_pct,
                silt_pct=layer.texture.silt_pct,
                ph_h2o=chem.ph_h2o,
                ca=chem.ca,
                mg=chem.mg,
                k=chem.k,
                na=chem.na,
                al=chem.al,
                h_al=chem.h_al,
                p=chem.p,
                om_pct=chem.om_pct,
                ec_ds_m=chem.ec_ds_m,
            )
        )
    return SoilProfile(layers=layers, field=request.field)


def build_agronomic_alerts(
    request: ClassificationRequest,
    metrics: AuditMetrics,
    thresholds: AlertThresholds,
) -> list[AgronomicAlert]:
    """Flag management issues visible in the surface layer and the Bt layer."""
    alerts: list[AgronomicAlert] = []
    layers = _sorted_request_layers(request.lab_layers)
    surface = layers[0] if layers else None

    ph = surface.chem.ph_h2o if surface else None
    p = surface.chem.p if surface else None
    ec = surface.chem.ec_ds_m if surface else None
    na = surface.chem.na if surface else None
    sand = surface.texture.sand_pct if surface else None
    om = surface.chem.om_pct if surface else None

    high_al = (
        metrics.m_pct is not None
        and metrics.m_pct >= thresholds.al_saturation_min_pct
    )

    if (ph is not None and ph <= thresholds.acidity_ph_max) or high_al:
        alerts.append(
            AgronomicAlert(
                type=AlertType.ACIDITY,
                severity=AlertSeverity.HIGH,
                message="High acidity in the profile; review the liming requirement.",
                based_on=["ph_h2o", "m_pct"],
            )
        )
    if high_al:
        alerts.append(
            AgronomicAlert(
                type=AlertType.AL_TOXICITY,
                severity=AlertSeverity.HIGH,
                message="High aluminium saturation puts root development at risk.",
                based_on=["m_pct", "al"],
            )
        )
    if p is not None and p < thresholds.low_p_max:
        alerts.append(
            AgronomicAlert(
                type=AlertType.LOW_P,
                severity=AlertSeverity.MEDIUM,
                message="Low available phosphorus; consider a phosphate build-up strategy.",
                based_on=["p"],
            )
        )
    if metrics.t_ctc is not None and metrics.t_ctc < thresholds.low_cec_max:
        alerts.append(
            AgronomicAlert(
                type=AlertType.LOW_CTC,
                severity=AlertSeverity.MEDIUM,
                message="Low cation exchange capacity in the reference subsoil layer.",
                based_on=["t_ctc"],
            )
        )
    saturation = request.field.water_saturation
    if saturation != WaterSaturation.NEVER:
        alerts.append(
            AgronomicAlert(
                type=AlertType.WATERLOGGING,
                severity=(
                    AlertSeverity.HIGH
                    if saturation == WaterSaturation.PERMANENT
                    else AlertSeverity.MEDIUM
                ),
                message="Recurrent water saturation; adapt the production system.",
                based_on=["water_saturation", "gley_matrix", "mottles"],
            )
        )
    if ec is not None and ec >= thresholds.salinity_ec_min:
        alerts.append(
            AgronomicAlert(
                type=AlertType.SALINITY,
                severity=AlertSeverity.HIGH,
                message="High electrical conductivity indicates a salinity risk.",
                based_on=["ec_dS_m"],
            )
        )
    if na is not None and na >= thresholds.sodicity_na_min:
        alerts.append(
            AgronomicAlert(
                type=AlertType.SODICITY,
                severity=AlertSeverity.MEDIUM,
                message="High exchangeable sodium; investigate sodicity (ESP).",
                based_on=["na"],
            )
        )
    if (
        sand is not None
        and sand >= thresholds.low_water_storage_sand_min
        and om is not None
        and om <= thresholds.low_water_storage_om_max
    ):
        alerts.append(
            AgronomicAlert(
                type=AlertType.LOW_WATER_STORAGE,
                severity=AlertSeverity.MEDIUM,
                message="Sandy surface with low organic matter stores little water.",
                based_on=["sand_pct", "om_pct"],
            )
        )

    return alerts


def build_next_steps(missing: list[MissingItem]) -> list[NextStep]:
    """One step per missing item, as a lab test or a field check."""
    steps = []
    for item in missing:
        is_lab = bool(_LAB_KEYWORDS.search(item.detail.lower()))
        steps.append(
            NextStep(
                action=StepAction.LAB_TEST if is_lab else StepAction.FIELD_CHECK,
                what=item.detail,
                why="Needed to confirm the classification with more certainty.",
                expected_impact=ExpectedImpact.RAISE_CONFIDENCE,
            )
        )
    return steps


def merge_next_steps(*groups: list[NextStep]) -> list[NextStep]:
    """Concatenate step lists, dropping repeats of the same action and text."""
    seen: set[tuple[str, str]] = set()
    merged = []
    for group in groups:
        for step in group:
            key = (step.action.value, step.what.strip().lower())
            if key in seen:
                continue
            seen.add(key)
            merged.append(step)
    return merged


def _confidence(candidate: Candidate) -> int:
    return int(clamp(round_half_up(candidate.score), 0, 100))


def _headline(candidate: Candidate, fallback: str) -> str:
    if candidate.positives:
        return candidate.positives[0].detail
    if candidate.conflicts:
        return candidate.conflicts[0].detail
    return fallback


def _audit_metrics(derived: DerivedMetrics) -> AuditMetrics:
    return AuditMetrics(
        abrupt_textural_change=derived.abrupt_textural_change,
        sb=round2(derived.sb_bt),
        t_ctc=round2(derived.t_bt),
        v_pct=round2(derived.v_pct_bt),
        m_pct=round2(derived.m_pct_bt),
        layer_used_for_bt=derived.bt_layer_used,
    )


def classify_request(
    request: ClassificationRequest | Mapping[str, Any],
    settings: AppSettings | None = None,
) -> tuple[ValidationReport, ClassificationResponse]:
    """Validate, normalize and classify a contract request.

    The top candidate is reported as the primary order only when its score
    reaches the configured minimum; otherwise the order is 'Indeterminada'
    and the mode probabilistic. Validation errors are appended to the
    missing-critical items rather than raised.

    Args:
        request: ClassificationRequest or a mapping accepted by it
        settings: Optional settings; defaults to the loaded configuration

    Returns:
        Tuple of (validation report, response)
    """
    if not isinstance(request, ClassificationRequest):
        request = ClassificationRequest.model_validate(request)
    settings = settings or get_settings()

    validation = validate_request(request, settings)
    if not validation.valid:
        logger.info(f"Request has {len(validation.errors)} validation errors")

    normalized = normalize_request(request)
    result = classify(to_profile(normalized))
    primary = result.top

    minimum = settings.contract.minimum_primary_confidence
    if primary.score >= minimum:
        order = primary.order.value
        mode = primary.mode
    else:
        order = UNDETERMINED_ORDER
        mode = CandidateMode.PROBABILISTIC

    missing_details = list(primary.missing_critical)
    missing_details += [f"Input validation: {error}" for error in validation.errors]
    missing = [
        MissingItem(key=f"missing_{index}", detail=detail)
        for index, detail in enumerate(missing_details, start=1)
    ]

    metrics = _audit_metrics(result.derived)
    positives = list(primary.positives)
    if not positives:
        positives.append(
            Evidence(
                key="positive_default",
                detail="Not enough positive evidence to confirm an order.",
                score_delta=0,
            )
        )

    confirmation = build_order_confirmation_steps(order)
    count = settings.contract.alternatives_count
    response = ClassificationResponse(
        primary=PrimaryResult(
            order=order,
            confidence=_confidence(primary),
            mode=mode,
            explanation_short=_headline(
                primary, "Insufficient data for a conclusive classification."
            ),
        ),
        alternatives=[
            Alternative(
                order=candidate.order.value,
                confidence=_confidence(candidate),
                why_competes=_headline(candidate, "Competed on partial evidence."),
            )
            for candidate in result.ranked[1 : 1 + count]
        ],
        audit=Audit(
            positive_evidence=positives,
            conflicts=list(primary.conflicts),
            missing_critical=missing,
            derived_metrics=metrics,
        ),
        agronomic_alerts=build_agronomic_alerts(normalized, metrics, settings.alerts),
        next_steps=merge_next_steps(build_next_steps(missing), confirmation),
        checklist=ChecklistSummary(
            question_count=len(list_checklist_questions()),
            pending_questions=[q.id for q in unanswered_questions(request.field)],
            order_confirmation_focus=confirmation,
        ),
    )

    logger.info(
        f"Contract classification: {order} "
        f"(confidence {response.primary.confidence}, {mode.value})"
    )
    return validation, response
