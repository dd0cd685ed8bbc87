"""Tests for the classification contract."""

import pytest

from sibcs_classifier.checklist import StepAction
from sibcs_classifier.config import AppSettings, ContractSettings
from sibcs_classifier.contract import (
    build_next_steps,
    classify_request,
    merge_next_steps,
    normalize_request,
    to_profile,
    validate_request,
)
from sibcs_classifier.contract_models import (
    UNDETERMINED_ORDER,
    AlertSeverity,
    AlertType,
    ClassificationRequest,
    MissingItem,
)
from sibcs_classifier.models import CandidateMode


def make_request(data) -> ClassificationRequest:
    return ClassificationRequest.model_validate(data)


class TestNormalizeRequest:
    """Test unit conversion."""

    def test_converts_to_percent_and_cmolc(self, request_data):
        """Test g/kg and mmolc/dm3 readings are divided by ten."""
        request_data["meta"]["units"].update(
            cations="mmolc_dm3", om="g_kg", texture="g_kg"
        )
        layer = request_data["lab_layers"][0]
        layer["texture"] = {"clay_pct": 180, "sand_pct": 720, "silt_pct": 100}
        layer["chem"].update(ca=12, mg=5, k=1.8, h_al=45, om_pct=21)

        normalized = normalize_request(make_request(request_data))
        units = normalized.meta.units
        first = normalized.lab_layers[0]

        assert units.cations.value == "cmolc_dm3"
        assert units.texture.value == "percent"
        assert units.om.value == "percent"
        assert first.texture.clay_pct == pytest.approx(18)
        assert first.chem.ca == pytest.approx(1.2)
        assert first.chem.om_pct == pytest.approx(2.1)
        # pH and P are unit-free here
        assert first.chem.ph_h2o == 5.2
        assert first.chem.p == 6

    def test_original_untouched(self, request_data):
        """Test normalization returns a new request."""
        request_data["meta"]["units"]["cations"] = "mmolc_dm3"
        request = make_request(request_data)
        normalize_request(request)
        assert request.lab_layers[0].chem.ca == 1.2
        assert request.meta.units.cations.value == "mmolc_dm3"

    def test_percent_input_unchanged(self, request_data):
        """Test requests already in % and cmolc pass through."""
        request = make_request(request_data)
        assert normalize_request(request).lab_layers == request.lab_layers


class TestValidateRequest:
    """Test request validation."""

    def test_reference_request_is_valid(self, request_data):
        """Test the reference request has no errors."""
        report = validate_request(make_request(request_data))
        assert report.valid
        assert report.errors == []
        assert report.warnings == []

    def test_no_layers(self, request_data):
        """Test an empty layer list is an error."""
        request_data["lab_layers"] = []
        report = validate_request(make_request(request_data))
        assert not report.valid
        assert "at least one layer" in report.errors[0]

    def test_texture_sum(self, request_data):
        """Test texture fractions must add up to about 100."""
        request_data["lab_layers"][0]["texture"] = {
            "clay_pct": 10,
            "sand_pct": 10,
            "silt_pct": 10,
        }
        report = validate_request(make_request(request_data))
        assert not report.valid
        assert "texture sum" in " ".join(report.errors)

    def test_texture_sum_in_g_kg(self, request_data):
        """Test the sum check works on g/kg input."""
        request_data["meta"]["units"]["texture"] = "g_kg"
        request_data["lab_layers"][0]["texture"] = {
            "clay_pct": 180,
            "sand_pct": 720,
            "silt_pct": 100,
        }
        request_data["lab_layers"] = request_data["lab_layers"][:1]
        assert validate_request(make_request(request_data)).valid

    def test_depth_problems(self, request_data):
        """Test non-numeric, inverted and overlapping depths."""
        request_data["lab_layers"][0].update(top_cm=0, bottom_cm=30)
        request_data["lab_layers"].append(
            {"top_cm": 80, "bottom_cm": 60, "texture": {}, "chem": {}}
        )
        request_data["lab_layers"].append(
            {"top_cm": "deep", "bottom_cm": 100, "texture": {}, "chem": {}}
        )
        errors = validate_request(make_request(request_data)).errors

        assert "Overlapping layers: 0-30 and 20-60." in errors
        assert any("top_cm must be less than bottom_cm" in e for e in errors)
        assert any("must be numeric" in e for e in errors)

    def test_negative_reading_and_ph_range(self, request_data):
        """Test readings below zero and pH outside 3-9."""
        request_data["lab_layers"][1]["chem"].update(ca=-1, ph_h2o=9.5)
        errors = validate_request(make_request(request_data)).errors

        assert "Layer 2: ca cannot be negative." in errors
        assert "Layer 2: ph_h2o outside 3-9." in errors

    def test_high_cations_warn(self, request_data):
        """Test suspicious cmolc values are warnings, not errors."""
        request_data["lab_layers"][0]["chem"]["ca"] = 55
        report = validate_request(make_request(request_data))
        assert report.valid
        assert len(report.warnings) == 1
        assert "ca" in report.warnings[0]

    def test_no_cation_warning_in_mmolc(self, request_data):
        """Test mmolc input is expected to be large."""
        request_data["meta"]["units"]["cations"] = "mmolc_dm3"
        request_data["lab_layers"][0]["chem"]["ca"] = 55
        assert validate_request(make_request(request_data)).warnings == []


class TestToProfile:
    """Test conversion to engine input."""

    def test_flattens_layers(self, request_data):
        """Test texture and chemistry are merged into engine layers."""
        profile = to_profile(make_request(request_data))
        assert profile.layers[1].clay_pct == 38
        assert profile.layers[1].h_al == 5.2
        assert profile.layers[0].ec_ds_m == 0.2

    def test_skips_layers_without_depths(self, request_data):
        """Test unplaceable layers are dropped."""
        request_data["lab_layers"][1]["top_cm"] = None
        assert len(to_profile(make_request(request_data)).layers) == 1


class TestNextSteps:
    """Test next step inference."""

    def test_lab_or_field(self):
        """Test lab keywords select a lab test."""
        steps = build_next_steps(
            [
                MissingItem(
                    key="missing_1",
                    detail="Compute V% in the Bt layer (Ca, Mg, K, Na and H+Al).",
                ),
                MissingItem(
                    key="missing_2",
                    detail="Confirm the Bt horizon in the morphology.",
                ),
                MissingItem(
                    key="missing_3",
                    detail="Input validation: Layer 1: ph_h2o outside 3-9.",
                ),
            ]
        )
        assert [s.action for s in steps] == [
            StepAction.LAB_TEST,
            StepAction.FIELD_CHECK,
            StepAction.LAB_TEST,
        ]

    def test_merge_deduplicates(self):
        """Test the same action and text appear once."""
        missing = [MissingItem(key="missing_1", detail="Confirm the gley matrix.")]
        steps = build_next_steps(missing)
        repeated = build_next_steps(
            [MissingItem(key="x", detail="confirm the gley matrix. ")]
        )
        assert len(merge_next_steps(steps, repeated)) == 1


class TestClassifyRequest:
    """Test the full contract flow."""

    def test_reference_request(self, request_data):
        """Test the primary result, alternatives and audit."""
        validation, response = classify_request(request_data)

        assert validation.valid
        assert response.primary.order == "Argissolos"
        assert response.primary.confidence == 85
        assert response.primary.mode == CandidateMode.DETERMINISTIC
        assert response.primary.explanation_short == "Textural B horizon (Bt) reported."
        assert [a.order for a in response.alternatives] == [
            "Gleissolos",
            "Luvissolos",
            "Planossolos",
        ]
        assert response.audit.derived_metrics.layer_used_for_bt == "20-60"
        assert response.audit.derived_metrics.v_pct == 16.93
        assert response.audit.missing_critical == []

    def test_confirmation_focus(self, request_data):
        """Test the checklist summary for the probable order."""
        _, response = classify_request(request_data)

        assert response.checklist.question_count == 17
        focus = response.checklist.order_confirmation_focus
        assert any("V%" in step.what for step in focus)
        assert any("V%" in step.what for step in response.next_steps)
        assert response.checklist.pending_questions == ["q6_petroplinthite_continuous"]

    def test_strong_organic_signature(self, request_data):
        """Test a deterministic Organossolos primary."""
        request_data["field"].update(
            water_saturation="permanent", histic_thickness_cm=45, morph_diag={}
        )
        _, response = classify_request(request_data)

        assert response.primary.order == "Organossolos"
        assert response.primary.mode == CandidateMode.DETERMINISTIC

    def test_probabilistic_without_morphology(self, request_data):
        """Test no strong signature and unknown morphology."""
        request_data["field"].update(
            water_saturation="never", gley_matrix="no", mottles="no", morph_diag={}
        )
        _, response = classify_request(request_data)

        assert response.primary.mode == CandidateMode.PROBABILISTIC
        details = [item.detail for item in response.audit.missing_critical]
        assert "Confirm the Bt horizon in the morphology." in details
        assert [item.key for item in response.audit.missing_critical] == [
            f"missing_{i}" for i in range(1, len(details) + 1)
        ]

    def test_undetermined_below_minimum(self):
        """Test a weak top candidate is reported as undetermined."""
        validation, response = classify_request(
            {"lab_layers": [{"top_cm": 0, "bottom_cm": 20}]}
        )

        assert validation.valid
        assert response.primary.order == UNDETERMINED_ORDER
        assert response.primary.mode == CandidateMode.PROBABILISTIC
        assert response.checklist.order_confirmation_focus == []
        assert len(response.checklist.pending_questions) == 16

    def test_minimum_confidence_is_configurable(self, request_data):
        """Test the threshold comes from settings."""
        settings = AppSettings(contract=ContractSettings(minimum_primary_confidence=90))
        _, response = classify_request(request_data, settings=settings)
        assert response.primary.order == UNDETERMINED_ORDER

    def test_alternative_count_is_configurable(self, request_data):
        """Test the number of alternatives comes from settings."""
        settings = AppSettings(contract=ContractSettings(alternatives_count=5))
        _, response = classify_request(request_data, settings=settings)
        assert len(response.alternatives) == 5

    def test_validation_errors_become_missing_items(self, request_data):
        """Test validation errors are reported, not raised."""
        request_data["lab_layers"][0]["texture"] = {
            "clay_pct": 10,
            "sand_pct": 10,
            "silt_pct": 10,
        }
        validation, response = classify_request(request_data)

        assert not validation.valid
        details = [item.detail for item in response.audit.missing_critical]
        prefix = "Input validation: Layer 1: texture sum"
        assert any(detail.startswith(prefix) for detail in details)

    def test_default_positive_evidence(self):
        """Test an empty audit trail gets a placeholder entry."""
        _, response = classify_request({"lab_layers": []})

        assert len(response.audit.positive_evidence) == 1
        assert response.audit.positive_evidence[0].score_delta == 0

    def test_engine_scores_unchanged(self, request_data):
        """Test the contract does not alter engine confidences."""
        from sibcs_classifier.engine import classify

        _, response = classify_request(request_data)
        result = classify(to_profile(make_request(request_data)))
        assert response.primary.confidence == result.top.score
        assert [a.confidence for a in response.alternatives] == [
            c.score for c in result.ranked[1:4]
        ]


class TestAgronomicAlerts:
    """Test management alerts in the response."""

    def test_reference_alerts(self, request_data):
        """Test alerts raised by the reference request."""
        _, response = classify_request(request_data)
        alerts = {alert.type: alert for alert in response.agronomic_alerts}

        assert set(alerts) == {
            AlertType.ACIDITY,
            AlertType.AL_TOXICITY,
            AlertType.LOW_P,
            AlertType.LOW_CTC,
            AlertType.WATERLOGGING,
        }
        assert alerts[AlertType.WATERLOGGING].severity == AlertSeverity.MEDIUM

    def test_salinity_sodicity_and_water_storage(self, request_data):
        """Test surface-layer alerts."""
        request_data["lab_layers"][0]["chem"].update(ec_dS_m=5, na=1.5, om_pct=1.0)
        request_data["field"]["water_saturation"] = "permanent"
        _, response = classify_request(request_data)
        alerts = {alert.type: alert for alert in response.agronomic_alerts}

        assert AlertType.SALINITY in alerts
        assert AlertType.SODICITY in alerts
        assert AlertType.LOW_WATER_STORAGE in alerts
        assert alerts[AlertType.WATERLOGGING].severity == AlertSeverity.HIGH
