"""Tests for the field checklist."""

import pytest

from sibcs_classifier.checklist import (
    _CONFIRMATION_STEPS,
    StepAction,
    build_order_confirmation_steps,
    get_field_value,
    group_questions_by_section,
    list_checklist_questions,
    unanswered_questions,
)
from sibcs_classifier.models import FieldInput, SoilOrder, TriState


class TestChecklistQuestions:
    """Test the question list."""

    def test_seventeen_questions(self):
        """Test the base question set and its ends."""
        questions = list_checklist_questions()
        assert len(questions) == 17
        assert questions[0].id == "q1_histic_thickness"
        assert questions[-1].id == "q17_has_a_chernozemic"
        assert len({q.id for q in questions}) == 17

    def test_fresh_copies(self):
        """Test callers cannot alter the shared list."""
        first = list_checklist_questions()
        first[0].favors_orders.clear()
        assert list_checklist_questions()[0].favors_orders == [SoilOrder.ORGANOSSOLOS]

    def test_field_keys_resolve(self):
        """Test every question points at a real FieldInput attribute."""
        field = FieldInput()
        for question in list_checklist_questions():
            get_field_value(field, question.field_key)

    def test_grouped_by_section(self):
        """Test sections keep first-seen order."""
        groups = group_questions_by_section()
        assert list(groups)[0] == "Organic layer"
        assert len(groups["Morphological diagnostics"]) == 5
        assert sum(len(items) for items in groups.values()) == 17


class TestUnansweredQuestions:
    """Test which questions are still open for a profile."""

    def test_blank_field(self):
        """Test every question but saturation is open by default."""
        pending = {q.id for q in unanswered_questions(FieldInput())}
        assert len(pending) == 16
        assert "q2_water_saturation" not in pending

    def test_answered_field(self, profile_data):
        """Test only petroplinthite is open for the reference profile."""
        field = FieldInput.model_validate(profile_data["field"])
        assert [q.id for q in unanswered_questions(field)] == [
            "q6_petroplinthite_continuous"
        ]

    def test_nested_value(self):
        """Test dotted keys reach the morphological diagnostics."""
        field = FieldInput(morph_diag={"has_Bt": "yes"})
        assert get_field_value(field, "morph_diag.has_bt") == TriState.YES


class TestOrderConfirmationSteps:
    """Test per-order confirmation steps."""

    def test_espodossolos(self):
        """Test the spodic horizon step."""
        steps = build_order_confirmation_steps("Espodossolos")
        assert len(steps) == 1
        assert "bh/bs/bhs" in steps[0].what.lower()
        assert steps[0].action == StepAction.FIELD_CHECK

    def test_argissolos_and_luvissolos(self):
        """Test both Bt orders ask for V% in the lab."""
        for order in (SoilOrder.ARGISSOLOS, SoilOrder.LUVISSOLOS):
            steps = build_order_confirmation_steps(order)
            assert "V%" in steps[0].what
            assert steps[0].action == StepAction.LAB_TEST

    def test_orders_without_steps(self):
        """Test other orders and unknown labels return nothing."""
        assert build_order_confirmation_steps(SoilOrder.GLEISSOLOS) == []
        assert build_order_confirmation_steps("Indeterminada") == []

    def test_steps_table_is_read_only(self):
        """Test the shared step table cannot be altered through the API."""
        steps = build_order_confirmation_steps(SoilOrder.ARGISSOLOS)
        steps[0].what = "changed"
        assert build_order_confirmation_steps(SoilOrder.ARGISSOLOS)[0].what != "changed"

        with pytest.raises(TypeError):
            _CONFIRMATION_STEPS[SoilOrder.GLEISSOLOS] = ()
