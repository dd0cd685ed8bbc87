"""
Field checklist for soil order confirmation.

Lists the field questions that feed the classifier and the follow-up steps
that confirm a given order.
"""

from collections.abc import Mapping
from enum import Enum
from types import MappingProxyType
from typing import Any

from pydantic import BaseModel, Field

from sibcs_classifier.models import FieldInput, SoilOrder, TriState


class AnswerType(str, Enum):
    NUMBER_CM = "number_cm"
    YES_NO = "yes_no"
    YES_NO_UNKNOWN = "yes_no_unknown"
    SATURATION = "saturation"


class StepAction(str, Enum):
    FIELD_CHECK = "field_check"
    LAB_TEST = "lab_test"


class ExpectedImpact(str, Enum):
    RAISE_CONFIDENCE = "raise_confidence"
    RESOLVE_CONFLICT = "resolve_conflict"


class ChecklistQuestion(BaseModel):
    """A single field observation prompt."""

    id: str
    section: str
    question: str
    how_to_observe: str
    answer_type: AnswerType
    field_key: str = Field(description="Dotted path into FieldInput")
    favors_orders: list[SoilOrder] = Field(default_factory=list)
    penalizes_orders: list[SoilOrder] = Field(default_factory=list)


class NextStep(BaseModel):
    """Recommended action to firm up a classification."""

    action: StepAction
    what: str
    why: str
    expected_impact: ExpectedImpact


_QUESTIONS: tuple[dict[str, Any], ...] = (
    {
        "id": "q1_histic_thickness",
        "section": "Organic layer",
        "question": "Is there a thick organic layer (>= 40 cm)?",
        "how_to_observe": "Measure with a tape from the top down to the first clearly mineral material.",
        "answer_type": AnswerType.NUMBER_CM,
        "field_key": "histic_thickness_cm",
        "favors_orders": [SoilOrder.ORGANOSSOLOS],
        "penalizes_orders": [SoilOrder.ORGANOSSOLOS],
    },
    {
        "id": "q2_water_saturation",
        "section": "Hydromorphism",
        "question": "Does the soil stay saturated often?",
        "how_to_observe": "Look for water in the pit, marshy ground, a high water table or signs of anaerobiosis.",
        "answer_type": AnswerType.SATURATION,
        "field_key": "water_saturation",
        "favors_orders": [
            SoilOrder.GLEISSOLOS,
            SoilOrder.PLINTOSSOLOS,
            SoilOrder.PLANOSSOLOS,
            SoilOrder.ORGANOSSOLOS,
        ],
        "penalizes_orders": [SoilOrder.GLEISSOLOS, SoilOrder.ORGANOSSOLOS],
    },
    {
        "id": "q3_gley_matrix",
        "section": "Hydromorphism",
        "question": "Is there a gley matrix (grey, bluish or greenish) in the subsoil?",
        "how_to_observe": "Check the colour on a moist profile wall.",
        "answer_type": AnswerType.YES_NO,
        "field_key": "gley_matrix",
        "favors_orders": [SoilOrder.GLEISSOLOS],
        "penalizes_orders": [SoilOrder.GLEISSOLOS],
    },
    {
        "id": "q4_mottles",
        "section": "Hydromorphism",
        "question": "Are there iron mottles in the subsoil?",
        "how_to_observe": "Look for red or yellow spots on a greyish background.",
        "answer_type": AnswerType.YES_NO,
        "field_key": "mottles",
        "favors_orders": [SoilOrder.GLEISSOLOS, SoilOrder.PLINTOSSOLOS, SoilOrder.PLANOSSOLOS],
        "penalizes_orders": [],
    },
    {
        "id": "q5_plinthite",
        "section": "Plinthite",
        "question": "Is there plinthite or petroplinthite in the subsoil?",
        "how_to_observe": "Identify iron-rich nodules or masses that may harden on drying.",
        "answer_type": AnswerType.YES_NO,
        "field_key": "plinthite",
        "favors_orders": [SoilOrder.PLINTOSSOLOS],
        "penalizes_orders": [SoilOrder.PLINTOSSOLOS],
    },
    {
        "id": "q6_petroplinthite_continuous",
        "section": "Plinthite",
        "question": "Is there a continuous, very hard layer (petroplinthite)?",
        "how_to_observe": "Check for a continuous physical barrier in the profile (ironstone slab).",
        "answer_type": AnswerType.YES_NO,
        "field_key": "petroplinthite_continuous",
        "favors_orders": [SoilOrder.PLINTOSSOLOS],
        "penalizes_orders": [],
    },
    {
        "id": "q7_seasonal_cracks",
        "section": "Vertic",
        "question": "Do wide (>= 1 cm) and deep (>= 50 cm) cracks open in the dry season?",
        "how_to_observe": "Inspect during the dry period or collect local history.",
        "answer_type": AnswerType.YES_NO,
        "field_key": "seasonal_cracks",
        "favors_orders": [SoilOrder.VERTISSOLOS],
        "penalizes_orders": [SoilOrder.VERTISSOLOS],
    },
    {
        "id": "q8_slickensides",
        "section": "Vertic",
        "question": "Are there slickensides (smooth, polished faces) in the subsoil?",
        "how_to_observe": "Look for shiny, grooved faces on the profile walls.",
        "answer_type": AnswerType.YES_NO,
        "field_key": "slickensides",
        "favors_orders": [SoilOrder.VERTISSOLOS],
        "penalizes_orders": [SoilOrder.VERTISSOLOS],
    },
    {
        "id": "q9_dense_bpl",
        "section": "Planic",
        "question": "Is there a very dense layer in the subsoil (planic B)?",
        "how_to_observe": "Check resistance to spade or auger and water perched above the layer.",
        "answer_type": AnswerType.YES_NO,
        "field_key": "dense_planic_layer",
        "favors_orders": [SoilOrder.PLANOSSOLOS],
        "penalizes_orders": [SoilOrder.PLANOSSOLOS],
    },
    {
        "id": "q10_eluvial_e",
        "section": "E horizon",
        "question": "Is there a pale, bleached E horizon?",
        "how_to_observe": "Identify a light washed-out band below the A horizon.",
        "answer_type": AnswerType.YES_NO,
        "field_key": "eluvial_e_horizon",
        "favors_orders": [SoilOrder.ESPODOSSOLOS, SoilOrder.ARGISSOLOS],
        "penalizes_orders": [SoilOrder.ESPODOSSOLOS],
    },
    {
        "id": "q11_fluvial_stratification",
        "section": "Stratification",
        "question": "Is there alluvial stratification in the profile?",
        "how_to_observe": "Look for alternating colour or texture bands like depositional sheets.",
        "answer_type": AnswerType.YES_NO,
        "field_key": "fluvial_stratification",
        "favors_orders": [SoilOrder.NEOSSOLOS],
        "penalizes_orders": [SoilOrder.LATOSSOLOS, SoilOrder.NITOSSOLOS],
    },
    {
        "id": "q12_contact_rock_cm",
        "section": "Depth",
        "question": "How deep is the rock or real physical restriction?",
        "how_to_observe": "Measure down to where the spade or auger stops on a physical barrier.",
        "answer_type": AnswerType.NUMBER_CM,
        "field_key": "contact_rock_cm",
        "favors_orders": [SoilOrder.NEOSSOLOS, SoilOrder.LATOSSOLOS, SoilOrder.NITOSSOLOS],
        "penalizes_orders": [],
    },
    {
        "id": "q13_has_bt",
        "section": "Morphological diagnostics",
        "question": "Is there a Bt (clear clay increase in the subsoil)?",
        "how_to_observe": "Compare feel and plasticity of the surface layer with the subsurface.",
        "answer_type": AnswerType.YES_NO_UNKNOWN,
        "field_key": "morph_diag.has_bt",
        "favors_orders": [SoilOrder.ARGISSOLOS, SoilOrder.LUVISSOLOS],
        "penalizes_orders": [SoilOrder.NEOSSOLOS, SoilOrder.CAMBISSOLOS],
    },
    {
        "id": "q14_has_bi",
        "section": "Morphological diagnostics",
        "question": "Is there a Bi (incipient B) without a strong clay increase?",
        "how_to_observe": "Identify a weak B horizon without a clear Bt, Bw or Bn signature.",
        "answer_type": AnswerType.YES_NO_UNKNOWN,
        "field_key": "morph_diag.has_bi",
        "favors_orders": [SoilOrder.CAMBISSOLOS],
        "penalizes_orders": [SoilOrder.NEOSSOLOS],
    },
    {
        "id": "q15_has_bw",
        "section": "Morphological diagnostics",
        "question": "Is there a Bw (latosolic B) with diffuse transitions and granular structure?",
        "how_to_observe": "Check for a deep, homogeneous profile without a strong textural gradient.",
        "answer_type": AnswerType.YES_NO_UNKNOWN,
        "field_key": "morph_diag.has_bw",
        "favors_orders": [SoilOrder.LATOSSOLOS],
        "penalizes_orders": [SoilOrder.NEOSSOLOS],
    },
    {
        "id": "q16_has_bn",
        "section": "Morphological diagnostics",
        "question": "Is there a Bn (nitic) with strong blocks and shiny ped faces?",
        "how_to_observe": "Look for strong subangular structure with well defined smooth faces.",
        "answer_type": AnswerType.YES_NO_UNKNOWN,
        "field_key": "morph_diag.has_bn",
        "favors_orders": [SoilOrder.NITOSSOLOS],
        "penalizes_orders": [SoilOrder.NEOSSOLOS],
    },
    {
        "id": "q17_has_a_chernozemic",
        "section": "Morphological diagnostics",
        "question": "Is there a chernozemic A (dark, thick, well structured)?",
        "how_to_observe": "Confirm a thick (>= 25 cm) dark A with high structural stability.",
        "answer_type": AnswerType.YES_NO_UNKNOWN,
        "field_key": "morph_diag.has_a_chernozemic",
        "favors_orders": [SoilOrder.CHERNOSSOLOS],
        "penalizes_orders": [],
    },
)


def list_checklist_questions() -> list[ChecklistQuestion]:
    """Return fresh copies of the checklist questions in display order."""
    return [ChecklistQuestion(**question) for question in _QUESTIONS]


def group_questions_by_section(
    questions: list[ChecklistQuestion] | None = None,
) -> dict[str, list[ChecklistQuestion]]:
    """Group questions (all of them by default) by section, keeping order."""
    if questions is None:
        questions = list_checklist_questions()
    groups: dict[str, list[ChecklistQuestion]] = {}
    for question in questions:
        groups.setdefault(question.section, []).append(question)
    return groups


def get_field_value(field: FieldInput, field_key: str) -> Any:
    """Resolve a dotted checklist key against a FieldInput."""
    value: Any = field
    for part in field_key.split("."):
        value = getattr(value, part)
    return value


def unanswered_questions(field: FieldInput) -> list[ChecklistQuestion]:
    """Questions whose answer is still unknown for this profile."""
    pending = []
    for question in list_checklist_questions():
        value = get_field_value(field, question.field_key)
        if value is None or value == TriState.UNKNOWN:
            pending.append(question)
    return pending


_V_BT_STEP = NextStep(
    action=StepAction.LAB_TEST,
    what="Compute V% in the Bt layer (Ca, Mg, K, Na and H+Al).",
    why="Separates Argissolos (V% < 50) from Luvissolos (V% >= 50) objectively.",
    expected_impact=ExpectedImpact.RESOLVE_CONFLICT,
)

_CONFIRMATION_STEPS: Mapping[SoilOrder, tuple[NextStep, ...]] = MappingProxyType(
    {
        SoilOrder.ESPODOSSOLOS: (
            NextStep(
                action=StepAction.FIELD_CHECK,
                what="Confirm the spodic horizon (Bh/Bs/Bhs) in the morphological description.",
                why="Closes the podzolization signature and avoids a false positive from an isolated E horizon.",
                expected_impact=ExpectedImpact.RAISE_CONFIDENCE,
            ),
        ),
        SoilOrder.ARGISSOLOS: (_V_BT_STEP,),
        SoilOrder.LUVISSOLOS: (_V_BT_STEP,),
        SoilOrder.LATOSSOLOS: (
            NextStep(
                action=StepAction.FIELD_CHECK,
                what="Confirm the Bw horizon (stable granular structure and diffuse transition).",
                why="Separates Latossolos from orders with Bt/Bn when the profile is deep.",
                expected_impact=ExpectedImpact.RAISE_CONFIDENCE,
            ),
        ),
        SoilOrder.NITOSSOLOS: (
            NextStep(
                action=StepAction.FIELD_CHECK,
                what="Confirm the Bn horizon (nitic faces and strong subangular blocky structure).",
                why="Avoids confusion with Bt when clay is high but nitic features are unconfirmed.",
                expected_impact=ExpectedImpact.RAISE_CONFIDENCE,
            ),
        ),
    }
)


def build_order_confirmation_steps(order: SoilOrder | str) -> list[NextStep]:
    """Next steps that would confirm ``order``; empty for other orders.

    Args:
        order: A SoilOrder, its value, or any other label (e.g. the
            undetermined result of the contract)

    Returns:
        List of NextStep copies
    """
    try:
        soil_order = SoilOrder(order)
    except ValueError:
        return []
    return [step.model_copy() for step in _CONFIRMATION_STEPS.get(soil_order, ())]
