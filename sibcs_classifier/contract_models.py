"""
Request and response models for the classification contract.

The contract is the data-entry facing envelope around the engine: it
carries units and provenance, and its response summarises the ranked
candidates for display.
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from sibcs_classifier.checklist import NextStep
from sibcs_classifier.models import (
    CandidateMode,
    Evidence,
    FieldInput,
    TriState,
    coerce_optional_number,
)

UNDETERMINED_ORDER = "Indeterminada"


class SourceType(str, Enum):
    MANUAL = "manual"
    PDF = "pdf"
    CSV = "csv"
    API = "api"


class PhosphorusMethod(str, Enum):
    MEHLICH = "mehlich"
    RESIN = "resin"
    OTHER = "other"
    NOT_REPORTED = "not_reported"


class CationUnit(str, Enum):
    CMOLC_DM3 = "cmolc_dm3"
    MMOLC_DM3 = "mmolc_dm3"


class ContentUnit(str, Enum):
    PERCENT = "percent"
    G_KG = "g_kg"


class BiomeHint(str, Enum):
    AMAZONIA = "amazonia"
    CERRADO = "cerrado"
    CAATINGA = "caatinga"
    MATA_ATLANTICA = "mata_atlantica"
    PAMPA = "pampa"
    PANTANAL = "pantanal"


class RequestUnits(BaseModel):
    cations: CationUnit = CationUnit.CMOLC_DM3
    p: str = "mg_dm3"
    om: ContentUnit = ContentUnit.PERCENT
    texture: ContentUnit = ContentUnit.PERCENT


class RequestLocation(BaseModel):
    country: str = "BR"
    state: str | None = None
    municipality: str | None = None
    biome_hint: BiomeHint | None = None


class RequestMeta(BaseModel):
    """Provenance and units of a request."""

    engine_version: str = "1.0"
    source: SourceType = SourceType.MANUAL
    lab_name: str | None = None
    lab_method_p: PhosphorusMethod = PhosphorusMethod.NOT_REPORTED
    units: RequestUnits = Field(default_factory=RequestUnits)
    location: RequestLocation = Field(default_factory=RequestLocation)


class LayerTexture(BaseModel):
    clay_pct: float | None = None
    sand_pct: float | None = None
    silt_pct: float | None = None

    @field_validator("*", mode="before")
    @classmethod
    def _unknown_when_not_finite(cls, v: Any) -> float | None:
        return coerce_optional_number(v)


class LayerChemistry(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    ph_h2o: float | None = None
    ph_kcl: float | None = None
    ca: float | None = None
    mg: float | None = None
    k: float | None = None
    na: float | None = None
    al: float | None = None
    h_al: float | None = None
    p: float | None = None
    om_pct: float | None = None
    c_org_pct: float | None = None
    ec_ds_m: float | None = Field(None, alias="ec_dS_m")

    @field_validator("*", mode="before")
    @classmethod
    def _unknown_when_not_finite(cls, v: Any) -> float | None:
        return coerce_optional_number(v)


class RequestLayer(BaseModel):
    """Layer as typed in by the user; depths may still be invalid."""

    top_cm: float | None = None
    bottom_cm: float | None = None
    texture: LayerTexture = Field(default_factory=LayerTexture)
    chem: LayerChemistry = Field(default_factory=LayerChemistry)

    @field_validator("top_cm", "bottom_cm", mode="before")
    @classmethod
    def _unknown_when_not_finite(cls, v: Any) -> float | None:
        return coerce_optional_number(v)


class RequestField(FieldInput):
    """Field observations plus checklist items the engine does not score."""

    high_gravel_stoniness: TriState = TriState.UNKNOWN

    @field_validator("high_gravel_stoniness", mode="before")
    @classmethod
    def _coerce_stoniness(cls, v: Any) -> TriState:
        return TriState.coerce(v)


class ClassificationRequest(BaseModel):
    meta: RequestMeta = Field(default_factory=RequestMeta)
    lab_layers: list[RequestLayer] = Field(default_factory=list)
    field: RequestField = Field(default_factory=RequestField)


class ValidationReport(BaseModel):
    valid: bool
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


class AlertType(str, Enum):
    ACIDITY = "acidity"
    AL_TOXICITY = "al_toxicity"
    LOW_P = "low_p"
    LOW_CTC = "low_ctc"
    WATERLOGGING = "waterlogging"
    EROSION_RISK = "erosion_risk"
    SALINITY = "salinity"
    SODICITY = "sodicity"
    LOW_WATER_STORAGE = "low_water_storage"


class AlertSeverity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class AgronomicAlert(BaseModel):
    type: AlertType
    severity: AlertSeverity
    message: str
    based_on: list[str]


class PrimaryResult(BaseModel):
    order: str = Field(description="SoilOrder value or 'Indeterminada'")
    confidence: int = Field(ge=0, le=100)
    mode: CandidateMode
    explanation_short: str


class Alternative(BaseModel):
    order: str
    confidence: int = Field(ge=0, le=100)
    why_competes: str


class MissingItem(BaseModel):
    key: str
    detail: str


class AuditMetrics(BaseModel):
    abrupt_textural_change: bool | None = None
    sb: float | None = None
    t_ctc: float | None = None
    v_pct: float | None = None
    m_pct: float | None = None
    layer_used_for_bt: str | None = None


class Audit(BaseModel):
    positive_evidence: list[Evidence] = Field(default_factory=list)
    conflicts: list[Evidence] = Field(default_factory=list)
    missing_critical: list[MissingItem] = Field(default_factory=list)
    derived_metrics: AuditMetrics = Field(default_factory=AuditMetrics)


class ChecklistSummary(BaseModel):
    question_count: int
    pending_questions: list[str] = Field(
        default_factory=list, description="Ids of questions still unanswered"
    )
    order_confirmation_focus: list[NextStep] = Field(default_factory=list)


class ClassificationResponse(BaseModel):
    """Display-ready summary of one classification."""

    primary: PrimaryResult
    alternatives: list[Alternative] = Field(default_factory=list)
    audit: Audit
    agronomic_alerts: list[AgronomicAlert] = Field(default_factory=list)
    next_steps: list[NextStep] = Field(default_factory=list)
    checklist: ChecklistSummary
