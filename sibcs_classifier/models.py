"""
Pydantic models for soil profile classification.

Inputs describe one profile (laboratory layers plus field observations);
outputs are the scored candidates for the thirteen SiBCS soil orders and
the profile-level metrics they were scored from. Absent or non-finite
readings are stored as ``None`` and mean "unknown", never zero.
"""

import math
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class TriState(str, Enum):
    """Field observation that may be confirmed, ruled out, or not observed."""

    UNKNOWN = "unknown"
    YES = "yes"
    NO = "no"

    @classmethod
    def coerce(cls, value: Any) -> "TriState":
        """Map loose input (bools, strings, None) onto the three states."""
        if isinstance(value, cls):
            return value
        if value is True:
            return cls.YES
        if value is False:
            return cls.NO
        if isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                return cls.UNKNOWN
        return cls.UNKNOWN


class WaterSaturation(str, Enum):
    """How often the profile is water saturated."""

    NEVER = "never"
    SOMETIMES = "sometimes"
    PERMANENT = "permanent"

    @classmethod
    def coerce(cls, value: Any) -> Any:
        """Normalize case and whitespace; None means the default, never.

        Unrecognised values pass through unchanged so validation rejects them.
        """
        if value is None:
            return cls.NEVER
        if isinstance(value, str):
            return value.strip().lower()
        return value


class CandidateMode(str, Enum):
    """Whether a decisive rule combination fired for a candidate."""

    DETERMINISTIC = "deterministic"
    PROBABILISTIC = "probabilistic"


class EvidenceKind(str, Enum):
    """Direction of a scoring rule."""

    POSITIVE = "positive"
    CONFLICT = "conflict"


class SoilOrder(str, Enum):
    """The thirteen first-level orders of the Brazilian soil classification."""

    ORGANOSSOLOS = "Organossolos"
    GLEISSOLOS = "Gleissolos"
    PLINTOSSOLOS = "Plintossolos"
    VERTISSOLOS = "Vertissolos"
    PLANOSSOLOS = "Planossolos"
    ESPODOSSOLOS = "Espodossolos"
    NEOSSOLOS = "Neossolos"
    CAMBISSOLOS = "Cambissolos"
    ARGISSOLOS = "Argissolos"
    LUVISSOLOS = "Luvissolos"
    NITOSSOLOS = "Nitossolos"
    LATOSSOLOS = "Latossolos"
    CHERNOSSOLOS = "Chernossolos"


def coerce_optional_number(value: Any) -> float | None:
    """Return a finite float, or None for anything absent or unusable."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number):
        return None
    return number


def format_depth(value: float) -> str:
    """Render a depth without a trailing '.0' for whole centimetres."""
    if float(value).is_integer():
        return str(int(value))
    return f"{value:g}"


class LayerInput(BaseModel):
    """One sampled depth interval with its laboratory readings."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    top_cm: float = Field(description="Top of the interval (cm)")
    bottom_cm: float = Field(description="Bottom of the interval (cm)")

    # Texture
    clay_pct: float | None = Field(None, description="Clay content (%)")
    sand_pct: float | None = Field(None, description="Sand content (%)")
    silt_pct: float | None = Field(None, description="Silt content (%)")

    # Chemistry, exchangeable cations in cmolc/dm3
    ph_h2o: float | None = Field(None, description="pH in water")
    ca: float | None = Field(None, description="Exchangeable calcium")
    mg: float | None = Field(None, description="Exchangeable magnesium")
    k: float | None = Field(None, description="Exchangeable potassium")
    na: float | None = Field(None, description="Exchangeable sodium")
    al: float | None = Field(None, description="Exchangeable aluminium")
    h_al: float | None = Field(None, description="Potential acidity (H+Al)")
    p: float | None = Field(None, description="Available phosphorus (mg/dm3)")
    om_pct: float | None = Field(None, description="Organic matter (%)")
    ec_ds_m: float | None = Field(
        None, alias="ec_dS_m", description="Electrical conductivity (dS/m)"
    )

    @field_validator(
        "clay_pct",
        "sand_pct",
        "silt_pct",
        "ph_h2o",
        "ca",
        "mg",
        "k",
        "na",
        "al",
        "h_al",
        "p",
        "om_pct",
        "ec_ds_m",
        mode="before",
    )
    @classmethod
    def _unknown_when_not_finite(cls, v: Any) -> float | None:
        return coerce_optional_number(v)

    @property
    def label(self) -> str:
        """Depth interval label such as '20-60'."""
        return f"{format_depth(self.top_cm)}-{format_depth(self.bottom_cm)}"

    @property
    def thickness_cm(self) -> float:
        return self.bottom_cm - self.top_cm


class MorphologicalDiagnostics(BaseModel):
    """Diagnostic horizons identified in the field description."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    has_bw: TriState = Field(TriState.UNKNOWN, alias="has_Bw")
    has_bt: TriState = Field(TriState.UNKNOWN, alias="has_Bt")
    has_bi: TriState = Field(TriState.UNKNOWN, alias="has_Bi")
    has_bn: TriState = Field(TriState.UNKNOWN, alias="has_Bn")
    has_a_chernozemic: TriState = Field(TriState.UNKNOWN, alias="has_A_chernozemic")

    @field_validator("*", mode="before")
    @classmethod
    def _coerce_tri_state(cls, v: Any) -> TriState:
        return TriState.coerce(v)

    @property
    def b_horizons(self) -> tuple[TriState, TriState, TriState, TriState]:
        """Bw, Bt, Bi and Bn flags, in that order."""
        return (self.has_bw, self.has_bt, self.has_bi, self.has_bn)


_FIELD_TRI_STATES = (
    "gley_matrix",
    "mottles",
    "plinthite",
    "petroplinthite_continuous",
    "seasonal_cracks",
    "slickensides",
    "eluvial_e_horizon",
    "dense_planic_layer",
    "fluvial_stratification",
)


class FieldInput(BaseModel):
    """Field observations recorded once per profile."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    profile_depth_cm: float | None = Field(None, description="Described profile depth")
    contact_rock_cm: float | None = Field(None, description="Depth to rock contact")
    water_saturation: WaterSaturation = WaterSaturation.NEVER

    gley_matrix: TriState = TriState.UNKNOWN
    mottles: TriState = TriState.UNKNOWN
    plinthite: TriState = Field(TriState.UNKNOWN, alias="plinthite_or_petroplinthite")
    petroplinthite_continuous: TriState = TriState.UNKNOWN
    seasonal_cracks: TriState = TriState.UNKNOWN
    slickensides: TriState = TriState.UNKNOWN
    eluvial_e_horizon: TriState = Field(TriState.UNKNOWN, alias="eluvial_E_horizon")
    dense_planic_layer: TriState = Field(TriState.UNKNOWN, alias="dense_planic_layer_Bpl")
    fluvial_stratification: TriState = TriState.UNKNOWN

    histic_thickness_cm: float | None = Field(
        None, description="Thickness of the organic (histic) layer (cm)"
    )
    morph_diag: MorphologicalDiagnostics = Field(
        default_factory=MorphologicalDiagnostics
    )

    @field_validator(
        "profile_depth_cm", "contact_rock_cm", "histic_thickness_cm", mode="before"
    )
    @classmethod
    def _unknown_when_not_finite(cls, v: Any) -> float | None:
        return coerce_optional_number(v)

    @field_validator("water_saturation", mode="before")
    @classmethod
    def _normalize_saturation(cls, v: Any) -> Any:
        return WaterSaturation.coerce(v)

    @field_validator(*_FIELD_TRI_STATES, mode="before")
    @classmethod
    def _coerce_tri_state(cls, v: Any) -> TriState:
        return TriState.coerce(v)


class SoilProfile(BaseModel):
    """Complete classifier input."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    layers: list[LayerInput] = Field(default_factory=list, alias="lab_layers")
    field: FieldInput = Field(default_factory=FieldInput)


class ChemistryIndicators(BaseModel):
    """Exchange-complex indicators of a single layer."""

    model_config = ConfigDict(frozen=True)

    sb: float | None = Field(None, description="Sum of bases (Ca+Mg+K+Na)")
    t: float | None = Field(None, description="Cation exchange capacity at pH 7")
    v_pct: float | None = Field(None, description="Base saturation (%)")
    m_pct: float | None = Field(None, description="Aluminium saturation (%)")


class Evidence(BaseModel):
    """One applied scoring rule."""

    model_config = ConfigDict(frozen=True)

    key: str
    detail: str
    score_delta: int


class Candidate(BaseModel):
    """Scored hypothesis for one soil order."""

    order: SoilOrder
    score: int
    cap: int = Field(ge=0, le=100)
    effective_cap: int = Field(ge=0, le=100)
    mode: CandidateMode = CandidateMode.PROBABILISTIC
    positives: list[Evidence] = Field(default_factory=list)
    conflicts: list[Evidence] = Field(default_factory=list)
    missing_critical: list[str] = Field(default_factory=list)

    def add_positive(self, key: str, detail: str, delta: int) -> None:
        self.score += delta
        self.positives.append(Evidence(key=key, detail=detail, score_delta=delta))

    def add_conflict(self, key: str, detail: str, delta: int) -> None:
        self.score += delta
        self.conflicts.append(Evidence(key=key, detail=detail, score_delta=delta))

    def add_missing(self, detail: str) -> None:
        if detail not in self.missing_critical:
            self.missing_critical.append(detail)

    @property
    def missing_count(self) -> int:
        return len(self.missing_critical)


class DerivedMetrics(BaseModel):
    """Profile-level indicators shared by the order evaluators."""

    model_config = ConfigDict(frozen=True)

    abrupt_textural_change: bool | None = None
    median_clay_pct: float | None = None
    clay_all_le_15: bool | None = None
    texture_homogeneous: bool | None = None
    depth_cm: float | None = None

    # Surface layer snapshot
    ph_surface: float | None = None
    om_surface_pct: float | None = None
    sand_surface_pct: float | None = None
    v_pct_surface: float | None = None

    # Diagnostic sub-surface layer
    sb_bt: float | None = None
    t_bt: float | None = None
    v_pct_bt: float | None = None
    m_pct_bt: float | None = None
    bt_layer_used: str | None = None

    any_b_diag_present: bool | None = None


class ClassificationResult(BaseModel):
    """Ranked candidates for all thirteen orders plus the derived metrics."""

    ranked: list[Candidate]
    derived: DerivedMetrics

    @property
    def top(self) -> Candidate:
        return self.ranked[0]

    def candidate(self, order: SoilOrder | str) -> Candidate:
        """Look up the candidate for one order."""
        wanted = SoilOrder(order)
        for candidate in self.ranked:
            if candidate.order == wanted:
                return candidate
        raise KeyError(wanted.value)
