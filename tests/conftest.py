"""
pytest configuration for sibcs-classifier tests.

Provides a reference profile (sandy surface over a clayey Bt, intermittent
saturation) in both engine and contract shapes.
"""

import copy
import logging
from typing import Any

import pytest

from sibcs_classifier.config import clear_config_cache

SURFACE_LAYER: dict[str, Any] = {
    "top_cm": 0,
    "bottom_cm": 20,
    "clay_pct": 18,
    "sand_pct": 72,
    "silt_pct": 10,
    "ph_h2o": 5.2,
    "ca": 1.2,
    "mg": 0.5,
    "k": 0.18,
    "na": 0.05,
    "al": 0.4,
    "h_al": 4.5,
    "p": 6,
    "om_pct": 2.1,
    "ec_dS_m": 0.2,
}

SUBSURFACE_LAYER: dict[str, Any] = {
    "top_cm": 20,
    "bottom_cm": 60,
    "clay_pct": 38,
    "sand_pct": 52,
    "silt_pct": 10,
    "ph_h2o": 4.9,
    "ca": 0.6,
    "mg": 0.3,
    "k": 0.1,
    "na": 0.06,
    "al": 0.8,
    "h_al": 5.2,
    "p": 3,
    "om_pct": 1.2,
    "ec_dS_m": 0.2,
}

FIELD: dict[str, Any] = {
    "profile_depth_cm": 180,
    "contact_rock_cm": 180,
    "water_saturation": "sometimes",
    "gley_matrix": "no",
    "mottles": "yes",
    "plinthite_or_petroplinthite": "no",
    "petroplinthite_continuous": "unknown",
    "seasonal_cracks": "no",
    "slickensides": "no",
    "eluvial_E_horizon": "no",
    "dense_planic_layer_Bpl": "no",
    "fluvial_stratification": "no",
    "histic_thickness_cm": 0,
    "morph_diag": {
        "has_Bw": "no",
        "has_Bt": "yes",
        "has_Bi": "no",
        "has_Bn": "no",
        "has_A_chernozemic": "no",
    },
}

_TEXTURE_KEYS = ("clay_pct", "sand_pct", "silt_pct")


def _as_request_layer(layer: dict[str, Any]) -> dict[str, Any]:
    chem = {
        key: value
        for key, value in layer.items()
        if key not in _TEXTURE_KEYS and key not in ("top_cm", "bottom_cm")
    }
    chem.update({"ph_kcl": None, "c_org_pct": None})
    return {
        "top_cm": layer["top_cm"],
        "bottom_cm": layer["bottom_cm"],
        "texture": {key: layer[key] for key in _TEXTURE_KEYS},
        "chem": chem,
    }


@pytest.fixture(autouse=True)
def _fresh_config():
    """Reload configuration for every test."""
    clear_config_cache()
    yield
    clear_config_cache()


@pytest.fixture
def profile_data() -> dict[str, Any]:
    """Reference profile in engine input shape (data-entry aliases)."""
    return {
        "lab_layers": [copy.deepcopy(SURFACE_LAYER), copy.deepcopy(SUBSURFACE_LAYER)],
        "field": copy.deepcopy(FIELD),
    }


@pytest.fixture
def request_data() -> dict[str, Any]:
    """Reference profile as a contract request."""
    field = copy.deepcopy(FIELD)
    field["high_gravel_stoniness"] = "no"
    return {
        "meta": {
            "engine_version": "1.0",
            "source": "manual",
            "lab_name": "Lab X",
            "lab_method_p": "mehlich",
            "units": {
                "cations": "cmolc_dm3",
                "p": "mg_dm3",
                "om": "percent",
                "texture": "percent",
            },
            "location": {
                "country": "BR",
                "state": "MG",
                "municipality": "Belo Horizonte",
                "biome_hint": "cerrado",
            },
        },
        "lab_layers": [
            _as_request_layer(SURFACE_LAYER),
            _as_request_layer(SUBSURFACE_LAYER),
        ],
        "field": field,
    }


@pytest.fixture(autouse=True)
def _reset_logging():
    """Drop root handlers so a closed CLI stream is never reused."""
    yield
    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()
