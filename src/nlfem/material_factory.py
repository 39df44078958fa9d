"""Material factory.

Element property records select the constitutive model by ``prop["name"]``.
The name is resolved to a class once, when the element builds its
quadrature-point materials; no string dispatch happens during assembly.
"""

from __future__ import annotations

from typing import Any, Dict, Mapping, Tuple, Type

import numpy as np

from nlfem.constitutive import (
    Elasticity1D,
    ExternalResponse,
    PlaneStrain,
    PlaneStrainPlasticity,
    PlaneStress,
    PlaneStressPlasticity,
    Plasticity1D,
)

# name -> (class, required property keys, {class field: property key})
_REGISTRY: Dict[str, Tuple[Type, Tuple[str, ...], Dict[str, str]]] = {
    "PlaneStrain": (PlaneStrain, ("E", "nu"), {"E": "E", "nu": "nu", "rho": "rho"}),
    "PlaneStress": (PlaneStress, ("E", "nu"), {"E": "E", "nu": "nu", "rho": "rho"}),
    "PlaneStressPlasticity": (
        PlaneStressPlasticity,
        ("E", "nu", "sigmaY"),
        {"E": "E", "nu": "nu", "sigmaY": "sigmaY", "K": "K", "rho": "rho"},
    ),
    "PlaneStrainPlasticity": (
        PlaneStrainPlasticity,
        ("E", "nu", "sigmaY"),
        {"E": "E", "nu": "nu", "sigmaY": "sigmaY", "K": "K", "rho": "rho"},
    ),
    "Elasticity1D": (Elasticity1D, ("E",), {"E": "E", "rho": "rho"}),
    "Plasticity1D": (
        Plasticity1D,
        ("E", "sigmaY"),
        {"E": "E", "sigmaY": "sigmaY", "K": "K", "rho": "rho"},
    ),
    "NeuralNetwork1D": (
        ExternalResponse,
        ("model",),
        {"model": "model", "rho": "rho", "tangent_form": "tangent_form", "H0": "H0"},
    ),
    "NeuralNetwork2D": (
        ExternalResponse,
        ("model",),
        {"model": "model", "rho": "rho", "tangent_form": "tangent_form", "H0": "H0"},
    ),
}

ONE_DIMENSIONAL = frozenset({"Elasticity1D", "Plasticity1D", "NeuralNetwork1D"})


def material_names() -> Tuple[str, ...]:
    return tuple(_REGISTRY)


def make_material(prop: Mapping[str, Any]):
    """Instantiate the constitutive model selected in ``prop['name']``."""
    name = prop.get("name")
    if name not in _REGISTRY:
        raise ValueError(f"Unknown material name '{name}' (known: {', '.join(_REGISTRY)})")

    cls, required, fields = _REGISTRY[name]
    missing = [key for key in required if key not in prop]
    if missing:
        raise ValueError(f"Material '{name}' is missing property keys: {missing}")

    kwargs = {}
    for field_name, key in fields.items():
        if key in prop and prop[key] is not None:
            kwargs[field_name] = prop[key]
    for key in ("E", "nu", "sigmaY", "K", "rho"):
        if key in kwargs:
            kwargs[key] = float(kwargs[key])
    if "H0" in kwargs:
        kwargs["H0"] = np.asarray(kwargs["H0"], dtype=float)
    if cls is ExternalResponse:
        kwargs["nstrain"] = 1 if name in ONE_DIMENSIONAL else 3
    return cls(**kwargs)
