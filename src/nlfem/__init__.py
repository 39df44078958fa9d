"""nlfem: nonlinear finite-element solid dynamics core."""

from .material_point import MaterialPoint
from .constitutive import (
    PlaneStrain,
    PlaneStress,
    PlaneStressPlasticity,
    PlaneStrainPlasticity,
    Elasticity1D,
    Plasticity1D,
    ExternalResponse,
)
from .material_factory import make_material
from .elements import SmallStrainContinuum, SmallStrainTruss
from .domain import Domain
from .globaldata import GlobalData
from .assembly import assemble_internal_force, assemble_stiff_and_force, assemble_mass_matrix
from .convergence import NewtonConvergence
from .config import NewmarkConfig, generalized_alpha_parameters
from .solvers import explicit_solver, newmark_solver, static_solver, adaptive_solver

__all__ = [
    "MaterialPoint",
    "PlaneStrain", "PlaneStress", "PlaneStressPlasticity", "PlaneStrainPlasticity",
    "Elasticity1D", "Plasticity1D", "ExternalResponse",
    "make_material",
    "SmallStrainContinuum", "SmallStrainTruss",
    "Domain", "GlobalData",
    "assemble_internal_force", "assemble_stiff_and_force", "assemble_mass_matrix",
    "NewtonConvergence",
    "NewmarkConfig", "generalized_alpha_parameters",
    "explicit_solver", "newmark_solver", "static_solver", "adaptive_solver",
]
