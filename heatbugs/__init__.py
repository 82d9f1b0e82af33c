"""Heatbugs: bugs seeking their ideal temperature on a toroidal heat field."""

from heatbugs.heatbugs_model import (
    Bug,
    HeatbugsModel,
    MovementKernel,
    Params,
    RandomSource,
    World,
    comp_world_heat,
)

__all__ = [
    "Bug",
    "HeatbugsModel",
    "MovementKernel",
    "Params",
    "RandomSource",
    "World",
    "comp_world_heat",
]
