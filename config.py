# config.py

"""
Simulation Configuration

Runtime-tunable parameters for the N-body core, loaded from the 'simulation'
section of config.json. Static values that never change between runs live in
constants.py instead.

Data Contract:
- SimulationConfig is immutable. Changes are made by building a new instance
  with with_changes(), which validates the result before returning it.
- Invalid values raise ValueError on construction. Nothing is ever partially
  applied.
"""

import dataclasses
import enum
import json
import math
import numbers
from typing import NamedTuple, Tuple

import numpy as np

import constants


class SolverMode(enum.Enum):
    """Force computation strategy, selected at step time."""
    NAIVE = "naive"
    BARNES_HUT = "barnes-hut"


class Attractor(NamedTuple):
    """A fixed, invisible point mass pulling on every particle."""
    x: float
    y: float
    m: float


# Options that only affect drawing; changing them never touches the physics.
RENDER_OPTIONS = frozenset({
    'show_particles', 'show_tree_overlay', 'show_center_of_mass', 'color_by_velocity',
})

# Counts and depths, which size arrays and index nodes.
INTEGER_OPTIONS = ('particle_count', 'leaf_capacity', 'max_depth', 'diagnostics_interval')


@dataclasses.dataclass(frozen=True)
class SimulationConfig:
    width: float = constants.WIDTH
    height: float = constants.HEIGHT
    particle_count: int = 500
    solver_mode: SolverMode = SolverMode.BARNES_HUT
    timestep_multiplier: float = 0.1
    leaf_capacity: int = 25
    theta: float = 0.7
    max_depth: int = 10
    gravity_constant: float = 1.0
    softening_pad: float = 50.0
    damping: float = 0.002
    interaction_half_size: float = 40.0
    impulse_scale: float = 150.0
    attractors: Tuple[Attractor, ...] = ()
    show_particles: bool = True
    show_tree_overlay: bool = True
    show_center_of_mass: bool = False
    color_by_velocity: bool = True
    diagnostics_interval: int = 100

    def __post_init__(self):
        for name in INTEGER_OPTIONS:
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, numbers.Integral):
                raise ValueError(f"{name} must be an integer, got {value!r}")
        if self.width <= 0 or self.height <= 0:
            raise ValueError(f"Simulation area must be positive, got {self.width}x{self.height}")
        if self.particle_count < 0:
            raise ValueError(f"particle_count must be >= 0, got {self.particle_count}")
        if not isinstance(self.solver_mode, SolverMode):
            raise ValueError(f"solver_mode must be a SolverMode, got {self.solver_mode!r}")
        if not self.timestep_multiplier > 0:
            raise ValueError(f"timestep_multiplier must be > 0, got {self.timestep_multiplier}")
        if self.leaf_capacity < 1:
            raise ValueError(f"leaf_capacity must be >= 1, got {self.leaf_capacity}")
        if not self.theta >= 0 or math.isinf(self.theta):
            raise ValueError(f"theta must be a finite value >= 0, got {self.theta}")
        if self.max_depth < 0:
            raise ValueError(f"max_depth must be >= 0, got {self.max_depth}")
        if not self.softening_pad > 0:
            raise ValueError(f"softening_pad must be > 0, got {self.softening_pad}")
        if not 0.0 <= self.damping <= 1.0:
            raise ValueError(f"damping must be within [0, 1], got {self.damping}")
        if self.interaction_half_size < 0:
            raise ValueError(f"interaction_half_size must be >= 0, got {self.interaction_half_size}")
        if self.diagnostics_interval < 1:
            raise ValueError(f"diagnostics_interval must be >= 1, got {self.diagnostics_interval}")
        for attractor in self.attractors:
            if attractor.m < 0:
                raise ValueError(f"Attractor mass must be >= 0, got {attractor.m}")

    @classmethod
    def from_dict(cls, values: dict) -> "SimulationConfig":
        """Build a config from the 'simulation' section of config.json."""
        return cls(**_coerce(values))

    def with_changes(self, **changes) -> "SimulationConfig":
        """Returns a validated copy with the given options replaced."""
        return dataclasses.replace(self, **_coerce(changes))

    def attractor_array(self) -> np.ndarray:
        """Attractors as a (k, 3) array of x, y, m for the force kernels."""
        if not self.attractors:
            return np.zeros((0, 3), dtype=np.float64)
        return np.array(self.attractors, dtype=np.float64)

    @property
    def area(self):
        return (self.width, self.height)


def _coerce(values: dict) -> dict:
    """Converts JSON-friendly values (strings, lists of dicts) into config types."""
    known = {field.name for field in dataclasses.fields(SimulationConfig)}
    unknown = set(values) - known
    if unknown:
        raise ValueError(f"Unknown configuration option(s): {sorted(unknown)}")

    values = dict(values)
    if 'solver_mode' in values and not isinstance(values['solver_mode'], SolverMode):
        try:
            values['solver_mode'] = SolverMode(values['solver_mode'])
        except ValueError:
            raise ValueError(f"Unknown solver mode: {values['solver_mode']!r}") from None
    if 'attractors' in values:
        values['attractors'] = tuple(
            a if isinstance(a, Attractor) else Attractor(float(a['x']), float(a['y']), float(a['m']))
            for a in values['attractors']
        )
    return values


def load_config(config_path='config.json'):
    """
    Reads config.json and returns (full config dict, SimulationConfig).
    The full dict is kept for the sections owned by other modules
    (run_id, logging, master_seed).
    """
    with open(config_path, 'r') as f:
        config = json.load(f)
    return config, SimulationConfig.from_dict(config['simulation'])
