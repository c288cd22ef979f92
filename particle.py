# particle.py

import logging
from typing import NamedTuple

import numpy as np

import constants

logger = logging.getLogger("nbody_sim")


class Particle(NamedTuple):
    """By-value snapshot of a single particle."""
    x: float
    y: float
    vx: float
    vy: float
    m: float


class ParticleStore:
    """
    Holds every particle as a Structure of Arrays.

    Data Contract:
    - Inputs:
        - bounds (tuple): The (width, height) of the simulation area.
        - rng (np.random.Generator): The master seeded random number generator.
    - Outputs: None. The arrays are mutated in place by the solvers and the integrator.
    - Side Effects: resize() replaces every array at once.
    - Invariants: positions (n, 2), velocities (n, 2) and masses (n,) always share
      the same n. Masses are initialized > 0.
    """
    def __init__(self, bounds: tuple, rng: np.random.Generator, num_particles: int = 0):
        self.bounds = np.array(bounds, dtype=np.float64)
        self.rng = rng
        self.positions = np.zeros((0, 2), dtype=np.float64)
        self.velocities = np.zeros((0, 2), dtype=np.float64)
        self.masses = np.zeros(0, dtype=np.float64)
        self.resize(num_particles)

    def __len__(self):
        return self.masses.shape[0]

    @property
    def num_particles(self):
        return self.masses.shape[0]

    def resize(self, n: int):
        """
        Discards all particles and initializes exactly n new ones.

        Positions are uniform inside the padded interior of the area. Velocities
        are tangential to the offset from the center and grow with it, which
        starts the cloud rotating. Masses are skewed toward the low end and grow
        with distance from the center along the diagonal.
        """
        if n < 0:
            raise ValueError(f"Particle count must be >= 0, got {n}")
        n = int(n)

        u = self.rng.random(n)
        w = self.rng.random(n)
        xi = self.rng.random(n)

        positions = np.empty((n, 2), dtype=np.float64)
        positions[:, 0] = (u * constants.INIT_INTERIOR + constants.INIT_PADDING) * self.bounds[0]
        positions[:, 1] = (w * constants.INIT_INTERIOR + constants.INIT_PADDING) * self.bounds[1]

        # Offsets from the center in normalized coordinates
        ox = u - 0.5
        oy = w - 0.5
        radius = np.sqrt(ox**2 + oy**2)
        angle = np.arctan2(oy, ox) + constants.INIT_ANGLE_OFFSET

        velocities = np.empty((n, 2), dtype=np.float64)
        velocities[:, 0] = radius * constants.ORBITAL_SPEED_SCALE * np.sin(angle)
        velocities[:, 1] = -radius * constants.ORBITAL_SPEED_SCALE * np.cos(angle)

        masses = 3.0 * xi**3 + 1.5 * (ox + oy)**4 + 2.0

        # Swap all arrays in together so readers never see mismatched lengths
        self.positions, self.velocities, self.masses = positions, velocities, masses

        logger.info(f"ParticleStore initialized with {n} particles.")

    # --- Per-index accessors ---

    def get(self, i: int) -> Particle:
        return Particle(
            float(self.positions[i, 0]), float(self.positions[i, 1]),
            float(self.velocities[i, 0]), float(self.velocities[i, 1]),
            float(self.masses[i]),
        )

    def set(self, i: int, particle: Particle):
        self.positions[i, 0] = particle.x
        self.positions[i, 1] = particle.y
        self.velocities[i, 0] = particle.vx
        self.velocities[i, 1] = particle.vy
        self.masses[i] = particle.m

    # --- Per-field views (writes go straight into the store) ---

    @property
    def x(self):
        return self.positions[:, 0]

    @property
    def y(self):
        return self.positions[:, 1]

    @property
    def vx(self):
        return self.velocities[:, 0]

    @property
    def vy(self):
        return self.velocities[:, 1]

    @property
    def m(self):
        return self.masses

    @classmethod
    def from_arrays(cls, bounds, positions, velocities, masses, rng=None):
        """Builds a store around explicit arrays instead of the random initialization."""
        store = cls(bounds, rng if rng is not None else np.random.default_rng())
        positions = np.array(positions, dtype=np.float64).reshape(-1, 2)
        velocities = np.array(velocities, dtype=np.float64).reshape(-1, 2)
        masses = np.array(masses, dtype=np.float64).reshape(-1)
        if not (positions.shape[0] == velocities.shape[0] == masses.shape[0]):
            raise ValueError("positions, velocities and masses must have the same length")
        store.positions, store.velocities, store.masses = positions, velocities, masses
        return store

    # --- Renderer views and diagnostics ---

    def speeds(self):
        """Velocity magnitude of every particle."""
        return np.sqrt(np.sum(self.velocities**2, axis=1))

    def total_mass(self):
        return float(np.sum(self.masses))

    def total_kinetic_energy(self):
        """
        Calculates the total kinetic energy of the system.
        KE = sum(0.5 * m * v^2)
        """
        vel_sq = np.sum(self.velocities**2, axis=1)
        return float(np.sum(0.5 * self.masses * vel_sq))
