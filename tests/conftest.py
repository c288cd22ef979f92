"""Pytest configuration and shared fixtures."""

import numpy as np
import pytest

from config import SimulationConfig
from particle import ParticleStore


@pytest.fixture
def rng():
    """Seeded generator so every test sees the same particles."""
    return np.random.default_rng(1234)


@pytest.fixture
def small_config():
    """An 800x600 area with no drag and a handful of particles."""
    return SimulationConfig(width=800, height=600, particle_count=50, damping=0.0)


@pytest.fixture
def two_bodies(small_config):
    """Masses 10 and 5, 100 units apart on a horizontal line, at rest."""
    return ParticleStore.from_arrays(
        small_config.area,
        positions=[[100.0, 300.0], [200.0, 300.0]],
        velocities=[[0.0, 0.0], [0.0, 0.0]],
        masses=[10.0, 5.0],
    )


@pytest.fixture
def make_store():
    """Factory building a ParticleStore around explicit positions and masses."""
    def factory(config, positions, masses, velocities=None):
        positions = np.asarray(positions, dtype=np.float64)
        if velocities is None:
            velocities = np.zeros_like(positions)
        return ParticleStore.from_arrays(config.area, positions, velocities, masses)
    return factory
