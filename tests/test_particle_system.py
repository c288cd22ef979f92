"""Tests for Simulation: stepping, pending configuration and containment."""

import logging

import numpy as np
import pytest

from config import SolverMode
from particle_system import Simulation


class TestStep:
    """Tests for a full simulation step."""

    @pytest.mark.parametrize("mode", [SolverMode.NAIVE, SolverMode.BARNES_HUT])
    def test_steps_run(self, rng, small_config, mode):
        """Several steps keep the particle count and a consistent tree."""
        sim = Simulation(small_config.with_changes(solver_mode=mode), rng)
        masses = sim.particles.masses.copy()
        for _ in range(5):
            sim.step(16.0)
        assert len(sim.particles) == 50
        assert sim.tick == 5
        np.testing.assert_array_equal(sim.particles.masses, masses)
        assert np.all(np.isfinite(sim.particles.positions))
        assert sim.tree.root_mass == pytest.approx(masses.sum())

    @pytest.mark.parametrize("mode", [SolverMode.NAIVE, SolverMode.BARNES_HUT])
    def test_two_body_scenario(self, small_config, two_bodies, mode):
        """One step of the two-body scenario gives body 1 a 0.008 kick."""
        sim = Simulation.from_particles(small_config.with_changes(solver_mode=mode, theta=0.7), two_bodies)
        sim.step(16.0)
        assert sim.particles.vx[0] == pytest.approx(0.008)
        assert sim.particles.vx[1] == pytest.approx(-0.016)
        # Positions advanced with the new velocities
        assert sim.particles.x[0] == pytest.approx(100.0 + 0.008 * 0.016 * 0.1)

    def test_from_particles_reports_store_size(self, small_config, two_bodies, caplog):
        """Wrapping a store logs and configures its real particle count."""
        sim_logger = logging.getLogger("nbody_sim")
        sim_logger.addHandler(caplog.handler)
        try:
            with caplog.at_level(logging.INFO, logger="nbody_sim"):
                sim = Simulation.from_particles(small_config, two_bodies)
        finally:
            sim_logger.removeHandler(caplog.handler)

        assert sim.particles is two_bodies
        assert sim.config.particle_count == 2
        created = [r.getMessage() for r in caplog.records if "Simulation created" in r.getMessage()]
        assert created and created[-1].startswith("Simulation created: 2 particles")

    def test_max_velocity_exposed(self, rng, small_config):
        """The step reports the largest velocity components for coloring."""
        sim = Simulation(small_config, rng)
        sim.step(16.0)
        assert sim.max_velocity_x == pytest.approx(np.abs(sim.particles.vx).max())
        assert sim.max_velocity_y == pytest.approx(np.abs(sim.particles.vy).max())

    def test_pointer_impulse_applied(self, small_config, make_store):
        """A moving pointer over a particle pushes it during the step."""
        store = make_store(small_config, [[400.0, 300.0], [100.0, 100.0]], [1e-9, 1e-9])
        config = small_config.with_changes(gravity_constant=0.0)
        sim = Simulation.from_particles(config, store)
        sim.pointer.move(400.0, 300.0, 2.0, 0.0)
        sim.step(10.0)
        assert sim.particles.vx[0] == pytest.approx(2.0 * 150.0 / 10.0)
        assert sim.particles.vx[1] == 0.0

    @pytest.mark.parametrize("dt", [-1.0, float("nan"), float("inf")])
    def test_invalid_dt(self, rng, small_config, dt):
        """Negative or non-finite frame durations are refused."""
        sim = Simulation(small_config, rng)
        with pytest.raises(ValueError):
            sim.step(dt)

    def test_empty_simulation(self, rng, small_config):
        """A simulation with no particles still steps."""
        sim = Simulation(small_config.with_changes(particle_count=0), rng)
        sim.step(16.0)
        assert len(sim.particles) == 0
        assert sim.max_velocity_x == 0.0


class TestPendingConfig:
    """Tests for configuration applied at step boundaries."""

    def test_change_waits_for_next_step(self, rng, small_config):
        """A requested theta is only in effect once the next step starts."""
        sim = Simulation(small_config, rng)
        sim.request_config(theta=0.2)
        assert sim.config.theta == 0.7
        assert sim.pending_config.theta == 0.2
        sim.step(16.0)
        assert sim.config.theta == 0.2
        assert sim.pending_config is None

    def test_particle_count_resizes(self, rng, small_config):
        """Changing the particle count reinitializes the whole set."""
        sim = Simulation(small_config, rng)
        old_positions = sim.particles.positions.copy()
        sim.request_config(particle_count=80)
        assert len(sim.particles) == 50
        sim.step(16.0)
        assert len(sim.particles) == 80
        assert not np.array_equal(sim.particles.positions[:50], old_positions)

    def test_requests_accumulate(self, rng, small_config):
        """Several requests before a step are applied together."""
        sim = Simulation(small_config, rng)
        sim.request_config(theta=0.3)
        sim.request_config(leaf_capacity=4, solver_mode="naive")
        sim.step(16.0)
        assert sim.config.theta == 0.3
        assert sim.config.leaf_capacity == 4
        assert sim.config.solver_mode is SolverMode.NAIVE

    def test_invalid_request_rejected_whole(self, rng, small_config):
        """An invalid request raises and queues nothing."""
        sim = Simulation(small_config, rng)
        with pytest.raises(ValueError):
            sim.request_config(theta=0.1, leaf_capacity=0)
        assert sim.pending_config is None

    @pytest.mark.parametrize("changes", [{"leaf_capacity": 2.5}, {"particle_count": 10.5}])
    def test_fractional_count_rejected_before_step(self, rng, small_config, changes):
        """A fractional count is refused up front and the simulation keeps stepping."""
        sim = Simulation(small_config, rng)
        with pytest.raises(ValueError):
            sim.request_config(**changes)
        assert sim.pending_config is None
        sim.step(16.0)
        assert sim.config == small_config
        assert len(sim.particles) == sim.config.particle_count

    def test_render_options_apply_immediately(self, rng, small_config):
        """Render-only flags change at once and are not physics options."""
        sim = Simulation(small_config, rng)
        sim.update_render_options(show_tree_overlay=False)
        assert sim.config.show_tree_overlay is False
        with pytest.raises(ValueError):
            sim.update_render_options(theta=0.1)

    def test_leaf_capacity_change_rebuilds(self, rng, small_config):
        """The next tree is built with the new leaf capacity."""
        sim = Simulation(small_config, rng)
        sim.request_config(leaf_capacity=1)
        sim.step(16.0)
        assert sim.tree.capacity == 1
        assert sim.tree.num_active_nodes > 1


class TestNonFiniteContainment:
    """Tests for rolling back runaway particles."""

    def test_nan_velocity_is_reset(self, rng, small_config):
        """A particle whose velocity went NaN is put back and stopped."""
        sim = Simulation(small_config, rng)
        before = sim.particles.positions[3].copy()
        sim.particles.vx[3] = np.nan
        sim.step(16.0)
        np.testing.assert_array_equal(sim.particles.positions[3], before)
        np.testing.assert_array_equal(sim.particles.velocities[3], [0.0, 0.0])
        assert sim.reset_count == 1
        assert np.all(np.isfinite(sim.particles.positions))
        assert np.isfinite(sim.max_velocity_x)
