# particle_system.py

import logging
import math

import numpy as np

import integrator
from config import RENDER_OPTIONS, SimulationConfig
from impulse import PointerState, inject_impulse
from particle import ParticleStore
from quadtree import BoundingBox, QuadTree
from solvers import apply_forces

logger = logging.getLogger("nbody_sim")


class Simulation:
    """
    Owns the particles, the quadtree and the configuration, and advances them
    one step at a time.

    Data Contract:
    - Inputs:
        - config (SimulationConfig): The starting configuration.
        - rng (np.random.Generator): The master seeded random number generator.
        - particles (ParticleStore, optional): An existing store to simulate.
          Its length overrides config.particle_count.
    - Outputs: None. step() mutates the particle store in place.
    - Side Effects: Rebuilds the quadtree every step. Resizing replaces every
      particle.
    - Invariants: A step always runs to completion with a single configuration.
      Configuration requested between steps is validated immediately and
      takes effect at the start of the next step.
    """
    def __init__(self, config: SimulationConfig, rng: np.random.Generator = None, particles: ParticleStore = None):
        if particles is not None:
            config = config.with_changes(particle_count=len(particles))
            rng = particles.rng if rng is None else rng
        self.config = config
        self.rng = rng if rng is not None else np.random.default_rng()
        self.pointer = PointerState()
        self._pending = None

        if particles is None:
            particles = ParticleStore(config.area, self.rng, config.particle_count)
        self.particles = particles
        self.tree = self._make_tree(config)

        self.tick = 0
        self.max_velocity_x = 0.0
        self.max_velocity_y = 0.0
        self.reset_count = 0

        logger.info(f"Simulation created: {config.particle_count} particles, solver={config.solver_mode.value}, "
                    f"theta={config.theta}, leaf_capacity={config.leaf_capacity}, area={config.width}x{config.height}.")

    @staticmethod
    def _make_tree(config):
        boundary = BoundingBox(x=0.0, y=0.0, width=float(config.width), height=float(config.height))
        return QuadTree(boundary, capacity=config.leaf_capacity, max_depth=config.max_depth)

    @classmethod
    def from_particles(cls, config: SimulationConfig, particles: ParticleStore):
        """Wraps an existing particle store, ignoring config.particle_count."""
        return cls(config, particles.rng, particles=particles)

    # --- Configuration ---

    def request_config(self, **changes):
        """
        Queues configuration changes for the start of the next step.

        Changes are validated against the current (and already pending)
        configuration right away; an invalid request raises ValueError and
        leaves the queue as it was.
        """
        base = self._pending if self._pending is not None else self.config
        self._pending = base.with_changes(**changes)
        logger.debug(f"Configuration change queued: {changes}")

    def update_render_options(self, **changes):
        """Render-only options don't affect the physics and apply immediately."""
        not_render = set(changes) - RENDER_OPTIONS
        if not_render:
            raise ValueError(f"Not render options: {sorted(not_render)}")
        self.config = self.config.with_changes(**changes)
        if self._pending is not None:
            self._pending = self._pending.with_changes(**changes)

    @property
    def pending_config(self):
        return self._pending

    def _apply_pending_config(self):
        if self._pending is None:
            return
        old, new = self.config, self._pending
        self._pending = None
        self.config = new

        if (new.width, new.height, new.max_depth) != (old.width, old.height, old.max_depth):
            self.tree = self._make_tree(new)
            self.particles.bounds = np.array(new.area, dtype=np.float64)
        if new.particle_count != old.particle_count:
            self.particles.resize(new.particle_count)

        changed = {
            name: getattr(new, name) for name in new.__dataclass_fields__
            if getattr(new, name) != getattr(old, name)
        }
        logger.info(f"Configuration applied at tick {self.tick}: {changed}")

    # --- Stepping ---

    def step(self, dt: float):
        """
        Advances the simulation by one frame of dt milliseconds:
        rebuild the tree, apply gravity, apply the pointer impulse, integrate.
        """
        if not math.isfinite(dt) or dt < 0:
            raise ValueError(f"dt must be a finite value >= 0, got {dt}")

        self._apply_pending_config()
        config = self.config
        particles = self.particles
        previous_positions = particles.positions.copy()

        self.tree.build(particles.positions, particles.masses, config.leaf_capacity)

        apply_forces(config.solver_mode, particles, self.tree, config, dt)

        inject_impulse(
            self.tree, particles.positions, particles.velocities, self.pointer,
            config.interaction_half_size, config.impulse_scale, dt
        )

        self.max_velocity_x, self.max_velocity_y = integrator.integrate(
            particles.positions, particles.velocities, config.area,
            dt, config.timestep_multiplier, config.damping
        )

        reset = integrator.contain_non_finite(particles.positions, particles.velocities, previous_positions)
        if reset:
            self.reset_count += reset
            self.max_velocity_x, self.max_velocity_y = integrator.max_abs_velocity(particles.velocities)
            logger.warning(f"Tick {self.tick}: {reset} particle(s) reached a non-finite state and were reset.")

        if self.tick % config.diagnostics_interval == 0:
            logger.debug(
                f"Tick={self.tick}, "
                f"Particles={len(particles)}, "
                f"Nodes={self.tree.num_active_nodes}, "
                f"Depth={self.tree.max_depth_reached()}, "
                f"Kinetic={particles.total_kinetic_energy():.2f}, "
                f"MaxV=({self.max_velocity_x:.1f}, {self.max_velocity_y:.1f})"
            )
        self.tick += 1
