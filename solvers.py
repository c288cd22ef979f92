# solvers.py

"""
Gravity solvers.

Both strategies share one softened pairwise law. For an offset (dx, dy) from
the particle being acted upon to a source of mass m:

    r2 = dx^2 + dy^2
    a  = G * m / max(r2, pad)
    v += (dx, dy) / max(sqrt(r2), pad) * a * dt

This is an explicit Euler kick with the raw frame duration in milliseconds.
The kernels only read positions and only write the velocity of the particle
they are working on, so the per-particle updates within a step are
independent of each other.
"""

import logging

import numba
import numpy as np

from config import SolverMode

logger = logging.getLogger("nbody_sim")

# --- JIT-Compiled Force Kernels ---
# Like the tree kernels, these operate only on NumPy arrays and scalars so they
# can run in Numba's nopython mode.

@numba.jit(nopython=True, fastmath=True)
def _kick_jit(velocities, i, dx, dy, source_mass, g_const, pad, dt):
    """Applies the softened pull of one source on particle i."""
    r2 = dx * dx + dy * dy
    a = g_const * source_mass / max(r2, pad)
    r = max(np.sqrt(r2), pad)
    velocities[i, 0] += (dx / r) * a * dt
    velocities[i, 1] += (dy / r) * a * dt


@numba.jit(nopython=True, fastmath=True)
def _apply_attractors_jit(i, positions, velocities, attractors, g_const, pad, dt):
    for k in range(attractors.shape[0]):
        dx = attractors[k, 0] - positions[i, 0]
        dy = attractors[k, 1] - positions[i, 1]
        _kick_jit(velocities, i, dx, dy, attractors[k, 2], g_const, pad, dt)


@numba.jit(nopython=True, fastmath=True)
def _naive_forces_jit(positions, velocities, masses, attractors, g_const, pad, dt):
    """O(n^2) reference: every ordered pair (i, j) with i != j."""
    num_particles = positions.shape[0]
    for i in range(num_particles):
        _apply_attractors_jit(i, positions, velocities, attractors, g_const, pad, dt)
        for j in range(num_particles):
            if i == j:
                continue
            dx = positions[j, 0] - positions[i, 0]
            dy = positions[j, 1] - positions[i, 1]
            _kick_jit(velocities, i, dx, dy, masses[j], g_const, pad, dt)


@numba.jit(nopython=True, fastmath=True)
def _barnes_hut_forces_jit(positions, velocities, masses, attractors, g_const, pad, dt, theta,
                           node_boxes, node_children, node_data, node_count, bucket_head, particle_next):
    """
    Walks the tree once per particle with an explicit stack.

    A node is opened when its extent ((w + h) / 2) is more than theta times its
    distance from the particle. Open leaves are summed exactly, member by
    member; open internal nodes push their children. Nodes that are far enough
    away act as a single mass at their center of mass. The test is written as
    side > theta * d so a particle sitting on a center of mass always opens it.
    """
    num_particles = positions.shape[0]
    num_nodes = node_boxes.shape[0]
    stack = np.empty(max(num_nodes, 1), dtype=np.int64)

    for i in range(num_particles):
        px = positions[i, 0]
        py = positions[i, 1]

        stack_ptr = 0
        if num_nodes > 0:
            stack[0] = 0
            stack_ptr = 1

        while stack_ptr > 0:
            stack_ptr -= 1
            node_idx = stack[stack_ptr]

            node_mass = node_data[node_idx, 0]
            if node_mass <= 0.0 or node_count[node_idx] == 0:
                continue

            com_x = node_data[node_idx, 1] / node_mass
            com_y = node_data[node_idx, 2] / node_mass
            dx = com_x - px
            dy = com_y - py
            d = np.sqrt(dx * dx + dy * dy)
            side = (node_boxes[node_idx, 2] + node_boxes[node_idx, 3]) / 2

            if side > theta * d:
                if bucket_head[node_idx] != -1:
                    member = bucket_head[node_idx]
                    while member != -1:
                        if member != i:
                            pdx = positions[member, 0] - px
                            pdy = positions[member, 1] - py
                            _kick_jit(velocities, i, pdx, pdy, masses[member], g_const, pad, dt)
                        member = particle_next[member]
                elif node_children[node_idx, 0] != -1:
                    for quadrant in range(3, -1, -1):
                        stack[stack_ptr] = node_children[node_idx, quadrant]
                        stack_ptr += 1
            else:
                _kick_jit(velocities, i, dx, dy, node_mass, g_const, pad, dt)

        _apply_attractors_jit(i, positions, velocities, attractors, g_const, pad, dt)


def naive_forces(positions, velocities, masses, config, dt):
    """Exact pairwise gravity. Mutates velocities in place."""
    _naive_forces_jit(
        positions, velocities, masses, config.attractor_array(),
        float(config.gravity_constant), float(config.softening_pad), float(dt)
    )


def barnes_hut_forces(positions, velocities, masses, tree, config, dt, theta=None):
    """
    Approximate gravity through a QuadTree already built from positions.
    Mutates velocities in place. theta defaults to config.theta.
    """
    theta = config.theta if theta is None else theta
    if theta < 0:
        raise ValueError(f"theta must be >= 0, got {theta}")
    node_boxes, node_children, node_data, node_count, bucket_head, particle_next = tree.get_flattened_tree()
    _barnes_hut_forces_jit(
        positions, velocities, masses, config.attractor_array(),
        float(config.gravity_constant), float(config.softening_pad), float(dt), float(theta),
        node_boxes, node_children, node_data, node_count, bucket_head, particle_next
    )


def apply_forces(mode: SolverMode, particles, tree, config, dt):
    """Runs the solver selected by mode over the particle store."""
    if mode is SolverMode.NAIVE:
        naive_forces(particles.positions, particles.velocities, particles.masses, config, dt)
    elif mode is SolverMode.BARNES_HUT:
        barnes_hut_forces(particles.positions, particles.velocities, particles.masses, tree, config, dt)
    else:
        raise ValueError(f"Unknown solver mode: {mode!r}")
