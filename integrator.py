# integrator.py

import numpy as np


def integrate(positions, velocities, bounds, dt, timestep_multiplier, damping):
    """
    Advances positions by the current velocities, applies drag and reflects
    particles at the edges of the simulation area.

    Data Contract:
    - Inputs:
        - positions, velocities (np.ndarray): (n, 2) arrays, modified in place.
        - bounds (tuple): The (width, height) of the simulation area.
        - dt (float): Frame duration in milliseconds.
        - timestep_multiplier (float): Scales simulated time against wall time.
        - damping (float): Fraction of velocity removed every step.
    - Outputs: (max_abs_vx, max_abs_vy) after damping, for velocity coloring.
    - Invariants: Positions are never clamped. A particle on or past an edge has
      that velocity component negated and may sit outside the area until the
      reflected velocity carries it back.
    """
    scaling = (dt / 1000.0) * timestep_multiplier
    positions += velocities * scaling
    velocities *= 1.0 - damping

    max_vx, max_vy = max_abs_velocity(velocities)

    width, height = bounds
    x_mask = (positions[:, 0] <= 0) | (positions[:, 0] >= width)
    y_mask = (positions[:, 1] <= 0) | (positions[:, 1] >= height)
    velocities[x_mask, 0] *= -1
    velocities[y_mask, 1] *= -1

    return max_vx, max_vy


def max_abs_velocity(velocities):
    """Largest |vx| and |vy| over all particles, or zeros when there are none."""
    if len(velocities) == 0:
        return 0.0, 0.0
    max_abs = np.max(np.abs(velocities), axis=0)
    return float(max_abs[0]), float(max_abs[1])


def contain_non_finite(positions, velocities, previous_positions):
    """
    Rolls back particles whose state stopped being finite.

    Any particle with a NaN or infinite coordinate or velocity component is put
    back at its position from before the step and stopped. Returns the number
    of particles reset.
    """
    bad = ~(np.isfinite(positions).all(axis=1) & np.isfinite(velocities).all(axis=1))
    count = int(np.count_nonzero(bad))
    if count:
        positions[bad] = previous_positions[bad]
        velocities[bad] = 0.0
    return count
