# impulse.py

import logging

from quadtree import BoundingBox

logger = logging.getLogger("nbody_sim")


class PointerState:
    """
    Latest pointer input, as reported by the viewer.

    dx, dy hold the displacement since the previous frame and are the impulse
    vector. Leaving the simulation area zeroes them, so the impulse decays to
    nothing until the pointer moves again.
    """
    def __init__(self):
        self.x = 0.0
        self.y = 0.0
        self.dx = 0.0
        self.dy = 0.0

    def move(self, x, y, dx, dy):
        self.x, self.y = float(x), float(y)
        self.dx, self.dy = float(dx), float(dy)

    def leave(self):
        self.dx = 0.0
        self.dy = 0.0

    @property
    def impulse(self):
        return (self.dx, self.dy)

    def rect(self, half_size: float) -> BoundingBox:
        """Square query region centered on the pointer."""
        return BoundingBox(self.x - half_size, self.y - half_size, 2 * half_size, 2 * half_size)


def inject_impulse(tree, positions, velocities, pointer: PointerState, half_size, impulse_scale, dt):
    """
    Pushes every particle strictly inside the pointer rectangle by
    impulse * impulse_scale / dt.

    The tree prunes the search to leaves overlapping the rectangle; each
    candidate is then tested exactly. Returns the number of particles pushed.
    """
    ix, iy = pointer.impulse
    if (ix == 0.0 and iy == 0.0) or dt <= 0 or tree.num_active_nodes == 0:
        return 0

    rect = pointer.rect(half_size)
    candidates = tree.query_overlap(rect)
    if len(candidates) == 0:
        return 0

    cx = positions[candidates, 0] - rect.x
    cy = positions[candidates, 1] - rect.y
    inside = candidates[(cx > 0) & (cx < rect.width) & (cy > 0) & (cy < rect.height)]

    velocities[inside, 0] += ix * impulse_scale / dt
    velocities[inside, 1] += iy * impulse_scale / dt

    if len(inside):
        logger.debug(f"Pointer impulse ({ix:+.1f}, {iy:+.1f}) applied to {len(inside)} particles.")
    return int(len(inside))
