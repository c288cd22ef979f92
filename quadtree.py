# quadtree.py

import logging
from collections import namedtuple

import numba
import numpy as np

logger = logging.getLogger("nbody_sim")

# A simple structure for defining the bounding box of a QuadTree node.
BoundingBox = namedtuple('BoundingBox', ['x', 'y', 'width', 'height'])

# Read-only view of a node handed to the renderer.
NodeView = namedtuple('NodeView', ['index', 'box', 'depth', 'count', 'mass', 'com_x', 'com_y'])

# Child slots, in storage order.
NW, NE, SW, SE = 0, 1, 2, 3

# node_data columns
MASS, SUM_MX, SUM_MY = 0, 1, 2


@numba.jit(nopython=True)
def _get_quadrant(px, py, box):
    """Quadrant of a point within box. A coordinate on the midline goes east/south."""
    east = 1 if (px - box[0]) >= box[2] / 2 else 0
    south = 1 if (py - box[1]) >= box[3] / 2 else 0
    return east + 2 * south


@numba.jit(nopython=True)
def _reset_node(node_idx, x, y, w, h, depth, node_boxes, node_depth, node_children, node_data, node_count, bucket_head, bucket_len):
    node_boxes[node_idx, 0] = x
    node_boxes[node_idx, 1] = y
    node_boxes[node_idx, 2] = w
    node_boxes[node_idx, 3] = h
    node_depth[node_idx] = depth
    node_children[node_idx, :] = -1
    node_data[node_idx, :] = 0.0
    node_count[node_idx] = 0
    bucket_head[node_idx] = -1
    bucket_len[node_idx] = 0


@numba.jit(nopython=True)
def _subdivide_jit(node_idx, next_node_idx, node_boxes, node_depth, node_children, node_data, node_count, bucket_head, bucket_len):
    """Allocates the four children of a node from the pool. Returns the next free index."""
    x, y, w, h = node_boxes[node_idx]
    half_w, half_h = w / 2, h / 2
    depth = node_depth[node_idx] + 1

    for quadrant in range(4):
        child_idx = next_node_idx + quadrant
        cx = x + half_w if quadrant & 1 else x
        cy = y + half_h if quadrant & 2 else y
        _reset_node(child_idx, cx, cy, half_w, half_h, depth, node_boxes, node_depth,
                    node_children, node_data, node_count, bucket_head, bucket_len)
        node_children[node_idx, quadrant] = child_idx

    return next_node_idx + 4


@numba.jit(nopython=True)
def _accumulate(node_idx, mass, px, py, sign, node_data, node_count):
    """Adds (sign=1) or removes (sign=-1) one particle's contribution to a node's aggregates."""
    node_data[node_idx, MASS] += sign * mass
    node_data[node_idx, SUM_MX] += sign * mass * px
    node_data[node_idx, SUM_MY] += sign * mass * py
    node_count[node_idx] += sign


@numba.jit(nopython=True)
def _insert_jit(p_idx, node_idx, next_node_idx, positions, masses, leaf_capacity, max_depth,
                node_boxes, node_depth, node_children, node_data, node_count,
                bucket_head, bucket_len, particle_next):
    """
    Inserts particle p_idx below node_idx and keeps every aggregate on the way
    consistent. Returns the next free node index, or -1 if the pool ran out.
    """
    if next_node_idx < 0:
        return next_node_idx

    px = positions[p_idx, 0]
    py = positions[p_idx, 1]
    mass = masses[p_idx]

    # Internal node: descend, then count the particle here as well
    if node_children[node_idx, 0] != -1:
        quadrant = _get_quadrant(px, py, node_boxes[node_idx])
        next_node_idx = _insert_jit(p_idx, node_children[node_idx, quadrant], next_node_idx, positions, masses,
                                    leaf_capacity, max_depth, node_boxes, node_depth, node_children,
                                    node_data, node_count, bucket_head, bucket_len, particle_next)
        _accumulate(node_idx, mass, px, py, 1, node_data, node_count)
        return next_node_idx

    # Leaf with room, or too deep to split: bucket it
    if bucket_len[node_idx] < leaf_capacity or node_depth[node_idx] >= max_depth:
        particle_next[p_idx] = bucket_head[node_idx]
        bucket_head[node_idx] = p_idx
        bucket_len[node_idx] += 1
        _accumulate(node_idx, mass, px, py, 1, node_data, node_count)
        return next_node_idx

    # Full leaf: split and push the bucket down
    if next_node_idx + 4 > node_boxes.shape[0]:
        return -1
    next_node_idx = _subdivide_jit(node_idx, next_node_idx, node_boxes, node_depth, node_children,
                                   node_data, node_count, bucket_head, bucket_len)

    member = bucket_head[node_idx]
    bucket_head[node_idx] = -1
    bucket_len[node_idx] = 0
    while member != -1:
        following = particle_next[member]
        # The node re-accumulates the member on the way down, so drop it first
        _accumulate(node_idx, masses[member], positions[member, 0], positions[member, 1], -1, node_data, node_count)
        next_node_idx = _insert_jit(member, node_idx, next_node_idx, positions, masses, leaf_capacity, max_depth,
                                    node_boxes, node_depth, node_children, node_data, node_count,
                                    bucket_head, bucket_len, particle_next)
        if next_node_idx < 0:
            return next_node_idx
        member = following

    return _insert_jit(p_idx, node_idx, next_node_idx, positions, masses, leaf_capacity, max_depth,
                       node_boxes, node_depth, node_children, node_data, node_count,
                       bucket_head, bucket_len, particle_next)


@numba.jit(nopython=True)
def _build_tree_jit(positions, masses, leaf_capacity, max_depth, x, y, width, height,
                    node_boxes, node_depth, node_children, node_data, node_count,
                    bucket_head, bucket_len, particle_next):
    """Resets the root to span the area and inserts every particle in index order."""
    _reset_node(0, x, y, width, height, 0, node_boxes, node_depth, node_children,
                node_data, node_count, bucket_head, bucket_len)
    next_node_idx = 1
    for i in range(positions.shape[0]):
        next_node_idx = _insert_jit(i, 0, next_node_idx, positions, masses, leaf_capacity, max_depth,
                                    node_boxes, node_depth, node_children, node_data, node_count,
                                    bucket_head, bucket_len, particle_next)
        if next_node_idx < 0:
            return -1
    return next_node_idx


@numba.jit(nopython=True)
def _boxes_overlap(box, rx, ry, rw, rh):
    if box[0] > rx + rw or rx > box[0] + box[2]:
        return False
    if box[1] > ry + rh or ry > box[1] + box[3]:
        return False
    return True


@numba.jit(nopython=True)
def _query_overlap_jit(rx, ry, rw, rh, num_nodes, node_boxes, node_children, node_count,
                       bucket_head, particle_next, out):
    """
    Depth-first search for leaves overlapping the rectangle. Writes the bucket
    contents of every such leaf into out and returns how many were written.
    """
    found = 0
    if num_nodes == 0:
        return found

    # Every node is pushed at most once
    stack = np.empty(num_nodes, dtype=np.int64)
    stack[0] = 0
    stack_ptr = 1

    while stack_ptr > 0:
        stack_ptr -= 1
        node_idx = stack[stack_ptr]

        if node_count[node_idx] == 0:
            continue
        if not _boxes_overlap(node_boxes[node_idx], rx, ry, rw, rh):
            continue

        if bucket_head[node_idx] != -1:
            member = bucket_head[node_idx]
            while member != -1:
                out[found] = member
                found += 1
                member = particle_next[member]
        elif node_children[node_idx, 0] != -1:
            for quadrant in range(3, -1, -1):
                stack[stack_ptr] = node_children[node_idx, quadrant]
                stack_ptr += 1

    return found


class QuadTree:
    """
    Barnes-Hut quadtree stored as an arena of flat NumPy arrays.

    Nodes are integer handles into the arrays below; the root is handle 0 and a
    missing child is -1. Each unsplit node keeps its bucket as a singly linked
    list threaded through particle_next. The whole arena is rebuilt every step,
    so nothing points back up the tree.

    node_data holds running sums (mass, sum of m*x, sum of m*y); they are only
    divided out when a center of mass is read.
    """
    def __init__(self, boundary: BoundingBox, capacity: int = 25, max_depth: int = 10):
        if capacity < 1:
            raise ValueError(f"Leaf capacity must be >= 1, got {capacity}")
        if max_depth < 0:
            raise ValueError(f"Maximum depth must be >= 0, got {max_depth}")
        self.boundary = boundary
        self.capacity = capacity
        self.max_depth = max_depth

        self.max_nodes = 0
        self.node_boxes = np.empty((0, 4), dtype=np.float64)
        self.node_depth = np.empty(0, dtype=np.int64)
        self.node_children = np.empty((0, 4), dtype=np.int64)
        self.node_data = np.empty((0, 3), dtype=np.float64)
        self.node_count = np.empty(0, dtype=np.int64)
        self.bucket_head = np.empty(0, dtype=np.int64)
        self.bucket_len = np.empty(0, dtype=np.int64)
        self.particle_next = np.empty(0, dtype=np.int64)
        self.num_active_nodes = 0

        self._positions = np.zeros((0, 2), dtype=np.float64)
        self._masses = np.zeros(0, dtype=np.float64)

    def required_nodes(self, num_particles: int) -> int:
        """
        Upper bound on the node count for num_particles.

        A node only splits after receiving capacity + 1 particles, and nodes at the
        same depth cover disjoint regions, so each depth above max_depth holds at
        most n // (capacity + 1) internal nodes, each owning four children.
        """
        internal_per_level = max(1, num_particles // (self.capacity + 1))
        return 1 + 4 * self.max_depth * internal_per_level

    def _ensure_capacity(self, required_nodes: int, num_particles: int):
        """Grows the node pool, keeping the currently active nodes."""
        if required_nodes > self.max_nodes:
            new_size = max(required_nodes, 2 * self.max_nodes)
            keep = self.num_active_nodes

            def grow(old, shape, fill, dtype):
                arr = np.full(shape, fill, dtype=dtype)
                arr[:keep] = old[:keep]
                return arr

            self.node_boxes = grow(self.node_boxes, (new_size, 4), 0.0, np.float64)
            self.node_depth = grow(self.node_depth, new_size, 0, np.int64)
            self.node_children = grow(self.node_children, (new_size, 4), -1, np.int64)
            self.node_data = grow(self.node_data, (new_size, 3), 0.0, np.float64)
            self.node_count = grow(self.node_count, new_size, 0, np.int64)
            self.bucket_head = grow(self.bucket_head, new_size, -1, np.int64)
            self.bucket_len = grow(self.bucket_len, new_size, 0, np.int64)
            self.max_nodes = new_size
            logger.debug(f"QuadTree node pool grown to {new_size} nodes.")

        if num_particles > self.particle_next.shape[0]:
            particle_next = np.full(num_particles, -1, dtype=np.int64)
            particle_next[:self.particle_next.shape[0]] = self.particle_next
            self.particle_next = particle_next

    def build(self, positions: np.ndarray, masses: np.ndarray, leaf_capacity: int = None):
        """
        Discards the previous tree, creates a root spanning the boundary and
        inserts every particle.
        """
        if leaf_capacity is not None:
            if leaf_capacity < 1:
                raise ValueError(f"Leaf capacity must be >= 1, got {leaf_capacity}")
            self.capacity = leaf_capacity

        num_particles = len(positions)
        self._positions = positions
        self._masses = masses
        self.num_active_nodes = 0
        self._ensure_capacity(self.required_nodes(num_particles), num_particles)

        next_node_idx = _build_tree_jit(
            positions, masses, self.capacity, self.max_depth,
            float(self.boundary.x), float(self.boundary.y),
            float(self.boundary.width), float(self.boundary.height),
            self.node_boxes, self.node_depth, self.node_children, self.node_data,
            self.node_count, self.bucket_head, self.bucket_len, self.particle_next
        )
        if next_node_idx < 0:
            raise RuntimeError(f"QuadTree node pool exhausted ({self.max_nodes} nodes for {num_particles} particles)")
        self.num_active_nodes = next_node_idx

    def reset(self, positions: np.ndarray, masses: np.ndarray):
        """
        Discards the tree and leaves an empty root over the boundary, ready for
        insert() calls on the given particle arrays.
        """
        num_particles = len(positions)
        self._positions = positions
        self._masses = masses
        self.num_active_nodes = 0
        self._ensure_capacity(self.required_nodes(num_particles), num_particles)
        _reset_node(0, float(self.boundary.x), float(self.boundary.y),
                    float(self.boundary.width), float(self.boundary.height), 0,
                    self.node_boxes, self.node_depth, self.node_children, self.node_data,
                    self.node_count, self.bucket_head, self.bucket_len)
        self.num_active_nodes = 1

    def insert(self, particle_index: int, node: int = 0):
        """
        Inserts one particle of the current particle arrays below node.

        build() already inserts everything; this is for growing a tree one
        particle at a time after reset(). Each particle may be inserted once.
        """
        if self.num_active_nodes == 0:
            raise RuntimeError("QuadTree.insert() called before reset() or build()")
        # One insertion can split at most once per remaining level
        self._ensure_capacity(self.num_active_nodes + 4 * (self.max_depth + 1), len(self._positions))
        next_node_idx = _insert_jit(
            particle_index, node, self.num_active_nodes, self._positions, self._masses,
            self.capacity, self.max_depth, self.node_boxes, self.node_depth, self.node_children,
            self.node_data, self.node_count, self.bucket_head, self.bucket_len, self.particle_next
        )
        if next_node_idx < 0:
            raise RuntimeError("QuadTree node pool exhausted during insert")
        self.num_active_nodes = next_node_idx

    def query_overlap(self, rect: BoundingBox, visit=None) -> np.ndarray:
        """
        Returns the indices of particles held by leaves whose box overlaps rect.

        This is a broad phase: callers still test each particle against rect.
        If visit is given it is called with each index as well.
        """
        out = np.empty(self.particle_next.shape[0], dtype=np.int64)
        found = _query_overlap_jit(
            float(rect.x), float(rect.y), float(rect.width), float(rect.height),
            self.num_active_nodes, self.node_boxes, self.node_children, self.node_count,
            self.bucket_head, self.particle_next, out
        )
        indices = out[:found]
        if visit is not None:
            for p_idx in indices:
                visit(int(p_idx))
        return indices

    def get_flattened_tree(self):
        """Returns the tree arrays trimmed to the number of active nodes."""
        n = self.num_active_nodes
        return (
            self.node_boxes[:n],
            self.node_children[:n],
            self.node_data[:n],
            self.node_count[:n],
            self.bucket_head[:n],
            self.particle_next,
        )

    # --- Read-only inspection (renderer and tests) ---

    def is_leaf(self, node: int) -> bool:
        return self.node_children[node, 0] == -1

    def children(self, node: int):
        if self.is_leaf(node):
            return []
        return [int(c) for c in self.node_children[node]]

    def bucket(self, node: int):
        """Particle indices held directly by node (empty unless it is an unsplit leaf)."""
        members = []
        member = self.bucket_head[node]
        while member != -1:
            members.append(int(member))
            member = self.particle_next[member]
        return members

    def center_of_mass(self, node: int):
        mass = self.node_data[node, MASS]
        if mass <= 0:
            x, y, w, h = self.node_boxes[node]
            return (x + w / 2, y + h / 2)
        return (self.node_data[node, SUM_MX] / mass, self.node_data[node, SUM_MY] / mass)

    def node_view(self, node: int) -> NodeView:
        com_x, com_y = self.center_of_mass(node)
        return NodeView(
            index=node,
            box=BoundingBox(*(float(v) for v in self.node_boxes[node])),
            depth=int(self.node_depth[node]),
            count=int(self.node_count[node]),
            mass=float(self.node_data[node, MASS]),
            com_x=float(com_x),
            com_y=float(com_y),
        )

    def nodes(self):
        """Yields a NodeView for every live node, root first."""
        for node in range(self.num_active_nodes):
            yield self.node_view(node)

    @property
    def root_mass(self) -> float:
        if self.num_active_nodes == 0:
            return 0.0
        return float(self.node_data[0, MASS])

    @property
    def root_center_of_mass(self):
        if self.num_active_nodes == 0:
            return None
        return self.center_of_mass(0)

    def max_depth_reached(self) -> int:
        if self.num_active_nodes == 0:
            return 0
        return int(self.node_depth[:self.num_active_nodes].max())
