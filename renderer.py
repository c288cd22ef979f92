# renderer.py

"""
Drawing for the viewer. Reads the simulation, never writes to it.
"""

import pygame

import constants


def velocity_color(vx, vy, max_vx, max_vy):
    """
    Maps a velocity onto a color: red tracks |vx| and green tracks |vy|, each
    relative to the largest component seen this step. Blue stays saturated.
    """
    red = constants.VELOCITY_COLOR_BASE
    green = constants.VELOCITY_COLOR_BASE
    if max_vx > 0:
        red += min(abs(vx) / max_vx, 1.0) * constants.VELOCITY_COLOR_RANGE
    if max_vy > 0:
        green += min(abs(vy) / max_vy, 1.0) * constants.VELOCITY_COLOR_RANGE
    return (int(red), int(green), 255)


def draw_particles(screen: pygame.Surface, simulation):
    """Draws each particle as a square whose side is its mass."""
    particles = simulation.particles
    color_by_velocity = simulation.config.color_by_velocity
    max_vx, max_vy = simulation.max_velocity_x, simulation.max_velocity_y

    for i in range(len(particles)):
        if color_by_velocity:
            color = velocity_color(particles.velocities[i, 0], particles.velocities[i, 1], max_vx, max_vy)
        else:
            color = constants.WHITE
        size = max(1, int(particles.masses[i]))
        pygame.draw.rect(
            screen, color,
            (int(round(particles.positions[i, 0])), int(round(particles.positions[i, 1])), size, size)
        )


def draw_tree(screen: pygame.Surface, simulation):
    """Draws node outlines (brighter when deeper) and/or centers of mass."""
    config = simulation.config
    if not (config.show_tree_overlay or config.show_center_of_mass):
        return

    max_depth = max(1, config.max_depth)
    for node in simulation.tree.nodes():
        if config.show_tree_overlay:
            # Deeper nodes are smaller, so they get drawn brighter
            shade = 0.25 + 0.75 * min(node.depth / max_depth, 1.0)
            color = tuple(int(c * shade) for c in constants.TREE_COLOR)
            box = node.box
            pygame.draw.rect(screen, color, (int(box.x), int(box.y), int(box.width), int(box.height)), 1)

        if config.show_center_of_mass and node.count > 0:
            size = max(1, int(node.mass ** 0.25))
            pygame.draw.rect(screen, constants.COM_COLOR, (int(node.com_x), int(node.com_y), size, size))


def draw_status(screen: pygame.Surface, font: pygame.font.Font, simulation, fps: float):
    config = simulation.config
    lines = [
        f"FPS: {round(fps)}",
        f"Bodies: {len(simulation.particles)}  Solver: {config.solver_mode.value}",
        f"Theta: {config.theta:.2f}  Leaf capacity: {config.leaf_capacity}  "
        f"Timestep: {config.timestep_multiplier:.2f}",
    ]
    for row, text in enumerate(lines):
        screen.blit(font.render(text, True, constants.WHITE), (10, 10 + row * 20))
