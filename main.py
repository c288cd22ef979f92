# main.py

import collections
import logging

import numpy as np
import pygame

import constants
import logger_setup
import renderer
from config import SolverMode, load_config
from particle_system import Simulation

# Get the application's dedicated logger
logger = logging.getLogger("nbody_sim")


def handle_key(simulation: Simulation, key: int):
    """
    Maps key presses onto configuration requests. Physics options are queued
    for the next step; render options apply immediately.
    """
    config = simulation.pending_config or simulation.config
    try:
        if key == pygame.K_s:
            mode = SolverMode.NAIVE if config.solver_mode is SolverMode.BARNES_HUT else SolverMode.BARNES_HUT
            simulation.request_config(solver_mode=mode)
        elif key == pygame.K_UP:
            simulation.request_config(particle_count=config.particle_count + constants.PARTICLE_COUNT_STEP)
        elif key == pygame.K_DOWN:
            simulation.request_config(particle_count=max(0, config.particle_count - constants.PARTICLE_COUNT_STEP))
        elif key == pygame.K_RIGHT:
            simulation.request_config(theta=round(config.theta + constants.THETA_STEP, 2))
        elif key == pygame.K_LEFT:
            simulation.request_config(theta=max(0.0, round(config.theta - constants.THETA_STEP, 2)))
        elif key == pygame.K_RIGHTBRACKET:
            simulation.request_config(leaf_capacity=config.leaf_capacity + 1)
        elif key == pygame.K_LEFTBRACKET:
            simulation.request_config(leaf_capacity=max(1, config.leaf_capacity - 1))
        elif key == pygame.K_EQUALS:
            simulation.request_config(timestep_multiplier=round(config.timestep_multiplier + constants.TIMESTEP_STEP, 2))
        elif key == pygame.K_MINUS:
            simulation.request_config(timestep_multiplier=round(config.timestep_multiplier - constants.TIMESTEP_STEP, 2))
        elif key == pygame.K_p:
            simulation.update_render_options(show_particles=not simulation.config.show_particles)
        elif key == pygame.K_t:
            simulation.update_render_options(show_tree_overlay=not simulation.config.show_tree_overlay)
        elif key == pygame.K_c:
            simulation.update_render_options(show_center_of_mass=not simulation.config.show_center_of_mass)
        elif key == pygame.K_v:
            simulation.update_render_options(color_by_velocity=not simulation.config.color_by_velocity)
    except ValueError as e:
        logger.warning(f"Rejected configuration change: {e}")


def run_simulation_loop(simulation: Simulation, screen, clock, font):
    """Steps, draws and paces the simulation until the window is closed."""
    running = True
    dt = 10  # Any positive value works for the first frame
    frame_times = collections.deque(maxlen=constants.FPS_SMOOTHING_WINDOW)

    while running:
        for event in pygame.event.get():
            if event.type == pygame.QUIT:
                running = False
            elif event.type == pygame.MOUSEMOTION:
                simulation.pointer.move(event.pos[0], event.pos[1], event.rel[0], event.rel[1])
            elif event.type == pygame.WINDOWLEAVE:
                simulation.pointer.leave()
            elif event.type == pygame.KEYDOWN:
                handle_key(simulation, event.key)

        simulation.step(dt)

        screen.fill(constants.BLACK)
        renderer.draw_tree(screen, simulation)
        if simulation.config.show_particles:
            renderer.draw_particles(screen, simulation)

        frame_times.append(dt)
        fps = 1000.0 / (sum(frame_times) / len(frame_times) + 0.001)
        renderer.draw_status(screen, font, simulation, fps)
        pygame.display.flip()

        dt = clock.tick(constants.FPS)


def main():
    """
    Main function to initialize and run the N-body viewer.
    """
    # --- Setup ---
    logger_setup.setup_logging()
    config, sim_config = load_config()

    logger.info("Application starting...")
    logger.info(f"Loaded configuration: {config}")

    # Initialize the master random number generator (RNG)
    rng = np.random.default_rng(config['master_seed'])
    logger.info(f"Master RNG initialized with seed: {config['master_seed']}")

    # --- Initialization ---
    pygame.init()
    screen = pygame.display.set_mode((int(sim_config.width), int(sim_config.height)))
    pygame.display.set_caption(constants.TITLE)
    clock = pygame.time.Clock()
    font = pygame.font.Font(None, 22)

    simulation = Simulation(sim_config, rng)

    run_simulation_loop(simulation, screen, clock, font)

    logger.info("Application shutting down.")
    pygame.quit()


if __name__ == "__main__":
    main()
