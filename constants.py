# constants.py

"""
Application Constants

This module defines static values for the simulator and its viewer.
These are not expected to change between simulation runs; everything that
is tunable at runtime lives in config.json and config.SimulationConfig.

Data Contract:
- All values are immutable constants.
- Units are specified in comments where applicable.
"""

# Screen dimensions (also the simulation area)
WIDTH = 1200  # Pixels
HEIGHT = 800  # Pixels

# Framerate cap for the viewer
FPS = 60  # Frames per second

# Number of frame durations averaged for the FPS readout
FPS_SMOOTHING_WINDOW = 50

# Colors (RGB)
BLACK = (0, 0, 0)
WHITE = (255, 255, 255)
TREE_COLOR = (255, 170, 170)
COM_COLOR = (150, 255, 150)

# Window Title
TITLE = "N-Body Simulator"

# Particle initialization
# Positions are drawn inside the interior fraction of the area, offset by the padding.
INIT_PADDING = 0.1
INIT_INTERIOR = 0.8
ORBITAL_SPEED_SCALE = 1250.0  # Tangential speed per unit of normalized radius
INIT_ANGLE_OFFSET = 0.01  # Radians

# Velocity color mapping: channel = base + (|v| / max|v|) * range
VELOCITY_COLOR_BASE = 40
VELOCITY_COLOR_RANGE = 215

# Viewer key bindings step sizes
PARTICLE_COUNT_STEP = 50
THETA_STEP = 0.1
TIMESTEP_STEP = 0.05
