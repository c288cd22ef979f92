# logger_setup.py

import logging
import os
import json

LOGGER_NAME = "nbody_sim"

def setup_logging(config_path='config.json'):
    """
    Configures the "nbody_sim" logger from the 'logging' section of config.json.

    Each run logs to <directory>/<run_id>/simulation.log and to the console.
    Only the simulator's own logger is touched, never the root logger, so
    Numba's compilation messages stay out of the run log.

    Data Contract:
    - Inputs: config_path (str) - Path to config.json.
    - Outputs: The configured logging.Logger.
    - Side Effects:
        - Creates the run directory if it is missing.
        - Replaces (and closes) any handlers from a previous call.
    - Invariants: config.json holds 'run_id' and a 'logging' section with
      'level' and 'format'. 'directory' is optional and defaults to 'runs'.
    """
    with open(config_path, 'r') as f:
        config = json.load(f)

    run_id = config['run_id']
    log_config = config['logging']

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(log_config['level'])
    logger.propagate = False

    run_dir = os.path.join(log_config.get('directory', 'runs'), run_id)
    os.makedirs(run_dir, exist_ok=True)
    log_file = os.path.join(run_dir, 'simulation.log')

    formatter = logging.Formatter(log_config['format'])
    handlers = [logging.FileHandler(log_file), logging.StreamHandler()]
    for handler in handlers:
        handler.setFormatter(formatter)

    # A second call (tests, restarts) must not leave two file handles open
    for old_handler in list(logger.handlers):
        old_handler.close()
        logger.removeHandler(old_handler)
    for handler in handlers:
        logger.addHandler(handler)

    logger.info(f"Logging ready for run '{run_id}', writing to {log_file}")
    return logger
