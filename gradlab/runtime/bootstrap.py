# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Runtime bootstrap for gradlab.

One-time setup before a command does real work:
  1. Validate the environment (Python version)
  2. Set deterministic seeds
  3. Apply the configured log level to every project logger

Training itself never reads the global RNGs: initializers and the batch
sampler own seeded generators. Seeding here covers anything else that
touches ``random`` or the torch default generator.
"""

import os
import random
from pathlib import Path

import torch

from gradlab.config.schema import GlobalConfig
from gradlab.logging.logger import PROJECT_LOGGER, get_logger, set_project_log_level
from gradlab.runtime.environment import check_minimum_python, get_system_info


def set_deterministic_seed(seed: int) -> None:
    """
    Lock down the global sources of randomness to the given seed.

    This sets Python's ``random`` seed, PYTHONHASHSEED and the torch CPU
    seed. Training runs on the CPU only, so there is no CUDA state to seed.

    Args:
        seed: Integer seed value. Must be >= 0.
    """
    if seed < 0:
        raise ValueError(f"seed must be >= 0, got {seed}")
    random.seed(seed)
    os.environ["PYTHONHASHSEED"] = str(seed)
    torch.manual_seed(seed)


def bootstrap(config: GlobalConfig) -> None:
    """
    Run the full bootstrap sequence.

    Called once at the start of every CLI command that has a config.

    Args:
        config: The validated global configuration.
    """
    check_minimum_python()
    set_deterministic_seed(config.seed)

    log_file = Path(config.log_file) if config.log_file is not None else None
    logger = get_logger(PROJECT_LOGGER, log_level=config.log_level, log_file=log_file)
    set_project_log_level(config.log_level)

    system_info = get_system_info()
    logger.info(
        "gradlab bootstrap complete",
        extra={
            "project": config.project_name,
            "seed": config.seed,
            "python_version": system_info.python_version,
            "torch_version": system_info.torch_version,
            "platform": system_info.platform,
        },
    )
