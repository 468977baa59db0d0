# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Subcommand handlers for the gradlab CLI.

Each function here corresponds to one CLI subcommand and returns an exit
code. No print() calls: everything goes through the structured logger.
"""

import argparse
import logging
import queue
from pathlib import Path
from typing import Optional

from gradlab.cli.exit_codes import CONFIG_ERROR, RUNTIME_ERROR, SUCCESS, USER_ERROR
from gradlab.config.exceptions import ConfigError
from gradlab.config.loader import load_config
from gradlab.config.schema import RunConfig
from gradlab.logging.logger import get_logger, set_project_log_level
from gradlab.reporting.codec import DecodeError, decode
from gradlab.runtime.bootstrap import bootstrap, set_deterministic_seed
from gradlab.worker.core import Command, TrainingWorker


def _with_seed(config: RunConfig, seed: int) -> RunConfig:
    """Return a copy of ``config`` whose global seed is ``seed``."""
    global_config = config.global_config.model_copy(update={"seed": seed})
    return config.model_copy(update={"global_config": global_config})


def _load_and_bootstrap(
    args: argparse.Namespace,
    command_name: str,
) -> tuple[int, Optional[RunConfig], logging.Logger]:
    """
    The shared setup every command needs: load config, run bootstrap.

    Returns a tuple of (exit_code, config, logger). If exit_code is not
    SUCCESS the caller should return it immediately.
    """
    logger = get_logger(f"gradlab.cli.{command_name}", log_level=args.log_level)

    config = None
    if args.config is not None:
        try:
            config = load_config(Path(args.config))
        except ConfigError as err:
            logger.error(
                "Configuration error",
                extra={"command": command_name, "error": str(err)},
            )
            return CONFIG_ERROR, None, logger

    if config is not None:
        if args.seed is not None:
            config = _with_seed(config, args.seed)
        bootstrap(config.global_config)
    else:
        logger.debug(
            "No config provided, running with defaults",
            extra={"command": command_name},
        )
        if args.seed is not None:
            set_deterministic_seed(args.seed)

    # the command line wins over the config file
    set_project_log_level(args.log_level)
    return SUCCESS, config, logger


def _log_final_report(report: bytes, logger: logging.Logger) -> None:
    try:
        decoded = decode(report)
    except DecodeError as err:
        logger.error("Could not decode the last report", extra={"error": str(err)})
        return

    history = decoded.get("trainLossHistory") or []
    final_losses = [row[-1] for row in history if row]  # type: ignore[index]
    logger.info(
        "Final report",
        extra={
            "final_loss": final_losses,
            "iterations": decoded.get("iterations"),
            "train_accuracy": decoded.get("trainAccuracy"),
            "test_accuracy": decoded.get("testAccuracy"),
            "test_loss": decoded.get("testLoss"),
        },
    )


def handle_train(args: argparse.Namespace) -> int:
    """Run one training job on a worker and stream its events to the log."""
    exit_code, config, logger = _load_and_bootstrap(args, "train")
    if exit_code != SUCCESS:
        return exit_code

    if config is None:
        logger.error("The train command needs --config", extra={"command": "train"})
        return USER_ERROR

    logger.info(
        "Starting training",
        extra={
            "command": "train",
            "task_type": config.task_type,
            "model": config.model.type,
            "optimizer": config.model.optimizer.type,
            "max_iterations": config.model.optimizer.max_iterations,
            "by_step": args.by_step,
            "dry_run": args.dry_run,
        },
    )
    if args.dry_run:
        logger.info("Dry run, config is valid and nothing was trained")
        return SUCCESS

    command_type = "train-step" if args.by_step else "train"
    last_report: Optional[bytes] = None
    report_count = 0
    errors: list[str] = []

    try:
        with TrainingWorker() as worker:
            worker.send(Command(command_type, config))
            for event in worker.events_until_finished(timeout=args.timeout):
                if event.type == "report":
                    last_report = event.payload
                    report_count += 1
                elif event.type == "info":
                    logger.info("Training info", extra={"message": event.payload})
                elif event.type == "error":
                    errors.append(event.payload)
                    logger.error("Training error", extra={"message": event.payload})
                elif event.type == "state":
                    logger.debug("Training state", extra={"state": event.payload})
    except queue.Empty:
        logger.error("Timed out waiting for the worker", extra={"timeout": args.timeout})
        return RUNTIME_ERROR

    logger.info("Training finished", extra={"reports": report_count, "errors": len(errors)})
    if last_report is not None:
        _log_final_report(last_report, logger)
        if args.report_out is not None:
            out_path = Path(args.report_out)
            out_path.parent.mkdir(parents=True, exist_ok=True)
            out_path.write_bytes(last_report)
            logger.info("Last report written", extra={"path": str(out_path)})

    return RUNTIME_ERROR if errors else SUCCESS


def handle_validate(args: argparse.Namespace) -> int:
    """Load and validate a config without training."""
    exit_code, config, logger = _load_and_bootstrap(args, "validate")
    if exit_code != SUCCESS:
        return exit_code

    if config is None:
        logger.error("The validate command needs --config", extra={"command": "validate"})
        return USER_ERROR

    dataset = config.dataset
    logger.info(
        "Config is valid",
        extra={
            "config": args.config,
            "task_type": config.task_type,
            "model": config.model.type,
            "classification": config.model.classification,
            "loss": config.model.loss_function.type,
            "optimizer": config.model.optimizer.type,
            "train_samples": len(dataset.train_features),
            "test_samples": len(dataset.test_features),
            "features": len(dataset.train_features[0]),
        },
    )
    return SUCCESS


def handle_info(args: argparse.Namespace) -> int:
    """Display environment and configuration information."""
    logger = get_logger("gradlab.cli.info", log_level=args.log_level)

    from gradlab import __version__
    from gradlab.runtime.environment import get_system_info

    system_info = get_system_info()

    logger.info(
        "System information",
        extra={
            "gradlab_version": __version__,
            "python_version": system_info.python_version,
            "torch_version": system_info.torch_version,
            "platform": system_info.platform,
            "architecture": system_info.architecture,
            "hostname": system_info.hostname,
            "config": args.config,
        },
    )
    return SUCCESS
