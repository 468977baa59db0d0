# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Shared pytest fixtures for gradlab tests.

Fixtures here are available to every test file automatically. They provide
small, hand-checkable datasets and the run configs built around them.
"""

import textwrap
from pathlib import Path
from typing import Any

import pytest
import torch

from gradlab.tensors import DTYPE


def _line_points() -> tuple[list[list[float]], list[list[float]]]:
    """Eight samples of y = 2x + 1 on [0, 1.75]."""
    xs = [0.25 * i for i in range(8)]
    return [[x] for x in xs], [[2.0 * x + 1.0] for x in xs]


def _cluster_points() -> tuple[list[list[float]], list[list[float]]]:
    """Two 1-D clusters around -2 (label 0) and +2 (label 1)."""
    negatives = [-2.3, -2.1, -2.0, -1.9, -1.7, -2.2]
    positives = [1.8, 1.9, 2.0, 2.1, 2.2, 2.4]
    features = [[x] for x in negatives + positives]
    labels = [[0.0]] * len(negatives) + [[1.0]] * len(positives)
    return features, labels


def _three_cluster_points() -> list[list[float]]:
    """Three 2-D clusters: left, right and top."""
    centers = [(-3.0, 0.0), (3.0, 0.0), (0.0, 3.0)]
    offsets = [(0.0, 0.0), (0.3, 0.2), (-0.2, 0.3), (0.2, -0.3)]
    return [[cx + dx, cy + dy] for cx, cy in centers for dx, dy in offsets]


@pytest.fixture()
def line_data() -> tuple[torch.Tensor, torch.Tensor]:
    features, labels = _line_points()
    return torch.tensor(features, dtype=DTYPE), torch.tensor(labels, dtype=DTYPE)


@pytest.fixture()
def cluster_data() -> tuple[torch.Tensor, torch.Tensor]:
    features, labels = _cluster_points()
    return torch.tensor(features, dtype=DTYPE), torch.tensor(labels, dtype=DTYPE)


@pytest.fixture()
def three_cluster_features() -> torch.Tensor:
    return torch.tensor(_three_cluster_points(), dtype=DTYPE)


@pytest.fixture()
def regression_config() -> dict[str, Any]:
    """A run config (as a plain mapping) fitting y = 2x + 1."""
    features, labels = _line_points()
    return {
        "task_type": "regression",
        "model": {
            "type": "linear",
            "loss_function": {"type": "mse"},
            "optimizer": {
                "type": "batch",
                "max_iterations": 1000,
                "learning_rate": 0.5,
                "tolerance": 1e-6,
            },
        },
        "dataset": {
            "train_features": features,
            "train_labels": labels,
            "test_features": [[2.0], [-0.5]],
            "test_labels": [[5.0], [0.0]],
        },
    }


@pytest.fixture()
def classification_config() -> dict[str, Any]:
    """A binary logistic run config over the two 1-D clusters."""
    features, labels = _cluster_points()
    return {
        "task_type": "classification",
        "model": {
            "type": "logistic",
            "classification": "binary",
            "loss_function": {"type": "binaryCrossentropy"},
            "optimizer": {"type": "batch", "max_iterations": 200, "learning_rate": 0.5},
        },
        "dataset": {
            "train_features": features,
            "train_labels": labels,
            "test_features": [[-2.0], [2.0]],
            "test_labels": [[0.0], [1.0]],
            "prediction_features": [[-1.0], [0.0], [1.0]],
        },
    }


@pytest.fixture()
def tmp_config_file(tmp_path: Path) -> Path:
    """A small but complete regression config on disk."""
    config_content = textwrap.dedent("""\
        global:
          project_name: "gradlab-test"
          seed: 7
          log_level: "DEBUG"
        task_type: regression
        report_interval: 5
        model:
          type: linear
          loss_function:
            type: mse
          optimizer:
            type: batch
            max_iterations: 20
            learning_rate: 0.1
        dataset:
          train_features: [[0.0], [1.0], [2.0]]
          train_labels: [[1.0], [3.0], [5.0]]
    """)
    config_file = tmp_path / "run.yaml"
    config_file.write_text(config_content, encoding="utf-8")
    return config_file


@pytest.fixture()
def invalid_config_file(tmp_path: Path) -> Path:
    """Valid YAML that fails schema validation (the dataset is missing)."""
    config_content = textwrap.dedent("""\
        task_type: regression
        model:
          type: linear
    """)
    config_file = tmp_path / "invalid.yaml"
    config_file.write_text(config_content, encoding="utf-8")
    return config_file


@pytest.fixture()
def broken_yaml_file(tmp_path: Path) -> Path:
    """A file that isn't valid YAML at all."""
    config_file = tmp_path / "broken.yaml"
    config_file.write_text("{{not: yaml: at: all:::", encoding="utf-8")
    return config_file
