# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Tests for the config loader.

  1. Valid YAML loads into a frozen, correct RunConfig
  2. Schema violations raise ConfigValidationError
  3. Unreadable or broken files raise ConfigLoadError
  4. Plain mappings (worker payloads) go through the same validation
"""

import textwrap
from pathlib import Path
from typing import Any

import pytest
from pydantic import ValidationError

from gradlab.config.exceptions import ConfigError, ConfigLoadError, ConfigValidationError
from gradlab.config.loader import load_config, parse_config


class TestLoadValidConfig:
    def test_loads_config_from_yaml(self, tmp_config_file: Path) -> None:
        config = load_config(tmp_config_file)
        assert config.global_config.project_name == "gradlab-test"
        assert config.global_config.seed == 7
        assert config.task_type == "regression"
        assert config.report_interval == 5
        assert config.model.optimizer.max_iterations == 20
        assert config.dataset.train_labels == [[1.0], [3.0], [5.0]]

    def test_defaults_are_populated(self, tmp_config_file: Path) -> None:
        config = load_config(tmp_config_file)
        assert config.model.regularization.type == "none"
        assert config.model.theta_initialization.type == "zeros"
        assert config.data.normalization == "none"
        assert config.data.transformations == []
        assert config.dataset.test_features == []
        assert config.dataset.prediction_features is None

    def test_lambda_key_maps_to_regularization_strength(self, tmp_path: Path) -> None:
        content = textwrap.dedent("""\
            model:
              regularization:
                type: l2
                lambda: 0.25
            dataset:
              train_features: [[1.0]]
              train_labels: [[2.0]]
        """)
        config_file = tmp_path / "l2.yaml"
        config_file.write_text(content, encoding="utf-8")

        config = load_config(config_file)
        assert config.model.regularization.lambda_ == 0.25

    def test_loaded_config_is_frozen(self, tmp_config_file: Path) -> None:
        config = load_config(tmp_config_file)
        with pytest.raises(ValidationError):
            config.task_type = "classification"  # type: ignore[misc]


class TestLoadInvalidConfig:
    def test_missing_dataset_raises_validation_error(self, invalid_config_file: Path) -> None:
        with pytest.raises(ConfigValidationError):
            load_config(invalid_config_file)

    def test_broken_yaml_raises_load_error(self, broken_yaml_file: Path) -> None:
        with pytest.raises(ConfigLoadError):
            load_config(broken_yaml_file)

    def test_missing_file_raises_load_error(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigLoadError, match="not found"):
            load_config(tmp_path / "nope.yaml")

    def test_directory_raises_load_error(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigLoadError, match="not a file"):
            load_config(tmp_path)

    def test_non_mapping_yaml_raises_load_error(self, tmp_path: Path) -> None:
        config_file = tmp_path / "list.yaml"
        config_file.write_text("- 1\n- 2\n", encoding="utf-8")
        with pytest.raises(ConfigLoadError, match="mapping"):
            load_config(config_file)

    def test_config_errors_share_a_base_class(self, broken_yaml_file: Path) -> None:
        with pytest.raises(ConfigError):
            load_config(broken_yaml_file)


class TestParseConfig:
    def test_accepts_plain_mapping(self, regression_config: dict[str, Any]) -> None:
        config = parse_config(regression_config)
        assert config.model.optimizer.learning_rate == 0.5
        assert len(config.dataset.train_features) == 8

    def test_unknown_key_raises_validation_error(self, regression_config: dict[str, Any]) -> None:
        payload = dict(regression_config, learning_rte=0.1)
        with pytest.raises(ConfigValidationError, match="<payload>"):
            parse_config(payload)

    def test_source_appears_in_error(self, regression_config: dict[str, Any]) -> None:
        payload = dict(regression_config, task_type="clustering")
        with pytest.raises(ConfigValidationError, match="train command"):
            parse_config(payload, source="train command")


class TestShippedConfigs:
    """The example configs in configs/ must always validate."""

    CONFIG_DIR = Path(__file__).resolve().parents[2] / "configs"

    @pytest.mark.parametrize("name", ["regression.yaml", "classification.yaml", "softmax.yaml"])
    def test_shipped_config_loads(self, name: str) -> None:
        config = load_config(self.CONFIG_DIR / name)
        assert len(config.dataset.train_features) == len(config.dataset.train_labels)

    def test_softmax_config_settings(self) -> None:
        config = load_config(self.CONFIG_DIR / "softmax.yaml")
        assert config.model.classification == "softmax"
        assert config.model.optimizer.scheduler is True
        assert config.data.transformations[0].degree == 2
