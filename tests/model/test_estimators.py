# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
End-to-end training of each estimator on small, separable datasets.

These go through the real closures, so a wrong gradient shows up as a model
that fails to fit rather than as a unit-level mismatch.
"""

import asyncio

import pytest
import torch

from gradlab.losses.classification import (
    BinaryCrossentropy,
    BinaryCrossentropyLogits,
    CategoricalCrossentropy,
    CategoricalCrossentropyLogits,
)
from gradlab.losses.regression import MeanAbsoluteError, MeanSquaredError
from gradlab.metrics.core import accuracy
from gradlab.model.init.theta import zeros_initializer
from gradlab.model.linear import LinearRegressor
from gradlab.model.logistic import (
    LogisticRegressor,
    OneVsRestLogisticRegressor,
    SoftmaxLogisticRegressor,
)
from gradlab.pipeline.core import one_hot_labels
from gradlab.regularization.core import L2Regularization
from gradlab.tensors import DTYPE
from gradlab.training.events.core import EventBus
from gradlab.training.exceptions import NotTrainedError, TrainingStoppedError
from gradlab.training.optimizer.core import BatchGD


def _labels(values: list[float]) -> torch.Tensor:
    return torch.tensor(values, dtype=DTYPE).reshape(-1, 1)


class TestLinearRegressor:
    def test_fits_line(self, line_data: tuple[torch.Tensor, torch.Tensor]) -> None:
        X, y = line_data
        model = LinearRegressor(MeanSquaredError(), BatchGD(0.5, 2000, tolerance=1e-6))
        theta = asyncio.run(model.train(X, y))

        assert theta.flatten().tolist() == pytest.approx([1.0, 2.0], abs=0.01)
        prediction = model.predict(torch.tensor([[3.0]], dtype=DTYPE))
        assert prediction.item() == pytest.approx(7.0, abs=0.05)

    def test_recovers_line_from_four_points(self) -> None:
        X = torch.tensor([[1.0], [2.0], [3.0], [4.0]], dtype=DTYPE)
        y = torch.tensor([[3.0], [5.0], [7.0], [9.0]], dtype=DTYPE)
        model = LinearRegressor(MeanSquaredError(), BatchGD(0.1, 100))
        theta = asyncio.run(model.train(X, y))

        assert theta[0, 0].item() == pytest.approx(1.0, abs=0.5)
        assert theta[1, 0].item() == pytest.approx(2.0, abs=0.5)

    def test_evaluate_returns_predictions_twice_and_loss(
        self, line_data: tuple[torch.Tensor, torch.Tensor]
    ) -> None:
        X, y = line_data
        model = LinearRegressor(MeanSquaredError(), BatchGD(0.1, 5))
        theta = torch.tensor([[1.0], [2.0]], dtype=DTYPE)

        predictions, raw, loss = model.evaluate(X, y, theta)
        assert torch.equal(predictions, raw)
        assert torch.allclose(predictions, y)
        assert loss.item() == pytest.approx(0.0)

    def test_mae_also_reduces_error(self, line_data: tuple[torch.Tensor, torch.Tensor]) -> None:
        X, y = line_data
        model = LinearRegressor(MeanAbsoluteError(), BatchGD(0.1, 300, tolerance=1e-9))
        start = model.evaluate(X, y, torch.zeros((2, 1), dtype=DTYPE))[2].item()
        asyncio.run(model.train(X, y))
        assert model.evaluate(X, y)[2].item() < start / 4

    def test_l2_shrinks_weights(self, line_data: tuple[torch.Tensor, torch.Tensor]) -> None:
        X, y = line_data
        plain = LinearRegressor(MeanSquaredError(), BatchGD(0.3, 500, tolerance=1e-9))
        ridge = LinearRegressor(
            MeanSquaredError(), BatchGD(0.3, 500, tolerance=1e-9), L2Regularization(1.0)
        )
        plain_theta = asyncio.run(plain.train(X, y))
        ridge_theta = asyncio.run(ridge.train(X, y))
        assert abs(ridge_theta[1, 0].item()) < abs(plain_theta[1, 0].item())

    def test_predict_before_train_raises(self) -> None:
        model = LinearRegressor(MeanSquaredError(), BatchGD(0.1, 5))
        with pytest.raises(NotTrainedError):
            model.predict(torch.zeros((1, 1), dtype=DTYPE))

    def test_stopped_model_cannot_train_again(
        self, line_data: tuple[torch.Tensor, torch.Tensor]
    ) -> None:
        X, y = line_data
        model = LinearRegressor(MeanSquaredError(), BatchGD(0.1, 5))
        model.stop()
        with pytest.raises(TrainingStoppedError):
            asyncio.run(model.train(X, y))

    def test_dispose_forgets_theta_and_stops(
        self, line_data: tuple[torch.Tensor, torch.Tensor]
    ) -> None:
        X, y = line_data
        events = EventBus()
        events.on("callback", lambda payload: None)
        model = LinearRegressor(MeanSquaredError(), BatchGD(0.1, 3, events=events))
        asyncio.run(model.train(X, y))

        model.dispose(with_dependencies=True)
        assert model.theta is None
        assert model.optimizer.stopped
        assert events.listener_count("callback") == 0


class TestLogisticRegressor:
    @pytest.mark.parametrize("loss", [BinaryCrossentropy(), BinaryCrossentropyLogits()])
    def test_separates_two_clusters(
        self, cluster_data: tuple[torch.Tensor, torch.Tensor], loss
    ) -> None:
        X, y = cluster_data
        model = LogisticRegressor(loss, BatchGD(0.5, 200))
        asyncio.run(model.train(X, y))

        assert accuracy(y, model.predict(X)) > 0.9

    def test_predictions_are_zero_or_one(
        self, cluster_data: tuple[torch.Tensor, torch.Tensor]
    ) -> None:
        X, y = cluster_data
        model = LogisticRegressor(BinaryCrossentropy(), BatchGD(0.5, 20))
        asyncio.run(model.train(X, y))
        assert set(model.predict(X).flatten().tolist()) <= {0.0, 1.0}

    def test_evaluate_in_logit_space(self, cluster_data: tuple[torch.Tensor, torch.Tensor]) -> None:
        X, y = cluster_data
        theta = torch.tensor([[0.1], [1.5]], dtype=DTYPE)
        _, probability, logit_loss = LogisticRegressor(
            BinaryCrossentropyLogits(), BatchGD(0.1, 1)
        ).evaluate(X, y, theta)
        _, _, probability_loss = LogisticRegressor(
            BinaryCrossentropy(), BatchGD(0.1, 1)
        ).evaluate(X, y, theta)

        assert probability.min().item() > 0.0
        assert probability.max().item() < 1.0
        assert logit_loss.item() == pytest.approx(probability_loss.item(), rel=1e-5)

    def test_threshold_is_inclusive(self) -> None:
        model = LogisticRegressor(BinaryCrossentropy(), BatchGD(0.1, 1))
        labels = model.probability_to_label(torch.tensor([[0.5], [0.49]], dtype=DTYPE))
        assert labels.flatten().tolist() == [1.0, 0.0]

    def test_separates_diagonal_clusters_in_two_dimensions(self) -> None:
        offsets = [(0.0, 0.0), (0.4, -0.3), (-0.3, 0.4), (0.2, 0.2), (-0.4, -0.1)]
        negatives = [[-2.0 + dx, -2.0 + dy] for dx, dy in offsets]
        positives = [[2.0 + dx, 2.0 + dy] for dx, dy in offsets]
        X = torch.tensor(negatives + positives, dtype=DTYPE)
        y = _labels([0.0] * len(negatives) + [1.0] * len(positives))

        model = LogisticRegressor(BinaryCrossentropy(), BatchGD(0.1, 200))
        asyncio.run(model.train(X, y))

        assert accuracy(y, model.predict(X)) > 0.9


class TestSoftmaxLogisticRegressor:
    @pytest.mark.parametrize(
        "loss", [CategoricalCrossentropy(), CategoricalCrossentropyLogits()]
    )
    def test_separates_three_clusters(self, three_cluster_features: torch.Tensor, loss) -> None:
        X = three_cluster_features
        y = _labels([0.0] * 4 + [1.0] * 4 + [2.0] * 4)
        model = SoftmaxLogisticRegressor(loss, BatchGD(0.5, 300))
        theta = asyncio.run(model.train(X, one_hot_labels(y)))

        assert theta.shape == (3, 3)
        assert accuracy(y, model.predict(X)) >= 0.9

    def test_default_start_is_not_zero(self, three_cluster_features: torch.Tensor) -> None:
        model = SoftmaxLogisticRegressor(CategoricalCrossentropy(), BatchGD(0.5, 1))
        theta = model.theta_initializer((2, 3))
        assert torch.count_nonzero(theta[1:]) > 0

    def test_explicit_initializer_is_honoured(self, three_cluster_features: torch.Tensor) -> None:
        model = SoftmaxLogisticRegressor(
            CategoricalCrossentropy(), BatchGD(0.5, 1), theta_initializer=zeros_initializer()
        )
        assert torch.count_nonzero(model.theta_initializer((2, 3))) == 0

    def test_uses_one_hot_labels(self) -> None:
        model = SoftmaxLogisticRegressor(CategoricalCrossentropy(), BatchGD(0.5, 1))
        assert model.uses_one_hot_labels()
        assert not LogisticRegressor(BinaryCrossentropy(), BatchGD(0.5, 1)).uses_one_hot_labels()


class TestOneVsRestLogisticRegressor:
    def test_predicts_original_label_values(self, three_cluster_features: torch.Tensor) -> None:
        X = three_cluster_features
        y = _labels([1.0] * 4 + [2.0] * 4 + [5.0] * 4)
        model = OneVsRestLogisticRegressor(BinaryCrossentropy(), BatchGD(0.5, 300))
        theta = asyncio.run(model.train(X, y))

        assert theta.shape == (3, 3)
        assert model.classes is not None
        assert model.classes.tolist() == [1.0, 2.0, 5.0]
        assert set(model.predict(X).flatten().tolist()) <= {1.0, 2.0, 5.0}
        assert accuracy(y, model.predict(X)) >= 0.9

    def test_runs_report_their_ids(self, three_cluster_features: torch.Tensor) -> None:
        X = three_cluster_features
        y = _labels([0.0] * 4 + [1.0] * 4 + [2.0] * 4)
        events = EventBus()
        callbacks = []
        events.on("callback", callbacks.append)
        model = OneVsRestLogisticRegressor(
            BinaryCrossentropy(), BatchGD(0.5, 3, tolerance=1e-12, events=events)
        )
        asyncio.run(model.train(X, y))

        assert sorted({cb.run_id for cb in callbacks}) == [0, 1, 2]
        assert {cb.run_count for cb in callbacks} == {3}
        assert sorted({cb.run_name for cb in callbacks}) == ["0", "1", "2"]
        assert len(callbacks) == 9

    def test_evaluate_with_external_theta(self, three_cluster_features: torch.Tensor) -> None:
        X = three_cluster_features
        y = _labels([0.0] * 4 + [1.0] * 4 + [2.0] * 4)
        model = OneVsRestLogisticRegressor(BinaryCrossentropy(), BatchGD(0.5, 1))
        theta = torch.zeros((3, 3), dtype=DTYPE)

        predictions, probability, loss = model.evaluate(X, y, theta)
        assert probability.shape == (12, 3)
        assert predictions.shape == (12, 1)
        assert loss.item() == pytest.approx(0.6931, abs=1e-3)
