# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Inverse-scaling learning rate schedule.

  rate(i) = lam * (s0 / (s0 + i)) ** p

With p = 0 the rate is constant. The optimizers always hold a LearningRate,
so a fixed step size is just ``LearningRate(lam, 0, 0)``.
"""

from typing import Optional

from gradlab.config.schema import SchedulerConfig
from gradlab.training.exceptions import require


class LearningRate:
    """
    Learning rate that decays with the iteration number.

    Args:
        lam: Base learning rate, must be > 0.
        s0: Decay offset, must be >= 0.
        p: Decay power, must be >= 0.

    Raises:
        ConfigurationError: On any out-of-range parameter.
    """

    def __init__(self, lam: float = 1e-3, s0: float = 1.0, p: float = 0.5) -> None:
        require(lam > 0, f"Learning rate (lambda) must be positive, got {lam}")
        require(s0 >= 0, f"s0 must be positive or zero, got {s0}")
        require(p >= 0, f"p must be positive or zero, got {p}")
        self.lam = float(lam)
        self.s0 = float(s0)
        self.p = float(p)

    @classmethod
    def constant(cls, lam: float) -> "LearningRate":
        return cls(lam, 0.0, 0.0)

    def next(self, iteration: int) -> float:
        """Rate for a 0-indexed iteration."""
        if self.p == 0:
            return self.lam
        denominator = self.s0 + iteration
        if denominator == 0:
            # s0 = 0 at iteration 0: no decay has happened yet
            return self.lam
        return self.lam * (self.s0 / denominator) ** self.p

    def __repr__(self) -> str:
        return f"LearningRate(lam={self.lam}, s0={self.s0}, p={self.p})"


def get_learning_rate(rate: float, scheduler_config: Optional[SchedulerConfig] = None) -> LearningRate:
    """Constant rate without a scheduler config, decaying rate with one."""
    if scheduler_config is None:
        return LearningRate.constant(rate)
    return LearningRate(rate, scheduler_config.s0, scheduler_config.p)
