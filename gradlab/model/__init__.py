# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
gradlab model family.

Closed-form gradient models trained by the optimizers in
gradlab.training.optimizer:
  - LinearRegressor
  - LogisticRegressor (binary)
  - SoftmaxLogisticRegressor (multiclass, one-hot labels)
  - OneVsRestLogisticRegressor (one binary run per class, run concurrently)

Theta is a ``[features + 1, outputs]`` matrix whose row 0 is the bias.
"""
