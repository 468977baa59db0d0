# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Training engine for gradlab.

Gradient-descent optimizers with cooperative pause/step/stop control, the
learning rate schedule, the event bus that carries per-iteration progress,
and the Trainer that turns that progress into reports.
"""
