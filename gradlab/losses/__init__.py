# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Loss functions with hand-derived gradients.

Each loss knows its value, its gradient with respect to the parameter matrix
(bias row first, then one row per feature) and its gradient with respect to
the predictions. Logit-based variants take raw scores and use numerically
stable formulations.
"""
