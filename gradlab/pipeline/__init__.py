# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Feature processing for gradlab.

Normalization, feature expansion (sinusoid and full polynomial) and the
ModelPipeline that applies them in front of a model, memoizing the
processed matrices per input handle.
"""
