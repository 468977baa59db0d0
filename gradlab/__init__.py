# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
gradlab: an interactive gradient-descent training engine.

Linear and logistic models are trained with hand-derived gradients under a
pausable, steppable, cancellable cooperative loop. Progress is reported as
compact float32 snapshots that a UI (or the CLI) can decode.
"""

__version__ = "0.1.0"
