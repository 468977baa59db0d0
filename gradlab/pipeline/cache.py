# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Memoization of processed feature and label matrices.

The trainer evaluates the same train/test matrices after every iteration.
Normalizing and expanding them each time would dominate the run, so the
pipeline caches the processed result per input.

Tensors don't carry a stable identity we can key on (``id()`` gets reused
once an object is freed), so inputs are wrapped in a TensorHandle that
takes a tag from a process-wide counter. Two handles never share a tag,
even when they wrap equal data.
"""

import itertools
import logging
import threading
from dataclasses import dataclass
from typing import Callable

import torch

from gradlab.logging.logger import get_logger
from gradlab.tensors import MatrixLike, as_matrix

logger: logging.Logger = get_logger(__name__)

_tag_counter = itertools.count(1)
_tag_lock = threading.Lock()


def _next_tag() -> int:
    with _tag_lock:
        return next(_tag_counter)


@dataclass(frozen=True)
class TensorHandle:
    """A matrix plus the unique tag the cache keys on."""

    tensor: torch.Tensor
    tag: int

    @classmethod
    def wrap(cls, data: MatrixLike) -> "TensorHandle":
        return cls(tensor=as_matrix(data), tag=_next_tag())

    @property
    def shape(self) -> torch.Size:
        return self.tensor.shape


class FeatureCache:
    """Processed matrices keyed by ``(handle tag, kind)``."""

    def __init__(self) -> None:
        self._entries: dict[tuple[int, str], torch.Tensor] = {}
        self.hits = 0
        self.misses = 0

    def get_or_compute(
        self,
        handle: TensorHandle,
        kind: str,
        compute: Callable[[torch.Tensor], torch.Tensor],
    ) -> torch.Tensor:
        key = (handle.tag, kind)
        cached = self._entries.get(key)
        if cached is not None:
            self.hits += 1
            return cached

        self.misses += 1
        result = compute(handle.tensor)
        self._entries[key] = result
        return result

    def clear(self) -> None:
        if self._entries:
            logger.debug(
                "Feature cache cleared",
                extra={"entries": len(self._entries), "hits": self.hits, "misses": self.misses},
            )
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: tuple[int, str]) -> bool:
        return key in self._entries
