# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Flat float32 encoding of report mappings.

A report is a mapping from string keys to numbers, 1-D sequences or 2-D
row-major matrices. It travels as little-endian float32 values laid out as

  [entry_count, entry_1, entry_2, ...]

where each entry is

  [key_length, key_char_0 .. key_char_n, value_cols, value_rows, data ...]

and the value shape is tagged with sentinels:

  scalar      cols = -1, rows = -1   (1 value)
  1-D, len L  cols =  L, rows = -1   (L values)
  2-D, R x C  cols =  C, rows =  R   (R * C values, row-major)

Keys with a None value are left out entirely. Key characters are stored
as their code points, so keys must stay below 2**24 to survive float32.

Decoding validates every count and length against the remaining buffer.
A malformed buffer raises DecodeError naming the offset (and key, once
known); nothing is zero-filled. Trailing values after the last entry only
produce a warning.
"""

import logging
import math
import struct
from typing import Any, Mapping, Sequence, Union

import torch

from gradlab.logging.logger import get_logger

logger: logging.Logger = get_logger(__name__)

SCALAR = -1
FLOAT_SIZE = 4

Value = Union[float, list[float], list[list[float]]]
Buffer = Union[bytes, bytearray, memoryview]


class EncodeError(ValueError):
    """A value can't be represented in the report layout."""


class DecodeError(ValueError):
    """A report buffer is malformed or truncated."""


def _flatten_value(key: str, value: Any) -> tuple[int, int, list[float]]:
    """Return ``(cols, rows, data)`` for one value."""
    if isinstance(value, torch.Tensor):
        value = value.detach().cpu().tolist()

    if isinstance(value, (int, float)):
        return SCALAR, SCALAR, [float(value)]

    if isinstance(value, (list, tuple)):
        if len(value) == 0:
            return 0, SCALAR, []

        if all(isinstance(item, (int, float)) for item in value):
            return len(value), SCALAR, [float(item) for item in value]

        if all(isinstance(item, (list, tuple)) for item in value):
            cols = len(value[0])
            data: list[float] = []
            for row in value:
                if len(row) != cols:
                    raise EncodeError(f"Ragged 2-D value for key '{key}'")
                if not all(isinstance(item, (int, float)) for item in row):
                    raise EncodeError(
                        f"Unsupported element in 2-D value for key '{key}'; rows must hold numbers"
                    )
                data.extend(float(item) for item in row)
            return cols, len(value), data

        raise EncodeError(
            f"Unsupported array element type for key '{key}'. "
            "Array must contain numbers or number arrays."
        )

    raise EncodeError(
        f"Unsupported value type {type(value).__name__} for key '{key}'. "
        "Value must be a number, a 1-D or a 2-D sequence of numbers."
    )


def encode_values(data: Mapping[str, Any]) -> list[float]:
    """Lay out ``data`` as the flat value list (before float32 packing)."""
    entries = [(key, value) for key, value in data.items() if value is not None]

    values: list[float] = [float(len(entries))]
    for key, value in entries:
        cols, rows, flat = _flatten_value(key, value)
        values.append(float(len(key)))
        values.extend(float(ord(char)) for char in key)
        values.append(float(cols))
        values.append(float(rows))
        values.extend(flat)
    return values


def encode(data: Mapping[str, Any]) -> bytes:
    """
    Encode a report mapping as little-endian float32 bytes.

    Raises:
        EncodeError: For values that aren't numbers, 1-D or 2-D sequences.
    """
    values = encode_values(data)
    return struct.pack(f"<{len(values)}f", *values)


def _as_count(raw: float, what: str, offset: int) -> int:
    if math.isnan(raw) or raw < 0 or raw != int(raw):
        raise DecodeError(f"Invalid {what} at offset {offset}: {raw}")
    return int(raw)


def decode_values(values: Sequence[float]) -> dict[str, Value]:
    """Rebuild a report mapping from its flat value list."""
    if len(values) == 0:
        raise DecodeError("Encoded data is empty.")

    total = len(values)
    entry_count = _as_count(values[0], "number of entries", 0)
    offset = 1
    decoded: dict[str, Value] = {}

    for index in range(entry_count):
        if offset >= total:
            raise DecodeError(f"Encoded data truncated: missing key length for entry {index}.")

        key_length = _as_count(values[offset], f"key length for entry {index}", offset)
        offset += 1
        if offset + key_length > total:
            raise DecodeError(
                f"Encoded data truncated: key of entry {index} at offset {offset - 1} "
                f"needs {key_length} values."
            )

        chars = []
        for position in range(offset, offset + key_length):
            code = _as_count(values[position], f"key character for entry {index}", position)
            chars.append(chr(code))
        key = "".join(chars)
        offset += key_length

        if offset + 2 > total:
            raise DecodeError(
                f"Encoded data truncated: missing value dimensions for key '{key}' at offset {offset}."
            )
        cols, rows = values[offset], values[offset + 1]
        dims_offset = offset
        offset += 2

        if cols == SCALAR and rows == SCALAR:
            if offset >= total:
                raise DecodeError(
                    f"Encoded data truncated: missing scalar value for key '{key}' at offset {offset}."
                )
            decoded[key] = values[offset]
            offset += 1
            continue

        if rows == SCALAR:
            length = _as_count(cols, f"length for key '{key}'", dims_offset)
            if offset + length > total:
                raise DecodeError(
                    f"Encoded data truncated: missing 1-D data for key '{key}' at offset {offset}. "
                    f"Expected {length} elements."
                )
            decoded[key] = list(values[offset : offset + length])
            offset += length
            continue

        n_cols = _as_count(cols, f"column count for key '{key}'", dims_offset)
        n_rows = _as_count(rows, f"row count for key '{key}'", dims_offset + 1)
        length = n_cols * n_rows
        if offset + length > total:
            raise DecodeError(
                f"Encoded data truncated: missing 2-D data for key '{key}' at offset {offset}. "
                f"Expected {length} elements."
            )
        decoded[key] = [
            list(values[offset + r * n_cols : offset + (r + 1) * n_cols]) for r in range(n_rows)
        ]
        offset += length

    if offset < total:
        logger.warning(
            "Extra data found after decoding all entries",
            extra={"remaining": total - offset, "offset": offset},
        )

    return decoded


def decode(buffer: Buffer) -> dict[str, Value]:
    """
    Decode little-endian float32 bytes produced by ``encode``.

    Raises:
        DecodeError: Empty, misaligned, truncated or inconsistent buffers.
    """
    raw = bytes(buffer)
    if len(raw) == 0:
        raise DecodeError("Encoded data is empty.")
    if len(raw) % FLOAT_SIZE != 0:
        raise DecodeError(
            f"Encoded data length {len(raw)} is not a multiple of {FLOAT_SIZE} bytes."
        )
    values = struct.unpack(f"<{len(raw) // FLOAT_SIZE}f", raw)
    return decode_values(values)
