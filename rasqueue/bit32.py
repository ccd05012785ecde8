"""Bitwise operations on 32-bit unsigned numbers."""

from __future__ import annotations

import math
from typing import Union

NBITS = 32
ALL_ONES = (1 << NBITS) - 1

Number = Union[int, float, str]


class BitFieldError(ValueError):
    """A bit field or width argument is invalid."""


def _to_int(value: Number) -> int:
    if isinstance(value, bool):
        raise TypeError("number expected, got bool")
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if not math.isfinite(value):
            raise ValueError("number has no integer representation")
        return round(value)
    if isinstance(value, str):
        text = value.strip()
        try:
            return int(text, 0)
        except ValueError:
            pass
        try:
            return _to_int(float(text))
        except ValueError:
            raise TypeError(f"number expected, got string {value!r}") from None
    raise TypeError(f"number expected, got {type(value).__name__}")


def _unsigned(value: Number) -> int:
    return _to_int(value) & ALL_ONES


def _mask(width: int) -> int:
    return (1 << width) - 1


def band(*args: Number) -> int:
    """Bitwise and of all arguments; all ones when there are none."""
    result = ALL_ONES
    for arg in args:
        result &= _unsigned(arg)
    return result


def btest(*args: Number) -> bool:
    """True when the bitwise and of the arguments is not zero."""
    return band(*args) != 0


def bor(*args: Number) -> int:
    """Bitwise or of all arguments."""
    result = 0
    for arg in args:
        result |= _unsigned(arg)
    return result


def bxor(*args: Number) -> int:
    """Bitwise exclusive or of all arguments."""
    result = 0
    for arg in args:
        result ^= _unsigned(arg)
    return result


def bnot(x: Number) -> int:
    """Bitwise negation."""
    return ~_unsigned(x) & ALL_ONES


def _shift(r: int, i: int) -> int:
    if i < 0:
        i = -i
        return 0 if i >= NBITS else r >> i
    return 0 if i >= NBITS else (r << i) & ALL_ONES


def lshift(x: Number, disp: Number) -> int:
    """Logical shift left; negative ``disp`` shifts right."""
    return _shift(_unsigned(x), _to_int(disp))


def rshift(x: Number, disp: Number) -> int:
    """Logical shift right; negative ``disp`` shifts left."""
    return _shift(_unsigned(x), -_to_int(disp))


def arshift(x: Number, disp: Number) -> int:
    """Arithmetic shift right, copying the top bit into vacated positions."""
    r = _unsigned(x)
    i = _to_int(disp)
    if i < 0 or not r & (1 << (NBITS - 1)):
        return _shift(r, -i)
    if i >= NBITS:
        return ALL_ONES
    return ((r >> i) | (~(ALL_ONES >> i))) & ALL_ONES


def _rotate(x: Number, i: int) -> int:
    r = _unsigned(x)
    i &= NBITS - 1
    return ((r << i) | (r >> (NBITS - i))) & ALL_ONES


def lrotate(x: Number, disp: Number) -> int:
    """Rotate left by ``disp`` bits."""
    return _rotate(x, _to_int(disp))


def rrotate(x: Number, disp: Number) -> int:
    """Rotate right by ``disp`` bits."""
    return _rotate(x, -_to_int(disp))


def _field_args(field: Number, width: Number) -> tuple[int, int]:
    f = _to_int(field)
    w = _to_int(width)
    if f < 0:
        raise BitFieldError("field cannot be negative")
    if w <= 0:
        raise BitFieldError("width must be positive")
    if f + w > NBITS:
        raise BitFieldError("trying to access non-existent bits")
    return f, w


def extract(n: Number, field: Number, width: Number = 1) -> int:
    """Return the ``width`` bits of ``n`` starting at bit ``field``."""
    r = _unsigned(n)
    f, w = _field_args(field, width)
    return (r >> f) & _mask(w)


def replace(n: Number, v: Number, field: Number, width: Number = 1) -> int:
    """Return ``n`` with bits ``field`` .. ``field + width - 1`` set from ``v``."""
    r = _unsigned(n)
    value = _unsigned(v)
    f, w = _field_args(field, width)
    m = _mask(w)
    value &= m
    return ((r & ~(m << f)) | (value << f)) & ALL_ONES