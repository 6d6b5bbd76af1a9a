"""
Lock key hashing.

Maps a logical lock name onto the 32-bit identifier space used for
PostgreSQL advisory locks. The mapping is the classic ``h * 31 + c``
string hash evaluated over UTF-16 code units with signed 32-bit
wraparound, so every cooperating process (in any language that hashes
strings this way) derives the same identifier without exchanging it.

Collisions between different names are possible and accepted: two names
that hash to the same identifier behave as one shared lock.

Example:
    >>> hash_lock_key("hello")
    99162322
    >>> hash_lock_key("")
    0
"""

from __future__ import annotations

import struct

LOCK_ID_MAX = 2**31 - 1
"""Largest lock identifier; also the clamp value for ``-2**31``."""

_INT32_MIN = -(2**31)
_UINT32_MASK = 0xFFFFFFFF


def _wrap_int32(value: int) -> int:
    value &= _UINT32_MASK
    return value - 2**32 if value > LOCK_ID_MAX else value


def hash_lock_key(name: str) -> int:
    """
    Derive a non-negative lock identifier from a lock name.

    Args:
        name: Logical lock name

    Returns:
        Integer in ``[0, LOCK_ID_MAX]``. The empty string hashes to 0.

    Note:
        The absolute value of ``-2**31`` does not fit in a signed 32-bit
        integer, so that single intermediate result is clamped to
        ``LOCK_ID_MAX`` (e.g. ``"polygenelubricants"``).
    """
    h = 0
    encoded = name.encode("utf-16-le", "surrogatepass")
    for (unit,) in struct.iter_unpack("<H", encoded):
        h = _wrap_int32(h * 31 + unit)

    if h == _INT32_MIN:
        return LOCK_ID_MAX
    return abs(h)


__all__ = ["LOCK_ID_MAX", "hash_lock_key"]
