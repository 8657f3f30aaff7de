"""String and memory helpers with C library semantics.

Strings may be ``str`` or bytes-like objects. As in C, a string ends at its
first NUL character or at the end of the object, whichever comes first.
"""

from __future__ import annotations

from typing import Union

CharSeq = Union[str, bytes, bytearray, memoryview]

_LONG_BITS = 64


def _code(text: CharSeq, index: int) -> int:
    """Return the unsigned character code at ``index``, or 0 past the end."""
    if index >= len(text):
        return 0
    item = text[index]
    return (ord(item) if isinstance(item, str) else int(item)) & 0xFF if not isinstance(item, str) else ord(item)


def _char_code(ch: Union[str, int]) -> int:
    return ord(ch) if isinstance(ch, str) else int(ch)


def _wrap_long(value: int) -> int:
    value &= (1 << _LONG_BITS) - 1
    if value >= 1 << (_LONG_BITS - 1):
        value -= 1 << _LONG_BITS
    return value


def _digit(code: int) -> int | None:
    if ord("0") <= code <= ord("9"):
        return code - ord("0")
    if ord("a") <= code <= ord("z"):
        return code - ord("a") + 10
    if ord("A") <= code <= ord("Z"):
        return code - ord("A") + 10
    return None


def strtol(text: CharSeq, base: int = 0) -> tuple[int, int]:
    """Parse a long integer from ``text``.

    Returns the value and the index of the first character not consumed.
    Leading spaces and tabs are skipped; an optional sign follows. With base
    0 or 16 a ``0x`` prefix selects hexadecimal; with base 0 a leading ``0``
    selects octal, otherwise decimal. Overflow wraps as a 64-bit long.
    """
    pos = 0
    while _code(text, pos) in (ord(" "), ord("\t")):
        pos += 1

    negative = False
    if _code(text, pos) == ord("+"):
        pos += 1
    elif _code(text, pos) == ord("-"):
        pos += 1
        negative = True

    if base in (0, 16) and _code(text, pos) == ord("0") and _code(text, pos + 1) == ord("x"):
        pos += 2
        base = 16
    elif base == 0 and _code(text, pos) == ord("0"):
        pos += 1
        base = 8
    elif base == 0:
        base = 10

    value = 0
    while (dig := _digit(_code(text, pos))) is not None and dig < base:
        value = _wrap_long(value * base + dig)
        pos += 1

    return _wrap_long(-value if negative else value), pos


def strcmp(s1: CharSeq, s2: CharSeq) -> int:
    """Compare two strings; the sign of the result orders them."""
    i = 0
    while _code(s1, i) != 0 and _code(s1, i) == _code(s2, i):
        i += 1
    return _code(s1, i) - _code(s2, i)


def strncmp(s1: CharSeq, s2: CharSeq, n: int) -> int:
    """Compare at most ``n`` characters of two strings."""
    i = 0
    while n > 0 and _code(s1, i) != 0 and _code(s1, i) == _code(s2, i):
        n -= 1
        i += 1
    return 0 if n == 0 else _code(s1, i) - _code(s2, i)


def strfind(text: CharSeq, ch: Union[str, int]) -> int:
    """Index of the first ``ch`` in ``text``, or of the string's end if absent."""
    target = _char_code(ch)
    i = 0
    while (code := _code(text, i)) != 0:
        if code == target:
            break
        i += 1
    return i


def memcmp(v1: bytes | bytearray | memoryview, v2: bytes | bytearray | memoryview, n: int) -> int:
    """Compare the first ``n`` bytes of two buffers as unsigned values."""
    if n < 0 or n > len(v1) or n > len(v2):
        raise ValueError(f"cannot compare {n} bytes of buffers of {len(v1)} and {len(v2)} bytes")
    for a, b in zip(bytes(v1[:n]), bytes(v2[:n])):
        if a != b:
            return a - b
    return 0


def memmove(buffer: bytearray, dst: int, src: int, n: int) -> None:
    """Copy ``n`` bytes within ``buffer`` from ``src`` to ``dst``; regions may overlap."""
    if n < 0 or min(dst, src) < 0 or max(dst, src) + n > len(buffer):
        raise IndexError(f"move of {n} bytes from {src} to {dst} exceeds buffer of {len(buffer)}")
    buffer[dst:dst + n] = bytes(buffer[src:src + n])