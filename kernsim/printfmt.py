"""Kernel-style formatted output: printfmt, sformat and snprintf."""

from __future__ import annotations

from enum import IntEnum
from typing import Any, Callable, Iterable, Iterator

_DIGITS = "0123456789abcdef"
_DECIMAL = "0123456789"
_NULL_STRING = "(null)"


class ErrorCode(IntEnum):
    """Kernel error codes; functions report them negated."""

    UNSPECIFIED = 1
    BAD_PROC = 2
    INVAL = 3
    NO_MEM = 4
    NO_FREE_PROC = 5
    FAULT = 6


MAXERROR = max(ErrorCode)

_ERROR_STRINGS = {
    ErrorCode.UNSPECIFIED: "unspecified error",
    ErrorCode.BAD_PROC: "bad process",
    ErrorCode.INVAL: "invalid parameter",
    ErrorCode.NO_MEM: "out of memory",
    ErrorCode.NO_FREE_PROC: "out of processes",
    ErrorCode.FAULT: "segmentation fault",
}


def _wrap_signed(value: int, bits: int) -> int:
    value = int(value) & ((1 << bits) - 1)
    if value >= 1 << (bits - 1):
        value -= 1 << bits
    return value


def _wrap_unsigned(value: int, bits: int) -> int:
    return int(value) & ((1 << bits) - 1)


def error_message(code: int) -> str:
    """Describe an error code; a negative code means the same as its absolute value."""
    err = abs(_wrap_signed(code, 32))
    if 0 < err <= MAXERROR:
        return _ERROR_STRINGS[ErrorCode(err)]
    return f"error {err}"


def _number(num: int, base: int, width: int, padc: str) -> str:
    digits = []
    while True:
        num, mod = divmod(num, base)
        digits.append(_DIGITS[mod])
        if num == 0:
            break
    text = "".join(reversed(digits))
    pad = width - len(text)
    return padc * pad + text if pad > 0 else text


def _string(arg: Any, width: int, precision: int, padc: str, altflag: bool) -> Iterator[str]:
    text = _NULL_STRING if arg is None else str(arg)
    nul = text.find("\0")
    if nul >= 0:
        text = text[:nul]
    shown = text if precision < 0 else text[:precision]
    if width > 0 and padc != "-":
        width -= len(shown)
        if width > 0:
            yield padc * width
            width = 0
    if altflag:
        yield "".join(c if " " <= c <= "~" else "?" for c in shown)
    else:
        yield shown
    width -= len(shown)
    if width > 0:
        yield " " * width


def _render(fmt: str, args: Iterable[Any]) -> Iterator[str]:
    """Yield the pieces of output produced by ``fmt`` applied to ``args``."""
    arg_iter = iter(args)

    def next_arg() -> Any:
        try:
            return next(arg_iter)
        except StopIteration:
            raise TypeError("not enough arguments for format string") from None

    def char_at(index: int) -> str:
        return fmt[index] if index < len(fmt) else "\0"

    pos = 0
    while True:
        literal_start = pos
        while (ch := char_at(pos)) not in ("%", "\0"):
            pos += 1
        if pos > literal_start:
            yield fmt[literal_start:pos]
        pos += 1
        if ch == "\0":
            return

        escape_start = pos
        padc = " "
        width = precision = -1
        lflag = 0
        altflag = False

        while True:
            ch = char_at(pos)
            pos += 1
            if ch == "-":
                padc = "-"
            elif ch == "0":
                padc = "0"
            elif ch in "123456789" and ch != "\0":
                precision = int(ch)
                while (nxt := char_at(pos)) in _DECIMAL and nxt != "\0":
                    precision = precision * 10 + int(nxt)
                    pos += 1
                if width < 0:
                    width, precision = precision, -1
            elif ch == "*":
                precision = _wrap_signed(next_arg(), 32)
                if width < 0:
                    width, precision = precision, -1
            elif ch == ".":
                if width < 0:
                    width = 0
            elif ch == "#":
                altflag = True
            elif ch == "l":
                lflag += 1
            else:
                break

        if ch == "c":
            arg = next_arg()
            yield arg if isinstance(arg, str) else chr(int(arg) & 0xFF)
        elif ch == "e":
            yield error_message(next_arg())
        elif ch == "s":
            yield from _string(next_arg(), width, precision, padc, altflag)
        elif ch == "d":
            num = _wrap_signed(next_arg(), 64 if lflag else 32)
            if num < 0:
                yield "-"
                num = -num
            yield _number(num, 10, width, padc)
        elif ch in "uox" and ch != "\0":
            num = _wrap_unsigned(next_arg(), 64 if lflag else 32)
            base = {"u": 10, "o": 8, "x": 16}[ch]
            yield _number(num, base, width, padc)
        elif ch == "p":
            yield "0x"
            yield _number(_wrap_unsigned(next_arg(), 64), 16, width, padc)
        elif ch == "%":
            yield "%"
        else:
            # Unknown escape: emit '%' and print the rest literally.
            yield "%"
            pos = escape_start


def printfmt(putch: Callable[[str], Any], fmt: str, *args: Any) -> int:
    """Format ``fmt`` with ``args``, passing each character to ``putch``.

    Returns the number of characters emitted.
    """
    count = 0
    for piece in _render(fmt, args):
        for c in piece:
            putch(c)
            count += 1
    return count


def sformat(fmt: str, *args: Any) -> str:
    """Format ``fmt`` with ``args`` and return the whole result."""
    return "".join(_render(fmt, args))


def snprintf(size: int, fmt: str, *args: Any) -> tuple[str, int]:
    """Format into a buffer of ``size`` characters including the terminator.

    Returns the text that fits and the length the full output would have.
    Raises ValueError when the buffer cannot hold even the terminator.
    """
    if size < 1:
        raise ValueError(f"buffer size must be at least 1, got {size}")
    text = sformat(fmt, *args)
    return text[: size - 1], len(text)