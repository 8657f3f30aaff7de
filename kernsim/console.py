"""Kernel console: character I/O, formatted printing, line input and panics."""

from __future__ import annotations

import sys
from typing import Any, TextIO, Union

from kernsim.printfmt import printfmt

_BUFSIZE = 1024
_BACKSPACE = 0x08


class KernelPanic(RuntimeError):
    """Raised when the kernel hits an unrecoverable error."""

    def __init__(self, file: str, line: int, message: str) -> None:
        super().__init__(f"kernel panic at {file}:{line}: {message}")
        self.file = file
        self.line = line
        self.message = message


class Console:
    """A console reading characters from ``input`` and writing to ``output``."""

    def __init__(self, output: TextIO | None = None, input: TextIO | None = None) -> None:
        self._output = sys.stdout if output is None else output
        self._input = sys.stdin if input is None else input
        self._panicked = False

    def putc(self, c: Union[int, str]) -> None:
        """Write one character; integers are truncated to a byte."""
        ch = c if isinstance(c, str) else chr(int(c) & 0xFF)
        self._output.write(ch)

    def getc(self) -> int:
        """Read one character code, or -1 when input is exhausted."""
        ch = self._input.read(1)
        return ord(ch) if ch else -1

    def getchar(self) -> int:
        """Read the next non-NUL character code, or -1 at end of input."""
        while (c := self.getc()) == 0:
            pass
        return c

    def cprintf(self, fmt: str, *args: Any) -> int:
        """Print formatted output; return the number of characters written."""
        return printfmt(self.putc, fmt, *args)

    def cputs(self, text: str) -> int:
        """Write ``text`` and a newline; return the number of characters written."""
        nul = text.find("\0")
        if nul >= 0:
            text = text[:nul]
        for ch in text:
            self.putc(ch)
        self.putc("\n")
        return len(text) + 1

    def readline(self, prompt: str | None = None) -> str | None:
        """Read a line with echo and backspace editing.

        Returns the line without its terminator, or None if input ends first.
        Characters beyond the buffer's capacity are dropped.
        """
        if prompt is not None:
            self.cprintf("%s", prompt)
        buf: list[str] = []
        while True:
            c = self.getchar()
            if c < 0:
                return None
            if c >= ord(" ") and len(buf) < _BUFSIZE - 1:
                self.putc(chr(c))
                buf.append(chr(c))
            elif c == _BACKSPACE and buf:
                self.putc(chr(c))
                buf.pop()
            elif c in (ord("\n"), ord("\r")):
                self.putc(chr(c))
                return "".join(buf)

    def warn(self, file: str, line: int, fmt: str, *args: Any) -> None:
        """Print a kernel warning with its source location."""
        self.cprintf("kernel warning at %s:%d:\n    ", file, line)
        self.cprintf(fmt, *args)
        self.cprintf("\n")

    def panic(self, file: str, line: int, fmt: str, *args: Any) -> None:
        """Report a fatal error and raise KernelPanic.

        Only the first panic prints its message; later ones raise silently.
        """
        if self._panicked:
            raise KernelPanic(file, line, "nested panic")
        self._panicked = True
        self.cprintf("kernel panic at %s:%d:\n    ", file, line)
        count_start = []
        message_parts: list[str] = []

        def collect(ch: str) -> None:
            message_parts.append(ch)
            self.putc(ch)

        printfmt(collect, fmt, *args)
        del count_start
        self.cprintf("\n")
        raise KernelPanic(file, line, "".join(message_parts))

    def is_panicked(self) -> bool:
        """Whether a kernel panic has occurred on this console."""
        return self._panicked