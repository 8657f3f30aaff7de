"""Simulated teaching kernel boot: console formatting, device-tree memory discovery and first-fit page allocation."""

__version__ = "0.1.0"
__all__ = ["printfmt", "cstring", "console", "page", "first_fit", "dtb", "pmm", "kernel"]