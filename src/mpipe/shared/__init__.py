"""Shared utilities used across mpipe components."""

from .logging import LogConfig

__all__ = ["LogConfig"]
