"""
CLI for narrative forge
"""

from .commands import cli

__all__ = ["cli"]
