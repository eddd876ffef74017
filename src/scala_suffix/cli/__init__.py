# src/scala_suffix/cli/__init__.py
"""
scala-suffix CLI commands.
"""

from scala_suffix.cli.suffix import main

__all__ = ["main"]
