"""Procedural terrain generation pipeline."""

from .generator import World, generate_world

__all__ = ["World", "generate_world"]
