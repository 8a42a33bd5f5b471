"""Menuz backend: restaurant menu admin with an AI 3D-model pipeline."""

__version__ = "0.1.0"
