"""Stateless core: context resolution, provider contract and prompt refinement."""

__version__ = "1.0.0"
