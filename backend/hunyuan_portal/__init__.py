"""Hunyuan3D Portal: API proxy and CLI for remote 3D generation and R2 artifacts."""

__version__ = "0.1.0"
