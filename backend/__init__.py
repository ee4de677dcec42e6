"""Asset tooling for the watermark remover."""

from .generate_templates import generate_templates, render_sparkle

__all__ = ["generate_templates", "render_sparkle"]
