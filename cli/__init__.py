"""Command-line entry points for the watermark remover."""
