"""Configuration helpers for the watermark remover."""

from .loader import DEFAULT_CONFIG_PATH, config_base_dir, get_section, load_config

__all__ = ["DEFAULT_CONFIG_PATH", "load_config", "get_section", "config_base_dir"]
