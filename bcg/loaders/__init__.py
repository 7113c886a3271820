"""Peering configuration decoding (YAML, TOML, JSON)"""

from .config_file import SUPPORTED_EXTENSIONS, load_config_file

__all__ = ["SUPPORTED_EXTENSIONS", "load_config_file"]
