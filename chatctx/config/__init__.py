"""Configuration module for chatctx."""

from chatctx.config.loader import get_config_path, load_config, save_config
from chatctx.config.schema import Config

__all__ = ["Config", "get_config_path", "load_config", "save_config"]
