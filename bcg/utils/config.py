#!/usr/bin/env python3
"""
Configuration Management for BCG

Tool settings (not the peering configuration itself) with:
- Environment variable support
- JSON settings file support
- Default values and validation
"""

import json
import logging
import os
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional


def _env_int(name: str, current: int) -> int:
    value = os.getenv(name)
    if value:
        try:
            return int(value)
        except ValueError:
            logging.getLogger(__name__).warning(f"Ignoring non-integer {name}={value!r}")
    return current


@dataclass
class PeeringDBConfig:
    """PeeringDB API client configuration"""

    base_url: str = "https://peeringdb.com"
    timeout: int = 5
    api_key: Optional[str] = None

    def __post_init__(self):
        """Load from environment variables if not set"""
        if os.getenv("BCG_PEERINGDB_URL"):
            self.base_url = os.getenv("BCG_PEERINGDB_URL")
        self.timeout = _env_int("BCG_PEERINGDB_TIMEOUT", self.timeout)
        if self.api_key is None:
            self.api_key = os.getenv("BCG_PEERINGDB_API_KEY")


@dataclass
class BGPQ4Config:
    """bgpq4 tool configuration"""

    path: str = "bgpq4"
    timeout: int = 60

    def __post_init__(self):
        """Load from environment variables if not set"""
        if os.getenv("BCG_BGPQ4_PATH"):
            self.path = os.getenv("BCG_BGPQ4_PATH")
        self.timeout = _env_int("BCG_BGPQ4_TIMEOUT", self.timeout)


@dataclass
class BirdConfig:
    """BIRD control socket configuration"""

    socket_path: str = "/run/bird/bird.ctl"
    command: str = "configure"
    timeout: int = 10
    buffer_size: int = 1024

    def __post_init__(self):
        """Load from environment variables if not set"""
        if os.getenv("BCG_BIRD_SOCKET"):
            self.socket_path = os.getenv("BCG_BIRD_SOCKET")
        self.timeout = _env_int("BCG_BIRD_TIMEOUT", self.timeout)


@dataclass
class OutputConfig:
    """Input and output location configuration"""

    config_file: str = "/etc/bcg/config.yml"
    output_dir: str = "/etc/bird/"
    templates_dir: Optional[str] = None  # None selects the packaged templates

    def __post_init__(self):
        """Load from environment variables if not set"""
        if os.getenv("BCG_CONFIG_FILE"):
            self.config_file = os.getenv("BCG_CONFIG_FILE")
        if os.getenv("BCG_OUTPUT_DIR"):
            self.output_dir = os.getenv("BCG_OUTPUT_DIR")
        if os.getenv("BCG_TEMPLATES_DIR"):
            self.templates_dir = os.getenv("BCG_TEMPLATES_DIR")


@dataclass
class LoggingConfig:
    """Logging configuration"""

    level: str = "INFO"
    log_to_file: bool = False
    log_file: Optional[str] = None

    def __post_init__(self):
        """Load from environment variables if not set"""
        if os.getenv("BCG_LOG_LEVEL"):
            self.level = os.getenv("BCG_LOG_LEVEL").upper()
        if os.getenv("BCG_LOG_FILE"):
            self.log_file = os.getenv("BCG_LOG_FILE")
            self.log_to_file = True


@dataclass
class BCGConfig:
    """Main configuration container"""

    peeringdb: PeeringDBConfig = None
    bgpq4: BGPQ4Config = None
    bird: BirdConfig = None
    output: OutputConfig = None
    logging: LoggingConfig = None

    def __post_init__(self):
        """Initialize subconfigs if not provided"""
        if self.peeringdb is None:
            self.peeringdb = PeeringDBConfig()
        if self.bgpq4 is None:
            self.bgpq4 = BGPQ4Config()
        if self.bird is None:
            self.bird = BirdConfig()
        if self.output is None:
            self.output = OutputConfig()
        if self.logging is None:
            self.logging = LoggingConfig()


SECTIONS = {
    "peeringdb": PeeringDBConfig,
    "bgpq4": BGPQ4Config,
    "bird": BirdConfig,
    "output": OutputConfig,
    "logging": LoggingConfig,
}


class ConfigManager:
    """Settings management for BCG"""

    DEFAULT_CONFIG_PATHS = [
        Path.home() / ".config/bcg/settings.json",
        Path("/etc/bcg/settings.json"),
        Path("./settings.json"),
    ]

    def __init__(self, config_path: Optional[Path] = None):
        """
        Initialize configuration manager

        Args:
            config_path: Optional path to a JSON settings file
        """
        self.logger = logging.getLogger(__name__)
        self.config_path = config_path
        self.config = BCGConfig()

        self._load_config()

    def _load_config(self):
        """Load settings from file; environment overrides happen in __post_init__"""
        config_file = self._find_config_file()
        if config_file:
            try:
                self._load_from_file(config_file)
                self.logger.info(f"Loaded settings from {config_file}")
            except (OSError, ValueError, TypeError) as e:
                self.logger.warning(f"Failed to load settings file {config_file}: {e}")

        self.logger.debug("Settings loaded with environment variable overrides")

    def _find_config_file(self) -> Optional[Path]:
        """Find settings file in default locations"""
        if self.config_path and self.config_path.exists():
            return self.config_path

        for path in self.DEFAULT_CONFIG_PATHS:
            if path.exists():
                return path

        return None

    def _load_from_file(self, config_path: Path):
        """Load settings from JSON file"""
        with open(config_path, "r") as f:
            data = json.load(f)
        self._load_from_dict(data)

    def _load_from_dict(self, data: dict):
        """Replace each section present in ``data``"""
        for section, section_class in SECTIONS.items():
            if section in data:
                setattr(self.config, section, section_class(**data[section]))

    def get_config(self) -> BCGConfig:
        return self.config

    def validate_config(self) -> List[str]:
        """
        Validate current settings

        Returns:
            List of problems; empty when the settings are usable
        """
        issues = []
        config = self.config

        if not config.peeringdb.base_url.startswith(("https://", "http://")):
            issues.append(f"peeringdb.base_url must be an http(s) URL: {config.peeringdb.base_url}")
        if config.peeringdb.timeout <= 0:
            issues.append("peeringdb.timeout must be positive")
        if config.bgpq4.timeout <= 0:
            issues.append("bgpq4.timeout must be positive")
        if not config.bgpq4.path:
            issues.append("bgpq4.path must not be empty")
        if not os.path.isabs(config.bird.socket_path):
            issues.append(f"bird.socket_path must be absolute: {config.bird.socket_path}")
        if config.bird.timeout <= 0:
            issues.append("bird.timeout must be positive")
        if config.bird.buffer_size <= 0:
            issues.append("bird.buffer_size must be positive")
        if not config.bird.command.strip():
            issues.append("bird.command must not be empty")
        if config.logging.level.upper() not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            issues.append(f"logging.level is not a valid level: {config.logging.level}")

        return issues


# Global configuration manager instance
_config_manager: Optional[ConfigManager] = None
_config_manager_lock = threading.RLock()


def get_config_manager(config_path: Optional[Path] = None) -> ConfigManager:
    """Get global configuration manager instance"""
    global _config_manager

    if _config_manager is not None:
        return _config_manager

    with _config_manager_lock:
        if _config_manager is None:
            _config_manager = ConfigManager(config_path)

        return _config_manager


def get_config() -> BCGConfig:
    """Get current settings"""
    return get_config_manager().get_config()
