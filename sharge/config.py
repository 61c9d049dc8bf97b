"""
Configuration models and loaders for SHARGE.

Values come either from a YAML file or from command line flags; both end
up in an ``AppConfig`` that is handed to ``create_app``.
"""

import logging
import re
from typing import Optional

import yaml
from pydantic import BaseModel, Field


# ============================================================================
# Configuration Models
# ============================================================================

class ServerConfig(BaseModel):
    """Server configuration"""
    host: str = "127.0.0.1"
    port: int = 8080
    root_dir: str = "."
    max_upload_size: int = 1024 * 1024 * 1024  # 1GB
    chunk_size: int = 1024 * 1024  # 1MB
    max_tree_depth: int = 64


class SecurityConfig(BaseModel):
    """Security configuration"""
    password: str = "password"
    session_cookie: str = "session"
    session_max_age: Optional[float] = None  # seconds, None = never expires


class LoggingConfig(BaseModel):
    """Logging configuration"""
    level: str = "INFO"
    file: Optional[str] = None


class AppConfig(BaseModel):
    """Application configuration"""
    server: ServerConfig = Field(default_factory=ServerConfig)
    security: SecurityConfig = Field(default_factory=SecurityConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


# ============================================================================
# Loaders
# ============================================================================

def load_config_from_file(config_file: str) -> AppConfig:
    """Load configuration from YAML file"""
    with open(config_file, 'r') as f:
        config_dict = yaml.safe_load(f) or {}
    return AppConfig(**config_dict)


SIZE_UNITS = {"": 1, "B": 1, "KB": 1024, "MB": 1024**2, "GB": 1024**3, "TB": 1024**4}
SIZE_PATTERN = re.compile(r"^(\d+(?:\.\d+)?)\s*([KMGT]?B)?$")


def parse_size(size_str: str) -> int:
    """
    Parse a human size such as "1024MB" or "1.5GB" into bytes.

    Units are binary and case insensitive; a bare number is bytes.
    """
    match = SIZE_PATTERN.match(size_str.strip().upper())
    if match is None:
        raise ValueError(f"Invalid size format: {size_str}")

    number, unit = match.groups()
    return int(float(number) * SIZE_UNITS[unit or ""])


def configure_logging(logging_config: LoggingConfig) -> None:
    """Apply level and optional log file to the root logger"""
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, logging_config.level.upper()))

    if logging_config.file:
        handler = logging.FileHandler(logging_config.file)
        handler.setFormatter(logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        ))
        root_logger.addHandler(handler)
