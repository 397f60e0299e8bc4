"""
Configuration loader (mock provider, provider service, broker, verification).
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path(__file__).parent.parent.parent / "config" / "handshake.yml"


class MockSettings(BaseModel):
    consumer: str = "Our Little Consumer"
    provider: str = "Our Provider"
    host: str = "127.0.0.1"
    port: int = Field(default=9123, ge=0, le=65535)
    pact_dir: str = "pacts"


class ProviderSettings(BaseModel):
    host: str = "127.0.0.1"
    port: int = Field(default=8080, ge=1, le=65535)
    initial_count: int = Field(default=1000, ge=0)


class BrokerSettings(BaseModel):
    url: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = None
    consumer_version: str = "1.0.0"
    tags: List[str] = Field(default_factory=list)


class VerificationSettings(BaseModel):
    provider_version: Optional[str] = None
    provider_tags: List[str] = Field(default_factory=list)
    publish_results: bool = False
    request_timeout: float = Field(default=10.0, gt=0)
    timeout: float = Field(default=60.0, gt=0)


class LoggingSettings(BaseModel):
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class HandshakeConfig(BaseModel):
    mock: MockSettings = Field(default_factory=MockSettings)
    provider: ProviderSettings = Field(default_factory=ProviderSettings)
    broker: BrokerSettings = Field(default_factory=BrokerSettings)
    verification: VerificationSettings = Field(default_factory=VerificationSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


_ENV_OVERRIDES = [
    ("PACT_BROKER_URL", "broker", "url"),
    ("PACT_BROKER_USERNAME", "broker", "username"),
    ("PACT_BROKER_PASSWORD", "broker", "password"),
    ("PROVIDER_PORT", "provider", "port"),
    ("LOG_LEVEL", "logging", "level"),
]


def _apply_env_overrides(data: Dict[str, Any]) -> Dict[str, Any]:
    """Merge environment overrides into the raw config before it is validated."""
    for env_name, section, key in _ENV_OVERRIDES:
        value = os.getenv(env_name)
        if not value:
            continue
        if env_name == "LOG_LEVEL":
            value = value.upper()
        section_data = data.get(section) or {}
        data[section] = {**section_data, key: value}
    return data


def load_config(config_path: Optional[Path] = None) -> HandshakeConfig:
    """
    Load configuration from a YAML file, merge environment overrides and validate the result

    Args:
        config_path: Path to config file. Defaults to config/handshake.yml

    Returns:
        Validated HandshakeConfig object

    Raises:
        FileNotFoundError: If config file doesn't exist
        ValidationError: If config doesn't match schema
    """
    if config_path is None:
        config_path = DEFAULT_CONFIG_PATH

    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    try:
        cfg = HandshakeConfig(**_apply_env_overrides(data))
    except ValidationError as e:
        logger.error("Config validation failed: %s", e)
        raise

    logger.info("Successfully loaded config from %s", config_path)
    return cfg


def setup_logging(cfg: HandshakeConfig, verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else getattr(logging, cfg.logging.level)
    logging.basicConfig(level=level, format=cfg.logging.format)
