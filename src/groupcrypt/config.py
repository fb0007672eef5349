"""Configuration loading utilities for groupcrypt."""
from __future__ import annotations

import os
from pathlib import Path
from typing import Iterable, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from .paths import default_store_dir, runtime_config_dir

_STORE_ENV = "GROUPCRYPT_STORE_DIR"
_LOG_LEVEL_ENV = "GROUPCRYPT_LOG_LEVEL"


def _default_store() -> Path:
    value = os.getenv(_STORE_ENV)
    if value:
        return Path(value).expanduser()
    return default_store_dir()


class CryptoConfig(BaseModel):
    rsa_key_bits: int = Field(default=3072, ge=2048, description="Size of generated identity keys")
    min_rsa_key_bits: int = Field(default=2048, ge=1024, description="Smallest recipient key accepted")
    protocol_extension: str = Field(default="crypt", description="Extension appended to envelopes")
    fallback_extension: str = Field(default="txt", description="Used when a decrypted name has no extension")
    exhaustive_key_search: bool = Field(
        default=False,
        description="Try every wrapped key line and reject conflicting matches instead of stopping at the first",
    )

    @field_validator("protocol_extension", "fallback_extension")
    @classmethod
    def _strip_dot(cls, value: str) -> str:
        value = value.strip().lstrip(".")
        if not value or "/" in value or " " in value:
            raise ValueError("Extension must be a non-empty single path component without spaces")
        return value


class KdfConfig(BaseModel):
    """Parameters for deriving the private-key wrapping key with scrypt"""

    algorithm: str = "scrypt"
    length: int = 32
    salt_length: int = Field(default=16, ge=16)
    n: int = 2**15
    r: int = 8
    p: int = 1

    @field_validator("n")
    @classmethod
    def _power_of_two(cls, value: int) -> int:
        if value < 2 or value & (value - 1):
            raise ValueError("scrypt n must be a power of two greater than 1")
        return value


class LoggingConfig(BaseModel):
    level: str = Field(default_factory=lambda: os.getenv(_LOG_LEVEL_ENV, "INFO"))
    json_output: bool = True

    def normalized_level(self) -> str:
        return self.level.upper()


class AppConfig(BaseModel):
    store_dir: Path = Field(default_factory=_default_store)
    crypto: CryptoConfig = Field(default_factory=CryptoConfig)
    kdf: KdfConfig = Field(default_factory=KdfConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @field_validator("store_dir")
    @classmethod
    def _expand(cls, value: Path) -> Path:
        return Path(value).expanduser()


CONFIG = AppConfig()


def config_search_paths(explicit: Optional[Path] = None) -> Iterable[Path]:
    if explicit:
        yield explicit
    yield Path.cwd() / ".groupcrypt" / "config.yaml"
    yield runtime_config_dir() / "config.yaml"


def _apply_env_overrides(data: dict) -> dict:
    """Environment variables win over whatever the file says."""
    store = os.getenv(_STORE_ENV)
    if store:
        data["store_dir"] = store
    level = os.getenv(_LOG_LEVEL_ENV)
    if level:
        data.setdefault("logging", {})
        if isinstance(data["logging"], dict):
            data["logging"]["level"] = level
    return data


def _read_mapping(source: Path) -> dict:
    with source.open("r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"Invalid configuration in {source}: expected a mapping, got {type(data).__name__}")
    return data


def load_config(path: Optional[Path] = None) -> AppConfig:
    """Load the first configuration file found, or defaults when there is none."""
    source = next((candidate for candidate in config_search_paths(path) if candidate.is_file()), None)
    if source is None:
        return AppConfig()
    data = _apply_env_overrides(_read_mapping(source))
    try:
        return AppConfig.model_validate(data)
    except ValidationError as exc:
        raise ValueError(f"Invalid configuration in {source}: {exc}") from exc


def dump_default_config(target: Path) -> None:
    target.parent.mkdir(parents=True, exist_ok=True)
    with target.open("w", encoding="utf-8") as handle:
        yaml.safe_dump(AppConfig().model_dump(mode="json"), handle, sort_keys=False)


__all__ = [
    "AppConfig",
    "CONFIG",
    "CryptoConfig",
    "KdfConfig",
    "LoggingConfig",
    "config_search_paths",
    "dump_default_config",
    "load_config",
]
