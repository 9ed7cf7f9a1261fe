"""Runtime configuration loaded from the environment and ``config/.env``."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import urlparse

from dotenv import load_dotenv

DEFAULT_ENV_FILE = Path("config/.env")
DEFAULT_OUTPUT_DIR = Path("reports_output")
DEFAULT_TIMEOUT_SECONDS = 30.0

CONFIG_REASON_MISSING = "CONFIG_MISSING"
CONFIG_REASON_INVALID_URL = "CONFIG_INVALID_URL"
CONFIG_REASON_INVALID_VALUE = "CONFIG_INVALID_VALUE"

REQUIRED_VARIABLES: tuple[str, ...] = ("IQ_SERVER_URL", "IQ_USERNAME", "IQ_PASSWORD")


class ConfigError(ValueError):
    """Configuration validation error."""

    reason_code: str

    def __init__(self, message: str, reason_code: str = CONFIG_REASON_INVALID_VALUE) -> None:
        super().__init__(message)
        self.reason_code = reason_code


@dataclass(frozen=True)
class Config:
    """Validated settings for one fetch run."""

    server_url: str
    username: str
    password: str
    organization_id: str | None = None
    output_dir: Path = DEFAULT_OUTPUT_DIR
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS

    def __repr__(self) -> str:
        return (
            f"Config(server_url={self.server_url!r}, username={self.username!r}, "
            f"password='***', organization_id={self.organization_id!r}, "
            f"output_dir={str(self.output_dir)!r}, timeout_seconds={self.timeout_seconds})"
        )


def load_config(env_file: Path | None = DEFAULT_ENV_FILE, environ: Mapping[str, str] | None = None) -> Config:
    """Load settings, reading ``env_file`` first when it exists.

    Values already present in the process environment win over the file.

    Raises:
        ConfigError: If a required variable is missing or a value is invalid
    """
    if environ is None:
        if env_file is not None and env_file.exists():
            load_dotenv(env_file, override=False)
        environ = os.environ

    return config_from_mapping(environ)


def config_from_mapping(values: Mapping[str, str]) -> Config:
    """Build and validate a ``Config`` from raw string values."""
    missing = [name for name in REQUIRED_VARIABLES if not values.get(name, "").strip()]
    if missing:
        raise ConfigError(
            f"missing required configuration: {', '.join(missing)}",
            CONFIG_REASON_MISSING,
        )

    server_url = values["IQ_SERVER_URL"].strip()
    parsed = urlparse(server_url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ConfigError(
            f"IQ_SERVER_URL must be an http(s) URL, got `{server_url}`",
            CONFIG_REASON_INVALID_URL,
        )

    organization_id = values.get("ORGANIZATION_ID", "").strip() or None
    output_dir = Path(values.get("IQ_OUTPUT_DIR", "").strip() or DEFAULT_OUTPUT_DIR)

    raw_timeout = values.get("IQ_TIMEOUT_SECONDS", "").strip()
    timeout_seconds = DEFAULT_TIMEOUT_SECONDS
    if raw_timeout:
        try:
            timeout_seconds = float(raw_timeout)
        except ValueError as exc:
            raise ConfigError(f"IQ_TIMEOUT_SECONDS must be a number, got `{raw_timeout}`") from exc
        if timeout_seconds <= 0:
            raise ConfigError(f"IQ_TIMEOUT_SECONDS must be positive, got `{raw_timeout}`")

    return Config(
        server_url=server_url,
        username=values["IQ_USERNAME"],
        password=values["IQ_PASSWORD"],
        organization_id=organization_id,
        output_dir=output_dir,
        timeout_seconds=timeout_seconds,
    )
