"""
Gateway / backend configuration.

Values come from a JSON config file (written by `zapflow config set`) and
`ZAPFLOW_*` environment variables, the latter taking precedence.
"""

import json
import os
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel

CONFIG_FILE = Path.home() / ".zapflow" / "config.json"

ENV_PREFIX = "ZAPFLOW_"

DEFAULT_BACKEND_URL = "http://localhost:3001"


class ApiConfig(BaseModel):
    base_url: str = ""
    api_key: str = ""
    instance_name: str = ""
    backend_url: str = DEFAULT_BACKEND_URL
    backend_token: Optional[str] = None
    # Whether the console is served over HTTPS; drives scheme inference for bare links
    secure_origin: bool = True
    success_cooldown_s: float = 60.0
    retry_cooldown_s: float = 4.0
    max_attempts: int = 6

    @property
    def has_credentials(self) -> bool:
        return bool(self.base_url.strip() and self.api_key.strip())

    @property
    def gateway_url(self) -> str:
        return self.base_url.strip().rstrip("/")

    @classmethod
    def from_env(cls, base: Optional[dict[str, Any]] = None) -> "ApiConfig":
        values: dict[str, Any] = dict(base or {})
        for field in cls.model_fields:
            raw = os.environ.get(f"{ENV_PREFIX}{field.upper()}")
            if raw is not None:
                values[field] = raw
        return cls.model_validate(values)


def load_config_file(path: Path = CONFIG_FILE) -> dict[str, Any]:
    try:
        return json.loads(path.read_text())
    except (FileNotFoundError, json.JSONDecodeError):
        return {}


def save_config_file(cfg: dict[str, Any], path: Path = CONFIG_FILE) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(cfg, indent=2))


def load_config(path: Path = CONFIG_FILE) -> ApiConfig:
    """File values first, environment on top."""
    return ApiConfig.from_env(load_config_file(path))
