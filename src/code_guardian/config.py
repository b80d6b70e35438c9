"""
Settings, stored as JSON under ~/.code-guardian, overridable from the
environment.

  CODE_GUARDIAN_HOME       settings/session directory
  CODE_GUARDIAN_PROVIDER   openai | anthropic | local
  CODE_GUARDIAN_MODEL      model identifier
  CODE_GUARDIAN_API_KEY    provider secret
"""

import json
import logging
import os
from pathlib import Path
from typing import Literal, Optional

from pydantic import BaseModel, Field, ValidationError

logger = logging.getLogger(__name__)

ENV_PREFIX = "CODE_GUARDIAN_"


def home_dir() -> Path:
    env = os.environ.get(f"{ENV_PREFIX}HOME")
    if env:
        return Path(env)
    return Path.home() / ".code-guardian"


def config_file() -> Path:
    return home_dir() / "config.json"


class Settings(BaseModel):
    provider: Literal["openai", "anthropic", "local"] = "openai"
    model: Optional[str] = None
    api_key: str = Field(default="", repr=False)
    max_fix_attempts: int = Field(default=3, ge=1, le=10)
    context_padding: int = Field(default=5, ge=0, le=200)
    timeout: float = Field(default=60.0, gt=0)
    storage_path: Optional[Path] = None

    def sessions_file(self) -> Path:
        return self.storage_path or home_dir() / "sessions.json"

    def public_dict(self) -> dict:
        """Settings safe to print: the secret is masked."""
        data = self.model_dump(mode="json")
        data["api_key"] = "********" if self.api_key else ""
        return data


def _load_config() -> dict:
    try:
        return json.loads(config_file().read_text())
    except (FileNotFoundError, json.JSONDecodeError):
        return {}


def save_config(cfg: dict) -> None:
    path = config_file()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(cfg, indent=2))
    try:
        path.chmod(0o600)
    except OSError:
        pass


def load_settings(overrides: Optional[dict] = None) -> Settings:
    """Merge the config file, environment and explicit overrides, in that order."""
    cfg = _load_config()
    for field in ("provider", "model", "api_key"):
        value = os.environ.get(f"{ENV_PREFIX}{field.upper()}")
        if value:
            cfg[field] = value
    cfg.update({k: v for k, v in (overrides or {}).items() if v is not None})
    try:
        return Settings.model_validate(cfg)
    except ValidationError as e:
        invalid = {str(err["loc"][0]) for err in e.errors() if err["loc"]}
        logger.warning("Ignoring invalid settings %s from %s: %s", sorted(invalid), config_file(), e)
    valid = {k: v for k, v in cfg.items() if k not in invalid}
    try:
        return Settings.model_validate(valid)
    except ValidationError as e:
        logger.warning("Invalid settings in %s, using defaults: %s", config_file(), e)
        return Settings()


def update_config(**values) -> dict:
    cfg = _load_config()
    for key, value in values.items():
        if value is None:
            cfg.pop(key, None)
        else:
            cfg[key] = value
    save_config(cfg)
    return cfg
