import json
import os
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel

from studio_export.config.schema import ExportConfig
from studio_export.logging_config import get_logger
from studio_export.utils import expand_env_vars

logger = get_logger(__name__)

CONFIG_PATH_ENV = "STUDIO_EXPORT_CONFIG"
DEFAULT_CONFIG_PATH = Path("~/.config/studio-export/config.yml")
LEGACY_CONFIG_NAME = "aistudio_export_config.json"

# Legacy JSON stored upper-case keys.
_LEGACY_KEYS = {
    "EXTRACTION_MODE": "extraction_mode",
    "INCLUDE_USER": "include_user",
    "INCLUDE_MODEL": "include_model",
    "INCLUDE_THINKING": "include_thinking",
    "COLLAPSIBLE_THINKING": "collapsible_thinking",
    "HINT_DISMISSED": "hint_dismissed",
}


def default_config_path() -> Path:
    """Config path from STUDIO_EXPORT_CONFIG, else ~/.config/studio-export/config.yml."""
    override = os.getenv(CONFIG_PATH_ENV)
    return Path(override).expanduser() if override else DEFAULT_CONFIG_PATH.expanduser()


def legacy_config_path(path: Path) -> Path:
    return path.with_name(LEGACY_CONFIG_NAME)


def _warn_unknown_keys(model: BaseModel, path: str, config_path: Path) -> None:
    """Recursively warn about unknown keys in a model and its nested models."""
    if model.model_extra:
        logger.warning("Unknown keys in %s at %s: %s", path, config_path, list(model.model_extra.keys()))

    for field_name, field_value in model.__dict__.items():
        if isinstance(field_value, BaseModel):
            _warn_unknown_keys(field_value, f"{path}.{field_name}", config_path)


def load_config(path: Optional[Path] = None) -> ExportConfig:
    """Load and validate configuration from a YAML file.

    A missing file yields defaults, after a one-time migration attempt from
    the legacy JSON file next to it. An unreadable file yields defaults too.
    """
    path = path or default_config_path()
    if not path.exists():
        legacy = legacy_config_path(path)
        if legacy.exists():
            return migrate_legacy_config(legacy, path)
        return ExportConfig()

    try:
        with open(path, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        logger.warning("Failed to read config file %s: %s", path, e)
        return ExportConfig()

    model = ExportConfig.model_validate(expand_env_vars(raw))
    _warn_unknown_keys(model, "root", path)
    return model


def save_config(config: ExportConfig, path: Optional[Path] = None) -> Path:
    """Normalize and write config as YAML."""
    path = path or default_config_path()
    normalized = ExportConfig.model_validate(config.model_dump())
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        yaml.safe_dump(normalized.model_dump(mode="json"), f, sort_keys=False)
    logger.info("Settings saved to %s", path)
    return path


def migrate_legacy_config(legacy_path: Path, path: Path) -> ExportConfig:
    """One-time migration from the legacy upper-case JSON settings.

    The legacy file is removed only after the YAML file was written.
    """
    try:
        legacy = json.loads(legacy_path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        logger.error("Failed to read legacy settings %s: %s", legacy_path, e)
        return ExportConfig()

    if not isinstance(legacy, dict):
        logger.warning("Ignoring legacy settings %s: not an object", legacy_path)
        return ExportConfig()

    migrated = ExportConfig.model_validate({_LEGACY_KEYS[k]: v for k, v in legacy.items() if k in _LEGACY_KEYS})
    save_config(migrated, path)
    legacy_path.unlink()
    logger.info("Migrated legacy settings from %s", legacy_path)
    return migrated
