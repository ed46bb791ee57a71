"""Configuration loading: defaults, then ``config/settings.yaml``, then ``SITEAUDIT_*`` env vars."""

import dataclasses
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import yaml
from dotenv import load_dotenv

from siteaudit.exceptions import CrawlConfigError
from siteaudit.models.crawl import CrawlConfig
from siteaudit.modules.technical_audit.auditor import AuditThresholds

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "config/settings.yaml"
DEFAULT_ENV_PATH = ".env"
ENV_PREFIX = "SITEAUDIT_"


@dataclass(frozen=True)
class Settings:
    crawl: CrawlConfig = field(default_factory=CrawlConfig)
    thresholds: AuditThresholds = field(default_factory=AuditThresholds)
    log_level: str = "INFO"
    export_dir: str = "data/exports"
    batch_concurrency: int = 3
    config_path: Optional[str] = None


def _coerce(value: Any, target: type, name: str) -> Any:
    """Convert a YAML or env value to the type of the field it overrides."""
    if isinstance(value, target) and not (target is int and isinstance(value, bool)):
        return value
    try:
        if target is bool:
            if isinstance(value, str):
                lowered = value.strip().lower()
                if lowered in ("1", "true", "yes", "on"):
                    return True
                if lowered in ("0", "false", "no", "off"):
                    return False
                raise ValueError(value)
            return bool(value)
        if target is int:
            return int(value)
        if target is float:
            return float(value)
        return str(value)
    except (TypeError, ValueError) as exc:
        raise CrawlConfigError(f"Invalid value for {name}: {value!r}") from exc


def _apply(obj: Any, overrides: dict[str, Any], section: str) -> Any:
    """Return a copy of dataclass *obj* with known keys from *overrides* applied."""
    types = {f.name: type(getattr(obj, f.name)) for f in dataclasses.fields(obj)}
    changes: dict[str, Any] = {}
    for key, value in (overrides or {}).items():
        if key not in types:
            logger.warning("Ignoring unknown %s setting %r", section, key)
            continue
        changes[key] = _coerce(value, types[key], f"{section}.{key}")
    return dataclasses.replace(obj, **changes) if changes else obj


def _env_overrides(fields: list[str]) -> dict[str, str]:
    found: dict[str, str] = {}
    for name in fields:
        value = os.getenv(ENV_PREFIX + name.upper())
        if value is not None and value != "":
            found[name] = value
    return found


def _load_yaml(path: Path) -> dict[str, Any]:
    if not path.exists():
        logger.debug("Config file not found: %s, using defaults.", path)
        return {}
    with open(path, "r", encoding="utf-8") as fh:
        config = yaml.safe_load(fh) or {}
    if not isinstance(config, dict):
        raise CrawlConfigError(f"{path} must contain a mapping at the top level")
    logger.info("Configuration loaded from %s", path)
    return config


def load_settings(
    config_path: Optional[str] = None,
    env_path: str = DEFAULT_ENV_PATH,
) -> Settings:
    """Merge defaults, the YAML file and ``SITEAUDIT_*`` environment variables.

    Later sources win. The resulting crawl configuration is validated, so a
    bad value surfaces as :class:`CrawlConfigError` here rather than at
    crawl time.
    """
    env_file = Path(env_path)
    if env_file.exists():
        load_dotenv(env_file)
        logger.info("Loaded environment from %s", env_path)

    path = Path(config_path or os.getenv(ENV_PREFIX + "CONFIG", DEFAULT_CONFIG_PATH))
    raw = _load_yaml(path)

    crawl = _apply(CrawlConfig(), raw.get("crawler", {}), "crawler")
    crawl = _apply(crawl, _env_overrides([f.name for f in dataclasses.fields(CrawlConfig)]), "env")
    crawl.validate()

    thresholds = _apply(AuditThresholds(), raw.get("audit", {}), "audit")

    settings = _apply(Settings(), {
        k: v for k, v in (raw.get("app", {}) or {}).items()
        if k in ("log_level", "export_dir", "batch_concurrency")
    }, "app")
    settings = _apply(settings, _env_overrides(["log_level", "export_dir", "batch_concurrency"]), "env")

    return dataclasses.replace(
        settings,
        crawl=crawl,
        thresholds=thresholds,
        log_level=settings.log_level.upper(),
        config_path=str(path) if path.exists() else None,
    )
