"""Runtime configuration for fleetcollect.

Settings are resolved once at startup and passed explicitly to the
definition store, executor, cache and uploader. Precedence, lowest first:
defaults, JSON config file, environment variables, CLI overrides.
"""
from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, fields, replace

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "/etc/fleetcollect/config.json"

PRODUCTION_INGRESS_URL = "https://cert.console.redhat.com/api/ingress/v1/upload"
STAGE_INGRESS_URL = "https://cert.console.stage.redhat.com/api/ingress/v1/upload"

# Environment variable -> Settings field
ENV_VARS = {
    "FLEETCOLLECT_DEFINITIONS_DIR": "definitions_dir",
    "FLEETCOLLECT_COLLECTIONS_DIR": "collections_dir",
    "FLEETCOLLECT_CACHE_DIR": "cache_dir",
    "FLEETCOLLECT_TIMEOUT": "timeout",
    "FLEETCOLLECT_INGRESS_URL": "ingress_url",
}


@dataclass(frozen=True)
class Settings:
    definitions_dir: str = "/usr/lib/fleetcollect/collectors.d"
    collections_dir: str = "/var/tmp/fleetcollect"
    cache_dir: str = "/var/cache/fleetcollect"
    collection_dir_mode: int = 0o750
    collection_env_var: str = "COLLECTION_DIRECTORY"
    timeout: float | None = 3600.0       # seconds; None = wait forever
    compression: str = "xz"
    ingress_url: str = PRODUCTION_INGRESS_URL
    cert_file: str = "/etc/pki/consumer/cert.pem"
    key_file: str = "/etc/pki/consumer/key.pem"
    proxy: str | None = None
    upload_timeout: float = 60.0


def _coerce(name: str, value):
    """Convert config-file/env values to the type of the Settings field."""
    if name in ("timeout", "upload_timeout"):
        if value is None or value == "":
            return None if name == "timeout" else Settings.upload_timeout
        seconds = float(value)
        if name == "timeout" and seconds <= 0:
            return None
        return seconds
    if name == "compression":
        if value not in ("xz", "gz"):
            raise ValueError(f"unsupported compression {value!r}")
        return value
    if name == "collection_dir_mode":
        if isinstance(value, str):
            return int(value, 8)
        return int(value)
    if value is None:
        return None
    return str(value)


def _load_config_file(config_path: str) -> dict:
    """Load the JSON config file, returning an empty dict if it is absent."""
    if not os.path.exists(config_path):
        return {}
    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        logger.warning("Ignoring config file %s: %s", config_path, e)
        return {}
    if not isinstance(data, dict):
        logger.warning("Ignoring config file %s: not a JSON object", config_path)
        return {}
    return data


def _apply(settings: Settings, values: dict, source: str) -> Settings:
    known = {f.name for f in fields(Settings)}
    changes = {}
    for key, value in values.items():
        if key not in known:
            logger.debug("Unknown setting %r in %s, ignoring", key, source)
            continue
        try:
            changes[key] = _coerce(key, value)
        except (TypeError, ValueError) as e:
            logger.warning("Invalid value for %s in %s: %s", key, source, e)
    return replace(settings, **changes)


def load_settings(
    config_path: str | None = None,
    environ: dict | None = None,
    **overrides,
) -> Settings:
    """Build Settings from defaults, config file, environment and overrides.

    Overrides whose value is None are ignored so CLI options can be passed
    through unconditionally.
    """
    env = os.environ if environ is None else environ
    if config_path is None:
        config_path = env.get("FLEETCOLLECT_CONFIG", DEFAULT_CONFIG_PATH)

    settings = Settings()
    settings = _apply(settings, _load_config_file(config_path), config_path)

    from_env = {field: env[var] for var, field in ENV_VARS.items() if var in env}
    if env.get("FLEETCOLLECT_ENVIRONMENT", "").lower() == "stage" and "ingress_url" not in from_env:
        logger.debug("Using stage ingress")
        from_env["ingress_url"] = STAGE_INGRESS_URL
    proxy = env.get("HTTPS_PROXY") or env.get("HTTP_PROXY")
    if proxy:
        from_env["proxy"] = proxy
    settings = _apply(settings, from_env, "environment")

    cli_values = {k: v for k, v in overrides.items() if v is not None}
    return _apply(settings, cli_values, "command line")
