"""Config loading for policyscan.

Reads `.policyscan/config.yaml` (or `~/.policyscan/config.yaml`).
Raises SystemExit on parse errors or missing `version` field.
If no config file is found, returns default values (safe to run without config).

Config search order:
  1. `config_path` argument (if provided — for testing or explicit override)
  2. POLICYSCAN_CONFIG environment variable (if set)
  3. `.policyscan/config.yaml` (working directory)
  4. `~/.policyscan/config.yaml` (home directory)

Environment variable overrides:
  POLICYSCAN_CONCURRENCY — overrides scan.concurrency
  POLICYSCAN_LOG_LEVEL   — overrides logging.level
  POLICYSCAN_CONFIG      — sets an explicit config file path to try first
"""

from __future__ import annotations

import logging
import os
import sys
from dataclasses import dataclass, field
from typing import NoReturn, Optional

import yaml

from policyscan.constants import DEFAULT_CONCURRENCY, MAX_CONCURRENCY
from policyscan.utils.logger import get_logger

logger = get_logger(__name__)

# ─── Version constants ────────────────────────────────────────────────────────

SUPPORTED_CONFIG_VERSION = 1

SUPPORTED_VERSIONS: frozenset[int] = frozenset({1})

# Default config search paths (POLICYSCAN_CONFIG env var prepended at runtime)
DEFAULT_CONFIG_PATHS = [
    ".policyscan/config.yaml",
    os.path.expanduser("~/.policyscan/config.yaml"),
]


def _fail(msg: str) -> NoReturn:
    print(f"CONFIG ERROR: {msg}", file=sys.stderr)
    raise SystemExit(1)


# ─── Dataclasses ─────────────────────────────────────────────────────────────


@dataclass
class ScanConfig:
    """Scan engine configuration."""

    concurrency: int = DEFAULT_CONCURRENCY


@dataclass
class SourcesConfig:
    """Where policy objects and their script trees are read from.

    reports_dir: Directory with one XML metadata report per policy object.
    script_base: Shared storage base; each object's scripts live below
                 ``{script_base}/{identifier}``.
    """

    reports_dir: str = "./reports"
    script_base: str = "./sysvol/Policies"


@dataclass
class LoggingConfig:
    """Structured logging configuration."""

    level: str = "INFO"
    json: bool = False


@dataclass
class Config:
    """Root configuration object populated from .policyscan/config.yaml.

    All fields have safe defaults — policyscan can run without any config file.
    """

    version: int = SUPPORTED_CONFIG_VERSION
    scan: ScanConfig = field(default_factory=ScanConfig)
    sources: SourcesConfig = field(default_factory=SourcesConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    path: Optional[str] = None  # Path to the loaded config file

    @classmethod
    def defaults(cls) -> "Config":
        """Return a fully-default Config (no file required)."""
        return cls()

    @classmethod
    def from_dict(cls, raw: dict, path: Optional[str] = None) -> "Config":
        """Construct Config from a parsed YAML dict.

        Merges user-supplied values onto defaults; unknown keys are silently ignored.

        Raises:
            SystemExit(1): On an out-of-range concurrency or unknown log level.
        """
        scan_raw = raw.get("scan") or {}
        scan = ScanConfig(
            concurrency=_validate_concurrency(
                scan_raw.get("concurrency", DEFAULT_CONCURRENCY), "scan.concurrency"
            ),
        )

        sources_raw = raw.get("sources") or {}
        sources = SourcesConfig(
            reports_dir=str(sources_raw.get("reports_dir", SourcesConfig.reports_dir)),
            script_base=str(sources_raw.get("script_base", SourcesConfig.script_base)),
        )

        logging_raw = raw.get("logging") or {}
        log_config = LoggingConfig(
            level=_validate_log_level(logging_raw.get("level", "INFO"), "logging.level"),
            json=bool(logging_raw.get("json", False)),
        )

        return cls(
            version=raw.get("version", SUPPORTED_CONFIG_VERSION),
            scan=scan,
            sources=sources,
            logging=log_config,
            path=path,
        )


def _validate_concurrency(value: object, source: str) -> int:
    try:
        concurrency = int(value)  # type: ignore[call-overload]
    except (TypeError, ValueError):
        _fail(f"{source} is not a valid integer: {value!r}")
    if not 1 <= concurrency <= MAX_CONCURRENCY:
        _fail(f"{source} must be between 1 and {MAX_CONCURRENCY}, got {concurrency}")
    return concurrency


def _validate_log_level(value: object, source: str) -> str:
    level = str(value).upper()
    if not isinstance(getattr(logging, level, None), int):
        _fail(f"{source} is not a valid log level: {value!r}")
    return level


# ─── Config loading ───────────────────────────────────────────────────────────


def load_config(config_path: Optional[str] = None) -> Config:
    """Load and validate policyscan configuration.

    If no file is found at any search path, returns default Config (not an error).
    If a file is found but invalid, writes error to stderr and raises SystemExit(1).
    Environment overrides are applied in both cases.

    Raises:
        SystemExit(1): On YAML parse error, missing or unsupported ``version``,
                       or invalid values (file or environment).
    """
    search_paths: list[str] = []
    if config_path:
        search_paths.append(config_path)
    env_config = os.environ.get("POLICYSCAN_CONFIG")
    if env_config:
        search_paths.append(env_config)
    search_paths.extend(DEFAULT_CONFIG_PATHS)

    found_path: Optional[str] = None
    for candidate in search_paths:
        expanded = os.path.expanduser(candidate)
        if os.path.isfile(expanded):
            found_path = expanded
            break

    # ── No config file found ─────────────────────────────────────────────────
    if found_path is None:
        logger.debug("No config file found — using defaults", searched=search_paths)
        config = Config.defaults()
        _apply_env_overrides(config)
        return config

    # ── Parse config file ─────────────────────────────────────────────────────
    logger.debug("Loading config", path=found_path)

    try:
        with open(found_path) as fh:
            raw = yaml.safe_load(fh)
    except yaml.YAMLError as exc:
        _fail(f"Failed to parse {found_path}: {exc}")
    except OSError as exc:
        _fail(f"Could not read {found_path}: {exc}")

    if not isinstance(raw, dict):
        if raw is None:
            _fail(
                f"{found_path} is missing the required 'version' field.\n"
                "Add 'version: 1' to the top of your config file."
            )
        _fail(
            f"{found_path} is not a valid YAML mapping.\n"
            "The config file must be a YAML dictionary at the top level."
        )

    # ── Version validation ────────────────────────────────────────────────────
    version = raw.get("version")
    if version is None:
        _fail(
            f"{found_path} is missing the required 'version' field.\n"
            "Add 'version: 1' to the top of your config file."
        )
    if version not in SUPPORTED_VERSIONS:
        _fail(
            f"Unsupported config version: {version}. "
            f"Supported versions: {sorted(SUPPORTED_VERSIONS)}."
        )

    config = Config.from_dict(raw, path=found_path)
    _apply_env_overrides(config)

    logger.debug(
        "Config loaded",
        path=found_path,
        version=config.version,
        concurrency=config.scan.concurrency,
    )
    return config


def _apply_env_overrides(config: Config) -> None:
    """Apply environment variable overrides to a Config object in-place.

    Raises:
        SystemExit(1): If an override is set but invalid.
    """
    env_concurrency = os.environ.get("POLICYSCAN_CONCURRENCY")
    if env_concurrency is not None:
        config.scan.concurrency = _validate_concurrency(
            env_concurrency, "POLICYSCAN_CONCURRENCY"
        )

    env_level = os.environ.get("POLICYSCAN_LOG_LEVEL")
    if env_level is not None:
        config.logging.level = _validate_log_level(env_level, "POLICYSCAN_LOG_LEVEL")
