"""
Application configuration management.

Load order (each layer overrides the previous):
  1. ``config/default.toml``      — committed static defaults
  2. ``config/local.toml``        — optional local overrides (gitignored)
  3. ``.env``                     — local secrets and env overrides (gitignored)
  4. Environment variables        — ``GAMME_ADVISOR_*`` prefix

Entry point: ``load_config(config_path=None) -> AppConfig``

The LLM API key is never read from TOML.  ``LLMConfig.api_key_env`` names the
environment variable holding it; ``LLMConfig.resolve_api_key()`` looks it up.
"""

from __future__ import annotations

import os
import tomllib
from pathlib import Path
from typing import Any, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, field_validator

# ── Sub-config models ─────────────────────────────────────────────────────────


class ScoreSettings(BaseModel):
    """Settings of the supplier-wide MAX+bonus score engine.

    Attributes:
        strong_axis_threshold: An axis score strictly above this counts as "strong".
        bonus_per_axis:        Points added per strong axis.
    """

    model_config = ConfigDict(frozen=True)

    strong_axis_threshold: float = 30.0
    bonus_per_axis: float = 10.0

    @field_validator("strong_axis_threshold", "bonus_per_axis")
    @classmethod
    def non_negative(cls, v: float) -> float:
        if v < 0.0:
            raise ValueError(f"Score settings must be >= 0.0, got {v}.")
        return v


class LLMConfig(BaseModel):
    """Chat-completion API settings."""

    model_config = ConfigDict(frozen=True)

    base_url: str = "https://openrouter.ai/api/v1"
    model: str = "google/gemini-flash-1.5"
    timeout_seconds: float = 50.0
    max_tokens: int = 150
    temperature: float = 0.1
    api_key_env: str = "OPENROUTER_API_KEY"
    app_url: str = "https://gamme-advisor.local"
    app_title: str = "Gamme Advisor"

    @field_validator("timeout_seconds")
    @classmethod
    def positive_timeout(cls, v: float) -> float:
        if v <= 0.0:
            raise ValueError(f"timeout_seconds must be > 0.0, got {v}.")
        return v

    @field_validator("temperature")
    @classmethod
    def valid_temperature(cls, v: float) -> float:
        if not 0.0 <= v <= 2.0:
            raise ValueError(f"temperature must be in [0.0, 2.0], got {v}.")
        return v

    def resolve_api_key(self) -> Optional[str]:
        """Return the API key from the environment, or ``None`` if unset/blank."""
        key = os.environ.get(self.api_key_env, "").strip()
        return key or None


class BatchConfig(BaseModel):
    """Concurrency and rate-limit policy for per-product bulk analysis.

    Attributes:
        concurrency:             Max requests in flight at once.
        max_retries:             Retries after a rate-limited attempt (0 = none).
        default_backoff_seconds: Wait per retry attempt when the server gives no
                                 hint; escalates linearly (attempt * base).
        max_backoff_seconds:     Upper cap on any single wait.
    """

    model_config = ConfigDict(frozen=True)

    concurrency: int = 3
    max_retries: int = 2
    default_backoff_seconds: float = 15.0
    max_backoff_seconds: float = 120.0

    @field_validator("concurrency")
    @classmethod
    def at_least_one(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"concurrency must be >= 1, got {v}.")
        return v

    @field_validator("max_retries")
    @classmethod
    def non_negative_retries(cls, v: int) -> int:
        if v < 0:
            raise ValueError(f"max_retries must be >= 0, got {v}.")
        return v

    @field_validator("default_backoff_seconds", "max_backoff_seconds")
    @classmethod
    def non_negative_seconds(cls, v: float) -> float:
        if v < 0.0:
            raise ValueError(f"Delay seconds must be >= 0.0, got {v}.")
        return v


class LadderConfig(BaseModel):
    """Thresholds of the deterministic batch categorization ladder.

    Percentages are on a 0–100 scale; months are counts of active months.
    """

    model_config = ConfigDict(frozen=True)

    pillar_weight_pct: float = 5.0
    steady_months: int = 8
    above_average_percentile: float = 50.0
    above_average_min_months: int = 4
    seasonal_min_months: int = 2
    seasonal_max_months: int = 4
    seasonal_max_span: int = 4
    low_weight_pct: float = 1.0
    z_max_months: int = 5
    z_max_percentile: float = 30.0

    @field_validator("above_average_percentile", "z_max_percentile")
    @classmethod
    def valid_percentile(cls, v: float) -> float:
        if not 0.0 <= v <= 100.0:
            raise ValueError(f"Percentile thresholds must be in [0, 100], got {v}.")
        return v


class LoggingConfig(BaseModel):
    """Logging output settings."""

    model_config = ConfigDict(frozen=True)

    level: str = "INFO"
    log_file: str = ""
    json_format: bool = False

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        valid = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in valid:
            raise ValueError(f"Log level must be one of {sorted(valid)}, got '{v}'.")
        return v.upper()


class AppConfig(BaseModel):
    """Complete application configuration.

    Constructed by ``load_config()`` which merges TOML + .env + environment.
    """

    model_config = ConfigDict(frozen=True)

    score: ScoreSettings = ScoreSettings()
    llm: LLMConfig = LLMConfig()
    batch: BatchConfig = BatchConfig()
    ladder: LadderConfig = LadderConfig()
    logging: LoggingConfig = LoggingConfig()
    debug: bool = False


# ── Loader ────────────────────────────────────────────────────────────────────

_PROJECT_ROOT = Path(__file__).parent.parent


def _find_project_root() -> Path:
    """Walk up from this file to find the project root (contains pyproject.toml)."""
    candidate = Path(__file__).parent
    for _ in range(5):
        if (candidate / "pyproject.toml").exists():
            return candidate
        candidate = candidate.parent
    return _PROJECT_ROOT


def load_config(config_path: Optional[Path] = None) -> AppConfig:
    """Load and merge application configuration.

    Args:
        config_path: Explicit path to a TOML config file. Defaults to
            ``<project_root>/config/default.toml``.

    Returns:
        Fully validated ``AppConfig`` instance.

    Raises:
        FileNotFoundError: If the config file does not exist.
        pydantic.ValidationError: If merged config values fail validation.
    """
    root = _find_project_root()

    load_dotenv(dotenv_path=root / ".env", override=False)

    if config_path is None:
        config_path = root / "config" / "default.toml"

    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(
            f"Config file not found: {config_path}\n"
            "Create config/default.toml or pass --config."
        )

    with open(config_path, "rb") as f:
        raw: dict[str, Any] = tomllib.load(f)

    local_config_path = config_path.parent / "local.toml"
    if local_config_path.exists():
        with open(local_config_path, "rb") as f:
            local_raw: dict[str, Any] = tomllib.load(f)
        raw = _deep_merge(raw, local_raw)

    raw = _apply_env_overrides(raw)

    return _build_app_config(raw)


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge ``override`` into ``base``."""
    result = dict(base)
    for key, val in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(val, dict):
            result[key] = _deep_merge(result[key], val)
        else:
            result[key] = val
    return result


def _apply_env_overrides(raw: dict[str, Any]) -> dict[str, Any]:
    """Apply GAMME_ADVISOR_* env vars to the raw config dict.

    Supported overrides:
      GAMME_ADVISOR_LOG_LEVEL    → raw["logging"]["level"]
      GAMME_ADVISOR_LLM_MODEL    → raw["llm"]["model"]
      GAMME_ADVISOR_CONCURRENCY  → raw["batch"]["concurrency"]
      GAMME_ADVISOR_DEBUG        → raw["debug"]
    """
    if log_level := os.environ.get("GAMME_ADVISOR_LOG_LEVEL"):
        raw.setdefault("logging", {})["level"] = log_level

    if model := os.environ.get("GAMME_ADVISOR_LLM_MODEL"):
        raw.setdefault("llm", {})["model"] = model

    if concurrency := os.environ.get("GAMME_ADVISOR_CONCURRENCY"):
        raw.setdefault("batch", {})["concurrency"] = int(concurrency)

    if debug := os.environ.get("GAMME_ADVISOR_DEBUG"):
        raw["debug"] = debug.lower() in ("1", "true", "yes")

    return raw


def _build_app_config(raw: dict[str, Any]) -> AppConfig:
    """Map raw TOML dict to ``AppConfig`` model structure."""
    project = raw.pop("project", {})

    return AppConfig(
        score=ScoreSettings(**raw.get("score", {})),
        llm=LLMConfig(**raw.get("llm", {})),
        batch=BatchConfig(**raw.get("batch", {})),
        ladder=LadderConfig(**raw.get("ladder", {})),
        logging=LoggingConfig(**raw.get("logging", {})),
        debug=raw.get("debug", project.get("debug", False)),
    )
