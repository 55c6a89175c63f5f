import logging
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Mapping, Optional

import yaml

from prsift_core.batching import DEFAULT_SCOPES

logger = logging.getLogger(__name__)

BUILTIN_GUIDELINES_DIR = Path(__file__).parent / "guidelines"
_BUILTIN_DEFAULT = BUILTIN_GUIDELINES_DIR / "default.md"

METADATA_MODES = ("auto", "on", "off")


class ConfigError(ValueError):
    """Raised when required configuration or credentials are missing."""


@dataclass
class Config:
    model: str = "anthropic"
    max_review_chars: int = 725000
    max_comments: int = 40
    max_codeblock_lines: int = 60
    metadata_mode: str = "auto"
    review_scopes: list[str] = field(default_factory=lambda: list(DEFAULT_SCOPES))
    allow_title_update: bool = False
    style_guide_rules: Optional[str] = None
    guidelines: Optional[str] = None  # None = use built-in default; set to a path string to override
    review_batch_size: int = 50
    submit_concurrency: int = 3
    retry_attempts: int = 3
    retry_delay: float = 0.25
    github_api_url: str = "https://api.github.com"
    github_token: Optional[str] = None
    anthropic_api_key: Optional[str] = None
    openai_api_key: Optional[str] = None

    def require_credentials(self) -> None:
        """Raise ConfigError if the credentials needed for a live run are missing."""
        if not self.github_token:
            raise ConfigError("No GitHub token found. Set GITHUB_TOKEN or run `gh auth login` first.")
        if self.model == "anthropic" and not self.anthropic_api_key:
            raise ConfigError("ANTHROPIC_API_KEY environment variable is not set.")
        if self.model == "openai" and not self.openai_api_key:
            raise ConfigError("OPENAI_API_KEY environment variable is not set.")
        if self.model not in ("anthropic", "openai"):
            raise ConfigError(f"Unknown model provider: {self.model!r}. Choose 'anthropic' or 'openai'.")


def _positive_int(value) -> Optional[int]:
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        return None
    return parsed if parsed > 0 else None


def _non_negative_float(value) -> Optional[float]:
    try:
        parsed = float(value)
    except (TypeError, ValueError):
        return None
    return parsed if parsed >= 0 else None


def _bool(value) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() == "true"


def parse_scopes(value) -> Optional[list[str]]:
    """Normalise "data-model,flows" or a list of names to unique lower-case scope names."""
    items = value if isinstance(value, (list, tuple)) else str(value).split(",")
    scopes = [str(s).strip().lower() for s in items if str(s).strip()]
    return list(dict.fromkeys(scopes)) or None


def _mode(value) -> Optional[str]:
    if isinstance(value, bool):
        # YAML reads a bare on/off as a boolean.
        return "on" if value else "off"
    mode = str(value).strip().lower()
    return mode if mode in METADATA_MODES else None


def _text(value) -> Optional[str]:
    if value is None:
        return None
    return str(value).strip() or None


def _provider(value) -> Optional[str]:
    text = _text(value)
    return text.lower() if text else None


# Field → parser for values read from .prsift.yml and the environment.
# Values that fail to parse keep the current setting.
_PARSERS = {
    "model": _provider,
    "max_review_chars": _positive_int,
    "max_comments": _positive_int,
    "max_codeblock_lines": _positive_int,
    "metadata_mode": _mode,
    "review_scopes": parse_scopes,
    "allow_title_update": _bool,
    "style_guide_rules": _text,
    "guidelines": _text,
    "review_batch_size": _positive_int,
    "submit_concurrency": _positive_int,
    "retry_attempts": _positive_int,
    "retry_delay": _non_negative_float,
    "github_api_url": _text,
}

_ENV_SETTINGS = {
    "PRSIFT_MODEL": "model",
    "REVIEW_MAX_REVIEW_CHARS": "max_review_chars",
    "REVIEW_MAX_COMMENTS": "max_comments",
    "REVIEW_MAX_CODEBLOCK_LINES": "max_codeblock_lines",
    "METADATA_MODE": "metadata_mode",
    "REVIEW_SCOPES": "review_scopes",
    "ALLOW_TITLE_UPDATE": "allow_title_update",
    "STYLE_GUIDE_RULES": "style_guide_rules",
    "GITHUB_API_URL": "github_api_url",
}


def _apply(config: Config, name: str, value) -> None:
    parsed = _PARSERS[name](value)
    if parsed is None:
        logger.warning("Ignoring invalid value for %s: %r", name, value)
        return
    setattr(config, name, parsed)


def load_config(
    config_path: str = ".prsift.yml",
    cli_overrides: Optional[dict] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> Config:
    """
    Build the run configuration by merging (in order of precedence):
      1. Built-in defaults
      2. .prsift.yml in the current directory
      3. Environment variables
      4. CLI argument overrides
    """
    env = os.environ if environ is None else environ
    known = {f.name for f in fields(Config)}
    config = Config()

    path = Path(config_path)
    if path.exists():
        with open(path) as f:
            file_config = yaml.safe_load(f) or {}
        for key, value in file_config.items():
            if key in _PARSERS:
                _apply(config, key, value)

    for var, name in _ENV_SETTINGS.items():
        if env.get(var):
            _apply(config, name, env[var])

    if cli_overrides:
        for key, value in cli_overrides.items():
            if value is not None and key in known:
                setattr(config, key, value)

    # Credentials only ever come from the environment.
    config.github_token = env.get("GITHUB_TOKEN")
    config.anthropic_api_key = env.get("ANTHROPIC_API_KEY")
    config.openai_api_key = env.get("OPENAI_API_KEY")

    return config


def load_guidelines(config: Config) -> str:
    """
    Load review guidelines.

    If ``guidelines`` is set in config, loads from that path (relative to cwd).
    Otherwise falls back to the built-in default.
    """
    custom_path = config.guidelines
    if custom_path:
        p = Path(custom_path)
        if not p.exists():
            raise FileNotFoundError(f"Guidelines file not found: {custom_path}")
        return p.read_text()

    if _BUILTIN_DEFAULT.exists():
        return _BUILTIN_DEFAULT.read_text()

    raise FileNotFoundError("No guidelines configured and built-in default is missing.")
