"""Configuration Management Package"""

import json
import sys
from dataclasses import dataclass, asdict
from pathlib import Path
from typing import Optional

from chadcommit.llm import DEFAULT_ENDPOINT, MODELS, SYSTEM_PROMPT
from chadcommit.prompts import DEFAULT_MAX_CHARS

# Valid configuration values
VALID_MODELS = set(MODELS)
MIN_PROMPT_LENGTH = 20


class ConfigError(Exception):
    """Raised when configuration is not usable for a request."""
    pass


@dataclass
class Config:
    """User configuration with sensible defaults."""
    api_key: Optional[str] = None
    model: str = "gpt-3.5-turbo"
    prompt: str = SYSTEM_PROMPT
    max_tokens: int = 256
    max_request_chars: int = DEFAULT_MAX_CHARS
    endpoint: str = DEFAULT_ENDPOINT
    timeout: float = 60.0  # Seconds allowed between streamed bytes
    max_file_display: int = 8  # Max files shown before collapsing list

    def to_dict(self) -> dict:
        return {k: v for k, v in asdict(self).items() if v is not None}

    def validate(self) -> list[str]:
        """Validate config values and return list of warnings.

        Invalid values are replaced with defaults silently after warning.
        """
        warnings = []
        defaults = Config()

        if self.model not in VALID_MODELS:
            warnings.append(f"Invalid model '{self.model}', using '{defaults.model}'")
            self.model = defaults.model

        for name in ('max_tokens', 'max_request_chars', 'max_file_display'):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
                warnings.append(f"Invalid {name} '{value}', using {getattr(defaults, name)}")
                setattr(self, name, getattr(defaults, name))

        if isinstance(self.timeout, bool) or not isinstance(self.timeout, (int, float)) or self.timeout <= 0:
            warnings.append(f"Invalid timeout '{self.timeout}', using {defaults.timeout}")
            self.timeout = defaults.timeout

        if not isinstance(self.prompt, str):
            warnings.append("Invalid prompt, using the default prompt")
            self.prompt = defaults.prompt

        return warnings

    def require_ready(self) -> None:
        """Raise ConfigError unless a request can be made with these settings."""
        if not self.api_key:
            raise ConfigError(
                "Set your OpenAI API key first!\n"
                "  export OPENAI_API_KEY='your-key-here'  or run: chadcommit --setup"
            )
        if len(self.prompt.strip()) < MIN_PROMPT_LENGTH:
            raise ConfigError(f"Prompt is too short, use at least {MIN_PROMPT_LENGTH} characters")

    @classmethod
    def from_dict(cls, data: dict) -> 'Config':
        valid_keys = {f.name for f in cls.__dataclass_fields__.values()}
        filtered = {k: v for k, v in data.items() if k in valid_keys}
        config = cls(**filtered)
        # Validate and print warnings to stderr
        for warning in config.validate():
            print(f"Config warning: {warning}", file=sys.stderr)
        return config


class ConfigManager:
    """Manages loading and saving configuration."""

    CONFIG_FILENAME = ".chadcommitrc"

    def __init__(self):
        self._config: Optional[Config] = None
        self._config_path: Optional[Path] = None

    def load(self) -> Config:
        if self._config is not None:
            return self._config

        for path in (Path.cwd() / self.CONFIG_FILENAME, Path.home() / self.CONFIG_FILENAME):
            if path.exists():
                self._config = self._load_from_file(path)
                self._config_path = path
                return self._config

        self._config = Config()
        return self._config

    def _load_from_file(self, path: Path) -> Config:
        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = json.load(f)
            if not isinstance(data, dict):
                raise ValueError("expected a JSON object")
            return Config.from_dict(data)
        except (json.JSONDecodeError, ValueError, OSError) as e:
            print(f"Warning: Could not load {path}: {e}", file=sys.stderr)
            return Config()

    def save(self, config: Config, global_config: bool = True) -> Path:
        path = Path.home() / self.CONFIG_FILENAME if global_config else Path.cwd() / self.CONFIG_FILENAME
        with open(path, 'w', encoding='utf-8') as f:
            json.dump(config.to_dict(), f, indent=2, ensure_ascii=False)
        self._config = config
        self._config_path = path
        return path

    def get_config_path(self) -> Optional[Path]:
        return self._config_path


_manager = ConfigManager()


def load_config() -> Config:
    return _manager.load()


def save_config(config: Config, global_config: bool = True) -> Path:
    return _manager.save(config, global_config)


def get_config_path() -> Optional[Path]:
    return _manager.get_config_path()


__all__ = [
    "Config",
    "ConfigError",
    "ConfigManager",
    "load_config",
    "save_config",
    "get_config_path",
    "VALID_MODELS",
    "MIN_PROMPT_LENGTH",
]
