"""
ScriptFlow Configuration Management

Centralized configuration with JSON loading and validation. The matching and
quality constants are empirically tuned and kept here so they can be adjusted
without touching the algorithms.
"""

import json
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Optional, Union

from .constants import QUALITY_CHECK_DEFINITIONS
from .exceptions import ConfigurationError, InvalidConfigError

DEFAULT_CONFIG_PATH = Path("config/scriptflow_config.json")


@dataclass
class LLMConfig:
    """Configuration for the OpenAI-compatible chat endpoint."""
    base_url: str = "https://api.openai.com/v1"
    model: str = "gpt-5.1"
    api_key_env: str = "SCRIPTFLOW_API_KEY"
    temperature: float = 0.7
    max_tokens: int = 8192
    timeout: float = 120.0


@dataclass
class PipelineConfig:
    """Generation pipeline defaults."""
    checkpoint_dir: str = ".scriptflow/checkpoints"
    default_language: str = "English"
    default_visual_style: str = "3d-animation"
    default_target_duration: str = "60s"
    default_shot_duration: float = 8.0
    max_retries: int = 3
    retry_base_delay: float = 2.0


@dataclass
class MatchingConfig:
    """Fuzzy asset matching constants."""
    token_weight: float = 0.55
    bigram_weight: float = 0.45
    contains_boost: float = 0.2
    short_name_length: int = 2
    short_name_threshold: float = 0.95
    medium_name_length: int = 4
    medium_name_threshold: float = 0.72
    default_threshold: float = 0.50
    image_bonus: float = 0.04
    version_bonus_step: float = 0.004
    version_bonus_cap: int = 10
    prompt_bonus_chars: int = 240
    prompt_bonus_divisor: float = 6000.0
    scene_time_bonus: float = 0.08
    scene_atmosphere_bonus: float = 0.06
    prop_category_bonus: float = 0.08
    prop_description_factor: float = 0.15
    prop_description_cap: float = 0.1

    def threshold_for(self, normalized_length: int) -> float:
        """Minimum base score for a target name of the given normalized length."""
        if normalized_length <= self.short_name_length:
            return self.short_name_threshold
        if normalized_length <= self.medium_name_length:
            return self.medium_name_threshold
        return self.default_threshold


@dataclass
class QualityConfig:
    """Quality scoring settings."""
    weights: Dict[str, int] = field(
        default_factory=lambda: {key: weight for key, _, weight in QUALITY_CHECK_DEFINITIONS}
    )
    llm_model: Optional[str] = None
    llm_temperature: float = 0.2
    llm_max_tokens: int = 4096
    llm_timeout: float = 120.0
    llm_retries: int = 1  # retries after the first attempt
    llm_retry_delay: float = 1.5

    def validate(self) -> None:
        """Ensure the weight table covers the five checks with usable weights.

        Weights are relative; scores are divided by their total, so the
        default table (total 110) is valid.
        """
        expected = {key for key, _, _ in QUALITY_CHECK_DEFINITIONS}
        if set(self.weights) != expected:
            raise InvalidConfigError(
                "Quality weights must cover exactly the five checks",
                {"expected": sorted(expected), "got": sorted(self.weights)}
            )
        for key, weight in self.weights.items():
            if isinstance(weight, bool) or not isinstance(weight, int) or weight < 0:
                raise InvalidConfigError(
                    f"Quality weight for '{key}' must be a non-negative integer, got {weight!r}"
                )
        if sum(self.weights.values()) <= 0:
            raise InvalidConfigError("Quality weights must not all be zero")


@dataclass
class ScriptFlowConfig:
    """Main configuration class for ScriptFlow."""

    project_name: str = "ScriptFlow"
    version: str = "1.0.0"
    verbose_logging: bool = False
    logs_dir: Optional[Path] = None  # file logging is off unless set

    llm: LLMConfig = field(default_factory=LLMConfig)
    pipeline: PipelineConfig = field(default_factory=PipelineConfig)
    matching: MatchingConfig = field(default_factory=MatchingConfig)
    quality: QualityConfig = field(default_factory=QualityConfig)

    @classmethod
    def from_dict(cls, data: dict) -> 'ScriptFlowConfig':
        """Create ScriptFlowConfig from dictionary."""
        config = cls()

        config.project_name = data.get('project_name', config.project_name)
        config.version = data.get('version', config.version)
        config.verbose_logging = data.get('verbose_logging', config.verbose_logging)
        if data.get('logs_dir'):
            config.logs_dir = Path(data['logs_dir'])

        if 'llm' in data:
            config.llm = _section(LLMConfig, data['llm'])
        if 'pipeline' in data:
            config.pipeline = _section(PipelineConfig, data['pipeline'])
        if 'matching' in data:
            config.matching = _section(MatchingConfig, data['matching'])
        if 'quality' in data:
            config.quality = _section(QualityConfig, data['quality'])
            config.quality.validate()

        return config

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-serializable dict."""
        return {
            'project_name': self.project_name,
            'version': self.version,
            'verbose_logging': self.verbose_logging,
            'logs_dir': str(self.logs_dir) if self.logs_dir else None,
            'llm': asdict(self.llm),
            'pipeline': asdict(self.pipeline),
            'matching': asdict(self.matching),
            'quality': asdict(self.quality),
        }


def _section(cls, data: Any):
    """Build a config section, rejecting unknown keys."""
    if not isinstance(data, dict):
        raise InvalidConfigError(f"Config section '{cls.__name__}' must be an object")
    known = {f.name for f in fields(cls)}
    unknown = set(data) - known
    if unknown:
        raise InvalidConfigError(
            f"Unknown keys in {cls.__name__}: {', '.join(sorted(unknown))}",
            {"section": cls.__name__}
        )
    defaults = cls()
    merged = {name: data.get(name, getattr(defaults, name)) for name in known}
    return cls(**merged)


def get_default_config() -> ScriptFlowConfig:
    """Return a configuration populated with defaults."""
    return ScriptFlowConfig()


def load_config(config_path: Union[str, Path, None] = None) -> ScriptFlowConfig:
    """
    Load configuration from JSON file.

    Args:
        config_path: Path to configuration file. If None, uses default.

    Returns:
        Loaded ScriptFlowConfig instance (defaults when the file is missing)
    """
    config_path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH

    if not config_path.exists():
        return get_default_config()

    try:
        with open(config_path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise InvalidConfigError(f"Invalid JSON in config file: {e}")
    except OSError as e:
        raise ConfigurationError(f"Failed to load config: {e}")

    return ScriptFlowConfig.from_dict(data)


def save_config(config: ScriptFlowConfig, config_path: Union[str, Path]) -> Path:
    """Write configuration to a JSON file."""
    config_path = Path(config_path)
    config_path.parent.mkdir(parents=True, exist_ok=True)
    with open(config_path, 'w', encoding='utf-8') as f:
        json.dump(config.to_dict(), f, indent=2, ensure_ascii=False)
    return config_path
