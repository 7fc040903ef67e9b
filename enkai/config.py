"""
Configuration: model presets, dispatch defaults and price tiers.

Loading priority:
  1. Project dir .enkai.conf.yml
  2. Git root .enkai.conf.yml
  3. Global ~/.enkai/config.yml

API keys come from the environment; ``.env`` files in ~/.enkai and the
project dir are loaded first (without overriding variables already set).
"""

import os
from pathlib import Path
from dataclasses import dataclass, field
from typing import Optional, Dict, Callable, Any, Mapping

import yaml
from dotenv import load_dotenv

from .dispatch.pricing import PRICE_TIERS, PriceTier, TIER_ALIASES, build_price_table
from .errors import ConfigError
from .logger import get_logger

_log = get_logger(__name__)

CONFIG_DIR = Path(os.environ.get("ENKAI_HOME", "~/.enkai")).expanduser()
CONFIG_FILE = CONFIG_DIR / "config.yml"
PROJECT_CONFIG_NAME = ".enkai.conf.yml"

THEMES = {"github_dark", "github_light", "no_color"}
MAX_CONCURRENCY = 64

PROVIDER_KEY_ENV = {
    "openai": "OPENAI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
    "deepseek": "DEEPSEEK_API_KEY",
    "gemini": "GEMINI_API_KEY",
}

DEFAULT_PREAMBLE = """\
# AI-First Development Principles

Follow these implementation guidelines:

1. **Complete Self-Containment**
   - 1 file = 1 complete feature
   - Minimal external imports (framework standard library only)
   - No custom hooks - implement as in-file functions
   - No shared state libraries - keep state inside the file
   - No utils modules - copy needed functions into each file

2. **Implementation Rules**
   - No comments (self-documenting code)
   - Mobile-first approach
   - Complete error handling
   - Loading states implementation

3. **Forbidden**
   - External state management libraries
   - Shared utils/lib
   - CSS Modules

Component to implement:
"""


# ── Configuration metadata and validation ──

# A validator returns (valid, coerced_value, error_msg). When invalid, the
# coerced value is the nearest usable value, or None if there is none.
Validator = Callable[[Any], tuple]


@dataclass
class ConfigFieldSpec:
    """One ``key: value`` setting of the YAML file."""
    key: str
    field_name: str
    description: str
    value_type: str  # "str", "int", "bool"
    default: Any
    validator: Optional[Validator] = None


def _validate_int_range(value: Any, min_val: int, max_val: int) -> tuple:
    """Integer within [min_val, max_val]; out-of-range values come back clamped."""
    if isinstance(value, bool):
        return False, None, "Must be an integer"
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        return False, None, "Must be an integer"
    if not min_val <= parsed <= max_val:
        return False, max(min_val, min(max_val, parsed)), f"Must be between {min_val} and {max_val}"
    return True, parsed, ""


def _validate_float_range(value: Any, min_val: float, max_val: float) -> tuple:
    if isinstance(value, bool):
        return False, None, "Must be a number"
    try:
        parsed = float(value)
    except (TypeError, ValueError):
        return False, None, "Must be a number"
    if not min_val <= parsed <= max_val:
        return False, max(min_val, min(max_val, parsed)), f"Must be between {min_val} and {max_val}"
    return True, parsed, ""


def _validate_enum(value: Any, valid_values) -> tuple:
    choice = str(value).strip().lower()
    if choice not in valid_values:
        return False, None, f"Must be one of: {', '.join(sorted(valid_values))}"
    return True, choice, ""


_TRUE_WORDS = ("1", "true", "yes", "on")
_FALSE_WORDS = ("0", "false", "no", "off")


def _validate_bool(value: Any) -> tuple:
    if isinstance(value, bool):
        return True, value, ""
    if isinstance(value, int):
        return True, bool(value), ""
    if isinstance(value, str):
        word = value.strip().lower()
        if word in _TRUE_WORDS or word in _FALSE_WORDS:
            return True, word in _TRUE_WORDS, ""
    return False, None, "Must be true/false, yes/no, on/off, or 1/0"


def _validate_str(value: Any) -> tuple:
    return True, "" if value is None else str(value), ""


CONFIG_FIELDS: Dict[str, ConfigFieldSpec] = {
    spec.key: spec for spec in (
        ConfigFieldSpec(
            "active-model", "active_model",
            "Model preset used when routing does not pick one",
            "str", "flash", _validate_str,
        ),
        ConfigFieldSpec(
            "concurrency", "concurrency",
            "Maximum jobs in flight per model group",
            "int", 5, lambda v: _validate_int_range(v, 1, MAX_CONCURRENCY),
        ),
        ConfigFieldSpec(
            "price-tier", "price_tier",
            "Price tier used for cost estimates",
            "str", "economy", lambda v: _validate_enum(v, set(PRICE_TIERS) | set(TIER_ALIASES)),
        ),
        ConfigFieldSpec(
            "average-output-tokens", "average_output_tokens",
            "Forecast output tokens per task",
            "int", 1000, lambda v: _validate_int_range(v, 0, 1_000_000),
        ),
        ConfigFieldSpec(
            "use-preamble", "use_preamble",
            "Prefix every prompt with the policy preamble",
            "bool", True, _validate_bool,
        ),
        ConfigFieldSpec(
            "compete", "compete",
            "Generate every task as competing variants and keep the best",
            "bool", False, _validate_bool,
        ),
        ConfigFieldSpec(
            "report-dir", "report_dir",
            "Directory for JSON batch reports (empty disables)",
            "str", ".", _validate_str,
        ),
        ConfigFieldSpec(
            "theme", "theme",
            "UI color theme",
            "str", "github_dark", lambda v: _validate_enum(v, THEMES),
        ),
        ConfigFieldSpec(
            "verbose", "verbose",
            "Show INFO logs on the console",
            "bool", False, _validate_bool,
        ),
    )
}


def validate_config_value(key: str, value: Any) -> tuple:
    """
    Validate a configuration value.

    Returns:
        (is_valid, coerced_value, error_message)
    """
    spec = CONFIG_FIELDS.get(key)
    if spec is None:
        return False, value, f"Unknown configuration key: {key}"
    return (spec.validator or _validate_str)(value)


@dataclass
class ModelPreset:
    name: str
    provider: str
    model: str
    api_base: Optional[str] = None
    api_key: Optional[str] = None
    api_key_env: Optional[str] = None
    temperature: float = 0.0
    max_tokens: int = 8192
    concurrency: Optional[int] = None     # None = batch default
    description: str = ""

    @classmethod
    def from_yaml(cls, name: str, data: Optional[Mapping]) -> "ModelPreset":
        data = data or {}
        if not isinstance(data, Mapping):
            raise ConfigError(f"Model {name}: entry must be a mapping")

        def checked(key, validator, default):
            value = data.get(key)
            if value is None:
                return default
            valid, coerced, error = validator(value)
            if not valid:
                _log.warning("Model %s: %s %s", name, key, error.lower())
            return default if coerced is None else coerced

        return cls(
            name=name,
            provider=data.get("provider", "gemini"),
            model=data.get("model", "gemini/gemini-2.0-flash"),
            api_base=data.get("api-base"),
            api_key=data.get("api-key"),
            api_key_env=data.get("api-key-env"),
            temperature=checked("temperature", lambda v: _validate_float_range(v, 0.0, 2.0), 0.0),
            max_tokens=checked("max-tokens", lambda v: _validate_int_range(v, 1, 1_000_000), 8192),
            concurrency=checked("concurrency", lambda v: _validate_int_range(v, 1, MAX_CONCURRENCY), None),
            description=data.get("description", ""),
        )

    def to_yaml(self) -> dict:
        entry = {
            "provider": self.provider,
            "model": self.model,
            "description": self.description,
            "temperature": self.temperature,
            "max-tokens": self.max_tokens,
            "concurrency": self.concurrency,
            "api-base": self.api_base,
            "api-key": self.api_key,
            "api-key-env": self.api_key_env,
        }
        return {k: v for k, v in entry.items() if v is not None}

    def resolve_api_key(self) -> Optional[str]:
        if self.api_key:
            return self.api_key
        env_var = self.api_key_env or PROVIDER_KEY_ENV.get(self.provider)
        return os.environ.get(env_var) if env_var else None

    def get_llm_kwargs(self) -> dict:
        """Keyword arguments for ``LLMAdapter``; the key is passed explicitly."""
        return {
            "model": self.model,
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
            "api_base": self.api_base,
            "api_key": self.resolve_api_key(),
        }


@dataclass
class Config:
    active_model: str = "flash"
    models: Dict[str, ModelPreset] = field(default_factory=dict)
    concurrency: int = 5
    price_tier: str = "economy"
    average_output_tokens: int = 1000
    use_preamble: bool = True
    compete: bool = False
    preamble: str = DEFAULT_PREAMBLE
    report_dir: str = "."
    theme: str = "github_dark"
    verbose: bool = False
    log_file: Optional[str] = None
    routing: Dict[str, str] = field(default_factory=dict)   # complexity -> preset
    pricing: Dict[str, PriceTier] = field(default_factory=lambda: dict(PRICE_TIERS))
    project_root: Optional[str] = None
    _config_source: str = ""

    @classmethod
    def load(cls, project_dir: str = ".", config_file: Optional[str] = None) -> "Config":
        config = cls()
        project_path = Path(project_dir).resolve()

        for env_path in (CONFIG_DIR / ".env", project_path / ".env"):
            if env_path.exists():
                load_dotenv(env_path, override=False)

        source = cls._locate(project_path, config_file)
        if source is not None:
            config._load_yaml(source)
            config._config_source = str(source)
        if not config.models:
            config.models = cls.get_default_presets()

        config._apply_env()
        config.project_root = str(project_path)
        return config

    @classmethod
    def _locate(cls, project_path: Path, config_file: Optional[str]) -> Optional[Path]:
        if config_file:
            explicit = Path(config_file).expanduser()
            if not explicit.exists():
                raise ConfigError(f"Config file not found: {config_file}")
            return explicit
        candidates = [project_path / PROJECT_CONFIG_NAME]
        git_root = cls._find_git_root(project_path)
        if git_root and git_root != project_path:
            candidates.append(git_root / PROJECT_CONFIG_NAME)
        candidates.append(CONFIG_FILE)
        return next((c for c in candidates if c.exists()), None)

    @classmethod
    def get_default_presets(cls) -> Dict[str, ModelPreset]:
        gemini = dict(provider="gemini", api_key_env="GEMINI_API_KEY")
        return {
            "flash": ModelPreset(
                name="flash", model="gemini/gemini-2.0-flash", concurrency=5,
                description="Gemini 2.0 Flash (fast, cheap)", **gemini,
            ),
            "thinking": ModelPreset(
                name="thinking", model="gemini/gemini-2.0-flash-thinking-exp-1219", concurrency=2,
                description="Gemini 2.0 Flash Thinking (complex tasks)", **gemini,
            ),
            "pro": ModelPreset(
                name="pro", model="gemini/gemini-1.5-pro", concurrency=3,
                description="Gemini 1.5 Pro", **gemini,
            ),
        }

    def _load_yaml(self, filepath: Path):
        try:
            data = yaml.safe_load(filepath.read_text(encoding="utf-8")) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(f"Cannot read {filepath}: {e}") from e
        if not isinstance(data, dict):
            raise ConfigError(f"{filepath}: top level must be a mapping")

        try:
            self.pricing = build_price_table(data.get("pricing") or {})
        except ValueError as e:
            raise ConfigError(f"{filepath}: {e}") from e

        for key, spec in CONFIG_FIELDS.items():
            if data.get(key) is None:
                continue
            if key == "price-tier":
                self.price_tier = self._load_price_tier(data[key])
                continue
            valid, value, error = spec.validator(data[key])
            if not valid:
                _log.warning("%s: %s: %s", filepath.name, key, error)
                value = spec.default if value is None else value
            setattr(self, spec.field_name, value)

        if "preamble" in data:
            self.preamble = str(data.get("preamble") or "")
        elif data.get("preamble-file"):
            self.preamble = self._read_preamble(filepath.parent, data["preamble-file"])
        self.log_file = data.get("log-file")
        self.routing = {
            str(k).lower(): str(v) for k, v in (data.get("routing") or {}).items() if v
        }
        self.models = {
            name: ModelPreset.from_yaml(name, entry)
            for name, entry in (data.get("models") or {}).items()
        }

    def _load_price_tier(self, value: Any) -> str:
        tier = str(value).strip().lower()
        if tier in self.pricing or tier in TIER_ALIASES:
            return tier
        _log.warning("Unknown price tier %r, using economy", value)
        return "economy"

    @staticmethod
    def _read_preamble(base: Path, name: str) -> str:
        path = Path(name).expanduser()
        if not path.is_absolute():
            path = base / path
        try:
            return path.read_text(encoding="utf-8")
        except OSError as e:
            raise ConfigError(f"Cannot read preamble file {path}: {e}") from e

    def _apply_env(self):
        overrides = {
            "ENKAI_MODEL": "active-model",
            "ENKAI_CONCURRENCY": "concurrency",
            "ENKAI_VERBOSE": "verbose",
        }
        for env_var, key in overrides.items():
            raw = os.environ.get(env_var)
            if not raw:
                continue
            valid, value, error = validate_config_value(key, raw)
            if not valid:
                _log.warning("Ignoring %s=%r: %s", env_var, raw, error)
                continue
            setattr(self, CONFIG_FIELDS[key].field_name, value)

    def save(self, filepath: Optional[str] = None):
        if filepath:
            target = Path(filepath)
        elif self._config_source:
            target = Path(self._config_source)
        else:
            target = CONFIG_FILE
        target.parent.mkdir(parents=True, exist_ok=True)

        data = {key: getattr(self, spec.field_name) for key, spec in CONFIG_FIELDS.items()}
        data["routing"] = dict(self.routing)
        if self.preamble != DEFAULT_PREAMBLE:
            data["preamble"] = self.preamble
        if self.log_file:
            data["log-file"] = self.log_file
        custom_pricing = {
            name: {"input": t.input, "output": t.output,
                   "currency": t.currency, "description": t.description}
            for name, t in self.pricing.items()
            if PRICE_TIERS.get(name) != t
        }
        if custom_pricing:
            data["pricing"] = custom_pricing
        data["models"] = {name: preset.to_yaml() for name, preset in self.models.items()}

        with open(target, "w", encoding="utf-8") as f:
            yaml.dump(data, f, default_flow_style=False, sort_keys=False, allow_unicode=True)
        self._config_source = str(target)

    def get_active_preset(self) -> ModelPreset:
        if self.active_model in self.models:
            return self.models[self.active_model]
        if self.models:
            return next(iter(self.models.values()))
        return self.get_default_presets()["flash"]

    def get_preset(self, name: str) -> ModelPreset:
        """Preset by name; unknown names are treated as raw litellm model ids."""
        if name in self.models:
            return self.models[name]
        base = self.get_active_preset()
        return ModelPreset(
            name=name, provider=base.provider, model=name,
            api_base=base.api_base, api_key=base.api_key, api_key_env=base.api_key_env,
            temperature=base.temperature, max_tokens=base.max_tokens,
        )

    def concurrency_for(self, preset_name: str) -> int:
        preset = self.models.get(preset_name)
        if preset is not None and preset.concurrency:
            return preset.concurrency
        return self.concurrency

    def effective_preamble(self) -> Optional[str]:
        return self.preamble if self.use_preamble and self.preamble.strip() else None

    def summary(self) -> dict:
        p = self.get_active_preset()
        return {
            "Active model": f"{self.active_model} → {p.model}",
            "Provider": p.provider,
            "API key": "set" if p.resolve_api_key() else "not set",
            "Concurrency": self.concurrency,
            "Price tier": self.price_tier,
            "Avg output tokens": self.average_output_tokens,
            "Preamble": "ON" if self.effective_preamble() else "OFF",
            "Compete": "ON" if self.compete else "OFF",
            "Routing": ", ".join(f"{k}→{v}" for k, v in self.routing.items()) or "(off)",
            "Report dir": self.report_dir or "(disabled)",
            "Project": self.project_root,
            "Config": self._config_source or "(defaults)",
        }

    @staticmethod
    def _find_git_root(path: Path) -> Optional[Path]:
        for candidate in (path, *path.parents):
            if (candidate / ".git").exists():
                return candidate
        return None

    def get_config_value(self, key: str) -> Any:
        spec = CONFIG_FIELDS.get(key)
        return getattr(self, spec.field_name) if spec else None

    def set_config_value(self, key: str, value: Any, persist: bool = True) -> tuple:
        """
        Validate and apply one setting, saving the file unless ``persist`` is False.

        Returns:
            (success, error_message)
        """
        if key == "active-model" and value not in self.models:
            return False, f"Model '{value}' not found."
        if key == "price-tier" and str(value).strip().lower() in self.pricing:
            coerced = str(value).strip().lower()
        else:
            is_valid, coerced, error_msg = validate_config_value(key, value)
            if not is_valid:
                return False, error_msg

        setattr(self, CONFIG_FIELDS[key].field_name, coerced)
        if persist:
            self.save()
        return True, ""
