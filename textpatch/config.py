import copy
import json
from pathlib import Path
from typing import Any, Dict, List, Optional

from textpatch.logger import get_logger

logger = get_logger(__name__)

# Translation configuration constants
DEFAULT_BATCH_SIZE = 20
DEFAULT_RETRY_COUNT = 5
DEFAULT_CACHE_CHARS = 10
DEFAULT_FLUSH_INTERVAL = 25

# Source script: CJK unified ideographs
CHINESE_CHAR_PATTERN = r"[\u4e00-\u9fff]"

# Provider configuration constants
BUILTIN_PROVIDERS = ["openai", "deepseek", "ollama"]

PROVIDER_DEFAULTS = {
    "timeout": 300,
    "api_key_required": True,
}

BASE_DIR = Path.cwd()
CONFIG_DIR = BASE_DIR / "config"
CONFIG_FILE = CONFIG_DIR / "config.json"


class ConfigError(Exception):
    """Raised at startup when configuration is incomplete or inconsistent."""


# Prompt names that must always resolve
REQUIRED_PROMPTS = [
    "BaseSystemPrompt",
    "BaseSystemSuffixPrompt",
    "BaseGlossaryPrompt",
    "BaseCorrectionSuffixPrompt",
    "DynamicColorPrompt",
    "DynamicCloseColorPrompt",
    "DynamicSizePrompt",
    "DynamicCloseSizePrompt",
    "DynamicTagPrompt",
    "DynamicPlaceholderPrompt",
    "SentenceCorrectionPrompt",
    "SentenceCorrectionRequestPrompt",
]

# Default prompts
DEFAULT_PROMPTS = {
    "BaseSystemPrompt": (
        "You are a professional translator of Chinese wuxia video game text. "
        "Translate the user's text into natural English. "
        "Output only the translation."
    ),
    "BaseSystemSuffixPrompt": "Do not explain. Do not add notes. Return the translated text only.",
    "BaseGlossaryPrompt": "Use the following glossary. Each raw term must be translated as one of its results:",
    "BaseCorrectionSuffixPrompt": " Return only the corrected translation.",
    "DynamicColorPrompt": "Keep every <color> tag and its closing </color> tag around the same words.",
    "DynamicCloseColorPrompt": "Keep the </color> tag exactly where it is.",
    "DynamicSizePrompt": "Keep every <size> tag and its closing </size> tag around the same words.",
    "DynamicCloseSizePrompt": "Keep the </size> tag exactly where it is.",
    "DynamicTagPrompt": "The text contains these markup tags, copy them unchanged:\n{0}",
    "DynamicPlaceholderPrompt": "Text in curly braces such as {0} or {T0} is a placeholder. Copy it unchanged.",
    "SentenceCorrectionPrompt": (
        "The following sentence contains untranslated Chinese characters. "
        "Translate all Chinese characters to English while keeping the rest of the sentence intact."
    ),
    "SentenceCorrectionRequestPrompt": "Translate all Chinese characters in this sentence to English.",
}

# Default configuration template
DEFAULT_CONFIG = {
    "ai_provider": "ollama",
    "openai": {
        "api_key": "YOUR_API_KEY_HERE",
        "models": ["gpt-4o-mini"],
        "timeout": 300,
        "api_url": "https://api.openai.com/v1/chat/completions",
    },
    "deepseek": {
        "api_key": "YOUR_API_KEY_HERE",
        "models": ["deepseek-chat"],
        "timeout": 300,
        "api_url": "https://api.deepseek.com/chat/completions",
    },
    "ollama": {
        "api_key": "",
        "api_key_required": False,
        "models": ["qwen2.5:14b"],
        "timeout": 300,
        "api_url": "http://localhost:11434/api/chat",
        "options": {"temperature": 0.1},
    },
    "translation": {
        "batch_size": DEFAULT_BATCH_SIZE,
        "retry_count": DEFAULT_RETRY_COUNT,
        "cache_chars": DEFAULT_CACHE_CHARS,
        "flush_interval": DEFAULT_FLUSH_INTERVAL,
        "skip_line_validation": False,
        "correction_prompts_enabled": True,
        "translate_flagged": True,
        "token_patterns": [
            r"<sprite[^>]*>",
            r"<br\s*/?>",
            r"\\[tr]",
            r"&[a-zA-Z]+;",
        ],
        "bracket_patterns": [
            r"《[^《》]*》",
            r"【[^【】]*】",
        ],
        "split_delimiters": ["\\n"],
        "half_tag_types": ["color", "size"],
        "engine_identifiers": ["View", "btn", "Part", "Text"],
        "ineligible_markers": ["GameTools"],
        "rate_limit": {
            "initial_delay": 5.0,
            "max_delay": 60.0,
            "max_retries": 5,
        },
    },
    "prompts": {},
    "text_files": [],
    "glossary_file": "config/Glossary.yaml",
    "manual_translations_file": "config/ManualTranslations.yaml",
    "input_dir": "Raw/Export",
    "output_dir": "Converted",
    "old_outputs_dir": "TestResults/OldFiles",
    "log_mode": "info",
}


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Merge override into a copy of base, recursing into nested dicts."""
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def ensure_config_directory(config_dir: Path = CONFIG_DIR):
    """Ensure the config directory exists."""
    config_dir.mkdir(parents=True, exist_ok=True)
    logger.debug(f"Config directory ensured: {config_dir}")


def create_default_config(config_file: Path = CONFIG_FILE):
    """Create the default config.json file."""
    ensure_config_directory(config_file.parent)
    with open(config_file, 'w', encoding='utf-8') as f:
        json.dump(DEFAULT_CONFIG, f, indent=4, ensure_ascii=False)
    logger.info(f"Created default config file: {config_file}")


def load_config(config_file: Optional[Path] = None) -> Dict[str, Any]:
    """
    Load the configuration from a JSON file, merged over DEFAULT_CONFIG.

    A missing file yields the defaults. A file that cannot be parsed is a
    configuration error.
    """
    config_file = Path(config_file) if config_file else CONFIG_FILE

    if not config_file.exists():
        logger.info(f"No config file at {config_file}, using defaults")
        return copy.deepcopy(DEFAULT_CONFIG)

    try:
        with open(config_file, 'r', encoding='utf-8') as f:
            user_config = json.load(f)
    except json.JSONDecodeError as e:
        raise ConfigError(f"Failed to parse config file {config_file}: {e}") from e

    config = _deep_merge(DEFAULT_CONFIG, user_config)
    logger.debug(f"Configuration loaded from {config_file}")
    return config


def load_prompts(config: Dict[str, Any]) -> Dict[str, str]:
    """Get the prompt table: DEFAULT_PROMPTS overridden by config["prompts"]."""
    prompts = dict(DEFAULT_PROMPTS)
    prompts.update(config.get("prompts", {}) or {})
    return prompts


def get_prompt(config: Dict[str, Any], prompt_name: str) -> str:
    """Get a specific prompt by name."""
    prompts = load_prompts(config)
    if prompt_name not in prompts:
        raise ConfigError(f"Prompt template '{prompt_name}' is not configured")
    return prompts[prompt_name]


def get_provider_config(config: Dict[str, Any], provider: Optional[str] = None) -> Dict[str, Any]:
    """Get the provider block merged over PROVIDER_DEFAULTS."""
    provider = provider or config.get("ai_provider", "ollama")
    provider_config = dict(PROVIDER_DEFAULTS)
    provider_config.update(config.get(provider, {}) or {})
    return provider_config


def validate_config(
    config: Dict[str, Any],
    glossary: Optional[List[Any]] = None,
    provider_override: Optional[str] = None,
) -> None:
    """
    Validate the configuration before a run starts.

    Raises:
        ConfigError: missing prompt templates, unknown text-file references
            in glossary scopes, or a provider without its required settings.
    """
    prompts = load_prompts(config)

    missing_prompts = [name for name in REQUIRED_PROMPTS if not prompts.get(name)]
    if missing_prompts:
        raise ConfigError(f"Missing prompt templates: {', '.join(missing_prompts)}")

    known_files = set()
    for text_file in config.get("text_files", []):
        path = text_file.get("path") if isinstance(text_file, dict) else getattr(text_file, "path", None)
        if not path:
            raise ConfigError("Text file entry without a path")
        known_files.add(path)

        additional = text_file.get("additional_prompt_name") if isinstance(text_file, dict) \
            else getattr(text_file, "additional_prompt_name", "")
        if additional and additional not in prompts:
            raise ConfigError(f"Text file '{path}' references missing prompt '{additional}'")

    for entry in glossary or []:
        for scoped in list(entry.only) + list(entry.exclude):
            if scoped not in known_files:
                raise ConfigError(
                    f"Glossary entry '{entry.raw}' references unknown file '{scoped}'"
                )

    provider = provider_override or config.get("ai_provider", "ollama")
    if provider not in config or not isinstance(config.get(provider), dict):
        raise ConfigError(f"AI provider '{provider}' configuration not found")

    provider_config = get_provider_config(config, provider)
    api_key = provider_config.get("api_key", "")
    if provider_config.get("api_key_required", True) and (not api_key or api_key == "YOUR_API_KEY_HERE"):
        raise ConfigError(f"{provider} API key not configured")

    if not provider_config.get("api_url"):
        raise ConfigError(f"{provider} API URL not configured")

    models = provider_config.get("models", [])
    model = provider_config.get("model", "")
    if not model and not [m for m in models if m and isinstance(m, str)]:
        raise ConfigError(f"{provider} model not configured")
