import json

import pytest

from textpatch.config import (
    ConfigError,
    DEFAULT_CONFIG,
    create_default_config,
    get_prompt,
    load_config,
    validate_config,
)
from textpatch.glossary import GlossaryEntry


def test_missing_file_gives_defaults(tmp_path):
    config = load_config(tmp_path / "config.json")
    assert config == DEFAULT_CONFIG
    assert config is not DEFAULT_CONFIG


def test_file_is_merged_over_defaults(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"translation": {"batch_size": 5}, "prompts": {"Extra": "x"}}), encoding="utf-8")

    config = load_config(path)

    assert config["translation"]["batch_size"] == 5
    assert config["translation"]["retry_count"] == DEFAULT_CONFIG["translation"]["retry_count"]
    assert get_prompt(config, "Extra") == "x"


def test_unparseable_file(tmp_path):
    path = tmp_path / "config.json"
    path.write_text("{not json", encoding="utf-8")
    with pytest.raises(ConfigError):
        load_config(path)


def test_create_default_config(tmp_path):
    path = tmp_path / "config" / "config.json"
    create_default_config(path)
    assert load_config(path) == DEFAULT_CONFIG


def test_default_config_is_valid(config):
    validate_config(config)


def test_missing_prompt_template(config):
    config["prompts"] = {"BaseSystemPrompt": ""}
    with pytest.raises(ConfigError, match="BaseSystemPrompt"):
        validate_config(config)


def test_unknown_additional_prompt(config):
    config["text_files"] = [{"path": "Items.json", "additional_prompt_name": "ItemPrompt"}]
    with pytest.raises(ConfigError, match="ItemPrompt"):
        validate_config(config)


def test_glossary_scope_must_name_known_files(config):
    config["text_files"] = [{"path": "Items.json"}]
    validate_config(config, [GlossaryEntry(raw="铁剑", result="Iron Sword", only=["Items.json"])])

    with pytest.raises(ConfigError, match="Npc.json"):
        validate_config(config, [GlossaryEntry(raw="铁剑", result="Iron Sword", exclude=["Npc.json"])])


def test_api_key_required(config):
    config["ai_provider"] = "openai"
    with pytest.raises(ConfigError, match="API key"):
        validate_config(config)

    config["openai"]["api_key"] = "sk-test"
    validate_config(config)


def test_unknown_provider(config):
    config["ai_provider"] = "mystery"
    with pytest.raises(ConfigError):
        validate_config(config)


def test_get_prompt_unknown(config):
    with pytest.raises(ConfigError):
        get_prompt(config, "Nope")


def test_provider_override_is_validated(config):
    validate_config(config)
    with pytest.raises(ConfigError, match="API key"):
        validate_config(config, provider_override="openai")
