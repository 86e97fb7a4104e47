import json

import httpx
import pytest

from textpatch.ai.exceptions import RateLimitError, TranslationError
from textpatch.ai.providers import remove_think_tags
from textpatch.ai.service import AIService, generate_user_prompt


def openai_config(config):
    config["ai_provider"] = "openai"
    config["openai"]["api_key"] = "sk-test"
    return config


def completion(content, prompt_tokens=3, completion_tokens=2):
    return httpx.Response(200, json={
        "choices": [{"message": {"role": "assistant", "content": content}}],
        "usage": {"prompt_tokens": prompt_tokens, "completion_tokens": completion_tokens},
    })


def test_openai_compatible_request(config):
    seen = []

    def handler(request):
        seen.append(request)
        return completion("<think>hmm</think>\nFlame")

    with AIService(openai_config(config), transport=httpx.MockTransport(handler)) as service:
        assert service.chat([generate_user_prompt("火焰")]) == "Flame"
        assert service.get_total_token_usage() == {"prompt_tokens": 3, "completion_tokens": 2, "requests": 1}

    body = json.loads(seen[0].content)
    assert body["model"] == "gpt-4o-mini"
    assert body["messages"] == [{"role": "user", "content": "火焰"}]
    assert seen[0].headers["Authorization"] == "Bearer sk-test"


def test_ollama_request(config):
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={
            "message": {"role": "assistant", "content": "Flame"},
            "prompt_eval_count": 7,
            "eval_count": 1,
        })

    with AIService(config, transport=httpx.MockTransport(handler)) as service:
        assert service.chat([generate_user_prompt("火焰")]) == "Flame"
        assert service.get_total_token_usage()["prompt_tokens"] == 7

    body = json.loads(seen[0].content)
    assert body["options"] == {"temperature": 0.1}
    assert "Authorization" not in seen[0].headers


def test_rate_limit_backoff(config):
    responses = [httpx.Response(429, json={"error": {"message": "slow down"}}) for _ in range(3)]
    responses.append(completion("Flame"))
    delays = []

    service = AIService(
        openai_config(config),
        transport=httpx.MockTransport(lambda request: responses.pop(0)),
        sleep=delays.append,
    )

    assert service.chat([generate_user_prompt("火焰")]) == "Flame"
    assert delays == [5.0, 10.0, 20.0]


def test_rate_limit_gives_up_after_max_retries(config):
    delays = []
    service = AIService(
        openai_config(config),
        transport=httpx.MockTransport(lambda request: httpx.Response(429, text="busy")),
        sleep=delays.append,
    )

    with pytest.raises(RateLimitError):
        service.chat([generate_user_prompt("火焰")])
    assert delays == [5.0, 10.0, 20.0, 40.0, 60.0]


def test_http_error_raises_translation_error(config):
    service = AIService(
        openai_config(config),
        transport=httpx.MockTransport(lambda request: httpx.Response(500, json={"error": "down"})),
    )

    with pytest.raises(TranslationError) as excinfo:
        service.chat([generate_user_prompt("火焰")])
    assert excinfo.value.code == "http_error"
    assert excinfo.value.details == {"status_code": 500}


def test_model_override(config):
    service = AIService(openai_config(config), model_override="gpt-4o")
    assert service.get_model() == "gpt-4o"


def test_remove_think_tags():
    assert remove_think_tags("<think>\nreasoning\n</think>\n\nAnswer") == "Answer"
    assert remove_think_tags("Answer") == "Answer"
