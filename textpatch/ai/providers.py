"""
AI Provider API Implementations

This module contains the chat API call implementations:
- OpenAI-compatible chat completions (OpenAI, DeepSeek, custom endpoints)
- Ollama native chat

Each function takes an AIService instance and a message list, returns the
text response with any reasoning block removed.
"""

import re
from typing import Any, Dict, List

import httpx

from textpatch.logger import get_logger
from textpatch.ai.exceptions import RateLimitError, TranslationError

logger = get_logger(__name__)

THINK_PATTERN = re.compile(r"<think>.*?</think>\s*", re.DOTALL | re.IGNORECASE)


def get_httpx_timeout(timeout_config: Any) -> httpx.Timeout:
    """
    Convert timeout configuration to httpx.Timeout object.

    Args:
        timeout_config: Either a number (total timeout) or a dict with
            connect, write, read, pool keys

    Returns:
        httpx.Timeout object
    """
    if isinstance(timeout_config, dict):
        return httpx.Timeout(
            connect=timeout_config.get('connect', 10.0),
            write=timeout_config.get('write', 60.0),
            read=timeout_config.get('read', 300.0),
            pool=timeout_config.get('pool', 10.0),
        )
    else:
        timeout_value = float(timeout_config) if timeout_config else 300.0
        return httpx.Timeout(
            connect=10.0,
            write=60.0,
            read=timeout_value,
            pool=10.0,
        )


def remove_think_tags(text: str) -> str:
    """Remove <think>...</think> reasoning blocks and the whitespace after them."""
    if not text:
        return text
    return THINK_PATTERN.sub("", text)


def handle_http_error(e: httpx.HTTPStatusError, provider: str):
    """Handle HTTP errors with detailed messages."""
    status_code = e.response.status_code
    error_text = "Unknown error"

    try:
        error_json = e.response.json()
        if isinstance(error_json, dict) and "error" in error_json:
            error_detail = error_json["error"]
            if isinstance(error_detail, dict):
                error_text = error_detail.get("message", str(error_detail))
            else:
                error_text = str(error_detail)
    except ValueError:
        error_text = e.response.text[:500] if e.response.text else "No details"

    if status_code == 429:
        raise RateLimitError(f"{provider} API rate limited (429): {error_text}",
                             details={"status_code": status_code})

    raise TranslationError(f"{provider} API error ({status_code}): {error_text}",
                           code="http_error", details={"status_code": status_code})


def extract_content(result: Dict[str, Any]) -> str:
    """Pull the message text out of either response shape."""
    if 'choices' in result and len(result['choices']) > 0:
        return (result['choices'][0].get('message', {}).get('content') or '').strip()
    if 'message' in result:
        return (result['message'].get('content') or '').strip()
    raise TranslationError(f"Unexpected response format: {list(result.keys())}", code="bad_response")


def _post(service, provider: str, api_url: str, headers: Dict[str, str], body: Dict[str, Any]) -> Dict[str, Any]:
    try:
        response = service.client.post(api_url, headers=headers, json=body)
        response.raise_for_status()
        return response.json()
    except httpx.HTTPStatusError as e:
        handle_http_error(e, provider)
    except httpx.TimeoutException:
        raise TranslationError(f"{provider} API request timeout", code="timeout")
    except httpx.HTTPError as e:
        raise TranslationError(f"{provider} API call failed: {e}", code="transport")
    except ValueError as e:
        raise TranslationError(f"{provider} API returned invalid JSON: {e}", code="bad_response")


def call_openai_compatible_api(service, messages: List[Dict[str, str]]) -> str:
    """Call an OpenAI-compatible chat completions endpoint."""
    provider = service.provider
    provider_config = service.provider_config
    model = service.get_model()
    api_url = provider_config.get('api_url', '')

    headers = {"Content-Type": "application/json"}
    if provider_config.get('api_key_required', True):
        headers["Authorization"] = f"Bearer {provider_config.get('api_key', '')}"

    body = {
        "model": model,
        "messages": messages,
        "stream": False,
    }
    body.update(provider_config.get('options', {}) or {})

    logger.debug(f"  Calling {provider} API (model: {model}, url: {api_url})...")

    result = _post(service, provider, api_url, headers, body)

    usage = result.get('usage', {}) or {}
    service.record_token_usage(usage.get('prompt_tokens', 0), usage.get('completion_tokens', 0))

    content = remove_think_tags(extract_content(result))
    logger.debug(f"  Received {len(content)} chars from {provider}")
    return content


def call_ollama_api(service, messages: List[Dict[str, str]]) -> str:
    """Call the Ollama native /api/chat endpoint."""
    provider_config = service.provider_config
    model = service.get_model()
    api_url = provider_config.get('api_url', 'http://localhost:11434/api/chat')

    headers = {"Content-Type": "application/json"}
    if provider_config.get('api_key_required', False):
        headers["Authorization"] = f"Bearer {provider_config.get('api_key', '')}"

    body = {
        "model": model,
        "messages": messages,
        "stream": False,
    }
    if provider_config.get('options'):
        body["options"] = provider_config['options']

    logger.debug(f"  Calling Ollama API (model: {model})...")

    result = _post(service, "Ollama", api_url, headers, body)

    service.record_token_usage(result.get('prompt_eval_count', 0), result.get('eval_count', 0))

    content = remove_think_tags(extract_content(result))
    logger.debug(f"  Received {len(content)} chars from Ollama")
    return content
