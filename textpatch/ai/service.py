"""
AI Chat Service Module

This module provides the chat transport used by the translation engine:
- AIService class wrapping one shared HTTP client
- Rate-limit backoff
- Token usage accounting

For provider-specific API implementations, see ai/providers.py
"""

import threading
import time
from typing import Any, Callable, Dict, List, Optional

import httpx

from textpatch.config import get_provider_config
from textpatch.logger import get_logger
from textpatch.ai.exceptions import RateLimitError, TranslationError
from textpatch.ai.providers import call_ollama_api, call_openai_compatible_api, get_httpx_timeout

logger = get_logger(__name__)


def generate_system_prompt(content: str) -> Dict[str, str]:
    return {"role": "system", "content": content}


def generate_user_prompt(content: str) -> Dict[str, str]:
    return {"role": "user", "content": content}


def generate_assistant_prompt(content: str) -> Dict[str, str]:
    return {"role": "assistant", "content": content}


class AIService:
    """Chat service shared by every concurrent translation task."""

    def __init__(
        self,
        config: Dict[str, Any],
        model_override: Optional[str] = None,
        provider_override: Optional[str] = None,
        transport: Optional[httpx.BaseTransport] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.config = config
        self.provider = provider_override if provider_override else config.get('ai_provider', 'ollama')
        self.provider_config = get_provider_config(config, self.provider)
        self.model_override = model_override
        self.rate_limit_config = config.get('translation', {}).get('rate_limit', {})
        self._sleep = sleep

        client_kwargs = {"timeout": get_httpx_timeout(self.provider_config.get('timeout', 300))}
        if transport is not None:
            client_kwargs["transport"] = transport
        self.client = httpx.Client(**client_kwargs)

        # Token usage tracking
        self._usage_lock = threading.Lock()
        self.total_prompt_tokens = 0
        self.total_completion_tokens = 0
        self.request_count = 0

        if model_override or provider_override:
            logger.info(f"Initialized AI service with provider: {self.provider}, model override: {model_override}")
        else:
            logger.info(f"Initialized AI service with provider: {self.provider}")

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()

    def close(self):
        self.client.close()

    def get_model(self, default_model: str = "") -> str:
        """
        Get the model to use for translation.

        Priority:
        1. model_override (if set)
        2. First model from 'models' array
        3. 'model' field (legacy)
        4. default_model
        """
        if self.model_override:
            return self.model_override

        models = self.provider_config.get('models', [])
        if models and isinstance(models, list) and models[0]:
            return models[0]

        return self.provider_config.get('model', default_model)

    def record_token_usage(self, prompt_tokens: int, completion_tokens: int):
        """Add one call's tokens to the totals."""
        with self._usage_lock:
            self.total_prompt_tokens += prompt_tokens or 0
            self.total_completion_tokens += completion_tokens or 0
            self.request_count += 1

    def get_total_token_usage(self) -> Dict[str, int]:
        """Get accumulated token usage."""
        with self._usage_lock:
            return {
                'prompt_tokens': self.total_prompt_tokens,
                'completion_tokens': self.total_completion_tokens,
                'requests': self.request_count,
            }

    def chat(self, messages: List[Dict[str, str]]) -> str:
        """
        Send one message list and return the reply text.

        429 responses are retried with exponential backoff; once the backoff
        budget is spent the RateLimitError propagates like any other
        TranslationError.
        """
        delay = float(self.rate_limit_config.get('initial_delay', 5.0))
        max_delay = float(self.rate_limit_config.get('max_delay', 60.0))
        max_retries = int(self.rate_limit_config.get('max_retries', 5))
        retries = 0

        while True:
            try:
                return self._call_api(messages)
            except RateLimitError:
                if retries >= max_retries:
                    logger.error(f"Still rate limited after {retries} retries, giving up")
                    raise
                logger.warning(f"Received 429 Too Many Requests. Backing off {delay:.0f}s...")
                self._sleep(delay)
                delay = min(delay * 2, max_delay)
                retries += 1

    def _call_api(self, messages: List[Dict[str, str]]) -> str:
        if self.provider == 'ollama':
            return call_ollama_api(self, messages)
        if not self.provider_config.get('api_url'):
            raise TranslationError(f"Unsupported AI provider: {self.provider}", code="ai_config_missing")
        return call_openai_compatible_api(self, messages)
