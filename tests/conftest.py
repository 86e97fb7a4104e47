import copy
import threading

import pytest

from textpatch.config import DEFAULT_CONFIG
from textpatch.core.models import TextFile
from textpatch.glossary import GlossaryEntry


class FakeChatService:
    """Stands in for AIService: answers from a script and records requests."""

    def __init__(self, responder):
        # responder: list of replies (consumed in order) or callable(messages) -> str
        self._responder = responder
        self._lock = threading.Lock()
        self.calls = []

    def chat(self, messages):
        with self._lock:
            self.calls.append(copy.deepcopy(messages))
            if callable(self._responder):
                return self._responder(messages)
            return self._responder.pop(0)

    def user_texts(self):
        return [call[-1]["content"] for call in self.calls]

    def get_total_token_usage(self):
        return {"prompt_tokens": 0, "completion_tokens": 0, "requests": len(self.calls)}


@pytest.fixture
def fake_chat():
    """Factory: fake_chat(list_or_callable) or fake_chat(mapping=..., default=...)."""
    def _make(responder=None, mapping=None, default="Untranslated 中文"):
        if mapping is not None:
            # Answer by the content of the first user message
            responder = lambda messages: mapping.get(messages[1]["content"], default)
        return FakeChatService(responder)
    return _make


@pytest.fixture
def make_config():
    def _make(**translation):
        config = copy.deepcopy(DEFAULT_CONFIG)
        config["translation"].update(translation)
        return config
    return _make


@pytest.fixture
def config(make_config):
    return make_config()


@pytest.fixture
def text_file():
    return TextFile(path="NpcItem.json")


@pytest.fixture
def glossary():
    return [
        GlossaryEntry(raw="炼狱", result="Hellforge"),
        GlossaryEntry(raw="门派", result="Sect", allowed_alternatives=["Faction"]),
        GlossaryEntry(raw="少林", result="Shaolin", check_hallucination=True),
        GlossaryEntry(raw="少室山", result="Shaolin", check_hallucination=True),
    ]
