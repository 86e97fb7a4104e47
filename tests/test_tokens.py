import pytest

from textpatch.config import DEFAULT_CONFIG
from textpatch.translation.tokens import TokenReplacer, strip_diacritics

TOKEN_PATTERNS = DEFAULT_CONFIG["translation"]["token_patterns"]


@pytest.mark.parametrize("text", [
    "获得<sprite name=\"coin\">金币",
    "第一行<br>第二行<br>第三行",
    "制表\\t符&nbsp;结束",
    "没有特殊结构",
])
def test_restore_reverses_prepare(text):
    replacer = TokenReplacer(TOKEN_PATTERNS)
    assert replacer.restore(replacer.prepare(text)) == text


def test_prepare_reuses_tokens_for_repeated_constructs():
    replacer = TokenReplacer(TOKEN_PATTERNS)
    assert replacer.prepare("甲<br>乙<br>丙") == "甲{T0}乙{T0}丙"
    assert replacer.token_map == {"{T0}": "<br>"}


def test_prepare_is_idempotent():
    replacer = TokenReplacer(TOKEN_PATTERNS)
    prepared = replacer.prepare("获得<sprite name=\"coin\">金币<br>")
    assert replacer.prepare(prepared) == prepared
    assert len(replacer.token_map) == 2


def test_restore_cleans_translation_output():
    replacer = TokenReplacer(TOKEN_PATTERNS)
    replacer.prepare("<br>")
    assert replacer.restore("  Wǔdāng{T0}< color = red >Sect</color> ") == "Wudang<br><color=red>Sect</color>"


def test_resize():
    assert TokenReplacer.resize("<size=24>Hi</size>", 0.75) == "<size=18>Hi</size>"


def test_strip_diacritics_leaves_cjk_alone():
    assert strip_diacritics("Émei 峨眉") == "Emei 峨眉"


def test_restore_keeps_accents_present_in_source():
    replacer = TokenReplacer(TOKEN_PATTERNS)
    assert replacer.restore(replacer.prepare("Café 你好")) == "Café 你好"
    assert replacer.restore("Café Wǔdāng") == "Café Wudang"


def test_strip_diacritics_keep():
    assert strip_diacritics("Crème brûlée", keep={"è"}) == "Crème brulee"
