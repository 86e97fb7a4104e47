from textpatch.config import DEFAULT_PROMPTS
from textpatch.core.models import TextFile, ValidationResult
from textpatch.glossary import GlossaryEntry
from textpatch.translation.messages import (
    build_base_messages,
    build_correction_prompt,
    build_sentence_messages,
)


def test_base_messages_pick_prompts_from_content():
    prompts = dict(DEFAULT_PROMPTS, ItemPrompt="These are item names.")
    text_file = TextFile(path="Items.json", additional_prompt_name="ItemPrompt")
    glossary = [GlossaryEntry(raw="炼狱", result="Hellforge")]

    messages = build_base_messages(prompts, '<color=red>炼狱</color><link="a">{0}</link>', text_file, glossary)

    system = messages[0]["content"]
    assert [m["role"] for m in messages] == ["system", "user"]
    assert messages[1]["content"] == '<color=red>炼狱</color><link="a">{0}</link>'
    assert system.startswith(DEFAULT_PROMPTS["BaseSystemPrompt"])
    assert DEFAULT_PROMPTS["DynamicColorPrompt"] in system
    assert DEFAULT_PROMPTS["DynamicSizePrompt"] not in system
    assert '<link="a">' in system
    assert DEFAULT_PROMPTS["DynamicPlaceholderPrompt"] in system
    assert "These are item names." in system
    assert "Hellforge" in system
    assert system.endswith(DEFAULT_PROMPTS["BaseSystemSuffixPrompt"])


def test_close_only_tag_prompt():
    system = build_base_messages(DEFAULT_PROMPTS, "火焰</color>", TextFile(path="x"))[0]["content"]
    assert DEFAULT_PROMPTS["DynamicCloseColorPrompt"] in system
    assert DEFAULT_PROMPTS["DynamicColorPrompt"] not in system


def test_base_prompts_can_be_disabled():
    text_file = TextFile(path="x", enable_base_prompts=False, enable_glossary=False)
    system = build_base_messages(DEFAULT_PROMPTS, "<color=red>火</color>", text_file)[0]["content"]
    assert system == ""


def test_correction_prompt_has_suffix():
    failed = ValidationResult.failed("x", "Fix the tags.")
    assert build_correction_prompt(DEFAULT_PROMPTS, failed) == \
        "Fix the tags." + DEFAULT_PROMPTS["BaseCorrectionSuffixPrompt"]
    assert build_correction_prompt(DEFAULT_PROMPTS, ValidationResult.accepted("x")) == ""


def test_sentence_messages_leave_out_the_original():
    messages = build_sentence_messages(DEFAULT_PROMPTS, "她 left.")
    assert [m["role"] for m in messages] == ["system", "user", "assistant", "user"]
    assert messages[2]["content"] == "她 left."
    assert messages[0]["content"] == DEFAULT_PROMPTS["BaseSystemPrompt"]
