"""
Request payload construction.

The system prompt is assembled from named prompt templates depending on
what the fragment contains (colour/size tags, other tags, placeholders)
and on the file's settings.
"""

from typing import Dict, List, Optional

from textpatch.ai.service import generate_assistant_prompt, generate_system_prompt, generate_user_prompt
from textpatch.core.models import TextFile, ValidationResult
from textpatch.glossary import GlossaryEntry, build_glossary_prompt
from textpatch.translation.tags import extract_tag_list

Message = Dict[str, str]


def build_base_messages(
    prompts: Dict[str, str],
    raw: str,
    text_file: TextFile,
    glossary: Optional[List[GlossaryEntry]] = None,
    additional_system_prompt: str = "",
) -> List[Message]:
    """Return [system, user(raw)] for a first translation request."""
    lines = []

    if text_file.enable_base_prompts:
        lines.append(prompts["BaseSystemPrompt"])

        if "<color" in raw:
            lines.append(prompts["DynamicColorPrompt"])
        elif "</color>" in raw:
            lines.append(prompts["DynamicCloseColorPrompt"])

        if "<size" in raw:
            lines.append(prompts["DynamicSizePrompt"])
        elif "</size>" in raw:
            lines.append(prompts["DynamicCloseSizePrompt"])

        if "<" in raw:
            tags = extract_tag_list(raw, ignore=("color", "size"))
            if tags:
                lines.append(prompts["DynamicTagPrompt"].format("\n".join(tags)))

        if "{" in raw:
            lines.append(prompts["DynamicPlaceholderPrompt"])

    if text_file.additional_prompt_name:
        lines.append(prompts[text_file.additional_prompt_name])

    if additional_system_prompt:
        lines.append(additional_system_prompt)

    if text_file.enable_glossary:
        lines.append("")
        lines.append(prompts["BaseGlossaryPrompt"])
        lines.append(build_glossary_prompt(raw, glossary or [], text_file.path))

    if text_file.enable_base_prompts:
        lines.append("")
        lines.append(prompts["BaseSystemSuffixPrompt"])

    return [
        generate_system_prompt("\n".join(lines)),
        generate_user_prompt(raw),
    ]


def build_correction_prompt(prompts: Dict[str, str], validation: ValidationResult) -> str:
    """The failure directive followed by the shared correction suffix."""
    if not validation.correction_prompt:
        return ""
    return validation.correction_prompt + prompts["BaseCorrectionSuffixPrompt"]


def add_correction_messages(messages: List[Message], failed_result: str, correction_prompt: str):
    messages.append(generate_assistant_prompt(failed_result))
    messages.append(generate_user_prompt(correction_prompt))


def build_sentence_messages(prompts: Dict[str, str], sentence: str) -> List[Message]:
    """
    Minimal request for one sentence with leftover source script. The full
    original is left out so the model only fixes the untranslated words.
    """
    return [
        generate_system_prompt(prompts["BaseSystemPrompt"]),
        generate_user_prompt(prompts["SentenceCorrectionPrompt"]),
        generate_assistant_prompt(sentence),
        generate_user_prompt(
            f"{prompts['SentenceCorrectionRequestPrompt']} {prompts['BaseCorrectionSuffixPrompt']}"
        ),
    ]
