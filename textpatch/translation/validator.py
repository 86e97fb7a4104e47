"""
Translation Validation Module

Contains the ordered checks a candidate translation must pass:
- Empty translation
- Tag and placeholder preservation
- Residual source script
- Glossary mistranslation and hallucination

The first failing check decides the correction directive.
"""

import re
from typing import List, Optional

from textpatch.config import CHINESE_CHAR_PATTERN
from textpatch.core.models import TextFile, ValidationResult
from textpatch.glossary import GlossaryEntry, check_hallucination, check_mistranslation
from textpatch.logger import get_logger
from textpatch.translation.tags import PLACEHOLDER_PATTERN, extract_placeholders, validate_tags

logger = get_logger(__name__)

SENTENCE_SEPARATOR = ". "


def contains_source_script(text: str) -> bool:
    return bool(text) and re.search(CHINESE_CHAR_PATTERN, text) is not None


def contains_untranslated(text: str) -> bool:
    """Source script outside of {...} placeholders."""
    return contains_source_script(PLACEHOLDER_PATTERN.sub("", text or ""))


def split_sentences(text: str) -> List[str]:
    return text.split(SENTENCE_SEPARATOR)


def check(
    source: str,
    translated: str,
    text_file: TextFile,
    glossary: Optional[List[GlossaryEntry]] = None,
    size_scale: Optional[float] = None,
    enclosing_source: Optional[str] = None,
) -> ValidationResult:
    """
    Validate a candidate translation of source.

    Args:
        source: Source fragment (prepared or raw, matching translated)
        translated: Candidate translation
        text_file: Settings of the file the fragment belongs to
        glossary: Glossary entries to check against
        size_scale: Scale applied to source <size=N> tags before comparing
        enclosing_source: Whole fragment a sub-fragment was cut from; glossary
            results are allowed when their raw form appears there

    Returns:
        ValidationResult; never raises for a bad translation
    """
    translated = translated or ""

    # 1. Missing translation
    if source and not translated.strip():
        return ValidationResult.failed(translated, "The translation is missing. Provide a full translation.")

    # 2. Markup
    tag_check = validate_tags(source, translated, text_file.allow_missing_colors, size_scale)
    if not tag_check.valid:
        parts = []
        if tag_check.missing:
            parts.append(f"Missing tags: {', '.join(sorted(f'<{t}>' for t in tag_check.missing))}.")
        if tag_check.extra:
            parts.append(f"Unexpected tags: {', '.join(sorted(f'<{t}>' for t in tag_check.extra))}.")
        directive = "The translation does not keep the markup tags of the original. " + " ".join(parts)
        return ValidationResult.failed(translated, directive)

    source_placeholders = extract_placeholders(source)
    translated_placeholders = extract_placeholders(translated)
    if source_placeholders != translated_placeholders:
        parts = []
        missing = source_placeholders - translated_placeholders
        extra = translated_placeholders - source_placeholders
        if missing:
            parts.append(f"Missing placeholders: {', '.join(sorted(missing))}.")
        if extra:
            parts.append(f"Unexpected placeholders: {', '.join(sorted(extra))}.")
        directive = "The translation does not keep the placeholders of the original. " + " ".join(parts)
        return ValidationResult.failed(translated, directive)

    # 3. Residual source script
    if contains_untranslated(translated):
        sentences = split_sentences(translated)
        offending = [s for s in sentences if contains_untranslated(s)]
        return ValidationResult.failed(
            translated,
            "The translation still contains Chinese characters. Translate all of them into English.",
            requires_sentence_correction=0 < len(offending) < len(sentences),
        )

    # 4. Glossary
    if glossary and text_file.enable_glossary:
        mistranslations = check_mistranslation(source, translated, glossary, text_file.path)
        hallucinations = check_hallucination(
            enclosing_source or source, translated, glossary, text_file.path)

        if mistranslations or hallucinations:
            parts = []
            for result, raw in mistranslations:
                parts.append(f"'{raw}' must be translated as '{result}'.")
            for result, raw in hallucinations:
                parts.append(f"'{result}' is only used for '{raw}', which is not in the original. Do not use it.")
            logger.debug(f"Glossary check failed for '{source[:50]}': {parts}")
            return ValidationResult.failed(
                translated,
                "The translation does not follow the glossary. " + " ".join(parts),
                mistranslations=mistranslations,
                hallucinations=hallucinations,
            )

    # 5. Accept
    return ValidationResult.accepted(translated)
