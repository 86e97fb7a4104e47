"""
Inline markup extraction.

Tags are compared as sets of normalized strings. <size=N> values can be
scaled so a source tag matches its resized counterpart in the output.
"""

import re
from dataclasses import dataclass, field
from typing import List, Optional, Set

TAG_PATTERN = re.compile(r"<(/?\w+[^<>]*)>")
OPEN_TAG_PATTERN = re.compile(r"<(\w+[^<>/]*)>")
PLACEHOLDER_PATTERN = re.compile(r"\{[^{}]*\}")
SIZE_VALUE_PATTERN = re.compile(r"^size\s*=\s*(#?)(\d+)$")
SIZE_TAG_PATTERN = re.compile(r"<size\s*=\s*(#?)(\d+)\s*>")
TAG_SPACING_PATTERN = re.compile(r"<\s*(/?)\s*(\w+)(.*?)\s*(/?)\s*>")
COLOR_TAG_PATTERN = re.compile(r"^/?color(?![\w-])")


@dataclass
class TagValidationResult:
    valid: bool
    missing: Set[str] = field(default_factory=set)
    extra: Set[str] = field(default_factory=set)


def calculate_new_size(size: int, scale: float) -> int:
    return int(round(size * scale))


def _normalise_tag(tag: str) -> str:
    tag = re.sub(r"\s*=\s*", "=", tag.strip())
    return re.sub(r"\s+", " ", tag)


def extract_tags(text: str, size_scale: Optional[float] = None) -> Set[str]:
    """
    Every open, close and self-closing tag in text, normalized.

    With size_scale, size=N values are replaced by their scaled value.
    """
    tags = set()
    for match in TAG_PATTERN.finditer(text or ""):
        tag = _normalise_tag(match.group(1))

        if size_scale is not None:
            size_match = SIZE_VALUE_PATTERN.match(tag)
            if size_match:
                tag = f"size={size_match.group(1)}{calculate_new_size(int(size_match.group(2)), size_scale)}"

        tags.add(tag)
    return tags


def extract_placeholders(text: str) -> Set[str]:
    """Every {...} placeholder token in text."""
    return set(PLACEHOLDER_PATTERN.findall(text or ""))


def extract_tag_list(text: str, ignore: tuple = ()) -> List[str]:
    """Opening tags with attributes, in order, skipping ignored tag names."""
    tags = []
    for match in OPEN_TAG_PATTERN.finditer(text or ""):
        value = match.group(1).strip()
        if not any(value.startswith(prefix) for prefix in ignore):
            tags.append(f"<{value}>")
    return tags


def validate_tags(
    raw: str,
    translated: str,
    allow_missing_colors: bool = False,
    size_scale: Optional[float] = None,
) -> TagValidationResult:
    """Compare the tag sets of raw and translated."""
    raw_tags = extract_tags(raw, size_scale)
    translated_tags = extract_tags(translated)

    if raw_tags == translated_tags:
        return TagValidationResult(True)

    if allow_missing_colors:
        raw_no_color = {t for t in raw_tags if not COLOR_TAG_PATTERN.match(t)}
        translated_no_color = {t for t in translated_tags if not COLOR_TAG_PATTERN.match(t)}
        if raw_no_color == translated_no_color:
            return TagValidationResult(True)

    return TagValidationResult(
        False,
        missing=raw_tags - translated_tags,
        extra=translated_tags - raw_tags,
    )


def trim_tags(text: str) -> str:
    """Remove stray spaces inside tags: '< color = red >' -> '<color=red>'."""
    def _rebuild(match):
        closing, name, attributes, self_closing = match.groups()
        attributes = re.sub(r"\s*=\s*", "=", attributes.strip())
        spacer = " " if attributes and not attributes.startswith("=") else ""
        return f"<{closing}{name}{spacer}{attributes}{self_closing}>"

    return TAG_SPACING_PATTERN.sub(_rebuild, text)


def resize_size_tags(text: str, scale: float) -> str:
    """Scale every <size=N> value."""
    if scale == 1.0:
        return text

    def _resize(match):
        return f"<size={match.group(1)}{calculate_new_size(int(match.group(2)), scale)}>"

    return SIZE_TAG_PATTERN.sub(_resize, text)
