"""
Source record extraction and merging.

Each supported record kind has an explicit schema describing where its
translatable strings live, so extraction never guesses fields by name at
runtime beyond the declared skip rules.
"""

import json
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Tuple

from textpatch.config import CHINESE_CHAR_PATTERN
from textpatch.core.models import TranslationLine, TranslationSplit
from textpatch.logger import get_logger

logger = get_logger(__name__)

ARRAY_PATH_PATTERN = re.compile(r"^(?P<name>.+)\[(?P<index>\d+)\]$")


@dataclass(frozen=True)
class JsonRecordSchema:
    """Array of JSON objects keyed by a numeric field."""
    key_field: str = "Key"
    # Property-name suffixes (case-insensitive, 'list' ignored) that hold
    # derived text and must not be translated
    skip_suffixes: Tuple[str, ...] = ("tw", "final")


@dataclass(frozen=True)
class TextRecordSchema:
    """Line-oriented text: every line with source script is one split."""
    # Keep lines without source script so line numbers stay aligned
    keep_untranslatable: bool = True


@dataclass
class ExtractResult:
    lines: List[TranslationLine] = field(default_factory=list)
    skipped: int = 0


def _has_source_script(text: Any) -> bool:
    return isinstance(text, str) and bool(text) and re.search(CHINESE_CHAR_PATTERN, text) is not None


def _skipped_property(name: str, schema: JsonRecordSchema) -> bool:
    normalised = name.lower().replace("list", "")
    return any(normalised.endswith(suffix) for suffix in schema.skip_suffixes)


def extract_json_records(content: str, schema: JsonRecordSchema = JsonRecordSchema()) -> ExtractResult:
    """Turn a JSON array of keyed objects into translation lines."""
    entries = json.loads(content)
    result = ExtractResult()

    if not isinstance(entries, list):
        logger.warning("JSON content is not an array, nothing extracted")
        return result

    for entry in entries:
        if not isinstance(entry, dict) or schema.key_field not in entry:
            result.skipped += 1
            continue

        line = TranslationLine(
            raw=json.dumps(entry, ensure_ascii=False),
            raw_index=str(entry[schema.key_field]),
        )

        for name, value in entry.items():
            if name == schema.key_field or _skipped_property(name, schema):
                continue

            if isinstance(value, str):
                if _has_source_script(value):
                    line.splits.append(TranslationSplit(split_path=name, text=value))
            elif isinstance(value, list):
                for index, element in enumerate(value):
                    if _has_source_script(element):
                        line.splits.append(TranslationSplit(
                            split_path=f"{name}[{index}]",
                            text=element,
                            split=index,
                        ))

        if line.splits:
            result.lines.append(line)

    return result


def extract_text_lines(content: str, schema: TextRecordSchema = TextRecordSchema()) -> ExtractResult:
    """Turn line-oriented text into translation lines keyed by line number."""
    result = ExtractResult()
    for number, text in enumerate(content.splitlines(), start=1):
        line = TranslationLine(raw=text, raw_index=str(number))
        if _has_source_script(text):
            line.splits.append(TranslationSplit(split=0, text=text))
        elif not schema.keep_untranslatable:
            result.skipped += 1
            continue
        result.lines.append(line)
    return result


def merge_lines(export_lines: List[TranslationLine], existing_lines: List[TranslationLine]) -> Tuple[List[TranslationLine], int]:
    """
    Carry translations from a previous output onto freshly extracted lines.

    Lines are matched by raw_index, falling back to raw content; splits by
    split_path, falling back to source text. Returns the merged lines and
    the number of new (unmatched) splits.
    """
    by_index = {line.raw_index: line for line in existing_lines if line.raw_index is not None}
    by_raw = {line.raw: line for line in existing_lines}
    new_count = 0

    for line in export_lines:
        found = by_index.get(line.raw_index) if line.raw_index is not None else None
        if found is None:
            found = by_raw.get(line.raw)

        if found is None:
            new_count += len(line.splits)
            continue

        for split in line.splits:
            previous = next((s for s in found.splits if s.split_path == split.split_path and s.text == split.text), None)
            if previous is None:
                previous = next((s for s in found.splits if s.text == split.text), None)

            if previous is None:
                new_count += 1
                continue

            split.translated = previous.translated
            split.safe_to_translate = previous.safe_to_translate
            split.flagged_for_retranslation = previous.flagged_for_retranslation
            split.flagged_mistranslation = previous.flagged_mistranslation
            split.flagged_hallucination = previous.flagged_hallucination

    return export_lines, new_count


def apply_json_translations(lines: List[TranslationLine], schema: JsonRecordSchema = JsonRecordSchema()) -> Tuple[List[Dict[str, Any]], int, int]:
    """
    Rebuild JSON objects from lines, writing accepted translations back by
    split path. Flagged or empty splits keep their source text.

    Returns (objects, passed_count, failed_count).
    """
    objects = []
    passed = failed = 0

    for line in lines:
        entry = json.loads(line.raw) if line.raw else {schema.key_field: line.raw_index}

        for split in line.splits:
            if split.flagged_for_retranslation or not split.translated:
                value = split.text
                if split.safe_to_translate:
                    failed += 1
            else:
                value = split.translated
                passed += 1

            match = ARRAY_PATH_PATTERN.match(split.split_path)
            if match:
                items = entry.get(match.group("name"))
                index = int(match.group("index"))
                if isinstance(items, list) and index < len(items):
                    items[index] = value
            else:
                entry[split.split_path] = value

        objects.append(entry)

    return objects, passed, failed
