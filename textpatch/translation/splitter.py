"""
Splitter

Decomposes a fragment the model handles badly as a whole into smaller
pieces that are translated through the normal loop and reassembled.
Strategies are tried in a fixed order; the first that applies wins.
"""

import re
from dataclasses import dataclass
from typing import Callable, List, Optional

from textpatch.core.models import ValidationResult
from textpatch.logger import get_logger

logger = get_logger(__name__)

TranslateFn = Callable[[str], ValidationResult]


@dataclass
class SplitResult:
    valid: bool
    result: str
    strategy: str


def separator_for(delimiter: str) -> str:
    if delimiter == "-":
        return " - "
    if delimiter == ":":
        return ": "
    return delimiter


class Splitter:
    """Bracket-pair, delimiter and half-tag decomposition."""

    def __init__(
        self,
        bracket_patterns: Optional[List[str]] = None,
        delimiters: Optional[List[str]] = None,
        half_tag_types: Optional[List[str]] = None,
        lenient: bool = False,
    ):
        self.bracket_patterns = [re.compile(p) for p in bracket_patterns or []]
        self.delimiters = [d for d in delimiters or [] if d]
        self.half_tag_types = list(half_tag_types or [])
        self.lenient = lenient

    @classmethod
    def from_config(cls, translation_config: dict) -> "Splitter":
        return cls(
            bracket_patterns=translation_config.get("bracket_patterns", []),
            delimiters=translation_config.get("split_delimiters", []),
            half_tag_types=translation_config.get("half_tag_types", []),
            lenient=translation_config.get("skip_line_validation", False),
        )

    def try_split(self, text: str, translate: TranslateFn) -> Optional[SplitResult]:
        """
        Apply the first strategy that fits text.

        Returns:
            SplitResult, or None when no strategy applies
        """
        for strategy in (self._split_brackets, self._split_delimiters, self._split_half_tag):
            result = strategy(text, translate)
            if result is not None:
                logger.debug(f"Split '{text[:50]}' using {result.strategy} (valid: {result.valid})")
                return result
        return None

    def _split_brackets(self, text: str, translate: TranslateFn) -> Optional[SplitResult]:
        matches = sorted(
            (m for pattern in self.bracket_patterns for m in pattern.finditer(text)),
            key=lambda m: m.start(),
        )
        if not matches:
            return None

        restorations = []
        modified = text
        offset = 0
        last_end = 0

        for match in matches:
            # Overlapping matches lose to the earlier one
            if match.start() < last_end:
                continue

            value = match.group(0)
            open_bracket, close_bracket, inner = value[0], value[-1], value[1:-1]

            inner_result = translate(inner)
            if not inner_result.valid and not self.lenient:
                return SplitResult(False, "", "brackets")

            quoted = f"'{inner_result.result}'"
            restorations.append((quoted, f" {open_bracket}{inner_result.result}{close_bracket} "))

            start = match.start() + offset
            modified = modified[:start] + quoted + modified[start + len(value):]
            offset += len(quoted) - len(value)
            last_end = match.end()

        full_result = translate(modified)
        if not full_result.valid and not self.lenient:
            return SplitResult(False, "", "brackets")

        result = full_result.result
        for quoted, restored in restorations:
            result = result.replace(quoted, restored)

        result = re.sub(r" {2,}", " ", result).strip()
        return SplitResult(True, result, "brackets")

    def _split_delimiters(self, text: str, translate: TranslateFn) -> Optional[SplitResult]:
        for delimiter in self.delimiters:
            if delimiter not in text:
                continue

            translated_parts = []
            for part in text.split(delimiter):
                part_result = translate(part)
                # One bad part fails the whole fragment
                if not part_result.valid and not self.lenient:
                    return SplitResult(False, "", "delimiter")
                translated_parts.append(part_result.result)

            return SplitResult(True, separator_for(delimiter).join(translated_parts), "delimiter")

        return None

    def _split_half_tag(self, text: str, translate: TranslateFn) -> Optional[SplitResult]:
        for tag_type in self.half_tag_types:
            match = re.match(rf"<{tag_type}\b[^>]*>", text)
            if not match or f"</{tag_type}>" in text:
                continue

            prefix, suffix = match.group(0), text[match.end():]
            prefix_result = translate(prefix)
            suffix_result = translate(suffix)

            valid = prefix_result.valid and suffix_result.valid
            if not valid and not self.lenient:
                return SplitResult(False, "", "half_tag")
            return SplitResult(True, f"{prefix_result.result}{suffix_result.result}", "half_tag")

        return None
