"""
Glossary Management Module - Core Functions

This module handles the glossary that pins source terms to required
translations:
- Loading glossary and manual translation tables
- File scoping (only / exclude lists)
- Rendering the glossary section of a system prompt
- Mistranslation and hallucination checks
"""

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple

import yaml

from textpatch.logger import get_logger

logger = get_logger(__name__)


@dataclass
class GlossaryEntry:
    """One glossary line: a source term and the renderings it allows."""
    raw: str
    result: str
    raw_simplified: str = ""
    raw_traditional: str = ""
    allowed_alternatives: List[str] = field(default_factory=list)
    context: str = ""
    # Flag when raw is in the source but the result is missing
    check_mistranslation: bool = True
    # Flag when the result is in the translation but raw is not in the source
    check_hallucination: bool = False
    only: List[str] = field(default_factory=list)
    exclude: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GlossaryEntry":
        return cls(
            raw=str(data.get("raw", "") or ""),
            result=str(data.get("result", "") or ""),
            raw_simplified=str(data.get("rawSimplified", "") or ""),
            raw_traditional=str(data.get("rawTraditional", "") or ""),
            allowed_alternatives=[str(a) for a in data.get("allowalt", []) or []],
            context=str(data.get("context", "") or ""),
            check_mistranslation=bool(data.get("badtrans", True)),
            check_hallucination=bool(data.get("misuse", False)),
            only=list(data.get("only", []) or []),
            exclude=list(data.get("exclude", []) or []),
        )

    @property
    def raw_forms(self) -> List[str]:
        """raw plus any non-empty script variants."""
        return [form for form in (self.raw, self.raw_simplified, self.raw_traditional) if form]

    def applies_to(self, file_path: str) -> bool:
        """Whether this entry is in scope for the given file."""
        if self.only and file_path not in self.only:
            return False
        if self.exclude and file_path in self.exclude:
            return False
        return True

    def matched_raw(self, text: str) -> Optional[str]:
        """The first raw form contained in text, if any."""
        for form in self.raw_forms:
            if form in text:
                return form
        return None


def load_glossary(path: Path) -> List[GlossaryEntry]:
    """
    Load a glossary YAML file (a list of mappings). A missing file is an
    empty glossary.
    """
    path = Path(path)
    if not path.exists():
        logger.warning(f"Glossary file not found: {path}")
        return []

    with open(path, 'r', encoding='utf-8') as f:
        data = yaml.safe_load(f) or []

    if not isinstance(data, list):
        raise ValueError(f"Glossary file {path} must contain a list of entries")

    entries = [GlossaryEntry.from_dict(item) for item in data if isinstance(item, dict)]
    entries = [entry for entry in entries if entry.raw]
    logger.info(f"Loaded {len(entries)} glossary entries from {path}")
    return entries


def entries_for_file(entries: Iterable[GlossaryEntry], file_path: str) -> List[GlossaryEntry]:
    return [entry for entry in entries if entry.applies_to(file_path)]


def to_prompt_string(raw: str, result: str, alternatives: List[str]) -> str:
    lines = [f'- raw: "{raw}"', "  result:", f'    - "{result}"']
    for alternative in alternatives or []:
        lines.append(f'    - "{alternative}"')
    return "\n".join(lines) + "\n"


def build_glossary_prompt(text: str, entries: Iterable[GlossaryEntry], file_path: str) -> str:
    """Render the glossary entries whose raw form occurs in text."""
    parts = ["```\n"]
    for entry in entries_for_file(entries, file_path):
        form = entry.matched_raw(text)
        if form:
            parts.append(to_prompt_string(form, entry.result, entry.allowed_alternatives))
    parts.append("```\n")
    return "".join(parts)


def check_mistranslation(
    source: str,
    translated: str,
    entries: Iterable[GlossaryEntry],
    file_path: str,
) -> List[Tuple[str, str]]:
    """
    Find glossary terms present in the source whose result (or an allowed
    alternative) is missing from the translation.

    Returns:
        List of (result, raw) pairs that failed
    """
    failures = []
    lowered = translated.lower()

    for entry in entries:
        if not entry.check_mistranslation or not entry.applies_to(file_path):
            continue

        if entry.matched_raw(source) is None:
            continue

        renderings = [entry.result] + entry.allowed_alternatives
        if not any(r and r.lower() in lowered for r in renderings):
            failures.append((entry.result, entry.raw))

    return failures


def _word_pattern(term: str) -> re.Pattern:
    return re.compile(rf"(?<!\w){re.escape(term)}(?!\w)", re.IGNORECASE)


def check_hallucination(
    source: str,
    translated: str,
    entries: List[GlossaryEntry],
    file_path: str,
) -> List[Tuple[str, str]]:
    """
    Find glossary results present in the translation whose raw form is
    absent from the source. A result shared by several entries is tolerated
    when any of those entries has its raw form in the source.

    Returns:
        List of (result, raw) pairs that failed
    """
    failures = []

    for entry in entries:
        if not entry.check_hallucination or not entry.result:
            continue

        if not entry.applies_to(file_path):
            continue

        if entry.matched_raw(source) is not None:
            continue

        if not _word_pattern(entry.result).search(translated):
            continue

        siblings = [s for s in entries if s.result == entry.result and s.raw != entry.raw]
        if any(s.matched_raw(source) is not None for s in siblings):
            continue

        failures.append((entry.result, entry.raw))

    return failures


def load_manual_translations(path: Path) -> Dict[str, str]:
    """
    Load the manual override table (a YAML list of raw/result mappings).
    Manual overrides win over every other translation source.
    """
    path = Path(path)
    if not path.exists():
        logger.debug(f"No manual translations at {path}")
        return {}

    with open(path, 'r', encoding='utf-8') as f:
        data = yaml.safe_load(f) or []

    overrides = {}
    for item in data:
        if isinstance(item, dict) and item.get("raw"):
            overrides[str(item["raw"])] = str(item.get("result", "") or "")
    logger.info(f"Loaded {len(overrides)} manual translations from {path}")
    return overrides
