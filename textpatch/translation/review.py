"""
Review pass over persisted translations.

Re-applies the current rules (eligibility, manual overrides, glossary,
punctuation, cleanup, full validation) to output files without calling
the model. Splits that no longer pass are flagged for the next run.
"""

import re
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from textpatch.config import CHINESE_CHAR_PATTERN
from textpatch.core.models import TextFile, TranslationLine, TranslationSplit
from textpatch.core.storage import FileStorage
from textpatch.glossary import GlossaryEntry, check_hallucination, check_mistranslation
from textpatch.logger import get_logger
from textpatch.translation.tokens import TokenReplacer
from textpatch.translation.validator import check

logger = get_logger(__name__)

ELLIPSIS = "..."
ELLIPSIS_ENDINGS = ("...", "...?", "...!", "...!!", "...?!")
# Only short fragments must keep a trailing ellipsis
ELLIPSIS_MAX_SOURCE_LENGTH = 15


class ReviewLog:
    """Thread-safe collector of review findings."""

    def __init__(self):
        self._lines: List[str] = []
        self._lock = threading.Lock()

    def add(self, message: str):
        with self._lock:
            self._lines.append(message)

    @property
    def lines(self) -> List[str]:
        with self._lock:
            return list(self._lines)

    def write(self, path: Path):
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, 'w', encoding='utf-8') as f:
            f.write("\n".join(self.lines))


@dataclass
class ReviewRules:
    glossary: List[GlossaryEntry] = field(default_factory=list)
    manual_translations: Dict[str, str] = field(default_factory=dict)
    token_patterns: List[str] = field(default_factory=list)
    engine_identifiers: List[str] = field(default_factory=list)
    ineligible_markers: List[str] = field(default_factory=list)

    @classmethod
    def from_config(cls, config: Dict[str, Any], glossary=None, manual_translations=None) -> "ReviewRules":
        translation_config = config.get('translation', {})
        return cls(
            glossary=glossary or [],
            manual_translations=manual_translations or {},
            token_patterns=translation_config.get('token_patterns', []),
            engine_identifiers=translation_config.get('engine_identifiers', []),
            ineligible_markers=translation_config.get('ineligible_markers', []),
        )

    def is_engine_reference(self, text: str) -> bool:
        return "/" in text and any(identifier in text for identifier in self.engine_identifiers)


def _append_diagnostics(current: str, pairs) -> str:
    for result, raw in pairs:
        entry = f"{result},{raw},"
        if entry not in current:
            current += entry
    return current


def review_split(
    split: TranslationSplit,
    text_file: TextFile,
    rules: ReviewRules,
    replacer: TokenReplacer,
    log: ReviewLog,
) -> bool:
    """Apply the rules to one split. Returns True if it changed."""
    if not split.safe_to_translate:
        return False

    if text_file.text_file_type == "local_text" and rules.is_engine_reference(split.text):
        if split.translated != split.text:
            split.translated = split.text
            split.reset_flags()
            return True
        return False

    prepared = replacer.prepare(split.text)

    # Nothing to translate: the output is the source with tokens cleaned up
    if not re.search(CHINESE_CHAR_PATTERN, prepared):
        cleaned = replacer.resize(replacer.restore(prepared), text_file.size_scale)
        if split.translated != cleaned:
            log.add(f"Already Translated {text_file.path}\n{split.translated}")
            split.translated = cleaned
            split.reset_flags()
            return True
        return False

    if text_file.enable_glossary and split.text in rules.manual_translations:
        manual = rules.manual_translations[split.text]
        if split.translated != manual:
            log.add(f"Manually Translated {text_file.path}\n{split.text}\n{split.translated}")
            split.translated = manual
            split.reset_flags()
            return True
        return False

    if not split.translated:
        split.flagged_for_retranslation = True
        split.flagged_mistranslation = "Failed"
        return True

    modified = False

    if text_file.enable_glossary:
        mistranslations = check_mistranslation(split.text, split.translated, rules.glossary, text_file.path)
        if mistranslations:
            split.flagged_for_retranslation = True
            split.flagged_mistranslation = _append_diagnostics(split.flagged_mistranslation, mistranslations)
            modified = True

        hallucinations = check_hallucination(split.text, split.translated, rules.glossary, text_file.path)
        if hallucinations:
            split.flagged_for_retranslation = True
            split.flagged_hallucination = _append_diagnostics(split.flagged_hallucination, hallucinations)
            modified = True

    if (prepared.endswith(ELLIPSIS)
            and len(prepared) < ELLIPSIS_MAX_SOURCE_LENGTH
            and not split.translated.endswith(ELLIPSIS_ENDINGS)):
        log.add(f"Missing ... {text_file.path}\n{split.translated}")
        split.flagged_for_retranslation = True
        modified = True

    if prepared.startswith(ELLIPSIS) and not split.translated.startswith(ELLIPSIS):
        log.add(f"Missing ... {text_file.path}\n{split.translated}")
        split.translated = f"{ELLIPSIS}{split.translated}"
        modified = True

    if split.translated.strip() != split.translated:
        log.add(f"Needed Trimming: {text_file.path}\n{split.translated}")
        split.translated = split.translated.strip()
        modified = True

    cleaned = TokenReplacer().restore(split.translated)
    if cleaned != split.translated:
        log.add(f"Cleaned up {text_file.path}\n{split.translated}\n{cleaned}")
        split.translated = cleaned
        modified = True

    result = check(split.text, split.translated, text_file, rules.glossary, size_scale=text_file.size_scale)
    if not result.valid:
        log.add(f"Invalid {text_file.path} Failures: {result.correction_prompt}\n{split.translated}")
        if not split.flagged_for_retranslation:
            split.flagged_for_retranslation = True
            modified = True

    return modified


def review_file(
    lines: List[TranslationLine],
    text_file: TextFile,
    rules: ReviewRules,
    log: Optional[ReviewLog] = None,
) -> int:
    """
    Re-apply the rules to every split of a file.

    Returns:
        Number of modified splits
    """
    log = log if log is not None else ReviewLog()
    modified = 0

    for line in lines:
        # One token map per line
        replacer = TokenReplacer(rules.token_patterns)
        ineligible = any(marker in line.raw for marker in rules.ineligible_markers)

        for split in line.splits:
            if ineligible:
                if split.safe_to_translate:
                    split.safe_to_translate = False
                    modified += 1
                continue

            if review_split(split, text_file, rules, replacer, log):
                modified += 1

    return modified


def review_outputs(
    storage: FileStorage,
    text_files: List[TextFile],
    rules: ReviewRules,
    log_path: Optional[Path] = None,
) -> int:
    """Review every output file, saving the ones that changed."""
    log = ReviewLog()
    total = storage.update_outputs(
        text_files, lambda text_file, lines: review_file(lines, text_file, rules, log))

    logger.info(f"Review modified {total} records")
    if log_path is not None:
        log.write(log_path)
    return total


def reset_flags(lines: List[TranslationLine]) -> int:
    """Clear the retranslation flags and diagnostics of every split."""
    count = 0
    for line in lines:
        for split in line.splits:
            if split.flagged_for_retranslation or split.flagged_mistranslation or split.flagged_hallucination:
                split.reset_flags()
                count += 1
    return count


def find_failures(storage: FileStorage, text_files: List[TextFile]) -> List[Dict[str, str]]:
    """Every split with source script that is untranslated or flagged."""
    failures = []
    for text_file, lines in storage.iterate_outputs(text_files):
        for line in lines:
            for split in line.splits:
                if not split.text or not re.search(CHINESE_CHAR_PATTERN, split.text):
                    continue
                if not split.translated or split.flagged_for_retranslation:
                    failures.append({
                        'file': text_file.path,
                        'text': split.text,
                        'translated': split.translated,
                        'reason': split.flagged_mistranslation,
                    })
    return failures


def write_failures_report(failures: List[Dict[str, str]], path: Path):
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, 'w', encoding='utf-8') as f:
        yaml.safe_dump(failures, f, allow_unicode=True, sort_keys=False)
    logger.info(f"Wrote {len(failures)} failing translations to {path}")
