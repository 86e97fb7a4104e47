"""
Translation cache for short fragments.

Short strings (names, labels) are where the model is least consistent, so
an accepted translation of a short fragment is reused for every later
occurrence. The first accepted translation for a key wins.
"""

import threading
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from textpatch.config import DEFAULT_CACHE_CHARS
from textpatch.core.models import TextFile
from textpatch.core.storage import FileStorage, parse_lines
from textpatch.glossary import GlossaryEntry
from textpatch.logger import get_logger

logger = get_logger(__name__)


class TranslationCache:
    """Thread-safe source fragment -> translation map."""

    def __init__(self, max_chars: int = DEFAULT_CACHE_CHARS):
        self.max_chars = max_chars
        self._entries: Dict[str, str] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, text: str) -> bool:
        with self._lock:
            return text in self._entries

    def get(self, text: str) -> Optional[str]:
        with self._lock:
            return self._entries.get(text)

    def put(self, text: str, translation: str) -> bool:
        """
        Cache a translation of a short fragment.

        Returns:
            True if it was stored; False if too long, empty or already cached
        """
        if not text or not translation or len(text) > self.max_chars:
            return False
        return self._add(text, translation)

    def _add(self, text: str, translation: str) -> bool:
        with self._lock:
            if text in self._entries:
                return False
            self._entries[text] = translation
            return True

    def fill(
        self,
        manual_translations: Optional[Dict[str, str]] = None,
        glossary: Optional[Iterable[GlossaryEntry]] = None,
        old_outputs_dir: Optional[Path] = None,
        storage: Optional[FileStorage] = None,
        text_files: Optional[List[TextFile]] = None,
    ):
        """
        Seed the cache, highest priority first: manual overrides, glossary
        results (all script variants), previous-run output files, then the
        current output files.
        """
        for raw, result in (manual_translations or {}).items():
            if raw and result:
                self._add(raw, result)

        for entry in glossary or []:
            for form in entry.raw_forms:
                if entry.result:
                    self._add(form, entry.result)

        if old_outputs_dir is not None and Path(old_outputs_dir).is_dir():
            for path in sorted(Path(old_outputs_dir).iterdir()):
                if not path.is_file():
                    continue
                with open(path, 'r', encoding='utf-8') as f:
                    lines = parse_lines(f.read())
                for line in lines:
                    for split in line.splits:
                        if split.text and split.translated:
                            self._add(split.text, split.translated)

        if storage is not None and text_files:
            for _, lines in storage.iterate_outputs(text_files):
                for line in lines:
                    for split in line.splits:
                        if not split.translated or split.flagged_for_retranslation:
                            continue
                        self.put(split.text, split.translated)

        logger.info(f"Translation cache filled with {len(self)} entries")
