"""
Translation Manager Module

Main TranslationManager class that coordinates the translation workflow:
- Fill the short-fragment cache
- Walk each configured file in fixed-size batches
- Translate the unique splits of a batch concurrently
- Propagate results to duplicates and flush progress to disk
"""

import threading
import time
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from textpatch.ai.service import AIService
from textpatch.config import DEFAULT_BATCH_SIZE, DEFAULT_FLUSH_INTERVAL
from textpatch.core.models import TextFile, TranslationLine, TranslationSplit
from textpatch.core.storage import FileStorage
from textpatch.glossary import GlossaryEntry, load_glossary, load_manual_translations
from textpatch.logger import get_logger
from textpatch.translation.cache import TranslationCache
from textpatch.translation.correction import TranslationLoop
from textpatch.translation.progress import TranslationProgress

logger = get_logger(__name__)

ProgressCallback = Callable[[TranslationProgress], Optional[bool]]


class TranslationManager:
    """
    Manages translation runs over the configured text files.

    Features:
    - Batches of batch_size lines, unique splits translated in parallel
    - Duplicate splits in a batch share one translation
    - Periodic flush so an interrupted run loses little work
    - Progress callbacks (a truthy return stops after the current batch)
    """

    def __init__(
        self,
        config: Dict[str, Any],
        ai_service: Optional[AIService] = None,
        storage: Optional[FileStorage] = None,
        glossary: Optional[List[GlossaryEntry]] = None,
        manual_translations: Optional[Dict[str, str]] = None,
        cache: Optional[TranslationCache] = None,
    ):
        """
        Initialize translation manager.

        Args:
            config: Loaded configuration
            ai_service: Chat service; created from config when omitted
            storage: File storage; created from the configured directories when omitted
            glossary: Glossary entries; loaded from glossary_file when omitted
            manual_translations: Manual overrides; loaded when omitted
            cache: Translation cache; a fresh one is created when omitted
        """
        self.config = config
        self.translation_config = config.get('translation', {})
        self.batch_size = max(1, int(self.translation_config.get('batch_size', DEFAULT_BATCH_SIZE)))
        self.flush_interval = int(self.translation_config.get('flush_interval', DEFAULT_FLUSH_INTERVAL))
        self.translate_flagged = bool(self.translation_config.get('translate_flagged', True))

        self.ai_service = ai_service if ai_service is not None else AIService(config)
        self.storage = storage if storage is not None else FileStorage(
            Path(config.get('input_dir', 'Raw/Export')),
            Path(config.get('output_dir', 'Converted')),
        )
        self.glossary = glossary if glossary is not None else load_glossary(
            Path(config.get('glossary_file', 'config/Glossary.yaml')))
        self.manual_translations = manual_translations if manual_translations is not None else \
            load_manual_translations(Path(config.get('manual_translations_file', 'config/ManualTranslations.yaml')))
        self.cache = cache if cache is not None else TranslationCache(
            int(self.translation_config.get('cache_chars', 10)))

        self.text_files = [TextFile.from_dict(item) for item in config.get('text_files', [])]
        self.loop = TranslationLoop(config, self.ai_service, self.glossary, self.cache)

        self._stats_lock = threading.Lock()
        self.processed_count = 0
        self.failure_count = 0
        self.start_time: Optional[float] = None

    def fill_cache(self):
        """Seed the cache from overrides, glossary and existing outputs."""
        old_outputs_dir = self.config.get('old_outputs_dir')
        self.cache.fill(
            manual_translations=self.manual_translations,
            glossary=self.glossary,
            old_outputs_dir=Path(old_outputs_dir) if old_outputs_dir else None,
            storage=self.storage,
            text_files=self.text_files,
        )

    def translate_all(
        self,
        force: bool = False,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> Dict[str, Any]:
        """
        Translate every configured text file in order.

        Args:
            force: Retranslate splits that already have an accepted translation
            progress_callback: Optional callback for progress updates

        Returns:
            Dict with processed/failure counts, files and token usage
        """
        self.start_time = time.time()
        self.fill_cache()

        completed_files = []
        cancelled = False
        for index, text_file in enumerate(self.text_files):
            cancelled = self.translate_file(
                text_file,
                force=force,
                progress_callback=progress_callback,
                total_files=len(self.text_files),
                completed_files=index,
            )
            completed_files.append(text_file.path)
            if cancelled:
                logger.info("Translation cancelled by callback request")
                break

        return self._build_result(completed_files, cancelled)

    def translate_file(
        self,
        text_file: TextFile,
        force: bool = False,
        progress_callback: Optional[ProgressCallback] = None,
        total_files: int = 1,
        completed_files: int = 0,
    ) -> bool:
        """
        Translate one file batch by batch and save it.

        Returns:
            True if the progress callback asked to stop
        """
        if self.start_time is None:
            self.start_time = time.time()

        lines = self.storage.load_output(text_file)
        total_lines = len(lines)
        total_batches = (total_lines + self.batch_size - 1) // self.batch_size
        buffered_records = 0
        cancelled = False

        logger.info(f"Processing File: {text_file.path} ({total_lines} lines in {total_batches} batches)")

        for batch_index, start in enumerate(range(0, total_lines, self.batch_size)):
            batch = lines[start:start + self.batch_size]
            modified, unique_count = self._translate_batch(batch, text_file, force)
            buffered_records += modified

            logger.info(
                f"Line: {start + len(batch)} of {total_lines} File: {text_file.path} "
                f"Unprocessable: {self.failure_count} Processed: {self.processed_count}"
            )

            if buffered_records > self.flush_interval:
                logger.info("Writing buffer...")
                self.storage.save_output(text_file, lines)
                buffered_records = 0

            if progress_callback:
                progress = self._progress(
                    text_file, total_files, completed_files,
                    current_item=start + len(batch), total_items=total_lines,
                    current_batch=batch_index + 1, total_batches=total_batches,
                    batch_splits_count=unique_count, phase="translating",
                )
                if progress_callback(progress):
                    cancelled = True
                    break

        self.storage.save_output(text_file, lines)

        elapsed = time.time() - self.start_time
        logger.info(f"Done: {text_file.path} ({total_lines} lines, {elapsed:.1f}s elapsed)")

        if progress_callback and not cancelled:
            progress_callback(self._progress(
                text_file, total_files, completed_files + 1,
                current_item=total_lines, total_items=total_lines,
                current_batch=total_batches, total_batches=total_batches,
                phase="completed",
            ))

        return cancelled

    def _translate_batch(self, batch: List[TranslationLine], text_file: TextFile, force: bool):
        """
        Translate the unique splits of a batch, then copy results onto the
        duplicates. Returns (modified record count, unique split count).
        """
        groups: Dict[str, List[TranslationSplit]] = {}
        for line in batch:
            for split in line.splits:
                groups.setdefault(split.text, []).append(split)

        # An ineligible split never stands in for its eligible duplicates
        firsts = {text: next((s for s in group if s.safe_to_translate), group[0])
                  for text, group in groups.items()}
        unique_splits = [first for first in firsts.values() if first.safe_to_translate]
        modified = 0

        if unique_splits:
            with ThreadPoolExecutor(max_workers=min(self.batch_size, len(unique_splits))) as executor:
                futures = [executor.submit(self._translate_split, split, text_file, force)
                           for split in unique_splits]
                # result() re-raises worker errors (strict transport failures)
                for future in futures:
                    if future.result():
                        modified += 1

        for text, group in groups.items():
            first = firsts[text]
            for split in group:
                if split is first or not split.safe_to_translate:
                    continue
                if (split.translated != first.translated
                        or not split.translated
                        or force
                        or (self.translate_flagged and split.flagged_for_retranslation)):
                    split.translated = first.translated
                    split.flagged_for_retranslation = first.flagged_for_retranslation
                    split.flagged_mistranslation = first.flagged_mistranslation
                    split.flagged_hallucination = first.flagged_hallucination
                    modified += 1
                    with self._stats_lock:
                        self.processed_count += 1

        return modified, len(unique_splits)

    def _translate_split(self, split: TranslationSplit, text_file: TextFile, force: bool) -> bool:
        """Translate one split in place. Returns True if it was (re)translated."""
        if not split.needs_translation(force, self.translate_flagged):
            return False

        cached = self.cache.get(split.text) if text_file.enable_glossary else None
        if cached is not None:
            split.translated = cached
            split.reset_flags()
        else:
            result = self.loop.translate(split.text, text_file)
            split.apply_result(result)
            if not result.valid:
                logger.warning(f"[INVALID] {text_file.path}: {split.text[:50]} ({result.correction_prompt})")

        with self._stats_lock:
            self.processed_count += 1
            if not split.translated or split.flagged_for_retranslation:
                self.failure_count += 1

        return True

    def _progress(self, text_file: TextFile, total_files: int, completed_files: int, **kwargs) -> TranslationProgress:
        with self._stats_lock:
            success_count = self.processed_count - self.failure_count
            failure_count = self.failure_count
        return TranslationProgress(
            current_file=text_file.path,
            total_files=total_files,
            completed_files=completed_files,
            success_count=success_count,
            failure_count=failure_count,
            elapsed_seconds=time.time() - (self.start_time or time.time()),
            token_usage=self.ai_service.get_total_token_usage(),
            **kwargs,
        )

    def _build_result(self, files: List[str], cancelled: bool = False) -> Dict[str, Any]:
        token_usage = self.ai_service.get_total_token_usage()
        logger.info(
            f"Translation completed: {self.processed_count} processed, "
            f"{self.failure_count} failed (tokens: {token_usage})"
        )
        return {
            'processed': self.processed_count,
            'failed': self.failure_count,
            'files': files,
            'cancelled': cancelled,
            'token_usage': token_usage,
        }
