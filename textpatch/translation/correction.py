"""
Correction/Retry Loop

Drives one fragment from source text to an accepted (or exhausted)
translation: short-circuits, cache, splitting, then up to retry_count
request/validate/correct rounds against the chat service.
"""

from enum import Enum
from typing import Any, Dict, List, Optional

from textpatch.ai.exceptions import TranslationError
from textpatch.config import DEFAULT_RETRY_COUNT, load_prompts
from textpatch.core.models import TextFile, ValidationResult
from textpatch.glossary import GlossaryEntry
from textpatch.logger import get_logger
from textpatch.translation.cache import TranslationCache
from textpatch.translation.messages import (
    add_correction_messages,
    build_base_messages,
    build_correction_prompt,
    build_sentence_messages,
)
from textpatch.translation.splitter import Splitter
from textpatch.translation.tokens import TokenReplacer
from textpatch.translation.validator import (
    SENTENCE_SEPARATOR,
    check,
    contains_source_script,
    contains_untranslated,
)

logger = get_logger(__name__)


class LoopState(Enum):
    START = "start"
    TRANSLATING = "translating"
    VALIDATING = "validating"
    CORRECTING = "correcting"
    ACCEPTED = "accepted"
    EXHAUSTED = "exhausted"


class TranslationLoop:
    """
    Translates single fragments. One instance is shared by all worker
    threads of a run; per-fragment state lives on the call stack.
    """

    def __init__(
        self,
        config: Dict[str, Any],
        ai_service,
        glossary: Optional[List[GlossaryEntry]] = None,
        cache: Optional[TranslationCache] = None,
    ):
        translation_config = config.get("translation", {})
        self.ai_service = ai_service
        self.glossary = glossary or []
        self.cache = cache if cache is not None else TranslationCache(
            translation_config.get("cache_chars", 10))
        self.prompts = load_prompts(config)

        self.retry_count = int(translation_config.get("retry_count", DEFAULT_RETRY_COUNT))
        self.lenient = bool(translation_config.get("skip_line_validation", False))
        self.correction_prompts_enabled = bool(translation_config.get("correction_prompts_enabled", True))
        self.token_patterns = translation_config.get("token_patterns", [])
        self.engine_identifiers = translation_config.get("engine_identifiers", [])
        self.splitter = Splitter.from_config(translation_config)

    def is_engine_reference(self, text: str) -> bool:
        """Object paths such as 'Panel/btnOk' are engine references, not text."""
        return "/" in text and any(identifier in text for identifier in self.engine_identifiers)

    def translate(self, text: str, text_file: TextFile) -> ValidationResult:
        """
        Translate one top-level fragment.

        Raises:
            TranslationError: transport failure in strict mode
        """
        replacer = TokenReplacer(self.token_patterns)
        return self._translate(text, text_file, replacer, depth=0, origin=text)

    def _translate(
        self,
        text: str,
        text_file: TextFile,
        replacer: TokenReplacer,
        depth: int,
        origin: str,
    ) -> ValidationResult:
        if not text:
            return ValidationResult.accepted("")

        if not contains_source_script(text):
            return ValidationResult.accepted(text)

        if text_file.text_file_type == "local_text" and self.is_engine_reference(text):
            return ValidationResult.accepted(text)

        prepared = replacer.prepare(text)

        # Nothing left to translate once tokens are out
        if not contains_source_script(prepared):
            return ValidationResult.accepted(self._finish(prepared, text_file, replacer, depth))

        cached = self.cache.get(text)
        if cached is None:
            cached = self.cache.get(prepared)
        if cached is not None:
            logger.debug(f"Cache hit: {text} -> {cached}")
            return ValidationResult.accepted(cached if depth == 0 else replacer.prepare(cached))

        split = self.splitter.try_split(
            prepared, lambda fragment: self._translate(fragment, text_file, replacer, depth + 1, origin))
        if split is not None:
            if not split.valid:
                return ValidationResult.failed("", f"Translation of a {split.strategy} part failed.")
            return ValidationResult.accepted(self._finish(split.result, text_file, replacer, depth))

        try:
            return self._run(text, prepared, text_file, replacer, depth, origin)
        except TranslationError as e:
            if not self.lenient:
                raise
            logger.error(f"Request error for '{text[:50]}': {e}")
            return ValidationResult(valid=False, result="")

    def _finish(self, result: str, text_file: TextFile, replacer: TokenReplacer, depth: int) -> str:
        # Sub-fragments stay tokenized until the top-level fragment is done
        if depth > 0:
            return result
        return replacer.resize(replacer.restore(result), text_file.size_scale)

    def _validate(
        self,
        raw: str,
        prepared: str,
        llm_result: str,
        text_file: TextFile,
        replacer: TokenReplacer,
        depth: int,
        origin: str,
    ) -> ValidationResult:
        candidate = (llm_result or "").strip()

        if depth > 0:
            # Glossary terms the caller spliced in stay legal for the whole fragment
            validation = check(prepared, candidate, text_file, self.glossary, enclosing_source=origin)
        else:
            final = self._finish(candidate, text_file, replacer, depth)
            validation = check(raw, final, text_file, self.glossary, size_scale=text_file.size_scale)

        if self.lenient:
            validation.valid = True
        return validation

    def _run(
        self,
        raw: str,
        prepared: str,
        text_file: TextFile,
        replacer: TokenReplacer,
        depth: int,
        origin: str,
    ) -> ValidationResult:
        state = LoopState.START
        messages = []
        attempts = 0
        llm_result = ""
        validation = ValidationResult.failed("", "")

        while True:
            if state is LoopState.START:
                messages = build_base_messages(self.prompts, prepared, text_file, self.glossary)
                state = LoopState.TRANSLATING

            elif state is LoopState.TRANSLATING:
                if attempts >= self.retry_count:
                    state = LoopState.EXHAUSTED
                    continue
                attempts += 1
                logger.debug(f"Attempt {attempts}/{self.retry_count}: {prepared}")
                llm_result = self.ai_service.chat(messages)
                logger.debug(f"Response: {llm_result}")
                state = LoopState.VALIDATING

            elif state is LoopState.VALIDATING:
                validation = self._validate(raw, prepared, llm_result, text_file, replacer, depth, origin)
                state = LoopState.ACCEPTED if validation.valid else LoopState.CORRECTING

            elif state is LoopState.CORRECTING:
                logger.debug(f"Rejected '{llm_result}': {validation.correction_prompt}")
                if not self.correction_prompts_enabled:
                    state = LoopState.TRANSLATING
                    continue

                if validation.requires_sentence_correction and attempts < self.retry_count:
                    attempts += 1
                    llm_result = self._correct_sentences(llm_result)
                    validation = self._validate(raw, prepared, llm_result, text_file, replacer, depth, origin)
                    if validation.valid:
                        state = LoopState.ACCEPTED
                        continue

                # Fresh history each round so retries do not grow the context
                messages = build_base_messages(self.prompts, prepared, text_file, self.glossary)
                add_correction_messages(messages, llm_result, build_correction_prompt(self.prompts, validation))
                state = LoopState.TRANSLATING

            elif state is LoopState.ACCEPTED:
                if depth == 0:
                    self.cache.put(raw, validation.result)
                return validation

            elif state is LoopState.EXHAUSTED:
                logger.warning(f"Gave up on '{raw[:50]}' after {attempts} attempts: {validation.correction_prompt}")
                validation.valid = False
                return validation

    def _correct_sentences(self, failed_result: str) -> str:
        """Re-submit only the sentences that still contain source script."""
        sentences = failed_result.split(SENTENCE_SEPARATOR)
        corrected = []

        for index, sentence in enumerate(sentences):
            if index < len(sentences) - 1:
                sentence += "."

            if contains_untranslated(sentence):
                reply = self.ai_service.chat(build_sentence_messages(self.prompts, sentence))
                corrected.append(reply.strip())
            else:
                corrected.append(sentence)

        return " ".join(corrected)
