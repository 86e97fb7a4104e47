"""
Translation module - Core translation functionality

This module provides:
- TranslationManager: Batch orchestrator over the configured files
- TranslationLoop: Per-fragment correction/retry loop
- TranslationCache: Short-fragment translation cache
- TranslationProgress: Progress tracking dataclass
- Validation, splitting and token handling for translation quality
"""

from textpatch.translation.progress import TranslationProgress
from textpatch.translation.cache import TranslationCache
from textpatch.translation.correction import LoopState, TranslationLoop
from textpatch.translation.manager import TranslationManager
from textpatch.translation.splitter import Splitter, SplitResult
from textpatch.translation.tokens import TokenReplacer
from textpatch.translation.validator import check
from textpatch.translation.review import (
    ReviewRules,
    find_failures,
    reset_flags,
    review_file,
    review_outputs,
    write_failures_report,
)
