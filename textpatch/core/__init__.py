"""
Core module - data model, persistence and record handling

This module provides:
- models: TranslationLine, TranslationSplit, TextFile, ValidationResult
- storage: YAML persistence of per-file translation state
- records: source record extraction and merging
"""

from textpatch.core.models import (
    TextFile,
    TranslationLine,
    TranslationSplit,
    ValidationResult,
)
from textpatch.core.storage import FileStorage, dump_lines, parse_lines
