"""
Glossary module - term pinning for translations

This module provides:
- terms: glossary entries, scoping, prompt rendering and checks
"""

from textpatch.glossary.terms import (
    GlossaryEntry,
    build_glossary_prompt,
    check_hallucination,
    check_mistranslation,
    entries_for_file,
    load_glossary,
    load_manual_translations,
)
