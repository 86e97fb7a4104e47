"""
AI Module

This module provides the chat transport used by the translation engine.
"""

from textpatch.ai.exceptions import TranslationError, RateLimitError
from textpatch.ai.service import AIService

__all__ = ['TranslationError', 'RateLimitError', 'AIService']
