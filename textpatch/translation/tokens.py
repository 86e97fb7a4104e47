"""
Token Normalizer

Replaces constructs the model tends to mangle (inline sprites, line-break
tags, escape sequences, entities) with short {T<n>} tokens before a request
and puts them back afterwards.
"""

import re
import unicodedata
from typing import Dict, Iterable, List, Optional, Set

from textpatch.logger import get_logger
from textpatch.translation.tags import resize_size_tags, trim_tags

logger = get_logger(__name__)

TOKEN_PATTERN = re.compile(r"\{T\d+\}")


def _strip_char(char: str) -> str:
    decomposed = unicodedata.normalize("NFD", char)
    return unicodedata.normalize("NFC", "".join(c for c in decomposed if unicodedata.category(c) != "Mn"))


def strip_diacritics(text: str, keep: Iterable[str] = ()) -> str:
    """
    Remove combining accents from Latin letters: 'Wǔdāng' -> 'Wudang'.
    Characters in keep are left as they are.
    """
    keep = set(keep)
    return "".join(c if c in keep else _strip_char(c) for c in unicodedata.normalize("NFC", text))


def accented_chars(text: str) -> Set[str]:
    return {c for c in unicodedata.normalize("NFC", text) if _strip_char(c) != c}


class TokenReplacer:
    """
    Holds the token map for one top-level fragment. Recursive calls made
    while translating that fragment must share the same instance.
    """

    def __init__(self, token_patterns: Optional[List[str]] = None):
        self.patterns = [re.compile(p) for p in token_patterns or []]
        self.token_map: Dict[str, str] = {}
        self._reverse: Dict[str, str] = {}
        # Accents the source itself carries survive restore
        self.source_accents: Set[str] = set()

    def _token_for(self, construct: str) -> str:
        token = self._reverse.get(construct)
        if token is None:
            token = f"{{T{len(self.token_map)}}}"
            self.token_map[token] = construct
            self._reverse[construct] = token
        return token

    def prepare(self, text: str) -> str:
        """Replace every configured construct with its token."""
        if not text:
            return text

        self.source_accents |= accented_chars(text)
        prepared = text
        for pattern in self.patterns:
            prepared = pattern.sub(lambda m: self._token_for(m.group(0)), prepared)

        if prepared != text:
            logger.debug(f"Prepared {len(self.token_map)} tokens: {text[:50]} -> {prepared[:50]}")
        return prepared

    def restore(self, candidate: str) -> str:
        """Put tokens back, strip accents the source did not have, tidy tag spacing and trim."""
        if not candidate:
            return ""

        restored = strip_diacritics(candidate, keep=self.source_accents)
        for token, construct in self.token_map.items():
            restored = restored.replace(token, construct)

        return trim_tags(restored).strip()

    @staticmethod
    def resize(text: str, scale: float) -> str:
        return resize_size_tags(text, scale)
