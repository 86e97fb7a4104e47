"""textpatch - LLM translation of markup-bearing game text."""

__version__ = "0.1.0"
