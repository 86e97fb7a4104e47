"""
Translation Progress Data Class

Contains the TranslationProgress dataclass for tracking translation progress.
"""

from dataclasses import dataclass
from typing import Optional, Dict


@dataclass
class TranslationProgress:
    """Progress information for an ongoing translation run."""
    current_file: str
    total_files: int
    completed_files: int
    current_item: int
    total_items: int
    success_count: int
    failure_count: int
    # Batch progress fields
    current_batch: int = 0           # Current batch number (1-indexed)
    total_batches: int = 0           # Total batches for current file
    batch_splits_count: int = 0      # Number of unique splits in current batch
    phase: str = "translating"       # "starting", "translating", "saving", "completed"
    elapsed_seconds: float = 0.0
    # Token usage so far
    token_usage: Optional[Dict[str, int]] = None
