"""
Core data model: persisted lines and splits, per-file settings and
validation results.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

# Persisted key -> attribute, in output order
SPLIT_FIELDS = [
    ("split", "split"),
    ("splitPath", "split_path"),
    ("text", "text"),
    ("translated", "translated"),
    ("safeToTranslate", "safe_to_translate"),
    ("flaggedForRetranslation", "flagged_for_retranslation"),
    ("flaggedMistranslation", "flagged_mistranslation"),
    ("flaggedHallucination", "flagged_hallucination"),
]

TEXT_FILE_TYPES = ("regular", "local_text", "prefab")


@dataclass
class TranslationSplit:
    """One translatable fragment inside a line."""
    text: str = ""
    translated: str = ""
    split_path: str = ""
    split: int = 0
    safe_to_translate: bool = True
    flagged_for_retranslation: bool = False
    flagged_mistranslation: str = ""
    flagged_hallucination: str = ""
    # Keys read from disk that this model does not know about
    extra: Dict[str, Any] = field(default_factory=dict)

    def reset_flags(self):
        self.flagged_for_retranslation = False
        self.flagged_mistranslation = ""
        self.flagged_hallucination = ""

    def needs_translation(self, force: bool = False, translate_flagged: bool = True) -> bool:
        """Whether the translated text may be overwritten on this pass."""
        if not self.text or not self.safe_to_translate:
            return False
        return (not self.translated
                or force
                or (translate_flagged and self.flagged_for_retranslation))

    def apply_result(self, result: "ValidationResult"):
        """Store a loop result; invalid results stay flagged for the next run."""
        self.translated = result.result or ""
        self.reset_flags()
        if not result.valid:
            self.flagged_for_retranslation = True
            for translated, raw in result.mistranslations:
                self.flagged_mistranslation += f"{translated},{raw},"
            for translated, raw in result.hallucinations:
                self.flagged_hallucination += f"{translated},{raw},"

    def to_dict(self) -> Dict[str, Any]:
        data = {}
        for key, attr in SPLIT_FIELDS:
            data[key] = getattr(self, attr)
        data.update(self.extra)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TranslationSplit":
        known = {key for key, _ in SPLIT_FIELDS}
        kwargs = {attr: data[key] for key, attr in SPLIT_FIELDS if key in data and data[key] is not None}
        split = cls(**kwargs)
        split.extra = {k: v for k, v in data.items() if k not in known}
        return split


@dataclass
class TranslationLine:
    """One source record owning an ordered list of splits."""
    raw: str = ""
    raw_index: Optional[str] = None
    splits: List[TranslationSplit] = field(default_factory=list)
    extra: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        data = {"raw": self.raw}
        if self.raw_index is not None:
            data["rawIndex"] = self.raw_index
        data["splits"] = [split.to_dict() for split in self.splits]
        data.update(self.extra)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TranslationLine":
        raw_index = data.get("rawIndex")
        return cls(
            raw=data.get("raw") or "",
            raw_index=str(raw_index) if raw_index is not None else None,
            splits=[TranslationSplit.from_dict(s) for s in data.get("splits") or []],
            extra={k: v for k, v in data.items() if k not in ("raw", "rawIndex", "splits")},
        )


@dataclass
class TextFile:
    """Per-file translation settings."""
    path: str
    text_file_type: str = "regular"
    enable_glossary: bool = True
    enable_base_prompts: bool = True
    additional_prompt_name: str = ""
    allow_missing_colors: bool = False
    size_scale: float = 1.0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TextFile":
        text_file_type = data.get("text_file_type", "regular")
        if text_file_type not in TEXT_FILE_TYPES:
            raise ValueError(f"Unknown text file type '{text_file_type}' for {data.get('path')}")
        return cls(
            path=data["path"],
            text_file_type=text_file_type,
            enable_glossary=data.get("enable_glossary", True),
            enable_base_prompts=data.get("enable_base_prompts", True),
            additional_prompt_name=data.get("additional_prompt_name", "") or "",
            allow_missing_colors=data.get("allow_missing_colors", False),
            size_scale=float(data.get("size_scale", 1.0)),
        )


@dataclass
class ValidationResult:
    """Verdict on one candidate translation."""
    valid: bool = False
    result: str = ""
    correction_prompt: str = ""
    requires_sentence_correction: bool = False
    mistranslations: List[Tuple[str, str]] = field(default_factory=list)
    hallucinations: List[Tuple[str, str]] = field(default_factory=list)

    @classmethod
    def accepted(cls, result: str) -> "ValidationResult":
        return cls(valid=True, result=result)

    @classmethod
    def failed(cls, result: str, correction_prompt: str, **kwargs) -> "ValidationResult":
        return cls(valid=False, result=result, correction_prompt=correction_prompt, **kwargs)
