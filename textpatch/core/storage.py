"""
Persistence of translation lines as YAML, one file per source file.

Writes to the same file are serialized through a per-path lock so a batch
flush and a final save can never interleave.
"""

import threading
from pathlib import Path
from typing import Callable, Dict, Iterator, List, Optional, Tuple

import yaml

from textpatch.core.models import TextFile, TranslationLine
from textpatch.logger import get_logger

logger = get_logger(__name__)


class _Dumper(yaml.SafeDumper):
    """SafeDumper that indents sequences inside mappings."""

    def increase_indent(self, flow=False, indentless=False):
        return super().increase_indent(flow, False)


def _str_presenter(dumper, data):
    if "\n" in data:
        return dumper.represent_scalar("tag:yaml.org,2002:str", data, style="|")
    return dumper.represent_scalar("tag:yaml.org,2002:str", data)


_Dumper.add_representer(str, _str_presenter)


def dump_lines(lines: List[TranslationLine]) -> str:
    return yaml.dump(
        [line.to_dict() for line in lines],
        Dumper=_Dumper,
        allow_unicode=True,
        sort_keys=False,
        width=4096,
    )


def parse_lines(content: str) -> List[TranslationLine]:
    data = yaml.safe_load(content) or []
    if not isinstance(data, list):
        raise ValueError("Translation file must contain a list of lines")
    return [TranslationLine.from_dict(item) for item in data]


class FileStorage:
    """Reads and writes the per-file YAML translation state."""

    def __init__(self, input_dir: Path, output_dir: Path):
        self.input_dir = Path(input_dir)
        self.output_dir = Path(output_dir)
        self._locks: Dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def _lock_for(self, path: Path) -> threading.Lock:
        key = str(path.resolve())
        with self._locks_guard:
            if key not in self._locks:
                self._locks[key] = threading.Lock()
            return self._locks[key]

    def export_path(self, text_file: TextFile) -> Path:
        return self.input_dir / f"{text_file.path}.yaml"

    def output_path(self, text_file: TextFile) -> Path:
        return self.output_dir / f"{text_file.path}.yaml"

    def read(self, path: Path) -> List[TranslationLine]:
        with open(path, 'r', encoding='utf-8') as f:
            return parse_lines(f.read())

    def write(self, path: Path, lines: List[TranslationLine]):
        content = dump_lines(lines)
        path.parent.mkdir(parents=True, exist_ok=True)
        with self._lock_for(path):
            with open(path, 'w', encoding='utf-8') as f:
                f.write(content)
        logger.debug(f"Wrote {len(lines)} lines to {path}")

    def load_output(self, text_file: TextFile) -> List[TranslationLine]:
        """
        Load the in-progress output for a file, seeding it from the export
        file when no output exists yet.
        """
        output_path = self.output_path(text_file)
        if not output_path.exists():
            export_path = self.export_path(text_file)
            if not export_path.exists():
                raise FileNotFoundError(f"No export or output file for {text_file.path}")
            lines = self.read(export_path)
            self.write(output_path, lines)
            return lines
        return self.read(output_path)

    def save_output(self, text_file: TextFile, lines: List[TranslationLine]):
        self.write(self.output_path(text_file), lines)

    def iterate_outputs(
        self, text_files: List[TextFile]
    ) -> Iterator[Tuple[TextFile, List[TranslationLine]]]:
        """Yield (text_file, lines) for every text file with an output on disk."""
        for text_file in text_files:
            output_path = self.output_path(text_file)
            if not output_path.exists():
                continue
            yield text_file, self.read(output_path)

    def update_outputs(
        self,
        text_files: List[TextFile],
        update: Callable[[TextFile, List[TranslationLine]], Optional[int]],
    ) -> int:
        """
        Apply update to every output file, saving the ones it reports as
        modified (a positive count).
        """
        total = 0
        for text_file, lines in self.iterate_outputs(text_files):
            modified = update(text_file, lines) or 0
            if modified > 0:
                logger.info(f"Writing {modified} records to {self.output_path(text_file)}")
                self.save_output(text_file, lines)
            total += modified
        return total
