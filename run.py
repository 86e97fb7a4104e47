"""Project root entry point for the command line interface."""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

from textpatch.ai.exceptions import TranslationError
from textpatch.config import ConfigError, create_default_config, load_config, validate_config
from textpatch.core.models import TextFile
from textpatch.core.records import (
    apply_json_translations,
    extract_json_records,
    extract_text_lines,
    merge_lines,
)
from textpatch.core.storage import FileStorage
from textpatch.glossary import load_glossary, load_manual_translations
from textpatch.logger import get_logger, set_log_mode

logger = get_logger("textpatch.cli")


def _storage(config) -> FileStorage:
    return FileStorage(Path(config["input_dir"]), Path(config["output_dir"]))


def _text_files(config):
    return [TextFile.from_dict(item) for item in config.get("text_files", [])]


def _find_text_file(config, path: str) -> TextFile:
    for text_file in _text_files(config):
        if text_file.path == path:
            return text_file
    raise ConfigError(f"Text file '{path}' is not configured")


def cmd_translate(args, config) -> int:
    from textpatch.ai.service import AIService
    from textpatch.translation.manager import TranslationManager

    glossary = load_glossary(Path(config["glossary_file"]))
    validate_config(config, glossary, provider_override=args.provider)

    with AIService(config, model_override=args.model, provider_override=args.provider) as ai_service:
        manager = TranslationManager(config, ai_service=ai_service, storage=_storage(config), glossary=glossary)
        result = manager.translate_all(force=args.force)

    logger.info(f"Processed {result['processed']} records, {result['failed']} failed")
    return 0


def cmd_review(args, config) -> int:
    from textpatch.translation.review import ReviewRules, review_outputs

    glossary = load_glossary(Path(config["glossary_file"]))
    if args.strict:
        validate_config(config, glossary)
    rules = ReviewRules.from_config(
        config,
        glossary=glossary,
        manual_translations=load_manual_translations(Path(config["manual_translations_file"])),
    )
    log_path = Path(args.log) if args.log else None
    review_outputs(_storage(config), _text_files(config), rules, log_path=log_path)
    return 0


def cmd_reset_flags(args, config) -> int:
    from textpatch.translation.review import reset_flags

    total = _storage(config).update_outputs(_text_files(config), lambda _, lines: reset_flags(lines))
    logger.info(f"Reset flags on {total} records")
    return 0


def cmd_failures(args, config) -> int:
    from textpatch.translation.review import find_failures, write_failures_report

    failures = find_failures(_storage(config), _text_files(config))
    write_failures_report(failures, Path(args.output))
    return 0


def cmd_extract(args, config) -> int:
    text_file = _find_text_file(config, args.path)
    storage = _storage(config)

    with open(args.source, 'r', encoding='utf-8') as f:
        content = f.read()

    if args.kind == "json":
        extracted = extract_json_records(content)
    else:
        extracted = extract_text_lines(content)
    logger.info(f"Extracted {len(extracted.lines)} lines from {args.source} ({extracted.skipped} skipped)")

    storage.write(storage.export_path(text_file), extracted.lines)

    output_path = storage.output_path(text_file)
    if output_path.exists():
        lines, new_count = merge_lines(extracted.lines, storage.read(output_path))
        storage.save_output(text_file, lines)
        logger.info(f"Merged into {output_path}: {new_count} new splits")
    return 0


def cmd_apply(args, config) -> int:
    text_file = _find_text_file(config, args.path)
    storage = _storage(config)

    objects, passed, failed = apply_json_translations(storage.read(storage.output_path(text_file)))
    destination = Path(args.output)
    destination.parent.mkdir(parents=True, exist_ok=True)
    with open(destination, 'w', encoding='utf-8') as f:
        json.dump(objects, f, ensure_ascii=False, indent=2)

    logger.info(f"Wrote {destination}: {passed} translated, {failed} kept in source")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Translate game text with an LLM")
    parser.add_argument("--config", help="Path to config.json (default: config/config.json)")
    parser.add_argument("--log-file", action="store_true", help="Also write logs/app.log")
    subparsers = parser.add_subparsers(dest="command", required=True)

    translate = subparsers.add_parser("translate", help="Translate every configured file")
    translate.add_argument("--force", action="store_true", help="Retranslate accepted splits too")
    translate.add_argument("--model", help="Override the configured model")
    translate.add_argument("--provider", help="Override the configured AI provider")
    translate.set_defaults(func=cmd_translate)

    review = subparsers.add_parser("review", help="Re-apply validation rules to translated files")
    review.add_argument("--log", default="TestResults/LineValidationLog.txt", help="Review log path")
    review.add_argument("--strict", action="store_true", help="Validate the full configuration first")
    review.set_defaults(func=cmd_review)

    reset = subparsers.add_parser("reset-flags", help="Clear every retranslation flag")
    reset.set_defaults(func=cmd_reset_flags)

    failures = subparsers.add_parser("failures", help="Report untranslated or flagged splits")
    failures.add_argument("--output", default="TestResults/Failed/FailingTranslations.yaml")
    failures.set_defaults(func=cmd_failures)

    extract = subparsers.add_parser("extract", help="Extract source records into an export file")
    extract.add_argument("source", help="Source record file")
    extract.add_argument("--path", required=True, help="Configured text file path")
    extract.add_argument("--kind", choices=("json", "text"), default="json")
    extract.set_defaults(func=cmd_extract)

    apply = subparsers.add_parser("apply", help="Write translations back into JSON records")
    apply.add_argument("--path", required=True, help="Configured text file path")
    apply.add_argument("--output", required=True, help="Destination JSON file")
    apply.set_defaults(func=cmd_apply)

    init = subparsers.add_parser("init", help="Write a default config file")
    init.set_defaults(func=lambda args, config: _init(args))

    return parser


def _init(args) -> int:
    if args.config:
        create_default_config(Path(args.config))
    else:
        create_default_config()
    return 0


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    try:
        config = load_config(Path(args.config) if args.config else None)
        set_log_mode(config.get("log_mode", "info"), log_to_file=args.log_file)
        return args.func(args, config)
    except ConfigError as e:
        logger.error(f"Configuration error: {e}")
        return 2
    except TranslationError as e:
        logger.error(f"Translation failed: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
