import json

from textpatch.core.models import TranslationLine, TranslationSplit
from textpatch.core.records import (
    apply_json_translations,
    extract_json_records,
    extract_text_lines,
    merge_lines,
)

ITEMS = json.dumps([
    {"Key": 1, "Name": "铁剑", "NameTw": "鐵劍", "Desc": "普通的剑", "Price": 10},
    {"Key": 2, "Name": "Plain", "Tips": ["提示一", "tip", "提示三"]},
    {"Name": "没有键"},
], ensure_ascii=False)


def test_extract_json_records():
    result = extract_json_records(ITEMS)

    assert result.skipped == 1
    assert [line.raw_index for line in result.lines] == ["1", "2"]

    first = result.lines[0]
    assert [(s.split_path, s.text) for s in first.splits] == [("Name", "铁剑"), ("Desc", "普通的剑")]

    second = result.lines[1]
    assert [(s.split_path, s.text) for s in second.splits] == [("Tips[0]", "提示一"), ("Tips[2]", "提示三")]


def test_extract_text_lines_keeps_numbering():
    result = extract_text_lines("第一行\nplain\n第三行")
    assert [line.raw_index for line in result.lines] == ["1", "2", "3"]
    assert [len(line.splits) for line in result.lines] == [1, 0, 1]


def test_merge_carries_translations_over():
    existing = extract_json_records(ITEMS).lines
    existing[0].splits[0].translated = "Iron Sword"
    existing[0].splits[1].translated = "A plain sword"
    existing[0].splits[1].flagged_for_retranslation = True

    changed = json.dumps([
        {"Key": 1, "Name": "铁剑", "Desc": "锋利的剑"},
        {"Key": 3, "Name": "木剑"},
    ], ensure_ascii=False)

    lines, new_count = merge_lines(extract_json_records(changed).lines, existing)

    assert lines[0].splits[0].translated == "Iron Sword"
    # Changed source text is new work
    assert lines[0].splits[1].translated == ""
    assert new_count == 2


def test_apply_json_translations():
    line = TranslationLine(
        raw=json.dumps({"Key": 1, "Name": "铁剑", "Tips": ["提示一", "提示二"]}, ensure_ascii=False),
        raw_index="1",
        splits=[
            TranslationSplit(split_path="Name", text="铁剑", translated="Iron Sword"),
            TranslationSplit(split_path="Tips[1]", text="提示二", translated="Tip two"),
            TranslationSplit(split_path="Tips[0]", text="提示一", translated="Bad", flagged_for_retranslation=True),
        ],
    )

    objects, passed, failed = apply_json_translations([line])

    assert objects == [{"Key": 1, "Name": "Iron Sword", "Tips": ["提示一", "Tip two"]}]
    assert (passed, failed) == (2, 1)
