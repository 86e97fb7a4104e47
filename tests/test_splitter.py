from textpatch.core.models import ValidationResult
from textpatch.translation.splitter import Splitter, separator_for

BRACKETS = [r"《[^《》]*》", r"【[^【】]*】"]


def make_translate(mapping, invalid=()):
    calls = []

    def _translate(fragment):
        calls.append(fragment)
        if fragment in invalid:
            return ValidationResult.failed("", "bad")
        return ValidationResult.accepted(mapping.get(fragment, fragment))

    return _translate, calls


def test_bracket_pairs_are_translated_separately_and_reassembled():
    translate, calls = make_translate({
        "B": "b",
        "D": "d",
        "A'b'C'd'E": "a 'b' c 'd' e",
    })
    result = Splitter(bracket_patterns=BRACKETS).try_split("A《B》C【D】E", translate)

    assert result.valid
    assert result.strategy == "brackets"
    assert result.result == "a 《b》 c 【d】 e"
    assert calls == ["B", "D", "A'b'C'd'E"]


def test_bracket_inner_failure_fails_split():
    translate, calls = make_translate({}, invalid={"B"})
    result = Splitter(bracket_patterns=BRACKETS).try_split("A《B》C", translate)
    assert not result.valid
    assert calls == ["B"]


def test_bracket_inner_failure_tolerated_when_lenient():
    translate, _ = make_translate({"A'B'C": "a 'B' c"}, invalid={"B"})
    splitter = Splitter(bracket_patterns=BRACKETS, lenient=True)
    # An invalid inner result still carries its (empty) text
    assert splitter.try_split("A《B》C", translate).valid


def test_delimiter_split_joins_with_delimiter():
    translate, calls = make_translate({"甲": "A", "乙": "B"})
    result = Splitter(delimiters=["\\n"]).try_split("甲\\n乙", translate)
    assert result.valid
    assert result.result == "A\\nB"
    assert calls == ["甲", "乙"]


def test_delimiter_any_invalid_part_fails():
    translate, _ = make_translate({"甲": "A"}, invalid={"乙"})
    assert not Splitter(delimiters=["\\n"]).try_split("甲\\n乙", translate).valid


def test_separators():
    assert separator_for("-") == " - "
    assert separator_for(":") == ": "
    assert separator_for("\\n") == "\\n"


def test_half_tag_split():
    translate, calls = make_translate({"火焰": "Flame"})
    result = Splitter(half_tag_types=["color", "size"]).try_split("<color=red>火焰", translate)
    assert result.valid
    assert result.result == "<color=red>Flame"
    assert calls == ["<color=red>", "火焰"]


def test_closed_tag_is_not_a_half_tag():
    translate, _ = make_translate({})
    assert Splitter(half_tag_types=["color"]).try_split("<color=red>火焰</color>", translate) is None


def test_brackets_win_over_delimiters():
    translate, _ = make_translate({"B": "b", "A'b'\\nC": "a 'b'\\nc"})
    splitter = Splitter(bracket_patterns=BRACKETS, delimiters=["\\n"])
    assert splitter.try_split("A《B》\\nC", translate).strategy == "brackets"


def test_no_strategy_applies():
    translate, calls = make_translate({})
    assert Splitter(BRACKETS, ["\\n"], ["color"]).try_split("普通文本", translate) is None
    assert calls == []
