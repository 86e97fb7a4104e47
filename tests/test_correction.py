import pytest

from textpatch.ai.exceptions import TranslationError
from textpatch.config import DEFAULT_PROMPTS
from textpatch.core.models import TextFile
from textpatch.glossary import GlossaryEntry
from textpatch.translation.cache import TranslationCache
from textpatch.translation.correction import TranslationLoop


def make_loop(config, service, glossary=None, cache=None):
    return TranslationLoop(config, service, glossary=glossary, cache=cache)


def test_short_circuits_never_call_the_model(config, fake_chat, text_file):
    service = fake_chat([])
    loop = make_loop(config, service)

    assert loop.translate("", text_file).result == ""
    assert loop.translate("Already English", text_file).result == "Already English"
    assert service.calls == []


def test_engine_reference_in_local_text_file(config, fake_chat):
    service = fake_chat([])
    local = TextFile(path="LocalText.txt", text_file_type="local_text")
    result = make_loop(config, service).translate("UI/主界面View", local)
    assert result.valid
    assert result.result == "UI/主界面View"
    assert service.calls == []


def test_accepts_first_valid_answer(config, fake_chat, text_file):
    service = fake_chat(["  <color=red>Flame</color>  "])
    result = make_loop(config, service).translate("<color=red>火焰</color>", text_file)
    assert result.valid
    assert result.result == "<color=red>Flame</color>"
    assert len(service.calls) == 1


def test_cache_hit_is_deterministic(config, fake_chat, text_file):
    cache = TranslationCache()
    cache.put("门派", "Sect")
    service = fake_chat([])
    loop = make_loop(config, service, cache=cache)

    assert loop.translate("门派", text_file).result == "Sect"
    assert loop.translate("门派", text_file).result == "Sect"
    assert service.calls == []


def test_accepted_short_result_is_cached(config, fake_chat, text_file):
    service = fake_chat(["Sword"])
    loop = make_loop(config, service)

    assert loop.translate("剑", text_file).result == "Sword"
    assert loop.translate("剑", text_file).result == "Sword"
    assert len(service.calls) == 1


def test_retry_bound(make_config, fake_chat, text_file):
    config = make_config(retry_count=3)
    service = fake_chat(lambda messages: "Flame")
    result = make_loop(config, service).translate("<color=red>火焰</color>", text_file)

    assert not result.valid
    assert result.result == "Flame"
    assert len(service.calls) == 3


def test_correction_messages_reset_history(make_config, fake_chat, text_file):
    config = make_config(retry_count=3)
    service = fake_chat(["Flame", "Still wrong", "<color=red>Flame</color>"])
    result = make_loop(config, service).translate("<color=red>火焰</color>", text_file)

    assert result.valid
    # system, user, assistant (failed answer), user (directive)
    assert [m["role"] for m in service.calls[2]] == ["system", "user", "assistant", "user"]
    assert service.calls[2][2]["content"] == "Still wrong"
    assert service.calls[2][3]["content"].endswith(DEFAULT_PROMPTS["BaseCorrectionSuffixPrompt"])


def test_no_correction_prompts_resends_base_request(make_config, fake_chat, text_file):
    config = make_config(retry_count=2, correction_prompts_enabled=False)
    service = fake_chat(lambda messages: "Flame")
    make_loop(config, service).translate("<color=red>火焰</color>", text_file)
    assert [len(call) for call in service.calls] == [2, 2]


def test_sentence_correction_pass(make_config, fake_chat, text_file):
    config = make_config(retry_count=3)

    def respond(messages):
        if messages[-2]["role"] == "assistant":
            # Sentence-level request carries the offending sentence
            return "She left."
        return "He came. 她 left."

    service = fake_chat(respond)
    result = make_loop(config, service).translate("他来了。她走了。", text_file)

    assert result.valid
    assert result.result == "He came. She left."
    assert len(service.calls) == 2
    assert service.calls[1][2]["content"] == "她 left."


def test_glossary_mistranslation_is_flagged(make_config, fake_chat, text_file, glossary):
    config = make_config(retry_count=2)
    service = fake_chat(lambda messages: "Abyss")
    result = make_loop(config, service, glossary=glossary).translate("炼狱", text_file)

    assert not result.valid
    assert result.mistranslations == [("Hellforge", "炼狱")]
    assert "Hellforge" in service.calls[0][0]["content"]


def test_tokens_survive_translation(config, fake_chat, text_file):
    service = fake_chat(["Gold{T0}"])
    result = make_loop(config, service).translate("金币<br>", text_file)

    assert result.valid
    assert result.result == "Gold<br>"
    assert service.calls[0][1]["content"] == "金币{T0}"


def test_size_tags_resized_on_output(config, fake_chat):
    service = fake_chat(["<size=20>Big</size>"])
    scaled = TextFile(path="Ui.json", size_scale=0.5)
    result = make_loop(config, service).translate("<size=20>大</size>", scaled)
    assert result.valid
    assert result.result == "<size=10>Big</size>"


def test_split_parts_are_translated_through_the_loop(config, fake_chat, text_file):
    service = fake_chat(mapping={"甲乙": "First", "丙丁": "Second"})
    result = make_loop(config, service).translate("甲乙\\n丙丁", text_file)
    assert result.valid
    assert result.result == "First\\nSecond"
    assert len(service.calls) == 2


def test_transport_error_strict(config, fake_chat, text_file):
    def fail(messages):
        raise TranslationError("boom", code="http_error")

    with pytest.raises(TranslationError):
        make_loop(config, fake_chat(fail)).translate("火焰", text_file)


def test_transport_error_lenient(make_config, fake_chat, text_file):
    def fail(messages):
        raise TranslationError("boom", code="http_error")

    config = make_config(skip_line_validation=True)
    result = make_loop(config, fake_chat(fail)).translate("火焰", text_file)
    assert not result.valid
    assert result.result == ""


def test_lenient_accepts_anything(make_config, fake_chat, text_file):
    config = make_config(skip_line_validation=True)
    result = make_loop(config, fake_chat(["Flame"])).translate("<color=red>火焰</color>", text_file)
    assert result.valid
    assert result.result == "Flame"


def test_bracket_term_is_not_a_hallucination(config, fake_chat, text_file):
    glossary = [GlossaryEntry(raw="炼狱", result="Hellforge", check_hallucination=True)]
    service = fake_chat(mapping={
        "炼狱": "Hellforge",
        "进入'Hellforge'之门": "Enter the gate of 'Hellforge'",
    })

    result = make_loop(config, service, glossary=glossary).translate("进入《炼狱》之门", text_file)

    assert result.valid
    assert result.result == "Enter the gate of 《Hellforge》"
    assert len(service.calls) == 2


def test_brackets_reassemble_through_the_loop(config, fake_chat, text_file, glossary):
    cache = TranslationCache()
    cache.put("少林", "Shaolin")
    service = fake_chat(mapping={
        "炼狱": "Hellforge",
        "进入'Hellforge'{T0}前往'Shaolin'": "Enter 'Hellforge'{T0}then go to 'Shaolin'",
    })

    result = make_loop(config, service, glossary=glossary, cache=cache).translate(
        "进入《炼狱》<br>前往【少林】", text_file)

    assert result.valid
    assert result.result == "Enter 《Hellforge》 <br>then go to 【Shaolin】"
    # The cached inner term never reaches the model
    assert service.user_texts() == ["炼狱", "进入'Hellforge'{T0}前往'Shaolin'"]
