import threading

import httpx
import pytest

from anki_pocket import anki, errors
from anki_pocket.config import Settings
from anki_pocket.lookup import (
    CambridgeDictionaryClient,
    FreeDictionaryClient,
    ImageSearchClient,
    TranslationClient,
)
from anki_pocket.orchestrator import AnkiPocketOrchestrator, classify_input, image_query

UNSPLASH_KEY = "k" * 32
SETTINGS = Settings(deck_name="English Vocabulary")


def build(http) -> AnkiPocketOrchestrator:
    return AnkiPocketOrchestrator(
        dictionaries={
            "free-dictionary": FreeDictionaryClient(http),
            "cambridge": CambridgeDictionaryClient(http),
        },
        translator=TranslationClient(http),
        images=ImageSearchClient(http, access_key=UNSPLASH_KEY),
    )


@pytest.mark.parametrize(
    "text, mode",
    [
        ("apple", "word"),
        ("it is a piece of cake", "phrase"),
        ("ice\tcream", "phrase"),
        ("well-being", "word"),
        ("line\nbreak", "phrase"),
    ],
)
def test_classify_input(text, mode):
    assert classify_input(text) == mode


def test_phrase_image_query_uses_first_token():
    assert image_query("it is a piece of cake", "phrase") == "it"
    assert image_query("apple", "word") == "apple"


@pytest.mark.asyncio
async def test_word_round_trip(fake_anki, make_http):
    seen = []
    orchestrator = build(make_http(seen=seen))

    result = await orchestrator.add_text_async("beautiful", SETTINGS)

    assert result.success is True
    assert result.type == "word"
    assert result.word == "beautiful"
    assert result.definition.meanings[0].part_of_speech == "adjective"
    assert result.image_url == "https://images.example.com/photo.jpg"
    assert result.anki_note_id == 1234567890

    assert [r.url.host for r in seen] == ["api.dictionaryapi.dev", "api.unsplash.com"]
    assert seen[1].url.params["query"] == "beautiful"
    assert fake_anki.actions() == [
        "modelNames",
        "modelFieldNames",
        "download",
        "storeMediaFile",
        "addNote",
    ]
    note = fake_anki.note()
    assert note["deckName"] == "English Vocabulary"
    assert note["fields"]["Front"] == "beautiful /ˈbjuːtɪf(ə)l/"
    assert "pleasing the senses or mind aesthetically" in note["fields"]["Back"]
    assert '<img src="beautiful_' in note["fields"]["Back"]


@pytest.mark.asyncio
async def test_phrase_round_trip(fake_anki, make_http):
    seen = []
    orchestrator = build(make_http(seen=seen))

    result = await orchestrator.add_text_async("  it is a piece of cake ", SETTINGS)

    assert result.success is True
    assert result.type == "phrase"
    assert result.original_text == "it is a piece of cake"
    assert result.translated_text == "それは簡単なことです"
    assert result.anki_note_id == 1234567890

    assert [r.url.host for r in seen] == ["api.mymemory.translated.net", "api.unsplash.com"]
    assert seen[0].url.params["langpair"] == "en|ja"
    assert seen[1].url.params["query"] == "it"
    assert fake_anki.note()["fields"]["Front"] == "it is a piece of cake"


@pytest.mark.asyncio
async def test_image_failure_still_creates_note(fake_anki, make_http):
    orchestrator = build(make_http(image_error=True))

    result = await orchestrator.add_text_async("beautiful", SETTINGS)

    assert result.success is True
    assert result.image_url is None
    assert result.anki_note_id == 1234567890
    assert "storeMediaFile" not in fake_anki.actions()
    assert "<img" not in fake_anki.note()["fields"]["Back"]


@pytest.mark.asyncio
async def test_dictionary_miss_fails_without_note(fake_anki, make_http):
    seen = []
    orchestrator = build(make_http(dictionary_status=404, seen=seen))

    result = await orchestrator.add_text_async("qwertyuiop", SETTINGS)

    assert result.success is False
    assert result.error_type == "NotFoundError"
    assert result.status_code == 404
    assert [r.url.host for r in seen] == ["api.dictionaryapi.dev"]
    assert fake_anki.calls == []


@pytest.mark.asyncio
async def test_translation_failure_fails_whole_operation(fake_anki, make_http):
    orchestrator = build(make_http(translation_status=500))

    result = await orchestrator.add_text_async("piece of cake", SETTINGS)

    assert result.success is False
    assert result.type == "phrase"
    assert result.error_type == "UpstreamUnavailableError"
    assert fake_anki.calls == []


@pytest.mark.asyncio
async def test_duplicate_note_reported(fake_anki, make_http):
    fake_anki.errors["addNote"] = "cannot create note because it is a duplicate"
    orchestrator = build(make_http())

    result = await orchestrator.add_text_async("beautiful", SETTINGS)

    assert result.success is False
    assert result.error_type == "DuplicateNoteFailure"
    assert result.hint == errors.DuplicateNoteFailure.hint
    assert fake_anki.actions().count("addNote") == 1


@pytest.mark.asyncio
async def test_anki_unreachable(fake_anki, make_http):
    fake_anki.unreachable = True
    orchestrator = build(make_http())

    result = await orchestrator.add_text_async("beautiful", SETTINGS)

    assert result.success is False
    assert result.error_type == "ConnectionFailure"
    assert "AnkiConnect" in result.error
    assert result.status_code == 500


@pytest.mark.asyncio
@pytest.mark.parametrize("text", ["", "   ", "\n\t"])
async def test_empty_input_raises(text, make_http):
    orchestrator = build(make_http())
    with pytest.raises(errors.EmptyInputError):
        await orchestrator.add_text_async(text, SETTINGS)


@pytest.mark.asyncio
async def test_settings_choose_dictionary(fake_anki, handler_factory):
    page = '<span class="pos dpos">noun</span><div class="def ddef_d db">a sweet food</div>'
    fallback = handler_factory()

    def handler(request):
        if request.url.host == "dictionary.cambridge.org":
            return httpx.Response(200, text=page)
        return fallback(request)

    orchestrator = build(httpx.AsyncClient(transport=httpx.MockTransport(handler)))
    settings = Settings(deck_name="Vocab", dictionary_source="cambridge")

    result = await orchestrator.add_text_async("cake", settings)

    assert result.success is True
    assert result.definition.source == "cambridge"
    assert "a sweet food" in fake_anki.note()["fields"]["Back"]


@pytest.mark.asyncio
async def test_submission_runs_off_the_event_loop_thread(monkeypatch, make_http):
    threads = {}

    def fake_submit(deck_name, text, lookup, image=None, tags=None):
        threads["submit"] = threading.get_ident()
        return 42

    monkeypatch.setattr(anki, "submit_note", fake_submit)
    orchestrator = build(make_http())

    result = await orchestrator.add_text_async("beautiful", SETTINGS)

    assert result.anki_note_id == 42
    assert threads["submit"] != threading.get_ident()


@pytest.mark.asyncio
async def test_malformed_translation_fails_cleanly(fake_anki):
    http = httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(200, json=[])))
    orchestrator = build(http)

    result = await orchestrator.add_text_async("piece of cake", SETTINGS)

    assert result.success is False
    assert result.error_type == "UpstreamUnavailableError"
    assert fake_anki.calls == []
