import io
import json
import os
import sys

import httpx
import pytest
from dotenv import load_dotenv


def _add_src_to_path():
    # Ensure `src` is importable when running tests without installing the package
    here = os.path.dirname(__file__)
    src_path = os.path.abspath(os.path.join(here, "..", "src"))
    if src_path not in sys.path:
        sys.path.insert(0, src_path)


load_dotenv()
os.environ.setdefault("LANGFUSE_TRACING_ENABLED", "false")
_add_src_to_path()

from anki_pocket import anki  # noqa: E402

BEAUTIFUL_ENTRY = {
    "word": "beautiful",
    "phonetic": "/ˈbjuːtɪf(ə)l/",
    "meanings": [
        {
            "partOfSpeech": "adjective",
            "definitions": [
                {
                    "definition": "pleasing the senses or mind aesthetically",
                    "example": "a beautiful view",
                }
            ],
        }
    ],
}


class FakeResponse(io.BytesIO):
    """
    Stand-in for what urllib.request.urlopen returns: a readable context manager,
    so both json.load(resp) and resp.read() work.
    """

    def __enter__(self):
        return self

    def __exit__(self, *args):
        pass


def make_resp(result=None, error=None):
    payload = json.dumps({"result": result, "error": error}).encode("utf-8")
    return FakeResponse(payload)


class FakeAnki:
    """Scripted AnkiConnect plus image host, installed in place of urlopen."""

    def __init__(self):
        self.results = {
            "modelNames": ["Basic"],
            "modelFieldNames": ["Front", "Back"],
            "storeMediaFile": "stored.jpg",
            "addNote": 1234567890,
        }
        self.errors = {}
        self.unreachable = False
        self.image_bytes = b"\xff\xd8\xff fake jpeg"
        self.image_error = None
        self.calls = []

    def __call__(self, req, timeout=None):
        if req.full_url != anki.anki_connect_url():
            self.calls.append(("download", req.full_url))
            if self.image_error:
                raise self.image_error
            return FakeResponse(self.image_bytes)
        if self.unreachable:
            raise ConnectionRefusedError("Connection refused")
        body = json.loads(req.data.decode("utf-8"))
        self.calls.append((body["action"], body.get("params")))
        action = body["action"]
        if action in self.errors:
            return make_resp(result=None, error=self.errors[action])
        return make_resp(result=self.results.get(action))

    def actions(self):
        return [name for name, _ in self.calls]

    def params(self, action):
        return next(params for name, params in self.calls if name == action)

    def note(self):
        return self.params("addNote")["note"]


@pytest.fixture
def fake_anki(monkeypatch):
    fake = FakeAnki()
    monkeypatch.setattr("urllib.request.urlopen", fake)
    return fake


@pytest.fixture(autouse=True)
def settings_file(tmp_path, monkeypatch):
    path = tmp_path / "settings.json"
    monkeypatch.setenv("ANKI_POCKET_SETTINGS", str(path))
    return path


def lookup_handler(
    dictionary=None,
    dictionary_status=200,
    translation="それは簡単なことです",
    translation_status=200,
    image_url="https://images.example.com/photo.jpg",
    image_error=False,
    seen=None,
):
    """Build an httpx.MockTransport handler answering for every lookup service."""

    def handler(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen.append(request)
        host = request.url.host
        if host == "api.dictionaryapi.dev":
            if dictionary_status != 200:
                return httpx.Response(dictionary_status, json={"title": "No Definitions Found"})
            return httpx.Response(200, json=dictionary or [BEAUTIFUL_ENTRY])
        if host == "api.mymemory.translated.net":
            return httpx.Response(
                200,
                json={
                    "responseStatus": translation_status,
                    "responseDetails": "" if translation_status == 200 else "QUOTA EXCEEDED",
                    "responseData": {"translatedText": translation},
                },
            )
        if host == "api.unsplash.com":
            if image_error:
                raise httpx.ConnectError("unreachable", request=request)
            return httpx.Response(200, json={"results": [{"urls": {"small": image_url}}]})
        return httpx.Response(404)

    return handler


def mock_http(**kwargs) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(lookup_handler(**kwargs)))


@pytest.fixture
def make_http():
    return mock_http


@pytest.fixture
def handler_factory():
    return lookup_handler
