from __future__ import annotations

import io

import pytest

from speedreader import web
from speedreader.engine import ReaderEngine

TEXT = "one two three. four five six. seven eight nine."


@pytest.fixture
def client(monkeypatch, clock):
    monkeypatch.setattr(web, "engine", ReaderEngine(clock=clock))
    web.app.config["TESTING"] = True
    with web.app.test_client() as c:
        yield c


def _post(client, path: str, payload=None):
    return client.post(path, json=payload if payload is not None else {})


def test_state_when_idle(client) -> None:
    response = client.get("/api/state")
    assert response.status_code == 200
    data = response.get_json()
    assert data["ok"] is True
    assert data["running"] is False
    assert data["word"] == ""
    assert data["index"] is None
    assert data["wpm"] == 600


def test_start_requires_words(client) -> None:
    assert _post(client, "/api/start", {"text": "   "}).status_code == 400
    assert _post(client, "/api/start").status_code == 400
    assert client.get("/api/state").get_json()["running"] is False


def test_start_tick_and_stop(client, clock) -> None:
    response = _post(client, "/api/start", {"text": TEXT})
    assert response.status_code == 200
    assert response.get_json()["word"] == "one"

    assert _post(client, "/api/start", {"text": TEXT}).status_code == 409

    clock.advance(0.11)
    data = _post(client, "/api/tick").get_json()
    assert data["index"] == 1
    assert data["word"] == "two"

    data = _post(client, "/api/stop").get_json()
    assert data["running"] is False
    assert data["word_count"] == 0


def test_pause_and_navigation(client) -> None:
    _post(client, "/api/start", {"text": TEXT})
    data = _post(client, "/api/pause").get_json()
    assert data["paused"] is True

    data = _post(client, "/api/skip/forward").get_json()
    assert data["index"] == 8

    data = _post(client, "/api/sentence/previous").get_json()
    assert data["word"] == "seven"

    data = _post(client, "/api/skip/backward").get_json()
    assert data["index"] == 0

    data = _post(client, "/api/sentence/next").get_json()
    assert data["word"] == "four"

    data = _post(client, "/api/seek", {"progress": 1}).get_json()
    assert data["index"] == 8
    assert data["progress"] == 1.0


def test_navigation_when_idle_conflicts(client) -> None:
    for path in (
        "/api/pause",
        "/api/skip/forward",
        "/api/skip/backward",
        "/api/sentence/next",
        "/api/sentence/previous",
    ):
        response = _post(client, path)
        assert response.status_code == 409
        assert response.get_json()["ok"] is False
    assert _post(client, "/api/seek", {"progress": 0.5}).status_code == 409


def test_seek_validates_progress(client) -> None:
    _post(client, "/api/start", {"text": TEXT})
    assert _post(client, "/api/seek", {"progress": "abc"}).status_code == 400
    assert _post(client, "/api/seek").status_code == 400


def test_wpm_and_skip_config(client) -> None:
    data = _post(client, "/api/wpm", {"index": 0}).get_json()
    assert data["wpm"] == 150
    assert _post(client, "/api/wpm", {"index": "fast"}).status_code == 400

    data = _post(client, "/api/skip-config", {"direction": "forward", "mode": "sentence"}).get_json()
    assert data["skip"]["forward"]["mode"] == "sentence"
    data = _post(client, "/api/skip-config", {"direction": "backward", "mode": "words", "amount": 5}).get_json()
    assert data["skip"]["backward"] == {"mode": "words", "amount": 5}
    assert _post(client, "/api/skip-config", {"direction": "up", "mode": "words"}).status_code == 400
    assert _post(client, "/api/skip-config", {"direction": "forward", "mode": "words", "amount": 3}).status_code == 400

    _post(client, "/api/start", {"text": TEXT})
    data = _post(client, "/api/skip/forward").get_json()
    assert data["word"] == "four"


def test_parse_endpoint(client) -> None:
    response = _post(client, "/api/parse", {"text": "the first part.\n\nthe second part."})
    data = response.get_json()
    assert data["ok"] is True
    assert data["words"] == ["the", "first", "part.", "the", "second", "part."]
    assert data["paragraph_starts"] == [3]
    assert data["page_starts"] == []
    assert client.get("/api/state").get_json()["running"] is False

    assert _post(client, "/api/parse", {"text": ""}).status_code == 400


def test_extract_text_upload(client) -> None:
    response = client.post(
        "/api/extract",
        data={"file": (io.BytesIO(b"the first part.\r\n\r\nthe second part."), "notes.txt")},
        content_type="multipart/form-data",
    )
    assert response.status_code == 200
    data = response.get_json()
    assert data["filename"] == "notes.txt"
    assert data["text"] == "the first part.\n\nthe second part."
    assert data["word_count"] == 6


def test_extract_rejects_bad_uploads(client) -> None:
    assert client.post("/api/extract", data={}, content_type="multipart/form-data").status_code == 400
    response = client.post(
        "/api/extract",
        data={"file": (io.BytesIO(b"data"), "notes.docx")},
        content_type="multipart/form-data",
    )
    assert response.status_code == 400
    response = client.post(
        "/api/extract",
        data={"file": (io.BytesIO(b"   "), "blank.txt")},
        content_type="multipart/form-data",
    )
    assert response.status_code == 400


def test_extract_reports_failures(client) -> None:
    response = client.post(
        "/api/extract",
        data={"file": (io.BytesIO(b"not a zip archive"), "broken.epub")},
        content_type="multipart/form-data",
    )
    assert response.status_code == 500
    assert response.get_json()["ok"] is False
