"""
speedreader.web

Local JSON API (Flask) around a single ReaderEngine.

The presentation layer polls ``POST /api/tick`` every TICK_INTERVAL seconds
and renders the returned state; every other route maps onto one engine
operation and also answers with the state snapshot.
"""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path
from typing import Callable

from flask import Flask, jsonify, request

from .engine import ReaderEngine
from .extract import allowed_file, extract_text_from_file
from .text import parse_document

logger = logging.getLogger(__name__)

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 5000

app = Flask(__name__)
app.config["MAX_CONTENT_LENGTH"] = 200 * 1024 * 1024  # 200MB

engine = ReaderEngine()


def error(message: str, status: int = 400):
    return jsonify({"ok": False, "error": message}), status


def state_response():
    return jsonify({"ok": True, **engine.snapshot()})


def _json_body() -> dict:
    body = request.get_json(silent=True)
    return body if isinstance(body, dict) else {}


def _navigate(action: Callable[[], bool]):
    if not action():
        return error("Playback is not running", 409)
    return state_response()


@app.route("/api/state", methods=["GET"])
def api_state():
    return state_response()


@app.route("/api/parse", methods=["POST"])
def api_parse():
    text = _json_body().get("text")
    if not isinstance(text, str):
        return error("Missing text")
    document = parse_document(text)
    if document is None:
        return error("No readable words in text")
    return jsonify({"ok": True, **document.to_dict()})


@app.route("/api/extract", methods=["POST"])
def api_extract():
    if "file" not in request.files:
        return error("No file uploaded")

    f = request.files["file"]
    if not f or not f.filename:
        return error("Missing file")

    filename = f.filename
    if not allowed_file(filename):
        return error("Unsupported file type (use .pdf, .epub or .txt)")

    suffix = Path(filename).suffix.lower()

    try:
        with tempfile.NamedTemporaryFile(delete=False, suffix=suffix) as tmp:
            temp_path = tmp.name
            f.save(temp_path)

        try:
            text = extract_text_from_file(temp_path)
        finally:
            os.unlink(temp_path)
    except Exception as exc:
        logger.exception("Extraction failed for %s", filename)
        return error(str(exc), 500)

    document = parse_document(text)
    if document is None:
        return error("No extractable text found. (Scanned PDF likely needs OCR.)")

    return jsonify({"ok": True, "filename": filename, "text": text, **document.to_dict()})


@app.route("/api/start", methods=["POST"])
def api_start():
    text = _json_body().get("text")
    if not isinstance(text, str):
        return error("Missing text")
    if engine.state.running:
        return error("Playback already running; stop it first", 409)
    if not engine.start(text):
        return error("No readable words in text")
    return state_response()


@app.route("/api/stop", methods=["POST"])
def api_stop():
    engine.stop()
    return state_response()


@app.route("/api/pause", methods=["POST"])
def api_pause():
    return _navigate(engine.toggle_pause)


@app.route("/api/tick", methods=["POST"])
def api_tick():
    engine.tick()
    return state_response()


@app.route("/api/wpm", methods=["POST"])
def api_wpm():
    try:
        index = int(_json_body().get("index"))
    except (TypeError, ValueError):
        return error("WPM index must be an integer")
    engine.set_words_per_minute(index)
    return state_response()


@app.route("/api/skip-config", methods=["POST"])
def api_skip_config():
    body = _json_body()
    amount = body.get("amount")
    try:
        engine.skip_config.set(
            str(body.get("direction", "")),
            str(body.get("mode", "")),
            None if amount is None else int(amount),
        )
    except (TypeError, ValueError) as exc:
        return error(str(exc))
    return state_response()


@app.route("/api/skip/backward", methods=["POST"])
def api_skip_backward():
    return _navigate(engine.skip_backward)


@app.route("/api/skip/forward", methods=["POST"])
def api_skip_forward():
    return _navigate(engine.skip_forward)


@app.route("/api/sentence/previous", methods=["POST"])
def api_previous_sentence():
    return _navigate(engine.skip_to_previous_sentence)


@app.route("/api/sentence/next", methods=["POST"])
def api_next_sentence():
    return _navigate(engine.skip_to_next_sentence)


@app.route("/api/seek", methods=["POST"])
def api_seek():
    try:
        progress = float(_json_body().get("progress"))
    except (TypeError, ValueError):
        return error("Seek progress must be a number between 0 and 1")
    return _navigate(lambda: engine.seek(progress))


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    host = os.environ.get("SPEEDREADER_HOST", DEFAULT_HOST)
    port = int(os.environ.get("SPEEDREADER_PORT", DEFAULT_PORT))
    logger.info("Starting local speed reader on http://%s:%d", host, port)
    # One engine, one thread: requests must not interleave.
    app.run(host=host, port=port, debug=False, threaded=False)


if __name__ == "__main__":
    main()
