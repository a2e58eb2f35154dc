"""
speedreader.engine

Timed word-by-word playback over a ParsedDocument, plus navigation
(word-count skips, sentence skips and seeking with paragraph/page snapping).

The engine is driven by a single ``tick(now)`` entry point. A caller either
invokes it from its own timer (every TICK_INTERVAL seconds) or uses
``play()``, a cooperative loop that does the same until playback ends.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence

from .text import ParsedDocument, parse_document

logger = logging.getLogger(__name__)

# -------------------------------
# Options
# -------------------------------
WPM_OPTIONS = (150, 300, 450, 600, 750, 900, 1200, 1500)
DEFAULT_WPM_INDEX = 3
SKIP_OPTIONS = (5, 10, 15, 20)
DEFAULT_SKIP_AMOUNT = 10
KEYBOARD_SKIP_AMOUNT = 10

SKIP_WORDS = "words"
SKIP_SENTENCE = "sentence"
SKIP_MODES = (SKIP_WORDS, SKIP_SENTENCE)

TICK_INTERVAL = 0.05

SENTENCE_ENDINGS = (".", "!", "?")
CLAUSE_ENDINGS = (",", ";", ":")
SENTENCE_PAUSE = 1.8
CLAUSE_PAUSE = 1.4
PARAGRAPH_PAUSE = 2.5

# Snapping is useless once page markers are this dense.
MAX_SNAP_PAGES = 30
PAGE_SNAP_DISTANCE = 8
PARAGRAPH_SNAP_WITH_PAGES = 4
PARAGRAPH_SNAP_DISTANCE = 8


def ends_sentence(word: str) -> bool:
    return word.endswith(SENTENCE_ENDINGS)


def dwell_interval(word: str, wpm: int, paragraph_start: bool = False) -> float:
    """Seconds ``word`` stays on screen at ``wpm``."""
    interval = 60.0 / wpm
    if word.endswith(SENTENCE_ENDINGS):
        interval *= SENTENCE_PAUSE
    elif word.endswith(CLAUSE_ENDINGS):
        interval *= CLAUSE_PAUSE
    if paragraph_start:
        interval *= PARAGRAPH_PAUSE
    return interval


def snap_index(target: int, paragraph_starts: Sequence[int], page_starts: Sequence[int]) -> int:
    page_count = len(page_starts)
    if page_count > MAX_SNAP_PAGES:
        return target
    if page_count > 0:
        page_distance = PAGE_SNAP_DISTANCE
        paragraph_distance = PARAGRAPH_SNAP_WITH_PAGES
    else:
        page_distance = 0
        paragraph_distance = PARAGRAPH_SNAP_DISTANCE

    snapped: Optional[int] = None
    closest: Optional[int] = None

    for start in page_starts if page_distance else ():
        distance = abs(start - target)
        if distance <= page_distance and (closest is None or distance < closest):
            closest = distance
            snapped = start

    if snapped is None or closest > paragraph_distance:
        for start in paragraph_starts:
            distance = abs(start - target)
            if distance <= paragraph_distance and (closest is None or distance < closest):
                closest = distance
                snapped = start

    return target if snapped is None else snapped


@dataclass
class SkipSetting:
    mode: str = SKIP_WORDS
    amount: int = DEFAULT_SKIP_AMOUNT

    def __post_init__(self) -> None:
        if self.mode not in SKIP_MODES:
            raise ValueError(f"Unknown skip mode: {self.mode!r} (expected one of {', '.join(SKIP_MODES)})")
        if self.amount not in SKIP_OPTIONS:
            raise ValueError(f"Unsupported skip amount: {self.amount!r} (expected one of {SKIP_OPTIONS})")


@dataclass
class SkipConfig:
    backward: SkipSetting = field(default_factory=SkipSetting)
    forward: SkipSetting = field(default_factory=SkipSetting)

    def set(self, direction: str, mode: str, amount: Optional[int] = None) -> None:
        if direction not in ("backward", "forward"):
            raise ValueError(f"Unknown skip direction: {direction!r}")
        current: SkipSetting = getattr(self, direction)
        setattr(self, direction, SkipSetting(mode, current.amount if amount is None else amount))

    def to_dict(self) -> dict:
        return {
            "backward": {"mode": self.backward.mode, "amount": self.backward.amount},
            "forward": {"mode": self.forward.mode, "amount": self.forward.amount},
        }


@dataclass
class PlaybackState:
    current_index: Optional[int] = None
    running: bool = False
    paused: bool = False
    wpm_index: int = DEFAULT_WPM_INDEX
    last_advance: float = 0.0

    @property
    def words_per_minute(self) -> int:
        return WPM_OPTIONS[self.wpm_index]


class ReaderEngine:
    """Owns the parsed document and the single live playback state."""

    def __init__(
        self,
        clock: Callable[[], float] = time.monotonic,
        skip_config: Optional[SkipConfig] = None,
    ) -> None:
        self.clock = clock
        self.skip_config = skip_config or SkipConfig()
        self.document: Optional[ParsedDocument] = None
        self.state = PlaybackState()

    # ---------------- Lifecycle ----------------
    def start(self, raw_text: str) -> bool:
        if self.state.running:
            logger.debug("start() ignored: playback already running")
            return False
        document = parse_document(raw_text)
        if document is None:
            logger.debug("start() ignored: no words in input")
            return False
        return self.start_document(document)

    def start_document(self, document: ParsedDocument) -> bool:
        if self.state.running or not document.words:
            return False
        self.document = document
        self.state.current_index = 0
        self.state.running = True
        self.state.paused = False
        self.state.last_advance = self.clock()
        logger.info(
            "Playback started: %d words at %d wpm", len(document.words), self.state.words_per_minute
        )
        return True

    def stop(self) -> None:
        if self.state.running:
            logger.info("Playback stopped at word %s", self.state.current_index)
        self.document = None
        self.state.current_index = None
        self.state.running = False
        self.state.paused = False

    def toggle_pause(self) -> bool:
        if not self.state.running:
            return False
        self.state.paused = not self.state.paused
        if not self.state.paused:
            self.state.last_advance = self.clock()
        return True

    def set_words_per_minute(self, index: int) -> int:
        self.state.wpm_index = max(0, min(int(index), len(WPM_OPTIONS) - 1))
        return self.state.words_per_minute

    # ---------------- Timing ----------------
    def current_interval(self) -> Optional[float]:
        if not self.state.running:
            return None
        index = self.state.current_index
        return dwell_interval(
            self.document.words[index],
            self.state.words_per_minute,
            index in self.document.paragraph_start_set,
        )

    def tick(self, now: Optional[float] = None) -> bool:
        """Advance one word if its dwell time has elapsed. Returns True on advance."""
        if not self.state.running or self.state.paused:
            return False
        if now is None:
            now = self.clock()
        if now - self.state.last_advance < self.current_interval():
            return False

        next_index = self.state.current_index + 1
        if next_index >= len(self.document.words):
            logger.info("Reached end of text")
            self.stop()
            return False
        self.state.current_index = next_index
        self.state.last_advance = now
        return True

    def play(
        self,
        sleep: Callable[[float], None] = time.sleep,
        on_word: Optional[Callable[[str], None]] = None,
    ) -> None:
        """Tick every TICK_INTERVAL until playback returns to idle."""
        if on_word is not None and self.state.running:
            on_word(self.current_word)
        while self.state.running:
            if self.tick() and on_word is not None:
                on_word(self.current_word)
            if self.state.running:
                sleep(TICK_INTERVAL)

    # ---------------- Navigation ----------------
    def _land(self, index: int) -> None:
        last = len(self.document.words) - 1
        self.state.current_index = max(0, min(index, last))
        self.state.paused = True
        self.state.last_advance = self.clock()

    def skip_backward_by(self, amount: int = KEYBOARD_SKIP_AMOUNT) -> bool:
        if not self.state.running:
            return False
        self._land(self.state.current_index - amount)
        return True

    def skip_forward_by(self, amount: int = KEYBOARD_SKIP_AMOUNT) -> bool:
        if not self.state.running:
            return False
        self._land(self.state.current_index + amount)
        return True

    def skip_backward(self) -> bool:
        setting = self.skip_config.backward
        if setting.mode == SKIP_SENTENCE:
            return self.skip_to_previous_sentence()
        return self.skip_backward_by(setting.amount)

    def skip_forward(self) -> bool:
        setting = self.skip_config.forward
        if setting.mode == SKIP_SENTENCE:
            return self.skip_to_next_sentence()
        return self.skip_forward_by(setting.amount)

    def skip_to_previous_sentence(self) -> bool:
        if not self.state.running:
            return False
        words = self.document.words
        index = self.state.current_index

        # Already at a sentence start: go to the start of the one before.
        scan_from = index - 2 if index > 0 and ends_sentence(words[index - 1]) else index - 1
        for i in range(scan_from, -1, -1):
            if ends_sentence(words[i]):
                self._land(i + 1)
                return True
        self._land(0)
        return True

    def skip_to_next_sentence(self) -> bool:
        if not self.state.running:
            return False
        words = self.document.words
        index = self.state.current_index
        for i in range(index, len(words)):
            if ends_sentence(words[i]):
                self._land(i + 1)
                return True
        self._land(index)
        return True

    def seek(self, progress: float) -> bool:
        if not self.state.running:
            return False
        progress = max(0.0, min(float(progress), 1.0))
        max_index = len(self.document.words) - 1
        target = int(progress * max_index + 0.5)
        self._land(snap_index(target, self.document.paragraph_starts, self.document.page_starts))
        return True

    # ---------------- Observable state ----------------
    @property
    def current_word(self) -> str:
        if not self.state.running:
            return ""
        return self.document.words[self.state.current_index]

    @property
    def progress(self) -> float:
        if not self.state.running:
            return 0.0
        return self.state.current_index / max(len(self.document.words) - 1, 1)

    def marker_positions(self) -> dict:
        if not self.state.running:
            return {"paragraphs": [], "pages": []}
        span = max(len(self.document.words) - 1, 1)
        return {
            "paragraphs": [i / span for i in self.document.paragraph_starts],
            "pages": [i / span for i in self.document.page_starts],
        }

    def snapshot(self) -> dict:
        document = self.document if self.state.running else None
        paragraph_starts: List[int] = list(document.paragraph_starts) if document else []
        page_starts: List[int] = list(document.page_starts) if document else []
        return {
            "running": self.state.running,
            "paused": self.state.paused if self.state.running else False,
            "word": self.current_word,
            "index": self.state.current_index,
            "word_count": len(document.words) if document else 0,
            "progress": self.progress,
            "wpm": self.state.words_per_minute,
            "wpm_index": self.state.wpm_index,
            "paragraph_starts": paragraph_starts,
            "page_starts": page_starts,
            "markers": self.marker_positions(),
            "title": document.title if document else "",
            "chapter": document.chapter if document else "",
            "skip": self.skip_config.to_dict(),
        }
