"""
speedreader.text

Turns raw pasted text into the word sequence the reader plays back.

Pipeline (single pass over the lines, then paragraphs, then words):
- canonicalise line endings
- classify each line (blank / page number / running header / footnote / body)
- count repeated headers to infer a book title and a chapter title
- decide whether the collected page numbers are real sequential page breaks
- split the remaining body text into paragraphs
- split paragraphs into words, recording paragraph and page start offsets
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from functools import cached_property
from typing import Callable, Dict, FrozenSet, Iterable, List, Optional, Sequence, Set, Tuple

logger = logging.getLogger(__name__)

# ============================================================
# Line kinds
# ============================================================
BLANK = "blank"
PAGE_NUMBER = "page_number"
HEADER = "header"
PAGE_LABEL = "page_label"
FOOTNOTE = "footnote"
BODY = "body"

# Kinds that never reach the cleaned body text.
DISCARDED_KINDS = {PAGE_NUMBER, HEADER, PAGE_LABEL, FOOTNOTE}

SPACED_LETTERS_RE = re.compile(r"\b([a-z])\s+([a-z])(\s+[a-z])+\b", re.IGNORECASE)
LEADING_PAGE_RE = re.compile(r"^(\d+)\s+(.+)$")
TRAILING_PAGE_RE = re.compile(r"^(.+)\s+(\d+)$")
PAGE_ONLY_RE = re.compile(r"^\d+$")
PAGE_LABEL_RE = re.compile(r"^Page \d+$", re.IGNORECASE)
FOOTNOTE_NUMBER_RE = re.compile(r"^[\[(]?\d+[\])]?$")
FOOTNOTE_GLYPHS_RE = re.compile(r"^[*†‡§¶]+$")
PARAGRAPH_BREAK_RE = re.compile(r"\n\n")

HEADER_MIN_LENGTH = 3
HEADER_MAX_LENGTH = 80
SHORT_LINE_LENGTH = 60
SENTENCE_LINE_ENDINGS = (".", "!", "?", ".'", "!'", "?'")

PAGE_STEP_RATIO = 0.7
MIN_PAGE_NUMBERS = 3

TITLE_VOCABULARY = (
    "the", "two", "towers",
    "return", "king", "rings",
    "departure", "boromir",
    "of", "and",
)


@dataclass(frozen=True)
class LineClass:
    kind: str
    text: str = ""
    page_number: Optional[int] = None


@dataclass
class HeaderCandidate:
    text: str
    occurrences: List[int] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.occurrences)


@dataclass(frozen=True)
class CleanedText:
    text: str
    title: str
    chapter: str
    page_numbers: Tuple[int, ...]


@dataclass(frozen=True)
class ParsedDocument:
    """Immutable result of one parse: words plus structural annotations."""

    words: Tuple[str, ...]
    paragraph_starts: Tuple[int, ...] = ()
    page_starts: Tuple[int, ...] = ()
    title: str = ""
    chapter: str = ""

    def __len__(self) -> int:
        return len(self.words)

    @cached_property
    def paragraph_start_set(self) -> FrozenSet[int]:
        """Paragraph starts for constant-time lookup while ticking."""
        return frozenset(self.paragraph_starts)

    def to_dict(self) -> dict:
        return {
            "words": list(self.words),
            "word_count": len(self.words),
            "paragraph_starts": list(self.paragraph_starts),
            "page_starts": list(self.page_starts),
            "title": self.title,
            "chapter": self.chapter,
        }


# ============================================================
# Normalizer
# ============================================================
def normalize_line_endings(text: str) -> str:
    if not text:
        return ""
    return text.replace("\r\n", "\n").replace("\r", "\n")


def fix_spaced_text(text: str) -> str:
    """Merge letter-spaced runs such as ``t h e`` into ``the``."""
    return SPACED_LETTERS_RE.sub(lambda m: m.group(0).replace(" ", ""), text)


def is_likely_title(text: str) -> bool:
    words = [w for w in text.split(" ") if w]
    if not words:
        return False
    capitalized = [w for w in words if w[0].isupper()]
    return len(capitalized) / len(words) > 0.5


# ============================================================
# Line Classifier (ordered rules, first match wins)
# ============================================================
def _leading_page_header(line: str) -> Optional[LineClass]:
    m = LEADING_PAGE_RE.match(line)
    if not m:
        return None
    return LineClass(HEADER, m.group(2).strip(), int(m.group(1)))


def _trailing_page_header(line: str) -> Optional[LineClass]:
    m = TRAILING_PAGE_RE.match(line)
    if not m:
        return None
    return LineClass(HEADER, m.group(1).strip(), int(m.group(2)))


def _page_number_only(line: str) -> Optional[LineClass]:
    if PAGE_ONLY_RE.match(line):
        return LineClass(PAGE_NUMBER, line, int(line))
    return None


def _page_label(line: str) -> Optional[LineClass]:
    if PAGE_LABEL_RE.match(line):
        return LineClass(PAGE_LABEL, line)
    return None


def _footnote_marker(line: str) -> Optional[LineClass]:
    if FOOTNOTE_NUMBER_RE.match(line) or FOOTNOTE_GLYPHS_RE.match(line):
        return LineClass(FOOTNOTE, line)
    return None


def _standalone_header(line: str) -> Optional[LineClass]:
    if not HEADER_MIN_LENGTH < len(line) < HEADER_MAX_LENGTH:
        return None
    # letterless lines such as "— 14 —" or "* * *" count as upper-case
    if line == line.upper() or is_likely_title(line):
        return LineClass(HEADER, line)
    return None


# "Page 12" would otherwise be read as a header "Page" on page 12; page labels
# are dropped without contributing a page number.
LINE_RULES: Sequence[Tuple[str, Callable[[str], Optional[LineClass]]]] = (
    ("page_label", _page_label),
    ("leading_page_header", _leading_page_header),
    ("trailing_page_header", _trailing_page_header),
    ("page_number_only", _page_number_only),
    ("footnote_marker", _footnote_marker),
    ("standalone_header", _standalone_header),
)


def classify_line(line: str) -> LineClass:
    trimmed = line.strip()
    if not trimmed:
        return LineClass(BLANK)

    fixed = fix_spaced_text(trimmed)
    for _name, rule in LINE_RULES:
        result = rule(fixed)
        if result is not None:
            return result
    return LineClass(BODY, line)


# ============================================================
# Header Aggregator
# ============================================================
class HeaderAggregator:
    """Counts repeated running headers and ranks them into title/chapter."""

    def __init__(self) -> None:
        self._candidates: Dict[str, HeaderCandidate] = {}

    def add(self, text: str, line_index: int) -> None:
        candidate = self._candidates.get(text)
        if candidate is None:
            candidate = HeaderCandidate(text)
            self._candidates[text] = candidate
        candidate.occurrences.append(line_index)

    @property
    def candidates(self) -> List[HeaderCandidate]:
        return list(self._candidates.values())

    def resolve(self) -> Tuple[str, str]:
        # dicts keep first-seen order and sorted() is stable, so ties go to
        # the header that appeared first
        repeated = [c for c in self._candidates.values() if c.count >= 2]
        if not repeated:
            return "", ""
        ranked = sorted(repeated, key=lambda c: c.count, reverse=True)
        if len(ranked) == 1:
            return ranked[0].text, ""
        return ranked[0].text, ranked[1].text


def clean_and_detect(text: str) -> CleanedText:
    """Strip headers/page furniture from ``text`` and collect structure."""
    cleaned_lines: List[str] = []
    page_numbers: List[int] = []
    headers = HeaderAggregator()

    for line_index, line in enumerate(text.split("\n")):
        result = classify_line(line)

        if result.kind == BLANK:
            cleaned_lines.append("")
            continue

        if result.page_number is not None:
            page_numbers.append(result.page_number)

        if result.kind == HEADER:
            if result.text:
                headers.add(result.text, line_index)
            continue

        if result.kind in DISCARDED_KINDS:
            continue

        cleaned_lines.append(line)

    title, chapter = headers.resolve()
    return CleanedText("\n".join(cleaned_lines), title, chapter, tuple(page_numbers))


# ============================================================
# Sequential Page Detector
# ============================================================
def detect_sequential_pages(page_numbers: Iterable[int], paragraph_count: int) -> Set[int]:
    """
    Map a run of page numbers onto evenly spaced paragraph indices.

    Returns an empty set when there are too few numbers or they do not
    look like consecutive pages (at most one skipped number per step).
    """
    numbers = sorted(page_numbers)
    if len(numbers) < MIN_PAGE_NUMBERS:
        return set()

    steps = sum(1 for a, b in zip(numbers, numbers[1:]) if b - a in (1, 2))
    ratio = steps / (len(numbers) - 1)
    if ratio <= PAGE_STEP_RATIO:
        return set()

    unique_pages = sorted(set(numbers))
    paragraphs_per_page = max(1, paragraph_count // len(unique_pages))

    indices: Set[int] = set()
    for ordinal in range(len(unique_pages)):
        paragraph_index = ordinal * paragraphs_per_page
        if 0 < paragraph_index < paragraph_count:
            indices.add(paragraph_index)
    return indices


# ============================================================
# Paragraph Segmenter
# ============================================================
def _has_indentation(line: str) -> bool:
    return line.startswith("    ") or line.startswith("\t")


def _ends_sentence_line(line: str) -> bool:
    return line.strip().endswith(SENTENCE_LINE_ENDINGS)


def detect_paragraphs(text: str) -> List[str]:
    standard = [p.strip() for p in PARAGRAPH_BREAK_RE.split(text)]
    standard = [p for p in standard if p]
    if len(standard) > 1:
        return standard

    # No blank-line breaks: fall back to indentation and short-line cues.
    lines = text.split("\n")
    paragraphs: List[str] = []
    current: List[str] = []

    def flush_current() -> None:
        nonlocal current
        if current:
            paragraphs.append(" ".join(current))
        current = []

    for index, line in enumerate(lines):
        trimmed = line.strip()
        if not trimmed:
            flush_current()
            continue

        previous = lines[index - 1] if index > 0 else None
        short_sentence_end = (
            previous is not None
            and _ends_sentence_line(previous)
            and len(previous.strip()) < SHORT_LINE_LENGTH
            and trimmed[0].isupper()
        )
        if _has_indentation(line) or short_sentence_end:
            flush_current()

        current.append(trimmed)

    flush_current()
    return [p for p in paragraphs if p]


# ============================================================
# Word Tokenizer
# ============================================================
def tokenize_paragraphs(
    paragraphs: Sequence[str],
    page_paragraphs: Set[int] = frozenset(),
) -> Tuple[List[str], List[int], List[int]]:
    words: List[str] = []
    paragraph_starts: List[int] = []
    page_starts: List[int] = []

    for ordinal, paragraph in enumerate(paragraphs):
        tokens = paragraph.split()
        if not tokens:
            continue
        cursor = len(words)
        if cursor > 0:
            paragraph_starts.append(cursor)
            if ordinal in page_paragraphs:
                page_starts.append(cursor)
        words.extend(tokens)

    return words, paragraph_starts, page_starts


# ============================================================
# Title Formatter
# ============================================================
def format_title(title: str, vocabulary: Iterable[str] = TITLE_VOCABULARY) -> str:
    """
    Rebuild a display title from known words only.

    The lower-cased header is scanned left to right; at each position the
    longest vocabulary word that matches is emitted capitalised. Anything
    else is skipped one character at a time, so ``thetwotowers`` becomes
    ``The Two Towers`` and unknown words disappear.
    """
    if not title:
        return ""

    lower = title.lower()
    known = sorted(vocabulary, key=len, reverse=True)
    result: List[str] = []
    index = 0
    while index < len(lower):
        match = next((word for word in known if word and lower.startswith(word, index)), None)
        if match is None:
            index += 1
            continue
        result.append(match[0].upper() + match[1:])
        index += len(match)
    return " ".join(result)


# ============================================================
# Pipeline
# ============================================================
def parse_document(raw_text: str, vocabulary: Iterable[str] = TITLE_VOCABULARY) -> Optional[ParsedDocument]:
    """Parse ``raw_text``; returns ``None`` when it holds no words."""
    normalized = normalize_line_endings(raw_text)
    if not normalized.strip():
        return None

    cleaned = clean_and_detect(normalized)
    paragraphs = detect_paragraphs(cleaned.text)
    page_paragraphs = detect_sequential_pages(cleaned.page_numbers, len(paragraphs))
    words, paragraph_starts, page_starts = tokenize_paragraphs(paragraphs, page_paragraphs)

    if not words:
        logger.debug("No body text left after removing headers and page numbers")
        return None

    vocabulary = tuple(vocabulary)
    document = ParsedDocument(
        words=tuple(words),
        paragraph_starts=tuple(paragraph_starts),
        page_starts=tuple(page_starts),
        title=format_title(cleaned.title, vocabulary),
        chapter=format_title(cleaned.chapter, vocabulary),
    )
    logger.debug(
        "Parsed %d words, %d paragraphs, %d pages (title=%r chapter=%r)",
        len(document.words),
        len(document.paragraph_starts) + 1,
        len(document.page_starts),
        document.title,
        document.chapter,
    )
    return document
