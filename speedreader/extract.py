"""
speedreader.extract

Read-only PDF/EPUB text extraction feeding the reader.

PDF pages are emitted with their page number on its own line after the
page text, so the page detector in ``speedreader.text`` can recover page
breaks. EPUB chapters keep one paragraph per block element, separated by
blank lines.
"""

from __future__ import annotations

import html
import logging
import re
import zipfile
from pathlib import Path
from typing import List, Tuple

from .text import normalize_line_endings

logger = logging.getLogger(__name__)

# -------------------------------
# Optional imports (graceful fallback)
# -------------------------------
HAS_PYPDF = False
HAS_EBOOKLIB = False
HAS_BS4 = False

try:
    from pypdf import PdfReader  # type: ignore
    HAS_PYPDF = True
except ImportError:
    HAS_PYPDF = False

try:
    from ebooklib import epub  # type: ignore
    import ebooklib  # type: ignore
    HAS_EBOOKLIB = True
except ImportError:
    HAS_EBOOKLIB = False

try:
    from bs4 import BeautifulSoup  # type: ignore
    HAS_BS4 = True
except ImportError:
    HAS_BS4 = False


ALLOWED_EXTENSIONS = {".pdf", ".epub", ".txt"}
BLOCK_TAGS = ["h1", "h2", "h3", "h4", "h5", "h6", "p", "li", "pre"]


def clean_extracted_text(text: str) -> str:
    if not text:
        return ""
    text = normalize_line_endings(text)
    text = re.sub(r"[ \t]+\n", "\n", text)
    text = re.sub(r"\n{3,}", "\n\n", text)
    return text.strip("\n")


def extract_text_from_pdf(path: str) -> str:
    if not HAS_PYPDF:
        raise RuntimeError("PDF support requires pypdf. Install with: pip install pypdf")

    reader = PdfReader(path)
    pages_text: List[str] = []
    for number, page in enumerate(reader.pages, start=1):
        try:
            txt = page.extract_text() or ""
        except Exception as exc:
            logger.warning("Could not extract text from page %d of %s: %s", number, path, exc)
            txt = ""
        pages_text.append(f"{txt.rstrip()}\n{number}")
    logger.debug("Extracted %d PDF pages from %s", len(pages_text), path)
    return clean_extracted_text("\n\n".join(pages_text))


def _html_blocks(markup: bytes) -> List[str]:
    soup = BeautifulSoup(markup, "html.parser")
    for tag in soup(["script", "style", "nav"]):
        tag.decompose()
    blocks = [el.get_text(" ", strip=True) for el in soup.find_all(BLOCK_TAGS)]
    blocks = [b for b in blocks if b]
    if not blocks:
        whole = soup.get_text(" ", strip=True)
        blocks = [whole] if whole else []
    return blocks


def extract_text_from_epub(path: str) -> str:
    if HAS_EBOOKLIB and HAS_BS4:
        book = epub.read_epub(path)
        parts: List[str] = []
        for item in book.get_items_of_type(ebooklib.ITEM_DOCUMENT):
            blocks = _html_blocks(item.get_content())
            if blocks:
                parts.append("\n\n".join(blocks))
        if parts:
            return clean_extracted_text("\n\n".join(parts))
        logger.debug("ebooklib found no documents in %s; reading archive directly", path)

    return extract_text_from_epub_fallback(path)


def extract_text_from_epub_fallback(path: str) -> str:
    if not zipfile.is_zipfile(path):
        raise RuntimeError("Invalid EPUB file (not a zip archive).")

    html_files: List[Tuple[str, str]] = []
    with zipfile.ZipFile(path, "r") as zf:
        for name in zf.namelist():
            if name.lower().endswith((".xhtml", ".html", ".htm")):
                html_files.append((name, zf.read(name).decode("utf-8", errors="ignore")))

    if not html_files:
        raise RuntimeError("No readable HTML/XHTML content found in EPUB.")

    html_files.sort(key=lambda x: x[0])

    parts: List[str] = []
    for _, raw_html in html_files:
        body = re.sub(r"(?is)<head\b.*?</head>", " ", raw_html)
        body = re.sub(r"(?is)<(script|style)\b.*?>.*?</\1>", " ", body)
        body = re.sub(r"(?is)</(p|h[1-6]|li|div)\s*>", "\n\n", body)
        body = re.sub(r"(?is)<br\s*/?>", "\n", body)
        body = re.sub(r"(?is)<[^>]+>", " ", body)
        body = html.unescape(body)
        blocks = [re.sub(r"\s+", " ", b).strip() for b in body.split("\n\n")]
        blocks = [b for b in blocks if b]
        if blocks:
            parts.append("\n\n".join(blocks))

    return clean_extracted_text("\n\n".join(parts))


def extract_text_from_file(path: str) -> str:
    ext = Path(path).suffix.lower()
    if ext == ".pdf":
        return extract_text_from_pdf(path)
    if ext == ".epub":
        return extract_text_from_epub(path)
    if ext == ".txt":
        return clean_extracted_text(Path(path).read_text(encoding="utf-8", errors="replace"))
    raise RuntimeError(f"Unsupported file type: {ext} (expected .pdf, .epub or .txt)")


def allowed_file(filename: str) -> bool:
    return Path(filename).suffix.lower() in ALLOWED_EXTENSIONS
