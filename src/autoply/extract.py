"""Summary: Best-effort text recovery from CV documents.

Importance: Gives routing and generation grounded CV facts without heavy parsing libraries.
Alternatives: Use pdfminer.six and python-docx for format-compliant parsing.

Output is approximate: word order and boundaries may be lost and no layout survives.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from autoply.errors import ExtractionDegraded, UnsupportedFormat
from autoply.text import collapse_whitespace

logger = logging.getLogger(__name__)

PDF_MEDIA_TYPE = "application/pdf"
DOC_MEDIA_TYPE = "application/msword"
DOCX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"

SUPPORTED_MEDIA_TYPES = (PDF_MEDIA_TYPE, DOC_MEDIA_TYPE, DOCX_MEDIA_TYPE)

_EXTENSIONS = {
    PDF_MEDIA_TYPE: "pdf",
    DOC_MEDIA_TYPE: "doc",
    DOCX_MEDIA_TYPE: "docx",
}

_STREAM_PATTERN = re.compile(r"stream\r?\n(.*?)\r?\nendstream", re.DOTALL)
_SHOW_TEXT_PATTERN = re.compile(r"\[(.*?)\]\s*TJ|\(([^)]+)\)", re.DOTALL)
_ARRAY_ITEM_PATTERN = re.compile(r"\(([^)]*)\)")
_WORD_RUN_PATTERN = re.compile(r"<w:t[^>]*>([^<]*)</w:t>")
_LETTER_RUN_PATTERN = re.compile(r"[A-Za-z]{3,}")


@dataclass(frozen=True)
class DocumentTextExtractor:
    """Summary: Format-dispatching text extractor for the CV allow-list.

    Importance: Isolates heuristic parsing so a real parser can replace it later.
    Alternatives: Call format libraries directly inside the chat flow.
    """

    strict: bool = False

    def extract(self, data: bytes, media_type: str | None) -> str:
        """Summary: Recover plain text from raw document bytes.

        Importance: Single entry point used for every CV read.
        Alternatives: Persist extracted text at upload time.

        Raises UnsupportedFormat for media types outside the allow-list, and
        ExtractionDegraded only when strict mode is on and the fallback was used.
        """

        if media_type == PDF_MEDIA_TYPE:
            fragments = _pdf_fragments(_decode(data))
            text = _finish_pdf(fragments) if fragments else None
        elif media_type in (DOC_MEDIA_TYPE, DOCX_MEDIA_TYPE):
            fragments = _WORD_RUN_PATTERN.findall(_decode(data))
            text = collapse_whitespace(" ".join(fragments)) if fragments else None
        else:
            raise UnsupportedFormat(media_type)

        if text is not None:
            return text
        fallback = letter_runs(_decode(data))
        logger.warning(
            "No structural text found in %s document; used letter-run fallback (%s chars).",
            media_type,
            len(fallback),
        )
        if self.strict:
            raise ExtractionDegraded(media_type, fallback)
        return fallback


def extract_text(data: bytes, media_type: str | None) -> str:
    """Summary: Convenience wrapper around a lenient DocumentTextExtractor."""

    return DocumentTextExtractor().extract(data, media_type)


def is_supported(media_type: str | None) -> bool:
    return media_type in SUPPORTED_MEDIA_TYPES


def letter_runs(text: str) -> str:
    """Summary: Join every run of three or more Latin letters with spaces.

    Importance: Guarantees some text for degenerate documents that still contain words.
    Alternatives: Return an empty string and ask the user to re-upload.
    """

    return " ".join(_LETTER_RUN_PATTERN.findall(text))


def extension_for_media_type(media_type: str) -> str:
    return _EXTENSIONS.get(media_type, "pdf")


def normalize_filename(first_name: str | None, last_name: str | None, media_type: str) -> str:
    """Summary: Build the attachment filename for a dispatched CV.

    Importance: Recruiters see "Jane_Doe_CV.pdf" rather than a storage key.
    Alternatives: Reuse the filename from the original upload.
    """

    extension = extension_for_media_type(media_type)
    first = _sanitize_name(first_name or "Applicant") or "Applicant"
    last = _sanitize_name(last_name or "")
    if last:
        return f"{first}_{last}_CV.{extension}"
    return f"{first}_CV.{extension}"


def _decode(data: bytes) -> str:
    return data.decode("utf-8", errors="replace")


def _pdf_fragments(text: str) -> list[str]:
    """Summary: Collect shown strings from every content stream.

    Importance: Covers both `(text) Tj` and `[(te) -20 (xt)] TJ` operators.
    Alternatives: Decompress FlateDecode streams before matching.
    """

    fragments: list[str] = []
    for stream in _STREAM_PATTERN.findall(text):
        for match in _SHOW_TEXT_PATTERN.finditer(stream):
            array, literal = match.group(1), match.group(2)
            if array is not None:
                fragments.extend(item for item in _ARRAY_ITEM_PATTERN.findall(array) if item)
            else:
                fragments.append(literal)
    return fragments


def _finish_pdf(fragments: list[str]) -> str:
    joined = " ".join(fragments)
    joined = joined.replace("\\n", "\n").replace("\\r", "")
    return collapse_whitespace(joined)


def _sanitize_name(name: str) -> str:
    cleaned = re.sub(r"[^a-zA-Z0-9\s-]", "", name.strip())
    cleaned = re.sub(r"\s+", "_", cleaned)
    cleaned = re.sub(r"_+", "_", cleaned)
    return cleaned.strip("_")
