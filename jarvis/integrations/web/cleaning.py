"""Web page text extraction and cleanup."""

import re
from typing import List

import html2text

# Page chrome that never carries article text
_CHROME_TAGS = ("script", "style", "noscript", "nav", "header", "footer", "aside", "form")
_CHROME_RE = re.compile(
    r"<({tags})\b[^>]*>.*?</\1\s*>".format(tags="|".join(_CHROME_TAGS)),
    re.IGNORECASE | re.DOTALL,
)
_TITLE_RE = re.compile(r"<title[^>]*>(.*?)</title>", re.IGNORECASE | re.DOTALL)

_ODD_SPACES = {"\u00a0": " ", "\u2007": " ", "\u202f": " "}
_INVISIBLE_RE = re.compile("[\u200b\u200c\u200d\ufeff\u2060\u034f\u00ad]")

BOILERPLATE_PATTERNS: List[re.Pattern] = [
    re.compile(p, re.IGNORECASE | re.MULTILINE)
    for p in (
        r"^.*\baccept\s+(?:all\s+)?cookies\b.*$",
        r"^.*\bwe\s+use\s+cookies\b.*$",
        r"^.*\bprivacy\s+policy\b.*$",
        r"^.*\bterms\s+of\s+(?:use|service)\b.*$",
        r"^.*\bskip\s+to\s+(?:main\s+)?content\b.*$",
        r"^.*\bsubscribe\s+to\s+our\s+newsletter\b.*$",
        r"^\s*©\s*\d{4}.*$",
        r"^.*\ball\s+rights\s+reserved\b.*$",
    )
]


def html_to_text(html: str) -> str:
    """Convert page HTML to plain text, dropping navigation chrome, links and images."""
    converter = html2text.HTML2Text()
    converter.ignore_links = True
    converter.ignore_images = True
    converter.ignore_emphasis = True
    converter.ignore_tables = False
    converter.body_width = 0
    converter.unicode_snob = True
    return converter.handle(_CHROME_RE.sub("", html))


def extract_title(html: str) -> str:
    """Return the contents of the <title> tag, or an empty string."""
    match = _TITLE_RE.search(html)
    if not match:
        return ""
    return re.sub(r"\s+", " ", match.group(1)).strip()


def _is_noise(line: str) -> bool:
    # Menu separators, bullets and other leftovers of two characters or fewer
    return len(line) <= 2 or bool(re.fullmatch(r"[\*\-=#|>\s]+", line))


def sanitize_page_text(text: str) -> str:
    """Strip markdown residue and site boilerplate, keep paragraph breaks."""
    if not text:
        return ""

    for odd, plain in _ODD_SPACES.items():
        text = text.replace(odd, plain)
    text = _INVISIBLE_RE.sub("", text)

    text = re.sub(r"<[^>]+>", "", text)
    text = re.sub(r"\[([^\]]+)\]\([^)]+\)", r"\1", text)
    text = re.sub(r"^#{1,6}\s*", "", text, flags=re.MULTILINE)
    text = re.sub(r"^[\-=_*]{3,}\s*$", "", text, flags=re.MULTILINE)
    for pattern in BOILERPLATE_PATTERNS:
        text = pattern.sub("", text)
    text = re.sub(r"[ \t]{2,}", " ", text)

    paragraphs: List[str] = []
    blank = False
    for raw in text.splitlines():
        line = raw.strip()
        if not line:
            blank = bool(paragraphs)
            continue
        if _is_noise(line):
            continue
        if blank:
            paragraphs.append("")
            blank = False
        paragraphs.append(line)

    return "\n".join(paragraphs)
