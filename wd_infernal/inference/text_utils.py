"""
Text utilities for reference mining.

    - html_to_text: HTML to plain text conversion (BeautifulSoup)
    - guess_language: function-word based page language guess
    - search_patterns: regex patterns that find a statement value in page text
    - find_excerpt: first match of a pattern with surrounding context
    - to_iso639_1: language names/codes to two-letter codes (pycountry)
"""
from __future__ import annotations

import logging
import re
from functools import lru_cache
from typing import Dict, List, Optional, Sequence

import pycountry
from bs4 import BeautifulSoup, Comment

from wd_infernal.wikidate import PRECISION_DAY, PRECISION_YEAR, WikidataTime
from .model import TextExcerpt

logger = logging.getLogger(__name__)

_INVISIBLE_TAGS = ["script", "style", "noscript", "template", "head"]
_BLOCK_TAGS = [
    "p", "div", "li", "dd", "dt", "tr", "td", "th", "table", "ul", "ol", "dl", "blockquote", "pre",
    "h1", "h2", "h3", "h4", "h5", "h6", "section", "article", "header", "footer", "aside", "nav",
]
# line-break marker inserted into the tree; never part of page text
_BREAK = "\x00"
_WHITESPACE_RE = re.compile(r'\s+')

_WIKIMEDIA_URL_RE = re.compile(r'\b(wikipedia|wikimedia|wik[a-z-]+)\.org/')

LANGUAGE_WORDS = {
    "en": re.compile(r'\b(he|she|it|is|was|the|a|an)\b'),
    "de": re.compile(r'\b(er|sie|es|das|ein|eine|war|ist)\b'),
    "it": re.compile(r'\b(è|una|della|la|nel|si|su|di)\b'),
    "fr": re.compile(r'\b(est|un|une|et|la|il|a|de|par)\b'),
    "es": re.compile(r'\b(el|es|un|de|a|la|con|las|dos)\b'),
}

MONTHS = {
    "en": ["January", "February", "March", "April", "May", "June", "July",
           "August", "September", "October", "November", "December"],
    "de": ["Januar", "Februar", "März", "April", "Mai", "Juni", "Juli",
           "August", "September", "Oktober", "November", "Dezember"],
    "fr": ["janvier", "février", "mars", "avril", "mai", "juin", "juillet",
           "août", "septembre", "octobre", "novembre", "décembre"],
}


def html_to_text(html: str) -> str:
    """
    Reduce an HTML page to plain text.

    Only the body is kept. Scripts, styles and comments are dropped, entities
    are decoded, block elements and line breaks become newlines and other
    whitespace (including non-breaking spaces) collapses to single spaces.
    """
    soup = BeautifulSoup(html, 'lxml')
    for element in soup.find_all(_INVISIBLE_TAGS):
        element.extract()
    for comment in soup.find_all(string=lambda s: isinstance(s, Comment)):
        comment.extract()
    root = soup.body or soup
    for br in root.find_all("br"):
        br.replace_with(_BREAK)
    for element in root.find_all(_BLOCK_TAGS):
        element.insert_before(_BREAK)
        element.insert_after(_BREAK)
    text = _WHITESPACE_RE.sub(" ", root.get_text())
    lines = (line.strip() for line in text.split(_BREAK))
    return "\n".join(line for line in lines if line)


def guess_language(text: str, default: str = "en", min_hits: int = 5) -> str:
    """
    Guess a page language from common function words.

    A language needs more than ``min_hits`` hits to be chosen; ties go to the
    language listed first in LANGUAGE_WORDS.
    """
    best_language, best_count = default, min_hits
    for language, pattern in LANGUAGE_WORDS.items():
        count = sum(1 for _ in pattern.finditer(text))
        if count > best_count:
            best_language, best_count = language, count
    return best_language


def is_wikimedia_url(url: str) -> bool:
    return bool(_WIKIMEDIA_URL_RE.search(url))


def has_bad_fragment(url: str, fragments: Sequence[str]) -> bool:
    return any(fragment in url for fragment in fragments)


def clean_url(url: str) -> str:
    return url.replace("&amp;", "&").strip().replace(" ", "%20")


def language_of_wiki(wiki: str) -> str:
    """'dewiki' -> 'de', 'zh_min_nanwiki' -> 'zh-min-nan'."""
    return wiki.split("wik", 1)[0].replace("_", "-")


def web_server_for_wiki(wiki: str) -> str:
    """Host name of a Wikimedia wiki from its site id ('dewikisource' -> 'de.wikisource.org')."""
    language = wiki.split("wik", 1)[0].replace("_", "-")
    for suffix in ("wikisource", "wiktionary", "wikiquote", "wikibooks", "wikinews", "wikivoyage", "wikiversity"):
        if wiki.endswith(suffix):
            return f"{language}.{suffix}.org"
    return f"{language}.wikipedia.org"


def date_patterns(time: WikidataTime, language: str) -> List[str]:
    """Escaped regex patterns for a year- or day-precision date in a page language."""
    year = str(abs(time.year))
    if time.precision == PRECISION_YEAR:
        return [year]
    if time.precision != PRECISION_DAY or not time.month or not time.day:
        return []

    month, day = time.month, time.day
    formats = [f"{year}-{month:02d}-{day:02d}"]
    if language == "en":
        long_month = MONTHS["en"][month - 1]
        formats += [f"{long_month} {day}, {year}", f"{long_month[:3]} {day}, {year}"]
    elif language == "de":
        long_month = MONTHS["de"][month - 1]
        formats += [
            f"{day}. {long_month} {year}",
            f"{day}. {long_month[:3]} {year}",
            f"{day:02d}. {long_month} {year}",
            f"{day:02d}. {long_month[:3]} {year}",
            f"{day}. {month}. {year}",
            f"{day}.{month}.{year}",
            f"{day:02d}. {month:02d}. {year}",
            f"{day:02d}.{month:02d}.{year}",
        ]
    elif language == "fr":
        formats.append(f"{day} {MONTHS['fr'][month - 1]} {year}")
    else:
        formats += [
            f"{day}. {month}. {year}",
            f"{day}.{month}.{year}",
            f"{day}/{month}/{year}",
            f"{day:02d}. {month:02d}. {year}",
            f"{day:02d}.{month:02d}.{year}",
            f"{day:02d}/{month:02d}/{year}",
        ]
    return _unique([re.escape(f) for f in formats])


def name_patterns(names: Sequence[str], min_length: int = 3) -> List[str]:
    """Escaped label/alias patterns, skipping those shorter than ``min_length``."""
    patterns = []
    for name in names:
        name = name.strip()
        if len(name) < min_length:
            continue
        patterns.append(re.escape(name))
    return _unique(patterns)


@lru_cache(maxsize=1024)
def _context_re(pattern: str, context_chars: int) -> Optional[re.Pattern]:
    try:
        return re.compile(rf'\b(.{{0,{context_chars}}})\b({pattern})\b(.{{0,{context_chars}}})\b')
    except re.error as e:
        logger.debug(f"Skipping unusable pattern {pattern!r}: {e}")
        return None


def find_excerpt(pattern: str, text: str, context_chars: int = 60) -> Optional[TextExcerpt]:
    """First match of ``pattern`` in ``text`` with up to ``context_chars`` of context each side."""
    if not pattern.strip():
        return None
    regex = _context_re(pattern, context_chars)
    if regex is None:
        return None
    match = regex.search(text)
    if not match:
        return None
    return TextExcerpt(match.group(1), match.group(2), match.group(3))


def to_iso639_1(language: Optional[str]) -> Optional[str]:
    """
    Normalise a language name or code ('English', 'eng', 'en-GB', 'de') to ISO 639-1.

    Returns None when the language is unknown or has no two-letter code.
    """
    if not language:
        return None
    text = language.strip()
    base = re.split(r'[-_]', text, maxsplit=1)[0].lower()
    record = None
    if len(base) == 2:
        record = pycountry.languages.get(alpha_2=base)
    elif len(base) == 3:
        record = pycountry.languages.get(alpha_3=base) or pycountry.languages.get(bibliographic=base)
    if record is None:
        try:
            record = pycountry.languages.lookup(text)
        except LookupError:
            return None
    return getattr(record, "alpha_2", None)


def _unique(values: Sequence[str]) -> List[str]:
    seen: Dict[str, None] = {}
    for value in values:
        seen.setdefault(value, None)
    return list(seen)
