"""
books.py - Bibliographic metadata providers for ISBN reconciliation.

Each provider maps its record to ProviderField values keyed by Wikibase
property:

    - P1476 title / P1680 subtitle (monolingual, ISO 639-1 language)
    - P2093 author name string
    - P1104 number of pages
    - P577 publication date
    - P31 Q571 for printed books
    - the provider's own record id (P675 Google Books ID, P648 Open Library ID)
"""
from __future__ import annotations

import logging
import re
import xml.etree.ElementTree as ET
from typing import Any, Dict, List, Optional, Tuple

from wd_infernal.errors import AdapterError
from wd_infernal.inference.model import (
    ItemValue, MonolingualTextValue, QuantityValue, StringValue, TimeValue, Value,
)
from wd_infernal.inference.text_utils import to_iso639_1
from wd_infernal.wikidate import PRECISION_DAY, PRECISION_MONTH, PRECISION_YEAR, WikidataTime

from .http import HttpClient
from .interfaces import ProviderField

logger = logging.getLogger(__name__)

P_INSTANCE_OF = "P31"
P_TITLE = "P1476"
P_SUBTITLE = "P1680"
P_AUTHOR_NAME = "P2093"
P_PAGES = "P1104"
P_PUBLICATION_DATE = "P577"
P_GOOGLE_BOOKS_ID = "P675"
P_OPEN_LIBRARY_ID = "P648"
BOOK = "Q571"

GOOGLE_BOOKS = "Q206033"
OPEN_LIBRARY = "Q1201876"

_DC_NS = "purl.org/dc"
_PAGES_RE = re.compile(r'^(\d+) pages$')
_GOOGLE_ID_RE = re.compile(r'^([a-zA-Z0-9_-]+)$')
_ISO_DAY_RE = re.compile(r'^(\d{4})-(\d{2})-(\d{2})')
_ISO_MONTH_RE = re.compile(r'^(\d{4})-(\d{2})$')
_YEAR_RE = re.compile(r'\b(\d{4})\b')


def publication_time(text: str) -> Optional[TimeValue]:
    """'1999-06-01' -> day, '1999-06' -> month, 'June 1999' / '1999' -> year precision."""
    text = (text or "").strip()
    m = _ISO_DAY_RE.match(text)
    if m:
        return TimeValue(WikidataTime(int(m.group(1)), int(m.group(2)), int(m.group(3)), PRECISION_DAY).time,
                         PRECISION_DAY)
    m = _ISO_MONTH_RE.match(text)
    if m:
        return TimeValue(WikidataTime(int(m.group(1)), int(m.group(2)), 0, PRECISION_MONTH).time, PRECISION_MONTH)
    m = _YEAR_RE.search(text)
    if m:
        return TimeValue.from_year(int(m.group(1)))
    return None


def _split_tag(tag: str) -> Tuple[str, str]:
    if tag.startswith("{"):
        namespace, _, name = tag[1:].partition("}")
        return namespace, name
    return "", tag


def parse_google_books_feed(xml: str) -> Optional[Dict[str, List[str]]]:
    """
    First entry of a Google Books Atom feed as {name: [texts]}. Dublin Core
    elements are keyed 'dc:<name>', Atom elements by their plain name.

    Raises:
        AdapterError: If the XML cannot be parsed.
    """
    try:
        root = ET.fromstring(xml)
    except ET.ParseError as e:
        raise AdapterError(f"Invalid Google Books feed: {e}", source="google_books", kind="shape")
    entry = next((child for child in root if _split_tag(child.tag)[1] == "entry"), None)
    if entry is None:
        return None
    fields: Dict[str, List[str]] = {}
    for child in entry:
        namespace, name = _split_tag(child.tag)
        key = f"dc:{name}" if _DC_NS in namespace else name
        if child.text and child.text.strip():
            fields.setdefault(key, []).append(child.text.strip())
    return fields


class GoogleBooksProvider:
    provider = "google_books"
    feed_url = "https://books.google.com/books/feeds/volumes"

    def __init__(self, http: HttpClient):
        self.http = http

    async def lookup(self, isbn: str) -> List[ProviderField]:
        params = {'q': f"isbn:{isbn}", 'max-results': 25}
        xml = await self.http.get_text(self.feed_url, params=params, source=self.provider)
        entry = parse_google_books_feed(xml)
        if entry is None:
            logger.info(f"{self.provider}: no entry for {isbn}")
            return []
        return self.fields_from_entry(entry)

    def fields_from_entry(self, entry: Dict[str, List[str]]) -> List[ProviderField]:
        record_id = next((m.group(1) for m in map(_GOOGLE_ID_RE.match, entry.get("dc:identifier", [])) if m), None)
        if record_id is None:
            raise AdapterError("Google Books entry has no volume id", source=self.provider, kind="shape")
        url = f"https://books.google.com/books?id={record_id}"

        values: List[Tuple[str, Value]] = [(P_GOOGLE_BOOKS_ID, StringValue(record_id, "external-id"))]
        language = to_iso639_1(next(iter(entry.get("dc:language", [])), None))
        titles = entry.get("dc:title") or entry.get("title") or []
        if language and titles:
            values.append((P_TITLE, MonolingualTextValue(titles[0], language)))
            # the second dc:title of a volume is its subtitle
            if len(entry.get("dc:title", [])) > 1:
                values.append((P_SUBTITLE, MonolingualTextValue(entry["dc:title"][1], language)))
        for text in entry.get("dc:format", []):
            pages = _PAGES_RE.match(text)
            if pages:
                values.append((P_PAGES, QuantityValue(int(pages.group(1)))))
            elif text == "book":
                values.append((P_INSTANCE_OF, ItemValue(BOOK)))
        for text in entry.get("dc:date", [])[:1]:
            time = publication_time(text)
            if time is not None:
                values.append((P_PUBLICATION_DATE, time))
        for creator in entry.get("dc:creator", []):
            values.append((P_AUTHOR_NAME, StringValue(creator)))

        return [
            ProviderField(provider=self.provider, property=property, value=value, record_id=record_id,
                          stated_in=GOOGLE_BOOKS, url=url, id_property=P_GOOGLE_BOOKS_ID)
            for property, value in values
        ]


class OpenLibraryProvider:
    provider = "open_library"
    api_url = "https://openlibrary.org/api/books"

    def __init__(self, http: HttpClient):
        self.http = http

    async def lookup(self, isbn: str) -> List[ProviderField]:
        params = {'bibkeys': f"ISBN:{isbn}", 'format': 'json', 'jscmd': 'details'}
        data = await self.http.get_json(self.api_url, params=params, source=self.provider)
        if not isinstance(data, dict):
            raise AdapterError("Unexpected Open Library response", source=self.provider, kind="shape")
        record = data.get(f"ISBN:{isbn}")
        if not record:
            logger.info(f"{self.provider}: no record for {isbn}")
            return []
        return self.fields_from_record(record.get("details", {}))

    def fields_from_record(self, details: Dict[str, Any]) -> List[ProviderField]:
        key = details.get("key", "")
        record_id = key.rsplit("/", 1)[-1] if key else None
        url = f"https://openlibrary.org{key}" if key else None

        values: List[Tuple[str, Value]] = []
        if record_id:
            values.append((P_OPEN_LIBRARY_ID, StringValue(record_id, "external-id")))
        languages = [lang.get("key", "").rsplit("/", 1)[-1] for lang in details.get("languages", [])]
        language = to_iso639_1(languages[0]) if languages else None
        if language and details.get("title"):
            values.append((P_TITLE, MonolingualTextValue(details["title"], language)))
            if details.get("subtitle"):
                values.append((P_SUBTITLE, MonolingualTextValue(details["subtitle"], language)))
        if isinstance(details.get("number_of_pages"), int):
            values.append((P_PAGES, QuantityValue(details["number_of_pages"])))
        physical_format = (details.get("physical_format") or "").lower()
        if physical_format in ("paperback", "hardcover", "book"):
            values.append((P_INSTANCE_OF, ItemValue(BOOK)))
        time = publication_time(details.get("publish_date", ""))
        if time is not None:
            values.append((P_PUBLICATION_DATE, time))
        for author in details.get("authors", []):
            if author.get("name"):
                values.append((P_AUTHOR_NAME, StringValue(author["name"])))

        return [
            ProviderField(provider=self.provider, property=property, value=value, record_id=record_id,
                          stated_in=OPEN_LIBRARY, url=url, id_property=P_OPEN_LIBRARY_ID if record_id else None)
            for property, value in values
        ]
