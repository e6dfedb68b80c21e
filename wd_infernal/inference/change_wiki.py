"""
change_wiki.py - Map page titles from one wiki to another through Wikidata sitelinks.

The pseudo-wiki 'wikidatawiki' stands for item ids, so the same call maps
pages to items, items to pages and pages on one wiki to pages on another.
"""
from __future__ import annotations

import asyncio
import logging
import re
from typing import Dict, Optional, Sequence

from wd_infernal.errors import ValidationError
from wd_infernal.sources.interfaces import WikiCategoryGraph
from .rules.base import normalize_item

logger = logging.getLogger(__name__)

WIKIDATA_WIKI = "wikidatawiki"

_NOT_WIKI_CHARS_RE = re.compile(r'[^a-z_]')


def normalize_wiki(wiki: str) -> str:
    """
    Lowercase site id with anything but letters and underscores removed: ' DEwiki ' -> 'dewiki'.

    Raises:
        ValidationError: If nothing is left.
    """
    if not isinstance(wiki, str):
        raise ValidationError(f"Invalid wiki: {wiki!r}")
    normalized = _NOT_WIKI_CHARS_RE.sub("", wiki.strip().lower())
    if not normalized:
        raise ValidationError(f"Invalid wiki: {wiki!r}")
    return normalized


async def change_wiki(categories: WikiCategoryGraph, wiki_from: str, wiki_to: str,
                      titles: Sequence[str]) -> Dict[str, str]:
    """
    Map titles on wiki_from to titles on wiki_to.

    Keys are the normalised source titles: item ids in upper case, page
    titles with underscores as spaces. Titles without a counterpart on
    wiki_to are left out. Within one wiki every title maps to itself.

    Raises:
        ValidationError: If a wiki name is empty or an item id is malformed.
        AdapterError: If a lookup fails.
    """
    wiki_from = normalize_wiki(wiki_from)
    wiki_to = normalize_wiki(wiki_to)
    if wiki_from == wiki_to:
        return {title: title for title in titles}
    if wiki_from == WIKIDATA_WIKI:
        return await _items_to_pages(categories, [normalize_item(t) for t in titles], wiki_to)
    page_items = await _pages_to_items(categories, wiki_from, titles)
    if wiki_to == WIKIDATA_WIKI:
        return page_items
    item_pages = await _items_to_pages(categories, list(dict.fromkeys(page_items.values())), wiki_to)
    mapping = {page: item_pages[item] for page, item in page_items.items() if item in item_pages}
    logger.debug(f"{wiki_from} -> {wiki_to}: {len(mapping)} of {len(titles)} titles mapped")
    return mapping


async def _items_to_pages(categories: WikiCategoryGraph, items: Sequence[str], wiki: str) -> Dict[str, str]:
    sitelinks = await asyncio.gather(*(categories.sitelinks_of(item) for item in items))
    return {item: links[wiki] for item, links in zip(items, sitelinks) if wiki in links}


async def _pages_to_items(categories: WikiCategoryGraph, wiki: str, titles: Sequence[str]) -> Dict[str, str]:
    pages = list(dict.fromkeys(title.replace('_', ' ') for title in titles))
    items: Sequence[Optional[str]] = await asyncio.gather(*(categories.item_for_page(wiki, page) for page in pages))
    return {page: item for page, item in zip(pages, items) if item}
