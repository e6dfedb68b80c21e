"""
wikidata.py - Wikidata and MediaWiki adapter.

WikidataSource implements GraphLookup and WikiCategoryGraph on top of:
    - wbgetentities (entity JSON, cached per instance)
    - list=search (CirrusSearch) for label lookups
    - the query service's wikibase:around for nearby entities
    - list=categorymembers and prop=extlinks on any Wikimedia wiki
"""
from __future__ import annotations

import asyncio
import logging
import re
from typing import Any, Dict, List, Optional, Sequence, Tuple

from wd_infernal.errors import AdapterError, ValidationError
from wd_infernal.inference.model import ENTITY_PREFIX, ItemValue, Statement, is_entity_id, new_statement
from wd_infernal.inference.text_utils import web_server_for_wiki
from wd_infernal.lat_lon import LatLon

from .http import HttpClient
from .interfaces import Labels, NearbyMatch

logger = logging.getLogger(__name__)

SOURCE = "wikidata"
ENTITY_BATCH = 50
SEARCH_BATCH = 50
DISAMBIGUATION_PAGE = "Q4167410"

_POINT_RE = re.compile(r'^\s*Point\(\s*(\S+)\s+(\S+)\s*\)\s*$', re.IGNORECASE)

NEARBY_SPARQL = """SELECT ?q ?value ?loc ?distance {{
  ?q wdt:P625 ?loc ; wdt:{property} ?value .
  SERVICE wikibase:around {{
    ?q wdt:P625 ?loc .
    bd:serviceParam wikibase:center "{point}"^^geo:wktLiteral .
    bd:serviceParam wikibase:radius "{radius_km}" .
    bd:serviceParam wikibase:distance ?distance
  }}
}}
ORDER BY ?distance
LIMIT {limit}"""


def wiki_api_url(wiki: str) -> str:
    return f"https://{web_server_for_wiki(wiki)}/w/api.php"


def entity_id_from_uri(uri: str) -> Optional[str]:
    """'http://www.wikidata.org/entity/Q42' -> 'Q42'; None for anything else."""
    if not isinstance(uri, str) or not uri.startswith(ENTITY_PREFIX):
        return None
    entity_id = uri[len(ENTITY_PREFIX):]
    return entity_id if is_entity_id(entity_id) else None


def parse_wkt_point(text: str) -> Optional[LatLon]:
    """Query service WKT literal 'Point(lon lat)' to LatLon."""
    match = _POINT_RE.match(text or "")
    if not match:
        return None
    try:
        return LatLon(match.group(2), match.group(1))
    except ValidationError:
        return None


def nearby_from_sparql(data: Dict[str, Any], property: str) -> List[NearbyMatch]:
    """NearbyMatch list from a wikibase:around result, in result order."""
    try:
        bindings = data["results"]["bindings"]
    except (KeyError, TypeError):
        raise AdapterError("Unexpected SPARQL result shape", source=SOURCE, kind="shape")
    matches = []
    for row in bindings:
        item = entity_id_from_uri(row.get("q", {}).get("value"))
        value = entity_id_from_uri(row.get("value", {}).get("value"))
        if item is None or value is None:
            continue
        distance = row.get("distance", {}).get("value")
        try:
            distance_km = float(distance) if distance is not None else None
        except ValueError:
            distance_km = None
        matches.append(NearbyMatch(
            item=item,
            statement=new_statement(item, property, ItemValue(value)),
            distance_km=distance_km,
            coordinate=parse_wkt_point(row.get("loc", {}).get("value", "")),
        ))
    return matches


def labels_from_entity(entity: Dict[str, Any]) -> Labels:
    labels = {lang: v["value"] for lang, v in entity.get("labels", {}).items() if "value" in v}
    aliases = {
        lang: tuple(a["value"] for a in values if "value" in a)
        for lang, values in entity.get("aliases", {}).items()
    }
    return Labels(labels=labels, aliases=aliases)


def statements_from_entity(entity: Dict[str, Any], property: Optional[str] = None) -> List[Statement]:
    subject = entity.get("id")
    claims = entity.get("claims", {})
    properties = [property] if property else list(claims)
    statements = []
    for p in properties:
        for claim in claims.get(p, []):
            statement = Statement.from_json(claim, subject=subject)
            if statement is not None:
                statements.append(statement)
    return statements


def titles_from_query(data: Dict[str, Any], list_name: str) -> List[str]:
    """Page titles of a list=... query result (formatversion 1 or 2)."""
    return [page["title"] for page in data.get("query", {}).get(list_name, []) if "title" in page]


def extlinks_from_query(data: Dict[str, Any]) -> List[str]:
    """External link URLs of a prop=extlinks query result (formatversion 1 or 2)."""
    pages = data.get("query", {}).get("pages", [])
    if isinstance(pages, dict):
        pages = list(pages.values())
    urls = []
    for page in pages:
        for link in page.get("extlinks", []):
            url = link.get("url") or link.get("*")
            if url and url not in urls:
                urls.append(url)
    return urls


class WikidataSource:
    """
    Graph and category adapter for Wikidata and the Wikimedia wikis.

    Entity JSON is cached per instance; the cache holds immutable snapshots
    and is never invalidated during the instance's lifetime.
    """

    def __init__(self, http: HttpClient, api_url: str = "https://www.wikidata.org/w/api.php",
                 sparql_url: str = "https://query.wikidata.org/sparql", nearby_limit: int = 50,
                 max_continuations: int = 20, max_search_results: int = 500):
        self.http = http
        self.api_url = api_url
        self.sparql_url = sparql_url
        self.nearby_limit = nearby_limit
        self.max_continuations = max_continuations
        self.max_search_results = max_search_results
        self._entities: Dict[str, Dict[str, Any]] = {}
        self._page_items: Dict[Tuple[str, str], Optional[str]] = {}

    @classmethod
    def from_config(cls, http: HttpClient, config) -> WikidataSource:
        return cls(http, api_url=config.wikidata_api_url, sparql_url=config.sparql_url)

    # ---------- entities ----------

    async def entities(self, ids: Sequence[str]) -> Dict[str, Dict[str, Any]]:
        """Entity JSON by id; missing entities map to an empty dict."""
        wanted = list(dict.fromkeys(i.upper() for i in ids))
        missing = [i for i in wanted if i not in self._entities]
        batches = [missing[i:i + ENTITY_BATCH] for i in range(0, len(missing), ENTITY_BATCH)]
        for data in await asyncio.gather(*(self._load_entities(batch) for batch in batches)):
            self._entities.update(data)
        return {i: self._entities.get(i, {}) for i in wanted}

    async def entity(self, item: str) -> Dict[str, Any]:
        return (await self.entities([item]))[item.upper()]

    async def _load_entities(self, ids: List[str]) -> Dict[str, Dict[str, Any]]:
        params = {
            'action': 'wbgetentities',
            'ids': '|'.join(ids),
            'props': 'labels|aliases|claims|sitelinks',
            'format': 'json',
        }
        data = await self.http.get_json(self.api_url, params=params, source=SOURCE)
        if "error" in data:
            raise AdapterError(f"wbgetentities failed: {data['error'].get('info', data['error'])}",
                               source=SOURCE, kind="shape")
        loaded = {}
        for entity_id in ids:
            entity = data.get("entities", {}).get(entity_id, {})
            loaded[entity_id] = {} if "missing" in entity else entity
        logger.debug(f"Loaded {len(ids)} entities")
        return loaded

    # ---------- GraphLookup ----------

    async def statements_of(self, item: str, property: Optional[str] = None) -> List[Statement]:
        return statements_from_entity(await self.entity(item), property)

    async def labels_of(self, item: str) -> Labels:
        return labels_from_entity(await self.entity(item))

    async def items_matching_label(self, text: str, language: Optional[str] = None,
                                   instance_of: Optional[str] = None) -> List[str]:
        """
        Items whose label or alias matches text, following search continuation
        up to max_search_results. instance_of narrows the search to items with
        that P31 value.
        """
        search = f'inlabel:"{text}@{language}"' if language else text
        if instance_of:
            search = f"{search} haswbstatement:P31={instance_of}"
        params = {
            'action': 'query',
            'list': 'search',
            'srsearch': search,
            'srnamespace': 0,
            'srlimit': SEARCH_BATCH,
            'format': 'json',
        }
        titles = await self._query_all(self.api_url, SOURCE, params, lambda data: titles_from_query(data, "search"),
                                       limit=self.max_search_results)
        return [t for t in titles if is_entity_id(t)]

    async def nearby_by_property(self, property: str, coordinate: LatLon, radius_km: float) -> List[NearbyMatch]:
        query = NEARBY_SPARQL.format(property=property, point=coordinate.to_wkt(), radius_km=radius_km,
                                     limit=self.nearby_limit)
        data = await self.http.get_json(
            self.sparql_url,
            params={'query': query, 'format': 'json'},
            headers={'Accept': 'application/sparql-results+json'},
            source=SOURCE,
        )
        return nearby_from_sparql(data, property)

    # ---------- WikiCategoryGraph ----------

    async def sitelinks_of(self, item: str) -> Dict[str, str]:
        entity = await self.entity(item)
        return {site: link["title"] for site, link in entity.get("sitelinks", {}).items() if "title" in link}

    async def sitelink_exists(self, item: str, wiki: str) -> bool:
        return wiki in await self.sitelinks_of(item)

    async def is_disambiguation(self, item: str) -> bool:
        return any(
            isinstance(s.value, ItemValue) and s.value.id == DISAMBIGUATION_PAGE
            for s in await self.statements_of(item, "P31")
        )

    async def item_for_page(self, wiki: str, page: str) -> Optional[str]:
        key = (wiki, page)
        if key in self._page_items:
            return self._page_items[key]
        params = {
            'action': 'wbgetentities',
            'sites': wiki,
            'titles': page,
            'props': 'info',
            'format': 'json',
        }
        data = await self.http.get_json(self.api_url, params=params, source=SOURCE)
        item = next((entity_id for entity_id, entity in data.get("entities", {}).items()
                     if "missing" not in entity and is_entity_id(entity_id)), None)
        self._page_items[key] = item
        return item

    async def subcategories_of(self, wiki: str, page: str) -> List[str]:
        return await self._category_members(wiki, page, {'cmtype': 'subcat'})

    async def members_of(self, wiki: str, page: str) -> List[str]:
        return await self._category_members(wiki, page, {'cmtype': 'page', 'cmnamespace': 0})

    async def _category_members(self, wiki: str, page: str, extra: Dict[str, Any]) -> List[str]:
        params = {
            'action': 'query',
            'list': 'categorymembers',
            'cmtitle': page,
            'cmlimit': 500,
            'format': 'json',
        }
        params.update(extra)
        return await self._query_all(wiki_api_url(wiki), wiki, params,
                                     lambda data: titles_from_query(data, "categorymembers"))

    async def external_links(self, wiki: str, page: str) -> List[str]:
        params = {
            'action': 'query',
            'prop': 'extlinks',
            'titles': page.replace(' ', '_'),
            'ellimit': 500,
            'elexpandurl': 1,
            'format': 'json',
        }
        return await self._query_all(wiki_api_url(wiki), wiki, params, extlinks_from_query)

    async def _query_all(self, url: str, source: str, params: Dict[str, Any], extract,
                         limit: Optional[int] = None) -> List[str]:
        """Follow 'continue' until exhausted, limit results are collected or max_continuations is reached."""
        results: List[str] = []
        for _ in range(self.max_continuations):
            data = await self.http.get_json(url, params=params, source=source)
            for value in extract(data):
                if value not in results:
                    results.append(value)
            if limit is not None and len(results) >= limit:
                logger.info(f"{source}: stopped at {limit} results of {params}")
                return results[:limit]
            if "continue" not in data:
                break
            params = dict(params)
            params.update(data["continue"])
        else:
            logger.warning(f"{source}: stopped after {self.max_continuations} continuations of {params}")
        return results
