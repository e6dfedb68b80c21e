"""
Interfaces of the external collaborators the inference rules consume.

All methods are coroutines. Implementations raise ``AdapterError`` when a
lookup cannot be completed; "nothing found" is an empty result, never an error.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Dict, List, Optional, Protocol, Tuple

if TYPE_CHECKING:
    from wd_infernal.inference.model import ItemId, PropertyId, Statement, Value
    from wd_infernal.lat_lon import LatLon

FETCH_ERRORS = ("timeout", "http_error", "not_text", "blocked", "network")


@dataclass(frozen=True)
class NearbyMatch:
    """
    An entity found near a coordinate together with its statement for the queried property.

    Attributes:
        item (ItemId): The entity carrying the statement (e.g. a building).
        statement (Statement): Its statement for the queried property.
        distance_km (float): Distance from the query point, if the source computed it.
        coordinate (LatLon): The entity's coordinate, if known.
    """
    item: ItemId
    statement: Statement
    distance_km: Optional[float] = None
    coordinate: Optional[LatLon] = None


@dataclass(frozen=True)
class Labels:
    """Labels and aliases of an entity, keyed by language code ('mul' included)."""
    labels: Dict[str, str] = field(default_factory=dict)
    aliases: Dict[str, Tuple[str, ...]] = field(default_factory=dict)

    def in_language(self, language: str) -> List[str]:
        """Label followed by aliases in one language."""
        names = [self.labels[language]] if language in self.labels else []
        names.extend(self.aliases.get(language, ()))
        return names

    def all_names(self) -> List[str]:
        """Every label and alias, de-duplicated, labels first."""
        names: List[str] = []
        for name in list(self.labels.values()) + [a for aliases in self.aliases.values() for a in aliases]:
            if name not in names:
                names.append(name)
        return names


@dataclass(frozen=True)
class FetchResult:
    """
    Outcome of fetching one page. ``error`` is None on success, else one of
    'timeout', 'http_error', 'not_text', 'blocked', 'network'.
    """
    url: str
    text: str = ""
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class ProviderField:
    """A bibliographic field already mapped to a Wikibase property."""
    provider: str
    property: PropertyId
    value: Value
    record_id: Optional[str] = None
    stated_in: Optional[ItemId] = None
    url: Optional[str] = None
    id_property: Optional[PropertyId] = None


@dataclass(frozen=True)
class AuthorityId:
    """A source record inside an authority cluster, e.g. ('DNB', '118529579')."""
    code: str
    id: str
    text: str = ""


@dataclass(frozen=True)
class AuthorityRecord:
    id: str
    label: str = ""
    born: Optional[str] = None
    died: Optional[str] = None
    ids: Tuple[AuthorityId, ...] = ()


class GraphLookup(Protocol):
    async def statements_of(self, item: ItemId, property: Optional[PropertyId] = None) -> List[Statement]:
        ...

    async def items_matching_label(self, text: str, language: Optional[str] = None,
                                   instance_of: Optional[ItemId] = None) -> List[ItemId]:
        ...

    async def nearby_by_property(self, property: PropertyId, coordinate: LatLon, radius_km: float) -> List[NearbyMatch]:
        ...

    async def labels_of(self, item: ItemId) -> Labels:
        ...


class WikiCategoryGraph(Protocol):
    async def subcategories_of(self, wiki: str, page: str) -> List[str]:
        ...

    async def members_of(self, wiki: str, page: str) -> List[str]:
        ...

    async def item_for_page(self, wiki: str, page: str) -> Optional[ItemId]:
        ...

    async def sitelink_exists(self, item: ItemId, wiki: str) -> bool:
        ...

    async def is_disambiguation(self, item: ItemId) -> bool:
        ...

    async def sitelinks_of(self, item: ItemId) -> Dict[str, str]:
        ...

    async def external_links(self, wiki: str, page: str) -> List[str]:
        ...


class PageFetcher(Protocol):
    async def fetch_text(self, url: str) -> FetchResult:
        ...


class BibliographicLookup(Protocol):
    provider: str

    async def lookup(self, isbn: str) -> List[ProviderField]:
        ...


class AuthoritySearch(Protocol):
    async def search(self, query: str) -> List[AuthorityRecord]:
        ...


@dataclass
class Sources:
    """
    The collaborators available to the rules. Rules only touch the ones they need;
    a rule whose required source is missing fails with ValueError at run time.
    """
    graph: Optional[GraphLookup] = None
    categories: Optional[WikiCategoryGraph] = None
    pages: Optional[PageFetcher] = None
    bibliographic: List[BibliographicLookup] = field(default_factory=list)
    authority: Optional[AuthoritySearch] = None
