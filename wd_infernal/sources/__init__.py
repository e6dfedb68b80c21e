"""Sources module: interfaces and aiohttp adapters for the external collaborators.

Interfaces:
    - GraphLookup, WikiCategoryGraph, PageFetcher, BibliographicLookup, AuthoritySearch
    - Sources: the collaborators handed to the inference rules

Adapters:
    - HttpClient: shared aiohttp session with bounded concurrency
    - WikidataSource: Wikidata action API, query service and wiki category APIs
    - HttpPageFetcher: page text for reference mining
    - GoogleBooksProvider, OpenLibraryProvider: bibliographic metadata
    - ViafSearch: VIAF authority clusters
"""

from .interfaces import Sources
from .interfaces import Labels
from .interfaces import NearbyMatch
from .interfaces import FetchResult
from .interfaces import ProviderField
from .interfaces import AuthorityId
from .interfaces import AuthorityRecord
from .http import HttpClient
from .wikidata import WikidataSource
from .pages import HttpPageFetcher
from .books import GoogleBooksProvider
from .books import OpenLibraryProvider
from .viaf import ViafSearch


def build_sources(http: HttpClient, config) -> Sources:
    """All concrete adapters wired to one session, as configured."""
    wikidata = WikidataSource.from_config(http, config)
    return Sources(
        graph=wikidata,
        categories=wikidata,
        pages=HttpPageFetcher.from_config(http, config),
        bibliographic=[GoogleBooksProvider(http), OpenLibraryProvider(http)],
        authority=ViafSearch(http),
    )


__all__ = [
    'Sources',
    'Labels',
    'NearbyMatch',
    'FetchResult',
    'ProviderField',
    'AuthorityId',
    'AuthorityRecord',
    'HttpClient',
    'WikidataSource',
    'HttpPageFetcher',
    'GoogleBooksProvider',
    'OpenLibraryProvider',
    'ViafSearch',
    'build_sources',
]
