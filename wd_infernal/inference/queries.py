"""
Typed requests, one variant per inference rule.

Requests carry raw caller input; each rule validates and normalises its own
request before contacting any source.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional, Union


@dataclass(frozen=True)
class AdminContainmentRequest:
    latitude: Any
    longitude: Any


@dataclass(frozen=True)
class CountryAtYearRequest:
    item: str
    year: Any
    property: Optional[str] = None


@dataclass(frozen=True)
class CrossCategoriesRequest:
    item: str
    language: str
    depth: Any = 0


@dataclass(frozen=True)
class ReferenceMiningRequest:
    item: str


@dataclass(frozen=True)
class IsbnRecordRequest:
    isbn: str


@dataclass(frozen=True)
class IsbnPatchRequest:
    item: str


@dataclass(frozen=True)
class NameGenderRequest:
    name: str


@dataclass(frozen=True)
class InitialsSearchRequest:
    query: str


@dataclass(frozen=True)
class AuthoritySearchRequest:
    query: str


Request = Union[
    AdminContainmentRequest,
    CountryAtYearRequest,
    CrossCategoriesRequest,
    ReferenceMiningRequest,
    IsbnRecordRequest,
    IsbnPatchRequest,
    NameGenderRequest,
    InitialsSearchRequest,
    AuthoritySearchRequest,
]

REQUEST_TYPES = (
    AdminContainmentRequest,
    CountryAtYearRequest,
    CrossCategoriesRequest,
    ReferenceMiningRequest,
    IsbnRecordRequest,
    IsbnPatchRequest,
    NameGenderRequest,
    InitialsSearchRequest,
    AuthoritySearchRequest,
)
