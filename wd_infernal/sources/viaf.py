"""
viaf.py - VIAF authority search (SRU, JSON).

VIAF prefixes every key of a record with a per-record namespace ('ns2:',
'ns3:', ...), and returns a single record as an object instead of a list.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from wd_infernal.errors import AdapterError

from .http import HttpClient
from .interfaces import AuthorityId, AuthorityRecord

logger = logging.getLogger(__name__)

SOURCE = "viaf"


def _as_list(value: Any) -> List[Any]:
    if isinstance(value, list):
        return value
    if value is None:
        return []
    return [value]


def _cluster_of(record: Dict[str, Any]) -> Optional[tuple]:
    """(namespace prefix, cluster) of a record, e.g. ('ns2:', {...})."""
    for key, value in record.get("recordData", {}).items():
        if key.endswith(":VIAFCluster") and isinstance(value, dict):
            return key[:-len("VIAFCluster")], value
    return None


def _heading_ids(ns: str, heading: Dict[str, Any]) -> List[AuthorityId]:
    sources = heading.get(f"{ns}sources", {})
    if not isinstance(sources, dict):
        return []
    codes = _as_list(sources.get(f"{ns}s"))
    sids = _as_list(sources.get(f"{ns}sid"))
    text = heading.get(f"{ns}text") or ""
    ids = []
    for code, sid in zip(codes, sids):
        if not isinstance(code, str) or not isinstance(sid, str):
            continue
        # 'DNB|118529579' -> '118529579'
        ids.append(AuthorityId(code=code, id=sid.split("|", 1)[-1], text=text))
    return ids


def records_from_viaf(data: Dict[str, Any]) -> List[AuthorityRecord]:
    """
    AuthorityRecords from an SRU search response. Records without a cluster
    id or without any heading text are skipped.
    """
    try:
        response = data["searchRetrieveResponse"]
    except (KeyError, TypeError):
        raise AdapterError("Unexpected VIAF response shape", source=SOURCE, kind="shape")
    raw_records = _as_list((response.get("records") or {}).get("record"))

    records = []
    for record in raw_records:
        found = _cluster_of(record) if isinstance(record, dict) else None
        if found is None:
            continue
        ns, cluster = found
        about = (cluster.get(f"{ns}Document") or {}).get("about")
        if not isinstance(about, str):
            continue
        cluster_id = about.rstrip("/").rsplit("/", 1)[-1]

        headings = [h for h in _as_list((cluster.get(f"{ns}mainHeadings") or {}).get(f"{ns}data"))
                    if isinstance(h, dict)]
        label = next((h[f"{ns}text"] for h in headings if isinstance(h.get(f"{ns}text"), str)), None)
        if label is None:
            continue

        ids = [AuthorityId(code="VIAF", id=cluster_id)]
        for heading in headings:
            ids.extend(_heading_ids(ns, heading))
        records.append(AuthorityRecord(
            id=cluster_id,
            label=label,
            born=cluster.get(f"{ns}birthDate") if isinstance(cluster.get(f"{ns}birthDate"), str) else None,
            died=cluster.get(f"{ns}deathDate") if isinstance(cluster.get(f"{ns}deathDate"), str) else None,
            ids=tuple(ids),
        ))
    return records


class ViafSearch:
    search_url = "https://viaf.org/viaf/search"

    def __init__(self, http: HttpClient, max_records: int = 10):
        self.http = http
        self.max_records = max_records

    async def search(self, query: str) -> List[AuthorityRecord]:
        params = {'query': f"local.names = {query}", 'maximumRecords': self.max_records}
        data = await self.http.get_json(self.search_url, params=params,
                                        headers={'Accept': 'application/json'}, source=SOURCE)
        records = records_from_viaf(data)
        logger.debug(f"{SOURCE}: {len(records)} records for '{query}'")
        return records
