from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import ClassVar, List, Optional, Set, Tuple

from wd_infernal.app_hooks import AppHooks
from wd_infernal.inference.model import (
    INFERNAL_HEURISTIC, KILOMETRE, P_LENGTH, ItemValue, Issue, QuantityValue, Reference, Statement,
    new_statement,
)
from wd_infernal.inference.queries import AdminContainmentRequest
from wd_infernal.lat_lon import LatLon
from wd_infernal.sources.interfaces import Sources
from .base import BaseRule, register_rule

logger = logging.getLogger(__name__)

P_LOCATED_IN_ADMIN = "P131"
INFERRED_FROM_COORDINATE = "Q96623327"  # inferred from coordinate location


@register_rule
@dataclass
class AdminContainmentRule(BaseRule):
    """
    Suggests the administrative entity (P131) of the place at a coordinate,
    from the P131 statements of entities located within ``radius_km``.
    """
    rule_id: str = "admin_containment"
    radius_km: float = 1.0
    max_results: int = 5
    confidence: float = 0.8
    app_hooks: Optional[AppHooks] = None

    request_types: ClassVar[Tuple[type, ...]] = (AdminContainmentRequest,)

    async def run(self, request: AdminContainmentRequest, sources: Sources, issues: List[Issue]) -> List[Statement]:
        coordinate = LatLon(request.latitude, request.longitude)
        graph = self.require(sources.graph, "graph")

        matches = await graph.nearby_by_property(P_LOCATED_IN_ADMIN, coordinate, self.radius_km)
        provenance = self.provenance(inputs=(coordinate.lat, coordinate.lon), method="coordinate_location")
        reference = Reference(heuristic=INFERNAL_HEURISTIC, inferred_from=INFERRED_FROM_COORDINATE)

        seen: Set[ItemValue] = set()
        statements: List[Statement] = []
        for match in matches:
            value = match.statement.value
            if not isinstance(value, ItemValue):
                continue
            distance = match.distance_km
            if distance is None and match.coordinate is not None:
                distance = coordinate.distance_km(match.coordinate)
            if distance is not None and distance > self.radius_km:
                logger.debug(f"{self.rule_id}: {match.item} is {distance:.3f} km away, outside radius")
                continue
            if value in seen:
                continue
            seen.add(value)

            statement = new_statement(None, P_LOCATED_IN_ADMIN, value)
            if distance is not None:
                statement = statement.with_qualifier(P_LENGTH, QuantityValue(round(distance, 3), KILOMETRE))
            statement = (
                statement.with_provenance(provenance)
                .with_confidence(self.confidence)
                .with_reference(reference)
            )
            statements.append(statement)
            if len(statements) >= self.max_results:
                break

        logger.debug(f"{self.rule_id}: {len(statements)} candidates near {coordinate}")
        return statements
