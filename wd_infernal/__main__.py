"""
Command-line entry point: run one inference rule and print its statements as JSON.

    python -m wd_infernal country_at_year Q1726 1900
    python -m wd_infernal admin_containment 52.1942 0.1301
    python -m wd_infernal initials_search "H.M.Manske"
    python -m wd_infernal change_wiki enwiki dewiki Magnus_Manske
"""
from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from dataclasses import asdict
from pathlib import Path
from typing import Optional, Sequence

from wd_infernal.errors import AdapterError, ValidationError
from wd_infernal.inference import InferenceConfig, InferenceEngine, InferenceResult
from wd_infernal.inference import queries
from wd_infernal.inference.change_wiki import change_wiki
from wd_infernal.sources import HttpClient, WikidataSource, build_sources

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="wd_infernal",
        description="Infer provenance-annotated candidate statements for Wikidata items.",
    )
    parser.add_argument("--config", type=Path, default=None, help="YAML configuration overriding the defaults")
    parser.add_argument("--log-level", default="WARNING",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"], help="Logging level")
    sub = parser.add_subparsers(dest="rule", required=True)

    p = sub.add_parser("admin_containment", help="Administrative entity (P131) at a coordinate")
    p.add_argument("latitude")
    p.add_argument("longitude")

    p = sub.add_parser("country_at_year", help="Country (or another property) of an item at a year")
    p.add_argument("item")
    p.add_argument("year")
    p.add_argument("--property", default=None)

    p = sub.add_parser("cross_categories", help="Category members from other language wikis")
    p.add_argument("item")
    p.add_argument("language")
    p.add_argument("--depth", default=0)

    p = sub.add_parser("reference_mining", help="References for an item's statements from linked pages")
    p.add_argument("item")

    p = sub.add_parser("isbn", help="Reconciled book record for an ISBN")
    p.add_argument("isbn")

    p = sub.add_parser("isbn_patch", help="New book statements for an item with an ISBN")
    p.add_argument("item")

    p = sub.add_parser("name_gender", help="Given names, family name and gender from a full name")
    p.add_argument("name")

    p = sub.add_parser("initials_search", help="Humans whose names expand a query with initials")
    p.add_argument("query")

    p = sub.add_parser("authority_search", help="VIAF clusters for a name")
    p.add_argument("query")

    p = sub.add_parser("change_wiki", help="Map page titles or item ids from one wiki to another")
    p.add_argument("wiki_from")
    p.add_argument("wiki_to")
    p.add_argument("titles", nargs="+")
    return parser


def build_request(args: argparse.Namespace):
    if args.rule == "admin_containment":
        return queries.AdminContainmentRequest(args.latitude, args.longitude)
    if args.rule == "country_at_year":
        return queries.CountryAtYearRequest(args.item, args.year, args.property)
    if args.rule == "cross_categories":
        return queries.CrossCategoriesRequest(args.item, args.language, args.depth)
    if args.rule == "reference_mining":
        return queries.ReferenceMiningRequest(args.item)
    if args.rule == "isbn":
        return queries.IsbnRecordRequest(args.isbn)
    if args.rule == "isbn_patch":
        return queries.IsbnPatchRequest(args.item)
    if args.rule == "name_gender":
        return queries.NameGenderRequest(args.name)
    if args.rule == "initials_search":
        return queries.InitialsSearchRequest(args.query)
    if args.rule == "authority_search":
        return queries.AuthoritySearchRequest(args.query)
    raise ValueError(f"Unknown rule {args.rule}")


def result_to_json(result: InferenceResult) -> dict:
    return {
        "rule": result.rule_id,
        "statements": [statement.to_json() for statement in result.statements],
        "issues": [asdict(issue) for issue in result.issues],
    }


async def run(config: InferenceConfig, request) -> InferenceResult:
    async with HttpClient.from_config(config) as http:
        engine = InferenceEngine(config, build_sources(http, config))
        return await engine.run(request)


async def run_change_wiki(config: InferenceConfig, wiki_from: str, wiki_to: str, titles: Sequence[str]) -> dict:
    async with HttpClient.from_config(config) as http:
        mapping = await change_wiki(WikidataSource.from_config(http, config), wiki_from, wiki_to, titles)
    return {"wiki_from": wiki_from, "wiki_to": wiki_to, "titles": mapping}


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level),
                        format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    config = InferenceConfig.from_yaml(args.config) if args.config else InferenceConfig()

    try:
        if args.rule == "change_wiki":
            output = asyncio.run(run_change_wiki(config, args.wiki_from, args.wiki_to, args.titles))
        else:
            output = result_to_json(asyncio.run(run(config, build_request(args))))
    except ValidationError as e:
        logger.error(f"Invalid request: {e}")
        return 2
    except AdapterError as e:
        logger.error(f"Source {e.source or 'unknown'} failed ({e.kind}): {e}")
        return 3
    except asyncio.TimeoutError:
        logger.error(f"Request timed out after {config.request_timeout_seconds}s")
        return 4

    json.dump(output, sys.stdout, indent=2, ensure_ascii=False)
    sys.stdout.write("\n")
    return 0


if __name__ == "__main__":
    sys.exit(main())
