"""
Tests for the command-line entry point.
"""
from __future__ import annotations

import asyncio
import json

import pytest

from wd_infernal import __main__ as cli
from wd_infernal.errors import AdapterError, ValidationError
from wd_infernal.inference import InferenceResult, Issue
from wd_infernal.inference import queries


@pytest.mark.parametrize("argv, expected", [
    (["admin_containment", "52.19", "0.13"], queries.AdminContainmentRequest("52.19", "0.13")),
    (["country_at_year", "Q1726", "1900"], queries.CountryAtYearRequest("Q1726", "1900", None)),
    (["country_at_year", "Q1726", "1900", "--property", "P131"],
     queries.CountryAtYearRequest("Q1726", "1900", "P131")),
    (["cross_categories", "Q10", "de", "--depth", "2"], queries.CrossCategoriesRequest("Q10", "de", "2")),
    (["reference_mining", "Q42"], queries.ReferenceMiningRequest("Q42")),
    (["isbn", "978-0-306-40615-7"], queries.IsbnRecordRequest("978-0-306-40615-7")),
    (["isbn_patch", "Q3107329"], queries.IsbnPatchRequest("Q3107329")),
    (["name_gender", "Magnus Manske"], queries.NameGenderRequest("Magnus Manske")),
    (["initials_search", "H.M.Manske"], queries.InitialsSearchRequest("H.M.Manske")),
    (["authority_search", "Magnus Manske"], queries.AuthoritySearchRequest("Magnus Manske")),
])
def test_build_request(argv, expected):
    """Test that each subcommand builds its typed request."""
    assert cli.build_request(cli.build_parser().parse_args(argv)) == expected


def test_subcommand_required():
    """Test that a missing subcommand is a usage error."""
    with pytest.raises(SystemExit):
        cli.build_parser().parse_args([])


def test_main_prints_result(monkeypatch, capsys):
    """Test that a successful run prints statements and issues as JSON."""
    async def fake_run(config, request):
        assert request == queries.NameGenderRequest("Magnus Manske")
        return InferenceResult("name_gender", [], [Issue("ambiguous", "info", "Tie", related_ids=("Q1", "Q2"))])
    monkeypatch.setattr(cli, "run", fake_run)

    assert cli.main(["name_gender", "Magnus Manske"]) == 0

    output = json.loads(capsys.readouterr().out)
    assert output["rule"] == "name_gender"
    assert output["statements"] == []
    assert output["issues"][0]["issue_type"] == "ambiguous"
    assert output["issues"][0]["related_ids"] == ["Q1", "Q2"]


@pytest.mark.parametrize("error, code", [
    (ValidationError("bad year"), 2),
    (AdapterError("down", source="wikidata", kind="network"), 3),
    (asyncio.TimeoutError(), 4),
])
def test_main_exit_codes(monkeypatch, capsys, error, code):
    """Test the exit code for each failure class; nothing is printed to stdout."""
    async def fake_run(config, request):
        raise error
    monkeypatch.setattr(cli, "run", fake_run)

    assert cli.main(["country_at_year", "Q1726", "abc"]) == code
    assert capsys.readouterr().out == ""


def test_main_config_file(monkeypatch, tmp_path):
    """Test that --config loads the YAML file."""
    path = tmp_path / "config.yaml"
    path.write_text("rule_confidence:\n  name_gender: 0.4\n")
    seen = {}

    async def fake_run(config, request):
        seen["config"] = config
        return InferenceResult("name_gender")
    monkeypatch.setattr(cli, "run", fake_run)

    assert cli.main(["--config", str(path), "name_gender", "Ada Lovelace"]) == 0
    assert seen["config"].confidence_for("name_gender") == 0.4


def test_change_wiki_prints_mapping(monkeypatch, capsys):
    """Test that change_wiki bypasses the rule engine and prints the title mapping."""
    async def fake_run_change_wiki(config, wiki_from, wiki_to, titles):
        assert (wiki_from, wiki_to, titles) == ("enwiki", "dewiki", ["Magnus_Manske", "Berlin"])
        return {"wiki_from": wiki_from, "wiki_to": wiki_to, "titles": {"Magnus Manske": "Magnus Manske"}}

    async def no_run(config, request):
        raise AssertionError("the rule engine must not run")
    monkeypatch.setattr(cli, "run_change_wiki", fake_run_change_wiki)
    monkeypatch.setattr(cli, "run", no_run)

    assert cli.main(["change_wiki", "enwiki", "dewiki", "Magnus_Manske", "Berlin"]) == 0

    output = json.loads(capsys.readouterr().out)
    assert output["titles"] == {"Magnus Manske": "Magnus Manske"}


def test_change_wiki_invalid_wiki(monkeypatch, capsys):
    """Test that an invalid wiki name is a validation failure."""
    async def fake_run_change_wiki(config, wiki_from, wiki_to, titles):
        raise ValidationError("Invalid wiki: '123'")
    monkeypatch.setattr(cli, "run_change_wiki", fake_run_change_wiki)

    assert cli.main(["change_wiki", "123", "dewiki", "X"]) == 2
    assert capsys.readouterr().out == ""


def test_change_wiki_needs_titles():
    """Test that change_wiki without titles is a usage error."""
    with pytest.raises(SystemExit):
        cli.build_parser().parse_args(["change_wiki", "enwiki", "dewiki"])
