"""
Tests for the bibliographic providers and the VIAF adapter.
"""
from __future__ import annotations

import pytest

from wd_infernal.errors import AdapterError
from wd_infernal.inference.model import ItemValue, MonolingualTextValue, QuantityValue, StringValue, TimeValue
from wd_infernal.sources.books import (
    GoogleBooksProvider, OpenLibraryProvider, parse_google_books_feed, publication_time,
)
from wd_infernal.sources.viaf import ViafSearch, records_from_viaf

GOOGLE_FEED = """<feed xmlns='http://www.w3.org/2005/Atom' xmlns:dc='http://purl.org/dc/terms'>
 <title>Search results</title>
 <entry>
  <id>http://www.google.com/books/feeds/volumes/abc123_-X</id>
  <title type='text'>The Hitchhiker's Guide to the Galaxy</title>
  <dc:creator>Douglas Adams</dc:creator>
  <dc:date>1979-10-12</dc:date>
  <dc:format>224 pages</dc:format>
  <dc:format>book</dc:format>
  <dc:identifier>abc123_-X</dc:identifier>
  <dc:identifier>ISBN:0306406152</dc:identifier>
  <dc:language>en</dc:language>
  <dc:title>The Hitchhiker's Guide to the Galaxy</dc:title>
  <dc:title>A Trilogy in Four Parts</dc:title>
 </entry>
</feed>"""

OPEN_LIBRARY_DETAILS = {
    "key": "/books/OL7353617M",
    "title": "The Hitchhiker's Guide to the Galaxy",
    "subtitle": "A Trilogy",
    "languages": [{"key": "/languages/eng"}],
    "number_of_pages": 216,
    "physical_format": "Paperback",
    "publish_date": "October 12, 1979",
    "authors": [{"key": "/authors/OL272947A", "name": "Douglas Adams"}, {"key": "/authors/x"}],
}


class TestPublicationTime:
    """Tests for publication_time."""

    def test_day(self):
        """Test an ISO day."""
        assert publication_time("1979-10-12") == TimeValue("+1979-10-12T00:00:00Z", 11)

    def test_month(self):
        """Test an ISO month."""
        assert publication_time("1979-10") == TimeValue("+1979-10-00T00:00:00Z", 10)

    def test_year_in_text(self):
        """Test a free-text date with a year."""
        assert publication_time("October 12, 1979") == TimeValue.from_year(1979)

    def test_no_date(self):
        """Test text without a year."""
        assert publication_time("unknown") is None
        assert publication_time(None) is None


class TestGoogleBooks:
    """Tests for the Google Books feed mapping."""

    def test_parse_feed(self):
        """Test that Dublin Core elements are prefixed and Atom ones are not."""
        entry = parse_google_books_feed(GOOGLE_FEED)
        assert entry["dc:identifier"] == ["abc123_-X", "ISBN:0306406152"]
        assert entry["title"] == ["The Hitchhiker's Guide to the Galaxy"]

    def test_empty_feed(self):
        """Test a feed without entries."""
        assert parse_google_books_feed("<feed xmlns='http://www.w3.org/2005/Atom'></feed>") is None

    def test_invalid_feed(self):
        """Test that malformed XML is a shape error."""
        with pytest.raises(AdapterError) as e:
            parse_google_books_feed("<feed><entry>")
        assert e.value.kind == "shape"

    def test_fields(self):
        """Test the mapped properties and provider metadata."""
        fields = GoogleBooksProvider(http=None).fields_from_entry(parse_google_books_feed(GOOGLE_FEED))
        assert [(f.property, f.value) for f in fields] == [
            ("P675", StringValue("abc123_-X", "external-id")),
            ("P1476", MonolingualTextValue("The Hitchhiker's Guide to the Galaxy", "en")),
            ("P1680", MonolingualTextValue("A Trilogy in Four Parts", "en")),
            ("P1104", QuantityValue(224)),
            ("P31", ItemValue("Q571")),
            ("P577", TimeValue("+1979-10-12T00:00:00Z", 11)),
            ("P2093", StringValue("Douglas Adams")),
        ]
        assert {f.url for f in fields} == {"https://books.google.com/books?id=abc123_-X"}
        assert {f.stated_in for f in fields} == {"Q206033"}
        assert {f.id_property for f in fields} == {"P675"}

    def test_no_volume_id(self):
        """Test that an entry without a usable id is a shape error."""
        with pytest.raises(AdapterError):
            GoogleBooksProvider(http=None).fields_from_entry({"dc:identifier": ["ISBN:0306406152"]})

    def test_no_language_no_title(self):
        """Test that titles are only emitted with a known language."""
        fields = GoogleBooksProvider(http=None).fields_from_entry({"dc:identifier": ["x1"], "title": ["T"]})
        assert [f.property for f in fields] == ["P675"]

    @pytest.mark.asyncio
    async def test_lookup(self, scripted_http):
        """Test the feed request."""
        http = scripted_http(lambda url, params: GOOGLE_FEED)
        fields = await GoogleBooksProvider(http).lookup("9780306406157")
        assert fields
        assert http.calls[0]["params"]["q"] == "isbn:9780306406157"
        assert http.calls[0]["source"] == "google_books"


class TestOpenLibrary:
    """Tests for the Open Library mapping."""

    def test_fields(self):
        """Test the mapped properties and provider metadata."""
        fields = OpenLibraryProvider(http=None).fields_from_record(OPEN_LIBRARY_DETAILS)
        assert [(f.property, f.value) for f in fields] == [
            ("P648", StringValue("OL7353617M", "external-id")),
            ("P1476", MonolingualTextValue("The Hitchhiker's Guide to the Galaxy", "en")),
            ("P1680", MonolingualTextValue("A Trilogy", "en")),
            ("P1104", QuantityValue(216)),
            ("P31", ItemValue("Q571")),
            ("P577", TimeValue.from_year(1979)),
            ("P2093", StringValue("Douglas Adams")),
        ]
        assert fields[0].url == "https://openlibrary.org/books/OL7353617M"
        assert fields[0].stated_in == "Q1201876"

    @pytest.mark.asyncio
    async def test_lookup(self, scripted_http):
        """Test the bibkeys request and record selection."""
        http = scripted_http(lambda url, params: {"ISBN:9780306406157": {"details": OPEN_LIBRARY_DETAILS}})
        fields = await OpenLibraryProvider(http).lookup("9780306406157")
        assert fields[0].record_id == "OL7353617M"
        assert http.calls[0]["params"]["bibkeys"] == "ISBN:9780306406157"
        assert http.calls[0]["params"]["jscmd"] == "details"

    @pytest.mark.asyncio
    async def test_no_record(self, scripted_http):
        """Test an unknown ISBN."""
        http = scripted_http(lambda url, params: {})
        assert await OpenLibraryProvider(http).lookup("9780306406157") == []

    @pytest.mark.asyncio
    async def test_bad_shape(self, scripted_http):
        """Test a response that is not an object."""
        http = scripted_http(lambda url, params: [])
        with pytest.raises(AdapterError):
            await OpenLibraryProvider(http).lookup("9780306406157")


def viaf_record(ns: str, cluster_id: str, headings):
    return {"recordData": {f"{ns}VIAFCluster": {
        f"{ns}Document": {"about": f"http://viaf.org/viaf/{cluster_id}/"},
        f"{ns}mainHeadings": {f"{ns}data": headings},
        f"{ns}birthDate": "1970",
    }}}


class TestViaf:
    """Tests for the VIAF search adapter."""

    def test_single_record_object(self):
        """Test a single record returned as an object, with list and scalar sources."""
        record = viaf_record("ns2:", "24587106", [
            {"ns2:text": "Manske, Magnus",
             "ns2:sources": {"ns2:s": ["DNB", "LC"], "ns2:sid": ["DNB|1012345678", "LC|n  123"]}},
            {"ns2:text": "Manske, M.", "ns2:sources": {"ns2:s": "BNF", "ns2:sid": "BNF|12345"}},
        ])
        records = records_from_viaf({"searchRetrieveResponse": {"records": {"record": record}}})

        assert len(records) == 1
        cluster = records[0]
        assert cluster.id == "24587106"
        assert cluster.label == "Manske, Magnus"
        assert cluster.born == "1970"
        assert cluster.died is None
        assert [(i.code, i.id) for i in cluster.ids] == [
            ("VIAF", "24587106"), ("DNB", "1012345678"), ("LC", "n  123"), ("BNF", "12345"),
        ]
        assert cluster.ids[1].text == "Manske, Magnus"

    def test_record_list_and_namespace(self):
        """Test several records with their own namespace prefixes; records without headings are skipped."""
        records = records_from_viaf({"searchRetrieveResponse": {"records": {"record": [
            viaf_record("ns3:", "1", {"ns3:text": "A"}),
            viaf_record("ns4:", "2", []),
        ]}}})
        assert [(r.id, r.label) for r in records] == [("1", "A")]

    def test_no_records(self):
        """Test an empty search result."""
        assert records_from_viaf({"searchRetrieveResponse": {"numberOfRecords": "0"}}) == []

    def test_bad_shape(self):
        """Test a response without searchRetrieveResponse."""
        with pytest.raises(AdapterError):
            records_from_viaf({"error": "x"})

    @pytest.mark.asyncio
    async def test_search_request(self, scripted_http):
        """Test the SRU query."""
        http = scripted_http(lambda url, params: {"searchRetrieveResponse": {}})
        assert await ViafSearch(http, max_records=5).search("Magnus Manske") == []
        call = http.calls[0]
        assert call["params"] == {"query": "local.names = Magnus Manske", "maximumRecords": 5}
        assert call["headers"]["Accept"] == "application/json"
