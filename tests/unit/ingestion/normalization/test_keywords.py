"""Unit tests for performer keyword extraction."""

import pytest

from eventcatalog.ingestion.normalization import (
    extract_keywords,
    is_generic_query,
    primary_keyword,
)

# =============================================================================
# TEST CLASSES
# =============================================================================


class TestExtractKeywords:
    """Title decorations are stripped and collaborations split."""

    @pytest.mark.parametrize(
        "title, expected",
        [
            ("An Evening with Jason Isbell & Amanda Shires", ["Jason Isbell", "Amanda Shires"]),
            ("Bob Dylan - Rough and Rowdy Ways World Tour 2025", ["Bob Dylan"]),
            ("Khruangbin (Sold Out)", ["Khruangbin"]),
            ("Jason Isbell Live in Austin", ["Jason Isbell"]),
            ("Leon Bridges feat. Khruangbin", ["Leon Bridges", "Khruangbin"]),
            ("Texas vs. Arkansas", ["Texas", "Arkansas"]),
        ],
    )
    def test_extraction(self, title, expected):
        assert extract_keywords(title) == expected

    def test_venue_name_removed(self):
        assert extract_keywords("Gary Clark Jr. at Moody Center") == ["Gary Clark Jr."]

    def test_venue_name_argument_removed(self):
        assert extract_keywords("Stubb's Gospel Brunch", venue_name="Stubb's") == [
            "Gospel Brunch"
        ]

    def test_protected_phrase_not_split(self):
        assert extract_keywords("Mumford and Sons") == ["Mumford and Sons"]

    def test_nothing_left(self):
        assert extract_keywords("Live") == []

    def test_empty_title(self):
        assert extract_keywords("") == []


class TestPrimaryKeyword:
    """First keyword or None."""

    def test_first_keyword(self):
        assert primary_keyword("Leon Bridges with Special Guests") == "Leon Bridges"

    def test_none_when_empty(self):
        assert primary_keyword("Live") is None


class TestIsGenericQuery:
    """Seasonal terms and very short queries are not worth searching."""

    @pytest.mark.parametrize("query", ["Christmas", "gospel", " brunch ", "ABC", ""])
    def test_generic(self, query):
        assert is_generic_query(query)

    @pytest.mark.parametrize("query", ["Gospel Brunch", "Bob Dylan", "Khruangbin"])
    def test_not_generic(self, query):
        assert not is_generic_query(query)
