from crawlpolicy.patterns import MATCH_ALL
from crawlpolicy.tags import parse_collections


def test_parse_collections_keeps_order_and_patterns():
    tags = parse_collections("news:http.*,blog")
    assert list(tags) == ["news", "blog"]
    assert tags["news"].source == "http.*"
    assert tags["news"].matches("https://example.com/")
    assert not tags["news"].matches("ftp://example.com/")
    assert tags["blog"] is MATCH_ALL


def test_parse_collections_empty_input():
    assert parse_collections(None) == {}
    assert parse_collections("") == {}


def test_parse_collections_skips_empty_tokens():
    assert list(parse_collections("a,,b,")) == ["a", "b"]


def test_parse_collections_bad_regex_only_affects_its_tag():
    tags = parse_collections("broken:([,fine:.*ok.*")
    assert tags["broken"].fell_back
    assert not tags["broken"].matches("anything")
    assert not tags["fine"].fell_back
    assert tags["fine"].matches("this is OK")


def test_parse_collections_splits_on_first_colon():
    tags = parse_collections("ports:https?://host:8080/.*")
    assert tags["ports"].source == "https?://host:8080/.*"


def test_parse_collections_oversized_repetition_fails_closed():
    tags = parse_collections("news:a{4294967296},blog")
    assert tags["news"].fell_back
    assert not tags["news"].matches("a")
    assert tags["blog"] is MATCH_ALL


def test_tag_patterns_ignore_case():
    tags = parse_collections("news:HTTP.*")
    assert tags["news"].matches("http://x")
    assert tags["news"].matches("HTTP://X")
