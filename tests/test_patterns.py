import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from crawlpolicy import codec
from crawlpolicy import patterns as pt
from crawlpolicy.profile import CrawlProfile


SAMPLES = ["", "a", "https://example.com/", "10.0.0.1", "([", "line one\nline two", "x" * 500]


@pytest.mark.parametrize("dimension", pt.REGEX_DIMENSIONS, ids=lambda d: d.key)
def test_invalid_pattern_fails_closed(dimension):
    cache = pt.PatternCache({dimension.key: "([unclosed"})
    compiled = cache.get(dimension)
    assert compiled.fell_back
    assert compiled.source == "([unclosed"
    for sample in SAMPLES:
        assert not compiled.matches(sample)
    assert cache.fallbacks() == [dimension.key]


def test_compile_filter_reports_fallback_without_raising():
    result = pt.compile_filter("*bad", pt.MATCH_ALL_STRING)
    assert result.fell_back
    assert result.pattern is pt.MATCH_NEVER_PATTERN


def test_match_never_matches_nothing():
    for sample in SAMPLES:
        assert not pt.MATCH_NEVER.matches(sample)


def test_match_all_matches_everything():
    for sample in SAMPLES:
        assert pt.MATCH_ALL.matches(sample)


@pytest.mark.parametrize("dimension,expected", [
    (pt.CRAWLER_URL_MUST_MATCH, True),
    (pt.CRAWLER_URL_MUST_NOT_MATCH, False),
    (pt.CRAWLER_IP_MUST_MATCH, True),
    (pt.CRAWLER_IP_MUST_NOT_MATCH, False),
    (pt.CRAWLER_NO_DEPTH_LIMIT_MATCH, False),
    (pt.INDEX_URL_MUST_MATCH, True),
    (pt.INDEX_URL_MUST_NOT_MATCH, False),
    (pt.INDEX_CONTENT_MUST_MATCH, True),
    (pt.INDEX_CONTENT_MUST_NOT_MATCH, False),
])
def test_missing_keys_use_dimension_defaults(dimension, expected):
    compiled = pt.PatternCache({}).get(dimension)
    assert not compiled.fell_back
    assert compiled.matches("https://example.com/page") is expected


def test_patterns_are_case_insensitive_full_matches():
    cache = pt.PatternCache({codec.CRAWLER_URL_MUSTMATCH: r"https://example\.com/.*"})
    compiled = cache.get(pt.CRAWLER_URL_MUST_MATCH)
    assert compiled.matches("HTTPS://EXAMPLE.COM/Page")
    # full match, not search
    assert not compiled.matches("see https://example.com/page")


def test_content_patterns_span_lines():
    cache = pt.PatternCache({codec.INDEXING_CONTENT_MUSTMATCH: ".*python.*"})
    assert cache.get(pt.INDEX_CONTENT_MUST_MATCH).matches("first line\nPython here\nlast line")


def test_compiled_filters_are_memoized():
    p = CrawlProfile.create("job", crawler_url_must_match=r".*\.example\.com/.*")
    first = p.url_must_match
    assert p.url_must_match is first
    assert p.patterns.get(pt.CRAWLER_URL_MUST_MATCH) is first


def test_memo_computes_once():
    calls = []

    def factory():
        calls.append(1)
        return "value"

    memo = pt.Memo(factory)
    assert not memo.computed
    assert memo.get() == "value"
    assert memo.get() == "value"
    assert memo.computed
    assert len(calls) == 1


def test_concurrent_first_access_yields_equal_patterns():
    cache = pt.PatternCache({codec.CRAWLER_URL_MUSTMATCH: r"https?://example\.com/.*"})
    barrier = threading.Barrier(8)

    def read():
        barrier.wait()
        return cache.get(pt.CRAWLER_URL_MUST_MATCH)

    with ThreadPoolExecutor(max_workers=8) as executor:
        results = list(executor.map(lambda _: read(), range(8)))
    assert {r.pattern.pattern for r in results} == {r"https?://example\.com/.*"}
    assert all(r == results[0] for r in results)


def test_country_list_parsing():
    cache = pt.PatternCache({codec.CRAWLER_COUNTRY_MUSTMATCH: "de, at,,CH "})
    assert cache.countries() == ("DE", "AT", "CH")
    assert pt.PatternCache({}).countries() == ()


@pytest.mark.parametrize("source", [
    "a{4294967296}",
    "(" * 5000 + ")" * 5000,
])
def test_uncompilable_pattern_falls_back_without_raising(source):
    cache = pt.PatternCache({codec.CRAWLER_URL_MUSTNOTMATCH: source})
    compiled = cache.get(pt.CRAWLER_URL_MUST_NOT_MATCH)
    assert compiled.fell_back
    for sample in SAMPLES:
        assert not compiled.matches(sample)
