"""URL identity key / 해시 유틸 테스트"""
import pytest

from searchgate.engine.query import Category, Query
from searchgate.utils import generate_cache_key, generate_rate_key, identity_key, is_http_url, is_tracking_param


class TestIdentityKey:
    """엔진 간 동일 결과 판별"""

    def test_scheme_and_www_are_ignored(self):
        assert identity_key("http://www.example.com/a") == identity_key("https://example.com/a")

    def test_host_is_case_insensitive_path_is_not(self):
        assert identity_key("https://EXAMPLE.com/Docs") == "example.com/Docs"

    def test_trailing_slash_and_fragment_removed(self):
        assert identity_key("https://example.com/docs/#intro") == "example.com/docs"

    def test_tracking_params_removed_and_rest_sorted(self):
        key = identity_key("https://example.com/p?utm_source=news&b=2&fbclid=xyz&a=1")
        assert key == "example.com/p?a=1&b=2"

    def test_default_port_dropped_custom_port_kept(self):
        assert identity_key("https://example.com:443/x") == "example.com/x"
        assert identity_key("https://example.com:8443/x") == "example.com:8443/x"

    def test_percent_encoding_normalized(self):
        assert identity_key("https://example.com/caf%C3%A9") == identity_key("https://example.com/café")

    def test_distinct_pages_stay_distinct(self):
        assert identity_key("https://example.com/a") != identity_key("https://example.com/b")

    def test_unparseable_input_falls_back(self):
        assert identity_key("  Not A URL ") == "not a url"


class TestUrlPredicates:

    @pytest.mark.parametrize("url", ["https://example.com", "http://example.com/x?y=1"])
    def test_http_urls(self, url):
        assert is_http_url(url)

    @pytest.mark.parametrize("url", [None, "", "ftp://example.com/file", "javascript:alert(1)", "/relative/path", 42])
    def test_non_http_urls(self, url):
        assert not is_http_url(url)

    def test_tracking_params(self):
        assert is_tracking_param("utm_campaign")
        assert is_tracking_param("GCLID")
        assert not is_tracking_param("page")


class TestCacheKey:
    """정규화된 Query → 캐시 키"""

    def test_whitespace_and_case_insensitive(self):
        a = Query(text="Docker  Compose")
        b = Query(text="docker compose")
        assert generate_cache_key(a) == generate_cache_key(b)

    def test_category_order_does_not_matter(self):
        a = Query(text="x", categories=frozenset({Category.NEWS, Category.IT}))
        b = Query(text="x", categories=frozenset({Category.IT, Category.NEWS}))
        assert generate_cache_key(a) == generate_cache_key(b)

    def test_page_and_language_change_key(self):
        base = Query(text="x")
        assert generate_cache_key(base) != generate_cache_key(Query(text="x", page=2))
        assert generate_cache_key(base) != generate_cache_key(Query(text="x", language="de"))

    def test_key_prefixes(self):
        assert generate_cache_key(Query(text="x")).startswith("search:")
        assert generate_rate_key("wikipedia") == "rate:inflight:wikipedia"
