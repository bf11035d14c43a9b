"""Query 파싱/검증 테스트"""
import pytest

from searchgate.core.exceptions import InvalidQueryException, ValidationException
from searchgate.engine.query import MAX_PAGE, MAX_QUERY_LENGTH, Category, Query, parse_query


def _resolver(token):
    return {"wp": "wikipedia", "wikipedia": "wikipedia", "hn": "hackernews"}.get(token)


class TestParseQuery:

    def test_defaults(self):
        query = parse_query("docker")
        assert query == Query(text="docker")
        assert query.categories == frozenset({Category.GENERAL})
        assert query.engines is None
        assert query.page == 1

    def test_comma_separated_parameters(self):
        query = parse_query("docker", categories="it, news", engines="wikipedia,hackernews", pageno="3")
        assert query.categories == frozenset({Category.IT, Category.NEWS})
        assert query.engines == frozenset({"wikipedia", "hackernews"})
        assert query.page == 3

    def test_inline_selectors(self):
        query = parse_query("!news !wp docker :de", resolve_engine=_resolver)
        assert query.text == "docker"
        assert query.categories == frozenset({Category.NEWS})
        assert query.engines == frozenset({"wikipedia"})
        assert query.language == "de"

    def test_unknown_bang_stays_in_text(self):
        query = parse_query("!nope docker", resolve_engine=_resolver)
        assert query.text == "!nope docker"
        assert query.engines is None

    def test_explicit_language_wins_over_inline(self):
        query = parse_query("docker :de", language="fr")
        assert query.language == "fr"

    def test_language_all_means_none(self):
        assert parse_query("docker", language="all").language is None

    def test_query_is_immutable(self):
        query = parse_query("docker")
        with pytest.raises(AttributeError):
            query.text = "other"


class TestParseQueryErrors:

    @pytest.mark.parametrize("text", [None, "", "   "])
    def test_empty_text(self, text):
        with pytest.raises(InvalidQueryException):
            parse_query(text)

    def test_only_selectors(self):
        with pytest.raises(InvalidQueryException):
            parse_query("!news :de")

    def test_too_long(self):
        with pytest.raises(InvalidQueryException):
            parse_query("a" * (MAX_QUERY_LENGTH + 1))

    def test_unknown_category(self):
        with pytest.raises(InvalidQueryException) as exc:
            parse_query("docker", categories="general,cooking")
        assert exc.value.details["field"] == "categories"
        assert exc.value.error_code == "VALIDATION_ERROR"

    @pytest.mark.parametrize("pageno", ["0", "-1", "abc", MAX_PAGE + 1])
    def test_bad_page(self, pageno):
        with pytest.raises(ValidationException) as exc:
            parse_query("docker", pageno=pageno)
        assert exc.value.details["field"] == "pageno"

    def test_bad_language(self):
        with pytest.raises(InvalidQueryException):
            parse_query("docker", language="not a language")


class TestCategory:

    def test_parse_is_case_insensitive(self):
        assert Category.parse(" News ") is Category.NEWS

    def test_ordered_follows_declaration(self):
        ordered = Category.ordered({Category.SOCIAL, Category.GENERAL, Category.IT})
        assert ordered == [Category.GENERAL, Category.IT, Category.SOCIAL]
