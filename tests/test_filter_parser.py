"""Tests for WHERE filter parsing and evaluation."""

from datetime import datetime, timezone

import pytest

from chanql.codec import Row
from chanql.errors import FilterSyntaxError
from chanql.parsing.filter_lexer import FilterLexer
from chanql.parsing.filter_parser import And, Comparison, FilterParser, Or, parse_filter
from chanql.query_executor import evaluate_filter

TS = datetime(2025, 1, 1, tzinfo=timezone.utc)


def _row(**values) -> Row:
    return Row.from_mapping(TS, values)


class TestFilterLexer:
    """Tests for the filter lexer."""

    def test_tokenize_comparison(self):
        """Test tokenizing a simple comparison."""
        lexer = FilterLexer()
        lexer.build()

        tokens = lexer.tokenize("name = 'John'")
        assert [t.type for t in tokens] == ["IDENTIFIER", "EQ", "STRING"]
        assert tokens[2].value == "'John'"

    def test_keywords_case_insensitive(self):
        """Test that AND, OR and literals ignore case."""
        lexer = FilterLexer()
        lexer.build()

        tokens = lexer.tokenize("a = TRUE and b = null Or c = False")
        assert [t.type for t in tokens] == [
            "IDENTIFIER", "EQ", "TRUE", "AND",
            "IDENTIFIER", "EQ", "NULL", "OR",
            "IDENTIFIER", "EQ", "FALSE",
        ]

    def test_string_with_escaped_quote(self):
        """Test that a doubled quote stays inside the string token."""
        lexer = FilterLexer()
        lexer.build()

        tokens = lexer.tokenize("a = 'it''s'")
        assert tokens[2].value == "'it''s'"

    def test_unsupported_operator(self):
        """Test that operators other than '=' are rejected."""
        lexer = FilterLexer()
        lexer.build()

        with pytest.raises(FilterSyntaxError) as exc_info:
            lexer.tokenize("age > 5")
        assert exc_info.value.position == 4

    def test_unterminated_string(self):
        """Test error on an unclosed string."""
        lexer = FilterLexer()
        lexer.build()

        with pytest.raises(FilterSyntaxError):
            lexer.tokenize("name = 'John")


class TestFilterParser:
    """Tests for the filter parser."""

    def test_parse_comparison(self):
        """Test parsing a single comparison."""
        assert parse_filter("name = 'John'") == Comparison("name", "John")

    def test_parse_literal_kinds(self):
        """Test the literal kinds on the right of '='."""
        assert parse_filter("a = 25") == Comparison("a", 25)
        assert parse_filter("a = 2.5") == Comparison("a", 2.5)
        assert parse_filter("a = true") == Comparison("a", True)
        assert parse_filter("a = NULL") == Comparison("a", None)
        assert parse_filter("a = 'it''s'") == Comparison("a", "it's")

    def test_and_binds_tighter_than_or(self):
        """Test that A AND B OR C parses as (A AND B) OR C."""
        expr = parse_filter("name='John' AND age=25 OR name='Jane'")
        assert expr == Or(
            And(Comparison("name", "John"), Comparison("age", 25)),
            Comparison("name", "Jane"),
        )

    def test_or_then_and(self):
        """Test that A OR B AND C parses as A OR (B AND C)."""
        expr = parse_filter("a=1 OR b=2 AND c=3")
        assert expr == Or(
            Comparison("a", 1),
            And(Comparison("b", 2), Comparison("c", 3)),
        )

    def test_parentheses_override(self):
        """Test that parentheses override precedence."""
        expr = parse_filter("name='John' AND (age=25 OR age=30)")
        assert expr == And(
            Comparison("name", "John"),
            Or(Comparison("age", 25), Comparison("age", 30)),
        )

    def test_left_associative(self):
        """Test that chained ANDs group to the left."""
        expr = parse_filter("a=1 AND b=2 AND c=3")
        assert expr == And(And(Comparison("a", 1), Comparison("b", 2)), Comparison("c", 3))

    def test_backtick_column(self):
        """Test a backtick-quoted column name."""
        assert parse_filter("`or` = 1") == Comparison("or", 1)

    def test_unmatched_open_paren(self):
        """Test error on a missing closing parenthesis."""
        with pytest.raises(FilterSyntaxError):
            parse_filter("(a = 1 OR b = 2")

    def test_unmatched_close_paren(self):
        """Test error on an extra closing parenthesis."""
        with pytest.raises(FilterSyntaxError) as exc_info:
            parse_filter("a = 1)")
        assert "Unmatched" in str(exc_info.value)

    def test_dangling_operator(self):
        """Test error on a trailing AND."""
        with pytest.raises(FilterSyntaxError):
            parse_filter("a = 1 AND")

    def test_missing_value(self):
        """Test error on a comparison without a value."""
        with pytest.raises(FilterSyntaxError):
            parse_filter("a =")

    def test_unquoted_string_value(self):
        """Test that a bare word value asks for quotes."""
        with pytest.raises(FilterSyntaxError) as exc_info:
            parse_filter("name = John")
        assert "single quotes" in str(exc_info.value)

    def test_empty_expression(self):
        """Test error on empty input."""
        with pytest.raises(FilterSyntaxError):
            parse_filter("   ")

    def test_parser_reusable(self):
        """Test that one parser parses repeatedly, including after an error."""
        parser = FilterParser()
        with pytest.raises(FilterSyntaxError):
            parser.parse("a = ")
        assert parser.parse("b = 2") == Comparison("b", 2)


class TestEvaluateFilter:
    """Tests for evaluating filters against rows."""

    def test_precedence_scenario(self):
        """Test the OR branch rescues a row that fails the AND branch."""
        expr = parse_filter("name='John' AND age=25 OR name='Jane'")
        assert evaluate_filter(expr, _row(name="Jane", age=99))
        assert not evaluate_filter(expr, _row(name="Bob", age=25))
        assert evaluate_filter(expr, _row(name="John", age=25))

    def test_missing_column_is_non_match(self):
        """Test that a column the row lacks never matches."""
        assert not evaluate_filter(parse_filter("nope = 1"), _row(id=1))

    def test_missing_column_inside_or(self):
        """Test that a missing column does not stop the other branch."""
        expr = parse_filter("nope = 1 OR id = 1")
        assert evaluate_filter(expr, _row(id=1))

    def test_numeric_widening(self):
        """Test that an integer literal matches an equal float value."""
        assert evaluate_filter(parse_filter("price = 25"), _row(price=25.0))
        assert not evaluate_filter(parse_filter("price = 25"), _row(price=25.5))

    def test_cross_kind_non_match(self):
        """Test that mismatched kinds never match."""
        assert not evaluate_filter(parse_filter("id = '1'"), _row(id=1))
        assert not evaluate_filter(parse_filter("ok = 1"), _row(ok=True))

    def test_case_sensitive_strings(self):
        """Test that string comparison is exact."""
        assert not evaluate_filter(parse_filter("name = 'john'"), _row(name="John"))

    def test_null_matches_null(self):
        """Test that NULL = NULL matches and NULL never equals a value."""
        assert evaluate_filter(parse_filter("note = NULL"), _row(note=None))
        assert not evaluate_filter(parse_filter("note = NULL"), _row(note="x"))

    def test_column_name_case_insensitive(self):
        """Test that column names in filters ignore case."""
        assert evaluate_filter(parse_filter("NAME = 'Al'"), _row(name="Al"))

    def test_positional_row_never_matches(self):
        """Test that rows without column names do not match named comparisons."""
        row = Row(TS, (1, "x"))
        assert not evaluate_filter(parse_filter("id = 1"), row)
