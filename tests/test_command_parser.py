"""Tests for the command parser."""

import pytest

from chanql.errors import CommandSyntaxError, FilterSyntaxError, InvalidLiteral, UnterminatedString
from chanql.parsing.command_lexer import CommandLexer
from chanql.parsing.command_parser import (
    CommandParser,
    CreateDatabaseQuery,
    CreateTableQuery,
    DeleteQuery,
    DescribeQuery,
    DropDatabaseQuery,
    DropTableQuery,
    InsertQuery,
    SelectQuery,
    ShowDatabasesQuery,
    ShowTablesQuery,
    UpdateQuery,
    UseQuery,
    split_statements,
)
from chanql.parsing.filter_parser import And, Comparison


@pytest.fixture
def parser() -> CommandParser:
    return CommandParser()


class TestDatabaseCommands:
    """Tests for database-level commands."""

    def test_create_db(self, parser):
        """Test parsing create db."""
        assert parser.parse("create db shop") == CreateDatabaseQuery("shop")
        assert parser.parse("CREATE DATABASE shop;") == CreateDatabaseQuery("shop")

    def test_drop_db(self, parser):
        """Test parsing drop db."""
        assert parser.parse("drop db shop") == DropDatabaseQuery("shop")

    def test_use(self, parser):
        """Test parsing use."""
        assert parser.parse("use shop") == UseQuery("shop")

    def test_show(self, parser):
        """Test parsing show commands."""
        assert parser.parse("show databases") == ShowDatabasesQuery()
        assert parser.parse("SHOW TABLES") == ShowTablesQuery()


class TestTableCommands:
    """Tests for table-level commands."""

    def test_create_table_with_schema(self, parser):
        """Test parsing create table with column definitions."""
        query = parser.parse("create table users (id INT PRIMARY KEY, name VARCHAR(50))")
        assert query == CreateTableQuery("users", "id INT PRIMARY KEY, name VARCHAR(50)")

    def test_create_flexible_table(self, parser):
        """Test parsing create table without a schema."""
        assert parser.parse("create table notes") == CreateTableQuery("notes", None)
        assert parser.parse("create table notes ()") == CreateTableQuery("notes", None)

    def test_create_table_multiline(self, parser):
        """Test a schema spread over several lines."""
        query = parser.parse("create table t (\n  id INT,\n  name VARCHAR(5)\n)")
        assert query.name == "t"
        assert "name VARCHAR(5)" in query.schema_text

    def test_create_table_quoted_names(self, parser):
        """Test that column text is handed over with its backticks."""
        query = parser.parse("create table t (`first name` VARCHAR(5), `desc` INT)")
        assert query.schema_text == "`first name` VARCHAR(5), `desc` INT"

    def test_create_table_keyword_column(self, parser):
        """Test that command keywords may be used as column names."""
        query = parser.parse("create table t (values INT, set BOOLEAN NOT NULL)")
        assert query.schema_text == "values INT, set BOOLEAN NOT NULL"

    def test_create_table_unbalanced(self, parser):
        """Test error on a column list that is never closed."""
        with pytest.raises(CommandSyntaxError):
            parser.parse("create table t (id INT, name VARCHAR(5)")

    def test_drop_table_and_describe(self, parser):
        """Test parsing drop table and describe."""
        assert parser.parse("drop table users") == DropTableQuery("users")
        assert parser.parse("describe users") == DescribeQuery("users")
        assert parser.parse("desc `users`") == DescribeQuery("users")


class TestInsert:
    """Tests for insert."""

    def test_insert_into_values(self, parser):
        """Test the full insert form."""
        query = parser.parse("insert into users values (1, 'Alice', true)")
        assert query == InsertQuery("users", [1, "Alice", True])

    def test_insert_short_forms(self, parser):
        """Test insert without INTO, VALUES or parentheses."""
        expected = InsertQuery("users", [1, "Alice"])
        assert parser.parse("insert users (1, 'Alice')") == expected
        assert parser.parse("insert into users(1, 'Alice')") == expected
        assert parser.parse("insert users 1, 'Alice'") == expected

    def test_insert_string_with_parens_and_commas(self, parser):
        """Test values containing parentheses and commas inside quotes."""
        query = parser.parse("insert into t values ('a (b), c', 'd)')")
        assert query.values == ["a (b), c", "d)"]

    def test_insert_stray_commas(self, parser):
        """Test that empty pieces left by stray commas are skipped."""
        assert parser.parse("insert t (1, 2,)") == InsertQuery("t", [1, 2])
        assert parser.parse("insert t 1,,2") == InsertQuery("t", [1, 2])

    def test_insert_null_and_negative(self, parser):
        """Test NULL and signed numbers in a value list."""
        assert parser.parse("insert t (NULL, -3, +2.5)") == InsertQuery("t", [None, -3, 2.5])

    def test_insert_without_values(self, parser):
        """Test that an insert needs at least one value."""
        with pytest.raises(CommandSyntaxError):
            parser.parse("insert into users values ()")

    def test_insert_invalid_literal(self, parser):
        """Test that an unquoted word is reported as an invalid literal."""
        with pytest.raises(InvalidLiteral):
            parser.parse("insert into users values (1, Alice)")

    def test_insert_unterminated_string(self, parser):
        """Test that an unclosed quote is reported."""
        with pytest.raises(UnterminatedString):
            parser.parse("insert into users values (1, 'Alice)")


class TestSelect:
    """Tests for select."""

    def test_select_star(self, parser):
        """Test select with all columns."""
        assert parser.parse("select * from users") == SelectQuery("users", ["*"])

    def test_select_columns_where(self, parser):
        """Test select with a column list and a WHERE clause."""
        query = parser.parse("SELECT id, name FROM users WHERE id = 1 AND name = 'x'")
        assert query.columns == ["id", "name"]
        assert query.where == And(Comparison("id", 1), Comparison("name", "x"))
        assert not query.distinct

    def test_select_distinct_after_table(self, parser):
        """Test the distinct flag after the table name."""
        query = parser.parse("select name from users distinct where id = 1")
        assert query.distinct
        assert query.where == Comparison("id", 1)

    def test_select_distinct_before_columns(self, parser):
        """Test the conventional SELECT DISTINCT form."""
        query = parser.parse("select distinct name from users")
        assert query.distinct
        assert query.columns == ["name"]

    def test_select_quoted_and_positional_columns(self, parser):
        """Test backticked names and positional keys in the column list."""
        query = parser.parse("select `first name`, [0] from t")
        assert query.columns == ["first name", "[0]"]

    def test_where_with_quoted_column(self, parser):
        """Test a backticked column name in the condition."""
        query = parser.parse("select * from t where `a:b` = 1")
        assert query.where == Comparison("a:b", 1)

    def test_where_keyword_inside_string(self, parser):
        """Test that 'where' inside a quoted value is not the keyword."""
        query = parser.parse("select * from t where note = 'where from'")
        assert query.where == Comparison("note", "where from")

    def test_empty_where(self, parser):
        """Test that WHERE needs a condition."""
        with pytest.raises(CommandSyntaxError):
            parser.parse("select * from t where")

    def test_bad_where(self, parser):
        """Test that filter errors propagate."""
        with pytest.raises(FilterSyntaxError):
            parser.parse("select * from t where (id = 1")

    def test_trailing_garbage(self, parser):
        """Test text after the table name that is not a clause."""
        with pytest.raises(CommandSyntaxError):
            parser.parse("select * from t order by id")

    def test_star_mixed_with_columns(self, parser):
        """Test that '*' cannot be combined with column names."""
        with pytest.raises(CommandSyntaxError):
            parser.parse("select *, id from t")


class TestUpdateDelete:
    """Tests for update and delete."""

    def test_delete_all(self, parser):
        """Test delete without a WHERE clause."""
        assert parser.parse("delete from users") == DeleteQuery("users", None)

    def test_delete_where(self, parser):
        """Test delete with a WHERE clause."""
        query = parser.parse("delete from users where name = 'Bob'")
        assert query.where == Comparison("name", "Bob")

    def test_update(self, parser):
        """Test update with several assignments."""
        query = parser.parse("update users set name = 'O''Neil', active = false where id = 3")
        assert query == UpdateQuery(
            "users",
            [("name", "O'Neil"), ("active", False)],
            Comparison("id", 3),
        )

    def test_update_value_containing_where(self, parser):
        """Test an assigned string that contains the word where."""
        query = parser.parse("update t set note = 'go where, now' where id = 1")
        assert query.assignments == [("note", "go where, now")]
        assert query.where == Comparison("id", 1)

    def test_update_bad_assignment(self, parser):
        """Test an assignment without '='."""
        with pytest.raises(CommandSyntaxError):
            parser.parse("update t set name 'x'")

    def test_update_repeated_column(self, parser):
        """Test that a column may be assigned only once."""
        with pytest.raises(CommandSyntaxError):
            parser.parse("update t set a = 1, A = 2")


class TestErrors:
    """Tests for unrecognised commands."""

    def test_unknown_command(self, parser):
        """Test error on an unknown keyword."""
        with pytest.raises(CommandSyntaxError) as exc_info:
            parser.parse("explain select")
        assert "Unknown command" in str(exc_info.value)

    def test_syntax_error_shows_usage(self, parser):
        """Test that a malformed command reports where and how to write it."""
        with pytest.raises(CommandSyntaxError) as exc_info:
            parser.parse("delete users")
        message = str(exc_info.value)
        assert "'users'" in message
        assert "delete from <table>" in message

    def test_incomplete_command(self, parser):
        """Test error on a command that ends too early."""
        with pytest.raises(CommandSyntaxError) as exc_info:
            parser.parse("select name from")
        assert "Incomplete command" in str(exc_info.value)

    def test_illegal_character(self, parser):
        """Test error on a character outside the command language."""
        with pytest.raises(CommandSyntaxError) as exc_info:
            parser.parse("create db my-store")
        assert "Illegal character '-'" in str(exc_info.value)

    def test_parser_reusable_after_error(self, parser):
        """Test that a failed parse does not affect the next one."""
        with pytest.raises(FilterSyntaxError):
            parser.parse("select * from t where id =")
        assert parser.parse("use shop") == UseQuery("shop")

    def test_empty_command(self, parser):
        """Test error on empty input."""
        with pytest.raises(CommandSyntaxError):
            parser.parse("  ;")

    def test_malformed_create(self, parser):
        """Test error on create with neither db nor table."""
        with pytest.raises(CommandSyntaxError):
            parser.parse("create index foo")


class TestCommandLexer:
    """Tests for command tokens."""

    def test_keywords_case_insensitive(self):
        """Test that keywords are recognised in any case."""
        lexer = CommandLexer()
        lexer.build()
        tokens = lexer.tokenize("SeLeCt * FROM users")
        assert [t.type for t in tokens] == ["SELECT", "STAR", "FROM", "IDENTIFIER"]
        assert tokens[3].value == "users"

    def test_condition_is_one_token(self):
        """Test that the text after WHERE is kept whole."""
        lexer = CommandLexer()
        lexer.build()
        tokens = lexer.tokenize("delete from t where a = 1 or (b = 'x, y')")
        assert [t.type for t in tokens] == ["DELETE", "FROM", "IDENTIFIER", "WHERE", "CONDITION"]
        assert tokens[-1].value == " a = 1 or (b = 'x, y')"

    def test_string_keeps_quotes(self):
        """Test that strings keep their raw text."""
        lexer = CommandLexer()
        lexer.build()
        tokens = lexer.tokenize("insert t ('it''s')")
        assert tokens[3].type == "STRING"
        assert tokens[3].value == "'it''s'"


class TestSplitStatements:
    """Tests for splitting scripts."""

    def test_split_on_semicolons(self):
        """Test splitting on semicolons outside quotes."""
        script = "create db a; use a;\ninsert t values ('x;y');"
        assert split_statements(script) == ["create db a", "use a", "insert t values ('x;y')"]

    def test_comments_dropped(self):
        """Test that comment lines are dropped."""
        script = "-- setup\ncreate db a;\n-- done\n"
        assert split_statements(script) == ["create db a"]

    def test_comment_with_apostrophe(self):
        """Test that a quote inside a comment line does not open a string."""
        script = "-- don't run twice\ncreate db a;\nuse a;"
        assert split_statements(script) == ["create db a", "use a"]

    def test_unterminated_string(self):
        """Test error on a script with an unclosed quote."""
        with pytest.raises(UnterminatedString):
            split_statements("insert t values ('x);")
