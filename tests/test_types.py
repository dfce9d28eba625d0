"""Tests for column types and SQL values."""

import pytest

from chanql.errors import (
    MissingSize,
    ParamNotAllowed,
    PrecisionOutOfRange,
    SizeOutOfRange,
    UnknownType,
)
from chanql.types import (
    ColumnDef,
    ColumnType,
    DataType,
    Schema,
    quote_name,
    render_value,
    validate_type_spec,
    value_key,
    value_type_name,
    values_equal,
)


class TestValidateTypeSpec:
    """Tests for type name and parameter validation."""

    def test_int_without_param(self):
        """Test that INT needs no parameter."""
        assert validate_type_spec("INT") == ColumnType(DataType.INT)

    def test_int_with_param_rejected(self):
        """Test that INT(11) is rejected."""
        with pytest.raises(ParamNotAllowed) as exc_info:
            validate_type_spec("INT", "11")
        assert exc_info.value.type_name == "INT"

    def test_boolean_and_temporal_reject_param(self):
        """Test that BOOLEAN and date/time types take no parameter."""
        for name in ("BOOLEAN", "DATE", "TIME", "DATETIME"):
            with pytest.raises(ParamNotAllowed):
                validate_type_spec(name, "3")

    def test_varchar_requires_size(self):
        """Test that VARCHAR without a size is rejected."""
        with pytest.raises(MissingSize):
            validate_type_spec("VARCHAR")

    def test_char_empty_parens_is_missing_size(self):
        """Test that CHAR() counts as a missing size."""
        with pytest.raises(MissingSize):
            validate_type_spec("CHAR", "")

    def test_varchar_size_bounds(self):
        """Test the accepted VARCHAR size range."""
        assert validate_type_spec("VARCHAR", "1").param == 1
        assert validate_type_spec("VARCHAR", "65535").param == 65535
        with pytest.raises(SizeOutOfRange):
            validate_type_spec("VARCHAR", "0")
        with pytest.raises(SizeOutOfRange):
            validate_type_spec("VARCHAR", "65536")

    def test_varchar_non_integer_size(self):
        """Test that a non-integer size is out of range."""
        with pytest.raises(SizeOutOfRange) as exc_info:
            validate_type_spec("VARCHAR", "abc")
        assert exc_info.value.size == "abc"

    def test_numeric_precision_optional(self):
        """Test that FLOAT, DOUBLE and DECIMAL may omit precision."""
        assert validate_type_spec("FLOAT").param is None
        assert validate_type_spec("DOUBLE", "10").param == 10
        assert validate_type_spec("DECIMAL", 65).param == 65

    def test_numeric_precision_bounds(self):
        """Test the accepted precision range."""
        with pytest.raises(PrecisionOutOfRange):
            validate_type_spec("DECIMAL", "0")
        with pytest.raises(PrecisionOutOfRange):
            validate_type_spec("FLOAT", "66")

    def test_unknown_type(self):
        """Test that an unknown type name is rejected."""
        with pytest.raises(UnknownType) as exc_info:
            validate_type_spec("BLOB")
        assert exc_info.value.type_name == "BLOB"

    def test_case_insensitive_names(self):
        """Test that type names are matched case-insensitively."""
        assert validate_type_spec("varchar", "5") == ColumnType(DataType.VARCHAR, 5)

    def test_aliases(self):
        """Test the accepted type-name aliases."""
        assert validate_type_spec("INTEGER").data_type == DataType.INT
        assert validate_type_spec("BOOL").data_type == DataType.BOOLEAN
        assert validate_type_spec("CHARACTER", "3").data_type == DataType.CHAR
        assert validate_type_spec("REAL").data_type == DataType.FLOAT
        assert validate_type_spec("NUMERIC").data_type == DataType.DECIMAL
        assert validate_type_spec("TIMESTAMP").data_type == DataType.DATETIME


class TestSqlValues:
    """Tests for value helpers."""

    def test_value_type_name(self):
        """Test the readable name of each value kind."""
        assert value_type_name(None) == "null"
        assert value_type_name(True) == "boolean"
        assert value_type_name(1) == "integer"
        assert value_type_name(1.5) == "float"
        assert value_type_name("x") == "string"

    def test_render_value(self):
        """Test canonical literal rendering."""
        assert render_value(None) == "NULL"
        assert render_value(False) == "false"
        assert render_value(-7) == "-7"
        assert render_value(123.0) == "123.0"
        assert render_value("it's") == "'it''s'"

    def test_values_equal_same_kind(self):
        """Test equality of values of the same kind."""
        assert values_equal("a", "a")
        assert not values_equal("a", "A")
        assert values_equal(3, 3)

    def test_values_equal_numeric_widening(self):
        """Test that integers and floats compare numerically."""
        assert values_equal(25, 25.0)
        assert not values_equal(25, 25.5)

    def test_values_equal_cross_kind(self):
        """Test that different kinds never match."""
        assert not values_equal(1, True)
        assert not values_equal("1", 1)
        assert not values_equal(None, 0)

    def test_null_equals_null(self):
        """Test that NULL matches only NULL."""
        assert values_equal(None, None)
        assert not values_equal(None, "NULL")

    def test_value_key_separates_kinds(self):
        """Test that value keys keep booleans apart from integers."""
        assert value_key(1) != value_key(True)
        assert value_key(1) == value_key(1.0)


class TestSchema:
    """Tests for the Schema class."""

    def _schema(self) -> Schema:
        return Schema((
            ColumnDef("id", ColumnType(DataType.INT), primary_key=True),
            ColumnDef("Name", ColumnType(DataType.VARCHAR, 50), nullable=False),
            ColumnDef("active", ColumnType(DataType.BOOLEAN)),
        ))

    def test_names_and_primary_key(self):
        """Test column names and primary-key columns."""
        schema = self._schema()
        assert schema.names == ["id", "Name", "active"]
        assert [c.name for c in schema.primary_key] == ["id"]
        assert not schema.is_flexible

    def test_empty_schema_is_flexible(self):
        """Test that an empty schema describes a flexible table."""
        assert Schema().is_flexible
        assert len(Schema()) == 0

    def test_column_lookup_case_insensitive(self):
        """Test that column lookup ignores case."""
        schema = self._schema()
        assert schema.index_of("name") == 1
        assert schema.column("ACTIVE").name == "active"
        assert schema.column("missing") is None

    def test_to_text(self):
        """Test the single-line serialization."""
        assert self._schema().to_text() == (
            "id INT PRIMARY KEY, Name VARCHAR(50) NOT NULL, active BOOLEAN"
        )

    def test_quote_name(self):
        """Test that only plain, non-keyword names are written bare."""
        assert quote_name("first_name") == "first_name"
        assert quote_name("first name") == "`first name`"
        assert quote_name("a:b") == "`a:b`"
        assert quote_name("Key") == "`Key`"
        assert quote_name("1st") == "`1st`"

    def test_to_text_quotes_names(self):
        """Test that unusual names are backticked in the serialization."""
        schema = Schema((
            ColumnDef("first name", ColumnType(DataType.VARCHAR, 5)),
            ColumnDef("null", ColumnType(DataType.INT)),
        ))
        assert schema.to_text() == "`first name` VARCHAR(5), `null` INT"

    def test_to_create_statement(self):
        """Test rendering a CREATE TABLE statement."""
        statement = self._schema().to_create_statement("users")
        assert statement.startswith("CREATE TABLE users (\n")
        assert "    Name VARCHAR(50) NOT NULL,\n" in statement
        assert statement.endswith(")")

    def test_primary_key_never_accepts_null(self):
        """Test that primary-key columns are implicitly NOT NULL."""
        schema = self._schema()
        assert not schema[0].accepts_null
        assert not schema[1].accepts_null
        assert schema[2].accepts_null

    def test_example_values(self):
        """Test example literals for each column type."""
        schema = self._schema()
        assert [c.example_value() for c in schema] == ["42", "'text'", "true"]
