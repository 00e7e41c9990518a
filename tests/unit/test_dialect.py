"""
Unit tests for reconciliation.paged.dialect
"""

import pytest

from reconciliation.errors import ConfigurationError, UnsupportedDialect
from reconciliation.paged.dialect import (
    BUILTIN_DIALECTS,
    LIMIT_OFFSET,
    OFFSET_FETCH_NEXT,
    DialectResolver,
    make_template,
)


class TestDialectResolver:
    """Test product identifier lookup"""

    @pytest.mark.parametrize("product", ["PostgreSQL", "postgresql", "  POSTGRES  ", "SQLite", "MySQL", "H2"])
    def test_limit_offset_products(self, product):
        template = DialectResolver().resolve(product)

        assert template.clause == LIMIT_OFFSET

    @pytest.mark.parametrize("product", ["Microsoft SQL Server", "SQLSERVER", "mssql", "Oracle"])
    def test_offset_fetch_products(self, product):
        template = DialectResolver().resolve(product)

        assert template.clause == OFFSET_FETCH_NEXT

    def test_sql_server_quotes_with_brackets(self):
        assert DialectResolver().resolve("Microsoft SQL Server").quote_style == "brackets"

    def test_mysql_quotes_with_backticks(self):
        assert DialectResolver().resolve("mysql").quote_style == "backtick"

    def test_unknown_product_raises(self):
        with pytest.raises(UnsupportedDialect) as exc_info:
            DialectResolver().resolve("Informix", source="secondary")

        assert exc_info.value.product_identifier == "Informix"
        assert exc_info.value.source == "secondary"
        assert "Informix" in str(exc_info.value)
        assert "secondary" in str(exc_info.value)

    def test_empty_product_raises(self):
        with pytest.raises(UnsupportedDialect):
            DialectResolver().resolve("")

    def test_configured_entry_added(self):
        resolver = DialectResolver({"CockroachDB": make_template("cockroachdb", LIMIT_OFFSET)})

        assert resolver.resolve("cockroachdb").product == "cockroachdb"
        assert "cockroachdb" in resolver.products()

    def test_configured_entry_overrides_builtin(self):
        custom = make_template("postgresql", "OFFSET {offset} LIMIT {limit}")
        resolver = DialectResolver({"PostgreSQL": custom})

        assert resolver.resolve("postgresql") is custom
        # Built-in catalog untouched
        assert BUILTIN_DIALECTS["postgresql"].clause == LIMIT_OFFSET


class TestDialectTemplate:
    """Test pagination clause rendering"""

    def test_render_limit_offset(self):
        assert BUILTIN_DIALECTS["postgresql"].render(offset=20, limit=10) == "LIMIT 10 OFFSET 20"

    def test_render_offset_fetch(self):
        assert (
            BUILTIN_DIALECTS["sqlserver"].render(offset=0, limit=500)
            == "OFFSET 0 ROWS FETCH NEXT 500 ROWS ONLY"
        )

    def test_render_db2(self):
        assert (
            BUILTIN_DIALECTS["db2"].render(offset=5, limit=5)
            == "OFFSET 5 ROWS FETCH FIRST 5 ROWS ONLY"
        )

    def test_render_rejects_negative_offset(self):
        with pytest.raises(ValueError):
            BUILTIN_DIALECTS["postgresql"].render(offset=-1, limit=10)

    def test_render_rejects_zero_limit(self):
        with pytest.raises(ValueError):
            BUILTIN_DIALECTS["postgresql"].render(offset=0, limit=0)

    def test_render_rejects_non_integer(self):
        with pytest.raises(ValueError):
            BUILTIN_DIALECTS["postgresql"].render(offset="0; DROP TABLE x", limit=10)


class TestMakeTemplate:
    """Test template validation"""

    def test_missing_limit_placeholder(self):
        with pytest.raises(ConfigurationError, match="offset"):
            make_template("custom", "OFFSET {offset}")

    def test_unknown_placeholder(self):
        with pytest.raises(ConfigurationError):
            make_template("custom", "LIMIT {limit} OFFSET {offset} {hint}")

    def test_unknown_quote_style(self):
        with pytest.raises(ConfigurationError, match="quote style"):
            make_template("custom", LIMIT_OFFSET, quote_style="single")

    def test_valid_template(self):
        template = make_template("custom", LIMIT_OFFSET, quote_style="backtick")

        assert template.product == "custom"
        assert template.quote_style == "backtick"
