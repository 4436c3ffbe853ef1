"""Unit tests for identifier quoting and default rendering."""

from __future__ import annotations

import pytest

from schema_forge.infrastructure.sql.core import (
    DefaultKind,
    classify_default,
    derived_identifier,
    qualify_table,
    quote_identifier,
    quote_literal,
    render_default,
)


class TestIdentifierQuoting:
    def test_plain_identifier(self) -> None:
        assert quote_identifier("company_id") == '"company_id"'

    def test_embedded_quotes_are_doubled(self) -> None:
        assert quote_identifier('odd"name') == '"odd""name"'

    def test_qualified_table(self) -> None:
        assert qualify_table("deal") == '"deal"'
        assert qualify_table("deal", schema="public") == '"public"."deal"'

    def test_literal_quoting(self) -> None:
        assert quote_literal("it's") == "'it''s'"


class TestDerivedIdentifier:
    def test_short_names_are_joined_unchanged(self) -> None:
        assert derived_identifier("fk", "deal", "company_id") == "fk_deal_company_id"

    def test_long_names_are_shortened_with_a_digest(self) -> None:
        name = derived_identifier("idx", "t" * 70, "user_id")

        assert len(name) == 63
        assert name.startswith("idx_ttt")
        assert name != derived_identifier("idx", "t" * 70, "created_at")

    def test_result_is_stable(self) -> None:
        assert derived_identifier("a" * 80) == derived_identifier("a" * 80)


class TestClassifyDefault:
    """Defaults are classified into a closed set and re-rendered."""

    @pytest.mark.parametrize(
        "raw, kind, value",
        [
            ("now()", DefaultKind.EXPRESSION, "NOW()"),
            ("CURRENT_TIMESTAMP", DefaultKind.EXPRESSION, "CURRENT_TIMESTAMP"),
            ("gen_random_uuid()", DefaultKind.EXPRESSION, "gen_random_uuid()"),
            ("null", DefaultKind.EXPRESSION, "NULL"),
            ("TRUE", DefaultKind.BOOLEAN, "TRUE"),
            ("-12.50", DefaultKind.NUMBER, "-12.50"),
            ("'open'", DefaultKind.STRING, "open"),
            ("'it''s'", DefaultKind.STRING, "it's"),
            ("pending", DefaultKind.STRING, "pending"),
        ],
    )
    def test_classification(self, raw, kind, value) -> None:
        assert classify_default(raw) == (kind, value)


class TestRenderDefault:
    def test_none_means_no_default(self) -> None:
        assert render_default(None) is None

    def test_strings_are_quoted_once(self) -> None:
        assert render_default("'open'") == "'open'"
        assert render_default("open") == "'open'"

    def test_injection_attempt_stays_inside_the_literal(self) -> None:
        rendered = render_default("x'); DROP TABLE deal; --")
        assert rendered == "'x''); DROP TABLE deal; --'"

    def test_expressions_are_canonical(self) -> None:
        assert render_default("now()") == "NOW()"
        assert render_default("false") == "FALSE"
        assert render_default("42") == "42"
