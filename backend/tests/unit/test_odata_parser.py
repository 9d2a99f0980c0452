"""
Unit tests for the OData query option parser.

Tests cover:
- Option detection from query strings and mappings
- $filter grammar: comparisons, logical groups, negation, functions, lists
- Literal typing (numbers, decimals, GUIDs, dates, booleans, null)
- $orderby, $top capping, $skip, $count, $select and $expand
- Rejection of malformed and unsupported options
"""

from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from estoque.core.exceptions import ODataQueryError
from estoque.core.odata.parser import (
    Comparison,
    LogicalGroup,
    Negation,
    ODataQuery,
    OrderBy,
    parse_filter,
    parse_odata_query,
    parse_orderby,
)


class TestOptionDetection:
    def test_returns_none_without_dollar_options(self):
        assert parse_odata_query("page=2&pageSize=10") is None
        assert parse_odata_query({}) is None
        assert parse_odata_query(None) is None

    def test_accepts_mapping_source(self):
        query = parse_odata_query({"$top": "5", "name": "ignored"})
        assert isinstance(query, ODataQuery)
        assert query.top == 5

    def test_leading_question_mark_is_ignored(self):
        query = parse_odata_query("?$skip=20")
        assert query.skip == 20

    def test_unsupported_option_is_rejected(self):
        with pytest.raises(ODataQueryError) as exc_info:
            parse_odata_query("$search=caneta")
        assert "$search" in exc_info.value.message
        assert exc_info.value.status_code == 400

    def test_option_names_are_case_insensitive(self):
        query = parse_odata_query({"$TOP": "3"})
        assert query.top == 3


class TestFilterParsing:
    def test_simple_comparison(self):
        node = parse_filter("price gt 10")
        assert node == Comparison("price", "gt", 10)

    def test_decimal_literal(self):
        node = parse_filter("price le 10.50")
        assert node.value == Decimal("10.50")

    def test_negative_number(self):
        assert parse_filter("stockQuantity ge -1").value == -1

    def test_string_literal_with_escaped_quote(self):
        node = parse_filter("name eq 'D''Ávila'")
        assert node.value == "D'Ávila"

    def test_and_binds_tighter_than_or(self):
        node = parse_filter("a eq 1 or b eq 2 and c eq 3")
        assert isinstance(node, LogicalGroup)
        assert node.operator == "or"
        assert node.operands[0] == Comparison("a", "eq", 1)
        inner = node.operands[1]
        assert inner.operator == "and"
        assert [c.field for c in inner.operands] == ["b", "c"]

    def test_parentheses_override_precedence(self):
        node = parse_filter("(a eq 1 or b eq 2) and c eq 3")
        assert node.operator == "and"
        assert node.operands[0].operator == "or"

    def test_not_wraps_operand(self):
        node = parse_filter("not isActive eq true")
        assert isinstance(node, Negation)
        assert node.operand == Comparison("isActive", "eq", True)

    def test_keywords_are_case_insensitive(self):
        node = parse_filter("a Eq 1 AND b NE null")
        assert node.operator == "and"
        assert node.operands[1] == Comparison("b", "ne", None)

    def test_function_call_syntax(self):
        node = parse_filter("contains(name,'caneta')")
        assert node == Comparison("name", "contains", "caneta")

    def test_infix_string_operator(self):
        node = parse_filter("name startswith 'Can'")
        assert node == Comparison("name", "startswith", "Can")

    def test_in_list(self):
        node = parse_filter("status in ('PENDING', 'CONFIRMED')")
        assert node == Comparison("status", "in", ["PENDING", "CONFIRMED"])

    def test_nin_list(self):
        node = parse_filter("stockQuantity nin (0, 1)")
        assert node.operator == "nin"
        assert node.value == [0, 1]

    def test_guid_literal_is_lower_cased(self):
        node = parse_filter("companyId eq 3F2504E0-4F89-41D3-9A0C-0305E82C3301")
        assert node.value == "3f2504e0-4f89-41d3-9a0c-0305e82c3301"

    def test_date_literal(self):
        node = parse_filter("createdAt ge 2024-01-31")
        assert node.value == date(2024, 1, 31)

    def test_datetime_literal_with_zulu(self):
        node = parse_filter("createdAt lt 2024-01-31T10:30:00Z")
        assert node.value == datetime(2024, 1, 31, 10, 30, tzinfo=timezone.utc)

    def test_dotted_field(self):
        node = parse_filter("category.name eq 'Papelaria'")
        assert node.field == "category.name"

    @pytest.mark.parametrize(
        "expression",
        [
            "",
            "price gt",
            "price between 1",
            "price gt 10 and",
            "(price gt 10",
            "price gt 10)",
            "price gt 10 price",
            "contains(name, 10)",
            "name contains 10",
            "price gt null",
            "price gt 10 # 2",
            "and eq 1",
            "createdAt eq 2024-02-30",
        ],
    )
    def test_malformed_filters_raise(self, expression):
        with pytest.raises(ODataQueryError):
            parse_filter(expression)

    def test_deep_nesting_is_rejected(self):
        with pytest.raises(ODataQueryError):
            parse_filter("(" * 40 + "a eq 1" + ")" * 40)

    def test_condition_count_and_fields(self):
        query = parse_odata_query("$filter=a eq 1 and (b eq 2 or not c eq 3)")
        assert query.condition_count == 3
        assert query.filter_fields == ["a", "b", "c"]

    def test_blank_filter_is_ignored(self):
        query = parse_odata_query({"$filter": "  ", "$top": "1"})
        assert query.filter is None


class TestOtherOptions:
    def test_orderby_defaults_to_ascending(self):
        assert parse_orderby("name, price desc") == [
            OrderBy("name", "ASC"),
            OrderBy("price", "DESC"),
        ]

    @pytest.mark.parametrize("text", ["name sideways", "name asc extra", "1name"])
    def test_invalid_orderby(self, text):
        with pytest.raises(ODataQueryError):
            parse_orderby(text)

    def test_top_is_capped(self):
        query = parse_odata_query("$top=5000", max_top=100)
        assert query.top == 100

    def test_top_uses_max_page_size_by_default(self, monkeypatch):
        monkeypatch.setenv("MAX_PAGE_SIZE", "50")
        assert parse_odata_query("$top=80").top == 50

    @pytest.mark.parametrize(
        "option",
        ["$top=-1", "$top=abc", "$skip=1.5", "$skip=-3", "$top=²", "$skip=٣"],
    )
    def test_negative_or_non_integer_paging(self, option):
        with pytest.raises(ODataQueryError):
            parse_odata_query(option)

    def test_count_flag(self):
        assert parse_odata_query("$count=true").count is True
        assert parse_odata_query("$count=FALSE").count is False
        with pytest.raises(ODataQueryError):
            parse_odata_query("$count=maybe")

    def test_select_and_expand_deduplicate(self):
        query = parse_odata_query("$select=name,price,name&$expand=category,company")
        assert query.select == ["name", "price"]
        assert query.expand == ["category", "company"]

    def test_select_rejects_invalid_names(self):
        with pytest.raises(ODataQueryError):
            parse_odata_query("$select=name;drop")


class TestCanonicalForm:
    def test_equivalent_queries_share_canonical_json(self):
        first = parse_odata_query("$top=10&$filter=price gt 1")
        second = parse_odata_query("$filter=price  gt  1&$top=10")
        assert first.canonical_json() == second.canonical_json()

    def test_to_dict_serializes_literals(self):
        query = parse_odata_query("$filter=price gt 1.5 and createdAt ge 2024-01-01")
        data = query.to_dict()
        operands = data["filter"]["operands"]
        assert operands[0]["value"] == "1.5"
        assert operands[1]["value"] == "2024-01-01"
        assert data["top"] is None
        assert data["count"] is False
