"""Tests for $name substitution in payload and endpoint templates."""

import copy
import logging

from rowpipe.variables.substitution import MISSING, LayeredLookup, PlaceholderResolver, find_placeholders


class TestLayeredLookup:
    """Extracted values shadow the secondary row, which shadows the primary row."""

    def test_extracted_shadows_row(self):
        lookup = LayeredLookup({"id": "fresh"}, [{"id": "stale"}])
        assert lookup.get("id") == "fresh"

    def test_secondary_row_shadows_primary(self):
        resolver = PlaceholderResolver()
        lookup = resolver.build_lookup({}, {"sku": "A", "qty": "1"}, {"sku": "B"})
        assert lookup.get("sku") == "B"
        assert lookup.get("qty") == 1

    def test_missing_name(self):
        lookup = LayeredLookup({}, [{"a": "1"}])
        assert lookup.get("b") is MISSING

    def test_extracted_null_is_not_missing(self):
        """A null extraction still shadows the row column."""
        lookup = LayeredLookup({"id": None}, [{"id": "5"}])
        assert lookup.get("id") is None

    def test_dotted_name_walks_extracted(self):
        lookup = LayeredLookup({"account": {"owner": {"id": 9}, "tags": ["a", "b"]}}, [{}])
        assert lookup.get("account.owner.id") == 9
        assert lookup.get("account.tags.1") == "b"

    def test_dotted_name_falls_back_to_flat_column(self):
        lookup = LayeredLookup({}, [{"user.name": "ada"}])
        assert lookup.get("user.name") == "ada"

    def test_array_field_coercion(self):
        lookup = LayeredLookup({}, [{"ids": "1,2"}], array_fields=["ids"])
        assert lookup.get("ids") == [1, 2]


class TestPayloadResolution:
    """Whole-leaf placeholders become typed values; the template is never modified."""

    def setup_method(self):
        self.resolver = PlaceholderResolver()

    def resolve(self, template, extracted=None, row=None):
        lookup = self.resolver.build_lookup(extracted or {}, row or {})
        return self.resolver.resolve_payload(template, lookup)

    def test_typed_substitution(self):
        template = {"name": "$name", "active": "$active", "count": "$count", "note": "$note"}
        row = {"name": "Ada", "active": "true", "count": "007", "note": ""}
        assert self.resolve(template, row=row) == {
            "name": "Ada", "active": True, "count": 7, "note": None
        }

    def test_nested_structures(self):
        template = {"order": {"lines": [{"sku": "$sku"}, "$qty"]}, "fixed": 3}
        result = self.resolve(template, row={"sku": "X1", "qty": "2"})
        assert result == {"order": {"lines": [{"sku": "X1"}, 2]}, "fixed": 3}

    def test_template_not_mutated(self):
        template = {"a": "$a", "list": ["$b"]}
        original = copy.deepcopy(template)
        self.resolve(template, row={"a": "1", "b": "2"})
        assert template == original

    def test_embedded_placeholder_is_literal(self):
        """Only a leaf that is exactly $name is substituted."""
        result = self.resolve({"greeting": "Hello $name"}, row={"name": "Ada"})
        assert result == {"greeting": "Hello $name"}

    def test_escaped_dollar(self):
        result = self.resolve({"price": "$$5", "code": "$$name"}, row={"name": "Ada"})
        assert result == {"price": "$5", "code": "$name"}

    def test_unresolved_left_in_place_with_warning(self, caplog):
        with caplog.at_level(logging.WARNING):
            result = self.resolve({"id": "$missing"}, row={})
        assert result == {"id": "$missing"}
        assert "$missing" in caplog.text

    def test_no_placeholder_left_when_all_resolve(self):
        template = {"a": "$a", "b": ["$b", {"c": "$c"}]}
        result = self.resolve(template, extracted={"c": 3}, row={"a": "x", "b": "y"})
        assert not find_placeholders(result)

    def test_extracted_value_used_over_row(self):
        result = self.resolve({"id": "$id"}, extracted={"id": 42}, row={"id": "1"})
        assert result == {"id": 42}


class TestEndpointResolution:
    """Embedded $name tokens are replaced by percent-encoded text."""

    def setup_method(self):
        self.resolver = PlaceholderResolver()

    def resolve(self, template, extracted=None, row=None):
        lookup = self.resolver.build_lookup(extracted or {}, row or {})
        return self.resolver.resolve_endpoint(template, lookup)

    def test_extracted_value_in_path(self):
        assert self.resolve("https://api.test/acct/$acctId", extracted={"acctId": 42}) == "https://api.test/acct/42"

    def test_url_encoding(self):
        url = self.resolve("https://api.test/users/$name?q=$query", row={"name": "a b/c", "query": "x&y"})
        assert url == "https://api.test/users/a%20b%2Fc?q=x%26y"

    def test_multiple_tokens(self):
        url = self.resolve("/orgs/$org/repos/$repo", row={"org": "acme", "repo": "tools"})
        assert url == "/orgs/acme/repos/tools"

    def test_boolean_and_null_text(self):
        url = self.resolve("/flags/$on/$off/$none", row={"on": "true", "off": "false", "none": ""})
        assert url == "/flags/true/false/null"

    def test_escaped_dollar(self):
        assert self.resolve("/price/$$amount", row={"amount": "5"}) == "/price/$amount"

    def test_unresolved_token_kept(self, caplog):
        with caplog.at_level(logging.WARNING):
            url = self.resolve("/items/$itemId")
        assert url == "/items/$itemId"
        assert "$itemId" in caplog.text


class TestResolveOperand:
    """Condition operands."""

    def test_missing_operand_is_none(self):
        resolver = PlaceholderResolver()
        lookup = resolver.build_lookup({}, {})
        assert resolver.resolve_operand("$nothing", lookup) is None

    def test_literal_passes_through(self):
        resolver = PlaceholderResolver()
        lookup = resolver.build_lookup({}, {})
        assert resolver.resolve_operand(20, lookup) == 20
        assert resolver.resolve_operand("active", lookup) == "active"


class TestFindPlaceholders:

    def test_collects_in_order(self):
        names = find_placeholders({"a": "$first", "b": ["/x/$second/$first"], "c": "$$literal"})
        assert list(names) == ["first", "second"]
