"""
Unit Tests for the Key Generator

Tests base key rules, templates, identity placeholders and awareness flags.
"""

import pytest

from readthrough.caching.canonical import digest
from readthrough.caching.descriptors import Query, Request
from readthrough.caching.key_generator import KeyContext, KeyGenerator
from readthrough.caching.models import KeySpec
from readthrough.core.context import call_context


@pytest.mark.unit
class TestBaseKeys:
    """Test the base key rules."""

    def test_string_is_used_verbatim(self, key_generator):
        assert key_generator.create_key("orders:open") == "orders:open"

    def test_explicit_cache_key_wins(self, key_generator):
        request = Request(path="/books", cache_key="books-all")
        assert key_generator.create_key(request) == "books-all"

    def test_explicit_cache_key_in_mapping(self, key_generator):
        assert key_generator.create_key({"cache_key": "fixed", "x": 1}) == "fixed"

    def test_object_is_digested_deterministically(self, key_generator):
        first = key_generator.create_key({"a": 1, "b": [1, 2]})
        second = key_generator.create_key({"b": [1, 2], "a": 1})

        assert first == second
        assert len(first) == 64

    def test_none_input_digests_arguments(self, key_generator):
        key = key_generator.create_key(None, KeyContext(args=["A", "B"]))
        assert key == digest(["A", "B"])

    def test_distinct_arguments_give_distinct_keys(self, key_generator):
        ab = key_generator.create_key(None, KeyContext(args=["A", "B"]))
        cd = key_generator.create_key(None, KeyContext(args=["C", "D"]))
        assert ab != cd

    def test_mutating_query_is_not_cacheable(self, key_generator):
        assert key_generator.create_key(Query("INSERT", "Books", data={"ID": 3})) is None

    def test_read_only_query_is_digested(self, key_generator):
        query = Query("SELECT", "Books", where={"author": "Poe"})
        assert key_generator.create_key(query) == digest(query.to_canonical())

    def test_key_prefix_is_applied(self, runtime_config):
        generator = KeyGenerator(runtime_config, key_prefix="svc:")
        assert generator.create_key("k") == "svc:k"


@pytest.mark.unit
class TestTemplates:
    """Test template expansion."""

    def test_static_value_ignores_input(self, key_generator):
        spec = KeySpec(value="static", prefix="p:", suffix=":s")
        assert key_generator.create_key({"anything": 1}, template=spec) == "p:static:s"

    def test_string_template(self, key_generator):
        key = key_generator.create_key(
            "base", KeyContext(tenant="acme", args=[7]), template="{tenant}:{hash}:{args[0]}"
        )
        assert key == "acme:base:7"

    def test_mapping_template(self, key_generator):
        key = key_generator.create_key("b", template={"template": "{hash}", "prefix": "x:"})
        assert key == "x:b"

    def test_function_placeholders(self, key_generator):
        context = KeyContext(function_name="load_books", base_key="books")
        key = key_generator.create_key("h", context, template="{function_name}:{baseKey}:{hash}")
        assert key == "load_books:books:h"

    def test_missing_placeholder_resolves_empty(self, key_generator):
        assert key_generator.create_key("h", template="{hash}:{args[3]}") == "h:"

    def test_unsupported_spec_falls_back(self, key_generator):
        assert key_generator.create_key("plain", template=42) == "plain"


@pytest.mark.unit
class TestIdentity:
    """Test identity resolution and awareness flags."""

    def test_request_uses_default_template(self, key_generator):
        request = Request(path="/books", tenant="acme", user="alice", locale="de")

        key = key_generator.create_key(request)

        assert key.startswith("acme:alice:de:")

    def test_defaults_when_identity_unknown(self, key_generator):
        key = key_generator.create_key(Request(path="/books"))
        assert key.startswith("global:anonymous:en:")

    def test_explicit_context_beats_request_and_ambient(self, key_generator):
        request = Request(path="/books", tenant="from-request")
        with call_context(tenant="from-ambient"):
            key = key_generator.create_key(request, KeyContext(tenant="explicit"))
        assert key.startswith("explicit:")

    def test_ambient_context_used_as_fallback(self, key_generator):
        with call_context(tenant="ambient", user="bob"):
            key = key_generator.create_key("h", template="{tenant}:{user}:{hash}")
        assert key == "ambient:bob:h"

    def test_requests_differing_only_by_user_get_distinct_keys(self, key_generator):
        alice = key_generator.create_key(Request(path="/books", user="alice"))
        bob = key_generator.create_key(Request(path="/books", user="bob"))
        assert alice != bob

    @pytest.mark.asyncio
    async def test_disabled_awareness_pins_default(self, key_generator, runtime_config):
        await runtime_config.set_awareness(tenant=False, user=False)

        alice = key_generator.create_key(Request(path="/books", tenant="acme", user="alice"))
        bob = key_generator.create_key(Request(path="/books", tenant="other", user="bob"))

        assert alice == bob
        assert alice.startswith("global:anonymous:")

    def test_generator_without_config_is_fully_aware(self):
        generator = KeyGenerator()
        assert generator.create_key("h", KeyContext(locale="fr"), template="{locale}:{hash}") == "fr:h"
