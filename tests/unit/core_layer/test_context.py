"""
Unit Tests for the Ambient Call Context

Tests binding and isolation of tenant, user, locale and parameters.
"""

import asyncio

import pytest

from readthrough.core.context import CallContext, call_context, get_call_context


@pytest.mark.unit
class TestCallContext:
    def test_empty_by_default(self):
        context = get_call_context()
        assert context.tenant is None
        assert dict(context.params) == {}

    def test_binding_is_scoped_to_block(self):
        with call_context(tenant="t1", user="alice", params={"id": 3}):
            assert get_call_context().tenant == "t1"
            assert get_call_context().params["id"] == 3

        assert get_call_context().tenant is None

    def test_merged_ignores_none(self):
        context = CallContext(tenant="t1", user="alice").merged(user=None, locale="de")

        assert context.user == "alice"
        assert context.locale == "de"

    @pytest.mark.asyncio
    async def test_tasks_do_not_see_each_other(self):
        """Test that interleaved tasks keep their own bindings."""

        async def serve(tenant: str) -> str:
            with call_context(tenant=tenant):
                await asyncio.sleep(0)
                return get_call_context().tenant

        results = await asyncio.gather(serve("a"), serve("b"), serve("c"))

        assert results == ["a", "b", "c"]
