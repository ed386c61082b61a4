"""Tests for PipelineContext and ContextPipeline.

This module tests:
- Metadata set/get semantics, typed keys and type mismatches
- Context serialization helpers
- Effect and transform steps in ContextPipeline
- Fresh context per execution and error propagation
"""

from typing import Any

import pytest

from async_pipeline import (
    ContextKey,
    ContextPipeline,
    PipelineContext,
    TypeMismatchError,
)


# ==================== PipelineContext ====================


class TestPipelineContext:
    """Test suite for the metadata container."""

    def test_store_and_retrieve_metadata(self):
        context = PipelineContext("hello")
        context.set("lang", "en")
        context.set("version", 1)

        assert context.value == "hello"
        assert context.get("lang", str) == "en"
        assert context.get("version", int) == 1
        assert context.get("not-set", str) is None

    def test_missing_key_returns_default(self):
        context = PipelineContext(0)

        assert context.get("missing") is None
        assert context.get("missing", int, default=0) == 0

    def test_type_mismatch_raises(self):
        context = PipelineContext(0)
        context.set("version", "1.0")

        with pytest.raises(TypeMismatchError) as exc_info:
            context.get("version", int)

        error = exc_info.value
        assert error.key == "version"
        assert error.expected_type is int
        assert error.actual_type is str
        assert isinstance(error, TypeError)

    def test_generic_alias_checks_container_type(self):
        """Parameterized hints are checked against their origin type."""
        context = PipelineContext(0)
        context.set("scores", [1, 2, 3])

        assert context.get("scores", list[int]) == [1, 2, 3]
        assert context.get("scores", (dict[str, int], list[int])) == [1, 2, 3]

        with pytest.raises(TypeMismatchError) as exc_info:
            context.get("scores", dict[str, int])

        assert exc_info.value.expected_type == dict[str, int]
        assert exc_info.value.actual_type is list

    def test_any_disables_type_check(self):
        context = PipelineContext(0)
        context.set("payload", object())
        context.set("count", 4)

        assert context.get("count", Any) == 4
        assert context.get(ContextKey("count", Any)) == 4
        assert context.get("payload", Any) is not None

    def test_get_without_type_returns_payload(self):
        context = PipelineContext(0)
        context.set("anything", [1, 2])

        assert context.get("anything") == [1, 2]

    def test_set_replaces_existing_payload(self):
        context = PipelineContext(0)
        context.set("tag", "a")
        context.set("tag", "b")

        assert context.get("tag") == "b"
        assert context.keys() == ["tag"]

    def test_typed_context_key(self):
        """A ContextKey's value_type is used when no type is passed."""
        attempts = ContextKey("attempts", int)
        context = PipelineContext(None)
        context.set(attempts, 3)

        assert context.get(attempts) == 3
        assert context.get("attempts") == 3
        assert context.has(attempts)

        context.set("attempts", "three")
        with pytest.raises(TypeMismatchError):
            context.get(attempts)

    def test_to_and_from_dict(self):
        context = PipelineContext({"id": 7})
        context.set("source", "api")

        data = context.to_dict()
        restored = PipelineContext.from_dict(data)

        assert data == {"value": {"id": 7}, "metadata": {"source": "api"}}
        assert restored.value == {"id": 7}
        assert restored.get("source", str) == "api"

    def test_to_dict_copies_metadata(self):
        context = PipelineContext(0)
        context.set("a", 1)

        data = context.to_dict()
        data["metadata"]["b"] = 2

        assert not context.has("b")


# ==================== ContextPipeline ====================


class TestContextPipeline:
    """Test suite for effect and transform steps."""

    @pytest.mark.asyncio
    async def test_effects_and_transforms(self):
        """5 + 10 via transform, then + 5 via an effect mutating value."""
        async def tag(ctx):
            ctx.set("tag", "test")

        async def add_ten(ctx):
            return ctx.value + 10

        async def add_five(ctx):
            ctx.value += 5

        pipeline = ContextPipeline.start().step(tag).transform(add_ten).step(add_five)

        assert await pipeline.execute(5) == 20

    @pytest.mark.asyncio
    async def test_effect_return_value_is_ignored(self):
        pipeline = ContextPipeline.start().step(lambda ctx: "ignored")

        assert await pipeline.execute(1) == 1

    @pytest.mark.asyncio
    async def test_metadata_flows_between_steps(self):
        pipeline = (
            ContextPipeline.start()
            .step(lambda ctx: ctx.set("multiplier", 3))
            .transform(lambda ctx: ctx.value * ctx.get("multiplier", int))
        )

        assert await pipeline.execute(4) == 12

    @pytest.mark.asyncio
    async def test_fresh_context_per_execution(self):
        """Metadata written in one run is not visible in the next."""
        seen = []

        def record(ctx):
            seen.append(ctx.get("count", int, default=0))
            ctx.set("count", seen[-1] + 1)

        pipeline = ContextPipeline.start().step(record)

        await pipeline.execute(None)
        await pipeline.execute(None)

        assert seen == [0, 0]

    @pytest.mark.asyncio
    async def test_error_aborts_remaining_steps(self):
        ran = []

        async def fail(ctx):
            raise ValueError("context step failed")

        pipeline = (
            ContextPipeline.start()
            .transform(fail)
            .step(lambda ctx: ran.append(ctx.value))
        )

        with pytest.raises(ValueError, match="context step failed"):
            await pipeline.execute(1)
        assert ran == []

    @pytest.mark.asyncio
    async def test_type_mismatch_inside_step_propagates(self):
        pipeline = (
            ContextPipeline.start()
            .step(lambda ctx: ctx.set("n", "not an int"))
            .transform(lambda ctx: ctx.get("n", int))
        )

        with pytest.raises(TypeMismatchError):
            await pipeline.execute(0)

    def test_builder_is_immutable(self):
        base = ContextPipeline.start().step(lambda ctx: None)
        extended = base.transform(lambda ctx: ctx.value, "Keep")

        assert len(base) == 1
        assert len(extended) == 2
        assert repr(extended) == "ContextPipeline(stages=['Step1', 'Keep'])"
