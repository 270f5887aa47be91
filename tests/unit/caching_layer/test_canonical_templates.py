"""
Unit Tests for Canonical Serialization and Templates
"""

from dataclasses import dataclass

import pytest

from readthrough.caching.canonical import canonical_bytes, digest, serialize_argument
from readthrough.caching.templates import argument_template, argument_values, expand_template


@dataclass
class Book:
    ID: int
    title: str


@pytest.mark.unit
class TestCanonical:
    def test_key_order_does_not_matter(self):
        assert canonical_bytes({"b": 1, "a": 2}) == canonical_bytes({"a": 2, "b": 1})

    def test_sets_are_order_independent(self):
        assert digest({3, 1, 2}) == digest({2, 3, 1})

    def test_dataclasses_are_reduced(self):
        assert digest(Book(1, "Raven")) == digest(Book(1, "Raven"))
        assert digest(Book(1, "Raven")) != digest(Book(2, "Raven"))

    def test_to_canonical_is_honoured(self):
        class Custom:
            def to_canonical(self):
                return {"id": 5}

        assert digest(Custom()) == digest({"id": 5})

    def test_oversized_integer_still_digests(self):
        assert len(digest(2**80)) == 64


class Point:
    __slots__ = ("x", "y")

    def __init__(self, x, y):
        self.x = x
        self.y = y


class Opaque:
    __slots__ = ()


@pytest.mark.unit
class TestCanonicalObjects:
    def test_slotted_objects_are_reduced_to_their_fields(self):
        first, second = Point(1, 2), Point(1, 2)

        assert digest(first) == digest(second)
        assert digest(first) != digest(Point(2, 1))
        assert canonical_bytes(first) == canonical_bytes({"x": 1, "y": 2})

    def test_plain_objects_carry_no_memory_address(self):
        first, second = Opaque(), Opaque()

        assert digest(first) == digest(second)
        assert b"0x" not in canonical_bytes(first)

    def test_objects_with_attributes_are_reduced(self):
        class Filter:
            def __init__(self, author):
                self.author = author
                self._cursor = object()

        assert digest(Filter("Poe")) == digest(Filter("Poe"))
        assert digest(Filter("Poe")) == digest({"author": "Poe"})


@pytest.mark.unit
class TestSerializeArgument:
    @pytest.mark.parametrize(
        "arg,expected",
        [
            (None, "null"),
            (True, "true"),
            ("x", "x"),
            (3, "3"),
            ([1, "a"], "[1,a]"),
        ],
    )
    def test_scalars_and_sequences(self, arg, expected):
        assert serialize_argument(arg) == expected

    def test_structured_values_are_digested(self):
        assert serialize_argument({"a": 1}) == digest({"a": 1})


@pytest.mark.unit
class TestTemplates:
    def test_expansion_is_single_pass(self):
        assert expand_template("{tenant}:{hash}", {"tenant": "{hash}", "hash": "h"}) == "{hash}:h"

    def test_aliases(self):
        assert expand_template("{functionName}", {"function_name": "f"}) == "f"

    def test_argument_values(self):
        assert argument_values(["a", 2]) == {"args[0]": "a", "args[1]": "2"}

    def test_argument_template(self):
        assert argument_template("{hash}", 2) == "{hash}:{args[0]}:{args[1]}"
        assert argument_template("base", 0) == "base"
