"""Tests for shellbridge.core.bridge.serialization.

Version: 0.1.0
"""

from dataclasses import dataclass
from pathlib import PurePosixPath

from shellbridge.core.bridge.serialization import MAX_DEPTH, censor


@dataclass
class Point:
    x: int
    y: int


class Node:
    def __init__(self, name):
        self.name = name
        self.children = []
        self._private = "hidden"


def _nested(levels):
    root = {}
    current = root
    for _ in range(levels):
        child = {}
        current["n"] = child
        current = child
    return root


class TestCircularReferences:
    """Only active ancestors are reported as circular."""

    def test_self_referencing_mapping(self):
        value = {"a": 1}
        value["self"] = value
        assert censor(value) == {"a": 1, "self": "[Circular self: dict]"}

    def test_self_referencing_list(self):
        value = [1]
        value.append(value)
        assert censor(value) == [1, "[Circular 1: list]"]

    def test_indirect_cycle(self):
        parent = {"name": "parent"}
        child = {"name": "child", "parent": parent}
        parent["child"] = child
        assert censor(parent) == {
            "name": "parent",
            "child": {"name": "child", "parent": "[Circular parent: dict]"},
        }

    def test_repeated_siblings_are_not_circular(self):
        shared = {"x": 1}
        assert censor({"a": shared, "b": shared, "c": [shared, shared]}) == {
            "a": {"x": 1},
            "b": {"x": 1},
            "c": [{"x": 1}, {"x": 1}],
        }

    def test_object_graph_cycle(self):
        root = Node("root")
        leaf = Node("leaf")
        leaf.parent = root
        root.children.append(leaf)

        assert censor(root) == {
            "name": "root",
            "children": [
                {"name": "leaf", "children": [], "parent": "[Circular parent: Node]"},
            ],
        }


class TestDepthLimit:
    """Containers beyond the depth limit become MaxDepth markers."""

    def test_default_limit(self):
        result = censor(_nested(MAX_DEPTH + 50))

        levels = 0
        current = result
        while isinstance(current, dict):
            levels += 1
            current = current["n"]
        assert levels == MAX_DEPTH
        assert current == "[MaxDepth n: dict]"

    def test_custom_limit(self):
        assert censor(_nested(3), max_depth=3) == {"n": {"n": {"n": "[MaxDepth n: dict]"}}}

    def test_shallow_values_untouched(self):
        assert censor(_nested(5)) == _nested(5)


class TestValueConversion:
    """Leaf and container conversions."""

    def test_primitives_pass_through(self):
        assert censor({"s": "x", "i": 1, "f": 1.5, "b": True, "n": None}) == {
            "s": "x", "i": 1, "f": 1.5, "b": True, "n": None,
        }

    def test_functions_are_dropped(self):
        assert censor({"keep": 1, "fn": lambda: None}) == {"keep": 1}

    def test_functions_in_sequences_become_none(self):
        assert censor([1, len, 2]) == [1, None, 2]

    def test_top_level_function_is_none(self):
        assert censor(print) is None

    def test_tuples_and_sets_become_lists(self):
        assert censor((1, 2)) == [1, 2]
        assert censor({3}) == [3]

    def test_dataclass(self):
        assert censor(Point(1, 2)) == {"x": 1, "y": 2}

    def test_object_public_attributes(self):
        assert censor(Node("n")) == {"name": "n", "children": []}

    def test_to_dict_objects(self):
        class Custom:
            def to_dict(self):
                return {"kind": "custom"}

        assert censor({"value": Custom()}) == {"value": {"kind": "custom"}}

    def test_exception(self):
        assert censor(ValueError("bad")) == {"type": "ValueError", "message": "bad"}

    def test_bytes_and_paths(self):
        assert censor({"b": b"abc", "p": PurePosixPath("/a/b")}) == {"b": "abc", "p": "/a/b"}

    def test_non_string_keys(self):
        assert censor({1: "one"}) == {"1": "one"}

    def test_input_not_mutated(self):
        value = {"fn": len, "items": (1, 2)}
        censor(value)
        assert value["fn"] is len
        assert value["items"] == (1, 2)
