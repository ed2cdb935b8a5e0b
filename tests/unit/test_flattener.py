"""
sonar-analyze — unit tests for the property tree flattener

File: tests/unit/test_flattener.py

Purpose
- Validate flattening of a configuration tree into one dot-namespaced property map.

What this test file should cover
- Mandatory sources default, prefix propagation, and module listing order.
- Skip exclusion of whole subtrees, with one INFO log line per skipped node.
- Determinism and structural invariants over generated trees.
- The default conversion rule end to end on real ``RootNode``/``ChildNode`` trees.

Non-functional requirements
- No I/O; loggers are injected per test.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from uuid import uuid4

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from sonar_analyze.flattener import PropertyTreeFlattener, flatten
from sonar_analyze.model import ChildNode, ProjectSettings, RootNode, join_key


@dataclass(frozen=True)
class FakeNode:
    name: str
    props: Mapping[str, str] = field(default_factory=dict)
    children: tuple[FakeNode, ...] = ()
    skip: bool = False


def _convert(node: FakeNode, prefix: str | None) -> dict[str, str]:
    return {join_key(prefix, key): value for key, value in node.props.items()}


def _flattener(logger: logging.Logger | None = None) -> PropertyTreeFlattener:
    return PropertyTreeFlattener(
        converter=_convert,  # type: ignore[arg-type]
        logger=logger,
        sources_key="sources",
        modules_key="modules",
    )


def _logger() -> logging.Logger:
    return logging.getLogger(f"tests.flattener.{uuid4().hex}")


@pytest.mark.unit
def test_single_node_yields_only_sources_default() -> None:
    assert _flattener().flatten(FakeNode("root")) == {"sources": ""}


@pytest.mark.unit
def test_child_properties_are_prefixed_and_listed_as_module() -> None:
    root = FakeNode("root", children=(FakeNode("childA", {"x": "1"}),))

    assert _flattener().flatten(root) == {
        "childA.x": "1",
        "childA.sources": "",
        "modules": "childA",
        "sources": "",
    }


@pytest.mark.unit
def test_skipped_only_child_removes_subtree_and_modules_key() -> None:
    root = FakeNode(
        "root",
        children=(
            FakeNode("childA", {"x": "1"}, children=(FakeNode("leaf", {"y": "2"}),), skip=True),
        ),
    )

    result = _flattener().flatten(root)

    assert result == {"sources": ""}
    assert not any(key.startswith("childA.") for key in result)


@pytest.mark.unit
def test_skipped_sibling_is_left_out_of_module_list() -> None:
    root = FakeNode(
        "root",
        children=(FakeNode("a"), FakeNode("b", skip=True), FakeNode("c")),
    )

    result = _flattener().flatten(root)

    assert result["modules"] == "a,c"
    assert "b.sources" not in result


@pytest.mark.unit
def test_existing_sources_value_is_not_overwritten() -> None:
    root = FakeNode("root", {"sources": "foo"}, children=(FakeNode("a", {"sources": "bar"}),))

    result = _flattener().flatten(root)

    assert result["sources"] == "foo"
    assert result["a.sources"] == "bar"


@pytest.mark.unit
def test_module_order_follows_insertion_order() -> None:
    root = FakeNode("root", children=(FakeNode("B"), FakeNode("A"), FakeNode("C")))

    assert _flattener().flatten(root)["modules"] == "B,A,C"


@pytest.mark.unit
def test_nested_prefixes_accumulate_names() -> None:
    root = FakeNode(
        "root",
        children=(FakeNode("core", children=(FakeNode("api", {"k": "v"}),)),),
    )

    result = _flattener().flatten(root)

    assert result == {
        "sources": "",
        "modules": "core",
        "core.sources": "",
        "core.modules": "api",
        "core.api.k": "v",
        "core.api.sources": "",
    }


@pytest.mark.unit
def test_flatten_does_not_mutate_input_tree() -> None:
    leaf_props = {"x": "1"}
    root = FakeNode("root", children=(FakeNode("a", leaf_props),))

    _flattener().flatten(root)

    assert leaf_props == {"x": "1"}
    assert root.children[0].props is leaf_props


@pytest.mark.unit
def test_skipped_root_yields_empty_map() -> None:
    root = FakeNode("root", {"x": "1"}, children=(FakeNode("a"),), skip=True)

    assert _flattener().flatten(root) == {}


@pytest.mark.unit
def test_each_skipped_node_logs_once_to_injected_logger(
    caplog: pytest.LogCaptureFixture,
) -> None:
    logger = _logger()
    root = FakeNode(
        "root",
        children=(
            FakeNode("a", skip=True, children=(FakeNode("hidden", skip=True),)),
            FakeNode("b", children=(FakeNode("c", skip=True),)),
        ),
    )

    with caplog.at_level(logging.INFO, logger=logger.name):
        _flattener(logger).flatten(root)

    messages = [record.getMessage() for record in caplog.records if record.name == logger.name]
    assert messages == [
        "Skipping Sonar analysis for project 'a' and its subprojects "
        "because 'sonar.project.skip' is 'true'",
        "Skipping Sonar analysis for project 'c' and its subprojects "
        "because 'sonar.project.skip' is 'true'",
    ]
    assert all(
        record.levelno == logging.INFO for record in caplog.records if record.name == logger.name
    )


@pytest.mark.unit
def test_default_rule_on_real_tree() -> None:
    root = RootNode(
        project=ProjectSettings(name="app", key="org.example:app", source_dirs=("src",)),
        children=(
            ChildNode(project=ProjectSettings(name="core", language="java")),
            ChildNode(project=ProjectSettings(name="legacy", skip=True, source_dirs=("old",))),
            ChildNode(project=ProjectSettings(name="web", source_dirs=("web/src",))),
        ),
    )

    assert flatten(root, logger=_logger()) == {
        "sonar.projectKey": "org.example:app",
        "sonar.sources": "src",
        "sonar.modules": "core,web",
        "core.sonar.language": "java",
        "core.sonar.sources": "",
        "web.sonar.sources": "web/src",
    }


# ---------------------------------------------------------------------------
# Generated trees
# ---------------------------------------------------------------------------

_names = st.text(alphabet="abcdefghijklmnopqrstuvwxyz", min_size=1, max_size=6)
_props = st.dictionaries(
    st.sampled_from(["x", "y", "sources", "key"]),
    st.text(alphabet="abc123", max_size=4),
    max_size=3,
)


def _with_unique_children(children: list[FakeNode]) -> tuple[FakeNode, ...]:
    unique: dict[str, FakeNode] = {}
    for child in children:
        unique.setdefault(child.name, child)
    return tuple(unique.values())


_trees = st.recursive(
    st.builds(FakeNode, name=_names, props=_props, skip=st.booleans()),
    lambda inner: st.builds(
        FakeNode,
        name=_names,
        props=_props,
        skip=st.booleans(),
        children=st.lists(inner, max_size=4).map(_with_unique_children),
    ),
    max_leaves=20,
)


def _visible_nodes(node: FakeNode, prefix: str | None) -> list[tuple[str | None, FakeNode]]:
    if node.skip:
        return []
    visible = [(prefix, node)]
    for child in node.children:
        visible.extend(_visible_nodes(child, join_key(prefix, child.name)))
    return visible


@pytest.mark.unit
@settings(max_examples=75, deadline=None)
@given(tree=_trees)
def test_flatten_is_deterministic(tree: FakeNode) -> None:
    flattener = _flattener(_logger())

    first = flattener.flatten(tree)
    second = flattener.flatten(tree)

    assert first == second
    assert list(first) == list(second)


@pytest.mark.unit
@settings(max_examples=75, deadline=None)
@given(tree=_trees)
def test_flatten_structural_invariants(tree: FakeNode) -> None:
    result = _flattener(_logger()).flatten(tree)

    for prefix, node in _visible_nodes(tree, None):
        assert join_key(prefix, "sources") in result
        modules = [child.name for child in node.children if not child.skip]
        modules_key = join_key(prefix, "modules")
        if modules:
            assert result[modules_key] == ",".join(modules)
        else:
            assert modules_key not in result
