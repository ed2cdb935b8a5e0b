"""
sonar-analyze — property tree flattener.

File: src/sonar_analyze/flattener.py

Purpose
- Turn a rooted tree of configuration nodes into one flat, dot-namespaced property
  map that the analysis engine accepts.

Behavior
- Depth-first pre-order: a node's own properties are written under its prefix
  before any child is visited.
- A skipped node contributes nothing, and neither does its subtree. It is also left
  out of its parent's module list.
- The sources key is always present at each visited prefix (empty when the node's
  conversion did not produce one).
- The modules key lists the non-skipped direct children in insertion order and is
  omitted when there are none.

Non-functional requirements
- Pure: no I/O and no mutation of the input tree. The only side effect is an INFO
  log line per skipped node, sent to the injected logger.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping, Sequence
from typing import Protocol, TypeAlias

from sonar_analyze.constants import MODULE_SEPARATOR, MODULES_KEY, SKIP_PROPERTY, SOURCES_KEY
from sonar_analyze.model.converter import convert, join_key

FlatPropertyMap: TypeAlias = dict[str, str]

_LOGGER = logging.getLogger(__name__)


class FlattenableNode(Protocol):
    """Structural view of a configuration node used by the flattener."""

    @property
    def name(self) -> str: ...

    @property
    def skip(self) -> bool: ...

    @property
    def children(self) -> Sequence[FlattenableNode]: ...


NodeConverter: TypeAlias = Callable[[FlattenableNode, str | None], Mapping[str, str]]


class PropertyTreeFlattener:
    """Flatten a configuration tree into a single namespaced property map."""

    __slots__ = ("_converter", "_logger", "_modules_key", "_sources_key")

    def __init__(
        self,
        *,
        converter: NodeConverter | None = None,
        logger: logging.Logger | None = None,
        sources_key: str = SOURCES_KEY,
        modules_key: str = MODULES_KEY,
    ) -> None:
        self._converter: NodeConverter = converter if converter is not None else convert
        self._logger = logger if logger is not None else _LOGGER
        self._sources_key = sources_key
        self._modules_key = modules_key

    def flatten(self, root: FlattenableNode) -> FlatPropertyMap:
        properties: FlatPropertyMap = {}
        self._extract(root, properties, None)
        return properties

    def is_skipped(self, node: FlattenableNode) -> bool:
        """Return ``node.skip``, logging the exclusion when it is set."""

        if node.skip:
            self._logger.info(
                "Skipping Sonar analysis for project '%s' and its subprojects "
                "because '%s' is 'true'",
                node.name,
                SKIP_PROPERTY,
            )
            return True
        return False

    def _extract(
        self,
        node: FlattenableNode,
        properties: FlatPropertyMap,
        prefix: str | None,
    ) -> None:
        if self.is_skipped(node):
            return
        properties.update(self._converter(node, prefix))
        # must always be set, even when empty
        properties.setdefault(join_key(prefix, self._sources_key), "")
        self._extract_children(node, properties, prefix)

    def _extract_children(
        self,
        node: FlattenableNode,
        properties: FlatPropertyMap,
        prefix: str | None,
    ) -> None:
        modules: list[str] = []
        for child in node.children:
            if self.is_skipped(child):
                continue
            modules.append(child.name)
            self._extract(child, properties, join_key(prefix, child.name))
        if modules:
            properties[join_key(prefix, self._modules_key)] = MODULE_SEPARATOR.join(modules)


def flatten(root: FlattenableNode, *, logger: logging.Logger | None = None) -> FlatPropertyMap:
    """Flatten ``root`` with the default conversion rule."""

    return PropertyTreeFlattener(logger=logger).flatten(root)


__all__ = [
    "FlatPropertyMap",
    "FlattenableNode",
    "NodeConverter",
    "PropertyTreeFlattener",
    "flatten",
]
