"""
In-memory node graph used during a build.

The graph is append-only while a build runs: hooks create nodes, attach
fields and link children, but never remove anything. Newly created nodes are
queued so the builder can run the node-created hooks over them.
"""

import asyncio
import json
import logging
import uuid
from datetime import date
from hashlib import md5
from typing import Any, Dict, List, Optional

from .exceptions import ContentLoadError
from .nodes import ContentNode, set_path
from .utils import parse_date

# Namespace for deterministic node ids
NODE_ID_NAMESPACE = uuid.UUID('2f4bd3c6-5e1a-4e36-9a40-8d2f1c7b6a51')

FILTER_OPERATORS = ('eq', 'ne', 'in', 'nin', 'exists')


def _read_text(path):
    with open(path, 'r', encoding='utf-8') as f:
        return f.read()


def _sort_value(value):
    """Normalize date-like values so that dates sort chronologically."""
    if isinstance(value, (date, str)):
        parsed = parse_date(value, default=None)
        if parsed is not None:
            return parsed
    return value


class QueryResult:
    """Result set of a graph query; ``errors`` is non-empty when it failed."""

    def __init__(self, data: Optional[List[Dict[str, Any]]] = None, errors: Optional[List[str]] = None):
        self.data = list(data or [])
        self.errors = list(errors or [])

    def __repr__(self):
        return f"QueryResult(data={len(self.data)} rows, errors={self.errors!r})"


class NodeGraph:
    def __init__(self):
        self.nodes: Dict[str, ContentNode] = {}
        self.type_defs: Dict[str, Any] = {}
        self._pending: List[ContentNode] = []
        self.logger = logging.getLogger('PageGraph.NodeGraph')

    # ------------------------------------------------------------------
    # Node actions
    # ------------------------------------------------------------------

    def create_node_id(self, seed: str) -> str:
        """Deterministic node id for a seed string."""
        return str(uuid.uuid5(NODE_ID_NAMESPACE, seed))

    @staticmethod
    def create_content_digest(content) -> str:
        """Stable md5 digest of a string, bytes, or JSON-serializable value."""
        if isinstance(content, bytes):
            data = content
        elif isinstance(content, str):
            data = content.encode('utf-8')
        else:
            data = json.dumps(content, sort_keys=True, default=str).encode('utf-8')
        return md5(data).hexdigest()

    def create_types(self, type_defs: Dict[str, Any]) -> None:
        """Register schema type definitions (see ``schema.Schema``)."""
        self.type_defs.update(type_defs)

    def create_node(self, node: ContentNode) -> ContentNode:
        """
        Add a node to the graph and queue it for the node-created hooks.

        Re-creating a node with the same id, type and content digest is a
        no-op and returns the node already in the graph.
        """
        existing = self.nodes.get(node.id)
        if (existing is not None and existing.type == node.type
                and existing.content_digest == node.content_digest):
            self.logger.debug(f"Node {node.id} unchanged, skipping re-creation")
            return existing

        if existing is not None:
            self.logger.debug(f"Replacing node {node.id} ({existing.type})")
        self.nodes[node.id] = node
        self._pending.append(node)
        return node

    def get_node(self, node_id: Optional[str]) -> Optional[ContentNode]:
        if node_id is None:
            return None
        return self.nodes.get(node_id)

    def get_nodes_by_type(self, type_name: str) -> List[ContentNode]:
        return [node for node in self.nodes.values() if node.type == type_name]

    def create_node_field(self, node: ContentNode, name: str, value) -> None:
        node.fields[name] = value

    def create_parent_child_link(self, parent: ContentNode, child: ContentNode) -> None:
        if child.id not in parent.children:
            parent.children.append(child.id)

    def take_pending(self) -> List[ContentNode]:
        """Return and clear the nodes created since the last call."""
        batch, self._pending = self._pending, []
        return batch

    def has_pending(self) -> bool:
        return bool(self._pending)

    async def load_node_content(self, node: ContentNode) -> str:
        """Return inline node content, or read it from the node's file."""
        if node.content is not None:
            return node.content

        path = node.payload.get('absolute_path')
        if not path:
            raise ContentLoadError(f"Node {node.id} has no content to load")

        try:
            return await asyncio.to_thread(_read_text, path)
        except (IOError, OSError, UnicodeDecodeError) as e:
            raise ContentLoadError(f"Failed to read {path}: {e}") from e

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def known_types(self):
        types = set(self.type_defs)
        types.update(node.type for node in self.nodes.values())
        return types

    def find_one(self, type_name: str, path: str, value) -> Optional[ContentNode]:
        """First node of ``type_name`` whose ``path`` equals ``value``."""
        for node in self.nodes.values():
            if node.type == type_name and node.get(path) == value:
                return node
        return None

    def query(self, type_name: str, filter: Optional[Dict[str, Any]] = None,
              sort: Optional[Dict[str, str]] = None, fields: Optional[List[str]] = None,
              skip: int = 0, limit: Optional[int] = None) -> QueryResult:
        """
        Run a declarative query over all nodes of one type.

        Args:
            type_name: Node type to select (``MarkdownRemark``, ``PagesJson``...)
            filter: Mapping of dotted path to ``{operator: operand}``; a bare
                value is shorthand for ``{'eq': value}``
            sort: ``{'field': <dotted path>, 'order': 'ASC' | 'DESC'}``; ties
                and missing values are ordered by node id
            fields: Dotted paths to project; ``None`` returns whole nodes
            skip: Number of rows to drop from the front of the result
            limit: Maximum number of rows to return

        Returns:
            QueryResult with ``errors`` set instead of raising
        """
        if type_name not in self.known_types():
            return QueryResult(errors=[f'Unknown type "{type_name}"'])

        try:
            nodes = [node for node in self.get_nodes_by_type(type_name)
                     if self._matches(node, filter or {})]
            if sort:
                nodes = self._sort(nodes, sort)
            end = skip + limit if limit is not None else None
            data = [self._project(node, fields) for node in nodes[skip:end]]
        except (TypeError, ValueError) as e:
            self.logger.debug(f"Query on {type_name} failed: {e}")
            return QueryResult(errors=[str(e)])

        return QueryResult(data=data)

    def _matches(self, node, filter_spec):
        for path, condition in filter_spec.items():
            if not isinstance(condition, dict):
                condition = {'eq': condition}
            value = node.get(path)
            for operator, operand in condition.items():
                if operator not in FILTER_OPERATORS:
                    raise ValueError(f'Unknown filter operator "{operator}" on {path}')
                if operator == 'eq' and value != operand:
                    return False
                if operator == 'ne' and value == operand:
                    return False
                if operator == 'in' and value not in operand:
                    return False
                if operator == 'nin' and value in operand:
                    return False
                if operator == 'exists' and (value is not None) != bool(operand):
                    return False
        return True

    def _sort(self, nodes, sort_spec):
        field = sort_spec.get('field')
        order = str(sort_spec.get('order', 'ASC')).upper()
        if not field:
            raise ValueError("Sort requires a field")
        if order not in ('ASC', 'DESC'):
            raise ValueError(f'Invalid sort order "{order}"')

        by_id = sorted(nodes, key=lambda n: n.id)
        present = [n for n in by_id if n.get(field) is not None]
        missing = [n for n in by_id if n.get(field) is None]
        # sorted() is stable with reverse=True, so equal values stay in id order
        present = sorted(present, key=lambda n: _sort_value(n.get(field)), reverse=(order == 'DESC'))
        return present + missing

    def _project(self, node, fields):
        if fields is None:
            return node.to_dict()
        row = {}
        for path in fields:
            set_path(row, path, node.get(path))
        return row
