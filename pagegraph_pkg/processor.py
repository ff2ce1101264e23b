"""
Per-node pass over the build graph.

Runs for every node as it is created: assigns slugs, lifts markdown-bearing
JSON fields into their own nodes, and inlines optimized SVG files.
"""

import logging

from .exceptions import ContentLoadError, SvgOptimizeError
from .nodes import DerivedMarkdownNode, InlineAssetNode, FILE_TYPE, SVG_MEDIA_TYPE
from .schema import Schema
from .svg import SvgOptimizer

SLUG_TYPES = ('MarkdownRemark', 'PagesJson', 'ContentJson')
MARKDOWN_FIELD_TYPES = ('PagesJson',)
MARKDOWN_KEY_PREFIX = 'md'


def escape_key(key):
    return key.replace('\\', '\\\\').replace('.', '\\.')


class NodeProcessor:
    def __init__(self, optimizer=None, schema=None):
        self.optimizer = optimizer or SvgOptimizer()
        self.schema = schema or Schema.default()
        self.logger = logging.getLogger('PageGraph.NodeProcessor')

    def create_schema_customization(self, graph):
        graph.create_types({name: self.schema.types[name] for name in self.schema.node_types})

    async def on_create_node(self, node, graph):
        if node.type in SLUG_TYPES:
            self.derive_slug(node, graph)

        if node.type in MARKDOWN_FIELD_TYPES:
            self.extract_markdown_fields(node, graph)

        if node.media_type == SVG_MEDIA_TYPE:
            await self.resolve_inline_svg(node, graph)

    def derive_slug(self, node, graph):
        """Set ``fields.slug`` to the base name of the node's parent file."""
        file_node = graph.get_node(node.parent)
        if file_node is None:
            self.logger.warning(f"Parent file node not found for node: {node.id}")
            return None
        if file_node.type != FILE_TYPE:
            self.logger.debug(f"Parent of {node.id} is a {file_node.type}, not a file; no slug")
            return None

        slug = file_node.payload['name']
        graph.create_node_field(node, 'slug', slug)
        return slug

    def extract_markdown_fields(self, node, graph):
        """
        Create a markdown node for every string field whose key starts with
        ``md``, at any depth of the payload. Returns the created nodes.
        """
        created = []
        self._walk_fields(node, graph, node.payload, [], created)
        return created

    def _walk_fields(self, root, graph, value, path, created):
        items = value.items() if isinstance(value, dict) else enumerate(value)
        for key, child in items:
            key = str(key)
            child_path = path + [key]
            if isinstance(child, str):
                if key.startswith(MARKDOWN_KEY_PREFIX):
                    created.append(self._create_markdown_node(root, graph, key, child_path, child))
            elif isinstance(child, (dict, list)):
                self._walk_fields(root, graph, child, child_path, created)

    def _create_markdown_node(self, root, graph, key, path, markdown):
        key_path = '.'.join(escape_key(part) for part in path)
        markdown_node = DerivedMarkdownNode(
            id=graph.create_node_id(f"{root.id}.{key_path}"),
            parent=root.id,
            key=key,
            key_path=key_path,
            markdown=markdown,
            content_digest=graph.create_content_digest(markdown),
        )
        markdown_node = graph.create_node(markdown_node)
        graph.create_parent_child_link(root, markdown_node)
        return markdown_node

    async def resolve_inline_svg(self, node, graph):
        """Load, optimize and attach an SVG file as an ``InlineSvg`` child."""
        try:
            content = await graph.load_node_content(node)
        except ContentLoadError as e:
            self.logger.warning(f"Failed to load SVG file {node.id}: {e}")
            return None

        if not content:
            self.logger.warning(f"Empty content for SVG file: {node.id}")
            return None

        try:
            raw_svg = await self.optimizer.optimize(content)
        except SvgOptimizeError as e:
            self.logger.error(f"Error processing SVG file {node.id}: {e}")
            return None

        svg_node = InlineAssetNode(
            id=graph.create_node_id(node.id),
            parent=node.id,
            raw_svg=raw_svg,
            content_digest=graph.create_content_digest(raw_svg),
        )
        svg_node = graph.create_node(svg_node)
        graph.create_parent_child_link(node, svg_node)
        return svg_node
