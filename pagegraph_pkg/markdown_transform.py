"""
Markdown parsing and rendering.

Markdown content (``.md`` files and markdown lifted out of JSON fields) is
parsed with mistune into a token tree, run through the relative-pathify
image transform, and rendered to HTML.
"""

import logging
import re

import mistune
import yaml

from .exceptions import ContentLoadError
from .nodes import ContentNode, MARKDOWN_MEDIA_TYPE, MARKDOWN_REMARK_TYPE
from .utils import generate_excerpt

MARKDOWN_PLUGINS = ['table', 'task_lists', 'strikethrough']

FRONT_MATTER_RE = re.compile(r'\A---[ \t]*\n(.*?)^---[ \t]*$\n?', re.MULTILINE | re.DOTALL)

logger = logging.getLogger('PageGraph.Markdown')


def iter_tokens(tokens, token_type=None):
    """Depth-first walk over a mistune token tree."""
    for token in tokens:
        if token_type is None or token.get('type') == token_type:
            yield token
        children = token.get('children')
        if isinstance(children, list):
            yield from iter_tokens(children, token_type)


def relative_pathify_images(tokens, relative_path_prefix):
    """
    Prefix image URLs that don't already start with ``.``.

    Args:
        tokens: mistune token tree, modified in place
        relative_path_prefix: Prefix added in front of each image URL

    Returns:
        The same token tree
    """
    if tokens is None:
        logger.error("relative-pathify-images: markdown AST is required")
        return tokens

    if not relative_path_prefix:
        logger.warning("relative-pathify-images: relative_path_prefix option is missing")
        return tokens

    for token in iter_tokens(tokens, 'image'):
        attrs = token.setdefault('attrs', {})
        url = attrs.get('url')
        if not url:
            logger.warning("relative-pathify-images: image node missing URL")
            continue
        if not url.startswith('.'):
            attrs['url'] = f"{relative_path_prefix}{url}"

    return tokens


def parse_front_matter(text, source=None):
    """Split YAML front matter from a markdown document."""
    match = FRONT_MATTER_RE.match(text)
    if not match:
        return {}, text

    try:
        metadata = yaml.safe_load(match.group(1)) or {}
    except yaml.YAMLError as e:
        logger.error(f"Invalid YAML front matter in {source}: {e}")
        metadata = {}
    if not isinstance(metadata, dict):
        logger.warning(f"Front matter in {source} is not a mapping, ignoring it")
        metadata = {}

    return metadata, text[match.end():]


class MarkdownRenderer:
    """mistune HTML rendering with the image path transform in between."""

    def __init__(self, relative_path_prefix=None):
        self.relative_path_prefix = relative_path_prefix
        self.ast_parser = mistune.create_markdown(renderer='ast', plugins=MARKDOWN_PLUGINS)
        self.html_parser = self.create_markdown_parser()

    def create_markdown_parser(self):
        """Create a Mistune markdown parser with a custom renderer."""
        class CustomRenderer(mistune.HTMLRenderer):
            def __init__(self):
                super().__init__(escape=False)
            def block_code(self, code, info=None):
                escaped_code = mistune.escape(code)
                return '<pre style="white-space: pre-wrap;"><code>{}</code></pre>'.format(escaped_code)
        return mistune.create_markdown(
            renderer=CustomRenderer(),
            plugins=MARKDOWN_PLUGINS
        )

    def render(self, text):
        """Convert markdown text to HTML."""
        tokens, state = self.ast_parser.parse(text)
        if self.relative_path_prefix:
            relative_pathify_images(tokens, self.relative_path_prefix)
        return self.html_parser.renderer(tokens, state)


class MarkdownTransformer:
    """Creates a ``MarkdownRemark`` child for every markdown node."""

    def __init__(self, renderer=None):
        self.renderer = renderer or MarkdownRenderer()
        self.logger = logging.getLogger('PageGraph.MarkdownTransformer')

    async def on_create_node(self, node, graph):
        if node.media_type != MARKDOWN_MEDIA_TYPE:
            return

        try:
            text = await graph.load_node_content(node)
        except ContentLoadError as e:
            self.logger.error(f"Failed to load markdown for {node.id}: {e}")
            return

        frontmatter, body = parse_front_matter(text, source=node.payload.get('relative_path', node.id))
        html = self.renderer.render(body)
        markdown_node = ContentNode(
            id=graph.create_node_id(f"{node.id} >>> {MARKDOWN_REMARK_TYPE}"),
            type=MARKDOWN_REMARK_TYPE,
            parent=node.id,
            payload={
                'frontmatter': frontmatter,
                'raw_markdown_body': body,
                'html': html,
                'excerpt': generate_excerpt(html),
            },
            content_digest=graph.create_content_digest(text),
        )
        graph.create_node(markdown_node)
        graph.create_parent_child_link(node, markdown_node)
        self.logger.debug(f"Created {MARKDOWN_REMARK_TYPE} {markdown_node.id} from {node.id}")
