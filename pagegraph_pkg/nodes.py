"""
Node and route types shared by the PageGraph pipeline.

Nodes live in the in-memory graph owned by the builder. Loaded content
produces ``File``, ``*Json`` and ``MarkdownRemark`` nodes; the per-node pass
synthesizes ``JsonMarkdownField`` and ``InlineSvg`` nodes on top of them.
"""

import enum
from typing import Any, Dict, List, Optional

FILE_TYPE = 'File'
MARKDOWN_REMARK_TYPE = 'MarkdownRemark'
JSON_MARKDOWN_FIELD_TYPE = 'JsonMarkdownField'
INLINE_SVG_TYPE = 'InlineSvg'

MARKDOWN_MEDIA_TYPE = 'text/markdown'
SVG_MEDIA_TYPE = 'image/svg+xml'

_MISSING = object()


def get_path(data, path: str, default=None):
    """Look up a dotted path (``frontmatter.date``) in nested dicts and lists."""
    current = data
    for part in path.split('.'):
        if isinstance(current, dict):
            current = current.get(part, _MISSING)
        elif isinstance(current, (list, tuple)) and part.isdigit():
            index = int(part)
            current = current[index] if index < len(current) else _MISSING
        else:
            current = _MISSING
        if current is _MISSING:
            return default
    return current


def set_path(data: Dict[str, Any], path: str, value) -> None:
    """Assign ``value`` at a dotted path, creating intermediate dicts."""
    parts = path.split('.')
    current = data
    for part in parts[:-1]:
        current = current.setdefault(part, {})
    current[parts[-1]] = value


class ContentNode:
    """A unit of content in the build graph."""

    def __init__(self, id: str, type: str, parent: Optional[str] = None,
                 children: Optional[List[str]] = None, payload: Optional[Dict[str, Any]] = None,
                 media_type: Optional[str] = None, content: Optional[str] = None,
                 content_digest: Optional[str] = None):
        self.id = id
        self.type = type
        self.parent = parent
        self.children = list(children or [])
        self.payload = dict(payload or {})
        self.fields: Dict[str, Any] = {}
        self.media_type = media_type
        self.content = content
        self.content_digest = content_digest

    def get(self, path: str, default=None):
        """
        Resolve a dotted path against the node.

        ``id``, ``parent`` and ``children`` address the node itself, paths
        starting with ``fields.`` address hook-attached fields, and anything
        else is looked up in the payload.
        """
        if path in ('id', 'parent', 'children'):
            return getattr(self, path)
        if path == 'fields' or path.startswith('fields.'):
            return get_path({'fields': self.fields}, path, default)
        return get_path(self.payload, path, default)

    def to_dict(self) -> Dict[str, Any]:
        """Flatten the node into a plain dict for templates and queries."""
        data = dict(self.payload)
        data.update({
            'id': self.id,
            'parent': self.parent,
            'children': list(self.children),
            'fields': dict(self.fields),
            'internal': {
                'type': self.type,
                'media_type': self.media_type,
                'content_digest': self.content_digest,
            },
        })
        return data

    def __repr__(self):
        return f"<{self.__class__.__name__} {self.type} {self.id}>"


class DerivedMarkdownNode(ContentNode):
    """Markdown string lifted out of a structured content node."""

    def __init__(self, id: str, parent: str, key: str, key_path: str, markdown: str, content_digest: str):
        super().__init__(
            id=id,
            type=JSON_MARKDOWN_FIELD_TYPE,
            parent=parent,
            payload={'key': key, 'key_path': key_path},
            media_type=MARKDOWN_MEDIA_TYPE,
            content=markdown,
            content_digest=content_digest,
        )
        self.key = key
        self.key_path = key_path

    @property
    def markdown(self) -> str:
        return self.content


class InlineAssetNode(ContentNode):
    """Optimized SVG markup attached to the file it was loaded from."""

    def __init__(self, id: str, parent: str, raw_svg: str, content_digest: str):
        super().__init__(
            id=id,
            type=INLINE_SVG_TYPE,
            parent=parent,
            payload={'raw_svg': raw_svg},
            content_digest=content_digest,
        )

    @property
    def raw_svg(self) -> str:
        return self.payload['raw_svg']


class TemplateId(enum.Enum):
    STATIC_PAGE = 'static-page'
    MEDIA_LIST = 'media-list'
    MEDIA_PAGE = 'media-page'
    NEWS_LIST = 'news-list'

    @property
    def template_name(self) -> str:
        return f"{self.value}.html"


class RouteDescriptor:
    """One page to render: where it goes, which template, and its context."""

    def __init__(self, path: str, template: TemplateId, context: Optional[Dict[str, Any]] = None):
        self.path = path
        self.template = template
        self.context = dict(context or {})

    def __eq__(self, other):
        if not isinstance(other, RouteDescriptor):
            return NotImplemented
        return (self.path, self.template, self.context) == (other.path, other.template, other.context)

    def __repr__(self):
        return f"RouteDescriptor({self.path!r}, {self.template.value!r})"
