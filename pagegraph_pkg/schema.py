"""
Content schema for the site.

Types are written in a compact SDL-like YAML form. A field spec is a type
name, optionally wrapped in ``[...]`` for lists, suffixed with ``!`` when
required, and optionally followed by ``@link(by: <path>)`` to resolve the
stored value to another node whose ``<path>`` equals it.
"""

import logging
import re
from typing import Any, Dict, Optional

import yaml

from .exceptions import SchemaError

SCALAR_TYPES = {'String', 'Int', 'Float', 'Boolean', 'ID', 'Date', 'JSON'}
BUILTIN_NODE_TYPES = {'File'}

FIELD_SPEC_RE = re.compile(
    r'^(?P<open>\[)?(?P<type>\w+)(?P<required>!)?(?P<close>\])?'
    r'(?:\s+@link\(by:\s*"?(?P<link>[\w.]+)"?\))?$'
)

SITE_SCHEMA = """
UserLink:
  text: String
  link: String

Navigation:
  title: String
  metaDescription: String
  navOrder: Int
  text: String
  link: String
  subnav: "[UserLink]"

SideNav:
  includeSidenav: Boolean
  wrapSectionFirst: Int
  wrapSectionLast: Int
  menu: "[UserLink]"
  includeSocial: Boolean

IconElement:
  icon: "File @link(by: relative_path)"
  title: String
  cta: String
  ctaLink: String
  details: String

ImageElement:
  image: "File @link(by: relative_path)"
  altText: String

CategoryElement:
  title: String
  details: String
  cta: String
  ctaLink: String

Section:
  type: String!
  mdMain: "MarkdownRemark @link(by: raw_markdown_body)"
  mdCallout: "MarkdownRemark @link(by: raw_markdown_body)"
  heroImage: "File @link(by: relative_path)"
  image: "File @link(by: relative_path)"
  icons: "[IconElement]"
  categories: "[CategoryElement]"
  images: "[ImageElement]"
  altText: String
  title: String
  subtitle: String
  cta: String
  ctaLink: String
  numberTitles: Boolean
  tweetLimit: Int

PagesJson implements Node:
  navigation: Navigation
  sidenav: SideNav
  sections: "[Section]"

Frontmatter:
  image: "File @link(by: relative_path)"

MarkdownRemark implements Node:
  frontmatter: Frontmatter!

ContentJson implements Node:
  defaultHeroImage: "File @link(by: relative_path)"
"""


class FieldDef:
    def __init__(self, name, type_name, is_list=False, required=False, link_by=None):
        self.name = name
        self.type_name = type_name
        self.is_list = is_list
        self.required = required
        self.link_by = link_by

    @classmethod
    def parse(cls, name, spec):
        match = FIELD_SPEC_RE.match(str(spec).strip())
        if not match or bool(match.group('open')) != bool(match.group('close')):
            raise SchemaError(f'Invalid field spec for "{name}": {spec!r}')
        return cls(
            name,
            match.group('type'),
            is_list=bool(match.group('open')),
            required=bool(match.group('required')),
            link_by=match.group('link'),
        )


class TypeDef:
    def __init__(self, name, fields, is_node=False):
        self.name = name
        self.fields = fields
        self.is_node = is_node


class Schema:
    """Parsed type definitions plus link resolution over a node graph."""

    def __init__(self, types: Dict[str, TypeDef]):
        self.types = types
        self.logger = logging.getLogger('PageGraph.Schema')
        self._check_references()

    @classmethod
    def from_yaml(cls, text: str) -> 'Schema':
        try:
            raw = yaml.safe_load(text) or {}
        except yaml.YAMLError as e:
            raise SchemaError(f"Invalid schema document: {e}")
        if not isinstance(raw, dict):
            raise SchemaError("Schema document must be a mapping of type names")

        types = {}
        for key, fields in raw.items():
            name, _, interface = str(key).partition(' implements ')
            name = name.strip()
            field_defs = {}
            for field_name, spec in (fields or {}).items():
                field_defs[field_name] = FieldDef.parse(field_name, spec)
            types[name] = TypeDef(name, field_defs, is_node=interface.strip() == 'Node')
        return cls(types)

    @classmethod
    def default(cls) -> 'Schema':
        return cls.from_yaml(SITE_SCHEMA)

    def _check_references(self):
        known = SCALAR_TYPES | BUILTIN_NODE_TYPES | set(self.types)
        for type_def in self.types.values():
            for field in type_def.fields.values():
                if field.type_name not in known:
                    raise SchemaError(
                        f'{type_def.name}.{field.name} references unknown type "{field.type_name}"'
                    )
                if field.link_by and field.type_name in SCALAR_TYPES:
                    raise SchemaError(f'{type_def.name}.{field.name} cannot link to a scalar type')

    @property
    def node_types(self):
        return sorted(name for name, type_def in self.types.items() if type_def.is_node)

    def resolve_node(self, graph, node) -> Optional[Dict[str, Any]]:
        """Return the node as a dict with every link field resolved."""
        if node is None:
            return None
        return self.resolve(graph, node.type, node.to_dict())

    def resolve(self, graph, type_name, data):
        type_def = self.types.get(type_name)
        if type_def is None or not isinstance(data, dict):
            return data

        resolved = dict(data)
        for field in type_def.fields.values():
            value = data.get(field.name)
            if value is None:
                if field.required:
                    self.logger.warning(f"{type_name}.{field.name} is required but missing")
                continue
            if field.is_list:
                if not isinstance(value, list):
                    self.logger.warning(f"{type_name}.{field.name} should be a list, got {type(value).__name__}")
                    continue
                resolved[field.name] = [self._resolve_field(graph, field, item) for item in value]
            else:
                resolved[field.name] = self._resolve_field(graph, field, value)
        return resolved

    def _resolve_field(self, graph, field, value):
        if field.link_by:
            linked = graph.find_one(field.type_name, field.link_by, value)
            if linked is None:
                self.logger.debug(f"No {field.type_name} with {field.link_by} = {value!r} for {field.name}")
                return None
            return self.resolve(graph, linked.type, linked.to_dict())
        if field.type_name in self.types:
            return self.resolve(graph, field.type_name, value)
        return value
