"""
Content sourcing: files on disk become ``File`` nodes, and JSON files are
turned into typed data nodes.
"""

import json
import logging
import mimetypes
import os
from hashlib import md5

from .exceptions import ContentLoadError
from .nodes import ContentNode, FILE_TYPE
from .utils import type_name_from

MEDIA_TYPES = {
    '.md': 'text/markdown',
    '.markdown': 'text/markdown',
    '.json': 'application/json',
    '.svg': 'image/svg+xml',
    '.yml': 'text/yaml',
    '.yaml': 'text/yaml',
}

JSON_MEDIA_TYPE = 'application/json'


def guess_media_type(path):
    ext = os.path.splitext(path)[1].lower()
    if ext in MEDIA_TYPES:
        return MEDIA_TYPES[ext]
    media_type, _ = mimetypes.guess_type(path)
    return media_type


class FilesystemSource:
    """Walks a content directory and creates one ``File`` node per file."""

    def __init__(self, content_dir, name='content'):
        self.content_dir = content_dir
        self.name = name
        self.logger = logging.getLogger('PageGraph.FilesystemSource')

    def source_nodes(self, graph):
        """Create File nodes for every non-hidden file; return how many."""
        if not os.path.isdir(self.content_dir):
            self.logger.warning(f"Content directory not found: {self.content_dir}")
            return 0

        count = 0
        for root, dirs, files in os.walk(self.content_dir):
            dirs[:] = sorted(d for d in dirs if not d.startswith('.'))
            for file in sorted(files):
                if file.startswith('.'):
                    continue
                node = self.create_file_node(graph, os.path.join(root, file))
                if node is not None:
                    graph.create_node(node)
                    count += 1

        self.logger.info(f"Sourced {count} files from {self.content_dir}")
        return count

    def create_file_node(self, graph, path):
        try:
            with open(path, 'rb') as f:
                data = f.read()
        except (IOError, OSError, PermissionError) as e:
            self.logger.error(f"Failed to read content file {path}: {e}")
            return None

        relative_path = os.path.relpath(path, self.content_dir).replace(os.sep, '/')
        base = os.path.basename(path)
        name, ext = os.path.splitext(base)
        relative_directory = os.path.dirname(relative_path)

        return ContentNode(
            id=graph.create_node_id(f"{self.name} >>> {relative_path}"),
            type=FILE_TYPE,
            payload={
                'name': name,
                'base': base,
                'extension': ext.lstrip('.').lower(),
                'relative_path': relative_path,
                'relative_directory': relative_directory,
                'absolute_path': os.path.abspath(path),
                'source_instance_name': self.name,
                'size': len(data),
            },
            media_type=guess_media_type(path),
            content_digest=md5(data).hexdigest(),
        )


class JsonTransformer:
    """
    Turns JSON files into data nodes.

    A file holding an object becomes one node typed after its directory
    (``pages/home.json`` -> ``PagesJson``); a file holding an array becomes
    one node per element typed after the file (``letters.json`` ->
    ``LettersJson``).
    """

    def __init__(self):
        self.logger = logging.getLogger('PageGraph.JsonTransformer')

    async def on_create_node(self, node, graph):
        if node.type != FILE_TYPE or node.media_type != JSON_MEDIA_TYPE:
            return

        relative_path = node.payload.get('relative_path', node.id)
        try:
            text = await graph.load_node_content(node)
        except ContentLoadError as e:
            self.logger.error(f"Failed to load JSON file {relative_path}: {e}")
            return

        try:
            parsed = json.loads(text)
        except json.JSONDecodeError as e:
            self.logger.error(f"Invalid JSON in {relative_path}: {e}")
            return

        if isinstance(parsed, list):
            type_name = type_name_from(node.payload['name'], 'Json')
            for index, item in enumerate(parsed):
                if not isinstance(item, dict):
                    self.logger.warning(f"Skipping non-object entry {index} in {relative_path}")
                    continue
                seed = str(item['id']) if item.get('id') else f"{node.id} [{index}] >>> JSON"
                self._create_data_node(graph, node, item, type_name, seed)
        elif isinstance(parsed, dict):
            directory = os.path.basename(os.path.dirname(node.payload['absolute_path']))
            type_name = type_name_from(directory, 'Json')
            self._create_data_node(graph, node, parsed, type_name, f"{node.id} >>> JSON")
        else:
            self.logger.warning(f"JSON file {relative_path} holds neither an object nor an array")

    def _create_data_node(self, graph, file_node, data, type_name, seed):
        data_node = ContentNode(
            id=graph.create_node_id(seed),
            type=type_name,
            parent=file_node.id,
            payload=data,
            content_digest=graph.create_content_digest(data),
        )
        graph.create_node(data_node)
        graph.create_parent_child_link(file_node, data_node)
