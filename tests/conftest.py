"""Test configuration and fixtures for PageGraph tests."""

import json
import os
import shutil
import sys
import tempfile
from pathlib import Path

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from pagegraph_pkg.graph import NodeGraph
from pagegraph_pkg.nodes import ContentNode, FILE_TYPE, MARKDOWN_REMARK_TYPE
from pagegraph_pkg.processor import NodeProcessor
from pagegraph_pkg.settings import BuildConfig

SAMPLE_SVG = """<?xml version="1.0" encoding="UTF-8"?>
<svg xmlns="http://www.w3.org/2000/svg" id="check" viewBox="0 0 24 24">
  <!-- exported icon -->
  <style>.stroke { stroke: #005ea2; fill: none }</style>
  <path class="stroke" d="M4 12l5 5L20 6"/>
</svg>
"""


@pytest.fixture
def sample_svg():
    return SAMPLE_SVG


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    temp_dir = tempfile.mkdtemp()
    yield temp_dir
    shutil.rmtree(temp_dir, ignore_errors=True)


@pytest.fixture
def content_dir(temp_dir):
    """Create a content directory with pages, posts and icons."""
    content_dir = Path(temp_dir) / 'content'
    pages_dir = content_dir / 'pages'
    posts_dir = content_dir / 'posts'
    icons_dir = content_dir / 'icons'
    for directory in (pages_dir, posts_dir, icons_dir):
        directory.mkdir(parents=True)

    (pages_dir / 'home.json').write_text(json.dumps({
        'navigation': {'title': 'Home', 'link': '/'},
        'sections': [{
            'type': 'hero',
            'title': 'Welcome',
            'mdMain': '# Welcome\n\nHello **world**.',
            'icons': [{'icon': 'icons/check.svg', 'title': 'Fast'}],
        }],
    }))
    (pages_dir / 'about.json').write_text(json.dumps({
        'navigation': {'title': 'About', 'link': '/about'},
        'sections': [{'type': 'text', 'mdMain': 'About the program.'}],
    }))

    (posts_dir / 'first-post.md').write_text("""---
title: First Post
type: blog
date: 2024-03-01
---

![Chart](images/chart.png)

The first post.
""")
    (posts_dir / 'second-post.md').write_text("""---
title: Second Post
type: blog
date: 2024-04-01
---

The second post.
""")
    (posts_dir / 'press-release.md').write_text("""---
title: Press Release
type: announcements
date: 2024-02-01
externalLink: https://example.org/press
---

Read it elsewhere.
""")
    (posts_dir / 'weekly-update.md').write_text("""---
title: Weekly Update
type: news
date: 2024-05-01
---

News of the week.
""")

    (icons_dir / 'check.svg').write_text(SAMPLE_SVG)
    (content_dir / '.DS_Store').write_text('ignored')

    return str(content_dir)


@pytest.fixture
def output_dir(temp_dir):
    """Create an output directory."""
    output_dir = Path(temp_dir) / 'public'
    output_dir.mkdir()
    return str(output_dir)


@pytest.fixture
def graph():
    """A node graph with the site schema's node types registered."""
    graph = NodeGraph()
    NodeProcessor().create_schema_customization(graph)
    return graph


@pytest.fixture
def make_file_node(graph):
    """Factory adding a File node to the graph."""
    def _make(relative_path, media_type=None, absolute_path=None, content=None):
        base = relative_path.rsplit('/', 1)[-1]
        node = ContentNode(
            id=graph.create_node_id(f"content >>> {relative_path}"),
            type=FILE_TYPE,
            payload={
                'name': base.rsplit('.', 1)[0],
                'base': base,
                'relative_path': relative_path,
                'absolute_path': absolute_path,
            },
            media_type=media_type,
            content=content,
            content_digest=graph.create_content_digest(relative_path),
        )
        return graph.create_node(node)
    return _make


@pytest.fixture
def make_remark(graph):
    """Factory adding a MarkdownRemark node with the given front matter and slug."""
    def _make(seed, frontmatter, slug=None, body=''):
        node = ContentNode(
            id=graph.create_node_id(seed),
            type=MARKDOWN_REMARK_TYPE,
            payload={'frontmatter': frontmatter, 'raw_markdown_body': body, 'html': body},
            content_digest=graph.create_content_digest({'seed': seed, 'frontmatter': frontmatter}),
        )
        node = graph.create_node(node)
        if slug is not None:
            graph.create_node_field(node, 'slug', slug)
        return node
    return _make


@pytest.fixture
def production_config():
    return BuildConfig(node_env='production', context='production', site_url='https://example.gov')
