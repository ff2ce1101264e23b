"""Tests for the per-node pass: slugs, markdown field extraction and inline SVGs."""

import logging
from unittest.mock import AsyncMock, Mock

import pytest

from pagegraph_pkg.exceptions import SvgOptimizeError
from pagegraph_pkg.nodes import ContentNode, SVG_MEDIA_TYPE
from pagegraph_pkg.processor import NodeProcessor, escape_key


def make_data_node(graph, type_name, payload, parent=None, seed='page'):
    node = ContentNode(
        id=graph.create_node_id(seed),
        type=type_name,
        parent=parent,
        payload=payload,
        content_digest=graph.create_content_digest(payload),
    )
    return graph.create_node(node)


class TestDeriveSlug:
    """Test cases for NodeProcessor.derive_slug."""

    @pytest.mark.parametrize('type_name', ['MarkdownRemark', 'PagesJson', 'ContentJson'])
    def test_slug_is_parent_file_name(self, graph, make_file_node, type_name):
        """Test the slug equals the parent file's base name."""
        file_node = make_file_node('posts/my-first-post.md')
        node = make_data_node(graph, type_name, {}, parent=file_node.id)

        assert NodeProcessor().derive_slug(node, graph) == 'my-first-post'
        assert node.fields['slug'] == 'my-first-post'

    def test_missing_parent_logs_warning(self, graph, caplog):
        node = make_data_node(graph, 'PagesJson', {}, parent='gone')

        with caplog.at_level(logging.WARNING):
            assert NodeProcessor().derive_slug(node, graph) is None

        assert f"Parent file node not found for node: {node.id}" in caplog.text
        assert 'slug' not in node.fields

    def test_non_file_parent_gets_no_slug(self, graph):
        """Test markdown lifted out of JSON has no file to take a slug from."""
        owner = make_data_node(graph, 'JsonMarkdownField', {}, seed='field')
        node = make_data_node(graph, 'MarkdownRemark', {}, parent=owner.id)

        assert NodeProcessor().derive_slug(node, graph) is None
        assert 'slug' not in node.fields


class TestExtractMarkdownFields:
    """Test cases for NodeProcessor.extract_markdown_fields."""

    PAYLOAD = {
        'mdIntro': 'Intro *text*',
        'mdCount': 3,
        'title': 'Not markdown',
        'navigation': {'link': '/programs', 'mdNote': 'A note'},
        'sections': [
            {'type': 'hero', 'mdMain': '# Hero', 'title': 'Hero'},
            {'type': 'callout', 'mdCallout': 'Call **now**'},
        ],
    }

    def test_every_md_string_field_yields_one_node(self, graph):
        page = make_data_node(graph, 'PagesJson', self.PAYLOAD)

        created = NodeProcessor().extract_markdown_fields(page, graph)

        assert sorted(node.key_path for node in created) == [
            'mdIntro', 'navigation.mdNote', 'sections.0.mdMain', 'sections.1.mdCallout',
        ]
        by_path = {node.key_path: node for node in created}
        assert by_path['sections.0.mdMain'].markdown == '# Hero'
        assert by_path['sections.0.mdMain'].key == 'mdMain'
        assert all(node.parent == page.id for node in created)
        assert all(node.type == 'JsonMarkdownField' for node in created)
        assert all(node.media_type == 'text/markdown' for node in created)
        assert sorted(page.children) == sorted(node.id for node in created)

    def test_rerun_is_idempotent(self, graph):
        """Test a second pass yields identical ids and digests and no new nodes."""
        page = make_data_node(graph, 'PagesJson', self.PAYLOAD)
        processor = NodeProcessor()

        first = processor.extract_markdown_fields(page, graph)
        node_count = len(graph.nodes)
        second = processor.extract_markdown_fields(page, graph)

        assert [(n.id, n.content_digest) for n in first] == [(n.id, n.content_digest) for n in second]
        assert len(graph.nodes) == node_count
        assert len(page.children) == len(first)

    def test_digests_follow_content(self, graph):
        page = make_data_node(graph, 'PagesJson', {'mdA': 'same', 'mdB': 'same', 'mdC': 'different'})

        created = {n.key: n for n in NodeProcessor().extract_markdown_fields(page, graph)}

        assert created['mdA'].content_digest == created['mdB'].content_digest
        assert created['mdA'].content_digest != created['mdC'].content_digest
        assert created['mdA'].id != created['mdB'].id

    def test_keys_with_dots_are_escaped(self, graph):
        page = make_data_node(graph, 'PagesJson', {'md.v2': 'x'})
        created = NodeProcessor().extract_markdown_fields(page, graph)
        assert created[0].key_path == 'md\\.v2'
        assert escape_key('a\\b') == 'a\\\\b'

    def test_empty_md_string_is_extracted(self, graph):
        page = make_data_node(graph, 'PagesJson', {'mdMain': ''})
        created = NodeProcessor().extract_markdown_fields(page, graph)
        assert len(created) == 1
        assert created[0].markdown == ''

    def test_same_leaf_key_at_different_depths(self, graph):
        """Test ids include the full key path, not just the leaf key."""
        page = make_data_node(graph, 'PagesJson', {'mdMain': 'top', 'hero': {'mdMain': 'nested'}})
        created = NodeProcessor().extract_markdown_fields(page, graph)
        assert len({node.id for node in created}) == 2

    def test_no_md_fields(self, graph):
        page = make_data_node(graph, 'PagesJson', {'title': 'Plain', 'sections': []})
        assert NodeProcessor().extract_markdown_fields(page, graph) == []


class TestResolveInlineSvg:
    """Test cases for NodeProcessor.resolve_inline_svg."""

    @pytest.mark.asyncio
    async def test_creates_inline_svg_child(self, graph, make_file_node, sample_svg):
        file_node = make_file_node('icons/check.svg', media_type=SVG_MEDIA_TYPE, content=sample_svg)

        svg_node = await NodeProcessor().resolve_inline_svg(file_node, graph)

        assert svg_node.type == 'InlineSvg'
        assert svg_node.parent == file_node.id
        assert svg_node.id == graph.create_node_id(file_node.id)
        assert svg_node.raw_svg.startswith('<svg')
        assert 'xmlns=' not in svg_node.raw_svg
        assert 'id="check"' not in svg_node.raw_svg
        assert 'stroke="#005ea2"' in svg_node.raw_svg
        assert file_node.children == [svg_node.id]

    @pytest.mark.asyncio
    async def test_reads_svg_from_disk(self, graph, make_file_node, temp_dir, sample_svg):
        path = f"{temp_dir}/check.svg"
        with open(path, 'w', encoding='utf-8') as f:
            f.write(sample_svg)
        file_node = make_file_node('icons/check.svg', media_type=SVG_MEDIA_TYPE, absolute_path=path)

        await NodeProcessor().resolve_inline_svg(file_node, graph)

        assert len(graph.get_nodes_by_type('InlineSvg')) == 1

    @pytest.mark.asyncio
    async def test_empty_svg_logs_warning(self, graph, make_file_node, caplog):
        file_node = make_file_node('icons/empty.svg', media_type=SVG_MEDIA_TYPE, content='')

        with caplog.at_level(logging.WARNING):
            result = await NodeProcessor().resolve_inline_svg(file_node, graph)

        assert result is None
        assert graph.get_nodes_by_type('InlineSvg') == []
        assert f"Empty content for SVG file: {file_node.id}" in caplog.text

    @pytest.mark.asyncio
    async def test_failed_load_logs_warning(self, graph, make_file_node, temp_dir, caplog):
        file_node = make_file_node('icons/gone.svg', media_type=SVG_MEDIA_TYPE,
                                   absolute_path=f"{temp_dir}/gone.svg")

        with caplog.at_level(logging.WARNING):
            result = await NodeProcessor().resolve_inline_svg(file_node, graph)

        assert result is None
        assert graph.get_nodes_by_type('InlineSvg') == []
        assert "Failed to load SVG file" in caplog.text

    @pytest.mark.asyncio
    async def test_optimizer_failure_logs_error(self, graph, make_file_node, caplog):
        optimizer = Mock()
        optimizer.optimize = AsyncMock(side_effect=SvgOptimizeError("boom"))
        file_node = make_file_node('icons/bad.svg', media_type=SVG_MEDIA_TYPE, content='<svg>')

        with caplog.at_level(logging.ERROR):
            result = await NodeProcessor(optimizer=optimizer).resolve_inline_svg(file_node, graph)

        assert result is None
        assert f"Error processing SVG file {file_node.id}: boom" in caplog.text

    @pytest.mark.asyncio
    async def test_namespaced_style_rule_does_not_abort(self, graph, make_file_node):
        raw = ('<svg xmlns="http://www.w3.org/2000/svg" xmlns:xlink="http://www.w3.org/1999/xlink">'
               '<style>[xlink|href] { fill: red }</style><use xlink:href="#a"/></svg>')
        file_node = make_file_node('icons/use.svg', media_type=SVG_MEDIA_TYPE, content=raw)

        await NodeProcessor().on_create_node(file_node, graph)

        svg_nodes = graph.get_nodes_by_type('InlineSvg')
        assert len(svg_nodes) == 1
        assert '[xlink|href]' in svg_nodes[0].raw_svg


class TestOnCreateNode:
    """Test cases for the combined node-created hook."""

    @pytest.mark.asyncio
    async def test_pages_json_gets_slug_and_markdown_nodes(self, graph, make_file_node):
        file_node = make_file_node('pages/home.json')
        page = make_data_node(graph, 'PagesJson', {'mdMain': '# Home'}, parent=file_node.id)

        await NodeProcessor().on_create_node(page, graph)

        assert page.fields['slug'] == 'home'
        assert len(graph.get_nodes_by_type('JsonMarkdownField')) == 1

    @pytest.mark.asyncio
    async def test_slug_failure_does_not_stop_extraction(self, graph, caplog):
        page = make_data_node(graph, 'PagesJson', {'mdMain': '# Orphan'}, parent='missing')

        with caplog.at_level(logging.WARNING):
            await NodeProcessor().on_create_node(page, graph)

        assert "Parent file node not found" in caplog.text
        assert len(graph.get_nodes_by_type('JsonMarkdownField')) == 1

    @pytest.mark.asyncio
    async def test_content_json_is_not_extracted(self, graph, make_file_node):
        file_node = make_file_node('content/site.json')
        node = make_data_node(graph, 'ContentJson', {'mdFooter': 'x'}, parent=file_node.id)

        await NodeProcessor().on_create_node(node, graph)

        assert node.fields['slug'] == 'site'
        assert graph.get_nodes_by_type('JsonMarkdownField') == []

    def test_schema_customization_registers_node_types(self, graph):
        assert {'MarkdownRemark', 'PagesJson', 'ContentJson'} <= graph.known_types()
