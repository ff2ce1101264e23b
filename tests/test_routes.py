"""Tests for route synthesis over the finished node graph."""

import logging
from unittest.mock import Mock

import pytest

from pagegraph_pkg.exceptions import QueryError
from pagegraph_pkg.graph import QueryResult
from pagegraph_pkg.nodes import ContentNode, RouteDescriptor, TemplateId
from pagegraph_pkg.routes import RouteSynthesizer, count_pages, listing_link


def add_posts(make_remark, media_type, count, external=()):
    for i in range(count):
        frontmatter = {'type': media_type, 'date': f"2024-01-{i + 1:02d}", 'title': f"{media_type} {i}"}
        if i in external:
            frontmatter['externalLink'] = f"https://example.org/{i}"
        make_remark(f"{media_type}-{i}", frontmatter, slug=f"{media_type}-{i}")


def add_page(graph, seed, payload):
    node = ContentNode(
        id=graph.create_node_id(seed),
        type='PagesJson',
        payload=payload,
        content_digest=graph.create_content_digest(payload),
    )
    return graph.create_node(node)


def failing_for(query, media_type):
    """Wrap a query so that it fails for one category."""
    def _query(type_name, **kwargs):
        if (kwargs.get('filter') or {}).get('frontmatter.type') == {'eq': media_type}:
            return QueryResult(errors=[f"{media_type} index unavailable"])
        return query(type_name, **kwargs)
    return _query


class TestPagination:
    """Test cases for page counting and listing links."""

    @pytest.mark.parametrize('total, page_size, expected', [
        (0, 10, 0), (1, 10, 1), (10, 10, 1), (11, 10, 2), (12, 10, 2), (31, 15, 3),
    ])
    def test_count_pages(self, total, page_size, expected):
        assert count_pages(total, page_size) == expected

    def test_listing_link(self):
        assert listing_link('/media/blog', 0) == '/media/blog'
        assert listing_link('/media/blog', 1) == '/media/blog/2'
        assert listing_link('/media/blog', 4) == '/media/blog/5'


class TestStaticPages:
    """Test cases for static page routes."""

    def test_page_per_navigation_link(self, graph):
        add_page(graph, 'home', {'navigation': {'link': '/'}})
        add_page(graph, 'about', {'navigation': {'link': '/about'}})
        create_page = Mock()

        routes = RouteSynthesizer(graph.query, create_page).create_static_pages()

        assert sorted(route.path for route in routes) == ['/', '/about']
        assert all(route.template is TemplateId.STATIC_PAGE for route in routes)
        assert RouteDescriptor('/about', TemplateId.STATIC_PAGE, {'link': '/about'}) in routes
        assert create_page.call_count == 2

    def test_page_without_link_is_skipped(self, graph, caplog):
        add_page(graph, 'home', {'navigation': {'link': '/'}})
        add_page(graph, 'draft', {'navigation': {'title': 'Draft'}})

        with caplog.at_level(logging.WARNING):
            routes = RouteSynthesizer(graph.query, Mock()).create_static_pages()

        assert [route.path for route in routes] == ['/']
        assert "is missing navigation link, skipping" in caplog.text

    def test_query_failure_raises(self):
        query = Mock(return_value=QueryResult(errors=['boom']))

        with pytest.raises(QueryError, match="Failed to fetch pages") as exc_info:
            RouteSynthesizer(query, Mock()).create_static_pages()

        assert exc_info.value.errors == ['boom']


class TestMediaPages:
    """Test cases for media listing and detail routes."""

    def test_twelve_blog_posts_one_external(self, graph, make_remark):
        """Test 12 items with page size 10 give two listings and 11 detail pages."""
        add_posts(make_remark, 'blog', 12, external=(3,))

        routes = RouteSynthesizer(graph.query, Mock(), media_categories=[('blog', 'Blog')]).create_media_pages()

        listings = [r for r in routes if r.template is TemplateId.MEDIA_LIST]
        details = [r for r in routes if r.template is TemplateId.MEDIA_PAGE]
        assert [r.path for r in listings] == ['/media/blog', '/media/blog/2']
        assert len(details) == 11
        assert '/media/blog/blog-3' not in [r.path for r in details]

    def test_listing_context(self, graph, make_remark):
        add_posts(make_remark, 'blog', 12)

        routes = RouteSynthesizer(graph.query, Mock(), media_categories=[('blog', 'Blog')]).create_media_pages()

        second = next(r for r in routes if r.path == '/media/blog/2')
        assert second.context == {
            'limit': 10,
            'skip': 10,
            'media_type': 'blog',
            'title': 'Blog',
            'num_pages': 2,
            'current_page': 2,
            'base_page': '/media/blog',
            'link': '/media/blog/2',
        }
        first = next(r for r in routes if r.path == '/media/blog')
        assert first.context['skip'] == 0
        assert first.context['current_page'] == 1

    def test_detail_context(self, graph, make_remark):
        add_posts(make_remark, 'announcements', 1)

        routes = RouteSynthesizer(graph.query, Mock()).create_media_pages()

        detail = next(r for r in routes if r.template is TemplateId.MEDIA_PAGE)
        assert detail == RouteDescriptor('/media/announcements/announcements-0', TemplateId.MEDIA_PAGE, {
            'slug': 'announcements-0',
            'link': '/media/announcements/announcements-0',
            'media_type': 'announcements',
        })

    def test_details_follow_date_order(self, graph, make_remark):
        add_posts(make_remark, 'blog', 3)

        routes = RouteSynthesizer(graph.query, Mock()).create_media_pages()

        details = [r.path for r in routes if r.template is TemplateId.MEDIA_PAGE]
        assert details == ['/media/blog/blog-2', '/media/blog/blog-1', '/media/blog/blog-0']

    def test_empty_category_has_no_listing(self, graph, make_remark):
        add_posts(make_remark, 'blog', 2)

        routes = RouteSynthesizer(graph.query, Mock()).create_media_pages()

        assert not [r for r in routes if r.path.startswith('/media/announcements')]

    def test_category_failure_does_not_block_others(self, graph, make_remark, caplog):
        add_posts(make_remark, 'announcements', 2)
        add_posts(make_remark, 'blog', 2)

        with caplog.at_level(logging.ERROR):
            routes = RouteSynthesizer(failing_for(graph.query, 'announcements'), Mock()).create_media_pages()

        assert "Error fetching announcements" in caplog.text
        paths = [r.path for r in routes]
        assert '/media/blog' in paths
        assert not [p for p in paths if p.startswith('/media/announcements')]

    def test_item_without_slug_is_skipped(self, graph, make_remark, caplog):
        make_remark('no-slug', {'type': 'blog', 'date': '2024-01-01'})

        with caplog.at_level(logging.WARNING):
            routes = RouteSynthesizer(graph.query, Mock()).create_media_pages()

        assert [r.path for r in routes] == ['/media/blog']
        assert "Skipping blog item without a slug" in caplog.text


class TestNewsPages:
    """Test cases for news listing routes."""

    def test_news_pagination(self, graph, make_remark):
        add_posts(make_remark, 'news', 16)

        routes = RouteSynthesizer(graph.query, Mock()).create_news_pages()

        assert [r.path for r in routes] == ['/media/news', '/media/news/2']
        assert all(r.template is TemplateId.NEWS_LIST for r in routes)
        assert routes[1].context['skip'] == 15
        assert routes[1].context['limit'] == 15
        assert routes[1].context['num_pages'] == 2

    def test_news_has_no_detail_pages(self, graph, make_remark):
        add_posts(make_remark, 'news', 3)

        routes = RouteSynthesizer(graph.query, Mock()).create_news_pages()

        assert [r.path for r in routes] == ['/media/news']

    def test_news_with_zoned_timestamps(self, graph, make_remark):
        from datetime import date
        make_remark('news-a', {'type': 'news', 'date': date(2024, 1, 1)}, slug='news-a')
        make_remark('news-b', {'type': 'news', 'date': '2024-02-01T10:00:00.000Z'}, slug='news-b')

        routes = RouteSynthesizer(graph.query, Mock()).create_news_pages()

        assert [r.path for r in routes] == ['/media/news']

    def test_news_failure_raises(self, graph):
        with pytest.raises(QueryError, match="Failed to fetch news articles"):
            RouteSynthesizer(failing_for(graph.query, 'news'), Mock()).create_news_pages()


class TestCreatePages:
    """Test cases for running all phases together."""

    def test_all_phases_register_routes(self, graph, make_remark):
        add_page(graph, 'home', {'navigation': {'link': '/'}})
        add_posts(make_remark, 'blog', 1)
        add_posts(make_remark, 'news', 1)
        registered = []

        routes = RouteSynthesizer(graph.query, registered.append).create_pages()

        assert registered == routes
        assert [r.path for r in routes] == ['/', '/media/blog', '/media/blog/blog-0', '/media/news']

    def test_custom_page_size(self, graph, make_remark):
        add_posts(make_remark, 'blog', 5)

        routes = RouteSynthesizer(graph.query, Mock(), media_page_size=2).create_media_pages()

        listings = [r.path for r in routes if r.template is TemplateId.MEDIA_LIST]
        assert listings == ['/media/blog', '/media/blog/2', '/media/blog/3']
