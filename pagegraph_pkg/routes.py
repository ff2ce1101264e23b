"""
Route synthesis.

Runs once every node has been processed and turns the final graph into the
list of pages to render: static pages, paginated media listings with their
item pages, and paginated news listings.
"""

import logging
import math

from .exceptions import QueryError
from .nodes import RouteDescriptor, TemplateId

MEDIA_CATEGORIES = [
    ('announcements', 'Announcements'),
    ('blog', 'Blog'),
]
MEDIA_PAGE_SIZE = 10
NEWS_CATEGORY = ('news', 'News')
NEWS_PAGE_SIZE = 15
MEDIA_BASE = '/media'

DATE_DESC = {'field': 'frontmatter.date', 'order': 'DESC'}


def count_pages(total, page_size):
    return math.ceil(total / page_size)


def listing_link(base_page, index):
    """``/media/blog`` for the first page, ``/media/blog/N`` after it."""
    return base_page if index == 0 else f"{base_page}/{index + 1}"


class RouteSynthesizer:
    def __init__(self, query, create_page, media_categories=None,
                 media_page_size=MEDIA_PAGE_SIZE, news_page_size=NEWS_PAGE_SIZE):
        self.query = query
        self.create_page = create_page
        self.media_categories = [tuple(c) for c in (media_categories or MEDIA_CATEGORIES)]
        self.media_page_size = media_page_size
        self.news_page_size = news_page_size
        self.logger = logging.getLogger('PageGraph.RouteSynthesizer')

    def create_pages(self):
        """Run all three phases and return every registered route."""
        routes = []
        routes.extend(self.create_static_pages())
        routes.extend(self.create_media_pages())
        routes.extend(self.create_news_pages())
        return routes

    def _register(self, route, routes):
        self.create_page(route)
        routes.append(route)

    def create_static_pages(self):
        result = self.query('PagesJson', fields=['navigation.link'])
        if result.errors:
            self.logger.error(f"Error fetching pages: {result.errors}")
            raise QueryError("Failed to fetch pages", result.errors)

        routes = []
        for index, page in enumerate(result.data):
            link = (page.get('navigation') or {}).get('link')
            if not link:
                self.logger.warning(f"Page {index} is missing navigation link, skipping")
                continue
            self._register(RouteDescriptor(link, TemplateId.STATIC_PAGE, {'link': link}), routes)
        return routes

    def create_media_pages(self):
        routes = []
        for media_type, title in self.media_categories:
            result = self._query_category(media_type, ['fields.slug', 'frontmatter.externalLink'])
            if result.errors:
                self.logger.error(f"Error fetching {media_type}: {result.errors}")
                continue

            routes.extend(self._listing_routes(
                TemplateId.MEDIA_LIST, media_type, title, len(result.data), self.media_page_size
            ))

            for item in result.data:
                if (item.get('frontmatter') or {}).get('externalLink'):
                    continue
                slug = (item.get('fields') or {}).get('slug')
                if not slug:
                    self.logger.warning(f"Skipping {media_type} item without a slug")
                    continue
                link = f"{MEDIA_BASE}/{media_type}/{slug}"
                self._register(RouteDescriptor(link, TemplateId.MEDIA_PAGE, {
                    'slug': slug,
                    'link': link,
                    'media_type': media_type,
                }), routes)
        return routes

    def create_news_pages(self):
        media_type, title = NEWS_CATEGORY
        result = self._query_category(media_type, ['fields.slug'])
        if result.errors:
            self.logger.error(f"Error fetching news articles: {result.errors}")
            raise QueryError("Failed to fetch news articles", result.errors)

        return self._listing_routes(TemplateId.NEWS_LIST, media_type, title, len(result.data), self.news_page_size)

    def _query_category(self, media_type, fields):
        return self.query(
            'MarkdownRemark',
            filter={'frontmatter.type': {'eq': media_type}},
            sort=DATE_DESC,
            fields=fields,
        )

    def _listing_routes(self, template, media_type, title, total, page_size):
        base_page = f"{MEDIA_BASE}/{media_type}"
        num_pages = count_pages(total, page_size)
        routes = []
        for index in range(num_pages):
            link = listing_link(base_page, index)
            self._register(RouteDescriptor(link, template, {
                'limit': page_size,
                'skip': index * page_size,
                'media_type': media_type,
                'title': title,
                'num_pages': num_pages,
                'current_page': index + 1,
                'base_page': base_page,
                'link': link,
            }), routes)
        return routes
