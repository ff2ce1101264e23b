import asyncio
import logging
import os
from datetime import datetime
from xml.sax.saxutils import escape

from jinja2 import Environment, FileSystemLoader, TemplateNotFound, TemplateSyntaxError, select_autoescape

from .analytics import post_body_components
from .assets import AssetPipeline
from .exceptions import QueryError
from .graph import NodeGraph
from .markdown_transform import MarkdownRenderer, MarkdownTransformer
from .nodes import INLINE_SVG_TYPE, TemplateId
from .processor import NodeProcessor
from .robots import render_robots_txt, robots_policy
from .routes import DATE_DESC, MEDIA_CATEGORIES, MEDIA_PAGE_SIZE, NEWS_PAGE_SIZE, RouteSynthesizer
from .schema import Schema
from .settings import BuildConfig
from .sources import FilesystemSource, JsonTransformer
from .utils import format_date, parse_date

PACKAGE_TEMPLATES = os.path.join(os.path.dirname(os.path.abspath(__file__)), 'templates')


class InfoFilter(logging.Filter):
    """Filter to allow only selected INFO messages to be shown in the console."""
    def filter(self, record):
        if record.levelno > logging.INFO:
            return True
        allowed_messages = [
            "Site build completed in",
            "Total nodes processed:",
            "Total pages generated:",
            "Synthesized",
            "Sourced",
            "Generating XML sitemap",
            "Generating robots.txt",
            "Copied assets from",
        ]
        return any(msg in record.getMessage() for msg in allowed_messages)


def format_date_filter(value):
    """Jinja2 filter: format dates and date strings, blank for anything else."""
    parsed = parse_date(value, default=None)
    return format_date(parsed) if parsed is not None else ''


class PageGraph:
    """
    Builds a static site from a content directory.

    The build runs the lifecycle in a fixed order: schema customization,
    content sourcing, the node-created hooks until no new nodes appear, route
    synthesis, and finally rendering every route to ``<output>/<path>/index.html``.
    """

    def __init__(self, content_dir='content', output_dir='public', templates_dir=None, assets_dir=None,
                 config=None, media_categories=None, media_page_size=MEDIA_PAGE_SIZE,
                 news_page_size=NEWS_PAGE_SIZE, relative_path_prefix=None, minify=False, log_dir='logs'):
        self.content_dir = content_dir
        self.output_dir = output_dir
        self.templates_dir = templates_dir
        self.assets_dir = assets_dir
        self.config = config or BuildConfig.from_env()
        self.media_categories = media_categories or MEDIA_CATEGORIES
        self.media_page_size = media_page_size
        self.news_page_size = news_page_size
        self.minify = minify
        self.log_dir = log_dir
        self.nodes_processed = 0
        self.pages_generated = 0
        self.routes = []
        self.sitemap_entries = []

        self.setup_logging()
        os.makedirs(self.output_dir, exist_ok=True)

        self.graph = NodeGraph()
        self.schema = Schema.default()
        self.markdown_renderer = MarkdownRenderer(relative_path_prefix)
        self.plugins = [
            JsonTransformer(),
            MarkdownTransformer(self.markdown_renderer),
            NodeProcessor(schema=self.schema),
        ]

        search_path = [self.templates_dir, PACKAGE_TEMPLATES] if self.templates_dir else [PACKAGE_TEMPLATES]
        self.env = Environment(
            loader=FileSystemLoader(search_path),
            autoescape=select_autoescape(['html', 'xml']),
        )
        self.env.filters['format_date'] = format_date_filter
        self.env.globals['inline_svg'] = self.inline_svg
        self.post_body = post_body_components(self.config)

    def setup_logging(self):
        """Set up logging configuration."""
        self.logger = logging.getLogger('PageGraph')
        self.logger.setLevel(logging.DEBUG)

        if not self.logger.handlers:
            # Console handler with filter
            console_handler = logging.StreamHandler()
            console_handler.setLevel(logging.INFO)
            console_handler.addFilter(InfoFilter())
            console_handler.setFormatter(logging.Formatter('%(message)s'))
            self.logger.addHandler(console_handler)

            # File handler for all logs
            if self.log_dir:
                os.makedirs(self.log_dir, exist_ok=True)
                log_filename = datetime.now().strftime('pagegraph_%Y-%m-%d_%H-%M-%S.log')
                file_handler = logging.FileHandler(os.path.join(self.log_dir, log_filename))
                file_handler.setLevel(logging.DEBUG)
                file_handler.setFormatter(logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s'))
                self.logger.addHandler(file_handler)

    # ------------------------------------------------------------------
    # Node lifecycle
    # ------------------------------------------------------------------

    def customize_schema(self):
        for plugin in self.plugins:
            hook = getattr(plugin, 'create_schema_customization', None)
            if hook is not None:
                hook(self.graph)

    async def source_and_transform(self):
        """Customize the schema, source files, then drain the node queue."""
        self.customize_schema()
        FilesystemSource(self.content_dir).source_nodes(self.graph)
        await self.process_nodes()

    async def process_nodes(self):
        while self.graph.has_pending():
            batch = self.graph.take_pending()
            await asyncio.gather(*(self._on_create_node(node) for node in batch))
            self.nodes_processed += len(batch)
        return self.nodes_processed

    async def _on_create_node(self, node):
        for plugin in self.plugins:
            hook = getattr(plugin, 'on_create_node', None)
            if hook is not None:
                await hook(node, self.graph)

    # ------------------------------------------------------------------
    # Pages
    # ------------------------------------------------------------------

    def register_page(self, route):
        """Page-registration hook: later registrations of a path replace earlier ones."""
        for index, existing in enumerate(self.routes):
            if existing.path == route.path:
                self.logger.warning(f"Route {route.path} registered twice, keeping the latest")
                self.routes[index] = route
                return
        self.routes.append(route)

    def create_pages(self):
        synthesizer = RouteSynthesizer(
            self.graph.query,
            self.register_page,
            media_categories=self.media_categories,
            media_page_size=self.media_page_size,
            news_page_size=self.news_page_size,
        )
        synthesizer.create_pages()
        self.logger.info(f"Synthesized {len(self.routes)} routes")
        return self.routes

    def page_data(self, route):
        """Data each template needs beyond the route context."""
        context = route.context
        if route.template is TemplateId.STATIC_PAGE:
            node = self.graph.find_one('PagesJson', 'navigation.link', context['link'])
            return {'page': self.schema.resolve_node(self.graph, node)}

        if route.template in (TemplateId.MEDIA_LIST, TemplateId.NEWS_LIST):
            result = self.graph.query(
                'MarkdownRemark',
                filter={'frontmatter.type': {'eq': context['media_type']}},
                sort=DATE_DESC,
                skip=context['skip'],
                limit=context['limit'],
            )
            if result.errors:
                raise QueryError(f"Failed to fetch items for {route.path}", result.errors)
            return {'items': [self.schema.resolve(self.graph, 'MarkdownRemark', row) for row in result.data]}

        if route.template is TemplateId.MEDIA_PAGE:
            result = self.graph.query(
                'MarkdownRemark',
                filter={'fields.slug': {'eq': context['slug']}, 'frontmatter.type': {'eq': context['media_type']}},
                limit=1,
            )
            if result.errors:
                raise QueryError(f"Failed to fetch item for {route.path}", result.errors)
            item = result.data[0] if result.data else None
            return {'item': self.schema.resolve(self.graph, 'MarkdownRemark', item) if item else None}

        return {}

    def inline_svg(self, file):
        """Optimized markup attached to a resolved File, or an empty string."""
        if not file:
            return ''
        for child_id in file.get('children') or []:
            child = self.graph.get_node(child_id)
            if child is not None and child.type == INLINE_SVG_TYPE:
                return child.raw_svg
        return ''

    def output_path_for(self, link):
        """Map a route path to ``<output>/<path>/index.html``."""
        relative = link.strip('/')
        output_dir = os.path.join(self.output_dir, *relative.split('/')) if relative else self.output_dir
        output_root = os.path.abspath(self.output_dir)
        resolved = os.path.abspath(output_dir)
        if resolved != output_root and not resolved.startswith(output_root + os.sep):
            raise ValueError(f"Path traversal attempt detected: {link}")
        return os.path.join(output_dir, 'index.html')

    def calculate_relative_path(self, current_output_dir):
        """Calculate relative path from current directory to root."""
        rel_path = os.path.relpath(self.output_dir, current_output_dir)
        # Ensure relative path ends with '/' for proper asset linking
        if rel_path == '.':
            return ''
        else:
            return rel_path + '/'

    def render_template(self, template_name, **context):
        """Render a Jinja2 template."""
        try:
            template = self.env.get_template(template_name)
            return template.render(**context)
        except (TemplateNotFound, TemplateSyntaxError) as e:
            self.logger.error(f"Template error: {e}")
            return None

    def render_page(self, route):
        try:
            output_file = self.output_path_for(route.path)
        except ValueError as e:
            self.logger.error(str(e))
            return False

        data = self.page_data(route)
        html = self.render_template(
            route.template.template_name,
            route=route,
            relative_path=self.calculate_relative_path(os.path.dirname(output_file)),
            site_url=self.config.site_url,
            post_body=self.post_body,
            **route.context,
            **data
        )
        if html is None:
            return False

        try:
            os.makedirs(os.path.dirname(output_file), exist_ok=True)
            with open(output_file, 'w', encoding='utf-8') as f:
                f.write(html)
            self.logger.debug(f"Generated HTML: {output_file}")
        except (IOError, OSError, PermissionError) as e:
            self.logger.error(f"Failed to write HTML file {output_file}: {e}")
            return False

        lastmod = datetime.now()
        item = data.get('item')
        if item:
            lastmod = parse_date((item.get('frontmatter') or {}).get('date'), default=lastmod)
        self.sitemap_entries.append((route.path, lastmod))
        return True

    def render_pages(self):
        for route in self.routes:
            if self.render_page(route):
                self.pages_generated += 1
        return self.pages_generated

    # ------------------------------------------------------------------
    # Site files
    # ------------------------------------------------------------------

    def generate_xml_sitemap(self):
        """Generate XML sitemap."""
        site_url = self.config.site_url.rstrip('/')
        sitemap_content = '''<?xml version="1.0" encoding="UTF-8"?>
<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">
'''
        for path, lastmod in sorted(self.sitemap_entries):
            sitemap_content += self.format_xml_sitemap_entry(f"{site_url}{path}", lastmod)
        sitemap_content += '</urlset>'

        sitemap_file = os.path.join(self.output_dir, 'sitemap.xml')
        try:
            with open(sitemap_file, 'w', encoding='utf-8') as f:
                f.write(sitemap_content)
            self.logger.info("Generating XML sitemap")
        except (IOError, OSError, PermissionError) as e:
            self.logger.error(f"Failed to write sitemap file {sitemap_file}: {e}")
            return False

        return True

    def format_xml_sitemap_entry(self, url, lastmod):
        """Format a single sitemap entry."""
        return f'''<url>
<loc>{escape(url)}</loc>
<lastmod>{lastmod.strftime('%Y-%m-%d')}</lastmod>
</url>
'''

    def generate_robots_txt(self):
        """Generate robots.txt for the current deployment context."""
        robots_content = render_robots_txt(robots_policy(self.config))
        robots_file = os.path.join(self.output_dir, 'robots.txt')
        try:
            with open(robots_file, 'w', encoding='utf-8') as f:
                f.write(robots_content)
            self.logger.info("Generating robots.txt")
        except (IOError, OSError, PermissionError) as e:
            self.logger.error(f"Failed to write robots.txt file {robots_file}: {e}")
            return False

        return True

    def build(self):
        """Main build process."""
        self.logger.info("Starting site build...")

        asyncio.run(self.source_and_transform())
        self.create_pages()
        self.render_pages()

        self.generate_xml_sitemap()
        self.generate_robots_txt()

        AssetPipeline(self.assets_dir, self.output_dir, minify=self.minify).copy_assets_to_output()
