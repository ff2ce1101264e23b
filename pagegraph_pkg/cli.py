#!/usr/bin/env python3
"""
Command-line interface for PageGraph.
"""

import os
import sys
import argparse
import time

from . import __version__
from .core import PageGraph
from .exceptions import PageGraphError
from .settings import BuildConfig, SiteSettings


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='PageGraph - content graph and route builder for static sites')
    parser.add_argument('--output', type=str,
                        help='Output directory for the generated site')
    parser.add_argument('--content', type=str,
                        help='Content directory containing markdown, JSON and SVG files')
    parser.add_argument('--templates', type=str,
                        help='Templates directory overriding the bundled templates')
    parser.add_argument('--assets', type=str,
                        help='Assets directory to copy to output')
    parser.add_argument('--site-url', type=str, dest='site_url',
                        help='Site URL for the sitemap and robots.txt (URL env var wins)')
    parser.add_argument('--minify', action='store_true', default=None,
                        help='Minify CSS and JS assets')
    parser.add_argument('--init', type=str, choices=['yml', 'yaml', 'json'],
                        help='Create a sample configuration file')
    parser.add_argument('--version', action='version', version=f'%(prog)s {__version__}')
    return parser


def main(argv=None) -> None:
    """Main CLI entry point."""
    args = build_parser().parse_args(argv)

    if args.init:
        config_path = SiteSettings().create_sample_config(args.init)
        print(f"Created sample configuration file: {config_path}")
        return

    # Load settings from configuration file, command line arguments take precedence
    settings_loader = SiteSettings()
    settings_loader.load_settings()
    args_dict = {k: v for k, v in vars(args).items() if v is not None and k != 'init'}
    final_settings = settings_loader.merge_with_args(args_dict)

    output_dir = os.path.expanduser(final_settings['output'])
    config = BuildConfig.from_env(site_url=final_settings['site_url'])

    overall_start_time = time.time()
    try:
        generator = PageGraph(
            content_dir=final_settings['content'],
            output_dir=output_dir,
            templates_dir=final_settings['templates'],
            assets_dir=final_settings['assets'],
            config=config,
            media_categories=final_settings['media_categories'],
            media_page_size=final_settings['media_page_size'],
            news_page_size=final_settings['news_page_size'],
            relative_path_prefix=final_settings['relative_path_prefix'],
            minify=final_settings['minify'],
            log_dir=final_settings['log_dir'],
        )
        generator.build()

        total_time = time.time() - overall_start_time
        generator.logger.info(f"Site build completed in {total_time:.6f} seconds.")
        generator.logger.info(f"Total nodes processed: {generator.nodes_processed}")
        generator.logger.info(f"Total pages generated: {generator.pages_generated}")

    except (PageGraphError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == '__main__':
    main()
