#!/usr/bin/env python3
"""
Settings loader for PageGraph.
Supports configuration from pagegraph.yml, pagegraph.yaml or pagegraph.json
files, plus the deployment environment captured once in a BuildConfig.
"""

import os
import json
import logging
import yaml
from typing import Dict, Any, Mapping, Optional

DEFAULT_SITE_URL = 'https://example.com'


class SiteSettings:
    """Load and manage PageGraph configuration settings."""

    # Default configuration
    DEFAULT_SETTINGS = {
        'output': 'public',
        'content': 'content',
        'templates': None,
        'assets': None,
        'site_url': None,
        'media_page_size': 10,
        'news_page_size': 15,
        'media_categories': [['announcements', 'Announcements'], ['blog', 'Blog']],
        'relative_path_prefix': None,
        'minify': False,
        'log_dir': 'logs',
    }

    # Config file names to look for (in order of preference)
    CONFIG_FILES = ['pagegraph.yml', 'pagegraph.yaml', 'pagegraph.json']

    def __init__(self, config_dir: str = None):
        """
        Initialize settings loader.

        Args:
            config_dir: Directory to look for config files. Defaults to current directory.
        """
        self.config_dir = config_dir or os.getcwd()
        self.settings = self.DEFAULT_SETTINGS.copy()
        self.config_file_path = None
        self.logger = logging.getLogger('PageGraph.Settings')

    def load_settings(self) -> Dict[str, Any]:
        """
        Load settings from configuration file if it exists.

        Returns:
            Dictionary of configuration settings
        """
        config_file = self._find_config_file()

        if config_file:
            self.config_file_path = config_file
            try:
                loaded_settings = self._load_config_file(config_file)
                if loaded_settings:
                    # Merge with defaults, giving preference to loaded settings
                    self.settings.update(loaded_settings)
                    self.logger.info(f"Loaded configuration from: {os.path.relpath(config_file)}")
            except (ValueError, IOError, OSError) as e:
                self.logger.warning(f"Failed to load config file {config_file}: {e}")

        return self.settings.copy()

    def _find_config_file(self) -> Optional[str]:
        for filename in self.CONFIG_FILES:
            config_path = os.path.join(self.config_dir, filename)
            if os.path.exists(config_path):
                return config_path
        return None

    def _load_config_file(self, config_path: str) -> Dict[str, Any]:
        """
        Load configuration from a file.

        Args:
            config_path: Path to the configuration file

        Returns:
            Dictionary of configuration settings
        """
        file_ext = os.path.splitext(config_path)[1].lower()
        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                if file_ext in ['.yml', '.yaml']:
                    loaded = yaml.safe_load(f) or {}
                elif file_ext == '.json':
                    loaded = json.load(f) or {}
                else:
                    raise ValueError(f"Unsupported config file format: {file_ext}")
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in configuration file {config_path}: {e}")
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in configuration file {config_path}: {e}")
        except PermissionError:
            raise PermissionError(f"Permission denied reading configuration file: {config_path}")

        if not isinstance(loaded, dict):
            raise ValueError(f"Configuration file {config_path} must contain a mapping")
        return loaded

    def create_sample_config(self, file_format: str = 'yml') -> str:
        """
        Create a sample configuration file.

        Args:
            file_format: Format for config file ('yml', 'yaml', or 'json')

        Returns:
            Path to created sample config file
        """
        filename = f'pagegraph.{file_format}'
        config_path = os.path.join(self.config_dir, filename)

        try:
            with open(config_path, 'w', encoding='utf-8') as f:
                if file_format in ['yml', 'yaml']:
                    f.write("# PageGraph Configuration File\n\n")
                    f.write("# Site information\n")
                    f.write(f"site_url: {DEFAULT_SITE_URL}\n\n")
                    f.write("# Build settings\n")
                    f.write("output: public\n")
                    f.write("content: content\n")
                    f.write("assets: assets\n")
                    f.write("log_dir: logs\n\n")
                    f.write("# Media listings\n")
                    f.write("media_page_size: 10\n")
                    f.write("news_page_size: 15\n")
                    f.write("media_categories:\n")
                    f.write("  - [announcements, Announcements]\n")
                    f.write("  - [blog, Blog]\n\n")
                    f.write("# Markdown images\n")
                    f.write("relative_path_prefix: ../\n\n")
                    f.write("# Assets\n")
                    f.write("minify: false\n")
                elif file_format == 'json':
                    sample = {k: v for k, v in self.DEFAULT_SETTINGS.items() if v is not None}
                    sample['site_url'] = DEFAULT_SITE_URL
                    json.dump(sample, f, indent=2)
                else:
                    raise ValueError(f"Unsupported config file format: {file_format}")
        except PermissionError:
            raise PermissionError(f"Permission denied creating configuration file: {config_path}")

        return config_path

    def merge_with_args(self, args_dict: Dict[str, Any]) -> Dict[str, Any]:
        """
        Merge configuration settings with command-line arguments.
        Command-line arguments take precedence over config file settings.
        """
        merged = self.settings.copy()
        for key, value in args_dict.items():
            if value is not None:
                merged[key] = value
        return merged


class BuildConfig:
    """
    Deployment environment for one build.

    ``context`` selects the robots profile (``production``, ``branch-deploy``,
    ``deploy-preview``); ``node_env`` gates the analytics script.
    """

    def __init__(self, node_env: str = 'development', context: Optional[str] = None,
                 site_url: str = DEFAULT_SITE_URL, context_from_env: bool = True):
        self.node_env = node_env
        self.context = context or node_env
        self.site_url = site_url
        self.context_from_env = context_from_env

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None,
                 site_url: Optional[str] = None) -> 'BuildConfig':
        """Read NODE_ENV, CONTEXT and URL; CONTEXT falls back to NODE_ENV."""
        environ = os.environ if environ is None else environ
        node_env = environ.get('NODE_ENV') or 'development'
        context = environ.get('CONTEXT')
        return cls(
            node_env=node_env,
            context=context or node_env,
            site_url=environ.get('URL') or site_url or DEFAULT_SITE_URL,
            context_from_env=bool(context),
        )

    @property
    def is_production(self) -> bool:
        return self.node_env == 'production'

    def __repr__(self):
        return f"BuildConfig(node_env={self.node_env!r}, context={self.context!r}, site_url={self.site_url!r})"
