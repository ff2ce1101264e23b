"""
Static asset handling: copy the assets directory into the output, leaving out
ignored modules, and optionally minify CSS and JS.
"""

import logging
import os
import re
import shutil

import csscompressor
import rjsmin

# The CMS identity widget is only wanted on the admin app, never on the site
IGNORED_MODULES = [r'^netlify-identity-widget']


class AssetPipeline:
    def __init__(self, assets_dir, output_dir, ignore_patterns=None, minify=False):
        self.assets_dir = assets_dir
        self.output_dir = output_dir
        self.assets_output_dir = os.path.join(output_dir, 'assets')
        self.ignore_patterns = [re.compile(p) for p in (ignore_patterns if ignore_patterns is not None else IGNORED_MODULES)]
        self.minify = minify
        self.logger = logging.getLogger('PageGraph.Assets')

    def is_ignored(self, filename):
        module_name = filename.split('.', 1)[0]
        return any(p.search(filename) or p.search(module_name) for p in self.ignore_patterns)

    def _ignore(self, directory, names):
        return [name for name in names
                if not os.path.isdir(os.path.join(directory, name)) and self.is_ignored(name)]

    def copy_assets_to_output(self):
        """Copy assets to ``<output>/assets``; returns False on failure."""
        if not self.assets_dir or not os.path.isdir(self.assets_dir):
            self.logger.debug("No assets directory to copy")
            return False

        try:
            if os.path.exists(self.assets_output_dir):
                shutil.rmtree(self.assets_output_dir)
            shutil.copytree(self.assets_dir, self.assets_output_dir, ignore=self._ignore)
            self.logger.info(f"Copied assets from {self.assets_dir}")
        except (IOError, OSError, PermissionError) as e:
            self.logger.error(f"Failed to copy assets from {self.assets_dir}: {e}")
            return False

        if self.minify:
            self.minify_assets()
        return True

    def minify_assets(self):
        """Write ``.min.css`` / ``.min.js`` next to every CSS and JS asset."""
        minified = 0
        for root, _, files in os.walk(self.assets_output_dir):
            for file in sorted(files):
                if file.endswith('.css') and not file.endswith('.min.css'):
                    minifier, suffix = csscompressor.compress, '.min.css'
                    original_suffix = '.css'
                elif file.endswith('.js') and not file.endswith('.min.js'):
                    minifier, suffix = rjsmin.jsmin, '.min.js'
                    original_suffix = '.js'
                else:
                    continue

                path = os.path.join(root, file)
                minified_path = os.path.join(root, file[:-len(original_suffix)] + suffix)
                try:
                    with open(path, 'r', encoding='utf-8') as f:
                        source = f.read()
                    with open(minified_path, 'w', encoding='utf-8') as f:
                        f.write(minifier(source))
                    minified += 1
                    self.logger.debug(f"Minified {file}")
                except (IOError, OSError, PermissionError) as e:
                    self.logger.error(f"Failed to minify {file}: {e}")
        return minified
