"""
SVG optimization for inline rendering.

SVG files are inlined into pages, so they are cleaned up first: the default
SVG namespace declaration is dropped, ``<style>`` rules are inlined into the
elements they match, presentation properties are moved from ``style`` into
attributes, and ``id`` attributes are stripped from ``<svg>`` elements.
"""

import asyncio
import re

import cssselect
from cssselect import ExpressionError, GenericTranslator, SelectorError
from lxml import etree

from .exceptions import SvgOptimizeError

SVG_NS = 'http://www.w3.org/2000/svg'

DEFAULT_OPTIONS = {
    'remove_xmlns': True,
    'inline_styles': {'only_matched_once': False},
    'convert_style_to_attrs': True,
    'remove_attrs': ['svg:id'],
}

PRESENTATION_ATTRS = {
    'alignment-baseline', 'baseline-shift', 'clip', 'clip-path', 'clip-rule', 'color',
    'color-interpolation', 'color-interpolation-filters', 'color-profile', 'color-rendering',
    'cursor', 'direction', 'display', 'dominant-baseline', 'enable-background', 'fill',
    'fill-opacity', 'fill-rule', 'filter', 'flood-color', 'flood-opacity', 'font-family',
    'font-size', 'font-size-adjust', 'font-stretch', 'font-style', 'font-variant',
    'font-weight', 'glyph-orientation-horizontal', 'glyph-orientation-vertical',
    'image-rendering', 'kerning', 'letter-spacing', 'lighting-color', 'marker-end',
    'marker-mid', 'marker-start', 'mask', 'opacity', 'overflow', 'pointer-events',
    'shape-rendering', 'stop-color', 'stop-opacity', 'stroke', 'stroke-dasharray',
    'stroke-dashoffset', 'stroke-linecap', 'stroke-linejoin', 'stroke-miterlimit',
    'stroke-opacity', 'stroke-width', 'text-anchor', 'text-decoration', 'text-rendering',
    'unicode-bidi', 'visibility', 'word-spacing', 'writing-mode',
}

CSS_COMMENT_RE = re.compile(r'/\*.*?\*/', re.DOTALL)


def local_name(element):
    return etree.QName(element).localname


def parse_declarations(text):
    """``"fill: red; stroke:blue"`` -> ``{'fill': 'red', 'stroke': 'blue'}``"""
    declarations = {}
    for part in (text or '').split(';'):
        prop, sep, value = part.partition(':')
        prop, value = prop.strip().lower(), value.strip()
        if sep and prop and value:
            declarations[prop] = value
    return declarations


def serialize_declarations(declarations):
    return ';'.join(f"{prop}:{value}" for prop, value in declarations.items())


def split_css_rules(css):
    """Split a stylesheet into top-level ``(prelude, body)`` pairs."""
    css = CSS_COMMENT_RE.sub('', css)
    rules = []
    depth = 0
    start = 0
    prelude = ''
    body_start = 0
    for i, ch in enumerate(css):
        if ch == '{':
            if depth == 0:
                prelude = css[start:i].strip()
                body_start = i + 1
            depth += 1
        elif ch == '}':
            depth -= 1
            if depth < 0:
                raise SvgOptimizeError("Unbalanced braces in <style> element")
            if depth == 0:
                rules.append((prelude, css[body_start:i].strip()))
                start = i + 1
    if depth != 0:
        raise SvgOptimizeError("Unbalanced braces in <style> element")
    return rules


class SvgOptimizer:
    def __init__(self, options=None):
        self.options = dict(DEFAULT_OPTIONS)
        self.options.update(options or {})
        self.translator = GenericTranslator()

    async def optimize(self, raw_svg):
        """Optimize SVG markup off the event loop."""
        return await asyncio.to_thread(self.optimize_sync, raw_svg)

    def optimize_sync(self, raw_svg):
        root = self._parse(raw_svg)
        try:
            return self._optimize(root)
        except etree.LxmlError as e:
            raise SvgOptimizeError(f"Failed to optimize SVG: {e}") from e

    def _optimize(self, root):
        if self.options.get('remove_xmlns'):
            self._remove_xmlns(root)
        inline_options = self.options.get('inline_styles')
        if inline_options:
            self._inline_styles(root, bool(inline_options.get('only_matched_once', True)))
        if self.options.get('convert_style_to_attrs'):
            self._convert_style_to_attrs(root)
        for pattern in self.options.get('remove_attrs') or []:
            self._remove_attrs(root, pattern)

        return etree.tostring(root, encoding='unicode')

    def _parse(self, raw_svg):
        if isinstance(raw_svg, str):
            raw_svg = raw_svg.encode('utf-8')
        parser = etree.XMLParser(
            remove_comments=True,
            remove_blank_text=True,
            resolve_entities=False,
            no_network=True,
        )
        try:
            root = etree.fromstring(raw_svg, parser)
        except etree.XMLSyntaxError as e:
            raise SvgOptimizeError(f"Invalid SVG markup: {e}") from e
        if root is None or local_name(root) != 'svg':
            raise SvgOptimizeError("Document root is not an <svg> element")
        return root

    def _remove_xmlns(self, root):
        svg_prefix = '{%s}' % SVG_NS
        for element in root.iter():
            if isinstance(element.tag, str) and element.tag.startswith(svg_prefix):
                element.tag = local_name(element)
        etree.cleanup_namespaces(root)

    def _inline_styles(self, root, only_matched_once):
        style_elements = [el for el in root.iter() if isinstance(el.tag, str) and local_name(el) == 'style']
        matched = []
        order = 0

        for style_element in style_elements:
            kept = []
            for prelude, body in split_css_rules(style_element.text or ''):
                declarations = parse_declarations(body)
                if prelude.startswith('@') or not declarations:
                    kept.append((prelude, body))
                    continue
                try:
                    selectors = cssselect.parse(prelude)
                    found = []
                    for selector in selectors:
                        if selector.pseudo_element:
                            raise ExpressionError(f"Pseudo-element in {prelude}")
                        elements = root.xpath(self.translator.selector_to_xpath(selector))
                        found.extend((selector.specificity(), el) for el in elements)
                except (SelectorError, ExpressionError, etree.XPathError):
                    kept.append((prelude, body))
                    continue

                if not found or (only_matched_once and len(found) > 1):
                    kept.append((prelude, body))
                    continue

                for specificity, element in found:
                    matched.append((specificity, order, element, declarations))
                    order += 1

            if kept:
                style_element.text = '\n'.join(f"{prelude}{{{body}}}" for prelude, body in kept)
            else:
                style_element.getparent().remove(style_element)

        # later and more specific rules win; existing inline styles win over all
        inlined = {}
        for _, _, element, declarations in sorted(matched, key=lambda m: (m[0], m[1])):
            inlined.setdefault(element, {}).update(declarations)
        for element, declarations in inlined.items():
            merged = dict(declarations)
            merged.update(parse_declarations(element.get('style')))
            element.set('style', serialize_declarations(merged))

    def _convert_style_to_attrs(self, root):
        for element in root.iter():
            if not isinstance(element.tag, str) or element.get('style') is None:
                continue
            kept = {}
            for prop, value in parse_declarations(element.get('style')).items():
                if prop in PRESENTATION_ATTRS and '!important' not in value:
                    element.set(prop, value)
                else:
                    kept[prop] = value
            if kept:
                element.set('style', serialize_declarations(kept))
            else:
                del element.attrib['style']

    def _remove_attrs(self, root, pattern):
        element_pattern, sep, attr_pattern = pattern.partition(':')
        if not sep:
            element_pattern, attr_pattern = '.*', element_pattern
        element_re = re.compile(element_pattern)
        attr_re = re.compile(attr_pattern)
        for element in root.iter():
            if not isinstance(element.tag, str) or not element_re.fullmatch(local_name(element)):
                continue
            for attr in list(element.attrib):
                if attr_re.fullmatch(etree.QName(attr).localname if attr.startswith('{') else attr):
                    del element.attrib[attr]
