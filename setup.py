#!/usr/bin/env python3
"""
Setup script for PageGraph - content graph and route builder for static sites.
"""

from setuptools import setup, find_packages
import os

# Read the contents of README file
this_directory = os.path.abspath(os.path.dirname(__file__))
with open(os.path.join(this_directory, 'README.md'), encoding='utf-8') as f:
    long_description = f.read()

setup(
    name='pagegraph',
    version='1.0.0',
    description='Build-time content graph, markdown and SVG transforms, and route synthesis for static sites',
    long_description=long_description,
    long_description_content_type='text/markdown',
    packages=find_packages(exclude=['tests', 'tests.*']),
    package_data={
        'pagegraph_pkg': [
            'templates/*.html',
        ],
    },
    include_package_data=True,
    classifiers=[
        'Development Status :: 4 - Beta',
        'Intended Audience :: Developers',
        'License :: OSI Approved :: MIT License',
        'Operating System :: OS Independent',
        'Programming Language :: Python :: 3',
        'Programming Language :: Python :: 3.9',
        'Programming Language :: Python :: 3.10',
        'Programming Language :: Python :: 3.11',
        'Programming Language :: Python :: 3.12',
        'Topic :: Internet :: WWW/HTTP :: Site Management',
        'Topic :: Software Development :: Code Generators',
        'Topic :: Text Processing :: Markup :: HTML',
    ],
    python_requires='>=3.9',
    install_requires=[
        'Jinja2>=3.0',
        'mistune>=3.0',
        'PyYAML>=5.4',
        'lxml>=4.9',
        'cssselect>=1.2',
        'csscompressor>=0.9.5',
        'rjsmin>=1.2',
    ],
    extras_require={
        'test': [
            'pytest>=7.0',
            'pytest-asyncio>=0.21',
            'pytest-cov>=4.0',
        ],
    },
    entry_points={
        'console_scripts': [
            'pagegraph=pagegraph_pkg.cli:main',
        ],
    },
    keywords='static site generator, content graph, markdown, svg, jinja2, pagination',
)
