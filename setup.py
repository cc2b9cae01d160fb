#!/usr/bin/env python3
"""
Setup script for Page Improver.

Installs the page_improver package, its dependencies from
requirements.txt and the page-improver command-line tools.
"""

from pathlib import Path

from setuptools import setup, find_packages


HERE = Path(__file__).parent


def read_requirements(filename):
    """Read requirement lines, skipping comments and blanks."""
    lines = (HERE / filename).read_text().splitlines()
    return [line.strip() for line in lines if line.strip() and not line.startswith('#')]


setup(
    name='page-improver',
    version='2.0.0',
    description='Research, rewrite and review wiki pages with LLM phases',
    packages=find_packages(include=['page_improver', 'page_improver.*']),
    python_requires='>=3.9',
    install_requires=read_requirements('requirements.txt'),
    extras_require={
        'test': [
            'pytest>=7.0',
            'pytest-asyncio>=0.23',
        ],
    },
    entry_points={
        'console_scripts': [
            'page-improver=page_improver.cli:main',
            'page-improver-worker=page_improver.tasks.worker:main',
        ],
    },
)
