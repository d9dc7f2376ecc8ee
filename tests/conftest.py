"""Test configuration and fixtures for Quire tests."""

import pytest
import tempfile
import shutil
import os
from pathlib import Path

import sys
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from quire_pkg.frontmatter import parse_document


def post_text(title, date, tags=None, categories=None, draft=None, body='Some body text.', **extra):
    """Build the text of a source document."""
    lines = ['---', f'title: {title}', f'date: {date}']
    if categories is not None:
        lines.append(f'categories: [{", ".join(categories)}]')
    if tags is not None:
        lines.append(f'tags: [{", ".join(tags)}]')
    if draft is not None:
        lines.append(f'draft: {"true" if draft else "false"}')
    for key, value in extra.items():
        lines.append(f'{key}: {value}')
    lines.append('---')
    return '\n'.join(lines) + '\n\n' + body + '\n'


def make_document(source_path, title, date, **kwargs):
    return parse_document(post_text(title, date, **kwargs), source_path)


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    temp_dir = tempfile.mkdtemp()
    yield temp_dir
    shutil.rmtree(temp_dir, ignore_errors=True)


@pytest.fixture
def mock_content_dir(temp_dir):
    """Content directory holding the three-post example site."""
    content_dir = Path(temp_dir) / 'content'
    posts_dir = content_dir / 'posts'
    posts_dir.mkdir(parents=True)

    (posts_dir / 'first.md').write_text(
        post_text('First', '2024-01-31', tags=['Rust'], categories=['Programming'],
                  body='The first post.\n\nSee [the second](slug:second).'),
        encoding='utf-8')
    (posts_dir / 'second.md').write_text(
        post_text('Second', '2024-02-02', tags=["'rust '"], body='The second post.'),
        encoding='utf-8')
    (posts_dir / 'third.md').write_text(
        post_text('Third', '2024-02-06', tags=['Rust', 'Python'], categories=['Programming'],
                  body='Intro paragraph.\n\n<!--more-->\n\nThe rest.'),
        encoding='utf-8')

    return str(content_dir)


@pytest.fixture
def mock_output_dir(temp_dir):
    """Output directory path (not created)."""
    return str(Path(temp_dir) / 'output')


@pytest.fixture
def site_settings(mock_content_dir, mock_output_dir, temp_dir):
    """Build settings for the example site."""
    return {
        'content': mock_content_dir,
        'output': mock_output_dir,
        'base_url': 'https://example.com/',
        'page_size': 2,
        'feed_size': 2,
        'site_title': 'Example',
        'cache_file': os.path.join(temp_dir, 'cache.yml'),
    }


@pytest.fixture
def example_documents():
    """Three documents tagged Rust, dated 2024-01-31, 2024-02-02 and 2024-02-06."""
    return [
        make_document('posts/first.md', 'First', '2024-01-31', tags=['Rust']),
        make_document('posts/second.md', 'Second', '2024-02-02', tags=['Rust']),
        make_document('posts/third.md', 'Third', '2024-02-06', tags=['Rust']),
    ]
