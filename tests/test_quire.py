"""Tests for the build orchestrator."""

import filecmp
import os
import xml.etree.ElementTree as ET
from pathlib import Path
from unittest.mock import patch

import pytest

from quire_pkg.core import Quire
from quire_pkg.render import PageWriter
from quire_pkg.errors import (
    DuplicateSlug, InvalidDate, MissingRequiredField, OutputWriteError, UnknownConfigurationValue, UnreadableSource,
)

from conftest import post_text


def tree(root):
    """Relative file paths below ``root``."""
    return sorted(
        os.path.relpath(os.path.join(base, name), root).replace(os.sep, '/')
        for base, _, files in os.walk(root) for name in files
    )


def read(root, path):
    return Path(root, path).read_text(encoding='utf-8')


class TestQuire:
    """Test cases for Quire builds."""

    def test_init_rejects_invalid_settings(self, site_settings):
        site_settings['page_size'] = 0
        with pytest.raises(UnknownConfigurationValue):
            Quire(site_settings)

    def test_build_output_tree(self, site_settings):
        Quire(site_settings).build()
        output = site_settings['output']
        assert tree(output) == [
            'category/programming/page/1/index.html',
            'feed.xml',
            'index.html',
            'page/2/index.html',
            'post/2024/01/31/first/index.html',
            'post/2024/02/02/second/index.html',
            'post/2024/02/06/third/index.html',
            'tag/python/page/1/index.html',
            'tag/rust/page/1/index.html',
            'tag/rust/page/2/index.html',
        ]

    def test_example_scenario(self, site_settings):
        pages = Quire(site_settings).build()
        index = [p for p in pages if p.kind == 'index']
        assert [[d.date.day for d in p.documents] for p in index] == [[6, 2], [31]]

        rust = [p for p in pages if p.kind == 'tag' and p.term.key == 'rust']
        assert [d.title for p in rust for d in p.documents] == ['Third', 'Second', 'First']
        assert rust[0].term.name == 'Rust'

        feed = [p for p in pages if p.kind == 'feed'][0]
        assert [d.title for d in feed.documents] == ['Third', 'Second']
        root = ET.fromstring(read(site_settings['output'], 'feed.xml').encode('utf-8'))
        assert [i.find('title').text for i in root.iter('item')] == ['Third', 'Second']

    def test_each_page_written_once(self, site_settings):
        pages = Quire(site_settings).build()
        paths = [p.output_path for p in pages]
        assert len(paths) == len(set(paths))
        assert sorted(paths) == tree(site_settings['output'])

    def test_post_page_content(self, site_settings):
        Quire(site_settings).build()
        html = read(site_settings['output'], 'post/2024/01/31/first/index.html')
        assert '<h1>First</h1>' in html
        # Cross-link rewritten relative to the page.
        assert 'href="../../../../../post/2024/02/02/second/"' in html
        assert 'href="../../../../../tag/rust/page/1/"' in html
        assert '<link rel="canonical" href="https://example.com/post/2024/01/31/first/">' in html

    def test_determinism(self, site_settings, temp_dir):
        Quire(site_settings).build()
        first = os.path.join(temp_dir, 'first-build')
        os.replace(site_settings['output'], first)
        Quire(site_settings).build()
        second = site_settings['output']

        assert tree(first) == tree(second)
        _, mismatch, errors = filecmp.cmpfiles(first, second, tree(first), shallow=False)
        assert mismatch == [] and errors == []

    def test_rebuild_is_idempotent_with_cache(self, site_settings):
        Quire(site_settings).build()
        before = {path: read(site_settings['output'], path) for path in tree(site_settings['output'])}
        generator = Quire(site_settings)
        generator.build()
        assert generator.cache_hits == 3
        assert generator.documents_parsed == 0
        after = {path: read(site_settings['output'], path) for path in tree(site_settings['output'])}
        assert before == after

    def test_cache_revalidates_by_content(self, site_settings):
        Quire(site_settings).build()
        path = Path(site_settings['content'], 'posts', 'second.md')
        path.write_text(post_text('Second edited', '2024-02-02', tags=['Rust']), encoding='utf-8')
        generator = Quire(site_settings)
        generator.build()
        assert generator.cache_hits == 2
        assert generator.documents_parsed == 1
        assert 'Second edited' in read(site_settings['output'], 'post/2024/02/02/second/index.html')

    def test_missing_date_aborts_without_output(self, site_settings):
        Path(site_settings['content'], 'posts', 'broken.md').write_text(
            "---\ntitle: No date\n---\nBody\n", encoding='utf-8')
        with pytest.raises(MissingRequiredField) as excinfo:
            Quire(site_settings).build()
        assert excinfo.value.source_path == 'posts/broken.md'
        assert not os.path.exists(site_settings['output'])

    def test_invalid_utf8_names_source(self, site_settings):
        Path(site_settings['content'], 'posts', 'bad.md').write_bytes(
            b"---\ntitle: Bad\ndate: 2024-03-01\n---\n\xff\xfe body\n")
        with pytest.raises(UnreadableSource) as excinfo:
            Quire(site_settings).build()
        assert excinfo.value.source_path == 'posts/bad.md'
        assert 'UTF-8' in str(excinfo.value)
        assert not os.path.exists(site_settings['output'])

    def test_impossible_date_names_source(self, site_settings):
        Path(site_settings['content'], 'posts', 'bad.md').write_text(
            "---\ntitle: Bad\ndate: 2024-02-30\n---\nBody\n", encoding='utf-8')
        with pytest.raises(InvalidDate) as excinfo:
            Quire(site_settings).build()
        assert excinfo.value.source_path == 'posts/bad.md'

    def test_failed_build_keeps_previous_output(self, site_settings):
        Quire(site_settings).build()
        before = tree(site_settings['output'])
        Path(site_settings['content'], 'posts', 'broken.md').write_text(
            "---\ntitle: No date\n---\n", encoding='utf-8')
        with pytest.raises(MissingRequiredField):
            Quire(site_settings).build()
        assert tree(site_settings['output']) == before

    def test_duplicate_slug_aborts(self, site_settings):
        Path(site_settings['content'], 'other').mkdir()
        Path(site_settings['content'], 'other', 'first.md').write_text(
            post_text('Another first', '2024-03-01'), encoding='utf-8')
        with pytest.raises(DuplicateSlug) as excinfo:
            Quire(site_settings).build()
        assert {excinfo.value.first, excinfo.value.second} == {'other/first.md', 'posts/first.md'}
        assert not os.path.exists(site_settings['output'])

    def test_post_url_colliding_with_listing_aborts(self, site_settings):
        site_settings['permalink_pattern'] = '/{slug}/rust/page/1/'
        Path(site_settings['content'], 'posts', 'tag.md').write_text(
            post_text('Tag', '2024-03-01'), encoding='utf-8')
        with pytest.raises(DuplicateSlug) as excinfo:
            Quire(site_settings).build()
        assert excinfo.value.target == 'tag/rust/page/1/index.html'
        assert 'posts/tag.md' in (excinfo.value.first, excinfo.value.second)


    def test_drafts_excluded_by_default(self, site_settings, caplog):
        Path(site_settings['content'], 'posts', 'wip.md').write_text(
            post_text('WIP', '2024-03-01', draft=True, tags=['Secret']), encoding='utf-8')
        pages = Quire(site_settings).build()
        assert 'WIP' not in [p.title for p in pages]
        assert not any('wip' in path for path in tree(site_settings['output']))
        assert "tag 'Secret' has no published documents" in caplog.text

    def test_drafts_included_in_preview(self, site_settings):
        Path(site_settings['content'], 'posts', 'wip.md').write_text(
            post_text('WIP', '2024-03-01', draft=True), encoding='utf-8')
        site_settings['include_drafts'] = True
        Quire(site_settings).build()
        assert 'post/2024/03/01/wip/index.html' in tree(site_settings['output'])

    def test_empty_content_dir(self, site_settings, temp_dir):
        empty = os.path.join(temp_dir, 'empty')
        os.makedirs(empty)
        site_settings['content'] = empty
        pages = Quire(site_settings).build()
        assert [p.kind for p in pages] == ['feed']
        assert tree(site_settings['output']) == ['feed.xml']

    def test_missing_content_dir(self, site_settings):
        site_settings['content'] = os.path.join(site_settings['content'], 'nope')
        with pytest.raises(FileNotFoundError, match='Content directory'):
            Quire(site_settings).build()

    def test_output_must_not_contain_content(self, site_settings, temp_dir):
        site_settings['output'] = temp_dir
        with pytest.raises(UnknownConfigurationValue):
            Quire(site_settings).build()

    def test_write_failure_leaves_no_partial_tree(self, site_settings):
        Quire(site_settings).build()
        before = tree(site_settings['output'])
        Path(site_settings['content'], 'posts', 'fourth.md').write_text(
            post_text('Fourth', '2024-03-01'), encoding='utf-8')

        original_write = PageWriter.write

        def failing_write(self, page, output_root, rendered=None):
            if page.kind == 'feed':
                raise OutputWriteError(page.output_path, 'disk full')
            return original_write(self, page, output_root, rendered)

        with patch('quire_pkg.render.PageWriter.write', failing_write):
            with pytest.raises(OutputWriteError, match='disk full'):
                Quire(site_settings).build()
        assert tree(site_settings['output']) == before
        assert not os.path.exists(site_settings['output'] + '.quire-tmp')

    def test_multiprocessing_parse(self, site_settings):
        posts = Path(site_settings['content'], 'posts')
        for i in range(15):
            (posts / f'bulk-{i:02d}.md').write_text(
                post_text(f'Bulk {i}', f'2023-05-{i + 1:02d}', tags=['Bulk']), encoding='utf-8')
        site_settings['workers'] = 2
        generator = Quire(site_settings)
        pages = generator.build()
        assert generator.documents_parsed == 18
        assert len([p for p in pages if p.kind == 'post']) == 18

    def test_multiprocessing_reports_first_failure(self, site_settings):
        posts = Path(site_settings['content'], 'posts')
        for i in range(15):
            (posts / f'bulk-{i:02d}.md').write_text(
                post_text(f'Bulk {i}', f'2023-05-{i + 1:02d}'), encoding='utf-8')
        (posts / 'bulk-03.md').write_text("---\ndate: 2023-01-01\n---\n", encoding='utf-8')
        (posts / 'bulk-09.md').write_text("---\ndate: 2023-01-01\n---\n", encoding='utf-8')
        site_settings['workers'] = 2
        with pytest.raises(MissingRequiredField) as excinfo:
            Quire(site_settings).build()
        assert excinfo.value.source_path == 'posts/bulk-03.md'
