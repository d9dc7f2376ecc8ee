"""
Slug and permalink resolution.

Slugs are derived deterministically from a document's path or title, and
every output path is claimed through a single ``PermalinkResolver`` so that two
pages can never silently overwrite each other.
"""

import logging
import os
import posixpath
import re
import string
import threading
import unicodedata

from .errors import DuplicateSlug, UnknownConfigurationValue

DATE_PREFIX_RE = re.compile(r'^\d{4}-\d{2}-\d{2}[-_]')
CROSS_LINK_RE = re.compile(r'\]\(slug:([^)\s#]+)(#[^)\s]*)?\)')

PERMALINK_FIELDS = {'year', 'month', 'day', 'slug', 'category'}

logger = logging.getLogger('Quire')


def slugify(text):
    """Convert text to a lowercase ASCII slug."""
    text = unicodedata.normalize('NFKD', str(text))
    text = text.encode('ascii', 'ignore').decode('ascii').lower()
    text = re.sub(r'[^a-z0-9]+', '-', text)
    return text.strip('-')


def document_slug(source_path, metadata):
    """
    Pick the slug for a document: an explicit ``slug`` field wins, then the
    file name (minus any ``YYYY-MM-DD-`` prefix), then the title.
    """
    if metadata.slug:
        slug = slugify(metadata.slug)
        if slug:
            return slug
    stem = os.path.splitext(posixpath.basename(source_path))[0]
    slug = slugify(DATE_PREFIX_RE.sub('', stem))
    if not slug:
        slug = slugify(metadata.title)
    return slug or 'post'


def rewrite_cross_links(body, resolve, source_path=None):
    """
    Rewrite Markdown links of the form ``[text](slug:other-post)`` to the
    target's permalink. ``resolve`` maps a slug to a URL or returns None;
    unresolved links are left as written and reported.
    """
    def repl(match):
        target = resolve(match.group(1))
        if target is None:
            logger.warning(f"{source_path}: cross-link to unknown slug '{match.group(1)}'")
            return match.group(0)
        return f"]({target}{match.group(2) or ''})"

    return CROSS_LINK_RE.sub(repl, body)


class PermalinkResolver:
    """Expand the permalink pattern and register every claimed output path."""

    def __init__(self, pattern, base_url='/'):
        self.pattern = self._validate_pattern(pattern)
        self.base_url = base_url
        self._claims = {}
        self._lock = threading.Lock()

    @staticmethod
    def _validate_pattern(pattern):
        if not isinstance(pattern, str) or not pattern.strip():
            raise UnknownConfigurationValue('permalink_pattern', pattern, 'pattern must be a non-empty string')
        try:
            fields = [name for _, name, _, _ in string.Formatter().parse(pattern) if name is not None]
        except ValueError as e:
            raise UnknownConfigurationValue('permalink_pattern', pattern, str(e))
        unknown = sorted(set(fields) - PERMALINK_FIELDS)
        if unknown:
            raise UnknownConfigurationValue(
                'permalink_pattern', pattern, f"unknown placeholder(s): {', '.join(unknown)}"
            )
        if 'slug' not in fields:
            raise UnknownConfigurationValue('permalink_pattern', pattern, "pattern must contain '{slug}'")
        if not pattern.startswith('/'):
            pattern = '/' + pattern
        return pattern

    def post_url(self, document):
        date = document.date
        category = slugify(document.categories[0]) if document.categories else ''
        return self.pattern.format(
            year=f'{date.year:04d}',
            month=f'{date.month:02d}',
            day=f'{date.day:02d}',
            slug=document.slug,
            category=category or 'uncategorized',
        )

    def index_url(self, number=1):
        return '/' if number == 1 else f'/page/{number}/'

    def term_url(self, kind, term, number=1):
        return f'/{kind}/{term.slug}/page/{number}/'

    def feed_url(self):
        return '/feed.xml'

    def absolute(self, url):
        return self.base_url.rstrip('/') + '/' + url.lstrip('/')

    @staticmethod
    def output_path(url):
        """Map a site URL to a file path relative to the output root."""
        path = url.lstrip('/')
        if not path or path.endswith('/'):
            path += 'index.html'
        return path

    def claim(self, url, owner):
        """Reserve the output path for ``url``; a second owner is fatal."""
        path = self.output_path(url)
        with self._lock:
            existing = self._claims.get(path)
            if existing is not None and existing != owner:
                raise DuplicateSlug(path, existing, owner)
            self._claims[path] = owner
        return path

    def claimed(self):
        return dict(self._claims)
