"""
Incremental build cache.

Maps a source path to the document parsed from it last time, keyed by the
SHA-256 hash of the file's text. A hit is only accepted when the hash matches;
modification times are never consulted.
"""

import logging
import os
from datetime import datetime

import yaml

from .models import Document, Metadata

CACHE_VERSION = 1

logger = logging.getLogger('Quire')


def _document_to_dict(document):
    metadata = document.metadata
    return {
        'slug': document.slug,
        'body': document.body,
        'metadata': {
            'title': metadata.title,
            'date': metadata.date.isoformat(),
            'has_time': metadata.has_time,
            'author': metadata.author,
            'categories': list(metadata.categories),
            'tags': list(metadata.tags),
            'draft': metadata.draft,
            'slug': metadata.slug,
            'extra': dict(metadata.extra),
        },
    }


def _document_from_dict(source_path, content_hash, data):
    meta = data['metadata']
    metadata = Metadata(
        title=meta['title'],
        date=datetime.fromisoformat(meta['date']),
        has_time=bool(meta['has_time']),
        author=meta.get('author'),
        categories=tuple(meta.get('categories') or ()),
        tags=tuple(meta.get('tags') or ()),
        draft=bool(meta.get('draft')),
        slug=meta.get('slug'),
        extra=dict(meta.get('extra') or {}),
    )
    return Document(
        source_path=source_path,
        metadata=metadata,
        body=data['body'],
        slug=data['slug'],
        content_hash=content_hash,
    )


class BuildCache:
    def __init__(self, path):
        self.path = path
        self.entries = {}
        self.hits = 0

    def load(self):
        if not self.path or not os.path.exists(self.path):
            return self
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                data = yaml.safe_load(f) or {}
        except (IOError, OSError, yaml.YAMLError) as e:
            logger.warning(f"Ignoring unreadable build cache {self.path}: {e}")
            return self
        if not isinstance(data, dict) or data.get('version') != CACHE_VERSION:
            logger.warning(f"Ignoring build cache {self.path} with unexpected format")
            return self
        entries = data.get('documents')
        if isinstance(entries, dict):
            self.entries = entries
        return self

    def lookup(self, source_path, content_hash):
        """Return the cached document for this exact content, or None."""
        entry = self.entries.get(source_path)
        if not isinstance(entry, dict) or entry.get('hash') != content_hash:
            return None
        try:
            document = _document_from_dict(source_path, content_hash, entry['document'])
        except (KeyError, TypeError, ValueError) as e:
            logger.debug(f"Discarding cache entry for {source_path}: {e}")
            return None
        self.hits += 1
        return document

    def store(self, document):
        self.entries[document.source_path] = {
            'hash': document.content_hash,
            'document': _document_to_dict(document),
        }

    def prune(self, source_paths):
        """Drop entries for sources that no longer exist."""
        keep = set(source_paths)
        self.entries = {path: entry for path, entry in self.entries.items() if path in keep}

    def save(self):
        if not self.path:
            return
        directory = os.path.dirname(os.path.abspath(self.path))
        os.makedirs(directory, exist_ok=True)
        data = {'version': CACHE_VERSION, 'documents': dict(sorted(self.entries.items()))}
        with open(self.path, 'w', encoding='utf-8') as f:
            yaml.safe_dump(data, f, sort_keys=False, allow_unicode=True)
        logger.debug(f"Saved build cache with {len(self.entries)} documents to {self.path}")
