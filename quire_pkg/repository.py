"""
In-memory index of every parsed document in a build.

Documents are inserted during the parse phase (possibly from several workers)
and the repository is frozen once all of them have arrived. Ordering is always
recomputed from date and source path, never from arrival order.
"""

import threading

from .errors import DuplicateSlug
from .models import SiteIndex, chronological
from .taxonomy import TaxonomyIndexer, normalize_term


class ContentRepository:
    def __init__(self, include_drafts=False, indexer=None):
        self.include_drafts = include_drafts
        self.indexer = indexer or TaxonomyIndexer()
        self._lock = threading.Lock()
        self._by_path = {}
        self._by_slug = {}
        self._frozen = False
        self._published = ()
        self._drafts = ()
        self._categories = {}
        self._tags = {}

    def insert(self, document):
        """Add a document; a slug already in use raises ``DuplicateSlug``."""
        with self._lock:
            if self._frozen:
                raise RuntimeError("repository is frozen; no further documents can be inserted")
            existing = self._by_slug.get(document.slug)
            if existing is not None:
                raise DuplicateSlug(document.slug, existing.source_path, document.source_path)
            self._by_slug[document.slug] = document
            self._by_path[document.source_path] = document

    def extend(self, documents):
        for document in documents:
            self.insert(document)

    def freeze(self):
        """Close the repository and compute ordering and taxonomy once."""
        with self._lock:
            if self._frozen:
                return self
            documents = chronological(self._by_path.values())
            self._drafts = tuple(d for d in documents if d.draft)
            if self.include_drafts:
                self._published = documents
                excluded = ()
            else:
                self._published = tuple(d for d in documents if not d.draft)
                excluded = self._drafts
            self._categories, self._tags = self.indexer.build(self._published, excluded=excluded)
            self._frozen = True
        return self

    @property
    def frozen(self):
        return self._frozen

    def _require_frozen(self):
        if not self._frozen:
            raise RuntimeError("repository must be frozen before it is queried")

    def all(self):
        """Published documents, newest first."""
        self._require_frozen()
        return self._published

    def drafts(self):
        self._require_frozen()
        return self._drafts

    def get(self, source_path):
        return self._by_path.get(source_path)

    def by_slug(self, slug):
        return self._by_slug.get(slug)

    def by_category(self, name):
        self._require_frozen()
        term = self._categories.get(normalize_term(name))
        return term.documents if term else ()

    def by_tag(self, name):
        self._require_frozen()
        term = self._tags.get(normalize_term(name))
        return term.documents if term else ()

    def categories(self):
        self._require_frozen()
        return dict(self._categories)

    def tags(self):
        self._require_frozen()
        return dict(self._tags)

    def site_index(self):
        self._require_frozen()
        return SiteIndex(documents=self._published, categories=dict(self._categories), tags=dict(self._tags))

    def __len__(self):
        return len(self._by_path)

    def __iter__(self):
        return iter(sorted(self._by_path.values(), key=lambda d: d.source_path))
