"""Category and tag indexing."""

import hashlib
import logging

from .models import Term, chronological
from .slugs import slugify

logger = logging.getLogger('Quire')


def normalize_term(name):
    """Key used to merge term spellings: trimmed, single-spaced, casefolded."""
    return ' '.join(str(name).split()).casefold()


def term_slug(name, key):
    slug = slugify(name)
    if not slug:
        # Names without any ASCII-representable characters.
        slug = 'term-' + hashlib.sha1(key.encode('utf-8')).hexdigest()[:8]
    return slug


class TaxonomyIndexer:
    """Derive category and tag membership from a published sequence."""

    def build(self, documents, excluded=()):
        """
        Return ``(categories, tags)``, each a dict of normalized key to
        ``Term``, ordered by key.

        ``documents`` is the published sequence. Terms used only by
        ``excluded`` documents (drafts filtered out of a normal build) are
        reported and left out.
        """
        documents = chronological(documents)
        categories = self._index('category', documents, lambda d: d.categories)
        tags = self._index('tag', documents, lambda d: d.tags)
        self._warn_empty('category', categories, excluded, lambda d: d.categories)
        self._warn_empty('tag', tags, excluded, lambda d: d.tags)
        return categories, tags

    def _index(self, kind, documents, names_of):
        names = {}
        members = {}
        for document in documents:
            for name in names_of(document):
                key = normalize_term(name)
                if not key:
                    continue
                names.setdefault(key, name)
                members.setdefault(key, []).append(document)

        terms = {}
        for key in sorted(members):
            terms[key] = Term(
                kind=kind,
                key=key,
                name=names[key],
                slug=term_slug(names[key], key),
                documents=chronological(members[key]),
            )
        return terms

    def _warn_empty(self, kind, terms, excluded, names_of):
        empty = {}
        for document in chronological(excluded):
            for name in names_of(document):
                key = normalize_term(name)
                if key and key not in terms:
                    empty.setdefault(key, name)
        for key in sorted(empty):
            logger.warning(f"{kind} '{empty[key]}' has no published documents")


def related_documents(document, site_index, limit=3):
    """
    Other published documents sharing categories or tags with ``document``,
    most shared terms first, then newest first.
    """
    if limit <= 0:
        return ()
    candidates = {}
    groups = [(site_index.categories, document.categories), (site_index.tags, document.tags)]
    for terms, names in groups:
        for name in names:
            term = terms.get(normalize_term(name))
            if term is None:
                continue
            for other in term.documents:
                if other.source_path != document.source_path:
                    candidates[other.source_path] = candidates.get(other.source_path, 0) + 1

    ranked = [d for d in site_index.documents if d.source_path in candidates]
    ranked.sort(key=lambda d: candidates[d.source_path], reverse=True)
    return tuple(ranked[:limit])
