"""Immutable records shared by every build stage."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple

PAGE_KINDS = ('post', 'index', 'category', 'tag', 'feed')


@dataclass(frozen=True)
class Metadata:
    """Validated front matter of one source document."""

    title: str
    date: datetime
    has_time: bool = False
    author: Optional[str] = None
    categories: Tuple[str, ...] = ()
    tags: Tuple[str, ...] = ()
    draft: bool = False
    slug: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict, hash=False)


@dataclass(frozen=True)
class Document:
    """One parsed source post. The body is left untouched for the converter."""

    source_path: str
    metadata: Metadata
    body: str
    slug: str
    content_hash: str

    @property
    def title(self):
        return self.metadata.title

    @property
    def date(self):
        return self.metadata.date

    @property
    def author(self):
        return self.metadata.author

    @property
    def categories(self):
        return self.metadata.categories

    @property
    def tags(self):
        return self.metadata.tags

    @property
    def draft(self):
        return self.metadata.draft

    @property
    def utc_date(self):
        """Naive UTC datetime used for ordering mixed aware/naive dates."""
        value = self.metadata.date
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc).replace(tzinfo=None)
        return value


def chronological(documents):
    """Sort newest first; equal dates fall back to the source path."""
    by_path = sorted(documents, key=lambda d: d.source_path)
    return tuple(sorted(by_path, key=lambda d: d.utc_date, reverse=True))


@dataclass(frozen=True)
class Term:
    """A category or tag with its published members, newest first."""

    kind: str
    key: str
    name: str
    slug: str
    documents: Tuple[Document, ...] = ()

    def __len__(self):
        return len(self.documents)


@dataclass(frozen=True)
class SiteIndex:
    documents: Tuple[Document, ...]
    categories: Dict[str, Term] = field(hash=False)
    tags: Dict[str, Term] = field(hash=False)

    @property
    def count(self):
        return len(self.documents)


@dataclass(frozen=True)
class Page:
    """
    One output artifact. ``url`` is site-relative and ``output_path`` is
    relative to the output root.
    """

    kind: str
    url: str
    output_path: str
    title: str
    documents: Tuple[Document, ...] = ()
    document: Optional[Document] = None
    term: Optional[Term] = None
    number: int = 1
    total: int = 1
    previous: Optional[str] = None
    next: Optional[str] = None
    related: Tuple[Document, ...] = ()
