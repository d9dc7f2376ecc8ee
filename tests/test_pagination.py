"""Tests for pagination and listing pages."""

import math

import pytest

from quire_pkg.models import Term
from quire_pkg.pagination import ListingBuilder, page_window, paginate
from quire_pkg.slugs import PermalinkResolver


@pytest.fixture
def builder():
    return ListingBuilder(PermalinkResolver('/post/{slug}/'), page_size=2)


class TestPaginate:
    """Test cases for paginate."""

    @pytest.mark.parametrize('count,size', [(0, 1), (1, 1), (5, 2), (6, 2), (7, 10), (10, 10), (11, 3)])
    def test_pagination_exactness(self, count, size):
        items = list(range(count))
        pages = paginate(items, size)
        assert len(pages) == math.ceil(count / size)
        flattened = [item for page in pages for item in page]
        assert flattened == items
        assert all(1 <= len(page) <= size for page in pages)

    def test_zero_items_yields_no_pages(self):
        assert paginate([], 10) == []

    def test_invalid_page_size(self):
        with pytest.raises(ValueError):
            paginate([1, 2], 0)


class TestListingBuilder:
    """Test cases for ListingBuilder."""

    def test_index_pages_are_linked(self, builder, example_documents):
        ordered = sorted(example_documents, key=lambda d: d.date, reverse=True)
        pages = builder.index_pages(ordered)
        assert [p.url for p in pages] == ['/', '/page/2/']
        assert [p.output_path for p in pages] == ['index.html', 'page/2/index.html']
        assert [d.title for d in pages[0].documents] == ['Third', 'Second']
        assert [d.title for d in pages[1].documents] == ['First']
        assert pages[0].previous is None
        assert pages[0].next == pages[1].url
        assert pages[1].previous == pages[0].url
        assert pages[1].next is None
        assert all(p.total == 2 for p in pages)

    def test_term_pages(self, builder, example_documents):
        term = Term(kind='tag', key='rust', name='Rust', slug='rust', documents=tuple(example_documents))
        pages = builder.term_pages(term)
        assert [p.url for p in pages] == ['/tag/rust/page/1/', '/tag/rust/page/2/']
        assert all(p.kind == 'tag' and p.term is term for p in pages)
        assert pages[0].title == 'Rust'

    def test_empty_listing(self, builder):
        assert builder.index_pages([]) == []


class TestPageWindow:
    """Test cases for numbered pagination links."""

    def test_small(self):
        assert page_window(1, 1) == [1]
        assert page_window(2, 3) == [1, 2, 3]

    def test_ellipses(self):
        assert page_window(6, 12) == [1, '...', 4, 5, 6, 7, 8, '...', 12]

    def test_no_pages(self):
        assert page_window(1, 0) == []
