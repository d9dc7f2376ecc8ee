"""Paginated listings for the chronological index and taxonomy terms."""

from .models import Page

DEFAULT_PAGE_SIZE = 10


def paginate(items, page_size=DEFAULT_PAGE_SIZE):
    """Split ``items`` into consecutive slices of at most ``page_size``."""
    if page_size < 1:
        raise ValueError("page_size must be at least 1")
    items = tuple(items)
    total_pages = (len(items) + page_size - 1) // page_size  # integer ceiling
    return [items[(n - 1) * page_size:n * page_size] for n in range(1, total_pages + 1)]


def page_window(current_page, total_pages, delta=2):
    """
    Returns a list of page numbers (or ellipses) to display in pagination.
    Always shows page 1 and total_pages, plus ``delta`` pages either side of
    the current page, with '...' where there is a gap.
    """
    if total_pages < 1:
        return []
    links = [1]

    start = max(current_page - delta, 2)
    end = min(current_page + delta, total_pages - 1)

    if start > 2:
        links.append('...')
    links.extend(range(start, end + 1))
    if end < total_pages - 1:
        links.append('...')

    if total_pages > 1:
        links.append(total_pages)
    return links


class ListingBuilder:
    """Build ``Page`` descriptors for listings, linked previous/next."""

    def __init__(self, resolver, page_size=DEFAULT_PAGE_SIZE):
        if page_size < 1:
            raise ValueError("page_size must be at least 1")
        self.resolver = resolver
        self.page_size = page_size

    def index_pages(self, documents, title='Home'):
        return self._build('index', documents, self.resolver.index_url, title)

    def term_pages(self, term):
        def url_for(number):
            return self.resolver.term_url(term.kind, term, number)
        return self._build(term.kind, term.documents, url_for, term.name, term=term)

    def _build(self, kind, documents, url_for, title, term=None):
        slices = paginate(documents, self.page_size)
        total = len(slices)
        pages = []
        for number, chunk in enumerate(slices, start=1):
            url = url_for(number)
            pages.append(Page(
                kind=kind,
                url=url,
                output_path=self.resolver.output_path(url),
                title=title if number == 1 else f'{title} (page {number})',
                documents=chunk,
                term=term,
                number=number,
                total=total,
                previous=url_for(number - 1) if number > 1 else None,
                next=url_for(number + 1) if number < total else None,
            ))
        return pages
