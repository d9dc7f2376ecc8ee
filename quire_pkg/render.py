"""
Output-writing collaborator: Markdown conversion, Jinja2 templates, files.

The orchestrator hands over fully resolved ``Page`` descriptors; nothing here
decides what gets built, only how a page turns into bytes on disk.
"""

import logging
import os

import mistune
from jinja2 import (ChoiceLoader, Environment, FileSystemLoader, PackageLoader, StrictUndefined,
                    TemplateError, select_autoescape)

from .errors import OutputWriteError
from .feed import summarize
from .pagination import page_window
from .slugs import rewrite_cross_links
from .taxonomy import normalize_term

TEMPLATES = {
    'post': 'post.html',
    'index': 'listing.html',
    'category': 'listing.html',
    'tag': 'listing.html',
}


def create_markdown_parser():
    """Create a Mistune markdown parser with a custom renderer."""
    class CustomRenderer(mistune.HTMLRenderer):
        def __init__(self):
            super().__init__(escape=False)

        def block_code(self, code, info=None):
            escaped_code = mistune.escape(code)
            if info:
                lang = mistune.escape(info.split()[0])
                return f'<pre><code class="language-{lang}">{escaped_code}</code></pre>\n'
            return f'<pre><code>{escaped_code}</code></pre>\n'

    return mistune.create_markdown(
        renderer=CustomRenderer(),
        plugins=['table', 'task_lists', 'strikethrough']
    )


def relative_root(output_path):
    """Relative path from a page's directory back to the output root."""
    depth = output_path.count('/')
    return '../' * depth


class PageWriter:
    def __init__(self, resolver, site_index, feed, site_title, templates_dir=None):
        self.resolver = resolver
        self.site_index = site_index
        self.feed = feed
        self.site_title = site_title
        self._by_slug = {d.slug: d for d in site_index.documents}
        self.logger = logging.getLogger('Quire')
        self.markdown_parser = create_markdown_parser()

        loaders = []
        if templates_dir:
            if not os.path.isdir(templates_dir):
                raise FileNotFoundError(f"Templates directory not found: {templates_dir}")
            loaders.append(FileSystemLoader(templates_dir))
        loaders.append(PackageLoader('quire_pkg', 'templates'))
        self.env = Environment(
            loader=ChoiceLoader(loaders),
            autoescape=select_autoescape(['html', 'xml']),
            undefined=StrictUndefined,
            keep_trailing_newline=True,
        )

    def markdown_filter(self, text):
        """Convert markdown text to HTML."""
        return self.markdown_parser(text)

    def _resolve_slug(self, slug, root):
        document = self._by_slug.get(slug)
        if document is None:
            return None
        return root + self.resolver.post_url(document).lstrip('/')

    def document_html(self, document, root=''):
        body = rewrite_cross_links(
            document.body, lambda slug: self._resolve_slug(slug, root), document.source_path
        )
        return self.markdown_filter(body)

    def terms_for(self, document):
        """Published ``Term`` records for a document's categories and tags."""
        categories = [self.site_index.categories.get(normalize_term(n)) for n in document.categories]
        tags = [self.site_index.tags.get(normalize_term(n)) for n in document.tags]
        return [t for t in categories if t], [t for t in tags if t]

    def render(self, page):
        """Render one page to text."""
        if page.kind == 'feed':
            return self.feed.render(page.documents)

        root = relative_root(page.output_path)

        def link(url):
            return (root + url.lstrip('/')) or './'

        context = {
            'site_title': self.site_title,
            'page': page,
            'relative_path': root,
            'link': link,
            'post_url': self.resolver.post_url,
            'term_url': self.resolver.term_url,
            'index_url': self.resolver.index_url,
            'absolute': self.resolver.absolute,
            'feed_url': link(self.resolver.feed_url()),
            'terms_for': self.terms_for,
            'summary': lambda document: summarize(document, self.feed.summary_length),
            'page_numbers': page_window(page.number, page.total),
        }
        if page.kind == 'post':
            categories, tags = self.terms_for(page.document)
            context.update(
                document=page.document,
                content=self.document_html(page.document, root),
                categories=categories,
                tags=tags,
            )

        template_name = TEMPLATES[page.kind]
        try:
            return self.env.get_template(template_name).render(**context)
        except TemplateError as e:
            raise OutputWriteError(page.output_path, f"template error in {template_name}: {e}")

    def write(self, page, output_root, rendered=None):
        """Write ``page`` below ``output_root``, rendering it unless ``rendered`` is given."""
        if rendered is None:
            rendered = self.render(page)
        output_file_path = os.path.join(output_root, *page.output_path.split('/'))
        try:
            os.makedirs(os.path.dirname(output_file_path), exist_ok=True)
            with open(output_file_path, 'w', encoding='utf-8', newline='\n') as output_file:
                output_file.write(rendered)
        except (IOError, OSError) as e:
            raise OutputWriteError(page.output_path, f"failed to write: {e}")
        self.logger.debug(f"Generated {page.kind} page: {output_file_path}")
        return output_file_path
