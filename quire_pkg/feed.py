"""RSS feed of the most recent documents."""

import html
import re
import unicodedata
from datetime import timezone
from email.utils import format_datetime
from xml.sax.saxutils import escape

DEFAULT_FEED_SIZE = 20
DEFAULT_SUMMARY_LENGTH = 280
MORE_MARKER = '<!--more-->'
ELLIPSIS = '…'

CODE_FENCE_RE = re.compile(r'^(```|~~~).*?^\1[ \t]*$', re.MULTILINE | re.DOTALL)
TAG_RE = re.compile(r'<[^>]+>')
IMAGE_RE = re.compile(r'!\[([^\]]*)\]\([^)]*\)')
LINK_RE = re.compile(r'\[([^\]]*)\]\([^)]*\)')
BLOCK_MARKER_RE = re.compile(r'^[ \t]{0,3}(?:#{1,6}|>|[-*+]|\d+[.)])[ \t]+', re.MULTILINE)
EMPHASIS_RE = re.compile(r'[*_`~]+')


def plain_text(markdown_text):
    """Rough Markdown/HTML to text conversion for summaries."""
    text = CODE_FENCE_RE.sub(' ', markdown_text)
    text = TAG_RE.sub('', text)
    text = IMAGE_RE.sub(r'\1', text)
    text = LINK_RE.sub(r'\1', text)
    text = BLOCK_MARKER_RE.sub('', text)
    text = EMPHASIS_RE.sub('', text)
    text = html.unescape(text)
    return ' '.join(text.split())


def _mark_safe_cut(text, cut):
    """Move ``cut`` back so the character after it is not a combining mark."""
    while cut > 0 and unicodedata.combining(text[cut]):
        cut -= 1
    return cut


def truncate(text, length):
    """
    Shorten ``text`` to at most ``length`` characters, preferring a word
    boundary. Cuts are made between code points and never strand a combining
    mark away from its base character.
    """
    if len(text) <= length:
        return text
    if length <= len(ELLIPSIS):
        return text[:_mark_safe_cut(text, length)]
    cut = _mark_safe_cut(text, length - len(ELLIPSIS))
    head = text[:cut]
    space = head.rfind(' ')
    if space > cut // 2:
        head = head[:space]
    return head.rstrip() + ELLIPSIS


def summarize(document, length=DEFAULT_SUMMARY_LENGTH):
    """Summary for a document: explicit excerpt, text before the more marker, or a truncated body."""
    excerpt = document.metadata.extra.get('excerpt')
    if isinstance(excerpt, str) and excerpt.strip():
        return plain_text(excerpt)
    body = document.body
    if MORE_MARKER in body:
        return plain_text(body.split(MORE_MARKER, 1)[0])
    return truncate(plain_text(body), length)


def rfc2822(value):
    """RFC 2822 date; naive datetimes are taken as UTC."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return format_datetime(value)


class FeedGenerator:
    def __init__(self, resolver, site_title, feed_size=DEFAULT_FEED_SIZE, summary_length=DEFAULT_SUMMARY_LENGTH):
        if feed_size < 1:
            raise ValueError("feed_size must be at least 1")
        self.resolver = resolver
        self.site_title = site_title
        self.feed_size = feed_size
        self.summary_length = summary_length

    def entries(self, documents):
        """The most recent ``feed_size`` documents of a chronological sequence."""
        return tuple(documents[:self.feed_size])

    def render(self, entries):
        """Render an RSS 2.0 document for already-selected entries."""
        site_link = self.resolver.absolute('/')
        feed_link = self.resolver.absolute(self.resolver.feed_url())
        # The newest entry's date stands in for a build time so rebuilds are identical.
        last_build = f"\n<lastBuildDate>{rfc2822(entries[0].date)}</lastBuildDate>" if entries else ''

        rss_content = f'''<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0" xmlns:atom="http://www.w3.org/2005/Atom">
<channel>
<title>{escape(self.site_title)}</title>
<link>{escape(site_link)}</link>
<description>Latest posts from {escape(self.site_title)}</description>
<atom:link href="{escape(feed_link)}" rel="self" type="application/rss+xml"/>{last_build}
'''
        for document in entries:
            link = escape(self.resolver.absolute(self.resolver.post_url(document)))
            author = f"\n<author>{escape(document.author)}</author>" if document.author else ''
            categories = ''.join(
                f"\n<category>{escape(name)}</category>" for name in document.categories + document.tags
            )
            rss_content += f'''
<item>
<title>{escape(document.title)}</title>
<link>{link}</link>
<description>{escape(summarize(document, self.summary_length))}</description>
<pubDate>{rfc2822(document.date)}</pubDate>
<guid isPermaLink="true">{link}</guid>{author}{categories}
</item>'''

        rss_content += '''
</channel>
</rss>
'''
        return rss_content
