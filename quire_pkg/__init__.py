"""
Quire - a static site generator for front-matter posts.

Quire turns a directory of Markdown posts with YAML front matter into post
pages, category and tag listings, paginated chronological listings and an
RSS feed, with deterministic, idempotent output.
"""

__version__ = "1.0.0"

from .core import Quire
from .repository import ContentRepository

__all__ = ['Quire', 'ContentRepository']
