import os
import shutil
import logging
import time
from datetime import datetime
from concurrent.futures import ProcessPoolExecutor, ThreadPoolExecutor, as_completed

from .cache import BuildCache
from .errors import QuireError, UnknownConfigurationValue, UnreadableSource
from .feed import FeedGenerator
from .frontmatter import content_hash, parse_document
from .models import Page
from .pagination import ListingBuilder
from .render import PageWriter
from .repository import ContentRepository
from .settings import QuireSettings
from .slugs import PermalinkResolver
from .taxonomy import related_documents

MARKDOWN_EXTENSIONS = ('.md', '.markdown')

# Multiprocessing only pays off once there are enough files to parse
MULTIPROCESSING_THRESHOLD = 12


def parse_source(text, source_path):
    """Worker entry point: parse one file's text. Must stay picklable."""
    return parse_document(text, source_path)


class InfoFilter(logging.Filter):
    """Filter to allow only selected INFO messages to be shown in the console."""
    def filter(self, record):
        if record.levelno >= logging.WARNING:
            return True
        allowed_messages = [
            "Site build completed in",
            "Total documents parsed:",
            "Total pages generated:",
            "Documents reused from cache:",
            "Building listing pages",
            "Building taxonomy pages",
            "Generating feed",
        ]
        return any(msg in record.getMessage() for msg in allowed_messages)


class Quire:
    """Drive a full build: scan, parse, index, resolve, paginate, write."""

    def __init__(self, settings=None, log_dir=None):
        merged = QuireSettings.DEFAULT_SETTINGS.copy()
        merged.update(settings or {})
        QuireSettings().validate(merged)
        self.settings = merged

        self.content_dir = merged['content']
        self.output_dir = merged['output']
        self.templates_dir = merged['templates']
        self.page_size = merged['page_size']
        self.include_drafts = merged['include_drafts']
        self.log_dir = log_dir

        self.documents_parsed = 0
        self.pages_generated = 0
        self.cache_hits = 0

        self.setup_logging()

    def setup_logging(self):
        """Set up logging configuration."""
        self.logger = logging.getLogger('Quire')
        self.logger.setLevel(logging.DEBUG)

        if not self.logger.handlers:
            # Console handler with filter
            console_handler = logging.StreamHandler()
            console_handler.setLevel(logging.INFO)
            console_handler.addFilter(InfoFilter())
            console_formatter = logging.Formatter('%(message)s')
            console_handler.setFormatter(console_formatter)
            self.logger.addHandler(console_handler)

            # File handler for all logs
            if self.log_dir:
                os.makedirs(self.log_dir, exist_ok=True)
                log_filename = datetime.now().strftime('quire_%Y-%m-%d_%H-%M-%S.log')
                log_filepath = os.path.join(self.log_dir, log_filename)

                file_handler = logging.FileHandler(log_filepath)
                file_handler.setLevel(logging.DEBUG)
                file_formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
                file_handler.setFormatter(file_formatter)
                self.logger.addHandler(file_handler)

    def check_directories(self):
        if not os.path.isdir(self.content_dir):
            raise FileNotFoundError(f"Content directory not found: {self.content_dir}")
        content = os.path.realpath(self.content_dir)
        output = os.path.realpath(self.output_dir)
        if content == output or content.startswith(output + os.sep):
            raise UnknownConfigurationValue(
                'output', self.output_dir, 'output directory must not contain the content directory'
            )

    def get_markdown_files(self):
        """All source files below the content directory, as sorted POSIX paths relative to it."""
        markdown_files = []
        for root, dirs, files in os.walk(self.content_dir):
            dirs[:] = sorted(d for d in dirs if not d.startswith('.'))
            for file in files:
                if file.endswith(MARKDOWN_EXTENSIONS) and not file.startswith('.'):
                    relative = os.path.relpath(os.path.join(root, file), self.content_dir)
                    markdown_files.append(relative.replace(os.sep, '/'))
        return sorted(markdown_files)

    def read_sources(self, source_paths):
        sources = []
        for source_path in source_paths:
            file_path = os.path.join(self.content_dir, *source_path.split('/'))
            try:
                with open(file_path, 'r', encoding='utf-8') as f:
                    sources.append((source_path, f.read()))
            except UnicodeDecodeError as e:
                raise UnreadableSource(source_path, f"not valid UTF-8: {e}")
            except (IOError, OSError) as e:
                raise UnreadableSource(source_path, f"cannot read file: {e}")
        return sources

    def load_documents(self, cache=None):
        """Parse every source file, reusing cached documents whose content hash matches."""
        source_paths = self.get_markdown_files()
        if not source_paths:
            self.logger.warning(f"No markdown files found in {self.content_dir}")

        documents = []
        tasks = []
        for source_path, text in self.read_sources(source_paths):
            cached = cache.lookup(source_path, content_hash(text)) if cache else None
            if cached is not None:
                documents.append(cached)
            else:
                tasks.append((source_path, text))

        if len(tasks) >= MULTIPROCESSING_THRESHOLD:
            workers = self.settings['workers'] or os.cpu_count()
            self.logger.info(f"Using multiprocessing for {len(tasks)} files with {workers} workers")
            documents.extend(self._parse_with_multiprocessing(tasks, workers))
        else:
            self.logger.info(f"Using single-threaded processing for {len(tasks)} files")
            documents.extend(self._parse_single_threaded(tasks))

        self.documents_parsed = len(tasks)
        if cache is not None:
            self.cache_hits = cache.hits
            cache.prune(source_paths)
        return sorted(documents, key=lambda d: d.source_path)

    def _parse_single_threaded(self, tasks):
        return [parse_source(text, source_path) for source_path, text in tasks]

    def _parse_with_multiprocessing(self, tasks, workers):
        documents = []
        failures = []
        with ProcessPoolExecutor(max_workers=workers) as executor:
            futures = {executor.submit(parse_source, text, source_path): source_path
                       for source_path, text in tasks}
            for future in as_completed(futures):
                source_path = futures[future]
                try:
                    documents.append(future.result())
                except QuireError as e:
                    failures.append((source_path, e))
        if failures:
            # Report the first failing file in path order so reruns agree.
            failures.sort(key=lambda failure: failure[0])
            self.logger.error(f"{len(failures)} source file(s) failed to parse")
            raise failures[0][1]
        return documents

    def build_repository(self, documents):
        """Insert every document, then freeze: nothing downstream runs before this returns."""
        repository = ContentRepository(include_drafts=self.include_drafts)
        repository.extend(documents)
        return repository.freeze()

    def claim_document_urls(self, resolver, repository):
        for document in repository:
            resolver.claim(resolver.post_url(document), document.source_path)

    def build_post_pages(self, resolver, repository):
        site_index = repository.site_index()
        documents = site_index.documents
        related_count = self.settings['related_count']
        pages = []
        for i, document in enumerate(documents):
            url = resolver.post_url(document)
            pages.append(Page(
                kind='post',
                url=url,
                output_path=resolver.output_path(url),
                title=document.title,
                documents=(document,),
                document=document,
                previous=resolver.post_url(documents[i - 1]) if i > 0 else None,
                next=resolver.post_url(documents[i + 1]) if i + 1 < len(documents) else None,
                related=related_documents(document, site_index, related_count),
            ))
        return pages

    def build_listing_pages(self, resolver, repository):
        """Chronological index pages followed by category and tag pages."""
        listings = ListingBuilder(resolver, self.page_size)
        self.logger.info("Building listing pages")
        pages = listings.index_pages(repository.all(), title=self.settings['site_title'])
        for page in pages:
            resolver.claim(page.url, f"index page {page.number}")

        self.logger.info("Building taxonomy pages")
        for terms in (repository.categories(), repository.tags()):
            for term in terms.values():
                for page in listings.term_pages(term):
                    resolver.claim(page.url, f"{term.kind} '{term.name}'")
                    pages.append(page)
        return pages

    def build_feed_page(self, resolver, repository, feed):
        self.logger.info("Generating feed")
        url = resolver.feed_url()
        resolver.claim(url, 'feed')
        return Page(
            kind='feed',
            url=url,
            output_path=resolver.output_path(url),
            title=self.settings['site_title'],
            documents=feed.entries(repository.all()),
        )

    def collect_pages(self, repository, resolver, feed):
        self.claim_document_urls(resolver, repository)
        pages = self.build_post_pages(resolver, repository)
        pages.extend(self.build_listing_pages(resolver, repository))
        pages.append(self.build_feed_page(resolver, repository, feed))
        return pages

    def write_pages(self, pages, writer):
        """
        Render every page once and write the tree to a staging directory,
        which replaces the output directory only if every write succeeded.
        """
        staging_dir = self.output_dir.rstrip('/\\') + '.quire-tmp'
        if os.path.exists(staging_dir):
            shutil.rmtree(staging_dir)
        os.makedirs(staging_dir)

        try:
            rendered = [(page, writer.render(page)) for page in pages]
            failures = []
            workers = self.settings['workers'] or min(32, (os.cpu_count() or 1) + 4)
            with ThreadPoolExecutor(max_workers=workers) as executor:
                futures = {executor.submit(writer.write, page, staging_dir, text): page
                           for page, text in rendered}
                for future in as_completed(futures):
                    try:
                        future.result()
                    except QuireError as e:
                        failures.append((futures[future].output_path, e))
            if failures:
                failures.sort(key=lambda failure: failure[0])
                raise failures[0][1]
        except BaseException:
            shutil.rmtree(staging_dir, ignore_errors=True)
            raise

        self.replace_output_dir(staging_dir)
        self.pages_generated = len(pages)

    def replace_output_dir(self, staging_dir):
        previous_dir = self.output_dir.rstrip('/\\') + '.quire-old'
        if os.path.exists(previous_dir):
            shutil.rmtree(previous_dir)
        if os.path.exists(self.output_dir):
            os.replace(self.output_dir, previous_dir)
        os.replace(staging_dir, self.output_dir)
        if os.path.exists(previous_dir):
            shutil.rmtree(previous_dir)

    def build(self):
        """Main build process. Any error aborts the build before the output tree changes."""
        start_time = time.time()
        self.logger.debug("Starting site build...")
        self.check_directories()

        cache = None
        if self.settings['cache_file']:
            cache = BuildCache(self.settings['cache_file']).load()

        documents = self.load_documents(cache)
        repository = self.build_repository(documents)

        resolver = PermalinkResolver(self.settings['permalink_pattern'], self.settings['base_url'])
        feed = FeedGenerator(
            resolver,
            self.settings['site_title'],
            feed_size=self.settings['feed_size'],
            summary_length=self.settings['summary_length'],
        )
        pages = self.collect_pages(repository, resolver, feed)

        writer = PageWriter(resolver, repository.site_index(), feed, self.settings['site_title'],
                            templates_dir=self.templates_dir)
        self.write_pages(pages, writer)

        if cache is not None:
            for document in repository:
                cache.store(document)
            cache.save()

        self.logger.info(f"Site build completed in {time.time() - start_time:.6f} seconds.")
        self.logger.info(f"Total documents parsed: {self.documents_parsed}")
        self.logger.info(f"Documents reused from cache: {self.cache_hits}")
        self.logger.info(f"Total pages generated: {self.pages_generated}")
        return pages
