"""
Front matter parsing.

A source document starts with a YAML mapping fenced by ``---`` lines and is
followed by free-form Markdown. The mapping is decoded into a strict
``Metadata`` record here so later stages never re-check optional fields.
"""

import hashlib
import re
from datetime import date, datetime, time

import yaml

from .errors import InvalidDate, MalformedMetadata, MissingRequiredField
from .models import Document, Metadata
from .slugs import document_slug
from .taxonomy import normalize_term

FENCE = '---'
KNOWN_FIELDS = ('title', 'date', 'author', 'categories', 'tags', 'draft', 'slug')
DATE_FORMATS = ['%Y-%m-%d %H:%M', '%Y/%m/%d', '%b %d, %Y', '%B %d, %Y']
TRUE_STRINGS = {'true', 'yes', 'on', '1'}
FALSE_STRINGS = {'false', 'no', 'off', '0', ''}
ISO_DATE_RE = re.compile(r'^\d{4}-\d{2}-\d{2}$')


def split_front_matter(text, source_path):
    """Split raw text into the decoded metadata mapping and the body."""
    lines = text.lstrip('\ufeff').splitlines(keepends=True)
    if not lines or lines[0].strip() != FENCE:
        raise MalformedMetadata(source_path, 'document does not start with a front matter block')

    end = None
    for i in range(1, len(lines)):
        if lines[i].strip() == FENCE:
            end = i
            break
    if end is None:
        raise MalformedMetadata(source_path, 'front matter block is not closed')

    block = ''.join(lines[1:end])
    try:
        metadata = yaml.safe_load(block)
    except yaml.YAMLError as e:
        raise MalformedMetadata(source_path, f"invalid YAML front matter: {e}")
    except ValueError as e:
        # Impossible timestamps such as 2024-02-30 fail while PyYAML builds them.
        _raise_invalid_value(block, source_path, e)
    if not isinstance(metadata, dict):
        raise MalformedMetadata(source_path, 'front matter must be a mapping')

    body = ''.join(lines[end + 1:])
    return metadata, body


def _raise_invalid_value(block, source_path, error):
    """Attribute a value PyYAML could not construct to the date field or the block."""
    raw = yaml.load(block, Loader=yaml.BaseLoader)
    if isinstance(raw, dict) and 'date' in raw:
        parse_date(raw['date'], source_path)
    raise MalformedMetadata(source_path, f"invalid value in front matter: {error}")


def parse_date(value, source_path):
    """Return ``(datetime, has_time)`` for a YAML date, datetime or string."""
    if isinstance(value, datetime):
        return value, True
    if isinstance(value, date):
        return datetime.combine(value, time()), False
    if not isinstance(value, str):
        raise InvalidDate(source_path, f"unsupported date value {value!r}")

    text = value.strip()
    if ISO_DATE_RE.match(text):
        try:
            return datetime.combine(date.fromisoformat(text), time()), False
        except ValueError:
            raise InvalidDate(source_path, f"invalid date '{text}'")
    iso = text[:-1] + '+00:00' if text.endswith(('Z', 'z')) else text
    try:
        return datetime.fromisoformat(iso), True
    except ValueError:
        pass
    for fmt in DATE_FORMATS:
        try:
            parsed = datetime.strptime(text, fmt)
        except ValueError:
            continue
        return parsed, '%H' in fmt
    raise InvalidDate(source_path, f"cannot parse date '{text}'")


def _parse_terms(value, name, source_path):
    if value is None:
        return ()
    if isinstance(value, (str, int, float)) and not isinstance(value, bool):
        value = [value]
    if not isinstance(value, list):
        raise MalformedMetadata(source_path, f"'{name}' must be a list of strings")

    terms = []
    seen = set()
    for item in value:
        if item is None or isinstance(item, (dict, list, bool)):
            raise MalformedMetadata(source_path, f"'{name}' contains a non-string entry {item!r}")
        term = ' '.join(str(item).split())
        key = normalize_term(term)
        if not key or key in seen:
            continue
        seen.add(key)
        terms.append(term)
    return tuple(terms)


def _parse_bool(value, name, source_path):
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in TRUE_STRINGS:
            return True
        if lowered in FALSE_STRINGS:
            return False
    raise MalformedMetadata(source_path, f"'{name}' must be a boolean, got {value!r}")


def _parse_optional_string(value, name, source_path):
    if value is None:
        return None
    if isinstance(value, (dict, list)):
        raise MalformedMetadata(source_path, f"'{name}' must be a string")
    value = str(value).strip()
    return value or None


def parse_metadata(mapping, source_path):
    """Validate a decoded front matter mapping into a ``Metadata`` record."""
    title = mapping.get('title')
    if isinstance(title, (dict, list)):
        raise MalformedMetadata(source_path, "'title' must be a string")
    if title is None or not str(title).strip():
        raise MissingRequiredField(source_path, 'title')

    raw_date = mapping.get('date')
    if raw_date is None or (isinstance(raw_date, str) and not raw_date.strip()):
        raise MissingRequiredField(source_path, 'date')
    parsed_date, has_time = parse_date(raw_date, source_path)

    extra = {str(key): value for key, value in mapping.items() if key not in KNOWN_FIELDS}

    return Metadata(
        title=str(title).strip(),
        date=parsed_date,
        has_time=has_time,
        author=_parse_optional_string(mapping.get('author'), 'author', source_path),
        categories=_parse_terms(mapping.get('categories'), 'categories', source_path),
        tags=_parse_terms(mapping.get('tags'), 'tags', source_path),
        draft=_parse_bool(mapping.get('draft'), 'draft', source_path),
        slug=_parse_optional_string(mapping.get('slug'), 'slug', source_path),
        extra=extra,
    )


def content_hash(text):
    return hashlib.sha256(text.encode('utf-8')).hexdigest()


def parse_document(text, source_path):
    """Parse one source file's text into a ``Document``."""
    mapping, body = split_front_matter(text, source_path)
    metadata = parse_metadata(mapping, source_path)
    return Document(
        source_path=source_path,
        metadata=metadata,
        body=body,
        slug=document_slug(source_path, metadata),
        content_hash=content_hash(text),
    )


def format_date(metadata):
    if metadata.has_time:
        return metadata.date.isoformat()
    return metadata.date.date().isoformat()


def metadata_to_dict(metadata):
    """Plain mapping of a record, in the order authors usually write it."""
    data = {'title': metadata.title, 'date': format_date(metadata)}
    if metadata.author is not None:
        data['author'] = metadata.author
    if metadata.categories:
        data['categories'] = list(metadata.categories)
    if metadata.tags:
        data['tags'] = list(metadata.tags)
    if metadata.draft:
        data['draft'] = True
    if metadata.slug is not None:
        data['slug'] = metadata.slug
    data.update(metadata.extra)
    return data


def serialize_metadata(metadata):
    """Emit a front matter block that parses back to an equal record."""
    text = yaml.safe_dump(metadata_to_dict(metadata), sort_keys=False, allow_unicode=True)
    return f"{FENCE}\n{text}{FENCE}\n"


def render_source(document):
    return serialize_metadata(document.metadata) + document.body
