"""
Error taxonomy for Quire builds.

Every error is build-fatal and carries enough context (the offending source
file, or both files in a slug collision) to locate the fault without a
verbose re-run. Constructor arguments are passed through to ``Exception`` so
instances survive pickling across the parse worker pool.
"""


class QuireError(Exception):
    """Base class for all build errors."""


class SourceError(QuireError):
    """An error attributable to a single source document."""

    def __init__(self, source_path, detail):
        super().__init__(source_path, detail)
        self.source_path = source_path
        self.detail = detail

    def __str__(self):
        return f"{self.source_path}: {self.detail}"


class MalformedMetadata(SourceError):
    """The front matter block is absent, unclosed, or not a mapping."""


class MissingRequiredField(SourceError):
    """A required front matter field (title or date) is absent or empty."""

    def __init__(self, source_path, field):
        super().__init__(source_path, field)
        self.field = field
        self.detail = f"missing required field '{field}'"


class InvalidDate(SourceError):
    """The date field cannot be parsed to a calendar date."""


class UnreadableSource(SourceError):
    """The source file cannot be read or is not valid UTF-8."""


class DuplicateSlug(QuireError):
    """Two owners resolve to the same slug or output path."""

    def __init__(self, target, first, second):
        first, second = sorted([str(first), str(second)])
        super().__init__(target, first, second)
        self.target = target
        self.first = first
        self.second = second

    def __str__(self):
        return f"'{self.target}' is claimed by both {self.first} and {self.second}"


class UnknownConfigurationValue(QuireError):
    """A configuration key or value is not recognized."""

    def __init__(self, key, value, detail, config_path=None):
        super().__init__(key, value, detail, config_path)
        self.key = key
        self.value = value
        self.detail = detail
        self.config_path = config_path

    def __str__(self):
        prefix = f"{self.config_path}: " if self.config_path else ""
        return f"{prefix}invalid configuration '{self.key}' = {self.value!r}: {self.detail}"


class OutputWriteError(QuireError):
    """A page could not be rendered or written."""

    def __init__(self, output_path, detail):
        super().__init__(output_path, detail)
        self.output_path = output_path
        self.detail = detail

    def __str__(self):
        return f"{self.output_path}: {self.detail}"
