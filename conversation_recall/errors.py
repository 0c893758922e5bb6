"""Error types raised while searching conversations."""


class ValidationError(ValueError):
    """A search argument is malformed. Raised before any source is queried."""


class SourceUnavailable(RuntimeError):
    """A source's backing store or service cannot be reached."""


class RecordParseError(ValueError):
    """A single session or message record could not be parsed."""
