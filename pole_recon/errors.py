"""Exceptions raised while reading the input documents."""


class PoleReconError(Exception):
    """Base class for fatal, whole-document failures."""


class SourceFormatError(PoleReconError):
    """The document could not be decoded or has the wrong shape."""


class MissingFieldError(SourceFormatError):
    """A mandatory top-level field is absent."""

    def __init__(self, field: str, source: str = "document"):
        self.field = field
        self.source = source
        super().__init__(f"Missing required field '{field}' in {source}")
