"""Error taxonomy for PAX parsing, access and I/O.

Every failure surfaced by the package is a :class:`PaxError`.  Some
subclasses also derive from the matching builtin (``IndexError``,
``KeyError``, ``TypeError``) so callers can catch them idiomatically.
"""

from __future__ import annotations


class PaxError(Exception):
    """Base PAX error."""

    def __init__(self, message: str, original_exception: Exception | None = None):
        super().__init__(message)
        self.message = message
        self.original_exception = original_exception

    def __str__(self) -> str:
        return self.message


class InvalidTagError(PaxError):
    """Raised when the first line is not a valid ``PAX<id>`` tag line."""
    pass


class UnknownTypeError(InvalidTagError):
    """Raised when a raster type id is not in the type registry."""
    pass


class StructureError(PaxError):
    """Raised when required header tags are missing, duplicated or inconsistent."""
    pass


class MalformedNumberError(PaxError):
    """Raised when a numeric token cannot be parsed or overflows its width."""

    def __init__(self, message: str, token: str = "", offset: int = -1,
                 original_exception: Exception | None = None):
        super().__init__(message, original_exception)
        self.token = token
        self.offset = offset


class UnknownMetadataTypeError(PaxError):
    """A metadata line declared an unrecognised type tag.

    The header parser records this as a warning and skips the line; it is
    never raised out of :func:`paxfile.header.parse_header`.
    """
    pass


class IndexOutOfBoundsError(PaxError, IndexError):
    """Raised when an element or metadata array index is outside its dimensions."""
    pass


class BufferTooShortError(PaxError):
    """Raised when fewer bytes are available than the header or payload needs."""
    pass


class IncompleteHeaderError(BufferTooShortError):
    """The buffer ended before ``DATA_LENGTH`` was read.

    ``offset`` is how far the parser got; a chunked reader should append
    more bytes and retry.
    """

    def __init__(self, message: str, offset: int = 0,
                 original_exception: Exception | None = None):
        super().__init__(message, original_exception)
        self.offset = offset


class TypeMismatchError(PaxError, TypeError):
    """Raised when a value is read or written under the wrong declared type."""
    pass


class MetadataNotFoundError(PaxError, KeyError):
    """Raised when a metadata name is not present in the store."""
    pass


class PaxIOError(PaxError):
    """Raised when reading or writing a PAX file on disk fails."""
    pass
