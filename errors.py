class ProgressBuddyError(Exception):
    """Base class for all data-layer errors."""


class StorageError(ProgressBuddyError):
    """Local persistence could not be opened, read or written."""


class ConfigurationError(ProgressBuddyError):
    """The remote backup backend has no usable credentials."""


class InvalidArgument(ProgressBuddyError, ValueError):
    """An argument such as an identifier or measurement was rejected."""


class NotFound(ProgressBuddyError, LookupError):
    """A workout, exercise or remote backup does not exist."""


class EncodingError(ProgressBuddyError):
    """The local store could not be serialized into a backup document."""


class DecodingError(ProgressBuddyError, ValueError):
    """A backup document could not be parsed."""


class NetworkError(ProgressBuddyError):
    """A remote call failed at the transport or HTTP level."""
