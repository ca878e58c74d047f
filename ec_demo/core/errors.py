# ec_demo/core/errors.py

"""
Exception taxonomy for ec_demo.

Recoverable errors (MetadataError, DecodeError, SourceError, CommandError) are
turned into inline diagnostics by the debug session. Fatal errors
(LifecycleError, ReceiverDisconnected) are meant to propagate and end the
session. UnexpectedEof is flow control, not a failure.
"""


class EcDemoError(Exception):
    """Base error for the package (do not raise directly)."""


class LifecycleError(EcDemoError):
    """The notification service could not be created or was used after close."""


class ReceiverDisconnected(EcDemoError):
    """A receiver's worker died unexpectedly; polling it is an invariant violation."""


class MetadataError(EcDemoError):
    """The metadata blob is unreadable or lacks its decode table."""


class DecodeError(EcDemoError):
    """A delimited frame could not be decoded."""


class UnexpectedEof(EcDemoError):
    """Not enough bytes are buffered to complete a frame yet."""


class SourceError(EcDemoError):
    """The data source failed to produce a sample."""


class CommandError(EcDemoError):
    """A command line typed into the log viewer was not understood."""
