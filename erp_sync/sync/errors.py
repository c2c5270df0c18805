"""Exceptions raised by the synchronization engine."""


class SynchronizerConfigError(Exception):
    """
    Raised when a synchronizer is wired incorrectly.

    Covers invalid field map entries, unknown conversion names, missing source
    queries and registry misuse. Raised while a synchronizer is being set up,
    before any row is read.
    """

    pass
