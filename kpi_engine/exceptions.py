"""
Engine exceptions.
"""


class ETLError(Exception):
    """Base class for KPI engine errors."""


class RunLogError(ETLError):
    """Illegal run-log transition (e.g. finalizing a run twice)."""


class ETLAlreadyRunningError(ETLError):
    """A manual trigger arrived while another run was in flight."""


class UnsupportedDialectError(ETLError):
    """The analytics store's dialect has no native upsert support here."""
