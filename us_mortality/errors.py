"""Exceptions raised by the mortality pipeline."""


class MortalityDataError(Exception):
    """Base class for pipeline errors."""


class FetchError(MortalityDataError):
    """A dataset could not be downloaded or parsed. Aborts the run."""


class SchemaError(MortalityDataError, KeyError):
    """A column is missing, unparseable, or holds an unexpected category."""

    def __str__(self) -> str:
        # KeyError quotes its message otherwise
        return str(self.args[0]) if self.args else ""


class EmptyGroupError(MortalityDataError, LookupError):
    """A requested state/week/age subset has no rows.

    Only raised by views called with ``strict=True``; by default an empty
    subset is logged and returned as an empty frame.
    """
