"""Error kinds raised by the fixture harness."""


class FixtureError(Exception):
    """Base class for harness errors."""


class ConstructionError(FixtureError):
    """A fixture could not be built from the given parameters."""


class AppendError(FixtureError):
    """An append primitive failed for a reason other than a stale reference."""


class CommitError(FixtureError):
    """The ingestion buffer rejected the commit after all appends succeeded."""


class CompactionError(FixtureError):
    """Flushing an ingestion buffer into a block failed."""


class FilesystemError(FixtureError):
    """Creating or removing a temporary directory failed."""
