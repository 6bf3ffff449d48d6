"""Ephemeral storage instances and block materialization for tests."""
import logging
import os
import shutil
import tempfile
from typing import Callable, List, Optional, Tuple

from tsfixture.config import CompactorOptions, DBOptions, HeadOptions
from tsfixture.errors import CompactionError, FilesystemError
from tsfixture.ingest import IngestionAdapter
from tsfixture.metrics import IngestMetrics
from tsfixture.series import SeriesFixture
from tsfixture.storage import DB, BlockCompactor, Compactor, MemHead, StorageError, open_db

logger = logging.getLogger(__name__)


def open_ephemeral(options: Optional[DBOptions] = None) -> Tuple[DB, Callable[[], None]]:
    """
    Open a storage instance in a fresh temporary directory.

    The returned cleanup function only removes the directory. It does not
    close the instance, so a failing test never blocks on shutdown; callers
    that need the instance closed call db.close() themselves.
    """
    try:
        tmpdir = tempfile.mkdtemp(prefix="test")
    except OSError as e:
        raise FilesystemError(f"creating temporary directory: {e}") from e

    try:
        db = open_db(tmpdir, options)
    except OSError as e:
        shutil.rmtree(tmpdir, ignore_errors=True)
        raise FilesystemError(f"opening storage in {tmpdir}: {e}") from e

    def cleanup():
        try:
            shutil.rmtree(tmpdir)
        except OSError as e:
            raise FilesystemError(f"removing {tmpdir}: {e}") from e
        logger.debug(f"Removed ephemeral storage {tmpdir}")

    return db, cleanup


def create_head(
    fixtures: List[SeriesFixture],
    options: Optional[HeadOptions] = None,
    metrics: Optional[IngestMetrics] = None
) -> MemHead:
    """Ingest fixtures into a new head and commit them."""
    head = MemHead(options)
    IngestionAdapter(head.appender(), metrics).ingest(fixtures)
    return head


def materialize_block(
    directory: str,
    fixtures: List[SeriesFixture],
    head_options: Optional[HeadOptions] = None,
    compactor_options: Optional[CompactorOptions] = None,
    metrics: Optional[IngestMetrics] = None
) -> str:
    """
    Write fixtures into a single block under directory.

    Returns:
        Path of the new block directory; its base name is the block id
    """
    head = create_head(fixtures, head_options, metrics)
    try:
        compactor: Compactor = BlockCompactor((compactor_options or CompactorOptions()).ranges)

        try:
            os.makedirs(directory, exist_ok=True)
        except OSError as e:
            raise FilesystemError(f"creating block directory {directory}: {e}") from e

        mint, maxt = head.min_time(), head.max_time()
        if mint is None or maxt is None:
            raise CompactionError("no samples ingested, nothing to compact")

        # Block ranges are half-open [mint, maxt): include the newest sample.
        try:
            block_id = compactor.write(directory, head, mint, maxt + 1)
        except StorageError as e:
            raise CompactionError(f"compacting head into {directory}: {e}") from e
    finally:
        head.close()

    return os.path.join(directory, block_id)
