"""Fan-out of independent reads, one session per read."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Mapping, Optional

from sqlalchemy.orm import Session

from projecthub.database import SessionFactory

logger = logging.getLogger(__name__)

BlockRead = Callable[[Session], Any]


def _in_own_session(session_factory: SessionFactory, read: BlockRead) -> Any:
    session = session_factory()
    try:
        return read(session)
    finally:
        session.close()


def read_blocks(
    reads: Mapping[str, BlockRead],
    *,
    db: Session,
    session_factory: Optional[SessionFactory] = None,
    max_workers: int = 1,
) -> dict[str, Any]:
    """Run every read and return the results under the same keys.

    With more than one worker and a session factory the reads are issued
    together on a thread pool, each in a session of its own; otherwise they
    run one after another on ``db``.  Results are collected once every read
    has settled, and the first failure (in key order) is re-raised.
    """
    if not reads:
        return {}
    if max_workers <= 1 or session_factory is None:
        return {key: read(db) for key, read in reads.items()}

    workers = min(max_workers, len(reads))
    logger.debug("Reading %s blocks on %s workers", len(reads), workers)
    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="block-read") as executor:
        futures = {key: executor.submit(_in_own_session, session_factory, read) for key, read in reads.items()}
    return {key: future.result() for key, future in futures.items()}


__all__ = ["BlockRead", "read_blocks"]
