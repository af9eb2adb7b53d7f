"""
Checkpoint Store - Durable per-thread workflow checkpoints.

Each thread has exactly one checkpoint, replaced on every successful
advance. Writes carry an expected version; a write whose expectation does
not match the stored version is rejected so two concurrent resumes of the
same thread cannot both win. The file store holds an exclusive lock on a
sidecar ``<thread>.json.lock`` file while it checks and replaces, so the
check also holds across processes.
"""

import asyncio
import fcntl
import logging
import re
from abc import ABC, abstractmethod
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timedelta
from pathlib import Path

from mcp_workflow.errors import CheckpointConflictError, PersistenceError
from mcp_workflow.schemas.checkpoint import Checkpoint, CheckpointSummary
from mcp_workflow.utils.io import atomic_write

logger = logging.getLogger(__name__)

_SAFE_THREAD_ID = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]{0,199}$")
LOCK_SUFFIX = ".lock"


def validate_thread_id(thread_id: str) -> str:
    """
    Reject thread ids that are unsafe as file names.

    Raises:
        PersistenceError: Empty id, path separators, or traversal components
    """
    if not thread_id or not _SAFE_THREAD_ID.match(thread_id) or ".." in thread_id:
        raise PersistenceError(f"Invalid thread id: {thread_id!r}")
    return thread_id


def _parse_timestamp(value: str) -> datetime | None:
    try:
        return datetime.fromisoformat(value)
    except (TypeError, ValueError):
        return None


def _next_version(
    checkpoint: Checkpoint, current: int, expected_version: int | None
) -> Checkpoint:
    if expected_version is not None and current != expected_version:
        raise CheckpointConflictError(checkpoint.thread_id, expected_version, current)
    stored = checkpoint.model_copy(deep=True)
    stored.version = current + 1
    stored.touch()
    return stored


@contextmanager
def _locked_file(path: Path) -> Iterator[None]:
    """Hold an exclusive lock on the sidecar lock file of ``path``."""
    lock_path = path.with_suffix(path.suffix + LOCK_SUFFIX)
    with lock_path.open("a+", encoding="utf-8") as lock_handle:
        fcntl.flock(lock_handle.fileno(), fcntl.LOCK_EX)
        try:
            yield
        finally:
            fcntl.flock(lock_handle.fileno(), fcntl.LOCK_UN)


class BaseCheckpointStore(ABC):
    """
    Interface shared by the file and in-memory stores.

    Subclasses implement the raw operations and the check-and-save step;
    argument validation and in-process serialisation live here.
    """

    def __init__(self) -> None:
        self._write_lock = asyncio.Lock()

    @abstractmethod
    async def read(self, thread_id: str) -> Checkpoint | None:
        """Load a thread's checkpoint; None when missing or unreadable."""

    @abstractmethod
    async def delete(self, thread_id: str) -> bool:
        """Remove a thread's checkpoint. Returns False if there was none."""

    @abstractmethod
    async def exists(self, thread_id: str) -> bool: ...

    @abstractmethod
    async def list_threads(self) -> list[CheckpointSummary]: ...

    @abstractmethod
    async def _versioned_save(
        self, checkpoint: Checkpoint, expected_version: int | None
    ) -> Checkpoint:
        """Check the stored version, then save the next one. Must be atomic per thread."""

    async def write(
        self, checkpoint: Checkpoint, expected_version: int | None = None
    ) -> Checkpoint:
        """
        Persist a checkpoint as the thread's new state.

        Args:
            checkpoint: Checkpoint to persist; not mutated
            expected_version: Version the caller loaded. None skips the check.

        Returns:
            The stored checkpoint, carrying its new version

        Raises:
            CheckpointConflictError: The stored version is not ``expected_version``
            PersistenceError: The write itself failed
        """
        validate_thread_id(checkpoint.thread_id)
        async with self._write_lock:
            stored = await self._versioned_save(checkpoint, expected_version)

        logger.debug(
            f"Saved checkpoint for thread {stored.thread_id}",
            extra={"version": stored.version},
        )
        return stored

    async def prune(self, max_age_days: int = 7) -> int:
        """
        Delete checkpoints not updated within ``max_age_days``.

        Returns:
            Number of checkpoints deleted
        """
        cutoff = datetime.now() - timedelta(days=max_age_days)
        deleted_count = 0
        for summary in await self.list_threads():
            updated = _parse_timestamp(summary.updated_at)
            if updated is None:
                logger.warning(f"Failed to parse timestamp for thread {summary.thread_id}")
                continue
            if updated < cutoff and await self.delete(summary.thread_id):
                deleted_count += 1

        if deleted_count > 0:
            logger.info(f"Pruned {deleted_count} checkpoints older than {max_age_days} days")
        return deleted_count


class CheckpointStore(BaseCheckpointStore):
    """
    File-backed checkpoint store.

    Directory structure:
        workflow-state/
            {thread_id}.json        # One checkpoint per thread
    """

    def __init__(self, base_path: Path | str):
        """
        Initialize checkpoint store.

        Args:
            base_path: Directory holding checkpoint files
                (e.g., <project>/.mcp-workflow/workflow-state/)
        """
        super().__init__()
        self.base_path = Path(base_path)

    def path_for(self, thread_id: str) -> Path:
        return self.base_path / f"{validate_thread_id(thread_id)}.json"

    def _read_file(self, path: Path) -> Checkpoint | None:
        if not path.exists():
            return None
        try:
            return Checkpoint.model_validate_json(path.read_text(encoding="utf-8"))
        except Exception as e:
            logger.warning(f"Ignoring unreadable checkpoint {path.name}: {e}")
            return None

    async def read(self, thread_id: str) -> Checkpoint | None:
        path = self.path_for(thread_id)
        checkpoint = await asyncio.to_thread(self._read_file, path)
        if checkpoint is None:
            return None
        if checkpoint.thread_id != thread_id:
            logger.warning(
                f"Checkpoint file {path.name} belongs to thread '{checkpoint.thread_id}', ignoring"
            )
            return None
        return checkpoint

    async def _versioned_save(
        self, checkpoint: Checkpoint, expected_version: int | None
    ) -> Checkpoint:
        path = self.path_for(checkpoint.thread_id)

        def _write() -> Checkpoint:
            self.base_path.mkdir(parents=True, exist_ok=True)
            with _locked_file(path):
                existing = self._read_file(path)
                current = existing.version if existing else 0
                stored = _next_version(checkpoint, current, expected_version)
                with atomic_write(path) as f:
                    f.write(stored.model_dump_json(indent=2))
            return stored

        try:
            return await asyncio.to_thread(_write)
        except OSError as e:
            raise PersistenceError(
                f"Failed to write checkpoint for thread '{checkpoint.thread_id}': {e}"
            ) from e

    async def delete(self, thread_id: str) -> bool:
        path = self.path_for(thread_id)

        def _delete() -> bool:
            if not path.exists():
                return False
            with _locked_file(path):
                if not path.exists():
                    return False
                path.unlink()
                return True

        try:
            deleted = await asyncio.to_thread(_delete)
        except OSError as e:
            raise PersistenceError(
                f"Failed to delete checkpoint for thread '{thread_id}': {e}"
            ) from e
        if deleted:
            logger.info(f"Deleted checkpoint for thread {thread_id}")
        return deleted

    async def exists(self, thread_id: str) -> bool:
        return await asyncio.to_thread(self.path_for(thread_id).exists)

    async def list_threads(self) -> list[CheckpointSummary]:
        def _list() -> list[CheckpointSummary]:
            if not self.base_path.exists():
                return []
            summaries = []
            for path in sorted(self.base_path.glob("*.json")):
                checkpoint = self._read_file(path)
                if checkpoint is not None:
                    summaries.append(CheckpointSummary.from_checkpoint(checkpoint))
            return summaries

        summaries = await asyncio.to_thread(_list)
        return sorted(summaries, key=lambda s: s.updated_at, reverse=True)


class InMemoryCheckpointStore(BaseCheckpointStore):
    """Checkpoint store without I/O, for tests and ephemeral servers."""

    def __init__(self) -> None:
        super().__init__()
        self._checkpoints: dict[str, str] = {}

    async def read(self, thread_id: str) -> Checkpoint | None:
        raw = self._checkpoints.get(validate_thread_id(thread_id))
        return Checkpoint.model_validate_json(raw) if raw is not None else None

    async def _versioned_save(
        self, checkpoint: Checkpoint, expected_version: int | None
    ) -> Checkpoint:
        existing = await self.read(checkpoint.thread_id)
        current = existing.version if existing else 0
        stored = _next_version(checkpoint, current, expected_version)
        await self._save(stored)
        return stored

    async def _save(self, checkpoint: Checkpoint) -> None:
        # Stored serialized so callers never share mutable state with the store
        self._checkpoints[checkpoint.thread_id] = checkpoint.model_dump_json()

    async def delete(self, thread_id: str) -> bool:
        return self._checkpoints.pop(validate_thread_id(thread_id), None) is not None

    async def exists(self, thread_id: str) -> bool:
        return validate_thread_id(thread_id) in self._checkpoints

    async def list_threads(self) -> list[CheckpointSummary]:
        summaries = [
            CheckpointSummary.from_checkpoint(Checkpoint.model_validate_json(raw))
            for raw in self._checkpoints.values()
        ]
        return sorted(summaries, key=lambda s: s.updated_at, reverse=True)
