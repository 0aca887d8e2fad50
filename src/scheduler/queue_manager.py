"""
Job queue for the scheduler.

- Maintains the ordered list of job identifiers (FIFO)
- Provides tail insertion, head promotion and removal by name

What JobQueue MUST NOT do:
- Check that a job exists on disk (JobRunner's responsibility)
- Execute jobs
- De-duplicate on insertion: the same job may be queued several times
"""

from typing import Iterable, Iterator, List, Optional


class JobQueue:
    """Ordered sequence of job identifiers."""

    def __init__(self, jobs: Optional[Iterable[str]] = None):
        self._jobs: List[str] = list(jobs or [])

    def __len__(self) -> int:
        return len(self._jobs)

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._jobs))

    def __bool__(self) -> bool:
        return bool(self._jobs)

    def __eq__(self, other) -> bool:
        if isinstance(other, JobQueue):
            return self._jobs == other._jobs
        if isinstance(other, list):
            return self._jobs == other
        return NotImplemented

    def __repr__(self) -> str:
        return f"JobQueue({self._jobs!r})"

    # =========================================================================
    # Insertion
    # =========================================================================

    def append(self, jobs: Iterable[str]) -> None:
        """Append jobs to the end of the queue, in the order given."""
        self._jobs.extend(jobs)

    def prepend(self, jobs: Iterable[str]) -> None:
        """
        Promote jobs to the front of the queue.

        Existing entries equal to one of the promoted jobs are dropped, so
        each promoted job appears exactly where it was placed. Duplicates of
        other jobs elsewhere in the queue are left alone.
        """
        promoted = list(jobs)
        if not promoted:
            return
        wanted = set(promoted)
        self._jobs = promoted + [j for j in self._jobs if j not in wanted]

    # =========================================================================
    # Removal
    # =========================================================================

    def remove(self, jobs: Iterable[str]) -> int:
        """
        Remove every occurrence of the given jobs.

        Returns:
            Number of entries removed
        """
        unwanted = set(jobs)
        before = len(self._jobs)
        self._jobs = [j for j in self._jobs if j not in unwanted]
        return before - len(self._jobs)

    def pop_head(self) -> Optional[str]:
        """Remove and return the first job, or None if the queue is empty."""
        if not self._jobs:
            return None
        return self._jobs.pop(0)

    def peek(self) -> Optional[str]:
        """Return the first job without removing it."""
        return self._jobs[0] if self._jobs else None

    def as_list(self) -> List[str]:
        """Copy of the queue contents."""
        return list(self._jobs)
