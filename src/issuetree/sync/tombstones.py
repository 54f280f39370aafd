"""
Tombstone Cache & Reconciler.

The tracker's list endpoint is only eventually consistent: an issue that
was just soft-deleted can still come back from a list read without its
tombstone label. The cache remembers ids deleted locally so every list read
can be masked immediately; the reconciler later compares the cache with
the labels the tracker actually reports and fixes drift in both
directions. Neither ever touches the work-item tree.
"""

import asyncio
import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Optional

from issuetree.github.protocols import IssueClient
from issuetree.models.records import IssueRecord

logger = logging.getLogger(__name__)


class TombstoneCache:
    """Per-repository sets of ids known locally to be deleted.

    Usage:
        cache = TombstoneCache(label="deleted")
        cache.mark("octo/widgets", ["12", "13"])
        live = cache.filter_records("octo/widgets", await client.list_issues(...))
    """

    def __init__(self, label: str = "deleted") -> None:
        """Initialize the cache.

        Args:
            label: Tombstone label used by the tracker
        """
        self._label = label
        self._ids: dict[str, set[str]] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    @property
    def label(self) -> str:
        """Get the tombstone label."""
        return self._label

    def lock(self, repository: str) -> asyncio.Lock:
        """Lock serializing reconciliation of one repository."""
        if repository not in self._locks:
            self._locks[repository] = asyncio.Lock()
        return self._locks[repository]

    def mark(self, repository: str, ids: Iterable[str]) -> None:
        """Add ids to the repository's tombstone set."""
        self._ids.setdefault(repository, set()).update(ids)

    def unmark(self, repository: str, ids: Iterable[str]) -> None:
        """Remove ids from the repository's tombstone set."""
        self._ids.get(repository, set()).difference_update(ids)

    def contains(self, repository: str, item_id: str) -> bool:
        """Check if an id is tombstoned."""
        return item_id in self._ids.get(repository, set())

    def ids(self, repository: str) -> frozenset[str]:
        """Get a copy of the repository's tombstone set."""
        return frozenset(self._ids.get(repository, set()))

    def size(self, repository: Optional[str] = None) -> int:
        """Count tombstones in one repository, or in all of them."""
        if repository is not None:
            return len(self._ids.get(repository, set()))
        return sum(len(ids) for ids in self._ids.values())

    def clear(self, repository: Optional[str] = None) -> None:
        """Forget tombstones of one repository, or of all of them."""
        if repository is None:
            self._ids.clear()
        else:
            self._ids.pop(repository, None)

    def is_tombstoned(self, repository: str, record: IssueRecord) -> bool:
        """Check a record against both the label and the local set."""
        return record.has_label(self._label) or self.contains(repository, record.id)

    def filter_records(self, repository: str, records: Iterable[IssueRecord]) -> list[IssueRecord]:
        """Drop records that are labelled as deleted or tombstoned locally."""
        return [record for record in records if not self.is_tombstoned(repository, record)]


@dataclass
class Inconsistency:
    """One disagreement between the cache and the tracker.

    Attributes:
        issue_id: Issue id
        in_cache: Whether the id is in the tombstone set
        has_label: Whether the tracker reports the tombstone label
        record: Tracker record, if the issue was listed
    """

    issue_id: str
    in_cache: bool
    has_label: bool
    record: Optional[IssueRecord] = None


@dataclass
class ConsistencyReport:
    """Outcome of comparing the cache with the tracker.

    Attributes:
        repository: Repository checked
        inconsistencies: Every disagreement found
        added: Ids added to the cache by a reconciliation pass
        removed: Ids removed from the cache by a reconciliation pass
    """

    repository: str
    inconsistencies: list[Inconsistency] = field(default_factory=list)
    added: list[str] = field(default_factory=list)
    removed: list[str] = field(default_factory=list)

    @property
    def consistent(self) -> bool:
        """Check if cache and tracker agreed."""
        return not self.inconsistencies


class TombstoneReconciler:
    """Reconciles a TombstoneCache with the tracker's tombstone labels."""

    def __init__(self, client: IssueClient, cache: TombstoneCache) -> None:
        """Initialize the reconciler.

        Args:
            client: Issue collaborator used for unfiltered list reads
            cache: Cache to reconcile
        """
        self._client = client
        self._cache = cache

    @property
    def cache(self) -> TombstoneCache:
        """Get the reconciled cache."""
        return self._cache

    async def list_active(self, repository: str) -> list[IssueRecord]:
        """List issues with every tombstoned record masked out."""
        records = await self._client.list_issues(repository)
        return self._cache.filter_records(repository, records)

    async def verify(self, repository: str) -> ConsistencyReport:
        """Compare the cache with the tracker without changing anything.

        A cached id is unconfirmed when the tracker lists it without the
        label, or does not list it at all. A labelled issue missing from the
        cache is also reported.
        """
        records = await self._client.list_issues(repository)
        return self._compare(repository, records)

    async def reconcile(self, repository: str, keep: Iterable[str] = ()) -> ConsistencyReport:
        """Fix drift in both directions.

        Unconfirmed markers are dropped and labelled issues are added. A
        second pass over unchanged tracker data finds nothing to do.

        Args:
            repository: Repository locator
            keep: Ids whose deletion the tracker already confirmed through
                another response; their markers survive a lagging listing
        """
        confirmed = set(keep)
        async with self._cache.lock(repository):
            records = await self._client.list_issues(repository)
            report = self._compare(repository, records)

            for inconsistency in report.inconsistencies:
                if inconsistency.issue_id in confirmed:
                    continue
                if inconsistency.in_cache and not inconsistency.has_label:
                    self._cache.unmark(repository, [inconsistency.issue_id])
                    report.removed.append(inconsistency.issue_id)
                elif inconsistency.has_label and not inconsistency.in_cache:
                    self._cache.mark(repository, [inconsistency.issue_id])
                    report.added.append(inconsistency.issue_id)

        if report.consistent:
            logger.debug(f"Tombstones of {repository} are consistent")
        else:
            logger.info(
                f"Reconciled tombstones of {repository}: "
                f"+{len(report.added)} -{len(report.removed)}"
            )
        return report

    def _compare(self, repository: str, records: list[IssueRecord]) -> ConsistencyReport:
        by_id = {record.id: record for record in records}
        label = self._cache.label
        report = ConsistencyReport(repository=repository)

        for cached_id in sorted(self._cache.ids(repository)):
            record = by_id.get(cached_id)
            if record is None or not record.has_label(label):
                report.inconsistencies.append(
                    Inconsistency(issue_id=cached_id, in_cache=True, has_label=False, record=record)
                )

        for record in records:
            if record.has_label(label) and not self._cache.contains(repository, record.id):
                report.inconsistencies.append(
                    Inconsistency(issue_id=record.id, in_cache=False, has_label=True, record=record)
                )

        return report
