"""
Hierarchy Builder.

Turns flat tracker issues into the work-item forest. Parent/child links
come from the tracker's sub-issue endpoint, queried once per issue and
only ever resolved against the already-filtered issue set, so a
tombstoned issue can never reappear as somebody's child.
"""

import logging

from issuetree.config.models import LabelConfig
from issuetree.errors import IssueTreeError
from issuetree.github.protocols import IssueClient
from issuetree.models.base import WorkItemState
from issuetree.models.records import IssueRecord
from issuetree.models.work_item import WorkItem
from issuetree.tree.operations import Forest
from issuetree.tree.state import recompute_states

logger = logging.getLogger(__name__)


def work_item_from_record(
    record: IssueRecord,
    repository: str,
    labels: LabelConfig | None = None,
) -> WorkItem:
    """Convert a tracker issue into a leaf work item.

    Closed issues are done; open issues carrying the in-progress label are
    in progress; everything else is to-do.
    """
    labels = labels or LabelConfig()

    if not record.is_open:
        state = WorkItemState.DONE
    elif record.has_label(labels.in_progress):
        state = WorkItemState.IN_PROGRESS
    else:
        state = WorkItemState.TODO

    category = next(
        (label for label in record.labels if label in labels.categories),
        labels.default_category,
    )

    return WorkItem(
        id=record.id,
        title=record.title,
        description=record.body,
        state=state,
        category=category,
        repository=repository,
    )


def issue_labels(item: WorkItem, labels: LabelConfig | None = None) -> list[str]:
    """Labels an issue must carry to reflect ``item``'s category and state."""
    labels = labels or LabelConfig()
    result = [item.category]
    if item.state == WorkItemState.IN_PROGRESS:
        result.append(labels.in_progress)
    return result


async def build_hierarchy(
    client: IssueClient,
    repository: str,
    records: list[IssueRecord],
    labels: LabelConfig | None = None,
) -> Forest:
    """Build the forest for ``records``.

    Args:
        client: Issue collaborator, used for sub-issue lookups
        repository: Repository locator
        records: Issues already filtered of tombstones
        labels: Label settings

    Returns:
        Root items with derived states
    """
    by_id = {record.id: record for record in records}
    children_of: dict[str, list[str]] = {}
    child_ids: set[str] = set()

    for record in records:
        try:
            sub_ids = await client.list_sub_issues(repository, record.id)
        except IssueTreeError as e:
            logger.warning(f"Could not fetch sub-issues for #{record.id}: {e}")
            continue
        # A child claimed by two parents stays under the first one
        valid = [
            sub_id
            for sub_id in sub_ids
            if sub_id in by_id and sub_id != record.id and sub_id not in child_ids
        ]
        children_of[record.id] = valid
        child_ids.update(valid)

    def build(issue_id: str, depth: int, parent_id: str | None, path: frozenset[str]) -> WorkItem:
        item = work_item_from_record(by_id[issue_id], repository, labels)
        path = path | {issue_id}
        children = tuple(
            build(child_id, depth + 1, issue_id, path)
            for child_id in children_of.get(issue_id, [])
            if child_id not in path
        )
        return item.model_copy(
            update={"depth": depth, "parent_id": parent_id, "children": children}
        )

    roots = tuple(
        build(record.id, 0, None, frozenset())
        for record in records
        if record.id not in child_ids
    )
    logger.debug(f"Built hierarchy for {repository}: {len(roots)} root item(s)")
    return recompute_states(roots)
