"""Attachment reconciliation for post updates.

Local attachments and remote documents are matched by filename only; no
content identifier is exchanged with BibSonomy. Three cases follow from that:

- MATCHED: both sides hold exactly the same filenames. Only the changed
  attachments are replaced (delete the remote document, upload the file).
- DISJOINT: no filename in common. Remote documents missing locally are
  deleted, local files missing remotely are uploaded.
- REPLACE_ALL: anything else (partial overlap, duplicate names). Every remote
  document is deleted and every eligible local attachment uploaded.
"""

import logging
from collections import Counter
from typing import Dict, List

from bibsync.bibsonomy_client.models import RemoteDocument
from bibsync.library.models import AttachmentRecord
from bibsync.sync.models import AttachmentCase, AttachmentPlan

logger = logging.getLogger(__name__)


def _is_unique(names: List[str]) -> bool:
    return all(count == 1 for count in Counter(names).values())


def plan_attachment_sync(
    remote_documents: List[RemoteDocument],
    local_attachments: List[AttachmentRecord],
    changed: List[AttachmentRecord],
) -> AttachmentPlan:
    """Decide which remote documents to delete and which files to upload.

    Args:
        remote_documents: Documents currently attached to the post
        local_attachments: All eligible local attachments
        changed: Eligible attachments modified since the last attachment sync

    Returns:
        AttachmentPlan; deletions must run before uploads

    Example:
        >>> plan = plan_attachment_sync(post.documents, eligible, changed)
        >>> plan.case
        <AttachmentCase.MATCHED: 'matched'>
    """
    remote_names = [d.filename for d in remote_documents]
    local_names = [a.filename for a in local_attachments]
    remote_set, local_set = set(remote_names), set(local_names)

    if remote_set == local_set and _is_unique(remote_names) and _is_unique(local_names):
        by_name: Dict[str, RemoteDocument] = {d.filename: d for d in remote_documents}
        plan = AttachmentPlan(case=AttachmentCase.MATCHED)
        seen = set()
        for attachment in changed:
            if attachment.filename not in by_name or attachment.filename in seen:
                continue
            seen.add(attachment.filename)
            plan.deletions.append(by_name[attachment.filename].href)
            plan.uploads.append(attachment)
    elif not (remote_set & local_set):
        plan = AttachmentPlan(
            case=AttachmentCase.DISJOINT,
            deletions=[d.href for d in remote_documents if d.filename not in local_set],
            uploads=[a for a in local_attachments if a.filename not in remote_set],
        )
    else:
        plan = AttachmentPlan(
            case=AttachmentCase.REPLACE_ALL,
            deletions=[d.href for d in remote_documents],
            uploads=list(local_attachments),
        )

    logger.debug(
        f"Attachment plan {plan.case.value}: "
        f"{len(plan.deletions)} deletions, {len(plan.uploads)} uploads"
    )
    return plan
