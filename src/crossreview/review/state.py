"""In-memory workspace state: metadata plus the issue ledger it owns."""

from __future__ import annotations

from dataclasses import dataclass, field

from crossreview.review.ledger import IssueLedger
from crossreview.review.models import WorkspaceMeta


@dataclass
class WorkspaceState:
    """Mutable state of one review run.

    The workspace exclusively owns its ledger. Blockers and counts are
    always read from ``ledger``, never stored here.
    """

    meta: WorkspaceMeta
    ledger: IssueLedger = field(default_factory=IssueLedger)

    @property
    def frozen(self) -> bool:
        """True once the workspace has been finalized."""
        return self.meta.completed_at is not None
