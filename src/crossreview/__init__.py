"""crossreview - Cross-model adversarial plan review.

This package provides the review-workflow state engine used to run a
multi-round review of a plan between a planner model and a reviewer model
from a different provider family: issue tracking across rounds, advisory
duplicate detection, approval gating and audited force-approval.
"""

__version__ = "0.1.0"
