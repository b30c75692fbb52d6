"""Provider-family policy for reviewer/planner separation.

A cross-model review only means something when the reviewer and the
planner come from different vendors. Family detection is a plain keyword
table; callers may pass their own detector to ``ensure_cross_provider``.
"""

from __future__ import annotations

from typing import Callable

from crossreview.review.errors import SameProviderFamilyError

FamilyDetector = Callable[[str], str]

UNKNOWN_FAMILY = "unknown"

PROVIDER_FAMILIES: dict[str, tuple[str, ...]] = {
    "anthropic": ("claude", "anthropic", "sonnet", "haiku", "opus"),
    "openai": ("gpt", "openai", "codex", "o1", "o3", "davinci"),
    "google": ("gemini", "google", "bard", "palm"),
    "mistral": ("mistral", "mixtral"),
    "meta": ("llama", "meta"),
    "cohere": ("command", "cohere"),
}


def detect_provider_family(model_id: str) -> str:
    """Classify a model identifier into a provider family.

    The first family with a keyword contained in the lower-cased id wins.
    Unmatched ids fall back to their ``vendor/`` prefix, then to
    ``"unknown"``.

    Args:
        model_id: Model identifier such as ``openai/gpt-4o``.

    Returns:
        Provider family name.

    Example:
        >>> detect_provider_family("anthropic/claude-sonnet-4-6")
        'anthropic'
        >>> detect_provider_family("acme/foo-1")
        'acme'
    """
    lower = model_id.lower()
    for family, keywords in PROVIDER_FAMILIES.items():
        if any(keyword in lower for keyword in keywords):
            return family
    return lower.split("/")[0] or UNKNOWN_FAMILY


def ensure_cross_provider(
    reviewer_model: str,
    planner_model: str,
    detector: FamilyDetector = detect_provider_family,
) -> tuple[str, str]:
    """Check that reviewer and planner belong to different families.

    Args:
        reviewer_model: Reviewer model identifier.
        planner_model: Planner model identifier.
        detector: Family classification function.

    Returns:
        Tuple of (reviewer family, planner family).

    Raises:
        SameProviderFamilyError: If both resolve to the same known family.
    """
    reviewer_family = detector(reviewer_model)
    planner_family = detector(planner_model)
    if reviewer_family == planner_family and reviewer_family != UNKNOWN_FAMILY:
        raise SameProviderFamilyError(reviewer_family, reviewer_model, planner_model)
    return reviewer_family, planner_family
