"""
Duplicate Subscription Detection

Scores pairs of subscription records and clusters likely duplicates.

SCORING (unweighted sum, not clamped, so it can exceed 1.0):
- Similar names (normalized edit distance > 0.8)  +0.4
- Same amount (within 0.01)                       +0.3
- Same category                                   +0.2
- Same billing frequency                          +0.1
- Same website domain (both present)              +0.3

A pair scoring above 0.7 is treated as a likely duplicate.

CLUSTERING:
The default is a greedy anchor scan. Each unconsumed record collects every
later unconsumed record similar to IT, and those records are consumed.
A record similar only to a consumed member is never pulled into that group,
so results depend on record order. `transitive=True` switches to union-find
over the full "> 0.7" graph for callers that want connected components.

The displayed group similarity is a fixed 0.8 placeholder, and the group's
reason string describes only its first two members.
"""

from decimal import Decimal
from typing import Any, Iterable, NamedTuple, Optional, Sequence
from urllib.parse import urlsplit

from subtracker.analysis.billing import amount_as_decimal
from subtracker.models.subscription import DuplicateGroup, SubscriptionRecord


NAME_SIMILARITY_THRESHOLD = 0.8
DUPLICATE_THRESHOLD = 0.7
AMOUNT_TOLERANCE = Decimal("0.01")
GROUP_DISPLAY_SIMILARITY = 0.8

NAME_WEIGHT = Decimal("0.4")
AMOUNT_WEIGHT = Decimal("0.3")
CATEGORY_WEIGHT = Decimal("0.2")
FREQUENCY_WEIGHT = Decimal("0.1")
WEBSITE_WEIGHT = Decimal("0.3")


class SimilarityResult(NamedTuple):
    """Pairwise score and the reasons that contributed to it."""
    score: float
    reasons: list[str]


def levenshtein_distance(first: str, second: str) -> int:
    """Classic dynamic-programming edit distance (insert, delete, substitute)."""
    if first == second:
        return 0
    if not first:
        return len(second)
    if not second:
        return len(first)

    previous = list(range(len(second) + 1))
    for i, char_a in enumerate(first, start=1):
        current = [i]
        for j, char_b in enumerate(second, start=1):
            cost = 0 if char_a == char_b else 1
            current.append(min(
                current[j - 1] + 1,
                previous[j] + 1,
                previous[j - 1] + cost,
            ))
        previous = current
    return previous[-1]


def name_similarity(first: Optional[str], second: Optional[str]) -> float:
    """
    Case-insensitive `1 - distance / max(len)`.

    Two empty names count as a perfect match.
    """
    a = (first or "").lower()
    b = (second or "").lower()
    longest = max(len(a), len(b))
    if longest == 0:
        return 1.0
    return 1 - levenshtein_distance(a, b) / longest


def extract_domain(url: Any) -> str:
    """
    Hostname of `url` without a leading "www.".

    Bare strings without a scheme are read as https URLs. When no hostname
    can be extracted the lower-cased raw string is returned instead.
    """
    raw = url if isinstance(url, str) else str(url)
    candidate = raw.strip()
    if not candidate.lower().startswith("http"):
        candidate = f"https://{candidate}"

    try:
        hostname = urlsplit(candidate).hostname
    except ValueError:
        hostname = None

    if not hostname or any(ch.isspace() for ch in hostname):
        return raw.lower()

    if hostname.startswith("www."):
        hostname = hostname[len("www."):]
    return hostname


def compute_similarity(first: Any, second: Any) -> SimilarityResult:
    """Score how likely two records describe the same subscription."""
    score = Decimal("0")
    reasons = []

    if name_similarity(getattr(first, "name", None), getattr(second, "name", None)) > NAME_SIMILARITY_THRESHOLD:
        score += NAME_WEIGHT
        reasons.append("Similar names")

    amount_diff = abs(
        amount_as_decimal(getattr(first, "amount", None))
        - amount_as_decimal(getattr(second, "amount", None))
    )
    if amount_diff < AMOUNT_TOLERANCE:
        score += AMOUNT_WEIGHT
        reasons.append("Same amount")

    if getattr(first, "category", None) == getattr(second, "category", None):
        score += CATEGORY_WEIGHT
        reasons.append("Same category")

    if getattr(first, "billing_frequency", None) == getattr(second, "billing_frequency", None):
        score += FREQUENCY_WEIGHT
        reasons.append("Same billing frequency")

    website_a = getattr(first, "website", None)
    website_b = getattr(second, "website", None)
    if website_a and website_b:
        if extract_domain(website_a) == extract_domain(website_b):
            score += WEBSITE_WEIGHT
            reasons.append("Same website")

    return SimilarityResult(score=float(score), reasons=reasons)


def is_likely_duplicate(first: Any, second: Any) -> bool:
    return compute_similarity(first, second).score > DUPLICATE_THRESHOLD


def group_key(members: Iterable[Any]) -> str:
    """Deterministic key: sorted member ids joined with '-'."""
    return "-".join(sorted(str(member.id) for member in members))


def _build_group(members: list[SubscriptionRecord]) -> DuplicateGroup:
    reasons = compute_similarity(members[0], members[1]).reasons
    return DuplicateGroup(
        key=group_key(members),
        subscriptions=members,
        similarity=GROUP_DISPLAY_SIMILARITY,
        reason=", ".join(reasons),
    )


def _greedy_clusters(records: Sequence[SubscriptionRecord]) -> list[list[SubscriptionRecord]]:
    clusters = []
    consumed = set()

    for i, anchor in enumerate(records):
        if anchor.id in consumed:
            continue

        members = [anchor]
        for other in records[i + 1:]:
            if other.id in consumed:
                continue
            if is_likely_duplicate(anchor, other):
                members.append(other)
                consumed.add(other.id)

        if len(members) > 1:
            clusters.append(members)
        consumed.add(anchor.id)

    return clusters


def _transitive_clusters(records: Sequence[SubscriptionRecord]) -> list[list[SubscriptionRecord]]:
    parent = list(range(len(records)))

    def find(index: int) -> int:
        while parent[index] != index:
            parent[index] = parent[parent[index]]
            index = parent[index]
        return index

    for i in range(len(records)):
        for j in range(i + 1, len(records)):
            if is_likely_duplicate(records[i], records[j]):
                root_i, root_j = find(i), find(j)
                if root_i != root_j:
                    # Lower index stays the root so groups keep scan order
                    parent[max(root_i, root_j)] = min(root_i, root_j)

    components: dict[int, list[SubscriptionRecord]] = {}
    for index, record in enumerate(records):
        components.setdefault(find(index), []).append(record)

    return [members for members in components.values() if len(members) > 1]


def detect_duplicates(
    records: Iterable[SubscriptionRecord],
    dismissed_keys: Optional[Iterable[str]] = None,
    transitive: bool = False,
) -> list[DuplicateGroup]:
    """
    Partition a snapshot into likely-duplicate groups.

    Args:
        records: The snapshot, in the order it should be scanned
        dismissed_keys: Group keys the user marked as "not duplicates"
        transitive: Use connected components instead of the anchor scan

    Returns:
        Groups in scan order, excluding dismissed keys
    """
    snapshot = list(records)
    dismissed = set(dismissed_keys or ())

    clusters = _transitive_clusters(snapshot) if transitive else _greedy_clusters(snapshot)

    groups = []
    for members in clusters:
        group = _build_group(members)
        if group.key not in dismissed:
            groups.append(group)
    return groups
