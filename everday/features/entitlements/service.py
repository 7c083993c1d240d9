"""
everday/features/entitlements/service.py

Plan gate: item ceilings and premium capabilities per plan tier.

Handles:
- Static free-tier ceilings per (domain, bucket)
- Create and move checks against the count at the moment of the mutation
- Premium-only capability checks
- Denials are returned as decisions for the caller to show an upgrade
  prompt; they are never raised and never logged as errors
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, FrozenSet, Optional, Tuple, Union
import logging

from everday.core.errors import ValidationError
from everday.features.ledger.domains import (
    ALL_BUCKET,
    HABITS,
    JOURNAL_ENTRIES,
    HABIT_LOGS,
    MOVIE_ITEMS,
    NOTES,
    READING_LIST,
    SOURCE_DUMPS,
    TODOS,
    get_domain,
)
from everday.models.plan import PlanTier


logger = logging.getLogger(__name__)

TierLike = Union[PlanTier, int]


class Capability(str, Enum):
    CARD_COLOR = "card_color"
    STREAK_DISPLAY = "streak_display"
    USAGE_REPORTS = "usage_reports"
    AI_DASHBOARD = "ai_dashboard"
    AI_CHAT = "ai_chat"
    SCREENSHOT_ATTACHMENTS = "screenshot_attachments"


PREMIUM_CAPABILITIES: FrozenSet[Capability] = frozenset(Capability)

# Free-tier ceilings. Every bucket a domain can hold must be listed here,
# except for domains that have no ceiling at all.
FREE_CEILINGS: Dict[Tuple[str, str], int] = {
    (HABITS, ALL_BUCKET): 7,
    (NOTES, ALL_BUCKET): 15,
    (TODOS, "task"): 10,
    (TODOS, "yearly"): 5,
    (TODOS, "monthly"): 5,
    (READING_LIST, "want_to_read"): 7,
    (READING_LIST, "reading"): 7,
    (READING_LIST, "finished"): 7,
    (MOVIE_ITEMS, "to_watch"): 7,
    (MOVIE_ITEMS, "watching"): 7,
    (MOVIE_ITEMS, "watched"): 7,
    (SOURCE_DUMPS, ALL_BUCKET): 7,
}

UNLIMITED_DOMAINS: FrozenSet[str] = frozenset({HABIT_LOGS, JOURNAL_ENTRIES})

_ITEM_LABELS = {
    HABITS: "habit",
    NOTES: "note",
    TODOS: "item",
    READING_LIST: "book",
    MOVIE_ITEMS: "title",
    SOURCE_DUMPS: "source",
}


@dataclass(frozen=True)
class GateDecision:
    allowed: bool
    domain: str
    bucket: str
    plan_tier: PlanTier
    current_count: Optional[int]
    ceiling: Optional[int]
    message: Optional[str] = None


def _tier(plan_tier: TierLike) -> PlanTier:
    return PlanTier(int(plan_tier))


def is_premium(plan_tier: TierLike) -> bool:
    return _tier(plan_tier) > PlanTier.FREE


def resolve_plan_tier(plan: Optional[str], is_premium_flag: bool = False) -> PlanTier:
    """
    Tier for a profile row. A premium flag without a paid plan name still
    counts as plus.
    """
    tier = PlanTier.from_name(plan)
    if is_premium_flag and tier == PlanTier.FREE:
        return PlanTier.PLUS
    return tier


def ceiling_for(domain: str, bucket: str = ALL_BUCKET) -> Optional[int]:
    """Free-tier ceiling for a bucket; None for domains without one."""
    get_domain(domain)
    if domain in UNLIMITED_DOMAINS:
        return None
    try:
        return FREE_CEILINGS[(domain, bucket)]
    except KeyError:
        raise ValidationError(f"Unknown bucket {bucket!r} for {domain}") from None


def can_create(domain: str, bucket: str, current_count: int, plan_tier: TierLike) -> bool:
    ceiling = ceiling_for(domain, bucket)
    if is_premium(plan_tier) or ceiling is None:
        return True
    return current_count < ceiling


def can_move(
    domain: str,
    source_bucket: str,
    destination_bucket: str,
    destination_count: int,
    plan_tier: TierLike,
) -> bool:
    """Moves are checked against the destination; staying put is always allowed."""
    if source_bucket == destination_bucket:
        ceiling_for(domain, destination_bucket)
        return True
    return can_create(domain, destination_bucket, destination_count, plan_tier)


def can_use_capability(capability: Union[Capability, str], plan_tier: TierLike) -> bool:
    try:
        cap = Capability(capability)
    except ValueError:
        return True
    if cap in PREMIUM_CAPABILITIES:
        return is_premium(plan_tier)
    return True


def limit_message(domain: str, bucket: str, ceiling: int) -> str:
    label = _ITEM_LABELS.get(domain, "item")
    where = "" if bucket == ALL_BUCKET else f" in {bucket.replace('_', ' ')}"
    return (
        f"You've hit the {ceiling}-{label} limit{where} on the free plan. "
        "Upgrade for unlimited."
    )


def check_create(domain: str, bucket: str, current_count: int, plan_tier: TierLike) -> GateDecision:
    tier = _tier(plan_tier)
    ceiling = ceiling_for(domain, bucket)
    allowed = can_create(domain, bucket, current_count, tier)
    if not allowed:
        logger.info(
            "[plan_gate] BLOCK",
            extra={"domain": domain, "bucket": bucket, "current_count": current_count, "ceiling": ceiling},
        )
    return GateDecision(
        allowed=allowed,
        domain=domain,
        bucket=bucket,
        plan_tier=tier,
        current_count=current_count,
        ceiling=ceiling,
        message=None if allowed else limit_message(domain, bucket, ceiling),
    )


def check_move(
    domain: str,
    source_bucket: str,
    destination_bucket: str,
    destination_count: int,
    plan_tier: TierLike,
) -> GateDecision:
    if source_bucket == destination_bucket:
        return GateDecision(
            allowed=True,
            domain=domain,
            bucket=destination_bucket,
            plan_tier=_tier(plan_tier),
            current_count=destination_count,
            ceiling=ceiling_for(domain, destination_bucket),
        )
    return check_create(domain, destination_bucket, destination_count, plan_tier)


@dataclass(frozen=True)
class CapabilityDecision:
    allowed: bool
    capability: str
    plan_tier: PlanTier
    message: Optional[str] = None


def check_capability(capability: Union[Capability, str], plan_tier: TierLike) -> CapabilityDecision:
    tier = _tier(plan_tier)
    name = getattr(capability, "value", capability)
    allowed = can_use_capability(capability, tier)
    if not allowed:
        logger.info("[plan_gate] BLOCK", extra={"capability": name})
    return CapabilityDecision(
        allowed=allowed,
        capability=name,
        plan_tier=tier,
        message=None if allowed else f"{name.replace('_', ' ').capitalize()} is a premium feature. Upgrade to unlock it.",
    )
