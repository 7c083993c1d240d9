"""
everday/features/plans/service.py

Profile rows and plan-tier resolution.

Handles:
- Lazily creating a free profile the first time an account is seen
- Resolving the effective tier (plan name, premium flag, expiry)
- Profile updates with username uniqueness
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from everday.core.errors import ConflictError, NotFoundError
from everday.features.entitlements.service import resolve_plan_tier
from everday.features.store.base import RecordStore
from everday.models.base import utc_now
from everday.models.plan import PlanTier, Profile


PROFILES_TABLE = "profiles"
EDITABLE_PROFILE_FIELDS = ("full_name", "username")


def get_profile(store: RecordStore, user_id: str) -> Optional[Profile]:
    rows = store.select(PROFILES_TABLE, {"id": user_id})
    return Profile.model_validate(rows[0]) if rows else None


def get_or_create_profile(
    store: RecordStore,
    user_id: str,
    email: Optional[str] = None,
    username: Optional[str] = None,
) -> Profile:
    """Return the profile row, inserting a free-plan row when none exists."""
    existing = get_profile(store, user_id)
    if existing is not None:
        return existing
    profile = Profile(id=user_id, email=email, username=username, plan="free", created_at=utc_now())
    try:
        store.insert(PROFILES_TABLE, profile.model_dump(mode="json"))
    except ConflictError:
        # Created concurrently by another request
        return get_profile(store, user_id) or profile
    return profile


def is_plan_active(profile: Profile, now: Optional[datetime] = None) -> bool:
    if profile.plan_expires_at is None:
        return True
    expires = profile.plan_expires_at
    if expires.tzinfo is None:
        expires = expires.replace(tzinfo=timezone.utc)
    return expires > (now or datetime.now(timezone.utc))


def effective_plan_tier(profile: Optional[Profile], now: Optional[datetime] = None) -> PlanTier:
    """Tier used by the plan gate. Missing or expired paid plans fall back to free."""
    if profile is None:
        return PlanTier.FREE
    tier = resolve_plan_tier(profile.plan, profile.is_premium)
    if tier > PlanTier.FREE and not is_plan_active(profile, now):
        return PlanTier.FREE
    return tier


def get_user_plan_tier(store: RecordStore, user_id: str, now: Optional[datetime] = None) -> PlanTier:
    return effective_plan_tier(get_profile(store, user_id), now)


def get_plan_status(store: RecordStore, user_id: str) -> Dict[str, Any]:
    profile = get_profile(store, user_id)
    if profile is None:
        raise NotFoundError(f"Profile {user_id} not found")
    tier = effective_plan_tier(profile)
    return {
        "plan": profile.plan,
        "plan_expires_at": profile.plan_expires_at,
        "plan_tier": tier.name.lower(),
        "plan_rank": int(tier),
        "is_premium": tier > PlanTier.FREE,
    }


def update_profile(store: RecordStore, user_id: str, changes: Dict[str, Any]) -> Profile:
    values = {k: v for k, v in changes.items() if k in EDITABLE_PROFILE_FIELDS}
    username = values.get("username")
    if username:
        taken = [r for r in store.select(PROFILES_TABLE, {"username": username}) if r.get("id") != user_id]
        if taken:
            raise ConflictError("Username already taken")
    if values and not store.update(PROFILES_TABLE, {"id": user_id}, values):
        raise NotFoundError(f"Profile {user_id} not found")
    profile = get_profile(store, user_id)
    if profile is None:
        raise NotFoundError(f"Profile {user_id} not found")
    return profile
