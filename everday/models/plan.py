"""
everday/models/plan.py

Plan tiers and the profile row that carries a user's tier.
"""

from datetime import datetime
from enum import IntEnum
from typing import Optional

from pydantic import BaseModel, ConfigDict


class PlanTier(IntEnum):
    """
    Rank-ordered subscription tiers.

    pro is still honoured when a profile carries it, although only free and
    plus are sold.
    """
    FREE = 0
    PLUS = 1
    PRO = 2

    @classmethod
    def from_name(cls, name: Optional[str]) -> "PlanTier":
        """Parse a stored plan name; anything unknown is treated as free."""
        try:
            return cls[(name or "").strip().upper()]
        except KeyError:
            return cls.FREE


class Profile(BaseModel):
    """Account profile row. Created lazily with the free plan."""
    model_config = ConfigDict(frozen=True)

    id: str
    email: Optional[str] = None
    username: Optional[str] = None
    full_name: Optional[str] = None
    plan: str = "free"
    is_premium: bool = False
    plan_expires_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
