"""
Plan Catalogue

Plans form a closed set. Each one maps to exactly one Limits value; the
mapping is the only source of limit values, accounts never carry limits
that were edited independently of a plan change.
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict

from qrlinks.core.exceptions import InvalidInputError

UNLIMITED = -1


class Plan(str, Enum):
    FREE = "free"
    PRO = "pro"
    ENTERPRISE = "enterprise"

    @classmethod
    def parse(cls, value) -> "Plan":
        """
        Parse a plan name, accepting "business" as an alias of enterprise.

        Raises:
            InvalidInputError: For unknown plan names
        """
        if isinstance(value, Plan):
            return value
        name = str(value or "").strip().lower()
        if name == "business":
            return cls.ENTERPRISE
        try:
            return cls(name)
        except ValueError:
            raise InvalidInputError("plan", f"unknown plan '{value}'")


class Limits(BaseModel):
    """Quota and feature entitlements granted by a plan."""
    model_config = ConfigDict(frozen=True)

    max_links: int
    max_scans_per_month: int
    can_customize: bool
    can_track_analytics: bool
    can_export_data: bool

    def allows_links(self, current_count: int) -> bool:
        return self.max_links == UNLIMITED or current_count < self.max_links


_PLAN_LIMITS = {
    Plan.FREE: Limits(
        max_links=5,
        max_scans_per_month=100,
        can_customize=False,
        can_track_analytics=False,
        can_export_data=False,
    ),
    Plan.PRO: Limits(
        max_links=100,
        max_scans_per_month=10000,
        can_customize=True,
        can_track_analytics=True,
        can_export_data=True,
    ),
    Plan.ENTERPRISE: Limits(
        max_links=UNLIMITED,
        max_scans_per_month=UNLIMITED,
        can_customize=True,
        can_track_analytics=True,
        can_export_data=True,
    ),
}


def limits_for_plan(plan) -> Limits:
    """Return the limits granted by a plan (name or Plan member)."""
    return _PLAN_LIMITS[Plan.parse(plan)]


class OwnerContext(BaseModel):
    """Authenticated requester as seen by the services. Absent means anonymous."""
    model_config = ConfigDict(frozen=True)

    owner_id: int
    plan: Plan
    limits: Limits

    @classmethod
    def from_account(cls, account) -> "OwnerContext":
        return cls(owner_id=account.id, plan=account.plan_tier, limits=account.limits)
