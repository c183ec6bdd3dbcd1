"""Account authentication and referral bonuses."""

from gigvault.modules.referral.service import AccountSummary, ReferralService

__all__ = ["AccountSummary", "ReferralService"]
