"""Pure Kennel Club rules: fees, eligibility, catalogue order, contract stages."""

from .catalogue import CatalogueCandidate, as_utc, sequence, sort_key
from .contracts import (
    ALLOWED_TRANSITIONS,
    InvalidTransition,
    can_transition,
    ensure_transition,
    is_expired,
    mint_offer_token,
    offer_expiry,
)
from .eligibility import (
    ACHIEVEMENT_LADDER,
    AchievementRecord,
    EligibilityReport,
    TitleProgress,
    WinRecord,
    age_class_eligible,
    eligible_achievement_classes,
    evaluate,
)
from .fees import EntryPricing, FeeBasis, FeeSchedule, calculate_entry_fee, price_entry, sundry_total

__all__ = [
    "ACHIEVEMENT_LADDER",
    "ALLOWED_TRANSITIONS",
    "AchievementRecord",
    "CatalogueCandidate",
    "EligibilityReport",
    "EntryPricing",
    "FeeBasis",
    "FeeSchedule",
    "InvalidTransition",
    "TitleProgress",
    "WinRecord",
    "age_class_eligible",
    "as_utc",
    "calculate_entry_fee",
    "can_transition",
    "eligible_achievement_classes",
    "ensure_transition",
    "evaluate",
    "is_expired",
    "mint_offer_token",
    "offer_expiry",
    "price_entry",
    "sequence",
    "sort_key",
    "sundry_total",
]
