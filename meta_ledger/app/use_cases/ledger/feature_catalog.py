"""Feature Catalog

Pricing and free-use limits for every gated feature. Handlers never carry
their own limits; they pass a feature_key to AuthorizeFeature.
"""

import logging
from typing import Any, Dict, Optional
from meta_ledger.domain.feature_policy import FeaturePolicy, GateKind

logger = logging.getLogger(__name__)


# Credit-gated features priced in Meta
FEATURE_META_COST: dict[str, int] = {
    "es_correction": 1,
    "es_draft": 1,
    "fermi": 1,
    "case_interview": 1,
    "ai_training": 1,
    "interview_10": 2,
    "industry_insight": 2,
    "enterprise_qgen": 2,
    "career_gap_deep": 3,
}

# Counter-gated features: free uses per calendar month by plan,
# plus the Meta price once the allowance is used up (None = hard stop)
FEATURE_MONTHLY_LIMITS: dict[str, tuple[dict[str, int], Optional[int]]] = {
    "case_generate": ({"free": 3, "metered": 5}, 1),
    "fermi_generate": ({"free": 5, "metered": 5}, 1),
    "general_interview": ({"free": 1, "metered": 3}, None),
}


def default_feature_catalog() -> Dict[str, FeaturePolicy]:
    catalog: Dict[str, FeaturePolicy] = {}
    for feature_key, cost in FEATURE_META_COST.items():
        catalog[feature_key] = FeaturePolicy(
            feature_key=feature_key, gate=GateKind.CREDIT, cost=cost
        )
    for feature_key, (limits, overflow_cost) in FEATURE_MONTHLY_LIMITS.items():
        catalog[feature_key] = FeaturePolicy(
            feature_key=feature_key,
            gate=GateKind.COUNTER,
            monthly_limits=dict(limits),
            overflow_cost=overflow_cost,
        )
    return catalog


def load_feature_catalog(overrides: Optional[Dict[str, Dict[str, Any]]] = None) -> Dict[str, FeaturePolicy]:
    """
    Build the catalog, applying per-feature overrides from configuration

    Args:
        overrides: Mapping of feature_key -> FeaturePolicy fields
            (e.g. {"fermi": {"gate": "credit", "cost": 2}}). A key not in the
            defaults adds a new feature.

    Returns:
        Mapping of feature_key -> FeaturePolicy

    Raises:
        pydantic.ValidationError: If an override is not a valid policy
    """
    catalog = default_feature_catalog()
    for feature_key, fields in (overrides or {}).items():
        catalog[feature_key] = FeaturePolicy(feature_key=feature_key, **fields)
        logger.info(f"Feature policy overridden from config: {catalog[feature_key]}")
    return catalog
