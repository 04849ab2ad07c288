"""Rule-based portfolio recommendations.

A rule is any callable ``(portfolio, summaries) -> BuyerRecommendation | None``.
``generate_recommendations`` runs whichever rules it is given, so new advice
is added by passing another rule rather than editing the existing ones.
"""

import uuid
from collections.abc import Callable, Sequence

from echo_sprout.modules.buyer_impact.aggregator import UNKNOWN_TYPE
from echo_sprout.modules.buyer_impact.schemas import (
    BuyerPortfolio,
    BuyerRecommendation,
    ProjectImpactSummary,
    RecommendationImpact,
    RecommendationStep,
)

Rule = Callable[[BuyerPortfolio, Sequence[ProjectImpactSummary]], BuyerRecommendation | None]

_PRIORITY_ORDER = {"high": 0, "medium": 1, "low": 2}
_NAMESPACE = uuid.UUID("6b1f0c9e-3d5a-4a8e-9f2b-7c4d1e0a5b36")

MIN_PROJECT_TYPES = 3


def recommendation_id(rule_type: str, portfolio: BuyerPortfolio) -> uuid.UUID:
    """Stable id: the same rule over the same type mix always yields the same id."""
    types = ",".join(sorted(b.type for b in portfolio.project_types))
    return uuid.uuid5(_NAMESPACE, f"{rule_type}:{types}")


def diversification_rule(
    portfolio: BuyerPortfolio,
    summaries: Sequence[ProjectImpactSummary],
) -> BuyerRecommendation | None:
    held_types = {b.type for b in portfolio.project_types if b.type != UNKNOWN_TYPE}
    if len(held_types) >= MIN_PROJECT_TYPES:
        return None

    return BuyerRecommendation(
        id=recommendation_id("diversification", portfolio),
        type="diversification",
        priority="high",
        title="Increase Portfolio Diversification",
        description=(
            f"Your portfolio spans {len(held_types)} project type(s). "
            "Adding different project types reduces concentration risk."
        ),
        rationale="Diversified portfolios are less exposed to the failure of any single project category",
        expected_benefit="Lower portfolio risk and broader co-benefits",
        implementation=[
            RecommendationStep(
                step=1,
                action="Research new project types",
                description="Explore project types you do not yet hold",
                timeframe="2 weeks",
                resources=["Project catalog", "Impact analysis tools"],
            ),
            RecommendationStep(
                step=2,
                action="Allocate budget",
                description="Set aside part of the next purchase cycle for new types",
                timeframe="1 month",
                resources=["Portfolio dashboard"],
            ),
            RecommendationStep(
                step=3,
                action="Review allocation",
                description="Check the diversification score after the next purchases",
                timeframe="3 months",
                resources=["Buyer impact report"],
            ),
        ],
        impact=RecommendationImpact(risk_reduction=25, impact_increase=15, cost_implication=0),
    )


DEFAULT_RULES: tuple[Rule, ...] = (diversification_rule,)


def generate_recommendations(
    portfolio: BuyerPortfolio,
    summaries: Sequence[ProjectImpactSummary],
    rules: Sequence[Rule] = DEFAULT_RULES,
) -> list[BuyerRecommendation]:
    """Run each rule and return its advice ordered high → low priority."""
    found = [rec for rule in rules if (rec := rule(portfolio, summaries)) is not None]
    return sorted(found, key=lambda r: _PRIORITY_ORDER[r.priority])
