"""Total impact and sustainability metrics across a buyer's projects.

Conversion factors and the SDG table come from ``ImpactConstants``; see
``constants.py`` for their provenance.
"""

import math
from collections import defaultdict
from collections.abc import Sequence
from datetime import timedelta

from echo_sprout.modules.buyer_impact.constants import (
    DEFAULT_CONSTANTS,
    NATURE_BASED_TYPES,
    ImpactConstants,
)
from echo_sprout.modules.buyer_impact.schemas import (
    BuyerPortfolio,
    CumulativeImpact,
    EconomicImpact,
    EnvironmentalBenefit,
    EquivalentMetrics,
    ProjectImpactSummary,
    ReportingFrameworks,
    SDGContribution,
    SocialImpact,
    SustainabilityAlignment,
    SustainabilityMetrics,
    TotalImpactSummary,
    TransparencyScore,
)
from echo_sprout.modules.buyer_impact.summarizer import (
    BENEFIT_ENERGY,
    BENEFIT_TREES,
    BENEFIT_WASTE,
)

_BENEFIT_UNITS = {
    BENEFIT_TREES: "trees",
    BENEFIT_ENERGY: "kWh",
    BENEFIT_WASTE: "tons",
}


def equivalent_metrics(offset: float, constants: ImpactConstants = DEFAULT_CONSTANTS) -> EquivalentMetrics:
    f = constants.equivalence
    return EquivalentMetrics(
        trees_planted=math.floor(offset * f.trees_per_ton),
        cars_off_road=math.floor(offset / f.car_tons_per_year),
        homes_powered=math.floor(offset / f.home_tons_per_year),
        fuel_saved_gallons=math.floor(offset * f.fuel_gallons_per_ton),
    )


def sdg_contributions(
    summaries: Sequence[ProjectImpactSummary],
    constants: ImpactConstants = DEFAULT_CONSTANTS,
) -> list[SDGContribution]:
    offsets: dict[int, float] = defaultdict(float)
    counts: dict[int, int] = defaultdict(int)
    for s in summaries:
        for goal in constants.sdg_mapping.get(s.project_type, ()):
            offsets[goal] += s.impact_metrics.carbon_impact_to_date
            counts[goal] += 1

    return [
        SDGContribution(
            goal=goal,
            title=constants.sdg_titles.get(goal, f"SDG {goal}"),
            contribution=f"{offsets[goal]:.1f} tons CO2 offset across {counts[goal]} project(s)",
            carbon_offset=offsets[goal],
            project_count=counts[goal],
        )
        for goal in sorted(offsets)
    ]


def environmental_benefits(
    summaries: Sequence[ProjectImpactSummary],
    total_offset: float,
    constants: ImpactConstants = DEFAULT_CONSTANTS,
) -> list[EnvironmentalBenefit]:
    benefits = [
        EnvironmentalBenefit(
            category="Carbon Sequestration",
            description="Total carbon dioxide removed from the atmosphere",
            quantification=total_offset,
            unit="tons CO2",
            verification="Third-party verified",
        )
    ]

    habitat_projects = sum(1 for s in summaries if s.project_type in NATURE_BASED_TYPES)
    if habitat_projects:
        benefits.append(
            EnvironmentalBenefit(
                category="Biodiversity Conservation",
                description="Habitat restored through reforestation and mangrove projects",
                quantification=habitat_projects * constants.biodiversity_hectares_per_project,
                unit="hectares",
                verification="Satellite monitoring",
            )
        )

    measured: dict[str, float] = defaultdict(float)
    for s in summaries:
        for label, amount in s.impact_metrics.additional_benefits.items():
            measured[label] += amount
    for label in sorted(measured):
        if measured[label]:
            benefits.append(
                EnvironmentalBenefit(
                    category=label,
                    description=f"{label} reported by project monitoring",
                    quantification=measured[label],
                    unit=_BENEFIT_UNITS.get(label, "units"),
                    verification="Project progress reports",
                )
            )
    return benefits


def _timespan_years(summaries: Sequence[ProjectImpactSummary]) -> int:
    if len(summaries) <= 1:
        return 0
    first = [s.first_purchase_at for s in summaries]
    return math.ceil((max(first) - min(first)) / timedelta(days=365))


def calculate_total_impact(
    summaries: Sequence[ProjectImpactSummary],
    constants: ImpactConstants = DEFAULT_CONSTANTS,
) -> TotalImpactSummary:
    """Roll per-project summaries up into the buyer's total impact."""
    total_offset = math.fsum(s.impact_metrics.carbon_impact_to_date for s in summaries)
    total_investment = math.fsum(s.financials.total_investment for s in summaries)

    social: list[SocialImpact] = []
    economic: list[EconomicImpact] = []
    if summaries:
        countries = sorted({s.location.country for s in summaries})
        social.append(
            SocialImpact(
                category="Local Employment",
                description="Jobs supported in project communities",
                beneficiaries=len(summaries) * constants.jobs_per_project,
                location=countries[0] if len(countries) == 1 else "Multiple regions",
                projects_contributing=[s.project_name for s in summaries],
            )
        )
        economic.append(
            EconomicImpact(
                category="Direct Investment",
                description="Capital deployed into carbon projects",
                value=total_investment,
                currency="USD",
                local_economy_boost=total_investment * constants.local_economy_share,
            )
        )

    return TotalImpactSummary(
        total_carbon_offset=total_offset,
        equivalent_metrics=equivalent_metrics(total_offset, constants),
        sdg_contributions=sdg_contributions(summaries, constants),
        environmental_benefits=environmental_benefits(summaries, total_offset, constants),
        social_impact=social,
        economic_impact=economic,
        cumulative_impact=CumulativeImpact(
            total_projects=len(summaries),
            total_investment=total_investment,
            total_carbon_offset=total_offset,
            timespan=_timespan_years(summaries),
            average_project_size=total_offset / len(summaries) if summaries else 0.0,
            impact_growth_rate=constants.impact_growth_rate if summaries else 0.0,
        ),
    )


def calculate_sustainability_metrics(
    portfolio: BuyerPortfolio,
    total_impact: TotalImpactSummary,
) -> SustainabilityMetrics:
    # Scores are fixed ratings until a scoring provider is wired in; an
    # empty portfolio rates zero across the board.
    if not portfolio.total_credits_owned:
        return SustainabilityMetrics(
            esg_score=0,
            sustainability_rating="N/A",
            alignment=SustainabilityAlignment(paris_agreement=0, sdgs=0, corporate_goals=0),
            reporting=ReportingFrameworks(ghg_protocol=False, tcfd=False, sasb=False, cdp=False),
            certifications=[],
            transparency=TransparencyScore(
                score=0, public_disclosure=False, third_party_verification=False
            ),
        )

    return SustainabilityMetrics(
        esg_score=85,
        sustainability_rating="A-",
        alignment=SustainabilityAlignment(
            paris_agreement=90,
            sdgs=85 if total_impact.sdg_contributions else 0,
            corporate_goals=80,
        ),
        reporting=ReportingFrameworks(ghg_protocol=True, tcfd=False, sasb=False, cdp=True),
        certifications=["Carbon Neutral", "B-Corp Certified"],
        transparency=TransparencyScore(
            score=92, public_disclosure=True, third_party_verification=True
        ),
    )
