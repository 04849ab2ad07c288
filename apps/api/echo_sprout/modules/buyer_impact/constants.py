"""Lookup tables for the buyer impact engine.

The equivalence factors and the project-type → SDG table are working
assumptions carried over from the marketplace's first release, not physical
constants. They are collected in one immutable ``ImpactConstants`` object,
built from settings once at import, and passed into the calculator, the
certificate issuer and the benchmark comparator.
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Literal, Mapping

from echo_sprout.core.config import Settings, settings
from echo_sprout.models.enums import ProjectType

# Size of the fixed project-type enumeration; the diversification denominator.
PROJECT_TYPE_COUNT = len(ProjectType)

SDG_TITLES: Mapping[int, str] = MappingProxyType({
    7: "Affordable and Clean Energy",
    11: "Sustainable Cities and Communities",
    12: "Responsible Consumption and Production",
    13: "Climate Action",
    14: "Life Below Water",
    15: "Life on Land",
})

PROJECT_TYPE_SDGS: Mapping[ProjectType, tuple[int, ...]] = MappingProxyType({
    ProjectType.REFORESTATION: (13, 15),
    ProjectType.SOLAR: (7, 13),
    ProjectType.WIND: (7, 13),
    ProjectType.BIOGAS: (7, 13),
    ProjectType.WASTE_MANAGEMENT: (11, 12),
    ProjectType.MANGROVE_RESTORATION: (13, 14, 15),
})

# Project types that restore habitat; used for biodiversity and risk factors
NATURE_BASED_TYPES: frozenset[ProjectType] = frozenset({
    ProjectType.REFORESTATION,
    ProjectType.MANGROVE_RESTORATION,
})


@dataclass(frozen=True)
class EquivalenceFactors:
    trees_per_ton: float = 40.0
    car_tons_per_year: float = 4.6
    home_tons_per_year: float = 7.3
    fuel_gallons_per_ton: float = 113.0


@dataclass(frozen=True)
class Benchmark:
    metric: str
    comparison_type: Literal["peer_buyers", "industry_average", "best_practice", "historical"]
    value: float
    unit: str
    higher_is_better: bool


@dataclass(frozen=True)
class CertificateProfile:
    issuer: str = "Echo Sprout Platform"
    verifier: str = "Third-Party Verification Body"
    verification_standard: str = "VCS (Verified Carbon Standard)"
    methodology: str = "VM0009 - Afforestation and Reforestation"
    additional_certifications: tuple[str, ...] = (
        "Gold Standard",
        "Climate, Community & Biodiversity Standards",
    )
    unit: str = "tons CO2e"
    validity_days: int = 5 * 365


@dataclass(frozen=True)
class ImpactConstants:
    equivalence: EquivalenceFactors = field(default_factory=EquivalenceFactors)
    sdg_mapping: Mapping[ProjectType, tuple[int, ...]] = field(default_factory=lambda: PROJECT_TYPE_SDGS)
    sdg_titles: Mapping[int, str] = field(default_factory=lambda: SDG_TITLES)
    benchmarks: tuple[Benchmark, ...] = ()
    certificate: CertificateProfile = field(default_factory=CertificateProfile)
    cost_per_credit_benchmark: float = 25.0
    next_verification_days: int = 30
    # Per-project estimates used by the benefit lists
    biodiversity_hectares_per_project: float = 100.0
    jobs_per_project: int = 25
    local_economy_share: float = 0.7
    vintage_quality_score: float = 85.0
    impact_growth_rate: float = 0.15

    def benchmark(self, metric: str) -> Benchmark | None:
        for b in self.benchmarks:
            if b.metric == metric:
                return b
        return None


def build_constants(cfg: Settings) -> ImpactConstants:
    """Build the immutable constants object from settings."""
    return ImpactConstants(
        equivalence=EquivalenceFactors(
            trees_per_ton=cfg.IMPACT_TREES_PER_TON,
            car_tons_per_year=cfg.IMPACT_CAR_TONS_PER_YEAR,
            home_tons_per_year=cfg.IMPACT_HOME_TONS_PER_YEAR,
            fuel_gallons_per_ton=cfg.IMPACT_FUEL_GALLONS_PER_TON,
        ),
        benchmarks=(
            Benchmark(
                metric="Cost per Credit",
                comparison_type="industry_average",
                value=cfg.IMPACT_BENCHMARK_COST_PER_CREDIT,
                unit="USD",
                higher_is_better=False,
            ),
            Benchmark(
                metric="Impact Efficiency",
                comparison_type="industry_average",
                value=cfg.IMPACT_BENCHMARK_CREDITS_PER_1000_USD,
                unit="credits per $1000",
                higher_is_better=True,
            ),
            Benchmark(
                metric="Diversification Score",
                comparison_type="best_practice",
                value=cfg.IMPACT_BENCHMARK_DIVERSIFICATION,
                unit="score",
                higher_is_better=True,
            ),
        ),
        certificate=CertificateProfile(
            issuer=cfg.IMPACT_CERTIFICATE_ISSUER,
            verifier=cfg.IMPACT_CERTIFICATE_VERIFIER,
            validity_days=cfg.IMPACT_CERTIFICATE_VALIDITY_DAYS,
        ),
        cost_per_credit_benchmark=cfg.IMPACT_BENCHMARK_COST_PER_CREDIT,
        next_verification_days=cfg.IMPACT_NEXT_VERIFICATION_DAYS,
    )


DEFAULT_CONSTANTS = build_constants(settings)
