"""Tests for the buyer impact engine: aggregation, summaries, totals,
certificates, recommendations, benchmarks and project tracking. No DB needed."""

from __future__ import annotations

import re
import uuid
from datetime import date, datetime, timedelta, timezone

import pytest

from echo_sprout.models.enums import (
    AlertSeverity,
    BuyerReportStatus,
    CertificateType,
    MilestoneStatus,
    MilestoneType,
    ProgressUpdateType,
    ProjectStatus,
    ProjectType,
)
from echo_sprout.modules.buyer_impact.aggregator import build_portfolio
from echo_sprout.modules.buyer_impact.benchmarks import compare_to_benchmarks
from echo_sprout.modules.buyer_impact.calculator import (
    calculate_sustainability_metrics,
    calculate_total_impact,
)
from echo_sprout.modules.buyer_impact.certificates import (
    ISSUED_ACTION,
    issue_certificate,
    issue_certificates,
    make_serial_number,
)
from echo_sprout.modules.buyer_impact.constants import DEFAULT_CONSTANTS, EquivalenceFactors, ImpactConstants
from echo_sprout.modules.buyer_impact.recommendations import (
    DEFAULT_RULES,
    generate_recommendations,
)
from echo_sprout.modules.buyer_impact.repository import parse_measurement
from echo_sprout.modules.buyer_impact.schemas import (
    AlertRecord,
    BuyerRecommendation,
    BuyerRecord,
    EnergyMeasurement,
    GenerateBuyerReportRequest,
    MilestoneRecord,
    ProgressRecord,
    ProjectRecord,
    PurchaseRecord,
    RecommendationImpact,
    ReportPeriod,
    TreeMeasurement,
)
from echo_sprout.modules.buyer_impact.service import assemble_report, build_trends, report_title
from echo_sprout.modules.buyer_impact.summarizer import summarize_project, summarize_projects
from echo_sprout.modules.buyer_impact.tracking import (
    FINAL_MILESTONE,
    UNKNOWN_CREATOR,
    estimated_offset,
    milestone_progress,
    next_milestone,
    track_project,
    track_project_detail,
)

NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)
BUYER_ID = uuid.UUID("00000000-0000-0000-0000-0000000a1b2c")
SOLAR_ID = uuid.UUID("00000000-0000-0000-0003-000000000001")
FOREST_ID = uuid.UUID("00000000-0000-0000-0003-000000000002")


def _project(pid: uuid.UUID, project_type: ProjectType, **kw) -> ProjectRecord:
    defaults = dict(
        id=pid,
        title=f"{project_type.value} project",
        project_type=project_type,
        status=ProjectStatus.ACTIVE,
        country="Kenya",
        region="Rift Valley",
        latitude=-0.3,
        longitude=36.1,
        created_at=datetime(2023, 1, 1, tzinfo=timezone.utc),
    )
    defaults.update(kw)
    return ProjectRecord(**defaults)


def _purchase(project_id: uuid.UUID, credits: float, total: float, when: datetime) -> PurchaseRecord:
    return PurchaseRecord(
        id=uuid.uuid4(),
        buyer_id=BUYER_ID,
        project_id=project_id,
        credit_amount=credits,
        unit_price=total / credits,
        total_amount=total,
        created_at=when,
    )


def _update(project_id: uuid.UUID, impact: float, when: datetime, **kw) -> ProgressRecord:
    return ProgressRecord(
        id=uuid.uuid4(),
        project_id=project_id,
        title=kw.pop("title", "Update"),
        carbon_impact_to_date=impact,
        progress_percentage=kw.pop("progress", 50.0),
        created_at=when,
        **kw,
    )


@pytest.fixture
def two_projects() -> dict[uuid.UUID, ProjectRecord]:
    return {
        SOLAR_ID: _project(SOLAR_ID, ProjectType.SOLAR),
        FOREST_ID: _project(
            FOREST_ID,
            ProjectType.REFORESTATION,
            status=ProjectStatus.COMPLETED,
            country="Peru",
            region="Cusco",
            latitude=None,
            longitude=None,
        ),
    }


@pytest.fixture
def two_purchases() -> list[PurchaseRecord]:
    return [
        _purchase(SOLAR_ID, 100, 3000, datetime(2024, 5, 1, tzinfo=timezone.utc)),
        _purchase(FOREST_ID, 50, 1500, datetime(2025, 2, 1, tzinfo=timezone.utc)),
    ]


@pytest.fixture
def two_updates() -> dict[uuid.UUID, list[ProgressRecord]]:
    return {
        SOLAR_ID: [
            _update(SOLAR_ID, 10.0, datetime(2024, 6, 1, tzinfo=timezone.utc), title="Survey"),
            _update(
                SOLAR_ID,
                80.0,
                datetime(2025, 1, 10, tzinfo=timezone.utc),
                title="Panels installed",
                measurement=EnergyMeasurement(project_type="solar", energy_generated_kwh=120000),
            ),
        ],
        FOREST_ID: [
            _update(
                FOREST_ID,
                40.0,
                datetime(2025, 2, 20, tzinfo=timezone.utc),
                measurement=TreeMeasurement(project_type="reforestation", trees_planted=1600),
            ),
        ],
    }


# ── Portfolio aggregator ──────────────────────────────────────────────────────


class TestPortfolioAggregator:
    def test_two_purchase_scenario(self, two_purchases, two_projects):
        portfolio = build_portfolio(two_purchases, two_projects)
        assert portfolio.total_credits_owned == 150
        assert portfolio.total_investment == 4500
        assert len(portfolio.project_types) == 2
        solar, forest = portfolio.project_types
        assert solar.type == "solar"
        assert solar.percentage == pytest.approx(66.7, abs=0.1)
        assert forest.type == "reforestation"
        assert forest.percentage == pytest.approx(33.3, abs=0.1)
        assert portfolio.risk_profile.diversification_score == pytest.approx(33.33, abs=0.01)
        assert portfolio.risk_profile.overall_risk == "medium"

    def test_active_and_completed_counts(self, two_purchases, two_projects):
        portfolio = build_portfolio(two_purchases, two_projects)
        assert portfolio.active_projects == 1
        assert portfolio.completed_projects == 1

    def test_breakdowns_sum_to_total(self, two_purchases, two_projects):
        portfolio = build_portfolio(two_purchases, two_projects)
        for rows in (portfolio.project_types, portfolio.geographic_distribution, portfolio.vintage):
            assert sum(r.credits_owned for r in rows) == pytest.approx(portfolio.total_credits_owned)
            assert sum(r.percentage for r in rows) == pytest.approx(100, abs=0.01)

    def test_three_way_split_percentages_still_sum_to_100(self):
        third = ProjectType.WIND
        wind_id = uuid.uuid4()
        projects = {
            SOLAR_ID: _project(SOLAR_ID, ProjectType.SOLAR),
            FOREST_ID: _project(FOREST_ID, ProjectType.REFORESTATION),
            wind_id: _project(wind_id, third),
        }
        purchases = [_purchase(pid, 10, 250, NOW - timedelta(days=5)) for pid in projects]
        portfolio = build_portfolio(purchases, projects)
        assert sum(r.percentage for r in portfolio.project_types) == pytest.approx(100, abs=0.01)

    def test_vintage_groups_by_purchase_year(self, two_purchases, two_projects):
        portfolio = build_portfolio(two_purchases, two_projects)
        assert [v.year for v in portfolio.vintage] == [2024, 2025]
        assert portfolio.vintage[0].average_price == 30
        assert portfolio.vintage[0].quality_score == 85

    def test_geography_groups_by_country_and_region(self, two_purchases, two_projects):
        portfolio = build_portfolio(two_purchases, two_projects)
        keys = [(g.country, g.region) for g in portfolio.geographic_distribution]
        assert keys == [("Kenya", "Rift Valley"), ("Peru", "Cusco")]
        assert portfolio.geographic_distribution[0].impact == 100

    def test_zero_purchases(self):
        portfolio = build_portfolio([], {})
        assert portfolio.total_credits_owned == 0
        assert portfolio.total_investment == 0
        assert portfolio.project_types == []
        assert portfolio.geographic_distribution == []
        assert portfolio.vintage == []
        assert portfolio.risk_profile.diversification_score == 0
        assert portfolio.risk_profile.overall_risk == "high"
        assert portfolio.performance.impact_efficiency == 0
        assert portfolio.performance.performance_metrics[0].status == "meeting"

    def test_single_type_is_high_risk(self):
        projects = {SOLAR_ID: _project(SOLAR_ID, ProjectType.SOLAR)}
        purchases = [
            _purchase(SOLAR_ID, 10 + i, 300, datetime(2024, 1 + i, 1, tzinfo=timezone.utc))
            for i in range(5)
        ]
        portfolio = build_portfolio(purchases, projects)
        assert portfolio.risk_profile.diversification_score == pytest.approx(16.67, abs=0.01)
        assert portfolio.risk_profile.overall_risk == "high"

    def test_missing_project_still_counts_toward_totals(self, two_purchases, two_projects):
        orphan = _purchase(uuid.uuid4(), 25, 500, NOW)
        portfolio = build_portfolio([*two_purchases, orphan], two_projects)
        assert portfolio.total_credits_owned == 175
        assert sum(r.credits_owned for r in portfolio.project_types) == pytest.approx(175)
        unknown = [r for r in portfolio.project_types if r.type == "unknown"]
        assert unknown and unknown[0].credits_owned == 25
        assert ("Unknown", "Unknown") in {
            (g.country, g.region) for g in portfolio.geographic_distribution
        }

    def test_cost_per_credit_above_benchmark_underperforms(self, two_purchases, two_projects):
        metric = build_portfolio(two_purchases, two_projects).performance.performance_metrics[0]
        assert metric.metric == "Cost per Credit"
        assert metric.value == 30
        assert metric.benchmark == 25
        assert metric.status == "underperforming"

    def test_impact_efficiency_is_credits_per_thousand_usd(self, two_purchases, two_projects):
        perf = build_portfolio(two_purchases, two_projects).performance
        assert perf.impact_efficiency == pytest.approx(150 / 4500 * 1000)

    def test_vintage_trend_compares_last_two_years(self, two_purchases, two_projects):
        trend = build_portfolio(two_purchases, two_projects).performance.trends_analysis[0]
        assert trend.metric == "Credits Acquired"
        assert trend.trend == "decreasing"
        assert trend.change_percent == pytest.approx(-50)

    def test_project_risk_distribution(self, two_purchases, two_projects):
        dist = build_portfolio(two_purchases, two_projects).risk_profile.project_risk_distribution
        # Solar: in progress only; forest: no coordinates + environmental
        assert dist.medium == 50
        assert dist.high == 50
        assert dist.low == 0

    def test_aggregation_is_deterministic(self, two_purchases, two_projects):
        first = build_portfolio(two_purchases, two_projects).model_dump_json()
        second = build_portfolio(list(reversed(two_purchases)), two_projects).model_dump_json()
        assert first == second


# ── Project summarizer ────────────────────────────────────────────────────────


class TestProjectSummarizer:
    def test_summary_uses_latest_update(self, two_purchases, two_projects, two_updates):
        summary = summarize_project(
            two_projects[SOLAR_ID], two_purchases[:1], two_updates[SOLAR_ID], NOW
        )
        assert summary.impact_metrics.carbon_impact_to_date == 80.0
        assert summary.impact_metrics.estimated_total_impact == 0
        assert summary.impact_metrics.additional_benefits == {"Energy Generated (kWh)": 120000}
        assert summary.progress.on_track is True
        assert summary.verification.last_verified == datetime(2025, 1, 10, tzinfo=timezone.utc)
        assert summary.verification.next_verification == NOW + timedelta(days=30)
        assert summary.recent_updates[0].title == "Panels installed"

    def test_latest_update_is_newest_created_not_newest_reported(self, two_purchases, two_projects):
        older = _update(SOLAR_ID, 100.0, datetime(2024, 6, 1, tzinfo=timezone.utc), title="June")
        backdated = _update(
            SOLAR_ID,
            200.0,
            datetime(2024, 7, 1, tzinfo=timezone.utc),
            title="Backfilled May",
            reporting_date=datetime(2024, 5, 1, tzinfo=timezone.utc),
        )
        summary = summarize_project(
            two_projects[SOLAR_ID], two_purchases[:1], [older, backdated], NOW
        )
        assert summary.impact_metrics.carbon_impact_to_date == 200.0
        assert summary.recent_updates[0].title == "Backfilled May"
        # The reported date is still what the buyer sees
        assert summary.recent_updates[0].date == datetime(2024, 5, 1, tzinfo=timezone.utc)
        assert summary.verification.last_verified == datetime(2024, 5, 1, tzinfo=timezone.utc)

    def test_purchase_price_and_first_purchase(self, two_projects):
        purchases = [
            _purchase(SOLAR_ID, 10, 200, datetime(2024, 3, 1, tzinfo=timezone.utc)),
            _purchase(SOLAR_ID, 30, 1000, datetime(2023, 9, 1, tzinfo=timezone.utc)),
        ]
        summary = summarize_project(two_projects[SOLAR_ID], purchases, [], NOW)
        assert summary.credits_owned == 40
        assert summary.purchase_price == 30
        assert summary.first_purchase_at == datetime(2023, 9, 1, tzinfo=timezone.utc)
        assert summary.financials.current_value == 1200

    def test_no_updates(self, two_purchases, two_projects):
        summary = summarize_project(two_projects[SOLAR_ID], two_purchases[:1], [], NOW)
        assert summary.impact_metrics.carbon_impact_to_date == 0
        assert summary.progress.percentage == 0
        assert summary.verification.last_verified is None
        assert summary.recent_updates == []

    def test_risk_factors(self, two_purchases, two_projects):
        solar = summarize_project(two_projects[SOLAR_ID], two_purchases[:1], [], NOW)
        forest = summarize_project(two_projects[FOREST_ID], two_purchases[1:], [], NOW)
        assert solar.risk_factors == ["Project still in progress"]
        assert forest.risk_factors == [
            "Limited location verification",
            "Subject to environmental risks",
        ]
        assert forest.location.coordinates is None

    def test_actual_completion_only_when_completed(self, two_purchases):
        done = _project(
            FOREST_ID,
            ProjectType.REFORESTATION,
            status=ProjectStatus.COMPLETED,
            actual_completion_date=datetime(2024, 2, 15).date(),
        )
        running = _project(
            SOLAR_ID,
            ProjectType.SOLAR,
            actual_completion_date=datetime(2024, 2, 15).date(),
        )
        assert summarize_project(done, two_purchases[1:], [], NOW).timeline.actual_completion is not None
        assert summarize_project(running, two_purchases[:1], [], NOW).timeline.actual_completion is None

    def test_recent_updates_capped_at_three(self, two_purchases, two_projects):
        updates = [
            _update(SOLAR_ID, float(i), NOW - timedelta(days=i), update_type=ProgressUpdateType.PROGRESS)
            for i in range(5)
        ]
        summary = summarize_project(two_projects[SOLAR_ID], two_purchases[:1], updates, NOW)
        assert len(summary.recent_updates) == 3
        assert all(u.impact == "medium" for u in summary.recent_updates)

    def test_missing_projects_are_skipped(self, two_purchases, two_projects, two_updates):
        only_solar = {SOLAR_ID: two_projects[SOLAR_ID]}
        summaries = summarize_projects(two_purchases, only_solar, two_updates, NOW)
        assert [s.project_id for s in summaries] == [SOLAR_ID]


# ── Total impact ──────────────────────────────────────────────────────────────


class TestTotalImpactCalculator:
    @pytest.fixture
    def summaries(self, two_purchases, two_projects, two_updates):
        return summarize_projects(two_purchases, two_projects, two_updates, NOW)

    def test_offset_and_equivalents(self, summaries):
        total = calculate_total_impact(summaries)
        assert total.total_carbon_offset == 120
        eq = total.equivalent_metrics
        assert eq.trees_planted == 4800
        assert eq.cars_off_road == 26
        assert eq.homes_powered == 16
        assert eq.fuel_saved_gallons == 13560

    def test_sdg_contributions(self, summaries):
        sdgs = calculate_total_impact(summaries).sdg_contributions
        assert [s.goal for s in sdgs] == [7, 13, 15]
        by_goal = {s.goal: s for s in sdgs}
        assert by_goal[13].carbon_offset == 120
        assert by_goal[13].project_count == 2
        assert by_goal[7].title == "Affordable and Clean Energy"

    def test_environmental_benefits(self, summaries):
        benefits = {b.category: b for b in calculate_total_impact(summaries).environmental_benefits}
        assert benefits["Carbon Sequestration"].quantification == 120
        assert benefits["Biodiversity Conservation"].quantification == 100
        assert benefits["Trees Planted"].quantification == 1600
        assert benefits["Energy Generated (kWh)"].unit == "kWh"

    def test_social_and_economic(self, summaries):
        total = calculate_total_impact(summaries)
        assert total.social_impact[0].beneficiaries == 50
        assert total.social_impact[0].location == "Multiple regions"
        assert total.economic_impact[0].value == 4500
        assert total.economic_impact[0].local_economy_boost == pytest.approx(3150)

    def test_cumulative(self, summaries):
        cumulative = calculate_total_impact(summaries).cumulative_impact
        assert cumulative.total_projects == 2
        assert cumulative.timespan == 1
        assert cumulative.average_project_size == 60

    def test_empty(self):
        total = calculate_total_impact([])
        assert total.total_carbon_offset == 0
        assert total.equivalent_metrics.trees_planted == 0
        assert total.sdg_contributions == []
        assert total.social_impact == []
        assert total.cumulative_impact.average_project_size == 0
        assert total.cumulative_impact.impact_growth_rate == 0

    def test_custom_equivalence_factors(self, summaries):
        constants = ImpactConstants(equivalence=EquivalenceFactors(trees_per_ton=1))
        assert calculate_total_impact(summaries, constants).equivalent_metrics.trees_planted == 120

    def test_sustainability_empty_portfolio_scores_zero(self):
        portfolio = build_portfolio([], {})
        metrics = calculate_sustainability_metrics(portfolio, calculate_total_impact([]))
        assert metrics.esg_score == 0
        assert metrics.certifications == []

    def test_sustainability_with_credits(self, two_purchases, two_projects, summaries):
        portfolio = build_portfolio(two_purchases, two_projects)
        metrics = calculate_sustainability_metrics(portfolio, calculate_total_impact(summaries))
        assert metrics.esg_score == 85
        assert metrics.sustainability_rating == "A-"
        assert metrics.reporting.ghg_protocol is True


# ── Certificates ──────────────────────────────────────────────────────────────


class TestCertificateIssuer:
    def test_validity_window_is_five_years(self, two_purchases):
        cert = issue_certificate(BUYER_ID, two_purchases, CertificateType.CARBON_OFFSET, "tester", NOW)
        assert cert is not None
        assert cert.valid_until - cert.issue_date == timedelta(days=5 * 365)

    def test_certificate_content(self, two_purchases):
        cert = issue_certificate(BUYER_ID, two_purchases, CertificateType.CARBON_OFFSET, "tester", NOW)
        assert cert.title == "Carbon Offset Certificate"
        assert cert.quantification == 150
        assert cert.unit == "tons CO2e"
        assert set(cert.projects) == {SOLAR_ID, FOREST_ID}
        assert "150" in cert.description

    def test_single_audit_entry(self, two_purchases):
        cert = issue_certificate(BUYER_ID, two_purchases, CertificateType.CARBON_OFFSET, "tester", NOW)
        assert len(cert.metadata.audit_trail) == 1
        entry = cert.metadata.audit_trail[0]
        assert entry.action == ISSUED_ACTION
        assert entry.actor == "tester"
        assert entry.date == NOW

    def test_serial_number_format(self):
        serial = make_serial_number(BUYER_ID, NOW, token_factory=lambda: "deadbeef")
        assert serial == f"EC-{int(NOW.timestamp() * 1000)}-0a1b2c-deadbeef"

    def test_serials_unique_within_same_millisecond(self, two_purchases):
        a = issue_certificate(BUYER_ID, two_purchases, CertificateType.CARBON_OFFSET, "t", NOW)
        b = issue_certificate(BUYER_ID, two_purchases, CertificateType.CARBON_OFFSET, "t", NOW)
        assert a.metadata.serial_number != b.metadata.serial_number
        assert re.match(r"^EC-\d+-[0-9a-f]{6}-[0-9a-f]{8}$", a.metadata.serial_number)

    def test_project_filter(self, two_purchases):
        cert = issue_certificate(
            BUYER_ID, two_purchases, CertificateType.BIODIVERSITY, "t", NOW, project_ids=[FOREST_ID]
        )
        assert cert.quantification == 50
        assert cert.title == "Biodiversity Certificate"
        assert cert.projects == (FOREST_ID,)

    def test_period_filter(self, two_purchases):
        period = ReportPeriod(start_date=datetime(2025, 1, 1, tzinfo=timezone.utc))
        cert = issue_certificate(
            BUYER_ID, two_purchases, CertificateType.CARBON_OFFSET, "t", NOW, period=period
        )
        assert cert.quantification == 50

    def test_zero_purchases_gives_empty_list(self):
        assert issue_certificates(BUYER_ID, [], "t", NOW) == []

    def test_certificate_is_frozen(self, two_purchases):
        cert = issue_certificate(BUYER_ID, two_purchases, CertificateType.CARBON_OFFSET, "t", NOW)
        with pytest.raises(Exception):
            cert.quantification = 1  # type: ignore[misc]


# ── Recommendations ───────────────────────────────────────────────────────────


class TestRecommendationEngine:
    def test_single_type_yields_one_high_diversification(self):
        projects = {SOLAR_ID: _project(SOLAR_ID, ProjectType.SOLAR)}
        purchases = [_purchase(SOLAR_ID, 10, 300, NOW - timedelta(days=i)) for i in range(5)]
        recs = generate_recommendations(build_portfolio(purchases, projects), [])
        assert len(recs) == 1
        assert recs[0].type == "diversification"
        assert recs[0].priority == "high"
        assert recs[0].impact.risk_reduction == 25
        assert recs[0].implementation[0].action == "Research new project types"

    def test_three_types_yields_nothing(self):
        ids = [uuid.uuid4() for _ in range(3)]
        types = [ProjectType.SOLAR, ProjectType.WIND, ProjectType.BIOGAS]
        projects = {pid: _project(pid, t) for pid, t in zip(ids, types)}
        purchases = [_purchase(pid, 10, 300, NOW) for pid in ids]
        assert generate_recommendations(build_portfolio(purchases, projects), []) == []

    def test_ids_are_deterministic(self, two_purchases, two_projects):
        portfolio = build_portfolio(two_purchases, two_projects)
        assert generate_recommendations(portfolio, []) == generate_recommendations(portfolio, [])

    def test_extra_rules_sorted_by_priority(self, two_purchases, two_projects):
        def low_rule(portfolio, summaries):
            return BuyerRecommendation(
                id=uuid.uuid4(),
                type="impact_enhancement",
                priority="low",
                title="Track co-benefits",
                description="",
                rationale="",
                expected_benefit="",
                implementation=[],
                impact=RecommendationImpact(risk_reduction=0, impact_increase=5, cost_implication=0),
            )

        portfolio = build_portfolio(two_purchases, two_projects)
        recs = generate_recommendations(portfolio, [], rules=(low_rule, *DEFAULT_RULES))
        assert [r.priority for r in recs] == ["high", "low"]


# ── Benchmarks ────────────────────────────────────────────────────────────────


class TestBenchmarkComparator:
    def test_scenario_comparisons(self, two_purchases, two_projects):
        portfolio = build_portfolio(two_purchases, two_projects)
        comparisons = {
            c.metric: c
            for c in compare_to_benchmarks(portfolio, calculate_total_impact([]))
        }
        assert comparisons["Cost per Credit"].status == "below_average"
        assert comparisons["Cost per Credit"].percentile == 25
        assert comparisons["Impact Efficiency"].status == "below_average"
        assert comparisons["Diversification Score"].comparison_type == "best_practice"

    def test_within_five_percent_is_average(self, two_projects):
        purchases = [_purchase(SOLAR_ID, 100, 2600, NOW)]  # $26/credit vs $25
        portfolio = build_portfolio(purchases, two_projects)
        cost = next(
            c for c in compare_to_benchmarks(portfolio, calculate_total_impact([]))
            if c.metric == "Cost per Credit"
        )
        assert cost.status == "average"
        assert cost.percentile == 50

    def test_cheaper_credits_are_above_average(self, two_projects):
        purchases = [_purchase(SOLAR_ID, 100, 1000, NOW)]
        portfolio = build_portfolio(purchases, two_projects)
        cost = compare_to_benchmarks(portfolio, calculate_total_impact([]))[0]
        assert cost.status == "above_average"
        assert cost.insights

    def test_empty_portfolio_has_no_comparisons(self):
        assert compare_to_benchmarks(build_portfolio([], {}), calculate_total_impact([])) == []


# ── Report assembly ───────────────────────────────────────────────────────────


class TestReportAssembly:
    BUYER = BuyerRecord(id=BUYER_ID, name="Ada Buyer", email="ada@example.com")

    def _assemble(self, purchases, projects, updates, **request_kw):
        return assemble_report(
            self.BUYER,
            purchases,
            projects,
            updates,
            GenerateBuyerReportRequest(**request_kw),
            generated_by="tester",
            now=NOW,
            report_id=uuid.UUID(int=1),
        )

    def test_assembled_report(self, two_purchases, two_projects, two_updates):
        report = self._assemble(two_purchases, two_projects, two_updates)
        assert report.status == BuyerReportStatus.FINAL
        assert report.portfolio.total_credits_owned == 150
        assert len(report.projects) == 2
        assert len(report.certificates) == 1
        assert len(report.comparisons) == 3
        assert report.recommendations[0].type == "diversification"

    def test_optional_sections_can_be_skipped(self, two_purchases, two_projects, two_updates):
        report = self._assemble(
            two_purchases,
            two_projects,
            two_updates,
            include_certificates=False,
            include_comparisons=False,
        )
        assert report.certificates == []
        assert report.comparisons == []

    def test_recomputation_is_identical(self, two_purchases, two_projects, two_updates):
        first = self._assemble(two_purchases, two_projects, two_updates)
        second = self._assemble(two_purchases, two_projects, two_updates)
        assert first.model_dump(exclude={"certificates"}) == second.model_dump(exclude={"certificates"})

    def test_empty_buyer(self):
        report = self._assemble([], {}, {})
        assert report.portfolio.total_credits_owned == 0
        assert report.certificates == []
        assert report.comparisons == []
        assert report.sustainability.esg_score == 0

    def test_titles(self):
        period = ReportPeriod(label="Q1 2025")
        assert report_title("Ada", GenerateBuyerReportRequest().report_type, 10, period) == (
            "Ada - Portfolio Overview Report"
        )
        assert report_title("Ada", GenerateBuyerReportRequest().report_type, 0, period) == (
            "Buyer Impact Report - Q1 2025"
        )

    def test_constants_are_shared_default(self):
        assert DEFAULT_CONSTANTS.benchmark("Cost per Credit").value == 25


# ── Trends & measurement parsing ──────────────────────────────────────────────


class TestTrends:
    def test_carbon_impact_series(self, two_purchases):
        trend = build_trends(two_purchases, "all", ["carbon_impact"])[0]
        assert trend.metric == "Carbon Impact"
        assert [p.value for p in trend.data] == [100, 50]
        assert trend.trend == "decreasing"
        assert trend.change_percent == pytest.approx(-50)

    def test_single_point_is_stable(self, two_purchases):
        trend = build_trends(two_purchases[:1], "1y", ["investment"])[0]
        assert trend.trend == "stable"
        assert trend.change_percent == 0


class TestMeasurementParsing:
    def test_camel_case_energy(self):
        m = parse_measurement(ProjectType.SOLAR, {"energyGenerated": 500, "other": 1})
        assert isinstance(m, EnergyMeasurement)
        assert m.energy_generated_kwh == 500

    def test_trees_for_mangroves(self):
        m = parse_measurement(ProjectType.MANGROVE_RESTORATION, {"trees_planted": 12})
        assert isinstance(m, TreeMeasurement)

    def test_mismatched_shape_is_dropped(self):
        assert parse_measurement(ProjectType.SOLAR, {"trees_planted": 12}) is None

    def test_empty_is_none(self):
        assert parse_measurement(ProjectType.WIND, None) is None


def _milestone(status: MilestoneStatus, sequence: int, **kw) -> MilestoneRecord:
    return MilestoneRecord(
        id=uuid.uuid4(),
        project_id=SOLAR_ID,
        milestone_type=kw.pop("milestone_type", MilestoneType.PROGRESS_25),
        title=kw.pop("title", f"Milestone {sequence}"),
        planned_date=kw.pop("planned_date", date(2025, 1, sequence)),
        status=status,
        sequence=sequence,
        **kw,
    )


def _alert(when: datetime, resolved: bool = False) -> AlertRecord:
    return AlertRecord(
        id=uuid.uuid4(),
        project_id=SOLAR_ID,
        severity=AlertSeverity.MEDIUM,
        message=f"Alert {when:%Y-%m-%d}",
        is_resolved=resolved,
        created_at=when,
    )


class TestProjectTracking:
    def test_progress_rounds_half_up(self):
        plan = [_milestone(MilestoneStatus.COMPLETED, 1)] + [
            _milestone(MilestoneStatus.PENDING, i) for i in range(2, 9)
        ]
        assert milestone_progress(plan) == 13  # 1 of 8 is 12.5%
        assert milestone_progress([]) == 0

    def test_next_milestone_skips_closed_ones(self):
        plan = [
            _milestone(MilestoneStatus.COMPLETED, 1),
            _milestone(MilestoneStatus.DELAYED, 2),
            _milestone(MilestoneStatus.SKIPPED, 3),
            _milestone(MilestoneStatus.PENDING, 4, title="Verification"),
        ]
        assert next_milestone(plan).title == "Verification"
        assert next_milestone(plan[:3]) is None

    def test_offset_falls_back_to_estimate(self):
        assert estimated_offset(None, 10) == 15
        zero = _update(SOLAR_ID, 0.0, NOW)
        assert estimated_offset(zero, 10) == 15
        assert estimated_offset(_update(SOLAR_ID, 42.0, NOW), 10) == 42

    def test_card_without_milestones(self, two_projects, two_purchases, two_updates):
        card = track_project(
            two_projects[SOLAR_ID],
            two_purchases[:1],
            two_updates[SOLAR_ID],
            [],
            [],
        )
        assert card.creator_name == UNKNOWN_CREATOR
        assert card.current_status.overall_progress == 0
        assert card.current_status.next_milestone == FINAL_MILESTONE
        assert card.impact.carbon_offset == 80
        assert card.impact.additional_metrics == {"energy_generated_kwh": 120000}
        assert [u.title for u in card.recent_updates] == ["Panels installed", "Survey"]
        assert card.recent_updates[1].metrics == {}

    def test_card_caps_updates_and_orders_alerts(self, two_projects, two_purchases):
        updates = [_update(SOLAR_ID, float(i), NOW - timedelta(days=i)) for i in range(5)]
        alerts = [
            _alert(datetime(2025, 1, 1, tzinfo=timezone.utc)),
            _alert(datetime(2025, 4, 1, tzinfo=timezone.utc)),
        ]
        card = track_project(two_projects[SOLAR_ID], two_purchases[:1], updates, [], alerts)
        assert len(card.recent_updates) == 3
        assert [a.message for a in card.alerts] == ["Alert 2025-04-01", "Alert 2025-01-01"]

    def test_detail_keeps_every_update(self, two_projects, two_purchases):
        updates = [_update(SOLAR_ID, float(i), NOW - timedelta(days=i)) for i in range(5)]
        detail = track_project_detail(
            two_projects[SOLAR_ID],
            two_purchases[:1],
            updates,
            [_milestone(MilestoneStatus.IN_PROGRESS, 1, title="Grid connection")],
            [_alert(NOW, resolved=True)],
            creator_name="Casey Creator",
        )
        assert len(detail.recent_updates) == 5
        assert detail.current_status.current_phase == "Grid connection"
        assert detail.alerts[0].is_resolved is True
        assert detail.creator_name == "Casey Creator"
