"""Compare a buyer's portfolio with the configured benchmark table."""

from collections.abc import Callable

from echo_sprout.modules.buyer_impact.constants import DEFAULT_CONSTANTS, Benchmark, ImpactConstants
from echo_sprout.modules.buyer_impact.schemas import (
    BuyerPortfolio,
    ImpactComparison,
    TotalImpactSummary,
)

# Relative distance from the benchmark still considered "average"
AVERAGE_BAND = 0.05

_PERCENTILE = {"above_average": 75.0, "average": 50.0, "below_average": 25.0}


def _cost_per_credit(portfolio: BuyerPortfolio, _: TotalImpactSummary) -> float:
    if not portfolio.total_credits_owned:
        return 0.0
    return portfolio.total_investment / portfolio.total_credits_owned


_METRIC_VALUES: dict[str, Callable[[BuyerPortfolio, TotalImpactSummary], float]] = {
    "Cost per Credit": _cost_per_credit,
    "Impact Efficiency": lambda p, _: p.performance.impact_efficiency,
    "Diversification Score": lambda p, _: p.risk_profile.diversification_score,
}


def comparison_status(value: float, benchmark: Benchmark) -> str:
    if abs(value - benchmark.value) <= abs(benchmark.value) * AVERAGE_BAND:
        return "average"
    better = value > benchmark.value if benchmark.higher_is_better else value < benchmark.value
    return "above_average" if better else "below_average"


def _insight(metric: str, value: float, benchmark: Benchmark, status: str) -> str:
    if status == "average":
        return f"{metric} of {value:.2f} {benchmark.unit} is in line with the benchmark of {benchmark.value:g}"
    side = "better than" if status == "above_average" else "behind"
    return f"{metric} of {value:.2f} {benchmark.unit} is {side} the benchmark of {benchmark.value:g}"


def compare_to_benchmarks(
    portfolio: BuyerPortfolio,
    total_impact: TotalImpactSummary,
    constants: ImpactConstants = DEFAULT_CONSTANTS,
) -> list[ImpactComparison]:
    if not portfolio.total_credits_owned:
        return []

    comparisons = []
    for benchmark in constants.benchmarks:
        read_value = _METRIC_VALUES.get(benchmark.metric)
        if read_value is None:
            continue
        value = read_value(portfolio, total_impact)
        status = comparison_status(value, benchmark)
        comparisons.append(
            ImpactComparison(
                comparison_type=benchmark.comparison_type,
                metric=benchmark.metric,
                buyer_value=value,
                benchmark_value=benchmark.value,
                percentile=_PERCENTILE[status],
                status=status,
                insights=[_insight(benchmark.metric, value, benchmark, status)],
            )
        )
    return comparisons
