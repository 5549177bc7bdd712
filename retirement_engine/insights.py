from .calculators.aggregate import AggregateReport


def generate_insights(report: AggregateReport) -> str:
    """Return a short rule-based insight about a Monte Carlo report."""
    success = report.success_probability
    if success >= 0.85:
        outlook = "high chance of success"
    elif success >= 0.6:
        outlook = "moderate chance of success"
    else:
        outlook = "plan may be at risk"

    wealth = report.terminal_wealth
    if wealth is None:
        return (
            f"Your plan has a {outlook}. None of the {report.runs} simulated paths "
            f"lasted all {report.periods} periods."
        )
    return (
        f"Your plan has a {outlook} ({success*100:.1f}% of {report.runs} paths). "
        f"Median ending balance among successful paths is ${float(wealth.median):,.0f}."
    )
