"""Unit tests for the taxes module.

Federal figures use the bundled 2023/2024 IRS brackets; the rest use small
hand-built tables.
"""

from decimal import Decimal

import pytest

from retirement_engine.calculators.taxes import FilingStatus, TaxBracketTable, load_tax_table


def _two_bracket(deduction=0):
    return TaxBracketTable.from_pairs([(10000, 0.10), (None, 0.20)], deduction)


def test_progressive_tax_example():
    """10% up to 10,000 and 20% above: 15,000 of income owes 2,000."""
    assert _two_bracket().tax(15000) == Decimal("2000.00")


def test_income_within_first_bracket():
    assert _two_bracket().tax(5000) == Decimal("500.00")
    assert _two_bracket().tax(0) == Decimal("0.00")


def test_deduction_comes_off_the_bottom():
    table = _two_bracket(deduction=5000)
    assert table.tax(4000) == Decimal("0.00")
    assert table.tax(20000) == Decimal("2000.00")


def test_marginal_tax_stacks_on_prior_income():
    assert _two_bracket().marginal_tax(5000, prior_income=10000) == Decimal("1000.00")
    assert _two_bracket().marginal_tax(5000, prior_income=7500) == Decimal("750.00")


def test_top_rate_continues_past_last_bound():
    table = TaxBracketTable.from_pairs([(10000, 0.10), (20000, 0.20)])
    assert table.tax(30000) == Decimal("5000.00")


def test_gross_up_covers_net_need():
    table = _two_bracket()
    gross = table.gross_up(13000)
    assert gross == Decimal("15000.00")
    assert gross - table.tax(gross) == Decimal("13000.00")
    assert table.gross_up(8000, prior_income=10000) == Decimal("10000.00")


def test_gross_up_partial_taxed_share():
    table = TaxBracketTable.flat(0.20)
    assert table.gross_up(9000, taxed_share=Decimal("0.5")) == Decimal("10000.00")
    assert table.gross_up(9000, taxed_share=0) == Decimal("9000.00")


def test_gross_up_rounds_in_favour_of_the_need():
    table = TaxBracketTable.flat(0.30)
    gross = table.gross_up(100)
    assert gross == Decimal("142.86")
    assert gross - table.tax(gross) >= Decimal("100.00")


def test_scaled_table_for_monthly_periods():
    table = TaxBracketTable.from_pairs([(12000, 0.10), (None, 0.20)], deduction=1200)
    monthly = table.scaled(Decimal(1) / Decimal(12))
    assert monthly.brackets[0].upper == Decimal("1000.00")
    assert monthly.deduction == Decimal("100.00")
    assert table.scaled(1) is table


@pytest.mark.parametrize(
    "pairs",
    [
        [(10000, 0.1), (5000, 0.2)],
        [(10000, 1.0)],
        [(None, 0.1), (10000, 0.2)],
        [],
    ],
)
def test_invalid_tables(pairs):
    with pytest.raises(ValueError):
        TaxBracketTable.from_pairs(pairs)


def test_federal_tax_example():
    """Federal tax on $60k of ordinary income for a single filer (2024)."""
    assert load_tax_table(2024).tax(60000) == Decimal("5216.00")


def test_federal_married_joint():
    """Married filing jointly should use the wider brackets."""
    table = load_tax_table(2024, filing_status="married_joint")
    assert table.tax(60000) == Decimal("3232.00")


def test_federal_2023_single():
    assert load_tax_table(2023, FilingStatus.SINGLE).tax(60000) == Decimal("5460.50")


def test_capital_gains_tax_example():
    """Capital gains tax on $100k of gains for a single filer (2024)."""
    table = load_tax_table(2024, kind="capital_gains")
    assert table.tax(100000) == Decimal("7946.25")


def test_missing_table_year():
    with pytest.raises(KeyError):
        load_tax_table(1999)


def test_filing_status_parse():
    assert FilingStatus.parse("MARRIED_FILING_JOINTLY") is FilingStatus.MARRIED_FILING_JOINTLY
    assert FilingStatus.parse("head_of_household") is FilingStatus.HEAD_OF_HOUSEHOLD
    with pytest.raises(ValueError):
        FilingStatus.parse("widowed")


def test_marginal_rate():
    """The marginal rate is the rate of the segment the next dollar falls in."""
    table = _two_bracket(deduction=5000)
    assert table.marginal_rate(3000) == 0
    assert table.marginal_rate(12000) == Decimal("0.1")
    assert table.marginal_rate(15000) == Decimal("0.2")
    assert table.marginal_rate(10**7) == Decimal("0.2")
