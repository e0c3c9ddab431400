from datetime import date
from app.core.reconciliation import reconcile
from app.core.summary import aggregate_counterparties, summarize_outcomes
from app.schemas.counterparty import RiskLevel
from app.schemas.invoice import InvoiceRecord

ACME = "27AAAAA0000A1Z5"
ZENITH = "29BBBBB1111B1Z5"
ORBIT = "33CCCCC2222C1Z5"


def rec(gstin, invoice, value, name="Acme", invoice_date=date(2024, 1, 10)):
    return InvoiceRecord(gstin=gstin, invoice_number=invoice, name=name, taxable_value=value, invoice_date=invoice_date)


def sample_outcomes():
    records_a = [
        rec(ACME, "A-1", 1000.0),
        rec(ACME, "A-2", 500.0),
        rec(ZENITH, "Z-1", 200.0, name="Zenith"),
        rec(ORBIT, "O-1", 300.0, name="Orbit"),
    ]
    records_b = [
        rec(ACME, "A-1", 1000.0),
        rec(ACME, "A-2", 510.0),
        rec(ZENITH, "Z-9", 200.0, name="Zenith Traders"),
        rec(ORBIT, "O-2", 40.0, name="Nova", invoice_date=None),
    ]
    return reconcile(records_a, records_b)


def test_summarize_outcomes_counts_and_totals():
    summary = summarize_outcomes(sample_outcomes())

    assert summary.total_outcomes == 5
    assert summary.records_in_a == 4
    assert summary.records_in_b == 4
    assert summary.matched_count == 1
    assert summary.partially_matched_count == 2
    assert summary.low_confidence_count == 1
    assert summary.only_in_a_count == 1
    assert summary.only_in_b_count == 1
    assert summary.total_value_a == 2000.0
    assert summary.total_value_b == 1750.0
    assert summary.matched_value == 1000.0


def test_summarize_empty_run():
    summary = summarize_outcomes([])
    assert summary.total_outcomes == 0
    assert summary.matched_value == 0.0


def test_aggregate_counterparties_risk_levels():
    counterparties = aggregate_counterparties(sample_outcomes())
    by_gstin = {c.gstin: c for c in counterparties}

    assert by_gstin[ORBIT].risk_level == RiskLevel.HIGH
    assert by_gstin[ORBIT].only_in_a_count == 1
    assert by_gstin[ORBIT].only_in_b_count == 1
    assert by_gstin[ORBIT].value_gap == 260.0

    assert by_gstin[ACME].risk_level == RiskLevel.MEDIUM
    assert by_gstin[ACME].matched_count == 1
    assert by_gstin[ACME].partially_matched_count == 1
    assert by_gstin[ACME].value_gap == 10.0

    assert by_gstin[ZENITH].risk_level == RiskLevel.MEDIUM
    assert [c.gstin for c in counterparties] == [ORBIT, ACME, ZENITH]


def test_aggregate_counterparties_all_matched_is_low_risk():
    outcomes = reconcile([rec(ACME, "A-1", 10.0)], [rec(ACME, "A-1", 10.0)])
    counterparties = aggregate_counterparties(outcomes)
    assert len(counterparties) == 1
    assert counterparties[0].risk_level == RiskLevel.LOW
