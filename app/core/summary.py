from typing import List, Dict, Any, Sequence
from app.schemas.counterparty import CounterpartySummary, RiskLevel
from app.schemas.reconciliation import ReconciliationOutcome, ReconciliationSummary, Remark, MatchConfidence
from app.core.reconciliation import normalize_identifier

_RISK_RANK = {RiskLevel.HIGH: 0, RiskLevel.MEDIUM: 1, RiskLevel.LOW: 2}

def summarize_outcomes(outcomes: Sequence[ReconciliationOutcome]) -> ReconciliationSummary:
    """
    Derives headline statistics from engine output.
    DOES NOT perform any new reconciliation logic.
    """
    summary = ReconciliationSummary(total_outcomes=len(outcomes))

    for outcome in outcomes:
        if outcome.remark == Remark.MATCH:
            summary.matched_count += 1
            summary.matched_value += outcome.record_a.taxable_value
        elif outcome.remark == Remark.PARTIALLY_MATCHED:
            summary.partially_matched_count += 1
        elif outcome.remark == Remark.ONLY_IN_A:
            summary.only_in_a_count += 1
        elif outcome.remark == Remark.ONLY_IN_B:
            summary.only_in_b_count += 1

        if outcome.confidence == MatchConfidence.LOW:
            summary.low_confidence_count += 1
        if outcome.record_a is not None:
            summary.records_in_a += 1
            summary.total_value_a += outcome.record_a.taxable_value
        if outcome.record_b is not None:
            summary.records_in_b += 1
            summary.total_value_b += outcome.record_b.taxable_value

    summary.total_value_a = round(summary.total_value_a, 2)
    summary.total_value_b = round(summary.total_value_b, 2)
    summary.matched_value = round(summary.matched_value, 2)
    return summary

def aggregate_counterparties(outcomes: Sequence[ReconciliationOutcome]) -> List[CounterpartySummary]:
    """
    Groups existing outcomes by counterparty GSTIN.
    Fuzzy pairs never cross GSTINs, so each outcome belongs to exactly one counterparty.
    """
    counterparty_map: Dict[str, Dict[str, Any]] = {}

    for outcome in outcomes:
        record = outcome.record_a or outcome.record_b
        gstin = normalize_identifier(record.gstin) or "-"

        if gstin not in counterparty_map:
            counterparty_map[gstin] = {
                "name": record.name or "-",
                "total_outcomes": 0,
                "matched_count": 0,
                "partially_matched_count": 0,
                "only_in_a_count": 0,
                "only_in_b_count": 0,
                "value_a": 0.0,
                "value_b": 0.0
            }

        data = counterparty_map[gstin]
        data["total_outcomes"] += 1
        if outcome.record_a is not None:
            data["value_a"] += outcome.record_a.taxable_value
        if outcome.record_b is not None:
            data["value_b"] += outcome.record_b.taxable_value

        if outcome.remark == Remark.MATCH:
            data["matched_count"] += 1
        elif outcome.remark == Remark.PARTIALLY_MATCHED:
            data["partially_matched_count"] += 1
        elif outcome.remark == Remark.ONLY_IN_A:
            data["only_in_a_count"] += 1
        elif outcome.remark == Remark.ONLY_IN_B:
            data["only_in_b_count"] += 1

    summaries = []
    for gstin, data in counterparty_map.items():
        if data["only_in_a_count"] > 0 or data["only_in_b_count"] > 0:
            risk_level = RiskLevel.HIGH
        elif data["partially_matched_count"] > 0:
            risk_level = RiskLevel.MEDIUM
        else:
            risk_level = RiskLevel.LOW

        summaries.append(CounterpartySummary(
            gstin=gstin,
            name=data["name"],
            total_outcomes=data["total_outcomes"],
            matched_count=data["matched_count"],
            partially_matched_count=data["partially_matched_count"],
            only_in_a_count=data["only_in_a_count"],
            only_in_b_count=data["only_in_b_count"],
            value_a=round(data["value_a"], 2),
            value_b=round(data["value_b"], 2),
            value_gap=round(abs(data["value_a"] - data["value_b"]), 2),
            risk_level=risk_level
        ))

    return sorted(summaries, key=lambda x: (_RISK_RANK[x.risk_level], -x.value_gap))
