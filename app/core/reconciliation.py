import logging
import re
from datetime import date
from typing import Dict, Iterable, List, Optional, Sequence

from app.schemas.invoice import InvoiceRecord
from app.schemas.reconciliation import (
    FIELD_GSTIN,
    FIELD_INVOICE_DATE,
    FIELD_INVOICE_NUMBER,
    FIELD_NAME,
    FIELD_TAXABLE_VALUE,
    MatchConfidence,
    MatchPolicy,
    ReconciliationOutcome,
    Remark,
)

# AUTHORITATIVE RECONCILIATION ENGINE: DO NOT DUPLICATE
# Pure functions over in-memory ledgers. No I/O and no shared state, safe to call concurrently.

logger = logging.getLogger(__name__)

INVALID_KEY = "-"
FUZZY_KEY_PREFIX = "fuzzy"

_NAME_NOISE = re.compile(r"[\W_]+")


class DuplicateKeyError(ValueError):
    """Raised when one ledger holds two records with the same (GSTIN, invoice number)."""

    def __init__(self, key: str, source: str):
        self.key = key
        self.source = source
        super().__init__(f"Duplicate match key '{key}' in ledger {source}; aggregate records before reconciling")


def normalize_identifier(value: Optional[str]) -> str:
    return (value or "").strip().upper()


def make_key(record: InvoiceRecord) -> str:
    gstin = normalize_identifier(record.gstin)
    invoice_number = normalize_identifier(record.invoice_number)
    if not gstin or not invoice_number:
        return INVALID_KEY
    return f"{gstin}-{invoice_number}"


def simplify_name(name: Optional[str]) -> str:
    return _NAME_NOISE.sub("", (name or "").lower())


def names_similar(name_a: Optional[str], name_b: Optional[str]) -> bool:
    """True if one simplified name contains the other, e.g. 'Acme' vs 'Acme Pvt. Ltd.'"""
    simple_a = simplify_name(name_a)
    simple_b = simplify_name(name_b)
    if not simple_a or not simple_b:
        return False
    return simple_a in simple_b or simple_b in simple_a


def values_close(value_a: float, value_b: float, tolerance: float = 1.0) -> bool:
    return abs(value_a - value_b) <= tolerance


def values_equal(value_a: float, value_b: float, epsilon: float = 0.001) -> bool:
    return abs(value_a - value_b) < epsilon


def dates_close(date_a: Optional[date], date_b: Optional[date], days: int = 7) -> bool:
    if date_a is None or date_b is None:
        return False
    return abs((date_a - date_b).days) <= days


def compute_field_diffs(record_a: InvoiceRecord, record_b: InvoiceRecord, policy: MatchPolicy) -> List[str]:
    diffs = []
    if normalize_identifier(record_a.gstin) != normalize_identifier(record_b.gstin):
        diffs.append(FIELD_GSTIN)
    if normalize_identifier(record_a.invoice_number) != normalize_identifier(record_b.invoice_number):
        diffs.append(FIELD_INVOICE_NUMBER)
    # Two missing dates agree; a date on one side only is a difference
    if not names_similar(record_a.name, record_b.name):
        diffs.append(FIELD_NAME)
    if record_a.invoice_date != record_b.invoice_date:
        diffs.append(FIELD_INVOICE_DATE)
    if not values_equal(record_a.taxable_value, record_b.taxable_value, policy.value_epsilon):
        diffs.append(FIELD_TAXABLE_VALUE)
    return diffs


def score_candidate(record_a: InvoiceRecord, record_b: InvoiceRecord, policy: MatchPolicy) -> int:
    """
    Heuristic similarity of two records that already share a GSTIN.
    With default weights a score of 2 means the name is convincing on its own,
    or both value and date agree.
    """
    score = 0
    if names_similar(record_a.name, record_b.name):
        score += policy.name_weight
    if values_close(record_a.taxable_value, record_b.taxable_value, policy.value_tolerance):
        score += policy.value_weight
    if dates_close(record_a.invoice_date, record_b.invoice_date, policy.date_tolerance_days):
        score += policy.date_weight
    return score


def ensure_unique_keys(records: Iterable[InvoiceRecord], source: str) -> None:
    seen = set()
    for record in records:
        key = make_key(record)
        if key == INVALID_KEY:
            continue
        if key in seen:
            raise DuplicateKeyError(key, source)
        seen.add(key)


def _paired_outcome(key: str, record_a: InvoiceRecord, record_b: InvoiceRecord,
                    confidence: MatchConfidence, policy: MatchPolicy) -> ReconciliationOutcome:
    diffs = compute_field_diffs(record_a, record_b, policy)
    if confidence == MatchConfidence.HIGH and not diffs:
        remark = Remark.MATCH
    else:
        remark = Remark.PARTIALLY_MATCHED
    return ReconciliationOutcome(
        key=key,
        record_a=record_a,
        record_b=record_b,
        remark=remark,
        confidence=confidence,
        field_diffs=diffs
    )


def reconcile(records_a: Sequence[InvoiceRecord], records_b: Sequence[InvoiceRecord],
              policy: Optional[MatchPolicy] = None) -> List[ReconciliationOutcome]:
    """
    Partition two ledgers into matched, partially matched and one-sided outcomes.

    Pass 1 pairs records with equal match keys (High confidence).
    Pass 2 scores the leftovers that share a GSTIN and pairs the best candidate (Low confidence).
    Pass 3 reports whatever is still unpaired.

    Output order: Pass 1 outcomes in A order, Pass 2 outcomes in A order,
    then leftover A records, then leftover B records.
    """
    policy = policy or MatchPolicy.from_settings()
    ensure_unique_keys(records_a, "A")
    ensure_unique_keys(records_b, "B")

    # Pass 1: exact key lookup
    lookup_b: Dict[str, int] = {}
    for index, record_b in enumerate(records_b):
        key = make_key(record_b)
        if key != INVALID_KEY:
            lookup_b[key] = index

    exact_outcomes: List[ReconciliationOutcome] = []
    unmatched_a: List[InvoiceRecord] = []
    consumed_b = set()

    for record_a in records_a:
        key = make_key(record_a)
        index = lookup_b.pop(key, None) if key != INVALID_KEY else None
        if index is None:
            unmatched_a.append(record_a)
            continue
        consumed_b.add(index)
        exact_outcomes.append(_paired_outcome(key, record_a, records_b[index], MatchConfidence.HIGH, policy))

    unmatched_b = [record for index, record in enumerate(records_b) if index not in consumed_b]
    logger.debug(f"Exact pass paired {len(exact_outcomes)} records; {len(unmatched_a)} A and {len(unmatched_b)} B left")

    # Pass 2: fuzzy scoring within the same GSTIN.
    # Insertion-ordered dict used as an ordered set of pool positions still available.
    available_b: Dict[int, None] = dict.fromkeys(range(len(unmatched_b)))
    fuzzy_outcomes: List[ReconciliationOutcome] = []
    leftover_a: List[InvoiceRecord] = []

    for record_a in unmatched_a:
        gstin_a = normalize_identifier(record_a.gstin)
        best_position = None
        best_score = 0

        for position in available_b:
            record_b = unmatched_b[position]
            if normalize_identifier(record_b.gstin) != gstin_a:
                continue
            score = score_candidate(record_a, record_b, policy)
            if score >= policy.score_threshold and (best_position is None or score > best_score):
                best_position = position
                best_score = score

        if best_position is None:
            leftover_a.append(record_a)
            continue

        del available_b[best_position]
        record_b = unmatched_b[best_position]
        key = f"{FUZZY_KEY_PREFIX}-{make_key(record_a)}-{make_key(record_b)}"
        fuzzy_outcomes.append(_paired_outcome(key, record_a, record_b, MatchConfidence.LOW, policy))

    logger.debug(f"Fuzzy pass paired {len(fuzzy_outcomes)} records")

    # Pass 3: residuals
    residual_outcomes = [
        ReconciliationOutcome(key=make_key(record_a), record_a=record_a, remark=Remark.ONLY_IN_A)
        for record_a in leftover_a
    ]
    residual_outcomes.extend(
        ReconciliationOutcome(key=make_key(unmatched_b[position]), record_b=unmatched_b[position], remark=Remark.ONLY_IN_B)
        for position in available_b
    )

    outcomes = exact_outcomes + fuzzy_outcomes + residual_outcomes
    logger.info(
        f"Reconciliation COMPLETED: {len(records_a)} A records, {len(records_b)} B records, "
        f"{len(exact_outcomes)} exact, {len(fuzzy_outcomes)} fuzzy, "
        f"{len(leftover_a)} only in A, {len(available_b)} only in B"
    )
    return outcomes
