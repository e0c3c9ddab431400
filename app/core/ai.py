from openai import OpenAI, OpenAIError
from functools import lru_cache
import json
import logging
from typing import Dict, List, Optional, Sequence, Tuple
from app.core.config import settings
from app.core.ingestion import CANONICAL_COLUMNS, suggest_column_mapping
from app.schemas.reconciliation import ReconciliationSummary

logger = logging.getLogger(__name__)

SOURCE_AI = "ai"
SOURCE_FALLBACK = "fallback"
SOURCE_HEURISTIC = "heuristic"

MAPPING_PROMPT = """
You are an expert at understanding spreadsheet formats for financial reconciliation.
Map the user's column headers to the required standard columns.

RULES:
1. Only use headers that appear verbatim in the user's list.
2. Leave a field out if no header fits.
3. Output valid JSON only, keyed by the standard field name.

STANDARD FIELDS:
{fields}
"""

ANALYSIS_PROMPT = """
You are a read-only financial analyst assistant for an invoice reconciliation tool.
Summarize the reconciliation figures you are given in 2-3 sentences, focusing on financial impact.

RULES:
1. DO NOT change or reinterpret the counts.
2. DO NOT invent numbers that are not in the input.
3. DO NOT give tax filing or legal advice.
"""


@lru_cache()
def get_ai_client() -> Optional[OpenAI]:
    """
    Builds the OpenAI client once per process when a key is configured.
    Routes receive it through Depends so tests and callers can substitute their own.
    """
    if not settings.OPENAI_API_KEY:
        logger.warning("OPENAI_API_KEY not set. AI features will respond with fallback.")
        return None
    try:
        return OpenAI(api_key=settings.OPENAI_API_KEY)
    except OpenAIError as e:
        logger.warning(f"OpenAI client could not be initialized: {e}")
        return None


def suggest_column_mapping_ai(headers: Sequence[str], client: Optional[OpenAI]) -> Tuple[Dict[str, str], str]:
    """Returns (mapping, source). Falls back to alias matching on any failure."""
    fallback = suggest_column_mapping(headers)
    if not client:
        return fallback, SOURCE_HEURISTIC

    fields = "\n".join(f"- {field}: e.g. {', '.join(aliases[:3])}" for field, aliases in CANONICAL_COLUMNS.items())
    user_content = f"User's file headers:\n{json.dumps(list(headers))}"

    try:
        response = client.chat.completions.create(
            model=settings.OPENAI_MODEL,
            messages=[
                {"role": "system", "content": MAPPING_PROMPT.format(fields=fields)},
                {"role": "user", "content": user_content}
            ],
            temperature=0.0,
            response_format={"type": "json_object"}
        )
        data = json.loads(response.choices[0].message.content)
    except (OpenAIError, json.JSONDecodeError, TypeError) as e:
        logger.error(f"AI column mapping failed: {e}")
        return fallback, SOURCE_HEURISTIC

    if not isinstance(data, dict):
        logger.error(f"AI column mapping returned {type(data).__name__}, expected object")
        return fallback, SOURCE_HEURISTIC

    # Guardrail: keep only known fields pointing at real headers
    known_headers = set(headers)
    mapping = {
        field: header for field, header in data.items()
        if field in CANONICAL_COLUMNS and isinstance(header, str) and header in known_headers
    }
    for field, header in fallback.items():
        mapping.setdefault(field, header)
    return mapping, SOURCE_AI


def describe_summary(summary: ReconciliationSummary) -> List[str]:
    return [
        f"Total records in File A: {summary.records_in_a} (Total value: Rs. {summary.total_value_a:.2f})",
        f"Total records in File B: {summary.records_in_b} (Total value: Rs. {summary.total_value_b:.2f})",
        f"Matched records: {summary.matched_count} (Total value: Rs. {summary.matched_value:.2f})",
        f"Partially matched records: {summary.partially_matched_count} ({summary.low_confidence_count} low confidence)",
        f"Records in File A only: {summary.only_in_a_count}",
        f"Records in File B only: {summary.only_in_b_count}",
    ]


def fallback_analysis(summary: ReconciliationSummary) -> str:
    gap = round(summary.total_value_a - summary.total_value_b, 2)
    unmatched = summary.only_in_a_count + summary.only_in_b_count
    if gap >= 0:
        gap_text = f"File A exceeds File B by Rs. {gap:.2f}."
    else:
        gap_text = f"File B exceeds File A by Rs. {-gap:.2f}."
    return (
        f"{summary.matched_count} of {summary.total_outcomes} outcomes matched exactly, "
        f"covering Rs. {summary.matched_value:.2f}. "
        f"{summary.partially_matched_count} pairs need review and {unmatched} records have no counterpart. "
        f"{gap_text}"
    )


def generate_reconciliation_analysis(summary: ReconciliationSummary, client: Optional[OpenAI]) -> Tuple[str, str]:
    """Returns (analysis, source). The narrative never alters results."""
    if not client:
        return fallback_analysis(summary), SOURCE_FALLBACK

    user_content = "Reconciliation results:\n" + "\n".join(f"- {line}" for line in describe_summary(summary))

    try:
        response = client.chat.completions.create(
            model=settings.OPENAI_MODEL,
            messages=[
                {"role": "system", "content": ANALYSIS_PROMPT},
                {"role": "user", "content": user_content}
            ],
            temperature=0.0
        )
        content = response.choices[0].message.content
    except OpenAIError as e:
        logger.error(f"AI Generation Failed: {e}")
        return fallback_analysis(summary), SOURCE_FALLBACK

    if not content or not content.strip():
        return fallback_analysis(summary), SOURCE_FALLBACK
    return content.strip(), SOURCE_AI
