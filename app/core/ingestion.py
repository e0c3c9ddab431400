import csv
import io
import logging
import math
import re
from datetime import date, datetime, timedelta
from typing import Any, Dict, List, Optional, Sequence, Tuple

from openpyxl import load_workbook
from pydantic import ValidationError

from app.core.config import settings
from app.core.reconciliation import INVALID_KEY, make_key
from app.schemas.invoice import InvoiceRecord

logger = logging.getLogger(__name__)

# Canonical columns and the header spellings seen in GSTR-2B exports and purchase registers.
# The first alias is the display name.
CANONICAL_COLUMNS: Dict[str, List[str]] = {
    "gstin": ["gstin of supplier", "gstin", "supplier gstin", "gst no", "gst number", "gstin/uin"],
    "name": ["trade/legal name", "trade name", "legal name", "supplier name", "party name", "name", "vendor name"],
    "invoice_number": ["invoice number", "invoice no", "invoice no.", "inv no", "bill no", "document number", "voucher no"],
    "invoice_date": ["invoice date", "inv date", "bill date", "document date", "date"],
    "taxable_value": ["taxable value (₹)", "taxable value", "taxable amount", "taxable amt", "assessable value"],
}

MIN_RECOGNIZED_HEADERS = 3

DATE_FORMATS = ["%Y-%m-%d", "%d-%m-%Y", "%d/%m/%Y", "%d-%b-%Y", "%d.%m.%Y", "%d %b %Y", "%Y/%m/%d"]

# Excel serial day 0
EXCEL_EPOCH = date(1899, 12, 30)

_AMOUNT_NOISE = re.compile(r"[₹$,\s]")


class IngestionError(ValueError):
    pass


class RowLimitExceeded(IngestionError):
    pass


def simplify_header(header: Any) -> str:
    if header is None:
        return ""
    return re.sub(r"[^a-z0-9]", "", str(header).lower())


def read_rows(filename: str, content: bytes) -> List[List[Any]]:
    """Returns the raw cell grid of the first sheet of a CSV or XLSX upload."""
    lowered = (filename or "").lower()

    if lowered.endswith(".csv"):
        try:
            text = content.decode("utf-8-sig")
        except UnicodeDecodeError:
            raise IngestionError("Invalid encoding. CSV files must be UTF-8.")
        return [row for row in csv.reader(io.StringIO(text))]

    if lowered.endswith(".xlsx"):
        try:
            workbook = load_workbook(io.BytesIO(content), read_only=True, data_only=True)
        except Exception as e:
            logger.error(f"Workbook load failed for {filename}: {e}")
            raise IngestionError(f"Error processing Excel file: {e}")
        try:
            sheet = workbook.worksheets[0]
            return [list(row) for row in sheet.iter_rows(values_only=True)]
        finally:
            workbook.close()

    raise IngestionError("Invalid file format. Upload a .csv or .xlsx file.")


def _is_blank_row(row: Sequence[Any]) -> bool:
    return all(cell is None or str(cell).strip() == "" for cell in row)


def _recognized_fields(headers: Sequence[Any]) -> List[str]:
    simplified = {simplify_header(h) for h in headers}
    simplified.discard("")
    found = []
    for field, aliases in CANONICAL_COLUMNS.items():
        if any(simplify_header(alias) in simplified for alias in aliases):
            found.append(field)
    return found


def find_header_row(rows: Sequence[Sequence[Any]], search_rows: Optional[int] = None) -> int:
    """
    Locates the header row among the first rows of a sheet.
    Prefers a row naming at least three canonical columns, else the first non-empty row.
    """
    search_rows = search_rows or settings.HEADER_SEARCH_ROWS
    candidates = rows[:search_rows]

    for index, row in enumerate(candidates):
        if _is_blank_row(row):
            continue
        if len(_recognized_fields(row)) >= MIN_RECOGNIZED_HEADERS:
            return index

    for index, row in enumerate(candidates):
        if not _is_blank_row(row):
            return index

    raise IngestionError(f"Could not find any valid header row within the first {search_rows} rows.")


def suggest_column_mapping(headers: Sequence[Any]) -> Dict[str, str]:
    """
    Maps canonical fields to file headers by alias.
    Exact (simplified) alias matches win over partial ones; each header is used at most once.
    """
    mapping: Dict[str, str] = {}
    used = set()
    simplified = [(str(h), simplify_header(h)) for h in headers if simplify_header(h)]

    # Exact alias pass
    for field, aliases in CANONICAL_COLUMNS.items():
        alias_keys = [simplify_header(a) for a in aliases]
        for alias_key in alias_keys:
            match = next((h for h, s in simplified if s == alias_key and h not in used), None)
            if match is not None:
                mapping[field] = match
                used.add(match)
                break

    # Partial alias pass for whatever is still unmapped
    for field, aliases in CANONICAL_COLUMNS.items():
        if field in mapping:
            continue
        for alias in aliases:
            alias_key = simplify_header(alias)
            if len(alias_key) <= 3:
                continue
            match = next((h for h, s in simplified if h not in used and (alias_key in s or s in alias_key) and len(s) > 3), None)
            if match is not None:
                logger.info(f"Partial alias match for '{match}': '{field}' (via alias '{alias}')")
                mapping[field] = match
                used.add(match)
                break

    return mapping


def apply_column_mapping(headers: Sequence[Any], mapping: Dict[str, str]) -> Dict[str, int]:
    header_text = [str(h).strip() if h is not None else "" for h in headers]
    indices: Dict[str, int] = {}
    missing = []

    for field in CANONICAL_COLUMNS:
        target = (mapping.get(field) or "").strip()
        if target and target in header_text:
            indices[field] = header_text.index(target)
        else:
            missing.append(CANONICAL_COLUMNS[field][0])

    if missing:
        raise IngestionError(f"Missing required columns: {', '.join(missing)}")
    return indices


def parse_amount(value: Any) -> float:
    """Strips currency symbols and thousands separators. Blank, unparseable or non-finite becomes 0.0."""
    if value is None:
        return 0.0
    if isinstance(value, (int, float)):
        amount = float(value)
    else:
        cleaned = _AMOUNT_NOISE.sub("", str(value))
        try:
            amount = float(cleaned) if cleaned else 0.0
        except ValueError:
            return 0.0
    if not math.isfinite(amount):
        return 0.0
    return amount


def parse_invoice_date(value: Any) -> Optional[date]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, (int, float)):
        # Excel serial date
        if 0 < value < 2958466:
            return EXCEL_EPOCH + timedelta(days=int(value))
        return None

    text = str(value).strip()
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    try:
        return datetime.fromisoformat(text).date()
    except ValueError:
        return None


def _cell(row: Sequence[Any], index: int) -> Any:
    return row[index] if index < len(row) else None


def parse_records(rows: Sequence[Sequence[Any]], header_row_index: int, indices: Dict[str, int]) -> List[InvoiceRecord]:
    records: List[InvoiceRecord] = []

    for offset, row in enumerate(rows[header_row_index + 1:]):
        row_number = header_row_index + offset + 2
        if not row or _is_blank_row(row):
            continue

        amount = parse_amount(_cell(row, indices["taxable_value"]))
        if amount < 0:
            raise IngestionError(f"Row {row_number}: taxable value must be non-negative")

        try:
            records.append(InvoiceRecord(
                gstin=_cell(row, indices["gstin"]),
                name=_cell(row, indices["name"]),
                invoice_number=_cell(row, indices["invoice_number"]),
                invoice_date=parse_invoice_date(_cell(row, indices["invoice_date"])),
                taxable_value=amount,
                row_number=row_number
            ))
        except ValidationError:
            raise IngestionError(f"Row {row_number}: Invalid data")

    return records


def aggregate_records(records: Sequence[InvoiceRecord]) -> List[InvoiceRecord]:
    """
    Sums taxable value of lines sharing (GSTIN, invoice number), keeping the first line's other fields.
    Records without a usable key pass through untouched.
    """
    aggregated: Dict[str, InvoiceRecord] = {}
    ordered: List[Tuple[str, Optional[InvoiceRecord]]] = []

    for record in records:
        key = make_key(record)
        if key == INVALID_KEY:
            ordered.append((key, record))
            continue
        existing = aggregated.get(key)
        if existing is None:
            aggregated[key] = record
            ordered.append((key, None))
        else:
            aggregated[key] = existing.model_copy(update={"taxable_value": existing.taxable_value + record.taxable_value})

    return [record if record is not None else aggregated[key] for key, record in ordered]


def read_headers(filename: str, content: bytes) -> Tuple[int, List[str]]:
    rows = read_rows(filename, content)
    if not rows:
        raise IngestionError("File is empty or contains no data.")
    header_row_index = find_header_row(rows)
    headers = ["" if h is None else str(h) for h in rows[header_row_index]]
    return header_row_index, headers


def load_ledger(filename: str, content: bytes, mapping: Optional[Dict[str, str]] = None,
                max_rows: Optional[int] = None) -> List[InvoiceRecord]:
    """Parses one uploaded ledger into aggregated InvoiceRecords ready for reconciliation."""
    rows = read_rows(filename, content)
    if not rows:
        raise IngestionError("File is empty or contains no data.")

    header_row_index = find_header_row(rows)
    headers = rows[header_row_index]
    indices = apply_column_mapping(headers, mapping or suggest_column_mapping(headers))

    records = parse_records(rows, header_row_index, indices)
    if max_rows is not None and len(records) > max_rows:
        raise RowLimitExceeded(f"Invoice limit exceeded: {len(records)} rows, plan allows {max_rows}")

    aggregated = aggregate_records(records)
    logger.info(f"Loaded {filename}: {len(records)} rows, {len(aggregated)} after aggregation")
    return aggregated
