"""Shared parser utilities — file reading, header/plate normalization, type coercion."""

import io
import re
import unicodedata
from datetime import date, datetime, timezone

import pandas as pd

_EU_DATE_RE = re.compile(r'^(\d{1,2})[/\-](\d{1,2})[/\-](\d{4})$')
_ISO_DATE_RE = re.compile(r'^(\d{4})[/\-](\d{1,2})[/\-](\d{1,2})(?:[ T].*)?$')
_SERIAL_RE = re.compile(r'^\d{5}(?:\.\d+)?$')

# Excel serial 25569 is 1970-01-01
_EXCEL_EPOCH_SERIAL = 25569

CSV_SEPARATORS = (',', ';', '\t')


def safe_str(val):
    """Convert to string, return None for empty/nan."""
    if val is None:
        return None
    s = str(val).strip()
    if s in ('', 'nan', 'None', 'NaN', 'none', 'null', 'NaT'):
        return None
    return s


def normalize_matricula(value):
    """Upper-case plate with spaces, dashes and dots removed ('' when empty)."""
    if value is None:
        return ''
    return re.sub(r'[\s\-\.]', '', str(value)).upper()


def normalize_header(name):
    """Lower-case, accent-free, trimmed header with punctuation dropped."""
    s = unicodedata.normalize('NFKD', str(name or ''))
    s = ''.join(c for c in s if not unicodedata.combining(c))
    return re.sub(r'[^\w\s]', '', s.lower().strip())


def _iso(year, month, day):
    try:
        return date(int(year), int(month), int(day)).isoformat()
    except ValueError:
        return None


def parse_date(value):
    """Parse a spreadsheet date cell to 'YYYY-MM-DD', or None.

    Tries DD/MM/YYYY (or dashes), ISO, Excel serial numbers, then pandas.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        value = str(value)
    s = safe_str(value)
    if not s:
        return None

    m = _EU_DATE_RE.match(s)
    if m:
        day, month, year = m.groups()
        return _iso(year, month, day)
    m = _ISO_DATE_RE.match(s)
    if m:
        year, month, day = m.groups()
        return _iso(year, month, day)
    if _SERIAL_RE.match(s):
        seconds = (float(s) - _EXCEL_EPOCH_SERIAL) * 86400
        try:
            return datetime.fromtimestamp(seconds, tz=timezone.utc).date().isoformat()
        except (OverflowError, OSError, ValueError):
            return None
    parsed = pd.to_datetime(s, dayfirst=True, errors='coerce')
    if pd.isna(parsed):
        return None
    return parsed.date().isoformat()


def parse_number(value):
    """'1.234,50 €' -> 1234.5. Returns None when empty or not numeric."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    s = re.sub(r'[€$\s]', '', str(value))
    if not s or s.lower() in ('nan', 'none'):
        return None
    if ',' in s and '.' in s:
        s = s.replace('.', '')
    s = s.replace(',', '.')
    try:
        return float(s)
    except ValueError:
        return None


def _decode(file_bytes):
    for encoding in ('utf-8-sig', 'latin-1'):
        try:
            return file_bytes.decode(encoding)
        except UnicodeDecodeError:
            continue
    return file_bytes.decode('utf-8', errors='replace')


def sniff_separator(text):
    """Pick the separator (',', ';' or tab) that appears most in the header line."""
    first_line = text.splitlines()[0] if text else ''
    counts = {sep: first_line.count(sep) for sep in CSV_SEPARATORS}
    best = max(counts, key=counts.get)
    return best if counts[best] else ','


def read_table(file_bytes, file_type):
    """Read CSV or Excel bytes into a string-typed pandas DataFrame (first sheet)."""
    if file_type == 'csv':
        text = _decode(file_bytes)
        return pd.read_csv(io.StringIO(text), sep=sniff_separator(text),
                           dtype=str, keep_default_na=False)
    return pd.read_excel(io.BytesIO(file_bytes), sheet_name=0, dtype=str, keep_default_na=False)
