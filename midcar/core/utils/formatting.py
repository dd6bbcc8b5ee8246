"""Display formatting in Spanish conventions (es-ES).

Used by the PDF/Excel exports and by document generation, where numbers
are rendered server-side.
"""
import re
import unicodedata
from datetime import date, datetime


def format_number(value, decimals=0):
    """12345.6 -> '12.346', 1234 -> '1234' (comma decimals).

    Like es-ES Intl, thousands are only grouped from five integer digits up.
    """
    if value is None:
        return ''
    try:
        n = float(value)
    except (TypeError, ValueError):
        return ''
    rounded = round(n, decimals)
    grouping = ',' if abs(rounded) >= 10000 else ''
    formatted = f'{abs(rounded):{grouping}.{decimals}f}'
    # swap separators: 12,345.60 -> 12.345,60
    formatted = formatted.replace(',', '_').replace('.', ',').replace('_', '.')
    return f'-{formatted}' if rounded < 0 else formatted


def format_currency(value, decimals=0):
    """12500 -> '12.500 €'."""
    if value is None:
        return ''
    return f'{format_number(value, decimals)} €'


def format_percentage(value):
    """Signed, one decimal: 5.23 -> '+5.2%', -3 -> '-3.0%'."""
    n = float(value or 0)
    sign = '+' if n >= 0 else ''
    return f'{sign}{n:.1f}%'


def _to_datetime(value):
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    try:
        return datetime.fromisoformat(str(value).replace('Z', '+00:00'))
    except ValueError:
        return None


def format_date(value):
    """ISO string or date -> 'dd/mm/yyyy'. Unparseable input returns ''."""
    dt = _to_datetime(value)
    return dt.strftime('%d/%m/%Y') if dt else ''


def format_relative_time(value, now=None):
    """'hace un momento', 'hace 5 min', 'hace 3h', 'hace 2 días', else dd/mm/yyyy."""
    dt = _to_datetime(value)
    if dt is None:
        return ''
    if now is None:
        now = datetime.now(dt.tzinfo) if dt.tzinfo else datetime.now()
    seconds = int((now - dt).total_seconds())

    if seconds < 60:
        return 'hace un momento'
    if seconds < 3600:
        return f'hace {seconds // 60} min'
    if seconds < 86400:
        return f'hace {seconds // 3600}h'
    if seconds < 604800:
        return f'hace {seconds // 86400} días'
    return dt.strftime('%d/%m/%Y')


def truncate(text, max_length):
    if text is None:
        return ''
    text = str(text)
    if len(text) <= max_length:
        return text
    return text[:max_length - 3] + '...'


def strip_accents(text):
    """'Línea Directa' -> 'Linea Directa'."""
    nfd = unicodedata.normalize('NFD', str(text))
    return ''.join(c for c in nfd if not unicodedata.combining(c))


def slugify(text, max_length=100):
    """URL slug: accents stripped, lowercase, dashes, max 100 chars."""
    if not text:
        return ''
    slug = strip_accents(text).lower()
    slug = re.sub(r'[^a-z0-9\s-]', '', slug)
    slug = re.sub(r'\s+', '-', slug.strip())
    slug = re.sub(r'-+', '-', slug).strip('-')
    return slug[:max_length].strip('-')
