"""Price breakdowns and document numbering."""
import re
from datetime import date, timedelta

from ..constants import DOCUMENT_TYPES, IVA_PERCENT


def compute_economics(precio, iva_percent=IVA_PERCENT):
    """Split a VAT-inclusive price into base + VAT.

    Returns:
        {base_imponible, iva_importe, total_con_iva}, 2 decimals each
    """
    total = float(precio or 0)
    rate = float(iva_percent or 0)
    base = round(total / (1 + rate / 100), 2)
    return {
        'base_imponible': base,
        'iva_importe': round(total - base, 2),
        'total_con_iva': round(total, 2),
    }


def format_document_number(tipo, year, last_number=None):
    """Next {PREFIX}-{year}-NNNN after `last_number` (None when none exist this year)."""
    if tipo not in DOCUMENT_TYPES:
        raise ValueError(f'Tipo de documento no válido: {tipo}')
    n = 1
    if last_number:
        match = re.search(r'(\d+)$', str(last_number))
        if match:
            n = int(match.group(1)) + 1
    return f"{DOCUMENT_TYPES[tipo]['prefix']}-{year}-{n:04d}"


def expiration_date(fecha, validez_dias):
    """Proforma expiry: fecha + validez_dias."""
    start = date.fromisoformat(str(fecha)[:10]) if fecha else date.today()
    return (start + timedelta(days=int(validez_dias or 0))).isoformat()
