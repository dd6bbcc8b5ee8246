"""Best-effort extraction of a single policy from PDF text."""

import re

from .utils import normalize_matricula, parse_date, parse_number

_POLICY_NUMBER_PATTERNS = (
    re.compile(r'(?:\bp[óo]liza|\bn[º°]\.?|\bref)[:\s]*([A-Z0-9\-/]*\d[A-Z0-9\-/]*)', re.IGNORECASE),
    re.compile(r'\b([A-Z]{2,4}[\-/]?\d{4,}[\-/]?\d{0,6})\b'),
)

# Current (1234 ABC) and old provincial (M 1234 AB) plate formats
_LABELLED_PLATE_RE = re.compile(
    r'(?i:matr[íi]cula)[:\s]*(\d{4}[\s\-]?[A-Z]{3}|[A-Z]{1,2}[\s\-]?\d{4}[\s\-]?[A-Z]{1,2})\b'
)
_PLATE_RE = re.compile(r'\b(\d{4}[A-Z]{3})\b')
_DATE_RE = re.compile(r'(\d{1,2}[/\-]\d{1,2}[/\-]\d{4})')
_AMOUNT_RE = re.compile(r'(?:prima|importe|total)[:\s]*([0-9][0-9.,]*)\s*(?:€|EUR)?', re.IGNORECASE)

_COMPANY_NAMES = (
    ('mutua madrileña', 'Mutua Madrileña'), ('mutua madrilena', 'Mutua Madrileña'),
    ('línea directa', 'Línea Directa'), ('linea directa', 'Línea Directa'),
    ('mapfre', 'Mapfre'), ('allianz', 'Allianz'), ('zurich', 'Zurich'),
    ('generali', 'Generali'), ('pelayo', 'Pelayo'), ('reale', 'Reale'), ('axa', 'AXA'),
)


def parse_policy_from_text(text):
    """Pull number, plate, dates, premium and insurer out of free text.

    The first two dd/mm/yyyy dates are taken as alta and vencimiento.
    Returns a partial policy dict, or None when neither a policy number nor
    a plate was found.
    """
    if not text:
        return None
    policy = {}

    for pattern in _POLICY_NUMBER_PATTERNS:
        m = pattern.search(text)
        if m:
            policy['numero_poliza'] = m.group(1)
            break

    m = _LABELLED_PLATE_RE.search(text) or _PLATE_RE.search(text)
    if m:
        policy['matricula'] = normalize_matricula(m.group(1))

    if not policy.get('numero_poliza') and not policy.get('matricula'):
        return None

    dates = _DATE_RE.findall(text)
    if len(dates) >= 2:
        policy['fecha_alta'] = parse_date(dates[0])
        policy['fecha_vencimiento'] = parse_date(dates[1])

    m = _AMOUNT_RE.search(text)
    if m:
        policy['prima_anual'] = parse_number(m.group(1))

    lowered = text.lower()
    for needle, company in _COMPANY_NAMES:
        if needle in lowered:
            policy['compania_aseguradora'] = company
            break

    return policy
