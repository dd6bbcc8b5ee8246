"""Spanish identity-document and contact-data validation.

DNI, NIE and CIF checks used before saving contacts, clients and
documents (contracts, invoices).
"""
import re

DNI_LETTERS = 'TRWAGMYFPDXBNJZSQVHLCKE'
NIE_FIRST_LETTERS = 'XYZ'
CIF_LETTERS = 'ABCDEFGHJKLMNPQRSUVW'
CIF_CONTROL_LETTERS = 'JABCDEFGHI'

# Organisation types whose control character is always a letter / always a digit
_CIF_LETTER_CONTROL = 'KPQS'
_CIF_DIGIT_CONTROL = 'ABEH'

_DNI_RE = re.compile(r'^[0-9]{8}[A-Z]$')
_NIE_RE = re.compile(r'^[XYZ][0-9]{7}[A-Z]$')
_CIF_RE = re.compile(r'^[ABCDEFGHJKLMNPQRSUVW][0-9]{7}[0-9A-J]$')
_EMAIL_RE = re.compile(r'^[^@\s]+@[^@\s]+\.[^@\s]+$')
_PHONE_ES_RE = re.compile(r'^(?:\+34|0034)?[6789][0-9]{8}$')
_POSTAL_CODE_RE = re.compile(r'^(0[1-9]|[1-4][0-9]|5[0-2])[0-9]{3}$')


def _clean(value):
    """Uppercase and keep only [0-9A-Z]."""
    if not value:
        return ''
    return re.sub(r'[^0-9A-Z]', '', str(value).upper())


def validate_dni(dni):
    """8 digits + control letter, letter = DNI_LETTERS[number % 23]."""
    clean = _clean(dni)
    if not _DNI_RE.match(clean):
        return False
    return clean[8] == DNI_LETTERS[int(clean[:8]) % 23]


def validate_nie(nie):
    """X/Y/Z + 7 digits + control letter. X/Y/Z count as 0/1/2 in the DNI rule."""
    clean = _clean(nie)
    if not _NIE_RE.match(clean):
        return False
    number = int(str(NIE_FIRST_LETTERS.index(clean[0])) + clean[1:8])
    return clean[8] == DNI_LETTERS[number % 23]


def cif_control(digits):
    """Return (control_digit, control_letter) for the 7 central CIF digits."""
    even_sum = 0
    odd_sum = 0
    for i, ch in enumerate(digits):
        d = int(ch)
        if i % 2 == 0:
            doubled = d * 2
            odd_sum += doubled - 9 if doubled > 9 else doubled
        else:
            even_sum += d
    control = (10 - (even_sum + odd_sum) % 10) % 10
    return str(control), CIF_CONTROL_LETTERS[control]


def validate_cif(cif):
    """Organisation letter + 7 digits + control digit or letter."""
    clean = _clean(cif)
    if not _CIF_RE.match(clean):
        return False

    org, digits, control = clean[0], clean[1:8], clean[8]
    control_digit, control_letter = cif_control(digits)

    if org in _CIF_LETTER_CONTROL:
        return control == control_letter
    if org in _CIF_DIGIT_CONTROL:
        return control == control_digit
    return control in (control_digit, control_letter)


def validate_documento(documento):
    """Detect and validate a DNI, NIE or CIF.

    Returns:
        dict with is_valid, type ('DNI' | 'NIE' | 'CIF' | 'unknown') and
        formatted (uppercase, separators stripped).
    """
    if not documento:
        return {'is_valid': False, 'type': 'unknown', 'formatted': ''}

    clean = _clean(documento)
    if _DNI_RE.match(clean):
        return {'is_valid': validate_dni(clean), 'type': 'DNI', 'formatted': clean}
    if _NIE_RE.match(clean):
        return {'is_valid': validate_nie(clean), 'type': 'NIE', 'formatted': clean}
    if re.match(r'^[A-Z][0-9]{7}[0-9A-Z]$', clean) and clean[0] in CIF_LETTERS:
        return {'is_valid': validate_cif(clean), 'type': 'CIF', 'formatted': clean}
    return {'is_valid': False, 'type': 'unknown', 'formatted': clean}


def format_documento(documento):
    """Normalized form of a document number, or '' for empty input."""
    if not documento:
        return ''
    return validate_documento(documento)['formatted'] or str(documento).upper()


def require_valid_documento(documento, field='dni_cif'):
    """Return the normalized document or raise ValueError. Empty input passes as None."""
    if not documento:
        return None
    result = validate_documento(documento)
    if not result['is_valid']:
        raise ValueError(f'{field}: documento de identidad no válido ({documento})')
    return result['formatted']


def validate_email(email):
    return bool(email) and bool(_EMAIL_RE.match(str(email).strip()))


def validate_phone_es(phone):
    """Spanish mobile/landline: 9 digits starting 6-9, optional +34/0034 prefix."""
    if not phone:
        return False
    clean = re.sub(r'[\s\-\.()]', '', str(phone))
    return bool(_PHONE_ES_RE.match(clean))


def validate_postal_code(code):
    """Five digits with a valid province prefix (01-52)."""
    if not code:
        return False
    return bool(_POSTAL_CODE_RE.match(str(code).strip()))
