"""Insurer policy file parser.

Reads the fleet listing an insurer sends (Excel, CSV or a single-policy PDF)
and returns one dict per policy keyed by polizas_seguro column names.
Bad rows never abort the parse: they are reported in ParseResult.errors.

Header detection is fuzzy: each header is normalized (lower-case, no accents,
no punctuation) and, for every field, the first mapping term contained in a
header (or containing it) claims that column.
"""

import io
import time
import unicodedata
import logging
from dataclasses import dataclass, field, asdict
from typing import List, Dict, Any, Optional

import pdfplumber

from .utils import normalize_matricula, normalize_header, parse_date, parse_number, safe_str, read_table
from .text_parser import parse_policy_from_text

logger = logging.getLogger('midcar.insurance.parsers.policy_file')

INSURANCE_COMPANIES = (
    'AXA', 'Mapfre', 'Allianz', 'Zurich', 'Generali',
    'Mutua Madrileña', 'Línea Directa', 'Pelayo', 'Reale', 'Otra',
)

POLICY_TYPES = ('terceros_basico', 'terceros_ampliado', 'todo_riesgo_franquicia', 'todo_riesgo_sin_franquicia')

DEFAULT_POLICY_TYPE = 'Todo Riesgo'

EMPTY_FILE_ERROR = 'El archivo está vacío'
NO_PLATE_COLUMN_ERROR = ('No se encontró columna de matrícula. '
                         'Asegúrate de que el archivo tenga una columna "Matrícula".')
PDF_MANUAL_ERROR = ('No se pudieron extraer datos de la póliza del PDF. '
                    'Usa un archivo Excel o CSV, o introduce los datos manualmente.')

# Resolution order matters: each column can be claimed once, so the more
# specific fields go before the ones with broad terms ('poliza', 'vehiculo').
COLUMN_MAPPINGS = {
    'matricula': ['matricula', 'plate', 'license_plate', 'license plate', 'registro',
                  'vehiculo_matricula', 'placa', 'registration'],
    'tipo_poliza': ['tipo', 'tipo_poliza', 'type', 'policy_type', 'cobertura', 'coverage', 'modalidad'],
    'numero_poliza': ['poliza', 'numero_poliza', 'no poliza', 'policy_number', 'policy',
                      'n_poliza', 'num_poliza', 'npoliza', 'referencia'],
    'fecha_alta': ['fecha_alta', 'fecha alta', 'alta', 'start_date', 'inicio', 'fecha_inicio',
                   'vigencia_desde', 'desde', 'efecto'],
    'fecha_vencimiento': ['fecha_vencimiento', 'vencimiento', 'expiry', 'expiry_date', 'end_date',
                          'fin', 'fecha_fin', 'vigencia_hasta', 'hasta', 'caducidad', 'vence'],
    'franquicia': ['franquicia', 'deductible'],
    'prima_anual': ['prima', 'prima_anual', 'cost', 'premium', 'amount', 'importe', 'precio', 'coste'],
    'compania_aseguradora': ['aseguradora', 'compania', 'insurance_company', 'company', 'proveedor'],
    'tomador_nif': ['tomador_nif', 'nif_cif', 'nif', 'cif'],
    'tomador_nombre': ['tomador', 'tomador_nombre', 'policyholder', 'holder'],
    'marca_modelo': ['marca_modelo', 'marca', 'modelo', 'vehicle', 'vehiculo', 'coche', 'car'],
}


@dataclass
class ParseResult:
    success: bool
    policies: List[Dict[str, Any]] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    file_type: str = 'unknown'
    matched_count: int = 0
    unmatched_count: int = 0

    def to_dict(self):
        return asdict(self)


def detect_file_type(filename):
    name = (filename or '').lower()
    if name.endswith(('.xlsx', '.xls')):
        return 'excel'
    if name.endswith('.csv'):
        return 'csv'
    if name.endswith('.pdf'):
        return 'pdf'
    return 'unknown'


def find_columns(headers):
    """Map field -> original header for every field found in `headers`.

    A header containing a mapping term wins over a short header contained
    in a term, so 'Póliza' goes to numero_poliza rather than tipo_poliza.
    """
    normalized = [normalize_header(h) for h in headers]
    claimed, found = set(), {}
    rules = (
        lambda term, h: term in h,
        lambda term, h: len(h) >= 3 and h in term,
    )
    for matches in rules:
        for target, terms in COLUMN_MAPPINGS.items():
            if target in found:
                continue
            for term in terms:
                term = normalize_header(term)
                idx = next((
                    i for i, h in enumerate(normalized)
                    if h and i not in claimed and matches(term, h)
                ), None)
                if idx is not None:
                    found[target] = headers[idx]
                    claimed.add(idx)
                    break
    return found


def _fold(value):
    s = unicodedata.normalize('NFKD', str(value or ''))
    return ''.join(c for c in s if not unicodedata.combining(c)).lower().strip()


def map_policy_type(value) -> Optional[str]:
    """Free-text cover description -> canonical tipo_poliza, or None."""
    v = _fold(value)
    if not v:
        return None
    if ('todo riesgo' in v and 'franquicia' in v and 'sin' not in v) or 'tr franquicia' in v:
        return 'todo_riesgo_franquicia'
    if any(k in v for k in ('todo riesgo', 'todoriesgo', 'all risk', 'comprehensive', 'sin franquicia')):
        return 'todo_riesgo_sin_franquicia'
    if any(k in v for k in ('terceros ampliado', 'terceros +', 'terceros+', 'extended')):
        return 'terceros_ampliado'
    if 'terceros' in v or 'basic' in v:
        return 'terceros_basico'
    return None


_COMPANY_KEYWORDS = (
    ('axa', 'AXA'), ('mapfre', 'Mapfre'), ('allianz', 'Allianz'), ('zurich', 'Zurich'),
    ('generali', 'Generali'), ('mutua', 'Mutua Madrileña'), ('linea', 'Línea Directa'),
    ('pelayo', 'Pelayo'), ('reale', 'Reale'),
)


def match_company(value) -> Optional[str]:
    """Insurer name -> one of INSURANCE_COMPANIES ('Otra' when unknown, None when empty)."""
    v = _fold(value)
    if not v:
        return None
    for keyword, company in _COMPANY_KEYWORDS:
        if keyword in v:
            return company
    return 'Otra'


def _failure(file_type, *errors):
    return ParseResult(success=False, errors=list(errors), file_type=file_type)


def _count_matches(result, vehicles):
    if not vehicles:
        result.unmatched_count = len(result.policies)
        return result
    plates = {normalize_matricula(v.get('matricula')) for v in vehicles if v.get('matricula')}
    result.matched_count = sum(1 for p in result.policies if p['matricula'] in plates)
    result.unmatched_count = len(result.policies) - result.matched_count
    return result


def _parse_rows(df, file_type):
    headers = [str(c) for c in df.columns]
    df.columns = headers
    columns = find_columns(headers)
    errors, policies = [], []

    plate_col = columns.get('matricula')
    if not plate_col:
        return ParseResult(success=False, errors=[NO_PLATE_COLUMN_ERROR], file_type=file_type)

    stamp = int(time.time() * 1000)

    def cell(row, target):
        col = columns.get(target)
        return safe_str(row.get(col)) if col else None

    for idx, row in enumerate(df.to_dict('records')):
        matricula = normalize_matricula(cell(row, 'matricula'))
        if not matricula:
            errors.append(f'Fila {idx + 2}: Matrícula vacía o inválida')
            continue
        raw_type = cell(row, 'tipo_poliza') or DEFAULT_POLICY_TYPE
        policies.append({
            'numero_poliza': cell(row, 'numero_poliza') or f'AUTO-{stamp}-{idx}',
            'matricula': matricula,
            'marca_modelo': cell(row, 'marca_modelo'),
            'compania_aseguradora': match_company(cell(row, 'compania_aseguradora')),
            'tipo_poliza_original': raw_type,
            'tipo_poliza': map_policy_type(raw_type) or 'todo_riesgo_sin_franquicia',
            'fecha_alta': parse_date(cell(row, 'fecha_alta')),
            'fecha_vencimiento': parse_date(cell(row, 'fecha_vencimiento')),
            'prima_anual': parse_number(cell(row, 'prima_anual')),
            'franquicia': parse_number(cell(row, 'franquicia')),
            'tomador_nombre': cell(row, 'tomador_nombre'),
            'tomador_nif': cell(row, 'tomador_nif'),
        })

    return ParseResult(success=len(policies) > 0, policies=policies, errors=errors, file_type=file_type)


def _parse_pdf(file_bytes):
    with pdfplumber.open(io.BytesIO(file_bytes)) as pdf:
        text = '\n'.join(page.extract_text() or '' for page in pdf.pages)
    policy = parse_policy_from_text(text)
    if not policy:
        return _failure('pdf', PDF_MANUAL_ERROR)
    return ParseResult(success=True, policies=[policy], file_type='pdf')


def parse_insurance_file(file_bytes: bytes, filename: str, vehicles=None) -> ParseResult:
    """Parse an insurer file by extension.

    Args:
        file_bytes: Raw upload content
        filename: Original name, used to pick the reader
        vehicles: Optional vehicle rows; fills matched_count/unmatched_count by plate

    Returns:
        ParseResult. Never raises for malformed input.
    """
    file_type = detect_file_type(filename)
    if file_type == 'unknown':
        return _failure(file_type, f'Tipo de archivo no soportado: {filename}. Usa .xlsx, .xls, .csv o .pdf')

    try:
        if file_type == 'pdf':
            result = _parse_pdf(file_bytes)
        else:
            df = read_table(file_bytes, file_type)
            if df is None or df.empty:
                return _failure(file_type, EMPTY_FILE_ERROR)
            result = _parse_rows(df, file_type)
    except Exception as e:
        logger.warning(f'Failed to parse insurance file {filename}: {e}')
        return _failure(file_type, f'Error al procesar el archivo: {e}')

    return _count_matches(result, vehicles)
