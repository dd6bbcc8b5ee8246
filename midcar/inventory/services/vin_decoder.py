"""
VIN Decoder

Offline decoding from the World Manufacturer Identifier (positions 1-3) and
the model-year code (position 10), plus an optional full decode through the
free NHTSA vPIC API:

    https://vpic.nhtsa.dot.gov/api/vehicles/decodevin/{VIN}?format=json

The API is best-effort: any network or HTTP failure falls back to the
offline decode, so callers always get a result.
"""

import os
import re
import logging
from typing import Optional

import requests

from database import cached

logger = logging.getLogger('midcar.inventory.vin')

VIN_API_URL = os.environ.get('VIN_API_URL', 'https://vpic.nhtsa.dot.gov/api/vehicles/decodevin/{vin}?format=json')
VIN_API_TIMEOUT = float(os.environ.get('VIN_API_TIMEOUT', '5'))
VIN_CACHE_TTL = 24 * 3600

UNKNOWN_MANUFACTURER = 'Fabricante no identificado'
UNKNOWN_YEAR = 'Año no identificado'

# 17 chars, letters I, O and Q are never used
VIN_RE = re.compile(r'^[A-HJ-NPR-Z0-9]{17}$', re.IGNORECASE)

WMI_CODES = {
    # Germany
    'WVW': 'Volkswagen', 'WV1': 'Volkswagen CV', 'WV2': 'Volkswagen CV',
    'WBA': 'BMW', 'WBS': 'BMW M', 'WBY': 'BMW i',
    'WDB': 'Mercedes-Benz', 'WDC': 'Mercedes-Benz', 'WDD': 'Mercedes-Benz',
    'WAU': 'Audi', 'WUA': 'Audi Quattro',
    'W0L': 'Opel',
    # France
    'VF1': 'Renault', 'VF3': 'Peugeot', 'VF7': 'Citroën',
    # Spain
    'VSS': 'SEAT', 'VR1': 'Citroën Spain', 'VSK': 'Nissan Spain',
    # Italy
    'ZFA': 'Fiat', 'ZFF': 'Ferrari', 'ZAM': 'Maserati', 'ZAR': 'Alfa Romeo',
    'ZLA': 'Lancia',
    # Japan
    'JTD': 'Toyota', 'JMZ': 'Mazda', 'JN1': 'Nissan', 'JHM': 'Honda',
    # UK
    'SAL': 'Land Rover', 'SAJ': 'Jaguar', 'SCC': 'Lotus',
    # Czech Republic / Hungary
    'TMB': 'Škoda', 'TRU': 'Audi Hungary',
    # Romania
    'UU1': 'Dacia',
    # Sweden
    'YV1': 'Volvo', 'YS3': 'Saab',
    # USA (and Ford Germany)
    'WF0': 'Ford', '1FA': 'Ford', '1G1': 'Chevrolet', '1GC': 'GMC',
    '1HD': 'Harley-Davidson', '2HM': 'Hyundai USA', '5YJ': 'Tesla',
    # Korea
    'KMH': 'Hyundai', 'KNA': 'Kia', 'KNM': 'Renault Samsung',
}

# Position 10. The 30-year cycle repeats, newest cycle wins.
YEAR_CODES = {
    'A': 2010, 'B': 2011, 'C': 2012, 'D': 2013, 'E': 2014,
    'F': 2015, 'G': 2016, 'H': 2017, 'J': 2018, 'K': 2019,
    'L': 2020, 'M': 2021, 'N': 2022, 'P': 2023, 'R': 2024,
    'S': 2025, 'T': 2026, 'V': 2027, 'W': 2028, 'X': 2029, 'Y': 2030,
    '1': 2001, '2': 2002, '3': 2003, '4': 2004, '5': 2005,
    '6': 2006, '7': 2007, '8': 2008, '9': 2009,
}

# vPIC variable name -> result key
_VPIC_FIELDS = {
    'Manufacturer Name': 'manufacturer',
    'Make': 'make',
    'Model': 'model',
    'Model Year': 'year',
    'Vehicle Type': 'vehicle_type',
    'Body Class': 'body_class',
    'Drive Type': 'drive_type',
    'Fuel Type - Primary': 'fuel_type',
    'Engine Number of Cylinders': 'engine_cylinders',
    'Displacement (L)': 'engine_displacement',
    'Transmission Style': 'transmission',
    'Doors': 'doors',
    'Plant Country': 'plant_country',
    'Plant City': 'plant_city',
}


def normalize_vin(vin: str) -> str:
    return (vin or '').strip().upper()


def validate_vin(vin: str) -> bool:
    """17 chars from [A-HJ-NPR-Z0-9], case-insensitive."""
    if not vin:
        return False
    return bool(VIN_RE.match(vin))


def decode_vin_basic(vin: str) -> dict:
    """Decode manufacturer and model year without any network call."""
    vin = normalize_vin(vin)
    wmi = vin[:3]
    year_code = vin[9:10]
    year = YEAR_CODES.get(year_code)
    return {
        'vin': vin,
        'is_valid': validate_vin(vin),
        'wmi': wmi,
        'vds': vin[3:9],
        'vis': vin[9:17],
        'plant_code': vin[10:11],
        'serial_number': vin[11:17],
        'manufacturer': WMI_CODES.get(wmi, UNKNOWN_MANUFACTURER),
        'year': str(year) if year else UNKNOWN_YEAR,
    }


def _empty_full(basic: dict) -> dict:
    result = dict(basic)
    result['make'] = basic['manufacturer']
    for key in _VPIC_FIELDS.values():
        result.setdefault(key, '')
    result['source'] = 'offline'
    return result


@cached(ttl=VIN_CACHE_TTL)
def _fetch_vpic(vin: str) -> Optional[dict]:
    """GET the vPIC decode and return {Variable: Value}, or None on failure."""
    url = VIN_API_URL.format(vin=vin)
    try:
        response = requests.get(url, headers={'Accept': 'application/json'}, timeout=VIN_API_TIMEOUT)
        if response.status_code != 200:
            logger.warning(f'vPIC API error for {vin}: HTTP {response.status_code}')
            return None
        results = response.json().get('Results') or []
        return {r.get('Variable'): r.get('Value') for r in results if r.get('Variable')}
    except (requests.RequestException, ValueError) as e:
        logger.warning(f'vPIC decode failed for {vin}, using offline decode: {e}')
        return None


def decode_vin_full(vin: str) -> dict:
    """Decode via the vPIC API, falling back to decode_vin_basic()."""
    basic = decode_vin_basic(vin)
    default = _empty_full(basic)
    if not basic['is_valid']:
        default['is_valid'] = False
        default['error_message'] = 'VIN no válido'
        return default

    values = _fetch_vpic(basic['vin'])
    if values is None:
        return default

    error_code = (values.get('Error Code') or '').strip()
    if error_code and error_code != '0':
        default['is_valid'] = False
        default['error_message'] = values.get('Error Text') or 'VIN no válido'
        return default

    result = dict(basic)
    for variable, key in _VPIC_FIELDS.items():
        result[key] = values.get(variable) or ''
    result['manufacturer'] = result['manufacturer'] or basic['manufacturer']
    result['make'] = result['make'] or basic['manufacturer']
    result['year'] = result['year'] or basic['year']
    result['is_valid'] = True
    result['source'] = 'nhtsa'
    return result


def clear_cache():
    """Drop memoized vPIC responses."""
    _fetch_vpic.invalidate()


# ============== Mapping to vehicle form fields ==============

_FUEL_MAP = [
    ('plug-in', 'hibrido'),
    ('hybrid', 'hibrido'),
    ('electric', 'electrico'),
    ('diesel', 'diesel'),
    ('gasoline', 'gasolina'),
    ('petrol', 'gasolina'),
    ('liquefied petroleum', 'glp'),
    ('lpg', 'glp'),
    ('compressed natural gas', 'gnc'),
    ('cng', 'gnc'),
]


def _map_fuel(value):
    v = (value or '').lower()
    for needle, fuel in _FUEL_MAP:
        if needle in v:
            return fuel
    return None


def _map_transmission(value):
    v = (value or '').lower()
    if not v:
        return None
    if 'manual' in v:
        return 'manual'
    if 'automated manual' in v or 'dct' in v or 'dual' in v:
        return 'semiautomatico'
    if 'auto' in v or 'cvt' in v:
        return 'automatico'
    return None


def _to_int(value):
    try:
        return int(float(str(value).replace(',', '.')))
    except (TypeError, ValueError):
        return None


def map_to_vehicle_fields(decoded: dict) -> dict:
    """Translate a decode result into vehicle form fields, dropping unknowns."""
    fields = {'vin': decoded.get('vin')}
    make = decoded.get('make') or decoded.get('manufacturer')
    if make and make != UNKNOWN_MANUFACTURER:
        fields['marca'] = make.title() if make.isupper() else make
    if decoded.get('model'):
        fields['modelo'] = decoded['model']
    year = _to_int(decoded.get('year'))
    if year:
        fields['año_fabricacion'] = year
    fuel = _map_fuel(decoded.get('fuel_type'))
    if fuel:
        fields['combustible'] = fuel
    displacement = decoded.get('engine_displacement')
    if displacement:
        try:
            fields['cilindrada'] = int(round(float(str(displacement).replace(',', '.')) * 1000))
        except ValueError:
            pass
    doors = _to_int(decoded.get('doors'))
    if doors:
        fields['num_puertas'] = doors
    transmission = _map_transmission(decoded.get('transmission'))
    if transmission:
        fields['transmision'] = transmission
    if decoded.get('body_class'):
        fields['tipo_carroceria'] = decoded['body_class']
    return {k: v for k, v in fields.items() if v is not None}
