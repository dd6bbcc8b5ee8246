"""Derived vehicle figures: margin, total cost, days in stock, risk flag."""
from datetime import date, datetime

AT_RISK_DAYS = 60

VEHICLE_STATES = ('disponible', 'reservado', 'vendido', 'taller', 'baja')
FUEL_TYPES = ('gasolina', 'diesel', 'hibrido', 'electrico', 'glp', 'gnc')
TRANSMISSIONS = ('manual', 'automatico', 'semiautomatico')
DGT_LABELS = ('0', 'ECO', 'C', 'B', 'SIN')

# Vehicles still on the lot (and therefore counted as stock)
IN_STOCK_STATES = ('disponible', 'reservado', 'taller')


def _num(value):
    if value is None or value == '':
        return 0.0
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def parse_date(value):
    """date/datetime/ISO string -> date, or None."""
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return datetime.fromisoformat(str(value)[:19]).date()
    except ValueError:
        return None


def coste_total(vehicle):
    """Purchase price + purchase expenses + repairs."""
    return (_num(vehicle.get('precio_compra')) + _num(vehicle.get('gastos_compra'))
            + _num(vehicle.get('coste_reparaciones')))


def margen_bruto(vehicle):
    """Sale price minus discount minus total cost. Missing values count as 0."""
    return _num(vehicle.get('precio_venta')) - _num(vehicle.get('descuento')) - coste_total(vehicle)


def dias_en_stock(vehicle, today=None):
    """Whole days since fecha_entrada_stock (0 when unknown or in the future)."""
    entry = parse_date(vehicle.get('fecha_entrada_stock'))
    if entry is None:
        return 0
    today = today or date.today()
    return max(0, (today - entry).days)


def en_riesgo(vehicle, today=None):
    return dias_en_stock(vehicle, today) > AT_RISK_DAYS or vehicle.get('estado') == 'taller'


def enrich_vehicle(vehicle, today=None):
    """Return a copy of the row with the derived fields added."""
    v = dict(vehicle)
    v['coste_total'] = coste_total(vehicle)
    v['margen_bruto'] = margen_bruto(vehicle)
    v['dias_en_stock'] = dias_en_stock(vehicle, today)
    v['en_riesgo'] = en_riesgo(vehicle, today)
    return v


def validate_vehicle(data, partial=False):
    """Raise ValueError on enum or numeric field violations."""
    if not partial:
        for field in ('marca', 'modelo'):
            if not data.get(field):
                raise ValueError(f'{field} es obligatorio')
    checks = (
        ('estado', VEHICLE_STATES),
        ('combustible', FUEL_TYPES),
        ('transmision', TRANSMISSIONS),
        ('etiqueta_dgt', DGT_LABELS),
    )
    for field, allowed in checks:
        value = data.get(field)
        if value not in (None, '') and value not in allowed:
            raise ValueError(f'{field} no válido: {value}')
    for field in ('precio_compra', 'gastos_compra', 'coste_reparaciones', 'precio_venta',
                  'descuento', 'kilometraje'):
        value = data.get(field)
        if value not in (None, '') and _num(value) < 0:
            raise ValueError(f'{field} no puede ser negativo')
