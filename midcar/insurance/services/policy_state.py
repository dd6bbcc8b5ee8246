"""Insurance state of stock vehicles, derived from their active policy."""

import math
from datetime import date, datetime
from typing import Optional

from inventory.services.vehicle_metrics import parse_date
from ..parsers.utils import normalize_matricula

INSURANCE_STATES = ('sin_seguro', 'asegurado', 'por_vencer', 'vencido', 'en_tramite')

EXPIRING_DAYS = 30


def days_remaining(fecha_vencimiento, now=None) -> Optional[int]:
    """Whole days until expiry, rounded up (negative once expired)."""
    expiry = parse_date(fecha_vencimiento)
    if expiry is None:
        return None
    now = now or datetime.now()
    if not isinstance(now, datetime):
        now = datetime.combine(now, datetime.min.time())
    delta = datetime.combine(expiry, datetime.min.time()) - now
    return math.ceil(delta.total_seconds() / 86400)


def compute_insurance_state(policy, now=None) -> str:
    """sin_seguro / en_tramite / vencido / por_vencer / asegurado."""
    if not policy or policy.get('estado') == 'cancelada':
        return 'sin_seguro'
    if policy.get('estado') == 'en_tramite':
        return 'en_tramite'
    days = days_remaining(policy.get('fecha_vencimiento'), now)
    if days is None:
        return 'sin_seguro'
    if days < 0:
        return 'vencido'
    if days <= EXPIRING_DAYS:
        return 'por_vencer'
    return 'asegurado'


def _best_policy(current, candidate):
    """Prefer the policy that expires last."""
    if current is None:
        return candidate
    a = parse_date(current.get('fecha_vencimiento')) or date.min
    b = parse_date(candidate.get('fecha_vencimiento')) or date.min
    return candidate if b > a else current


def build_vehicle_insurance(vehicles, policies, now=None):
    """Pair every unsold vehicle with its latest non-cancelled policy and state.

    Policies link by vehiculo_id, falling back to the normalized plate.
    """
    by_vehicle, by_plate = {}, {}
    for p in policies:
        if p.get('estado') == 'cancelada':
            continue
        if p.get('vehiculo_id'):
            by_vehicle[p['vehiculo_id']] = _best_policy(by_vehicle.get(p['vehiculo_id']), p)
        plate = normalize_matricula(p.get('vehiculo_matricula'))
        if plate:
            by_plate[plate] = _best_policy(by_plate.get(plate), p)

    result = []
    for v in vehicles:
        if v.get('estado') == 'vendido':
            continue
        policy = by_vehicle.get(v.get('id')) or by_plate.get(normalize_matricula(v.get('matricula')))
        result.append({
            'vehicle': v,
            'policy': policy,
            'state': compute_insurance_state(policy, now),
            'days_remaining': days_remaining(policy.get('fecha_vencimiento'), now) if policy else None,
        })
    return result


def count_states(entries):
    counts = {state: 0 for state in INSURANCE_STATES}
    for entry in entries:
        counts[entry['state']] += 1
    counts['total'] = len(entries)
    return counts
