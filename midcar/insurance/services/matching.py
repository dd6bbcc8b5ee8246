"""Match imported policies to stock vehicles by licence plate."""

from ..parsers.utils import normalize_matricula


def match_policies_with_vehicles(policies, vehicles):
    """Split parsed policies into matched/unmatched against unsold vehicles.

    Returns:
        {'matched': [{policy, vehicle_id, vehicle_name, matricula}],
         'unmatched': [policy],
         'vehicles_without_policy': [matricula]}
    """
    active = [v for v in vehicles if v.get('estado') != 'vendido' and v.get('matricula')]
    by_plate = {}
    for v in active:
        by_plate.setdefault(normalize_matricula(v['matricula']), v)

    matched, unmatched = [], []
    for policy in policies:
        vehicle = by_plate.get(normalize_matricula(policy.get('matricula')))
        if vehicle:
            matched.append({
                'policy': policy,
                'vehicle_id': vehicle['id'],
                'vehicle_name': f"{vehicle.get('marca') or ''} {vehicle.get('modelo') or ''}".strip(),
                'matricula': vehicle['matricula'],
            })
        else:
            unmatched.append(policy)

    imported = {normalize_matricula(p.get('matricula')) for p in policies}
    without_policy = [v['matricula'] for v in active if normalize_matricula(v['matricula']) not in imported]

    return {
        'matched': matched,
        'unmatched': unmatched,
        'vehicles_without_policy': without_policy,
    }
