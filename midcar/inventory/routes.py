"""Inventory API routes: vehicle CRUD, stats, exports and VIN decoding."""

import logging
from flask import jsonify, request
from flask_login import current_user

from . import inventory_bp
from .repositories import VehicleRepository
from .services.vehicle_metrics import enrich_vehicle, validate_vehicle, VEHICLE_STATES
from .services.vin_decoder import (
    validate_vin, decode_vin_basic, decode_vin_full, map_to_vehicle_fields, normalize_vin,
)
from core.utils.api_helpers import (
    permission_required, get_json_or_error, get_pagination, get_bool_arg,
    scope_owner_id, safe_error_response, error_response,
)
from core.services.export_service import VEHICLE_COLUMNS, export_response

logger = logging.getLogger('midcar.inventory.routes')

_vehicle_repo = VehicleRepository()


def _invalidate_dashboard():
    from dashboard.services.dashboard_service import invalidate_dashboard
    invalidate_dashboard()


def _search_kwargs():
    args = request.args
    estado = args.get('estado')
    return dict(
        estado=estado.split(',') if estado and ',' in estado else estado,
        marca=args.get('marca'),
        combustible=args.get('combustible'),
        precio_min=args.get('precio_min', type=float),
        precio_max=args.get('precio_max', type=float),
        year_min=args.get('year_min', type=int),
        year_max=args.get('year_max', type=int),
        destacado=get_bool_arg('destacado'),
        search=args.get('search'),
        owner_id=scope_owner_id(),
        sort_by=args.get('sort_by'),
        sort_order=args.get('sort_order'),
    )


# ════════════════════════════════════════════════════════════════
# Vehicles
# ════════════════════════════════════════════════════════════════

@inventory_bp.route('/api/vehicles', methods=['GET'])
@permission_required('inventory', 'view')
def api_vehicles():
    if request.args.get('format'):
        return api_vehicles_export()
    limit, offset = get_pagination()
    rows, total = _vehicle_repo.get_all(limit=limit, offset=offset, **_search_kwargs())
    return jsonify({'vehicles': [enrich_vehicle(r) for r in rows], 'total': total})


@inventory_bp.route('/api/vehicles/export', methods=['GET'])
@permission_required('inventory', 'export')
def api_vehicles_export():
    rows, _ = _vehicle_repo.get_all(limit=50000, offset=0, **_search_kwargs())
    try:
        return export_response(rows, VEHICLE_COLUMNS, request.args.get('format', 'xlsx'),
                               'Inventario de Vehículos', 'inventario')
    except ValueError as e:
        return error_response(str(e))


@inventory_bp.route('/api/vehicles/stats', methods=['GET'])
@permission_required('inventory', 'view')
def api_vehicle_stats():
    return jsonify(_vehicle_repo.get_stats())


@inventory_bp.route('/api/vehicles/brands', methods=['GET'])
@permission_required('inventory', 'view')
def api_vehicle_brands():
    return jsonify({'brands': _vehicle_repo.get_brands()})


@inventory_bp.route('/api/vehicles/<int:vehicle_id>', methods=['GET'])
@permission_required('inventory', 'view')
def api_vehicle_detail(vehicle_id):
    vehicle = _vehicle_repo.get_by_id(vehicle_id)
    if not vehicle:
        return error_response('Not found', 404)
    return jsonify({'vehicle': enrich_vehicle(vehicle)})


@inventory_bp.route('/api/vehicles', methods=['POST'])
@permission_required('inventory', 'edit')
def api_vehicle_create():
    data, error = get_json_or_error()
    if error:
        return error
    try:
        validate_vehicle(data)
        if data.get('vin') and not validate_vin(normalize_vin(data['vin'])):
            return error_response('VIN no válido')
        if data.get('matricula') and _vehicle_repo.get_by_matricula(data['matricula']):
            return error_response('Ya existe un vehículo con esa matrícula', 409)
        vehicle = _vehicle_repo.create(data, user_id=current_user.id, user_name=current_user.name)
        _invalidate_dashboard()
        logger.info(f"Vehicle {vehicle['stock_id']} created by {current_user.email}")
        return jsonify({'success': True, 'vehicle': enrich_vehicle(vehicle)}), 201
    except Exception as e:
        return safe_error_response(e)


@inventory_bp.route('/api/vehicles/<int:vehicle_id>', methods=['PUT'])
@permission_required('inventory', 'edit')
def api_vehicle_update(vehicle_id):
    data, error = get_json_or_error()
    if error:
        return error
    try:
        validate_vehicle(data, partial=True)
        if data.get('vin') and not validate_vin(normalize_vin(data['vin'])):
            return error_response('VIN no válido')
        vehicle = _vehicle_repo.update(vehicle_id, data)
        if not vehicle:
            return error_response('Not found or no editable fields', 404)
        _invalidate_dashboard()
        return jsonify({'success': True, 'vehicle': enrich_vehicle(vehicle)})
    except Exception as e:
        return safe_error_response(e)


@inventory_bp.route('/api/vehicles/<int:vehicle_id>/estado', methods=['PUT'])
@permission_required('inventory', 'edit')
def api_vehicle_estado(vehicle_id):
    data = request.get_json(silent=True) or {}
    estado = data.get('estado')
    if estado not in VEHICLE_STATES:
        return error_response(f'estado must be one of: {", ".join(VEHICLE_STATES)}')
    vehicle = _vehicle_repo.update_estado(vehicle_id, estado)
    if not vehicle:
        return error_response('Not found', 404)
    _invalidate_dashboard()
    return jsonify({'success': True, 'vehicle': enrich_vehicle(vehicle)})


@inventory_bp.route('/api/vehicles/<int:vehicle_id>', methods=['DELETE'])
@permission_required('inventory', 'delete')
def api_vehicle_delete(vehicle_id):
    if _vehicle_repo.delete(vehicle_id):
        _invalidate_dashboard()
        logger.info(f'Vehicle {vehicle_id} deleted by {current_user.email}')
        return jsonify({'success': True})
    return error_response('Not found', 404)


# ════════════════════════════════════════════════════════════════
# VIN
# ════════════════════════════════════════════════════════════════

@inventory_bp.route('/api/vin/<vin>', methods=['GET'])
@permission_required('inventory', 'view')
def api_vin_decode(vin):
    """Decode a VIN. ?full=1 queries the NHTSA API (with offline fallback)."""
    vin = normalize_vin(vin)
    if not validate_vin(vin):
        return jsonify({'success': False, 'error': 'VIN no válido',
                        'decoded': decode_vin_basic(vin)}), 400
    decoded = decode_vin_full(vin) if get_bool_arg('full') else decode_vin_basic(vin)
    existing = _vehicle_repo.get_all(search=vin, limit=1, offset=0)[0]
    return jsonify({
        'success': True,
        'decoded': decoded,
        'fields': map_to_vehicle_fields(decoded),
        'existing_vehicle_id': existing[0]['id'] if existing else None,
    })
