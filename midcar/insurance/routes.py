"""Insurance API routes — policies, per-vehicle state, insurer file import."""

import logging
from flask import jsonify, request
from flask_login import current_user

from . import insurance_bp
from .repositories import PolicyRepository
from .parsers import parse_insurance_file
from .services.policy_state import build_vehicle_insurance, count_states, INSURANCE_STATES
from .services.matching import match_policies_with_vehicles
from .services.import_service import InsuranceImportService
from inventory.repositories import VehicleRepository
from core.utils.logging_config import LogContext
from core.utils.api_helpers import (
    permission_required, get_json_or_error, get_pagination, safe_error_response, error_response,
)

logger = logging.getLogger('midcar.insurance.routes')

_policy_repo = PolicyRepository()
_vehicle_repo = VehicleRepository()
_import_service = InsuranceImportService()

MAX_UPLOAD_BYTES = 10 * 1024 * 1024


# ════════════════════════════════════════════════════════════════
# Policies
# ════════════════════════════════════════════════════════════════

@insurance_bp.route('/api/insurance/policies', methods=['GET'])
@permission_required('insurance', 'view')
def api_policies():
    limit, offset = get_pagination(default_limit=100)
    rows, total = _policy_repo.get_all(
        estado=request.args.get('estado'),
        compania=request.args.get('compania'),
        search=request.args.get('search'),
        vehiculo_id=request.args.get('vehiculo_id', type=int),
        limit=limit, offset=offset,
    )
    return jsonify({'policies': rows, 'total': total})


@insurance_bp.route('/api/insurance/policies/next-number', methods=['GET'])
@permission_required('insurance', 'view')
def api_policy_next_number():
    return jsonify({'numero_poliza': _policy_repo.generate_policy_number()})


@insurance_bp.route('/api/insurance/policies/<int:policy_id>', methods=['GET'])
@permission_required('insurance', 'view')
def api_policy_detail(policy_id):
    policy = _policy_repo.get_by_id(policy_id)
    if not policy:
        return error_response('Not found', 404)
    return jsonify({'policy': policy})


@insurance_bp.route('/api/insurance/policies', methods=['POST'])
@permission_required('insurance', 'edit')
def api_policy_create():
    data, error = get_json_or_error()
    if error:
        return error
    try:
        if data.get('vehiculo_id') and not data.get('vehiculo_matricula'):
            vehicle = _vehicle_repo.get_by_id(data['vehiculo_id'])
            if vehicle:
                data['vehiculo_matricula'] = vehicle.get('matricula')
        policy = _policy_repo.create(data, user_id=current_user.id, user_name=current_user.name)
        return jsonify({'success': True, 'policy': policy}), 201
    except Exception as e:
        return safe_error_response(e)


@insurance_bp.route('/api/insurance/policies/<int:policy_id>', methods=['PUT'])
@permission_required('insurance', 'edit')
def api_policy_update(policy_id):
    data, error = get_json_or_error()
    if error:
        return error
    try:
        policy = _policy_repo.update(policy_id, data)
        if not policy:
            return error_response('Not found or no editable fields', 404)
        return jsonify({'success': True, 'policy': policy})
    except Exception as e:
        return safe_error_response(e)


@insurance_bp.route('/api/insurance/policies/<int:policy_id>', methods=['DELETE'])
@permission_required('insurance', 'delete')
def api_policy_delete(policy_id):
    if _policy_repo.delete(policy_id):
        return jsonify({'success': True})
    return error_response('Not found', 404)


# ════════════════════════════════════════════════════════════════
# Fleet state
# ════════════════════════════════════════════════════════════════

@insurance_bp.route('/api/insurance/vehicles', methods=['GET'])
@permission_required('insurance', 'view')
def api_insurance_vehicles():
    """Unsold vehicles with their policy, state and days remaining (?state= filter)."""
    entries = build_vehicle_insurance(_vehicle_repo.get_active_with_plates(), _policy_repo.get_for_state())
    summary = count_states(entries)
    state = request.args.get('state')
    if state in INSURANCE_STATES:
        entries = [e for e in entries if e['state'] == state]
    return jsonify({'vehicles': entries, 'summary': summary})


@insurance_bp.route('/api/insurance/expiring', methods=['GET'])
@permission_required('insurance', 'view')
def api_insurance_expiring():
    days = request.args.get('days', 30, type=int)
    return jsonify({'policies': _policy_repo.get_expiring(days), 'days': days})


@insurance_bp.route('/api/insurance/vehicles/<int:vehicle_id>/policy', methods=['GET'])
@permission_required('insurance', 'view')
def api_vehicle_policy(vehicle_id):
    return jsonify({'policy': _policy_repo.get_by_vehicle(vehicle_id)})


# ════════════════════════════════════════════════════════════════
# Import
# ════════════════════════════════════════════════════════════════

@insurance_bp.route('/api/insurance/import/preview', methods=['POST'])
@permission_required('insurance', 'edit')
def api_insurance_import_preview():
    """Parse an uploaded insurer file and match it against stock. Nothing is saved."""
    upload = request.files.get('file')
    if not upload or not upload.filename:
        return error_response('No file provided')
    content = upload.read()
    if len(content) > MAX_UPLOAD_BYTES:
        return error_response('File too large (max 10 MB)', 413)

    vehicles = _vehicle_repo.get_active_with_plates()
    with LogContext(import_file=upload.filename, user_id=current_user.id):
        result = parse_insurance_file(content, upload.filename, vehicles=vehicles)
        matching = match_policies_with_vehicles(result.policies, vehicles)
        logger.info(f'Insurance preview {upload.filename}: {len(result.policies)} policies, '
                    f'{len(matching["matched"])} matched')
    return jsonify({**result.to_dict(), **matching})


@insurance_bp.route('/api/insurance/import/confirm', methods=['POST'])
@permission_required('insurance', 'edit')
def api_insurance_import_confirm():
    """Persist the matched policies returned by the preview: {matched: [...]}."""
    data, error = get_json_or_error()
    if error:
        return error
    matched = data.get('matched') or []
    if not isinstance(matched, list) or not matched:
        return error_response('matched must be a non-empty list')
    try:
        stats = _import_service.import_policies(matched, user_id=current_user.id, user_name=current_user.name)
        return jsonify({'success': True, 'stats': stats})
    except Exception as e:
        return safe_error_response(e)
