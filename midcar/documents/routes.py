"""Documents API routes — numbered documents, their PDFs and seller companies."""

import logging
from flask import jsonify, request, send_file
from flask_login import current_user

from . import documents_bp
from .constants import DOCUMENT_TYPES
from .repositories import DocumentRepository, EmpresaRepository
from .services.economics import compute_economics
from .services.pdf_generator import generate_document_pdf
from inventory.repositories import VehicleRepository
from core.utils.api_helpers import (
    permission_required, admin_required, get_json_or_error, get_pagination,
    safe_error_response, error_response,
)

logger = logging.getLogger('midcar.documents.routes')

_document_repo = DocumentRepository()
_empresa_repo = EmpresaRepository()
_vehicle_repo = VehicleRepository()


def _resolve_empresa(data):
    """Company for a new document: empresa_id if given, else the principal one."""
    if data.get('empresa_id'):
        return _empresa_repo.get_by_id(data['empresa_id'])
    return _empresa_repo.get_principal()


def _resolve_vehicle(data):
    """Vehicle block: request values over the stored vehicle row."""
    vehiculo = dict(data.get('vehiculo') or {})
    vehicle_id = vehiculo.get('id') or data.get('vehiculo_id')
    if vehicle_id:
        stored = _vehicle_repo.get_by_id(vehicle_id) or {}
        vehiculo = {**stored, **vehiculo}
    return vehiculo


# ════════════════════════════════════════════════════════════════
# Documents
# ════════════════════════════════════════════════════════════════

@documents_bp.route('/api/documents/types', methods=['GET'])
@permission_required('documents', 'view')
def api_document_types():
    return jsonify({'types': [
        {'id': tipo, 'name': cfg['title'], 'prefix': cfg['prefix']} for tipo, cfg in DOCUMENT_TYPES.items()
    ]})


@documents_bp.route('/api/documents/economics', methods=['GET'])
@permission_required('documents', 'view')
def api_document_economics():
    """IVA breakdown preview: ?precio=&iva=."""
    precio = request.args.get('precio', 0, type=float)
    iva = request.args.get('iva', 21, type=float)
    return jsonify(compute_economics(precio, iva))


@documents_bp.route('/api/documents/vehicle/<int:vehicle_id>', methods=['GET'])
@permission_required('documents', 'view')
def api_documents_by_vehicle(vehicle_id):
    return jsonify({'documents': _document_repo.get_by_vehicle(vehicle_id)})


@documents_bp.route('/api/documents/<tipo>/next-number', methods=['GET'])
@permission_required('documents', 'view')
def api_document_next_number(tipo):
    if tipo not in DOCUMENT_TYPES:
        return error_response('Tipo de documento no válido', 404)
    return jsonify({'numero': _document_repo.next_document_number(tipo)})


@documents_bp.route('/api/documents/<tipo>', methods=['GET'])
@permission_required('documents', 'view')
def api_documents(tipo):
    if tipo not in DOCUMENT_TYPES:
        return error_response('Tipo de documento no válido', 404)
    limit, offset = get_pagination()
    rows, total = _document_repo.get_all(
        tipo,
        vehiculo_id=request.args.get('vehiculo_id', type=int),
        estado=request.args.get('estado'),
        limit=limit, offset=offset,
    )
    return jsonify({'documents': rows, 'total': total})


@documents_bp.route('/api/documents/<tipo>', methods=['POST'])
@permission_required('documents', 'edit')
def api_document_create(tipo):
    if tipo not in DOCUMENT_TYPES:
        return error_response('Tipo de documento no válido', 404)
    data, error = get_json_or_error()
    if error:
        return error
    try:
        data['empresa'] = _resolve_empresa(data)
        data['vehiculo'] = _resolve_vehicle(data)
        document = _document_repo.save(tipo, data, user_id=current_user.id)
        return jsonify({'success': True, 'document': document}), 201
    except ValueError as e:
        return error_response(str(e))
    except Exception as e:
        return safe_error_response(e)


@documents_bp.route('/api/documents/<tipo>/<int:doc_id>', methods=['GET'])
@permission_required('documents', 'view')
def api_document_detail(tipo, doc_id):
    if tipo not in DOCUMENT_TYPES:
        return error_response('Tipo de documento no válido', 404)
    document = _document_repo.get_by_id(tipo, doc_id)
    if not document:
        return error_response('Not found', 404)
    return jsonify({'document': document})


@documents_bp.route('/api/documents/<tipo>/<int:doc_id>/pdf', methods=['GET'])
@permission_required('documents', 'view')
def api_document_pdf(tipo, doc_id):
    if tipo not in DOCUMENT_TYPES:
        return error_response('Tipo de documento no válido', 404)
    document = _document_repo.get_by_id(tipo, doc_id)
    if not document:
        return error_response('Not found', 404)
    empresa = _empresa_repo.get_by_id(document['empresa_id']) if document.get('empresa_id') else None
    output = generate_document_pdf(tipo, document, empresa)
    numero = document.get(DOCUMENT_TYPES[tipo]['column']) or doc_id
    return send_file(output, mimetype='application/pdf', as_attachment=True, download_name=f'{numero}.pdf')


@documents_bp.route('/api/documents/<tipo>/<int:doc_id>/estado', methods=['PUT'])
@permission_required('documents', 'edit')
def api_document_estado(tipo, doc_id):
    if tipo not in DOCUMENT_TYPES:
        return error_response('Tipo de documento no válido', 404)
    data, error = get_json_or_error()
    if error:
        return error
    try:
        document = _document_repo.update_estado(tipo, doc_id, data.get('estado'))
        if not document:
            return error_response('Not found', 404)
        return jsonify({'success': True, 'document': document})
    except ValueError as e:
        return error_response(str(e))


@documents_bp.route('/api/documents/<tipo>/<int:doc_id>', methods=['DELETE'])
@admin_required
def api_document_delete(tipo, doc_id):
    if tipo not in DOCUMENT_TYPES:
        return error_response('Tipo de documento no válido', 404)
    if _document_repo.delete(tipo, doc_id):
        logger.info(f'Document {tipo}/{doc_id} deleted by {current_user.email}')
        return jsonify({'success': True})
    return error_response('Not found', 404)


# ════════════════════════════════════════════════════════════════
# Empresas
# ════════════════════════════════════════════════════════════════

@documents_bp.route('/api/empresas', methods=['GET'])
@permission_required('documents', 'view')
def api_empresas():
    return jsonify({'empresas': _empresa_repo.get_all()})


@documents_bp.route('/api/empresas/principal', methods=['GET'])
@permission_required('documents', 'view')
def api_empresa_principal():
    return jsonify({'empresa': _empresa_repo.get_principal()})


@documents_bp.route('/api/empresas', methods=['POST'])
@admin_required
def api_empresa_create():
    data, error = get_json_or_error()
    if error:
        return error
    try:
        return jsonify({'success': True, 'empresa': _empresa_repo.create(data)}), 201
    except ValueError as e:
        return error_response(str(e))
    except Exception as e:
        return safe_error_response(e)


@documents_bp.route('/api/empresas/<int:empresa_id>', methods=['PUT'])
@admin_required
def api_empresa_update(empresa_id):
    data, error = get_json_or_error()
    if error:
        return error
    try:
        empresa = _empresa_repo.update(empresa_id, data)
        if not empresa:
            return error_response('Not found or no editable fields', 404)
        return jsonify({'success': True, 'empresa': empresa})
    except ValueError as e:
        return error_response(str(e))
    except Exception as e:
        return safe_error_response(e)


@documents_bp.route('/api/empresas/<int:empresa_id>', methods=['DELETE'])
@admin_required
def api_empresa_delete(empresa_id):
    if _empresa_repo.delete(empresa_id):
        return jsonify({'success': True})
    return error_response('Not found', 404)
