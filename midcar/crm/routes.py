"""CRM API routes — leads, contacts, clients, interactions, sales."""

import logging
from datetime import date
from flask import jsonify, request
from flask_login import current_user

from . import crm_bp
from .repositories import (
    LeadRepository, ContactRepository, ClientRepository, InteractionRepository, SaleRepository,
)
from .repositories.lead_repository import LEAD_STATES
from .services.crm_service import (
    SaleService, compute_lead_stats, compute_sales_stats, compute_monthly_sales,
)
from core.utils.api_helpers import (
    permission_required, get_json_or_error, get_pagination, scope_owner_id,
    safe_error_response, error_response,
)
from core.services.export_service import (
    LEAD_COLUMNS, CONTACT_COLUMNS, CLIENT_COLUMNS, INTERACTION_COLUMNS, SALE_COLUMNS, export_response,
)

logger = logging.getLogger('midcar.crm.routes')

_lead_repo = LeadRepository()
_contact_repo = ContactRepository()
_client_repo = ClientRepository()
_interaction_repo = InteractionRepository()
_sale_repo = SaleRepository()
_sale_service = SaleService()


def _invalidate_dashboard():
    from dashboard.services.dashboard_service import invalidate_dashboard
    invalidate_dashboard()


def _export(rows, columns, title, basename):
    try:
        return export_response(rows, columns, request.args.get('format', 'xlsx'), title, basename)
    except ValueError as e:
        return error_response(str(e))


# ════════════════════════════════════════════════════════════════
# Leads
# ════════════════════════════════════════════════════════════════

def _lead_filters():
    return dict(
        grupo=request.args.get('grupo'),
        estado=request.args.get('estado'),
        prioridad=request.args.get('prioridad'),
        search=request.args.get('search'),
        owner_id=scope_owner_id(),
        sort_by=request.args.get('sort_by'),
        sort_order=request.args.get('sort_order'),
    )


@crm_bp.route('/api/leads', methods=['GET'])
@permission_required('crm', 'view')
def api_leads():
    if request.args.get('format'):
        return api_leads_export()
    limit, offset = get_pagination()
    rows, total = _lead_repo.get_all(limit=limit, offset=offset, **_lead_filters())
    return jsonify({'leads': rows, 'total': total})


@crm_bp.route('/api/leads/export', methods=['GET'])
@permission_required('crm', 'export')
def api_leads_export():
    rows, _ = _lead_repo.get_all(limit=50000, offset=0, **_lead_filters())
    return _export(rows, LEAD_COLUMNS, 'Leads', 'leads')


@crm_bp.route('/api/leads/stats', methods=['GET'])
@permission_required('crm', 'view')
def api_lead_stats():
    return jsonify(compute_lead_stats(_lead_repo.get_stats_rows(owner_id=scope_owner_id())))


@crm_bp.route('/api/leads/pending-actions', methods=['GET'])
@permission_required('crm', 'view')
def api_lead_pending_actions():
    return jsonify({'leads': _lead_repo.get_pending_actions(owner_id=scope_owner_id())})


@crm_bp.route('/api/leads/<int:lead_id>', methods=['GET'])
@permission_required('crm', 'view')
def api_lead_detail(lead_id):
    lead = _lead_repo.get_by_id(lead_id)
    if not lead:
        return error_response('Not found', 404)
    lead['interactions'] = _interaction_repo.get_by_lead(lead_id)
    return jsonify({'lead': lead})


@crm_bp.route('/api/leads', methods=['POST'])
@permission_required('crm', 'edit')
def api_lead_create():
    data, error = get_json_or_error()
    if error:
        return error
    if not data.get('cliente_nombre') and not data.get('cliente_id'):
        return error_response('cliente_nombre or cliente_id is required')
    if data.get('estado') and data['estado'] not in LEAD_STATES:
        return error_response(f"estado no válido: {data['estado']}")
    try:
        lead = _lead_repo.create(data, user_id=current_user.id, user_name=current_user.name)
        return jsonify({'success': True, 'lead': lead}), 201
    except Exception as e:
        return safe_error_response(e)


@crm_bp.route('/api/leads/<int:lead_id>', methods=['PUT'])
@permission_required('crm', 'edit')
def api_lead_update(lead_id):
    data, error = get_json_or_error()
    if error:
        return error
    try:
        lead = _lead_repo.update(lead_id, data)
        if not lead:
            return error_response('Not found or no editable fields', 404)
        return jsonify({'success': True, 'lead': lead})
    except Exception as e:
        return safe_error_response(e)


@crm_bp.route('/api/leads/<int:lead_id>/estado', methods=['PUT'])
@permission_required('crm', 'edit')
def api_lead_estado(lead_id):
    data = request.get_json(silent=True) or {}
    estado = data.get('estado')
    if estado not in LEAD_STATES:
        return error_response(f'estado must be one of: {", ".join(LEAD_STATES)}')
    lead = _lead_repo.update_estado(lead_id, estado, motivo_perdida=data.get('motivo_perdida'))
    if not lead:
        return error_response('Not found', 404)
    return jsonify({'success': True, 'lead': lead})


@crm_bp.route('/api/leads/<int:lead_id>', methods=['DELETE'])
@permission_required('crm', 'delete')
def api_lead_delete(lead_id):
    if _lead_repo.delete(lead_id):
        return jsonify({'success': True})
    return error_response('Not found', 404)


@crm_bp.route('/api/leads/<int:lead_id>/convert', methods=['POST'])
@permission_required('crm', 'edit')
def api_lead_convert(lead_id):
    """Find or create the buyer client for a lead and link it."""
    lead = _lead_repo.get_by_id(lead_id)
    if not lead:
        return error_response('Not found', 404)
    try:
        client, is_new = _client_repo.get_or_create_from_lead(lead)
        _lead_repo.update(lead_id, {'cliente_id': client['id']})
        return jsonify({'success': True, 'client': client, 'created': is_new})
    except Exception as e:
        return safe_error_response(e)


# ════════════════════════════════════════════════════════════════
# Contacts
# ════════════════════════════════════════════════════════════════

def _contact_filters():
    return dict(
        grupo=request.args.get('grupo'),
        estado=request.args.get('estado'),
        origen=request.args.get('origen'),
        prioridad=request.args.get('prioridad'),
        search=request.args.get('search'),
        owner_id=scope_owner_id(),
        sort_by=request.args.get('sort_by'),
        sort_order=request.args.get('sort_order'),
    )


@crm_bp.route('/api/contacts', methods=['GET'])
@permission_required('crm', 'view')
def api_contacts():
    if request.args.get('format'):
        return api_contacts_export()
    limit, offset = get_pagination()
    rows, total = _contact_repo.get_all(limit=limit, offset=offset, **_contact_filters())
    return jsonify({'contacts': rows, 'total': total})


@crm_bp.route('/api/contacts/export', methods=['GET'])
@permission_required('crm', 'export')
def api_contacts_export():
    rows, _ = _contact_repo.get_all(limit=50000, offset=0, **_contact_filters())
    return _export(rows, CONTACT_COLUMNS, 'Contactos', 'contactos')


@crm_bp.route('/api/contacts/stats', methods=['GET'])
@permission_required('crm', 'view')
def api_contact_stats():
    return jsonify(_contact_repo.get_stats(owner_id=scope_owner_id()))


@crm_bp.route('/api/contacts/<int:contact_id>', methods=['GET'])
@permission_required('crm', 'view')
def api_contact_detail(contact_id):
    contact = _contact_repo.get_by_id(contact_id)
    if not contact:
        return error_response('Not found', 404)
    contact['interactions'] = _interaction_repo.get_by_contact(contact_id)
    return jsonify({'contact': contact})


@crm_bp.route('/api/contacts', methods=['POST'])
@permission_required('crm', 'edit')
def api_contact_create():
    data, error = get_json_or_error()
    if error:
        return error
    try:
        duplicate = _contact_repo.find_duplicate(data.get('telefono'), data.get('email'))
        if duplicate and not data.get('force'):
            return jsonify({'success': False, 'error': 'Ya existe un contacto con ese teléfono o email',
                            'duplicate': duplicate}), 409
        contact = _contact_repo.create(data, user_id=current_user.id)
        return jsonify({'success': True, 'contact': contact}), 201
    except Exception as e:
        return safe_error_response(e)


@crm_bp.route('/api/contacts/<int:contact_id>', methods=['PUT'])
@permission_required('crm', 'edit')
def api_contact_update(contact_id):
    data, error = get_json_or_error()
    if error:
        return error
    try:
        contact = _contact_repo.update(contact_id, data)
        if not contact:
            return error_response('Not found or no editable fields', 404)
        return jsonify({'success': True, 'contact': contact})
    except Exception as e:
        return safe_error_response(e)


@crm_bp.route('/api/contacts/<int:contact_id>', methods=['DELETE'])
@permission_required('crm', 'delete')
def api_contact_delete(contact_id):
    if _contact_repo.delete(contact_id):
        return jsonify({'success': True})
    return error_response('Not found', 404)


@crm_bp.route('/api/contacts/<int:contact_id>/assign', methods=['POST'])
@permission_required('crm', 'edit')
def api_contact_assign(contact_id):
    data = request.get_json(silent=True) or {}
    if not data.get('user_id'):
        return error_response('user_id is required')
    contact = _contact_repo.assign(contact_id, data['user_id'])
    if not contact:
        return error_response('Not found', 404)
    return jsonify({'success': True, 'contact': contact})


@crm_bp.route('/api/contacts/<int:contact_id>/postpone', methods=['POST'])
@permission_required('crm', 'edit')
def api_contact_postpone(contact_id):
    data = request.get_json(silent=True) or {}
    if not data.get('fecha'):
        return error_response('fecha is required')
    contact = _contact_repo.postpone(contact_id, data['fecha'])
    if not contact:
        return error_response('Not found', 404)
    return jsonify({'success': True, 'contact': contact})


@crm_bp.route('/api/contacts/<int:contact_id>/priority', methods=['POST'])
@permission_required('crm', 'edit')
def api_contact_priority(contact_id):
    data = request.get_json(silent=True) or {}
    try:
        contact = _contact_repo.set_priority(contact_id, data.get('prioridad'))
    except ValueError as e:
        return error_response(str(e))
    if not contact:
        return error_response('Not found', 404)
    return jsonify({'success': True, 'contact': contact})


# ════════════════════════════════════════════════════════════════
# Clients
# ════════════════════════════════════════════════════════════════

@crm_bp.route('/api/clients', methods=['GET'])
@permission_required('crm', 'view')
def api_clients():
    if request.args.get('format'):
        return api_clients_export()
    limit, offset = get_pagination()
    rows, total = _client_repo.search(search=request.args.get('search'), limit=limit, offset=offset)
    return jsonify({'clients': rows, 'total': total})


@crm_bp.route('/api/clients/export', methods=['GET'])
@permission_required('crm', 'export')
def api_clients_export():
    rows, _ = _client_repo.search(search=request.args.get('search'), limit=50000, offset=0)
    return _export(rows, CLIENT_COLUMNS, 'Clientes', 'clientes')


@crm_bp.route('/api/clients/stats', methods=['GET'])
@permission_required('crm', 'view')
def api_client_stats():
    return jsonify(_client_repo.get_stats())


@crm_bp.route('/api/clients/<int:client_id>', methods=['GET'])
@permission_required('crm', 'view')
def api_client_detail(client_id):
    client = _client_repo.get_by_id(client_id)
    if not client:
        return error_response('Not found', 404)
    return jsonify({'client': client})


@crm_bp.route('/api/clients', methods=['POST'])
@permission_required('crm', 'edit')
def api_client_create():
    data, error = get_json_or_error()
    if error:
        return error
    try:
        return jsonify({'success': True, 'client': _client_repo.create(data)}), 201
    except Exception as e:
        return safe_error_response(e)


@crm_bp.route('/api/clients/<int:client_id>', methods=['PUT'])
@permission_required('crm', 'edit')
def api_client_update(client_id):
    data, error = get_json_or_error()
    if error:
        return error
    try:
        client = _client_repo.update(client_id, data)
        if not client:
            return error_response('Not found or no editable fields', 404)
        return jsonify({'success': True, 'client': client})
    except Exception as e:
        return safe_error_response(e)


@crm_bp.route('/api/clients/<int:client_id>', methods=['DELETE'])
@permission_required('crm', 'delete')
def api_client_delete(client_id):
    if _client_repo.delete(client_id):
        return jsonify({'success': True})
    return error_response('Not found', 404)


# ════════════════════════════════════════════════════════════════
# Interactions
# ════════════════════════════════════════════════════════════════

@crm_bp.route('/api/interactions', methods=['GET'])
@permission_required('crm', 'view')
def api_interactions():
    if request.args.get('format'):
        return api_interactions_export()
    return jsonify({'interactions': _interaction_rows(request.args.get('limit', 20, type=int))})


def _interaction_rows(limit):
    contact_id = request.args.get('contact_id', type=int)
    lead_id = request.args.get('lead_id', type=int)
    if contact_id:
        return _interaction_repo.get_by_contact(contact_id)
    if lead_id:
        return _interaction_repo.get_by_lead(lead_id)
    return _interaction_repo.get_recent(limit=limit)


@crm_bp.route('/api/interactions/export', methods=['GET'])
@permission_required('crm', 'export')
def api_interactions_export():
    return _export(_interaction_rows(50000), INTERACTION_COLUMNS, 'Interacciones', 'interacciones')


@crm_bp.route('/api/interactions/stats', methods=['GET'])
@permission_required('crm', 'view')
def api_interaction_stats():
    return jsonify(_interaction_repo.get_stats(days=request.args.get('days', 7, type=int)))


@crm_bp.route('/api/interactions', methods=['POST'])
@permission_required('crm', 'edit')
def api_interaction_create():
    data, error = get_json_or_error()
    if error:
        return error
    try:
        interaction = _interaction_repo.create(data, user_id=current_user.id, user_name=current_user.name)
        if data.get('contact_id'):
            _contact_repo.touch_last_interaction(data['contact_id'])
        return jsonify({'success': True, 'interaction': interaction}), 201
    except Exception as e:
        return safe_error_response(e)


@crm_bp.route('/api/interactions/<int:interaction_id>', methods=['PUT'])
@permission_required('crm', 'edit')
def api_interaction_update(interaction_id):
    data, error = get_json_or_error()
    if error:
        return error
    try:
        interaction = _interaction_repo.update(interaction_id, data)
        if not interaction:
            return error_response('Not found or no editable fields', 404)
        return jsonify({'success': True, 'interaction': interaction})
    except Exception as e:
        return safe_error_response(e)


@crm_bp.route('/api/interactions/<int:interaction_id>', methods=['DELETE'])
@permission_required('crm', 'edit')
def api_interaction_delete(interaction_id):
    if _interaction_repo.delete(interaction_id):
        return jsonify({'success': True})
    return error_response('Not found', 404)


# ════════════════════════════════════════════════════════════════
# Sales
# ════════════════════════════════════════════════════════════════

@crm_bp.route('/api/sales', methods=['GET'])
@permission_required('crm', 'view')
def api_sales():
    if request.args.get('format'):
        return api_sales_export()
    limit, offset = get_pagination()
    rows, total = _sale_repo.get_all(limit=limit, offset=offset, **_sale_filters())
    return jsonify({'sales': rows, 'total': total})


def _sale_filters():
    return dict(
        estado=request.args.get('estado'),
        vendedor_id=scope_owner_id() or request.args.get('vendedor_id', type=int),
        date_from=request.args.get('date_from'),
        date_to=request.args.get('date_to'),
    )


@crm_bp.route('/api/sales/export', methods=['GET'])
@permission_required('crm', 'export')
def api_sales_export():
    rows, _ = _sale_repo.get_all(limit=50000, offset=0, **_sale_filters())
    return _export(rows, SALE_COLUMNS, 'Ventas', 'ventas')


@crm_bp.route('/api/sales/stats', methods=['GET'])
@permission_required('crm', 'view')
def api_sales_stats():
    rows, _ = _sale_repo.get_all(
        vendedor_id=scope_owner_id(),
        date_from=request.args.get('date_from'),
        date_to=request.args.get('date_to'),
        limit=50000, offset=0,
    )
    return jsonify(compute_sales_stats(rows))


@crm_bp.route('/api/sales/monthly', methods=['GET'])
@permission_required('crm', 'view')
def api_sales_monthly():
    year = request.args.get('year', date.today().year, type=int)
    rows = _sale_repo.get_in_range(date(year, 1, 1), date(year, 12, 31))
    return jsonify({'year': year, 'months': compute_monthly_sales(rows, year)})


@crm_bp.route('/api/sales/<int:sale_id>', methods=['GET'])
@permission_required('crm', 'view')
def api_sale_detail(sale_id):
    sale = _sale_repo.get_by_id(sale_id)
    if not sale:
        return error_response('Not found', 404)
    return jsonify({'sale': sale})


@crm_bp.route('/api/sales', methods=['POST'])
@permission_required('crm', 'edit')
def api_sale_create():
    data, error = get_json_or_error()
    if error:
        return error
    try:
        result = _sale_service.create_sale(data, user_id=current_user.id)
    except Exception as e:
        return safe_error_response(e)
    if not result.success:
        return error_response(result.error)
    return jsonify({'success': True, 'sale': result.data}), 201


@crm_bp.route('/api/sales/<int:sale_id>', methods=['PUT'])
@permission_required('crm', 'edit')
def api_sale_update(sale_id):
    data, error = get_json_or_error()
    if error:
        return error
    try:
        sale = _sale_repo.update(sale_id, data)
        if not sale:
            return error_response('Not found or no editable fields', 404)
        _invalidate_dashboard()
        return jsonify({'success': True, 'sale': sale})
    except Exception as e:
        return safe_error_response(e)


@crm_bp.route('/api/sales/<int:sale_id>', methods=['DELETE'])
@permission_required('crm', 'delete')
def api_sale_delete(sale_id):
    if _sale_repo.delete(sale_id):
        _invalidate_dashboard()
        return jsonify({'success': True})
    return error_response('Not found', 404)
