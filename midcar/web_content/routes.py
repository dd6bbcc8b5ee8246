"""Web Content API routes — section texts, config and ordered site lists."""

import logging
from flask import jsonify, request

from . import web_content_bp
from .repositories import WebContentRepository, TestimonialRepository, BenefitRepository, FaqRepository
from core.utils.api_helpers import (
    api_login_required, permission_required, get_json_or_error, get_bool_arg,
    safe_error_response, error_response,
)

logger = logging.getLogger('midcar.web_content.routes')

_content_repo = WebContentRepository()

# URL segment -> repository, response key
_ITEM_REPOS = {
    'testimonials': (TestimonialRepository(), 'testimonials'),
    'benefits': (BenefitRepository(), 'benefits'),
    'faqs': (FaqRepository(), 'faqs'),
}


# ════════════════════════════════════════════════════════════════
# Sections & config
# ════════════════════════════════════════════════════════════════

@web_content_bp.route('/api/web/sections', methods=['GET'])
@api_login_required
def api_web_sections():
    return jsonify({'sections': _content_repo.get_sections()})


@web_content_bp.route('/api/web/content/<seccion>', methods=['GET'])
@api_login_required
def api_web_content(seccion):
    if get_bool_arg('rows'):
        return jsonify({'seccion': seccion, 'rows': _content_repo.get_section_rows(seccion, active_only=False)})
    return jsonify({'seccion': seccion, 'content': _content_repo.get_section(seccion)})


@web_content_bp.route('/api/web/content/<seccion>', methods=['PUT'])
@permission_required('web', 'edit')
def api_web_content_update(seccion):
    """Upsert keys of a section: {clave: valor, ...}."""
    data, error = get_json_or_error()
    if error:
        return error
    if not data:
        return error_response('No values provided')
    try:
        count = _content_repo.update_section(seccion, {str(k): v for k, v in data.items()})
        logger.info(f'Web section {seccion} updated ({count} keys)')
        return jsonify({'success': True, 'content': _content_repo.get_section(seccion)})
    except Exception as e:
        return safe_error_response(e)


@web_content_bp.route('/api/web/content/<seccion>/<clave>', methods=['PUT'])
@permission_required('web', 'edit')
def api_web_content_key_update(seccion, clave):
    data, error = get_json_or_error()
    if error:
        return error
    if 'valor' not in data:
        return error_response('valor is required')
    try:
        row = _content_repo.update_content(seccion, clave, data['valor'], tipo=data.get('tipo') or 'text')
        return jsonify({'success': True, 'row': row})
    except Exception as e:
        return safe_error_response(e)


@web_content_bp.route('/api/web/config', methods=['GET'])
@api_login_required
def api_web_config():
    return jsonify({'config': _content_repo.get_config()})


@web_content_bp.route('/api/web/config', methods=['PUT'])
@permission_required('web', 'edit')
def api_web_config_update():
    data, error = get_json_or_error()
    if error:
        return error
    try:
        for clave, valor in data.items():
            _content_repo.update_config(clave, valor)
        return jsonify({'success': True, 'config': _content_repo.get_config()})
    except Exception as e:
        return safe_error_response(e)


# ════════════════════════════════════════════════════════════════
# Testimonials / benefits / FAQs
# ════════════════════════════════════════════════════════════════

def _item_repo(kind):
    return _ITEM_REPOS.get(kind, (None, None))


@web_content_bp.route('/api/web/<kind>', methods=['GET'])
@api_login_required
def api_web_items(kind):
    repo, key = _item_repo(kind)
    if not repo:
        return error_response('Not found', 404)
    active_only = get_bool_arg('active')
    if kind == 'faqs':
        items = repo.get_all(active_only=active_only, seccion=request.args.get('seccion'))
    else:
        items = repo.get_all(active_only=active_only)
    return jsonify({key: items})


@web_content_bp.route('/api/web/<kind>', methods=['POST'])
@permission_required('web', 'edit')
def api_web_item_create(kind):
    repo, key = _item_repo(kind)
    if not repo:
        return error_response('Not found', 404)
    data, error = get_json_or_error()
    if error:
        return error
    try:
        item = repo.create(data)
        return jsonify({'success': True, 'item': item}), 201
    except ValueError as e:
        return error_response(str(e))
    except Exception as e:
        return safe_error_response(e)


@web_content_bp.route('/api/web/<kind>/<int:item_id>', methods=['PUT'])
@permission_required('web', 'edit')
def api_web_item_update(kind, item_id):
    repo, key = _item_repo(kind)
    if not repo:
        return error_response('Not found', 404)
    data, error = get_json_or_error()
    if error:
        return error
    try:
        item = repo.update(item_id, data)
        if not item:
            return error_response('Not found or no editable fields', 404)
        return jsonify({'success': True, 'item': item})
    except ValueError as e:
        return error_response(str(e))
    except Exception as e:
        return safe_error_response(e)


@web_content_bp.route('/api/web/<kind>/<int:item_id>', methods=['DELETE'])
@permission_required('web', 'edit')
def api_web_item_delete(kind, item_id):
    repo, key = _item_repo(kind)
    if not repo:
        return error_response('Not found', 404)
    if repo.delete(item_id):
        return jsonify({'success': True})
    return error_response('Not found', 404)


@web_content_bp.route('/api/web/<kind>/reorder', methods=['PUT'])
@permission_required('web', 'edit')
def api_web_items_reorder(kind):
    """Body: {ids: [3, 1, 2]}; orden follows list position."""
    repo, key = _item_repo(kind)
    if not repo:
        return error_response('Not found', 404)
    data, error = get_json_or_error()
    if error:
        return error
    ids = data.get('ids')
    if not isinstance(ids, list) or not all(isinstance(i, int) for i in ids):
        return error_response('ids must be a list of integers')
    try:
        repo.reorder(ids)
        return jsonify({'success': True, key: repo.get_all()})
    except Exception as e:
        return safe_error_response(e)
