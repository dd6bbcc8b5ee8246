"""Blog API routes — posts and categories."""

import logging
from flask import jsonify, request

from . import blog_bp
from .repositories import BlogRepository
from core.utils.api_helpers import (
    api_login_required, permission_required, get_json_or_error, get_pagination, get_bool_arg,
    safe_error_response, error_response,
)

logger = logging.getLogger('midcar.blog.routes')

_blog_repo = BlogRepository()


@blog_bp.route('/api/blog/posts', methods=['GET'])
@api_login_required
def api_blog_posts():
    limit, offset = get_pagination()
    destacado = get_bool_arg('destacado') if 'destacado' in request.args else None
    posts, total = _blog_repo.get_posts(
        categoria_id=request.args.get('categoria_id', type=int),
        estado=request.args.get('estado'),
        destacado=destacado,
        search=request.args.get('search'),
        limit=limit, offset=offset,
    )
    return jsonify({'posts': posts, 'total': total})


@blog_bp.route('/api/blog/posts/<int:post_id>', methods=['GET'])
@api_login_required
def api_blog_post(post_id):
    post = _blog_repo.get_post(post_id)
    if not post:
        return error_response('Not found', 404)
    return jsonify({'post': post})


@blog_bp.route('/api/blog/posts/slug/<slug>', methods=['GET'])
@api_login_required
def api_blog_post_by_slug(slug):
    post = _blog_repo.get_post_by_slug(slug)
    if not post:
        return error_response('Not found', 404)
    return jsonify({'post': post})


@blog_bp.route('/api/blog/posts', methods=['POST'])
@permission_required('web', 'edit')
def api_blog_post_create():
    data, error = get_json_or_error()
    if error:
        return error
    try:
        post = _blog_repo.create_post(data)
        logger.info(f"Blog post created: {post['slug']}")
        return jsonify({'success': True, 'post': post}), 201
    except ValueError as e:
        return error_response(str(e))
    except Exception as e:
        return safe_error_response(e)


@blog_bp.route('/api/blog/posts/<int:post_id>', methods=['PUT'])
@permission_required('web', 'edit')
def api_blog_post_update(post_id):
    data, error = get_json_or_error()
    if error:
        return error
    try:
        post = _blog_repo.update_post(post_id, data)
        if not post:
            return error_response('Not found', 404)
        return jsonify({'success': True, 'post': post})
    except ValueError as e:
        return error_response(str(e))
    except Exception as e:
        return safe_error_response(e)


@blog_bp.route('/api/blog/posts/<int:post_id>/publish', methods=['POST'])
@permission_required('web', 'edit')
def api_blog_post_publish(post_id):
    post = _blog_repo.publish_post(post_id)
    if not post:
        return error_response('Not found', 404)
    return jsonify({'success': True, 'post': post})


@blog_bp.route('/api/blog/posts/<int:post_id>', methods=['DELETE'])
@permission_required('web', 'edit')
def api_blog_post_delete(post_id):
    if _blog_repo.delete_post(post_id):
        return jsonify({'success': True})
    return error_response('Not found', 404)


@blog_bp.route('/api/blog/counts', methods=['GET'])
@api_login_required
def api_blog_counts():
    return jsonify(_blog_repo.get_counts())


# ---- categories ----

@blog_bp.route('/api/blog/categories', methods=['GET'])
@api_login_required
def api_blog_categories():
    return jsonify({'categories': _blog_repo.get_categories(active_only=get_bool_arg('active'))})


@blog_bp.route('/api/blog/categories', methods=['POST'])
@permission_required('web', 'edit')
def api_blog_category_create():
    data, error = get_json_or_error()
    if error:
        return error
    try:
        return jsonify({'success': True, 'category': _blog_repo.create_category(data)}), 201
    except ValueError as e:
        return error_response(str(e))
    except Exception as e:
        return safe_error_response(e)


@blog_bp.route('/api/blog/categories/<int:category_id>', methods=['PUT'])
@permission_required('web', 'edit')
def api_blog_category_update(category_id):
    data, error = get_json_or_error()
    if error:
        return error
    try:
        category = _blog_repo.update_category(category_id, data)
        if not category:
            return error_response('Not found or no editable fields', 404)
        return jsonify({'success': True, 'category': category})
    except Exception as e:
        return safe_error_response(e)


@blog_bp.route('/api/blog/categories/<int:category_id>', methods=['DELETE'])
@permission_required('web', 'edit')
def api_blog_category_delete(category_id):
    if _blog_repo.delete_category(category_id):
        return jsonify({'success': True})
    return error_response('Not found', 404)
