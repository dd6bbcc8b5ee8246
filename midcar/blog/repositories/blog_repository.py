"""Blog Repository — posts (with unique slugs) and categories."""

from core.base_repository import BaseRepository
from core.utils.formatting import slugify

POST_STATES = ('borrador', 'publicado', 'archivado')

_POST_SELECT = '''
    SELECT p.*, c.nombre as categoria_nombre, c.slug as categoria_slug
    FROM blog_posts p
    LEFT JOIN blog_categories c ON c.id = p.categoria_id
'''


class BlogRepository(BaseRepository):

    _POST_EDITABLE = {
        'slug', 'titulo', 'extracto', 'contenido', 'imagen_principal', 'categoria_id', 'autor',
        'tags', 'seo_titulo', 'seo_descripcion', 'seo_keywords', 'estado', 'destacado', 'orden',
    }
    _CATEGORY_EDITABLE = {'nombre', 'slug', 'descripcion', 'imagen_url', 'orden', 'activo'}

    # ---- posts ----

    def get_posts(self, categoria_id=None, estado=None, destacado=None, search=None, limit=50, offset=0):
        conditions, params = ['TRUE'], []
        if categoria_id:
            conditions.append('p.categoria_id = %s')
            params.append(categoria_id)
        if estado:
            conditions.append('p.estado = %s')
            params.append(estado)
        if destacado is not None:
            conditions.append('p.destacado = %s')
            params.append(destacado)
        if search and search.strip():
            term = f'%{search.strip()}%'
            conditions.append('(p.titulo ILIKE %s OR p.extracto ILIKE %s)')
            params.extend([term, term])
        where = ' AND '.join(conditions)
        params_count = tuple(params)
        params.extend([limit, offset])
        rows = self.query_all(
            f'{_POST_SELECT} WHERE {where} ORDER BY p.created_at DESC LIMIT %s OFFSET %s',
            tuple(params)
        )
        count_row = self.query_one(f'SELECT COUNT(*) as count FROM blog_posts p WHERE {where}', params_count)
        return rows, count_row['count']

    def get_post(self, post_id):
        return self.query_one(f'{_POST_SELECT} WHERE p.id = %s', (post_id,))

    def get_post_by_slug(self, slug):
        return self.query_one(f'{_POST_SELECT} WHERE p.slug = %s', (slug,))

    def _slug_taken(self, slug, exclude_id=None):
        if exclude_id:
            row = self.query_one('SELECT id FROM blog_posts WHERE slug = %s AND id != %s', (slug, exclude_id))
        else:
            row = self.query_one('SELECT id FROM blog_posts WHERE slug = %s', (slug,))
        return row is not None

    def unique_slug(self, base, exclude_id=None):
        """`base`, or `base-2`, `base-3`... whichever is free first."""
        base = slugify(base) or 'post'
        slug, n = base, 2
        while self._slug_taken(slug, exclude_id):
            slug = f'{base}-{n}'
            n += 1
        return slug

    def _validate_post(self, data):
        if data.get('estado') and data['estado'] not in POST_STATES:
            raise ValueError(f"estado must be one of: {', '.join(POST_STATES)}")

    def create_post(self, data):
        if not (data.get('titulo') or '').strip():
            raise ValueError('titulo es obligatorio')
        self._validate_post(data)
        fields = {k: v for k, v in data.items() if k in self._POST_EDITABLE}
        fields['slug'] = self.unique_slug(fields.get('slug') or fields['titulo'])
        publishing = fields.get('estado') == 'publicado'
        fields['estado'] = 'borrador' if publishing else fields.get('estado', 'borrador')
        row = self._insert('blog_posts', fields, self._POST_EDITABLE)
        if publishing:
            return self.publish_post(row['id'])
        return row

    def update_post(self, post_id, data):
        self._validate_post(data)
        fields = {k: v for k, v in data.items() if k in self._POST_EDITABLE}
        if 'slug' in fields:
            fields['slug'] = self.unique_slug(fields['slug'], exclude_id=post_id)
        publishing = fields.get('estado') == 'publicado'
        if publishing:
            fields.pop('estado')
        row = self._update('blog_posts', post_id, fields, self._POST_EDITABLE) if fields else self.get_post(post_id)
        if publishing and row:
            return self.publish_post(post_id)
        return row

    def publish_post(self, post_id):
        """Set estado=publicado; fecha_publicacion only the first time."""
        return self.execute('''
            UPDATE blog_posts
            SET estado = 'publicado',
                fecha_publicacion = COALESCE(fecha_publicacion, NOW()),
                updated_at = NOW()
            WHERE id = %s
            RETURNING *
        ''', (post_id,), returning=True)

    def delete_post(self, post_id):
        return self.execute('DELETE FROM blog_posts WHERE id = %s', (post_id,)) > 0

    def increment_views(self, post_id):
        return self.execute('UPDATE blog_posts SET vistas = COALESCE(vistas, 0) + 1 WHERE id = %s', (post_id,))

    # ---- categories ----

    def get_categories(self, active_only=False):
        where = 'WHERE activo = TRUE' if active_only else ''
        return self.query_all(f'SELECT * FROM blog_categories {where} ORDER BY orden, nombre')

    def get_category(self, category_id):
        return self.query_one('SELECT * FROM blog_categories WHERE id = %s', (category_id,))

    def create_category(self, data):
        if not (data.get('nombre') or '').strip():
            raise ValueError('nombre es obligatorio')
        fields = {k: v for k, v in data.items() if k in self._CATEGORY_EDITABLE}
        fields['slug'] = slugify(fields.get('slug') or fields['nombre'])
        return self._insert('blog_categories', fields, self._CATEGORY_EDITABLE)

    def update_category(self, category_id, data):
        fields = {k: v for k, v in data.items() if k in self._CATEGORY_EDITABLE}
        if 'slug' in fields:
            fields['slug'] = slugify(fields['slug'])
        return self._update('blog_categories', category_id, fields, self._CATEGORY_EDITABLE)

    def delete_category(self, category_id):
        """Delete a category; its posts keep existing uncategorized."""
        def _work(cursor):
            cursor.execute('UPDATE blog_posts SET categoria_id = NULL WHERE categoria_id = %s', (category_id,))
            cursor.execute('DELETE FROM blog_categories WHERE id = %s', (category_id,))
            return cursor.rowcount > 0
        return self.execute_many(_work)

    def get_counts(self):
        """{by_estado: {estado: n}, total, categorias_activas}."""
        rows = self.query_all('SELECT estado, COUNT(*) as count FROM blog_posts GROUP BY estado')
        by_estado = {estado: 0 for estado in POST_STATES}
        for r in rows:
            by_estado[r['estado']] = r['count']
        cat = self.query_one('SELECT COUNT(*) as count FROM blog_categories WHERE activo = TRUE')
        return {
            'by_estado': by_estado,
            'total': sum(by_estado.values()),
            'categorias_activas': cat['count'] if cat else 0,
        }
