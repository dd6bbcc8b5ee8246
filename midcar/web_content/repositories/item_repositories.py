"""Ordered item lists of the public site: testimonials, benefits, FAQs."""

from core.base_repository import BaseRepository


class _OrderedItemRepository(BaseRepository):
    """List/create/update/delete/reorder over a table with orden + activo columns."""

    table = None
    _EDITABLE = set()

    def validate(self, data, partial=False):
        pass

    def get_all(self, active_only=False):
        where = 'WHERE activo = TRUE' if active_only else ''
        return self.query_all(f'SELECT * FROM {self.table} {where} ORDER BY orden, id')

    def get_by_id(self, item_id):
        return self.query_one(f'SELECT * FROM {self.table} WHERE id = %s', (item_id,))

    def create(self, data):
        self.validate(data)
        fields = {k: v for k, v in data.items() if k in self._EDITABLE}
        if fields.get('orden') is None:
            row = self.query_one(f'SELECT COALESCE(MAX(orden), 0) + 1 as next FROM {self.table}')
            fields['orden'] = row['next']
        return self._insert(self.table, fields, self._EDITABLE)

    def update(self, item_id, data):
        self.validate(data, partial=True)
        return self._update(self.table, item_id, data, self._EDITABLE)

    def delete(self, item_id):
        return self.execute(f'DELETE FROM {self.table} WHERE id = %s', (item_id,)) > 0

    def reorder(self, ids):
        """Set orden = position (1-based) for each id in `ids`."""
        def _work(cursor):
            for position, item_id in enumerate(ids, start=1):
                cursor.execute(
                    f'UPDATE {self.table} SET orden = %s, updated_at = NOW() WHERE id = %s',
                    (position, item_id)
                )
            return len(ids)
        return self.execute_many(_work)


class TestimonialRepository(_OrderedItemRepository):
    table = 'web_testimonials'
    _EDITABLE = {'nombre', 'fecha', 'rating', 'texto', 'imagen_url', 'activo', 'orden'}

    def validate(self, data, partial=False):
        if not partial:
            for field in ('nombre', 'texto'):
                if not data.get(field):
                    raise ValueError(f'{field} es obligatorio')
        if 'rating' in data:
            try:
                rating = int(data['rating'])
            except (TypeError, ValueError):
                raise ValueError('rating debe estar entre 1 y 5')
            if not 1 <= rating <= 5:
                raise ValueError('rating debe estar entre 1 y 5')


class BenefitRepository(_OrderedItemRepository):
    table = 'web_benefits'
    _EDITABLE = {'titulo', 'descripcion', 'icono', 'orden', 'activo'}

    def validate(self, data, partial=False):
        if not partial and not data.get('titulo'):
            raise ValueError('titulo es obligatorio')


class FaqRepository(_OrderedItemRepository):
    table = 'web_faqs'
    _EDITABLE = {'seccion', 'pregunta', 'respuesta', 'orden', 'activo'}

    def validate(self, data, partial=False):
        for field in ('pregunta', 'respuesta'):
            if (not partial or field in data) and not (data.get(field) or '').strip():
                raise ValueError(f'{field} es obligatoria')

    def get_all(self, active_only=False, seccion=None):
        conditions, params = ['TRUE'], []
        if active_only:
            conditions.append('activo = TRUE')
        if seccion:
            conditions.append('seccion = %s')
            params.append(seccion)
        return self.query_all(
            f"SELECT * FROM web_faqs WHERE {' AND '.join(conditions)} ORDER BY orden, id",
            tuple(params)
        )
