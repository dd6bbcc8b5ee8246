"""Empresa Repository — seller companies printed on documents (cached list)."""

from database import cached, dict_from_row
from core.base_repository import BaseRepository
from core.validation import require_valid_documento


@cached(ttl=300)
def _load_empresas():
    return BaseRepository().query_all(
        'SELECT * FROM empresas WHERE activo = TRUE ORDER BY es_principal DESC, nombre'
    )


class EmpresaRepository(BaseRepository):

    _EDITABLE = {
        'nombre', 'cif', 'direccion', 'codigo_postal', 'localidad', 'provincia',
        'telefono', 'email', 'iban', 'logo_url', 'es_principal', 'activo',
    }

    def get_all(self):
        return _load_empresas()

    def get_by_id(self, empresa_id):
        return self.query_one('SELECT * FROM empresas WHERE id = %s', (empresa_id,))

    def get_principal(self):
        """The principal company, else the first active one, else None."""
        empresas = self.get_all()
        for empresa in empresas:
            if empresa.get('es_principal'):
                return empresa
        return empresas[0] if empresas else None

    def _prepare(self, data):
        fields = {k: v for k, v in data.items() if k in self._EDITABLE}
        if 'cif' in fields:
            fields['cif'] = require_valid_documento(fields['cif'], field='cif')
        return fields

    def _write(self, work):
        """Run a write transaction and drop the cached list."""
        try:
            return self.execute_many(work)
        finally:
            _load_empresas.invalidate()

    def create(self, data):
        if not (data.get('nombre') or '').strip():
            raise ValueError('nombre es obligatorio')
        fields = self._prepare(data)
        cols = ', '.join(fields)
        placeholders = ', '.join(['%s'] * len(fields))

        def _work(cursor):
            if fields.get('es_principal'):
                cursor.execute('UPDATE empresas SET es_principal = FALSE WHERE es_principal = TRUE')
            cursor.execute(
                f'INSERT INTO empresas ({cols}) VALUES ({placeholders}) RETURNING *',
                tuple(fields.values())
            )
            return cursor.fetchone()
        return dict_from_row(self._write(_work))

    def update(self, empresa_id, data):
        fields = self._prepare(data)
        if not fields:
            return None
        sets = ', '.join(f'{k} = %s' for k in fields)

        def _work(cursor):
            if fields.get('es_principal'):
                cursor.execute('UPDATE empresas SET es_principal = FALSE WHERE id != %s', (empresa_id,))
            cursor.execute(
                f'UPDATE empresas SET {sets}, updated_at = NOW() WHERE id = %s RETURNING *',
                tuple(fields.values()) + (empresa_id,)
            )
            return cursor.fetchone()
        return dict_from_row(self._write(_work))

    def delete(self, empresa_id):
        def _work(cursor):
            cursor.execute('DELETE FROM empresas WHERE id = %s', (empresa_id,))
            return cursor.rowcount > 0
        return self._write(_work)
