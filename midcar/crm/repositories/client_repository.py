"""Client Repository — buyers, search and lead conversion."""

from core.base_repository import BaseRepository
from core.validation import require_valid_documento


class ClientRepository(BaseRepository):

    _EDITABLE = {
        'nombre', 'apellidos', 'dni_cif', 'telefono', 'email', 'direccion',
        'codigo_postal', 'localidad', 'provincia', 'notas',
    }

    def get_by_id(self, client_id):
        return self.query_one('SELECT * FROM clients WHERE id = %s', (client_id,))

    def search(self, search=None, limit=50, offset=0):
        conditions, params = ['TRUE'], []
        if search and search.strip():
            term = f'%{search.strip()}%'
            conditions.append('(nombre ILIKE %s OR apellidos ILIKE %s OR telefono ILIKE %s '
                              'OR email ILIKE %s OR dni_cif ILIKE %s)')
            params.extend([term] * 5)
        where = ' AND '.join(conditions)
        params_count = tuple(params)
        params.extend([limit, offset])
        rows = self.query_all(
            f'SELECT * FROM clients WHERE {where} ORDER BY created_at DESC, id DESC LIMIT %s OFFSET %s',
            tuple(params)
        )
        count_row = self.query_one(f'SELECT COUNT(*) as count FROM clients WHERE {where}', params_count)
        return rows, count_row['count']

    def find_by_contact(self, telefono=None, email=None):
        if telefono:
            row = self.query_one('SELECT * FROM clients WHERE telefono = %s LIMIT 1', (telefono,))
            if row:
                return row
        if email:
            return self.query_one('SELECT * FROM clients WHERE LOWER(email) = LOWER(%s) LIMIT 1', (email,))
        return None

    def create(self, data):
        if not data.get('nombre'):
            raise ValueError('nombre es obligatorio')
        if 'dni_cif' in data:
            data = dict(data, dni_cif=require_valid_documento(data.get('dni_cif')))
        return self._insert('clients', data, self._EDITABLE)

    def update(self, client_id, data):
        if 'dni_cif' in data:
            data = dict(data, dni_cif=require_valid_documento(data.get('dni_cif')))
        return self._update('clients', client_id, data, self._EDITABLE)

    def delete(self, client_id):
        return self.execute('DELETE FROM clients WHERE id = %s', (client_id,)) > 0

    def get_or_create_from_lead(self, lead):
        """Client for a lead: its cliente_id, a phone/email match, or a new row.

        Returns (client, is_new).
        """
        if lead.get('cliente_id'):
            existing = self.get_by_id(lead['cliente_id'])
            if existing:
                return existing, False
        existing = self.find_by_contact(lead.get('cliente_telefono'), lead.get('cliente_email'))
        if existing:
            return existing, False
        client = self.create({
            'nombre': lead.get('cliente_nombre') or 'Cliente',
            'apellidos': lead.get('cliente_apellidos'),
            'telefono': lead.get('cliente_telefono'),
            'email': lead.get('cliente_email'),
        })
        return client, True

    def get_stats(self):
        """Totals for the clients page: all, new this month, and buyers with at least one sale."""
        row = self.query_one('''
            SELECT COUNT(*) as total,
                   COUNT(*) FILTER (WHERE created_at >= date_trunc('month', CURRENT_DATE)) as nuevos_mes,
                   COUNT(*) FILTER (WHERE EXISTS (
                       SELECT 1 FROM sales s WHERE s.cliente_id = clients.id AND s.estado != 'cancelada'
                   )) as con_compras
            FROM clients
        ''')
        return {
            'total': row['total'],
            'nuevos_mes': row['nuevos_mes'],
            'con_compras': row['con_compras'],
        }
