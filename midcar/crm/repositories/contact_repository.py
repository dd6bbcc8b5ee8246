"""Contact Repository — backoffice contact inbox with assignment and follow-up."""

import json

from core.base_repository import BaseRepository
from core.validation import require_valid_documento

CONTACT_STATES = ('pendiente', 'comunicado', 'tramite', 'reservado', 'postventa', 'busqueda', 'cerrado')

CONTACT_ORIGINS = (
    'web', 'telefono', 'presencial', 'whatsapp', 'coches_net', 'wallapop',
    'autocasion', 'facebook', 'instagram', 'referido', 'otro',
)

CONTACT_PRIORITIES = ('baja', 'media', 'alta', 'urgente')

CONTACT_GROUPS = {
    'nuevos': ['pendiente'],
    'en_proceso': ['comunicado', 'tramite', 'reservado', 'postventa', 'busqueda'],
    'cerrados': ['cerrado'],
}


def _validate_contact(data, partial=False):
    if not partial and not (data.get('telefono') or data.get('email')):
        raise ValueError('Se requiere teléfono o email')
    origen = data.get('origen')
    if origen and origen not in CONTACT_ORIGINS:
        raise ValueError(f'origen no válido: {origen}')
    estado = data.get('estado')
    if estado and estado not in CONTACT_STATES:
        raise ValueError(f'estado no válido: {estado}')
    prioridad = data.get('prioridad')
    if prioridad and prioridad not in CONTACT_PRIORITIES:
        raise ValueError(f'prioridad no válida: {prioridad}')
    if 'dni_cif' in data:
        data['dni_cif'] = require_valid_documento(data.get('dni_cif'))


class ContactRepository(BaseRepository):

    _EDITABLE = {
        'telefono', 'email', 'nombre', 'apellidos', 'dni_cif',
        'direccion', 'codigo_postal', 'localidad', 'provincia',
        'origen', 'estado', 'vehiculos_interes', 'progreso', 'categoria', 'asunto',
        'comercial_asignado', 'tipo_pago', 'precio', 'reserva', 'prioridad',
        'fecha_seguimiento', 'notas',
    }

    _ALLOWED_SORT = {
        'created_at', 'updated_at', 'nombre', 'apellidos', 'estado', 'prioridad',
        'fecha_seguimiento', 'ultima_interaccion', 'id',
    }

    def _prepare(self, data):
        fields = {k: v for k, v in data.items() if k in self._EDITABLE}
        if 'vehiculos_interes' in fields:
            fields['vehiculos_interes'] = json.dumps(fields['vehiculos_interes'] or [])
        return fields

    def get_by_id(self, contact_id):
        return self.query_one('''
            SELECT c.*, u.name as comercial_nombre
            FROM contacts c LEFT JOIN users u ON u.id = c.comercial_asignado
            WHERE c.id = %s
        ''', (contact_id,))

    def get_all(self, grupo=None, estado=None, origen=None, prioridad=None, search=None,
                owner_id=None, sort_by=None, sort_order=None, limit=50, offset=0):
        conditions, params = ['TRUE'], []
        if grupo and grupo in CONTACT_GROUPS:
            conditions.append('c.estado = ANY(%s)')
            params.append(CONTACT_GROUPS[grupo])
        if estado:
            conditions.append('c.estado = %s')
            params.append(estado)
        if origen:
            conditions.append('c.origen = %s')
            params.append(origen)
        if prioridad:
            conditions.append('c.prioridad = %s')
            params.append(prioridad)
        if search and search.strip():
            term = f'%{search.strip()}%'
            conditions.append('(c.nombre ILIKE %s OR c.apellidos ILIKE %s '
                              'OR c.telefono ILIKE %s OR c.email ILIKE %s)')
            params.extend([term] * 4)
        if owner_id:
            conditions.append('c.comercial_asignado = %s')
            params.append(owner_id)
        where = ' AND '.join(conditions)
        col = sort_by if sort_by in self._ALLOWED_SORT else 'created_at'
        direction = 'ASC' if sort_order and sort_order.upper() == 'ASC' else 'DESC'
        params_count = tuple(params)
        params.extend([limit, offset])
        rows = self.query_all(
            f'''SELECT c.*, u.name as comercial_nombre
                FROM contacts c LEFT JOIN users u ON u.id = c.comercial_asignado
                WHERE {where}
                ORDER BY c.{col} {direction} NULLS LAST, c.id DESC
                LIMIT %s OFFSET %s''',
            tuple(params)
        )
        count_row = self.query_one(f'SELECT COUNT(*) as count FROM contacts c WHERE {where}', params_count)
        return rows, count_row['count']

    def find_duplicate(self, telefono=None, email=None):
        """Existing contact with the same phone or (case-insensitive) email."""
        conditions, params = [], []
        if telefono:
            conditions.append("REPLACE(telefono, ' ', '') = %s")
            params.append(telefono.replace(' ', ''))
        if email:
            conditions.append('LOWER(email) = LOWER(%s)')
            params.append(email.strip())
        if not conditions:
            return None
        return self.query_one(
            f"SELECT * FROM contacts WHERE {' OR '.join(conditions)} ORDER BY id LIMIT 1",
            tuple(params)
        )

    def create(self, data, user_id=None):
        _validate_contact(data)
        fields = self._prepare(data)
        fields.setdefault('estado', 'pendiente')
        fields.setdefault('origen', 'otro')
        fields.setdefault('prioridad', 'media')
        fields['created_by'] = user_id
        return self._insert('contacts', fields, set(fields))

    def update(self, contact_id, data):
        _validate_contact(data, partial=True)
        return self._update('contacts', contact_id, self._prepare(data), self._EDITABLE)

    def delete(self, contact_id):
        return self.execute('DELETE FROM contacts WHERE id = %s', (contact_id,)) > 0

    def assign(self, contact_id, user_id):
        return self.execute(
            'UPDATE contacts SET comercial_asignado = %s, updated_at = NOW() WHERE id = %s RETURNING *',
            (user_id, contact_id), returning=True
        )

    def postpone(self, contact_id, fecha):
        return self.execute(
            'UPDATE contacts SET fecha_seguimiento = %s, updated_at = NOW() WHERE id = %s RETURNING *',
            (fecha, contact_id), returning=True
        )

    def set_priority(self, contact_id, prioridad):
        if prioridad not in CONTACT_PRIORITIES:
            raise ValueError(f'prioridad no válida: {prioridad}')
        return self.execute(
            'UPDATE contacts SET prioridad = %s, updated_at = NOW() WHERE id = %s RETURNING *',
            (prioridad, contact_id), returning=True
        )

    def touch_last_interaction(self, contact_id):
        self.execute(
            'UPDATE contacts SET ultima_interaccion = NOW(), updated_at = NOW() WHERE id = %s',
            (contact_id,)
        )

    def get_stats(self, owner_id=None):
        where, params = '', ()
        if owner_id:
            where, params = 'WHERE comercial_asignado = %s', (owner_id,)
        rows = self.query_all(f'SELECT estado, COUNT(*) as count FROM contacts {where} GROUP BY estado', params)
        by_estado = {estado: 0 for estado in CONTACT_STATES}
        for r in rows:
            by_estado[r['estado']] = r['count']
        stats = {'total': sum(by_estado.values()), 'by_estado': by_estado}
        for grupo, states in CONTACT_GROUPS.items():
            stats[grupo] = sum(by_estado.get(s, 0) for s in states)
        return stats
