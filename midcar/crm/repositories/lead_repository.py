"""Lead Repository — pipeline CRUD, status transitions and stats rows."""

from core.base_repository import BaseRepository

LEAD_STATES = (
    'nuevo', 'contactado', 'visita_agendada', 'prueba_conduccion',
    'propuesta_enviada', 'negociacion', 'vendido', 'perdido',
)

LEAD_PRIORITIES = ('baja', 'media', 'alta', 'urgente')

# Tab groups. en_proceso also holds legacy states still present in old rows.
LEAD_GROUPS = {
    'nuevos': ['nuevo'],
    'en_proceso': [
        'contactado', 'negociacion', 'visita_agendada', 'prueba_programada',
        'prueba_conduccion', 'propuesta_enviada', 'financiacion', 'oferta_enviada',
    ],
    'vendidos': ['vendido'],
    'perdidos': ['perdido'],
}

CLOSED_STATES = ('vendido', 'perdido')


class LeadRepository(BaseRepository):

    _EDITABLE = {
        'cliente_id', 'vehiculo_interes_id', 'estado', 'prioridad', 'probabilidad',
        'tipo_interes', 'presupuesto_cliente', 'forma_pago', 'asignado_a', 'origen',
        'cliente_nombre', 'cliente_apellidos', 'cliente_telefono', 'cliente_email',
        'fecha_cierre', 'proxima_accion', 'fecha_proxima_accion', 'motivo_perdida', 'notas',
    }

    _ALLOWED_SORT = {
        'created_at', 'updated_at', 'estado', 'prioridad', 'probabilidad',
        'presupuesto_cliente', 'fecha_proxima_accion', 'cliente_nombre', 'id',
    }

    def get_by_id(self, lead_id):
        return self.query_one('''
            SELECT l.*, v.marca as vehiculo_marca, v.modelo as vehiculo_modelo,
                   v.precio_venta as vehiculo_precio, u.name as asignado_nombre
            FROM leads l
            LEFT JOIN vehicles v ON v.id = l.vehiculo_interes_id
            LEFT JOIN users u ON u.id = l.asignado_a
            WHERE l.id = %s
        ''', (lead_id,))

    def get_all(self, grupo=None, estado=None, prioridad=None, search=None,
                owner_id=None, sort_by=None, sort_order=None, limit=50, offset=0):
        conditions, params = ['TRUE'], []
        if grupo and grupo in LEAD_GROUPS:
            conditions.append('l.estado = ANY(%s)')
            params.append(LEAD_GROUPS[grupo])
        if estado:
            conditions.append('l.estado = %s')
            params.append(estado)
        if prioridad:
            conditions.append('l.prioridad = %s')
            params.append(prioridad)
        if search and len(search.strip()) >= 2:
            term = f'%{search.strip()}%'
            conditions.append('(l.cliente_nombre ILIKE %s OR l.cliente_apellidos ILIKE %s '
                              'OR l.cliente_telefono ILIKE %s)')
            params.extend([term] * 3)
        if owner_id:
            conditions.append('l.asignado_a = %s')
            params.append(owner_id)
        where = ' AND '.join(conditions)
        col = sort_by if sort_by in self._ALLOWED_SORT else 'created_at'
        direction = 'ASC' if sort_order and sort_order.upper() == 'ASC' else 'DESC'
        params_count = tuple(params)
        params.extend([limit, offset])
        rows = self.query_all(
            f'''SELECT l.*, v.marca as vehiculo_marca, v.modelo as vehiculo_modelo,
                       u.name as asignado_nombre
                FROM leads l
                LEFT JOIN vehicles v ON v.id = l.vehiculo_interes_id
                LEFT JOIN users u ON u.id = l.asignado_a
                WHERE {where}
                ORDER BY l.{col} {direction} NULLS LAST, l.id DESC
                LIMIT %s OFFSET %s''',
            tuple(params)
        )
        count_row = self.query_one(f'SELECT COUNT(*) as count FROM leads l WHERE {where}', params_count)
        return rows, count_row['count']

    def create(self, data, user_id=None, user_name=None):
        fields = {k: v for k, v in data.items() if k in self._EDITABLE}
        fields.setdefault('estado', 'nuevo')
        fields.setdefault('prioridad', 'media')
        fields.setdefault('asignado_a', user_id)
        fields['created_by'] = user_id
        fields['created_by_name'] = user_name
        return self._insert('leads', fields, set(fields))

    def update(self, lead_id, data):
        return self._update('leads', lead_id, data, self._EDITABLE)

    def update_estado(self, lead_id, estado, motivo_perdida=None):
        """Move a lead; closing states stamp fecha_cierre, perdido keeps the reason."""
        sets, params = ['estado = %s'], [estado]
        if estado in CLOSED_STATES:
            sets.append('fecha_cierre = NOW()')
        if estado == 'perdido':
            sets.append('motivo_perdida = %s')
            params.append(motivo_perdida)
        params.append(lead_id)
        return self.execute(
            f"UPDATE leads SET {', '.join(sets)}, updated_at = NOW() WHERE id = %s RETURNING *",
            tuple(params), returning=True
        )

    def delete(self, lead_id):
        return self.execute('DELETE FROM leads WHERE id = %s', (lead_id,)) > 0

    def get_stats_rows(self, owner_id=None):
        """estado/presupuesto/probabilidad of every lead, for compute_lead_stats()."""
        if owner_id:
            return self.query_all(
                'SELECT estado, presupuesto_cliente, probabilidad, created_at FROM leads '
                'WHERE asignado_a = %s', (owner_id,)
            )
        return self.query_all('SELECT estado, presupuesto_cliente, probabilidad, created_at FROM leads')

    def get_pending_actions(self, owner_id=None, limit=20):
        """Open leads with a next action due today or earlier."""
        conditions, params = ["estado NOT IN ('vendido', 'perdido')",
                              'fecha_proxima_accion IS NOT NULL',
                              'fecha_proxima_accion <= NOW()'], []
        if owner_id:
            conditions.append('asignado_a = %s')
            params.append(owner_id)
        params.append(limit)
        return self.query_all(
            f'''SELECT id, cliente_nombre, cliente_apellidos, cliente_telefono, estado,
                       prioridad, proxima_accion, fecha_proxima_accion
                FROM leads WHERE {' AND '.join(conditions)}
                ORDER BY fecha_proxima_accion ASC LIMIT %s''',
            tuple(params)
        )
