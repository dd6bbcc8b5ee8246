"""Interaction Repository — calls, visits, messages logged against contacts or leads."""

from core.base_repository import BaseRepository

INTERACTION_TYPES = ('llamada', 'email', 'whatsapp', 'visita', 'nota', 'sms', 'prueba')


class InteractionRepository(BaseRepository):

    _EDITABLE = {'tipo', 'descripcion', 'resultado'}

    def get_by_contact(self, contact_id):
        return self.query_all(
            'SELECT * FROM interactions WHERE contact_id = %s ORDER BY created_at DESC',
            (contact_id,)
        )

    def get_by_lead(self, lead_id):
        return self.query_all(
            'SELECT * FROM interactions WHERE lead_id = %s ORDER BY created_at DESC',
            (lead_id,)
        )

    def get_recent(self, limit=20):
        return self.query_all('''
            SELECT i.*, c.nombre as contact_nombre, c.apellidos as contact_apellidos,
                   l.cliente_nombre as lead_nombre
            FROM interactions i
            LEFT JOIN contacts c ON c.id = i.contact_id
            LEFT JOIN leads l ON l.id = i.lead_id
            ORDER BY i.created_at DESC LIMIT %s
        ''', (limit,))

    def create(self, data, user_id=None, user_name=None):
        tipo = data.get('tipo')
        if tipo not in INTERACTION_TYPES:
            raise ValueError(f'tipo must be one of: {", ".join(INTERACTION_TYPES)}')
        if not data.get('contact_id') and not data.get('lead_id'):
            raise ValueError('contact_id or lead_id is required')
        return self.execute(
            '''INSERT INTO interactions (contact_id, lead_id, tipo, descripcion, resultado, user_id, user_name)
               VALUES (%s, %s, %s, %s, %s, %s, %s) RETURNING *''',
            (data.get('contact_id'), data.get('lead_id'), tipo, data.get('descripcion'),
             data.get('resultado'), user_id, user_name),
            returning=True
        )

    def update(self, interaction_id, data):
        if 'tipo' in data and data['tipo'] not in INTERACTION_TYPES:
            raise ValueError(f'tipo must be one of: {", ".join(INTERACTION_TYPES)}')
        return self._update('interactions', interaction_id, data, self._EDITABLE, touch=False)

    def delete(self, interaction_id):
        return self.execute('DELETE FROM interactions WHERE id = %s', (interaction_id,)) > 0

    def get_stats(self, days=7):
        """Interaction counts per tipo over the last `days` days."""
        rows = self.query_all('''
            SELECT tipo, COUNT(*) as count FROM interactions
            WHERE created_at >= NOW() - (%s * INTERVAL '1 day')
            GROUP BY tipo
        ''', (days,))
        by_tipo = {t: 0 for t in INTERACTION_TYPES}
        for r in rows:
            by_tipo[r['tipo']] = r['count']
        return {'days': days, 'total': sum(by_tipo.values()), 'by_tipo': by_tipo}
