"""Policy Repository — polizas_seguro CRUD, expiry queries and upsert by number."""

import json
from datetime import date

from core.base_repository import BaseRepository

POLICY_STATES = ('activa', 'vencida', 'cancelada', 'en_tramite')

COVERAGE_KEYS = (
    'responsabilidad_civil', 'defensa_juridica', 'asistencia_viaje', 'rotura_lunas',
    'robo', 'incendio', 'danos_propios', 'danos_propios_franquicia',
    'accidentes_conductor', 'vehiculo_sustitucion',
)

# Third-party basics every policy carries
DEFAULT_COVERAGES = {key: key in ('responsabilidad_civil', 'defensa_juridica', 'asistencia_viaje')
                     for key in COVERAGE_KEYS}


def normalize_coverages(coberturas):
    """Full 10-key boolean dict, missing keys taken from DEFAULT_COVERAGES."""
    result = dict(DEFAULT_COVERAGES)
    for key, value in (coberturas or {}).items():
        if key in result:
            result[key] = bool(value)
    return result


class PolicyRepository(BaseRepository):

    _EDITABLE = {
        'vehiculo_id', 'vehiculo_matricula', 'numero_poliza', 'compania_aseguradora',
        'tipo_poliza', 'fecha_alta', 'fecha_vencimiento', 'prima_anual', 'franquicia',
        'tomador_nombre', 'tomador_nif', 'coberturas', 'documento_poliza', 'documento_recibo',
        'estado', 'notas',
    }

    def _prepare(self, data):
        fields = {k: v for k, v in data.items() if k in self._EDITABLE}
        if 'coberturas' in fields:
            fields['coberturas'] = json.dumps(normalize_coverages(fields['coberturas']))
        if fields.get('estado') and fields['estado'] not in POLICY_STATES:
            raise ValueError(f"estado must be one of: {', '.join(POLICY_STATES)}")
        return fields

    def get_by_id(self, policy_id):
        return self.query_one('SELECT * FROM polizas_seguro WHERE id = %s', (policy_id,))

    def get_by_numero(self, numero_poliza):
        return self.query_one('SELECT * FROM polizas_seguro WHERE numero_poliza = %s', (numero_poliza,))

    def get_by_vehicle(self, vehicle_id):
        """Active policy of a vehicle that expires last, or None."""
        return self.query_one('''
            SELECT * FROM polizas_seguro
            WHERE vehiculo_id = %s AND estado = 'activa'
            ORDER BY fecha_vencimiento DESC LIMIT 1
        ''', (vehicle_id,))

    def get_all(self, estado=None, compania=None, search=None, vehiculo_id=None, limit=100, offset=0):
        conditions, params = ['TRUE'], []
        if estado:
            conditions.append('p.estado = %s')
            params.append(estado)
        if compania:
            conditions.append('p.compania_aseguradora = %s')
            params.append(compania)
        if vehiculo_id:
            conditions.append('p.vehiculo_id = %s')
            params.append(vehiculo_id)
        if search and search.strip():
            term = f'%{search.strip()}%'
            conditions.append('(p.numero_poliza ILIKE %s OR p.vehiculo_matricula ILIKE %s '
                              'OR p.tomador_nombre ILIKE %s)')
            params.extend([term] * 3)
        where = ' AND '.join(conditions)
        params_count = tuple(params)
        params.extend([limit, offset])
        rows = self.query_all(
            f'''SELECT p.*, v.marca, v.modelo, v.matricula as vehiculo_matricula_actual
                FROM polizas_seguro p LEFT JOIN vehicles v ON v.id = p.vehiculo_id
                WHERE {where}
                ORDER BY p.fecha_vencimiento ASC NULLS LAST, p.id DESC
                LIMIT %s OFFSET %s''',
            tuple(params)
        )
        count_row = self.query_one(f'SELECT COUNT(*) as count FROM polizas_seguro p WHERE {where}', params_count)
        return rows, count_row['count']

    def get_for_state(self):
        """Every non-cancelled policy (for per-vehicle state computation)."""
        return self.query_all('''
            SELECT id, vehiculo_id, vehiculo_matricula, numero_poliza, compania_aseguradora,
                   tipo_poliza, fecha_vencimiento, estado
            FROM polizas_seguro WHERE estado != 'cancelada'
        ''')

    def get_expiring(self, days=30):
        """Active policies expiring within `days` days (already expired excluded)."""
        return self.query_all('''
            SELECT p.*, v.marca, v.modelo
            FROM polizas_seguro p LEFT JOIN vehicles v ON v.id = p.vehiculo_id
            WHERE p.estado = 'activa'
              AND p.fecha_vencimiento >= CURRENT_DATE
              AND p.fecha_vencimiento <= CURRENT_DATE + %s
            ORDER BY p.fecha_vencimiento ASC
        ''', (days,))

    def generate_policy_number(self, year=None):
        """Next POL-{year}-NNNNNN number for the year."""
        year = year or date.today().year
        row = self.query_one(r'''
            SELECT COALESCE(MAX(CAST(SUBSTRING(numero_poliza FROM '(\d+)$') AS INTEGER)), 0) AS max_num
            FROM polizas_seguro WHERE numero_poliza LIKE %s
        ''', (f'POL-{year}-%',))
        return f"POL-{year}-{(row['max_num'] if row else 0) + 1:06d}"

    def create(self, data, user_id=None, user_name=None):
        fields = self._prepare(data)
        if not fields.get('fecha_vencimiento'):
            raise ValueError('fecha_vencimiento es obligatoria')
        if not fields.get('numero_poliza'):
            fields['numero_poliza'] = self.generate_policy_number()
        fields.setdefault('estado', 'activa')
        fields.setdefault('coberturas', json.dumps(DEFAULT_COVERAGES))
        fields['created_by'] = user_id
        fields['created_by_name'] = user_name
        return self._insert('polizas_seguro', fields, set(fields))

    def update(self, policy_id, data):
        return self._update('polizas_seguro', policy_id, self._prepare(data), self._EDITABLE)

    def delete(self, policy_id):
        return self.execute('DELETE FROM polizas_seguro WHERE id = %s', (policy_id,)) > 0

    def upsert_by_numero(self, data, user_id=None, user_name=None):
        """Insert or update keyed on numero_poliza. Returns (row, created)."""
        fields = self._prepare(data)
        existing = self.get_by_numero(fields['numero_poliza'])
        if existing:
            fields.pop('numero_poliza')
            return self._update('polizas_seguro', existing['id'], fields, self._EDITABLE), False
        fields.setdefault('coberturas', json.dumps(DEFAULT_COVERAGES))
        fields['created_by'] = user_id
        fields['created_by_name'] = user_name
        return self._insert('polizas_seguro', fields, set(fields)), True

    def refresh_states(self):
        """Mark active policies past their expiry as vencida. Returns the count."""
        return self.execute('''
            UPDATE polizas_seguro SET estado = 'vencida', updated_at = NOW()
            WHERE estado = 'activa' AND fecha_vencimiento < CURRENT_DATE
        ''')

    def get_counts(self):
        return self.query_one('''
            SELECT
                COUNT(*) FILTER (WHERE estado = 'activa') as activas,
                COUNT(*) FILTER (WHERE estado = 'vencida') as vencidas,
                COUNT(*) FILTER (WHERE estado = 'en_tramite') as en_tramite,
                COALESCE(SUM(prima_anual) FILTER (WHERE estado = 'activa'), 0) as prima_total
            FROM polizas_seguro
        ''')
