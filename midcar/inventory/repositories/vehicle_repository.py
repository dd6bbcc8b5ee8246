"""Vehicle Repository: CRUD + search for the vehicles stock table."""

import re
import json

from core.base_repository import BaseRepository


class VehicleRepository(BaseRepository):

    _EDITABLE = {
        'vin', 'matricula', 'stock_id', 'estado', 'destacado', 'en_oferta',
        'marca', 'modelo', 'version', 'año_fabricacion', 'año_matriculacion',
        'tipo_motor', 'cilindrada', 'potencia_cv', 'potencia_kw', 'combustible',
        'consumo_mixto', 'emisiones_co2', 'etiqueta_dgt',
        'transmision', 'num_marchas', 'traccion',
        'tipo_carroceria', 'num_puertas', 'num_plazas', 'color_exterior', 'color_interior',
        'kilometraje', 'num_propietarios', 'es_nacional', 'primera_mano',
        'precio_compra', 'gastos_compra', 'coste_reparaciones', 'precio_venta', 'descuento',
        'fecha_entrada_stock', 'garantia_meses', 'tipo_garantia', 'fecha_itv_vencimiento',
        'imagen_principal', 'imagenes', 'url_web', 'equipamiento', 'descripcion',
    }

    _JSON_FIELDS = {'imagenes', 'equipamiento'}

    _ALLOWED_SORT = {
        'stock_id', 'marca', 'modelo', 'año_matriculacion', 'kilometraje',
        'precio_venta', 'estado', 'fecha_entrada_stock', 'created_at', 'updated_at', 'id',
    }

    def _prepare(self, data):
        prepared = {}
        for key, value in data.items():
            if key not in self._EDITABLE:
                continue
            if key in self._JSON_FIELDS and value is not None:
                value = json.dumps(value)
            elif key == 'matricula' and value:
                value = re.sub(r'[\s\-\.]', '', str(value)).upper()
            elif key == 'vin' and value:
                value = str(value).strip().upper()
            prepared[key] = value
        return prepared

    def get_by_id(self, vehicle_id):
        return self.query_one('SELECT * FROM vehicles WHERE id = %s', (vehicle_id,))

    def get_by_matricula(self, matricula):
        plate = re.sub(r'[\s\-\.]', '', matricula or '').upper()
        return self.query_one(
            "SELECT * FROM vehicles WHERE UPPER(REPLACE(REPLACE(matricula, ' ', ''), '-', '')) = %s",
            (plate,)
        )

    def get_all(self, estado=None, marca=None, combustible=None,
                precio_min=None, precio_max=None, year_min=None, year_max=None,
                search=None, owner_id=None, destacado=None,
                sort_by=None, sort_order=None, limit=50, offset=0):
        conditions, params = ['TRUE'], []
        if estado:
            if isinstance(estado, (list, tuple)):
                conditions.append('estado = ANY(%s)')
                params.append(list(estado))
            else:
                conditions.append('estado = %s')
                params.append(estado)
        if marca:
            conditions.append('marca ILIKE %s')
            params.append(marca)
        if combustible:
            conditions.append('combustible = %s')
            params.append(combustible)
        if precio_min is not None:
            conditions.append('precio_venta >= %s')
            params.append(precio_min)
        if precio_max is not None:
            conditions.append('precio_venta <= %s')
            params.append(precio_max)
        if year_min is not None:
            conditions.append('año_matriculacion >= %s')
            params.append(year_min)
        if year_max is not None:
            conditions.append('año_matriculacion <= %s')
            params.append(year_max)
        if destacado is not None:
            conditions.append('destacado = %s')
            params.append(bool(destacado))
        if search:
            term = f'%{search.strip()}%'
            conditions.append('(marca ILIKE %s OR modelo ILIKE %s OR matricula ILIKE %s '
                              'OR vin ILIKE %s OR stock_id ILIKE %s)')
            params.extend([term] * 5)
        if owner_id:
            conditions.append('created_by = %s')
            params.append(owner_id)

        where = ' AND '.join(conditions)
        params_count = tuple(params)
        order = 'created_at DESC, id DESC'
        if sort_by and sort_by in self._ALLOWED_SORT:
            direction = 'ASC' if (sort_order or '').upper() == 'ASC' else 'DESC'
            order = f'{sort_by} {direction} NULLS LAST, id DESC'
        params.extend([limit, offset])

        rows = self.query_all(
            f'SELECT * FROM vehicles WHERE {where} ORDER BY {order} LIMIT %s OFFSET %s',
            tuple(params)
        )
        count_row = self.query_one(f'SELECT COUNT(*) as count FROM vehicles WHERE {where}', params_count)
        return rows, count_row['count']

    def get_all_for_metrics(self):
        """Every non-deleted vehicle with the columns the dashboard needs."""
        return self.query_all('''
            SELECT id, stock_id, marca, modelo, matricula, estado, precio_compra, gastos_compra,
                   coste_reparaciones, precio_venta, descuento, fecha_entrada_stock, created_at
            FROM vehicles
        ''')

    def get_purchased_in_range(self, date_from, date_to):
        """Vehicles that entered stock in [date_from, date_to]."""
        return self.query_all('''
            SELECT id, stock_id, marca, modelo, matricula, estado, precio_compra, gastos_compra,
                   coste_reparaciones, precio_venta, fecha_entrada_stock
            FROM vehicles
            WHERE fecha_entrada_stock BETWEEN %s AND %s
            ORDER BY fecha_entrada_stock
        ''', (date_from, date_to))

    def generate_stock_id(self):
        """Next STK-NNNN id: one above the highest numeric suffix in use."""
        row = self.query_one(r'''
            SELECT COALESCE(MAX(CAST(SUBSTRING(stock_id FROM '(\d+)$') AS INTEGER)), 0) AS max_num
            FROM vehicles WHERE stock_id ~ '^STK-\d+$'
        ''')
        return f"STK-{(row['max_num'] if row else 0) + 1:04d}"

    def create(self, data, user_id=None, user_name=None):
        fields = self._prepare(data)
        if not fields.get('stock_id'):
            fields['stock_id'] = self.generate_stock_id()
        fields.setdefault('estado', 'disponible')
        fields['created_by'] = user_id
        fields['created_by_name'] = user_name
        cols = ', '.join(fields.keys())
        placeholders = ', '.join(['%s'] * len(fields))
        return self.execute(
            f'INSERT INTO vehicles ({cols}) VALUES ({placeholders}) RETURNING *',
            tuple(fields.values()), returning=True
        )

    def update(self, vehicle_id, data):
        fields = self._prepare(data)
        if not fields:
            return None
        sets = ', '.join(f'{k} = %s' for k in fields)
        return self.execute(
            f'UPDATE vehicles SET {sets}, updated_at = NOW() WHERE id = %s RETURNING *',
            tuple(fields.values()) + (vehicle_id,), returning=True
        )

    def update_estado(self, vehicle_id, estado):
        return self.execute(
            'UPDATE vehicles SET estado = %s, updated_at = NOW() WHERE id = %s RETURNING *',
            (estado, vehicle_id), returning=True
        )

    def delete(self, vehicle_id):
        return self.execute('DELETE FROM vehicles WHERE id = %s', (vehicle_id,)) > 0

    def get_stats(self):
        return self.query_one('''
            SELECT
                COUNT(*) as total,
                COUNT(*) FILTER (WHERE estado = 'disponible') as disponible,
                COUNT(*) FILTER (WHERE estado = 'reservado') as reservado,
                COUNT(*) FILTER (WHERE estado = 'vendido') as vendido,
                COUNT(*) FILTER (WHERE estado = 'taller') as taller,
                COUNT(*) FILTER (WHERE estado = 'baja') as baja,
                COALESCE(SUM(precio_venta) FILTER (WHERE estado IN ('disponible', 'reservado', 'taller')), 0)
                    as valor_stock,
                COALESCE(AVG(CURRENT_DATE - fecha_entrada_stock)
                    FILTER (WHERE estado IN ('disponible', 'reservado', 'taller')
                            AND fecha_entrada_stock IS NOT NULL), 0) as dias_medio_stock
            FROM vehicles
        ''')

    def get_brands(self):
        return self.query_all('''
            SELECT marca, COUNT(*) as count FROM vehicles
            WHERE marca IS NOT NULL AND estado != 'baja'
            GROUP BY marca ORDER BY count DESC, marca
        ''')

    def get_active_with_plates(self):
        """Non-sold vehicles that have a plate, for insurance matching."""
        return self.query_all('''
            SELECT id, marca, modelo, matricula, estado FROM vehicles
            WHERE matricula IS NOT NULL AND matricula != '' AND estado != 'vendido'
        ''')
