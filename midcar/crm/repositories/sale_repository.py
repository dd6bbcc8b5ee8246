"""Sale Repository — sales ledger with the vehicle cost columns joined for margins."""

from core.base_repository import BaseRepository

SALE_STATES = ('pendiente', 'completada', 'entregado', 'cancelada')

# Sale row plus the sold vehicle's cost basis, brand and the seller name
_SALE_SELECT = '''
    SELECT s.*, v.marca, v.modelo, v.matricula, v.stock_id,
           v.precio_compra, v.gastos_compra, v.coste_reparaciones, v.fecha_entrada_stock,
           u.name as vendedor_nombre
    FROM sales s
    LEFT JOIN vehicles v ON v.id = s.vehiculo_id
    LEFT JOIN users u ON u.id = s.vendedor_id
'''


class SaleRepository(BaseRepository):

    _EDITABLE = {
        'numero_factura', 'cliente_id', 'vehiculo_id', 'lead_id', 'vendedor_id',
        'fecha_venta', 'fecha_entrega', 'precio_venta', 'descuento', 'gastos_adicionales',
        'precio_final', 'forma_pago', 'financiacion', 'estado', 'notas',
    }

    def get_by_id(self, sale_id):
        return self.query_one(f'{_SALE_SELECT} WHERE s.id = %s', (sale_id,))

    def get_all(self, estado=None, vendedor_id=None, date_from=None, date_to=None,
                limit=50, offset=0):
        conditions, params = ['TRUE'], []
        if estado:
            conditions.append('s.estado = %s')
            params.append(estado)
        if vendedor_id:
            conditions.append('s.vendedor_id = %s')
            params.append(vendedor_id)
        if date_from:
            conditions.append('s.fecha_venta >= %s')
            params.append(date_from)
        if date_to:
            conditions.append('s.fecha_venta <= %s')
            params.append(date_to)
        where = ' AND '.join(conditions)
        params_count = tuple(params)
        params.extend([limit, offset])
        rows = self.query_all(
            f'{_SALE_SELECT} WHERE {where} ORDER BY s.fecha_venta DESC, s.id DESC LIMIT %s OFFSET %s',
            tuple(params)
        )
        count_row = self.query_one(f'SELECT COUNT(*) as count FROM sales s WHERE {where}', params_count)
        return rows, count_row['count']

    def get_in_range(self, date_from, date_to):
        """Every sale with fecha_venta in [date_from, date_to], joined with cost data."""
        return self.query_all(
            f'{_SALE_SELECT} WHERE s.fecha_venta BETWEEN %s AND %s ORDER BY s.fecha_venta',
            (date_from, date_to)
        )

    def get_all_for_metrics(self):
        return self.query_all(f"{_SALE_SELECT} WHERE s.estado != 'cancelada'")

    def update(self, sale_id, data):
        estado = data.get('estado')
        if estado and estado not in SALE_STATES:
            raise ValueError(f'estado must be one of: {", ".join(SALE_STATES)}')
        return self._update('sales', sale_id, data, self._EDITABLE)

    def delete(self, sale_id):
        return self.execute('DELETE FROM sales WHERE id = %s', (sale_id,)) > 0
