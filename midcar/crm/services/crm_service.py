"""CRM Service — pipeline/sales statistics and the sale transaction.

The compute_* functions are pure and take plain row dicts, so the
dashboard and reports reuse them over whatever rows they loaded.
"""
import time
import logging
from datetime import date
from dataclasses import dataclass
from typing import Any, Optional, List, Dict

from database import dict_from_row
from core.base_repository import BaseRepository
from inventory.services.vehicle_metrics import coste_total, parse_date
from ..repositories.lead_repository import LEAD_STATES, CLOSED_STATES

logger = logging.getLogger('midcar.crm.services')

COMPLETED_SALE_STATES = ('completada', 'entregado')


@dataclass
class ServiceResult:
    """Result of a service operation."""
    success: bool
    data: Any = None
    error: Optional[str] = None


def _num(value):
    try:
        return float(value or 0)
    except (TypeError, ValueError):
        return 0.0


# ============== Leads ==============

def compute_lead_stats(rows: List[Dict[str, Any]]) -> Dict[str, Any]:
    """Counts per estado, weighted pipeline value and conversion rate."""
    stats = {estado: 0 for estado in LEAD_STATES}
    valor_pipeline = 0.0
    for row in rows:
        estado = row.get('estado')
        stats[estado] = stats.get(estado, 0) + 1
        if estado not in CLOSED_STATES:
            valor_pipeline += _num(row.get('presupuesto_cliente')) * _num(row.get('probabilidad')) / 100
    total = len(rows)
    stats['total'] = total
    stats['activos'] = total - stats['vendido'] - stats['perdido']
    stats['valor_pipeline'] = round(valor_pipeline, 2)
    stats['tasa_conversion'] = round(stats['vendido'] / total * 100, 1) if total else 0
    return stats


# ============== Sales ==============

def compute_sale_margin(vehicle: Dict[str, Any], precio_final) -> Dict[str, float]:
    """Margin of selling `vehicle` at `precio_final`."""
    coste = coste_total(vehicle)
    precio = _num(precio_final)
    margen = precio - coste
    return {
        'coste': round(coste, 2),
        'margen': round(margen, 2),
        'margen_porcentaje': round(margen / precio * 100, 2) if precio else 0,
    }


def sale_amount(sale):
    return _num(sale.get('precio_venta')) - _num(sale.get('descuento'))


def sale_margin(sale):
    """Stored margen_bruto, or recomputed from the joined vehicle cost columns."""
    if sale.get('margen_bruto') is not None:
        return _num(sale['margen_bruto'])
    precio_final = sale.get('precio_final')
    if precio_final is None:
        precio_final = sale_amount(sale) + _num(sale.get('gastos_adicionales'))
    return compute_sale_margin(sale, precio_final)['margen']


def compute_sales_stats(sales: List[Dict[str, Any]]) -> Dict[str, Any]:
    completed = [s for s in sales if s.get('estado') in COMPLETED_SALE_STATES]
    facturacion = sum(sale_amount(s) + _num(s.get('gastos_adicionales')) for s in completed)
    return {
        'total_ventas': len(completed),
        'facturacion_total': round(facturacion, 2),
        'margen_total': round(sum(sale_margin(s) for s in completed), 2),
        'ticket_medio': round(sum(sale_amount(s) for s in completed) / len(completed), 2) if completed else 0,
        'pendientes': sum(1 for s in sales if s.get('estado') == 'pendiente'),
    }


def compute_monthly_sales(sales: List[Dict[str, Any]], year: int) -> List[Dict[str, Any]]:
    """Twelve {mes, ventas, facturacion} buckets of completed sales in `year`."""
    months = [{'mes': m, 'ventas': 0, 'facturacion': 0.0} for m in range(1, 13)]
    for sale in sales:
        if sale.get('estado') not in COMPLETED_SALE_STATES:
            continue
        fecha = parse_date(sale.get('fecha_venta'))
        if not fecha or fecha.year != year:
            continue
        bucket = months[fecha.month - 1]
        bucket['ventas'] += 1
        bucket['facturacion'] = round(bucket['facturacion'] + sale_amount(sale), 2)
    return months


class SaleService:
    """Registers a sale and moves the vehicle and lead to vendido atomically."""

    def __init__(self):
        self.repo = BaseRepository()

    def create_sale(self, data: Dict[str, Any], user_id=None) -> ServiceResult:
        vehiculo_id = data.get('vehiculo_id')
        if not vehiculo_id:
            return ServiceResult(success=False, error='vehiculo_id es obligatorio')
        if data.get('precio_venta') in (None, ''):
            return ServiceResult(success=False, error='precio_venta es obligatorio')

        precio_venta = _num(data.get('precio_venta'))
        descuento = _num(data.get('descuento'))
        gastos = _num(data.get('gastos_adicionales'))
        precio_final = data.get('precio_final')
        precio_final = _num(precio_final) if precio_final not in (None, '') else precio_venta - descuento + gastos
        estado = data.get('estado') or 'completada'
        numero = data.get('numero_factura') or f'FAC-{date.today().year}-{str(int(time.time() * 1000))[-6:]}'

        def _work(cursor):
            cursor.execute(
                'SELECT id, estado, precio_compra, gastos_compra, coste_reparaciones '
                'FROM vehicles WHERE id = %s FOR UPDATE', (vehiculo_id,)
            )
            vehicle = cursor.fetchone()
            if not vehicle:
                raise ValueError('Vehículo no encontrado')
            if vehicle['estado'] == 'vendido':
                raise ValueError('El vehículo ya está vendido')
            margin = compute_sale_margin(vehicle, precio_final)

            cursor.execute('''
                INSERT INTO sales (numero_factura, cliente_id, vehiculo_id, lead_id, vendedor_id,
                                   fecha_venta, fecha_entrega, precio_venta, descuento, gastos_adicionales,
                                   precio_final, margen_bruto, porcentaje_margen, forma_pago,
                                   financiacion, estado, notas)
                VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
                RETURNING *
            ''', (numero, data.get('cliente_id'), vehiculo_id, data.get('lead_id'),
                  data.get('vendedor_id') or user_id, data.get('fecha_venta') or date.today(),
                  data.get('fecha_entrega'), precio_venta, descuento, gastos, precio_final,
                  margin['margen'], margin['margen_porcentaje'], data.get('forma_pago') or 'contado',
                  data.get('financiacion'), estado, data.get('notas')))
            sale = cursor.fetchone()

            cursor.execute(
                "UPDATE vehicles SET estado = 'vendido', updated_at = NOW() WHERE id = %s",
                (vehiculo_id,)
            )
            if data.get('lead_id'):
                cursor.execute(
                    "UPDATE leads SET estado = 'vendido', fecha_cierre = NOW(), updated_at = NOW() "
                    "WHERE id = %s", (data['lead_id'],)
                )
            return dict_from_row(sale)

        try:
            sale = self.repo.execute_many(_work)
        except ValueError as e:
            return ServiceResult(success=False, error=str(e))

        from dashboard.services.dashboard_service import invalidate_dashboard
        invalidate_dashboard()
        logger.info(f"Sale {sale['numero_factura']} registered for vehicle {vehiculo_id}")
        return ServiceResult(success=True, data=sale)
