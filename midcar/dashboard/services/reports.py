"""Period reports — purchases vs sales for a quarter or a whole year."""
import logging
from collections import defaultdict
from datetime import date

from inventory.repositories import VehicleRepository
from inventory.services.vehicle_metrics import coste_total, parse_date
from crm.repositories import SaleRepository
from crm.services.crm_service import COMPLETED_SALE_STATES, sale_amount, sale_margin
from core.services.export_service import export_workbook

logger = logging.getLogger('midcar.dashboard.reports')

PERIODS = {
    'q1': ((1, 1), (3, 31)),
    'q2': ((4, 1), (6, 30)),
    'q3': ((7, 1), (9, 30)),
    'q4': ((10, 1), (12, 31)),
    'year': ((1, 1), (12, 31)),
}

PURCHASE_COLUMNS = [
    ('Stock', 'stock_id', None),
    ('Vehículo', lambda r: f"{r.get('marca') or ''} {r.get('modelo') or ''}".strip(), None),
    ('Matrícula', 'matricula', None),
    ('Entrada', 'fecha_entrada_stock', 'date'),
    ('Coste total', 'coste_total', 'money'),
    ('Estado', 'estado', None),
]

SALE_COLUMNS = [
    ('Factura', 'numero_factura', None),
    ('Fecha', 'fecha_venta', 'date'),
    ('Vehículo', lambda r: f"{r.get('marca') or ''} {r.get('modelo') or ''}".strip(), None),
    ('Vendedor', 'vendedor_nombre', None),
    ('Importe', 'importe', 'money'),
    ('Margen', 'margen', 'money'),
]

BRAND_COLUMNS = [
    ('Marca', 'marca', None),
    ('Ventas', 'ventas', None),
    ('Facturación', 'facturacion', 'money'),
]

SELLER_COLUMNS = [
    ('Vendedor', 'vendedor', None),
    ('Ventas', 'ventas', None),
    ('Facturación', 'facturacion', 'money'),
    ('Margen', 'margen', 'money'),
]


def get_period_range(period, year):
    """(date_from, date_to) inclusive for q1..q4 or 'year'."""
    if period not in PERIODS:
        raise ValueError(f"period must be one of: {', '.join(PERIODS)}")
    (m1, d1), (m2, d2) = PERIODS[period]
    return date(year, m1, d1), date(year, m2, d2)


def _group(sales, key):
    groups = defaultdict(lambda: {'ventas': 0, 'facturacion': 0.0, 'margen': 0.0})
    for s in sales:
        g = groups[key(s) or 'Sin asignar']
        g['ventas'] += 1
        g['facturacion'] += s['importe']
        g['margen'] += s['margen']
    return sorted(
        ({'name': name, 'ventas': g['ventas'], 'facturacion': round(g['facturacion'], 2),
          'margen': round(g['margen'], 2)} for name, g in groups.items()),
        key=lambda r: (-r['ventas'], -r['facturacion']),
    )


def compile_report(purchases, sales):
    """Aggregate already-loaded purchase and sale rows into the report dict."""
    compras = [{**v, 'coste_total': round(coste_total(v), 2)} for v in purchases]

    ventas = []
    for s in sales:
        if s.get('estado') not in COMPLETED_SALE_STATES:
            continue
        ventas.append({**s, 'importe': round(sale_amount(s), 2), 'margen': round(sale_margin(s), 2)})

    days_to_sell = []
    for s in ventas:
        entry, sold = parse_date(s.get('fecha_entrada_stock')), parse_date(s.get('fecha_venta'))
        if entry and sold and sold >= entry:
            days_to_sell.append((sold - entry).days)

    por_marca = [{'marca': r['name'], 'ventas': r['ventas'], 'facturacion': r['facturacion']}
                 for r in _group(ventas, lambda s: s.get('marca'))]
    por_vendedor = [{'vendedor': r['name'], 'ventas': r['ventas'], 'facturacion': r['facturacion'],
                     'margen': r['margen']}
                    for r in _group(ventas, lambda s: s.get('vendedor_nombre'))]

    total_compras = sum(v['coste_total'] for v in compras)
    total_ventas = sum(s['importe'] for s in ventas)
    return {
        'compras': {'count': len(compras), 'total': round(total_compras, 2), 'vehicles': compras},
        'ventas': {
            'count': len(ventas),
            'total': round(total_ventas, 2),
            'margen': round(sum(s['margen'] for s in ventas), 2),
            'sales': ventas,
        },
        'por_marca': por_marca,
        'por_vendedor': por_vendedor,
        'dias_medio_venta': round(sum(days_to_sell) / len(days_to_sell), 1) if days_to_sell else 0,
    }


def build_report(period, year):
    date_from, date_to = get_period_range(period, year)
    report = compile_report(
        VehicleRepository().get_purchased_in_range(date_from, date_to),
        SaleRepository().get_in_range(date_from, date_to),
    )
    report['periodo'] = {
        'period': period, 'year': year,
        'desde': date_from.isoformat(), 'hasta': date_to.isoformat(),
    }
    logger.info(f"Report {period}/{year}: {report['compras']['count']} purchases, "
                f"{report['ventas']['count']} sales")
    return report


def export_report_excel(report):
    """Workbook with Resumen, Compras, Ventas, Por marca and Por vendedor sheets."""
    periodo = report.get('periodo', {})
    resumen = [
        {'concepto': 'Periodo', 'valor': f"{periodo.get('desde', '')} - {periodo.get('hasta', '')}"},
        {'concepto': 'Vehículos comprados', 'valor': report['compras']['count']},
        {'concepto': 'Total compras', 'valor': report['compras']['total']},
        {'concepto': 'Vehículos vendidos', 'valor': report['ventas']['count']},
        {'concepto': 'Total ventas', 'valor': report['ventas']['total']},
        {'concepto': 'Margen', 'valor': report['ventas']['margen']},
        {'concepto': 'Días medios hasta venta', 'valor': report['dias_medio_venta']},
    ]
    return export_workbook([
        ('Resumen', resumen, [('Concepto', 'concepto', None), ('Valor', 'valor', None)]),
        ('Compras', report['compras']['vehicles'], PURCHASE_COLUMNS),
        ('Ventas', report['ventas']['sales'], SALE_COLUMNS),
        ('Por marca', report['por_marca'], BRAND_COLUMNS),
        ('Por vendedor', report['por_vendedor'], SELLER_COLUMNS),
    ])
