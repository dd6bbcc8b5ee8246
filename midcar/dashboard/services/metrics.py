"""Dashboard KPIs computed from plain row dicts.

Every function here is pure: callers load the rows, these only aggregate,
so the figures can be tested without a database.
"""
import os
from collections import Counter
from datetime import date, timedelta

from inventory.services.vehicle_metrics import IN_STOCK_STATES, dias_en_stock, en_riesgo, parse_date
from crm.services.crm_service import (
    COMPLETED_SALE_STATES, compute_lead_stats, sale_amount, sale_margin, _num,
)
from insurance.services.policy_state import build_vehicle_insurance, count_states

MONTHLY_SALES_TARGET = int(os.environ.get('MONTHLY_SALES_TARGET', '15'))

AT_RISK_LIMIT = 10


def stock_metrics(vehicles, today=None):
    today = today or date.today()
    stock = [v for v in vehicles if v.get('estado') in IN_STOCK_STATES]
    by_estado = Counter(v.get('estado') for v in vehicles)
    days = [dias_en_stock(v, today) for v in stock]

    at_risk = sorted(
        ({'id': v.get('id'), 'stock_id': v.get('stock_id'), 'marca': v.get('marca'),
          'modelo': v.get('modelo'), 'estado': v.get('estado'), 'dias_en_stock': d}
         for v, d in zip(stock, days) if en_riesgo(v, today)),
        key=lambda r: r['dias_en_stock'], reverse=True,
    )[:AT_RISK_LIMIT]

    brands = Counter(v.get('marca') for v in stock if v.get('marca'))
    return {
        'total_stock': len(stock),
        'by_estado': dict(by_estado),
        'valor_stock': round(sum(_num(v.get('precio_venta')) for v in stock), 2),
        'dias_medio_stock': round(sum(days) / len(days), 1) if days else 0,
        'en_riesgo': at_risk,
        'marcas': [{'marca': m, 'count': c}
                   for m, c in sorted(brands.items(), key=lambda kv: (-kv[1], kv[0]))],
    }


def sales_metrics(sales, vehicles_by_id=None, year=None, month=None, target=None):
    """Current-month sales, revenue, margin and progress against the monthly target.

    `vehicles_by_id` supplies cost columns for sales rows that were loaded
    without the vehicle join.
    """
    today = date.today()
    year = year or today.year
    month = month or today.month
    target = target or MONTHLY_SALES_TARGET
    vehicles_by_id = vehicles_by_id or {}

    month_sales = []
    for s in sales:
        if s.get('estado') not in COMPLETED_SALE_STATES:
            continue
        fecha = parse_date(s.get('fecha_venta'))
        if fecha and fecha.year == year and fecha.month == month:
            vehicle = vehicles_by_id.get(s.get('vehiculo_id')) or {}
            month_sales.append({**vehicle, **s})

    ingresos = sum(sale_amount(s) for s in month_sales)
    margenes = [sale_margin(s) for s in month_sales]
    porcentajes = [m / sale_amount(s) * 100 for s, m in zip(month_sales, margenes) if sale_amount(s)]
    count = len(month_sales)
    return {
        'ventas_mes': count,
        'ingresos_mes': round(ingresos, 2),
        'margen_mes': round(sum(margenes), 2),
        'margen_medio_porcentaje': round(sum(porcentajes) / len(porcentajes), 1) if porcentajes else 0,
        'objetivo_mensual': target,
        'progreso_objetivo': min(100, round(count / target * 100, 1)) if target else 0,
    }


def lead_metrics(leads, today=None):
    today = today or date.today()
    since = today - timedelta(days=7)
    stats = compute_lead_stats(leads)
    stats['nuevos_7_dias'] = sum(
        1 for lead in leads
        if (parse_date(lead.get('created_at')) or date.min) >= since
    )
    return stats


def insurance_metrics(vehicles, policies, now=None):
    return count_states(build_vehicle_insurance(vehicles, policies, now))
