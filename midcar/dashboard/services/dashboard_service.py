"""Dashboard Service — loads the rows once and combines every KPI block."""
import os
import logging
from datetime import date

from database import cached
from inventory.repositories import VehicleRepository
from crm.repositories import LeadRepository, SaleRepository
from crm.services.crm_service import compute_monthly_sales
from insurance.repositories import PolicyRepository
from .metrics import stock_metrics, sales_metrics, lead_metrics, insurance_metrics

logger = logging.getLogger('midcar.dashboard.services')

# Per-worker cache; other workers see writes once their copy expires.
DASHBOARD_CACHE_TTL = int(os.environ.get('DASHBOARD_CACHE_TTL', '300'))


class DashboardService:

    def __init__(self):
        self.vehicle_repo = VehicleRepository()
        self.lead_repo = LeadRepository()
        self.sale_repo = SaleRepository()
        self.policy_repo = PolicyRepository()

    def get_dashboard(self):
        return _load_dashboard()

    def build(self):
        today = date.today()
        vehicles = self.vehicle_repo.get_all_for_metrics()
        sales = self.sale_repo.get_all_for_metrics()
        leads = self.lead_repo.get_stats_rows()
        policies = self.policy_repo.get_for_state()

        vehicles_by_id = {v['id']: v for v in vehicles}
        return {
            'stock': stock_metrics(vehicles, today),
            'ventas': sales_metrics(sales, vehicles_by_id, today.year, today.month),
            'ventas_mensuales': compute_monthly_sales(sales, today.year),
            'leads': lead_metrics(leads, today),
            'seguros': insurance_metrics(vehicles, policies),
            'generated_at': today.isoformat(),
        }


@cached(DASHBOARD_CACHE_TTL)
def _load_dashboard():
    logger.debug('Dashboard cache miss, recomputing')
    return DashboardService().build()


def invalidate_dashboard():
    """Drop the memoized dashboard so the next request recomputes it."""
    _load_dashboard.invalidate()
