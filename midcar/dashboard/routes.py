"""Dashboard & reports API routes."""

import logging
from datetime import date
from flask import jsonify, request, send_file

from . import dashboard_bp
from .services.dashboard_service import DashboardService
from .services.reports import build_report, export_report_excel
from core.services.export_service import XLSX_MIMETYPE
from core.utils.api_helpers import permission_required, get_bool_arg, error_response, safe_error_response

logger = logging.getLogger('midcar.dashboard.routes')

_dashboard_service = DashboardService()


@dashboard_bp.route('/api/dashboard', methods=['GET'])
@permission_required('dashboard', 'view')
def api_dashboard():
    """All KPI blocks; ?refresh=1 bypasses the cache."""
    try:
        if get_bool_arg('refresh'):
            return jsonify(_dashboard_service.build())
        return jsonify(_dashboard_service.get_dashboard())
    except Exception as e:
        return safe_error_response(e)


def _report_args():
    period = request.args.get('period', 'year')
    year = request.args.get('year', date.today().year, type=int)
    return period, year


@dashboard_bp.route('/api/reports', methods=['GET'])
@permission_required('dashboard', 'view')
def api_reports():
    period, year = _report_args()
    try:
        return jsonify(build_report(period, year))
    except ValueError as e:
        return error_response(str(e))
    except Exception as e:
        return safe_error_response(e)


@dashboard_bp.route('/api/reports/export', methods=['GET'])
@permission_required('dashboard', 'view')
def api_reports_export():
    period, year = _report_args()
    try:
        report = build_report(period, year)
    except ValueError as e:
        return error_response(str(e))
    output = export_report_excel(report)
    return send_file(output, mimetype=XLSX_MIMETYPE, as_attachment=True,
                     download_name=f'informe_{period}_{year}.xlsx')
