"""Insurance Import Service — persists the matched rows of a parsed insurer file."""

import logging
from datetime import date

from ..repositories import PolicyRepository
from ..parsers.utils import parse_date
from core.utils.logging_config import log_with_context

logger = logging.getLogger('midcar.insurance.services.import')


class InsuranceImportService:

    def __init__(self):
        self.policy_repo = PolicyRepository()

    def _to_row(self, item):
        policy = item['policy']
        vencimiento = parse_date(policy.get('fecha_vencimiento'))
        estado = 'activa' if vencimiento and vencimiento >= date.today().isoformat() else 'vencida'
        return {
            'vehiculo_id': item['vehicle_id'],
            'vehiculo_matricula': item.get('matricula') or policy.get('matricula'),
            'numero_poliza': policy.get('numero_poliza'),
            'compania_aseguradora': policy.get('compania_aseguradora') or 'Otra',
            'tipo_poliza': policy.get('tipo_poliza') or 'todo_riesgo_sin_franquicia',
            'fecha_alta': parse_date(policy.get('fecha_alta')),
            'fecha_vencimiento': vencimiento,
            'prima_anual': policy.get('prima_anual'),
            'franquicia': policy.get('franquicia'),
            'tomador_nombre': policy.get('tomador_nombre'),
            'tomador_nif': policy.get('tomador_nif'),
            'estado': estado,
        }

    def import_policies(self, matched, user_id=None, user_name=None):
        """Upsert each matched policy by numero_poliza.

        Args:
            matched: 'matched' entries from match_policies_with_vehicles()

        Returns:
            {total, new, updated, skipped, errors}
        """
        stats = {'total': len(matched), 'new': 0, 'updated': 0, 'skipped': 0, 'errors': []}
        for item in matched:
            row = self._to_row(item)
            if not row['numero_poliza'] or not row['fecha_vencimiento']:
                stats['skipped'] += 1
                continue
            try:
                _, created = self.policy_repo.upsert_by_numero(row, user_id=user_id, user_name=user_name)
                stats['new' if created else 'updated'] += 1
            except Exception as e:
                logger.warning(f"Policy import failed for {row['numero_poliza']}: {e}")
                stats['errors'].append(f"{row['numero_poliza']}: {e}")
        log_with_context(logger, logging.INFO, 'Insurance import finished',
                         new=stats['new'], updated=stats['updated'],
                         skipped=stats['skipped'], errors=len(stats['errors']), user_id=user_id)
        return stats
