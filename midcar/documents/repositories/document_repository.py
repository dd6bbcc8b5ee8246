"""Document Repository — numbered contracts, deposits, invoices and proformas.

Each save takes the nested request payload (empresa / vehiculo / comprador
dicts plus the economic fields) and stores a flat snapshot row, so a
document keeps printing the same data after the vehicle or company changes.
"""

import logging
from datetime import date

from core.base_repository import BaseRepository
from core.validation import require_valid_documento
from ..constants import (
    DOCUMENT_TYPES, DOCUMENT_STATES, IVA_PERCENT, IVA_OPTIONS, FORMAS_PAGO,
    DEFAULT_GARANTIA_MESES, DEFAULT_VALIDEZ_DIAS,
)
from ..services.economics import compute_economics, format_document_number, expiration_date

logger = logging.getLogger('midcar.documents.repository')


def _num(value):
    try:
        return float(value or 0)
    except (TypeError, ValueError):
        raise ValueError(f'Importe no válido: {value}')


def _empresa_fields(empresa):
    empresa = empresa or {}
    return {
        'empresa_id': empresa.get('id'),
        'empresa_nombre': empresa.get('nombre'),
        'empresa_cif': empresa.get('cif'),
        'empresa_direccion': empresa.get('direccion'),
    }


def _vehicle_fields(vehiculo):
    vehiculo = vehiculo or {}
    return {
        'vehiculo_id': vehiculo.get('id'),
        'vehiculo_marca': vehiculo.get('marca'),
        'vehiculo_modelo': vehiculo.get('modelo'),
        'vehiculo_matricula': vehiculo.get('matricula'),
        'vehiculo_vin': vehiculo.get('vin') or vehiculo.get('bastidor'),
        'vehiculo_km': vehiculo.get('kilometraje') or vehiculo.get('kilometros'),
    }


def _vehicle_description(vehiculo):
    vehiculo = vehiculo or {}
    name = f"{vehiculo.get('marca') or ''} {vehiculo.get('modelo') or ''}".strip()
    return f"{name} - {vehiculo['matricula']}" if vehiculo.get('matricula') else name


def _person_fields(persona, prefix):
    """Buyer block; the DNI/NIE/CIF is required and must validate."""
    persona = persona or {}
    if not (persona.get('nombre') or '').strip():
        raise ValueError(f'{prefix}_nombre es obligatorio')
    documento = persona.get('documento') or persona.get('dni') or persona.get('dni_cif')
    if not documento:
        raise ValueError(f'{prefix}_documento es obligatorio')
    return {
        f'{prefix}_nombre': persona.get('nombre'),
        f'{prefix}_apellidos': persona.get('apellidos'),
        f'{prefix}_documento': require_valid_documento(documento, field=f'{prefix}_documento'),
        f'{prefix}_direccion': persona.get('direccion'),
        f'{prefix}_cp': persona.get('codigo_postal'),
        f'{prefix}_localidad': persona.get('localidad'),
        f'{prefix}_provincia': persona.get('provincia'),
    }


def _iva_percent(data):
    iva = data.get('iva_percent', IVA_PERCENT)
    if iva is None:
        iva = IVA_PERCENT
    if float(iva) not in IVA_OPTIONS:
        raise ValueError(f"iva_percent must be one of: {', '.join(str(o) for o in IVA_OPTIONS)}")
    return float(iva)


def _forma_pago(data):
    forma = data.get('forma_pago') or 'transferencia'
    if forma not in FORMAS_PAGO:
        raise ValueError(f"forma_pago must be one of: {', '.join(FORMAS_PAGO)}")
    return forma


class DocumentRepository(BaseRepository):

    @staticmethod
    def _config(tipo):
        if tipo not in DOCUMENT_TYPES:
            raise ValueError(f'Tipo de documento no válido: {tipo}')
        return DOCUMENT_TYPES[tipo]

    def next_document_number(self, tipo, year=None):
        """{PREFIX}-{year}-NNNN, one above this year's highest numeric suffix."""
        config = self._config(tipo)
        year = year or date.today().year
        column = config['column']
        row = self.query_one(
            rf"SELECT MAX(CAST(SUBSTRING({column} FROM '(\d+)$') AS INTEGER)) AS numero "
            rf"FROM {config['table']} WHERE {column} LIKE %s",
            (f"{config['prefix']}-{year}-%",)
        )
        return format_document_number(tipo, year, row['numero'] if row else None)

    def _save(self, tipo, fields, numero=None, user_id=None):
        config = self._config(tipo)
        fields[config['column']] = numero or self.next_document_number(tipo)
        fields['created_by'] = user_id
        row = self._insert(config['table'], fields, set(fields))
        logger.info(f"{config['title']} {fields[config['column']]} saved")
        return row

    # ---- per-type saves ----

    def save_contrato(self, data, user_id=None):
        precio = _num(data.get('precio_venta'))
        if precio <= 0:
            raise ValueError('precio_venta debe ser mayor que 0')
        iva = _iva_percent(data)
        economics = compute_economics(precio, iva)
        garantia = data.get('garantia') or {}
        fields = {
            **_empresa_fields(data.get('empresa')),
            **_vehicle_fields(data.get('vehiculo')),
            **_person_fields(data.get('comprador'), 'comprador'),
            'comprador_telefono': (data.get('comprador') or {}).get('telefono'),
            'comprador_email': (data.get('comprador') or {}).get('email'),
            'precio_venta': economics['total_con_iva'],
            'base_imponible': economics['base_imponible'],
            'iva_percent': iva,
            'iva_importe': economics['iva_importe'],
            'forma_pago': _forma_pago(data),
            'garantia_meses': garantia.get('meses', DEFAULT_GARANTIA_MESES),
            'garantia_km': garantia.get('kilometros'),
            'fecha_firma': data.get('fecha_contrato') or date.today().isoformat(),
            'lugar_firma': data.get('lugar_contrato'),
            'fecha_entrega': data.get('fecha_entrega'),
            'clausulas_adicionales': data.get('clausulas_adicionales'),
            'estado': 'borrador',
        }
        return self._save('compraventa', fields, user_id=user_id)

    def save_senal(self, data, user_id=None):
        precio_total = _num(data.get('precio_total'))
        importe_senal = _num(data.get('importe_senal'))
        if importe_senal <= 0:
            raise ValueError('importe_senal debe ser mayor que 0')
        if importe_senal > precio_total:
            raise ValueError('La señal no puede superar el precio total')
        fields = {
            **_empresa_fields(data.get('empresa')),
            **_vehicle_fields(data.get('vehiculo')),
            **_person_fields(data.get('comprador'), 'comprador'),
            'comprador_telefono': (data.get('comprador') or {}).get('telefono'),
            'comprador_email': (data.get('comprador') or {}).get('email'),
            'precio_total': round(precio_total, 2),
            'importe_senal': round(importe_senal, 2),
            'resto_pendiente': round(precio_total - importe_senal, 2),
            'fecha_senal': data.get('fecha_senal') or date.today().isoformat(),
            'fecha_limite_venta': data.get('fecha_limite_venta'),
            'cuenta_bancaria': data.get('cuenta_bancaria') or (data.get('empresa') or {}).get('iban'),
            'observaciones': data.get('observaciones'),
            'estado': 'activa',
        }
        return self._save('senal', fields, user_id=user_id)

    def _invoice_fields(self, data):
        iva = _iva_percent(data)
        economics = compute_economics(_num(data.get('precio_venta')), iva)
        if economics['total_con_iva'] <= 0:
            raise ValueError('precio_venta debe ser mayor que 0')
        return {
            **_empresa_fields(data.get('empresa')),
            'vehiculo_id': (data.get('vehiculo') or {}).get('id'),
            'vehiculo_descripcion': _vehicle_description(data.get('vehiculo')),
            **_person_fields(data.get('comprador'), 'cliente'),
            'base_imponible': economics['base_imponible'],
            'tipo_iva': iva,
            'iva': economics['iva_importe'],
            'total': economics['total_con_iva'],
            'forma_pago': _forma_pago(data),
            'cuenta_bancaria': data.get('cuenta_bancaria') or (data.get('empresa') or {}).get('iban'),
        }

    def save_factura(self, data, user_id=None):
        fields = self._invoice_fields(data)
        fields.update({
            'fecha_factura': data.get('fecha_factura') or date.today().isoformat(),
            'notas': data.get('concepto_adicional'),
            'estado': 'pendiente',
        })
        return self._save('factura', fields, numero=data.get('numero_factura'), user_id=user_id)

    def save_proforma(self, data, user_id=None):
        fields = self._invoice_fields(data)
        fecha = data.get('fecha_proforma') or date.today().isoformat()
        validez = int(data.get('validez_dias') or DEFAULT_VALIDEZ_DIAS)
        fields.update({
            'importe_reserva': data.get('importe_reserva'),
            'fecha_proforma': fecha,
            'validez_dias': validez,
            'fecha_expiracion': expiration_date(fecha, validez),
            'observaciones': data.get('concepto_adicional'),
            'estado': 'vigente',
        })
        return self._save('proforma', fields, numero=data.get('numero_proforma'), user_id=user_id)

    def save(self, tipo, data, user_id=None):
        savers = {
            'compraventa': self.save_contrato,
            'senal': self.save_senal,
            'factura': self.save_factura,
            'proforma': self.save_proforma,
        }
        self._config(tipo)
        return savers[tipo](data, user_id=user_id)

    # ---- queries ----

    def get_by_id(self, tipo, doc_id):
        config = self._config(tipo)
        return self.query_one(f"SELECT * FROM {config['table']} WHERE id = %s", (doc_id,))

    def get_all(self, tipo, vehiculo_id=None, estado=None, limit=50, offset=0):
        config = self._config(tipo)
        conditions, params = ['TRUE'], []
        if vehiculo_id:
            conditions.append('vehiculo_id = %s')
            params.append(vehiculo_id)
        if estado:
            conditions.append('estado = %s')
            params.append(estado)
        where = ' AND '.join(conditions)
        params_count = tuple(params)
        params.extend([limit, offset])
        rows = self.query_all(
            f"SELECT * FROM {config['table']} WHERE {where} ORDER BY created_at DESC LIMIT %s OFFSET %s",
            tuple(params)
        )
        count_row = self.query_one(f"SELECT COUNT(*) as count FROM {config['table']} WHERE {where}", params_count)
        return rows, count_row['count']

    def get_by_vehicle(self, vehiculo_id):
        """Every document of a vehicle, grouped by tipo."""
        return {tipo: self.get_all(tipo, vehiculo_id=vehiculo_id, limit=100)[0] for tipo in DOCUMENT_TYPES}

    def update_estado(self, tipo, doc_id, estado):
        config = self._config(tipo)
        if estado not in DOCUMENT_STATES[tipo]:
            raise ValueError(f"estado must be one of: {', '.join(DOCUMENT_STATES[tipo])}")
        return self.execute(
            f"UPDATE {config['table']} SET estado = %s, updated_at = NOW() WHERE id = %s RETURNING *",
            (estado, doc_id), returning=True
        )

    def delete(self, tipo, doc_id):
        config = self._config(tipo)
        return self.execute(f"DELETE FROM {config['table']} WHERE id = %s", (doc_id,)) > 0
