"""PDF rendering of saved documents on top of MidcarPDF.

Every document prints the seller company header, then the blocks of its
type (vehicle, buyer, economic conditions, clauses) and the signature area.
"""
import io
import logging

from core.services.pdf_base import MidcarPDF, BRAND_COLOR
from core.utils.formatting import format_currency, format_date, format_number
from ..constants import DOCUMENT_TYPES, CLAUSULAS_COMPRAVENTA, CLAUSULAS_SENAL, CLAUSULA_LOPD_CORTA

logger = logging.getLogger('midcar.documents.pdf')


def _money(value):
    return format_currency(value, decimals=2) if value not in (None, '') else '-'


class DocumentPDF(MidcarPDF):

    def __init__(self, tipo, doc, empresa=None):
        config = DOCUMENT_TYPES[tipo]
        super().__init__(config['title'], subtitle=f"Nº {doc.get(config['column']) or '-'}")
        self.tipo = tipo
        self.doc = doc
        self.empresa = empresa or {}

    def company_block(self):
        e = self.empresa
        nombre = e.get('nombre') or self.doc.get('empresa_nombre')
        cif = e.get('cif') or self.doc.get('empresa_cif')
        direccion = e.get('direccion') or self.doc.get('empresa_direccion')
        localidad = ' '.join(str(p) for p in (e.get('codigo_postal'), e.get('localidad')) if p)

        self.set_font(self._font_family, 'B', 10)
        self.set_text_color(*BRAND_COLOR)
        self.cell(0, 5, self.t(nombre or ''), new_x='LMARGIN', new_y='NEXT')
        self.set_text_color(0, 0, 0)
        self.set_font(self._font_family, '', 8)
        for line in (f'CIF: {cif}' if cif else None, direccion, localidad,
                     ' · '.join(p for p in (e.get('telefono'), e.get('email')) if p)):
            if line:
                self.cell(0, 4, self.t(line), new_x='LMARGIN', new_y='NEXT')
        self.ln(2)

    def vehicle_block(self):
        d = self.doc
        self.section_title('Datos del vehículo')
        if d.get('vehiculo_descripcion'):
            self.key_value('Vehículo', d['vehiculo_descripcion'])
            return
        self.key_value('Marca / Modelo', f"{d.get('vehiculo_marca') or ''} {d.get('vehiculo_modelo') or ''}".strip())
        self.key_value('Matrícula', d.get('vehiculo_matricula'))
        self.key_value('Bastidor (VIN)', d.get('vehiculo_vin'))
        if d.get('vehiculo_km') not in (None, ''):
            self.key_value('Kilómetros', f"{format_number(d['vehiculo_km'])} km")

    def buyer_block(self):
        d = self.doc
        prefix = 'cliente' if self.tipo in ('factura', 'proforma') else 'comprador'
        self.section_title('Datos del comprador' if prefix == 'comprador' else 'Datos del cliente')
        nombre = f"{d.get(f'{prefix}_nombre') or ''} {d.get(f'{prefix}_apellidos') or ''}".strip()
        self.key_value('Nombre', nombre)
        self.key_value('DNI / NIE / CIF', d.get(f'{prefix}_documento'))
        direccion = ', '.join(str(p) for p in (
            d.get(f'{prefix}_direccion'), d.get(f'{prefix}_cp'),
            d.get(f'{prefix}_localidad'), d.get(f'{prefix}_provincia'),
        ) if p)
        self.key_value('Dirección', direccion)
        if d.get(f'{prefix}_telefono'):
            self.key_value('Teléfono', d[f'{prefix}_telefono'])

    def economics_block(self):
        d = self.doc
        self.section_title('Condiciones económicas')
        if self.tipo == 'senal':
            self.key_value('Importe de la señal', _money(d.get('importe_senal')))
            self.key_value('Precio total', _money(d.get('precio_total')))
            self.key_value('Resto pendiente', _money(d.get('resto_pendiente')))
            self.key_value('Cuenta bancaria', d.get('cuenta_bancaria'))
            self.key_value('Fecha límite', format_date(d.get('fecha_limite_venta')))
            return
        if self.tipo == 'compraventa':
            self.key_value('Base imponible', _money(d.get('base_imponible')))
            self.key_value(f"IVA ({format_number(d.get('iva_percent'))}%)", _money(d.get('iva_importe')))
            self.key_value('Precio total', _money(d.get('precio_venta')))
            self.key_value('Forma de pago', d.get('forma_pago'))
            meses = d.get('garantia_meses')
            self.key_value('Garantía', f'{meses} meses' if meses else 'Sin garantía')
            self.key_value('Fecha de entrega', format_date(d.get('fecha_entrega')))
            return
        self.key_value('Base imponible', _money(d.get('base_imponible')))
        self.key_value(f"IVA ({format_number(d.get('tipo_iva'))}%)", _money(d.get('iva')))
        self.key_value('Total', _money(d.get('total')))
        self.key_value('Forma de pago', d.get('forma_pago'))
        if d.get('cuenta_bancaria'):
            self.key_value('Cuenta bancaria', d['cuenta_bancaria'])
        if self.tipo == 'proforma':
            if d.get('importe_reserva'):
                self.key_value('Importe de reserva', _money(d['importe_reserva']))
            self.key_value('Válida hasta', format_date(d.get('fecha_expiracion')))
            self.paragraph('Documento sin validez fiscal. No sustituye a la factura.', size=8)

    def clauses_block(self):
        clauses = {'compraventa': CLAUSULAS_COMPRAVENTA, 'senal': CLAUSULAS_SENAL}.get(self.tipo)
        if not clauses:
            return
        self.section_title('Estipulaciones')
        for i, (titulo, contenido) in enumerate(clauses, 1):
            self.set_font(self._font_family, 'B', 9)
            self.cell(0, 5, self.t(f'{i}ª - {titulo}'), new_x='LMARGIN', new_y='NEXT')
            self.paragraph(contenido)
        if self.doc.get('clausulas_adicionales'):
            self.set_font(self._font_family, 'B', 9)
            self.cell(0, 5, self.t('Cláusulas adicionales'), new_x='LMARGIN', new_y='NEXT')
            self.paragraph(self.doc['clausulas_adicionales'])

    def signatures(self):
        if self.tipo not in ('compraventa', 'senal'):
            return
        self.ln(10)
        half = (self.w - self.l_margin - self.r_margin) / 2
        self.set_font(self._font_family, 'B', 9)
        self.cell(half, 5, self.t('EL VENDEDOR'), align='C')
        self.cell(half, 5, self.t('EL COMPRADOR'), align='C', new_x='LMARGIN', new_y='NEXT')
        self.ln(18)
        self.set_font(self._font_family, '', 8)
        self.cell(half, 4, 'Fdo.: ____________________', align='C')
        self.cell(half, 4, 'Fdo.: ____________________', align='C', new_x='LMARGIN', new_y='NEXT')

    def render(self):
        self.add_page()
        self.company_block()
        self.vehicle_block()
        self.buyer_block()
        self.economics_block()
        self.clauses_block()
        self.ln(2)
        self.paragraph(CLAUSULA_LOPD_CORTA, size=7)
        self.signatures()


def generate_document_pdf(tipo, doc, empresa=None):
    """Render a saved document row.

    Returns:
        io.BytesIO containing the PDF
    """
    if tipo not in DOCUMENT_TYPES:
        raise ValueError(f'Tipo de documento no válido: {tipo}')
    pdf = DocumentPDF(tipo, doc, empresa)
    pdf.render()
    output = io.BytesIO()
    pdf.output(output)
    output.seek(0)
    logger.debug(f"Rendered {tipo} PDF {doc.get(DOCUMENT_TYPES[tipo]['column'])}")
    return output
