"""Document types, numbering prefixes, tax rates and contract clauses."""

# tipo -> table, number column, prefix, printed title
DOCUMENT_TYPES = {
    'compraventa': {
        'table': 'contratos', 'column': 'numero_contrato', 'prefix': 'CV',
        'title': 'Contrato de Compraventa',
    },
    'senal': {
        'table': 'senales', 'column': 'numero_senal', 'prefix': 'SN',
        'title': 'Contrato de Señal / Reserva',
    },
    'factura': {
        'table': 'facturas', 'column': 'numero_factura', 'prefix': 'FA',
        'title': 'Factura',
    },
    'proforma': {
        'table': 'proformas', 'column': 'numero_proforma', 'prefix': 'PF',
        'title': 'Factura Proforma',
    },
}

IVA_PERCENT = 21

# IVA (peninsula) and IGIC (Canarias) rates accepted on invoices
IVA_OPTIONS = (21, 10, 4, 0, 7, 3)

FORMAS_PAGO = ('efectivo', 'transferencia', 'financiacion', 'mixto')

DEFAULT_GARANTIA_MESES = 12
DEFAULT_VALIDEZ_DIAS = 15

DOCUMENT_STATES = {
    'compraventa': ('borrador', 'firmado', 'anulado'),
    'senal': ('activa', 'convertida', 'anulada', 'vencida'),
    'factura': ('pendiente', 'pagada', 'anulada'),
    'proforma': ('vigente', 'aceptada', 'expirada', 'anulada'),
}

CLAUSULAS_COMPRAVENTA = [
    ('OBJETO DEL CONTRATO',
     'El VENDEDOR transmite al COMPRADOR la propiedad del vehículo descrito en el presente '
     'contrato, libre de cargas y gravámenes, con todos los derechos y obligaciones inherentes al mismo.'),
    ('PRECIO Y FORMA DE PAGO',
     'El precio de la compraventa es el indicado en este contrato. El COMPRADOR abonará dicho '
     'importe según la forma de pago acordada. El VENDEDOR entregará factura de la operación.'),
    ('ENTREGA DEL VEHÍCULO',
     'La entrega se realizará en la fecha indicada. A partir de la entrega, los riesgos del '
     'vehículo serán por cuenta del COMPRADOR.'),
    ('GARANTÍA',
     'El VENDEDOR otorga garantía sobre los defectos de funcionamiento mecánico y eléctrico que se '
     'manifiesten durante el período indicado, salvo mal uso, accidente o falta de mantenimiento. '
     'No cubre piezas de desgaste, carrocería, tapicería ni cristales.'),
    ('CONFORMIDAD Y ESTADO DEL VEHÍCULO',
     'El COMPRADOR declara haber examinado el vehículo y su documentación, y reconoce que adquiere '
     'un vehículo usado con el desgaste propio de su antigüedad y kilometraje.'),
    ('COMUNICACIÓN DE AVERÍAS',
     'Toda avería deberá comunicarse por escrito al VENDEDOR en un plazo máximo de 48 horas desde '
     'su detección y antes de realizar cualquier reparación.'),
    ('DOCUMENTACIÓN',
     'El VENDEDOR entregará el Permiso de Circulación, la Ficha Técnica y el último recibo del '
     'Impuesto de Circulación pagado.'),
    ('JURISDICCIÓN Y LEY APLICABLE',
     'Para cualquier controversia ambas partes se someten a los Juzgados y Tribunales del domicilio '
     'del comprador. El contrato se rige por la legislación española.'),
]

CLAUSULAS_SENAL = [
    ('OBJETO DEL CONTRATO',
     'Reserva del vehículo descrito mediante el pago de una señal a cuenta del precio total. El '
     'VENDEDOR se compromete a no vender el vehículo a terceros mientras esté vigente la reserva.'),
    ('IMPORTE DE LA SEÑAL',
     'La cantidad entregada como señal se descontará del precio total al formalizar la compraventa.'),
    ('PLAZO DE VALIDEZ',
     'La reserva es válida hasta la fecha límite indicada. Llegada esa fecha sin formalizar la '
     'compra, el VENDEDOR quedará libre para vender el vehículo.'),
    ('PENALIZACIONES',
     'Si el COMPRADOR desiste sin causa justificada perderá la señal. Si el VENDEDOR vende el '
     'vehículo a un tercero devolverá el doble de la señal.'),
    ('FORMALIZACIÓN DE LA COMPRAVENTA',
     'Abonado el importe restante se formalizará el contrato de compraventa y se entregará el '
     'vehículo con toda su documentación.'),
]

CLAUSULA_LOPD_CORTA = (
    'PROTECCIÓN DE DATOS: De conformidad con el RGPD y la LOPDGDD, sus datos serán tratados para '
    'gestionar la relación contractual derivada de este documento. Puede ejercer sus derechos de '
    'acceso, rectificación, supresión, limitación, portabilidad y oposición dirigiéndose al '
    'responsable del tratamiento.'
)
