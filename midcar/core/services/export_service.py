"""Listing exports: Excel (openpyxl), PDF (fpdf2) and CSV column sets.

Column specs are (header, key, kind) tuples. `key` may be a callable taking
the row; `kind` drives number formatting ('money', 'km', 'pct', 'date', None).
"""

import io
import logging
from flask import send_file
from openpyxl import Workbook
from openpyxl.styles import Font, Alignment, Border, Side, PatternFill
from openpyxl.utils import get_column_letter

from core.utils.formatting import format_currency, format_number, format_date
from core.utils.api_helpers import csv_response
from core.services.pdf_base import MidcarPDF, BRAND_COLOR, STRIPE_COLOR

logger = logging.getLogger('midcar.core.export')


def _full_name(first, last):
    def getter(row):
        name = f"{row.get(first) or ''} {row.get(last) or ''}".strip()
        return name or '-'
    return getter


VEHICLE_COLUMNS = [
    ('Stock', 'stock_id', None),
    ('Matrícula', 'matricula', None),
    ('Vehículo', lambda r: f"{r.get('marca') or ''} {r.get('modelo') or ''}".strip(), None),
    ('Versión', 'version', None),
    ('Año', 'año_matriculacion', None),
    ('Km', 'kilometraje', 'km'),
    ('Combustible', 'combustible', None),
    ('Precio', 'precio_venta', 'money'),
    ('Estado', 'estado', None),
]

LEAD_COLUMNS = [
    ('Cliente', _full_name('cliente_nombre', 'cliente_apellidos'), None),
    ('Teléfono', 'cliente_telefono', None),
    ('Email', 'cliente_email', None),
    ('Estado', 'estado', None),
    ('Prioridad', 'prioridad', None),
    ('Prob.', 'probabilidad', 'pct'),
    ('Presupuesto', 'presupuesto_cliente', 'money'),
    ('Fecha', 'created_at', 'date'),
]

CONTACT_COLUMNS = [
    ('Nombre', _full_name('nombre', 'apellidos'), None),
    ('Teléfono', 'telefono', None),
    ('Email', 'email', None),
    ('Origen', 'origen', None),
    ('Estado', 'estado', None),
    ('Fecha Registro', 'created_at', 'date'),
]

CLIENT_COLUMNS = [
    ('Nombre', _full_name('nombre', 'apellidos'), None),
    ('DNI/CIF', 'dni_cif', None),
    ('Teléfono', 'telefono', None),
    ('Email', 'email', None),
    ('Localidad', 'localidad', None),
    ('Provincia', 'provincia', None),
    ('Alta', 'created_at', 'date'),
]

INTERACTION_COLUMNS = [
    ('Fecha', 'created_at', 'date'),
    ('Tipo', 'tipo', None),
    ('Contacto', lambda r: (f"{r.get('contact_nombre') or ''} {r.get('contact_apellidos') or ''}".strip()
                            or r.get('lead_nombre') or '-'), None),
    ('Descripción', 'descripcion', None),
    ('Resultado', 'resultado', None),
    ('Usuario', 'user_name', None),
]

SALE_COLUMNS = [
    ('Factura', 'numero_factura', None),
    ('Fecha', 'fecha_venta', 'date'),
    ('Vehículo', lambda r: f"{r.get('marca') or ''} {r.get('modelo') or ''}".strip() or '-', None),
    ('Matrícula', 'matricula', None),
    ('Vendedor', 'vendedor_nombre', None),
    ('Precio Final', 'precio_final', 'money'),
    ('Margen', 'margen_bruto', 'money'),
    ('Estado', 'estado', None),
]


def _raw_value(row, key):
    return key(row) if callable(key) else row.get(key)


def _display_value(row, key, kind):
    value = _raw_value(row, key)
    if value is None or value == '':
        return '-'
    if kind == 'money':
        return format_currency(value)
    if kind == 'km':
        return f'{format_number(value)} km'
    if kind == 'pct':
        return f'{value}%'
    if kind == 'date':
        return format_date(value)
    return str(value)


def _fill_sheet(ws, rows, columns):
    header_font = Font(bold=True, color='FFFFFF', size=11)
    header_fill = PatternFill(start_color='135BEC', end_color='135BEC', fill_type='solid')
    border = Border(
        left=Side(style='thin', color='D1D5DB'),
        right=Side(style='thin', color='D1D5DB'),
        top=Side(style='thin', color='D1D5DB'),
        bottom=Side(style='thin', color='D1D5DB'),
    )

    for col, (header, _, _) in enumerate(columns, 1):
        cell = ws.cell(row=1, column=col, value=header)
        cell.font = header_font
        cell.fill = header_fill
        cell.border = border
        cell.alignment = Alignment(horizontal='center')

    widths = [len(h) + 2 for h, _, _ in columns]
    for i, row in enumerate(rows, 2):
        for col, (_, key, kind) in enumerate(columns, 1):
            value = _raw_value(row, key)
            if kind == 'date' and value:
                value = format_date(value)
            cell = ws.cell(row=i, column=col, value=value)
            cell.border = border
            if kind == 'money':
                cell.number_format = '#,##0 €'
            elif kind == 'km':
                cell.number_format = '#,##0'
            widths[col - 1] = max(widths[col - 1], min(len(str(value or '')) + 2, 50))

    for col, width in enumerate(widths, 1):
        ws.column_dimensions[get_column_letter(col)].width = width
    ws.freeze_panes = 'A2'


def export_workbook(sheets):
    """Write several styled sheets into one workbook.

    Args:
        sheets: iterable of (sheet_name, rows, columns)

    Returns:
        io.BytesIO containing the .xlsx file
    """
    wb = Workbook()
    wb.remove(wb.active)
    for sheet_name, rows, columns in sheets:
        _fill_sheet(wb.create_sheet(sheet_name[:31]), rows, columns)

    output = io.BytesIO()
    wb.save(output)
    output.seek(0)
    return output


def export_excel(rows, columns, sheet_name='Datos'):
    """Write rows to a single styled sheet. Returns io.BytesIO."""
    return export_workbook([(sheet_name, rows, columns)])


def export_pdf(rows, columns, title, subtitle=None):
    """Landscape striped table with brand-coloured header row.

    Returns:
        io.BytesIO containing the PDF
    """
    pdf = MidcarPDF(title, subtitle=subtitle, orientation='L')
    pdf.add_page()
    f = pdf._font_family

    usable = pdf.w - pdf.l_margin - pdf.r_margin
    col_w = usable / len(columns)
    row_h = 6

    def table_header():
        pdf.set_font(f, 'B', 8)
        pdf.set_fill_color(*BRAND_COLOR)
        pdf.set_text_color(255, 255, 255)
        for header, _, _ in columns:
            pdf.cell(col_w, row_h + 1, pdf.t(header), border=1, fill=True, align='C')
        pdf.ln()
        pdf.set_text_color(0, 0, 0)

    table_header()
    pdf.set_font(f, '', 7)
    for i, row in enumerate(rows):
        if pdf.get_y() + row_h > pdf.h - pdf.b_margin:
            pdf.add_page()
            table_header()
            pdf.set_font(f, '', 7)
        fill = i % 2 == 1
        if fill:
            pdf.set_fill_color(*STRIPE_COLOR)
        for _, key, kind in columns:
            text = _display_value(row, key, kind)
            # rough truncation so a long value does not spill into the next column
            max_chars = int(col_w / 1.6)
            if len(text) > max_chars:
                text = text[:max_chars - 1] + '…'
            align = 'R' if kind in ('money', 'km', 'pct') else 'L'
            pdf.cell(col_w, row_h, pdf.t(text), border='LR', fill=fill, align=align)
        pdf.ln()
    pdf.cell(usable, 0, '', border='T')

    output = io.BytesIO()
    pdf.output(output)
    output.seek(0)
    return output


def csv_columns(columns):
    """Keys of plain (non-computed) columns, for the CSV download."""
    return [key for _, key, _ in columns if not callable(key)]


XLSX_MIMETYPE = 'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet'


def export_response(rows, columns, fmt, title, basename):
    """Flask download response for ?format=xlsx|pdf|csv. Raises ValueError otherwise."""
    if fmt == 'csv':
        return csv_response(rows, f'{basename}.csv', csv_columns(columns))
    if fmt == 'pdf':
        output = export_pdf(rows, columns, title, subtitle=f'{len(rows)} registros')
        return send_file(output, mimetype='application/pdf', as_attachment=True,
                         download_name=f'{basename}.pdf')
    if fmt == 'xlsx':
        output = export_excel(rows, columns, sheet_name=title[:31])
        return send_file(output, mimetype=XLSX_MIMETYPE, as_attachment=True,
                         download_name=f'{basename}.xlsx')
    raise ValueError('format must be xlsx, pdf or csv')
