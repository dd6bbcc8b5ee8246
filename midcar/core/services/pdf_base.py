"""Base fpdf2 document shared by listing exports and sales documents.

Uses a Unicode TTF font when one is installed (Spanish accents, ñ, €);
otherwise falls back to Helvetica with diacritics stripped.
"""

import os
import unicodedata
import logging
from datetime import datetime
from fpdf import FPDF

logger = logging.getLogger('midcar.core.pdf')

BRAND_COLOR = (19, 91, 236)
DARK_COLOR = (30, 41, 59)
STRIPE_COLOR = (245, 247, 250)

# TTF font search paths (Linux + macOS fallbacks)
_FONT_SEARCH = {
    'regular': [
        '/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf',
        '/usr/share/fonts/truetype/liberation/LiberationSans-Regular.ttf',
        '/Library/Fonts/Arial Unicode.ttf',
    ],
    'bold': [
        '/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf',
        '/usr/share/fonts/truetype/liberation/LiberationSans-Bold.ttf',
    ],
}


def _find_font(style='regular'):
    for path in _FONT_SEARCH.get(style, []):
        if os.path.exists(path):
            return path
    return None


def strip_diacritics(text):
    """Remove diacritics and replace non-Latin-1 characters for Helvetica fallback."""
    text = str(text)
    replacements = {'\u2014': '-', '\u2013': '-', '\u2018': "'", '\u2019': "'",
                    '\u201c': '"', '\u201d': '"', '\u2026': '...', '\u00a0': ' ',
                    '\u20ac': 'EUR'}
    for old, new in replacements.items():
        text = text.replace(old, new)
    nfkd = unicodedata.normalize('NFKD', text)
    result = ''.join(c for c in nfkd if not unicodedata.combining(c))
    return result.encode('latin-1', errors='replace').decode('latin-1')


class MidcarPDF(FPDF):
    """A4 document with the MidCar title block and a page-numbered footer."""

    def __init__(self, title, subtitle=None, orientation='P'):
        super().__init__(orientation=orientation, unit='mm', format='A4')
        self.doc_title = title
        self.doc_subtitle = subtitle
        self._unicode = False
        self._font_family = 'Helvetica'
        self._setup_fonts()
        self.alias_nb_pages()
        self.set_auto_page_break(auto=True, margin=18)

    def _setup_fonts(self):
        regular = _find_font('regular')
        bold = _find_font('bold')
        if regular:
            try:
                self.add_font('midcar', '', regular)
                self.add_font('midcar', 'B', bold or regular)
                self._unicode = True
                self._font_family = 'midcar'
                logger.debug('Using Unicode font: %s', regular)
            except Exception:
                logger.debug('Failed to load Unicode font, using Helvetica')
        else:
            logger.debug('No Unicode font found, using Helvetica with diacritic stripping')

    def t(self, text):
        """Return text safe for the active font."""
        if text is None:
            return ''
        if self._unicode:
            return str(text)
        return strip_diacritics(text)

    def header(self):
        f = self._font_family
        self.set_font(f, 'B', 16)
        self.set_text_color(*BRAND_COLOR)
        self.cell(0, 9, self.t(self.doc_title), new_x='LMARGIN', new_y='NEXT')
        if self.doc_subtitle:
            self.set_font(f, '', 10)
            self.set_text_color(100, 100, 100)
            self.cell(0, 6, self.t(self.doc_subtitle), new_x='LMARGIN', new_y='NEXT')
        self.set_font(f, '', 8)
        self.set_text_color(150, 150, 150)
        self.cell(0, 5, self.t(f'Generado: {datetime.now().strftime("%d/%m/%Y %H:%M")}'),
                  new_x='LMARGIN', new_y='NEXT')
        self.set_text_color(0, 0, 0)
        self.ln(3)

    def footer(self):
        self.set_y(-12)
        self.set_font(self._font_family, '', 7)
        self.set_text_color(150, 150, 150)
        self.cell(0, 8, self.t(f'Página {self.page_no()} de {{nb}} - MidCar'), align='C')

    def section_title(self, text):
        self.ln(2)
        self.set_font(self._font_family, 'B', 11)
        self.set_text_color(*DARK_COLOR)
        self.cell(0, 7, self.t(text), new_x='LMARGIN', new_y='NEXT')
        self.set_draw_color(*BRAND_COLOR)
        self.line(self.l_margin, self.get_y(), self.w - self.r_margin, self.get_y())
        self.set_text_color(0, 0, 0)
        self.ln(2)

    def key_value(self, label, value, label_w=50):
        self.set_font(self._font_family, 'B', 9)
        self.cell(label_w, 5.5, self.t(f'{label}:'))
        self.set_font(self._font_family, '', 9)
        self.multi_cell(0, 5.5, self.t(value if value not in (None, '') else '-'),
                        new_x='LMARGIN', new_y='NEXT')

    def paragraph(self, text, size=9):
        self.set_font(self._font_family, '', size)
        self.multi_cell(0, 4.8, self.t(text), new_x='LMARGIN', new_y='NEXT')
        self.ln(1)
