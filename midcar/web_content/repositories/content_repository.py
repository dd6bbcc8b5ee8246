"""Web Content Repository — keyed section texts (web_content) and site config (web_config)."""

from core.base_repository import BaseRepository


class WebContentRepository(BaseRepository):

    def get_section_rows(self, seccion, active_only=True):
        sql = 'SELECT * FROM web_content WHERE seccion = %s'
        if active_only:
            sql += ' AND activo = TRUE'
        return self.query_all(sql + ' ORDER BY orden, id', (seccion,))

    def get_section(self, seccion):
        """Section content as {clave: valor}."""
        return {r['clave']: r['valor'] for r in self.get_section_rows(seccion)}

    def get_sections(self):
        return self.query_all('''
            SELECT seccion, COUNT(*) as count, MAX(updated_at) as updated_at
            FROM web_content GROUP BY seccion ORDER BY seccion
        ''')

    def update_content(self, seccion, clave, valor, tipo='text'):
        """Upsert one (seccion, clave) value."""
        return self.execute('''
            INSERT INTO web_content (seccion, clave, valor, tipo)
            VALUES (%s, %s, %s, %s)
            ON CONFLICT (seccion, clave)
            DO UPDATE SET valor = EXCLUDED.valor, updated_at = NOW()
            RETURNING *
        ''', (seccion, clave, valor, tipo), returning=True)

    def update_section(self, seccion, values):
        """Upsert several keys of a section in one transaction."""
        def _work(cursor):
            for clave, valor in values.items():
                cursor.execute('''
                    INSERT INTO web_content (seccion, clave, valor) VALUES (%s, %s, %s)
                    ON CONFLICT (seccion, clave) DO UPDATE SET valor = EXCLUDED.valor, updated_at = NOW()
                ''', (seccion, clave, valor))
            return len(values)
        return self.execute_many(_work)

    def get_config(self):
        """Site config as {clave: valor}."""
        return {r['clave']: r['valor'] for r in self.query_all('SELECT clave, valor FROM web_config ORDER BY clave')}

    def update_config(self, clave, valor):
        return self.execute('''
            INSERT INTO web_config (clave, valor) VALUES (%s, %s)
            ON CONFLICT (clave) DO UPDATE SET valor = EXCLUDED.valor, updated_at = NOW()
            RETURNING *
        ''', (clave, valor), returning=True)
