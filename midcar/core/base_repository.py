"""Base Repository: connection boilerplate shared by every repository.

Provides query_one(), query_all(), execute(), execute_many() that handle
get_db()/get_cursor()/release_db() and try/finally automatically.

Usage:
    class VehicleRepository(BaseRepository):
        def get_by_id(self, vehicle_id):
            return self.query_one('SELECT * FROM vehicles WHERE id = %s', (vehicle_id,))

        def create(self, data):
            return self.execute(
                'INSERT INTO vehicles (marca) VALUES (%s) RETURNING *',
                (data['marca'],), returning=True
            )

        def sell(self, vehicle_id, lead_id):
            def _work(cursor):
                cursor.execute('UPDATE vehicles ...')
                cursor.execute('UPDATE leads ...')
                return cursor.rowcount
            return self.execute_many(_work)
"""

from database import get_db, get_cursor, release_db, dict_from_row


class BaseRepository:

    def query_one(self, sql, params=None):
        """Execute a SELECT and return a single row as dict, or None."""
        conn = get_db()
        try:
            cursor = get_cursor(conn)
            cursor.execute(sql, params or ())
            row = cursor.fetchone()
            return dict_from_row(row) if row else None
        finally:
            release_db(conn)

    def query_all(self, sql, params=None):
        """Execute a SELECT and return all rows as list of dicts."""
        conn = get_db()
        try:
            cursor = get_cursor(conn)
            cursor.execute(sql, params or ())
            return [dict_from_row(r) for r in cursor.fetchall()]
        finally:
            release_db(conn)

    def execute(self, sql, params=None, returning=False):
        """Execute an INSERT/UPDATE/DELETE with auto-commit.

        Args:
            sql: SQL statement
            params: Query parameters
            returning: If True, fetchone() and return dict. If False, return rowcount.

        Returns:
            dict if returning=True, else int (rowcount)
        """
        conn = get_db()
        try:
            cursor = get_cursor(conn)
            cursor.execute(sql, params or ())
            if returning:
                result = cursor.fetchone()
                conn.commit()
                return dict_from_row(result) if result else None
            conn.commit()
            return cursor.rowcount
        except Exception:
            conn.rollback()
            raise
        finally:
            release_db(conn)

    def execute_many(self, callback):
        """Execute multiple statements in a single transaction.

        Args:
            callback: Function that receives (cursor) and returns a result.
                      All statements within callback share one connection/transaction.

        Returns:
            Whatever callback returns
        """
        conn = get_db()
        try:
            conn.autocommit = False
            cursor = get_cursor(conn)
            result = callback(cursor)
            conn.commit()
            return result
        except Exception:
            conn.rollback()
            raise
        finally:
            release_db(conn)

    # ============== Shared builders ==============

    def _insert(self, table, data, allowed):
        """INSERT the allowed keys of `data` into `table`, returning the new row."""
        fields = {k: v for k, v in data.items() if k in allowed}
        if not fields:
            raise ValueError('No valid fields provided')
        cols = ', '.join(fields.keys())
        placeholders = ', '.join(['%s'] * len(fields))
        return self.execute(
            f'INSERT INTO {table} ({cols}) VALUES ({placeholders}) RETURNING *',
            tuple(fields.values()), returning=True
        )

    def _update(self, table, row_id, data, allowed, touch=True):
        """UPDATE the allowed keys of `data` on one row. Returns the row, or None."""
        fields = {k: v for k, v in data.items() if k in allowed}
        if not fields:
            return None
        sets = ', '.join(f'{k} = %s' for k in fields)
        if touch:
            sets += ', updated_at = NOW()'
        return self.execute(
            f'UPDATE {table} SET {sets} WHERE id = %s RETURNING *',
            tuple(fields.values()) + (row_id,), returning=True
        )
