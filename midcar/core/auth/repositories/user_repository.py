"""User Repository - Data access layer for user operations.

Handles lookups, authentication and last-login tracking for the users table.
"""
from typing import Optional, Dict, Any, List
from werkzeug.security import check_password_hash

from core.base_repository import BaseRepository


class UserRepository(BaseRepository):
    """Repository for user data access operations."""

    def get_by_id(self, user_id: int) -> Optional[Dict[str, Any]]:
        """Get a user by ID."""
        return self.query_one('SELECT * FROM users WHERE id = %s', (user_id,))

    def get_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        """Get a user by email address (case-insensitive)."""
        return self.query_one('SELECT * FROM users WHERE LOWER(email) = LOWER(%s)', (email,))

    def update_last_login(self, user_id: int) -> bool:
        """Update the last login timestamp for a user."""
        return self.execute('''
            UPDATE users SET last_login = CURRENT_TIMESTAMP
            WHERE id = %s
        ''', (user_id,)) > 0

    def list_sellers(self) -> List[Dict[str, Any]]:
        """Active users who can be assigned leads and contacts."""
        return self.query_all('''
            SELECT id, name, email, role FROM users
            WHERE is_active = TRUE AND role IN ('admin', 'vendedor', 'recepcionista')
            ORDER BY name
        ''')

    # --- Authentication Methods ---

    def authenticate(self, email: str, password: str) -> Optional[Dict[str, Any]]:
        """Authenticate a user with email and password.

        Returns:
            User dict if credentials are valid and user is active, None otherwise.
        """
        user = self.get_by_email(email)
        if not user:
            return None
        if not user.get('is_active', True):
            return None
        if not user.get('password_hash'):
            return None
        if not check_password_hash(user['password_hash'], password):
            return None
        return user
