"""MidCar Core Auth Models.

User model for Flask-Login authentication.
"""
from flask_login import UserMixin

ROLES = ('admin', 'vendedor', 'mecanico', 'recepcionista')

# module -> allowed actions, per role. Admin is handled separately (all access).
ROLE_PERMISSIONS = {
    'vendedor': {
        'inventory': {'view', 'edit', 'export'},
        'crm': {'view', 'edit', 'export'},
        'insurance': {'view'},
        'documents': {'view', 'edit'},
        'dashboard': {'view'},
    },
    'mecanico': {
        'inventory': {'view', 'edit'},
        'insurance': {'view'},
    },
    'recepcionista': {
        'crm': {'view', 'edit'},
        'inventory': {'view'},
        'insurance': {'view'},
    },
}


class User(UserMixin):
    """User class for Flask-Login."""

    def __init__(self, user_data):
        self.id = user_data['id']
        self.email = user_data['email']
        self.name = user_data.get('name') or user_data['email']
        self.phone = user_data.get('phone')
        self.role = user_data.get('role') or 'vendedor'
        self.is_active_user = user_data.get('is_active', True)

        self.can_access_inventory = self.has_permission('inventory', 'view')
        self.can_access_crm = self.has_permission('crm', 'view')
        self.can_access_insurance = self.has_permission('insurance', 'view')
        self.can_access_documents = self.has_permission('documents', 'view')
        self.can_access_dashboard = self.has_permission('dashboard', 'view')
        self.can_manage_web = self.has_permission('web', 'edit')

    @property
    def is_active(self):
        return self.is_active_user

    @property
    def is_admin(self):
        return self.role == 'admin'

    def has_permission(self, module: str, permission: str = None) -> bool:
        """
        Check if user has a specific permission.
        Usage:
            user.has_permission('crm', 'edit')
            user.has_permission('crm.edit')
        """
        if permission is None and '.' in module:
            module, permission = module.split('.', 1)
        if self.role == 'admin':
            return True
        allowed = ROLE_PERMISSIONS.get(self.role, {}).get(module, set())
        return (permission or 'view') in allowed

    def to_dict(self):
        return {
            'id': self.id,
            'email': self.email,
            'name': self.name,
            'role': self.role,
            'is_admin': self.is_admin,
            'permissions': {
                'inventory': self.can_access_inventory,
                'crm': self.can_access_crm,
                'insurance': self.can_access_insurance,
                'documents': self.can_access_documents,
                'dashboard': self.can_access_dashboard,
                'web': self.can_manage_web,
            },
        }
