"""MidCar Core Module.

Shared infrastructure used by every section of the dealership app:
- Base repository over the connection pool
- Authentication (users, roles, data scope)
- Identity-document validation and display formatting
- Shared services (Excel/PDF export)
"""
