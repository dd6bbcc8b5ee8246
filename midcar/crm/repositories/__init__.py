from .lead_repository import LeadRepository
from .contact_repository import ContactRepository
from .client_repository import ClientRepository
from .interaction_repository import InteractionRepository
from .sale_repository import SaleRepository

__all__ = [
    'LeadRepository', 'ContactRepository', 'ClientRepository',
    'InteractionRepository', 'SaleRepository',
]
