from .document_repository import DocumentRepository
from .empresa_repository import EmpresaRepository

__all__ = ['DocumentRepository', 'EmpresaRepository']
