from .content_repository import WebContentRepository
from .item_repositories import TestimonialRepository, BenefitRepository, FaqRepository

__all__ = ['WebContentRepository', 'TestimonialRepository', 'BenefitRepository', 'FaqRepository']
