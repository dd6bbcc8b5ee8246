from .blog_repository import BlogRepository, POST_STATES

__all__ = ['BlogRepository', 'POST_STATES']
