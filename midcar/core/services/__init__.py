"""Shared services: PDF base document and Excel/PDF/CSV exports."""
