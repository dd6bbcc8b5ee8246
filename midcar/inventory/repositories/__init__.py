from .vehicle_repository import VehicleRepository

__all__ = ['VehicleRepository']
