# ==============================================================================
# CAPA DE REPOSITORIOS - Acceso a datos
# ==============================================================================
# Esta capa encapsula todo el acceso a la API de datos (Supabase/PostgREST).
# Solo arma y ejecuta consultas; no cachea ni decide qué mostrar al usuario.
#
# ESTRUCTURA:
# ├── interfaces.py           → Protocolos (contratos que usan los servicios)
# ├── base.py                 → BaseRepository + DataAPIError
# ├── sales_repository.py     → Tabla sales (con vehículo y cliente embebidos)
# ├── profile_repository.py   → Tabla profiles + administración de Auth
# ├── vehicle_repository.py   → Tabla vehicles
# ├── customer_repository.py  → Tabla customers
# └── whatsapp_repository.py  → Tablas whatsapp_messages y leads
# ==============================================================================

from .interfaces import (
    IRepository,
    ISalesRepository,
    IProfileRepository,
    IVehicleRepository,
    ICustomerRepository,
)

from .base import BaseRepository, DataAPIError
from .sales_repository import SalesRepository
from .profile_repository import ProfileRepository
from .vehicle_repository import VehicleRepository
from .customer_repository import CustomerRepository
from .whatsapp_repository import WhatsAppRepository, LeadRepository

__all__ = [
    # Interfaces
    'IRepository',
    'ISalesRepository',
    'IProfileRepository',
    'IVehicleRepository',
    'ICustomerRepository',

    # Base
    'BaseRepository',
    'DataAPIError',

    # Implementaciones Supabase
    'SalesRepository',
    'ProfileRepository',
    'VehicleRepository',
    'CustomerRepository',
    'WhatsAppRepository',
    'LeadRepository',
]
