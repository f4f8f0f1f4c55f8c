# ==============================================================================
# SERVICIOS - Capa de lógica de negocio
# ==============================================================================
# Estructura:
#   services/
#   ├── __init__.py          ← Este archivo (exports)
#   ├── query_cache.py       ← Caché de consultas (frescura + reintentos)
#   ├── base_service.py      ← Política fail soft (log + aviso + vacío)
#   ├── sales_service.py     ← Ventas y reconciliación de vendedores
#   ├── user_service.py      ← Login, usuarios y roles
#   ├── inventory_service.py ← Vehículos y consulta de placas
#   ├── customer_service.py  ← Clientes (CPF/CNPJ)
#   ├── finance_service.py   ← Simulador y resumen financiero
#   ├── report_service.py    ← Reportes por período y CSV
#   └── whatsapp_service.py  ← CRM WhatsApp y contactos del sitio
#
# Las rutas solo orquestan request → service → template.
# ==============================================================================

from app_concesionaria.services.query_cache import QueryCache
from app_concesionaria.services.base_service import BaseService
from app_concesionaria.services.sales_service import SalesService
from app_concesionaria.services.user_service import (
    UserService,
    normalize_role,
    role_badge_class,
    role_display_name,
)
from app_concesionaria.services.inventory_service import (
    InventoryService,
    is_valid_plate,
    normalize_plate,
)
from app_concesionaria.services.customer_service import (
    CustomerService,
    format_document,
    normalize_phone,
    validate_document,
)
from app_concesionaria.services.finance_service import FinanceService
from app_concesionaria.services.report_service import PERIODS, ReportService
from app_concesionaria.services.whatsapp_service import TEMPLATES, WhatsAppService

__all__ = [
    'QueryCache',
    'BaseService',
    'SalesService',
    'UserService',
    'normalize_role',
    'role_badge_class',
    'role_display_name',
    'InventoryService',
    'is_valid_plate',
    'normalize_plate',
    'CustomerService',
    'format_document',
    'normalize_phone',
    'validate_document',
    'FinanceService',
    'PERIODS',
    'ReportService',
    'TEMPLATES',
    'WhatsAppService',
]
