# ==============================================================================
# CAPA DE MODELOS - Estructuras de datos del sistema
# ==============================================================================
# Entidades del dominio como dataclasses. Los registros reales viven en el
# backend; estas clases normalizan lo que se envía y se recibe de la API.
# ==============================================================================

from .entities import (
    # Usuarios
    UserRole,
    ROLE_DISPLAY_NAMES,
    ROLE_BADGE_CLASSES,
    Profile,
    AppUser,
    SellerInfo,
    SELLER_PLACEHOLDER,

    # Inventario
    Vehicle,
    VehicleStatus,
    VEHICLE_STATUS_LABELS,

    # Clientes y ventas
    Customer,
    Sale,
    PaymentMethod,
    PAYMENT_METHOD_LABELS,
)

__all__ = [
    'UserRole',
    'ROLE_DISPLAY_NAMES',
    'ROLE_BADGE_CLASSES',
    'Profile',
    'AppUser',
    'SellerInfo',
    'SELLER_PLACEHOLDER',
    'Vehicle',
    'VehicleStatus',
    'VEHICLE_STATUS_LABELS',
    'Customer',
    'Sale',
    'PaymentMethod',
    'PAYMENT_METHOD_LABELS',
]
