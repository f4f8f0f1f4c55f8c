# ==============================================================================
# ENTIDADES DEL DOMINIO - Definiciones de dataclasses
# ==============================================================================
# Los registros viven en el backend (tablas profiles, vehicles, customers,
# sales). Estas clases describen su forma y convierten desde/hacia los dict
# que devuelve la API. La única entidad derivada en la aplicación es
# SellerInfo: la vista del vendedor asociada a cada venta.
# ==============================================================================

import math
from dataclasses import dataclass
from typing import Optional, List, Dict, Any
from enum import Enum


# ==============================================================================
# ENUMERACIONES - Roles, estados y tipos válidos
# ==============================================================================

class UserRole(str, Enum):
    """Roles de usuario disponibles en el sistema."""
    ADMINISTRATOR = "administrator"
    SELLER = "seller"
    FINANCIAL = "financial"
    DISPATCHER = "dispatcher"


ROLE_DISPLAY_NAMES = {
    UserRole.ADMINISTRATOR.value: 'Administrador',
    UserRole.SELLER.value: 'Vendedor',
    UserRole.FINANCIAL.value: 'Financiero',
    UserRole.DISPATCHER.value: 'Despachante',
}

# Clases CSS de la insignia de rol (ver static/style.css)
ROLE_BADGE_CLASSES = {
    UserRole.ADMINISTRATOR.value: 'badge-red',
    UserRole.SELLER.value: 'badge-green',
    UserRole.FINANCIAL.value: 'badge-blue',
    UserRole.DISPATCHER.value: 'badge-purple',
}


class VehicleStatus(str, Enum):
    """Estados de un vehículo en el inventario."""
    AVAILABLE = "available"   # Publicado y disponible para venta
    RESERVED = "reserved"     # Apartado por un cliente
    SOLD = "sold"             # Vendido (tiene venta registrada)


VEHICLE_STATUS_LABELS = {
    VehicleStatus.AVAILABLE.value: 'Disponible',
    VehicleStatus.RESERVED.value: 'Reservado',
    VehicleStatus.SOLD.value: 'Vendido',
}


class PaymentMethod(str, Enum):
    """Formas de pago de una venta."""
    CASH = "cash"
    FINANCING = "financing"
    TRADE_IN = "trade_in"
    CONSORTIUM = "consortium"


PAYMENT_METHOD_LABELS = {
    PaymentMethod.CASH.value: 'Contado',
    PaymentMethod.FINANCING.value: 'Financiamiento',
    PaymentMethod.TRADE_IN.value: 'Permuta',
    PaymentMethod.CONSORTIUM.value: 'Consorcio',
}

# Nombre mostrado cuando no hay ningún dato del vendedor
SELLER_PLACEHOLDER = 'Vendedor'


def _to_float(value, default=None):
    if value is None or value == '':
        return default
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    return number if math.isfinite(number) else default


def _to_int(value, default=None):
    if value is None or value == '':
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


# ==============================================================================
# ENTIDADES DE USUARIO
# ==============================================================================

@dataclass
class Profile:
    """
    Perfil de un usuario (tabla profiles, mismo id que el usuario de Auth).

    Attributes:
        id: UUID del usuario
        first_name: Nombre
        last_name: Apellido
        role: Rol del usuario (administrator, seller, financial, dispatcher)
        avatar_url: URL de la foto (opcional)
    """
    id: str
    first_name: str = ''
    last_name: str = ''
    role: str = ''
    avatar_url: Optional[str] = None

    @property
    def full_name(self) -> str:
        return ' '.join(p for p in (self.first_name, self.last_name) if p)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'first_name': self.first_name,
            'last_name': self.last_name,
            'role': self.role,
            'avatar_url': self.avatar_url,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Profile':
        return cls(
            id=data.get('id'),
            first_name=data.get('first_name') or '',
            last_name=data.get('last_name') or '',
            role=data.get('role') or '',
            avatar_url=data.get('avatar_url'),
        )


@dataclass
class AppUser:
    """
    Usuario tal como lo muestra la gestión de usuarios: datos de Auth
    (id, email, nombre) más su perfil.
    """
    id: str
    email: str = ''
    name: str = ''
    profile: Optional[Profile] = None

    @property
    def role(self) -> str:
        return self.profile.role if self.profile else ''

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'email': self.email,
            'name': self.name,
            'profile': self.profile.to_dict() if self.profile else None,
        }


@dataclass
class SellerInfo:
    """Vista del vendedor adjunta a cada venta (ver SalesService.build_seller)."""
    id: Optional[str]
    first_name: str = SELLER_PLACEHOLDER
    last_name: str = ''

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'first_name': self.first_name,
            'last_name': self.last_name,
        }


# ==============================================================================
# ENTIDADES DE INVENTARIO
# ==============================================================================

@dataclass
class Vehicle:
    """
    Vehículo del inventario (tabla vehicles).

    Attributes:
        brand/model/version/year: Identificación comercial
        plate: Placa normalizada (ABC1234 o ABC1D23)
        price: Precio de venta publicado
        purchase_price: Costo de adquisición (solo back-office)
        status: VehicleStatus
    """
    brand: str
    model: str
    year: Optional[int] = None
    version: str = ''
    color: str = ''
    transmission: str = ''
    fuel: str = ''
    plate: str = ''
    mileage: Optional[int] = None
    price: Optional[float] = None
    purchase_price: Optional[float] = None
    status: str = VehicleStatus.AVAILABLE.value
    description: str = ''
    image_url: str = ''
    id: Optional[str] = None

    @property
    def title(self) -> str:
        parts = [self.brand, self.model, self.version]
        title = ' '.join(p for p in parts if p)
        return f"{title} {self.year}" if self.year else title

    def to_dict(self) -> Dict[str, Any]:
        """Convierte a diccionario para insertar/actualizar (sin id)."""
        return {
            'brand': self.brand,
            'model': self.model,
            'version': self.version,
            'year': self.year,
            'color': self.color,
            'transmission': self.transmission,
            'fuel': self.fuel,
            'plate': self.plate,
            'mileage': self.mileage,
            'price': self.price,
            'purchase_price': self.purchase_price,
            'status': self.status,
            'description': self.description,
            'image_url': self.image_url,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Vehicle':
        return cls(
            id=data.get('id'),
            brand=(data.get('brand') or '').strip(),
            model=(data.get('model') or '').strip(),
            version=(data.get('version') or '').strip(),
            year=_to_int(data.get('year')),
            color=(data.get('color') or '').strip(),
            transmission=(data.get('transmission') or '').strip(),
            fuel=(data.get('fuel') or '').strip(),
            plate=(data.get('plate') or '').strip(),
            mileage=_to_int(data.get('mileage')),
            price=_to_float(data.get('price')),
            purchase_price=_to_float(data.get('purchase_price')),
            status=data.get('status') or VehicleStatus.AVAILABLE.value,
            description=(data.get('description') or '').strip(),
            image_url=(data.get('image_url') or '').strip(),
        )


# ==============================================================================
# ENTIDADES DE CLIENTES Y VENTAS
# ==============================================================================

@dataclass
class Customer:
    """Cliente de la concesionaria (tabla customers)."""
    name: str
    document: str = ''
    email: str = ''
    phone: str = ''
    address: str = ''
    city: str = ''
    notes: str = ''
    id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'name': self.name,
            'document': self.document,
            'email': self.email,
            'phone': self.phone,
            'address': self.address,
            'city': self.city,
            'notes': self.notes,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Customer':
        return cls(
            id=data.get('id'),
            name=(data.get('name') or '').strip(),
            document=(data.get('document') or '').strip(),
            email=(data.get('email') or '').strip(),
            phone=(data.get('phone') or '').strip(),
            address=(data.get('address') or '').strip(),
            city=(data.get('city') or '').strip(),
            notes=(data.get('notes') or '').strip(),
        )


@dataclass
class Sale:
    """
    Venta registrada (tabla sales).

    Los datos embebidos (vehicle, customer) y la vista del vendedor se
    agregan al leer; aquí solo están las columnas propias de la tabla.
    """
    vehicle_id: str
    customer_id: str
    seller_id: Optional[str]
    sale_price: float
    payment_method: str = PaymentMethod.CASH.value
    down_payment: float = 0.0
    financed_amount: float = 0.0
    notes: str = ''
    id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'vehicle_id': self.vehicle_id,
            'customer_id': self.customer_id,
            'seller_id': self.seller_id,
            'sale_price': round(self.sale_price, 2),
            'payment_method': self.payment_method,
            'down_payment': round(self.down_payment, 2),
            'financed_amount': round(self.financed_amount, 2),
            'notes': self.notes,
        }


__all__: List[str] = [
    'UserRole',
    'ROLE_DISPLAY_NAMES',
    'ROLE_BADGE_CLASSES',
    'VehicleStatus',
    'VEHICLE_STATUS_LABELS',
    'PaymentMethod',
    'PAYMENT_METHOD_LABELS',
    'SELLER_PLACEHOLDER',
    'Profile',
    'AppUser',
    'SellerInfo',
    'Vehicle',
    'Customer',
    'Sale',
]
