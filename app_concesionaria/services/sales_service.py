# ==============================================================================
# SERVICIO DE VENTAS
# ==============================================================================
# Lectura de ventas con el vendedor de cada una ya resuelto, alta y
# cancelación de ventas.
#
# RECONCILIACIÓN VENTA → VENDEDOR:
# Las ventas solo guardan seller_id. El nombre del vendedor se arma con dos
# consultas separadas (ventas y luego profiles con `in`) y una cadena de
# respaldo, campo por campo:
#   1. perfil obtenido de la tabla profiles
#   2. perfil del usuario en la lista de usuarios cacheada
#   3. nombre visible del usuario partido por espacios
#   4. 'Vendedor' / ''
# Un valor vacío en un nivel pasa al siguiente.
# ==============================================================================

import math
from typing import Any, Callable, Dict, List, Optional

from app_concesionaria.models import (
    PAYMENT_METHOD_LABELS,
    SELLER_PLACEHOLDER,
    PaymentMethod,
    Sale,
    SellerInfo,
    VehicleStatus,
)
from app_concesionaria.performance_logger import log_error, log_warning, profile_function
from app_concesionaria.repositories.base import DataAPIError
from app_concesionaria.services.base_service import BaseService


def _find_by_id(records: List[Dict[str, Any]], record_id: Any) -> Optional[Dict[str, Any]]:
    for record in records or []:
        if record and record.get('id') == record_id:
            return record
    return None


class SalesService(BaseService):
    """
    Servicio de ventas.

    Responsabilidades:
    - Listar ventas con vehículo, cliente y vendedor resueltos
    - Registrar ventas (marca el vehículo como vendido)
    - Cancelar ventas (devuelve el vehículo al inventario)
    """

    CACHE_KEY = ('sales',)

    def __init__(
        self,
        sales_repo,
        profile_repo,
        vehicle_repo=None,
        users_provider: Callable[[], List[Dict[str, Any]]] = None,
        cache=None,
        notifier=None
    ):
        """
        Args:
            sales_repo: Repositorio de ventas
            profile_repo: Repositorio de perfiles (consulta de vendedores)
            vehicle_repo: Repositorio de vehículos (alta/cancelación)
            users_provider: Devuelve la lista de usuarios cacheada
        """
        super().__init__(cache, notifier)
        self.sales_repo = sales_repo
        self.profile_repo = profile_repo
        self.vehicle_repo = vehicle_repo
        self.users_provider = users_provider

    # =========================================================================
    # VENDEDOR
    # =========================================================================

    @staticmethod
    def build_seller(
        seller_id: Optional[str],
        profiles: List[Dict[str, Any]],
        users: List[Dict[str, Any]]
    ) -> SellerInfo:
        """
        Arma la vista del vendedor de una venta.

        Args:
            seller_id: Id del vendedor guardado en la venta
            profiles: Perfiles obtenidos de la tabla profiles
            users: Lista de usuarios cacheada ({id, name, profile})

        Returns:
            SellerInfo con first_name/last_name resueltos
        """
        profile = _find_by_id(profiles, seller_id) if seller_id else None
        user = _find_by_id(users, seller_id) if seller_id else None

        user_profile = (user or {}).get('profile') or {}
        name_parts = ((user or {}).get('name') or '').split(' ')

        first_name = (
            (profile or {}).get('first_name')
            or user_profile.get('first_name')
            or name_parts[0]
            or SELLER_PLACEHOLDER
        )
        last_name = (
            (profile or {}).get('last_name')
            or user_profile.get('last_name')
            or ' '.join(name_parts[1:])
            or ''
        )
        return SellerInfo(id=seller_id, first_name=first_name, last_name=last_name)

    def _cached_users(self) -> List[Dict[str, Any]]:
        if self.users_provider is None:
            return []
        return self.users_provider() or []

    def _attach_sellers(self, sales: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """Agrega `seller` a cada venta. Un fallo en profiles solo se registra."""
        seller_ids = []
        for sale in sales:
            seller_id = sale.get('seller_id')
            if seller_id and seller_id not in seller_ids:
                seller_ids.append(seller_id)

        profiles: List[Dict[str, Any]] = []
        if seller_ids:
            try:
                profiles = self.profile_repo.get_seller_profiles(seller_ids)
            except DataAPIError as exc:
                log_warning('Cargar perfiles de vendedores', exc)

        # La lista de usuarios solo hace falta si algún vendedor no tiene perfil
        known = {p.get('id') for p in profiles if p}
        users: List[Dict[str, Any]] = []
        if any(seller_id not in known for seller_id in seller_ids):
            users = self._cached_users()

        return [
            {**sale, 'seller': self.build_seller(sale.get('seller_id'), profiles, users).to_dict()}
            for sale in sales
        ]

    # =========================================================================
    # LECTURA
    # =========================================================================

    @profile_function(name="Consultar ventas")
    def _load_sales(self) -> List[Dict[str, Any]]:
        return self._attach_sellers(self.sales_repo.list_sales())

    def list_sales(self) -> List[Dict[str, Any]]:
        """Todas las ventas (más recientes primero) con vendedor resuelto."""
        return self._query(
            self.CACHE_KEY,
            self._load_sales,
            'Error al cargar ventas',
            'Cargar ventas'
        )

    def get_sales_by_vehicle_id(self, vehicle_id: str) -> List[Dict[str, Any]]:
        """Ventas de un vehículo (sin caché ni reintentos)."""
        return self._query(
            None,
            lambda: self._attach_sellers(self.sales_repo.list_by_vehicle(vehicle_id)),
            'Error al buscar ventas del vehículo',
            'Buscar ventas del vehículo',
            retries=0
        )

    def get_sales_by_customer_id(self, customer_id: str) -> List[Dict[str, Any]]:
        """Historial de compras de un cliente."""
        return self._query(
            None,
            lambda: self._attach_sellers(self.sales_repo.list_by_customer(customer_id)),
            'Error al buscar compras del cliente',
            'Buscar compras del cliente',
            retries=0
        )

    def refresh_sales(self) -> None:
        """Descarta la caché de ventas; la próxima lectura vuelve al backend."""
        self.cache.invalidate(self.CACHE_KEY)

    @staticmethod
    def search_sales(sales: List[Dict[str, Any]], q: str) -> List[Dict[str, Any]]:
        """Filtra ventas por texto en cliente, documento, vehículo, placa o vendedor."""
        text = (q or '').strip().lower()
        if not text:
            return list(sales)

        def haystack(sale):
            vehicle = sale.get('vehicle') or {}
            customer = sale.get('customer') or {}
            seller = sale.get('seller') or {}
            parts = [
                customer.get('name'), customer.get('document'),
                vehicle.get('brand'), vehicle.get('model'), vehicle.get('version'),
                vehicle.get('plate'),
                seller.get('first_name'), seller.get('last_name'),
            ]
            return ' '.join(str(p) for p in parts if p).lower()

        return [s for s in sales if text in haystack(s)]

    # =========================================================================
    # ESCRITURA
    # =========================================================================

    def create_sale(
        self,
        vehicle_id: str,
        customer_id: str,
        seller_id: Optional[str],
        sale_price,
        payment_method: str = PaymentMethod.CASH.value,
        down_payment=0,
        notes: str = ''
    ) -> Dict[str, Any]:
        """
        Registra una venta y marca el vehículo como vendido.

        Returns:
            {'ok': True, 'sale': dict} o {'ok': False, 'error': str}
        """
        if not vehicle_id:
            return {'ok': False, 'error': 'Selecciona un vehículo.'}
        if not customer_id:
            return {'ok': False, 'error': 'Selecciona un cliente.'}
        try:
            price = float(sale_price)
            down = float(down_payment or 0)
        except (TypeError, ValueError):
            return {'ok': False, 'error': 'Precio o entrada inválidos.'}
        if not (math.isfinite(price) and math.isfinite(down)):
            return {'ok': False, 'error': 'Precio o entrada inválidos.'}
        if price <= 0:
            return {'ok': False, 'error': 'El precio de venta debe ser mayor a cero.'}
        if down < 0 or down > price:
            return {'ok': False, 'error': 'La entrada debe estar entre 0 y el precio de venta.'}
        if payment_method not in PAYMENT_METHOD_LABELS:
            return {'ok': False, 'error': 'Forma de pago inválida.'}

        try:
            vehicle = self.vehicle_repo.get_by_id(vehicle_id)
            if not vehicle:
                return {'ok': False, 'error': 'Vehículo no encontrado.'}
            if vehicle.get('status') == VehicleStatus.SOLD.value:
                return {'ok': False, 'error': 'El vehículo ya fue vendido.'}

            financed = price - down if payment_method == PaymentMethod.FINANCING.value else 0.0
            sale = Sale(
                vehicle_id=vehicle_id,
                customer_id=customer_id,
                seller_id=seller_id or None,
                sale_price=price,
                payment_method=payment_method,
                down_payment=down,
                financed_amount=financed,
                notes=(notes or '').strip(),
            )
            created = self.sales_repo.insert(sale.to_dict())
        except DataAPIError as exc:
            log_error('Registrar venta', exc)
            return {'ok': False, 'error': f"Error al registrar venta: {exc.message}"}

        # Si el vehículo no queda vendido se borra la venta recién creada
        try:
            self.vehicle_repo.update_status(vehicle_id, VehicleStatus.SOLD.value)
        except DataAPIError as exc:
            log_error('Registrar venta', exc)
            if created and created.get('id'):
                self._rollback('Deshacer venta', self.sales_repo.delete, created['id'])
            return {'ok': False, 'error': f"Error al registrar venta: {exc.message}"}
        finally:
            self._invalidate_after_write()

        return {'ok': True, 'sale': created}

    def cancel_sale(self, sale_id: str) -> Dict[str, Any]:
        """
        Cancela una venta: devuelve el vehículo a disponible y elimina la venta.
        El control de rol (solo administrador) lo hace la ruta.
        """
        try:
            sale = self.sales_repo.get_by_id(sale_id, columns='id,vehicle_id')
        except DataAPIError as exc:
            log_error('Cancelar venta', exc)
            return {'ok': False, 'error': f"Error al cancelar venta: {exc.message}"}
        if not sale:
            return {'ok': False, 'error': 'Venta no encontrada.'}

        vehicle_id = sale.get('vehicle_id')
        try:
            if vehicle_id:
                self.vehicle_repo.update_status(vehicle_id, VehicleStatus.AVAILABLE.value)
            self.sales_repo.delete(sale_id)
        except DataAPIError as exc:
            log_error('Cancelar venta', exc)
            if vehicle_id:
                self._rollback(
                    'Restaurar estado del vehículo',
                    self.vehicle_repo.update_status, vehicle_id, VehicleStatus.SOLD.value
                )
            return {'ok': False, 'error': f"Error al cancelar venta: {exc.message}"}
        finally:
            self._invalidate_after_write()

        return {'ok': True}

    @staticmethod
    def _rollback(context: str, fn: Callable[..., Any], *args) -> None:
        """Deshace una escritura parcial; si tampoco se puede, queda en el log."""
        try:
            fn(*args)
        except DataAPIError as exc:
            log_error(context, exc)

    def _invalidate_after_write(self) -> None:
        self.cache.invalidate(self.CACHE_KEY)
        self.cache.invalidate(('vehicles',))
