# ==============================================================================
# SERVICIO DE INVENTARIO
# ==============================================================================
# Vehículos de la concesionaria: listado del back-office, vitrina pública,
# alta/edición/baja, estado y consulta por placa.
#
# PLACAS:
# Se guardan normalizadas (sin guiones ni espacios, en mayúsculas) y se
# aceptan los dos formatos brasileños:
#   - antiguo:  ABC1234
#   - Mercosul: ABC1D23
# ==============================================================================

import math
import re
from datetime import datetime
from typing import Any, Dict, List, Optional

from app_concesionaria.models import VEHICLE_STATUS_LABELS, Vehicle, VehicleStatus
from app_concesionaria.performance_logger import log_error, profile_function
from app_concesionaria.repositories.base import DataAPIError
from app_concesionaria.services.base_service import BaseService

PLATE_OLD_RE = re.compile(r'^[A-Z]{3}[0-9]{4}$')
PLATE_MERCOSUL_RE = re.compile(r'^[A-Z]{3}[0-9][A-Z][0-9]{2}$')

MIN_YEAR = 1950


def normalize_plate(plate: str) -> str:
    """'abc-1d23' → 'ABC1D23'"""
    return re.sub(r'[^A-Za-z0-9]', '', plate or '').upper()


def is_valid_plate(plate: str) -> bool:
    plate = normalize_plate(plate)
    return bool(PLATE_OLD_RE.match(plate) or PLATE_MERCOSUL_RE.match(plate))


def _to_float(value):
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def _to_int(value):
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _matches_text(vehicle: Dict[str, Any], text: str) -> bool:
    parts = [
        vehicle.get('brand'), vehicle.get('model'), vehicle.get('version'),
        vehicle.get('plate'), vehicle.get('color'), vehicle.get('year'),
    ]
    return text in ' '.join(str(p) for p in parts if p).lower()


class InventoryService(BaseService):
    """
    Servicio de inventario de vehículos.

    Las lecturas se cachean bajo ('vehicles', ...) y cualquier escritura
    invalida ese prefijo completo.
    """

    CACHE_KEY = ('vehicles',)
    AVAILABLE_KEY = ('vehicles', 'available')

    def __init__(self, vehicle_repo, sales_service=None, cache=None, notifier=None):
        super().__init__(cache, notifier)
        self.vehicle_repo = vehicle_repo
        self.sales_service = sales_service

    # =========================================================================
    # LECTURA
    # =========================================================================

    def list_vehicles(self, status: str = None, q: str = None) -> List[Dict[str, Any]]:
        """Inventario completo, filtrado en memoria por estado y texto."""
        vehicles = self._query(
            self.CACHE_KEY,
            self.vehicle_repo.list_vehicles,
            'Error al cargar vehículos',
            'Cargar inventario'
        )
        if status:
            vehicles = [v for v in vehicles if v.get('status') == status]
        text = (q or '').strip().lower()
        if text:
            vehicles = [v for v in vehicles if _matches_text(v, text)]
        return vehicles

    @profile_function(name="Consultar vitrina")
    def list_available(
        self,
        brand: str = None,
        max_price=None,
        min_year=None,
        q: str = None
    ) -> List[Dict[str, Any]]:
        """Vehículos disponibles para el sitio público, con filtros opcionales."""
        vehicles = self._query(
            self.AVAILABLE_KEY,
            lambda: self.vehicle_repo.list_by_status(VehicleStatus.AVAILABLE.value),
            'Error al cargar vehículos',
            'Cargar vitrina'
        )
        if brand:
            brand_low = brand.strip().lower()
            vehicles = [v for v in vehicles if (v.get('brand') or '').lower() == brand_low]
        # Filtros numéricos inválidos en la URL se ignoran
        limit = _to_float(max_price)
        if limit is not None:
            vehicles = [v for v in vehicles if _to_float(v.get('price')) is not None and _to_float(v['price']) <= limit]
        year = _to_int(min_year)
        if year is not None:
            vehicles = [v for v in vehicles if (_to_int(v.get('year')) or 0) >= year]
        text = (q or '').strip().lower()
        if text:
            vehicles = [v for v in vehicles if _matches_text(v, text)]
        return vehicles

    @staticmethod
    def available_brands(vehicles: List[Dict[str, Any]]) -> List[str]:
        return sorted({v.get('brand') for v in vehicles if v.get('brand')})

    def featured_vehicles(self, limit: int = 6) -> List[Dict[str, Any]]:
        """Últimos vehículos disponibles (portada)."""
        return self.list_available()[:limit]

    def get_vehicle(self, vehicle_id: str) -> Optional[Dict[str, Any]]:
        return self._query(
            None,
            lambda: self.vehicle_repo.get_by_id(vehicle_id),
            'Error al cargar vehículo',
            'Cargar vehículo',
            default_factory=lambda: None,
            retries=0
        )

    def lookup_plate(self, plate: str) -> Dict[str, Any]:
        """
        Consulta por placa: vehículo del inventario y su historial de ventas.

        Returns:
            {'plate', 'valid', 'vehicle' (o None), 'sales'}
        """
        normalized = normalize_plate(plate)
        result = {'plate': normalized, 'valid': is_valid_plate(normalized), 'vehicle': None, 'sales': []}
        if not result['valid']:
            return result

        vehicle = self._query(
            None,
            lambda: self.vehicle_repo.get_by_plate(normalized),
            'Error al consultar placa',
            'Consultar placa',
            default_factory=lambda: None,
            retries=0
        )
        result['vehicle'] = vehicle
        if vehicle and self.sales_service is not None:
            result['sales'] = self.sales_service.get_sales_by_vehicle_id(vehicle['id'])
        return result

    @staticmethod
    def inventory_summary(vehicles: List[Dict[str, Any]]) -> Dict[str, Any]:
        """Conteos por estado y valor del stock disponible."""
        counts = {status: 0 for status in VEHICLE_STATUS_LABELS}
        stock_value = 0.0
        stock_cost = 0.0
        for vehicle in vehicles:
            status = vehicle.get('status') or VehicleStatus.AVAILABLE.value
            counts[status] = counts.get(status, 0) + 1
            if status != VehicleStatus.SOLD.value:
                stock_value += float(vehicle.get('price') or 0)
                stock_cost += float(vehicle.get('purchase_price') or 0)
        return {
            'total': len(vehicles),
            'by_status': counts,
            'stock_value': round(stock_value, 2),
            'stock_cost': round(stock_cost, 2),
            'expected_margin': round(stock_value - stock_cost, 2),
        }

    # =========================================================================
    # ESCRITURA
    # =========================================================================

    def _validate(self, vehicle: Vehicle, vehicle_id: str = None) -> Optional[str]:
        if not vehicle.brand or not vehicle.model:
            return 'Marca y modelo son obligatorios.'
        max_year = datetime.now().year + 1
        if vehicle.year is None or not (MIN_YEAR <= vehicle.year <= max_year):
            return f'El año debe estar entre {MIN_YEAR} y {max_year}.'
        if vehicle.price is None or vehicle.price <= 0:
            return 'El precio debe ser mayor a cero.'
        if vehicle.purchase_price is not None and vehicle.purchase_price < 0:
            return 'El costo no puede ser negativo.'
        if vehicle.mileage is not None and vehicle.mileage < 0:
            return 'El kilometraje no puede ser negativo.'
        if vehicle.status not in VEHICLE_STATUS_LABELS:
            return 'Estado inválido.'
        if vehicle.plate:
            vehicle.plate = normalize_plate(vehicle.plate)
            if not is_valid_plate(vehicle.plate):
                return 'Placa inválida (formatos ABC1234 o ABC1D23).'
            existing = self.vehicle_repo.get_by_plate(vehicle.plate)
            if existing and existing.get('id') != vehicle_id:
                return f'Ya existe un vehículo con la placa {vehicle.plate}.'
        return None

    def create_vehicle(self, data: Dict[str, Any]) -> Dict[str, Any]:
        vehicle = Vehicle.from_dict(data)
        try:
            error = self._validate(vehicle)
            if error:
                return {'ok': False, 'error': error}
            created = self.vehicle_repo.insert(vehicle.to_dict())
        except DataAPIError as exc:
            log_error('Crear vehículo', exc)
            return {'ok': False, 'error': f"Error al crear vehículo: {exc.message}"}
        self.cache.invalidate(self.CACHE_KEY)
        return {'ok': True, 'vehicle': created}

    def update_vehicle(self, vehicle_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        vehicle = Vehicle.from_dict(data)
        try:
            current = self.vehicle_repo.get_by_id(vehicle_id)
            if not current:
                return {'ok': False, 'error': 'Vehículo no encontrado.'}
            # El estado vendido solo cambia a través de ventas
            if current.get('status') == VehicleStatus.SOLD.value:
                vehicle.status = VehicleStatus.SOLD.value
            elif vehicle.status == VehicleStatus.SOLD.value:
                return {'ok': False, 'error': 'Para marcar como vendido registra la venta.'}
            error = self._validate(vehicle, vehicle_id)
            if error:
                return {'ok': False, 'error': error}
            updated = self.vehicle_repo.update(vehicle_id, vehicle.to_dict())
        except DataAPIError as exc:
            log_error('Actualizar vehículo', exc)
            return {'ok': False, 'error': f"Error al actualizar vehículo: {exc.message}"}
        self.cache.invalidate(self.CACHE_KEY)
        return {'ok': True, 'vehicle': updated}

    def delete_vehicle(self, vehicle_id: str) -> Dict[str, Any]:
        """Elimina un vehículo que no fue vendido."""
        try:
            current = self.vehicle_repo.get_by_id(vehicle_id)
            if not current:
                return {'ok': False, 'error': 'Vehículo no encontrado.'}
            if current.get('status') == VehicleStatus.SOLD.value:
                return {'ok': False, 'error': 'No se puede eliminar un vehículo vendido.'}
            self.vehicle_repo.delete(vehicle_id)
        except DataAPIError as exc:
            log_error('Eliminar vehículo', exc)
            return {'ok': False, 'error': f"Error al eliminar vehículo: {exc.message}"}
        self.cache.invalidate(self.CACHE_KEY)
        return {'ok': True}

    def set_status(self, vehicle_id: str, status: str) -> Dict[str, Any]:
        """Disponible ↔ reservado. 'sold' solo a través de una venta."""
        if status not in (VehicleStatus.AVAILABLE.value, VehicleStatus.RESERVED.value):
            return {'ok': False, 'error': 'Estado inválido.'}
        try:
            current = self.vehicle_repo.get_by_id(vehicle_id)
            if not current:
                return {'ok': False, 'error': 'Vehículo no encontrado.'}
            if current.get('status') == VehicleStatus.SOLD.value:
                return {'ok': False, 'error': 'El vehículo ya fue vendido.'}
            self.vehicle_repo.update_status(vehicle_id, status)
        except DataAPIError as exc:
            log_error('Cambiar estado de vehículo', exc)
            return {'ok': False, 'error': f"Error al cambiar estado: {exc.message}"}
        self.cache.invalidate(self.CACHE_KEY)
        return {'ok': True}
