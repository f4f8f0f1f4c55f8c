# ==============================================================================
# REPOSITORIO DE VEHÍCULOS
# ==============================================================================
# Encapsula el acceso a la tabla `vehicles` (inventario de la concesionaria).
# ==============================================================================

from typing import Any, Dict, List, Optional

from app_concesionaria.repositories.base import BaseRepository


class VehicleRepository(BaseRepository):
    """
    Repositorio para el inventario de vehículos.

    Columnas: id, brand, model, version, year, color, transmission, fuel,
    plate, mileage, price, purchase_price, status, description, image_url,
    created_at.
    """

    table_name = 'vehicles'

    def list_vehicles(self) -> List[Dict[str, Any]]:
        """Todo el inventario, más recientes primero."""
        return self.list(order_by='created_at', desc=True)

    def list_by_status(self, status: str, limit: int = None) -> List[Dict[str, Any]]:
        return self.list(order_by='created_at', desc=True, limit=limit, status=status)

    def get_by_plate(self, plate: str) -> Optional[Dict[str, Any]]:
        """Busca por placa exacta (ya normalizada)."""
        query = self.table().select('*').eq('plate', plate).limit(1)
        rows = self._execute(query, 'consultar placa')
        return rows[0] if rows else None

    def update_status(self, vehicle_id: str, status: str) -> Optional[Dict[str, Any]]:
        return self.update(vehicle_id, {'status': status})
