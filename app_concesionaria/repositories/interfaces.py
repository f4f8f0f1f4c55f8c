# ==============================================================================
# INTERFACES DE REPOSITORIOS
# ==============================================================================
# Contratos que usan los servicios. Cualquier objeto que los cumpla sirve:
# los repositorios de Supabase en producción o dobles en memoria en tests.
# Cambiar de backend solo requiere una nueva implementación y registrarla
# en app_container.py; los servicios no cambian.
# ==============================================================================

from typing import Any, Dict, List, Optional, Protocol, runtime_checkable


@runtime_checkable
class IRepository(Protocol):
    """Operaciones mínimas de cualquier repositorio de tabla."""

    def get_by_id(self, record_id: Any, columns: str = None) -> Optional[Dict[str, Any]]:
        ...

    def insert(self, record: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        ...

    def update(self, record_id: Any, updates: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        ...

    def delete(self, record_id: Any) -> bool:
        ...


@runtime_checkable
class ISalesRepository(IRepository, Protocol):

    def list_sales(self) -> List[Dict[str, Any]]:
        ...

    def list_by_vehicle(self, vehicle_id: str) -> List[Dict[str, Any]]:
        ...


@runtime_checkable
class IProfileRepository(IRepository, Protocol):

    def get_seller_profiles(self, seller_ids: List[str]) -> List[Dict[str, Any]]:
        ...

    def list_profiles(self) -> List[Dict[str, Any]]:
        ...

    def list_auth_users(self) -> List[Any]:
        ...


@runtime_checkable
class IVehicleRepository(IRepository, Protocol):

    def list_vehicles(self) -> List[Dict[str, Any]]:
        ...

    def get_by_plate(self, plate: str) -> Optional[Dict[str, Any]]:
        ...

    def update_status(self, vehicle_id: str, status: str) -> Optional[Dict[str, Any]]:
        ...


@runtime_checkable
class ICustomerRepository(IRepository, Protocol):

    def list_customers(self) -> List[Dict[str, Any]]:
        ...

    def search(self, text: str) -> List[Dict[str, Any]]:
        ...
