# ==============================================================================
# REPOSITORIO DE VENTAS
# ==============================================================================
# Encapsula el acceso a la tabla `sales`. Cada venta se lee con el vehículo y
# el cliente embebidos; el vendedor NO se embebe (la relación con profiles no
# existe como FK) y se resuelve aparte en SalesService.
# ==============================================================================

from typing import Any, Dict, List

from app_concesionaria.repositories.base import BaseRepository


# vehicle:vehicles(...) y customer:customers(...) son relaciones embebidas de PostgREST
SALES_COLUMNS = (
    '*,'
    'vehicle:vehicles(brand,model,version,year,color,transmission,fuel,plate,purchase_price),'
    'customer:customers(name,document,phone)'
)


class SalesRepository(BaseRepository):
    """
    Repositorio para la tabla de ventas.

    Columnas propias: id, vehicle_id, customer_id, seller_id, sale_price,
    payment_method, down_payment, financed_amount, notes, created_at.
    """

    table_name = 'sales'
    default_columns = SALES_COLUMNS

    def list_sales(self) -> List[Dict[str, Any]]:
        """Todas las ventas, más recientes primero."""
        query = self.table().select(SALES_COLUMNS).order('created_at', desc=True)
        return self._execute(query, 'listar ventas')

    def list_by_vehicle(self, vehicle_id: str) -> List[Dict[str, Any]]:
        """Ventas asociadas a un vehículo."""
        query = self.table().select(SALES_COLUMNS).eq('vehicle_id', vehicle_id)
        return self._execute(query, 'listar ventas del vehículo')

    def list_by_customer(self, customer_id: str) -> List[Dict[str, Any]]:
        query = (
            self.table()
            .select(SALES_COLUMNS)
            .eq('customer_id', customer_id)
            .order('created_at', desc=True)
        )
        return self._execute(query, 'listar ventas del cliente')
