# ==============================================================================
# REPOSITORIO BASE - Acceso común a la API de datos (Supabase / PostgREST)
# ==============================================================================
# Cada repositorio representa una tabla del backend. Aquí solo se arma la
# consulta (select / filtros / orden) y se ejecuta; las reglas de negocio,
# la caché y el manejo "fail soft" viven en services/.
#
# Toda excepción del cliente (HTTP, PostgREST, red) se convierte en
# DataAPIError para que los servicios tengan un único tipo que capturar.
# ==============================================================================

from abc import ABC
from typing import Any, Callable, Dict, Iterable, List, Optional


class DataAPIError(Exception):
    """Error devuelto por la API de datos (o al no poder contactarla)."""

    def __init__(self, message: str, operation: str = ''):
        super().__init__(message)
        self.message = message
        self.operation = operation


def error_message(exc: BaseException) -> str:
    """Extrae el mensaje legible de una excepción del cliente."""
    message = getattr(exc, 'message', None)
    if message:
        return str(message)
    text = str(exc)
    return text or type(exc).__name__


class BaseRepository(ABC):
    """
    Clase base para los repositorios de tablas.

    Las subclases definen `table_name` y, si lo necesitan, `default_columns`
    (por ejemplo para embeber relaciones: "*, vehicle:vehicles(brand)").
    """

    table_name: str = ''
    default_columns: str = '*'

    def __init__(self, client):
        """
        Args:
            client: Cliente de Supabase (o un doble de pruebas con la misma API)
        """
        self.client = client

    # =========================================================================
    # EJECUCIÓN
    # =========================================================================

    def table(self):
        """Inicia una consulta sobre la tabla del repositorio."""
        return self.client.table(self.table_name)

    def _execute(self, query, operation: str = '') -> Any:
        """
        Ejecuta una consulta ya armada.

        Returns:
            `response.data` (lista de registros, o [] si vino vacío)

        Raises:
            DataAPIError: si el cliente lanza cualquier excepción
        """
        try:
            response = query.execute()
        except Exception as exc:
            raise DataAPIError(error_message(exc), operation or self.table_name) from exc
        data = getattr(response, 'data', None)
        return data if data is not None else []

    def _call(self, fn: Callable[[], Any], operation: str = '') -> Any:
        """Ejecuta una llamada que no es query builder (p. ej. Auth admin)."""
        try:
            return fn()
        except Exception as exc:
            raise DataAPIError(error_message(exc), operation or self.table_name) from exc

    # =========================================================================
    # OPERACIONES GENÉRICAS
    # =========================================================================

    def list(
        self,
        columns: str = None,
        order_by: str = None,
        desc: bool = False,
        limit: int = None,
        **filters: Any
    ) -> List[Dict[str, Any]]:
        """
        Lista registros con filtros de igualdad opcionales.

        Args:
            columns: Columnas del select (por defecto `default_columns`)
            order_by: Columna de orden
            desc: Orden descendente
            limit: Máximo de registros
            **filters: columna=valor (eq)
        """
        query = self.table().select(columns or self.default_columns)
        for column, value in filters.items():
            query = query.eq(column, value)
        if order_by:
            query = query.order(order_by, desc=desc)
        if limit:
            query = query.limit(limit)
        return self._execute(query, f"listar {self.table_name}")

    def get_by_id(self, record_id: Any, columns: str = None) -> Optional[Dict[str, Any]]:
        """Obtiene un registro por id o None si no existe."""
        query = (
            self.table()
            .select(columns or self.default_columns)
            .eq('id', record_id)
            .limit(1)
        )
        rows = self._execute(query, f"obtener {self.table_name}")
        return rows[0] if rows else None

    def get_by_ids(self, ids: Iterable[Any], columns: str = None) -> List[Dict[str, Any]]:
        """Obtiene varios registros con un filtro `in`. Lista vacía si no hay ids."""
        ids = list(ids)
        if not ids:
            return []
        query = self.table().select(columns or self.default_columns).in_('id', ids)
        return self._execute(query, f"obtener {self.table_name}")

    def insert(self, record: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Inserta un registro y devuelve la fila creada."""
        rows = self._execute(self.table().insert(record), f"crear {self.table_name}")
        return rows[0] if rows else None

    def update(self, record_id: Any, updates: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Actualiza un registro por id y devuelve la fila resultante."""
        query = self.table().update(updates).eq('id', record_id)
        rows = self._execute(query, f"actualizar {self.table_name}")
        return rows[0] if rows else None

    def delete(self, record_id: Any) -> bool:
        """Elimina un registro por id. True si el backend devolvió la fila borrada."""
        query = self.table().delete().eq('id', record_id)
        rows = self._execute(query, f"eliminar {self.table_name}")
        return bool(rows)
