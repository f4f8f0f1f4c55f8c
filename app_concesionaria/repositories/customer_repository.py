# ==============================================================================
# REPOSITORIO DE CLIENTES
# ==============================================================================
# Encapsula el acceso a la tabla `customers`.
# ==============================================================================

from typing import Any, Dict, List, Optional

from app_concesionaria.repositories.base import BaseRepository


class CustomerRepository(BaseRepository):
    """
    Repositorio de clientes.

    Columnas: id, name, document (CPF/CNPJ solo dígitos), email, phone,
    address, city, notes, created_at.
    """

    table_name = 'customers'

    def list_customers(self) -> List[Dict[str, Any]]:
        return self.list(order_by='name')

    def search(self, text: str) -> List[Dict[str, Any]]:
        """Búsqueda parcial por nombre, documento, email o teléfono (ilike)."""
        like = f"%{text}%"
        query = (
            self.table()
            .select('*')
            .or_(f"name.ilike.{like},document.ilike.{like},email.ilike.{like},phone.ilike.{like}")
            .order('name')
        )
        return self._execute(query, 'buscar clientes')

    def get_by_document(self, document: str) -> Optional[Dict[str, Any]]:
        query = self.table().select('id,name').eq('document', document).limit(1)
        rows = self._execute(query, 'buscar cliente por documento')
        return rows[0] if rows else None
