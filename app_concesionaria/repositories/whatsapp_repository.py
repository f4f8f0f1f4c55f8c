# ==============================================================================
# REPOSITORIO DEL CRM WHATSAPP
# ==============================================================================
# Historial de mensajes iniciados desde el panel (tabla `whatsapp_messages`)
# y contactos recibidos desde el sitio público (tabla `leads`).
# ==============================================================================

from typing import Any, Dict, List, Optional

from app_concesionaria.repositories.base import BaseRepository


class WhatsAppRepository(BaseRepository):
    """
    Mensajes enviados: id, customer_id, user_id, phone, template, message,
    vehicle_id, created_at.
    """

    table_name = 'whatsapp_messages'
    default_columns = '*,customer:customers(name)'

    def log_message(self, record: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        return self.insert(record)

    def recent(self, limit: int = 50) -> List[Dict[str, Any]]:
        return self.list(order_by='created_at', desc=True, limit=limit)

    def by_customer(self, customer_id: str) -> List[Dict[str, Any]]:
        return self.list(order_by='created_at', desc=True, customer_id=customer_id)


class LeadRepository(BaseRepository):
    """Contactos del sitio público: id, name, email, phone, message, vehicle_id, created_at."""

    table_name = 'leads'

    def create_lead(self, record: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        return self.insert(record)

    def recent(self, limit: int = 50) -> List[Dict[str, Any]]:
        return self.list(order_by='created_at', desc=True, limit=limit)
