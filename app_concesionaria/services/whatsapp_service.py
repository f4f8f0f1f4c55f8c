# ==============================================================================
# CRM WHATSAPP
# ==============================================================================
# El panel no usa la API de WhatsApp Business: arma un enlace wa.me con el
# mensaje ya escrito y el vendedor lo abre en su WhatsApp. Cada envío queda
# registrado en `whatsapp_messages` para el historial del cliente.
#
# También recibe los contactos del sitio público (tabla `leads`), que el
# panel muestra para responderlos por WhatsApp.
# ==============================================================================

from typing import Any, Dict, List, Optional
from urllib.parse import quote

from app_concesionaria.performance_logger import log_error, log_warning
from app_concesionaria.repositories.base import DataAPIError
from app_concesionaria.services.base_service import BaseService
from app_concesionaria.services.customer_service import normalize_phone
from app_concesionaria.services.report_service import format_money, vehicle_title

TEMPLATES = {
    'greeting': {
        'label': 'Saludo',
        'text': 'Hola {nombre}, te saluda {vendedor} de {concesionaria}. ¿En qué podemos ayudarte?',
    },
    'vehicle_offer': {
        'label': 'Oferta de vehículo',
        'text': (
            'Hola {nombre}, tenemos disponible el {vehiculo} por {precio}. '
            '¿Te gustaría agendar una visita o una prueba de manejo? {vendedor} - {concesionaria}'
        ),
    },
    'financing_followup': {
        'label': 'Seguimiento de financiamiento',
        'text': (
            'Hola {nombre}, ¿pudiste revisar la simulación de financiamiento del {vehiculo}? '
            'Quedo atento para resolver tus dudas. {vendedor} - {concesionaria}'
        ),
    },
    'post_sale': {
        'label': 'Posventa',
        'text': (
            'Hola {nombre}, gracias por confiar en {concesionaria}. '
            '¿Cómo te va con tu {vehiculo}? Cualquier cosa, estamos a tu disposición.'
        ),
    },
}

# Plantillas que necesitan un vehículo
VEHICLE_TEMPLATES = frozenset(['vehicle_offer', 'financing_followup', 'post_sale'])


def whatsapp_number(phone: str, country_code: str = '55') -> str:
    """
    Número en formato internacional para wa.me (solo dígitos).
    Con 10-11 dígitos (DDD + número) se antepone el código de país.
    """
    digits = normalize_phone(phone)
    if not digits:
        return ''
    if len(digits) in (10, 11):
        return f"{country_code}{digits}"
    return digits


class WhatsAppService(BaseService):
    """Mensajes por WhatsApp y contactos del sitio."""

    HISTORY_KEY = ('whatsapp', 'history')
    LEADS_KEY = ('whatsapp', 'leads')

    def __init__(
        self,
        message_repo,
        lead_repo,
        customer_service,
        inventory_service,
        dealership_name: str = 'Concesionaria',
        country_code: str = '55',
        cache=None,
        notifier=None
    ):
        super().__init__(cache, notifier)
        self.message_repo = message_repo
        self.lead_repo = lead_repo
        self.customer_service = customer_service
        self.inventory_service = inventory_service
        self.dealership_name = dealership_name
        self.country_code = country_code

    # =========================================================================
    # MENSAJES
    # =========================================================================

    def render_message(
        self,
        template_key: str,
        customer: Dict[str, Any],
        vehicle: Dict[str, Any] = None,
        seller_name: str = ''
    ) -> str:
        template = TEMPLATES.get(template_key) or TEMPLATES['greeting']
        first_name = ((customer or {}).get('name') or '').split(' ')[0] or 'cliente'
        return template['text'].format(
            nombre=first_name,
            vehiculo=vehicle_title(vehicle) if vehicle else 'vehículo',
            precio=format_money((vehicle or {}).get('price'), empty='consultar'),
            vendedor=seller_name or 'el equipo',
            concesionaria=self.dealership_name,
        )

    def build_link(self, phone: str, text: str) -> str:
        """https://wa.me/<número>?text=<mensaje codificado>"""
        number = whatsapp_number(phone, self.country_code)
        return f"https://wa.me/{number}?text={quote(text or '')}"

    def send(
        self,
        customer_id: str,
        template_key: str,
        vehicle_id: str = None,
        user: Dict[str, Any] = None
    ) -> Dict[str, Any]:
        """
        Prepara el mensaje para un cliente y lo registra en el historial.

        Returns:
            {'ok': True, 'link': str, 'message': str} o {'ok': False, 'error': str}
        """
        user = user or {}
        if template_key not in TEMPLATES:
            return {'ok': False, 'error': 'Plantilla inválida.'}
        if template_key in VEHICLE_TEMPLATES and not vehicle_id:
            return {'ok': False, 'error': 'Esta plantilla necesita un vehículo.'}

        customer = self.customer_service.get_customer(customer_id)
        if not customer:
            return {'ok': False, 'error': 'Cliente no encontrado.'}
        number = whatsapp_number(customer.get('phone'), self.country_code)
        if not number:
            return {'ok': False, 'error': 'El cliente no tiene teléfono cargado.'}

        vehicle: Optional[Dict[str, Any]] = None
        if vehicle_id:
            vehicle = self.inventory_service.get_vehicle(vehicle_id)
            if not vehicle:
                return {'ok': False, 'error': 'Vehículo no encontrado.'}

        message = self.render_message(template_key, customer, vehicle, user.get('name', ''))
        link = self.build_link(number, message)

        # El historial es secundario: si no se puede guardar, el enlace sigue
        try:
            self.message_repo.log_message({
                'customer_id': customer_id,
                'user_id': user.get('id'),
                'phone': number,
                'template': template_key,
                'message': message,
                'vehicle_id': vehicle_id or None,
            })
            self.cache.invalidate(self.HISTORY_KEY)
        except DataAPIError as exc:
            log_warning('Registrar mensaje de WhatsApp', exc)

        return {'ok': True, 'link': link, 'message': message}

    def history(self, limit: int = 50) -> List[Dict[str, Any]]:
        return self._query(
            self.HISTORY_KEY + (limit,),
            lambda: self.message_repo.recent(limit),
            'Error al cargar historial de WhatsApp',
            'Cargar historial de WhatsApp'
        )

    # =========================================================================
    # CONTACTOS DEL SITIO
    # =========================================================================

    def register_lead(
        self,
        name: str,
        phone: str = '',
        email: str = '',
        message: str = '',
        vehicle_id: str = None
    ) -> Dict[str, Any]:
        """Guarda un contacto recibido desde el formulario público."""
        name = (name or '').strip()
        phone = normalize_phone(phone)
        email = (email or '').strip().lower()
        if not name:
            return {'ok': False, 'error': 'Ingresa tu nombre.'}
        if not phone and not email:
            return {'ok': False, 'error': 'Ingresa un teléfono o un email para responderte.'}
        if phone and len(phone) < 10:
            return {'ok': False, 'error': 'Teléfono inválido: incluye el DDD.'}

        try:
            self.lead_repo.create_lead({
                'name': name,
                'phone': phone,
                'email': email,
                'message': (message or '').strip(),
                'vehicle_id': vehicle_id or None,
            })
        except DataAPIError as exc:
            log_error('Registrar contacto', exc)
            return {'ok': False, 'error': 'No pudimos registrar tu mensaje. Intenta de nuevo o llámanos.'}

        self.cache.invalidate(self.LEADS_KEY)
        return {'ok': True}

    def recent_leads(self, limit: int = 20) -> List[Dict[str, Any]]:
        leads = self._query(
            self.LEADS_KEY + (limit,),
            lambda: self.lead_repo.recent(limit),
            'Error al cargar contactos del sitio',
            'Cargar contactos del sitio'
        )
        return [
            {**lead, 'whatsapp_link': self.build_link(lead.get('phone'), f"Hola {lead.get('name') or ''}, recibimos tu mensaje en {self.dealership_name}.")}
            if lead.get('phone') else lead
            for lead in leads
        ]
