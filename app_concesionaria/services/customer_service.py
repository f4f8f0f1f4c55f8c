# ==============================================================================
# SERVICIO DE CLIENTES
# ==============================================================================
# Alta, edición y búsqueda de clientes. El documento puede ser CPF (persona,
# 11 dígitos) o CNPJ (empresa, 14 dígitos); se guarda solo con dígitos y se
# validan sus dígitos verificadores.
# ==============================================================================

import re
from typing import Any, Dict, List, Optional

from app_concesionaria.models import Customer
from app_concesionaria.performance_logger import log_error
from app_concesionaria.repositories.base import DataAPIError
from app_concesionaria.services.base_service import BaseService

EMAIL_RE = re.compile(r'^[^@\s]+@[^@\s]+\.[^@\s]+$')


def only_digits(value: str) -> str:
    return re.sub(r'\D', '', value or '')


def validate_cpf(cpf: str) -> bool:
    digits = only_digits(cpf)
    if len(digits) != 11 or digits == digits[0] * 11:
        return False
    for size in (9, 10):
        total = sum(int(digits[i]) * (size + 1 - i) for i in range(size))
        check = (total * 10) % 11 % 10
        if check != int(digits[size]):
            return False
    return True


def validate_cnpj(cnpj: str) -> bool:
    digits = only_digits(cnpj)
    if len(digits) != 14 or digits == digits[0] * 14:
        return False
    weights_first = [5, 4, 3, 2, 9, 8, 7, 6, 5, 4, 3, 2]
    weights_second = [6] + weights_first
    for weights in (weights_first, weights_second):
        size = len(weights)
        total = sum(int(digits[i]) * weights[i] for i in range(size))
        remainder = total % 11
        check = 0 if remainder < 2 else 11 - remainder
        if check != int(digits[size]):
            return False
    return True


def validate_document(document: str) -> bool:
    """CPF o CNPJ válido (según la cantidad de dígitos)."""
    digits = only_digits(document)
    if len(digits) == 11:
        return validate_cpf(digits)
    if len(digits) == 14:
        return validate_cnpj(digits)
    return False


def format_document(document: str) -> str:
    """'12345678909' → '123.456.789-09'; CNPJ → '12.345.678/0001-95'."""
    d = only_digits(document)
    if len(d) == 11:
        return f"{d[:3]}.{d[3:6]}.{d[6:9]}-{d[9:]}"
    if len(d) == 14:
        return f"{d[:2]}.{d[2:5]}.{d[5:8]}/{d[8:12]}-{d[12:]}"
    return document or ''


def normalize_phone(phone: str) -> str:
    """Teléfono solo con dígitos (DDD + número)."""
    return only_digits(phone)


class CustomerService(BaseService):
    """Servicio de clientes."""

    CACHE_KEY = ('customers',)

    def __init__(self, customer_repo, cache=None, notifier=None):
        super().__init__(cache, notifier)
        self.customer_repo = customer_repo

    # =========================================================================
    # LECTURA
    # =========================================================================

    def list_customers(self, q: str = None) -> List[Dict[str, Any]]:
        """Todos los clientes (cacheado) o búsqueda en el backend si hay texto."""
        text = (q or '').strip()
        if text:
            return self._query(
                None,
                lambda: self.customer_repo.search(text),
                'Error al buscar clientes',
                'Buscar clientes',
                retries=0
            )
        return self._query(
            self.CACHE_KEY,
            self.customer_repo.list_customers,
            'Error al cargar clientes',
            'Cargar clientes'
        )

    def get_customer(self, customer_id: str) -> Optional[Dict[str, Any]]:
        return self._query(
            None,
            lambda: self.customer_repo.get_by_id(customer_id),
            'Error al cargar cliente',
            'Cargar cliente',
            default_factory=lambda: None,
            retries=0
        )

    def customers_with_phone(self, q: str = None) -> List[Dict[str, Any]]:
        """Clientes con teléfono cargado (panel de WhatsApp)."""
        return [c for c in self.list_customers(q) if normalize_phone(c.get('phone'))]

    # =========================================================================
    # ESCRITURA
    # =========================================================================

    def _prepare(self, data: Dict[str, Any], customer_id: str = None):
        """Normaliza y valida. Devuelve (Customer, error)."""
        customer = Customer.from_dict(data)
        if not customer.name:
            return customer, 'El nombre es obligatorio.'
        if customer.document:
            customer.document = only_digits(customer.document)
            if not validate_document(customer.document):
                return customer, 'CPF/CNPJ inválido.'
            existing = self.customer_repo.get_by_document(customer.document)
            if existing and existing.get('id') != customer_id:
                return customer, f"Ya existe un cliente con ese documento ({existing.get('name')})."
        if customer.email and not EMAIL_RE.match(customer.email):
            return customer, 'Email inválido.'
        if customer.phone:
            customer.phone = normalize_phone(customer.phone)
            if len(customer.phone) < 10:
                return customer, 'Teléfono inválido: incluye el DDD.'
        return customer, None

    def create_customer(self, data: Dict[str, Any]) -> Dict[str, Any]:
        try:
            customer, error = self._prepare(data)
            if error:
                return {'ok': False, 'error': error}
            created = self.customer_repo.insert(customer.to_dict())
        except DataAPIError as exc:
            log_error('Crear cliente', exc)
            return {'ok': False, 'error': f"Error al crear cliente: {exc.message}"}
        self.cache.invalidate(self.CACHE_KEY)
        return {'ok': True, 'customer': created}

    def update_customer(self, customer_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        try:
            customer, error = self._prepare(data, customer_id)
            if error:
                return {'ok': False, 'error': error}
            updated = self.customer_repo.update(customer_id, customer.to_dict())
            if not updated:
                return {'ok': False, 'error': 'Cliente no encontrado.'}
        except DataAPIError as exc:
            log_error('Actualizar cliente', exc)
            return {'ok': False, 'error': f"Error al actualizar cliente: {exc.message}"}
        self.cache.invalidate(self.CACHE_KEY)
        self.cache.invalidate(('sales',))
        return {'ok': True, 'customer': updated}

    def delete_customer(self, customer_id: str) -> Dict[str, Any]:
        """Elimina un cliente (el backend rechaza si tiene ventas asociadas)."""
        result = self._write(
            lambda: self.customer_repo.delete(customer_id),
            'Error al eliminar cliente',
            'Eliminar cliente'
        )
        if result['ok']:
            self.cache.invalidate(self.CACHE_KEY)
        return result
