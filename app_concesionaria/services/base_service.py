# ==============================================================================
# SERVICIO BASE - Política "fail soft" de las consultas
# ==============================================================================
# Toda lectura al backend pasa por BaseService._query:
#   caché/reintentos → si igual falla: log + UNA notificación + valor vacío
# Así una página nunca cae por un error del backend; muestra el estado vacío
# y el aviso correspondiente.
#
# Las escrituras no notifican: devuelven {'ok': False, 'error': ...} y la
# ruta decide cómo mostrarlo (una sola notificación en ambos casos).
# ==============================================================================

from typing import Any, Callable, Dict

from app_concesionaria.notifications import Notifier, flash_notifier
from app_concesionaria.performance_logger import log_error
from app_concesionaria.repositories.base import DataAPIError
from app_concesionaria.services.query_cache import QueryCache


class BaseService:
    """Base de los servicios de dominio que leen del backend."""

    def __init__(self, cache: QueryCache = None, notifier: Notifier = None):
        """
        Args:
            cache: Caché compartida de consultas (una nueva si no se indica)
            notifier: Callable(message, category) para avisar al usuario
        """
        self.cache = cache if cache is not None else QueryCache()
        self.notify = notifier or flash_notifier

    def _query(
        self,
        key,
        loader: Callable[[], Any],
        error_prefix: str,
        context: str,
        default_factory: Callable[[], Any] = list,
        retries: int = None
    ) -> Any:
        """
        Ejecuta una lectura con caché y política fail soft.

        Args:
            key: Clave de caché o None para no cachear
            loader: Consulta al backend (puede lanzar DataAPIError)
            error_prefix: Prefijo del mensaje al usuario ("Error al cargar ventas")
            context: Nombre de la operación para los logs
            default_factory: Valor devuelto si la consulta falla
            retries: Reintentos específicos (None = los de la caché)
        """
        try:
            return self.cache.fetch(key, loader, retries=retries)
        except DataAPIError as exc:
            log_error(context, exc)
            self.notify(f"{error_prefix}: {exc.message or 'error desconocido'}", 'danger')
            return default_factory()

    def _write(self, fn: Callable[[], Any], error_prefix: str, context: str) -> Dict[str, Any]:
        """
        Ejecuta una escritura y la traduce a dict de resultado.

        Returns:
            {'ok': True, 'data': <resultado>} o {'ok': False, 'error': <mensaje>}
        """
        try:
            return {'ok': True, 'data': fn()}
        except DataAPIError as exc:
            log_error(context, exc)
            return {'ok': False, 'error': f"{error_prefix}: {exc.message or 'error desconocido'}"}
