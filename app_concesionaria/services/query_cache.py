# ==============================================================================
# CACHÉ DE CONSULTAS
# ==============================================================================
# Caché en memoria para lecturas frecuentes al backend:
# - Cada clave (tupla) guarda el último resultado y cuándo se obtuvo
# - Mientras el resultado sea "fresco" (stale_time) no se vuelve a consultar
# - Si la consulta falla se reintenta `retries` veces con espera exponencial
# - Solo se guardan resultados exitosos; un fallo nunca queda cacheado
# - invalidate(('sales',)) descarta la clave y todas las que empiezan igual
# ==============================================================================

import threading
import time
from typing import Any, Callable, Dict, Hashable, Optional, Tuple

from app_concesionaria.repositories.base import DataAPIError

CacheKey = Tuple[Hashable, ...]


def _normalize_key(key) -> Optional[CacheKey]:
    if key is None:
        return None
    if isinstance(key, (list, tuple)):
        return tuple(key)
    return (key,)


class QueryCache:
    """
    Caché de resultados de consultas con tiempo de frescura y reintentos.

    Uso:
        cache = QueryCache(stale_time=300, retries=2)
        sales = cache.fetch(('sales',), repo.list_sales)
        cache.invalidate(('sales',))
    """

    def __init__(
        self,
        stale_time: float = 300,
        retries: int = 2,
        retry_delay: float = 1.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep
    ):
        """
        Args:
            stale_time: Segundos que un resultado se considera fresco
            retries: Reintentos tras el primer fallo
            retry_delay: Espera antes del primer reintento (se duplica)
            clock: Reloj monotónico (inyectable para tests)
            sleep: Función de espera (inyectable para tests)
        """
        self.stale_time = stale_time
        self.retries = max(0, retries)
        self.retry_delay = retry_delay
        self._clock = clock
        self._sleep = sleep
        self._entries: Dict[CacheKey, Tuple[Any, float]] = {}
        self._lock = threading.RLock()

    def fetch(
        self,
        key,
        loader: Callable[[], Any],
        stale_time: float = None,
        retries: int = None
    ) -> Any:
        """
        Devuelve el valor cacheado si está fresco; si no, lo carga.

        Args:
            key: Clave de caché, o None para no cachear (solo reintentos)
            loader: Función sin argumentos que consulta el backend
            stale_time: Frescura específica para esta consulta
            retries: Reintentos específicos para esta consulta

        Raises:
            DataAPIError: si todos los intentos fallan
        """
        cache_key = _normalize_key(key)
        max_age = self.stale_time if stale_time is None else stale_time

        if cache_key is not None:
            with self._lock:
                entry = self._entries.get(cache_key)
            if entry is not None and self._clock() - entry[1] < max_age:
                return entry[0]

        value = self._load_with_retry(loader, self.retries if retries is None else retries)

        if cache_key is not None:
            with self._lock:
                self._entries[cache_key] = (value, self._clock())
        return value

    def _load_with_retry(self, loader: Callable[[], Any], retries: int) -> Any:
        attempt = 0
        while True:
            try:
                return loader()
            except DataAPIError:
                if attempt >= retries:
                    raise
                delay = self.retry_delay * (2 ** attempt)
                if delay > 0:
                    self._sleep(delay)
                attempt += 1

    def get(self, key) -> Any:
        """Valor cacheado (fresco o no) o None."""
        with self._lock:
            entry = self._entries.get(_normalize_key(key))
        return entry[0] if entry else None

    def set(self, key, value: Any) -> None:
        with self._lock:
            self._entries[_normalize_key(key)] = (value, self._clock())

    def invalidate(self, prefix) -> int:
        """
        Descarta la clave `prefix` y todas las que empiezan con ella.

        Returns:
            Cantidad de entradas descartadas
        """
        prefix = _normalize_key(prefix)
        size = len(prefix)
        with self._lock:
            stale = [k for k in self._entries if k[:size] == prefix]
            for k in stale:
                del self._entries[k]
        return len(stale)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
