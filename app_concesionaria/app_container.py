# ==============================================================================
# CONTENEDOR DE DEPENDENCIAS - Inyección de servicios
# ==============================================================================
# Punto único para obtener el cliente del backend, la caché de consultas,
# los repositorios y los servicios. Facilita:
#   - Inyección de dependencias
#   - Testing (se inyecta un cliente falso y un notifier que acumula avisos)
#
# El cliente principal usa la clave service_role (lecturas y escrituras del
# back-office). El control de roles lo hacen las rutas (security.py).
# El login usa un cliente nuevo con la clave pública en cada intento.
# ==============================================================================

from typing import Any, Callable, Optional

from supabase import create_client

from app_concesionaria import config
from app_concesionaria.notifications import Notifier, flash_notifier

# ═══════════════════════════════════════════════════════════════════════════════
# REPOSITORIOS - Acceso a tablas del backend
# ═══════════════════════════════════════════════════════════════════════════════
from app_concesionaria.repositories import (
    CustomerRepository,
    LeadRepository,
    ProfileRepository,
    SalesRepository,
    VehicleRepository,
    WhatsAppRepository,
)

# ═══════════════════════════════════════════════════════════════════════════════
# SERVICIOS - Capa de lógica de negocio
# ═══════════════════════════════════════════════════════════════════════════════
from app_concesionaria.services import (
    CustomerService,
    FinanceService,
    InventoryService,
    QueryCache,
    ReportService,
    SalesService,
    UserService,
    WhatsAppService,
)


def _default_client():
    if not config.SUPABASE_URL or not config.SUPABASE_SERVICE_KEY:
        raise RuntimeError("SUPABASE_URL y SUPABASE_SERVICE_KEY deben estar definidas")
    return create_client(config.SUPABASE_URL, config.SUPABASE_SERVICE_KEY)


def _default_auth_client():
    # Login y recuperación nunca usan la clave de servicio
    if not config.SUPABASE_URL or not config.SUPABASE_ANON_KEY:
        raise RuntimeError("SUPABASE_URL y SUPABASE_ANON_KEY deben estar definidas")
    return create_client(config.SUPABASE_URL, config.SUPABASE_ANON_KEY)


class AppContainer:
    """
    Contenedor de dependencias de la aplicación.

    Implementa el patrón Singleton para asegurar una única instancia
    de cada repositorio y servicio.

    Uso:
        container = get_container()
        sales = container.sales_service.list_sales()
    """

    _instance: Optional['AppContainer'] = None

    def __new__(cls, *args, **kwargs):
        """Singleton pattern."""
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._initialized = False
        return cls._instance

    def __init__(
        self,
        client: Any = None,
        auth_client_factory: Callable[[], Any] = None,
        notifier: Notifier = None,
        cache: QueryCache = None
    ):
        """
        Inicializa el contenedor.

        Args:
            client: Cliente de Supabase (se crea desde config si no se indica)
            auth_client_factory: Crea clientes para login/recuperación
            notifier: Avisos al usuario (flash por defecto)
            cache: Caché de consultas compartida
        """
        if self._initialized:
            return

        self._client = client
        self._auth_client_factory = auth_client_factory
        self.notifier = notifier or flash_notifier
        self._cache = cache

        self.reset()
        self._initialized = True

    # =========================================================================
    # INFRAESTRUCTURA
    # =========================================================================

    @property
    def client(self):
        """Cliente del backend (singleton)."""
        if self._client is None:
            self._client = _default_client()
        return self._client

    @property
    def auth_client_factory(self) -> Callable[[], Any]:
        return self._auth_client_factory or _default_auth_client

    @property
    def cache(self) -> QueryCache:
        """Caché de consultas compartida por todos los servicios."""
        if self._cache is None:
            self._cache = QueryCache(
                stale_time=config.QUERY_STALE_TIME,
                retries=config.QUERY_RETRY,
                retry_delay=config.QUERY_RETRY_DELAY,
            )
        return self._cache

    # =========================================================================
    # REPOSITORIOS
    # =========================================================================

    @property
    def sales_repo(self) -> SalesRepository:
        """Repositorio de ventas (singleton)."""
        if self._sales_repo is None:
            self._sales_repo = SalesRepository(self.client)
        return self._sales_repo

    @property
    def profile_repo(self) -> ProfileRepository:
        """Repositorio de perfiles y usuarios (singleton)."""
        if self._profile_repo is None:
            self._profile_repo = ProfileRepository(self.client)
        return self._profile_repo

    @property
    def vehicle_repo(self) -> VehicleRepository:
        """Repositorio de vehículos (singleton)."""
        if self._vehicle_repo is None:
            self._vehicle_repo = VehicleRepository(self.client)
        return self._vehicle_repo

    @property
    def customer_repo(self) -> CustomerRepository:
        """Repositorio de clientes (singleton)."""
        if self._customer_repo is None:
            self._customer_repo = CustomerRepository(self.client)
        return self._customer_repo

    @property
    def whatsapp_repo(self) -> WhatsAppRepository:
        if self._whatsapp_repo is None:
            self._whatsapp_repo = WhatsAppRepository(self.client)
        return self._whatsapp_repo

    @property
    def lead_repo(self) -> LeadRepository:
        if self._lead_repo is None:
            self._lead_repo = LeadRepository(self.client)
        return self._lead_repo

    # =========================================================================
    # SERVICIOS
    # =========================================================================

    @property
    def user_service(self) -> UserService:
        """Servicio de usuarios (singleton)."""
        if self._user_service is None:
            self._user_service = UserService(
                self.profile_repo,
                self.auth_client_factory,
                config.SITE_URL,
                self.cache,
                self.notifier
            )
        return self._user_service

    @property
    def sales_service(self) -> SalesService:
        """Servicio de ventas (singleton)."""
        if self._sales_service is None:
            self._sales_service = SalesService(
                self.sales_repo,
                self.profile_repo,
                self.vehicle_repo,
                self.user_service.load_users_quietly,
                self.cache,
                self.notifier
            )
        return self._sales_service

    @property
    def inventory_service(self) -> InventoryService:
        """Servicio de inventario (singleton)."""
        if self._inventory_service is None:
            self._inventory_service = InventoryService(
                self.vehicle_repo,
                self.sales_service,
                self.cache,
                self.notifier
            )
        return self._inventory_service

    @property
    def customer_service(self) -> CustomerService:
        """Servicio de clientes (singleton)."""
        if self._customer_service is None:
            self._customer_service = CustomerService(self.customer_repo, self.cache, self.notifier)
        return self._customer_service

    @property
    def finance_service(self) -> FinanceService:
        if self._finance_service is None:
            self._finance_service = FinanceService(config.DEFAULT_MONTHLY_RATE)
        return self._finance_service

    @property
    def report_service(self) -> ReportService:
        """Servicio de reportes (lee ventas e inventario a través de sus servicios)."""
        if self._report_service is None:
            self._report_service = ReportService(
                self.sales_service.list_sales,
                self.inventory_service.list_vehicles
            )
        return self._report_service

    @property
    def whatsapp_service(self) -> WhatsAppService:
        """Servicio del CRM WhatsApp (singleton)."""
        if self._whatsapp_service is None:
            self._whatsapp_service = WhatsAppService(
                self.whatsapp_repo,
                self.lead_repo,
                self.customer_service,
                self.inventory_service,
                config.DEALERSHIP_NAME,
                config.WHATSAPP_COUNTRY_CODE,
                self.cache,
                self.notifier
            )
        return self._whatsapp_service

    # =========================================================================
    # UTILIDADES
    # =========================================================================

    def reset(self) -> None:
        """
        Reinicia repositorios y servicios y vacía la caché.
        Útil para testing o para recargar datos.
        """
        self._sales_repo = None
        self._profile_repo = None
        self._vehicle_repo = None
        self._customer_repo = None
        self._whatsapp_repo = None
        self._lead_repo = None

        self._user_service = None
        self._sales_service = None
        self._inventory_service = None
        self._customer_service = None
        self._finance_service = None
        self._report_service = None
        self._whatsapp_service = None

        if self._cache is not None:
            self._cache.clear()

    @classmethod
    def get_instance(cls) -> 'AppContainer':
        if cls._instance is None:
            return cls()
        return cls._instance

    @classmethod
    def reset_instance(cls) -> None:
        """Elimina la instancia singleton (útil para tests)."""
        if cls._instance is not None:
            cls._instance.reset()
            cls._instance = None


# Función helper para obtener el contenedor global
def get_container() -> AppContainer:
    """
    Obtiene el contenedor de dependencias global.

    Uso en rutas:
        from app_concesionaria.app_container import get_container
        container = get_container()
        sales = container.sales_service.list_sales()
    """
    return AppContainer.get_instance()
