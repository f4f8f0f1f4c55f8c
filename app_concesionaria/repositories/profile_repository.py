# ==============================================================================
# REPOSITORIO DE PERFILES Y USUARIOS
# ==============================================================================
# Tabla `profiles` (nombre, apellido, rol, avatar) más las operaciones de
# administración de Supabase Auth (listar, crear, bloquear usuarios).
# Las operaciones de Auth requieren la clave service_role.
# ==============================================================================

from typing import Any, Dict, List, Optional

from app_concesionaria.repositories.base import BaseRepository

PROFILE_COLUMNS = 'id,first_name,last_name,role,avatar_url'
SELLER_COLUMNS = 'id,first_name,last_name,avatar_url'

# Supabase Auth no tiene "desactivar": se bloquea el usuario ~100 años
BAN_DURATION = '876000h'


class ProfileRepository(BaseRepository):
    """Repositorio para perfiles de usuario y cuentas de Auth."""

    table_name = 'profiles'
    default_columns = PROFILE_COLUMNS

    # =========================================================================
    # PERFILES
    # =========================================================================

    def list_profiles(self) -> List[Dict[str, Any]]:
        return self.list(order_by='first_name')

    def get_seller_profiles(self, seller_ids: List[str]) -> List[Dict[str, Any]]:
        """Perfiles de los vendedores indicados (id, nombre, apellido, avatar)."""
        return self.get_by_ids(seller_ids, columns=SELLER_COLUMNS)

    def get_profile(self, user_id: str) -> Optional[Dict[str, Any]]:
        return self.get_by_id(user_id)

    def upsert_profile(self, profile: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Crea o actualiza el perfil (el id es el del usuario de Auth)."""
        rows = self._execute(self.table().upsert(profile), 'guardar perfil')
        return rows[0] if rows else None

    # =========================================================================
    # AUTH (ADMIN)
    # =========================================================================

    def list_auth_users(self) -> List[Any]:
        """Usuarios de Supabase Auth (objetos con id, email, user_metadata)."""
        users = self._call(lambda: self.client.auth.admin.list_users(), 'listar usuarios')
        return list(users or [])

    def create_auth_user(self, email: str, password: str, metadata: Dict[str, Any]) -> Any:
        """Crea un usuario confirmado en Auth. Devuelve el usuario creado."""
        response = self._call(
            lambda: self.client.auth.admin.create_user({
                'email': email,
                'password': password,
                'email_confirm': True,
                'user_metadata': metadata,
            }),
            'crear usuario'
        )
        return getattr(response, 'user', None)

    def ban_auth_user(self, user_id: str) -> None:
        self._call(
            lambda: self.client.auth.admin.update_user_by_id(
                user_id, {'ban_duration': BAN_DURATION}
            ),
            'desactivar usuario'
        )
