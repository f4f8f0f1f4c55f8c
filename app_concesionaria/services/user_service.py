# ==============================================================================
# SERVICIO DE USUARIOS
# ==============================================================================
# Centraliza la lógica de usuarios: inicio de sesión contra Supabase Auth,
# recuperación de contraseña, listado (Auth + profiles) y administración de
# roles.
#
# REGLA DE ADMINISTRADORES:
# Siempre debe quedar al menos un administrador activo. No se puede quitar
# el rol ni desactivar al último, y nadie puede desactivarse a sí mismo.
# Estas validaciones se hacen AQUÍ, no en templates ni rutas.
# ==============================================================================

from typing import Any, Callable, Dict, List, Optional

from app_concesionaria.models import (
    ROLE_BADGE_CLASSES,
    ROLE_DISPLAY_NAMES,
    AppUser,
    Profile,
    UserRole,
)
from app_concesionaria.performance_logger import log_error, log_warning
from app_concesionaria.repositories.base import DataAPIError, error_message
from app_concesionaria.services.base_service import BaseService

VALID_ROLES = frozenset(r.value for r in UserRole)

MIN_PASSWORD_LENGTH = 6

_ROLE_SYNONYMS = {
    'admin': UserRole.ADMINISTRATOR.value,
    'administrador': UserRole.ADMINISTRATOR.value,
    'administrator': UserRole.ADMINISTRATOR.value,
    'seller': UserRole.SELLER.value,
    'vendedor': UserRole.SELLER.value,
    'financial': UserRole.FINANCIAL.value,
    'financeiro': UserRole.FINANCIAL.value,
    'financiero': UserRole.FINANCIAL.value,
    'finance': UserRole.FINANCIAL.value,
    'dispatcher': UserRole.DISPATCHER.value,
    'despachante': UserRole.DISPATCHER.value,
}


def normalize_role(role):
    """Normaliza el rol a su valor canónico.
    Acepta mayúsculas/minúsculas y sinónimos en español/portugués.
    """
    if not role:
        return ""
    low = str(role).strip().lower()
    return _ROLE_SYNONYMS.get(low, low)


def role_display_name(role) -> str:
    """Nombre del rol para mostrar ('Administrador', 'Vendedor', ...)."""
    role = normalize_role(role)
    return ROLE_DISPLAY_NAMES.get(role, role or 'Sin rol')


def role_badge_class(role) -> str:
    """Clase CSS de la insignia del rol."""
    return ROLE_BADGE_CLASSES.get(normalize_role(role), 'badge-gray')


def _attr(obj, name, default=None):
    """Lee un atributo de un objeto de Auth (o clave si es dict)."""
    if isinstance(obj, dict):
        return obj.get(name, default)
    return getattr(obj, name, default)


class UserService(BaseService):
    """
    Servicio para gestión de usuarios.

    Responsabilidades:
    - Autenticación (login, recuperación de contraseña)
    - Listado de usuarios con su perfil (cacheado)
    - Alta de usuarios, cambio de rol, desactivación
    """

    CACHE_KEY = ('users',)

    def __init__(
        self,
        profile_repo,
        auth_client_factory: Callable[[], Any] = None,
        site_url: str = '',
        cache=None,
        notifier=None
    ):
        """
        Args:
            profile_repo: Repositorio de perfiles y Auth admin
            auth_client_factory: Crea un cliente nuevo con la clave pública
                (el inicio de sesión modifica la sesión del cliente)
            site_url: URL pública para el enlace de recuperación
        """
        super().__init__(cache, notifier)
        self.profile_repo = profile_repo
        self.auth_client_factory = auth_client_factory
        self.site_url = (site_url or '').rstrip('/')

    # =========================================================================
    # LISTADO
    # =========================================================================

    def _load_users(self) -> List[Dict[str, Any]]:
        # Cada fuente puede faltar; solo es error si fallan las dos
        profiles_error = None
        try:
            profiles = self.profile_repo.list_profiles()
        except DataAPIError as exc:
            log_warning('Listar perfiles', exc)
            profiles_error = exc
            profiles = []
        profiles_by_id = {p.get('id'): Profile.from_dict(p) for p in profiles if p}

        try:
            auth_users = self.profile_repo.list_auth_users()
        except DataAPIError as exc:
            if profiles_error is not None:
                raise profiles_error
            log_warning('Listar usuarios de Auth', exc)
            auth_users = []

        users = []
        if auth_users:
            for auth_user in auth_users:
                user_id = _attr(auth_user, 'id')
                metadata = _attr(auth_user, 'user_metadata') or {}
                profile = profiles_by_id.get(user_id)
                name = (
                    metadata.get('name')
                    or metadata.get('full_name')
                    or (profile.full_name if profile else '')
                    or (_attr(auth_user, 'email') or '')
                )
                users.append(AppUser(
                    id=user_id,
                    email=_attr(auth_user, 'email') or '',
                    name=name,
                    profile=profile,
                ).to_dict())
        else:
            # Sin acceso a Auth admin: solo perfiles
            for profile in profiles_by_id.values():
                users.append(AppUser(id=profile.id, name=profile.full_name, profile=profile).to_dict())
        return users

    def list_users(self) -> List[Dict[str, Any]]:
        """Usuarios {id, email, name, profile} (cacheado)."""
        return self._query(
            self.CACHE_KEY,
            self._load_users,
            'Error al cargar usuarios',
            'Cargar usuarios'
        )

    def load_users_quietly(self) -> List[Dict[str, Any]]:
        """
        Lista de usuarios para resolver vendedores en otras consultas.
        Comparte la caché de list_users, pero un fallo solo se registra.
        """
        try:
            return self.cache.fetch(self.CACHE_KEY, self._load_users, retries=0)
        except DataAPIError as exc:
            log_warning('Cargar usuarios', exc)
            return []

    def list_sellers(self) -> List[Dict[str, Any]]:
        """Usuarios que pueden figurar como vendedor en una venta."""
        allowed = (UserRole.ADMINISTRATOR.value, UserRole.SELLER.value)
        return [
            u for u in self.list_users()
            if normalize_role((u.get('profile') or {}).get('role')) in allowed
        ]

    def get_user(self, user_id: str) -> Optional[Dict[str, Any]]:
        for user in self.list_users():
            if user.get('id') == user_id:
                return user
        return None

    def count_admins(self) -> int:
        """Administradores según la tabla profiles (sin caché)."""
        rows = self.profile_repo.list(columns='id', role=UserRole.ADMINISTRATOR.value)
        return len(rows)

    # =========================================================================
    # AUTENTICACIÓN
    # =========================================================================

    def _auth_client(self):
        if self.auth_client_factory is None:
            raise DataAPIError('Autenticación no configurada', 'auth')
        try:
            return self.auth_client_factory()
        except Exception as exc:
            raise DataAPIError(error_message(exc), 'auth') from exc

    def authenticate(self, email: str, password: str) -> Dict[str, Any]:
        """
        Inicia sesión con email y contraseña.

        Returns:
            {'ok': True, 'user': {id, email, name, role}} o {'ok': False, 'error': str}
        """
        email = (email or '').strip().lower()
        if not email or not password:
            return {'ok': False, 'error': 'Email y contraseña requeridos.'}

        try:
            client = self._auth_client()
            response = client.auth.sign_in_with_password({'email': email, 'password': password})
        except DataAPIError as exc:
            log_error('Iniciar sesión', exc)
            return {'ok': False, 'error': 'No se pudo contactar al servidor de autenticación.'}
        except Exception as exc:
            # Credenciales inválidas o usuario bloqueado
            log_warning(f'Inicio de sesión fallido ({email})', exc)
            return {'ok': False, 'error': 'Email o contraseña incorrectos.'}

        auth_user = _attr(response, 'user')
        if auth_user is None:
            return {'ok': False, 'error': 'Email o contraseña incorrectos.'}

        user_id = _attr(auth_user, 'id')
        metadata = _attr(auth_user, 'user_metadata') or {}
        try:
            profile_row = self.profile_repo.get_profile(user_id)
        except DataAPIError as exc:
            log_warning('Cargar perfil al iniciar sesión', exc)
            profile_row = None

        profile = Profile.from_dict(profile_row) if profile_row else None
        name = (
            (profile.full_name if profile else '')
            or metadata.get('name')
            or email
        )
        return {
            'ok': True,
            'user': {
                'id': user_id,
                'email': _attr(auth_user, 'email') or email,
                'name': name,
                'role': normalize_role(profile.role if profile else metadata.get('role')),
            }
        }

    def request_password_reset(self, email: str) -> Dict[str, Any]:
        """Envía el correo de recuperación con enlace a /reset-password."""
        email = (email or '').strip().lower()
        if not email or '@' not in email:
            return {'ok': False, 'error': 'Ingresa un email válido.'}
        try:
            client = self._auth_client()
            self._call_auth(
                lambda: client.auth.reset_password_for_email(
                    email, {'redirect_to': f"{self.site_url}/reset-password"}
                )
            )
        except DataAPIError as exc:
            log_error('Solicitar recuperación de contraseña', exc)
            return {'ok': False, 'error': f"Error al enviar el correo: {exc.message}"}
        return {'ok': True}

    def complete_password_reset(self, token_hash: str, password: str, confirm: str = None) -> Dict[str, Any]:
        """Valida el token de recuperación y define la nueva contraseña."""
        if not token_hash:
            return {'ok': False, 'error': 'Enlace de recuperación inválido o vencido.'}
        error = self._validate_password(password, confirm)
        if error:
            return {'ok': False, 'error': error}
        try:
            client = self._auth_client()
            self._call_auth(lambda: client.auth.verify_otp({'token_hash': token_hash, 'type': 'recovery'}))
            self._call_auth(lambda: client.auth.update_user({'password': password}))
        except DataAPIError as exc:
            log_error('Restablecer contraseña', exc)
            return {'ok': False, 'error': f"No se pudo restablecer la contraseña: {exc.message}"}
        return {'ok': True}

    @staticmethod
    def _call_auth(fn):
        try:
            return fn()
        except Exception as exc:
            raise DataAPIError(error_message(exc), 'auth') from exc

    @staticmethod
    def _validate_password(password: str, confirm: str = None) -> Optional[str]:
        if not password or len(password) < MIN_PASSWORD_LENGTH:
            return f'La contraseña debe tener al menos {MIN_PASSWORD_LENGTH} caracteres.'
        if confirm is not None and password != confirm:
            return 'Las contraseñas no coinciden.'
        return None

    # =========================================================================
    # ADMINISTRACIÓN
    # =========================================================================

    def create_user(
        self,
        email: str,
        password: str,
        first_name: str,
        last_name: str = '',
        role: str = UserRole.SELLER.value
    ) -> Dict[str, Any]:
        """Crea el usuario en Auth y su perfil con el rol indicado."""
        email = (email or '').strip().lower()
        first_name = (first_name or '').strip()
        last_name = (last_name or '').strip()
        role = normalize_role(role)

        if not email or '@' not in email:
            return {'ok': False, 'error': 'Email inválido.'}
        if not first_name:
            return {'ok': False, 'error': 'El nombre es obligatorio.'}
        if role not in VALID_ROLES:
            return {'ok': False, 'error': 'Rol inválido.'}
        error = self._validate_password(password)
        if error:
            return {'ok': False, 'error': error}

        try:
            auth_user = self.profile_repo.create_auth_user(email, password, {
                'first_name': first_name,
                'last_name': last_name,
                'name': f"{first_name} {last_name}".strip(),
            })
            user_id = _attr(auth_user, 'id')
            if not user_id:
                return {'ok': False, 'error': 'El servidor no devolvió el usuario creado.'}
            self.profile_repo.upsert_profile({
                'id': user_id,
                'first_name': first_name,
                'last_name': last_name,
                'role': role,
            })
        except DataAPIError as exc:
            log_error('Crear usuario', exc)
            return {'ok': False, 'error': f"Error al crear usuario: {exc.message}"}

        self.cache.invalidate(self.CACHE_KEY)
        return {'ok': True, 'user_id': user_id}

    def change_role(self, user_id: str, new_role: str) -> Dict[str, Any]:
        """Cambia el rol de un usuario (protege al último administrador)."""
        new_role = normalize_role(new_role)
        if new_role not in VALID_ROLES:
            return {'ok': False, 'error': 'Rol inválido.'}
        try:
            profile = self.profile_repo.get_profile(user_id)
            if not profile:
                return {'ok': False, 'error': 'Usuario no encontrado.'}
            current = normalize_role(profile.get('role'))
            if current == new_role:
                return {'ok': True}
            if current == UserRole.ADMINISTRATOR.value and self.count_admins() <= 1:
                return {'ok': False, 'error': 'Debe quedar al menos un administrador.'}
            self.profile_repo.update(user_id, {'role': new_role})
        except DataAPIError as exc:
            log_error('Cambiar rol', exc)
            return {'ok': False, 'error': f"Error al cambiar rol: {exc.message}"}

        self.cache.invalidate(self.CACHE_KEY)
        self.cache.invalidate(('sales',))
        return {'ok': True}

    def update_profile(self, user_id: str, first_name: str, last_name: str = '') -> Dict[str, Any]:
        """Actualiza nombre y apellido del propio perfil."""
        first_name = (first_name or '').strip()
        last_name = (last_name or '').strip()
        if not first_name:
            return {'ok': False, 'error': 'El nombre es obligatorio.'}

        result = self._write(
            lambda: self.profile_repo.update(user_id, {'first_name': first_name, 'last_name': last_name}),
            'Error al actualizar perfil',
            'Actualizar perfil'
        )
        if result['ok']:
            self.cache.invalidate(self.CACHE_KEY)
            self.cache.invalidate(('sales',))
        return result

    def deactivate_user(self, user_id: str, acting_user_id: str) -> Dict[str, Any]:
        """Bloquea el acceso de un usuario en Auth."""
        if not user_id:
            return {'ok': False, 'error': 'Usuario no indicado.'}
        if user_id == acting_user_id:
            return {'ok': False, 'error': 'No puedes desactivar tu propio usuario.'}
        try:
            profile = self.profile_repo.get_profile(user_id)
            if profile and normalize_role(profile.get('role')) == UserRole.ADMINISTRATOR.value \
                    and self.count_admins() <= 1:
                return {'ok': False, 'error': 'No se puede desactivar al último administrador.'}
            self.profile_repo.ban_auth_user(user_id)
        except DataAPIError as exc:
            log_error('Desactivar usuario', exc)
            return {'ok': False, 'error': f"Error al desactivar usuario: {exc.message}"}

        self.cache.invalidate(self.CACHE_KEY)
        return {'ok': True}
