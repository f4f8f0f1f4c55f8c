# ==============================================================================
# CONFIGURACIÓN DE LA APLICACIÓN
# ==============================================================================
# Todos los valores se leen de variables de entorno. Si existe un archivo
# .env en la raíz del proyecto se carga primero (sin sobrescribir variables
# ya definidas en el sistema).
#
# Variables principales:
#   SUPABASE_URL            URL del proyecto Supabase
#   SUPABASE_SERVICE_KEY    Clave service_role (lecturas/escrituras del backend)
#   SUPABASE_ANON_KEY       Clave pública (login de usuarios)
#   CONCESIONARIA_SECRET_KEY  Clave para firmar la cookie de sesión
# ==============================================================================

import os
from pathlib import Path

from dotenv import load_dotenv

BASE_DIR = os.path.dirname(os.path.abspath(__file__))

_env_path = Path(BASE_DIR).resolve().parent / ".env"
if _env_path.exists():
    load_dotenv(_env_path, override=False)


def _env_bool(name, default=False):
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "si", "sí", "on")


def _env_int(name, default):
    try:
        return int(os.getenv(name, default))
    except (TypeError, ValueError):
        return default


def _env_float(name, default):
    try:
        return float(os.getenv(name, default))
    except (TypeError, ValueError):
        return default


# ═══════════════════════════════════════════════════════════════════════════════
# MODO PRODUCCIÓN
# ═══════════════════════════════════════════════════════════════════════════════
# True = exige clave secreta propia y reduce la salida por consola
PRODUCTION_MODE = _env_bool("PRODUCTION_MODE", True)

_DEFAULT_SECRET = "concesionaria_dev_secret_key_change_in_production"
SECRET_KEY = os.getenv("CONCESIONARIA_SECRET_KEY") or _DEFAULT_SECRET
SECRET_KEY_IS_DEFAULT = SECRET_KEY == _DEFAULT_SECRET

# ═══════════════════════════════════════════════════════════════════════════════
# BACKEND (Supabase)
# ═══════════════════════════════════════════════════════════════════════════════
SUPABASE_URL = os.getenv("SUPABASE_URL", "")
SUPABASE_SERVICE_KEY = os.getenv("SUPABASE_SERVICE_KEY", "")
SUPABASE_ANON_KEY = os.getenv("SUPABASE_ANON_KEY", "")

# URL pública del sitio (para el enlace de recuperación de contraseña)
SITE_URL = os.getenv("SITE_URL", "http://localhost:5000")

# ═══════════════════════════════════════════════════════════════════════════════
# CACHÉ DE CONSULTAS
# ═══════════════════════════════════════════════════════════════════════════════
QUERY_STALE_TIME = _env_int("QUERY_STALE_TIME", 5 * 60)   # segundos
QUERY_RETRY = _env_int("QUERY_RETRY", 2)                   # reintentos extra
QUERY_RETRY_DELAY = _env_float("QUERY_RETRY_DELAY", 1.0)   # se duplica por intento

# ═══════════════════════════════════════════════════════════════════════════════
# LOGS Y PROFILING
# ═══════════════════════════════════════════════════════════════════════════════
ENABLE_PROFILING = _env_bool("ENABLE_PROFILING", True)
LOGS_DIR = os.getenv("LOGS_DIR", os.path.join(BASE_DIR, "logs"))

# ═══════════════════════════════════════════════════════════════════════════════
# DATOS DE LA CONCESIONARIA (sitio público y WhatsApp)
# ═══════════════════════════════════════════════════════════════════════════════
DEALERSHIP_NAME = os.getenv("DEALERSHIP_NAME", "Concesionaria")
DEALERSHIP_PHONE = os.getenv("DEALERSHIP_PHONE", "")
DEALERSHIP_EMAIL = os.getenv("DEALERSHIP_EMAIL", "")
DEALERSHIP_ADDRESS = os.getenv("DEALERSHIP_ADDRESS", "")
WHATSAPP_COUNTRY_CODE = os.getenv("WHATSAPP_COUNTRY_CODE", "55")

# Tasa mensual por defecto del simulador de financiamiento (porcentaje)
DEFAULT_MONTHLY_RATE = _env_float("DEFAULT_MONTHLY_RATE", 1.99)
