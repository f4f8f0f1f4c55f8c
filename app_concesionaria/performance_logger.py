# ==============================================================================
# SISTEMA DE LOGS Y PROFILING INTERNO
# ==============================================================================
# Mide rendimiento de rutas y de las consultas al backend, y registra los
# errores de acceso a datos. Guarda logs legibles en /logs/ para análisis
# humano y replica errores/advertencias en consola.
#
# ACTIVAR/DESACTIVAR profiling: variable ENABLE_PROFILING (config.py)
# Los errores se registran siempre.
# ==============================================================================

import os
import time
import threading
from datetime import datetime
from functools import wraps
from collections import defaultdict

from app_concesionaria import config

# ═══════════════════════════════════════════════════════════════════════════
# CONFIGURACIÓN
# ═══════════════════════════════════════════════════════════════════════════

ENABLE_PROFILING = config.ENABLE_PROFILING

# Umbrales de tiempo (en milisegundos)
THRESHOLD_WARNING = 300
THRESHOLD_CRITICAL = 700

LOGS_DIR = config.LOGS_DIR

PERFORMANCE_LOG = os.path.join(LOGS_DIR, 'performance.log')
SLOW_ROUTES_LOG = os.path.join(LOGS_DIR, 'slow_routes.log')
SLOW_FUNCTIONS_LOG = os.path.join(LOGS_DIR, 'slow_functions.log')
ERRORS_LOG = os.path.join(LOGS_DIR, 'errors.log')

# Mapeo de rutas a nombres legibles (para logs más humanos)
ROUTE_NAMES = {
    # Sitio público
    'GET /': 'Ver inicio',
    'GET /veiculos': 'Ver vehículos publicados',
    'GET /veiculos/<vehicle_id>': 'Ver detalle de vehículo',
    'POST /contato': 'Enviar contacto',
    'GET /financiamento': 'Simular financiamiento',

    # Autenticación
    'POST /auth': 'Iniciar sesión',
    'POST /reset-password': 'Restablecer contraseña',
    'GET /logout': 'Cerrar sesión',

    # Panel
    'GET /dashboard': 'Ver panel principal',
    'GET /estoque': 'Ver inventario',
    'POST /estoque/nuevo': 'Crear vehículo',
    'GET /consulta-placa': 'Consultar placa',
    'GET /vendas': 'Ver ventas',
    'POST /vendas/nueva': 'Registrar venta',
    'GET /clientes': 'Ver clientes',
    'POST /clientes/nuevo': 'Crear cliente',
    'GET /financeiro': 'Ver finanzas',
    'GET /relatorios': 'Ver reportes',
    'GET /relatorios/export': 'Exportar reporte CSV',
    'GET /configuracoes': 'Ver configuración',
    'GET /whatsapp': 'Ver CRM WhatsApp',
    'POST /whatsapp/enviar': 'Enviar WhatsApp',
}


def _ensure_logs_dir():
    """Crea el directorio de logs si no existe"""
    os.makedirs(LOGS_DIR, exist_ok=True)


_ensure_logs_dir()


# Estructura: {nombre_funcion: {calls: int, total_time: float, max_time: float}}
_function_stats = defaultdict(lambda: {'calls': 0, 'total_time': 0.0, 'max_time': 0.0})
_stats_lock = threading.Lock()
_write_lock = threading.Lock()


def _get_timestamp():
    return datetime.now().strftime('%Y-%m-%d %H:%M:%S')


def _write_log(filepath, content):
    """Escribe contenido a un archivo de log (thread-safe)"""
    try:
        with _write_lock:
            with open(filepath, 'a', encoding='utf-8') as f:
                f.write(content)
    except OSError:
        pass  # Errores de escritura de log se ignoran


def _get_route_name(method, path, rule=None):
    """
    Obtiene nombre legible para una ruta.
    Intenta hacer match con ROUTE_NAMES, si no, devuelve la ruta raw.
    """
    key = f"{method} {path}"
    if key in ROUTE_NAMES:
        return ROUTE_NAMES[key]

    if rule:
        rule_key = f"{method} {rule}"
        if rule_key in ROUTE_NAMES:
            return ROUTE_NAMES[rule_key]

    return f"{method} {path}"


# ═══════════════════════════════════════════════════════════════════════════
# 1️⃣ ERRORES Y ADVERTENCIAS DE DATOS
# ═══════════════════════════════════════════════════════════════════════════

def log_error(context, error):
    """
    Registra un error de acceso a datos en consola y en errors.log.

    Args:
        context: Descripción legible de la operación ("Cargar ventas")
        error: Excepción o mensaje
    """
    detail = getattr(error, 'message', None) or str(error)
    print(f"[ERROR] {context}: {detail}")
    _write_log(ERRORS_LOG, f"""
🔴 [ERROR] {_get_timestamp()}
Operación: {context}
Tipo: {type(error).__name__}
Detalle: {detail}
────────────────────────────────────────
""")


def log_warning(context, error):
    """Igual que log_error pero para fallos que no interrumpen la operación."""
    detail = getattr(error, 'message', None) or str(error)
    print(f"[ADVERTENCIA] {context}: {detail}")
    _write_log(ERRORS_LOG, f"""
⚠️ [ADVERTENCIA] {_get_timestamp()}
Operación: {context}
Detalle: {detail}
────────────────────────────────────────
""")


# ═══════════════════════════════════════════════════════════════════════════
# 2️⃣ PROFILING DE RUTAS (hooks Flask)
# ═══════════════════════════════════════════════════════════════════════════

def log_route_performance(method, path, rule, time_ms, user=None):
    if not ENABLE_PROFILING:
        return

    action_name = _get_route_name(method, path, rule)
    user_str = user or 'anónimo'

    log_entry = f"""
════════════════════════════════════════
[PERFORMANCE] {_get_timestamp()}
────────────────────────────────────────
Acción: {action_name}
Usuario: {user_str}
Ruta: {method} {path}
Tiempo: {time_ms:.0f} ms
"""
    _write_log(PERFORMANCE_LOG, log_entry)


def log_slow_route(method, path, rule, time_ms, user=None, level='WARNING'):
    """
    Registra una ruta lenta en slow_routes.log

    Args:
        level: 'WARNING' (>300ms) o 'CRITICAL' (>700ms)
    """
    if not ENABLE_PROFILING:
        return

    action_name = _get_route_name(method, path, rule)
    user_str = user or 'anónimo'
    emoji = '⚠️' if level == 'WARNING' else '🔴'
    severity = 'LENTA' if level == 'WARNING' else 'MUY LENTA'
    threshold = THRESHOLD_WARNING if level == 'WARNING' else THRESHOLD_CRITICAL

    log_entry = f"""
{emoji} [{level}] {_get_timestamp()}
────────────────────────────────────────
Ruta {severity}: {action_name}
Usuario: {user_str}
Detalle: {method} {path}
Tiempo: {time_ms:.0f} ms (umbral: {threshold} ms)
────────────────────────────────────────
"""
    _write_log(SLOW_ROUTES_LOG, log_entry)


def init_profiling(app):
    """
    Inicializa el sistema de profiling en una app Flask.
    Registra hooks before_request y after_request.
    """
    if not ENABLE_PROFILING:
        return

    @app.before_request
    def _start_timer():
        from flask import g
        g.start_time = time.perf_counter()

    @app.after_request
    def _log_request(response):
        from flask import g, request, session

        if not hasattr(g, 'start_time'):
            return response

        path = request.path
        if path.startswith('/static'):
            return response

        elapsed = (time.perf_counter() - g.start_time) * 1000
        method = request.method
        rule = str(request.url_rule) if request.url_rule else path
        user = session.get('user')

        log_route_performance(method, path, rule, elapsed, user)

        if elapsed >= THRESHOLD_CRITICAL:
            log_slow_route(method, path, rule, elapsed, user, 'CRITICAL')
        elif elapsed >= THRESHOLD_WARNING:
            log_slow_route(method, path, rule, elapsed, user, 'WARNING')

        return response


# ═══════════════════════════════════════════════════════════════════════════
# 3️⃣ DECORADOR PARA CONSULTAS CLAVE
# ═══════════════════════════════════════════════════════════════════════════

def profile_function(func=None, name=None):
    """
    Decorador para medir rendimiento de funciones críticas.

    Uso:
        @profile_function
        def mi_funcion():
            ...

        @profile_function(name="Consultar ventas")
        def fetch_sales():
            ...
    """
    def decorator(fn):
        if not ENABLE_PROFILING:
            return fn

        func_name = name or fn.__name__

        @wraps(fn)
        def wrapper(*args, **kwargs):
            start = time.perf_counter()
            try:
                return fn(*args, **kwargs)
            finally:
                elapsed_ms = (time.perf_counter() - start) * 1000

                with _stats_lock:
                    stats = _function_stats[func_name]
                    stats['calls'] += 1
                    stats['total_time'] += elapsed_ms
                    if elapsed_ms > stats['max_time']:
                        stats['max_time'] = elapsed_ms

                if elapsed_ms >= THRESHOLD_WARNING:
                    _log_slow_function_call(func_name, elapsed_ms)

        return wrapper

    if func is not None:
        return decorator(func)
    return decorator


def _log_slow_function_call(func_name, time_ms):
    severity = 'CRÍTICO' if time_ms >= THRESHOLD_CRITICAL else 'LENTO'
    emoji = '🔴' if time_ms >= THRESHOLD_CRITICAL else '⚠️'

    log_entry = f"""
{emoji} [{severity}] {_get_timestamp()}
Función: {func_name}
Tiempo: {time_ms:.0f} ms
────────────────────────────────────────
"""
    _write_log(SLOW_FUNCTIONS_LOG, log_entry)


def get_function_stats():
    """
    Obtiene estadísticas de todas las funciones perfiladas.

    Returns:
        dict: {nombre: {calls, avg_time, max_time}}
    """
    with _stats_lock:
        result = {}
        for func_name, stats in _function_stats.items():
            calls = stats['calls']
            avg = stats['total_time'] / calls if calls > 0 else 0
            result[func_name] = {
                'calls': calls,
                'avg_time': round(avg, 2),
                'max_time': round(stats['max_time'], 2)
            }
        return result


def reset_stats():
    """Reinicia todas las estadísticas (útil para testing)"""
    with _stats_lock:
        _function_stats.clear()


__all__ = [
    'ENABLE_PROFILING',
    'init_profiling',
    'profile_function',
    'log_error',
    'log_warning',
    'get_function_stats',
    'reset_stats',
]
