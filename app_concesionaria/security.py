# ==============================================================================
# CONTROL DE ACCESO - Sesión, roles por ruta y CSRF
# ==============================================================================
# Cada página del panel declara qué roles pueden verla (ROUTE_ACCESS).
# None = cualquier usuario autenticado.
#
# - Sin sesión            → aviso + redirección a /auth
# - Rol no permitido      → aviso + redirección a /dashboard (no se renderiza)
# - POST sin token CSRF   → aviso + redirección
#
# La sesión guarda: user_id, user (email), name, role (normalizado).
# ==============================================================================

import uuid
from functools import wraps

from flask import flash, redirect, request, session, url_for

from app_concesionaria.models import UserRole

ADMINISTRATOR = UserRole.ADMINISTRATOR.value
SELLER = UserRole.SELLER.value
FINANCIAL = UserRole.FINANCIAL.value
DISPATCHER = UserRole.DISPATCHER.value

ROLES = (ADMINISTRATOR, SELLER, FINANCIAL, DISPATCHER)

ROUTE_ACCESS = {
    'dashboard': None,
    'estoque': None,
    'consulta_placa': (ADMINISTRATOR, SELLER, FINANCIAL, DISPATCHER),
    'vendas': (ADMINISTRATOR, SELLER),
    'clientes': (ADMINISTRATOR, SELLER, FINANCIAL, DISPATCHER),
    'financeiro': (ADMINISTRATOR, FINANCIAL),
    'relatorios': (ADMINISTRATOR, SELLER, FINANCIAL),
    'configuracoes': None,
    'whatsapp': (ADMINISTRATOR, SELLER),
}

# Acciones restringidas dentro de las páginas
ADMIN_ONLY = (ADMINISTRATOR,)
INVENTORY_WRITE = (ADMINISTRATOR, DISPATCHER)

# Menú lateral: (endpoint, etiqueta)
NAV_ITEMS = [
    ('dashboard', 'Panel'),
    ('estoque', 'Inventario'),
    ('consulta_placa', 'Consulta de placa'),
    ('vendas', 'Ventas'),
    ('clientes', 'Clientes'),
    ('financeiro', 'Financiero'),
    ('relatorios', 'Reportes'),
    ('whatsapp', 'WhatsApp'),
    ('configuracoes', 'Configuración'),
]


def can_access(role, allowed_roles) -> bool:
    """True si el rol está en la lista (o la lista es None)."""
    if allowed_roles is None:
        return True
    return role in allowed_roles


def is_authenticated() -> bool:
    return bool(session.get('user_id'))


def accessible_routes(role):
    """Entradas del menú visibles para el rol."""
    return [
        (endpoint, label) for endpoint, label in NAV_ITEMS
        if can_access(role, ROUTE_ACCESS.get(endpoint))
    ]


def current_user():
    if not is_authenticated():
        return None
    return {
        'id': session.get('user_id'),
        'email': session.get('user'),
        'name': session.get('name'),
        'role': session.get('role'),
    }


def auth_guard(allowed_roles=None):
    """
    Protege una ruta del panel.

    Uso:
        @app.route('/vendas')
        @auth_guard(ROUTE_ACCESS['vendas'])
        def vendas():
            ...
    """
    def deco(f):
        @wraps(f)
        def wrapper(*args, **kwargs):
            if not is_authenticated():
                flash("Debes iniciar sesión.", "warning")
                return redirect(url_for("auth"))
            if not can_access(session.get("role"), allowed_roles):
                flash("No tienes permiso para acceder a esa página.", "danger")
                return redirect(url_for("dashboard"))
            return f(*args, **kwargs)
        return wrapper
    return deco


def generate_csrf_token():
    if 'csrf_token' not in session:
        session['csrf_token'] = uuid.uuid4().hex
    return session['csrf_token']


def verify_csrf(f):
    @wraps(f)
    def wrapper(*args, **kwargs):
        if request.method == 'POST':
            token = session.get('csrf_token')
            form_token = (
                request.form.get('csrf_token') or
                request.headers.get('X-CSRF-Token') or
                request.headers.get('X-CSRFToken')
            )
            if not token or not form_token or token != form_token:
                flash('Sesión expirada. Por favor intenta de nuevo.', 'warning')
                if not is_authenticated():
                    return redirect(url_for('auth'))
                return redirect(url_for('dashboard'))
        return f(*args, **kwargs)
    return wrapper


def set_security_headers(response):
    response.headers['X-Frame-Options'] = 'DENY'
    response.headers['X-Content-Type-Options'] = 'nosniff'
    response.headers['Referrer-Policy'] = 'no-referrer-when-downgrade'
    response.headers['Permissions-Policy'] = 'geolocation=(), microphone=()'
    # HSTS solo con HTTPS real
    if request.is_secure:
        response.headers['Strict-Transport-Security'] = 'max-age=31536000; includeSubDomains'
    return response
