from flask import Flask, render_template, request, redirect, url_for, session, flash, Response
from datetime import datetime
from werkzeug.utils import secure_filename

from app_concesionaria import config

# Sistema de profiling interno
from app_concesionaria.performance_logger import get_function_stats, init_profiling, reset_stats

# ═══════════════════════════════════════════════════════════════════════════
# CONTENEDOR DE DEPENDENCIAS - Servicios y Repositorios
# ═══════════════════════════════════════════════════════════════════════════
# Las rutas solo orquestan request → service → template.
# La lógica de negocio y el manejo de errores del backend viven en services/.
# ═══════════════════════════════════════════════════════════════════════════
from app_concesionaria.app_container import get_container

from app_concesionaria.models import (
    PAYMENT_METHOD_LABELS,
    ROLE_DISPLAY_NAMES,
    VEHICLE_STATUS_LABELS,
    VehicleStatus,
)
from app_concesionaria.security import (
    ADMIN_ONLY,
    INVENTORY_WRITE,
    ROUTE_ACCESS,
    accessible_routes,
    auth_guard,
    can_access,
    current_user,
    generate_csrf_token,
    is_authenticated,
    set_security_headers,
    verify_csrf,
)
from app_concesionaria.services import (
    PERIODS,
    TEMPLATES,
    format_document,
    normalize_role,
    role_badge_class,
    role_display_name,
)
from app_concesionaria.services.finance_service import ALLOWED_TERMS
from app_concesionaria.services.report_service import format_money, parse_date, seller_name, vehicle_title

app = Flask(__name__)

# ═══════════════════════════════════════════════════════════════════════════
# INICIALIZAR SISTEMA DE PROFILING
# ═══════════════════════════════════════════════════════════════════════════
# Mide rendimiento de rutas y consultas. Logs en /logs/
# Para desactivar: ENABLE_PROFILING=false en el entorno
init_profiling(app)

# ═══════════════════════════════════════════════════════════════════════════════
# CONFIGURACIÓN DE SESIONES
# ═══════════════════════════════════════════════════════════════════════════════
if config.PRODUCTION_MODE and config.SECRET_KEY_IS_DEFAULT:
    print("[ADVERTENCIA] PRODUCTION_MODE activo sin CONCESIONARIA_SECRET_KEY definida")
    print("[ADVERTENCIA] Define la variable de entorno para mayor seguridad")

app.secret_key = config.SECRET_KEY

app.config.update(
    SESSION_COOKIE_HTTPONLY=True,      # Protege contra XSS
    SESSION_COOKIE_SECURE=False,       # True solo detrás de HTTPS
    SESSION_COOKIE_SAMESITE='Lax',     # Protección CSRF básica
    PERMANENT_SESSION_LIFETIME=86400,  # 24 horas
)


# ═══════════════════════════════════════════════════════════════════════════════
# CONTEXTO DE PLANTILLAS Y FILTROS
# ═══════════════════════════════════════════════════════════════════════════════

@app.context_processor
def inject_globals():
    role = session.get('role', '')
    return {
        'csrf_token': generate_csrf_token(),
        'current_user': current_user(),
        'nav_items': accessible_routes(role) if is_authenticated() else [],
        'role': role,
        'can': lambda endpoint: can_access(role, ROUTE_ACCESS.get(endpoint)),
        'is_admin': role in ADMIN_ONLY,
        'role_display_name': role_display_name,
        'role_badge_class': role_badge_class,
        'status_labels': VEHICLE_STATUS_LABELS,
        'payment_labels': PAYMENT_METHOD_LABELS,
        'seller_name': seller_name,
        'vehicle_title': vehicle_title,
        'dealership': {
            'name': config.DEALERSHIP_NAME,
            'phone': config.DEALERSHIP_PHONE,
            'email': config.DEALERSHIP_EMAIL,
            'address': config.DEALERSHIP_ADDRESS,
        },
        'current_year': datetime.now().year,
    }


@app.template_filter('money')
def money_filter(amount):
    return format_money(amount)


@app.template_filter('datetime')
def datetime_filter(value, fmt='%d/%m/%Y %H:%M'):
    parsed = parse_date(value)
    return parsed.strftime(fmt) if parsed else ''


@app.template_filter('document')
def document_filter(value):
    return format_document(value)


@app.after_request
def after_request_headers(response):
    return set_security_headers(response)


# ═══════════════════════════════════════════════════════════════════════════════
# PROTECCIÓN DE RUTAS SENSIBLES
# ═══════════════════════════════════════════════════════════════════════════════
@app.route('/logs/<path:filename>')
def block_sensitive_routes(filename):
    """Bloquea acceso a la carpeta de logs."""
    return "Not Found", 404


@app.errorhandler(404)
def page_not_found(error):
    return render_template('404.html'), 404


def _period_args():
    period = request.args.get('period', 'month')
    if period not in PERIODS:
        period = 'month'
    return period, request.args.get('start', ''), request.args.get('end', '')


# ═══════════════════════════════════════════════════════════════════════════════
# SITIO PÚBLICO
# ═══════════════════════════════════════════════════════════════════════════════

@app.route("/")
def home():
    vehicles = get_container().inventory_service.featured_vehicles(6)
    return render_template("public/home.html", vehicles=vehicles)


@app.route("/veiculos")
def veiculos():
    inventory_service = get_container().inventory_service
    filters = {
        'brand': request.args.get('brand', ''),
        'max_price': request.args.get('max_price', ''),
        'min_year': request.args.get('min_year', ''),
        'q': request.args.get('q', ''),
    }
    vehicles = inventory_service.list_available(**filters)
    brands = inventory_service.available_brands(inventory_service.list_available())
    return render_template("public/vehicles.html", vehicles=vehicles, brands=brands, filters=filters)


@app.route("/veiculos/<vehicle_id>")
def veiculo_detalhe(vehicle_id):
    container = get_container()
    vehicle = container.inventory_service.get_vehicle(vehicle_id)
    if not vehicle:
        return render_template('404.html'), 404

    simulation = None
    if vehicle.get('price') and vehicle.get('status') != VehicleStatus.SOLD.value:
        price = float(vehicle['price'])
        simulation = container.finance_service.simulate_financing(price, round(price * 0.2, 2), 48)
    return render_template("public/vehicle_detail.html", vehicle=vehicle, simulation=simulation)


@app.route("/contato", methods=["GET", "POST"])
@verify_csrf
def contato():
    container = get_container()
    form = {
        'name': request.form.get('name', ''),
        'phone': request.form.get('phone', ''),
        'email': request.form.get('email', ''),
        'message': request.form.get('message', ''),
        'vehicle_id': request.values.get('vehicle_id', ''),
    }
    vehicle = container.inventory_service.get_vehicle(form['vehicle_id']) if form['vehicle_id'] else None

    if request.method == "POST":
        result = container.whatsapp_service.register_lead(**form)
        if result['ok']:
            flash("¡Gracias! Te contactaremos a la brevedad.", "success")
            return redirect(url_for("contato"))
        flash(result['error'], "warning")

    return render_template("public/contact.html", form=form, vehicle=vehicle)


@app.route("/financiamento")
def financiamento():
    container = get_container()
    form = {
        'price': request.args.get('price', ''),
        'down_payment': request.args.get('down_payment', ''),
        'months': request.args.get('months', '48'),
        'monthly_rate': request.args.get('monthly_rate', str(config.DEFAULT_MONTHLY_RATE)),
        'vehicle_id': request.args.get('vehicle_id', ''),
    }
    vehicle = None
    if form['vehicle_id']:
        vehicle = container.inventory_service.get_vehicle(form['vehicle_id'])
        if vehicle and not form['price']:
            form['price'] = vehicle.get('price') or ''

    simulation = None
    if form['price']:
        simulation = container.finance_service.simulate_financing(
            form['price'], form['down_payment'], form['months'], form['monthly_rate']
        )
        if not simulation['ok']:
            flash(simulation['error'], "warning")
            simulation = None

    return render_template(
        "public/financing.html",
        form=form,
        vehicle=vehicle,
        simulation=simulation,
        terms=ALLOWED_TERMS
    )


# ═══════════════════════════════════════════════════════════════════════════════
# AUTENTICACIÓN
# ═══════════════════════════════════════════════════════════════════════════════

@app.route("/auth", methods=["GET", "POST"])
@verify_csrf
def auth():
    if is_authenticated():
        return redirect(url_for("dashboard"))

    user_service = get_container().user_service
    if request.method == "POST":
        action = request.form.get("action", "login")
        email = (request.form.get("email") or "").strip()

        if action == "reset":
            result = user_service.request_password_reset(email)
            if result['ok']:
                flash("Si el email está registrado, recibirás un enlace para restablecer tu contraseña.", "info")
            else:
                flash(result['error'], "warning")
            return redirect(url_for("auth"))

        result = user_service.authenticate(email, request.form.get("password") or "")
        if not result['ok']:
            flash(result['error'], "danger")
            return redirect(url_for("auth"))

        user = result['user']
        session.clear()
        session.permanent = True
        session["user_id"] = user['id']
        session["user"] = user['email']
        session["name"] = user['name']
        session["role"] = normalize_role(user['role'])
        flash(f"Bienvenido, {user['name']}.", "success")
        return redirect(url_for("dashboard"))

    return render_template("auth.html")


@app.route("/reset-password", methods=["GET", "POST"])
@verify_csrf
def reset_password():
    token_hash = request.values.get("token_hash", "")
    if request.method == "POST":
        result = get_container().user_service.complete_password_reset(
            token_hash,
            request.form.get("password") or "",
            request.form.get("confirm") or ""
        )
        if result['ok']:
            session.clear()
            flash("Contraseña actualizada. Ya puedes iniciar sesión.", "success")
            return redirect(url_for("auth"))
        flash(result['error'], "danger")
    return render_template("reset_password.html", token_hash=token_hash)


@app.route("/logout")
@auth_guard()
def logout():
    session.clear()
    flash("Sesión cerrada.", "info")
    return redirect(url_for("auth"))


# ═══════════════════════════════════════════════════════════════════════════════
# PANEL PRINCIPAL
# ═══════════════════════════════════════════════════════════════════════════════

@app.route("/dashboard")
@auth_guard(ROUTE_ACCESS['dashboard'])
def dashboard():
    container = get_container()
    show_sales = can_access(session.get('role'), ROUTE_ACCESS['vendas'])
    sales = container.sales_service.list_sales() if show_sales else []
    vehicles = container.inventory_service.list_vehicles()
    summary = container.report_service.dashboard_summary(sales=sales, vehicles=vehicles)
    return render_template("dashboard.html", summary=summary, show_sales=show_sales)


# ═══════════════════════════════════════════════════════════════════════════════
# INVENTARIO
# ═══════════════════════════════════════════════════════════════════════════════

@app.route("/estoque")
@auth_guard(ROUTE_ACCESS['estoque'])
def estoque():
    inventory_service = get_container().inventory_service
    status = request.args.get('status', '')
    q = request.args.get('q', '')
    all_vehicles = inventory_service.list_vehicles()
    vehicles = inventory_service.list_vehicles(status=status or None, q=q)
    return render_template(
        "estoque.html",
        vehicles=vehicles,
        summary=inventory_service.inventory_summary(all_vehicles),
        status=status,
        q=q,
        can_edit=session.get('role') in INVENTORY_WRITE
    )


@app.route("/estoque/nuevo", methods=["GET", "POST"])
@auth_guard(INVENTORY_WRITE)
@verify_csrf
def estoque_nuevo():
    vehicle = request.form.to_dict() if request.method == "POST" else {}
    if request.method == "POST":
        result = get_container().inventory_service.create_vehicle(vehicle)
        if result['ok']:
            flash("Vehículo agregado al inventario.", "success")
            return redirect(url_for("estoque"))
        flash(result['error'], "warning")
    return render_template("vehicle_form.html", vehicle=vehicle, editing=False)


@app.route("/estoque/<vehicle_id>/editar", methods=["GET", "POST"])
@auth_guard(INVENTORY_WRITE)
@verify_csrf
def estoque_editar(vehicle_id):
    inventory_service = get_container().inventory_service
    if request.method == "POST":
        vehicle = {**request.form.to_dict(), 'id': vehicle_id}
        result = inventory_service.update_vehicle(vehicle_id, vehicle)
        if result['ok']:
            flash("Vehículo actualizado.", "success")
            return redirect(url_for("estoque"))
        flash(result['error'], "warning")
    else:
        vehicle = inventory_service.get_vehicle(vehicle_id)
        if not vehicle:
            flash("Vehículo no encontrado.", "warning")
            return redirect(url_for("estoque"))
    return render_template("vehicle_form.html", vehicle=vehicle, editing=True)


@app.route("/estoque/<vehicle_id>/estado", methods=["POST"])
@auth_guard(INVENTORY_WRITE)
@verify_csrf
def estoque_estado(vehicle_id):
    result = get_container().inventory_service.set_status(vehicle_id, request.form.get("status", ""))
    if result['ok']:
        flash("Estado actualizado.", "success")
    else:
        flash(result['error'], "warning")
    return redirect(url_for("estoque"))


@app.route("/estoque/<vehicle_id>/eliminar", methods=["POST"])
@auth_guard(ADMIN_ONLY)
@verify_csrf
def estoque_eliminar(vehicle_id):
    result = get_container().inventory_service.delete_vehicle(vehicle_id)
    if result['ok']:
        flash("Vehículo eliminado.", "success")
    else:
        flash(result['error'], "warning")
    return redirect(url_for("estoque"))


@app.route("/consulta-placa")
@auth_guard(ROUTE_ACCESS['consulta_placa'])
def consulta_placa():
    plate = request.args.get('placa', '').strip()
    result = get_container().inventory_service.lookup_plate(plate) if plate else None
    return render_template("consulta_placa.html", plate=plate, result=result)


# ═══════════════════════════════════════════════════════════════════════════════
# VENTAS
# ═══════════════════════════════════════════════════════════════════════════════

@app.route("/vendas")
@auth_guard(ROUTE_ACCESS['vendas'])
def vendas():
    container = get_container()
    sales_service = container.sales_service
    q = request.args.get('q', '')
    sales = sales_service.search_sales(sales_service.list_sales(), q)
    is_admin = session.get('role') in ADMIN_ONLY
    return render_template(
        "vendas.html",
        sales=sales,
        q=q,
        total=round(sum(float(s.get('sale_price') or 0) for s in sales), 2),
        vehicles=container.inventory_service.list_vehicles(status=VehicleStatus.AVAILABLE.value),
        customers=container.customer_service.list_customers(),
        sellers=container.user_service.list_sellers() if is_admin else [],
        payment_methods=PAYMENT_METHOD_LABELS
    )


@app.route("/vendas/nueva", methods=["POST"])
@auth_guard(ROUTE_ACCESS['vendas'])
@verify_csrf
def vendas_nueva():
    # Un vendedor siempre registra a su nombre; el administrador puede elegir
    seller_id = session.get('user_id')
    if session.get('role') in ADMIN_ONLY and request.form.get('seller_id'):
        seller_id = request.form.get('seller_id')

    result = get_container().sales_service.create_sale(
        vehicle_id=request.form.get('vehicle_id'),
        customer_id=request.form.get('customer_id'),
        seller_id=seller_id,
        sale_price=request.form.get('sale_price'),
        payment_method=request.form.get('payment_method', 'cash'),
        down_payment=request.form.get('down_payment') or 0,
        notes=request.form.get('notes', '')
    )
    if result['ok']:
        flash("Venta registrada.", "success")
    else:
        flash(result['error'], "warning")
    return redirect(url_for("vendas"))


@app.route("/vendas/<sale_id>/cancelar", methods=["POST"])
@auth_guard(ADMIN_ONLY)
@verify_csrf
def vendas_cancelar(sale_id):
    result = get_container().sales_service.cancel_sale(sale_id)
    if result['ok']:
        flash("Venta cancelada. El vehículo volvió al inventario.", "success")
    else:
        flash(result['error'], "warning")
    return redirect(url_for("vendas"))


@app.route("/vendas/refrescar", methods=["POST"])
@auth_guard(ROUTE_ACCESS['vendas'])
@verify_csrf
def vendas_refrescar():
    get_container().sales_service.refresh_sales()
    flash("Ventas actualizadas.", "info")
    return redirect(url_for("vendas"))


# ═══════════════════════════════════════════════════════════════════════════════
# CLIENTES
# ═══════════════════════════════════════════════════════════════════════════════

@app.route("/clientes")
@auth_guard(ROUTE_ACCESS['clientes'])
def clientes():
    q = request.args.get('q', '')
    customers = get_container().customer_service.list_customers(q)
    return render_template("clientes.html", customers=customers, q=q)


@app.route("/clientes/nuevo", methods=["GET", "POST"])
@auth_guard(ROUTE_ACCESS['clientes'])
@verify_csrf
def clientes_nuevo():
    customer = request.form.to_dict() if request.method == "POST" else {}
    if request.method == "POST":
        result = get_container().customer_service.create_customer(customer)
        if result['ok']:
            flash("Cliente registrado.", "success")
            return redirect(url_for("clientes"))
        flash(result['error'], "warning")
    return render_template("customer_form.html", customer=customer, editing=False)


@app.route("/clientes/<customer_id>")
@auth_guard(ROUTE_ACCESS['clientes'])
def cliente_detalle(customer_id):
    container = get_container()
    customer = container.customer_service.get_customer(customer_id)
    if not customer:
        return render_template('404.html'), 404
    purchases = container.sales_service.get_sales_by_customer_id(customer_id)
    return render_template("customer_detail.html", customer=customer, purchases=purchases)


@app.route("/clientes/<customer_id>/editar", methods=["GET", "POST"])
@auth_guard(ROUTE_ACCESS['clientes'])
@verify_csrf
def clientes_editar(customer_id):
    customer_service = get_container().customer_service
    if request.method == "POST":
        customer = {**request.form.to_dict(), 'id': customer_id}
        result = customer_service.update_customer(customer_id, customer)
        if result['ok']:
            flash("Cliente actualizado.", "success")
            return redirect(url_for("cliente_detalle", customer_id=customer_id))
        flash(result['error'], "warning")
    else:
        customer = customer_service.get_customer(customer_id)
        if not customer:
            flash("Cliente no encontrado.", "warning")
            return redirect(url_for("clientes"))
    return render_template("customer_form.html", customer=customer, editing=True)


@app.route("/clientes/<customer_id>/eliminar", methods=["POST"])
@auth_guard(ADMIN_ONLY)
@verify_csrf
def clientes_eliminar(customer_id):
    result = get_container().customer_service.delete_customer(customer_id)
    if result['ok']:
        flash("Cliente eliminado.", "success")
    else:
        flash(result['error'], "warning")
    return redirect(url_for("clientes"))


# ═══════════════════════════════════════════════════════════════════════════════
# FINANCIERO Y REPORTES
# ═══════════════════════════════════════════════════════════════════════════════

@app.route("/financeiro")
@auth_guard(ROUTE_ACCESS['financeiro'])
def financeiro():
    container = get_container()
    period, custom_start, custom_end = _period_args()
    sales, start, end = container.report_service.sales_in_period(period, custom_start, custom_end)
    summary = container.finance_service.finance_summary(sales)
    return render_template(
        "financeiro.html",
        summary=summary,
        sales=sales,
        period=period,
        periods=PERIODS,
        custom_start=custom_start,
        custom_end=custom_end,
        date_range={'start': start.strftime('%Y-%m-%d'), 'end': end.strftime('%Y-%m-%d')}
    )


@app.route("/relatorios")
@auth_guard(ROUTE_ACCESS['relatorios'])
def relatorios():
    period, custom_start, custom_end = _period_args()
    report = get_container().report_service.sales_report(period, custom_start, custom_end)
    return render_template(
        "relatorios.html",
        report=report,
        period=period,
        periods=PERIODS,
        custom_start=custom_start,
        custom_end=custom_end
    )


@app.route("/relatorios/export")
@auth_guard(ROUTE_ACCESS['relatorios'])
def relatorios_export():
    report_service = get_container().report_service
    period, custom_start, custom_end = _period_args()
    report = report_service.sales_report(period, custom_start, custom_end)
    filename = secure_filename(f"ventas_{report['date_range']['start']}_{report['date_range']['end']}.csv")
    return Response(
        report_service.export_csv(report['sales']),
        mimetype='text/csv',
        headers={'Content-Disposition': f'attachment;filename={filename}'}
    )


# ═══════════════════════════════════════════════════════════════════════════════
# CONFIGURACIÓN Y USUARIOS
# ═══════════════════════════════════════════════════════════════════════════════

@app.route("/configuracoes")
@auth_guard(ROUTE_ACCESS['configuracoes'])
def configuracoes():
    user_service = get_container().user_service
    is_admin = session.get('role') in ADMIN_ONLY
    users = user_service.list_users() if is_admin else []
    me = user_service.get_user(session.get('user_id')) if is_admin else None
    # Funciones perfiladas, más lentas primero
    function_stats = sorted(
        get_function_stats().items(), key=lambda item: item[1]['avg_time'], reverse=True
    ) if is_admin else []
    return render_template(
        "configuracoes.html",
        users=users,
        me=me,
        roles=ROLE_DISPLAY_NAMES,
        function_stats=function_stats
    )


@app.route("/configuracoes/perfil", methods=["POST"])
@auth_guard(ROUTE_ACCESS['configuracoes'])
@verify_csrf
def configuracoes_perfil():
    first_name = request.form.get('first_name', '')
    last_name = request.form.get('last_name', '')
    result = get_container().user_service.update_profile(session.get('user_id'), first_name, last_name)
    if result['ok']:
        session['name'] = f"{first_name.strip()} {last_name.strip()}".strip()
        flash("Perfil actualizado.", "success")
    else:
        flash(result['error'], "warning")
    return redirect(url_for("configuracoes"))


@app.route("/configuracoes/usuarios", methods=["POST"])
@auth_guard(ADMIN_ONLY)
@verify_csrf
def usuarios_crear():
    result = get_container().user_service.create_user(
        email=request.form.get('email', ''),
        password=request.form.get('password', ''),
        first_name=request.form.get('first_name', ''),
        last_name=request.form.get('last_name', ''),
        role=request.form.get('role', '')
    )
    if result['ok']:
        flash("Usuario creado.", "success")
    else:
        flash(result['error'], "warning")
    return redirect(url_for("configuracoes"))


@app.route("/configuracoes/usuarios/<user_id>/rol", methods=["POST"])
@auth_guard(ADMIN_ONLY)
@verify_csrf
def usuarios_rol(user_id):
    new_role = normalize_role(request.form.get('role', ''))
    result = get_container().user_service.change_role(user_id, new_role)
    if result['ok']:
        if user_id == session.get('user_id'):
            session['role'] = new_role
        flash(f"Rol actualizado a {role_display_name(new_role)}.", "success")
    else:
        flash(result['error'], "warning")
    return redirect(url_for("configuracoes"))


@app.route("/configuracoes/usuarios/<user_id>/desactivar", methods=["POST"])
@auth_guard(ADMIN_ONLY)
@verify_csrf
def usuarios_desactivar(user_id):
    result = get_container().user_service.deactivate_user(user_id, session.get('user_id'))
    if result['ok']:
        flash("Usuario desactivado.", "success")
    else:
        flash(result['error'], "warning")
    return redirect(url_for("configuracoes"))


@app.route("/configuracoes/rendimiento/reiniciar", methods=["POST"])
@auth_guard(ADMIN_ONLY)
@verify_csrf
def rendimiento_reiniciar():
    reset_stats()
    flash("Estadísticas de rendimiento reiniciadas.", "success")
    return redirect(url_for("configuracoes"))


# ═══════════════════════════════════════════════════════════════════════════════
# CRM WHATSAPP
# ═══════════════════════════════════════════════════════════════════════════════

@app.route("/whatsapp")
@auth_guard(ROUTE_ACCESS['whatsapp'])
def whatsapp():
    container = get_container()
    q = request.args.get('q', '')
    return render_template(
        "whatsapp.html",
        customers=container.customer_service.customers_with_phone(q),
        vehicles=container.inventory_service.list_vehicles(),
        history=container.whatsapp_service.history(),
        leads=container.whatsapp_service.recent_leads(),
        templates=TEMPLATES,
        selected_customer=request.args.get('customer_id', ''),
        q=q
    )


@app.route("/whatsapp/enviar", methods=["POST"])
@auth_guard(ROUTE_ACCESS['whatsapp'])
@verify_csrf
def whatsapp_enviar():
    result = get_container().whatsapp_service.send(
        customer_id=request.form.get('customer_id', ''),
        template_key=request.form.get('template', ''),
        vehicle_id=request.form.get('vehicle_id') or None,
        user=current_user()
    )
    if not result['ok']:
        flash(result['error'], "warning")
        return redirect(url_for("whatsapp"))
    return redirect(result['link'])
