import pytest

from conftest import CSRF, flashes, login_as

from app_concesionaria import app_container, config, performance_logger
from app_concesionaria.notifications import NotificationCollector
from app_concesionaria.services import UserService


def test_list_users_joins_auth_and_profiles(container, fake_db):
    fake_db.add_user('u1', 'maria@example.com', 'Maria', 'Lima', role='administrator')
    fake_db.add_user('u2', 'joao@example.com', 'João', 'Silva', metadata={})

    users = {u['id']: u for u in container.user_service.list_users()}

    assert users['u1']['name'] == 'Maria Lima'
    assert users['u1']['email'] == 'maria@example.com'
    assert users['u1']['profile']['role'] == 'administrator'
    # sin metadata: nombre desde el perfil
    assert users['u2']['name'] == 'João Silva'


def test_list_users_without_auth_admin_uses_profiles(container, fake_db, notifications):
    fake_db.add_user('u1', 'maria@example.com', 'Maria', 'Lima')
    fake_db.auth_admin_error = 'User not allowed'

    users = container.user_service.list_users()

    assert [u['name'] for u in users] == ['Maria Lima']
    assert notifications.messages == []


def test_list_sellers_excludes_other_roles(container, fake_db):
    fake_db.add_user('u1', 'a@example.com', 'Ana', role='administrator')
    fake_db.add_user('u2', 'b@example.com', 'Bruno', role='seller')
    fake_db.add_user('u3', 'c@example.com', 'Carla', role='financial')
    assert {u['id'] for u in container.user_service.list_sellers()} == {'u1', 'u2'}


def test_authenticate(container, fake_db):
    fake_db.add_user('u1', 'maria@example.com', 'Maria', 'Lima', role='Admin', password='secret1')
    service = container.user_service

    result = service.authenticate(' MARIA@example.com ', 'secret1')
    assert result == {
        'ok': True,
        'user': {'id': 'u1', 'email': 'maria@example.com', 'name': 'Maria Lima', 'role': 'administrator'},
    }
    assert service.authenticate('maria@example.com', 'wrong')['error'] == 'Email o contraseña incorrectos.'
    assert service.authenticate('', '')['ok'] is False


def test_banned_user_cannot_sign_in(container, fake_db):
    fake_db.add_user('u1', 'maria@example.com', 'Maria', password='secret1')
    fake_db.banned.add('u1')
    assert container.user_service.authenticate('maria@example.com', 'secret1')['ok'] is False


def test_password_reset_flow(container, fake_db):
    service = container.user_service
    service.site_url = 'https://loja.example.com'

    assert service.request_password_reset('maria@example.com') == {'ok': True}
    assert fake_db.reset_requests == [
        ('maria@example.com', {'redirect_to': 'https://loja.example.com/reset-password'})
    ]
    assert service.request_password_reset('sin-arroba')['ok'] is False

    assert service.complete_password_reset('recovery-ok', 'nueva123', 'nueva123') == {'ok': True}
    assert fake_db.password_updates == [{'password': 'nueva123'}]

    assert service.complete_password_reset('recovery-ok', '123', '123')['ok'] is False
    assert service.complete_password_reset('recovery-ok', 'nueva123', 'otra123')['error'] == 'Las contraseñas no coinciden.'
    assert service.complete_password_reset('expired', 'nueva123', 'nueva123')['ok'] is False
    assert service.complete_password_reset('', 'nueva123')['ok'] is False


def test_create_user_creates_auth_user_and_profile(container, fake_db):
    result = container.user_service.create_user('nuevo@example.com', 'secret1', 'Nuevo', 'Vendedor', 'vendedor')
    assert result['ok'] is True
    profile = fake_db.tables['profiles'][0]
    assert profile['id'] == result['user_id']
    assert profile['role'] == 'seller'
    assert fake_db.auth_users[0]['email'] == 'nuevo@example.com'


def test_create_user_validation(container, fake_db):
    service = container.user_service
    assert service.create_user('mal', 'secret1', 'X')['error'] == 'Email inválido.'
    assert service.create_user('a@b.com', 'secret1', '')['error'] == 'El nombre es obligatorio.'
    assert service.create_user('a@b.com', 'secret1', 'X', role='gerente')['error'] == 'Rol inválido.'
    assert service.create_user('a@b.com', '123', 'X')['ok'] is False
    assert fake_db.auth_users == []


def test_last_admin_is_protected(container, fake_db):
    fake_db.add_user('u1', 'a@example.com', 'Ana', role='administrator')
    fake_db.add_user('u2', 'b@example.com', 'Bruno', role='seller')
    service = container.user_service

    assert service.change_role('u1', 'seller') == {'ok': False, 'error': 'Debe quedar al menos un administrador.'}
    assert service.deactivate_user('u1', 'u2')['ok'] is False
    assert 'u1' not in fake_db.banned

    assert service.change_role('u2', 'admin') == {'ok': True}
    assert service.change_role('u1', 'financial') == {'ok': True}
    assert service.change_role('u2', 'gerente')['error'] == 'Rol inválido.'


def test_cannot_deactivate_yourself(container, fake_db):
    fake_db.add_user('u1', 'a@example.com', 'Ana', role='administrator')
    fake_db.add_user('u2', 'b@example.com', 'Bruno', role='administrator')
    service = container.user_service

    assert service.deactivate_user('u1', 'u1')['error'] == 'No puedes desactivar tu propio usuario.'
    assert service.deactivate_user('u2', 'u1') == {'ok': True}
    assert fake_db.banned == {'u2'}


def test_role_change_refreshes_seller_names(container, fake_db):
    fake_db.add_user('u1', 'a@example.com', 'Ana', role='administrator')
    fake_db.add_user('u2', 'b@example.com', 'Bruno', role='seller')
    container.sales_service.list_sales()
    assert container.cache.get(('sales',)) == []

    container.user_service.change_role('u2', 'financial')
    assert container.cache.get(('sales',)) is None


def test_update_profile_route_updates_session_name(client, fake_db):
    fake_db.add_user('u-admin', 'ana@example.com', 'Ana', 'Admin', role='administrator')
    login_as(client, 'administrator')

    r = client.post('/configuracoes/perfil', data={'first_name': 'Ana', 'last_name': 'Souza', 'csrf_token': CSRF})

    assert r.headers['Location'].endswith('/configuracoes')
    assert fake_db.tables['profiles'][0]['last_name'] == 'Souza'
    with client.session_transaction() as sess:
        assert sess['name'] == 'Ana Souza'


def test_admin_changes_role_through_route(client, fake_db):
    fake_db.add_user('u-admin', 'ana@example.com', 'Ana', role='administrator')
    fake_db.add_user('u2', 'b@example.com', 'Bruno', role='seller')
    login_as(client, 'administrator')

    client.post('/configuracoes/usuarios/u2/rol', data={'role': 'despachante', 'csrf_token': CSRF})

    assert fake_db.tables['profiles'][1]['role'] == 'dispatcher'
    assert ('success', 'Rol actualizado a Despachante.') in flashes(client)


def test_settings_page_lists_users_for_admin(client, fake_db):
    fake_db.add_user('u-admin', 'ana@example.com', 'Ana', role='administrator')
    fake_db.add_user('u2', 'b@example.com', 'Bruno', role='seller')
    login_as(client, 'administrator')
    html = client.get('/configuracoes').get_data(as_text=True)
    assert 'b@example.com' in html


def test_reset_password_page(client, fake_db):
    with client.session_transaction() as sess:
        sess['csrf_token'] = CSRF
    assert client.get('/reset-password?token_hash=recovery-ok&type=recovery').status_code == 200

    r = client.post('/reset-password', data={
        'token_hash': 'recovery-ok', 'password': 'nueva123', 'confirm': 'nueva123', 'csrf_token': CSRF
    })
    assert r.headers['Location'].endswith('/auth')
    assert fake_db.password_updates == [{'password': 'nueva123'}]


def test_settings_show_and_reset_function_stats(client, fake_db, monkeypatch):
    monkeypatch.setattr(performance_logger, 'ENABLE_PROFILING', True)
    performance_logger.reset_stats()
    timed = performance_logger.profile_function(lambda: 'ok', name='Consultar inventario')
    assert timed() == 'ok'
    assert performance_logger.get_function_stats()['Consultar inventario']['calls'] == 1

    login_as(client, 'administrator')
    html = client.get('/configuracoes').get_data(as_text=True)
    assert 'Consultar inventario' in html

    r = client.post('/configuracoes/rendimiento/reiniciar', data={'csrf_token': CSRF})
    assert r.headers['Location'].endswith('/configuracoes')
    assert performance_logger.get_function_stats() == {}


def test_seller_cannot_reset_function_stats(client, fake_db, monkeypatch):
    monkeypatch.setattr(performance_logger, 'ENABLE_PROFILING', True)
    performance_logger.reset_stats()
    performance_logger.profile_function(lambda: None, name='Consultar ventas')()
    login_as(client, 'seller')

    assert 'Rendimiento' not in client.get('/configuracoes').get_data(as_text=True)
    r = client.post('/configuracoes/rendimiento/reiniciar', data={'csrf_token': CSRF})
    assert r.headers['Location'].endswith('/dashboard')
    assert 'Consultar ventas' in performance_logger.get_function_stats()
    performance_logger.reset_stats()


def test_auth_client_requires_anon_key(monkeypatch):
    monkeypatch.setattr(config, 'SUPABASE_URL', 'https://demo.supabase.co')
    monkeypatch.setattr(config, 'SUPABASE_SERVICE_KEY', 'service-role-key')
    monkeypatch.setattr(config, 'SUPABASE_ANON_KEY', '')

    with pytest.raises(RuntimeError, match='SUPABASE_ANON_KEY'):
        app_container._default_auth_client()

    service = UserService(None, auth_client_factory=app_container._default_auth_client,
                          notifier=NotificationCollector())
    result = service.authenticate('maria@example.com', 'secret1')
    assert result == {'ok': False, 'error': 'No se pudo contactar al servidor de autenticación.'}
