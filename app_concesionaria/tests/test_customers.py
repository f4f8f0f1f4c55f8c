from conftest import CSRF, login_as, make_customer, make_sale, make_vehicle

from app_concesionaria.services import format_document, normalize_phone, validate_document
from app_concesionaria.services.customer_service import validate_cnpj, validate_cpf


def test_cpf_and_cnpj_check_digits():
    assert validate_cpf('529.982.247-25')
    assert not validate_cpf('529.982.247-24')
    assert not validate_cpf('111.111.111-11')
    assert validate_cnpj('11.222.333/0001-81')
    assert not validate_cnpj('11.222.333/0001-80')
    assert validate_document('52998224725')
    assert validate_document('11222333000181')
    assert not validate_document('123')


def test_format_document_and_phone():
    assert format_document('52998224725') == '529.982.247-25'
    assert format_document('11222333000181') == '11.222.333/0001-81'
    assert format_document('123') == '123'
    assert normalize_phone('(11) 98765-4321') == '11987654321'


def test_create_customer_normalizes_fields(container, fake_db):
    result = container.customer_service.create_customer({
        'name': ' Ana Paula ',
        'document': '529.982.247-25',
        'phone': '(21) 99999-0000',
        'email': 'ana@example.com',
    })
    assert result['ok'] is True
    row = fake_db.tables['customers'][0]
    assert row['name'] == 'Ana Paula'
    assert row['document'] == '52998224725'
    assert row['phone'] == '21999990000'


def test_create_customer_validation(container, fake_db):
    service = container.customer_service
    fake_db.tables['customers'] = [make_customer('c1', name='Carlos Souza', document='52998224725')]

    assert service.create_customer({'name': ''})['error'] == 'El nombre es obligatorio.'
    assert service.create_customer({'name': 'X', 'document': '12345678900'})['error'] == 'CPF/CNPJ inválido.'
    dup = service.create_customer({'name': 'Otro', 'document': '529.982.247-25'})
    assert dup['error'] == 'Ya existe un cliente con ese documento (Carlos Souza).'
    assert service.create_customer({'name': 'X', 'email': 'sin-arroba'})['error'] == 'Email inválido.'
    assert service.create_customer({'name': 'X', 'phone': '9999'})['error'] == 'Teléfono inválido: incluye el DDD.'
    assert len(fake_db.tables['customers']) == 1


def test_update_customer_keeps_own_document(container, fake_db):
    fake_db.tables['customers'] = [make_customer('c1', document='52998224725')]
    result = container.customer_service.update_customer('c1', {'name': 'Carlos S.', 'document': '52998224725'})
    assert result['ok'] is True
    assert fake_db.tables['customers'][0]['name'] == 'Carlos S.'


def test_search_goes_to_backend(container, fake_db):
    fake_db.tables['customers'] = [
        make_customer('c1', name='Carlos Souza'),
        make_customer('c2', name='Beatriz Lima', document='11222333000181', phone=''),
    ]
    service = container.customer_service

    assert [c['id'] for c in service.list_customers('lima')] == ['c2']
    assert [c['id'] for c in service.list_customers()] == ['c2', 'c1']
    assert [c['id'] for c in service.customers_with_phone()] == ['c1']


def test_delete_failure_returns_error_without_notification(container, fake_db, notifications):
    fake_db.tables['customers'] = [make_customer('c1')]
    fake_db.failing['customers'] = 'violates foreign key constraint'
    result = container.customer_service.delete_customer('c1')
    assert result == {'ok': False, 'error': 'Error al eliminar cliente: violates foreign key constraint'}
    assert notifications.messages == []


def test_customer_detail_shows_purchases(client, fake_db):
    fake_db.tables['vehicles'] = [make_vehicle('v1', status='sold')]
    fake_db.tables['customers'] = [make_customer('c1')]
    fake_db.tables['sales'] = [make_sale('s1', 'v1', 'c1', None)]
    login_as(client, 'financial')

    html = client.get('/clientes/c1').get_data(as_text=True)
    assert 'Carlos Souza' in html
    assert 'Corolla' in html
    assert client.get('/clientes/nope').status_code == 404


def test_create_customer_route(client, fake_db):
    login_as(client, 'seller')
    r = client.post('/clientes/nuevo', data={'name': 'Nuevo Cliente', 'phone': '11 91234-5678', 'csrf_token': CSRF})
    assert r.headers['Location'].endswith('/clientes')
    assert fake_db.tables['customers'][0]['phone'] == '11912345678'
