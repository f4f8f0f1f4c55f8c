from datetime import datetime

from conftest import CSRF, login_as, make_customer, make_sale, make_vehicle

from app_concesionaria.services import InventoryService, is_valid_plate, normalize_plate


def _vehicle_form(**overrides):
    data = {
        'brand': 'Fiat',
        'model': 'Argo',
        'version': 'Drive',
        'year': '2023',
        'plate': 'rio-2a18',
        'price': '85000',
        'purchase_price': '70000',
        'mileage': '1000',
        'status': 'available',
    }
    data.update(overrides)
    return data


def test_plate_formats():
    assert normalize_plate(' abc-1d23 ') == 'ABC1D23'
    assert is_valid_plate('ABC-1234')
    assert is_valid_plate('abc1d23')
    assert not is_valid_plate('AB12345')
    assert not is_valid_plate('')


def test_create_vehicle_normalizes_plate(container, fake_db):
    result = container.inventory_service.create_vehicle(_vehicle_form())
    assert result['ok'] is True
    assert fake_db.tables['vehicles'][0]['plate'] == 'RIO2A18'
    assert fake_db.tables['vehicles'][0]['price'] == 85000.0


def test_create_vehicle_validation(container, fake_db):
    service = container.inventory_service
    next_year = datetime.now().year + 2

    assert service.create_vehicle(_vehicle_form(brand=''))['error'] == 'Marca y modelo son obligatorios.'
    assert 'El año debe estar entre' in service.create_vehicle(_vehicle_form(year=str(next_year)))['error']
    assert service.create_vehicle(_vehicle_form(price='0'))['error'] == 'El precio debe ser mayor a cero.'
    assert service.create_vehicle(_vehicle_form(price='nan'))['error'] == 'El precio debe ser mayor a cero.'
    assert service.create_vehicle(_vehicle_form(price='inf'))['error'] == 'El precio debe ser mayor a cero.'
    assert service.create_vehicle(_vehicle_form(plate='12'))['ok'] is False
    assert fake_db.tables.get('vehicles', []) == []


def test_duplicate_plate_is_rejected(container, fake_db):
    fake_db.tables['vehicles'] = [make_vehicle('v1', plate='RIO2A18')]
    result = container.inventory_service.create_vehicle(_vehicle_form())
    assert result == {'ok': False, 'error': 'Ya existe un vehículo con la placa RIO2A18.'}

    # Editar el mismo vehículo con su propia placa sí se permite
    result = container.inventory_service.update_vehicle('v1', _vehicle_form())
    assert result['ok'] is True


def test_sold_status_only_through_sales(container, fake_db):
    fake_db.tables['vehicles'] = [make_vehicle('v1'), make_vehicle('v2', plate='XYZ9876', status='sold')]
    service = container.inventory_service

    assert service.update_vehicle('v1', _vehicle_form(status='sold'))['ok'] is False
    assert service.set_status('v1', 'sold')['ok'] is False
    assert service.set_status('v2', 'reserved') == {'ok': False, 'error': 'El vehículo ya fue vendido.'}
    assert service.set_status('v1', 'reserved') == {'ok': True}
    assert fake_db.tables['vehicles'][0]['status'] == 'reserved'


def test_delete_sold_vehicle_is_refused(container, fake_db):
    fake_db.tables['vehicles'] = [make_vehicle('v1', status='sold'), make_vehicle('v2', plate='XYZ9876')]
    assert container.inventory_service.delete_vehicle('v1')['ok'] is False
    assert container.inventory_service.delete_vehicle('v2') == {'ok': True}
    assert [v['id'] for v in fake_db.tables['vehicles']] == ['v1']


def test_write_invalidates_inventory_cache(container, fake_db):
    service = container.inventory_service
    assert service.list_vehicles() == []
    service.create_vehicle(_vehicle_form())
    assert len(service.list_vehicles()) == 1


def test_public_listing_filters(container, fake_db):
    fake_db.tables['vehicles'] = [
        make_vehicle('v1', brand='Fiat', price=60000, year=2018, plate='AAA1111'),
        make_vehicle('v2', brand='Toyota', price=150000, year=2023, plate='BBB2222'),
        make_vehicle('v3', brand='Fiat', price=90000, year=2022, plate='CCC3333', status='sold'),
    ]
    service = container.inventory_service

    assert [v['id'] for v in service.list_available()] == ['v1', 'v2']
    assert [v['id'] for v in service.list_available(brand='fiat')] == ['v1']
    assert [v['id'] for v in service.list_available(max_price='100000')] == ['v1']
    assert [v['id'] for v in service.list_available(min_year='2020')] == ['v2']
    # filtros inválidos se ignoran
    assert len(service.list_available(max_price='abc', min_year='x')) == 2
    assert service.available_brands(service.list_available()) == ['Fiat', 'Toyota']


def test_inventory_summary():
    summary = InventoryService.inventory_summary([
        make_vehicle('v1', price=100, purchase_price=80),
        make_vehicle('v2', price=200, purchase_price=150, status='reserved'),
        make_vehicle('v3', price=300, purchase_price=100, status='sold'),
    ])
    assert summary['total'] == 3
    assert summary['by_status'] == {'available': 1, 'reserved': 1, 'sold': 1}
    assert summary['stock_value'] == 300
    assert summary['expected_margin'] == 70


def test_lookup_plate_with_sales_history(container, fake_db):
    fake_db.tables['vehicles'] = [make_vehicle('v1', plate='ABC1D23', status='sold')]
    fake_db.tables['customers'] = [make_customer('c1')]
    fake_db.tables['sales'] = [make_sale('s1', 'v1', 'c1', 'u1')]
    fake_db.add_user('u1', 'maria@example.com', 'Maria', 'Lima')

    result = container.inventory_service.lookup_plate('abc-1d23')

    assert result['valid'] is True
    assert result['vehicle']['id'] == 'v1'
    assert [s['id'] for s in result['sales']] == ['s1']
    assert result['sales'][0]['seller']['first_name'] == 'Maria'


def test_lookup_invalid_plate_skips_backend(container, fake_db):
    result = container.inventory_service.lookup_plate('12-34')
    assert result == {'plate': '1234', 'valid': False, 'vehicle': None, 'sales': []}
    assert fake_db.calls == []


def test_dispatcher_creates_vehicle_through_route(client, fake_db):
    login_as(client, 'dispatcher')
    r = client.post('/estoque/nuevo', data={**_vehicle_form(), 'csrf_token': CSRF})
    assert r.status_code == 302
    assert r.headers['Location'].endswith('/estoque')
    assert len(fake_db.tables['vehicles']) == 1


def test_plate_lookup_page(client, fake_db):
    fake_db.tables['vehicles'] = [make_vehicle('v1', plate='ABC1D23')]
    login_as(client, 'seller')
    html = client.get('/consulta-placa?placa=ABC1D23').get_data(as_text=True)
    assert 'Corolla' in html


def test_vehicle_detail_404(client):
    assert client.get('/veiculos/nope').status_code == 404
