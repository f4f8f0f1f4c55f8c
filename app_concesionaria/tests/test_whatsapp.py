from urllib.parse import parse_qs, urlparse

from conftest import CSRF, flashes, login_as, make_customer, make_vehicle

from app_concesionaria.services.whatsapp_service import TEMPLATES, whatsapp_number


def test_whatsapp_number_adds_country_code():
    assert whatsapp_number('(11) 98765-4321') == '5511987654321'
    assert whatsapp_number('1133334444') == '551133334444'
    assert whatsapp_number('+55 11 98765-4321') == '5511987654321'
    assert whatsapp_number('') == ''
    assert whatsapp_number('11987654321', country_code='351') == '35111987654321'


def test_render_and_link(container):
    service = container.whatsapp_service
    service.dealership_name = 'Auto Center'
    customer = {'name': 'Carlos Souza'}
    vehicle = make_vehicle('v1', price=120000)

    text = service.render_message('vehicle_offer', customer, vehicle, 'Maria')
    assert 'Carlos' in text
    assert 'Souza' not in text
    assert 'Toyota Corolla XEi 2022' in text

    link = service.build_link('11987654321', 'Hola Ana & cía')
    parsed = urlparse(link)
    assert parsed.netloc == 'wa.me'
    assert parsed.path == '/5511987654321'
    assert parse_qs(parsed.query)['text'] == ['Hola Ana & cía']


def test_unknown_template_falls_back_to_greeting(container):
    text = container.whatsapp_service.render_message('nope', {'name': ''})
    expected = TEMPLATES['greeting']['text'].split('{')[0]
    assert text.startswith(expected)


def test_send_logs_history(container, fake_db):
    fake_db.tables['customers'] = [make_customer('c1')]
    fake_db.tables['vehicles'] = [make_vehicle('v1')]

    result = container.whatsapp_service.send('c1', 'vehicle_offer', 'v1', {'id': 'u1', 'name': 'Maria'})

    assert result['ok'] is True
    assert result['link'].startswith('https://wa.me/5511987654321?text=')
    logged = fake_db.tables['whatsapp_messages'][0]
    assert logged['customer_id'] == 'c1'
    assert logged['template'] == 'vehicle_offer'
    assert logged['user_id'] == 'u1'

    history = container.whatsapp_service.history()
    assert history[0]['customer'] == {'name': 'Carlos Souza'}


def test_send_still_returns_link_when_history_fails(container, fake_db, notifications):
    fake_db.tables['customers'] = [make_customer('c1')]
    fake_db.failing['whatsapp_messages'] = 'relation does not exist'

    result = container.whatsapp_service.send('c1', 'greeting')

    assert result['ok'] is True
    assert notifications.messages == []


def test_send_validation(container, fake_db):
    fake_db.tables['customers'] = [make_customer('c1'), make_customer('c2', phone='')]
    service = container.whatsapp_service

    assert service.send('c1', 'nope')['error'] == 'Plantilla inválida.'
    assert service.send('c1', 'vehicle_offer')['error'] == 'Esta plantilla necesita un vehículo.'
    assert service.send('zz', 'greeting')['error'] == 'Cliente no encontrado.'
    assert service.send('c2', 'greeting')['error'] == 'El cliente no tiene teléfono cargado.'
    assert service.send('c1', 'vehicle_offer', 'zz')['error'] == 'Vehículo no encontrado.'


def test_register_lead(container, fake_db):
    service = container.whatsapp_service
    assert service.register_lead('', phone='11987654321')['ok'] is False
    assert service.register_lead('Ana')['error'] == 'Ingresa un teléfono o un email para responderte.'
    assert service.register_lead('Ana', phone='1234')['ok'] is False

    assert service.register_lead('Ana', phone='(11) 98765-4321', message='Quiero el Corolla') == {'ok': True}
    leads = service.recent_leads()
    assert leads[0]['phone'] == '11987654321'
    assert leads[0]['whatsapp_link'].startswith('https://wa.me/5511987654321')


def test_contact_form_creates_lead(client, fake_db):
    with client.session_transaction() as sess:
        sess['csrf_token'] = CSRF
    r = client.post('/contato', data={
        'name': 'Ana', 'email': 'ana@example.com', 'message': 'Hola', 'csrf_token': CSRF
    })
    assert r.headers['Location'].endswith('/contato')
    assert fake_db.tables['leads'][0]['email'] == 'ana@example.com'


def test_send_route_redirects_to_whatsapp(client, fake_db):
    fake_db.tables['customers'] = [make_customer('c1')]
    login_as(client, 'seller', user_id='u1', name='Maria Lima')

    r = client.post('/whatsapp/enviar', data={'customer_id': 'c1', 'template': 'greeting', 'csrf_token': CSRF})

    assert r.status_code == 302
    assert r.headers['Location'].startswith('https://wa.me/5511987654321')
    assert fake_db.tables['whatsapp_messages'][0]['user_id'] == 'u1'


def test_send_route_with_error_goes_back(client, fake_db):
    login_as(client, 'seller')
    r = client.post('/whatsapp/enviar', data={'customer_id': 'zz', 'template': 'greeting', 'csrf_token': CSRF})
    assert r.headers['Location'].endswith('/whatsapp')
    assert ('warning', 'Cliente no encontrado.') in flashes(client)


def test_whatsapp_page_renders(client, fake_db):
    fake_db.tables['customers'] = [make_customer('c1')]
    login_as(client, 'administrator')
    html = client.get('/whatsapp').get_data(as_text=True)
    assert 'Carlos Souza' in html
