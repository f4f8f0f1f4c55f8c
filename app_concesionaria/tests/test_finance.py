import pytest

from conftest import login_as

from app_concesionaria.services import FinanceService


@pytest.fixture
def finance():
    return FinanceService(default_monthly_rate=1.99)


def test_price_table_installment(finance):
    result = finance.simulate_financing(120000, 20000, 12, 1)
    assert result['ok'] is True
    assert result['financed'] == 100000
    assert result['installment'] == pytest.approx(8884.88, abs=0.01)
    assert result['total_paid'] == pytest.approx(result['total_installments'] + 20000, abs=0.01)
    assert result['total_interest'] == pytest.approx(6618.55, abs=0.05)


def test_zero_rate_divides_evenly(finance):
    result = finance.simulate_financing('12000', '0', '12', '0')
    assert result['installment'] == 1000
    assert result['total_interest'] == 0


def test_default_rate_is_used_when_missing(finance):
    assert finance.simulate_financing(50000, 10000, 24)['monthly_rate'] == 1.99
    assert finance.simulate_financing(50000, 10000, 24, '')['monthly_rate'] == 1.99


@pytest.mark.parametrize('args,error', [
    ((0, 0, 12), 'El precio debe ser mayor a cero.'),
    ((1000, 1000, 12), 'La entrada debe ser menor que el precio.'),
    ((1000, -1, 12), 'La entrada debe ser menor que el precio.'),
    (('abc', 0, 12), 'Valores inválidos para la simulación.'),
])
def test_invalid_simulations(finance, args, error):
    assert finance.simulate_financing(*args) == {'ok': False, 'error': error}


def test_term_and_rate_limits(finance):
    assert 'Plazo inválido' in finance.simulate_financing(1000, 0, 18)['error']
    assert finance.simulate_financing(1000, 0, 12, 11)['ok'] is False


def test_finance_summary(finance):
    sales = [
        {'sale_price': 100000, 'payment_method': 'financing', 'down_payment': 30000,
         'financed_amount': 70000, 'vehicle': {'purchase_price': 80000}},
        {'sale_price': 50000, 'payment_method': 'cash', 'down_payment': 0,
         'financed_amount': 0, 'vehicle': {'purchase_price': 40000}},
        {'sale_price': 30000, 'payment_method': 'cash', 'vehicle': {}},
    ]
    summary = finance.finance_summary(sales)

    assert summary['count'] == 3
    assert summary['revenue'] == 180000
    assert summary['cost'] == 120000
    assert summary['gross_profit'] == 30000
    assert summary['margin'] == 20.0
    assert summary['missing_cost'] == 1
    assert summary['average_ticket'] == 60000
    assert summary['financed_total'] == 70000
    methods = {m['method']: m for m in summary['by_payment_method']}
    assert methods['financing']['label'] == 'Financiamiento'
    assert methods['cash']['count'] == 2
    assert methods['cash']['total'] == 80000


def test_finance_summary_empty(finance):
    summary = finance.finance_summary([])
    assert summary['count'] == 0
    assert summary['margin'] == 0.0
    assert summary['by_payment_method'] == []


def test_public_simulator_page(client):
    html = client.get('/financiamento?price=120000&down_payment=20000&months=12&monthly_rate=1').get_data(as_text=True)
    assert 'R$ 8.884,88' in html


def test_financial_role_sees_finance_page(client):
    login_as(client, 'financial')
    assert client.get('/financeiro?period=year').status_code == 200


@pytest.mark.parametrize('field', ['price', 'down_payment', 'monthly_rate'])
@pytest.mark.parametrize('value', ['nan', 'inf', '-inf'])
def test_non_finite_values_are_rejected(finance, field, value):
    args = {'price': 120000, 'down_payment': 20000, 'months': 48, 'monthly_rate': 1.99}
    args[field] = value
    assert finance.simulate_financing(**args) == {'ok': False, 'error': 'Valores inválidos para la simulación.'}


def test_public_simulator_page_rejects_nan(client):
    html = client.get('/financiamento?price=nan&months=48').get_data(as_text=True)
    assert 'R$ nan' not in html
    assert 'Valores inválidos para la simulación.' in html
