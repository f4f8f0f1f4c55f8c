import os
import re
import sys
import tempfile
import uuid
from datetime import datetime, timezone
from types import SimpleNamespace

import pytest

# Logs de pruebas fuera del proyecto y sin profiling
os.environ.setdefault('ENABLE_PROFILING', 'false')
os.environ.setdefault('PRODUCTION_MODE', 'false')
os.environ.setdefault('LOGS_DIR', tempfile.mkdtemp(prefix='concesionaria-logs-'))

# ensure project root is on sys.path when running from tests/ folder
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..', '..')))

from app_concesionaria.app_container import AppContainer
from app_concesionaria.main import app
from app_concesionaria.notifications import NotificationCollector
from app_concesionaria.services import QueryCache

CSRF = 'test-token'

_EMBED_RE = re.compile(r'^(\w+):(\w+)\(([^)]*)\)$')


# ═══════════════════════════════════════════════════════════════════════════
# CLIENTE SUPABASE EN MEMORIA
# ═══════════════════════════════════════════════════════════════════════════

class FakeAPIError(Exception):
    """Imita el APIError de postgrest (tiene .message)."""

    def __init__(self, message):
        super().__init__(message)
        self.message = message


def _split_columns(columns):
    parts, depth, current = [], 0, ''
    for ch in columns or '*':
        if ch == '(':
            depth += 1
        elif ch == ')':
            depth -= 1
        if ch == ',' and depth == 0:
            parts.append(current.strip())
            current = ''
        else:
            current += ch
    if current.strip():
        parts.append(current.strip())
    return parts


class FakeQuery:
    """Query builder mínimo: select/eq/in_/or_/order/limit + insert/update/upsert/delete."""

    def __init__(self, db, table):
        self.db = db
        self.table_name = table
        self.op = 'select'
        self.columns = '*'
        self.filters = []
        self.order_by = None
        self.desc = False
        self.limit_n = None
        self.payload = None

    def select(self, columns='*'):
        self.columns = columns
        return self

    def eq(self, column, value):
        self.filters.append(lambda r: r.get(column) == value)
        return self

    def in_(self, column, values):
        values = list(values)
        self.filters.append(lambda r: r.get(column) in values)
        return self

    def or_(self, expression):
        conditions = []
        for part in expression.split(','):
            column, _, pattern = part.split('.', 2)
            conditions.append((column, pattern.strip('%').lower()))
        self.filters.append(
            lambda r: any(text in str(r.get(col) or '').lower() for col, text in conditions)
        )
        return self

    def order(self, column, desc=False):
        self.order_by = column
        self.desc = desc
        return self

    def limit(self, n):
        self.limit_n = n
        return self

    def insert(self, record):
        self.op, self.payload = 'insert', dict(record)
        return self

    def update(self, updates):
        self.op, self.payload = 'update', dict(updates)
        return self

    def upsert(self, record):
        self.op, self.payload = 'upsert', dict(record)
        return self

    def delete(self):
        self.op = 'delete'
        return self

    # -------------------------------------------------------------------------

    def _matches(self, row):
        return all(f(row) for f in self.filters)

    def _project(self, row):
        columns = _split_columns(self.columns)
        result = dict(row) if '*' in columns else {}
        for column in columns:
            if column == '*':
                continue
            embed = _EMBED_RE.match(column)
            if embed:
                alias, table, fields = embed.groups()
                related_id = row.get(f"{alias}_id")
                related = next(
                    (r for r in self.db.tables.get(table, []) if r.get('id') == related_id),
                    None
                )
                result[alias] = (
                    {f.strip(): related.get(f.strip()) for f in fields.split(',')}
                    if related else None
                )
            else:
                result[column] = row.get(column)
        return result

    def execute(self):
        self.db.calls.append((self.table_name, self.op))
        if self.table_name in self.db.failing:
            raise FakeAPIError(self.db.failing[self.table_name])

        rows = self.db.tables.setdefault(self.table_name, [])

        if self.op == 'insert':
            record = {'id': uuid.uuid4().hex, 'created_at': datetime.now(timezone.utc).isoformat()}
            record.update(self.payload)
            rows.append(record)
            return SimpleNamespace(data=[dict(record)])

        if self.op == 'upsert':
            existing = next((r for r in rows if r.get('id') == self.payload.get('id')), None)
            if existing is not None:
                existing.update(self.payload)
                return SimpleNamespace(data=[dict(existing)])
            rows.append(dict(self.payload))
            return SimpleNamespace(data=[dict(self.payload)])

        matched = [r for r in rows if self._matches(r)]

        if self.op == 'update':
            for row in matched:
                row.update(self.payload)
            return SimpleNamespace(data=[dict(r) for r in matched])

        if self.op == 'delete':
            for row in matched:
                rows.remove(row)
            return SimpleNamespace(data=[dict(r) for r in matched])

        if self.order_by:
            matched = sorted(
                matched,
                key=lambda r: str(r.get(self.order_by) or ''),
                reverse=self.desc
            )
        if self.limit_n:
            matched = matched[:self.limit_n]
        return SimpleNamespace(data=[self._project(r) for r in matched])


class FakeAuthAdmin:
    def __init__(self, db):
        self.db = db

    def list_users(self):
        if self.db.auth_admin_error:
            raise FakeAPIError(self.db.auth_admin_error)
        return [SimpleNamespace(**u) for u in self.db.auth_users]

    def create_user(self, attributes):
        user = {
            'id': uuid.uuid4().hex,
            'email': attributes['email'],
            'user_metadata': attributes.get('user_metadata') or {},
        }
        self.db.auth_users.append(user)
        self.db.passwords[attributes['email']] = attributes['password']
        return SimpleNamespace(user=SimpleNamespace(**user))

    def update_user_by_id(self, user_id, attributes):
        if 'ban_duration' in attributes:
            self.db.banned.add(user_id)
        return SimpleNamespace(user=SimpleNamespace(id=user_id))


class FakeAuth:
    def __init__(self, db):
        self.db = db
        self.admin = FakeAuthAdmin(db)

    def sign_in_with_password(self, credentials):
        email = credentials['email']
        user = next((u for u in self.db.auth_users if u['email'] == email), None)
        if (user is None or user['id'] in self.db.banned
                or self.db.passwords.get(email) != credentials['password']):
            raise FakeAPIError('Invalid login credentials')
        return SimpleNamespace(user=SimpleNamespace(**user), session=SimpleNamespace(access_token='jwt'))

    def reset_password_for_email(self, email, options=None):
        self.db.reset_requests.append((email, options or {}))

    def verify_otp(self, params):
        if params.get('token_hash') != self.db.recovery_token:
            raise FakeAPIError('Token has expired or is invalid')
        return SimpleNamespace(user=None)

    def update_user(self, attributes):
        self.db.password_updates.append(attributes)
        return SimpleNamespace(user=None)


class FakeSupabase:
    """Doble del cliente de Supabase con tablas en memoria."""

    def __init__(self):
        self.tables = {}
        self.failing = {}
        self.calls = []
        self.auth_users = []
        self.auth_admin_error = None
        self.passwords = {}
        self.banned = set()
        self.reset_requests = []
        self.password_updates = []
        self.recovery_token = 'recovery-ok'
        self.auth = FakeAuth(self)

    def table(self, name):
        return FakeQuery(self, name)

    def calls_to(self, table):
        return [c for c in self.calls if c[0] == table]

    def add_user(self, user_id, email, first_name, last_name='', role='seller', password='secret1', metadata=None):
        self.auth_users.append({
            'id': user_id,
            'email': email,
            'user_metadata': metadata if metadata is not None else {'name': f"{first_name} {last_name}".strip()},
        })
        self.passwords[email] = password
        self.tables.setdefault('profiles', []).append({
            'id': user_id,
            'first_name': first_name,
            'last_name': last_name,
            'role': role,
            'avatar_url': None,
        })


# ═══════════════════════════════════════════════════════════════════════════
# DATOS DE EJEMPLO
# ═══════════════════════════════════════════════════════════════════════════

def make_vehicle(vehicle_id, brand='Toyota', model='Corolla', year=2022, price=120000.0,
                 purchase_price=100000.0, status='available', plate='ABC1D23', **extra):
    vehicle = {
        'id': vehicle_id,
        'brand': brand,
        'model': model,
        'version': 'XEi',
        'year': year,
        'color': 'Prata',
        'transmission': 'Automático',
        'fuel': 'Flex',
        'plate': plate,
        'mileage': 15000,
        'price': price,
        'purchase_price': purchase_price,
        'status': status,
        'description': '',
        'image_url': '',
        'created_at': '2026-01-10T12:00:00+00:00',
    }
    vehicle.update(extra)
    return vehicle


def make_customer(customer_id, name='Carlos Souza', document='52998224725', phone='11987654321', **extra):
    customer = {
        'id': customer_id,
        'name': name,
        'document': document,
        'email': 'carlos@example.com',
        'phone': phone,
        'address': '',
        'city': 'São Paulo',
        'notes': '',
        'created_at': '2026-01-05T12:00:00+00:00',
    }
    customer.update(extra)
    return customer


def make_sale(sale_id, vehicle_id, customer_id, seller_id, sale_price=118000.0,
              payment_method='cash', created_at='2026-03-10T15:00:00+00:00', **extra):
    sale = {
        'id': sale_id,
        'vehicle_id': vehicle_id,
        'customer_id': customer_id,
        'seller_id': seller_id,
        'sale_price': sale_price,
        'payment_method': payment_method,
        'down_payment': 0,
        'financed_amount': 0,
        'notes': '',
        'created_at': created_at,
    }
    sale.update(extra)
    return sale


# ═══════════════════════════════════════════════════════════════════════════
# FIXTURES
# ═══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def fake_db():
    return FakeSupabase()


@pytest.fixture
def notifications():
    return NotificationCollector()


@pytest.fixture
def cache():
    return QueryCache(stale_time=300, retries=2, retry_delay=0)


@pytest.fixture
def container(fake_db, notifications, cache):
    AppContainer.reset_instance()
    c = AppContainer(
        client=fake_db,
        auth_client_factory=lambda: fake_db,
        notifier=notifications,
        cache=cache
    )
    yield c
    AppContainer.reset_instance()


@pytest.fixture
def client(container):
    app.config['TESTING'] = True
    with app.test_client() as c:
        yield c


def login_as(client, role, user_id='u-admin', name='Ana Admin', email='ana@example.com'):
    """Deja una sesión iniciada sin pasar por Supabase Auth."""
    with client.session_transaction() as sess:
        sess['user_id'] = user_id
        sess['user'] = email
        sess['name'] = name
        sess['role'] = role
        sess['csrf_token'] = CSRF
    return CSRF


def flashes(client):
    with client.session_transaction() as sess:
        return list(sess.get('_flashes', []))
