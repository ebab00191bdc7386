import pytest

from app_inventario.app_container import AppContainer
from app_inventario.logging_config import reset_logging
from app_inventario.main import create_app
from app_inventario.models import MovementRequest


@pytest.fixture
def container(tmp_path):
    """Contenedor nuevo sobre un directorio temporal, sin esperas entre reintentos."""
    AppContainer.reset_instance()
    c = AppContainer(str(tmp_path), {'RETRY_MAX_ATTEMPTS': 3, 'RETRY_BASE_DELAY': 0})
    yield c
    AppContainer.reset_instance()


@pytest.fixture
def user_id():
    return 'user-1'


@pytest.fixture
def store(container, user_id):
    return container.store_service.create_store(user_id, 'Tienda Centro', address='Calle 10 #5-20')


@pytest.fixture
def make_product(container, store, user_id):
    """Crea productos en la tienda del fixture store."""
    def _make(name='Audífonos', stock=10, unit_cost=12.5, sale_price=25, **extra):
        data = {
            'name': name,
            'category': 'Electronica',
            'unit_cost': unit_cost,
            'sale_price': sale_price,
            'stock': stock,
        }
        data.update(extra)
        return container.product_service.save_product(store.id, user_id, data)
    return _make


@pytest.fixture
def movement(store, user_id):
    """Construye solicitudes de movimiento para la tienda del fixture."""
    def _build(product_id, type='entrada', quantity=1, **extra):
        data = {'product_id': product_id, 'type': type, 'quantity': quantity}
        data.update(extra)
        return MovementRequest.from_dict(data, store_id=store.id, user_id=user_id)
    return _build


# ═══════════════════════════════════════════════════════════════════════════
# CLIENTE FLASK
# ═══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def app(tmp_path):
    app = create_app(str(tmp_path), {
        'TESTING': True,
        'RETRY_BASE_DELAY': 0,
        'ENABLE_PROFILING': False,
        'LOG_LEVEL': 'WARNING',
    })
    yield app
    AppContainer.reset_instance()
    reset_logging()


@pytest.fixture
def client(app):
    with app.test_client() as c:
        yield c

