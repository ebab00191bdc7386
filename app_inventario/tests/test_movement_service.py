import logging
import threading

import pytest

from app_inventario.errors import (
    BackendUnavailableError,
    InsufficientStockError,
    LedgerInconsistencyError,
    MovementNotFoundError,
    ProductNotFoundError,
    ValidationError,
)
from app_inventario.models import MovementRequest, MovementType, stock_delta


def ledger(container):
    return container.movement_repo.get_all()


def stock_of(container, product_id):
    return container.product_repo.get_product(product_id)['stock']


@pytest.mark.parametrize('movement_type, expected', [
    ('entrada', 7),
    ('salida', -7),
    ('devolucion', 7),
])
def test_delta_sign_table(movement_type, expected):
    assert stock_delta(MovementType(movement_type), 7) == expected


def test_entrada_then_rejected_salida(container, make_product, movement):
    product = make_product(stock=10)
    service = container.movement_service

    entry = service.record_movement(movement(product.id, 'entrada', 5))
    assert entry.previous_stock == 10
    assert entry.new_stock == 15
    assert stock_of(container, product.id) == 15

    with pytest.raises(InsufficientStockError) as exc:
        service.record_movement(movement(product.id, 'salida', 20, is_local=True))
    assert exc.value.current_stock == 15
    assert exc.value.delta == -20

    assert stock_of(container, product.id) == 15
    assert len(ledger(container)) == 1


def test_devolucion_restocks(container, make_product, movement):
    product = make_product(stock=3)
    entry = container.movement_service.record_movement(movement(product.id, 'devolucion', 2))
    assert entry.type is MovementType.DEVOLUCION
    assert (entry.previous_stock, entry.new_stock) == (3, 5)


def test_salida_to_exactly_zero_is_allowed(container, make_product, movement):
    product = make_product(stock=4)
    entry = container.movement_service.record_movement(
        movement(product.id, 'salida', 4, tracking_number='GU-001')
    )
    assert entry.new_stock == 0
    assert entry.shipment.tracking_number == 'GU-001'


@pytest.mark.parametrize('extra', [
    {},
    {'tracking_number': '   '},
    {'carrier_id': 'servientrega'},
])
def test_salida_without_tracking_rejected_before_write(container, make_product, movement, extra):
    product = make_product(stock=10)
    with pytest.raises(ValidationError):
        container.movement_service.record_movement(movement(product.id, 'salida', 1, **extra))
    assert stock_of(container, product.id) == 10
    assert ledger(container) == []


@pytest.mark.parametrize('flags', [{'is_local': True}, {'is_pending': True}])
def test_local_or_pending_salida_needs_no_tracking(container, make_product, movement, flags):
    product = make_product(stock=10)
    entry = container.movement_service.record_movement(movement(product.id, 'salida', 1, **flags))
    assert entry.new_stock == 9
    assert entry.shipment.tracking_number is None


def test_shipment_flags_ignored_outside_salida(container, make_product, movement):
    product = make_product(stock=1)
    entry = container.movement_service.record_movement(
        movement(product.id, 'entrada', 1, is_pending=True, tracking_number='X1', has_packing_list=True)
    )
    assert entry.shipment.is_pending is False
    assert entry.shipment.tracking_number is None
    assert entry.shipment.has_packing_list is False


@pytest.mark.parametrize('quantity', [0, -3, 1.5, 'abc', None, True])
def test_invalid_quantity(container, make_product, movement, quantity):
    product = make_product(stock=10)
    with pytest.raises(ValidationError):
        container.movement_service.record_movement(movement(product.id, 'entrada', quantity))
    assert ledger(container) == []


def test_invalid_type(container, make_product, movement):
    product = make_product()
    with pytest.raises(ValidationError):
        container.movement_service.record_movement(movement(product.id, 'ajuste', 1))


def test_quantity_as_numeric_string(container, make_product, movement):
    product = make_product(stock=0)
    entry = container.movement_service.record_movement(movement(product.id, 'ENTRADA', '3'))
    assert entry.quantity == 3
    assert entry.type is MovementType.ENTRADA


def test_unknown_product(container, store, movement):
    with pytest.raises(ProductNotFoundError):
        container.movement_service.record_movement(movement('no-existe', 'entrada', 1))
    assert ledger(container) == []


def test_product_from_another_store_rejected(container, make_product, movement, user_id):
    other = container.store_service.create_store(user_id, 'Otra tienda')
    foreign = container.product_service.save_product(other.id, user_id, {
        'name': 'Lámpara', 'category': 'Hogar', 'unit_cost': 1, 'sale_price': 2, 'stock': 5,
    })
    with pytest.raises(ValidationError):
        container.movement_service.record_movement(movement(foreign.id, 'salida', 1, is_local=True))
    assert stock_of(container, foreign.id) == 5


def test_ledger_row_records_metadata(container, make_product, movement, user_id, store):
    product = make_product(stock=10)
    entry = container.movement_service.record_movement(movement(
        product.id, 'salida', 2,
        tracking_number='GU-77', carrier_id='coordinadora', has_packing_list=True,
        notes='  pedido web  ', reference_number='PED-1', source='web',
        device_info={'user_agent': 'pytest'},
    ))
    row = container.movement_repo.get_movement(entry.id)
    assert row['user_id'] == user_id
    assert row['store_id'] == store.id
    assert row['previous_stock'] == 10 and row['new_stock'] == 8
    assert row['carrier_id'] == 'coordinadora'
    assert row['has_packing_list'] is True
    assert row['notes'] == 'pedido web'
    assert row['reference_number'] == 'PED-1'
    assert row['device_info'] == {'user_agent': 'pytest'}
    assert row['created_at']


@pytest.mark.parametrize('extra', [
    {'notes': 123},
    {'source': ['web']},
    {'reference_number': {'id': 1}},
    {'device_info': 'pytest'},
])
def test_invalid_metadata_rejected_before_write(container, make_product, movement, extra):
    product = make_product(stock=10)
    with pytest.raises(ValidationError):
        container.movement_service.record_movement(movement(product.id, 'entrada', 5, **extra))
    assert stock_of(container, product.id) == 10
    assert ledger(container) == []


def test_metadata_is_normalized(container, make_product, movement):
    product = make_product(stock=10)
    entry = container.movement_service.record_movement(
        movement(product.id, 'entrada', 1, notes='   ', reference_number=4521, source=' csv ')
    )
    row = container.movement_repo.get_movement(entry.id)
    assert row['notes'] is None
    assert row['reference_number'] == '4521'
    assert row['source'] == 'csv'
    assert row['device_info'] == {}


@pytest.mark.parametrize('value', ['false', '0', 'no'])
def test_pending_flag_as_false_text_still_requires_tracking(container, make_product, movement, value):
    product = make_product(stock=10)
    with pytest.raises(ValidationError):
        container.movement_service.record_movement(movement(product.id, 'salida', 1, is_pending=value))
    assert stock_of(container, product.id) == 10
    assert ledger(container) == []


def test_pending_flag_as_true_text(container, make_product, movement):
    product = make_product(stock=10)
    entry = container.movement_service.record_movement(movement(product.id, 'salida', 1, is_pending='true'))
    assert entry.shipment.is_pending is True
    assert entry.new_stock == 9


def test_unknown_flag_text_is_rejected(container, make_product, movement):
    product = make_product(stock=10)
    with pytest.raises(ValidationError):
        movement(product.id, 'salida', 1, is_local='quizas')


# ═══════════════════════════════════════════════════════════════════════════
# IDEMPOTENCIA
# ═══════════════════════════════════════════════════════════════════════════

def test_idempotency_key_applies_once(container, make_product, movement):
    product = make_product(stock=10)
    service = container.movement_service

    first = service.record_movement(movement(product.id, 'entrada', 5, idempotency_key='k-1'))
    again = service.record_movement(movement(product.id, 'entrada', 5, idempotency_key='k-1'))

    assert again.id == first.id
    assert stock_of(container, product.id) == 15
    assert len(ledger(container)) == 1


def test_different_keys_apply_twice(container, make_product, movement):
    product = make_product(stock=10)
    service = container.movement_service
    service.record_movement(movement(product.id, 'entrada', 1, idempotency_key='a'))
    service.record_movement(movement(product.id, 'entrada', 1, idempotency_key='b'))
    assert stock_of(container, product.id) == 12


def test_reused_key_for_another_movement_is_rejected(container, make_product, movement):
    a = make_product(name='Cable USB', stock=10)
    b = make_product(name='Cargador', stock=10)
    service = container.movement_service
    service.record_movement(movement(a.id, 'entrada', 2, idempotency_key='k-9'))

    with pytest.raises(ValidationError):
        service.record_movement(movement(b.id, 'entrada', 3, idempotency_key='k-9'))
    with pytest.raises(ValidationError):
        service.record_movement(movement(a.id, 'entrada', 5, idempotency_key='k-9'))
    with pytest.raises(ValidationError):
        service.record_movement(movement(a.id, 'devolucion', 2, idempotency_key='k-9'))

    assert stock_of(container, a.id) == 12
    assert stock_of(container, b.id) == 10
    assert len(ledger(container)) == 1


def test_idempotency_keys_are_scoped_to_store(container, make_product, movement):
    product = make_product(stock=10)
    container.movement_service.record_movement(movement(product.id, 'entrada', 2, idempotency_key='k1'))

    other_store = container.store_service.create_store('user-2', 'Tienda Sur')
    other_product = container.product_service.save_product(other_store.id, 'user-2', {
        'name': 'Lámpara', 'category': 'Hogar', 'unit_cost': 1, 'sale_price': 2, 'stock': 1,
    })
    request = MovementRequest.from_dict(
        {'product_id': other_product.id, 'type': 'entrada', 'quantity': 9, 'idempotency_key': 'k1'},
        store_id=other_store.id, user_id='user-2',
    )
    entry = container.movement_service.record_movement(request)

    assert entry.product_id == other_product.id
    assert entry.store_id == other_store.id
    assert (entry.previous_stock, entry.new_stock) == (1, 10)
    assert stock_of(container, other_product.id) == 10
    assert stock_of(container, product.id) == 12
    assert len(ledger(container)) == 2


# ═══════════════════════════════════════════════════════════════════════════
# COMPENSACIÓN Y REINTENTOS
# ═══════════════════════════════════════════════════════════════════════════

def test_failed_ledger_insert_is_compensated(container, make_product, movement, monkeypatch, caplog):
    product = make_product(stock=10)

    def broken_insert(data):
        raise BackendUnavailableError('disco lleno')

    monkeypatch.setattr(container.movement_repo, 'insert_movement', broken_insert)

    with caplog.at_level(logging.ERROR, logger='app_inventario'):
        with pytest.raises(BackendUnavailableError):
            container.movement_service.record_movement(movement(product.id, 'salida', 3, is_local=True))

    assert stock_of(container, product.id) == 10
    assert ledger(container) == []
    assert any('compensado' in r.getMessage() for r in caplog.records)


def test_transient_failure_is_retried(container, make_product, movement, monkeypatch):
    product = make_product(stock=10)
    repo = container.movement_repo
    original = repo.insert_movement
    calls = {'n': 0}

    def flaky_insert(data):
        calls['n'] += 1
        if calls['n'] == 1:
            raise BackendUnavailableError('timeout')
        return original(data)

    monkeypatch.setattr(repo, 'insert_movement', flaky_insert)

    entry = container.movement_service.record_movement(movement(product.id, 'entrada', 5))
    assert calls['n'] == 2
    assert (entry.previous_stock, entry.new_stock) == (10, 15)
    assert stock_of(container, product.id) == 15
    assert len(ledger(container)) == 1


def test_failed_compensation_raises_inconsistency(container, make_product, movement, monkeypatch):
    product = make_product(stock=10)
    products = container.product_repo
    original_apply = products.apply_stock_delta
    calls = {'n': 0}

    def apply_once(product_id, delta):
        calls['n'] += 1
        if calls['n'] > 1:
            raise BackendUnavailableError('sin conexión')
        return original_apply(product_id, delta)

    def broken_insert(data):
        raise BackendUnavailableError('disco lleno')

    monkeypatch.setattr(products, 'apply_stock_delta', apply_once)
    monkeypatch.setattr(container.movement_repo, 'insert_movement', broken_insert)

    with pytest.raises(LedgerInconsistencyError):
        container.movement_service.record_movement(movement(product.id, 'entrada', 5))
    # No se reintenta una inconsistencia
    assert calls['n'] == 2


def test_unexpected_insert_error_is_compensated(container, make_product, movement, monkeypatch):
    product = make_product(stock=10)

    def broken_insert(data):
        raise TypeError('fila no serializable')

    monkeypatch.setattr(container.movement_repo, 'insert_movement', broken_insert)

    with pytest.raises(TypeError):
        container.movement_service.record_movement(movement(product.id, 'entrada', 5))
    assert stock_of(container, product.id) == 10
    assert ledger(container) == []


# ═══════════════════════════════════════════════════════════════════════════
# CONCURRENCIA
# ═══════════════════════════════════════════════════════════════════════════

def test_concurrent_movements_do_not_lose_updates(container, make_product, movement):
    product = make_product(stock=100)
    service = container.movement_service
    errors = []

    def worker(type_, quantity, **extra):
        try:
            service.record_movement(movement(product.id, type_, quantity, **extra))
        except Exception as e:
            errors.append(e)

    threads = []
    for _ in range(15):
        threads.append(threading.Thread(target=worker, args=('entrada', 2)))
        threads.append(threading.Thread(target=worker, args=('salida', 1), kwargs={'is_local': True}))
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
    assert stock_of(container, product.id) == 100 + 15 * 2 - 15

    rows = ledger(container)
    assert len(rows) == 30
    # Cada fila parte del stock en que terminó la anterior
    expected_previous = 100
    for row in rows:
        assert row['previous_stock'] == expected_previous
        assert row['new_stock'] == row['previous_stock'] + stock_delta(MovementType(row['type']), row['quantity'])
        expected_previous = row['new_stock']


def test_concurrent_salidas_never_go_negative(container, make_product, movement):
    product = make_product(stock=5)
    service = container.movement_service
    results = []
    lock = threading.Lock()

    def worker():
        try:
            service.record_movement(movement(product.id, 'salida', 1, is_local=True))
            outcome = 'ok'
        except InsufficientStockError:
            outcome = 'rechazado'
        with lock:
            results.append(outcome)

    threads = [threading.Thread(target=worker) for _ in range(12)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert results.count('ok') == 5
    assert results.count('rechazado') == 7
    assert stock_of(container, product.id) == 0
    assert len(ledger(container)) == 5


# ═══════════════════════════════════════════════════════════════════════════
# ESTADO DEL ENVÍO
# ═══════════════════════════════════════════════════════════════════════════

def test_update_status_sets_tracking(container, make_product, movement, store):
    product = make_product(stock=10)
    service = container.movement_service
    entry = service.record_movement(movement(product.id, 'salida', 2, is_pending=True))

    updated = service.update_movement_status(
        entry.id,
        {'is_pending': False, 'tracking_number': 'GU-900', 'carrier_id': 'tcc'},
        store_id=store.id,
    )
    assert updated.shipment.is_pending is False
    assert updated.shipment.tracking_number == 'GU-900'
    assert updated.quantity == 2
    assert updated.new_stock == 8


def test_update_status_rechecks_tracking_rule(container, make_product, movement):
    product = make_product(stock=10)
    service = container.movement_service
    entry = service.record_movement(movement(product.id, 'salida', 1, is_pending=True))

    with pytest.raises(ValidationError):
        service.update_movement_status(entry.id, {'is_pending': False})
    assert container.movement_repo.get_movement(entry.id)['is_pending'] is True


def test_update_status_rejects_immutable_fields(container, make_product, movement):
    product = make_product(stock=10)
    entry = container.movement_service.record_movement(movement(product.id, 'entrada', 1))
    with pytest.raises(ValidationError):
        container.movement_service.update_movement_status(entry.id, {'quantity': 100})
    assert container.movement_repo.get_movement(entry.id)['quantity'] == 1


def test_update_status_scoped_to_store(container, make_product, movement):
    product = make_product(stock=10)
    entry = container.movement_service.record_movement(movement(product.id, 'entrada', 1))
    with pytest.raises(MovementNotFoundError):
        container.movement_service.update_movement_status(entry.id, {'notes': 'x'}, store_id='otra')


@pytest.mark.parametrize('value', ['false', 'quizas'])
def test_update_status_parses_pending_flag(container, make_product, movement, value):
    product = make_product(stock=10)
    service = container.movement_service
    entry = service.record_movement(movement(product.id, 'salida', 1, is_pending=True))

    with pytest.raises(ValidationError):
        service.update_movement_status(entry.id, {'is_pending': value})
    assert container.movement_repo.get_movement(entry.id)['is_pending'] is True


def test_update_status_rejects_non_text_notes(container, make_product, movement):
    product = make_product(stock=10)
    entry = container.movement_service.record_movement(movement(product.id, 'entrada', 1, notes='ok'))
    with pytest.raises(ValidationError):
        container.movement_service.update_movement_status(entry.id, {'notes': 42})
    assert container.movement_repo.get_movement(entry.id)['notes'] == 'ok'
