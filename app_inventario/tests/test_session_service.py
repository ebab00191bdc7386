import pytest

from app_inventario.errors import AuthenticationError, StoreNotFoundError, ValidationError
from app_inventario.services import CURRENT_STORE_KEY


# ═══════════════════════════════════════════════════════════════════════════
# TIENDA ACTUAL
# ═══════════════════════════════════════════════════════════════════════════

def test_initialize_without_stores_shows_selector(container, user_id):
    storage = {}
    state = container.session_service.initialize(storage, user_id)
    assert state.stores == []
    assert state.current_store is None
    assert state.show_selector is True
    assert CURRENT_STORE_KEY not in storage


def test_initialize_single_store_is_auto_selected(container, store, user_id):
    storage = {}
    state = container.session_service.initialize(storage, user_id)
    assert state.current_store.id == store.id
    assert state.show_selector is False
    assert storage[CURRENT_STORE_KEY]['id'] == store.id


def test_initialize_several_stores_without_selection(container, store, user_id):
    container.store_service.create_store(user_id, 'Segunda')
    state = container.session_service.initialize({}, user_id)
    assert len(state.stores) == 2
    assert state.current_store is None
    assert state.show_selector is True


def test_initialize_keeps_valid_stored_store(container, store, user_id):
    second = container.store_service.create_store(user_id, 'Segunda')
    storage = {}
    container.session_service.select_store(storage, user_id, store.id)

    state = container.session_service.initialize(storage, user_id)
    assert state.current_store.id == store.id
    assert state.show_selector is False
    assert second.id in [s.id for s in state.stores]


def test_initialize_refreshes_stored_copy(container, store, user_id):
    storage = {}
    container.session_service.select_store(storage, user_id, store.id)
    container.store_service.update_store(store.id, user_id, {'name': 'Renombrada'})

    state = container.session_service.initialize(storage, user_id)
    assert state.current_store.name == 'Renombrada'
    assert storage[CURRENT_STORE_KEY]['name'] == 'Renombrada'


def test_initialize_clears_stale_store(container, store, user_id):
    container.store_service.create_store(user_id, 'Segunda')
    container.store_service.create_store(user_id, 'Tercera')
    storage = {}
    container.session_service.select_store(storage, user_id, store.id)
    container.store_service.delete_store(store.id, user_id)

    state = container.session_service.initialize(storage, user_id)
    assert state.current_store is None
    assert state.show_selector is True
    assert CURRENT_STORE_KEY not in storage


def test_stale_store_falls_back_to_single_remaining(container, store, user_id):
    remaining = container.store_service.create_store(user_id, 'Segunda')
    storage = {}
    container.session_service.select_store(storage, user_id, store.id)
    container.store_service.delete_store(store.id, user_id)

    state = container.session_service.initialize(storage, user_id)
    assert state.current_store.id == remaining.id


def test_select_foreign_store(container, user_id):
    foreign = container.store_service.create_store('otro-usuario', 'Ajena')
    storage = {}
    with pytest.raises(StoreNotFoundError):
        container.session_service.select_store(storage, user_id, foreign.id)
    assert container.session_service.current_store_id(storage) is None


def test_corrupted_stored_value_is_ignored(container):
    assert container.session_service.get_stored_store({CURRENT_STORE_KEY: 'basura'}) is None
    assert container.session_service.get_stored_store({CURRENT_STORE_KEY: {'name': 'sin id'}}) is None


def test_session_state_to_dict(container, store, user_id):
    payload = container.session_service.initialize({}, user_id).to_dict()
    assert payload['current_store']['id'] == store.id
    assert payload['show_selector'] is False
    assert payload['stores'][0]['name'] == store.name


# ═══════════════════════════════════════════════════════════════════════════
# AUTENTICACIÓN
# ═══════════════════════════════════════════════════════════════════════════

def test_sign_up_normalizes_and_hashes(container):
    user = container.auth_service.sign_up('  Ana@Tienda.CO ', 'secreto1')
    assert user.email == 'ana@tienda.co'
    assert user.password_hash and user.password_hash != 'secreto1'
    assert 'password' not in user.to_public_dict()


@pytest.mark.parametrize('email, password', [
    ('sin-arroba', 'secreto1'),
    ('', 'secreto1'),
    ('ana@tienda.co', '123'),
])
def test_sign_up_validation(container, email, password):
    with pytest.raises(ValidationError):
        container.auth_service.sign_up(email, password)


def test_sign_up_duplicate_email(container):
    container.auth_service.sign_up('ana@tienda.co', 'secreto1')
    with pytest.raises(ValidationError):
        container.auth_service.sign_up('ANA@tienda.co', 'otraclave')


def test_sign_in_wrong_password(container):
    container.auth_service.sign_up('ana@tienda.co', 'secreto1')
    with pytest.raises(AuthenticationError):
        container.auth_service.sign_in('ana@tienda.co', 'incorrecta')
    with pytest.raises(AuthenticationError):
        container.auth_service.sign_in('nadie@tienda.co', 'secreto1')


def test_sign_in_discards_previous_store(container, store):
    user = container.auth_service.sign_up('ana@tienda.co', 'secreto1')
    storage = {CURRENT_STORE_KEY: store.to_dict(), 'user_id': 'anterior'}

    container.auth_service.sign_in('ana@tienda.co', 'secreto1', storage)
    assert storage['user_id'] == user.id
    assert storage['user_email'] == 'ana@tienda.co'
    assert CURRENT_STORE_KEY not in storage


def test_sign_out_clears_session(container, store):
    storage = {CURRENT_STORE_KEY: store.to_dict(), 'user_id': 'u', 'user_email': 'ana@tienda.co'}
    container.auth_service.sign_out(storage)
    assert storage == {}
