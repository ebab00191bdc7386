import logging
import os

import pytest

from app_inventario import performance_logger
from app_inventario.config import load_config
from app_inventario.logging_config import LOGGER_NAME, configure_logging, reset_logging


@pytest.fixture
def clean_logging():
    reset_logging()
    yield
    reset_logging()


def test_load_config_defaults(monkeypatch, tmp_path):
    for name in ('INVENTARIO_PRODUCTION', 'INVENTARIO_RETRY_MAX_ATTEMPTS', 'INVENTARIO_LOGS_DIR'):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv('INVENTARIO_DATA_DIR', str(tmp_path))

    config = load_config()
    assert config['DATA_DIR'] == str(tmp_path)
    assert config['LOGS_DIR'] == os.path.join(str(tmp_path), 'logs')
    assert config['RETRY_MAX_ATTEMPTS'] == 3
    assert config['SESSION_COOKIE_HTTPONLY'] is True
    assert config['SESSION_COOKIE_SECURE'] is False


def test_load_config_from_environment(monkeypatch):
    monkeypatch.setenv('INVENTARIO_PRODUCTION', 'true')
    monkeypatch.setenv('INVENTARIO_SECRET_KEY', 'clave-de-prueba')
    monkeypatch.setenv('INVENTARIO_RETRY_MAX_ATTEMPTS', '5')
    monkeypatch.setenv('INVENTARIO_STORES_CACHE_TTL', 'no-es-numero')

    config = load_config({'RETRY_BASE_DELAY': 0})
    assert config['PRODUCTION'] is True
    assert config['SESSION_COOKIE_SECURE'] is True
    assert config['SECRET_KEY'] == 'clave-de-prueba'
    assert config['RETRY_MAX_ATTEMPTS'] == 5
    assert config['RETRY_BASE_DELAY'] == 0
    assert config['STORES_CACHE_TTL'] == 300


def test_configure_logging_is_idempotent(clean_logging, tmp_path):
    configure_logging('DEBUG', str(tmp_path))
    configure_logging('ERROR', str(tmp_path))

    logger = logging.getLogger(LOGGER_NAME)
    assert logger.level == logging.DEBUG
    assert len(logger.handlers) == 2

    logging.getLogger(LOGGER_NAME + '.services').info('hola')
    for handler in logger.handlers:
        handler.flush()
    with open(os.path.join(str(tmp_path), 'app.log'), encoding='utf-8') as f:
        assert 'hola' in f.read()


def test_failed_configuration_can_be_retried(clean_logging, tmp_path, monkeypatch):
    real_file_handler = logging.FileHandler

    def broken_file_handler(*args, **kwargs):
        raise OSError('sin permisos')

    monkeypatch.setattr(logging, 'FileHandler', broken_file_handler)
    with pytest.raises(OSError):
        configure_logging('INFO', str(tmp_path))
    assert logging.getLogger(LOGGER_NAME).handlers == []

    monkeypatch.setattr(logging, 'FileHandler', real_file_handler)
    configure_logging('INFO', str(tmp_path))
    assert len(logging.getLogger(LOGGER_NAME).handlers) == 2


def test_profile_function_collects_stats():
    performance_logger.reset_stats()
    performance_logger.set_enabled(True)

    @performance_logger.profile_function(name='Suma')
    def add(a, b):
        return a + b

    assert add(1, 2) == 3
    assert add(2, 2) == 4
    stats = performance_logger.get_function_stats()
    assert stats['Suma']['calls'] == 2

    performance_logger.set_enabled(False)
    add(0, 0)
    assert performance_logger.get_function_stats()['Suma']['calls'] == 2
    performance_logger.reset_stats()


def test_movement_service_is_profiled(container, make_product, movement):
    performance_logger.reset_stats()
    performance_logger.set_enabled(True)
    try:
        product = make_product()
        container.movement_service.record_batch([movement(product.id, 'entrada', 1)])
        stats = performance_logger.get_function_stats()
        assert stats['Confirmar carrito']['calls'] == 1
        assert stats['Registrar movimiento']['calls'] == 1
    finally:
        performance_logger.reset_stats()
