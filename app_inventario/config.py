# ==============================================================================
# CONFIGURACIÓN
# ==============================================================================
# Todo se lee de variables de entorno con valores por defecto para
# desarrollo. Las pruebas pasan overrides a load_config().
#
# SECRET_KEY: En producción DEBE definirse via variable de entorno
# Comando: export INVENTARIO_SECRET_KEY="tu_clave_secreta_muy_larga_y_aleatoria"
# ==============================================================================

import logging
import os
from typing import Any, Dict, Optional

LOGGER = logging.getLogger(__name__)

BASE = os.path.dirname(os.path.abspath(__file__))

_DEFAULT_SECRET = "app_inventario_dev_secret_key_change_in_production"


def _env_bool(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


def _env_int(name: str, default: int) -> int:
    value = os.environ.get(name)
    try:
        return int(value) if value not in (None, '') else default
    except ValueError:
        LOGGER.warning("Valor inválido para %s: %r, se usa %s", name, value, default)
        return default


def _env_float(name: str, default: float) -> float:
    value = os.environ.get(name)
    try:
        return float(value) if value not in (None, '') else default
    except ValueError:
        LOGGER.warning("Valor inválido para %s: %r, se usa %s", name, value, default)
        return default


def load_config(overrides: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """
    Construye la configuración de la aplicación.

    Args:
        overrides: Valores que reemplazan a los del entorno (pruebas)

    Returns:
        dict apto para app.config.update()
    """
    production = _env_bool('INVENTARIO_PRODUCTION', False)
    secret = os.environ.get('INVENTARIO_SECRET_KEY')
    if production and not secret:
        LOGGER.warning("INVENTARIO_PRODUCTION activo sin INVENTARIO_SECRET_KEY definida")

    data_dir = os.environ.get('INVENTARIO_DATA_DIR') or os.path.join(BASE, 'data')

    config: Dict[str, Any] = {
        'SECRET_KEY': secret or _DEFAULT_SECRET,
        'PRODUCTION': production,
        'DATA_DIR': data_dir,
        'LOG_LEVEL': os.environ.get('INVENTARIO_LOG_LEVEL', 'INFO'),
        'LOGS_DIR': os.environ.get('INVENTARIO_LOGS_DIR'),
        'ENABLE_PROFILING': _env_bool('INVENTARIO_ENABLE_PROFILING', True),
        'RETRY_MAX_ATTEMPTS': _env_int('INVENTARIO_RETRY_MAX_ATTEMPTS', 3),
        'RETRY_BASE_DELAY': _env_float('INVENTARIO_RETRY_BASE_DELAY', 1.0),
        'STORES_CACHE_TTL': _env_float('INVENTARIO_STORES_CACHE_TTL', 300),
        'MAX_CONTENT_LENGTH': _env_int('INVENTARIO_MAX_UPLOAD_MB', 5) * 1024 * 1024,

        # Cookies de sesión
        'SESSION_COOKIE_HTTPONLY': True,      # Protege contra XSS
        'SESSION_COOKIE_SECURE': production,  # Solo HTTPS en producción
        'SESSION_COOKIE_SAMESITE': 'Lax',     # Protección CSRF básica
        'PERMANENT_SESSION_LIFETIME': 86400,  # 24 horas
    }

    if overrides:
        config.update(overrides)

    if not config.get('LOGS_DIR'):
        config['LOGS_DIR'] = os.path.join(config['DATA_DIR'], 'logs')

    return config
