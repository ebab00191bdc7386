# ==============================================================================
# CONFIGURACIÓN DE LOGGING
# ==============================================================================
# Todos los módulos registran con logging.getLogger(__name__), bajo la
# jerarquía "app_inventario". configure_logging() instala un handler de
# consola y, si se indica un directorio, uno de archivo (app.log).
# ==============================================================================

import logging
import os
import threading
from typing import Optional, Union

LOGGER_NAME = 'app_inventario'
LOG_FORMAT = '%(asctime)s [%(levelname)s] %(name)s: %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'

_configured = False
_lock = threading.Lock()


def configure_logging(level: Union[int, str] = logging.INFO, logs_dir: Optional[str] = None) -> None:
    """
    Configura el logger de la aplicación (idempotente).

    Args:
        level: Nivel mínimo (int o nombre, por ejemplo 'DEBUG')
        logs_dir: Directorio para app.log (None = solo consola)
    """
    global _configured
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    with _lock:
        if _configured:
            return

        formatter = logging.Formatter(LOG_FORMAT, DATE_FORMAT)
        handlers = [logging.StreamHandler()]
        if logs_dir:
            os.makedirs(logs_dir, exist_ok=True)
            handlers.append(logging.FileHandler(os.path.join(logs_dir, 'app.log'), encoding='utf-8'))

        # Solo se marca como configurado con todos los handlers instalados
        logger = logging.getLogger(LOGGER_NAME)
        logger.setLevel(level)
        for handler in handlers:
            handler.setFormatter(formatter)
            logger.addHandler(handler)
        _configured = True


def reset_logging() -> None:
    """Quita los handlers instalados. Solo para pruebas."""
    global _configured
    with _lock:
        _configured = False
    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(logging.NOTSET)
