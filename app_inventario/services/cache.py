# ==============================================================================
# CACHÉ EN MEMORIA CON EXPIRACIÓN
# ==============================================================================
# - Lecturas desde memoria mientras la entrada no haya expirado
# - Lock reentrante para thread-safety
# - Cada servicio es dueño de su instancia (sin variables globales)
# ==============================================================================

import threading
import time
from typing import Any, Callable, Dict, Hashable, Optional, Tuple


class TTLCache:
    """
    Caché clave→valor con tiempo de vida.

    Ejemplo:
        cache = TTLCache(ttl_seconds=300)
        stores = cache.get_or_fetch(user_id, lambda: repo.list_by_user(user_id))
        cache.invalidate(user_id)
    """

    def __init__(self, ttl_seconds: float = 300, clock: Optional[Callable[[], float]] = None):
        """
        Args:
            ttl_seconds: Vida de cada entrada en segundos (0 desactiva el caché)
            clock: Reloj monotónico (inyectable para pruebas)
        """
        self.ttl_seconds = float(ttl_seconds)
        self._clock = clock or time.monotonic
        self._data: Dict[Hashable, Tuple[float, Any]] = {}
        self._lock = threading.RLock()

    def get_or_fetch(self, key: Hashable, fetch: Callable[[], Any]) -> Any:
        """
        Obtiene el valor del caché o lo carga si no existe o expiró.

        Args:
            key: Clave de la entrada
            fetch: Función que carga el valor

        Returns:
            Valor cacheado (o recién cargado)
        """
        with self._lock:
            now = self._clock()
            entry = self._data.get(key)
            if entry is not None and now - entry[0] < self.ttl_seconds:
                return entry[1]
            value = fetch()
            self._data[key] = (now, value)
            return value

    def invalidate(self, key: Optional[Hashable] = None) -> None:
        """Invalida una clave, o todo el caché si no se indica ninguna."""
        with self._lock:
            if key is None:
                self._data.clear()
            else:
                self._data.pop(key, None)

    def __contains__(self, key: Hashable) -> bool:
        with self._lock:
            entry = self._data.get(key)
            return entry is not None and self._clock() - entry[0] < self.ttl_seconds
