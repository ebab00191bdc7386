# ==============================================================================
# POLÍTICA DE REINTENTOS
# ==============================================================================
# Una sola política compartida por todos los servicios. Solo reintenta
# fallas del backend; los errores de validación, stock o registros
# inexistentes se propagan de inmediato.
#
# Espera lineal: el intento n espera base_delay * n segundos.
# ==============================================================================

import logging
import time
from typing import Any, Callable, List, Optional, Tuple, Type

from app_inventario.errors import BackendUnavailableError

LOGGER = logging.getLogger(__name__)


class RetryPolicy:
    """
    Ejecuta operaciones con reintentos y espera lineal.

    Ejemplo:
        policy = RetryPolicy(max_attempts=3, base_delay=1.0)
        product = policy.call(repo.get_product, product_id)
    """

    def __init__(
        self,
        max_attempts: int = 3,
        base_delay: float = 1.0,
        retry_on: Tuple[Type[BaseException], ...] = (BackendUnavailableError,),
        sleep: Optional[Callable[[float], None]] = None,
    ):
        """
        Args:
            max_attempts: Intentos totales (mínimo 1)
            base_delay: Segundos base de espera
            retry_on: Excepciones que se consideran transitorias
            sleep: Función de espera (inyectable para pruebas)
        """
        self.max_attempts = max(1, int(max_attempts))
        self.base_delay = max(0.0, float(base_delay))
        self.retry_on = tuple(retry_on)
        self._sleep = sleep or time.sleep

    def backoff_schedule(self) -> List[float]:
        """Esperas entre intentos: [base*1, base*2, ...] (una menos que los intentos)."""
        return [self.base_delay * attempt for attempt in range(1, self.max_attempts)]

    def call(self, operation: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        """
        Ejecuta la operación reintentando ante fallas transitorias.

        Returns:
            El resultado de la operación

        Raises:
            La última excepción transitoria si se agotan los intentos, o
            cualquier otra excepción en cuanto ocurre.
        """
        name = getattr(operation, '__qualname__', repr(operation))
        for attempt in range(1, self.max_attempts + 1):
            try:
                return operation(*args, **kwargs)
            except self.retry_on as e:
                if attempt >= self.max_attempts:
                    LOGGER.error("%s falló tras %d intentos: %s", name, attempt, e)
                    raise
                delay = self.base_delay * attempt
                LOGGER.warning(
                    "%s falló (intento %d/%d): %s. Reintentando en %.2fs",
                    name, attempt, self.max_attempts, e, delay,
                )
                if delay > 0:
                    self._sleep(delay)
