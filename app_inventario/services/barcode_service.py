# ==============================================================================
# SERVICIO DE CÓDIGOS DE BARRAS
# ==============================================================================
# Generación de códigos únicos FULREF#### y renderizado de etiquetas Code128
# en SVG con python-barcode.
# ==============================================================================

import io
import logging
import random
from typing import Callable, Optional

import barcode
from barcode.errors import BarcodeError
from barcode.writer import SVGWriter

from app_inventario.errors import BarcodeGenerationError, ValidationError
from app_inventario.repositories.interfaces import IProductRepository
from app_inventario.services.retry_policy import RetryPolicy

LOGGER = logging.getLogger(__name__)

BARCODE_PREFIX = 'FULREF'
MAX_GENERATION_ATTEMPTS = 10


class BarcodeService:
    """Códigos de barras de productos."""

    def __init__(
        self,
        product_repo: IProductRepository,
        retry_policy: Optional[RetryPolicy] = None,
        randint: Optional[Callable[[int, int], int]] = None,
    ):
        """
        Args:
            product_repo: Repositorio de productos (para verificar unicidad)
            retry_policy: Política de reintentos compartida
            randint: Generador de enteros (inyectable para pruebas)
        """
        self.product_repo = product_repo
        self.retry_policy = retry_policy or RetryPolicy()
        self._randint = randint or random.randint

    def is_barcode_unique(self, code: str, exclude_product_id: Optional[str] = None) -> bool:
        """
        True si ningún producto usa el código.

        Args:
            code: Código a verificar
            exclude_product_id: Producto a ignorar (el que se está editando)
        """
        existing = self.retry_policy.call(self.product_repo.find_by_barcode, code)
        return existing is None or existing.get('id') == exclude_product_id

    def generate_unique_barcode(self) -> str:
        """
        Genera un código FULREF + 4 dígitos que ningún producto use.

        Raises:
            BarcodeGenerationError: Si no encuentra uno libre en 10 intentos
        """
        for _ in range(MAX_GENERATION_ATTEMPTS):
            code = f"{BARCODE_PREFIX}{self._randint(1000, 9999)}"
            if self.is_barcode_unique(code):
                return code
        LOGGER.error("Sin códigos libres tras %d intentos", MAX_GENERATION_ATTEMPTS)
        raise BarcodeGenerationError('No se pudo generar un código único después de varios intentos')

    def render_svg(self, code: str) -> bytes:
        """
        Renderiza el código como etiqueta Code128 en SVG.

        Raises:
            ValidationError: Si el código está vacío o tiene caracteres no válidos
        """
        if not code:
            raise ValidationError('El código de barras es obligatorio')
        code128 = barcode.get_barcode_class('code128')
        buffer = io.BytesIO()
        try:
            code128(code, writer=SVGWriter()).write(buffer, options={
                'module_height': 15.0,
                'font_size': 10,
                'text_distance': 5.0,
                'quiet_zone': 6.5,
            })
        except BarcodeError as e:
            raise ValidationError(f'Código de barras inválido: {code}') from e
        return buffer.getvalue()
