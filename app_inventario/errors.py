# ==============================================================================
# EXCEPCIONES DEL DOMINIO
# ==============================================================================
# Todas las fallas de esta capa son recuperables (reintento o corrección del
# usuario). Las rutas Flask traducen cada tipo a un código HTTP en main.py.
# ==============================================================================

from typing import Optional


class InventarioError(Exception):
    """Excepción base de la aplicación."""


class ValidationError(InventarioError):
    """Campo requerido ausente o inválido. Se lanza antes de cualquier escritura."""


class DuplicateBarcodeError(ValidationError):
    """El código de barras ya pertenece a otro producto."""

    def __init__(self, barcode: str):
        self.barcode = barcode
        super().__init__(f"El código de barras {barcode} ya está en uso")


class NotFoundError(InventarioError):
    """El registro referenciado no existe."""


class ProductNotFoundError(NotFoundError):
    def __init__(self, product_id: str):
        self.product_id = product_id
        super().__init__(f"Producto {product_id} no encontrado")


class StoreNotFoundError(NotFoundError):
    def __init__(self, store_id: str):
        self.store_id = store_id
        super().__init__(f"Tienda {store_id} no encontrada")


class MovementNotFoundError(NotFoundError):
    def __init__(self, movement_id: str):
        self.movement_id = movement_id
        super().__init__(f"Movimiento {movement_id} no encontrado")


class InsufficientStockError(InventarioError):
    """El movimiento dejaría el stock en negativo."""

    def __init__(self, product_id: str, current_stock: int, delta: int):
        self.product_id = product_id
        self.current_stock = current_stock
        self.delta = delta
        super().__init__(
            f"Stock insuficiente para este movimiento "
            f"(actual: {current_stock}, cambio: {delta})"
        )


class BackendUnavailableError(InventarioError):
    """Falla de almacenamiento (E/S, tabla corrupta o reintentos agotados)."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        self.cause = cause
        super().__init__(message)


class LedgerInconsistencyError(InventarioError):
    """
    No se pudo compensar una escritura de stock tras fallar el registro del
    movimiento. No es reintentable: requiere revisión manual.
    """


class AuthenticationError(InventarioError):
    """Credenciales inválidas o sesión inexistente."""


class BarcodeGenerationError(InventarioError):
    """No se encontró un código de barras libre en los intentos permitidos."""
