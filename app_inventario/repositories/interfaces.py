# ==============================================================================
# INTERFACES DE REPOSITORIOS
# ==============================================================================
#
# Contratos que cualquier implementación de almacenamiento debe cumplir.
# Los servicios dependen de estas interfaces, NO de los archivos JSON, así
# que un backend remoto (Postgres, un servicio gestionado) solo requiere
# nuevas clases que las implementen y un cambio en app_container.py.
#
# PRIMITIVAS ATÓMICAS:
# El contador de stock es un recurso compartido. La única forma de
# modificarlo es apply_stock_delta(), que expresa en el borde del
# almacenamiento "stock = stock + delta si stock + delta >= 0", y
# transaction(), que agrupa el cambio de stock con la inserción del
# movimiento. Un backend SQL lo implementaría como
#   UPDATE products SET stock = stock + :delta
#   WHERE id = :id AND stock + :delta >= 0 RETURNING stock
# dentro de una transacción serializable.
#
# ==============================================================================

from contextlib import AbstractContextManager
from typing import Any, BinaryIO, Callable, Dict, List, Optional, Protocol, Tuple, runtime_checkable


@runtime_checkable
class IRepository(Protocol):
    """Operaciones mínimas que cualquier repositorio debe soportar."""

    def transaction(self) -> AbstractContextManager:
        """Alcance serializado para varias operaciones."""
        ...


@runtime_checkable
class IProductRepository(IRepository, Protocol):
    """Tabla products."""

    def get_product(self, product_id: str) -> Optional[Dict[str, Any]]:
        ...

    def list_by_store(self, store_id: str) -> List[Dict[str, Any]]:
        """Productos de una tienda, más recientes primero."""
        ...

    def find_by_barcode(self, barcode: str) -> Optional[Dict[str, Any]]:
        ...

    def create_product(self, data: Dict[str, Any]) -> Dict[str, Any]:
        ...

    def update_product(self, product_id: str, changes: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Actualiza campos descriptivos. Nunca toca el stock."""
        ...

    def delete_product(self, product_id: str) -> Optional[Dict[str, Any]]:
        ...

    def apply_stock_delta(self, product_id: str, delta: int) -> Tuple[int, int]:
        """
        Actualización condicional atómica del stock.

        Returns:
            (stock_anterior, stock_nuevo)

        Raises:
            ProductNotFoundError: Si el producto no existe
            InsufficientStockError: Si el stock quedaría negativo (sin escribir nada)
        """
        ...


@runtime_checkable
class IStoreRepository(IRepository, Protocol):
    """Tabla stores."""

    def get_store(self, store_id: str) -> Optional[Dict[str, Any]]:
        ...

    def list_by_user(self, user_id: str) -> List[Dict[str, Any]]:
        """Tiendas de un usuario, más recientes primero."""
        ...

    def create_store(self, data: Dict[str, Any]) -> Dict[str, Any]:
        ...

    def update_store(self, store_id: str, changes: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        ...

    def delete_store(self, store_id: str) -> Optional[Dict[str, Any]]:
        ...


@runtime_checkable
class IStoreMemberRepository(IRepository, Protocol):
    """Tabla store_users (miembros de una tienda con su rol)."""

    def add_member(self, data: Dict[str, Any]) -> Dict[str, Any]:
        ...

    def find_member(self, store_id: str, user_id: str) -> Optional[Dict[str, Any]]:
        ...

    def list_by_user(self, user_id: str) -> List[Dict[str, Any]]:
        ...


@runtime_checkable
class IMovementRepository(IRepository, Protocol):
    """Tabla inventory_movements (solo inserción)."""

    def insert_movement(self, data: Dict[str, Any]) -> Dict[str, Any]:
        ...

    def get_movement(self, movement_id: str) -> Optional[Dict[str, Any]]:
        ...

    def find_by_idempotency_key(self, store_id: str, key: str) -> Optional[Dict[str, Any]]:
        ...

    def list_by_store(
        self,
        store_id: str,
        predicate: Optional[Callable[[Dict[str, Any]], bool]] = None,
    ) -> List[Dict[str, Any]]:
        """Movimientos de una tienda, más recientes primero."""
        ...

    def patch_status(self, movement_id: str, changes: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Único camino de modificación: campos de estado del envío."""
        ...


@runtime_checkable
class ICarrierRepository(IRepository, Protocol):
    """Tabla carriers (solo lectura para la aplicación)."""

    def list_active(self) -> List[Dict[str, Any]]:
        ...

    def get_carrier(self, carrier_id: str) -> Optional[Dict[str, Any]]:
        ...


@runtime_checkable
class IUserRepository(IRepository, Protocol):
    """Usuarios del servicio de autenticación."""

    def get_user(self, user_id: str) -> Optional[Dict[str, Any]]:
        ...

    def find_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        ...

    def create_user(self, email: str, password_hash: str) -> Dict[str, Any]:
        ...


@runtime_checkable
class IImageRepository(Protocol):
    """Almacenamiento de objetos para imágenes de producto."""

    def save(self, stream: BinaryIO, original_filename: str) -> str:
        """Guarda la imagen y retorna su URL pública."""
        ...

    def path_for(self, filename: str) -> Optional[str]:
        ...
