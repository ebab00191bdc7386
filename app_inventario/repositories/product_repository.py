# ==============================================================================
# REPOSITORIO DE PRODUCTOS
# ==============================================================================
# Encapsula todo el acceso a products.json
# Los productos se almacenan como diccionario: {product_id: {datos_producto}}
# ==============================================================================

import os
from typing import Any, Dict, List, Optional, Tuple

from app_inventario.errors import InsufficientStockError, ProductNotFoundError
from app_inventario.repositories.base import DictRepository


def newest_first(records: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """
    Ordena por created_at descendente. A igual fecha, el registro insertado
    después va primero.
    """
    return sorted(reversed(records), key=lambda r: r.get('created_at') or '', reverse=True)


class ProductRepository(DictRepository):
    """
    Repositorio para la tabla de productos.

    Formato de datos en products.json:
    {
        "5b0c...": {
            "id": "5b0c...",
            "name": "Audífonos",
            "category": "Electronica",
            "stock": 10,
            "barcode": "FULREF4821",
            "store_id": "...",
            ...
        }
    }

    El campo stock solo cambia a través de apply_stock_delta().
    """

    def __init__(self, base_path: str):
        """
        Args:
            base_path: Directorio de datos
        """
        super().__init__(os.path.join(base_path, 'products.json'))

    def get_product(self, product_id: str) -> Optional[Dict[str, Any]]:
        return self.get_by_id(product_id)

    def list_by_store(self, store_id: str) -> List[Dict[str, Any]]:
        return newest_first(self.find_all_by('store_id', store_id))

    def find_by_barcode(self, barcode: str) -> Optional[Dict[str, Any]]:
        if not barcode:
            return None
        return self.find_by('barcode', barcode)

    def create_product(self, data: Dict[str, Any]) -> Dict[str, Any]:
        record = dict(data)
        record['stock'] = int(record.get('stock') or 0)
        return self.insert(record)

    def update_product(self, product_id: str, changes: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        changes = {k: v for k, v in changes.items() if k not in ('id', 'stock', 'created_at')}
        return self.update(product_id, changes)

    def delete_product(self, product_id: str) -> Optional[Dict[str, Any]]:
        return self.delete(product_id)

    def apply_stock_delta(self, product_id: str, delta: int) -> Tuple[int, int]:
        """
        Actualización condicional: stock = stock + delta solo si el resultado
        no es negativo. Lectura, comprobación y escritura ocurren bajo el
        mismo lock, así que dos llamadas concurrentes nunca leen el mismo
        valor previo.

        Args:
            product_id: ID del producto
            delta: Cambio con signo

        Returns:
            (stock_anterior, stock_nuevo)

        Raises:
            ProductNotFoundError: Si el producto no existe
            InsufficientStockError: Si el stock quedaría negativo
        """
        with self._file_lock:
            data = self.get_all()
            record = data.get(str(product_id))
            if record is None:
                raise ProductNotFoundError(product_id)

            previous = int(record.get('stock') or 0)
            new_stock = previous + delta
            if new_stock < 0:
                raise InsufficientStockError(product_id, previous, delta)

            record['stock'] = new_stock
            self._write_raw(data)
            return previous, new_stock
