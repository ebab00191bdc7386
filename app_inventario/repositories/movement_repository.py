# ==============================================================================
# REPOSITORIO DE MOVIMIENTOS (LIBRO MAYOR)
# ==============================================================================
# Encapsula el acceso a inventory_movements.json
# Tabla de solo inserción: las filas nunca se borran ni se reescriben, salvo
# los campos de estado del envío.
# ==============================================================================

import os
from typing import Any, Callable, Dict, List, Optional

from app_inventario.models import MOVEMENT_STATUS_FIELDS
from app_inventario.repositories.base import ListRepository
from app_inventario.repositories.product_repository import newest_first


class MovementRepository(ListRepository):
    """
    Repositorio para el libro mayor de inventario.

    Formato de datos en inventory_movements.json:
    [
        {
            "id": "...",
            "product_id": "...",
            "type": "salida",
            "quantity": 2,
            "previous_stock": 10,
            "new_stock": 8,
            "tracking_number": "GU123",
            ...
        },
        ...
    ]
    """

    def __init__(self, base_path: str):
        super().__init__(os.path.join(base_path, 'inventory_movements.json'))

    def insert_movement(self, data: Dict[str, Any]) -> Dict[str, Any]:
        return self.append(data)

    def get_movement(self, movement_id: str) -> Optional[Dict[str, Any]]:
        return self.find_by('id', movement_id)

    def find_by_idempotency_key(self, store_id: str, key: str) -> Optional[Dict[str, Any]]:
        """Las claves son únicas por tienda: otra tienda puede repetirlas."""
        if not key:
            return None
        matches = self.filter(
            lambda r: r.get('store_id') == store_id and r.get('idempotency_key') == key
        )
        return matches[0] if matches else None

    def list_by_store(
        self,
        store_id: str,
        predicate: Optional[Callable[[Dict[str, Any]], bool]] = None,
    ) -> List[Dict[str, Any]]:
        """
        Movimientos de una tienda, más recientes primero.

        Args:
            store_id: Tienda
            predicate: Filtro adicional opcional sobre cada fila
        """
        rows = self.filter(
            lambda r: r.get('store_id') == store_id and (predicate is None or predicate(r))
        )
        return newest_first(rows)

    def patch_status(self, movement_id: str, changes: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        changes = {k: v for k, v in changes.items() if k in MOVEMENT_STATUS_FIELDS}
        return self.update_where('id', movement_id, changes)
