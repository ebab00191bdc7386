# ==============================================================================
# REPOSITORIO DE TIENDAS
# ==============================================================================
# Encapsula el acceso a stores.json ({store_id: {datos_tienda}}) y a
# store_users.json ([{store_id, user_id, role}], miembros de cada tienda)
# ==============================================================================

import os
from typing import Any, Dict, List, Optional

from app_inventario.repositories.base import DictRepository, ListRepository
from app_inventario.repositories.product_repository import newest_first


class StoreRepository(DictRepository):
    """Repositorio para la tabla de tiendas."""

    EDITABLE_FIELDS = ('name', 'description', 'address')

    def __init__(self, base_path: str):
        super().__init__(os.path.join(base_path, 'stores.json'))

    def get_store(self, store_id: str) -> Optional[Dict[str, Any]]:
        return self.get_by_id(store_id)

    def list_by_user(self, user_id: str) -> List[Dict[str, Any]]:
        return newest_first(self.find_all_by('user_id', user_id))

    def create_store(self, data: Dict[str, Any]) -> Dict[str, Any]:
        return self.insert(data)

    def update_store(self, store_id: str, changes: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        changes = {k: v for k, v in changes.items() if k in self.EDITABLE_FIELDS}
        return self.update(store_id, changes)

    def delete_store(self, store_id: str) -> Optional[Dict[str, Any]]:
        return self.delete(store_id)


class StoreMemberRepository(ListRepository):
    """Repositorio para la tabla store_users (solo inserción)."""

    def __init__(self, base_path: str):
        super().__init__(os.path.join(base_path, 'store_users.json'))

    def add_member(self, data: Dict[str, Any]) -> Dict[str, Any]:
        return self.append(data)

    def find_member(self, store_id: str, user_id: str) -> Optional[Dict[str, Any]]:
        matches = self.filter(lambda r: r.get('store_id') == store_id and r.get('user_id') == user_id)
        return matches[0] if matches else None

    def list_by_user(self, user_id: str) -> List[Dict[str, Any]]:
        return self.filter(lambda r: r.get('user_id') == user_id)
