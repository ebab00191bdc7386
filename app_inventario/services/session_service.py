# ==============================================================================
# SERVICIO DE SESIÓN - Tienda actual
# ==============================================================================
# La tienda actual se guarda del lado del cliente, en un almacenamiento
# clave-valor (la cookie firmada de sesión de Flask en la web, un dict en
# pruebas), bajo la clave "currentStore". Al iniciar sesión se revalida
# contra la lista de tiendas del servidor.
# ==============================================================================

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, MutableMapping, Optional

from app_inventario.errors import StoreNotFoundError
from app_inventario.models import Store
from app_inventario.services.store_service import StoreService

LOGGER = logging.getLogger(__name__)

CURRENT_STORE_KEY = 'currentStore'


@dataclass
class SessionState:
    """
    Estado inicial de la sesión.

    Attributes:
        stores: Tiendas del usuario
        current_store: Tienda seleccionada (None si hay que elegir)
        show_selector: True si la UI debe mostrar el selector de tiendas
    """
    stores: List[Store] = field(default_factory=list)
    current_store: Optional[Store] = None
    show_selector: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            'stores': [s.to_dict() for s in self.stores],
            'current_store': self.current_store.to_dict() if self.current_store else None,
            'show_selector': self.show_selector,
        }


class SessionService:
    """Selección y persistencia de la tienda actual."""

    def __init__(self, store_service: StoreService):
        self.store_service = store_service

    # =========================================================================
    # ALMACENAMIENTO DEL CLIENTE
    # =========================================================================

    def save_current_store(self, storage: MutableMapping[str, Any], store: Store) -> None:
        storage[CURRENT_STORE_KEY] = store.to_dict()
        LOGGER.info("Tienda actual guardada: %s", store.id)

    def get_stored_store(self, storage: MutableMapping[str, Any]) -> Optional[Store]:
        """Tienda guardada, o None si no hay o el valor está dañado."""
        data = storage.get(CURRENT_STORE_KEY)
        if not isinstance(data, dict) or not data.get('id'):
            return None
        return Store.from_dict(data)

    def clear_stored_store(self, storage: MutableMapping[str, Any]) -> None:
        if storage.pop(CURRENT_STORE_KEY, None) is not None:
            LOGGER.info("Tienda actual borrada de la sesión")

    # =========================================================================
    # INICIO DE SESIÓN Y SELECCIÓN
    # =========================================================================

    def initialize(self, storage: MutableMapping[str, Any], user_id: str) -> SessionState:
        """
        Revalida la tienda guardada contra las tiendas del usuario.

        - Tienda guardada que sigue existiendo → se mantiene
        - Sin tiendas → selector (para crear una)
        - Exactamente una tienda → se selecciona sola
        - Varias tiendas sin selección válida → selector

        Una tienda guardada que ya no existe se borra del almacenamiento.
        """
        stores = self.store_service.list_user_stores(user_id)
        stored = self.get_stored_store(storage)

        if stored is not None:
            match = next((s for s in stores if s.id == stored.id), None)
            if match is not None:
                self.save_current_store(storage, match)
                return SessionState(stores=stores, current_store=match, show_selector=False)
            LOGGER.info("La tienda guardada %s ya no existe", stored.id)
            self.clear_stored_store(storage)

        if len(stores) == 1:
            self.save_current_store(storage, stores[0])
            return SessionState(stores=stores, current_store=stores[0], show_selector=False)

        return SessionState(stores=stores, current_store=None, show_selector=True)

    def select_store(self, storage: MutableMapping[str, Any], user_id: str, store_id: str) -> Store:
        """
        Selecciona una de las tiendas del usuario como tienda actual.

        Raises:
            StoreNotFoundError: Si la tienda no pertenece al usuario
        """
        stores = self.store_service.list_user_stores(user_id)
        store = next((s for s in stores if s.id == store_id), None)
        if store is None:
            raise StoreNotFoundError(store_id)
        self.save_current_store(storage, store)
        return store

    def current_store_id(self, storage: MutableMapping[str, Any]) -> Optional[str]:
        stored = self.get_stored_store(storage)
        return stored.id if stored else None
