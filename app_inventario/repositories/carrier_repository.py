# ==============================================================================
# REPOSITORIO DE TRANSPORTADORAS
# ==============================================================================
# carriers.json ({carrier_id: {datos}}). La aplicación solo lee esta tabla;
# si no existe se crea con las transportadoras por defecto.
# ==============================================================================

import os
from typing import Any, Dict, List, Optional

from app_inventario.repositories.base import DictRepository

DEFAULT_CARRIERS = [
    {'id': 'servientrega', 'name': 'Servientrega', 'code': 'SERVI', 'is_active': True},
    {'id': 'coordinadora', 'name': 'Coordinadora', 'code': 'COORD', 'is_active': True},
    {'id': 'interrapidisimo', 'name': 'Interrapidísimo', 'code': 'INTER', 'is_active': True},
    {'id': 'envia', 'name': 'Envía', 'code': 'ENVIA', 'is_active': True},
    {'id': 'tcc', 'name': 'TCC', 'code': 'TCC', 'is_active': True},
]


class CarrierRepository(DictRepository):
    """Repositorio para la tabla de transportadoras."""

    def __init__(self, base_path: str):
        super().__init__(os.path.join(base_path, 'carriers.json'))

    def _empty_data(self) -> Dict:
        return {c['id']: dict(c) for c in DEFAULT_CARRIERS}

    def list_active(self) -> List[Dict[str, Any]]:
        active = [dict(c) for c in self.get_all().values() if c.get('is_active', True)]
        return sorted(active, key=lambda c: (c.get('name') or '').lower())

    def get_carrier(self, carrier_id: str) -> Optional[Dict[str, Any]]:
        if not carrier_id:
            return None
        return self.get_by_id(carrier_id)
