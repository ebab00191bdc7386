# ==============================================================================
# CAPA DE MODELOS - Estructuras de datos del sistema
# ==============================================================================
# Este módulo define todas las entidades del dominio usando dataclasses.
# Beneficios:
#   - Type hints para mejor documentación y autocompletado
#   - Fácil serialización/deserialización para JSON
#   - Independiente del mecanismo de persistencia
# ==============================================================================

from .entities import (
    # Enumeraciones y constantes
    MovementType,
    CATEGORIES,
    DELETED_PRODUCT_LABEL,
    MOVEMENT_STATUS_FIELDS,
    stock_delta,
    parse_bool,

    # Usuarios y tiendas
    User,
    Store,
    StoreMember,
    STORE_ROLES,
    Carrier,

    # Productos
    Product,

    # Libro mayor
    ShipmentInfo,
    MovementRequest,
    InventoryMovement,
    MovementView,
    MovementPage,

    # Lotes
    BatchLineResult,
    BatchResult,
)

__all__ = [
    'MovementType',
    'CATEGORIES',
    'DELETED_PRODUCT_LABEL',
    'MOVEMENT_STATUS_FIELDS',
    'stock_delta',
    'parse_bool',
    'User',
    'Store',
    'StoreMember',
    'STORE_ROLES',
    'Carrier',
    'Product',
    'ShipmentInfo',
    'MovementRequest',
    'InventoryMovement',
    'MovementView',
    'MovementPage',
    'BatchLineResult',
    'BatchResult',
]
