# ==============================================================================
# CAPA DE REPOSITORIOS - Acceso a datos
# ==============================================================================
# Esta capa encapsula todo el acceso al backend (actualmente archivos JSON).
# Cambiar a una base de datos remota solo requiere modificar esta capa.
# Las interfaces (métodos públicos) permanecen iguales.
#
# ESTRUCTURA:
# ├── interfaces.py           → Protocolos/Interfaces (contratos del backend)
# ├── base.py                 → Clases base JSON (DictRepository, ListRepository)
# ├── product_repository.py   → products.json (incluye apply_stock_delta)
# ├── store_repository.py     → stores.json, store_users.json
# ├── movement_repository.py  → inventory_movements.json
# ├── carrier_repository.py   → carriers.json
# ├── user_repository.py      → users.json
# └── image_repository.py     → product-images/
#
# MIGRACIÓN A OTRO BACKEND:
# 1. Crear clases que implementen las interfaces de interfaces.py
# 2. Cambiar las instancias en app_container.py
# 3. Los services NO requieren cambios (dependen de interfaces)
# ==============================================================================

# Interfaces
from app_inventario.repositories.interfaces import (
    IRepository,
    IProductRepository,
    IStoreRepository,
    IStoreMemberRepository,
    IMovementRepository,
    ICarrierRepository,
    IUserRepository,
    IImageRepository,
)

# Implementaciones concretas (JSON)
from app_inventario.repositories.base import BaseRepository, DictRepository, ListRepository
from app_inventario.repositories.product_repository import ProductRepository
from app_inventario.repositories.store_repository import StoreMemberRepository, StoreRepository
from app_inventario.repositories.movement_repository import MovementRepository
from app_inventario.repositories.carrier_repository import CarrierRepository
from app_inventario.repositories.user_repository import UserRepository
from app_inventario.repositories.image_repository import ImageRepository

__all__ = [
    # Interfaces
    'IRepository',
    'IProductRepository',
    'IStoreRepository',
    'IStoreMemberRepository',
    'IMovementRepository',
    'ICarrierRepository',
    'IUserRepository',
    'IImageRepository',

    # Clases base
    'BaseRepository',
    'DictRepository',
    'ListRepository',

    # Implementaciones JSON
    'ProductRepository',
    'StoreRepository',
    'StoreMemberRepository',
    'MovementRepository',
    'CarrierRepository',
    'UserRepository',
    'ImageRepository',
]
