# ==============================================================================
# CAPA DE SERVICIOS - Lógica de negocio
# ==============================================================================
# Esta capa contiene TODA la lógica de negocio de la aplicación.
#
# PRINCIPIOS:
# 1. Los servicios orquestan operaciones entre repositorios
# 2. Aplican reglas de negocio y validaciones
# 3. Las rutas (controllers) solo llaman a servicios
# 4. Los servicios NO conocen el tipo de almacenamiento
# 5. Toda llamada al backend pasa por la RetryPolicy compartida
#
# ESTRUCTURA:
# ├── movement_service.py       → Libro mayor: registro de movimientos y carritos
# ├── movement_query_service.py → Listado filtrado/paginado y estadísticas
# ├── store_service.py          → Tiendas del usuario (con caché)
# ├── session_service.py        → Tienda actual de la sesión
# ├── auth_service.py           → Registro, inicio y cierre de sesión
# ├── product_service.py        → Productos, imágenes, importación
# ├── barcode_service.py        → Códigos FULREF y etiquetas SVG
# ├── retry_policy.py           → Reintentos con espera lineal
# └── cache.py                  → Caché en memoria con expiración
# ==============================================================================

from app_inventario.services.retry_policy import RetryPolicy
from app_inventario.services.cache import TTLCache
from app_inventario.services.movement_service import MovementService
from app_inventario.services.movement_query_service import MovementFilters, MovementQueryService
from app_inventario.services.store_service import StoreService
from app_inventario.services.session_service import CURRENT_STORE_KEY, SessionService, SessionState
from app_inventario.services.auth_service import AuthService
from app_inventario.services.barcode_service import BarcodeService
from app_inventario.services.product_service import ProductService

__all__ = [
    'RetryPolicy',
    'TTLCache',
    'MovementService',
    'MovementFilters',
    'MovementQueryService',
    'StoreService',
    'CURRENT_STORE_KEY',
    'SessionService',
    'SessionState',
    'AuthService',
    'BarcodeService',
    'ProductService',
]
