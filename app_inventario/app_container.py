# ==============================================================================
# CONTENEDOR DE DEPENDENCIAS - Inyección de servicios
# ==============================================================================
# Este módulo proporciona una forma centralizada de obtener instancias
# de repositorios y servicios. Facilita:
#   - Inyección de dependencias
#   - Testing (se pueden reemplazar los repositorios)
#   - Migración gradual (cambiar repos sin tocar servicios)
#
# ═══════════════════════════════════════════════════════════════════════════════
# MIGRACIÓN A UN BACKEND REMOTO
# ═══════════════════════════════════════════════════════════════════════════════
#
# 1. Crear nuevas clases de repositorio que implementen las interfaces de
#    app_inventario.repositories.interfaces (IProductRepository, ...).
#    apply_stock_delta() debe ser una actualización condicional atómica.
# 2. Cambiar las instancias en este archivo.
# 3. Los servicios NO requieren cambios porque dependen de interfaces.
# ==============================================================================

import os
from typing import Any, Dict, Optional

# ═══════════════════════════════════════════════════════════════════════════════
# REPOSITORIOS - Capa de persistencia
# ═══════════════════════════════════════════════════════════════════════════════
from app_inventario.repositories import (
    CarrierRepository,
    ImageRepository,
    MovementRepository,
    ProductRepository,
    StoreMemberRepository,
    StoreRepository,
    UserRepository,
)

# ═══════════════════════════════════════════════════════════════════════════════
# SERVICIOS - Capa de lógica de negocio
# ═══════════════════════════════════════════════════════════════════════════════
from app_inventario.services import (
    AuthService,
    BarcodeService,
    MovementQueryService,
    MovementService,
    ProductService,
    RetryPolicy,
    SessionService,
    StoreService,
)


class AppContainer:
    """
    Contenedor de dependencias de la aplicación.

    Implementa el patrón Singleton para asegurar una única instancia
    de cada repositorio y servicio.

    Uso:
        container = AppContainer(base_path='/path/to/data', settings=config)
        movement_service = container.movement_service
    """

    _instance: Optional['AppContainer'] = None

    def __new__(cls, base_path: str = None, settings: Optional[Dict[str, Any]] = None):
        """Singleton pattern."""
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._initialized = False
        return cls._instance

    def __init__(self, base_path: str = None, settings: Optional[Dict[str, Any]] = None):
        """
        Inicializa el contenedor.

        Args:
            base_path: Directorio de datos (donde están los JSON)
            settings: Configuración (RETRY_MAX_ATTEMPTS, RETRY_BASE_DELAY, STORES_CACHE_TTL)
        """
        if self._initialized:
            return

        self._base_path = base_path or os.path.join(os.path.dirname(os.path.abspath(__file__)), 'data')
        self._settings = dict(settings or {})

        self.reset()
        self._initialized = True

    @property
    def base_path(self) -> str:
        return self._base_path

    # =========================================================================
    # POLÍTICA DE REINTENTOS (compartida por todos los servicios)
    # =========================================================================

    @property
    def retry_policy(self) -> RetryPolicy:
        if self._retry_policy is None:
            self._retry_policy = RetryPolicy(
                max_attempts=self._settings.get('RETRY_MAX_ATTEMPTS', 3),
                base_delay=self._settings.get('RETRY_BASE_DELAY', 1.0),
            )
        return self._retry_policy

    # =========================================================================
    # REPOSITORIOS
    # =========================================================================

    @property
    def product_repo(self) -> ProductRepository:
        """Repositorio de productos (singleton)."""
        if self._product_repo is None:
            self._product_repo = ProductRepository(self._base_path)
        return self._product_repo

    @property
    def store_repo(self) -> StoreRepository:
        """Repositorio de tiendas (singleton)."""
        if self._store_repo is None:
            self._store_repo = StoreRepository(self._base_path)
        return self._store_repo

    @property
    def store_member_repo(self) -> StoreMemberRepository:
        """Repositorio de miembros de tienda (singleton)."""
        if self._store_member_repo is None:
            self._store_member_repo = StoreMemberRepository(self._base_path)
        return self._store_member_repo

    @property
    def movement_repo(self) -> MovementRepository:
        """Repositorio del libro mayor (singleton)."""
        if self._movement_repo is None:
            self._movement_repo = MovementRepository(self._base_path)
        return self._movement_repo

    @property
    def carrier_repo(self) -> CarrierRepository:
        """Repositorio de transportadoras (singleton)."""
        if self._carrier_repo is None:
            self._carrier_repo = CarrierRepository(self._base_path)
        return self._carrier_repo

    @property
    def user_repo(self) -> UserRepository:
        """Repositorio de usuarios (singleton)."""
        if self._user_repo is None:
            self._user_repo = UserRepository(self._base_path)
        return self._user_repo

    @property
    def image_repo(self) -> ImageRepository:
        """Almacenamiento de imágenes (singleton)."""
        if self._image_repo is None:
            self._image_repo = ImageRepository(self._base_path)
        return self._image_repo

    # =========================================================================
    # SERVICIOS
    # =========================================================================

    @property
    def movement_service(self) -> MovementService:
        """Escritura del libro mayor (singleton)."""
        if self._movement_service is None:
            self._movement_service = MovementService(
                self.product_repo,
                self.movement_repo,
                self.retry_policy,
            )
        return self._movement_service

    @property
    def movement_query_service(self) -> MovementQueryService:
        """Consultas del libro mayor (singleton)."""
        if self._movement_query_service is None:
            self._movement_query_service = MovementQueryService(
                self.movement_repo,
                self.product_repo,
                self.carrier_repo,
                self.retry_policy,
            )
        return self._movement_query_service

    @property
    def store_service(self) -> StoreService:
        """Servicio de tiendas (singleton, dueño del caché de tiendas)."""
        if self._store_service is None:
            self._store_service = StoreService(
                self.store_repo,
                self.retry_policy,
                member_repo=self.store_member_repo,
                cache_ttl=self._settings.get('STORES_CACHE_TTL', 300),
            )
        return self._store_service

    @property
    def session_service(self) -> SessionService:
        """Servicio de sesión (singleton)."""
        if self._session_service is None:
            self._session_service = SessionService(self.store_service)
        return self._session_service

    @property
    def auth_service(self) -> AuthService:
        """Servicio de autenticación (singleton)."""
        if self._auth_service is None:
            self._auth_service = AuthService(self.user_repo, self.retry_policy)
        return self._auth_service

    @property
    def barcode_service(self) -> BarcodeService:
        """Servicio de códigos de barras (singleton)."""
        if self._barcode_service is None:
            self._barcode_service = BarcodeService(self.product_repo, self.retry_policy)
        return self._barcode_service

    @property
    def product_service(self) -> ProductService:
        """Servicio de productos (singleton)."""
        if self._product_service is None:
            self._product_service = ProductService(
                self.product_repo,
                self.barcode_service,
                self.image_repo,
                self.retry_policy,
            )
        return self._product_service

    # =========================================================================
    # UTILIDADES
    # =========================================================================

    def reset(self) -> None:
        """
        Reinicia todas las instancias.
        Útil para testing o para recargar datos.
        """
        self._retry_policy: Optional[RetryPolicy] = None

        self._product_repo: Optional[ProductRepository] = None
        self._store_repo: Optional[StoreRepository] = None
        self._store_member_repo: Optional[StoreMemberRepository] = None
        self._movement_repo: Optional[MovementRepository] = None
        self._carrier_repo: Optional[CarrierRepository] = None
        self._user_repo: Optional[UserRepository] = None
        self._image_repo: Optional[ImageRepository] = None

        self._movement_service: Optional[MovementService] = None
        self._movement_query_service: Optional[MovementQueryService] = None
        self._store_service: Optional[StoreService] = None
        self._session_service: Optional[SessionService] = None
        self._auth_service: Optional[AuthService] = None
        self._barcode_service: Optional[BarcodeService] = None
        self._product_service: Optional[ProductService] = None

    @classmethod
    def get_instance(cls, base_path: str = None, settings: Optional[Dict[str, Any]] = None) -> 'AppContainer':
        """
        Obtiene la instancia singleton del contenedor.

        Args:
            base_path: Directorio de datos (solo se usa en primera llamada)
            settings: Configuración (solo se usa en primera llamada)

        Returns:
            Instancia del contenedor
        """
        if cls._instance is None:
            return cls(base_path, settings)
        return cls._instance

    @classmethod
    def reset_instance(cls) -> None:
        """Elimina la instancia singleton (útil para tests)."""
        if cls._instance is not None:
            cls._instance.reset()
            cls._instance = None


# Función helper para obtener el contenedor global
def get_container(base_path: str = None, settings: Optional[Dict[str, Any]] = None) -> AppContainer:
    """
    Obtiene el contenedor de dependencias global.

    Args:
        base_path: Directorio de datos
        settings: Configuración

    Returns:
        Instancia del contenedor
    """
    return AppContainer.get_instance(base_path, settings)
