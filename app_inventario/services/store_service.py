# ==============================================================================
# SERVICIO DE TIENDAS
# ==============================================================================
# CRUD de tiendas de un usuario. La lista de tiendas por usuario se cachea
# (TTLCache propiedad de este servicio) y toda mutación invalida la entrada
# del dueño. El dueño puede agregar miembros (store_users) con un rol; la
# tienda aparece entonces también en la lista del miembro.
# ==============================================================================

import logging
from typing import Any, Dict, List, Optional

from app_inventario.errors import StoreNotFoundError, ValidationError
from app_inventario.models import STORE_ROLES, Store, StoreMember
from app_inventario.repositories.interfaces import IStoreMemberRepository, IStoreRepository
from app_inventario.services.cache import TTLCache
from app_inventario.services.retry_policy import RetryPolicy

LOGGER = logging.getLogger(__name__)

# Límites de longitud de los campos de una tienda
MAX_NAME_LENGTH = 100
MAX_DESCRIPTION_LENGTH = 500
MAX_ADDRESS_LENGTH = 200


def _clean(value: Any) -> Optional[str]:
    if value is None:
        return None
    return str(value).strip() or None


def validate_store_data(data: Dict[str, Any], partial: bool = False) -> Dict[str, Any]:
    """
    Valida y normaliza los campos de una tienda.

    Args:
        data: name, description, address
        partial: True en ediciones (solo se validan los campos presentes)

    Returns:
        Campos normalizados

    Raises:
        ValidationError: Si algún campo no cumple los límites
    """
    clean: Dict[str, Any] = {}

    if not partial or 'name' in data:
        name = _clean(data.get('name'))
        if not name:
            raise ValidationError('El nombre de la tienda es obligatorio')
        if len(name) > MAX_NAME_LENGTH:
            raise ValidationError(f'El nombre de la tienda debe tener menos de {MAX_NAME_LENGTH} caracteres')
        clean['name'] = name

    if 'description' in data:
        description = _clean(data.get('description'))
        if description and len(description) > MAX_DESCRIPTION_LENGTH:
            raise ValidationError(f'La descripción debe tener menos de {MAX_DESCRIPTION_LENGTH} caracteres')
        clean['description'] = description

    if 'address' in data:
        address = _clean(data.get('address'))
        if address and len(address) > MAX_ADDRESS_LENGTH:
            raise ValidationError(f'La dirección debe tener menos de {MAX_ADDRESS_LENGTH} caracteres')
        clean['address'] = address

    return clean


class StoreService:
    """
    Servicio para gestión de tiendas.

    Responsabilidades:
    - Listar las tiendas de un usuario (con caché)
    - Crear, editar y eliminar tiendas (solo el dueño)
    - Compartir una tienda con otros usuarios, con un rol
    """

    def __init__(
        self,
        store_repo: IStoreRepository,
        retry_policy: Optional[RetryPolicy] = None,
        cache_ttl: float = 300,
        member_repo: Optional[IStoreMemberRepository] = None,
    ):
        """
        Args:
            store_repo: Repositorio de tiendas
            retry_policy: Política de reintentos compartida
            cache_ttl: Segundos de vida de la lista cacheada
            member_repo: Repositorio de miembros (None = solo tiendas propias)
        """
        self.store_repo = store_repo
        self.member_repo = member_repo
        self.retry_policy = retry_policy or RetryPolicy()
        self.cache = TTLCache(ttl_seconds=cache_ttl)

    def list_user_stores(self, user_id: str) -> List[Store]:
        """
        Tiendas del usuario: primero las propias y luego aquellas de las que
        es miembro, cada grupo más reciente primero.

        Returns:
            Lista de tiendas (copia de la entrada cacheada)
        """
        if not user_id:
            raise ValidationError('El usuario es obligatorio')

        def _fetch() -> List[Store]:
            LOGGER.debug("Consultando tiendas de %s", user_id)
            rows = self.retry_policy.call(self.store_repo.list_by_user, user_id)
            if self.member_repo is not None:
                own_ids = {r.get('id') for r in rows}
                memberships = self.retry_policy.call(self.member_repo.list_by_user, user_id)
                shared = []
                for membership in memberships:
                    row = self.retry_policy.call(self.store_repo.get_store, membership['store_id'])
                    # Las tiendas eliminadas dejan de aparecer
                    if row is not None and row.get('id') not in own_ids:
                        shared.append(row)
                rows = rows + sorted(shared, key=lambda r: r.get('created_at') or '', reverse=True)
            return [Store.from_dict(r) for r in rows]

        return list(self.cache.get_or_fetch(user_id, _fetch))

    def get_store(self, store_id: str) -> Store:
        """
        Raises:
            StoreNotFoundError: Si la tienda no existe
        """
        row = self.retry_policy.call(self.store_repo.get_store, store_id)
        if row is None:
            raise StoreNotFoundError(store_id)
        return Store.from_dict(row)

    def get_owned_store(self, store_id: str, user_id: str) -> Store:
        """
        Tienda del usuario. Una tienda ajena se trata como inexistente.

        Raises:
            StoreNotFoundError: Si no existe o pertenece a otro usuario
        """
        store = self.get_store(store_id)
        if store.user_id != user_id:
            raise StoreNotFoundError(store_id)
        return store

    def create_store(
        self,
        user_id: str,
        name: str,
        description: Optional[str] = None,
        address: Optional[str] = None,
    ) -> Store:
        """
        Crea una tienda para el usuario.

        Raises:
            ValidationError: Si los datos no son válidos
        """
        if not user_id:
            raise ValidationError('El usuario es obligatorio')
        data = validate_store_data({'name': name, 'description': description, 'address': address})
        data['user_id'] = user_id

        row = self.retry_policy.call(self.store_repo.create_store, data)
        self.cache.invalidate(user_id)
        LOGGER.info("Tienda creada: %s (%s) por %s", row['name'], row['id'], user_id)
        return Store.from_dict(row)

    def update_store(self, store_id: str, user_id: str, changes: Dict[str, Any]) -> Store:
        """
        Edita nombre, descripción o dirección de una tienda propia.

        Raises:
            ValidationError: Si los datos no son válidos
            StoreNotFoundError: Si la tienda no existe o es ajena
        """
        self.get_owned_store(store_id, user_id)
        editable = {k: v for k, v in changes.items() if k in ('name', 'description', 'address')}
        if not editable:
            raise ValidationError('No hay cambios para aplicar')
        data = validate_store_data(editable, partial=True)

        row = self.retry_policy.call(self.store_repo.update_store, store_id, data)
        if row is None:
            raise StoreNotFoundError(store_id)
        # Los miembros también tienen la tienda en su lista
        self.cache.invalidate()
        LOGGER.info("Tienda actualizada: %s", store_id)
        return Store.from_dict(row)

    def delete_store(self, store_id: str, user_id: str) -> None:
        """
        Elimina una tienda propia (borrado físico).

        Raises:
            StoreNotFoundError: Si la tienda no existe o es ajena
        """
        self.get_owned_store(store_id, user_id)
        self.retry_policy.call(self.store_repo.delete_store, store_id)
        self.cache.invalidate()
        LOGGER.info("Tienda eliminada: %s por %s", store_id, user_id)

    def add_user_to_store(
        self,
        store_id: str,
        owner_id: str,
        member_id: str,
        role: str = 'staff',
    ) -> StoreMember:
        """
        Da acceso a otro usuario a una tienda propia.

        Args:
            store_id: Tienda
            owner_id: Dueño que concede el acceso
            member_id: Usuario que se agrega
            role: 'admin' o 'staff'

        Raises:
            ValidationError: Rol inválido, usuario vacío o ya miembro
            StoreNotFoundError: Si la tienda no existe o es ajena
        """
        if self.member_repo is None:
            raise ValidationError('Las tiendas compartidas no están habilitadas')
        if role not in STORE_ROLES:
            raise ValidationError(f"Rol inválido (use {' o '.join(STORE_ROLES)})")
        if not member_id:
            raise ValidationError('El usuario es obligatorio')

        self.get_owned_store(store_id, owner_id)
        if member_id == owner_id:
            raise ValidationError('El dueño ya tiene acceso a la tienda')

        with self.member_repo.transaction():
            if self.retry_policy.call(self.member_repo.find_member, store_id, member_id):
                raise ValidationError('El usuario ya pertenece a la tienda')
            row = self.retry_policy.call(
                self.member_repo.add_member,
                {'store_id': store_id, 'user_id': member_id, 'role': role},
            )

        self.cache.invalidate(member_id)
        LOGGER.info("Usuario %s agregado a la tienda %s como %s", member_id, store_id, role)
        return StoreMember.from_dict(row)
