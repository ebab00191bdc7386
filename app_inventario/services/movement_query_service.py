# ==============================================================================
# SERVICIO DE CONSULTA DE MOVIMIENTOS
# ==============================================================================
# Lectura paginada y filtrable del libro mayor, unida con los nombres de
# producto y transportadora. Sin caché: cada llamada vuelve a consultar.
#
# Orden: created_at descendente; a igual fecha, la fila insertada después
# va primero. El orden es estable mientras no se inserten filas nuevas entre
# páginas.
# ==============================================================================

import logging
from collections import OrderedDict
from dataclasses import dataclass
from datetime import datetime, time, timedelta, timezone
from typing import Any, Dict, List, Mapping, Optional

from app_inventario.errors import ValidationError
from app_inventario.models import (
    DELETED_PRODUCT_LABEL,
    InventoryMovement,
    MovementPage,
    MovementType,
    MovementView,
    parse_bool,
)
from app_inventario.repositories.interfaces import (
    ICarrierRepository,
    IMovementRepository,
    IProductRepository,
)
from app_inventario.services.retry_policy import RetryPolicy

LOGGER = logging.getLogger(__name__)


def parse_datetime(value: Any, end_of_day: bool = False) -> Optional[datetime]:
    """
    Convierte una fecha ISO en datetime con zona horaria (UTC si no trae).

    Una fecha sin hora (YYYY-MM-DD) cubre el día completo: como límite
    inferior vale desde las 00:00 y como límite superior hasta el final del día.
    """
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value).strip()
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            raise ValidationError(f"Fecha inválida: {value}")
        if len(text) == 10 and end_of_day:
            parsed = datetime.combine(parsed.date(), time.max)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass
class MovementFilters:
    """
    Filtros del listado de movimientos. Un campo en None no filtra.
    """
    type: Optional[MovementType] = None
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None
    product_id: Optional[str] = None
    carrier_id: Optional[str] = None
    is_pending: Optional[bool] = None
    has_packing_list: Optional[bool] = None

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> 'MovementFilters':
        """
        Crea los filtros desde parámetros de consulta (strings).

        Raises:
            ValidationError: Si algún valor no se puede interpretar
        """
        data = data or {}
        movement_type = None
        if data.get('type'):
            movement_type = MovementType.parse(data.get('type'))
            if movement_type is None:
                raise ValidationError(f"Tipo de movimiento inválido: {data.get('type')}")

        return cls(
            type=movement_type,
            date_from=parse_datetime(data.get('date_from')),
            date_to=parse_datetime(data.get('date_to'), end_of_day=True),
            product_id=data.get('product_id') or None,
            carrier_id=data.get('carrier_id') or None,
            is_pending=parse_bool(data.get('is_pending'), 'is_pending'),
            has_packing_list=parse_bool(data.get('has_packing_list'), 'has_packing_list'),
        )

    def matches(self, row: Dict[str, Any]) -> bool:
        """True si la fila del libro cumple todos los filtros activos."""
        if self.type is not None and row.get('type') != self.type.value:
            return False
        if self.product_id is not None and row.get('product_id') != self.product_id:
            return False
        if self.carrier_id is not None and row.get('carrier_id') != self.carrier_id:
            return False
        if self.is_pending is not None and bool(row.get('is_pending')) != self.is_pending:
            return False
        if self.has_packing_list is not None and bool(row.get('has_packing_list')) != self.has_packing_list:
            return False
        if self.date_from is not None or self.date_to is not None:
            created = parse_datetime(row.get('created_at'))
            if created is None:
                return False
            if self.date_from is not None and created < self.date_from:
                return False
            if self.date_to is not None and created > self.date_to:
                return False
        return True


class MovementQueryService:
    """
    Servicio de consulta del libro mayor.

    Responsabilidades:
    - Listado filtrado y paginado por tienda
    - Unión con nombres de producto y transportadora
    - Estadísticas de movimientos por período
    """

    def __init__(
        self,
        movement_repo: IMovementRepository,
        product_repo: IProductRepository,
        carrier_repo: ICarrierRepository,
        retry_policy: Optional[RetryPolicy] = None,
    ):
        self.movement_repo = movement_repo
        self.product_repo = product_repo
        self.carrier_repo = carrier_repo
        self.retry_policy = retry_policy or RetryPolicy()

    def list_movements(
        self,
        store_id: str,
        filters: Optional[MovementFilters] = None,
        page: int = 0,
        page_size: Optional[int] = None,
    ) -> MovementPage:
        """
        Lista movimientos de una tienda.

        Args:
            store_id: Tienda actual
            filters: Filtros opcionales
            page: Número de página (desde 0)
            page_size: Filas por página (None = todas)

        Returns:
            MovementPage con las filas de la página y el total filtrado

        Raises:
            ValidationError: Tienda ausente o paginación inválida
        """
        if not store_id:
            raise ValidationError('La tienda es obligatoria')
        if page < 0:
            raise ValidationError('La página no puede ser negativa')
        if page_size is not None and page_size <= 0:
            raise ValidationError('El tamaño de página debe ser mayor que cero')

        filters = filters or MovementFilters()
        rows = self.retry_policy.call(self.movement_repo.list_by_store, store_id, filters.matches)
        total = len(rows)

        if page_size is not None:
            start = page * page_size
            rows = rows[start:start + page_size]

        return MovementPage(
            entries=self._join_names(store_id, rows),
            total_count=total,
            page=page,
            page_size=page_size,
        )

    def _join_names(self, store_id: str, rows: List[Dict[str, Any]]) -> List[MovementView]:
        if not rows:
            return []

        products = self.retry_policy.call(self.product_repo.list_by_store, store_id)
        product_names = {p['id']: p.get('name') or '' for p in products}

        carrier_names: Dict[str, Optional[str]] = {}
        for carrier_id in OrderedDict.fromkeys(r.get('carrier_id') for r in rows if r.get('carrier_id')):
            carrier = self.retry_policy.call(self.carrier_repo.get_carrier, carrier_id)
            carrier_names[carrier_id] = carrier.get('name') if carrier else None

        return [
            MovementView(
                movement=InventoryMovement.from_dict(row),
                product_name=product_names.get(row.get('product_id'), DELETED_PRODUCT_LABEL),
                carrier_name=carrier_names.get(row.get('carrier_id')),
            )
            for row in rows
        ]

    def movement_stats(self, store_id: str, days: int = 30) -> Dict[str, Any]:
        """
        Estadísticas de los últimos días.

        Returns:
            dict: {days, total_movements, entries, exits, returns,
                   total_quantity, by_day: {YYYY-MM-DD: {entries, exits, returns}}}
        """
        if not store_id:
            raise ValidationError('La tienda es obligatoria')
        if days <= 0:
            raise ValidationError('El período debe ser de al menos un día')

        since = datetime.now(timezone.utc) - timedelta(days=days)
        rows = self.list_movements(store_id, MovementFilters(date_from=since)).entries

        counters = {
            MovementType.ENTRADA: 'entries',
            MovementType.SALIDA: 'exits',
            MovementType.DEVOLUCION: 'returns',
        }
        stats = {
            'days': days,
            'total_movements': len(rows),
            'entries': 0,
            'exits': 0,
            'returns': 0,
            'total_quantity': 0,
            'by_day': {},
        }
        # Días en orden cronológico
        for view in reversed(rows):
            movement = view.movement
            key = counters[movement.type]
            stats[key] += 1
            stats['total_quantity'] += movement.quantity

            day = movement.created_at.split('T')[0]
            bucket = stats['by_day'].setdefault(day, {'entries': 0, 'exits': 0, 'returns': 0})
            bucket[key] += 1

        return stats
