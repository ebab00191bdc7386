# ==============================================================================
# SERVICIO DE MOVIMIENTOS - Escritura del libro mayor de inventario
# ==============================================================================
# Único componente autorizado a cambiar el stock de un producto.
#
# Cada movimiento se aplica dentro de una transacción del backend:
#   1. Si trae idempotency_key ya registrada en la tienda, se devuelve el
#      movimiento existente (debe ser el mismo producto, tipo y cantidad)
#   2. Actualización condicional: stock = stock + delta si el resultado >= 0
#   3. Inserción de la fila del libro mayor con los stocks anterior/nuevo
# Si la inserción falla, el paso 2 se compensa con el delta inverso.
#
# Signos: entrada → +cantidad, salida → -cantidad, devolucion → +cantidad
# ==============================================================================

import logging
from typing import Any, Dict, List, Optional, Tuple

from app_inventario.errors import (
    InsufficientStockError,
    InventarioError,
    LedgerInconsistencyError,
    MovementNotFoundError,
    ProductNotFoundError,
    ValidationError,
)
from app_inventario.models import (
    BatchLineResult,
    BatchResult,
    MOVEMENT_STATUS_FIELDS,
    InventoryMovement,
    MovementRequest,
    MovementType,
    ShipmentInfo,
    parse_bool,
    stock_delta,
)
from app_inventario.performance_logger import profile_function
from app_inventario.repositories.interfaces import IMovementRepository, IProductRepository
from app_inventario.services.retry_policy import RetryPolicy

LOGGER = logging.getLogger(__name__)

TRACKING_REQUIRED_MESSAGE = 'El número de guía es obligatorio para envíos no locales ni pendientes'


def parse_quantity(value: Any) -> int:
    """
    Convierte la cantidad a entero positivo.

    Raises:
        ValidationError: Si no es un entero mayor que cero
    """
    if isinstance(value, bool) or value is None:
        raise ValidationError('La cantidad debe ser un entero mayor que cero')
    if isinstance(value, float):
        if not value.is_integer():
            raise ValidationError('La cantidad debe ser un entero mayor que cero')
        value = int(value)
    try:
        quantity = int(str(value).strip())
    except ValueError:
        raise ValidationError('La cantidad debe ser un entero mayor que cero')
    if quantity <= 0:
        raise ValidationError('La cantidad debe ser un entero mayor que cero')
    return quantity


def clean_text(value: Any, field_name: str, allow_numbers: bool = False) -> Optional[str]:
    """
    Normaliza un campo de texto opcional: recorta espacios y '' pasa a None.

    Raises:
        ValidationError: Si el valor no es texto (ni número, cuando se permite)
    """
    if value is None:
        return None
    if allow_numbers and isinstance(value, (int, float)) and not isinstance(value, bool):
        value = str(value)
    if not isinstance(value, str):
        raise ValidationError(f"{field_name} debe ser texto")
    return value.strip() or None


def check_tracking_rule(movement_type: MovementType, shipment: ShipmentInfo) -> None:
    """Una salida no local y no pendiente requiere número de guía."""
    if movement_type is MovementType.SALIDA and shipment.requires_tracking() and not shipment.tracking_number:
        raise ValidationError(TRACKING_REQUIRED_MESSAGE)


class MovementService:
    """
    Servicio de escritura del libro mayor.

    Responsabilidades:
    - Validar solicitudes de movimiento antes de cualquier escritura
    - Aplicar el cambio de stock de forma atómica junto con la fila del libro
    - Compensar el stock si la fila no se pudo registrar
    - Procesar carritos línea a línea con resultado por línea
    - Actualizar los campos de estado del envío
    """

    def __init__(
        self,
        product_repo: IProductRepository,
        movement_repo: IMovementRepository,
        retry_policy: Optional[RetryPolicy] = None,
    ):
        """
        Args:
            product_repo: Repositorio de productos (dueño del stock)
            movement_repo: Repositorio del libro mayor
            retry_policy: Política de reintentos compartida
        """
        self.product_repo = product_repo
        self.movement_repo = movement_repo
        self.retry_policy = retry_policy or RetryPolicy()

    # =========================================================================
    # VALIDACIÓN
    # =========================================================================

    def validate_request(
        self, request: MovementRequest,
    ) -> Tuple[MovementType, int, ShipmentInfo, Dict[str, Any]]:
        """
        Valida una solicitud sin tocar el backend.

        Returns:
            (tipo, cantidad, datos_envío, metadatos) normalizados. Los
            metadatos son notes, reference_number, source y device_info.

        Raises:
            ValidationError: Si falta un campo o no cumple las reglas
        """
        if not request.product_id:
            raise ValidationError('El producto es obligatorio')
        if not request.store_id:
            raise ValidationError('La tienda es obligatoria')
        if not request.user_id:
            raise ValidationError('El usuario es obligatorio')

        movement_type = MovementType.parse(request.type)
        if movement_type is None:
            raise ValidationError('Tipo de movimiento inválido (entrada, salida o devolucion)')

        quantity = parse_quantity(request.quantity)

        if movement_type is MovementType.SALIDA:
            shipment = request.shipment
            check_tracking_rule(movement_type, shipment)
        else:
            # Los datos de envío solo aplican a salidas
            shipment = ShipmentInfo()

        if request.device_info is not None and not isinstance(request.device_info, dict):
            raise ValidationError('device_info debe ser un objeto')
        details = {
            'notes': clean_text(request.notes, 'notes'),
            'reference_number': clean_text(request.reference_number, 'reference_number', allow_numbers=True),
            'source': clean_text(request.source, 'source'),
            'device_info': request.device_info or {},
        }

        return movement_type, quantity, shipment, details

    # =========================================================================
    # REGISTRO DE MOVIMIENTOS
    # =========================================================================

    @profile_function(name="Registrar movimiento")
    def record_movement(self, request: MovementRequest) -> InventoryMovement:
        """
        Registra un movimiento y actualiza el stock del producto.

        Args:
            request: Solicitud de movimiento

        Returns:
            La fila del libro mayor (nueva, o la existente si la
            idempotency_key ya estaba registrada en la tienda)

        Raises:
            ValidationError: Solicitud inválida, o idempotency_key ya usada
                para otro movimiento (nada se escribe)
            ProductNotFoundError: El producto no existe
            InsufficientStockError: El stock quedaría negativo (nada se escribe)
            BackendUnavailableError: Falla del backend tras agotar reintentos
            LedgerInconsistencyError: No se pudo compensar el stock
        """
        movement_type, quantity, shipment, details = self.validate_request(request)
        return self.retry_policy.call(self._apply, request, movement_type, quantity, shipment, details)

    def _apply(
        self,
        request: MovementRequest,
        movement_type: MovementType,
        quantity: int,
        shipment: ShipmentInfo,
        details: Dict[str, Any],
    ) -> InventoryMovement:
        with self.product_repo.transaction():
            if request.idempotency_key:
                existing = self.movement_repo.find_by_idempotency_key(
                    request.store_id, request.idempotency_key,
                )
                if existing is not None:
                    self._check_replay(existing, request, movement_type, quantity)
                    LOGGER.info(
                        "Movimiento repetido (idempotency_key=%s), se devuelve %s",
                        request.idempotency_key, existing.get('id'),
                    )
                    return InventoryMovement.from_dict(existing)

            product = self.product_repo.get_product(request.product_id)
            if product is None:
                raise ProductNotFoundError(request.product_id)
            if product.get('store_id') != request.store_id:
                raise ValidationError('El producto no pertenece a la tienda seleccionada')

            record = {
                'product_id': request.product_id,
                'store_id': request.store_id,
                'user_id': request.user_id,
                'type': movement_type.value,
                'quantity': quantity,
                'idempotency_key': request.idempotency_key,
            }
            record.update(details)
            record.update(shipment.to_dict())

            delta = stock_delta(movement_type, quantity)
            try:
                previous_stock, new_stock = self.product_repo.apply_stock_delta(request.product_id, delta)
            except InsufficientStockError as e:
                LOGGER.warning(
                    "Movimiento rechazado: %s de %d sobre %s (%s)",
                    movement_type.value, quantity, request.product_id, e,
                )
                raise

            # Desde aquí el stock ya cambió: cualquier falla se compensa
            try:
                record['previous_stock'] = previous_stock
                record['new_stock'] = new_stock
                saved = self.movement_repo.insert_movement(record)
            except Exception as e:
                self._compensate(request.product_id, delta, e)
                raise

        LOGGER.info(
            "Movimiento %s: %s %d de %s (%d -> %d)",
            saved.get('id'), movement_type.value, quantity, request.product_id,
            previous_stock, new_stock,
        )
        return InventoryMovement.from_dict(saved)

    @staticmethod
    def _check_replay(
        existing: Dict[str, Any],
        request: MovementRequest,
        movement_type: MovementType,
        quantity: int,
    ) -> None:
        """Una idempotency_key repetida debe describir el mismo movimiento."""
        same = (
            existing.get('product_id') == request.product_id
            and existing.get('store_id') == request.store_id
            and existing.get('type') == movement_type.value
            and existing.get('quantity') == quantity
        )
        if not same:
            LOGGER.warning(
                "idempotency_key=%s reutilizada para otro movimiento (registrado %s)",
                request.idempotency_key, existing.get('id'),
            )
            raise ValidationError('La clave de idempotencia ya se usó para otro movimiento')

    def _compensate(self, product_id: str, delta: int, cause: Exception) -> None:
        """
        Revierte un cambio de stock cuya fila del libro no se pudo registrar.

        Raises:
            LedgerInconsistencyError: Si la reversión también falla
        """
        try:
            self.product_repo.apply_stock_delta(product_id, -delta)
        except InventarioError as e:
            LOGGER.error(
                "No se pudo compensar el stock de %s (delta %d) tras fallar el registro: %s / %s",
                product_id, delta, cause, e,
            )
            raise LedgerInconsistencyError(
                f"El stock del producto {product_id} quedó sin movimiento registrado"
            ) from e
        LOGGER.error(
            "Registro de movimiento fallido para %s, stock compensado (delta %d): %s",
            product_id, -delta, cause,
        )

    @profile_function(name="Confirmar carrito")
    def record_batch(self, requests: List[MovementRequest]) -> BatchResult:
        """
        Aplica un carrito de movimientos, una línea a la vez y en orden.

        Cada línea es una operación atómica independiente: si una falla, las
        aplicadas se conservan y las siguientes se siguen procesando. Las
        líneas fallidas pueden reintentarse con result.retry_requests().

        Args:
            requests: Líneas del carrito

        Returns:
            BatchResult con un BatchLineResult por línea
        """
        result = BatchResult()
        for index, request in enumerate(requests):
            try:
                movement = self.record_movement(request)
            except InventarioError as e:
                LOGGER.warning("Línea %d del carrito no aplicada: %s", index + 1, e)
                result.lines.append(BatchLineResult(
                    index=index,
                    request=request,
                    committed=False,
                    error=str(e),
                    error_type=type(e).__name__,
                ))
            else:
                result.lines.append(BatchLineResult(
                    index=index,
                    request=request,
                    committed=True,
                    movement=movement,
                ))

        if result.is_partial:
            LOGGER.warning(
                "Carrito aplicado parcialmente: %d de %d líneas",
                len(result.committed), len(result.lines),
            )
        return result

    # =========================================================================
    # ESTADO DEL ENVÍO
    # =========================================================================

    def update_movement_status(
        self,
        movement_id: str,
        updates: Dict[str, Any],
        store_id: Optional[str] = None,
    ) -> InventoryMovement:
        """
        Actualiza los campos de estado de un movimiento (guía, transportadora,
        pendiente, notas). Cantidad, tipo y stocks no se pueden modificar.

        Args:
            movement_id: ID del movimiento
            updates: Campos a cambiar
            store_id: Tienda actual (el movimiento debe pertenecerle)

        Raises:
            ValidationError: Campos no permitidos o regla de guía incumplida
            MovementNotFoundError: Si no existe en la tienda
        """
        rejected = sorted(set(updates) - set(MOVEMENT_STATUS_FIELDS))
        if rejected:
            raise ValidationError(f"Campos no modificables: {', '.join(rejected)}")
        if not updates:
            raise ValidationError('No hay cambios para aplicar')

        changes = dict(updates)
        if 'tracking_number' in changes:
            tracking = changes['tracking_number']
            changes['tracking_number'] = (str(tracking).strip() or None) if tracking is not None else None
        if 'notes' in changes:
            changes['notes'] = clean_text(changes['notes'], 'notes')
        if 'carrier_id' in changes:
            changes['carrier_id'] = changes['carrier_id'] or None
        if 'is_pending' in changes:
            changes['is_pending'] = bool(parse_bool(changes['is_pending'], 'is_pending'))

        def _patch() -> Dict[str, Any]:
            with self.movement_repo.transaction():
                current = self.movement_repo.get_movement(movement_id)
                if current is None or (store_id and current.get('store_id') != store_id):
                    raise MovementNotFoundError(movement_id)

                candidate = InventoryMovement.from_dict({**current, **changes})
                check_tracking_rule(candidate.type, candidate.shipment)
                return self.movement_repo.patch_status(movement_id, changes)

        patched = self.retry_policy.call(_patch)
        LOGGER.info("Movimiento %s actualizado: %s", movement_id, ', '.join(sorted(changes)))
        return InventoryMovement.from_dict(patched)
