# ==============================================================================
# ENTIDADES DEL DOMINIO - Definiciones de dataclasses
# ==============================================================================
# Cada entidad representa un concepto del negocio.
# Diseñadas para ser independientes del mecanismo de persistencia: los
# repositorios guardan diccionarios y los servicios trabajan con entidades.
# ==============================================================================

from dataclasses import dataclass, field
from typing import Optional, List, Dict, Any
from enum import Enum

from app_inventario.errors import ValidationError


# ==============================================================================
# ENUMERACIONES - Tipos válidos
# ==============================================================================

class MovementType(str, Enum):
    """Tipos de movimiento de inventario."""
    ENTRADA = "entrada"        # Reposición / recepción
    SALIDA = "salida"          # Envío / venta
    DEVOLUCION = "devolucion"  # Devolución de cliente, regresa al inventario

    @property
    def sign(self) -> int:
        """Signo que aplica el movimiento sobre el stock."""
        return -1 if self is MovementType.SALIDA else 1

    @classmethod
    def parse(cls, value: Any) -> Optional['MovementType']:
        """Convierte un string en tipo de movimiento, o None si no es válido."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return None


# Categorías de producto
CATEGORIES = (
    'Electronica',
    'Moda',
    'Comida',
    'Libros',
    'Hogar',
    'Deporte',
    'Otra',
)

# Etiqueta para movimientos cuyo producto ya no existe
DELETED_PRODUCT_LABEL = 'Producto eliminado'

# Campos de un movimiento que se pueden modificar después de creado
MOVEMENT_STATUS_FIELDS = ('tracking_number', 'carrier_id', 'is_pending', 'notes')

TRUE_VALUES = {'1', 'true', 'yes', 'si', 'sí', 'on'}
FALSE_VALUES = {'0', 'false', 'no', 'off'}


def parse_bool(value: Any, field_name: str) -> Optional[bool]:
    """Convierte 'true'/'false' (o bool) en bool. None y '' significan sin valor."""
    if value is None or value == '':
        return None
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in TRUE_VALUES:
        return True
    if text in FALSE_VALUES:
        return False
    raise ValidationError(f"Valor inválido para {field_name}: {value}")


def stock_delta(movement_type: MovementType, quantity: int) -> int:
    """
    Calcula el cambio de stock de un movimiento.

    entrada → +cantidad, salida → -cantidad, devolucion → +cantidad
    """
    return movement_type.sign * quantity


# ==============================================================================
# USUARIOS Y TIENDAS
# ==============================================================================

@dataclass
class User:
    """
    Usuario autenticado.

    Attributes:
        id: Identificador único
        email: Correo normalizado (minúsculas)
        password_hash: Hash werkzeug de la contraseña
        created_at: Fecha de alta (ISO 8601)
    """
    id: str
    email: str
    password_hash: str = ''
    created_at: str = ''

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'email': self.email,
            'password': self.password_hash,
            'created_at': self.created_at,
        }

    def to_public_dict(self) -> Dict[str, Any]:
        """Representación sin el hash de contraseña."""
        return {'id': self.id, 'email': self.email, 'created_at': self.created_at}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'User':
        return cls(
            id=data.get('id', ''),
            email=data.get('email', ''),
            password_hash=data.get('password', ''),
            created_at=data.get('created_at', ''),
        )


@dataclass
class Store:
    """
    Tienda de un usuario. Acota todas las consultas de productos y movimientos.
    """
    id: str
    name: str
    user_id: str
    description: Optional[str] = None
    address: Optional[str] = None
    created_at: str = ''

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'name': self.name,
            'user_id': self.user_id,
            'description': self.description,
            'address': self.address,
            'created_at': self.created_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Store':
        return cls(
            id=data.get('id', ''),
            name=data.get('name', ''),
            user_id=data.get('user_id', ''),
            description=data.get('description'),
            address=data.get('address'),
            created_at=data.get('created_at', ''),
        )


# Roles que el dueño puede asignar a otros usuarios de su tienda
STORE_ROLES = ('admin', 'staff')


@dataclass
class StoreMember:
    """Usuario con acceso a una tienda ajena, con un rol."""
    id: str
    store_id: str
    user_id: str
    role: str = 'staff'
    created_at: str = ''

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'store_id': self.store_id,
            'user_id': self.user_id,
            'role': self.role,
            'created_at': self.created_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'StoreMember':
        return cls(
            id=data.get('id', ''),
            store_id=data.get('store_id', ''),
            user_id=data.get('user_id', ''),
            role=data.get('role', 'staff'),
            created_at=data.get('created_at', ''),
        )


@dataclass
class Carrier:
    """Transportadora (tabla de solo lectura)."""
    id: str
    name: str
    code: str = ''
    is_active: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'name': self.name,
            'code': self.code,
            'is_active': self.is_active,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Carrier':
        return cls(
            id=data.get('id', ''),
            name=data.get('name', ''),
            code=data.get('code', ''),
            is_active=bool(data.get('is_active', True)),
        )


# ==============================================================================
# PRODUCTOS
# ==============================================================================

@dataclass
class Product:
    """
    Producto de una tienda.

    Attributes:
        id: Identificador único (uuid)
        name: Nombre visible
        category: Una de CATEGORIES
        unit_cost: Costo unitario
        sale_price: Precio de venta
        stock: Cantidad en inventario (nunca negativa)
        image: URL pública de la imagen ('' si no tiene)
        barcode: Código de barras único
        store_id: Tienda dueña
        user_id: Usuario que lo creó
        created_at: Fecha de alta (ISO 8601)
    """
    id: str
    name: str
    category: str
    unit_cost: float = 0.0
    sale_price: float = 0.0
    stock: int = 0
    image: str = ''
    barcode: str = ''
    store_id: str = ''
    user_id: Optional[str] = None
    created_at: str = ''

    @property
    def inventory_value(self) -> float:
        """Valor del inventario de este producto al costo."""
        return round(self.unit_cost * self.stock, 2)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'name': self.name,
            'category': self.category,
            'unit_cost': self.unit_cost,
            'sale_price': self.sale_price,
            'stock': self.stock,
            'image': self.image,
            'barcode': self.barcode,
            'store_id': self.store_id,
            'user_id': self.user_id,
            'created_at': self.created_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Product':
        return cls(
            id=data.get('id', ''),
            name=data.get('name', ''),
            category=data.get('category', ''),
            unit_cost=float(data.get('unit_cost') or 0),
            sale_price=float(data.get('sale_price') or 0),
            stock=int(data.get('stock') or 0),
            image=data.get('image') or '',
            barcode=data.get('barcode') or '',
            store_id=data.get('store_id', ''),
            user_id=data.get('user_id'),
            created_at=data.get('created_at', ''),
        )


# ==============================================================================
# MOVIMIENTOS DE INVENTARIO (LIBRO MAYOR)
# ==============================================================================

@dataclass
class ShipmentInfo:
    """
    Datos de envío. Solo tienen sentido en movimientos de salida.

    Attributes:
        tracking_number: Número de guía
        carrier_id: Transportadora
        is_pending: Envío pendiente de despacho
        is_local: Entrega local (sin transportadora)
        is_single_unit: Envío de una sola unidad
        has_packing_list: Lleva lista de empaque
    """
    tracking_number: Optional[str] = None
    carrier_id: Optional[str] = None
    is_pending: bool = False
    is_local: bool = False
    is_single_unit: bool = False
    has_packing_list: bool = False

    def requires_tracking(self) -> bool:
        """Un envío no local y no pendiente necesita número de guía."""
        return not self.is_local and not self.is_pending

    def to_dict(self) -> Dict[str, Any]:
        return {
            'tracking_number': self.tracking_number,
            'carrier_id': self.carrier_id,
            'is_pending': self.is_pending,
            'is_local': self.is_local,
            'is_single_unit': self.is_single_unit,
            'has_packing_list': self.has_packing_list,
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'ShipmentInfo':
        data = data or {}
        tracking = data.get('tracking_number')
        if isinstance(tracking, str):
            tracking = tracking.strip() or None
        return cls(
            tracking_number=tracking,
            carrier_id=data.get('carrier_id') or None,
            is_pending=bool(parse_bool(data.get('is_pending'), 'is_pending')),
            is_local=bool(parse_bool(data.get('is_local'), 'is_local')),
            is_single_unit=bool(parse_bool(data.get('is_single_unit'), 'is_single_unit')),
            has_packing_list=bool(parse_bool(data.get('has_packing_list'), 'has_packing_list')),
        )


@dataclass
class MovementRequest:
    """
    Solicitud de movimiento, tal como llega desde la UI o una línea de carrito.

    idempotency_key permite reintentar sin aplicar el movimiento dos veces.
    """
    product_id: str
    store_id: str
    user_id: str
    type: Any
    quantity: Any
    notes: Optional[str] = None
    shipment: ShipmentInfo = field(default_factory=ShipmentInfo)
    reference_number: Optional[str] = None
    source: Optional[str] = None
    device_info: Optional[Dict[str, Any]] = None
    idempotency_key: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any], **overrides: Any) -> 'MovementRequest':
        """
        Crea la solicitud desde un payload JSON.
        Los datos de envío pueden venir anidados en 'shipment' o planos.
        Los overrides (tienda y usuario de la sesión) prevalecen sobre el payload.
        """
        merged = {**{k: v for k, v in data.items() if v is not None}, **overrides}
        shipment_data = merged.get('shipment')
        if not isinstance(shipment_data, dict):
            shipment_data = merged
        return cls(
            product_id=merged.get('product_id', ''),
            store_id=merged.get('store_id', ''),
            user_id=merged.get('user_id', ''),
            type=merged.get('type'),
            quantity=merged.get('quantity'),
            notes=merged.get('notes'),
            shipment=ShipmentInfo.from_dict(shipment_data),
            reference_number=merged.get('reference_number'),
            source=merged.get('source'),
            device_info=merged.get('device_info'),
            idempotency_key=merged.get('idempotency_key'),
        )


@dataclass
class InventoryMovement:
    """
    Entrada del libro mayor de inventario. Inmutable una vez creada, salvo
    los campos de estado del envío (guía, transportadora, pendiente, notas).
    """
    id: str
    product_id: str
    store_id: str
    user_id: str
    type: MovementType
    quantity: int
    previous_stock: int
    new_stock: int
    created_at: str = ''
    notes: Optional[str] = None
    shipment: ShipmentInfo = field(default_factory=ShipmentInfo)
    reference_number: Optional[str] = None
    source: Optional[str] = None
    device_info: Dict[str, Any] = field(default_factory=dict)
    idempotency_key: Optional[str] = None

    @property
    def delta(self) -> int:
        return self.new_stock - self.previous_stock

    def to_dict(self) -> Dict[str, Any]:
        d = {
            'id': self.id,
            'product_id': self.product_id,
            'store_id': self.store_id,
            'user_id': self.user_id,
            'type': self.type.value,
            'quantity': self.quantity,
            'previous_stock': self.previous_stock,
            'new_stock': self.new_stock,
            'created_at': self.created_at,
            'notes': self.notes,
            'reference_number': self.reference_number,
            'source': self.source,
            'device_info': self.device_info,
            'idempotency_key': self.idempotency_key,
        }
        d.update(self.shipment.to_dict())
        return d

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'InventoryMovement':
        return cls(
            id=data.get('id', ''),
            product_id=data.get('product_id', ''),
            store_id=data.get('store_id', ''),
            user_id=data.get('user_id', ''),
            type=MovementType(data.get('type', 'entrada')),
            quantity=int(data.get('quantity', 0)),
            previous_stock=int(data.get('previous_stock', 0)),
            new_stock=int(data.get('new_stock', 0)),
            created_at=data.get('created_at', ''),
            notes=data.get('notes'),
            shipment=ShipmentInfo.from_dict(data),
            reference_number=data.get('reference_number'),
            source=data.get('source'),
            device_info=data.get('device_info') or {},
            idempotency_key=data.get('idempotency_key'),
        )


@dataclass
class MovementView:
    """Movimiento enriquecido con nombres para listados."""
    movement: InventoryMovement
    product_name: str
    carrier_name: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        d = self.movement.to_dict()
        d['product_name'] = self.product_name
        d['carrier_name'] = self.carrier_name
        return d


@dataclass
class MovementPage:
    """Página de resultados del libro mayor."""
    entries: List[MovementView]
    total_count: int
    page: int = 0
    page_size: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'movements': [e.to_dict() for e in self.entries],
            'total': self.total_count,
            'page': self.page,
            'page_size': self.page_size,
        }


# ==============================================================================
# RESULTADOS POR LÍNEA (CARRITOS, IMPORTACIONES)
# ==============================================================================

@dataclass
class BatchLineResult:
    """
    Resultado de una línea de un lote.

    Attributes:
        index: Posición de la línea en el lote (0-based)
        request: Solicitud original (para reintentar)
        committed: True si la línea quedó aplicada
        movement: Movimiento creado (lotes de movimientos)
        product: Producto creado (importaciones)
        error: Mensaje del error (si falló)
        error_type: Nombre de la excepción (si falló)
    """
    index: int
    request: Any
    committed: bool
    movement: Optional[InventoryMovement] = None
    product: Optional[Product] = None
    error: Optional[str] = None
    error_type: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'index': self.index,
            'committed': self.committed,
            'movement': self.movement.to_dict() if self.movement else None,
            'product': self.product.to_dict() if self.product else None,
            'error': self.error,
            'error_type': self.error_type,
        }


@dataclass
class BatchResult:
    """
    Resultado de un lote procesado línea a línea.
    Cada línea es independiente: un fallo no deshace las líneas aplicadas.
    """
    lines: List[BatchLineResult] = field(default_factory=list)

    @property
    def committed(self) -> List[BatchLineResult]:
        return [line for line in self.lines if line.committed]

    @property
    def failed(self) -> List[BatchLineResult]:
        return [line for line in self.lines if not line.committed]

    @property
    def ok(self) -> bool:
        return not self.failed

    @property
    def is_partial(self) -> bool:
        """Algunas líneas aplicadas y otras no."""
        return bool(self.committed) and bool(self.failed)

    def retry_requests(self) -> List[Any]:
        """Solicitudes de las líneas fallidas, en el orden original."""
        return [line.request for line in self.failed]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'ok': self.ok,
            'partial': self.is_partial,
            'committed': len(self.committed),
            'failed': len(self.failed),
            'lines': [line.to_dict() for line in self.lines],
        }
