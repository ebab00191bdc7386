# ==============================================================================
# SERVICIO DE PRODUCTOS
# ==============================================================================
# CRUD de productos de una tienda, imágenes, importación masiva y resumen
# del valor del inventario.
#
# El stock solo se fija al crear el producto; después únicamente lo cambia
# MovementService a través del libro mayor.
# ==============================================================================

import logging
from typing import Any, BinaryIO, Dict, Iterable, List, Optional, Tuple

from app_inventario.errors import (
    DuplicateBarcodeError,
    InventarioError,
    ProductNotFoundError,
    ValidationError,
)
from app_inventario.models import CATEGORIES, BatchLineResult, BatchResult, Product
from app_inventario.repositories.interfaces import IImageRepository, IProductRepository
from app_inventario.services.barcode_service import BarcodeService
from app_inventario.services.retry_policy import RetryPolicy

LOGGER = logging.getLogger(__name__)

MAX_NAME_LENGTH = 200


def parse_money(value: Any, field_name: str) -> float:
    """
    Convierte un monto a float no negativo con 2 decimales.

    Raises:
        ValidationError: Si no es un número >= 0
    """
    if value is None or value == '' or isinstance(value, bool):
        raise ValidationError(f'{field_name} es obligatorio')
    try:
        amount = float(str(value).strip().replace(',', '.'))
    except ValueError:
        raise ValidationError(f'{field_name} inválido')
    if amount != amount or amount < 0:
        raise ValidationError(f'{field_name} debe ser mayor o igual a cero')
    return round(amount, 2)


def parse_stock(value: Any) -> int:
    """Stock inicial: entero >= 0 (vacío = 0)."""
    if value is None or value == '':
        return 0
    if isinstance(value, bool):
        raise ValidationError('El stock debe ser un entero')
    try:
        number = float(str(value).strip())
    except ValueError:
        raise ValidationError('El stock debe ser un entero')
    if not number.is_integer():
        raise ValidationError('El stock debe ser un entero')
    if number < 0:
        raise ValidationError('El stock debe ser positivo')
    return int(number)


class ProductService:
    """
    Servicio para gestión de productos.

    Responsabilidades:
    - CRUD de productos por tienda
    - Validación de categoría, precios y código de barras único
    - Subida de imágenes
    - Importación masiva con resultado por fila
    - Valor del inventario
    """

    def __init__(
        self,
        product_repo: IProductRepository,
        barcode_service: BarcodeService,
        image_repo: Optional[IImageRepository] = None,
        retry_policy: Optional[RetryPolicy] = None,
    ):
        self.product_repo = product_repo
        self.barcode_service = barcode_service
        self.image_repo = image_repo
        self.retry_policy = retry_policy or RetryPolicy()

    # =========================================================================
    # CONSULTAS
    # =========================================================================

    def list_products(self, store_id: str) -> List[Product]:
        """Productos de la tienda, más recientes primero."""
        if not store_id:
            raise ValidationError('La tienda es obligatoria')
        rows = self.retry_policy.call(self.product_repo.list_by_store, store_id)
        return [Product.from_dict(r) for r in rows]

    def get_product(self, product_id: str, store_id: Optional[str] = None) -> Product:
        """
        Raises:
            ProductNotFoundError: Si no existe (o pertenece a otra tienda)
        """
        row = self.retry_policy.call(self.product_repo.get_product, product_id)
        if row is None or (store_id and row.get('store_id') != store_id):
            raise ProductNotFoundError(product_id)
        return Product.from_dict(row)

    def search_by_barcode(self, code: str, store_id: Optional[str] = None) -> Optional[Product]:
        """Producto con ese código de barras, o None."""
        code = (code or '').strip()
        if not code:
            return None
        row = self.retry_policy.call(self.product_repo.find_by_barcode, code)
        if row is None or (store_id and row.get('store_id') != store_id):
            return None
        return Product.from_dict(row)

    def inventory_value(self, store_id: str) -> Dict[str, Any]:
        """
        Resumen del inventario de la tienda.

        Returns:
            dict: {products, units, value, by_category: {categoria: valor}}
        """
        products = self.list_products(store_id)
        by_category: Dict[str, float] = {}
        for product in products:
            by_category[product.category] = round(
                by_category.get(product.category, 0.0) + product.inventory_value, 2
            )
        return {
            'products': len(products),
            'units': sum(p.stock for p in products),
            'value': round(sum(p.inventory_value for p in products), 2),
            'by_category': by_category,
        }

    # =========================================================================
    # ALTA, EDICIÓN Y BAJA
    # =========================================================================

    def _validate(self, data: Dict[str, Any], product_id: Optional[str] = None) -> Dict[str, Any]:
        name = str(data.get('name') or '').strip()
        if not name:
            raise ValidationError('El nombre es obligatorio')
        if len(name) > MAX_NAME_LENGTH:
            raise ValidationError(f'El nombre debe tener menos de {MAX_NAME_LENGTH} caracteres')

        category = str(data.get('category') or '').strip()
        if not category:
            raise ValidationError('La categoría es obligatoria')
        if category not in CATEGORIES:
            raise ValidationError(f"Categoría inválida: {category}")

        clean = {
            'name': name,
            'category': category,
            'unit_cost': parse_money(data.get('unit_cost'), 'El costo unitario'),
            'sale_price': parse_money(data.get('sale_price'), 'El precio de venta'),
        }

        code = str(data.get('barcode') or '').strip()
        if code:
            if not self.barcode_service.is_barcode_unique(code, exclude_product_id=product_id):
                raise DuplicateBarcodeError(code)
            clean['barcode'] = code

        if 'image' in data and isinstance(data.get('image'), str):
            clean['image'] = data['image'].split('?')[0]

        return clean

    def save_product(
        self,
        store_id: str,
        user_id: str,
        data: Dict[str, Any],
        product_id: Optional[str] = None,
        image: Optional[Tuple[BinaryIO, str]] = None,
    ) -> Product:
        """
        Crea o actualiza un producto.

        Args:
            store_id: Tienda actual
            user_id: Usuario que guarda
            data: name, category, unit_cost, sale_price, barcode, stock (solo alta)
            product_id: ID del producto a editar (None = crear)
            image: (stream, nombre_original) de una imagen nueva

        Raises:
            ValidationError: Datos inválidos o código de barras repetido
            ProductNotFoundError: Si se edita un producto inexistente
        """
        if not store_id:
            raise ValidationError('La tienda es obligatoria')

        if product_id is not None:
            # Verifica existencia y pertenencia antes de validar
            self.get_product(product_id, store_id)

        with self.product_repo.transaction():
            clean = self._validate(data, product_id)

            if image is not None:
                if self.image_repo is None:
                    raise ValidationError('La subida de imágenes no está disponible')
                stream, filename = image
                clean['image'] = self.retry_policy.call(self.image_repo.save, stream, filename)

            if product_id is None:
                clean['barcode'] = clean.get('barcode') or self.barcode_service.generate_unique_barcode()
                clean['stock'] = parse_stock(data.get('stock'))
                clean.setdefault('image', '')
                clean['store_id'] = store_id
                clean['user_id'] = user_id
                row = self.retry_policy.call(self.product_repo.create_product, clean)
                LOGGER.info("Producto creado: %s (%s) en %s", row['name'], row['id'], store_id)
            else:
                row = self.retry_policy.call(self.product_repo.update_product, product_id, clean)
                if row is None:
                    raise ProductNotFoundError(product_id)
                LOGGER.info("Producto actualizado: %s", product_id)

        return Product.from_dict(row)

    def delete_product(self, product_id: str, store_id: str) -> Product:
        """
        Elimina un producto (borrado físico). Sus movimientos se conservan.

        Raises:
            ProductNotFoundError: Si no existe en la tienda
        """
        product = self.get_product(product_id, store_id)
        self.retry_policy.call(self.product_repo.delete_product, product_id)
        LOGGER.info("Producto eliminado: %s (%s)", product.name, product_id)
        return product

    # =========================================================================
    # IMPORTACIÓN MASIVA
    # =========================================================================

    def import_products(
        self,
        store_id: str,
        user_id: str,
        rows: Iterable[Dict[str, Any]],
    ) -> BatchResult:
        """
        Crea productos a partir de filas ya interpretadas (por ejemplo de un CSV).
        Cada fila se valida y guarda de forma independiente.

        Returns:
            BatchResult con un resultado por fila
        """
        result = BatchResult()
        for index, row in enumerate(rows):
            try:
                product = self.save_product(store_id, user_id, row)
            except InventarioError as e:
                result.lines.append(BatchLineResult(
                    index=index,
                    request=row,
                    committed=False,
                    error=str(e),
                    error_type=type(e).__name__,
                ))
            else:
                result.lines.append(BatchLineResult(
                    index=index,
                    request=row,
                    committed=True,
                    product=product,
                ))

        LOGGER.info(
            "Importación en %s: %d creados, %d con errores",
            store_id, len(result.committed), len(result.failed),
        )
        return result
