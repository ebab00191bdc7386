# ==============================================================================
# REPOSITORIO DE IMÁGENES
# ==============================================================================
# Almacenamiento de objetos para las imágenes de producto, en el directorio
# <data>/product-images. Cada archivo recibe un nombre generado
# <epoch-ms>-<hex>.<ext> y se publica bajo /images/<nombre>.
# ==============================================================================

import logging
import os
import shutil
import time
import uuid
from typing import BinaryIO, Optional

from werkzeug.utils import secure_filename

from app_inventario.errors import BackendUnavailableError, ValidationError

LOGGER = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = {'png', 'jpg', 'jpeg', 'gif', 'webp'}
PUBLIC_PREFIX = '/images/'


def allowed_file(filename: str) -> bool:
    return '.' in filename and filename.rsplit('.', 1)[1].lower() in ALLOWED_EXTENSIONS


class ImageRepository:
    """Guarda y localiza imágenes de producto en disco."""

    def __init__(self, base_path: str):
        self.directory = os.path.join(base_path, 'product-images')
        os.makedirs(self.directory, exist_ok=True)

    def save(self, stream: BinaryIO, original_filename: str) -> str:
        """
        Guarda la imagen con un nombre generado.

        Args:
            stream: Contenido binario (por ejemplo FileStorage.stream)
            original_filename: Nombre original, solo se usa su extensión

        Returns:
            URL pública (/images/<nombre>)

        Raises:
            ValidationError: Si la extensión no está permitida
            BackendUnavailableError: Si falla la escritura
        """
        original = secure_filename(original_filename or '')
        if not allowed_file(original):
            raise ValidationError('Formato de imagen no permitido')

        ext = original.rsplit('.', 1)[1].lower()
        name = f"{int(time.time() * 1000)}-{uuid.uuid4().hex[:12]}.{ext}"
        path = os.path.join(self.directory, name)
        try:
            with open(path, 'wb') as f:
                shutil.copyfileobj(stream, f)
        except OSError as e:
            raise BackendUnavailableError('No se pudo guardar la imagen', e) from e

        LOGGER.info("Imagen guardada: %s", name)
        return PUBLIC_PREFIX + name

    def path_for(self, filename: str) -> Optional[str]:
        """Ruta en disco de una imagen publicada, o None si no existe."""
        safe = secure_filename(filename or '')
        if not safe or safe != filename:
            return None
        path = os.path.join(self.directory, safe)
        return path if os.path.isfile(path) else None
