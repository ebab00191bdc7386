# ==============================================================================
# REPOSITORIO BASE - Funcionalidad común para acceso a archivos JSON
# ==============================================================================
# Cada tabla del backend vive en un archivo JSON. Las escrituras son atómicas
# (archivo temporal + os.replace) y todas las tablas comparten un mismo lock
# reentrante: mantenerlo tomado con transaction() serializa una secuencia de
# lecturas y escrituras sobre varias tablas.
# ==============================================================================

import json
import logging
import os
import threading
import uuid
from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterator, List, Optional

from app_inventario.errors import BackendUnavailableError

LOGGER = logging.getLogger(__name__)


def new_id() -> str:
    """Genera un identificador único para una fila."""
    return str(uuid.uuid4())


def utc_now_iso() -> str:
    """Marca de tiempo ISO 8601 en UTC."""
    return datetime.now(timezone.utc).isoformat()


class BaseRepository(ABC):
    """
    Clase base abstracta para todos los repositorios.
    Proporciona lectura/escritura de archivos JSON con manejo de
    concurrencia mediante un lock compartido.

    Los errores de E/S se traducen a BackendUnavailableError para que la
    política de reintentos de los servicios pueda actuar sobre ellos.
    """

    # Lock global: una sola escritura a la vez sobre cualquier tabla
    _file_lock = threading.RLock()

    def __init__(self, file_path: str):
        """
        Inicializa el repositorio con la ruta al archivo JSON.

        Args:
            file_path: Ruta absoluta al archivo JSON de datos
        """
        self.file_path = file_path
        directory = os.path.dirname(file_path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        self._ensure_file_exists()

    def _ensure_file_exists(self) -> None:
        """Crea el archivo con datos vacíos si no existe."""
        if not os.path.exists(self.file_path):
            self._write_raw(self._empty_data())

    @abstractmethod
    def _empty_data(self) -> Any:
        """
        Retorna la estructura de datos vacía para este repositorio.
        Debe ser implementado por cada repositorio concreto.
        """

    @contextmanager
    def transaction(self) -> Iterator[None]:
        """
        Alcance serializado: ninguna otra escritura (de ninguna tabla) puede
        intercalarse mientras el bloque esté activo.
        """
        with self._file_lock:
            yield

    def _read_raw(self) -> Any:
        """
        Lee los datos crudos del archivo JSON.

        Returns:
            Datos parseados del JSON (vacíos si el archivo no existe)

        Raises:
            BackendUnavailableError: Si el archivo no se puede leer o está corrupto
        """
        with self._file_lock:
            try:
                with open(self.file_path, 'r', encoding='utf-8') as f:
                    return json.load(f)
            except FileNotFoundError:
                return self._empty_data()
            except json.JSONDecodeError as e:
                # Nunca sobrescribir una tabla corrupta con datos vacíos
                LOGGER.error("Tabla corrupta: %s", self.file_path)
                raise BackendUnavailableError(
                    f"Datos corruptos en {os.path.basename(self.file_path)}", e
                ) from e
            except OSError as e:
                raise BackendUnavailableError(
                    f"No se pudo leer {os.path.basename(self.file_path)}", e
                ) from e

    def _write_raw(self, data: Any) -> None:
        """
        Escribe datos al archivo JSON.

        Args:
            data: Datos a serializar y escribir

        Raises:
            BackendUnavailableError: Si hay error de escritura
        """
        with self._file_lock:
            # Escribir a archivo temporal primero para atomicidad
            temp_path = self.file_path + '.tmp'
            try:
                with open(temp_path, 'w', encoding='utf-8') as f:
                    json.dump(data, f, indent=2, ensure_ascii=False)
                os.replace(temp_path, self.file_path)
            except OSError as e:
                if os.path.exists(temp_path):
                    os.remove(temp_path)
                raise BackendUnavailableError(
                    f"No se pudo escribir {os.path.basename(self.file_path)}", e
                ) from e


class DictRepository(BaseRepository):
    """
    Repositorio base para tablas almacenadas como diccionario.
    El ID es la clave del diccionario.

    Ejemplo: products.json -> {"<uuid>": {...}, "<uuid>": {...}}
    """

    def _empty_data(self) -> Dict:
        return {}

    def get_all(self) -> Dict[str, Any]:
        """Obtiene todos los registros."""
        data = self._read_raw()
        return data if isinstance(data, dict) else {}

    def get_by_id(self, record_id: Any) -> Optional[Dict[str, Any]]:
        """
        Obtiene un registro por su ID.

        Returns:
            Copia del registro o None si no existe
        """
        record = self.get_all().get(str(record_id))
        return dict(record) if record is not None else None

    def insert(self, record: Dict[str, Any]) -> Dict[str, Any]:
        """
        Inserta un registro nuevo, generando id y created_at si faltan.

        Returns:
            El registro guardado
        """
        with self._file_lock:
            data = self.get_all()
            record = dict(record)
            record.setdefault('id', new_id())
            record.setdefault('created_at', utc_now_iso())
            data[record['id']] = record
            self._write_raw(data)
            return dict(record)

    def update(self, record_id: Any, changes: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """
        Mezcla cambios sobre un registro existente.

        Returns:
            El registro actualizado o None si no existía
        """
        with self._file_lock:
            data = self.get_all()
            key = str(record_id)
            if key not in data:
                return None
            data[key].update(changes)
            self._write_raw(data)
            return dict(data[key])

    def delete(self, record_id: Any) -> Optional[Dict[str, Any]]:
        """
        Elimina un registro (borrado físico).

        Returns:
            Datos del registro eliminado o None si no existía
        """
        with self._file_lock:
            data = self.get_all()
            removed = data.pop(str(record_id), None)
            if removed is not None:
                self._write_raw(data)
            return removed

    def find_all_by(self, field: str, value: Any) -> List[Dict[str, Any]]:
        """Todos los registros cuyo campo coincide con el valor."""
        return [dict(r) for r in self.get_all().values() if r.get(field) == value]

    def find_by(self, field: str, value: Any) -> Optional[Dict[str, Any]]:
        """Primer registro cuyo campo coincide con el valor."""
        for record in self.get_all().values():
            if record.get(field) == value:
                return dict(record)
        return None


class ListRepository(BaseRepository):
    """
    Repositorio base para tablas de solo inserción almacenadas como lista,
    en orden de inserción.

    Ejemplo: inventory_movements.json -> [{...}, {...}]
    """

    def _empty_data(self) -> List:
        return []

    def get_all(self) -> List[Dict[str, Any]]:
        data = self._read_raw()
        return data if isinstance(data, list) else []

    def append(self, record: Dict[str, Any]) -> Dict[str, Any]:
        """
        Agrega un registro al final, generando id y created_at si faltan.

        Returns:
            El registro guardado
        """
        with self._file_lock:
            data = self.get_all()
            record = dict(record)
            record.setdefault('id', new_id())
            record.setdefault('created_at', utc_now_iso())
            data.append(record)
            self._write_raw(data)
            return dict(record)

    def find_by(self, field: str, value: Any) -> Optional[Dict[str, Any]]:
        for record in self.get_all():
            if record.get(field) == value:
                return dict(record)
        return None

    def filter(self, predicate: Callable[[Dict[str, Any]], bool]) -> List[Dict[str, Any]]:
        """Registros que cumplen el predicado, en orden de inserción."""
        return [dict(r) for r in self.get_all() if predicate(r)]

    def update_where(self, field: str, value: Any, updates: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """
        Actualiza el primer registro que coincide con un campo.

        Returns:
            El registro actualizado o None si no hubo coincidencia
        """
        with self._file_lock:
            data = self.get_all()
            for record in data:
                if record.get(field) == value:
                    record.update(updates)
                    self._write_raw(data)
                    return dict(record)
            return None
