# ==============================================================================
# REPOSITORIO DE USUARIOS
# ==============================================================================
# Encapsula todo el acceso a users.json
# Los usuarios se almacenan como diccionario: {user_id: {email, password, ...}}
# ==============================================================================

import os
from typing import Any, Dict, Optional

from app_inventario.repositories.base import DictRepository


class UserRepository(DictRepository):
    """
    Repositorio para gestión de usuarios.

    Formato de datos en users.json:
    {
        "<uuid>": {"id": "<uuid>", "email": "ana@tienda.co", "password": "hashed_pwd", ...}
    }
    """

    def __init__(self, base_path: str):
        """
        Inicializa el repositorio de usuarios.

        Args:
            base_path: Directorio de datos
        """
        file_path = os.path.join(base_path, 'users.json')
        super().__init__(file_path)

    def get_user(self, user_id: str) -> Optional[Dict[str, Any]]:
        """
        Obtiene un usuario por su ID.

        Returns:
            Datos del usuario o None
        """
        return self.get_by_id(user_id)

    def find_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        """
        Busca un usuario por correo (ya normalizado).

        Returns:
            Datos del usuario o None
        """
        return self.find_by('email', email)

    def create_user(self, email: str, password_hash: str) -> Dict[str, Any]:
        """
        Crea un nuevo usuario.

        Args:
            email: Correo normalizado
            password_hash: Hash de la contraseña

        Returns:
            El usuario creado
        """
        return self.insert({'email': email, 'password': password_hash})
