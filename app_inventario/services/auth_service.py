# ==============================================================================
# SERVICIO DE AUTENTICACIÓN
# ==============================================================================
# Registro, inicio y cierre de sesión.
#
# - Los correos se normalizan (minúsculas, sin espacios) antes de guardarse
# - Las contraseñas se guardan con generate_password_hash de werkzeug
# - Iniciar o cerrar sesión borra la tienda actual guardada
# ==============================================================================

import logging
from typing import Any, MutableMapping, Optional

from werkzeug.security import check_password_hash, generate_password_hash

from app_inventario.errors import AuthenticationError, ValidationError
from app_inventario.models import User
from app_inventario.repositories.interfaces import IUserRepository
from app_inventario.services.retry_policy import RetryPolicy
from app_inventario.services.session_service import CURRENT_STORE_KEY

LOGGER = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6

# Claves de la sesión del usuario autenticado
SESSION_USER_KEYS = ('user_id', 'user_email')


def normalize_email(email: Any) -> str:
    return str(email or '').strip().lower()


class AuthService:
    """
    Servicio de autenticación.

    Toda la lógica de credenciales vive aquí; las rutas solo orquestan
    request → service → response.
    """

    def __init__(self, user_repo: IUserRepository, retry_policy: RetryPolicy = None):
        self.user_repo = user_repo
        self.retry_policy = retry_policy or RetryPolicy()

    def sign_up(self, email: str, password: str) -> User:
        """
        Crea una cuenta.

        Raises:
            ValidationError: Correo inválido o ya registrado, contraseña corta
        """
        email = normalize_email(email)
        if not email or '@' not in email:
            raise ValidationError('Correo electrónico inválido')
        if not password or len(password) < MIN_PASSWORD_LENGTH:
            raise ValidationError(f'La contraseña debe tener al menos {MIN_PASSWORD_LENGTH} caracteres')

        with self.user_repo.transaction():
            if self.retry_policy.call(self.user_repo.find_by_email, email):
                raise ValidationError('El correo ya está registrado')
            row = self.retry_policy.call(
                self.user_repo.create_user, email, generate_password_hash(password)
            )

        LOGGER.info("Usuario registrado: %s", email)
        return User.from_dict(row)

    def sign_in(
        self,
        email: str,
        password: str,
        storage: Optional[MutableMapping[str, Any]] = None,
    ) -> User:
        """
        Verifica credenciales. Si se pasa el almacenamiento de sesión, guarda
        el usuario y descarta la tienda seleccionada anteriormente.

        Raises:
            AuthenticationError: Si el correo o la contraseña no coinciden
        """
        email = normalize_email(email)
        row = self.retry_policy.call(self.user_repo.find_by_email, email) if email else None
        if row is None or not check_password_hash(row.get('password', ''), password or ''):
            LOGGER.warning("Intento de inicio de sesión fallido: %s", email or '(vacío)')
            raise AuthenticationError('Correo o contraseña incorrectos')

        LOGGER.info("Inicio de sesión: %s", email)
        user = User.from_dict(row)
        if storage is not None:
            self.start_session(storage, user)
        return user

    def find_user_by_email(self, email: str) -> User:
        """
        Raises:
            ValidationError: Si no hay una cuenta con ese correo
        """
        email = normalize_email(email)
        row = self.retry_policy.call(self.user_repo.find_by_email, email) if email else None
        if row is None:
            raise ValidationError('No existe un usuario con ese correo')
        return User.from_dict(row)

    def start_session(self, storage: MutableMapping[str, Any], user: User) -> None:
        """Guarda el usuario en la sesión y descarta cualquier tienda anterior."""
        storage.pop(CURRENT_STORE_KEY, None)
        storage['user_id'] = user.id
        storage['user_email'] = user.email

    def sign_out(self, storage: MutableMapping[str, Any]) -> None:
        """Borra la tienda actual y el usuario de la sesión."""
        email = storage.get('user_email')
        storage.pop(CURRENT_STORE_KEY, None)
        for key in SESSION_USER_KEYS:
            storage.pop(key, None)
        if email:
            LOGGER.info("Cierre de sesión: %s", email)
