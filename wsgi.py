# ==============================================================================
# WSGI Entry Point - Para Gunicorn en producción
# ==============================================================================
# Este archivo es el punto de entrada para servidores WSGI como Gunicorn.
#
# USO:
#   gunicorn wsgi:app --bind 0.0.0.0:$PORT
#
# ESTRUCTURA DEL PROYECTO:
#   repo_root/             <- Directorio de trabajo (en sys.path automáticamente)
#   ├── wsgi.py            <- Este archivo
#   ├── pyproject.toml
#   └── app_inventario/    <- Paquete Python
#       ├── main.py
#       ├── services/
#       └── repositories/
#
# La configuración se toma de las variables INVENTARIO_* (ver config.py).
# ==============================================================================

import os

from app_inventario.main import create_app

app = create_app()

# ==============================================================================
# PUNTO DE ENTRADA
# ==============================================================================
# Para desarrollo local:
#   python wsgi.py
# ==============================================================================

if __name__ == '__main__':
    DEBUG = os.environ.get('FLASK_DEBUG', '0') == '1'
    HOST = os.environ.get('FLASK_HOST', '0.0.0.0')  # Escucha en todas las interfaces
    PORT = int(os.environ.get('FLASK_PORT', 5000))
    app.run(debug=DEBUG, host=HOST, port=PORT)
