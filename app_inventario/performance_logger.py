# ==============================================================================
# SISTEMA DE PROFILING INTERNO
# ==============================================================================
# Mide rendimiento de rutas y funciones sin afectar la experiencia del usuario.
# Todo se registra en el logger "app_inventario.performance"; los handlers
# (consola, archivo) los instala logging_config.
#
# ACTIVAR/DESACTIVAR: INVENTARIO_ENABLE_PROFILING / init_profiling(app, enabled)
# ==============================================================================

import logging
import threading
import time
from collections import defaultdict
from functools import wraps

LOGGER = logging.getLogger('app_inventario.performance')

# ═══════════════════════════════════════════════════════════════════════════
# CONFIGURACIÓN
# ═══════════════════════════════════════════════════════════════════════════

_enabled = True

# Umbrales de tiempo (en milisegundos)
THRESHOLD_WARNING = 300   # Advertencia si supera 300ms
THRESHOLD_CRITICAL = 700  # Crítico si supera 700ms

# Mapeo de rutas a nombres legibles (para logs más humanos)
ROUTE_NAMES = {
    # Autenticación
    'POST /auth/signup': 'Crear cuenta',
    'POST /auth/login': 'Iniciar sesión',
    'POST /auth/logout': 'Cerrar sesión',
    'GET /api/session': 'Inicializar sesión',

    # Tiendas
    'GET /api/stores': 'Ver tiendas',
    'POST /api/stores': 'Crear tienda',
    'PUT /api/stores/<store_id>': 'Editar tienda',
    'DELETE /api/stores/<store_id>': 'Eliminar tienda',
    'POST /api/stores/<store_id>/select': 'Seleccionar tienda',

    # Productos
    'GET /api/products': 'Ver productos',
    'POST /api/products': 'Crear producto',
    'GET /api/products/<product_id>': 'Obtener producto',
    'PUT /api/products/<product_id>': 'Editar producto',
    'DELETE /api/products/<product_id>': 'Eliminar producto',
    'GET /api/products/barcode/<code>': 'Buscar por código de barras',
    'POST /api/products/import': 'Importar productos',
    'GET /api/products/summary': 'Resumen de inventario',

    # Códigos de barras
    'GET /api/barcodes/new': 'Generar código de barras',
    'GET /api/barcodes/<code>.svg': 'Imprimir etiqueta',

    # Movimientos
    'GET /api/movements': 'Ver movimientos',
    'POST /api/movements': 'Registrar movimiento',
    'POST /api/movements/batch': 'Confirmar carrito',
    'PATCH /api/movements/<movement_id>': 'Actualizar envío',
    'GET /api/movements/stats': 'Ver estadísticas de movimientos',
}


# ═══════════════════════════════════════════════════════════════════════════
# ESTADÍSTICAS DE FUNCIONES (en memoria)
# ═══════════════════════════════════════════════════════════════════════════

# Estructura: {nombre_funcion: {calls: int, total_time: float, max_time: float}}
_function_stats = defaultdict(lambda: {'calls': 0, 'total_time': 0.0, 'max_time': 0.0})
_stats_lock = threading.Lock()


def is_enabled():
    return _enabled


def set_enabled(enabled):
    """Activa o desactiva el profiling en todo el proceso."""
    global _enabled
    _enabled = bool(enabled)


def _get_route_name(method, path, rule=None):
    """
    Obtiene nombre legible para una ruta.
    Intenta hacer match con la regla de Flask, si no, devuelve la ruta raw.
    """
    key = f"{method} {path}"
    if key in ROUTE_NAMES:
        return ROUTE_NAMES[key]

    if rule:
        rule_key = f"{method} {rule}"
        if rule_key in ROUTE_NAMES:
            return ROUTE_NAMES[rule_key]

    return key


# ═══════════════════════════════════════════════════════════════════════════
# 1️⃣ PROFILING DE RUTAS (Middleware Flask)
# ═══════════════════════════════════════════════════════════════════════════

def log_route_performance(method, path, rule, time_ms, user=None):
    """
    Registra el rendimiento de una ruta. Las rutas lentas suben de nivel.

    Args:
        method: GET, POST, etc.
        path: Ruta solicitada (/api/movements)
        rule: Regla de Flask (/api/movements/<movement_id>)
        time_ms: Tiempo en milisegundos
        user: Usuario que hizo la petición (opcional)
    """
    if not _enabled:
        return

    action_name = _get_route_name(method, path, rule)
    user_str = user or 'anónimo'

    if time_ms >= THRESHOLD_CRITICAL:
        LOGGER.error(
            "Ruta MUY LENTA: %s | usuario=%s | %s %s | %.0f ms (umbral: %d ms)",
            action_name, user_str, method, path, time_ms, THRESHOLD_CRITICAL,
        )
    elif time_ms >= THRESHOLD_WARNING:
        LOGGER.warning(
            "Ruta LENTA: %s | usuario=%s | %s %s | %.0f ms (umbral: %d ms)",
            action_name, user_str, method, path, time_ms, THRESHOLD_WARNING,
        )
    else:
        LOGGER.info("%s | usuario=%s | %s %s | %.0f ms", action_name, user_str, method, path, time_ms)


# ═══════════════════════════════════════════════════════════════════════════
# 2️⃣ HOOKS PARA FLASK (before/after request)
# ═══════════════════════════════════════════════════════════════════════════

def init_profiling(app, enabled=True):
    """
    Inicializa el sistema de profiling en una app Flask.
    Registra hooks before_request y after_request.

    Uso:
        from app_inventario.performance_logger import init_profiling
        init_profiling(app, app.config['ENABLE_PROFILING'])
    """
    set_enabled(enabled)
    if not enabled:
        return

    @app.before_request
    def _start_timer():
        from flask import g
        g.start_time = time.perf_counter()

    @app.after_request
    def _log_request(response):
        from flask import g, request, session

        if not hasattr(g, 'start_time'):
            return response

        elapsed = (time.perf_counter() - g.start_time) * 1000  # ms

        path = request.path
        if path.startswith('/static') or path.startswith('/images'):
            return response

        rule = str(request.url_rule) if request.url_rule else path
        log_route_performance(request.method, path, rule, elapsed, session.get('user_email'))
        return response


# ═══════════════════════════════════════════════════════════════════════════
# 3️⃣ DECORADOR PARA FUNCIONES CLAVE
# ═══════════════════════════════════════════════════════════════════════════

def profile_function(func=None, name=None):
    """
    Decorador para medir rendimiento de funciones críticas.

    Uso:
        @profile_function
        def mi_funcion():
            ...

        @profile_function(name="Registrar movimiento")
        def record_movement(self, request):
            ...

    Registra:
        - Cantidad de llamadas
        - Tiempo promedio
        - Tiempo máximo
    """
    def decorator(fn):
        func_name = name or fn.__name__

        @wraps(fn)
        def wrapper(*args, **kwargs):
            if not _enabled:
                return fn(*args, **kwargs)

            start = time.perf_counter()
            try:
                return fn(*args, **kwargs)
            finally:
                elapsed_ms = (time.perf_counter() - start) * 1000

                with _stats_lock:
                    stats = _function_stats[func_name]
                    stats['calls'] += 1
                    stats['total_time'] += elapsed_ms
                    if elapsed_ms > stats['max_time']:
                        stats['max_time'] = elapsed_ms

                if elapsed_ms >= THRESHOLD_CRITICAL:
                    LOGGER.error("Función CRÍTICA: %s | %.0f ms", func_name, elapsed_ms)
                elif elapsed_ms >= THRESHOLD_WARNING:
                    LOGGER.warning("Función LENTA: %s | %.0f ms", func_name, elapsed_ms)

        return wrapper

    # Permitir uso sin paréntesis: @profile_function
    if func is not None:
        return decorator(func)
    return decorator


# ═══════════════════════════════════════════════════════════════════════════
# 4️⃣ REPORTE DE ESTADÍSTICAS
# ═══════════════════════════════════════════════════════════════════════════

def get_function_stats():
    """
    Obtiene estadísticas de todas las funciones perfiladas.

    Returns:
        dict: {nombre: {calls, avg_time, max_time}}
    """
    with _stats_lock:
        result = {}
        for func_name, stats in _function_stats.items():
            calls = stats['calls']
            avg = stats['total_time'] / calls if calls > 0 else 0
            result[func_name] = {
                'calls': calls,
                'avg_time': round(avg, 2),
                'max_time': round(stats['max_time'], 2)
            }
        return result


def reset_stats():
    """Reinicia todas las estadísticas (útil para testing)"""
    with _stats_lock:
        _function_stats.clear()


__all__ = [
    'init_profiling',
    'profile_function',
    'get_function_stats',
    'reset_stats',
    'is_enabled',
    'set_enabled',
]
