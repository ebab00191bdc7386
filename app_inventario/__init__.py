# ==============================================================================
# APP INVENTARIO - Inventario multi-tienda con libro mayor de movimientos
# ==============================================================================
# Punto de entrada: app_inventario.main.create_app()
# ==============================================================================

__version__ = '1.0.0'
