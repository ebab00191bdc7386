# ==============================================================================
# APLICACIÓN FLASK - API JSON del inventario multi-tienda
# ==============================================================================
# Las rutas solo orquestan request → service → response. Toda la lógica de
# negocio vive en services/ y la persistencia en repositories/.
#
# Respuestas: {"ok": true, ...} o {"ok": false, "error": "..."}
# Códigos: 400 validación, 401 sin sesión, 403 CSRF, 404 inexistente,
#          409 stock insuficiente, 503 backend no disponible
# ==============================================================================

import csv
import io
import logging
import uuid
from functools import wraps

from flask import Blueprint, Flask, Response, current_app, request, send_file, session
from werkzeug.exceptions import RequestEntityTooLarge

from app_inventario.app_container import AppContainer, get_container
from app_inventario.config import load_config
from app_inventario.errors import (
    AuthenticationError,
    BackendUnavailableError,
    InsufficientStockError,
    InventarioError,
    LedgerInconsistencyError,
    NotFoundError,
    ValidationError,
)
from app_inventario.logging_config import configure_logging
from app_inventario.models import MovementRequest
from app_inventario.performance_logger import init_profiling
from app_inventario.services import MovementFilters

LOGGER = logging.getLogger(__name__)

api = Blueprint('inventario', __name__)


# ═══════════════════════════════════════════════════════════════════════════
# UTILIDADES DE RUTAS
# ═══════════════════════════════════════════════════════════════════════════

def _container() -> AppContainer:
    return current_app.extensions['inventario']


def _json_body():
    """Cuerpo JSON de la petición (sin el token CSRF)."""
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError('Datos no recibidos')
    data = dict(data)
    data.pop('csrf_token', None)
    return data


def _form_or_json():
    """Datos de un formulario multipart (con imagen) o de un cuerpo JSON."""
    if request.is_json:
        return _json_body()
    data = request.form.to_dict()
    data.pop('csrf_token', None)
    return data


def _int_arg(name, default=None):
    value = request.args.get(name)
    if value in (None, ''):
        return default
    try:
        return int(value)
    except ValueError:
        raise ValidationError(f'Parámetro {name} inválido')


def _current_store_id():
    return _container().session_service.current_store_id(session)


def _uploaded_image():
    image = request.files.get('image')
    if image is None or not image.filename:
        return None
    return image.stream, image.filename


# ═══════════════════════════════════════════════════════════════════════════
# AUTENTICACIÓN Y CSRF
# ═══════════════════════════════════════════════════════════════════════════

def login_required(f):
    @wraps(f)
    def wrapper(*args, **kwargs):
        if 'user_id' not in session:
            return {"ok": False, "error": "Debes iniciar sesión"}, 401
        return f(*args, **kwargs)
    return wrapper


def store_required(f):
    """Exige una tienda seleccionada en la sesión."""
    @wraps(f)
    def wrapper(*args, **kwargs):
        if not _current_store_id():
            return {"ok": False, "error": "Selecciona una tienda"}, 400
        return f(*args, **kwargs)
    return wrapper


def generate_csrf_token():
    if 'csrf_token' not in session:
        session['csrf_token'] = uuid.uuid4().hex
    return session['csrf_token']


def verify_csrf(f):
    @wraps(f)
    def wrapper(*args, **kwargs):
        if request.method in ('POST', 'PUT', 'PATCH', 'DELETE'):
            token = session.get('csrf_token')
            # Token en cabecera, formulario o cuerpo JSON
            form_token = (
                request.headers.get('X-CSRF-Token') or
                request.headers.get('X-CSRFToken') or
                request.form.get('csrf_token')
            )
            if not form_token and request.is_json:
                json_data = request.get_json(silent=True) or {}
                if isinstance(json_data, dict):
                    form_token = json_data.get('csrf_token')

            if not token or not form_token or token != form_token:
                LOGGER.warning("CSRF inválido en %s %s", request.method, request.path)
                return {"ok": False, "error": "CSRF token inválido"}, 403
        return f(*args, **kwargs)
    return wrapper


@api.route('/api/csrf', methods=['GET'])
def api_csrf():
    return {"ok": True, "csrf_token": generate_csrf_token()}


@api.route('/auth/signup', methods=['POST'])
@verify_csrf
def auth_signup():
    data = _json_body()
    auth = _container().auth_service
    user = auth.sign_up(data.get('email'), data.get('password'))
    auth.start_session(session, user)
    session.permanent = True
    return {"ok": True, "user": user.to_public_dict()}, 201


@api.route('/auth/login', methods=['POST'])
@verify_csrf
def auth_login():
    data = _json_body()
    user = _container().auth_service.sign_in(data.get('email'), data.get('password'), session)
    session.permanent = True  # Sesión permanente (usa PERMANENT_SESSION_LIFETIME)
    return {"ok": True, "user": user.to_public_dict()}


@api.route('/auth/logout', methods=['POST'])
@verify_csrf
def auth_logout():
    _container().auth_service.sign_out(session)
    return {"ok": True}


@api.route('/api/session', methods=['GET'])
@login_required
def api_session():
    state = _container().session_service.initialize(session, session['user_id'])
    payload = state.to_dict()
    payload.update(ok=True, user={'id': session['user_id'], 'email': session.get('user_email')})
    return payload


# ═══════════════════════════════════════════════════════════════════════════
# TIENDAS
# ═══════════════════════════════════════════════════════════════════════════

@api.route('/api/stores', methods=['GET'])
@login_required
def api_list_stores():
    stores = _container().store_service.list_user_stores(session['user_id'])
    return {"ok": True, "stores": [s.to_dict() for s in stores]}


@api.route('/api/stores', methods=['POST'])
@login_required
@verify_csrf
def api_create_store():
    data = _json_body()
    store = _container().store_service.create_store(
        session['user_id'],
        data.get('name'),
        description=data.get('description'),
        address=data.get('address'),
    )
    return {"ok": True, "store": store.to_dict()}, 201


@api.route('/api/stores/<store_id>', methods=['PUT'])
@login_required
@verify_csrf
def api_update_store(store_id):
    container = _container()
    store = container.store_service.update_store(store_id, session['user_id'], _json_body())
    if _current_store_id() == store.id:
        container.session_service.save_current_store(session, store)
    return {"ok": True, "store": store.to_dict()}


@api.route('/api/stores/<store_id>', methods=['DELETE'])
@login_required
@verify_csrf
def api_delete_store(store_id):
    container = _container()
    container.store_service.delete_store(store_id, session['user_id'])
    if _current_store_id() == store_id:
        container.session_service.clear_stored_store(session)
    return {"ok": True}


@api.route('/api/stores/<store_id>/members', methods=['POST'])
@login_required
@verify_csrf
def api_add_store_member(store_id):
    data = _json_body()
    container = _container()
    user = container.auth_service.find_user_by_email(data.get('email'))
    member = container.store_service.add_user_to_store(
        store_id, session['user_id'], user.id, role=data.get('role') or 'staff'
    )
    return {"ok": True, "member": member.to_dict()}, 201


@api.route('/api/stores/<store_id>/select', methods=['POST'])
@login_required
@verify_csrf
def api_select_store(store_id):
    store = _container().session_service.select_store(session, session['user_id'], store_id)
    return {"ok": True, "store": store.to_dict()}


# ═══════════════════════════════════════════════════════════════════════════
# PRODUCTOS
# ═══════════════════════════════════════════════════════════════════════════

@api.route('/api/products', methods=['GET'])
@login_required
@store_required
def api_list_products():
    products = _container().product_service.list_products(_current_store_id())
    return {"ok": True, "products": [p.to_dict() for p in products]}


@api.route('/api/products', methods=['POST'])
@login_required
@store_required
@verify_csrf
def api_create_product():
    product = _container().product_service.save_product(
        _current_store_id(),
        session['user_id'],
        _form_or_json(),
        image=_uploaded_image(),
    )
    return {"ok": True, "product": product.to_dict()}, 201


@api.route('/api/products/summary', methods=['GET'])
@login_required
@store_required
def api_products_summary():
    summary = _container().product_service.inventory_value(_current_store_id())
    return {"ok": True, "summary": summary}


@api.route('/api/products/barcode/<code>', methods=['GET'])
@login_required
@store_required
def api_product_by_barcode(code):
    product = _container().product_service.search_by_barcode(code, _current_store_id())
    if product is None:
        return {"ok": False, "error": "Producto no encontrado"}, 404
    return {"ok": True, "product": product.to_dict()}


@api.route('/api/products/import', methods=['POST'])
@login_required
@store_required
@verify_csrf
def api_import_products():
    """Importación masiva desde un CSV (campo 'file') o JSON {"rows": [...]}."""
    upload = request.files.get('file')
    if upload is not None and upload.filename:
        text = upload.stream.read().decode('utf-8-sig')
        rows = list(csv.DictReader(io.StringIO(text)))
    else:
        rows = _json_body().get('rows')
    if not isinstance(rows, list) or not rows:
        raise ValidationError('El archivo está vacío o no tiene datos válidos')

    result = _container().product_service.import_products(_current_store_id(), session['user_id'], rows)
    payload = result.to_dict()
    payload['ok'] = result.ok
    return payload, 200 if result.ok else 207


@api.route('/api/products/<product_id>', methods=['GET'])
@login_required
@store_required
def api_get_product(product_id):
    product = _container().product_service.get_product(product_id, _current_store_id())
    return {"ok": True, "product": product.to_dict()}


@api.route('/api/products/<product_id>', methods=['PUT'])
@login_required
@store_required
@verify_csrf
def api_update_product(product_id):
    product = _container().product_service.save_product(
        _current_store_id(),
        session['user_id'],
        _form_or_json(),
        product_id=product_id,
        image=_uploaded_image(),
    )
    return {"ok": True, "product": product.to_dict()}


@api.route('/api/products/<product_id>', methods=['DELETE'])
@login_required
@store_required
@verify_csrf
def api_delete_product(product_id):
    _container().product_service.delete_product(product_id, _current_store_id())
    return {"ok": True}


# ═══════════════════════════════════════════════════════════════════════════
# CÓDIGOS DE BARRAS Y TRANSPORTADORAS
# ═══════════════════════════════════════════════════════════════════════════

@api.route('/api/barcodes/new', methods=['GET'])
@login_required
def api_new_barcode():
    return {"ok": True, "barcode": _container().barcode_service.generate_unique_barcode()}


@api.route('/api/barcodes/<code>.svg', methods=['GET'])
@login_required
def api_barcode_svg(code):
    svg = _container().barcode_service.render_svg(code)
    return Response(svg, mimetype='image/svg+xml')


@api.route('/api/carriers', methods=['GET'])
@login_required
def api_carriers():
    container = _container()
    carriers = container.retry_policy.call(container.carrier_repo.list_active)
    return {"ok": True, "carriers": carriers}


# ═══════════════════════════════════════════════════════════════════════════
# MOVIMIENTOS DE INVENTARIO
# ═══════════════════════════════════════════════════════════════════════════

def _movement_request(data):
    data.setdefault('source', 'web')
    data.setdefault('device_info', {'user_agent': request.headers.get('User-Agent', '')})
    return MovementRequest.from_dict(
        data,
        store_id=_current_store_id(),
        user_id=session['user_id'],
    )


@api.route('/api/movements', methods=['GET'])
@login_required
@store_required
def api_list_movements():
    page = _container().movement_query_service.list_movements(
        _current_store_id(),
        MovementFilters.from_dict(request.args),
        page=_int_arg('page', 0),
        page_size=_int_arg('page_size'),
    )
    payload = page.to_dict()
    payload['ok'] = True
    return payload


@api.route('/api/movements', methods=['POST'])
@login_required
@store_required
@verify_csrf
def api_record_movement():
    container = _container()
    movement = container.movement_service.record_movement(_movement_request(_json_body()))
    product = container.product_service.get_product(movement.product_id, _current_store_id())
    return {"ok": True, "movement": movement.to_dict(), "product": product.to_dict()}, 201


@api.route('/api/movements/batch', methods=['POST'])
@login_required
@store_required
@verify_csrf
def api_record_batch():
    """
    Aplica un carrito. Los campos fuera de "lines" (guía, transportadora,
    notas, ...) son comunes a todas las líneas; cada línea puede sobrescribirlos.
    Una idempotency_key del carrito no se comparte: la línea i usa "<clave>:i"
    salvo que traiga la suya.
    """
    data = _json_body()
    lines = data.pop('lines', None)
    cart_key = data.pop('idempotency_key', None)
    if not isinstance(lines, list) or not lines:
        raise ValidationError('El carrito está vacío')

    requests = []
    for index, line in enumerate(lines):
        if not isinstance(line, dict):
            raise ValidationError('Línea de carrito inválida')
        merged = {**data, **line}
        if cart_key and not line.get('idempotency_key'):
            merged['idempotency_key'] = f"{cart_key}:{index}"
        requests.append(_movement_request(merged))

    result = _container().movement_service.record_batch(requests)
    payload = result.to_dict()
    return payload, 200 if result.ok else 207


@api.route('/api/movements/stats', methods=['GET'])
@login_required
@store_required
def api_movement_stats():
    stats = _container().movement_query_service.movement_stats(
        _current_store_id(), days=_int_arg('days', 30)
    )
    return {"ok": True, "stats": stats}


@api.route('/api/movements/<movement_id>', methods=['PATCH'])
@login_required
@store_required
@verify_csrf
def api_update_movement(movement_id):
    movement = _container().movement_service.update_movement_status(
        movement_id, _json_body(), store_id=_current_store_id()
    )
    return {"ok": True, "movement": movement.to_dict()}


# ═══════════════════════════════════════════════════════════════════════════
# IMÁGENES DE PRODUCTO
# ═══════════════════════════════════════════════════════════════════════════

@api.route('/images/<name>', methods=['GET'])
def product_image(name):
    path = _container().image_repo.path_for(name)
    if path is None:
        return {"ok": False, "error": "Imagen no encontrada"}, 404
    return send_file(path)


# ═══════════════════════════════════════════════════════════════════════════
# MANEJO DE ERRORES
# ═══════════════════════════════════════════════════════════════════════════

def status_for(error):
    """Código HTTP para una excepción del dominio."""
    if isinstance(error, ValidationError):
        return 400
    if isinstance(error, AuthenticationError):
        return 401
    if isinstance(error, NotFoundError):
        return 404
    if isinstance(error, InsufficientStockError):
        return 409
    if isinstance(error, (BackendUnavailableError, LedgerInconsistencyError)):
        return 503
    return 400


def handle_domain_error(error):
    status = status_for(error)
    if status >= 500:
        LOGGER.error("Error del backend en %s %s: %s", request.method, request.path, error)
    payload = {"ok": False, "error": str(error)}
    if isinstance(error, InsufficientStockError):
        payload['current_stock'] = error.current_stock
    return payload, status


def handle_too_large(error):
    return {"ok": False, "error": "El archivo supera el tamaño máximo permitido"}, 413


def set_security_headers(response):
    response.headers['X-Frame-Options'] = 'DENY'
    response.headers['X-Content-Type-Options'] = 'nosniff'
    response.headers['Referrer-Policy'] = 'no-referrer-when-downgrade'
    response.headers['Permissions-Policy'] = 'geolocation=(), microphone=()'
    # HSTS solo con HTTPS real
    if request.is_secure:
        response.headers['Strict-Transport-Security'] = 'max-age=31536000; includeSubDomains'
    return response


# ═══════════════════════════════════════════════════════════════════════════
# FÁBRICA DE LA APLICACIÓN
# ═══════════════════════════════════════════════════════════════════════════

def create_app(base_path=None, config_overrides=None):
    """
    Crea la aplicación Flask.

    Args:
        base_path: Directorio de datos (por defecto DATA_DIR de la configuración)
        config_overrides: Valores que reemplazan la configuración del entorno

    Returns:
        Aplicación Flask lista para servir
    """
    overrides = dict(config_overrides or {})
    if base_path:
        overrides['DATA_DIR'] = base_path
    config = load_config(overrides)

    configure_logging(config['LOG_LEVEL'], config['LOGS_DIR'])

    app = Flask(__name__)
    app.config.update(config)

    AppContainer.reset_instance()
    app.extensions['inventario'] = get_container(config['DATA_DIR'], config)

    init_profiling(app, config['ENABLE_PROFILING'])

    app.register_blueprint(api)
    app.register_error_handler(InventarioError, handle_domain_error)
    app.register_error_handler(RequestEntityTooLarge, handle_too_large)
    app.after_request(set_security_headers)

    LOGGER.info("Aplicación iniciada (datos en %s)", config['DATA_DIR'])
    return app
