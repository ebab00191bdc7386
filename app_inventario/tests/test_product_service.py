import io

import pytest

from app_inventario.errors import DuplicateBarcodeError, ProductNotFoundError, ValidationError
from app_inventario.services.product_service import parse_money, parse_stock


def test_create_product_generates_barcode(make_product, store):
    product = make_product(name='  Teclado  ', stock='7')
    assert product.name == 'Teclado'
    assert product.barcode.startswith('FULREF')
    assert len(product.barcode) == len('FULREF') + 4
    assert product.stock == 7
    assert product.store_id == store.id
    assert product.image == ''


@pytest.mark.parametrize('raw, expected', [
    ('12,5', 12.5),
    (3, 3.0),
    ('0', 0.0),
    (19.999, 20.0),
])
def test_parse_money(raw, expected):
    assert parse_money(raw, 'Precio') == expected


@pytest.mark.parametrize('raw', ['', None, '-1', 'gratis', True])
def test_parse_money_rejects(raw):
    with pytest.raises(ValidationError):
        parse_money(raw, 'Precio')


@pytest.mark.parametrize('raw, expected', [(None, 0), ('', 0), ('4', 4), (4.0, 4)])
def test_parse_stock(raw, expected):
    assert parse_stock(raw) == expected


@pytest.mark.parametrize('raw', ['-2', '1.5', 'muchos'])
def test_parse_stock_rejects(raw):
    with pytest.raises(ValidationError):
        parse_stock(raw)


@pytest.mark.parametrize('changes', [
    {'name': ''},
    {'name': 'x' * 201},
    {'category': 'Juguetes'},
    {'category': ''},
    {'unit_cost': -5},
    {'sale_price': 'abc'},
])
def test_invalid_product_data(make_product, changes):
    with pytest.raises(ValidationError):
        make_product(**changes)


def test_duplicate_barcode_rejected(make_product):
    make_product(name='Uno', barcode='7701234567890')
    with pytest.raises(DuplicateBarcodeError) as exc:
        make_product(name='Dos', barcode='7701234567890')
    assert exc.value.barcode == '7701234567890'


def test_update_keeps_own_barcode_and_ignores_stock(container, make_product, store, user_id):
    product = make_product(name='Parlante', stock=9, barcode='ABC-1')
    updated = container.product_service.save_product(store.id, user_id, {
        'name': 'Parlante Bluetooth',
        'category': 'Electronica',
        'unit_cost': 30,
        'sale_price': 55.5,
        'barcode': 'ABC-1',
        'stock': 999,
    }, product_id=product.id)

    assert updated.name == 'Parlante Bluetooth'
    assert updated.sale_price == 55.5
    assert updated.barcode == 'ABC-1'
    assert updated.stock == 9


def test_update_product_of_other_store(container, make_product, user_id):
    product = make_product()
    other = container.store_service.create_store(user_id, 'Bodega')
    with pytest.raises(ProductNotFoundError):
        container.product_service.save_product(other.id, user_id, {
            'name': 'X', 'category': 'Otra', 'unit_cost': 1, 'sale_price': 1,
        }, product_id=product.id)


def test_image_url_query_string_is_stripped(make_product):
    product = make_product(image='/images/foto.png?v=123')
    assert product.image == '/images/foto.png'


def test_upload_image(container, make_product, tmp_path):
    product = make_product(image=None)
    updated = container.product_service.save_product(
        product.store_id, product.user_id,
        {'name': product.name, 'category': product.category,
         'unit_cost': product.unit_cost, 'sale_price': product.sale_price},
        product_id=product.id,
        image=(io.BytesIO(b'\x89PNG fake'), 'foto producto.PNG'),
    )
    assert updated.image.startswith('/images/')
    assert updated.image.endswith('.png')

    filename = updated.image[len('/images/'):]
    path = container.image_repo.path_for(filename)
    assert path is not None
    with open(path, 'rb') as f:
        assert f.read() == b'\x89PNG fake'


def test_upload_rejects_non_image(container, make_product):
    product = make_product()
    with pytest.raises(ValidationError):
        container.product_service.save_product(
            product.store_id, product.user_id,
            {'name': 'Y', 'category': 'Otra', 'unit_cost': 1, 'sale_price': 1},
            product_id=product.id,
            image=(io.BytesIO(b'#!/bin/sh'), 'script.sh'),
        )


def test_image_path_rejects_traversal(container):
    assert container.image_repo.path_for('../products.json') is None
    assert container.image_repo.path_for('no-existe.png') is None


def test_search_by_barcode_scoped_to_store(container, make_product, store, user_id):
    product = make_product(barcode='SCAN-1')
    assert container.product_service.search_by_barcode('SCAN-1', store.id).id == product.id
    assert container.product_service.search_by_barcode('SCAN-1', 'otra-tienda') is None
    assert container.product_service.search_by_barcode('   ', store.id) is None


def test_list_products_newest_first(container, make_product, store):
    make_product(name='Primero')
    make_product(name='Segundo')
    names = [p.name for p in container.product_service.list_products(store.id)]
    assert names == ['Segundo', 'Primero']


def test_inventory_value(container, make_product, store):
    make_product(name='A', stock=2, unit_cost=10.25)
    make_product(name='B', stock=3, unit_cost=4, category='Hogar')
    summary = container.product_service.inventory_value(store.id)
    assert summary['products'] == 2
    assert summary['units'] == 5
    assert summary['value'] == 32.5
    assert summary['by_category'] == {'Electronica': 20.5, 'Hogar': 12.0}


def test_delete_product(container, make_product, store):
    product = make_product()
    container.product_service.delete_product(product.id, store.id)
    with pytest.raises(ProductNotFoundError):
        container.product_service.get_product(product.id, store.id)


def test_import_products_reports_each_row(container, store, user_id):
    rows = [
        {'name': 'Libro A', 'category': 'Libros', 'unit_cost': '10', 'sale_price': '20', 'stock': '3'},
        {'name': '', 'category': 'Libros', 'unit_cost': '1', 'sale_price': '1'},
        {'name': 'Libro C', 'category': 'Libros', 'unit_cost': '5,5', 'sale_price': '9'},
    ]
    result = container.product_service.import_products(store.id, user_id, rows)

    assert [line.committed for line in result.lines] == [True, False, True]
    assert result.lines[1].error_type == 'ValidationError'
    assert result.lines[0].product.stock == 3
    assert result.lines[2].product.unit_cost == 5.5
    assert len(container.product_service.list_products(store.id)) == 2
