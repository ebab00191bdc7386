import pytest

from app_inventario.errors import BarcodeGenerationError, ValidationError
from app_inventario.services import BarcodeService


def sequence(*values):
    it = iter(values)
    return lambda low, high: next(it)


def test_generated_code_skips_used_ones(container, make_product):
    make_product(barcode='FULREF1111')
    make_product(barcode='FULREF2222')
    service = BarcodeService(container.product_repo, randint=sequence(1111, 2222, 3333))
    assert service.generate_unique_barcode() == 'FULREF3333'


def test_generation_gives_up(container, make_product):
    make_product(barcode='FULREF5555')
    service = BarcodeService(container.product_repo, randint=lambda low, high: 5555)
    with pytest.raises(BarcodeGenerationError):
        service.generate_unique_barcode()


def test_random_range(container):
    seen = []

    def fake_randint(low, high):
        seen.append((low, high))
        return 1000

    BarcodeService(container.product_repo, randint=fake_randint).generate_unique_barcode()
    assert seen == [(1000, 9999)]


def test_unique_excludes_product_being_edited(container, make_product):
    product = make_product(barcode='EDIT-1')
    service = container.barcode_service
    assert service.is_barcode_unique('EDIT-1') is False
    assert service.is_barcode_unique('EDIT-1', exclude_product_id=product.id) is True
    assert service.is_barcode_unique('LIBRE-1') is True


def test_render_svg(container):
    svg = container.barcode_service.render_svg('FULREF1234')
    assert isinstance(svg, bytes)
    assert b'<svg' in svg


def test_render_svg_requires_code(container):
    with pytest.raises(ValidationError):
        container.barcode_service.render_svg('')
