import pytest

import functions
import ledger
from errors import ValidationError, NotFoundError, InsufficientStockError, ConflictError
from lifecycle import ShippingStatus, PaymentStatus
from models import Product, CartItem, OrderItem, SellerOrder


def _counts(db):
    return db.query(OrderItem).count(), db.query(SellerOrder).count()


def test_cart_checkout_moves_stock_into_one_order_pair(db, seed, shopper, product, as_principal):
    seed.cart_line(shopper, product, 2)

    result = functions.checkout(db, as_principal(shopper, "shopper"), productIds=[product.id])

    assert result["ok"] is True
    assert result["message"] == "Selected items checked out successfully"
    assert len(result["orderIds"]) == 1

    db.expire_all()
    assert db.get(Product, product.id).stock == 3
    assert db.query(CartItem).filter(CartItem.shopper_id == shopper.id).count() == 0

    item = db.get(OrderItem, result["orderIds"][0])
    assert item.total_amount == 20
    assert item.quantity == 2
    assert item.shipping_status is ShippingStatus.PENDING
    assert item.payment_status is PaymentStatus.PENDING

    mirror = item.seller_order
    assert mirror.shopper_order_id == item.id
    assert mirror.seller_id == product.seller_id == item.seller_id
    assert (mirror.quantity, mirror.total_amount, mirror.product_id) == (2, 20, product.id)
    assert mirror.shipping_status is ShippingStatus.PENDING
    assert mirror.payment_status is PaymentStatus.PENDING


def test_buy_now_with_too_little_stock_changes_nothing(db, seed, shopper, seller, as_principal):
    product = seed.product(seller, name="Lamp", stock=2)

    with pytest.raises(InsufficientStockError) as exc:
        functions.checkout(
            db, as_principal(shopper, "shopper"),
            singleProductId=product.id, singleProductQuantity=3,
        )

    assert "Lamp" in exc.value.message
    db.expire_all()
    assert db.get(Product, product.id).stock == 2
    assert _counts(db) == (0, 0)


def test_failed_line_rolls_back_the_whole_checkout(db, seed, shopper, seller, as_principal):
    plenty = seed.product(seller, name="Plenty", stock=10)
    scarce = seed.product(seller, name="Scarce", stock=1)
    seed.cart_line(shopper, plenty, 4)
    seed.cart_line(shopper, scarce, 1)
    # someone else bought the last one after it was added to the cart
    scarce.stock = 0
    db.commit()

    with pytest.raises(InsufficientStockError):
        functions.checkout(db, as_principal(shopper, "shopper"), productIds=[plenty.id, scarce.id])

    db.expire_all()
    assert db.get(Product, plenty.id).stock == 10
    assert db.query(CartItem).filter(CartItem.shopper_id == shopper.id).count() == 2
    assert _counts(db) == (0, 0)


def test_checkout_of_several_products_creates_a_pair_each(db, seed, shopper, seller, as_principal):
    other_seller = seed.seller(name="Linus", store_name="Penguin Supplies")
    a = seed.product(seller, name="A", price=2.5, stock=3)
    b = seed.product(other_seller, name="B", price=4.0, stock=3)
    seed.cart_line(shopper, a, 2)
    seed.cart_line(shopper, b, 1)

    result = functions.checkout(db, as_principal(shopper, "shopper"), productIds=[b.id, a.id])

    assert len(result["orderIds"]) == 2
    db.expire_all()
    items = db.query(OrderItem).order_by(OrderItem.product_id).all()
    assert [(i.product_id, i.seller_id, i.total_amount) for i in items] == [
        (a.id, seller.id, 5.0),
        (b.id, other_seller.id, 4.0),
    ]
    assert all(i.seller_order is not None for i in items)


def test_cart_and_buy_now_in_one_request(db, seed, shopper, seller, as_principal):
    in_cart = seed.product(seller, name="Cart thing", stock=5)
    direct = seed.product(seller, name="Direct thing", stock=5)
    seed.cart_line(shopper, in_cart, 1)

    result = functions.checkout(
        db, as_principal(shopper, "shopper"),
        productIds=[in_cart.id], singleProductId=direct.id, singleProductQuantity=2,
    )

    assert len(result["orderIds"]) == 2
    db.expire_all()
    assert db.get(Product, in_cart.id).stock == 4
    assert db.get(Product, direct.id).stock == 3


def test_buy_now_leaves_the_cart_alone(db, seed, shopper, product, as_principal):
    seed.cart_line(shopper, product, 1)

    functions.checkout(
        db, as_principal(shopper, "shopper"),
        singleProductId=product.id, singleProductQuantity=1,
    )

    db.expire_all()
    assert db.query(CartItem).filter(CartItem.shopper_id == shopper.id).count() == 1
    assert db.get(Product, product.id).stock == 4


def test_total_amount_is_a_price_snapshot(db, seed, shopper, product, as_principal):
    result = functions.checkout(
        db, as_principal(shopper, "shopper"),
        singleProductId=product.id, singleProductQuantity=2,
    )
    product.price = 99.0
    db.commit()

    db.expire_all()
    item = db.get(OrderItem, result["orderIds"][0])
    assert item.total_amount == 20
    assert item.seller_order.total_amount == 20


@pytest.mark.parametrize("kwargs", [
    {},
    {"productIds": []},
    {"singleProductId": 1},
    {"singleProductQuantity": 1},
])
def test_nothing_selected(db, shopper, as_principal, kwargs):
    with pytest.raises(ValidationError) as exc:
        functions.checkout(db, as_principal(shopper, "shopper"), **kwargs)
    assert exc.value.message == "No products selected for checkout"


@pytest.mark.parametrize("quantity", [0, -2, True])
def test_buy_now_quantity_must_be_positive(db, shopper, product, as_principal, quantity):
    with pytest.raises(ValidationError):
        functions.checkout(
            db, as_principal(shopper, "shopper"),
            singleProductId=product.id, singleProductQuantity=quantity,
        )
    db.expire_all()
    assert db.get(Product, product.id).stock == 5


def test_products_not_in_cart(db, shopper, product, as_principal):
    with pytest.raises(NotFoundError) as exc:
        functions.checkout(db, as_principal(shopper, "shopper"), productIds=[product.id])
    assert exc.value.message == "No matching items found in cart"


def test_buy_now_of_unknown_product(db, shopper, as_principal):
    with pytest.raises(NotFoundError):
        functions.checkout(
            db, as_principal(shopper, "shopper"),
            singleProductId=4242, singleProductQuantity=1,
        )
    assert _counts(db) == (0, 0)


def test_checkout_without_shopper_profile(db, seed, product, as_principal):
    stranger = seed.admin()
    with pytest.raises(NotFoundError) as exc:
        functions.checkout(
            db, as_principal(stranger, "shopper"),
            singleProductId=product.id, singleProductQuantity=1,
        )
    assert exc.value.message == "Shopper not found"


def test_cart_line_consumed_elsewhere_is_a_conflict(db, session_factory, seed, shopper, product):
    line = seed.cart_line(shopper, product, 1)
    line_id = line.id

    other = session_factory()
    other.query(CartItem).filter(CartItem.id == line_id).delete()
    other.commit()
    other.close()

    with pytest.raises(ConflictError):
        ledger._consume_cart_line(db, line)
