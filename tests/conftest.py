import os

# keep the module-level engine away from a file database
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("AUTH_TOKEN_SECRET", "test-secret")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from auth import Principal, issue_token
from database import make_engine, init_db, get_db
from main import app
from models import User, Shopper, Seller, Product, CartItem


# ------------------
# Database
# ------------------
@pytest.fixture
def engine():
    eng = make_engine("sqlite://", poolclass=StaticPool)
    init_db(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def client(session_factory):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    # no context manager: the startup hook would create tables on the default engine
    yield TestClient(app)
    app.dependency_overrides.clear()


# ------------------
# Seed data
# ------------------
class Seeder:
    """Creates committed rows for a test."""

    def __init__(self, db):
        self.db = db
        self._count = 0

    def _user(self, role: str, is_active: bool = True) -> User:
        self._count += 1
        user = User(email=f"{role}{self._count}@example.com", role=role, is_active=is_active)
        self.db.add(user)
        self.db.flush()
        return user

    def shopper(self, first_name="Ada", last_name="Lovelace", is_active=True) -> Shopper:
        user = self._user("shopper", is_active)
        shopper = Shopper(user_id=user.id, first_name=first_name, last_name=last_name)
        self.db.add(shopper)
        self.db.commit()
        return shopper

    def seller(self, name="Grace", store_name="Grace's Goods", is_active=True) -> Seller:
        user = self._user("seller", is_active)
        seller = Seller(user_id=user.id, name=name, store_name=store_name)
        self.db.add(seller)
        self.db.commit()
        return seller

    def admin(self) -> User:
        user = self._user("admin")
        self.db.commit()
        return user

    def product(self, seller, name="Widget", price=10.0, stock=5, description="A very good widget",
                image=None, image_format=None) -> Product:
        product = Product(
            name=name, price=price, stock=stock, description=description,
            image=image, image_format=image_format, seller_id=seller.id,
        )
        self.db.add(product)
        self.db.commit()
        return product

    def cart_line(self, shopper, product, quantity) -> CartItem:
        line = CartItem(shopper_id=shopper.id, product_id=product.id, quantity=quantity)
        self.db.add(line)
        self.db.commit()
        return line


@pytest.fixture
def seed(db):
    return Seeder(db)


# ------------------
# Principals / tokens
# ------------------
def principal_of(profile, role: str, is_active: bool = True) -> Principal:
    user_id = profile.id if isinstance(profile, User) else profile.user_id
    return Principal(user_id=user_id, role=role, is_active=is_active)


def bearer(profile, role: str, is_active: bool = True) -> dict:
    p = principal_of(profile, role, is_active)
    return {"Authorization": f"Bearer {issue_token(p.user_id, p.role, p.is_active)}"}


@pytest.fixture
def as_principal():
    return principal_of


@pytest.fixture
def auth_headers():
    return bearer


@pytest.fixture
def shopper(seed):
    return seed.shopper()


@pytest.fixture
def seller(seed):
    return seed.seller()


@pytest.fixture
def product(seed, seller):
    return seed.product(seller, price=10.0, stock=5)
