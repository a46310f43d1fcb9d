import mongomock
import pytest
from bson.objectid import ObjectId
from fastapi.testclient import TestClient

from auth import create_admin_token, create_token, hash_password
from database import Database
from main import create_app
from orders import OrderStore
from reviews import ReviewStore, ensure_indexes
from schemas import OrderItem
from uploads import LocalImageStore


@pytest.fixture()
def database():
    return Database(name="shop_test", client=mongomock.MongoClient(), initializers=[ensure_indexes])


@pytest.fixture()
def db(database):
    return database.connect()


@pytest.fixture()
def images(tmp_path):
    return LocalImageStore(str(tmp_path / "uploads"), "/uploads", max_bytes=1024)


@pytest.fixture()
def order_store(db):
    return OrderStore(db)


@pytest.fixture()
def review_store(db, images):
    return ReviewStore(db, images)


@pytest.fixture()
def client(database, images):
    return TestClient(create_app(database=database, images=images))


@pytest.fixture()
def user_id(db):
    result = db["user"].insert_one(
        {
            "name": "Nimal Perera",
            "email": "nimal@example.com",
            "password_hash": hash_password("secret"),
            "cartData": {"prod-1": {"M": 2}},
        }
    )
    return str(result.inserted_id)


@pytest.fixture()
def user_headers(user_id):
    return {"token": create_token({"id": user_id})}


@pytest.fixture()
def admin_headers():
    return {"token": create_admin_token()}


@pytest.fixture()
def product_ids():
    return [str(ObjectId()), str(ObjectId())]


@pytest.fixture()
def items(product_ids):
    return [
        OrderItem(
            product=product_ids[0],
            name="Batik Shirt",
            image=["https://cdn.example.com/shirt.jpg"],
            price=100,
            quantity=2,
            size="M",
            sellername="Lanka Crafts",
        ),
        OrderItem(
            product=product_ids[1],
            name="Tea Sampler",
            image=["https://cdn.example.com/tea.jpg", "https://cdn.example.com/tea-2.jpg"],
            price=50,
            quantity=1,
            size="Standard",
            sellername="Hill Estates",
        ),
    ]


@pytest.fixture()
def delivered_order(order_store, user_id, items):
    order_id = order_store.place_order(user_id, items, {"city": "Kandy"}, "COD")
    order_store.set_status(order_id, "Delivered")
    return order_id
