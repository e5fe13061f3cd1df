# tests/conftest.py
import os
import tempfile

# settings are read at import time, so the environment goes first
_TMP = tempfile.mkdtemp(prefix="dinebill-tests-")
os.environ.setdefault("APP_SECRET", "dinebill-test-secret-0123456789abcdefghijkl")
os.environ.setdefault("DB_URL", f"sqlite:///{_TMP}/dinebill.db")
os.environ.setdefault("LOG_LEVEL", "WARNING")
os.environ["TZ"] = "UTC"

import pytest
from fastapi.testclient import TestClient

from dinebill.db import Base, SessionLocal, engine
from dinebill.models.core import GstMode, MenuItem, Restaurant, User, UserRole
from dinebill.realtime.pubsub import PubSub
from dinebill.util.security import create_token


@pytest.fixture(scope="session")
def client():
    from dinebill.main import app
    with TestClient(app) as c:
        yield c


@pytest.fixture(autouse=True)
def _clean_tables(client):
    yield
    with engine.begin() as conn:
        for table in reversed(Base.metadata.sorted_tables):
            conn.execute(table.delete())


@pytest.fixture
def db():
    s = SessionLocal()
    try:
        yield s
    finally:
        s.close()


@pytest.fixture
def bus():
    return PubSub()


@pytest.fixture
def recorded(bus):
    events = []
    bus.subscribe(events.append)
    return events


@pytest.fixture
def app_bus(client):
    return client.app.state.kds_bus


@pytest.fixture
def make_restaurant(db):
    def _make(name="Chai Point", gst_mode=GstMode.CGST_SGST, cgst=2.5, sgst=2.5, igst=5, prefix="INV"):
        r = Restaurant(name=name, gst_mode=gst_mode, cgst_rate=cgst, sgst_rate=sgst, igst_rate=igst,
                       invoice_prefix=prefix, invoice_seq=0)
        db.add(r)
        db.commit()
        return r.id
    return _make


@pytest.fixture
def restaurant_id(make_restaurant):
    return make_restaurant()


@pytest.fixture
def headers_for(db):
    def _make(restaurant_id, role=UserRole.OWNER):
        u = User(restaurant_id=restaurant_id, name=f"{role.value.title()} User", pass_hash="!", role=role)
        db.add(u)
        db.commit()
        return {"Authorization": f"Bearer {create_token(u.id, restaurant_id, role.value)}"}
    return _make


@pytest.fixture
def auth_headers(restaurant_id, headers_for):
    return headers_for(restaurant_id)


@pytest.fixture
def menu_item(db):
    def _make(restaurant_id, name, price, enabled=True):
        m = MenuItem(restaurant_id=restaurant_id, name=name, price=price, is_enabled=enabled)
        db.add(m)
        db.commit()
        return m.id
    return _make


@pytest.fixture(scope="session")
def rng_suffix():
    import random, string
    return "".join(random.choices(string.ascii_lowercase + string.digits, k=6))
