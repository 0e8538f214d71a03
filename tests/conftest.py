import base64, io, os, tempfile

# point the app's default engine somewhere disposable before foodrescue.config is imported
os.environ.setdefault("DATABASE_URL", "sqlite:///" + os.path.join(tempfile.mkdtemp(), "test.db"))

import pytest
from fastapi.testclient import TestClient
from PIL import Image
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from foodrescue import crud, main
from foodrescue.database import Base, get_db, make_engine

BIRYANI_REPLY = """Here is my analysis:
```json
{
  "foodType": "Vegetable biryani",
  "quantity": "3 kg",
  "confidence": 0.92,
  "expiryHours": 6
}
```"""


def png_data_url():
    buf = io.BytesIO()
    Image.new("RGB", (2, 2), (0, 128, 0)).save(buf, "PNG")
    return "data:image/png;base64," + base64.b64encode(buf.getvalue()).decode("ascii")


@pytest.fixture
def engine():
    eng = make_engine("sqlite://", poolclass=StaticPool)
    Base.metadata.create_all(bind=eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture
def db(session_factory):
    s = session_factory()
    yield s
    s.close()


@pytest.fixture
def user(db):
    return crud.create_user(db, "a@x.com", "Asha")


class FakeVerifier:
    def __init__(self, reply=BIRYANI_REPLY, error=None):
        self.reply = reply
        self.error = error
        self.calls = []

    def __call__(self, image):
        self.calls.append(image)
        if self.error:
            raise self.error
        return self.reply


@pytest.fixture
def verifier():
    return FakeVerifier()


@pytest.fixture
def client(session_factory, verifier):
    def override_db():
        s = session_factory()
        try:
            yield s
        finally:
            s.close()

    main.app.dependency_overrides[get_db] = override_db
    main.app.dependency_overrides[main.get_verifier] = lambda: verifier
    main.app.dependency_overrides[main.get_locator] = lambda: (lambda lat, lng: f"Canteen near {lat},{lng}")
    yield TestClient(main.app)
    main.app.dependency_overrides.clear()
