import pytest
from flask_jwt_extended import create_access_token

from tesipedia.extensions import db, socketio
from tesipedia.main import create_app
from tesipedia.models.order import Order
from tesipedia.models.user import User


@pytest.fixture
def app(tmp_path):
    app = create_app("testing")
    app.config["CHAT_UPLOADS_FOLDER"] = str(tmp_path / "uploads")

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def users(app):
    admin = User(
        id=app.config["DEFAULT_ADMIN_ID"],
        email="soporte@tesipedia.com",
        full_name="Soporte Tesipedia",
        role="admin",
    )
    other_admin = User(
        id="usr-5d0c9a52-7b1e-4c39-9f0a-2f6e8d1b3c44",
        email="ops@tesipedia.com",
        full_name="Operaciones",
        role="admin",
    )
    writer = User(
        id="usr-8b7f1c2e-3a4d-4e5f-8a6b-7c8d9e0f1a2b",
        email="writer@tesipedia.com",
        full_name="Wendy Writer",
        role="writer",
    )
    client_user = User(
        id="usr-1f2e3d4c-5b6a-4798-8a1b-2c3d4e5f6a7b",
        email="client@tesipedia.com",
        full_name="Carla Client",
        role="client",
    )
    db.session.add_all([admin, other_admin, writer, client_user])
    db.session.commit()
    return {"admin": admin, "other_admin": other_admin, "writer": writer, "client": client_user}


@pytest.fixture
def order(users):
    o = Order(
        id="ORD-1a2b3c4d",
        title="Tesis de maestría",
        client_id=users["client"].id,
        writer_id=users["writer"].id,
    )
    db.session.add(o)
    db.session.commit()
    return o


@pytest.fixture
def token_for(app):
    def _token(user):
        return create_access_token(identity=user.id)
    return _token


@pytest.fixture
def auth_headers(token_for):
    def _headers(user):
        return {"Authorization": f"Bearer {token_for(user)}"}
    return _headers


@pytest.fixture
def socket_client(app, token_for):
    """Factory for connected Socket.IO test clients.

    Pass a ``User`` for an authenticated connection or a public id string
    for an anonymous visitor.
    """
    clients = []

    def _connect(who):
        if isinstance(who, str):
            auth = {"isPublic": True, "userId": who}
        else:
            auth = {"token": token_for(who)}
        c = socketio.test_client(app, auth=auth)
        clients.append(c)
        return c

    yield _connect

    for c in clients:
        if c.is_connected():
            c.disconnect()


@pytest.fixture
def received():
    """Payloads of one event name, draining the client queue."""
    def _received(sio_client, name):
        return [e["args"][0] for e in sio_client.get_received() if e["name"] == name]
    return _received
