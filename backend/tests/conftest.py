"""
Pytest fixtures for storefront backend tests.

Provides an in-memory database, a fake Razorpay API (httpx.MockTransport),
a recording mailer, seeded users/products/carts and bearer tokens.
"""

import hashlib
import hmac
import itertools
import json
from decimal import Decimal

import httpx
import pytest

from storefront import create_app
from storefront.extensions import db
from storefront.models import User, Product, Address, Cart, CartItem
from storefront.models.auth import ROLE_ADMIN, ROLE_USER
from storefront.services import gateway_service, notification_service, order_service, session_service
from storefront.services.gateway_service import RazorpayGateway
from storefront.services.notification_service import NotificationDispatcher, MailDeliveryError
from storefront.services.session_service import Principal


KEY_ID = "rzp_test_key"
KEY_SECRET = "rzp_test_secret"
GATEWAY_BASE_URL = "https://api.razorpay.test/v1"

TEST_CONFIG = {
    'TESTING': True,
    'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
    'SQLALCHEMY_TRACK_MODIFICATIONS': False,
    'RAZORPAY_KEY_ID': KEY_ID,
    'RAZORPAY_KEY_SECRET': KEY_SECRET,
    'RAZORPAY_BASE_URL': GATEWAY_BASE_URL,
    'SENDGRID_API_KEY': None,
    'STORE_NAME': 'Test Store',
    'LOG_LEVEL': 'DEBUG',
}


def sign(gateway_order_id: str, gateway_payment_id: str, secret: str = KEY_SECRET) -> str:
    """Signature the gateway attaches to a successful checkout callback."""
    message = f"{gateway_order_id}|{gateway_payment_id}".encode("utf-8")
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()


class FakeRazorpay:
    """In-memory stand-in for the Razorpay Orders and Refunds API."""

    def __init__(self):
        self.requests = []
        self.fail_orders = False
        self.fail_refunds = False
        self._ids = itertools.count(1)

    def handler(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content or b"{}")
        path = request.url.path
        self.requests.append((request.method, path, body))

        if path.endswith("/orders"):
            if self.fail_orders:
                return httpx.Response(502, json={"error": {"description": "upstream down"}})
            return httpx.Response(200, json={
                "id": f"order_test{next(self._ids):04d}",
                "amount": body["amount"],
                "currency": body["currency"],
                "receipt": body["receipt"],
                "status": "created",
            })

        if path.endswith("/refund"):
            if self.fail_refunds:
                return httpx.Response(400, json={"error": {"description": "refund rejected"}})
            return httpx.Response(200, json={
                "id": f"rfnd_test{next(self._ids):04d}",
                "amount": body["amount"],
                "payment_id": path.split("/")[-2],
                "status": "processed",
            })

        return httpx.Response(404, json={"error": {"description": "not found"}})

    def calls(self, suffix: str) -> list:
        return [r for r in self.requests if r[1].endswith(suffix)]


class RecordingMailer:
    """Mailer that keeps messages in memory; flip .fail to simulate an outage."""

    name = "recording"

    def __init__(self):
        self.sent = []
        self.fail = False

    def send(self, message):
        if self.fail:
            raise MailDeliveryError("Mail provider unavailable")
        self.sent.append(message)

    def subjects(self) -> list:
        return [m.subject for m in self.sent]


@pytest.fixture(scope='function')
def fake_gateway():
    return FakeRazorpay()


@pytest.fixture(scope='function')
def mailer():
    return RecordingMailer()


@pytest.fixture(scope='function')
def app(fake_gateway, mailer):
    """Create application for testing, with gateway and mailer faked."""
    app = create_app(TEST_CONFIG)

    app.extensions[gateway_service.EXTENSION_KEY] = RazorpayGateway(
        KEY_ID,
        KEY_SECRET,
        base_url=GATEWAY_BASE_URL,
        transport=httpx.MockTransport(fake_gateway.handler),
    )
    app.extensions[notification_service.EXTENSION_KEY] = NotificationDispatcher(
        mailer, store_name="Test Store"
    )

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    return db.session


# =============================================================================
# USERS & TOKENS
# =============================================================================

def _make_user(name, email, role=ROLE_USER):
    user = User(name=name, email=email, role=role, is_active=True)
    db.session.add(user)
    db.session.commit()
    return user


@pytest.fixture(scope='function')
def customer(db_session):
    return _make_user("Asha Rao", "asha@example.com")


@pytest.fixture(scope='function')
def other_customer(db_session):
    return _make_user("Vikram Shah", "vikram@example.com")


@pytest.fixture(scope='function')
def admin_user(db_session):
    return _make_user("Store Admin", "admin@example.com", role=ROLE_ADMIN)


@pytest.fixture(scope='function')
def customer_principal(customer):
    return Principal(user_id=customer.id, role=customer.role)


@pytest.fixture(scope='function')
def other_principal(other_customer):
    return Principal(user_id=other_customer.id, role=other_customer.role)


@pytest.fixture(scope='function')
def admin_principal(admin_user):
    return Principal(user_id=admin_user.id, role=admin_user.role)


@pytest.fixture(scope='function')
def auth_headers(db_session):
    """Factory: bearer token headers for a user."""
    def _headers(user):
        _, token = session_service.create_session(user.id)
        return {"Authorization": f"Bearer {token}"}
    return _headers


# =============================================================================
# CATALOG, ADDRESSES, CARTS
# =============================================================================

@pytest.fixture(scope='function')
def kurta(db_session):
    product = Product(sku="KURTA-001", name="Cotton Kurta", price=Decimal("118.00"), availability=10)
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def scarf(db_session):
    product = Product(sku="SCARF-002", name="Silk Scarf", price=Decimal("59.50"), availability=2)
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def saved_address(customer):
    address = Address(
        user_id=customer.id,
        name="Asha Rao",
        mobile="9876543210",
        email="asha@example.com",
        address="12 MG Road",
        area="Indiranagar",
        city="Bengaluru",
        state="Karnataka",
        postal="560038",
    )
    db.session.add(address)
    db.session.commit()
    return address


@pytest.fixture(scope='function')
def fill_cart(db_session):
    """Factory: replace a user's cart with the given (product, quantity) lines."""
    def _fill(user, lines):
        cart = db.session.query(Cart).filter_by(user_id=user.id).first()
        if cart is None:
            cart = Cart(user_id=user.id)
            db.session.add(cart)
        cart.items.clear()
        db.session.flush()
        for product, quantity in lines:
            cart.items.append(CartItem(product_id=product.id, quantity=quantity))
        db.session.commit()
        return cart
    return _fill


@pytest.fixture(scope='function')
def place_order(customer, customer_principal, saved_address, kurta, fill_cart):
    """Factory: put one kurta in the customer's cart and create an order."""
    def _place(payment_method="CashOnDelivery", lines=None):
        fill_cart(customer, lines or [(kurta, 1)])
        return order_service.create_order(
            customer_principal,
            address_id=saved_address.id,
            payment_method=payment_method,
        )
    return _place


@pytest.fixture(scope='function')
def paid_gateway_order(place_order, customer_principal):
    """A gateway order that has been paid and confirmed via a valid callback."""
    order = place_order(payment_method="Gateway")
    order, intent = order_service.create_payment_intent(customer_principal, order.order_number)
    order_service.verify_payment(customer_principal, order.order_number, {
        "gateway_order_id": intent.gateway_order_id,
        "gateway_payment_id": "pay_test0001",
        "signature": sign(intent.gateway_order_id, "pay_test0001"),
    })
    return order
