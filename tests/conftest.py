"""测试配置和 fixtures"""
import pytest
from decimal import Decimal
from datetime import datetime
from unittest.mock import Mock
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from redis import Redis

from shop.db.base import Base
import shop.models  # noqa: F401  注册全部模型
from shop.models.product import Product
from shop.models.order import Order, OrderStatus, PaymentStatus, PaymentMethod
from shop.models.order_item import OrderItem
from shop.schemas.order import CreateOrderRequest


@pytest.fixture
def db_session():
    """创建内存 SQLite 数据库会话"""
    engine = create_engine("sqlite:///:memory:", echo=False)

    @event.listens_for(engine, "connect")
    def _enable_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    Base.metadata.create_all(engine)
    SessionLocal = sessionmaker(
        bind=engine,
        autoflush=False,
        autocommit=False,
        expire_on_commit=False,
    )
    db = SessionLocal()

    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(engine)
        engine.dispose()


@pytest.fixture
def mock_redis():
    """创建模拟 Redis 客户端"""
    redis_mock = Mock(spec=Redis)
    redis_mock.get.return_value = None
    redis_mock.setex.return_value = True
    redis_mock.delete.return_value = 1
    return redis_mock


@pytest.fixture
def products(db_session):
    """示例商品数据"""
    items = [
        Product(name="Plantain Chips", sku="SKU-001", price=Decimal("10.00"), stock_quantity=100),
        Product(name="Palm Oil 1L", sku="SKU-002", price=Decimal("4.25"), stock_quantity=50),
    ]
    db_session.add_all(items)
    db_session.commit()
    return items


@pytest.fixture
def shipping_address():
    return {
        "first_name": "Ada",
        "last_name": "Obi",
        "address_line_1": "12 Marina Road",
        "city": "Lagos",
        "state": "Lagos",
        "postal_code": "101001",
        "phone": "+2348012345678",
    }


@pytest.fixture
def order_payload(products, shipping_address):
    """示例下单载荷（2 x 10.00）"""
    return {
        "user_id": 7,
        "items": [
            {"product_id": products[0].id, "quantity": 2, "price": "10.00"},
        ],
        "shipping_address": shipping_address,
        "payment_method": "card",
    }


@pytest.fixture
def order_request(order_payload):
    return CreateOrderRequest(**order_payload)


def make_order(**overrides):
    """构造未持久化的订单对象（路由测试中作为服务返回值）"""
    now = datetime(2025, 6, 21, 10, 30, 0)
    fields = dict(
        id=1,
        user_id=7,
        order_number="ORD-1750501800000-042",
        status=OrderStatus.PENDING,
        subtotal=Decimal("20.00"),
        tax_amount=Decimal("1.50"),
        shipping_amount=Decimal("0.00"),
        discount_amount=Decimal("0.00"),
        total_amount=Decimal("21.50"),
        currency="NGN",
        payment_status=PaymentStatus.PENDING,
        payment_method=PaymentMethod.CARD,
        payment_reference=None,
        shipping_address={"first_name": "Ada", "city": "Lagos"},
        billing_address=None,
        notes="",
        shipped_at=None,
        delivered_at=None,
        created_at=now,
        updated_at=now,
    )
    fields.update(overrides)
    order = Order(**fields)
    order.items = [
        OrderItem(
            id=1,
            order_id=fields["id"],
            product_id=1,
            product_name="Plantain Chips",
            product_sku="SKU-001",
            quantity=2,
            unit_price=Decimal("10.00"),
            total_price=Decimal("20.00"),
        )
    ]
    return order


@pytest.fixture
def order_factory():
    return make_order


@pytest.fixture
def sample_order():
    return make_order()
