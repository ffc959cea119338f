"""
Pytest 配置和共享 fixtures

每个测试使用独立的 SQLite 文件库（并发退房测试需要真实的多连接）。
SQLite 事务开始即持有写锁，测试里读写数据都用短会话，用完即关，
避免测试自身的会话挡住被测服务。
"""
import pytest
from datetime import date, datetime, timedelta
from decimal import Decimal
from sqlalchemy.orm import sessionmaker
from fastapi.testclient import TestClient

from rental.database import Base, create_db_engine, get_db, get_session_factory
from rental.models.entities import (
    Customer, Booking, Invoice, BookingStatus, PaymentStatus
)
from rental.services.event_bus import event_bus
from rental.main import app


@pytest.fixture(scope="function")
def db_engine(tmp_path):
    """创建临时文件数据库引擎"""
    engine = create_db_engine(f"sqlite:///{tmp_path / 'rental_test.db'}")
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture(scope="function")
def session_factory(db_engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=db_engine)


@pytest.fixture(scope="function")
def db_session(session_factory):
    """创建数据库会话（仅用于不调用服务的存储层测试）"""
    session = session_factory()
    yield session
    session.close()


@pytest.fixture(scope="function")
def client(session_factory):
    """创建测试客户端（不触发 lifespan，避免创建默认数据库文件）"""
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def clean_event_bus():
    event_bus.reset()
    yield
    event_bus.reset()


@pytest.fixture
def published():
    """收集发布的事件"""
    return []


@pytest.fixture
def publisher(published):
    return published.append


# ============== 实体相关 Fixtures ==============

@pytest.fixture
def make_customer(session_factory):
    """创建客户，返回客户ID"""
    counter = {"n": 0}

    def _make(first_name="张", last_name="三", total_spent=Decimal("0"), loyalty_points=0):
        counter["n"] += 1
        with session_factory() as db:
            customer = Customer(
                first_name=first_name,
                last_name=last_name,
                email=f"guest{counter['n']}@example.com",
                phone="13800138000",
                total_spent=total_spent,
                loyalty_points=loyalty_points,
            )
            db.add(customer)
            db.commit()
            return customer.id

    return _make


@pytest.fixture
def make_booking(session_factory, make_customer):
    """创建预订，返回预订ID"""

    def _make(
        customer_id=None,
        status=BookingStatus.CHECKED_IN,
        payment_status=PaymentStatus.PENDING,
        total_amount=Decimal("100.00"),
        services_total=Decimal("25.00"),
        extra_charges=Decimal("10.00"),
        discount_applied=Decimal("15.00"),
        check_in_date=None,
        check_out_date=None,
        room_number="101",
    ):
        if customer_id is None:
            customer_id = make_customer()
        with session_factory() as db:
            booking = Booking(
                customer_id=customer_id,
                room_number=room_number,
                check_in_date=check_in_date or (date.today() - timedelta(days=2)),
                check_out_date=check_out_date or date.today(),
                actual_check_in=datetime.now() - timedelta(days=2)
                if status == BookingStatus.CHECKED_IN else None,
                status=status,
                payment_status=payment_status,
                total_amount=total_amount,
                services_total=services_total,
                extra_charges=extra_charges,
                discount_applied=discount_applied,
            )
            db.add(booking)
            db.commit()
            return booking.id

    return _make


@pytest.fixture
def read_booking(session_factory):
    """读取预订当前数据库状态"""
    def _read(booking_id):
        with session_factory() as db:
            return db.get(Booking, booking_id)
    return _read


@pytest.fixture
def read_customer(session_factory):
    """读取客户当前数据库状态"""
    def _read(customer_id):
        with session_factory() as db:
            return db.get(Customer, customer_id)
    return _read


@pytest.fixture
def count_invoices(session_factory):
    """统计某预订的发票数"""
    def _count(booking_id=None):
        with session_factory() as db:
            query = db.query(Invoice)
            if booking_id is not None:
                query = query.filter(Invoice.booking_id == booking_id)
            return query.count()
    return _count
