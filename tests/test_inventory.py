from decimal import Decimal

from sqlalchemy import func, select

from dirttrails.models import Order, OrderItem, Ticket, TicketType
from dirttrails.services.inventory import allocate_tickets, get_available_count


def _seed(db, available=3, items=(1,)):
    db.add(TicketType(id="TT", name="Gorilla permit", price=Decimal("700000"), available_count=available))
    db.add(Order(id="ORD", vendor_id="V1", user_id="T1", currency="UGX", status="paid"))
    db.flush()
    for index, quantity in enumerate(items):
        db.add(OrderItem(id=f"IT{index}", order_id="ORD", ticket_type_id="TT", quantity=quantity, unit_price=0))
    db.commit()


def _allocate(db, item_id, quantity):
    return allocate_tickets(
        db,
        ticket_type_id="TT",
        quantity=quantity,
        order_id="ORD",
        order_item_id=item_id,
        owner_id="T1",
    )


def _tickets(db):
    return db.execute(select(func.count()).select_from(Ticket)).scalar_one()


def test_allocation_issues_tickets_and_decrements(db):
    _seed(db, available=3, items=(2,))

    result = _allocate(db, "IT0", 2)

    assert result.success
    assert len(result.ticket_ids) == 2
    assert get_available_count(db, "TT") == 1
    codes = db.execute(select(Ticket.code)).scalars().all()
    assert all(code.startswith("TKT-") for code in codes)
    assert len(set(codes)) == 2


def test_same_item_is_allocated_once(db):
    _seed(db, available=5, items=(2,))

    first = _allocate(db, "IT0", 2)
    second = _allocate(db, "IT0", 2)

    assert first.success and not first.already_allocated
    assert second.success and second.already_allocated
    assert second.ticket_ids == []
    assert get_available_count(db, "TT") == 3
    assert _tickets(db) == 2


def test_inventory_never_goes_negative(db):
    _seed(db, available=3, items=(1, 1, 1, 1, 1))

    results = [_allocate(db, f"IT{index}", 1) for index in range(5)]

    assert [r.success for r in results] == [True, True, True, False, False]
    assert results[-1].error == "insufficient inventory"
    assert get_available_count(db, "TT") == 0
    assert _tickets(db) == 3


def test_insufficient_inventory_leaves_no_marker(db):
    _seed(db, available=1, items=(2,))

    result = _allocate(db, "IT0", 2)
    assert not result.success
    assert get_available_count(db, "TT") == 1

    db.get(TicketType, "TT").available_count = 2
    db.commit()
    retry = _allocate(db, "IT0", 2)

    assert retry.success and not retry.already_allocated
    assert get_available_count(db, "TT") == 0


def test_non_positive_quantity_is_rejected(db):
    _seed(db, available=3)

    assert not _allocate(db, "IT0", 0).success
    assert not _allocate(db, "IT0", -1).success
    assert get_available_count(db, "TT") == 3


def test_unknown_ticket_type(db):
    _seed(db)

    result = allocate_tickets(db, ticket_type_id="missing", quantity=1, order_id="ORD", order_item_id="IT0")

    assert not result.success
    assert result.error == "ticket type not found"
    assert get_available_count(db, "missing") is None


def _file_engine(path):
    from sqlalchemy import create_engine, event

    engine = create_engine(f"sqlite:///{path}", connect_args={"check_same_thread": False, "timeout": 30})

    # pysqlite defers BEGIN; take the write lock up front so the busy timeout applies.
    @event.listens_for(engine, "connect")
    def _autocommit_driver(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    return engine


def test_concurrent_allocations_never_oversell(tmp_path):
    import threading
    from concurrent.futures import ThreadPoolExecutor

    from sqlalchemy.orm import sessionmaker

    from dirttrails.core.database import Base

    engine = _file_engine(tmp_path / "inventory.db")
    Base.metadata.create_all(bind=engine)
    Session = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
    workers = 10

    with Session() as db:
        _seed(db, available=5, items=(1,) * workers)

    barrier = threading.Barrier(workers)

    def allocate(index):
        with Session() as db:
            barrier.wait()
            return _allocate(db, f"IT{index}", 1)

    with ThreadPoolExecutor(max_workers=workers) as pool:
        results = list(pool.map(allocate, range(workers)))

    with Session() as db:
        assert sum(r.success for r in results) == 5
        assert {r.error for r in results if not r.success} == {"insufficient inventory"}
        assert get_available_count(db, "TT") == 0
        assert _tickets(db) == 5
    engine.dispose()
