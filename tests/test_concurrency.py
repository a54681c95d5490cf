"""Two writers racing on separate connections to the same database file."""

import threading

from rental_orders.db.connection import get_connection
from rental_orders.domain.models import ClientRef, OrderLineRequest, ReturnLineRequest
from rental_orders.services.errors import InsufficientStockError, OverReturnError
from rental_orders.services.rental_service import RentalService


def _race(db_path, action, expected_error, workers=2):
    barrier = threading.Barrier(workers)
    outcomes: list[str] = []
    lock = threading.Lock()

    def worker():
        conn = get_connection(db_path)
        try:
            service = RentalService(conn)
            barrier.wait()
            try:
                action(service)
            except expected_error:
                outcome = "rejected"
            else:
                outcome = "ok"
        finally:
            conn.close()
        with lock:
            outcomes.append(outcome)

    threads = [threading.Thread(target=worker) for _ in range(workers)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=30)
    return sorted(outcomes)


def test_last_unit_is_returned_only_once(db_path, service, make_product, product_repo):
    product = make_product(count=5)
    creation = service.create_order(
        ClientRef("Ana", "Silva", "900000000"),
        [OrderLineRequest(product_id=product.id, quantity=2)],
    )
    order_id = creation.details.order.id
    item = creation.details.lines[0].item
    service.return_items(order_id, [ReturnLineRequest(item.id, 1)])

    outcomes = _race(
        db_path,
        lambda svc: svc.return_items(order_id, [ReturnLineRequest(item.id, 1)]),
        OverReturnError,
    )

    assert outcomes == ["ok", "rejected"]
    details = service.get_order(order_id)
    assert details.lines[0].item.returned == 2
    assert len(service.list_return_records(order_id)) == 2
    assert product_repo.get_by_id(product.id).count == 5


def test_last_unit_in_stock_is_rented_only_once(
    db_path, service, make_product, product_repo, client_repo
):
    product = make_product(count=1)
    client = client_repo.create("Bruno", "Costa", "911111111")

    outcomes = _race(
        db_path,
        lambda svc: svc.create_order(
            client.id, [OrderLineRequest(product_id=product.id, quantity=1)]
        ),
        InsufficientStockError,
    )

    assert outcomes == ["ok", "rejected"]
    assert product_repo.get_by_id(product.id).count == 0
    assert len(service.list_orders()) == 1
