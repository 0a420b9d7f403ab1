"""
Order creation is all-or-nothing: every line's stock decrement, the order,
its lines and its Sale movements commit together.
"""

import pytest

from app.errors import InsufficientStockError, NotFoundError, ValidationError
from app.models import InventoryItem, Order, StockMovement
from app.services import notification_service
from app.services.order_builder import (
    RequestedLine,
    build_order,
    derive_total_cents,
    is_important_transaction,
    parse_requested_lines,
)
from app.services.order_service import (
    create_order,
    get_order,
    list_orders,
    mark_paid,
    update_order_status,
)


def _quantity(db_session, item_id):
    db_session.expire_all()
    return db_session.get(InventoryItem, item_id).quantity


class TestOrderBuilder:
    class _Product:
        def __init__(self, id, name, price_cents, quantity):
            self.id = id
            self.name = name
            self.price_cents = price_cents
            self.quantity = quantity

    def test_derives_subtotals_and_total(self):
        catalog = {
            1: self._Product(1, "A", 1000, 5),
            2: self._Product(2, "B", 250, 100),
        }
        draft = build_order(7, [RequestedLine(1, 2), RequestedLine(2, 3)], catalog.get)

        assert [line.subtotal_cents for line in draft.lines] == [2000, 750]
        assert draft.total_amount_cents == 2750
        assert derive_total_cents(draft.lines) == 2750
        assert [line.position for line in draft.lines] == [0, 1]

    def test_unknown_product(self):
        with pytest.raises(NotFoundError):
            build_order(7, [RequestedLine(99, 1)], {}.get)

    def test_ignores_client_prices(self):
        lines = parse_requested_lines([{"product": 1, "quantity": 2, "price": 1, "subtotal": 1}])
        assert lines == [RequestedLine(product_id=1, quantity=2)]

    @pytest.mark.parametrize("items", [
        [],
        None,
        [{"quantity": 1}],
        [{"product": 1, "quantity": 0}],
        [{"product": 1, "quantity": 1.5}],
        ["not-an-object"],
    ])
    def test_rejects_malformed_lines(self, items):
        with pytest.raises(ValidationError):
            parse_requested_lines(items)

    def test_important_threshold_is_inclusive(self):
        assert is_important_transaction(500_000, 500_000) is True
        assert is_important_transaction(499_999, 500_000) is False


class TestCreateOrder:
    def test_commits_order_lines_and_movements(self, db_session, employee_user, widget, gadget, notifications):
        order = create_order(
            employee_user.id,
            [{"product": widget.id, "quantity": 2}, {"product": gadget.id, "quantity": 1}],
        )

        assert order.status == "Pending"
        assert order.paid is False
        assert order.total_amount_cents == 2 * 1250 + 100_000
        assert order.total_amount_cents == sum(line.subtotal_cents for line in order.lines)
        assert [line.unit_price_cents for line in order.lines] == [1250, 100_000]

        assert _quantity(db_session, widget.id) == 13
        assert _quantity(db_session, gadget.id) == 4

        movements = db_session.query(StockMovement).filter_by(order_id=order.id).order_by(StockMovement.item_id).all()
        assert sorted((m.item_id, m.type, m.quantity_change) for m in movements) == sorted([
            (widget.id, "Sale", -2),
            (gadget.id, "Sale", -1),
        ])

    def test_insufficient_line_rolls_back_whole_order(self, db_session, employee_user, widget, gadget, notifications):
        with pytest.raises(InsufficientStockError):
            create_order(
                employee_user.id,
                [{"product": widget.id, "quantity": 2}, {"product": gadget.id, "quantity": 6}],
            )

        assert _quantity(db_session, widget.id) == 15
        assert _quantity(db_session, gadget.id) == 5
        assert db_session.query(Order).count() == 0
        assert db_session.query(StockMovement).count() == 0
        assert notifications.sent == []

    def test_unknown_product_rolls_back(self, db_session, employee_user, widget):
        with pytest.raises(NotFoundError):
            create_order(
                employee_user.id,
                [{"product": widget.id, "quantity": 1}, {"product": 999_999, "quantity": 1}],
            )

        assert _quantity(db_session, widget.id) == 15
        assert db_session.query(Order).count() == 0

    def test_unknown_customer(self, db_session, widget):
        with pytest.raises(NotFoundError):
            create_order(999_999, [{"product": widget.id, "quantity": 1}])

    def test_missing_customer(self, db_session, widget):
        with pytest.raises(ValidationError):
            create_order(None, [{"product": widget.id, "quantity": 1}])

    def test_large_order_flag_and_notification(self, db_session, employee_user, gadget, notifications):
        order = create_order(employee_user.id, [{"product": gadget.id, "quantity": 5}])

        assert order.total_amount_cents == 500_000
        assert order.important_transaction is True
        alerts = notifications.of_kind(notification_service.KIND_LARGE_ORDER)
        assert len(alerts) == 1
        assert alerts[0]["order_id"] == order.id

    def test_just_below_large_order_threshold(self, db_session, admin_user, employee_user, notifications):
        from conftest import make_item

        item = make_item(db_session, admin_user, name="Almost", quantity=100, price_cents=499_999, threshold=0)
        order = create_order(employee_user.id, [{"product": item.id, "quantity": 1}])

        assert order.important_transaction is False
        assert notifications.of_kind(notification_service.KIND_LARGE_ORDER) == []

    def test_out_of_stock_alert_reads_committed_quantity(self, db_session, employee_user, gadget, notifications):
        # 5 on hand, order 3: remaining 2 cannot cover another 3
        order = create_order(employee_user.id, [{"product": gadget.id, "quantity": 3}])

        alerts = notifications.of_kind(notification_service.KIND_OUT_OF_STOCK)
        assert len(alerts) == 1
        assert alerts[0]["order_id"] == order.id
        assert alerts[0]["remaining_quantity"] == 2
        assert alerts[0]["requested_quantity"] == 3

    def test_no_out_of_stock_alert_when_stock_remains(self, db_session, employee_user, widget, notifications):
        create_order(employee_user.id, [{"product": widget.id, "quantity": 2}])
        assert notifications.of_kind(notification_service.KIND_OUT_OF_STOCK) == []

    def test_order_path_does_not_emit_low_stock(self, db_session, employee_user, widget, notifications):
        create_order(employee_user.id, [{"product": widget.id, "quantity": 6}])
        assert notifications.of_kind(notification_service.KIND_LOW_STOCK) == []

    @pytest.mark.parametrize("customer", ["1", 1.0, True, 0, -3, [1], {"id": 1}])
    def test_malformed_customer_id(self, db_session, widget, customer):
        with pytest.raises(ValidationError):
            create_order(customer, [{"product": widget.id, "quantity": 1}])
        assert _quantity(db_session, widget.id) == 15

    def test_failing_sink_keeps_committed_order(self, app, db_session, employee_user, gadget):
        class ExplodingSink(notification_service.NotificationSink):
            name = "exploding"

            def send(self, kind, payload):
                raise RuntimeError("bus down")

        dispatcher = app.extensions["notifier"]
        original = dispatcher.sinks
        dispatcher.sinks = [ExplodingSink()]
        try:
            # large-order and out-of-stock both fire, both fail
            order = create_order(employee_user.id, [{"product": gadget.id, "quantity": 5}])
        finally:
            dispatcher.sinks = original

        assert order.important_transaction is True
        db_session.expire_all()
        assert db_session.get(Order, order.id) is not None
        assert _quantity(db_session, gadget.id) == 0


class TestOrderLifecycle:
    def test_mark_paid_is_idempotent(self, db_session, employee_user, widget):
        order = create_order(employee_user.id, [{"product": widget.id, "quantity": 1}])

        first = mark_paid(order.id)
        paid_at = first.paid_at
        second = mark_paid(order.id)

        assert second.paid is True
        assert second.paid_at == paid_at

    def test_mark_paid_unknown_order(self, db_session):
        with pytest.raises(NotFoundError):
            mark_paid(999_999)

    def test_status_update_does_not_touch_stock(self, db_session, employee_user, widget):
        order = create_order(employee_user.id, [{"product": widget.id, "quantity": 4}])

        updated = update_order_status(order.id, "Cancelled")

        assert updated.status == "Cancelled"
        assert _quantity(db_session, widget.id) == 11

    def test_unknown_status(self, db_session, employee_user, widget):
        order = create_order(employee_user.id, [{"product": widget.id, "quantity": 1}])
        with pytest.raises(ValidationError):
            update_order_status(order.id, "Lost")

    def test_status_update_unknown_order(self, db_session):
        with pytest.raises(NotFoundError):
            update_order_status(999_999, "Shipped")

    def test_status_update_malformed_order_id(self, db_session):
        with pytest.raises(ValidationError):
            update_order_status({"id": 1}, "Shipped")

    def test_list_filters(self, db_session, employee_user, manager_user, widget):
        mine = create_order(employee_user.id, [{"product": widget.id, "quantity": 1}])
        create_order(manager_user.id, [{"product": widget.id, "quantity": 1}])
        update_order_status(mine.id, "Shipped")

        assert [o.id for o in list_orders(customer_id=employee_user.id)] == [mine.id]
        assert [o.id for o in list_orders(status="Shipped")] == [mine.id]
        assert get_order(mine.id).status == "Shipped"
