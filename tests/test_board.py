"""
Tests for the staff order board.
"""

import random
from datetime import datetime, timedelta

from qrcafe.clients.board import BoardStats, StaffOrderBoard, board_sort_key
from qrcafe.schemas import OrderStatusEnum

BASE_TIME = datetime(2025, 1, 14, 12, 0, 0)


def order(order_id: str, status: str = "pending", minutes: int = 0, pk: int = 1, updated: int = None) -> dict:
    stamp = (BASE_TIME + timedelta(minutes=minutes)).isoformat()
    touched = stamp if updated is None else (BASE_TIME + timedelta(minutes=updated)).isoformat()
    return {
        "id": pk,
        "order_id": order_id,
        "customer_name": "Ana",
        "customer_phone": "555-222-3333",
        "table_number": "4",
        "line_items": [{"item_id": "1", "name": "Latte", "unit_price": 4.0, "quantity": 1}],
        "notes": None,
        "total": 4.0,
        "status": status,
        "created_at": stamp,
        "updated_at": touched,
    }


class TestOrdering:

    def test_sorted_by_status_then_newest(self):
        board = StaffOrderBoard()
        board.load_snapshot([
            order("ready-old", "ready", minutes=1),
            order("pending-old", "pending", minutes=2),
            order("cancelled", "cancelled", minutes=9),
            order("pending-new", "pending", minutes=5),
            order("preparing", "preparing", minutes=3),
            order("completed", "completed", minutes=8),
            order("confirmed", "confirmed", minutes=0),
        ])

        assert [o.order_id for o in board.orders] == [
            "pending-new",
            "pending-old",
            "confirmed",
            "preparing",
            "ready-old",
            "completed",
            "cancelled",
        ]

    def test_update_resorts(self):
        board = StaffOrderBoard()
        board.load_snapshot([order("a", minutes=1), order("b", minutes=2)])

        board.apply_updated(order("b", "preparing", minutes=2))

        assert [o.order_id for o in board.orders] == ["a", "b"]
        assert board.get("b").status == OrderStatusEnum.PREPARING


class TestEvents:

    def test_snapshot_dedupes(self):
        board = StaffOrderBoard()
        board.load_snapshot([order("a"), order("a"), order("b")])
        assert len(board) == 2

    def test_created_is_idempotent(self):
        seen = []
        board = StaffOrderBoard(on_new_order=seen.append)
        board.load_snapshot([order("a")])

        assert board.apply_created(order("a")) is False
        assert board.apply_created(order("b", minutes=1)) is True
        assert len(board) == 2
        assert [o.order_id for o in seen] == ["b"]

    def test_update_for_unseen_order_inserts(self):
        board = StaffOrderBoard()
        board.apply_updated(order("late", "confirmed"))
        assert "late" in board
        assert board.get("late").status == OrderStatusEnum.CONFIRMED

    def test_change_hook_runs_on_every_mutation(self):
        calls = []
        board = StaffOrderBoard(on_change=lambda b: calls.append(len(b)))

        board.load_snapshot([order("a")])
        board.apply_created(order("b"))
        board.apply_updated(order("a", "confirmed"))
        board.clear()

        assert calls == [1, 2, 2, 0]


    def test_stale_update_is_ignored(self):
        board = StaffOrderBoard()
        board.load_snapshot([order("a", "preparing", updated=5)])

        assert board.apply_updated(order("a", "confirmed", updated=2)) is False
        assert board.get("a").status == OrderStatusEnum.PREPARING

        assert board.apply_updated(order("a", "ready", updated=5)) is True
        assert board.get("a").status == OrderStatusEnum.READY

    def test_created_replay_never_regresses(self):
        board = StaffOrderBoard()
        board.load_snapshot([order("a", "confirmed", updated=3)])

        assert board.apply_created(order("a", "pending", updated=0)) is False
        assert board.get("a").status == OrderStatusEnum.CONFIRMED

    def test_created_with_newer_copy_refreshes(self):
        seen = []
        board = StaffOrderBoard(on_new_order=seen.append)
        board.load_snapshot([order("a", "pending")])

        assert board.apply_created(order("a", "confirmed", updated=4)) is False
        assert board.get("a").status == OrderStatusEnum.CONFIRMED
        assert seen == []

    def test_random_interleaving_keeps_board_consistent(self):
        rng = random.Random(20250114)
        statuses = [status.value for status in OrderStatusEnum]
        ids = [f"ORD-{n}" for n in range(12)]
        board = StaffOrderBoard()
        board.load_snapshot([order(i, rng.choice(statuses), minutes=rng.randint(0, 30)) for i in ids[:4]])

        for _ in range(500):
            incoming = order(
                rng.choice(ids),
                rng.choice(statuses),
                minutes=rng.randint(0, 30),
                updated=rng.randint(0, 60),
            )
            before = board.get(incoming["order_id"])
            if rng.random() < 0.5:
                board.apply_created(incoming)
            else:
                board.apply_updated(incoming)

            current = board.get(incoming["order_id"])
            if before is not None:
                assert current.updated_at >= before.updated_at

            orders = board.orders
            assert orders == sorted(orders, key=board_sort_key)
            assert len({o.order_id for o in orders}) == len(orders) == len(board)


class TestStats:

    def test_counts_follow_the_list(self):
        board = StaffOrderBoard()
        board.load_snapshot([
            order("p1", "pending"),
            order("p2", "pending"),
            order("c1", "confirmed"),
            order("r1", "ready"),
            order("x1", "cancelled"),
        ])
        assert board.stats == BoardStats(pending=2, preparing=0, ready=1, total=5)

        board.apply_updated(order("p1", "confirmed"))
        board.apply_updated(order("c1", "preparing"))
        assert board.stats == BoardStats(pending=1, preparing=1, ready=1, total=5)


class TestActions:

    def test_actions_per_status(self):
        assert StaffOrderBoard.actions_for(order("a", "pending")) == (
            OrderStatusEnum.CONFIRMED,
            OrderStatusEnum.CANCELLED,
        )
        assert StaffOrderBoard.actions_for(order("a", "confirmed")) == (
            OrderStatusEnum.PREPARING,
            OrderStatusEnum.CANCELLED,
        )
        assert StaffOrderBoard.actions_for(order("a", "preparing")) == (OrderStatusEnum.READY,)
        assert StaffOrderBoard.actions_for(order("a", "ready")) == (OrderStatusEnum.COMPLETED,)
        assert StaffOrderBoard.actions_for(order("a", "completed")) == ()
        assert StaffOrderBoard.actions_for(order("a", "cancelled")) == ()
