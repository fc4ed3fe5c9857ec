import os
import unittest

os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

from models.transaction import Transaction
from schemas.transaction import TransactionCreate, TransactionUpdate
from services.errors import (
    AlreadyDeleted,
    InvalidAmount,
    NotDeleted,
    NotFoundError,
    UnknownCurrency,
    ValidationError,
)
from services.ledger_service import (
    create_transaction,
    get_transaction,
    list_transactions,
    live_cash_balance,
    restore_transaction,
    soft_delete_transaction,
    update_transaction,
)
from tests.fixtures import D, DatabaseTestMixin, at, category, make_user


class TestLedgerService(DatabaseTestMixin, unittest.TestCase):
    def setUp(self):
        super().setUp()
        self.user = make_user(self.db)
        self.food = category(self.db, "Food")
        self.salary = category(self.db, "Salary")

    def _create(self, amount="10", cat=None, day=1, **extra):
        payload = TransactionCreate(
            amount=D(amount),
            category_id=(cat or self.food).id,
            occurred_at=at(day),
            **extra,
        )
        return create_transaction(self.db, self.user, payload)

    def test_create_defaults_to_main_pocket_in_base_currency(self):
        tx = self._create("12.50", description="  lunch  ")
        self.assertEqual(tx.pocket.name, "Main")
        self.assertEqual(tx.amount, D("12.50"))
        self.assertEqual(tx.description, "lunch")
        self.assertIsNone(tx.original_currency)
        self.assertEqual(live_cash_balance(self.db, self.user.id), D("-12.50"))

    def test_foreign_currency_stores_original_and_rate(self):
        tx = self._create("50", currency_code="EUR", exchange_rate=D("1.5"))
        self.assertEqual(tx.amount, D("75"))
        self.assertEqual(tx.original_currency, "EUR")
        self.assertEqual(tx.original_amount, D("50"))
        self.assertEqual(tx.exchange_rate, D("1.5"))

    def test_invalid_input_is_rejected_before_any_write(self):
        with self.assertRaises(InvalidAmount):
            self._create("0")
        with self.assertRaises(InvalidAmount):
            self._create("1.23456")
        with self.assertRaises(InvalidAmount):
            self._create("1e30")
        with self.assertRaises(UnknownCurrency):
            self._create("5", currency_code="XXX", exchange_rate=D("1"))
        with self.assertRaises(NotFoundError):
            self._create("5", pocket_id=9999)
        with self.assertRaises(ValidationError):
            self._create("5", cat=category(self.db, "Transfer Out"))
        self.assertEqual(self.db.query(Transaction).count(), 0)

    def test_update_recomputes_amount_with_stored_rate(self):
        tx = self._create("50", currency_code="EUR", exchange_rate=D("1.5"))
        tx = update_transaction(self.db, self.user, tx.id, TransactionUpdate(amount=D("20")))
        self.assertEqual(tx.amount, D("30"))
        self.assertEqual(tx.original_amount, D("20"))
        self.assertEqual(tx.exchange_rate, D("1.5"))

    def test_update_only_touches_supplied_fields(self):
        tx = self._create("10", description="coffee")
        tx = update_transaction(self.db, self.user, tx.id, TransactionUpdate(category_id=self.salary.id))
        self.assertEqual(tx.category_id, self.salary.id)
        self.assertEqual(tx.amount, D("10"))
        self.assertEqual(tx.description, "coffee")
        self.assertEqual(live_cash_balance(self.db, self.user.id), D("10"))

    def test_soft_delete_and_restore_are_exact_inverses(self):
        keep = self._create("100", cat=self.salary)
        tx = self._create("40")
        before = live_cash_balance(self.db, self.user.id)

        soft_delete_transaction(self.db, self.user, tx.id)
        self.assertEqual(live_cash_balance(self.db, self.user.id), D("100"))
        with self.assertRaises(NotFoundError):
            get_transaction(self.db, self.user, tx.id)
        with self.assertRaises(AlreadyDeleted):
            soft_delete_transaction(self.db, self.user, tx.id)

        restore_transaction(self.db, self.user, tx.id)
        self.assertEqual(live_cash_balance(self.db, self.user.id), before)
        self.assertEqual(get_transaction(self.db, self.user, tx.id).amount, D("40"))
        self.assertIsNotNone(get_transaction(self.db, self.user, keep.id))

    def test_restore_of_live_transaction_is_rejected(self):
        tx = self._create("5")
        with self.assertRaises(NotDeleted):
            restore_transaction(self.db, self.user, tx.id)

    def test_deleted_transaction_cannot_be_updated(self):
        tx = self._create("5")
        soft_delete_transaction(self.db, self.user, tx.id)
        with self.assertRaises(NotFoundError):
            update_transaction(self.db, self.user, tx.id, TransactionUpdate(amount=D("6")))

    def test_other_users_transactions_are_invisible(self):
        tx = self._create("5")
        bob = make_user(self.db, "bob")
        with self.assertRaises(NotFoundError):
            get_transaction(self.db, bob, tx.id)
        with self.assertRaises(NotFoundError):
            soft_delete_transaction(self.db, bob, tx.id)
        self.assertEqual(list_transactions(self.db, bob).total, 0)

    def test_listing_is_newest_first_and_paginated(self):
        for day in range(1, 8):
            self._create("1", day=day)
        deleted = self._create("1", day=9)
        soft_delete_transaction(self.db, self.user, deleted.id)

        page1 = list_transactions(self.db, self.user, page=1, limit=3)
        self.assertEqual(page1.total, 7)
        self.assertEqual(page1.total_pages, 3)
        self.assertEqual([t.occurred_at.day for t in page1.items], [7, 6, 5])

        page3 = list_transactions(self.db, self.user, page=3, limit=3)
        self.assertEqual([t.occurred_at.day for t in page3.items], [1])

        ranged = list_transactions(self.db, self.user, start_date=at(2, 0), end_date=at(4, 23))
        self.assertEqual([t.occurred_at.day for t in ranged.items], [4, 3, 2])

    def test_limit_is_clamped(self):
        self._create("1")
        self.assertEqual(list_transactions(self.db, self.user, limit=500).limit, 100)
        self.assertEqual(list_transactions(self.db, self.user, limit=0).limit, 1)

    def test_inverted_date_range_is_rejected(self):
        with self.assertRaises(ValidationError):
            list_transactions(self.db, self.user, start_date=at(5), end_date=at(1))


if __name__ == "__main__":
    unittest.main()
