import os
import unittest
from unittest.mock import patch

os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

from sqlalchemy.exc import IntegrityError

from models.pocket import Pocket
from models.transaction import Transaction
from schemas.pocket import PocketCreate, PocketUpdate, TransferRequest
from schemas.transaction import TransactionCreate, TransactionUpdate
from services import ledger_service
from services.analysis_service import category_analysis
from services.errors import (
    CannotDeleteDefault,
    InsufficientFunds,
    InvalidAmount,
    NotFoundError,
    PocketInUse,
    SamePocket,
    TransferLegImmutable,
    TransferNotRestorable,
)
from services.ledger_service import (
    create_transaction,
    get_default_pocket,
    live_cash_balance,
    restore_transaction,
    soft_delete_transaction,
    update_transaction,
)
from services.pocket_service import (
    create_pocket,
    delete_pocket,
    list_pockets,
    pocket_balance,
    transfer,
    update_pocket,
)
from tests.fixtures import D, DatabaseTestMixin, at, category, make_user


class TestPocketService(DatabaseTestMixin, unittest.TestCase):
    def setUp(self):
        super().setUp()
        self.user = make_user(self.db)
        self.main = get_default_pocket(self.db, self.user.id)
        self.savings = create_pocket(self.db, self.user, PocketCreate(name="Savings"))
        create_transaction(
            self.db,
            self.user,
            TransactionCreate(amount=D("500"), category_id=category(self.db, "Salary").id, occurred_at=at(1)),
        )

    def _transfer(self, amount="100", src=None, dst=None):
        return transfer(
            self.db,
            self.user,
            TransferRequest(
                source_pocket_id=(src or self.main).id,
                destination_pocket_id=(dst or self.savings).id,
                amount=D(amount),
            ),
        )

    def test_signup_pocket_is_the_single_default(self):
        pockets = list_pockets(self.db, self.user)
        self.assertEqual([p.name for p, _ in pockets], ["Main", "Savings"])
        self.assertEqual([p.is_default for p, _ in pockets], [True, False])
        self.assertEqual(pockets[0][1], D("500"))

    def test_store_rejects_a_second_default_pocket(self):
        self.db.add(Pocket(user_id=self.user.id, name="Other", is_default=True))
        with self.assertRaises(IntegrityError):
            self.db.flush()
        self.db.rollback()

    def test_update_pocket_cannot_touch_default_flag(self):
        pocket = update_pocket(self.db, self.user, self.savings.id, PocketUpdate(name=" Rainy day "))
        self.assertEqual(pocket.name, "Rainy day")
        self.assertFalse(pocket.is_default)
        self.assertNotIn("is_default", PocketUpdate.model_fields)

    def test_transfer_moves_money_and_keeps_total(self):
        result = self._transfer("120.50")
        self.assertEqual(result.out_leg.transfer_id, result.in_leg.transfer_id)
        self.assertEqual(result.out_leg.amount, result.in_leg.amount)
        self.assertEqual(result.out_leg.occurred_at, result.in_leg.occurred_at)
        self.assertEqual(result.out_leg.description, "Transfer: Main -> Savings")

        self.assertEqual(pocket_balance(self.db, self.user.id, self.main.id), D("379.50"))
        self.assertEqual(pocket_balance(self.db, self.user.id, self.savings.id), D("120.50"))
        self.assertEqual(live_cash_balance(self.db, self.user.id), D("500"))

    def test_transfers_stay_out_of_category_analysis(self):
        self._transfer("100")
        analysis = category_analysis(self.db, self.user)
        self.assertEqual([c.name for c in analysis.categories], ["Salary"])
        self.assertEqual(analysis.total_income, D("500"))
        self.assertEqual(analysis.total_spent, D("0"))

    def test_transfer_validation(self):
        with self.assertRaises(SamePocket):
            self._transfer("10", dst=self.main)
        with self.assertRaises(InvalidAmount):
            self._transfer("0")
        with self.assertRaises(InsufficientFunds):
            self._transfer("500.01")
        bob = make_user(self.db, "bob")
        with self.assertRaises(NotFoundError):
            self._transfer("10", dst=get_default_pocket(self.db, bob.id))
        self.assertEqual(self.db.query(Transaction).filter(Transaction.transfer_id.isnot(None)).count(), 0)

    def test_transfer_is_all_or_nothing(self):
        real_add_entry = ledger_service.add_entry
        calls = []

        def _fail_on_second_leg(db, **kwargs):
            calls.append(kwargs["category_id"])
            if len(calls) == 2:
                raise RuntimeError("store went away")
            return real_add_entry(db, **kwargs)

        with patch("services.pocket_service.add_entry", side_effect=_fail_on_second_leg):
            with self.assertRaises(RuntimeError):
                self._transfer("50")

        self.assertEqual(len(calls), 2)
        self.assertEqual(self.db.query(Transaction).filter(Transaction.transfer_id.isnot(None)).count(), 0)
        self.assertEqual(pocket_balance(self.db, self.user.id, self.main.id), D("500"))

    def test_transfer_legs_delete_restore_together_and_are_immutable(self):
        result = self._transfer("100")
        with self.assertRaises(TransferLegImmutable):
            update_transaction(self.db, self.user, result.in_leg.id, TransactionUpdate(amount=D("1")))

        legs = soft_delete_transaction(self.db, self.user, result.out_leg.id)
        self.assertEqual(len(legs), 2)
        self.assertEqual(pocket_balance(self.db, self.user.id, self.savings.id), D("0"))

        restore_transaction(self.db, self.user, result.in_leg.id)
        self.assertEqual(pocket_balance(self.db, self.user.id, self.savings.id), D("100"))
        self.assertEqual(pocket_balance(self.db, self.user.id, self.main.id), D("400"))

    def test_default_pocket_cannot_be_deleted(self):
        with self.assertRaises(CannotDeleteDefault):
            delete_pocket(self.db, self.user, self.main.id)

    def test_pocket_with_live_transactions_cannot_be_deleted(self):
        self._transfer("10")
        with self.assertRaises(PocketInUse):
            delete_pocket(self.db, self.user, self.savings.id)

    def test_deleting_pocket_moves_tombstones_to_default(self):
        result = self._transfer("10")
        soft_delete_transaction(self.db, self.user, result.in_leg.id)
        delete_pocket(self.db, self.user, self.savings.id)

        self.assertIsNone(self.db.get(Pocket, self.savings.id))
        # loaded rows see the move without an expire
        self.assertEqual(result.in_leg.pocket_id, self.main.id)
        self.assertIsNotNone(result.in_leg.deleted_at)

    def test_transfer_folded_into_one_pocket_cannot_be_restored(self):
        result = self._transfer("10")
        soft_delete_transaction(self.db, self.user, result.out_leg.id)
        delete_pocket(self.db, self.user, self.savings.id)

        with self.assertRaises(TransferNotRestorable):
            restore_transaction(self.db, self.user, result.in_leg.id)

        self.db.expire_all()
        legs = self.db.query(Transaction).filter(Transaction.transfer_id == result.out_leg.transfer_id).all()
        self.assertEqual(len(legs), 2)
        self.assertTrue(all(leg.deleted_at is not None for leg in legs))
        self.assertEqual(pocket_balance(self.db, self.user.id, self.main.id), D("500"))


if __name__ == "__main__":
    unittest.main()
