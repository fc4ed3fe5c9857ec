import os
import unittest

os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

from models.asset import Asset
from schemas.pocket import PocketCreate, TransferRequest
from schemas.portfolio import HoldingCreate
from schemas.transaction import TransactionCreate
from services.analysis_service import category_analysis, net_worth
from services.errors import ValidationError
from services.ledger_service import create_transaction, get_default_pocket, soft_delete_transaction
from services.pocket_service import create_pocket, transfer
from services.portfolio_service import add_holding
from tests.fixtures import D, DatabaseTestMixin, at, category, make_user


class TestAnalysisService(DatabaseTestMixin, unittest.TestCase):
    def setUp(self):
        super().setUp()
        self.user = make_user(self.db)

    def _tx(self, amount, name, day=1):
        return create_transaction(
            self.db,
            self.user,
            TransactionCreate(amount=D(amount), category_id=category(self.db, name).id, occurred_at=at(day)),
        )

    def test_category_totals_ordered_by_total(self):
        self._tx("3000", "Salary", day=1)
        self._tx("40", "Food", day=2)
        self._tx("60", "Food", day=3)
        self._tx("250", "Transport", day=4)
        dropped = self._tx("999", "Shopping", day=5)
        soft_delete_transaction(self.db, self.user, dropped.id)

        result = category_analysis(self.db, self.user)

        self.assertEqual([c.name for c in result.categories], ["Salary", "Transport", "Food"])
        self.assertEqual(result.categories[2].total, D("100"))
        self.assertEqual(result.total_income, D("3000"))
        self.assertEqual(result.total_spent, D("350"))
        self.assertEqual(result.net_income, D("2650"))
        self.assertEqual(result.currency, "SGD")

    def test_category_analysis_respects_date_range(self):
        self._tx("10", "Food", day=1)
        self._tx("20", "Food", day=10)
        result = category_analysis(self.db, self.user, at(5), at(15))
        self.assertEqual(result.total_spent, D("20"))
        with self.assertRaises(ValidationError):
            category_analysis(self.db, self.user, at(15), at(5))

    def test_net_worth_is_cash_plus_investments(self):
        self._tx("1000", "Salary")
        self._tx("200", "Food")
        savings = create_pocket(self.db, self.user, PocketCreate(name="Savings"))
        transfer(
            self.db,
            self.user,
            TransferRequest(
                source_pocket_id=get_default_pocket(self.db, self.user.id).id,
                destination_pocket_id=savings.id,
                amount=D("300"),
            ),
        )
        self.db.get(Asset, "AAPL").current_price = D("100")
        self.db.commit()
        add_holding(self.db, self.user, HoldingCreate(ticker="AAPL", quantity=D("2"), avg_buy_price=D("80")))

        result = net_worth(self.db, self.user, {"USD": D("1.25")})

        self.assertEqual(result.cash_balance, D("800"))
        self.assertEqual(result.investment_balance, D("250"))
        self.assertEqual(result.total_net_worth, result.cash_balance + result.investment_balance)
        self.assertEqual(result.total_net_worth, D("1050"))

    def test_empty_user_has_zero_net_worth(self):
        result = net_worth(self.db, self.user, {})
        self.assertEqual(result.total_net_worth, D("0"))


if __name__ == "__main__":
    unittest.main()
