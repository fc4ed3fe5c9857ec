from .currency import Currency
from .user import User
from .pocket import Pocket
from .category import Category
from .transaction import Transaction
from .asset import Asset
from .holding import Holding
from .refresh_token import RefreshToken, TokenState
