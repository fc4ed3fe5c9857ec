from __future__ import annotations

from decimal import Decimal
from typing import Generic, List, Optional, TypeVar

from pydantic import BaseModel, PlainSerializer
from typing_extensions import Annotated

from utils.common_helpers import display_money

T = TypeVar("T")

# Money leaves the API as a 2-dp decimal string ("10.50"), never a float
Money = Annotated[Decimal, PlainSerializer(display_money, return_type=str, when_used="json")]
OptionalMoney = Annotated[Optional[Decimal], PlainSerializer(display_money, return_type=Optional[str], when_used="json")]


class ApiResponse(BaseModel, Generic[T]):
    success: bool = True
    data: T
    message: Optional[str] = None


class ErrorDetail(BaseModel):
    code: str
    message: str


class ErrorResponse(BaseModel):
    success: bool = False
    errors: List[ErrorDetail]


class Page(BaseModel, Generic[T]):
    items: List[T]
    total: int
    page: int
    limit: int
    total_pages: int
