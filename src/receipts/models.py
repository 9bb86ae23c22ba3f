"""Receipt data models."""

import time
import uuid
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from shared.images import is_data_url


class ExpenseCategory(str, Enum):
    """Expense categories."""

    FOOD_AND_DINING = "Food & Dining"
    TRANSPORTATION = "Transportation"
    ACCOMMODATION = "Accommodation"
    SUPPLIES = "Supplies"
    SERVICES = "Services"
    ENTERTAINMENT = "Entertainment"
    HEALTH = "Health"
    SHOPPING = "Shopping"
    UTILITIES = "Utilities"
    OTHER = "Other"


class ExpenseType(str, Enum):
    """Whether an expense is business or private."""

    BUSINESS = "Business"
    PRIVATE = "Private"


VALID_CATEGORIES = [category.value for category in ExpenseCategory]


def now_ms() -> int:
    """Current time in epoch milliseconds."""
    return int(time.time() * 1000)


class Receipt(BaseModel):
    """One expense record."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    merchant_name: str = Field(default="", alias="merchantName")
    merchant_address: str = Field(default="", alias="merchantAddress")
    date: str = Field(..., description="Transaction date (YYYY-MM-DD)")
    time: str = Field(default="12:00", description="Transaction time (HH:MM)")
    amount: float
    currency: str
    vat: float = 0.0
    exchange_rate: float = Field(default=1.0, alias="exchangeRate")
    converted_amount: float = Field(default=0.0, alias="convertedAmount")
    target_currency: str = Field(default="", alias="targetCurrency")
    category: ExpenseCategory = ExpenseCategory.OTHER
    type: ExpenseType = ExpenseType.PRIVATE
    image_data: str = Field(default="", alias="imageBase64", description="Inline data URL or signed URL")
    storage_path: Optional[str] = Field(default=None, alias="storagePath")
    created_at: int = Field(default_factory=now_ms, alias="createdAt")
    latitude: Optional[float] = None
    longitude: Optional[float] = None

    class Config:
        """Pydantic config."""
        populate_by_name = True
        frozen = True

    @field_validator('currency', 'target_currency', mode='before')
    @classmethod
    def _upper_currency(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().upper()
        return value

    @field_validator('vat', mode='before')
    @classmethod
    def _default_vat(cls, value: Any) -> Any:
        return 0.0 if value is None else value

    @model_validator(mode='before')
    @classmethod
    def _default_conversion(cls, data: Any) -> Any:
        """Records without conversion data are expressed in their own currency."""
        if not isinstance(data, dict):
            return data

        data = dict(data)
        currency = _pick(data, 'currency', 'currency')
        amount = _pick(data, 'amount', 'amount')

        target = _pick(data, 'target_currency', 'targetCurrency')
        if not target:
            _put(data, 'target_currency', 'targetCurrency', currency)
            target = currency

        if _pick(data, 'converted_amount', 'convertedAmount') is None:
            _put(data, 'converted_amount', 'convertedAmount', amount)

        if isinstance(currency, str) and isinstance(target, str) \
                and currency.strip().upper() == target.strip().upper():
            _put(data, 'converted_amount', 'convertedAmount', amount)
            _put(data, 'exchange_rate', 'exchangeRate', 1.0)

        return data

    @property
    def has_inline_image(self) -> bool:
        return is_data_url(self.image_data)

    def to_row(self, user_id: str) -> Dict[str, Any]:
        """Map to a remote table row owned by user_id. Inline images are not stored."""
        row = {
            'id': self.id,
            'user_id': user_id,
            'merchant_name': self.merchant_name,
            'merchant_address': self.merchant_address,
            'date': self.date,
            'time': self.time,
            'amount': self.amount,
            'currency': self.currency,
            'vat': self.vat,
            'exchange_rate': self.exchange_rate,
            'converted_amount': self.converted_amount,
            'target_currency': self.target_currency,
            'category': self.category.value,
            'type': self.type.value,
            'image_path': self.storage_path,
            'created_at': self.created_at,
            'latitude': self.latitude,
            'longitude': self.longitude,
        }
        # Absent optional values are omitted
        return {k: v for k, v in row.items() if v is not None and v != ''}

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> 'Receipt':
        """Map a remote table row. The image is resolved separately."""
        return cls(
            id=row['id'],
            merchant_name=row.get('merchant_name') or '',
            merchant_address=row.get('merchant_address') or '',
            date=row['date'],
            time=row.get('time') or '12:00',
            amount=row['amount'],
            currency=row['currency'],
            vat=row.get('vat') or 0,
            exchange_rate=row.get('exchange_rate', 1.0),
            converted_amount=row.get('converted_amount'),
            target_currency=row.get('target_currency'),
            category=row.get('category', ExpenseCategory.OTHER),
            type=row.get('type', ExpenseType.PRIVATE),
            image_data='',
            storage_path=row.get('image_path'),
            created_at=row['created_at'],
            latitude=row.get('latitude'),
            longitude=row.get('longitude'),
        )

    def to_local(self) -> Dict[str, Any]:
        """Serialize the full record (inline image included) for local storage."""
        return self.model_dump(by_alias=True, mode='json', exclude_none=True)

    @classmethod
    def from_local(cls, record: Dict[str, Any]) -> 'Receipt':
        return cls.model_validate(record)


def receipts_to_local(receipts: Iterable[Receipt]) -> List[Dict[str, Any]]:
    return [receipt.to_local() for receipt in receipts]


def receipts_from_local(records: Iterable[Dict[str, Any]]) -> List[Receipt]:
    return [Receipt.from_local(record) for record in records]


def _pick(data: Dict[str, Any], name: str, alias: str) -> Any:
    value = data.get(name)
    return data.get(alias) if value is None else value


def _put(data: Dict[str, Any], name: str, alias: str, value: Any) -> None:
    data.pop(alias, None)
    data[name] = value
