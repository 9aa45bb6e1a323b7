from datetime import datetime

from pydantic import BaseModel, Field


class WalletOut(BaseModel):
    tokens_balance: int
    coins_balance: int


class WalletTransactionOut(BaseModel):
    id: str
    type: str
    amount: int
    currency: str
    balance_after: int
    description: str | None
    reference_id: str | None
    created_at: datetime

    model_config = {"from_attributes": True}


class WalletAdjustIn(BaseModel):
    operation: str = Field(..., pattern="^(credit|debit)$")
    amount: int = Field(..., gt=0)
    type: str = Field("reward", pattern="^(purchase|refund|reward|debit|subscription)$")
    currency: str = Field("tokens", pattern="^(tokens|coins)$")
    description: str | None = Field(None, max_length=500)
