from pydantic import BaseModel, ConfigDict, Field
from typing import List, Optional

# 9999-12-31T23:59:59Z, the last second datetime can represent
MAX_TIMESTAMP = 253402300799

class TokenTransfer(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    from_account: str = Field("", alias="fromUserAccount")
    to_account: str = Field("", alias="toUserAccount")
    mint: str
    token_amount: float = Field(alias="tokenAmount")

class RawEvent(BaseModel):
    """Enhanced transaction record as posted by the Helius webhook."""
    model_config = ConfigDict(populate_by_name=True)

    signature: str
    timestamp: int = Field(ge=0, le=MAX_TIMESTAMP)
    type: Optional[str] = None
    description: Optional[str] = None
    source: Optional[str] = None
    fee: Optional[int] = 0
    token_transfers: Optional[List[TokenTransfer]] = Field(default=None, alias="tokenTransfers")

class WithdrawalDetail(BaseModel):
    from_account: str
    to_account: str
    token: str
    amount: float
    mint: str

class WithdrawalSummary(BaseModel):
    signature: str
    timestamp: str
    type: str
    source: str
    withdrawal: Optional[WithdrawalDetail] = None
    fee: float
