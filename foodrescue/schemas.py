# foodrescue/schemas.py
# Request bodies. Field aliases follow the camelCase wire format of the web client.
from pydantic import BaseModel, ConfigDict, EmailStr, Field
from typing import Optional, Any, Dict


class CamelIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class UserIn(CamelIn):
    email: EmailStr
    name: str = "Anonymous User"


class VerifyIn(CamelIn):
    image: str = Field(..., min_length=1)  # base64, usually a data: URL


class ReportIn(CamelIn):
    user_id: Optional[int] = Field(None, alias="userId")
    location: Optional[str] = None
    image: str = Field(..., min_length=1)
    metadata: Optional[Dict[str, Any]] = None


class ClaimIn(CamelIn):
    collector_id: int = Field(..., alias="collectorId")


class CompleteIn(CamelIn):
    collector_id: int = Field(..., alias="collectorId")
    verification_result: Optional[Dict[str, Any]] = Field(None, alias="verificationResult")


class RedeemIn(CamelIn):
    reward_id: int = Field(..., ge=0, alias="rewardId")


class RewardIn(CamelIn):
    user_id: int = Field(..., alias="userId")
    name: str = Field(..., min_length=1)
    cost: int = Field(..., gt=0)
    description: Optional[str] = None
    collection_info: str = Field("Redeemable reward", alias="collectionInfo")
