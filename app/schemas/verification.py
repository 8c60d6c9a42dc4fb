import string
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

# floats above 2**53 no longer hold every integer exactly
MAX_EXACT_FLOAT = 2**53


class VerificationRequest(BaseModel):
    """POST /verifyOwnership body. tokenId is normalised to a canonical decimal string."""

    model_config = ConfigDict(extra="ignore", frozen=True, populate_by_name=True)

    wallet: str
    token_id: str = Field(..., alias="tokenId")
    tx_hash: str = Field(..., validation_alias=AliasChoices("txHash", "transactionId", "tx_hash"))

    @field_validator("wallet", "tx_hash", mode="before")
    @classmethod
    def non_empty_string(cls, v: Any) -> str:
        if not isinstance(v, str) or not v.strip():
            raise ValueError("must be a non-empty string")
        return v.strip()

    @field_validator("token_id", mode="before")
    @classmethod
    def canonical_token_id(cls, v: Any) -> str:
        # bool is an int subclass; reject it explicitly
        if isinstance(v, bool) or v is None:
            raise ValueError("tokenId must be a non-negative integer")
        if isinstance(v, int):
            value = v
        elif isinstance(v, float):
            if not v.is_integer() or abs(v) > MAX_EXACT_FLOAT:
                raise ValueError("tokenId must be a non-negative integer")
            value = int(v)
        elif isinstance(v, str):
            raw = v.strip()
            if raw.lower().startswith("0x") and len(raw) > 2:
                if not all(c in string.hexdigits for c in raw[2:]):
                    raise ValueError("tokenId must be a non-negative integer")
                value = int(raw, 16)
            elif raw.isdigit() and raw.isascii():
                value = int(raw)
            else:
                raise ValueError("tokenId must be a non-negative integer")
        else:
            raise ValueError("tokenId must be a non-negative integer")
        if value < 0:
            raise ValueError("tokenId must be a non-negative integer")
        return str(value)

    @property
    def token_id_int(self) -> int:
        return int(self.token_id)


class VerificationOutcome(BaseModel):
    """Result of one verification attempt. Ephemeral, never stored."""

    payment_ok: bool = False
    owns_token: bool = False
    transfer_verified: bool = False

    model_config = {"frozen": True}

    @property
    def verified(self) -> bool:
        return self.payment_ok or self.owns_token or self.transfer_verified

    def diagnostics(self) -> dict[str, bool]:
        """Flags returned to the caller with a 402."""
        return {
            "paymentOk": self.payment_ok,
            "ownsNFT": self.owns_token,
            "transferVerified": self.transfer_verified,
        }
