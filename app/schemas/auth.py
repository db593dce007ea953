from typing import Optional

from pydantic import AliasChoices, BaseModel, Field

from app.schemas.my_base_model import CustomBaseModel


class ChallengeRequest(BaseModel):
    """Request model for challenge issuance - input validation"""

    wallet_address: str = Field(
        ...,
        description="Solana wallet address (base58)",
        validation_alias=AliasChoices("wallet_address", "walletAddress", "address"),
    )


class ChallengeResponse(CustomBaseModel):
    """Response model for challenge issuance - output"""

    nonce: str = ""
    issued_at: int = 0
    expires_at: int = 0
    message: str = Field("", description="Text to sign when timestamp = issued_at")


class VerifyRequest(BaseModel):
    """Request model for wallet verification - input validation"""

    wallet_address: str = Field(
        ...,
        description="Solana wallet address (base58)",
        validation_alias=AliasChoices("wallet_address", "walletAddress", "address"),
    )
    signature: str = Field(..., description="Ed25519 signature of the auth message (base58)")
    nonce: str = Field(..., description="Challenge nonce from /auth/challenge")
    timestamp: int = Field(..., description="Unix milliseconds written into the signed message")


class VerifyResponse(CustomBaseModel):
    """Response model for wallet verification - output"""

    valid: bool = False
    reason: Optional[str] = None
    wallet_address: str = ""
    access_token: Optional[str] = None
    token_type: str = "bearer"
    token_format: Optional[str] = Field(None, description="jwt (signed, claims-bearing) or opaque")
    expires_in: Optional[int] = None


class SessionResponse(CustomBaseModel):
    """Response model for session validation - output"""

    valid: bool = True
    wallet_address: str = ""
    expires_at: Optional[int] = None
