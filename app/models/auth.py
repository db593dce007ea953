import time

from sqlalchemy import BigInteger, Column, String
from sqlalchemy.orm import Session

from app.core.config import settings
from app.db.base import Base


class WalletUser(Base):
    """Wallet that has logged in at least once.
    Example:
    {
        "wallet_address": "9WzDXwBbmkg8ZTbNMqUxvQRAyrZzDsGYdLVL9zYtAWWM",
        "created_at": 1735732800,
        "last_login": 1735736400
    }
    """

    __tablename__ = "wallet_users"
    __table_args__ = {"schema": settings.DB_SCHEMA}

    wallet_address = Column(String(64), primary_key=True)
    created_at = Column(BigInteger, nullable=False)
    last_login = Column(BigInteger, nullable=False)


def upsert_wallet_user(db: Session, wallet_address: str) -> WalletUser:
    """Get or create the user for a verified wallet and stamp last_login."""
    now = int(time.time())
    user = db.query(WalletUser).filter(WalletUser.wallet_address == wallet_address).first()
    if user:
        user.last_login = now
    else:
        user = WalletUser(wallet_address=wallet_address, created_at=now, last_login=now)
        db.add(user)
    db.commit()
    return user
