from datetime import datetime, timezone
import uuid

from sqlmodel import Field, SQLModel


class Wallet(SQLModel, table=True):
    __tablename__ = "wallets"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    user_id: uuid.UUID | None = None
    # lowercase 0x-prefixed hex, written by the registry API
    address: str = Field(max_length=42, unique=True, index=True)
    name: str | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(tz=timezone.utc))
