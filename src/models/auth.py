from src.models.base import Base, ULIDMixin, TimestampMixin
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String
from typing import Optional


ACCOUNT_STATUS_ACTIVE = "active"
BLOCKED_ACCOUNT_STATUSES = frozenset({"banned", "deleted"})


class User(ULIDMixin, TimestampMixin, Base):
    __tablename__ = "users"

    email: Mapped[str] = mapped_column(String(100), unique=True, index=True, nullable=False)
    name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    role: Mapped[str] = mapped_column(String(20), index=True, nullable=False)  # administrator, manager, customer, astrologer
    account_status: Mapped[str] = mapped_column(String(20), default=ACCOUNT_STATUS_ACTIVE, nullable=False)

    @property
    def is_blocked(self) -> bool:
        return self.account_status in BLOCKED_ACCOUNT_STATUSES
