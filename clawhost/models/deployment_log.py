"""Deployment log model - append-only audit trail of lifecycle actions."""

from enum import Enum

from sqlalchemy import ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base


class DeploymentAction(str, Enum):
    DEPLOY = "DEPLOY"
    START = "START"
    STOP = "STOP"
    RESTART = "RESTART"


class DeploymentLogStatus(str, Enum):
    IN_PROGRESS = "IN_PROGRESS"
    SUCCESS = "SUCCESS"
    PARTIAL = "PARTIAL"
    FAILED = "FAILED"


class DeploymentLog(Base):
    """One row per lifecycle action attempt. Rows are never updated."""

    __tablename__ = "deployment_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    instance_id: Mapped[str] = mapped_column(
        ForeignKey("instances.id", ondelete="CASCADE"), index=True
    )
    action: Mapped[str] = mapped_column(String(20))
    status: Mapped[str] = mapped_column(String(20))
    message: Mapped[str] = mapped_column(Text)
    error: Mapped[str | None] = mapped_column(Text)

    instance: Mapped["Instance"] = relationship(back_populates="deployment_logs")  # noqa: F821

    def __repr__(self) -> str:
        return (
            f"<DeploymentLog(id={self.id}, instance={self.instance_id}, "
            f"action={self.action}, status={self.status})>"
        )
