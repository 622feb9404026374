"""Instance model - one deployed OpenClaw gateway per user."""

from datetime import datetime
from enum import Enum

from sqlalchemy import DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, new_id


class InstanceStatus(str, Enum):
    """Instance lifecycle.

    DEPLOYING -> RUNNING | ERROR
    RUNNING -> STOPPED -> RUNNING
    RUNNING/STOPPED -> RESTARTING -> RUNNING
    """

    DEPLOYING = "DEPLOYING"
    RUNNING = "RUNNING"
    STOPPED = "STOPPED"
    RESTARTING = "RESTARTING"
    ERROR = "ERROR"


class Instance(Base):
    """Instance model - tracks the cloud resource backing a user's gateway."""

    __tablename__ = "instances"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    provider: Mapped[str] = mapped_column(String(20))

    # Fly: machine id / app name. Render, Railway: service id / service name.
    container_id: Mapped[str | None] = mapped_column(String(255))
    container_name: Mapped[str | None] = mapped_column(String(255))

    # Logical slot number, not a network port
    port: Mapped[int] = mapped_column(Integer, unique=True)

    status: Mapped[str] = mapped_column(
        String(20), default=InstanceStatus.DEPLOYING.value, index=True
    )
    access_url: Mapped[str | None] = mapped_column(String(500))
    # Provider dashboard shell link
    service_url: Mapped[str | None] = mapped_column(String(500))
    gateway_token: Mapped[str | None] = mapped_column(String(255))
    last_health_check: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    deployment_logs: Mapped[list["DeploymentLog"]] = relationship(  # noqa: F821
        back_populates="instance",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="DeploymentLog.id",
    )

    @property
    def has_identifiers(self) -> bool:
        return bool(self.container_id and self.container_name)

    def __repr__(self) -> str:
        return (
            f"<Instance(id={self.id}, user={self.user_id}, provider={self.provider}, "
            f"resource={self.container_name}/{self.container_id}, status={self.status})>"
        )
