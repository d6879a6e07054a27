"""Service connection model."""

from sqlalchemy import Column, Enum, Integer, String

from src.database import Base
from src.models.enums import ServiceType
from src.models.mixins import TimestampMixin


class ServiceConnection(Base, TimestampMixin):
    """Base URL and credentials for one upstream service."""

    __tablename__ = "service_connections"

    id = Column(Integer, primary_key=True, index=True)
    type = Column(
        Enum(
            ServiceType,
            name="servicetype",
            values_callable=lambda x: [e.value for e in x],
        ),
        unique=True,
        nullable=False,
    )
    url = Column(String(500), nullable=False)
    api_key = Column(String(255), nullable=False)  # password for qBittorrent
    username = Column(String(255), nullable=True)  # qBittorrent user / Jellyfin user id
