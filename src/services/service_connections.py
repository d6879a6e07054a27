"""Build upstream clients from stored service connections."""

from sqlalchemy.orm import Session

from src.models import ServiceConnection
from src.models.enums import ServiceType
from src.services.arr_client import RadarrClient, SonarrClient
from src.services.jellyfin_client import JellyfinClient
from src.services.qbittorrent_client import QBittorrentClient


class ServiceNotConfiguredError(Exception):
    """Raised when a service has no usable stored connection."""

    def __init__(self, service_type: ServiceType, detail: str | None = None) -> None:
        self.service_type = service_type
        super().__init__(
            detail
            or f"{service_type.value.title()} is not configured. "
            "Please add a connection in Settings."
        )


def get_connection(db: Session, service_type: ServiceType) -> ServiceConnection:
    """Get the stored connection for a service or raise ServiceNotConfiguredError."""
    connection = (
        db.query(ServiceConnection).filter(ServiceConnection.type == service_type).first()
    )
    if not connection:
        raise ServiceNotConfiguredError(service_type)
    return connection


def get_sonarr_client(db: Session) -> SonarrClient:
    connection = get_connection(db, ServiceType.SONARR)
    return SonarrClient(connection.url, connection.api_key)


def get_radarr_client(db: Session) -> RadarrClient:
    connection = get_connection(db, ServiceType.RADARR)
    return RadarrClient(connection.url, connection.api_key)


def get_qbittorrent_client(db: Session) -> QBittorrentClient:
    """qBittorrent stores its password in ``api_key``; username defaults to admin."""
    connection = get_connection(db, ServiceType.QBITTORRENT)
    return QBittorrentClient(connection.url, connection.api_key, connection.username or "admin")


def get_jellyfin_client(db: Session) -> JellyfinClient:
    connection = get_connection(db, ServiceType.JELLYFIN)
    if not connection.username:
        raise ServiceNotConfiguredError(
            ServiceType.JELLYFIN,
            "Jellyfin user context is missing. Re-test and save the Jellyfin connection.",
        )
    return JellyfinClient(connection.url, connection.api_key, connection.username)
