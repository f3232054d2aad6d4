"""
Simple factory for service singletons.

Activities call `ServiceFactory.get_*()` instead of building services
themselves. The gateway client is configured from `KioskSettings` on first
use; tests swap in fakes with `override()` and clear them with `reset()`.
"""

from qrph_kiosk.config import get_settings
from qrph_kiosk.services.display import DisplayService
from qrph_kiosk.services.gateway import PayMongoClient
from qrph_kiosk.services.lock import LockService


class ServiceFactory:
    """Lazily creates and caches service instances (class-level singletons)."""

    _gateway: PayMongoClient | None = None
    _lock: LockService | None = None
    _display: DisplayService | None = None

    @classmethod
    def get_gateway_client(cls) -> PayMongoClient:
        if cls._gateway is None:
            settings = get_settings()
            cls._gateway = PayMongoClient(
                settings.paymongo_secret_key,
                settings.paymongo_base_url,
                currency=settings.currency,
                payment_rail=settings.payment_rail,
                capture_type=settings.capture_type,
                timeout_seconds=settings.http_timeout_seconds,
                verify_tls=settings.verify_tls,
            )
        return cls._gateway

    @classmethod
    def get_lock_service(cls) -> LockService:
        if cls._lock is None:
            cls._lock = LockService()
        return cls._lock

    @classmethod
    def get_display_service(cls) -> DisplayService:
        if cls._display is None:
            cls._display = DisplayService()
        return cls._display

    @classmethod
    def override(
        cls,
        *,
        gateway: PayMongoClient | None = None,
        lock: LockService | None = None,
        display: DisplayService | None = None,
    ) -> None:
        if gateway is not None:
            cls._gateway = gateway
        if lock is not None:
            cls._lock = lock
        if display is not None:
            cls._display = display

    @classmethod
    def reset(cls) -> None:
        cls._gateway = None
        cls._lock = None
        cls._display = None
