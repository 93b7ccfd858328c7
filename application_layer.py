# application_layer.py
import logging

from services.application.admission_service import AdmissionService
from services.application.risk_service import RiskService
from services.coordinators.signal_coordinator import SignalCoordinator
from services.kucoin_service.kucoin_client import KuCoinClient
from services.open_position_engine.position_monitor import PositionMonitor
from services.positions_service.position_ledger import PositionLedger
from services.scheduler_service import DailyReportScheduler
from services.telegram_service.notifier import Notifier

logger = logging.getLogger("application_layer")


class ApplicationLayer:
    """
    Wiring layer: builds every service/coordinator once and hands them their
    collaborators. Nothing here is a module level singleton.

    - bot is required (Notifier needs it)
    - venue can be injected (tests, dry runs against a fake)
    """

    def __init__(self, settings, bot, venue=None):
        if bot is None:
            raise TypeError("ApplicationLayer.__init__() requires bot (python-telegram-bot).")

        self.settings = settings

        # Infra
        self.notifier = Notifier(bot, settings.notify_chat_id, enabled=settings.notifications_enabled)
        self.venue = venue or KuCoinClient(
            settings.kucoin_api_key,
            settings.kucoin_api_secret,
            settings.kucoin_api_passphrase,
            base_url=settings.kucoin_base_url,
            timeout=settings.venue_http_timeout,
        )

        # State
        self.ledger = PositionLedger()

        # Services
        self.risk = RiskService(settings.leverage, settings.position_size_percent)
        self.admission = AdmissionService(settings, self.ledger, self.venue)

        # Coordinators
        self.signal = SignalCoordinator(
            settings=settings,
            ledger=self.ledger,
            venue=self.venue,
            admission=self.admission,
            risk=self.risk,
            notifier=self.notifier,
        )

        # Background loops
        self.position_monitor = PositionMonitor(
            self.ledger,
            self.venue,
            interval_sec=settings.reconcile_interval_sec,
            on_closed=self.signal.notify_external_close,
        )
        self.scheduler = DailyReportScheduler(
            self.ledger,
            self.venue,
            self.notifier,
            report_hour_utc=settings.daily_report_hour_utc,
            trading_hours=settings.trading_hours,
        )

        mode = "DRY RUN" if settings.dry_run else "LIVE"
        logger.info(f"✅ ApplicationLayer initialized ({mode}).")
