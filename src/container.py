"""Process-wide wiring of repositories, engines and services.

The chest and bonus modules only know the ledger through their ports
(LedgerPort, BonusLedgerPort); the concrete LedgerEngine is plugged in here.
"""

from config.settings import settings
from src.rb_bonus.application.service import BonusApplicationService
from src.rb_bonus.domain.engine import BonusEngine
from src.rb_bonus.infrastructure.persistence import BonusRepository
from src.rb_chest.application.service import ChestApplicationService
from src.rb_chest.infrastructure.persistence import ChestRepository
from src.rb_common.events import EventPublisher, NullEventPublisher, RedisEventPublisher
from src.rb_ledger.application.service import LedgerApplicationService
from src.rb_ledger.domain.engine import LedgerEngine
from src.rb_ledger.infrastructure.persistence import LedgerRepository
from src.rb_streamer.infrastructure.persistence import StreamerDirectory

event_publisher: EventPublisher = (
    RedisEventPublisher(settings.REDIS_URL, settings.EVENTS_CHANNEL)
    if settings.EVENTS_ENABLED
    else NullEventPublisher()
)

streamer_directory = StreamerDirectory()
ledger_repository = LedgerRepository()
chest_repository = ChestRepository()
bonus_repository = BonusRepository()

ledger_engine = LedgerEngine(ledger_repository, streamer_directory)

ledger_service = LedgerApplicationService(
    ledger_engine, ledger_repository, streamer_directory, event_publisher
)
chest_service = ChestApplicationService(
    chest_repository, ledger_engine, streamer_directory, event_publisher
)
bonus_service = BonusApplicationService(
    BonusEngine(bonus_repository, ledger_engine), event_publisher
)
