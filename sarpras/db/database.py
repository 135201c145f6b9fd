# sarpras/db/database.py
import motor.motor_asyncio
from beanie import init_beanie
from loguru import logger

from sarpras.core.config import MONGODB_URL, DATABASE_NAME
from sarpras.models.user import User
from sarpras.models.item import Item
from sarpras.models.consumable_request import ConsumableRequest
from sarpras.models.borrow_request import BorrowRequest
from sarpras.models.return_request import ReturnRequest
from sarpras.models.stock_movement import StockMovement
from sarpras.models.transition_log import TransitionLog
from sarpras.models.notification import Notification

DOCUMENT_MODELS = [
    User,
    Item,
    ConsumableRequest,
    BorrowRequest,
    ReturnRequest,
    StockMovement,
    TransitionLog,
    Notification,
]

_client = None


def get_client():
    return _client


async def init_db(client=None):
    """Inisialisasi koneksi database dan Beanie.

    ``client`` bisa diisi dari luar (misal client mongomock di test).
    """
    global _client
    if client is None:
        logger.info("Connecting to MongoDB...")
        client = motor.motor_asyncio.AsyncIOMotorClient(MONGODB_URL, tz_aware=True)
    _client = client

    database = client[DATABASE_NAME]
    logger.info(f"Using database: {DATABASE_NAME}")

    await init_beanie(database=database, document_models=DOCUMENT_MODELS)
    logger.info("Beanie initialization complete for all models.")
    return database


async def ping_db() -> bool:
    if _client is None:
        return False
    await _client.admin.command("ping")
    return True
