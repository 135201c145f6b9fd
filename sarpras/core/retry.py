# sarpras/core/retry.py
import asyncio
from functools import wraps

from loguru import logger
from pymongo.errors import AutoReconnect, ConnectionFailure, NetworkTimeout

from sarpras.core.config import READ_RETRY_ATTEMPTS

TRANSIENT_ERRORS = (AutoReconnect, ConnectionFailure, NetworkTimeout)


def retry_read(fn):
    """Ulangi operasi BACA yang idempoten bila store sementara tidak terjangkau.

    Jangan dipakai untuk transisi: mengulang tulis tanpa kunci idempotensi
    bisa menerapkan efek dua kali.
    """
    @wraps(fn)
    async def wrapper(*args, **kwargs):
        attempt = 1
        while True:
            try:
                return await fn(*args, **kwargs)
            except TRANSIENT_ERRORS as e:
                if attempt >= READ_RETRY_ATTEMPTS:
                    logger.error(f"{fn.__name__} failed after {attempt} attempt(s): {e}")
                    raise
                delay = 0.1 * (2 ** (attempt - 1))
                logger.warning(f"{fn.__name__} transient store error ({e}); retry {attempt}/{READ_RETRY_ATTEMPTS - 1} in {delay:.1f}s")
                await asyncio.sleep(delay)
                attempt += 1
    return wrapper
