"""Health API Blueprint."""

import threading

from fastapi import APIRouter
from psutil import Process

from learnova.api.deps import BackgroundTasksDep, PoolDep
from learnova.utils.health import HealthResponseModel, ThreadHealthModel
from learnova.utils.logger import get_logger
from learnova.version import VERSION_FULL, __version__

logger = get_logger(__name__)

# No auth, account ids and counters only
router = APIRouter(prefix="/health", tags=["Health"])

PROCESS = Process()


@router.get("/")
def health(pool: PoolDep, background_tasks: BackgroundTasksDep) -> HealthResponseModel:
    """API endpoint to check the health of the service."""
    threads_enumerated = threading.enumerate()
    thread_list = [ThreadHealthModel(name=thread.name, is_alive=thread.is_alive()) for thread in threads_enumerated]
    memory = str(PROCESS.memory_info().rss / (1024 * 1024))

    return HealthResponseModel(
        version=__version__,
        version_full=VERSION_FULL,
        threads=thread_list,
        memory_usage_mb=memory,
        background_tasks=len(background_tasks),
        media_accounts=pool.status() if pool is not None else None,
    )
