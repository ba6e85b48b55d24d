from __future__ import annotations

import redis
from rq import Queue

from vitrine.core.config import BATCH_QUEUE_NAME, REDIS_URL


def get_redis() -> redis.Redis:
    return redis.from_url(REDIS_URL)


def get_queue() -> Queue:
    # itens de lote chamam o provedor várias vezes; 30 min por execução
    return Queue(BATCH_QUEUE_NAME, connection=get_redis(), default_timeout=1800)
