from __future__ import annotations

import logging

from rq import Worker

from vitrine.core.logging import configure_logging
from vitrine.infra.queue.rq import get_queue, get_redis
from vitrine.workers.batch_worker import sweep_stuck_items

logger = logging.getLogger(__name__)


def main() -> None:
    configure_logging()
    # itens que ficaram em "processing" quando o worker anterior caiu
    sweep_stuck_items()

    queue = get_queue()
    logger.info("Worker started on queue %r. Waiting for batch runs... (CTRL+C to stop)", queue.name)
    Worker([queue], connection=get_redis()).work()


if __name__ == "__main__":
    main()
