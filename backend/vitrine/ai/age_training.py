from __future__ import annotations

import logging
import threading
from typing import Dict

from sqlalchemy.orm import Session

from vitrine.ai import prompts
from vitrine.ai.genai_client import GenerationClient
from vitrine.infra.db.crud import get_trained_age, save_trained_age

logger = logging.getLogger(__name__)

_locks_guard = threading.Lock()
_age_locks: Dict[str, threading.Lock] = {}


def _lock_for(age: str) -> threading.Lock:
    with _locks_guard:
        lock = _age_locks.get(age)
        if lock is None:
            lock = threading.Lock()
            _age_locks[age] = lock
        return lock


class AgeTrainer:
    """
    Treinamento de idade: descreve uma vez as características físicas de uma
    faixa etária e reaproveita o texto (cache em trained_ages).
    """

    def __init__(self, db: Session, client: GenerationClient) -> None:
        self.db = db
        self.client = client

    def characteristics_for(self, age: str) -> str:
        age = (age or "").strip()
        if not age:
            return prompts.AGE_NOT_SPECIFIED

        cached = get_trained_age(self.db, age)
        if cached is not None:
            return cached.characteristics

        # itens paralelos com a mesma idade esperam um único treinamento
        with _lock_for(age):
            cached = get_trained_age(self.db, age)
            if cached is not None:
                return cached.characteristics

            logger.info("training age characteristics for %r", age)
            text = self.client.train_age_characteristics(age)
            return save_trained_age(self.db, age=age, characteristics=text).characteristics
