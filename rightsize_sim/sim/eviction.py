# rightsize_sim/sim/eviction.py
from __future__ import annotations

import logging
import math
from typing import List, Optional, Sequence, Tuple

from ..model.entities import IntOrPercent, PodDisruptionBudget, PodTemplate
from .errors import ConfigurationError
from .selector import Selector, compile_selector, count_matching

log = logging.getLogger(__name__)


def _scaled_value(value: IntOrPercent, total: int, field_name: str, pdb_name: str) -> int:
    """int как есть; "N%" от total с округлением вверх."""
    if isinstance(value, bool):
        raise ConfigurationError(f"pdb {pdb_name}: {field_name} must be an int or a percentage")
    if isinstance(value, int):
        if value < 0:
            raise ConfigurationError(f"pdb {pdb_name}: {field_name} must not be negative")
        return value
    text = str(value).strip()
    if text.endswith("%"):
        try:
            percent = int(text[:-1])
        except ValueError:
            raise ConfigurationError(f"pdb {pdb_name}: invalid {field_name} {value!r}") from None
        if percent < 0:
            raise ConfigurationError(f"pdb {pdb_name}: {field_name} must not be negative")
        return int(math.ceil(total * percent / 100.0))
    try:
        number = int(text)
    except ValueError:
        raise ConfigurationError(f"pdb {pdb_name}: invalid {field_name} {value!r}") from None
    return _scaled_value(number, total, field_name, pdb_name)


Budget = Tuple[PodDisruptionBudget, Selector]


def _compile_pdb(pdb: PodDisruptionBudget) -> Budget:
    name = f"{pdb.namespace}/{pdb.name}"
    if pdb.min_available is not None and pdb.max_unavailable is not None:
        raise ConfigurationError(f"pdb {name}: minAvailable and maxUnavailable are mutually exclusive")
    # формат значения проверяем сразу, масштаб считается позже по числу pod'ов
    if pdb.min_available is not None:
        _scaled_value(pdb.min_available, 0, "minAvailable", name)
    if pdb.max_unavailable is not None:
        _scaled_value(pdb.max_unavailable, 0, "maxUnavailable", name)
    return pdb, compile_selector(pdb.selector)


def compile_budgets(pdbs: Sequence[PodDisruptionBudget]) -> List[Budget]:
    """Проверяет все PDB. Любой некорректный -> ConfigurationError."""
    return [_compile_pdb(pdb) for pdb in pdbs]


class EvictionGate:
    """
    Решает, можно ли выселить pod, не нарушив ни один PDB.

    Количество pod'ов под PDB считается по всем нодам симуляции,
    а не только по освобождаемой ноде. Все подходящие PDB должны
    разрешить выселение.
    """

    def __init__(self, budgets: Sequence[Budget], allocations):
        self.allocations = allocations
        self._budgets: List[Budget] = list(budgets)

    def _matching_count(self, selector: Selector) -> int:
        return sum(count_matching(selector, (p.labels for p in a.pods)) for a in self.allocations)

    def blocking_budget(self, pod: PodTemplate) -> Optional[PodDisruptionBudget]:
        for pdb, selector in self._budgets:
            if not selector.matches(pod.labels):
                continue
            # все размещённые pod'ы считаем healthy
            total = self._matching_count(selector)
            healthy = total
            name = f"{pdb.namespace}/{pdb.name}"
            if pdb.min_available is not None:
                min_available = _scaled_value(pdb.min_available, total, "minAvailable", name)
                if healthy <= min_available:
                    return pdb
            elif pdb.max_unavailable is not None:
                max_unavailable = _scaled_value(pdb.max_unavailable, total, "maxUnavailable", name)
                if healthy - 1 < total - max_unavailable:
                    return pdb
        return None

    def can_evict(self, pod: PodTemplate) -> bool:
        pdb = self.blocking_budget(pod)
        if pdb is not None:
            log.debug("eviction of %s blocked by pdb %s/%s", pod.name or "<pod>", pdb.namespace, pdb.name)
            return False
        return True
