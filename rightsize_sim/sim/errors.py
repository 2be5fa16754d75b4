# rightsize_sim/sim/errors.py
from __future__ import annotations


class SimulationError(Exception):
    """Базовая ошибка симуляции. Прерывает текущий вызов без частичного результата."""


class ConfigurationError(SimulationError, ValueError):
    """Некорректный label selector, affinity или PDB."""


class NodeNotFoundError(SimulationError, LookupError):
    def __init__(self, node_name: str):
        super().__init__(f"node {node_name} not found")
        self.node_name = node_name
