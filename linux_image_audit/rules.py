"""Declarative rule tables shared by the anomaly detectors."""
from __future__ import annotations

from enum import Enum
from typing import Callable, Dict, Generic, Iterator, Tuple, TypeVar

R = TypeVar("R", bound=Callable)


class RuleRegistry(Generic[R]):
    """Registry mapping a rule identifier to the predicate that implements it.

    Rules are registered with the :meth:`register` decorator and evaluated in
    registration order, which keeps detector output reproducible.
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self._rules: Dict[Enum, R] = {}

    def register(self, rule_id: Enum) -> Callable[[R], R]:
        """Return a decorator that registers *rule_id* for the wrapped predicate."""

        def decorator(func: R) -> R:
            if rule_id in self._rules and self._rules[rule_id] is not func:
                raise ValueError(f"{self.name} rule '{rule_id.value}' is already registered")
            self._rules[rule_id] = func
            return func

        return decorator

    def keys(self) -> Iterator[Enum]:
        return iter(self._rules)

    def items(self) -> Iterator[Tuple[Enum, R]]:
        return iter(self._rules.items())


__all__ = ["RuleRegistry"]
