"""
Status transition tables.

A ``TransitionTable`` is a fixed adjacency map from a status to the statuses
it may move to. Anything not listed is refused, including moves out of a
status the table does not know.
"""
from types import MappingProxyType

from apps.core.exceptions import DomainRuleViolated


class TransitionTable:

    def __init__(self, name, transitions):
        self.name = name
        known = set(transitions)
        for source, targets in transitions.items():
            unknown = set(targets) - known
            if unknown:
                raise ValueError(f"{name}: {source} -> {sorted(unknown)} targets unknown statuses")
        self._transitions = MappingProxyType(
            {str(source): frozenset(str(t) for t in targets) for source, targets in transitions.items()}
        )

    @property
    def statuses(self):
        return frozenset(self._transitions)

    def allowed(self, current):
        """Statuses reachable from ``current`` in one step."""
        return self._transitions.get(str(current), frozenset())

    def can_transition(self, current, target):
        return str(target) in self.allowed(current)

    def is_terminal(self, status):
        return str(status) in self._transitions and not self._transitions[str(status)]

    def ensure(self, current, target, code, message=None):
        """Raise ``DomainRuleViolated`` with ``code`` unless the move is listed."""
        if not self.can_transition(current, target):
            raise DomainRuleViolated(
                code,
                message or f"Cannot change {self.name} status from {current} to {target}",
            )
        return target

    def __contains__(self, status):
        return str(status) in self._transitions

    def __repr__(self):
        return f"<TransitionTable {self.name}>"
