"""
Header binding registry.

A binding tells how a container header announces the header that follows
it, e.g. ``Eth.ethertype == 0x0800`` announces IP. Bindings are used both
ways: during dissection to pick the next header class from the container's
field values, and during construction to set those field values when a
header is added on top of the container.

Rules registered in one ``bind`` call form a group that matches when all of
its rules hold. Several ``bind`` calls for the same pair of classes give
alternative groups; the pair matches when any group does.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Callable, Iterable

from pktcraft.core.errors import UnknownBindingError

if TYPE_CHECKING:
    from pktcraft.core.struct import Struct


class Binding:
    """
    Rule on a single container field.

    Args:
        field: Container field (or bit-field) name
        value: Literal compared for equality, or predicate on the field value
        setter: Literal, or callable on the previous field value, used when
            the container is configured for the candidate. Without a setter,
            a literal value is set as is and a predicate is called with None
            to produce the value.
    """

    def __init__(self, field: str, value: Any, setter: Any = None):
        self.field = field
        self.value = value
        self.setter = setter

    def check(self, container: Struct) -> bool:
        current = getattr(container, self.field)
        if callable(self.value):
            return bool(self.value(current))
        return current == self.value

    def set(self, container: Struct) -> None:
        if self.setter is not None:
            if callable(self.setter):
                value = self.setter(getattr(container, self.field))
            else:
                value = self.setter
        elif callable(self.value):
            value = self.value(None)
        else:
            value = self.value
        setattr(container, self.field, value)

    def __repr__(self) -> str:
        return f"Binding({self.field!r}, {self.value!r})"


class ProcBinding:
    """Rule given as free-form procedures on the whole container."""

    def __init__(self, setter: Callable[[Struct], Any], checker: Callable[[Struct], bool]):
        self.setter = setter
        self.checker = checker

    def check(self, container: Struct) -> bool:
        return bool(self.checker(container))

    def set(self, container: Struct) -> None:
        self.setter(container)

    def __repr__(self) -> str:
        return "ProcBinding()"


class BindingGroup:
    """Conjunction of rules registered together."""

    def __init__(self, rules: Iterable[Binding | ProcBinding]):
        self.rules = list(rules)
        if not self.rules:
            raise ValueError("a binding group needs at least one rule")

    def check(self, container: Struct) -> bool:
        return all(rule.check(container) for rule in self.rules)

    def set(self, container: Struct) -> None:
        for rule in self.rules:
            rule.set(container)

    def __repr__(self) -> str:
        return f"BindingGroup({self.rules!r})"


class BindingGroupSet:
    """Alternative groups for one (container, candidate) pair."""

    def __init__(self):
        self.groups: list[BindingGroup] = []

    def append(self, group: BindingGroup) -> None:
        self.groups.append(group)

    def check(self, container: Struct) -> bool:
        return any(group.check(container) for group in self.groups)

    def set(self, container: Struct) -> None:
        """
        Configure container so that this set matches.

        A group that already matches is kept. Otherwise each group is tried
        in registration order and the first one that matches once applied is
        kept; if none does, the first group is applied.
        """
        for group in self.groups:
            if group.check(container):
                return

        for group in self.groups:
            saved = container.snapshot()
            group.set(container)
            if group.check(container):
                return
            container.restore(saved)

        self.groups[0].set(container)

    def __len__(self) -> int:
        return len(self.groups)

    def __repr__(self) -> str:
        return f"BindingGroupSet({self.groups!r})"


class BindingRegistry:
    """
    Binding tables keyed by container class, then candidate class.

    Candidates are kept in registration order, which decides the winner
    when several candidates match the same container.
    """

    def __init__(self):
        self._bindings: dict[type, dict[type, BindingGroupSet]] = {}

    def bind(
        self,
        container: type,
        candidate: type,
        *rules: Binding | ProcBinding,
        procs: tuple[Callable, Callable] | None = None,
        **fields: Any,
    ) -> BindingGroup:
        """
        Register a group of rules announcing candidate inside container.

        Args:
            container: Container header class
            candidate: Header class announced by the rules
            *rules: Prebuilt Binding / ProcBinding rules
            procs: (setter, checker) pair, shorthand for a ProcBinding
            **fields: field=value shorthand for Binding rules

        Raises:
            ValueError: a rule names a field container does not have
            InvalidFieldValueError: a literal is not valid for its field

        Example:
            registry.bind(IP, IGMP, protocol=2, frag=0, ttl=1)
            registry.bind(UDP, DNS, dport=53)
            registry.bind(UDP, DNS, sport=53)
        """
        all_rules = list(rules)
        if procs is not None:
            all_rules.append(ProcBinding(*procs))
        all_rules.extend(Binding(name, value) for name, value in fields.items())

        schema = container._schema
        for rule in all_rules:
            if not isinstance(rule, Binding):
                continue
            fdef = schema.get(rule.field)
            if fdef is None:
                if schema.bit_field(rule.field) is None:
                    raise ValueError(
                        f"{container.__name__} has no field {rule.field!r} to bind on")
                continue
            # compare against the attribute view (enum names become integers)
            if not callable(rule.value):
                rule.value = fdef.type.get(fdef.type.coerce(rule.value, fdef), fdef)

        group = BindingGroup(all_rules)
        table = self._bindings.setdefault(container, {})
        table.setdefault(candidate, BindingGroupSet()).append(group)
        return group

    def unbind(self, container: type, candidate: type) -> bool:
        """Remove every group registered for the pair."""
        table = self._bindings.get(container)
        if not table or candidate not in table:
            return False
        del table[candidate]
        return True

    def known_headers(self, container: type) -> dict[type, BindingGroupSet]:
        """Candidate classes of container, in registration order."""
        return dict(self._bindings.get(container, {}))

    def bindings_for(self, container: type, candidate: type) -> BindingGroupSet | None:
        """Bindings of the pair, falling back to the candidate's base classes."""
        table = self._bindings.get(container, {})
        for klass in candidate.__mro__:
            if klass in table:
                return table[klass]
        return None

    def resolve_next_class(self, instance: Struct) -> type | None:
        """First registered candidate whose bindings match instance, or None."""
        for candidate, group_set in self._bindings.get(type(instance), {}).items():
            if group_set.check(instance):
                return candidate
        return None

    def apply_defaults(self, instance: Struct, candidate: type) -> None:
        """Set instance fields so that it announces candidate."""
        group_set = self.bindings_for(type(instance), candidate)
        if group_set is None:
            raise UnknownBindingError(
                f"{type(instance).__name__} knows no binding to {candidate.__name__}")
        group_set.set(instance)

    def clear(self) -> None:
        self._bindings.clear()


# Global registry instance
_global_registry = BindingRegistry()


def get_global_registry() -> BindingRegistry:
    """Get the global binding registry."""
    return _global_registry
