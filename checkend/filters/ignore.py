"""
Decides whether an error should be dropped before a notice is built.

Rules are matched against an ``ErrorIdentity``: the error's own type name and
the names of its ancestor types, each in bare (``ValueError``) and
module-qualified (``myapp.errors.PaymentError``) form.  Matching is plain
string and pattern work over those names.
"""

import re
from dataclasses import dataclass
from typing import Any, Iterable, List, Optional, Tuple


@dataclass(frozen=True)
class ErrorIdentity:
    """Type identifiers of one error, most specific first."""

    type_name: str
    qualified_name: str
    ancestors: Tuple[str, ...] = ()

    @classmethod
    def from_exception(cls, exc: BaseException) -> "ErrorIdentity":
        return cls.from_type(type(exc))

    @classmethod
    def from_type(cls, exc_type: type) -> "ErrorIdentity":
        ancestors: List[str] = []
        for base in exc_type.__mro__[1:]:
            if base is object:
                continue
            ancestors.append(base.__name__)
            qualified = qualified_type_name(base)
            if qualified != base.__name__:
                ancestors.append(qualified)
        return cls(
            type_name=exc_type.__name__,
            qualified_name=qualified_type_name(exc_type),
            ancestors=tuple(ancestors),
        )

    @property
    def names(self) -> Tuple[str, ...]:
        """Own names followed by every ancestor name."""
        return (self.type_name, self.qualified_name) + self.ancestors


def qualified_type_name(exc_type: type) -> str:
    """``module.QualName``, or the bare name for builtins."""
    module = getattr(exc_type, "__module__", None)
    if not module or module == "builtins":
        return exc_type.__qualname__
    return f"{module}.{exc_type.__qualname__}"


class IgnoreFilter:
    """Match errors against ignore rules.

    Each rule is one of:

    * a string: the error's type name or any ancestor's name;
    * an exception class: the error is that class or a subclass of it;
    * a compiled regular expression: searched in the error's own type name.
    """

    def __init__(self, rules: Optional[Iterable[Any]] = None) -> None:
        self.rules = list(rules or [])

    @classmethod
    def from_config(cls, config) -> "IgnoreFilter":
        return cls(config.ignored_exceptions)

    def ignore(self, error: Any) -> bool:
        """Return ``True`` if any rule matches.

        Args:
            error: An exception instance, an exception class or an ``ErrorIdentity``.
        """
        if not self.rules:
            return False
        identity = _identity_of(error)
        return any(self._matches(identity, rule) for rule in self.rules)

    @staticmethod
    def _matches(identity: ErrorIdentity, rule: Any) -> bool:
        if isinstance(rule, str):
            return rule in identity.names
        if isinstance(rule, type):
            return qualified_type_name(rule) in identity.names
        if isinstance(rule, re.Pattern):
            return bool(rule.search(identity.type_name) or rule.search(identity.qualified_name))
        return False


def _identity_of(error: Any) -> ErrorIdentity:
    if isinstance(error, ErrorIdentity):
        return error
    if isinstance(error, type):
        return ErrorIdentity.from_type(error)
    return ErrorIdentity.from_exception(error)
