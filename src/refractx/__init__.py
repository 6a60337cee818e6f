"""refractx: canonical observed wrappers for plain Python objects."""

from importlib.metadata import version as _version

__version__ = _version("refractx")

from refractx.classify import TargetKind, has_host_sentinel, is_composite, target_kind
from refractx.handlers import ITERATE, CollectionHandlers, Handlers, PlainHandlers
from refractx.proxy import Observed
from refractx.reactive import (
    Dep,
    KeyToDepMap,
    ObservationContext,
    can_observe,
    current_context,
    is_observed,
    is_readonly,
    mark_non_observable,
    mark_readonly,
    observe,
    observe_readonly,
    to_raw,
    use_context,
)
# textual NOT auto-imported — opt-in only

__all__ = [
    "observe",
    "observe_readonly",
    "is_observed",
    "is_readonly",
    "to_raw",
    "mark_readonly",
    "mark_non_observable",
    "can_observe",
    "ObservationContext",
    "current_context",
    "use_context",
    "Observed",
    "Handlers",
    "PlainHandlers",
    "CollectionHandlers",
    "ITERATE",
    "Dep",
    "KeyToDepMap",
    "TargetKind",
    "target_kind",
    "is_composite",
    "has_host_sentinel",
]
