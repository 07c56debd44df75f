"""Route Classifier: qualifies router-relative sub-paths into public/admin route lists.

Invariants:
    - populate() is pure: same length and order as its input
    - "/" qualifies to the prefix itself, anything else to prefix + sub_path
    - Matching is exact string membership (no trailing-slash normalization, no globs)
    - A qualified route is never both public and admin (RouteClassificationError)
    - RouteTable is frozen once built
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Protocol, Sequence

from billing.core.errors import RouteClassificationError

MOUNT_ROOT = "/"


class RoutePrefix(str, Enum):
    """Fixed mount points of the API."""
    ROOT = "/"
    MONITOR = "/monitor"
    PAYMENT = "/payment"
    PRODUCT = "/product"
    WEBHOOK = "/webhook"
    RECEIPT = "/receipt"
    SUBSCRIPTION = "/subscription"


class RoutePolicy(str, Enum):
    """How the authorization collaborator should treat a route."""
    PUBLIC = "public"
    ADMIN = "admin"
    DEFAULT = "default"


class ClassifiedRouter(Protocol):
    """Anything mounted under a prefix that declares public/admin sub-paths."""
    prefix: str
    public_routes: Sequence[str]
    admin_routes: Sequence[str]


def populate(prefix: str, sub_paths: Iterable[str]) -> list[str]:
    """Qualify each sub-path with the router's mount prefix."""
    return [prefix if s == MOUNT_ROOT else prefix + s for s in sub_paths]


@dataclass(frozen=True)
class RouteTable:
    """Process-wide public/admin route lists, built once at mount time."""
    public_routes: tuple[str, ...] = ()
    admin_routes: tuple[str, ...] = ()
    _public: frozenset[str] = field(init=False, repr=False, compare=False)
    _admin: frozenset[str] = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        object.__setattr__(self, "_public", frozenset(self.public_routes))
        object.__setattr__(self, "_admin", frozenset(self.admin_routes))

    def is_public(self, path: str) -> bool:
        return path in self._public

    def is_admin(self, path: str) -> bool:
        return path in self._admin

    def policy_for(self, path: str) -> RoutePolicy:
        if path in self._public:
            return RoutePolicy.PUBLIC
        if path in self._admin:
            return RoutePolicy.ADMIN
        return RoutePolicy.DEFAULT


def classify(routers: Iterable[ClassifiedRouter]) -> RouteTable:
    """Concatenate qualified public/admin routes across routers, in router order.

    Raises RouteClassificationError when a route lands in both lists.
    """
    public: list[str] = []
    admin: list[str] = []
    for router in routers:
        public.extend(populate(router.prefix, router.public_routes))
        admin.extend(populate(router.prefix, router.admin_routes))

    admin_set = set(admin)
    overlapping = [r for r in dict.fromkeys(public) if r in admin_set]
    if overlapping:
        raise RouteClassificationError(overlapping)

    return RouteTable(public_routes=tuple(public), admin_routes=tuple(admin))
