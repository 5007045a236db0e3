"""Menu construction and route gating.

Both derive from the permission resolver: the menu from a batch ``resolve_all``
result and route access from a single ``evaluate`` call, so a section visible in
the menu is always reachable and vice versa.
"""
from __future__ import annotations
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple

from sleepdesk.constants.permissions import RESOURCE_ACTIONS, REASON_UNAUTHENTICATED
from sleepdesk.services.policy import Decision, Identity, PermissionResolver

# route kinds a menu entry may link to, in preference order
MENU_ROUTE_KINDS = ('list', 'show', 'create')
ROUTE_KINDS = ('list', 'create', 'edit', 'show')


@dataclass(frozen=True)
class ResourceEntry:
    name: str
    label: str
    parent: Optional[str] = None
    routes: Dict[str, str] = field(default_factory=dict)

    @property
    def is_group(self) -> bool:
        return not self.routes


def _crud(base: str) -> Dict[str, str]:
    return {
        'list': base,
        'create': f'{base}/create',
        'edit': f'{base}/edit/:id',
        'show': f'{base}/show/:id',
    }


RESOURCES: List[ResourceEntry] = [
    # Navigation groups
    ResourceEntry('reports', 'Reports'),
    ResourceEntry('administration', 'Administration'),
    ResourceEntry('tools', 'Tools'),
    ResourceEntry('shopify', 'Shopify Store'),
    ResourceEntry('system', 'System'),
    ResourceEntry('dailyTasks', 'Daily Tasks', routes={'list': '/tasks'}),
    ResourceEntry('leaderboard', 'Leaderboard', routes={'list': '/leaderboard'}),
    ResourceEntry('systemSettings', 'Settings', 'administration', {'list': '/admin/settings'}),
    ResourceEntry('permissions', 'Permissions', 'administration', {'list': '/admin/permissions'}),
    ResourceEntry('dashboard', 'Dashboard', routes={'list': '/'}),
    ResourceEntry('customers', 'Customers', routes=_crud('/customers')),
    ResourceEntry('subscriptions', 'Subscriptions', routes=_crud('/subscriptions')),
    ResourceEntry('evaluations', 'Trade & Sleep Evaluations', routes=_crud('/evaluations')),
    ResourceEntry('calls', 'Calls', 'reports', _crud('/calls')),
    ResourceEntry('sales', 'Sales', 'reports', _crud('/sales')),
    ResourceEntry('campaigns', 'Campaigns', routes=_crud('/campaigns')),
    ResourceEntry('employees', 'Employees', 'administration', _crud('/employees')),
    ResourceEntry('stores', 'Stores', 'administration', _crud('/stores')),
    ResourceEntry('commissions', 'Commissions', 'administration', _crud('/commissions')),
    ResourceEntry('achievements', 'Achievements', 'administration', _crud('/achievements')),
    ResourceEntry('scripts', 'Scripts', 'tools', _crud('/scripts')),
    ResourceEntry('stripeManagement', 'Stripe Management', 'tools', {'list': '/stripe'}),
    ResourceEntry('shopifySettings', 'Settings', 'shopify', {'list': '/shopify/settings'}),
    ResourceEntry('shopifyProducts', 'Products', 'shopify', _crud('/shopify/products')),
    ResourceEntry('shopifyCustomers', 'Customers', 'shopify', _crud('/shopify/customers')),
    ResourceEntry('shopifyCoupons', 'Coupons', 'shopify', _crud('/shopify/coupons')),
    ResourceEntry('activityLogs', 'Activity Log', 'system', {'list': '/activity-logs', 'show': '/activity-logs/show/:id'}),
    ResourceEntry('webhooks', 'Webhooks', 'system', {'list': '/webhooks', 'show': '/webhooks/show/:id'}),
    ResourceEntry('webhookSettings', 'Webhook Settings', 'system', {'list': '/webhooks/settings'}),
]


@dataclass
class MenuNode:
    name: str
    label: str
    route: Optional[str] = None
    children: List['MenuNode'] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {'name': self.name, 'label': self.label, 'route': self.route}
        if self.children:
            out['children'] = [c.to_dict() for c in self.children]
        return out


def _route_action(resource: str, kind: str) -> str:
    if kind == 'list':
        declared = RESOURCE_ACTIONS.get(resource, ['list'])
        return 'list' if 'list' in declared else 'view'
    return kind


def _menu_route(entry: ResourceEntry, allowed) -> Optional[str]:
    for kind in MENU_ROUTE_KINDS:
        pattern = entry.routes.get(kind)
        if pattern and (entry.name, _route_action(entry.name, kind)) in allowed:
            return pattern
    return None


def build_menu(resolutions: Iterable[Dict[str, Any]], registry: Optional[List[ResourceEntry]] = None) -> List[MenuNode]:
    """Ordered menu tree for one identity.

    A resource is shown when one of its list, show or create routes is allowed and
    links to the first such route, so every menu link passes ``route_access``. A
    group is shown when at least one of its children is.
    """
    registry = registry if registry is not None else RESOURCES
    allowed = {(r['resource'], r['action']) for r in resolutions if r.get('allowed')}
    nodes: Dict[str, MenuNode] = {}
    top: List[MenuNode] = []
    for entry in registry:
        if entry.is_group:
            node = MenuNode(entry.name, entry.label)
            nodes[entry.name] = node
            top.append(node)
            continue
        route = _menu_route(entry, allowed)
        if route is None:
            continue
        node = MenuNode(entry.name, entry.label, route)
        parent = nodes.get(entry.parent) if entry.parent else None
        if parent is not None:
            parent.children.append(node)
        else:
            top.append(node)
    return [n for n in top if n.route is not None or n.children]


def _route_regex(pattern: str):
    parts = [('[^/]+' if seg.startswith(':') else re.escape(seg)) for seg in pattern.strip('/').split('/')]
    return re.compile('^/' + '/'.join(p for p in parts if p) + '$') if pattern.strip('/') else re.compile('^/$')


_ROUTE_TABLE: List[Tuple[Any, str, str]] = []


def _route_table(registry: List[ResourceEntry]):
    table = []
    for entry in registry:
        for kind in ROUTE_KINDS:
            pattern = entry.routes.get(kind)
            if pattern:
                table.append((_route_regex(pattern), entry.name, kind))
    # static segments before parameterised ones (/customers/create vs /customers/:id style clashes)
    table.sort(key=lambda t: t[0].pattern.count('[^/]+'))
    return table


def match_route(path: str, registry: Optional[List[ResourceEntry]] = None) -> Optional[Tuple[str, str]]:
    """Map a UI path onto the (resource, action) it requires, or None if unknown."""
    global _ROUTE_TABLE
    if registry is None:
        if not _ROUTE_TABLE:
            _ROUTE_TABLE = _route_table(RESOURCES)
        table = _ROUTE_TABLE
    else:
        table = _route_table(registry)
    normalized = '/' + path.split('?', 1)[0].strip('/')
    for regex, resource, kind in table:
        if regex.match(normalized):
            return resource, _route_action(resource, kind)
    return None


def route_access(resolver: PermissionResolver, identity: Optional[Identity], path: str) -> Decision:
    if identity is None:
        return Decision(False, REASON_UNAUTHENTICATED)
    matched = match_route(path)
    if matched is None:
        return Decision(False, 'Unknown route')
    resource, action = matched
    return resolver.evaluate(identity.user_id, identity.role, resource, action)


__all__ = ['ResourceEntry', 'RESOURCES', 'MenuNode', 'build_menu', 'match_route', 'route_access']
