"""Central enum-like definitions to avoid typos in resource/action strings.
Extend cautiously; resource keys are persisted in permission rows and overrides.
"""
from __future__ import annotations
from typing import List, Dict, Any, Tuple

ACTIONS = ['list', 'create', 'edit', 'delete', 'show', 'view', 'retry']

CRUD = ['list', 'create', 'edit', 'delete', 'show']

# Static resource/action registry evaluated by resolve_all.
RESOURCE_ACTIONS: Dict[str, List[str]] = {
    'dashboard': ['view'],
    'customers': CRUD,
    'subscriptions': CRUD,
    'evaluations': CRUD,
    'employees': CRUD,
    'stores': CRUD,
    'calls': CRUD,
    'sales': CRUD,
    'campaigns': CRUD,
    'commissions': CRUD,
    'achievements': CRUD,
    'scripts': CRUD,
    'activityLogs': ['list', 'show'],
    'webhooks': ['list', 'show', 'retry'],
    'webhookSettings': ['view', 'edit'],
    'systemSettings': ['view', 'edit'],
    'permissions': ['view', 'edit'],
    'roles': ['list', 'create', 'edit', 'delete'],
    'dailyGoals': CRUD,
    'callTasks': CRUD,
    'leaderboard': ['view'],
    'stripeManagement': ['view', 'list'],
    'dailyTasks': ['view', 'list'],
    'shopifySettings': ['view', 'edit'],
    'shopifyProducts': CRUD,
    'shopifyCustomers': CRUD,
    'shopifyCoupons': CRUD,
}


def all_resource_action_pairs() -> List[Tuple[str, str]]:
    pairs: List[Tuple[str, str]] = []
    for resource, actions in RESOURCE_ACTIONS.items():
        for action in actions:
            pairs.append((resource, action))
    return pairs


ALL_RESOURCE_ACTIONS = all_resource_action_pairs()

SYSTEM_ROLES = {
    'admin': {'display_name': 'Administrator', 'description': 'Full access to every section'},
    'manager': {'display_name': 'Manager', 'description': 'Operational access without system administration'},
    'agent': {'display_name': 'Agent', 'description': 'Call-center agent access'},
}

REASON_OVERRIDE_DENIED = 'Permission denied by user-specific configuration'
REASON_ROLE_DENIED = "You don't have permission to perform this action"
REASON_ADMIN_ONLY = 'Only administrators can perform this action'
REASON_SECTION_DENIED = "You don't have permission to access this section"
REASON_UNRECOGNIZED_ROLE = 'Unrecognized role'
REASON_UNAUTHENTICATED = 'You are not authenticated'


def _pairs(mapping: Dict[str, List[str]], allowed: bool) -> List[Dict[str, Any]]:
    return [
        {'resource': resource, 'action': action, 'allowed': allowed}
        for resource, actions in mapping.items() for action in actions
    ]


MANAGER_DENIED = {
    'stores': ['create', 'delete'],
    'systemSettings': ['edit'],
    'permissions': ['view', 'edit'],
    'roles': ['create', 'edit', 'delete'],
    'webhooks': ['list', 'show', 'retry'],
    'webhookSettings': ['view', 'edit'],
}

AGENT_ALLOWED = {
    'dashboard': ['view'],
    'customers': ['list', 'show', 'edit'],
    'subscriptions': ['list', 'show'],
    'evaluations': ['list', 'show', 'create'],
    'calls': ['list', 'show', 'create'],
    'sales': ['list', 'show', 'create'],
    'campaigns': ['list', 'show'],
    'scripts': ['list', 'show'],
    'dailyGoals': ['list', 'show'],
    'callTasks': ['list', 'show', 'edit'],
    'leaderboard': ['view'],
    'achievements': ['list', 'show'],
}

# Fallback policy applied when neither an override nor a role permission row matches.
# role -> {default, reason (for denials), exceptions}
DEFAULT_ROLE_POLICIES: Dict[str, Dict[str, Any]] = {
    'admin': {'default': 'allow', 'exceptions': []},
    'manager': {
        'default': 'allow',
        'reason': REASON_ADMIN_ONLY,
        'exceptions': _pairs(MANAGER_DENIED, False),
    },
    'agent': {
        'default': 'deny',
        'reason': REASON_SECTION_DENIED,
        'exceptions': _pairs(AGENT_ALLOWED, True),
    },
}
