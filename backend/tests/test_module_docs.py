import importlib

import pytest


@pytest.mark.parametrize('name', [
    'sleepdesk.extensions',
    'sleepdesk.store',
    'sleepdesk.decorators.audit',
    'sleepdesk.services.activity',
    'sleepdesk.services.data_access',
    'sleepdesk.services.navigation',
    'sleepdesk.services.policy',
    'sleepdesk.services.roles',
    'sleepdesk.services.users',
    'sleepdesk.services.webhooks',
    'sleepdesk.utils.fsm',
    'sleepdesk.utils.timeutil',
])
def test_module_docstring_is_set(name):
    module = importlib.import_module(name)
    assert module.__doc__ and module.__doc__.strip()
