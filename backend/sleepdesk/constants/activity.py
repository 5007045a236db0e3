"""Activity log vocabulary (action kinds and audited resource keys)."""

CREATE = 'create'
UPDATE = 'update'
DELETE = 'delete'
VIEW = 'view'
LOGIN = 'login'
LOGOUT = 'logout'
EXPORT = 'export'
IMPORT = 'import'
SYNC = 'sync'
APPROVE = 'approve'
REJECT = 'reject'
SEND_EMAIL = 'send_email'
MAKE_CALL = 'make_call'
CHANGE_STATUS = 'change_status'

ACTIVITY_ACTIONS = (
    CREATE, UPDATE, DELETE, VIEW, LOGIN, LOGOUT, EXPORT, IMPORT, SYNC,
    APPROVE, REJECT, SEND_EMAIL, MAKE_CALL, CHANGE_STATUS,
)

RESOURCE_AUTH = 'auth'
RESOURCE_CALLS = 'calls'
RESOURCE_WEBHOOKS = 'webhooks'

# list views of these resources are audited; others only on single-record reads
VIEW_AUDITED_LISTS = ('customers', 'employees', 'sales')
