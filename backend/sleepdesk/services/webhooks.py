"""Inbound webhook intake, status tracking and retry.

Status flow (validated by ``WEBHOOK_FSM``)::

    pending  -> processed | failed
    failed   -> retrying            (only while attempts < max attempts)
    retrying -> processed | failed

``update_status`` counts one processing attempt; ``retry`` only re-arms a failed
record. Registration errors propagate so the external sender sees a 5xx and
redelivers.
"""
from __future__ import annotations
import base64
import hashlib
import hmac
import logging
from datetime import timedelta
from typing import Any, Callable, Dict, List, Optional

from sleepdesk.errors import NotFound, RetryLimitExceeded, ValidationError
from sleepdesk.models.webhook import Webhook
from sleepdesk.store import WEBHOOKS, WEBHOOK_EVENTS
from sleepdesk.utils.fsm import TransitionValidator
from sleepdesk.utils.ids import generate_id
from sleepdesk.utils.timeutil import utcnow, to_iso, parse_iso

logger = logging.getLogger(__name__)

PENDING = Webhook.STATUS_PENDING
PROCESSED = Webhook.STATUS_PROCESSED
FAILED = Webhook.STATUS_FAILED
RETRYING = Webhook.STATUS_RETRYING

WEBHOOK_FSM = TransitionValidator({
    PENDING: {PROCESSED, FAILED},
    FAILED: {RETRYING},
    RETRYING: {PROCESSED, FAILED},
    PROCESSED: set(),
})

DEFAULT_MAX_ATTEMPTS = 3

SHOPIFY_HEADERS = (
    'x-shopify-topic',
    'x-shopify-shop-domain',
    'x-shopify-webhook-id',
    'x-shopify-hmac-sha256',
)

DEFAULT_RETRY_POLICY = {'max_attempts': DEFAULT_MAX_ATTEMPTS, 'backoff_multiplier': 2, 'initial_delay': 1000}

DEFAULT_WEBHOOK_EVENTS: List[Dict[str, Any]] = [
    {'id': 'whe-001', 'event': 'orders/create', 'description': 'Fires when a new order is created in Shopify'},
    {'id': 'whe-002', 'event': 'orders/updated', 'description': 'Fires when an existing order is updated'},
    {'id': 'whe-003', 'event': 'customers/create', 'description': 'Fires when a new customer is created'},
    {'id': 'whe-004', 'event': 'customers/updated', 'description': 'Fires when a customer is updated'},
    {'id': 'whe-005', 'event': 'discounts/create', 'description': 'Fires when a new discount is created'},
]

TIMEFRAMES = {
    'day': timedelta(days=1),
    'week': timedelta(days=7),
    'month': timedelta(days=30),
}

EDITABLE_EVENT_FIELDS = ('enabled', 'endpoint', 'description', 'retry_policy')


def default_event_records() -> List[Dict[str, Any]]:
    return [
        {
            'id': e['id'],
            'source': 'shopify',
            'event': e['event'],
            'enabled': True,
            'endpoint': f"/webhooks/shopify/{e['event']}",
            'description': e['description'],
            'retry_policy': dict(DEFAULT_RETRY_POLICY),
        }
        for e in DEFAULT_WEBHOOK_EVENTS
    ]


def shopify_headers(headers) -> Dict[str, str]:
    """Project the Shopify delivery headers kept with each webhook (missing ones as '')."""
    return {name: headers.get(name, '') or '' for name in SHOPIFY_HEADERS}


def verify_shopify_hmac(raw_body: bytes, signature: Optional[str], secret: str) -> bool:
    """Check X-Shopify-Hmac-Sha256 (base64 HMAC-SHA256 of the raw body)."""
    if not signature:
        return False
    digest = hmac.new(secret.encode('utf-8'), raw_body, hashlib.sha256).digest()
    expected = base64.b64encode(digest).decode('ascii')
    return hmac.compare_digest(expected, signature.strip())


def normalize_error(error: Any, now=None) -> Dict[str, Any]:
    if isinstance(error, BaseException):
        code = getattr(error, 'code', None)
        message = str(error)
    elif isinstance(error, dict):
        code = error.get('code')
        message = error.get('message')
    else:
        code = None
        message = str(error) if error else None
    return {
        'code': code or 'UNKNOWN_ERROR',
        'message': message or 'Unknown error occurred',
        'timestamp': to_iso(now or utcnow()),
    }


class WebhookTracker:
    def __init__(self, store, max_attempts: int = DEFAULT_MAX_ATTEMPTS, clock: Callable = utcnow):
        self.store = store
        self.max_attempts = max_attempts
        self.clock = clock

    # -- intake --
    def register(self, source: str, event: str, headers: Optional[Dict[str, Any]] = None, payload: Any = None) -> Dict[str, Any]:
        if source not in Webhook.SOURCES:
            raise ValidationError(f'source must be one of {", ".join(Webhook.SOURCES)}')
        if not event:
            raise ValidationError('event required')
        now = self.clock()
        record = {
            'id': generate_id('wh', now),
            'source': source,
            'event': event,
            'status': PENDING,
            'received_at': to_iso(now),
            'processed_at': None,
            'attempts': 0,
            'headers': dict(headers or {}),
            'payload': payload,
            'response': None,
            'error': None,
        }
        created = self.store.insert(WEBHOOKS, record)
        logger.info('Webhook %s received (%s %s)', created['id'], source, event)
        return created

    def get(self, webhook_id: str) -> Optional[Dict[str, Any]]:
        return self.store.get(WEBHOOKS, webhook_id)

    def _require(self, webhook_id: str) -> Dict[str, Any]:
        webhook = self.get(webhook_id)
        if webhook is None:
            raise NotFound(WEBHOOKS, webhook_id)
        return webhook

    # -- status --
    def update_status(self, webhook_id: str, status: str, response: Any = None, error: Any = None) -> Dict[str, Any]:
        """Record one processing attempt: bumps attempts and stamps processed_at.

        Only processed or failed are accepted here; retrying is entered through
        retry so the attempt cap is always checked.
        """
        webhook = self._require(webhook_id)
        if status not in (PROCESSED, FAILED):
            raise ValidationError('status must be processed or failed')
        WEBHOOK_FSM.assert_can_transition(webhook['status'], status)
        now = self.clock()
        updated = dict(webhook)
        updated['status'] = status
        updated['processed_at'] = to_iso(now)
        updated['attempts'] = int(webhook.get('attempts') or 0) + 1
        if response is not None:
            updated['response'] = response
        if error is not None:
            updated['error'] = normalize_error(error, now)
        saved = self.store.replace(WEBHOOKS, webhook_id, updated)
        logger.info('Webhook %s %s -> %s (attempt %s)', webhook_id, webhook['status'], status, saved['attempts'])
        return saved

    def max_attempts_for(self, webhook: Dict[str, Any]) -> int:
        configs = self.store.list(WEBHOOK_EVENTS, source=webhook['source'], event=webhook['event'])
        if configs:
            policy = configs[0].get('retry_policy') or {}
            cap = policy.get('max_attempts')
            if isinstance(cap, int) and cap > 0:
                return cap
        return self.max_attempts

    def can_retry(self, webhook: Dict[str, Any]) -> bool:
        return webhook['status'] == FAILED and int(webhook.get('attempts') or 0) < self.max_attempts_for(webhook)

    def retry(self, webhook_id: str) -> Dict[str, Any]:
        webhook = self._require(webhook_id)
        WEBHOOK_FSM.assert_can_transition(webhook['status'], RETRYING)
        cap = self.max_attempts_for(webhook)
        attempts = int(webhook.get('attempts') or 0)
        if attempts >= cap:
            raise RetryLimitExceeded(webhook_id, attempts, cap)
        updated = dict(webhook, status=RETRYING)
        saved = self.store.replace(WEBHOOKS, webhook_id, updated)
        logger.info('Webhook %s queued for retry (attempts %s/%s)', webhook_id, attempts, cap)
        return saved

    # -- queries --
    def list(self, source=None, event=None, status=None, start_date=None, end_date=None,
             limit: Optional[int] = None) -> List[Dict[str, Any]]:
        equals = {k: v for k, v in (('source', source), ('event', event), ('status', status)) if v}
        rows = self.store.list(WEBHOOKS, **equals)
        rows.sort(key=lambda r: (r.get('received_at') or '', r.get('id') or ''), reverse=True)
        start = parse_iso(start_date)
        end = parse_iso(end_date)
        if start or end:
            rows = [
                r for r in rows
                if (not start or parse_iso(r['received_at']) >= start)
                and (not end or parse_iso(r['received_at']) <= end)
            ]
        return rows[:limit] if limit else rows

    def pending(self) -> List[Dict[str, Any]]:
        return self.list(status=PENDING)

    def failed(self) -> List[Dict[str, Any]]:
        return self.list(status=FAILED)

    def stats(self, timeframe: str = 'day') -> Dict[str, Any]:
        if timeframe not in TIMEFRAMES:
            raise ValidationError(f'timeframe must be one of {", ".join(TIMEFRAMES)}')
        since = self.clock() - TIMEFRAMES[timeframe]
        out: Dict[str, Any] = {
            'total': 0, PROCESSED: 0, FAILED: 0, PENDING: 0, RETRYING: 0,
            'by_event': {}, 'by_source': {},
        }
        for w in self.list(start_date=since):
            out['total'] += 1
            if w['status'] in (PROCESSED, FAILED, PENDING, RETRYING):
                out[w['status']] += 1
            out['by_event'][w['event']] = out['by_event'].get(w['event'], 0) + 1
            out['by_source'][w['source']] = out['by_source'].get(w['source'], 0) + 1
        return out

    # -- event configuration --
    def list_events(self, enabled: Optional[bool] = None) -> List[Dict[str, Any]]:
        if enabled is None:
            return self.store.list(WEBHOOK_EVENTS)
        return self.store.list(WEBHOOK_EVENTS, enabled=enabled)

    def find_event(self, source: str, event: str) -> Optional[Dict[str, Any]]:
        rows = self.store.list(WEBHOOK_EVENTS, source=source, event=event)
        return rows[0] if rows else None

    def update_event(self, event_id: str, updates: Dict[str, Any]) -> Dict[str, Any]:
        current = self.store.get(WEBHOOK_EVENTS, event_id)
        if current is None:
            raise NotFound(WEBHOOK_EVENTS, event_id)
        unknown = set(updates) - set(EDITABLE_EVENT_FIELDS)
        if unknown:
            raise ValidationError(f'Cannot update fields: {", ".join(sorted(unknown))}')
        if 'enabled' in updates and not isinstance(updates['enabled'], bool):
            raise ValidationError('enabled must be boolean')
        if 'retry_policy' in updates:
            policy = updates['retry_policy']
            if not isinstance(policy, dict) or not isinstance(policy.get('max_attempts'), int) or policy['max_attempts'] < 1:
                raise ValidationError('retry_policy.max_attempts must be a positive integer')
        merged = dict(current, **updates)
        merged['updated_at'] = to_iso(self.clock())
        return self.store.replace(WEBHOOK_EVENTS, event_id, merged)

    def toggle_event(self, event_id: str, enabled: bool) -> Dict[str, Any]:
        return self.update_event(event_id, {'enabled': enabled})

    def seed_events(self, records: Optional[List[Dict[str, Any]]] = None) -> int:
        created = 0
        for rec in records if records is not None else default_event_records():
            if self.store.get(WEBHOOK_EVENTS, rec['id']) is None:
                self.store.insert(WEBHOOK_EVENTS, rec)
                created += 1
        return created


Handler = Callable[[Dict[str, Any]], Any]


class WebhookProcessor:
    """Runs registered per-event handlers and records the outcome on the tracker.

    A handler receives the stored webhook and returns a JSON-able response; any
    exception marks the attempt failed. Events without a handler are acknowledged.
    """

    def __init__(self, tracker: WebhookTracker):
        self.tracker = tracker
        self.handlers: Dict[str, Handler] = {}

    def register_handler(self, event: str, handler: Handler):
        self.handlers[event] = handler

    def handler(self, event: str):
        def outer(fn):
            self.register_handler(event, fn)
            return fn
        return outer

    def process(self, webhook_id: str) -> Dict[str, Any]:
        webhook = self.tracker._require(webhook_id)
        fn = self.handlers.get(webhook['event'])
        if fn is None:
            return self.tracker.update_status(webhook_id, PROCESSED, response={'handled': False})
        try:
            result = fn(webhook)
        except Exception as e:
            logger.warning('Webhook %s handler for %s failed: %s', webhook_id, webhook['event'], e)
            return self.tracker.update_status(webhook_id, FAILED, error=e)
        return self.tracker.update_status(webhook_id, PROCESSED, response=result if result is not None else {'handled': True})

    def reprocess(self, webhook_id: str) -> Dict[str, Any]:
        self.tracker.retry(webhook_id)
        return self.process(webhook_id)


__all__ = [
    'WEBHOOK_FSM', 'WebhookTracker', 'WebhookProcessor', 'verify_shopify_hmac', 'shopify_headers',
    'normalize_error', 'default_event_records', 'DEFAULT_WEBHOOK_EVENTS',
]
