"""Service wiring for the app factory.

Services are built once per app and kept in ``app.extensions['sleepdesk']``;
views reach them through ``current_services()``.
"""
from __future__ import annotations
import atexit
from dataclasses import dataclass

from flask import Flask, current_app

from sleepdesk.config.settings import AUDIT_SINK_INLINE, AUDIT_SINK_BACKGROUND
from sleepdesk.services.activity import (
    ActivityLogQuery, ActivityLogRecorder, BackgroundAuditSink, InlineAuditSink, store_writer,
)
from sleepdesk.services.data_access import AuditedDataAccess
from sleepdesk.services.policy import PermissionResolver, load_fallback_policy
from sleepdesk.services.roles import RoleAdmin
from sleepdesk.services.users import UserDirectory
from sleepdesk.services.webhooks import WebhookProcessor, WebhookTracker
from sleepdesk.store import EntityStore

EXTENSION_KEY = 'sleepdesk'


@dataclass
class Services:
    store: EntityStore
    resolver: PermissionResolver
    recorder: ActivityLogRecorder
    activity: ActivityLogQuery
    data: AuditedDataAccess
    roles: RoleAdmin
    users: UserDirectory
    webhooks: WebhookTracker
    processor: WebhookProcessor
    sink: object


def build_sink(kind: str, store, maxsize: int):
    writer = store_writer(store)
    if kind == AUDIT_SINK_INLINE:
        return InlineAuditSink(writer)
    if kind == AUDIT_SINK_BACKGROUND:
        return BackgroundAuditSink(writer, maxsize=maxsize)
    raise ValueError(f'AUDIT_SINK must be {AUDIT_SINK_INLINE} or {AUDIT_SINK_BACKGROUND}')


def init_services(app: Flask) -> Services:
    store = EntityStore()
    fallback = load_fallback_policy(app.config.get('ROLE_POLICY_FILE') or None)
    sink = build_sink(app.config['AUDIT_SINK'], store, app.config['AUDIT_QUEUE_SIZE'])
    if isinstance(sink, BackgroundAuditSink):
        atexit.register(sink.close)
    recorder = ActivityLogRecorder(sink)
    tracker = WebhookTracker(store, max_attempts=app.config['WEBHOOK_MAX_ATTEMPTS'])
    services = Services(
        store=store,
        resolver=PermissionResolver(store, fallback),
        recorder=recorder,
        activity=ActivityLogQuery(store),
        data=AuditedDataAccess(store, recorder),
        roles=RoleAdmin(store),
        users=UserDirectory(store),
        webhooks=tracker,
        processor=WebhookProcessor(tracker),
        sink=sink,
    )
    app.extensions[EXTENSION_KEY] = services
    app.logger.info('Services ready (audit sink: %s)', app.config['AUDIT_SINK'])
    return services


def current_services() -> Services:
    return current_app.extensions[EXTENSION_KEY]


__all__ = ['Services', 'init_services', 'current_services', 'build_sink']
