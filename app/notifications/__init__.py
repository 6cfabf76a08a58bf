"""
Notifications app: multi-channel push delivery with per-recipient tracking.

This app provides:
- Notification and NotificationRecipient models (delivery/read state)
- NotificationOrchestrator for creating and dispatching notifications
- Dispatcher with Expo and Web Push transports
- FeedCache and DedupGuard on the Django cache
- Celery tasks for dispatch, the deferred queue and counter reconciliation
- Redis pub/sub event consumer (manage.py consume_events)
- REST API for feeds, read state and delivery status

Usage:
    from notifications.container import get_container

    created = get_container().orchestrator.create_notification(
        {"title": "Hi", "message": "Hello", "recipients": ["alice"]}
    )
"""
