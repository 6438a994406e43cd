"""
Notifications app: in-app inbox and activity feed.

The enrollment subsystem never calls these services inline; its outbound
event worker delivers enrollment events here, so a failure in this app
cannot affect enrollment state.

Usage:
    from notifications.services import ActivityService, NotificationService
"""
