"""
URL configuration for notifications API.

Routes:
    /activity/            - Activity feed (GET)
    /activity/{id}/       - Activity entry (GET)
    /                     - List notifications (GET)
    /{id}/                - Notification detail (GET)
    /unread-count/        - Get unread count (GET)
    /{id}/read/           - Mark single as read (POST)
    /read-all/            - Mark all as read (POST)
"""

from rest_framework.routers import DefaultRouter

from notifications.views import ActivityViewSet, NotificationViewSet

router = DefaultRouter()
router.register(r"activity", ActivityViewSet, basename="activity")
router.register(r"", NotificationViewSet, basename="notification")

app_name = "notifications"
urlpatterns = router.urls
