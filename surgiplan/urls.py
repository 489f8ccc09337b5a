"""surgiplan URL Configuration.

API routes:
    /api/health/        - Health check (core)
    /api/availability/  - Availability checks and free slots (appointments)
    /api/bookings/      - Booking create/cancel/reschedule (appointments)
    /api/surgeries/     - Readiness, status, consultation, task timeline (surgeries)
    /api/tasks/         - Task status updates (surgeries)
    /api/notifications/ - Delivery reports (notifications)
"""

from django.urls import include, path


urlpatterns = [
    path("api/", include("surgiplan.core.urls")),
    path("api/", include("surgiplan.appointments.urls")),
    path("api/", include("surgiplan.surgeries.urls")),
    path("api/", include("surgiplan.notifications.urls")),
]
