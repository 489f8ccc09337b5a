"""Core App URLs.

Prefix: /api/
Routes:
    GET  /api/health/        - Health check (no auth)
    POST /api/auth/login/    - JWT token obtain
    POST /api/auth/refresh/  - JWT token refresh
"""

from django.urls import path

from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView

from surgiplan.core.views import health

app_name = 'core'

urlpatterns = [
	path('health/', health, name='health'),

	# JWT Authentication
	path('auth/login/', TokenObtainPairView.as_view(), name='login'),
	path('auth/refresh/', TokenRefreshView.as_view(), name='refresh'),
]
