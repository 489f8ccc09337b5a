from django.urls import path

from .views import DeliveryReportView

app_name = 'notifications'

urlpatterns = [
	path('notifications/<int:pk>/delivery/', DeliveryReportView.as_view(), name='delivery_report'),
]
