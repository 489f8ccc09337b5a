from django.urls import path

from .views import (
	AvailabilityCheckView,
	AvailableSlotsView,
	BookingCancelView,
	BookingCreateView,
	BookingDeleteView,
	BookingRescheduleView,
)

app_name = 'appointments'

urlpatterns = [
	path('availability/check/', AvailabilityCheckView.as_view(), name='availability_check'),
	path('availability/slots/', AvailableSlotsView.as_view(), name='availability_slots'),
	path('bookings/', BookingCreateView.as_view(), name='booking_create'),
	path('bookings/<int:pk>/', BookingDeleteView.as_view(), name='booking_delete'),
	path('bookings/<int:pk>/cancel/', BookingCancelView.as_view(), name='booking_cancel'),
	path('bookings/<int:pk>/reschedule/', BookingRescheduleView.as_view(), name='booking_reschedule'),
]
