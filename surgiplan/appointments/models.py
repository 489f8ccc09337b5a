"""Scheduling models: weekly availability templates, bookings and locks.

- Surgeons and anesthesiologists are ``core.User`` rows (by role).
- ``patient_id`` is an integer reference; patient records are owned
  outside this service.
- Bookings are never hard-deleted in normal operation; cancellation is a
  status transition and cancelled bookings never take part in conflict
  checks.
"""

from django.conf import settings
from django.db import models
from django.db.models import F, Q

from .catalog import EVENT_TYPE_CHOICES


class AvailabilityTemplate(models.Model):
	"""Recurring weekly open-hour window of a resource at a location.

	``start_time``/``end_time`` are wall-clock times in the location's time
	zone. ``day_of_week`` follows Python's convention: 0=Monday ... 6=Sunday.
	"""
	resource = models.ForeignKey(
		settings.AUTH_USER_MODEL,
		on_delete=models.CASCADE,
		related_name='availability_templates',
	)
	location = models.ForeignKey(
		'core.Location',
		on_delete=models.CASCADE,
		related_name='availability_templates',
	)
	day_of_week = models.IntegerField()
	start_time = models.TimeField()
	end_time = models.TimeField()
	active = models.BooleanField(default=True)
	created_at = models.DateTimeField(auto_now_add=True)
	updated_at = models.DateTimeField(auto_now=True)

	class Meta:
		ordering = ["resource_id", "location_id", "day_of_week", "start_time", "id"]
		constraints = [
			models.CheckConstraint(
				condition=Q(start_time__lt=F('end_time')),
				name='availability_template_start_before_end',
			),
			models.CheckConstraint(
				condition=Q(day_of_week__gte=0, day_of_week__lte=6),
				name='availability_template_valid_weekday',
			),
		]

	def __str__(self) -> str:
		return (
			f"AvailabilityTemplate resource_id={self.resource_id} location_id={self.location_id} "
			f"day={self.day_of_week} {self.start_time:%H:%M}-{self.end_time:%H:%M}"
		)


class Booking(models.Model):
	"""A booked interval for a surgeon, optionally co-scheduling an anesthesiologist.

	``start_time``/``end_time`` are UTC instants; the interval is half-open.
	``external_event_ref`` / ``secondary_external_event_ref`` are the ids of
	the mirrored calendar events on the surgeon's and the anesthesiologist's
	calendars.
	"""
	STATUS_SCHEDULED = 'scheduled'
	STATUS_CONFIRMED = 'confirmed'
	STATUS_COMPLETED = 'completed'
	STATUS_CANCELLED = 'cancelled'

	STATUS_CHOICES = (
		(STATUS_SCHEDULED, STATUS_SCHEDULED),
		(STATUS_CONFIRMED, STATUS_CONFIRMED),
		(STATUS_COMPLETED, STATUS_COMPLETED),
		(STATUS_CANCELLED, STATUS_CANCELLED),
	)

	resource = models.ForeignKey(
		settings.AUTH_USER_MODEL,
		on_delete=models.PROTECT,
		related_name='bookings',
	)
	secondary_resource = models.ForeignKey(
		settings.AUTH_USER_MODEL,
		null=True,
		blank=True,
		on_delete=models.PROTECT,
		related_name='secondary_bookings',
	)
	location = models.ForeignKey(
		'core.Location',
		on_delete=models.PROTECT,
		related_name='bookings',
	)
	patient_id = models.IntegerField(null=True, blank=True)
	event_type_code = models.CharField(max_length=32, choices=EVENT_TYPE_CHOICES)
	start_time = models.DateTimeField()
	end_time = models.DateTimeField()
	status = models.CharField(
		max_length=20,
		choices=STATUS_CHOICES,
		default=STATUS_SCHEDULED,
	)
	notes = models.TextField(blank=True, default='')
	external_event_ref = models.CharField(max_length=1024, blank=True, default='')
	secondary_external_event_ref = models.CharField(max_length=1024, blank=True, default='')
	created_at = models.DateTimeField(auto_now_add=True)
	updated_at = models.DateTimeField(auto_now=True)

	class Meta:
		ordering = ['-start_time', '-id']
		constraints = [
			models.CheckConstraint(
				condition=Q(end_time__gt=F('start_time')),
				name='booking_end_after_start',
			),
		]
		indexes = [
			models.Index(fields=['resource', 'location', 'start_time'], name='booking_resource_start_idx'),
			models.Index(fields=['secondary_resource', 'location', 'start_time'], name='booking_secondary_start_idx'),
		]

	def __str__(self) -> str:
		return f"Booking #{self.id} ({self.event_type_code}, {self.status})"

	@property
	def duration_minutes(self) -> int:
		return int((self.end_time - self.start_time).total_seconds() // 60)


class ScheduleLock(models.Model):
	"""Row locked with SELECT ... FOR UPDATE while a resource's day is being booked.

	One row per (resource, location, local day); holding it across the
	availability check and the insert serializes concurrent bookings that
	could overlap.
	"""
	resource = models.ForeignKey(
		settings.AUTH_USER_MODEL,
		on_delete=models.CASCADE,
		related_name='+',
	)
	location = models.ForeignKey(
		'core.Location',
		on_delete=models.CASCADE,
		related_name='+',
	)
	day = models.DateField()

	class Meta:
		constraints = [
			models.UniqueConstraint(fields=['resource', 'location', 'day'], name='schedule_lock_unique_day'),
		]

	def __str__(self) -> str:
		return f"ScheduleLock resource_id={self.resource_id} location_id={self.location_id} {self.day}"
