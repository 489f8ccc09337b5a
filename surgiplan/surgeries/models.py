"""Surgery readiness models.

- ``Surgery`` anchors the task chain, the patient requirement record and
  the equipment reservations.
- ``Task`` rows are created in one batch per surgery and never deleted;
  cancellation of the surgery marks open tasks CANCELLED.
- ``patient_id`` is an integer reference, as on ``Booking``.
"""

from django.conf import settings
from django.db import models

from surgiplan.appointments.catalog import EVENT_TYPE_CHOICES

from .task_templates import TASK_PRIORITY_CHOICES, TASK_TYPE_CHOICES


class Surgery(models.Model):
	STATUS_SCHEDULED = 'SCHEDULED'
	STATUS_IN_PREPARATION = 'IN_PREPARATION'
	STATUS_READY = 'READY'
	STATUS_BLOCKED = 'BLOCKED'
	STATUS_COMPLETED = 'COMPLETED'
	STATUS_CANCELLED = 'CANCELLED'

	STATUS_CHOICES = (
		(STATUS_SCHEDULED, STATUS_SCHEDULED),
		(STATUS_IN_PREPARATION, STATUS_IN_PREPARATION),
		(STATUS_READY, STATUS_READY),
		(STATUS_BLOCKED, STATUS_BLOCKED),
		(STATUS_COMPLETED, STATUS_COMPLETED),
		(STATUS_CANCELLED, STATUS_CANCELLED),
	)

	TERMINAL_STATUSES = (STATUS_COMPLETED, STATUS_CANCELLED)

	CONSULTATION_NOT_SCHEDULED = 'NOT_SCHEDULED'
	CONSULTATION_SCHEDULED = 'SCHEDULED'
	CONSULTATION_COMPLETED = 'COMPLETED'
	CONSULTATION_EXPIRED = 'EXPIRED'

	CONSULTATION_CHOICES = (
		(CONSULTATION_NOT_SCHEDULED, CONSULTATION_NOT_SCHEDULED),
		(CONSULTATION_SCHEDULED, CONSULTATION_SCHEDULED),
		(CONSULTATION_COMPLETED, CONSULTATION_COMPLETED),
		(CONSULTATION_EXPIRED, CONSULTATION_EXPIRED),
	)

	patient_id = models.IntegerField()
	surgeon = models.ForeignKey(
		settings.AUTH_USER_MODEL,
		on_delete=models.PROTECT,
		related_name='surgeries',
	)
	anesthesiologist = models.ForeignKey(
		settings.AUTH_USER_MODEL,
		null=True,
		blank=True,
		on_delete=models.PROTECT,
		related_name='anesthesia_surgeries',
	)
	location = models.ForeignKey(
		'core.Location',
		on_delete=models.PROTECT,
		related_name='surgeries',
	)
	booking = models.ForeignKey(
		'appointments.Booking',
		null=True,
		blank=True,
		on_delete=models.SET_NULL,
		related_name='surgeries',
	)
	event_type_code = models.CharField(max_length=32, choices=EVENT_TYPE_CHOICES)
	surgery_date = models.DateTimeField()
	status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_SCHEDULED)
	consultation_status = models.CharField(
		max_length=20,
		choices=CONSULTATION_CHOICES,
		default=CONSULTATION_NOT_SCHEDULED,
	)
	consultation_scheduled_at = models.DateTimeField(null=True, blank=True)
	consultation_completed_at = models.DateTimeField(null=True, blank=True)
	consultation_completed_by = models.ForeignKey(
		settings.AUTH_USER_MODEL,
		null=True,
		blank=True,
		on_delete=models.SET_NULL,
		related_name='+',
	)
	blocked_at = models.DateTimeField(null=True, blank=True)
	cancellation_reason = models.TextField(blank=True, default='')
	created_at = models.DateTimeField(auto_now_add=True)
	updated_at = models.DateTimeField(auto_now=True)

	class Meta:
		ordering = ['surgery_date', 'id']
		indexes = [
			models.Index(fields=['status', 'surgery_date'], name='surgery_status_date_idx'),
		]

	def __str__(self) -> str:
		return f"Surgery #{self.id} ({self.event_type_code}, {self.status})"

	@property
	def is_terminal(self) -> bool:
		return self.status in self.TERMINAL_STATUSES


class Task(models.Model):
	STATUS_PENDING = 'PENDING'
	STATUS_IN_PROGRESS = 'IN_PROGRESS'
	STATUS_COMPLETED = 'COMPLETED'
	STATUS_BLOCKED = 'BLOCKED'
	STATUS_OVERDUE = 'OVERDUE'
	STATUS_CANCELLED = 'CANCELLED'

	STATUS_CHOICES = (
		(STATUS_PENDING, STATUS_PENDING),
		(STATUS_IN_PROGRESS, STATUS_IN_PROGRESS),
		(STATUS_COMPLETED, STATUS_COMPLETED),
		(STATUS_BLOCKED, STATUS_BLOCKED),
		(STATUS_OVERDUE, STATUS_OVERDUE),
		(STATUS_CANCELLED, STATUS_CANCELLED),
	)

	CLOSED_STATUSES = (STATUS_COMPLETED, STATUS_CANCELLED)

	surgery = models.ForeignKey(Surgery, on_delete=models.CASCADE, related_name='tasks')
	type = models.CharField(max_length=32, choices=TASK_TYPE_CHOICES)
	title = models.CharField(max_length=255)
	description = models.TextField(blank=True, default='')
	due_date = models.DateTimeField()
	status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_PENDING)
	priority = models.CharField(max_length=10, choices=TASK_PRIORITY_CHOICES)
	# task types (not ids) that must be COMPLETED on the same surgery first
	dependencies = models.JSONField(default=list, blank=True)
	notifications = models.JSONField(default=list, blank=True)
	required_roles = models.JSONField(default=list, blank=True)
	completed_at = models.DateTimeField(null=True, blank=True)
	completed_by = models.ForeignKey(
		settings.AUTH_USER_MODEL,
		null=True,
		blank=True,
		on_delete=models.SET_NULL,
		related_name='completed_tasks',
	)
	notes = models.TextField(blank=True, default='')
	created_at = models.DateTimeField(auto_now_add=True)
	updated_at = models.DateTimeField(auto_now=True)

	class Meta:
		ordering = ['due_date', 'id']
		constraints = [
			models.UniqueConstraint(fields=['surgery', 'type'], name='task_unique_type_per_surgery'),
		]

	def __str__(self) -> str:
		return f"Task #{self.id} {self.type} ({self.status})"


class PatientRequirement(models.Model):
	"""Pre-operative patient requirements of one surgery.

	bloodwork / ecg: PENDING -> SUBMITTED -> VERIFIED (or REJECTED), and
	PENDING -> EXPIRED once the due date passes.
	"""
	SUBMISSION_PENDING = 'PENDING'
	SUBMISSION_SUBMITTED = 'SUBMITTED'
	SUBMISSION_VERIFIED = 'VERIFIED'
	SUBMISSION_REJECTED = 'REJECTED'
	SUBMISSION_EXPIRED = 'EXPIRED'

	SUBMISSION_CHOICES = (
		(SUBMISSION_PENDING, SUBMISSION_PENDING),
		(SUBMISSION_SUBMITTED, SUBMISSION_SUBMITTED),
		(SUBMISSION_VERIFIED, SUBMISSION_VERIFIED),
		(SUBMISSION_REJECTED, SUBMISSION_REJECTED),
		(SUBMISSION_EXPIRED, SUBMISSION_EXPIRED),
	)

	MEDICATIONS_NONE = 'NONE'
	MEDICATIONS_CURRENT = 'CURRENT'
	MEDICATIONS_DISCONTINUED = 'DISCONTINUED'
	MEDICATIONS_REQUIRES_ADJUSTMENT = 'REQUIRES_ADJUSTMENT'

	MEDICATIONS_CHOICES = (
		(MEDICATIONS_NONE, MEDICATIONS_NONE),
		(MEDICATIONS_CURRENT, MEDICATIONS_CURRENT),
		(MEDICATIONS_DISCONTINUED, MEDICATIONS_DISCONTINUED),
		(MEDICATIONS_REQUIRES_ADJUSTMENT, MEDICATIONS_REQUIRES_ADJUSTMENT),
	)

	INSTRUCTIONS_NOT_SENT = 'NOT_SENT'
	INSTRUCTIONS_SENT = 'SENT'
	INSTRUCTIONS_ACKNOWLEDGED = 'ACKNOWLEDGED'
	INSTRUCTIONS_COMPLETED = 'COMPLETED'

	INSTRUCTIONS_CHOICES = (
		(INSTRUCTIONS_NOT_SENT, INSTRUCTIONS_NOT_SENT),
		(INSTRUCTIONS_SENT, INSTRUCTIONS_SENT),
		(INSTRUCTIONS_ACKNOWLEDGED, INSTRUCTIONS_ACKNOWLEDGED),
		(INSTRUCTIONS_COMPLETED, INSTRUCTIONS_COMPLETED),
	)

	SUBMISSION_ITEMS = ('bloodwork', 'ecg')

	surgery = models.OneToOneField(Surgery, on_delete=models.CASCADE, related_name='requirements')

	bloodwork_status = models.CharField(max_length=20, choices=SUBMISSION_CHOICES, default=SUBMISSION_PENDING)
	bloodwork_due_date = models.DateTimeField(null=True, blank=True)
	bloodwork_submitted_at = models.DateTimeField(null=True, blank=True)
	bloodwork_verified_at = models.DateTimeField(null=True, blank=True)
	bloodwork_verified_by = models.ForeignKey(
		settings.AUTH_USER_MODEL, null=True, blank=True, on_delete=models.SET_NULL, related_name='+',
	)
	bloodwork_results = models.JSONField(null=True, blank=True)
	bloodwork_notes = models.TextField(blank=True, default='')

	ecg_status = models.CharField(max_length=20, choices=SUBMISSION_CHOICES, default=SUBMISSION_PENDING)
	ecg_due_date = models.DateTimeField(null=True, blank=True)
	ecg_submitted_at = models.DateTimeField(null=True, blank=True)
	ecg_verified_at = models.DateTimeField(null=True, blank=True)
	ecg_verified_by = models.ForeignKey(
		settings.AUTH_USER_MODEL, null=True, blank=True, on_delete=models.SET_NULL, related_name='+',
	)
	ecg_results = models.JSONField(null=True, blank=True)
	ecg_notes = models.TextField(blank=True, default='')

	medications_status = models.CharField(max_length=24, choices=MEDICATIONS_CHOICES, default=MEDICATIONS_NONE)
	current_medications = models.JSONField(default=list, blank=True)
	medications_last_reviewed_at = models.DateTimeField(null=True, blank=True)

	instructions_status = models.CharField(
		max_length=20,
		choices=INSTRUCTIONS_CHOICES,
		default=INSTRUCTIONS_NOT_SENT,
	)
	instructions_sent_at = models.DateTimeField(null=True, blank=True)
	instructions_acknowledged_at = models.DateTimeField(null=True, blank=True)

	created_at = models.DateTimeField(auto_now_add=True)
	updated_at = models.DateTimeField(auto_now=True)

	def __str__(self) -> str:
		return f"PatientRequirement surgery_id={self.surgery_id}"


class Equipment(models.Model):
	name = models.CharField(max_length=255)
	location = models.ForeignKey('core.Location', on_delete=models.PROTECT, related_name='equipment')
	active = models.BooleanField(default=True)
	created_at = models.DateTimeField(auto_now_add=True)
	updated_at = models.DateTimeField(auto_now=True)

	class Meta:
		ordering = ['location_id', 'name', 'id']

	def __str__(self) -> str:
		return self.name


class EquipmentMaintenance(models.Model):
	"""Maintenance window; the equipment is unusable on [start_date, end_date] until resolved."""
	equipment = models.ForeignKey(Equipment, on_delete=models.CASCADE, related_name='maintenance')
	start_date = models.DateField()
	end_date = models.DateField()
	description = models.TextField(blank=True, default='')
	resolved = models.BooleanField(default=False)
	created_at = models.DateTimeField(auto_now_add=True)

	class Meta:
		ordering = ['start_date', 'id']

	def __str__(self) -> str:
		return f"Maintenance {self.equipment_id} {self.start_date}..{self.end_date}"


class EquipmentReservation(models.Model):
	STATUS_RESERVED = 'reserved'
	STATUS_PREPARING = 'preparing'
	STATUS_VERIFIED = 'verified'
	STATUS_RELEASED = 'released'

	STATUS_CHOICES = (
		(STATUS_RESERVED, STATUS_RESERVED),
		(STATUS_PREPARING, STATUS_PREPARING),
		(STATUS_VERIFIED, STATUS_VERIFIED),
		(STATUS_RELEASED, STATUS_RELEASED),
	)

	surgery = models.ForeignKey(Surgery, on_delete=models.CASCADE, related_name='equipment_reservations')
	equipment = models.ForeignKey(Equipment, on_delete=models.PROTECT, related_name='reservations')
	date = models.DateField()
	status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_RESERVED)
	created_at = models.DateTimeField(auto_now_add=True)
	updated_at = models.DateTimeField(auto_now=True)

	class Meta:
		ordering = ['date', 'id']
		indexes = [
			models.Index(fields=['equipment', 'date'], name='equipment_reservation_day_idx'),
		]
		constraints = [
			# one active reservation per item and day
			models.UniqueConstraint(
				fields=['equipment', 'date'],
				condition=~models.Q(status='released'),
				name='equipment_reservation_unique_active',
			),
		]

	def __str__(self) -> str:
		return f"Reservation {self.equipment_id} for surgery {self.surgery_id} on {self.date} ({self.status})"
