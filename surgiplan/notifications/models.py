from django.conf import settings
from django.db import models


class Notification(models.Model):
	"""Outbox row for one notification to one recipient (user or role).

	``dedupe_key`` is unique: emitting the same logical notification twice
	(e.g. a sweep running twice in a minute) stores it once.
	"""
	CHANNEL_EMAIL = 'email'
	CHANNEL_SMS = 'sms'
	CHANNEL_DASHBOARD = 'dashboard'

	CHANNEL_CHOICES = (
		(CHANNEL_EMAIL, CHANNEL_EMAIL),
		(CHANNEL_SMS, CHANNEL_SMS),
		(CHANNEL_DASHBOARD, CHANNEL_DASHBOARD),
	)

	PRIORITY_LOW = 'low'
	PRIORITY_NORMAL = 'normal'
	PRIORITY_HIGH = 'high'
	PRIORITY_URGENT = 'urgent'

	PRIORITY_CHOICES = (
		(PRIORITY_LOW, PRIORITY_LOW),
		(PRIORITY_NORMAL, PRIORITY_NORMAL),
		(PRIORITY_HIGH, PRIORITY_HIGH),
		(PRIORITY_URGENT, PRIORITY_URGENT),
	)

	STATUS_PENDING = 'pending'
	STATUS_SENT = 'sent'
	STATUS_FAILED = 'failed'

	STATUS_CHOICES = (
		(STATUS_PENDING, STATUS_PENDING),
		(STATUS_SENT, STATUS_SENT),
		(STATUS_FAILED, STATUS_FAILED),
	)

	recipient = models.ForeignKey(
		settings.AUTH_USER_MODEL,
		null=True,
		blank=True,
		on_delete=models.CASCADE,
		related_name='notifications',
	)
	recipient_role = models.CharField(max_length=64, blank=True, default='')
	channel = models.CharField(max_length=20, choices=CHANNEL_CHOICES)
	priority = models.CharField(max_length=10, choices=PRIORITY_CHOICES, default=PRIORITY_NORMAL)
	template_key = models.CharField(max_length=100)
	data = models.JSONField(default=dict, blank=True)
	surgery = models.ForeignKey(
		'surgeries.Surgery',
		null=True,
		blank=True,
		on_delete=models.CASCADE,
		related_name='notifications',
	)
	dedupe_key = models.CharField(max_length=255, unique=True)
	status = models.CharField(max_length=10, choices=STATUS_CHOICES, default=STATUS_PENDING)
	attempts = models.PositiveIntegerField(default=0)
	last_error = models.TextField(blank=True, default='')
	sent_at = models.DateTimeField(null=True, blank=True)
	created_at = models.DateTimeField(auto_now_add=True)
	updated_at = models.DateTimeField(auto_now=True)

	class Meta:
		ordering = ['-created_at', '-id']
		indexes = [
			models.Index(fields=['status', 'created_at'], name='notification_status_idx'),
		]

	def __str__(self) -> str:
		target = self.recipient_id or self.recipient_role
		return f"Notification #{self.id} {self.template_key} -> {target} ({self.channel}, {self.status})"
