from __future__ import annotations

from zoneinfo import ZoneInfo

from django.conf import settings
from django.contrib.auth.models import AbstractUser
from django.db import models


class Role(models.Model):
	"""User roles used to address staff and to select resources.

	Standard roles: admin, surgeon, anesthesiologist, staff, backoffice, manager
	"""

	ADMIN = 'admin'
	SURGEON = 'surgeon'
	ANESTHESIOLOGIST = 'anesthesiologist'
	STAFF = 'staff'
	BACKOFFICE = 'backoffice'
	MANAGER = 'manager'

	name = models.CharField(max_length=64, unique=True, db_index=True)
	label = models.CharField(max_length=128)

	class Meta:
		db_table = 'core_role'
		ordering = ['name']

	def __str__(self) -> str:
		return self.label


class Location(models.Model):
	"""A practice site.

	Template hours are wall-clock times in the location's canonical time
	zone; bookings are stored as UTC instants.
	"""

	code = models.CharField(max_length=32, unique=True)
	name = models.CharField(max_length=255)
	time_zone = models.CharField(max_length=64, default='Europe/Vienna')
	active = models.BooleanField(default=True)

	class Meta:
		db_table = 'core_location'
		ordering = ['code']

	def __str__(self) -> str:
		return self.code

	@property
	def tzinfo(self) -> ZoneInfo:
		return ZoneInfo(self.time_zone)


class User(AbstractUser):
	"""Practice user; surgeons and anesthesiologists are schedulable resources.

	- role: ForeignKey to Role
	- calendar_id: external calendar identifier mirroring this resource's
	  bookings (empty when the resource has no external calendar)
	- default_location: site the resource normally works at
	"""

	email = models.EmailField('email address', blank=True)
	phone = models.CharField(max_length=32, blank=True, default='')
	role = models.ForeignKey(
		Role,
		null=True,
		blank=True,
		on_delete=models.PROTECT,
		related_name='users',
	)
	calendar_id = models.CharField(max_length=255, blank=True, default='')
	default_location = models.ForeignKey(
		Location,
		null=True,
		blank=True,
		on_delete=models.SET_NULL,
		related_name='default_staff',
	)

	class Meta:
		db_table = 'core_user'
		ordering = ['username']

	@property
	def role_name(self) -> str | None:
		return getattr(self.role, 'name', None)

	def display_name(self) -> str:
		return self.get_full_name() or self.username


class AuditLog(models.Model):
	"""Audit log for patient-related actions.

	patient_id is stored as an integer reference; patient records are owned
	outside this service.
	"""

	user = models.ForeignKey(
		settings.AUTH_USER_MODEL,
		on_delete=models.SET_NULL,
		null=True,
		blank=True,
		related_name='audit_logs',
	)
	role_name = models.CharField(max_length=50, db_index=True)
	action = models.CharField(max_length=50, db_index=True)
	patient_id = models.IntegerField(null=True, blank=True, db_index=True)
	timestamp = models.DateTimeField(auto_now_add=True, db_index=True)
	meta = models.JSONField(null=True, blank=True)

	class Meta:
		db_table = 'core_auditlog'
		ordering = ['-timestamp', '-id']
		indexes = [
			models.Index(fields=['action', 'timestamp'], name='core_auditl_action_6c1f0e_idx'),
			models.Index(fields=['patient_id', 'timestamp'], name='core_auditl_patient_9a2b7d_idx'),
		]

	def __str__(self) -> str:
		return f"{self.timestamp} {self.action} (patient_id={self.patient_id})"
