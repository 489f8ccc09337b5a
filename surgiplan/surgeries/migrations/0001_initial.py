import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


EVENT_TYPE_CHOICES = [
	("TELE_CONSULT", "Telephone Consultation"),
	("AESTHETIC_CONSULT", "Aesthetic Medicine Consultation"),
	("INJECTABLE", "Injectable Treatment"),
	("FACELIFT", "Facelift Surgery"),
	("RHINOPLASTY", "Rhinoplasty"),
	("BLEPHAROPLASTY", "Blepharoplasty"),
]

SUBMISSION_CHOICES = [
	("PENDING", "PENDING"),
	("SUBMITTED", "SUBMITTED"),
	("VERIFIED", "VERIFIED"),
	("REJECTED", "REJECTED"),
	("EXPIRED", "EXPIRED"),
]


class Migration(migrations.Migration):

	initial = True

	dependencies = [
		("appointments", "0001_initial"),
		("core", "0001_initial"),
		migrations.swappable_dependency(settings.AUTH_USER_MODEL),
	]

	operations = [
		migrations.CreateModel(
			name="Surgery",
			fields=[
				("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
				("patient_id", models.IntegerField()),
				("event_type_code", models.CharField(choices=EVENT_TYPE_CHOICES, max_length=32)),
				("surgery_date", models.DateTimeField()),
				(
					"status",
					models.CharField(
						choices=[
							("SCHEDULED", "SCHEDULED"),
							("IN_PREPARATION", "IN_PREPARATION"),
							("READY", "READY"),
							("BLOCKED", "BLOCKED"),
							("COMPLETED", "COMPLETED"),
							("CANCELLED", "CANCELLED"),
						],
						default="SCHEDULED",
						max_length=20,
					),
				),
				(
					"consultation_status",
					models.CharField(
						choices=[
							("NOT_SCHEDULED", "NOT_SCHEDULED"),
							("SCHEDULED", "SCHEDULED"),
							("COMPLETED", "COMPLETED"),
							("EXPIRED", "EXPIRED"),
						],
						default="NOT_SCHEDULED",
						max_length=20,
					),
				),
				("consultation_scheduled_at", models.DateTimeField(blank=True, null=True)),
				("consultation_completed_at", models.DateTimeField(blank=True, null=True)),
				("blocked_at", models.DateTimeField(blank=True, null=True)),
				("cancellation_reason", models.TextField(blank=True, default="")),
				("created_at", models.DateTimeField(auto_now_add=True)),
				("updated_at", models.DateTimeField(auto_now=True)),
				(
					"surgeon",
					models.ForeignKey(
						on_delete=django.db.models.deletion.PROTECT,
						related_name="surgeries",
						to=settings.AUTH_USER_MODEL,
					),
				),
				(
					"anesthesiologist",
					models.ForeignKey(
						blank=True,
						null=True,
						on_delete=django.db.models.deletion.PROTECT,
						related_name="anesthesia_surgeries",
						to=settings.AUTH_USER_MODEL,
					),
				),
				(
					"location",
					models.ForeignKey(
						on_delete=django.db.models.deletion.PROTECT,
						related_name="surgeries",
						to="core.location",
					),
				),
				(
					"booking",
					models.ForeignKey(
						blank=True,
						null=True,
						on_delete=django.db.models.deletion.SET_NULL,
						related_name="surgeries",
						to="appointments.booking",
					),
				),
				(
					"consultation_completed_by",
					models.ForeignKey(
						blank=True,
						null=True,
						on_delete=django.db.models.deletion.SET_NULL,
						related_name="+",
						to=settings.AUTH_USER_MODEL,
					),
				),
			],
			options={
				"ordering": ["surgery_date", "id"],
				"indexes": [
					models.Index(fields=["status", "surgery_date"], name="surgery_status_date_idx"),
				],
			},
		),
		migrations.CreateModel(
			name="Task",
			fields=[
				("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
				(
					"type",
					models.CharField(
						choices=[
							("CONSULTATION", "CONSULTATION"),
							("SURGICAL_PLANNING", "SURGICAL_PLANNING"),
							("BLOODWORK", "BLOODWORK"),
							("PRESCRIPTIONS", "PRESCRIPTIONS"),
							("ANESTHESIA_CLEARANCE", "ANESTHESIA_CLEARANCE"),
							("PATIENT_INSTRUCTIONS", "PATIENT_INSTRUCTIONS"),
							("EQUIPMENT_CHECK", "EQUIPMENT_CHECK"),
						],
						max_length=32,
					),
				),
				("title", models.CharField(max_length=255)),
				("description", models.TextField(blank=True, default="")),
				("due_date", models.DateTimeField()),
				(
					"status",
					models.CharField(
						choices=[
							("PENDING", "PENDING"),
							("IN_PROGRESS", "IN_PROGRESS"),
							("COMPLETED", "COMPLETED"),
							("BLOCKED", "BLOCKED"),
							("OVERDUE", "OVERDUE"),
							("CANCELLED", "CANCELLED"),
						],
						default="PENDING",
						max_length=20,
					),
				),
				(
					"priority",
					models.CharField(
						choices=[("LOW", "LOW"), ("MEDIUM", "MEDIUM"), ("HIGH", "HIGH"), ("URGENT", "URGENT")],
						max_length=10,
					),
				),
				("dependencies", models.JSONField(blank=True, default=list)),
				("notifications", models.JSONField(blank=True, default=list)),
				("required_roles", models.JSONField(blank=True, default=list)),
				("completed_at", models.DateTimeField(blank=True, null=True)),
				("notes", models.TextField(blank=True, default="")),
				("created_at", models.DateTimeField(auto_now_add=True)),
				("updated_at", models.DateTimeField(auto_now=True)),
				(
					"surgery",
					models.ForeignKey(
						on_delete=django.db.models.deletion.CASCADE,
						related_name="tasks",
						to="surgeries.surgery",
					),
				),
				(
					"completed_by",
					models.ForeignKey(
						blank=True,
						null=True,
						on_delete=django.db.models.deletion.SET_NULL,
						related_name="completed_tasks",
						to=settings.AUTH_USER_MODEL,
					),
				),
			],
			options={
				"ordering": ["due_date", "id"],
				"constraints": [
					models.UniqueConstraint(fields=("surgery", "type"), name="task_unique_type_per_surgery"),
				],
			},
		),
		migrations.CreateModel(
			name="PatientRequirement",
			fields=[
				("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
				("bloodwork_status", models.CharField(choices=SUBMISSION_CHOICES, default="PENDING", max_length=20)),
				("bloodwork_due_date", models.DateTimeField(blank=True, null=True)),
				("bloodwork_submitted_at", models.DateTimeField(blank=True, null=True)),
				("bloodwork_verified_at", models.DateTimeField(blank=True, null=True)),
				("bloodwork_results", models.JSONField(blank=True, null=True)),
				("bloodwork_notes", models.TextField(blank=True, default="")),
				("ecg_status", models.CharField(choices=SUBMISSION_CHOICES, default="PENDING", max_length=20)),
				("ecg_due_date", models.DateTimeField(blank=True, null=True)),
				("ecg_submitted_at", models.DateTimeField(blank=True, null=True)),
				("ecg_verified_at", models.DateTimeField(blank=True, null=True)),
				("ecg_results", models.JSONField(blank=True, null=True)),
				("ecg_notes", models.TextField(blank=True, default="")),
				(
					"medications_status",
					models.CharField(
						choices=[
							("NONE", "NONE"),
							("CURRENT", "CURRENT"),
							("DISCONTINUED", "DISCONTINUED"),
							("REQUIRES_ADJUSTMENT", "REQUIRES_ADJUSTMENT"),
						],
						default="NONE",
						max_length=24,
					),
				),
				("current_medications", models.JSONField(blank=True, default=list)),
				("medications_last_reviewed_at", models.DateTimeField(blank=True, null=True)),
				(
					"instructions_status",
					models.CharField(
						choices=[
							("NOT_SENT", "NOT_SENT"),
							("SENT", "SENT"),
							("ACKNOWLEDGED", "ACKNOWLEDGED"),
							("COMPLETED", "COMPLETED"),
						],
						default="NOT_SENT",
						max_length=20,
					),
				),
				("instructions_sent_at", models.DateTimeField(blank=True, null=True)),
				("instructions_acknowledged_at", models.DateTimeField(blank=True, null=True)),
				("created_at", models.DateTimeField(auto_now_add=True)),
				("updated_at", models.DateTimeField(auto_now=True)),
				(
					"surgery",
					models.OneToOneField(
						on_delete=django.db.models.deletion.CASCADE,
						related_name="requirements",
						to="surgeries.surgery",
					),
				),
				(
					"bloodwork_verified_by",
					models.ForeignKey(
						blank=True,
						null=True,
						on_delete=django.db.models.deletion.SET_NULL,
						related_name="+",
						to=settings.AUTH_USER_MODEL,
					),
				),
				(
					"ecg_verified_by",
					models.ForeignKey(
						blank=True,
						null=True,
						on_delete=django.db.models.deletion.SET_NULL,
						related_name="+",
						to=settings.AUTH_USER_MODEL,
					),
				),
			],
		),
		migrations.CreateModel(
			name="Equipment",
			fields=[
				("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
				("name", models.CharField(max_length=255)),
				("active", models.BooleanField(default=True)),
				("created_at", models.DateTimeField(auto_now_add=True)),
				("updated_at", models.DateTimeField(auto_now=True)),
				(
					"location",
					models.ForeignKey(
						on_delete=django.db.models.deletion.PROTECT,
						related_name="equipment",
						to="core.location",
					),
				),
			],
			options={
				"ordering": ["location_id", "name", "id"],
			},
		),
		migrations.CreateModel(
			name="EquipmentMaintenance",
			fields=[
				("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
				("start_date", models.DateField()),
				("end_date", models.DateField()),
				("description", models.TextField(blank=True, default="")),
				("resolved", models.BooleanField(default=False)),
				("created_at", models.DateTimeField(auto_now_add=True)),
				(
					"equipment",
					models.ForeignKey(
						on_delete=django.db.models.deletion.CASCADE,
						related_name="maintenance",
						to="surgeries.equipment",
					),
				),
			],
			options={
				"ordering": ["start_date", "id"],
			},
		),
		migrations.CreateModel(
			name="EquipmentReservation",
			fields=[
				("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
				("date", models.DateField()),
				(
					"status",
					models.CharField(
						choices=[
							("reserved", "reserved"),
							("preparing", "preparing"),
							("verified", "verified"),
							("released", "released"),
						],
						default="reserved",
						max_length=20,
					),
				),
				("created_at", models.DateTimeField(auto_now_add=True)),
				("updated_at", models.DateTimeField(auto_now=True)),
				(
					"surgery",
					models.ForeignKey(
						on_delete=django.db.models.deletion.CASCADE,
						related_name="equipment_reservations",
						to="surgeries.surgery",
					),
				),
				(
					"equipment",
					models.ForeignKey(
						on_delete=django.db.models.deletion.PROTECT,
						related_name="reservations",
						to="surgeries.equipment",
					),
				),
			],
			options={
				"ordering": ["date", "id"],
				"indexes": [
					models.Index(fields=["equipment", "date"], name="equipment_reservation_day_idx"),
				],
				"constraints": [
					models.UniqueConstraint(
						condition=models.Q(("status", "released"), _negated=True),
						fields=("equipment", "date"),
						name="equipment_reservation_unique_active",
					),
				],
			},
		),
	]
