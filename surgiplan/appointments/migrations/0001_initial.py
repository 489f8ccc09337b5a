import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

	initial = True

	dependencies = [
		("core", "0001_initial"),
		migrations.swappable_dependency(settings.AUTH_USER_MODEL),
	]

	operations = [
		migrations.CreateModel(
			name="AvailabilityTemplate",
			fields=[
				("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
				("day_of_week", models.IntegerField()),
				("start_time", models.TimeField()),
				("end_time", models.TimeField()),
				("active", models.BooleanField(default=True)),
				("created_at", models.DateTimeField(auto_now_add=True)),
				("updated_at", models.DateTimeField(auto_now=True)),
				(
					"location",
					models.ForeignKey(
						on_delete=django.db.models.deletion.CASCADE,
						related_name="availability_templates",
						to="core.location",
					),
				),
				(
					"resource",
					models.ForeignKey(
						on_delete=django.db.models.deletion.CASCADE,
						related_name="availability_templates",
						to=settings.AUTH_USER_MODEL,
					),
				),
			],
			options={
				"ordering": ["resource_id", "location_id", "day_of_week", "start_time", "id"],
				"constraints": [
					models.CheckConstraint(
						condition=models.Q(("start_time__lt", models.F("end_time"))),
						name="availability_template_start_before_end",
					),
					models.CheckConstraint(
						condition=models.Q(("day_of_week__gte", 0), ("day_of_week__lte", 6)),
						name="availability_template_valid_weekday",
					),
				],
			},
		),
		migrations.CreateModel(
			name="Booking",
			fields=[
				("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
				("patient_id", models.IntegerField(blank=True, null=True)),
				(
					"event_type_code",
					models.CharField(
						choices=[
							("TELE_CONSULT", "Telephone Consultation"),
							("AESTHETIC_CONSULT", "Aesthetic Medicine Consultation"),
							("INJECTABLE", "Injectable Treatment"),
							("FACELIFT", "Facelift Surgery"),
							("RHINOPLASTY", "Rhinoplasty"),
							("BLEPHAROPLASTY", "Blepharoplasty"),
						],
						max_length=32,
					),
				),
				("start_time", models.DateTimeField()),
				("end_time", models.DateTimeField()),
				(
					"status",
					models.CharField(
						choices=[
							("scheduled", "scheduled"),
							("confirmed", "confirmed"),
							("completed", "completed"),
							("cancelled", "cancelled"),
						],
						default="scheduled",
						max_length=20,
					),
				),
				("notes", models.TextField(blank=True, default="")),
				("external_event_ref", models.CharField(blank=True, default="", max_length=1024)),
				("secondary_external_event_ref", models.CharField(blank=True, default="", max_length=1024)),
				("created_at", models.DateTimeField(auto_now_add=True)),
				("updated_at", models.DateTimeField(auto_now=True)),
				(
					"location",
					models.ForeignKey(
						on_delete=django.db.models.deletion.PROTECT,
						related_name="bookings",
						to="core.location",
					),
				),
				(
					"resource",
					models.ForeignKey(
						on_delete=django.db.models.deletion.PROTECT,
						related_name="bookings",
						to=settings.AUTH_USER_MODEL,
					),
				),
				(
					"secondary_resource",
					models.ForeignKey(
						blank=True,
						null=True,
						on_delete=django.db.models.deletion.PROTECT,
						related_name="secondary_bookings",
						to=settings.AUTH_USER_MODEL,
					),
				),
			],
			options={
				"ordering": ["-start_time", "-id"],
				"constraints": [
					models.CheckConstraint(
						condition=models.Q(("end_time__gt", models.F("start_time"))),
						name="booking_end_after_start",
					),
				],
				"indexes": [
					models.Index(fields=["resource", "location", "start_time"], name="booking_resource_start_idx"),
					models.Index(fields=["secondary_resource", "location", "start_time"], name="booking_secondary_start_idx"),
				],
			},
		),
		migrations.CreateModel(
			name="ScheduleLock",
			fields=[
				("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
				("day", models.DateField()),
				(
					"location",
					models.ForeignKey(
						on_delete=django.db.models.deletion.CASCADE,
						related_name="+",
						to="core.location",
					),
				),
				(
					"resource",
					models.ForeignKey(
						on_delete=django.db.models.deletion.CASCADE,
						related_name="+",
						to=settings.AUTH_USER_MODEL,
					),
				),
			],
			options={
				"constraints": [
					models.UniqueConstraint(fields=("resource", "location", "day"), name="schedule_lock_unique_day"),
				],
			},
		),
	]
