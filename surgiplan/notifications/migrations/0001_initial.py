import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

	initial = True

	dependencies = [
		("surgeries", "0001_initial"),
		migrations.swappable_dependency(settings.AUTH_USER_MODEL),
	]

	operations = [
		migrations.CreateModel(
			name="Notification",
			fields=[
				("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
				("recipient_role", models.CharField(blank=True, default="", max_length=64)),
				(
					"channel",
					models.CharField(
						choices=[("email", "email"), ("sms", "sms"), ("dashboard", "dashboard")],
						max_length=20,
					),
				),
				(
					"priority",
					models.CharField(
						choices=[("low", "low"), ("normal", "normal"), ("high", "high"), ("urgent", "urgent")],
						default="normal",
						max_length=10,
					),
				),
				("template_key", models.CharField(max_length=100)),
				("data", models.JSONField(blank=True, default=dict)),
				("dedupe_key", models.CharField(max_length=255, unique=True)),
				(
					"status",
					models.CharField(
						choices=[("pending", "pending"), ("sent", "sent"), ("failed", "failed")],
						default="pending",
						max_length=10,
					),
				),
				("attempts", models.PositiveIntegerField(default=0)),
				("last_error", models.TextField(blank=True, default="")),
				("sent_at", models.DateTimeField(blank=True, null=True)),
				("created_at", models.DateTimeField(auto_now_add=True)),
				("updated_at", models.DateTimeField(auto_now=True)),
				(
					"recipient",
					models.ForeignKey(
						blank=True,
						null=True,
						on_delete=django.db.models.deletion.CASCADE,
						related_name="notifications",
						to=settings.AUTH_USER_MODEL,
					),
				),
				(
					"surgery",
					models.ForeignKey(
						blank=True,
						null=True,
						on_delete=django.db.models.deletion.CASCADE,
						related_name="notifications",
						to="surgeries.surgery",
					),
				),
			],
			options={
				"ordering": ["-created_at", "-id"],
				"indexes": [
					models.Index(fields=["status", "created_at"], name="notification_status_idx"),
				],
			},
		),
	]
