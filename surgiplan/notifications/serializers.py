from rest_framework import serializers

from .models import Notification


class NotificationSerializer(serializers.ModelSerializer):
    class Meta:
        model = Notification
        fields = [
            'id',
            'recipient',
            'recipient_role',
            'channel',
            'priority',
            'template_key',
            'data',
            'surgery',
            'status',
            'attempts',
            'last_error',
            'sent_at',
            'created_at',
        ]
        read_only_fields = fields


class DeliveryReportSerializer(serializers.Serializer):
    delivered = serializers.BooleanField()
    error = serializers.CharField(required=False, allow_blank=True)
