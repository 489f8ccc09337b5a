from rest_framework import serializers

from .catalog import EVENT_TYPE_CHOICES
from .models import AvailabilityTemplate, Booking


class AvailabilityTemplateSerializer(serializers.ModelSerializer):
    class Meta:
        model = AvailabilityTemplate
        fields = [
            'id',
            'resource',
            'location',
            'day_of_week',
            'start_time',
            'end_time',
            'active',
        ]


class BookingSerializer(serializers.ModelSerializer):
    duration_minutes = serializers.IntegerField(read_only=True)

    class Meta:
        model = Booking
        fields = [
            'id',
            'resource',
            'secondary_resource',
            'location',
            'patient_id',
            'event_type_code',
            'start_time',
            'end_time',
            'duration_minutes',
            'status',
            'notes',
            'external_event_ref',
            'secondary_external_event_ref',
            'created_at',
            'updated_at',
        ]
        read_only_fields = fields


class AvailabilityCheckQuerySerializer(serializers.Serializer):
    resource_id = serializers.IntegerField()
    location_id = serializers.IntegerField()
    start = serializers.DateTimeField()
    end = serializers.DateTimeField()

    def validate(self, attrs):
        if attrs['end'] <= attrs['start']:
            raise serializers.ValidationError({'end': 'end must be after start.'})
        return attrs


class AvailableSlotsQuerySerializer(serializers.Serializer):
    resource_id = serializers.IntegerField()
    location_id = serializers.IntegerField()
    start_date = serializers.DateField()
    end_date = serializers.DateField()
    duration_minutes = serializers.IntegerField(min_value=1)
    event_type = serializers.ChoiceField(choices=EVENT_TYPE_CHOICES, required=False)

    def validate(self, attrs):
        if attrs['start_date'] > attrs['end_date']:
            raise serializers.ValidationError({'end_date': 'end_date must be on or after start_date.'})
        if (attrs['end_date'] - attrs['start_date']).days > 31:
            raise serializers.ValidationError({'end_date': 'Range must not exceed 31 days.'})
        return attrs


class BookingCreateSerializer(serializers.Serializer):
    resource_id = serializers.IntegerField()
    location_id = serializers.IntegerField()
    start_time = serializers.DateTimeField()
    duration_minutes = serializers.IntegerField(min_value=1)
    event_type = serializers.CharField()
    patient_id = serializers.IntegerField(required=False, allow_null=True)
    notes = serializers.CharField(required=False, allow_blank=True, default='')


class BookingRescheduleSerializer(serializers.Serializer):
    start_time = serializers.DateTimeField()
    duration_minutes = serializers.IntegerField(min_value=1, required=False)
