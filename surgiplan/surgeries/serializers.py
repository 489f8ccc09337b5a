from rest_framework import serializers

from surgiplan.appointments.catalog import EVENT_TYPE_CHOICES

from .models import PatientRequirement, Surgery, Task


class SurgerySerializer(serializers.ModelSerializer):
    class Meta:
        model = Surgery
        fields = [
            'id',
            'patient_id',
            'surgeon',
            'anesthesiologist',
            'location',
            'booking',
            'event_type_code',
            'surgery_date',
            'status',
            'consultation_status',
            'consultation_scheduled_at',
            'consultation_completed_at',
            'blocked_at',
            'cancellation_reason',
            'created_at',
            'updated_at',
        ]
        read_only_fields = fields


class TaskSerializer(serializers.ModelSerializer):
    effective_status = serializers.SerializerMethodField()

    class Meta:
        model = Task
        fields = [
            'id',
            'surgery',
            'type',
            'title',
            'description',
            'due_date',
            'status',
            'effective_status',
            'priority',
            'dependencies',
            'notifications',
            'required_roles',
            'completed_at',
            'completed_by',
            'notes',
        ]
        read_only_fields = fields

    def get_effective_status(self, obj):
        return getattr(obj, 'effective_status', obj.status)


class PatientRequirementSerializer(serializers.ModelSerializer):
    class Meta:
        model = PatientRequirement
        fields = '__all__'
        read_only_fields = [f.name for f in PatientRequirement._meta.fields]


class SurgeryCreateSerializer(serializers.Serializer):
    surgeon_id = serializers.IntegerField()
    location_id = serializers.IntegerField()
    patient_id = serializers.IntegerField()
    event_type = serializers.ChoiceField(choices=EVENT_TYPE_CHOICES)
    surgery_date = serializers.DateTimeField()
    duration_minutes = serializers.IntegerField(min_value=1, required=False)
    anesthesiologist_id = serializers.IntegerField(required=False)
    book = serializers.BooleanField(required=False, default=True)
    notes = serializers.CharField(required=False, allow_blank=True, default='')

    def validate(self, attrs):
        if attrs['book'] and attrs.get('duration_minutes') is None:
            raise serializers.ValidationError({'duration_minutes': 'Required when booking the surgery.'})
        return attrs


class TaskStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=Task.STATUS_CHOICES)
    notes = serializers.CharField(required=False, allow_blank=True)


class SurgeryStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=Surgery.STATUS_CHOICES)
    reason = serializers.CharField(required=False, allow_blank=True, default='')


class ConsultationSerializer(serializers.Serializer):
    ACTION_SCHEDULE = 'schedule'
    ACTION_COMPLETE = 'complete'

    action = serializers.ChoiceField(choices=[ACTION_SCHEDULE, ACTION_COMPLETE])
    at = serializers.DateTimeField(required=False)

    def validate(self, attrs):
        if attrs['action'] == self.ACTION_SCHEDULE and attrs.get('at') is None:
            raise serializers.ValidationError({'at': 'Required to schedule the consultation.'})
        return attrs


class RequirementActionSerializer(serializers.Serializer):
    action = serializers.ChoiceField(choices=[
        'submit', 'verify', 'reject', 'medications',
        'send_instructions', 'acknowledge_instructions', 'complete_instructions',
    ])
    item = serializers.ChoiceField(choices=PatientRequirement.SUBMISSION_ITEMS, required=False)
    notes = serializers.CharField(required=False, allow_blank=True, default='')
    results = serializers.JSONField(required=False)
    medications_status = serializers.ChoiceField(choices=PatientRequirement.MEDICATIONS_CHOICES, required=False)
    medications = serializers.ListField(child=serializers.JSONField(), required=False)
    patient_email = serializers.EmailField(required=False, allow_blank=True, default='')

    def validate(self, attrs):
        if attrs['action'] in ('submit', 'verify', 'reject') and not attrs.get('item'):
            raise serializers.ValidationError({'item': 'Required for this action.'})
        if attrs['action'] == 'medications' and not attrs.get('medications_status'):
            raise serializers.ValidationError({'medications_status': 'Required for this action.'})
        return attrs
