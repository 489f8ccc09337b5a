from rest_framework import generics, status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from surgiplan.core.exceptions import PracticeError
from surgiplan.core.views import practice_error_response

from .models import PatientRequirement
from .serializers import (
	ConsultationSerializer,
	PatientRequirementSerializer,
	RequirementActionSerializer,
	SurgeryCreateSerializer,
	SurgerySerializer,
	SurgeryStatusSerializer,
	TaskSerializer,
	TaskStatusSerializer,
)
from .services.consultation import ConsultationTracker
from .services.readiness import ReadinessGate
from .services.requirements import PatientRequirementTracker
from .services.surgery import SurgeryService
from .services.tasks import TaskDependencyGraph


class SurgeryCreateView(generics.GenericAPIView):
	permission_classes = [IsAuthenticated]
	serializer_class = SurgeryCreateSerializer

	def post(self, request, *args, **kwargs):
		ser = self.get_serializer(data=request.data)
		ser.is_valid(raise_exception=True)
		data = ser.validated_data
		try:
			surgery = SurgeryService().schedule_surgery(
				data['surgeon_id'],
				data['location_id'],
				data['patient_id'],
				data['event_type'],
				data['surgery_date'],
				data.get('duration_minutes'),
				anesthesiologist_id=data.get('anesthesiologist_id'),
				book=data['book'],
				notes=data.get('notes', ''),
				user=request.user,
			)
		except PracticeError as e:
			return practice_error_response(e)
		return Response(SurgerySerializer(surgery).data, status=status.HTTP_201_CREATED)


class SurgeryTaskTimelineView(generics.GenericAPIView):
	"""GET surgeries/<id>/tasks/ - task timeline with derived OVERDUE status."""
	permission_classes = [IsAuthenticated]

	def get(self, request, pk, *args, **kwargs):
		try:
			tasks = TaskDependencyGraph().get_task_timeline(pk)
		except PracticeError as e:
			return practice_error_response(e)
		return Response(TaskSerializer(tasks, many=True).data, status=status.HTTP_200_OK)


class TaskStatusView(generics.GenericAPIView):
	permission_classes = [IsAuthenticated]
	serializer_class = TaskStatusSerializer

	def post(self, request, pk, *args, **kwargs):
		ser = self.get_serializer(data=request.data)
		ser.is_valid(raise_exception=True)
		data = ser.validated_data
		try:
			task = TaskDependencyGraph().update_task_status(
				pk,
				data['status'],
				user=request.user,
				notes=data.get('notes'),
			)
		except PracticeError as e:
			return practice_error_response(e)
		return Response(TaskSerializer(task).data, status=status.HTTP_200_OK)


class SurgeryReadinessView(generics.GenericAPIView):
	permission_classes = [IsAuthenticated]

	def get(self, request, pk, *args, **kwargs):
		try:
			report = ReadinessGate().readiness_report(pk)
		except PracticeError as e:
			return practice_error_response(e)
		return Response({'surgery_id': pk, **report.to_dict()}, status=status.HTTP_200_OK)


class SurgeryStatusView(generics.GenericAPIView):
	permission_classes = [IsAuthenticated]
	serializer_class = SurgeryStatusSerializer

	def post(self, request, pk, *args, **kwargs):
		ser = self.get_serializer(data=request.data)
		ser.is_valid(raise_exception=True)
		data = ser.validated_data
		try:
			surgery = ReadinessGate().handle_status_update(
				pk,
				data['status'],
				user=request.user,
				reason=data.get('reason', ''),
			)
		except PracticeError as e:
			return practice_error_response(e)
		return Response(SurgerySerializer(surgery).data, status=status.HTTP_200_OK)


class ConsultationView(generics.GenericAPIView):
	"""POST surgeries/<id>/consultation/ {"action": "schedule"|"complete", "at": ...}"""
	permission_classes = [IsAuthenticated]
	serializer_class = ConsultationSerializer

	def post(self, request, pk, *args, **kwargs):
		ser = self.get_serializer(data=request.data)
		ser.is_valid(raise_exception=True)
		data = ser.validated_data
		tracker = ConsultationTracker()
		try:
			if data['action'] == ConsultationSerializer.ACTION_SCHEDULE:
				surgery = tracker.schedule(pk, data['at'], user=request.user)
			else:
				surgery = tracker.complete(pk, data.get('at'), by=request.user)
		except PracticeError as e:
			return practice_error_response(e)
		return Response(SurgerySerializer(surgery).data, status=status.HTTP_200_OK)


class PatientRequirementView(generics.GenericAPIView):
	"""GET/POST surgeries/<id>/requirements/"""
	permission_classes = [IsAuthenticated]
	serializer_class = RequirementActionSerializer

	def get(self, request, pk, *args, **kwargs):
		requirement = PatientRequirement.objects.filter(surgery_id=pk).first()
		if requirement is None:
			return Response({'detail': f'PatientRequirement {pk} not found'}, status=status.HTTP_404_NOT_FOUND)
		return Response(PatientRequirementSerializer(requirement).data, status=status.HTTP_200_OK)

	def post(self, request, pk, *args, **kwargs):
		ser = self.get_serializer(data=request.data)
		ser.is_valid(raise_exception=True)
		data = ser.validated_data
		tracker = PatientRequirementTracker()
		action = data['action']
		try:
			if action == 'submit':
				requirement = tracker.submit(pk, data['item'])
			elif action == 'verify':
				requirement = tracker.verify(
					pk, data['item'], user=request.user, results=data.get('results'), notes=data['notes'],
				)
			elif action == 'reject':
				requirement = tracker.reject(pk, data['item'], user=request.user, notes=data['notes'])
			elif action == 'medications':
				requirement = tracker.record_medications(pk, data['medications_status'], data.get('medications'))
			elif action == 'send_instructions':
				requirement = tracker.send_instructions(pk, patient_email=data['patient_email'])
			elif action == 'acknowledge_instructions':
				requirement = tracker.acknowledge_instructions(pk)
			else:
				requirement = tracker.complete_instructions(pk)
		except PracticeError as e:
			return practice_error_response(e)
		return Response(PatientRequirementSerializer(requirement).data, status=status.HTTP_200_OK)
