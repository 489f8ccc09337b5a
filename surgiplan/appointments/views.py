from rest_framework import generics, status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from surgiplan.core.exceptions import InvalidSchedulingData, PracticeError
from surgiplan.core.models import Location, User
from surgiplan.core.views import practice_error_response

from .catalog import get_event_type
from .serializers import (
	AvailabilityCheckQuerySerializer,
	AvailableSlotsQuerySerializer,
	BookingCreateSerializer,
	BookingRescheduleSerializer,
	BookingSerializer,
)
from .services.availability import AvailabilityResolver
from .services.booking import BookingOrchestrator


def _resource_and_location(data):
	resource = User.objects.filter(id=data['resource_id'], is_active=True).first()
	if resource is None:
		raise InvalidSchedulingData(f"Resource with ID {data['resource_id']} not found or inactive", field='resource_id')
	location = Location.objects.filter(id=data['location_id'], active=True).first()
	if location is None:
		raise InvalidSchedulingData(f"Location with ID {data['location_id']} not found or inactive", field='location_id')
	return resource, location


class AvailabilityCheckView(generics.GenericAPIView):
	"""GET availability/check/?resource_id=&location_id=&start=&end="""
	permission_classes = [IsAuthenticated]
	serializer_class = AvailabilityCheckQuerySerializer

	def get(self, request, *args, **kwargs):
		ser = self.get_serializer(data=request.query_params)
		ser.is_valid(raise_exception=True)
		data = ser.validated_data
		try:
			resource, location = _resource_and_location(data)
			availability = AvailabilityResolver().check_availability(
				resource, location, data['start'], data['end'],
			)
		except PracticeError as e:
			return practice_error_response(e)
		return Response(availability.to_dict(), status=status.HTTP_200_OK)


class AvailableSlotsView(generics.GenericAPIView):
	"""GET availability/slots/?resource_id=&location_id=&start_date=&end_date=&duration_minutes="""
	permission_classes = [IsAuthenticated]
	serializer_class = AvailableSlotsQuerySerializer

	def get(self, request, *args, **kwargs):
		ser = self.get_serializer(data=request.query_params)
		ser.is_valid(raise_exception=True)
		data = ser.validated_data
		try:
			resource, location = _resource_and_location(data)
			event_type = get_event_type(data['event_type']) if data.get('event_type') else None
			slots = AvailabilityResolver().get_available_slots(
				resource,
				location,
				data['start_date'],
				data['end_date'],
				data['duration_minutes'],
				event_type,
			)
			payload = [slot.to_dict() for slot in slots]
		except PracticeError as e:
			return practice_error_response(e)
		return Response({'resource_id': resource.id, 'slots': payload}, status=status.HTTP_200_OK)


class BookingCreateView(generics.GenericAPIView):
	permission_classes = [IsAuthenticated]
	serializer_class = BookingCreateSerializer

	def post(self, request, *args, **kwargs):
		ser = self.get_serializer(data=request.data)
		ser.is_valid(raise_exception=True)
		data = ser.validated_data
		try:
			booking = BookingOrchestrator().create_booking(
				data['resource_id'],
				data['location_id'],
				data['start_time'],
				data['duration_minutes'],
				data['event_type'],
				data.get('notes', ''),
				patient_id=data.get('patient_id'),
				user=request.user,
			)
		except PracticeError as e:
			return practice_error_response(e)
		return Response(BookingSerializer(booking).data, status=status.HTTP_201_CREATED)


class BookingCancelView(generics.GenericAPIView):
	permission_classes = [IsAuthenticated]

	def post(self, request, pk, *args, **kwargs):
		try:
			booking = BookingOrchestrator().cancel_booking(pk, user=request.user)
		except PracticeError as e:
			return practice_error_response(e)
		return Response(BookingSerializer(booking).data, status=status.HTTP_200_OK)


class BookingRescheduleView(generics.GenericAPIView):
	permission_classes = [IsAuthenticated]
	serializer_class = BookingRescheduleSerializer

	def post(self, request, pk, *args, **kwargs):
		ser = self.get_serializer(data=request.data)
		ser.is_valid(raise_exception=True)
		data = ser.validated_data
		try:
			booking = BookingOrchestrator().reschedule_booking(
				pk,
				data['start_time'],
				data.get('duration_minutes'),
				user=request.user,
			)
		except PracticeError as e:
			return practice_error_response(e)
		return Response(BookingSerializer(booking).data, status=status.HTTP_200_OK)


class BookingDeleteView(generics.GenericAPIView):
	permission_classes = [IsAuthenticated]

	def delete(self, request, pk, *args, **kwargs):
		try:
			BookingOrchestrator().delete_booking(pk, user=request.user)
		except PracticeError as e:
			return practice_error_response(e)
		return Response(status=status.HTTP_204_NO_CONTENT)
