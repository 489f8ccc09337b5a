from rest_framework import generics, status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from surgiplan.core.exceptions import PracticeError
from surgiplan.core.views import practice_error_response

from .serializers import DeliveryReportSerializer, NotificationSerializer
from .services import record_delivery


class DeliveryReportView(generics.GenericAPIView):
	"""POST notifications/<id>/delivery/ - asynchronous delivery report from a gateway."""
	permission_classes = [IsAuthenticated]
	serializer_class = DeliveryReportSerializer

	def post(self, request, pk, *args, **kwargs):
		ser = self.get_serializer(data=request.data)
		ser.is_valid(raise_exception=True)
		data = ser.validated_data
		try:
			notification = record_delivery(pk, data['delivered'], data.get('error'))
		except PracticeError as e:
			return practice_error_response(e)
		return Response(NotificationSerializer(notification).data, status=status.HTTP_200_OK)
