from django.urls import path

from .views import (
	ConsultationView,
	PatientRequirementView,
	SurgeryCreateView,
	SurgeryReadinessView,
	SurgeryStatusView,
	SurgeryTaskTimelineView,
	TaskStatusView,
)

app_name = 'surgeries'

urlpatterns = [
	path('surgeries/', SurgeryCreateView.as_view(), name='surgery_create'),
	path('surgeries/<int:pk>/tasks/', SurgeryTaskTimelineView.as_view(), name='surgery_tasks'),
	path('surgeries/<int:pk>/readiness/', SurgeryReadinessView.as_view(), name='surgery_readiness'),
	path('surgeries/<int:pk>/status/', SurgeryStatusView.as_view(), name='surgery_status'),
	path('surgeries/<int:pk>/consultation/', ConsultationView.as_view(), name='surgery_consultation'),
	path('surgeries/<int:pk>/requirements/', PatientRequirementView.as_view(), name='surgery_requirements'),
	path('tasks/<int:pk>/status/', TaskStatusView.as_view(), name='task_status'),
]
