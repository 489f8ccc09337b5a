from celery import shared_task

from .services.escalation import EscalationRules
from .services.requirements import PatientRequirementTracker


@shared_task(name='surgiplan.surgeries.tasks.readiness_sweep')
def readiness_sweep():
    return EscalationRules().sweep()


@shared_task(name='surgiplan.surgeries.tasks.expire_patient_requirements')
def expire_patient_requirements():
    return PatientRequirementTracker().expire_overdue()


@shared_task(name='surgiplan.surgeries.tasks.send_task_reminders')
def send_task_reminders():
    return EscalationRules().send_task_reminders()
