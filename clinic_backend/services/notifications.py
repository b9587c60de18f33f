import logging

from clinic_backend.models.appointment import Appointment

logger = logging.getLogger(__name__)


class Notifier:
    """Delivers patient-facing messages. Delivery is best-effort."""

    def appointment_completed(self, appointment: Appointment) -> None:
        raise NotImplementedError


class LoggingNotifier(Notifier):
    def appointment_completed(self, appointment: Appointment) -> None:
        logger.info(
            'Completion notice queued for patient %s (appointment %s)',
            appointment.patient_id,
            appointment.id,
        )


def notify_completion(notifier: Notifier, appointment: Appointment) -> bool:
    try:
        notifier.appointment_completed(appointment)
    except Exception:
        logger.warning('Completion notice failed for appointment %s', appointment.id, exc_info=True)
        return False
    return True
