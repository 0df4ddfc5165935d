"""
Notification dispatch over email and SMS.

Every send is attempted once. A failure is logged and reported as
"failed"; it never propagates to the call turn that triggered it.
"""

from config import Config
from services.email_service import EmailService
from services.pricing_service import PricingService
from services.sms_service import SMSService
from services.validation_service import ValidationService
from utils.logger import logger

SENT = 'sent'
FAILED = 'failed'

EMAIL = 'email'
SMS = 'sms'

BOOKING_CONFIRMATION = 'booking-confirmation'
PAYMENT_LINK = 'payment-link'
QUOTE_ONLY = 'quote-only'
CANCELLATION = 'cancellation'
RESCHEDULE = 'reschedule'

TEMPLATE_CHANNELS = {
    BOOKING_CONFIRMATION: (EMAIL, SMS),
    PAYMENT_LINK: (SMS,),
    QUOTE_ONLY: (EMAIL,),
    CANCELLATION: (EMAIL, SMS),
    RESCHEDULE: (EMAIL, SMS),
}


def booking_context(booking, payment_link=None):
    """Flatten a Booking into the fields the message templates use"""
    quote = booking.price_breakdown
    move_date = booking.schedule['date']
    return {
        'booking_id': booking.booking_id,
        'name': booking.customer.get('name', ''),
        'phone': booking.customer.get('phone', ''),
        'phone_display': ValidationService.format_phone(booking.customer.get('phone', '')),
        'email': booking.customer.get('email', ''),
        'move_date': move_date.strftime('%A, %B ') + str(move_date.day) + move_date.strftime(', %Y'),
        'window': booking.schedule.get('window', ''),
        'service_label': booking.service.get('label', ''),
        'crew_size': booking.service.get('crew_size', ''),
        'pickup': booking.route.get('pickup', ''),
        'delivery': booking.route.get('delivery', ''),
        'hourly_rate': PricingService.dollars(quote.get('hourly_rate', 0)),
        'total': PricingService.dollars(quote.get('total', 0)),
        'calendar_synced': booking.calendar_synced,
        'payment_link': payment_link or Config.PAYMENT_LINK_URL,
    }


def quote_context(quote, collected, caller_contact=None):
    """Template fields for a quote that was not booked"""
    return {
        'name': ' '.join(p for p in (collected.get('first_name'), collected.get('last_name')) if p),
        'email': collected.get('email'),
        'phone': caller_contact,
        'phone_display': ValidationService.format_phone(caller_contact),
        'service_label': quote.service_label,
        'crew_size': quote.crew_size,
        'hours': f"{quote.hours:g}",
        'hourly_rate': PricingService.dollars(quote.hourly_rate),
        'distance_miles': round(quote.distance_miles),
        'pickup': collected.get('pickup_address', ''),
        'delivery': collected.get('delivery_address', ''),
        'total': PricingService.dollars(quote.total),
    }


class NotificationService:
    def __init__(self, email_service=None, sms_service=None):
        self.email = email_service or EmailService()
        self.sms = sms_service or SMSService()
        self._senders = {
            (EMAIL, BOOKING_CONFIRMATION): self.email.send_booking_confirmation,
            (EMAIL, QUOTE_ONLY): self.email.send_quote,
            (EMAIL, CANCELLATION): self.email.send_cancellation,
            (EMAIL, RESCHEDULE): self.email.send_reschedule,
            (SMS, BOOKING_CONFIRMATION): self.sms.send_booking_confirmation,
            (SMS, PAYMENT_LINK): self.sms.send_payment_link,
            (SMS, CANCELLATION): self.sms.send_cancellation,
            (SMS, RESCHEDULE): self.sms.send_reschedule,
        }

    def notify(self, channel, template, context):
        """Send one template over one channel. Returns 'sent' or 'failed'."""
        sender = self._senders.get((channel, template))
        if sender is None:
            logger.error(f"No {channel} sender for template {template}")
            return FAILED
        try:
            result = sender(context)
        except Exception as e:
            logger.error(f"Notification {template} via {channel} failed: {e}", exc_info=True)
            return FAILED
        if not result:
            logger.warning(f"Notification {template} via {channel} was not delivered")
            return FAILED
        return SENT

    def dispatch(self, template, context):
        """Send a template over each of its channels; one channel failing does not stop the others"""
        return {channel: self.notify(channel, template, context) for channel in TEMPLATE_CHANNELS[template]}

    def send_booking_link(self, phone):
        try:
            return SENT if self.sms.send_booking_link(phone) else FAILED
        except Exception as e:
            logger.error(f"Booking link SMS to {phone} failed: {e}", exc_info=True)
            return FAILED

    def notify_manager(self, context):
        try:
            return SENT if self.email.send_manager_booking_notification(context) else FAILED
        except Exception as e:
            logger.error(f"Manager booking notice failed: {e}", exc_info=True)
            return FAILED

    def alert_operators(self, subject, body):
        logger.warning(f"Operator alert: {subject}")
        try:
            return SENT if self.email.send_alert(subject, body) else FAILED
        except Exception as e:
            logger.error(f"Operator alert failed: {e}", exc_info=True)
            return FAILED

    def send_transcript(self, session):
        if not Config.ENABLE_TRANSCRIPT_EMAIL:
            return FAILED
        lines = [f"Call {session.call_id} from {session.caller_contact}",
                 f"Started {session.started_at:%Y-%m-%d %H:%M:%S}", '']
        for turn in session.history:
            heard = turn.input if turn.input else '(no input)'
            lines.append(f"[{turn.at:%H:%M:%S}] {turn.stage_before} -> {turn.stage_after}: {heard}")
        if session.quote is not None:
            lines.append('')
            lines.append(f"Quoted total: {PricingService.dollars(session.quote.total)}")
        if session.collected.get('booking_id'):
            lines.append(f"Booking: {session.collected['booking_id']}")
        try:
            return SENT if self.email.send_transcript(session.call_id, session.caller_contact, lines) else FAILED
        except Exception as e:
            logger.error(f"Transcript email for {session.call_id} failed: {e}", exc_info=True)
            return FAILED
