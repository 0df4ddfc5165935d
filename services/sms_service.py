# Twilio SMS notifications
from config import Config
from utils.logger import logger


class SMSService:
    def __init__(self, config=None, client=None):
        cfg = config or Config
        self.account_sid = cfg.TWILIO_ACCOUNT_SID
        self.auth_token = cfg.TWILIO_AUTH_TOKEN
        self.from_number = cfg.TWILIO_PHONE_NUMBER
        self.enabled = cfg.ENABLE_SMS_NOTIFICATIONS
        self.company_name = cfg.COMPANY_NAME
        self.company_phone = cfg.COMPANY_PHONE
        self.booking_link = cfg.BOOKING_LINK_URL
        self._client = client

    @property
    def client(self):
        if self._client is None:
            from twilio.rest import Client
            self._client = Client(self.account_sid, self.auth_token)
        return self._client

    def send_sms(self, to_number, message):
        """Send SMS message"""
        if not self.enabled:
            logger.info(f"SMS disabled. Would send to {to_number}: {message}")
            return None
        if not to_number:
            logger.warning("No recipient for SMS")
            return None

        try:
            message_obj = self.client.messages.create(
                body=message,
                from_=self.from_number,
                to=to_number
            )
            logger.info(f"SMS sent to {to_number}: {message_obj.sid}")
            return message_obj.sid

        except Exception as e:
            logger.error(f"Error sending SMS to {to_number}: {e}", exc_info=True)
            return None

    def send_booking_confirmation(self, ctx):
        """Send booking confirmation SMS"""
        message = f"""
{self.company_name} - Booking Confirmed!

Booking: {ctx.get('booking_id')}
Date: {ctx.get('move_date')}
Arrival: {ctx.get('window')}
From: {ctx.get('pickup')}
To: {ctx.get('delivery')}
Estimate: {ctx.get('total')}

Questions? Call {self.company_phone}
        """.strip()

        return self.send_sms(ctx.get('phone'), message)

    def send_payment_link(self, ctx):
        message = (
            f"{self.company_name}: to hold your {ctx.get('move_date')} move ({ctx.get('booking_id')}), "
            f"please pay your deposit here: {ctx.get('payment_link')}"
        )
        return self.send_sms(ctx.get('phone'), message)

    def send_cancellation(self, ctx):
        message = (
            f"{self.company_name}: your move on {ctx.get('move_date')} ({ctx.get('booking_id')}) "
            f"has been cancelled. Call {self.company_phone} to rebook."
        )
        return self.send_sms(ctx.get('phone'), message)

    def send_reschedule(self, ctx):
        message = (
            f"{self.company_name}: your move ({ctx.get('booking_id')}) is now on {ctx.get('move_date')}, "
            f"arrival {ctx.get('window')}."
        )
        return self.send_sms(ctx.get('phone'), message)

    def send_booking_link(self, phone):
        message = (
            f"Thanks for calling {self.company_name}! Book your move online with your quote here: "
            f"{self.booking_link}  Questions? Call {self.company_phone}"
        )
        return self.send_sms(phone, message)
