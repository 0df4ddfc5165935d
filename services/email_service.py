# Email confirmations
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from html import escape

from config import Config
from utils.logger import logger

STYLE = """
    body { font-family: Arial, sans-serif; line-height: 1.6; color: #333; }
    .container { max-width: 600px; margin: 0 auto; padding: 20px; }
    .header { background-color: #2c3e50; color: white; padding: 20px; text-align: center; }
    .content { padding: 20px; background-color: #f9f9f9; }
    .details { background-color: white; padding: 15px; margin: 20px 0; border-left: 4px solid #3498db; }
    .total { font-size: 22px; font-weight: bold; color: #2c3e50; }
    .footer { text-align: center; padding: 20px; color: #666; font-size: 12px; }
"""


class EmailService:
    def __init__(self, config=None):
        cfg = config or Config
        self.email_address = cfg.EMAIL_ADDRESS
        # Normalize Gmail app password (Google shows spaces in UI; SMTP expects none)
        self.email_password = (cfg.EMAIL_PASSWORD or '').replace(' ', '')
        self.smtp_server = cfg.SMTP_SERVER
        self.smtp_port = cfg.SMTP_PORT
        self.smtp_timeout = cfg.SMTP_TIMEOUT
        self.enabled = cfg.ENABLE_EMAIL_NOTIFICATIONS
        self.company_name = cfg.COMPANY_NAME
        self.company_phone = cfg.COMPANY_PHONE
        self.company_email = cfg.COMPANY_EMAIL
        self.website = cfg.WEBSITE
        self.manager_email = cfg.MANAGER_EMAIL
        self.office_email = cfg.OFFICE_EMAIL

    def send_email(self, to_email, subject, body_html, body_plain=None):
        """Send email with HTML and plain text versions"""
        if not self.enabled:
            logger.info(f"Email disabled. Would send to {to_email}: {subject}")
            return False
        if not to_email:
            logger.warning(f"No recipient for email: {subject}")
            return False

        try:
            msg = MIMEMultipart('alternative')
            msg['From'] = f"{self.company_name} <{self.email_address}>"
            msg['To'] = to_email
            msg['Subject'] = subject

            if body_plain:
                msg.attach(MIMEText(body_plain, 'plain'))
            msg.attach(MIMEText(body_html, 'html'))

            with smtplib.SMTP(self.smtp_server, self.smtp_port, timeout=self.smtp_timeout) as server:
                server.starttls()
                server.login(self.email_address, self.email_password)
                server.send_message(msg)

            logger.info(f"Email sent to {to_email}: {subject}")
            return True

        except Exception as e:
            logger.error(f"Error sending email to {to_email}: {e}", exc_info=True)
            return False

    def _page(self, title, sections):
        body = ''.join(f'<div class="details">{section}</div>' for section in sections)
        return f"""
        <!DOCTYPE html>
        <html>
        <head><style>{STYLE}</style></head>
        <body>
            <div class="container">
                <div class="header"><h1>{escape(self.company_name)}</h1></div>
                <div class="content">
                    <h2>{escape(title)}</h2>
                    {body}
                </div>
                <div class="footer">
                    <p>{escape(self.company_name)} | {escape(self.company_phone)} | {escape(self.website)}</p>
                </div>
            </div>
        </body>
        </html>
        """

    @staticmethod
    def _rows(pairs):
        return ''.join(f"<p><strong>{escape(label)}:</strong> {escape(str(value))}</p>" for label, value in pairs)

    @staticmethod
    def _lines(pairs):
        return '\n'.join(f"{label}: {value}" for label, value in pairs)

    def _booking_pairs(self, ctx):
        return [
            ('Booking ID', ctx.get('booking_id', '')),
            ('Move Date', ctx.get('move_date', '')),
            ('Arrival Window', ctx.get('window', '')),
            ('Service', ctx.get('service_label', '')),
            ('Crew', f"{ctx.get('crew_size', '')} movers"),
            ('Pickup', ctx.get('pickup', '')),
            ('Delivery', ctx.get('delivery', '')),
            ('Estimated Total', ctx.get('total', '')),
        ]

    def send_booking_confirmation(self, ctx):
        """Send booking confirmation email"""
        subject = f"Booking Confirmed - {ctx.get('move_date')} - {self.company_name}"
        pairs = self._booking_pairs(ctx)
        html = self._page('Booking Confirmation', [
            f"<p>Dear {escape(ctx.get('name', ''))},</p><p>Your move is confirmed. Here are the details.</p>",
            self._rows(pairs),
            f"<p>Questions or changes? Call {escape(self.company_phone)} or email {escape(self.company_email)}.</p>",
        ])
        plain = (
            f"{self.company_name} - Booking Confirmation\n\n"
            f"Dear {ctx.get('name', '')},\n\nYour move is confirmed.\n\n"
            f"{self._lines(pairs)}\n\n"
            f"Questions? Call {self.company_phone}\n"
        )
        return self.send_email(ctx.get('email'), subject, html, plain)

    def send_quote(self, ctx):
        """Send the spoken estimate in writing"""
        subject = f"Your Moving Estimate - {self.company_name}"
        pairs = [
            ('Service', ctx.get('service_label', '')),
            ('Crew', f"{ctx.get('crew_size', '')} movers"),
            ('Hourly Rate', ctx.get('hourly_rate', '')),
            ('Estimated Hours', ctx.get('hours', '')),
            ('Distance', f"{ctx.get('distance_miles', '')} miles"),
            ('Pickup', ctx.get('pickup', '')),
            ('Delivery', ctx.get('delivery', '')),
        ]
        html = self._page('Your Moving Estimate', [
            f"<p>Dear {escape(ctx.get('name') or 'customer')},</p>"
            f"<p>Thank you for requesting an estimate from {escape(self.company_name)}.</p>",
            self._rows(pairs) + f"<p class=\"total\">Total Estimate: {escape(str(ctx.get('total', '')))}</p>"
                                "<p>*Final cost may vary based on actual time required</p>",
            f"<p>Ready to book? Call {escape(self.company_phone)}.</p>",
        ])
        plain = (
            f"{self.company_name} - Your Moving Estimate\n\n"
            f"{self._lines(pairs)}\nTotal Estimate: {ctx.get('total', '')}\n\n"
            f"Ready to book? Call {self.company_phone}\n"
        )
        return self.send_email(ctx.get('email'), subject, html, plain)

    def send_cancellation(self, ctx):
        subject = f"Booking Cancelled - {ctx.get('booking_id')} - {self.company_name}"
        html = self._page('Booking Cancelled', [
            f"<p>Dear {escape(ctx.get('name', ''))},</p>"
            f"<p>Your move on {escape(str(ctx.get('move_date', '')))} ({escape(str(ctx.get('booking_id', '')))}) "
            "has been cancelled.</p>",
            f"<p>To book a new date, call {escape(self.company_phone)}.</p>",
        ])
        plain = (
            f"Your move on {ctx.get('move_date', '')} ({ctx.get('booking_id', '')}) has been cancelled.\n"
            f"To book a new date, call {self.company_phone}.\n"
        )
        return self.send_email(ctx.get('email'), subject, html, plain)

    def send_reschedule(self, ctx):
        subject = f"Booking Rescheduled - {ctx.get('move_date')} - {self.company_name}"
        pairs = self._booking_pairs(ctx)
        html = self._page('Booking Rescheduled', [
            f"<p>Dear {escape(ctx.get('name', ''))},</p><p>Your move has been moved to a new date.</p>",
            self._rows(pairs),
        ])
        plain = f"Your move has been rescheduled.\n\n{self._lines(pairs)}\n"
        return self.send_email(ctx.get('email'), subject, html, plain)

    def send_manager_booking_notification(self, ctx, to_email=None):
        """Concise booking notice for the manager with customer details"""
        to_email = to_email or self.manager_email
        subject = f"New Booking Confirmed - {ctx.get('move_date')} {ctx.get('window', '')}"
        pairs = [('Name', ctx.get('name', '')), ('Phone', ctx.get('phone_display') or ctx.get('phone', '')),
                 ('Email', ctx.get('email', ''))] + self._booking_pairs(ctx)
        if not ctx.get('calendar_synced', True):
            pairs.append(('Calendar', 'NOT SYNCED - add this job manually'))
        html = self._page('New Booking Confirmed', [self._rows(pairs)])
        plain = f"{self.company_name} - New Booking Confirmed\n\n{self._lines(pairs)}\n"
        return self.send_email(to_email, subject, html, plain)

    def send_alert(self, subject, body, to_email=None):
        """Operator alert for a failure the caller never sees"""
        to_email = to_email or self.manager_email
        html = self._page(subject, [f"<pre>{escape(body)}</pre>"])
        return self.send_email(to_email, f"[Call Agent] {subject}", html, body)

    def send_transcript(self, call_id, caller, lines, to_email=None):
        """Call transcript for the office"""
        to_email = to_email or self.office_email
        subject = f"Call Transcript - {caller or 'unknown caller'} - {call_id}"
        body = '\n'.join(lines)
        html = self._page('Call Transcript', [f"<pre>{escape(body)}</pre>"])
        return self.send_email(to_email, subject, html, body)
