"""
Booking coordination: turn an accepted quote and a chosen slot into a
stored, mirrored and announced booking.

The booking store write is the one step that decides whether a booking
exists. The calendar mirror and the notifications that follow are best
effort: their failures are logged and reported to operators, and the
caller is still told the booking went through.
"""

from datetime import datetime

from config import Config
from services.booking_service import Booking, DuplicateBookingError, PersistenceError, generate_booking_id
from services.calendar_service import slot_window
from services.notification_service import BOOKING_CONFIRMATION, PAYMENT_LINK, booking_context
from services.schedule_store import CalendarEvent
from services.validation_service import LABOR_ONLY, ValidationService
from utils.logger import logger


class SlotNoLongerAvailable(Exception):
    """The chosen slot was taken between offering it and booking it."""

    def __init__(self, move_date, slot, reason=None):
        self.move_date = move_date
        self.slot = slot
        self.reason = reason
        super().__init__(f"{move_date} {slot} is no longer available: {reason}")


class BookingCoordinator:
    def __init__(self, booking_store, calendar_service, calendars, notifier, config=None):
        self.booking_store = booking_store
        self.calendar_service = calendar_service
        self.calendars = {store.name: store for store in calendars}
        self.notifier = notifier
        self.config = config or Config

    def determine_calendar(self, category):
        """Company calendar a job is mirrored to"""
        if category == LABOR_ONLY and self.config.USE_QUALITY_MOVING:
            return self.config.LABOR_CALENDAR
        return self.config.MAIN_CALENDAR

    def build_booking(self, session):
        data = session.collected
        quote = session.quote
        if quote is None:
            raise PersistenceError(f"Call {session.call_id} has no quote to book")
        window = slot_window(data['move_date'], data['slot'])
        now = datetime.now()
        return Booking(
            booking_id=generate_booking_id(),
            customer={
                'name': ' '.join(p for p in (data.get('first_name'), data.get('last_name')) if p),
                'phone': session.caller_contact or '',
                'email': data.get('email', ''),
            },
            schedule={
                'date': window.date,
                'slot': window.slot,
                'window': window.label,
                'start': window.start,
                'end': window.end,
            },
            service={
                'category': quote.category,
                'crew_size': quote.crew_size,
                'label': quote.service_label,
            },
            route={
                'pickup': data.get('pickup_address', ''),
                'delivery': data.get('delivery_address', ''),
                'distance_miles': quote.distance_miles,
                'drive_minutes': quote.drive_minutes,
            },
            price_breakdown=quote.to_dict(),
            originating_call_id=session.call_id,
            calendar=self.determine_calendar(quote.category),
            created_at=now,
            updated_at=now,
        )

    def create_booking(self, session) -> Booking:
        """
        Re-check the slot, store the booking, then mirror and notify.
        Raises SlotNoLongerAvailable or PersistenceError; nothing after the
        store write can fail the booking.
        """
        move_date = session.collected['move_date']
        slot = session.collected['slot']

        status = self.calendar_service.check_slot(move_date, slot)
        if not status['available']:
            raise SlotNoLongerAvailable(move_date, slot, status['reason'])

        booking = self.build_booking(session)
        try:
            self.booking_store.insert(booking)
        except DuplicateBookingError as e:
            raise SlotNoLongerAvailable(move_date, slot, str(e)) from e
        except PersistenceError:
            raise
        except Exception as e:
            raise PersistenceError(str(e)) from e

        logger.info(f"Booking {booking.booking_id} confirmed for call {session.call_id}: {move_date} {slot}")

        self._mirror(booking)
        self._announce(booking)
        return booking

    def _mirror(self, booking):
        store = self.calendars.get(booking.calendar)
        synced = False
        if store is None:
            logger.error(f"No calendar named {booking.calendar} for booking {booking.booking_id}")
        else:
            window = slot_window(booking.move_date, booking.slot)
            event = CalendarEvent(
                summary=f"{booking.customer['name']} - {booking.service['label']} ({booking.booking_id})",
                window=window,
                description=(
                    f"Phone: {ValidationService.format_phone(booking.customer['phone'])}\n"
                    f"Email: {booking.customer['email']}\n"
                    f"From: {booking.route['pickup']}\n"
                    f"To: {booking.route['delivery']}\n"
                    f"Crew: {booking.service['crew_size']}\n"
                    f"Estimate: ${booking.price_breakdown['total']:.2f}"
                ),
                location=booking.route['pickup'],
                booking_id=booking.booking_id,
            )
            try:
                store.add_event(event)
                synced = True
            except Exception as e:
                logger.error(f"Calendar mirror failed for {booking.booking_id} on {booking.calendar}: {e}",
                             exc_info=True)

        booking.calendar_synced = synced
        try:
            self.booking_store.mark_calendar_synced(booking.booking_id, booking.calendar, synced)
        except Exception as e:
            logger.error(f"Could not record calendar sync state for {booking.booking_id}: {e}", exc_info=True)

        if not synced:
            self.notifier.alert_operators(
                f"Calendar not synced for {booking.booking_id}",
                f"Booking {booking.booking_id} on {booking.move_date} ({booking.slot}) is confirmed "
                f"but could not be added to the {booking.calendar} calendar. Please add it manually."
            )

    def _announce(self, booking):
        try:
            context = booking_context(booking)
            results = self.notifier.dispatch(BOOKING_CONFIRMATION, context)
            results.update({f"{PAYMENT_LINK}:{k}": v for k, v in self.notifier.dispatch(PAYMENT_LINK, context).items()})
            self.notifier.notify_manager(context)
            logger.info(f"Notifications for {booking.booking_id}: {results}")
        except Exception as e:
            logger.error(f"Notification fan-out failed for {booking.booking_id}: {e}", exc_info=True)
