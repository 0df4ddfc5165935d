# Stage handlers from the distance lookup through booking, quote email and transfer
from handlers.conversation_handlers import RETRY_MESSAGE, collect
from handlers.stages import (
    BOOKING_CONTACT, BOOKING_CREATE, BOOKING_DATE, BOOKING_SLOT, BOOKING_START, CALCULATE_DISTANCE, DECISION, DONE,
    EMAIL_QUOTE, FINALIZE_QUOTE, OK, SEND_BOOKING_LINK, TRANSFER, UNRECOGNIZED, Outcome,
)
from services.booking_coordinator import SlotNoLongerAvailable
from services.booking_service import PersistenceError
from services.calendar_service import slot_label
from services.notification_service import EMAIL, QUOTE_ONLY, SENT, quote_context
from services.session_service import SLOT_UNAVAILABLE
from utils.logger import call_logger, logger

TRANSFER_APOLOGY = "I'm having trouble with that. Let me connect you with someone who can help."


def spell_out(booking_id):
    """Read an id character by character"""
    return ' '.join(ch for ch in booking_id if ch.isalnum())


def handle_calculate_distance(engine, session, text):
    data = session.collected
    route = engine.distance.get_route(data.get('pickup_address'), data.get('delivery_address'))
    call_logger(session.call_id).info(f"Route {route['distance_miles']} mi via {route['source']}")
    return Outcome(OK, {
        'distance_miles': route['distance_miles'],
        'drive_minutes': route['drive_minutes'],
        'distance_source': route['source'],
    })


def handle_finalize_quote(engine, session, text):
    data = session.collected
    pricing = engine.pricing
    try:
        category = data['service_category']
        distance = data['distance_miles']
        crew = pricing.determine_crew_size(
            category,
            data.get('pickup_bedrooms'), data.get('pickup_stairs'),
            data.get('delivery_bedrooms'), data.get('delivery_stairs'),
        )
        hours = pricing.estimate_hours(category, distance)
        quote = pricing.calculate_quote(
            category, distance, crew, hours,
            drive_minutes=data.get('drive_minutes', 0),
            pickup={'home_type': data.get('pickup_home_type'), 'stairs': data.get('pickup_stairs')},
            delivery={'home_type': data.get('delivery_home_type'), 'stairs': data.get('delivery_stairs')},
            add_ons={
                'appliances': data.get('appliances'),
                'heavy_items': data.get('heavy_items'),
                'packing': data.get('packing'),
            },
        )
        session.set_quote(quote)
    except (KeyError, TypeError, ValueError) as e:
        logger.error(f"Quote calculation failed for call {session.call_id}: {e}", exc_info=True)
        return Outcome('failed', say=["I'm having trouble calculating your quote. "
                                      "Let me connect you with someone who can help."])

    message = pricing.format_quote_message(quote, data.get('pickup_address'), data.get('delivery_address'))
    return Outcome(OK, {'crew_size': crew, 'hours': hours}, say=[message])


def handle_decision(engine, session, text):
    extraction = engine.extractor.extract(text, 'decision')
    if not extraction.ok:
        return Outcome(UNRECOGNIZED, say=[RETRY_MESSAGE], extraction=extraction)
    choice = extraction.value
    say = {
        'restart': ["No problem, let's go over your move details again."],
        'transfer': ["Let me transfer you now."],
        'yes': [],
        'no': [],
    }[choice]
    return Outcome(choice, {'decision': choice}, say=say, extraction=extraction)


def handle_booking_start(engine, session, text):
    extraction = engine.extractor.extract(text, 'name')
    if not extraction.ok:
        return Outcome(UNRECOGNIZED, say=[RETRY_MESSAGE], extraction=extraction)
    first, last = extraction.value
    return Outcome(OK, {'first_name': first, 'last_name': last}, say=[f"Thanks, {first}."], extraction=extraction)


def handle_booking_contact(engine, session, text):
    return collect(engine, text, 'email', 'email')


def handle_booking_date(engine, session, text):
    extraction = engine.extractor.extract(text, 'move_date')
    if not extraction.ok:
        return Outcome(UNRECOGNIZED, say=[RETRY_MESSAGE], extraction=extraction)

    move_date = extraction.value
    valid, reason = engine.calendar.validate_booking_date(move_date)
    if not valid:
        spoken = engine.calendar.format_date(move_date)
        return Outcome(UNRECOGNIZED, say=[f"{spoken} is {reason}, so I can't book it."], extraction=extraction)

    free = engine.calendar.free_slots(move_date)
    if not free:
        spoken = engine.calendar.format_date(move_date)
        return Outcome('full', {'move_date': move_date, 'offered_slots': []},
                       say=[f"I'm sorry, we're fully booked on {spoken}. Let me connect you with our team "
                            "to find another day."],
                       extraction=extraction)
    return Outcome(OK, {'move_date': move_date, 'offered_slots': free}, extraction=extraction)


def handle_booking_slot(engine, session, text):
    if engine.extractor.validator.wants_different_date(text):
        return Outcome('restart', say=["Sure, let's pick another day."])

    offered = session.collected.get('offered_slots') or []
    extraction = engine.extractor.extract(text, 'slot')
    slot = extraction.value if extraction.ok else None

    if slot is None and len(offered) == 1:
        answer = engine.extractor.extract(text, 'yes_no')
        if answer.ok and answer.value:
            slot, extraction = offered[0], answer
        elif answer.ok:
            return Outcome('restart', say=["Okay, let's pick another day."], extraction=answer)

    if slot is None:
        return Outcome(UNRECOGNIZED, say=[RETRY_MESSAGE], extraction=extraction)
    if slot not in offered:
        return Outcome(UNRECOGNIZED, say=[f"I'm sorry, the {slot} window is already taken that day."],
                       extraction=extraction)
    return Outcome(OK, {'slot': slot}, say=[f"The {slot} window, {slot_label(slot)}."], extraction=extraction)


def handle_booking_create(engine, session, text):
    try:
        booking = engine.coordinator.create_booking(session)
    except SlotNoLongerAvailable as e:
        taken = session.bump(SLOT_UNAVAILABLE)
        logger.warning(f"Call {session.call_id} lost its slot ({taken}): {e}")
        if taken > engine.config.MAX_SLOT_RETRIES:
            return Outcome('failed', say=["I'm sorry, that time was just booked. "
                                          "Let me connect you with our team to find another time."])
        return Outcome('taken', say=["I'm sorry, that window was just booked by someone else. "
                                     "Let's find another time."])
    except PersistenceError as e:
        logger.error(f"Booking failed for call {session.call_id}: {e}", exc_info=True)
        return Outcome('failed', say=["I'm having trouble completing your booking. "
                                      "Let me transfer you to someone who can help."])

    spoken_date = engine.calendar.format_date(booking.move_date)
    say = [
        f"Perfect! Your move is confirmed for {spoken_date}, with our crew arriving between "
        f"{booking.schedule['window']}.",
        f"Your booking I D is {spell_out(booking.booking_id)}.",
        f"We've sent a confirmation to {booking.customer['email']}, and a text with a link to pay your deposit.",
        f"Thanks for choosing {engine.config.COMPANY_NAME}!",
    ]
    return Outcome(DONE, {'booking_id': booking.booking_id, 'calendar_synced': booking.calendar_synced}, say=say)


def handle_email_quote(engine, session, text):
    validator = engine.extractor.validator
    if not validator.extract_email(text or '') and validator.validate_yes_no(text) == 'no':
        return Outcome(DONE, say=[f"No problem. Thanks for calling {engine.config.COMPANY_NAME}, "
                                  "and call us back anytime to book."])

    extraction = engine.extractor.extract(text, 'email')
    if not extraction.ok:
        return Outcome(UNRECOGNIZED, say=[RETRY_MESSAGE], extraction=extraction)

    context = quote_context(session.quote, session.collected, session.caller_contact)
    context['email'] = extraction.value
    status = engine.notifier.notify(EMAIL, QUOTE_ONLY, context)
    if status == SENT:
        say = f"I've sent your quote to {extraction.value}."
    else:
        say = "I wasn't able to send the email right now, but our office will follow up with your quote."
    return Outcome(DONE, {'quote_email': extraction.value, 'quote_email_status': status},
                   say=[say, f"Thanks for calling {engine.config.COMPANY_NAME}!"], extraction=extraction)


def handle_send_booking_link(engine, session, text):
    status = engine.notifier.send_booking_link(session.caller_contact)
    if status == SENT:
        say = "I've texted you a link where you can book with your quote. Thanks for calling!"
    else:
        say = f"I wasn't able to send the text. You can book anytime at {engine.config.WEBSITE}. Thanks for calling!"
    return Outcome(DONE, {'booking_link_status': status}, say=[say])


def handle_transfer(engine, session, text):
    return Outcome(DONE, say=["Please hold while I connect you."])


HANDLERS = {
    CALCULATE_DISTANCE: handle_calculate_distance,
    FINALIZE_QUOTE: handle_finalize_quote,
    DECISION: handle_decision,
    BOOKING_START: handle_booking_start,
    BOOKING_CONTACT: handle_booking_contact,
    BOOKING_DATE: handle_booking_date,
    BOOKING_SLOT: handle_booking_slot,
    BOOKING_CREATE: handle_booking_create,
    EMAIL_QUOTE: handle_email_quote,
    SEND_BOOKING_LINK: handle_send_booking_link,
    TRANSFER: handle_transfer,
}
