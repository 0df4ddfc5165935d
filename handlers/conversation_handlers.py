# Stage handlers for the quote interview: greeting through packing
from handlers.stages import (
    APPLIANCES, APPLIANCES_DETAILS, DELIVERY_ADDRESS, DELIVERY_BEDROOMS, DELIVERY_HOME_TYPE, DELIVERY_STAIRS,
    GREETING, HEAVY_ITEMS, HEAVY_ITEMS_DETAILS, MAIN_MENU, OK, PACKING_SERVICES, PICKUP_ADDRESS, PICKUP_BEDROOMS,
    PICKUP_HOME_TYPE, PICKUP_STAIRS, SERVICE_TYPE, UNRECOGNIZED, Outcome,
)
from services.session_service import ESCAPE
from utils.logger import logger

RETRY_MESSAGE = "Sorry, I didn't catch that."
ESCAPE_DEFLECTION = "I'd love to help you first. Let me get you a quick quote, it only takes a minute."


def collect(engine, text, field_name, target, say=None):
    """Extract one field and store it under target, or ask again"""
    extraction = engine.extractor.extract(text, field_name)
    if not extraction.ok:
        return Outcome(UNRECOGNIZED, say=[RETRY_MESSAGE], extraction=extraction)
    return Outcome(OK, {target: extraction.value}, say=list(say or []), extraction=extraction)


def handle_greeting(engine, session, text):
    company = engine.config.COMPANY_NAME
    return Outcome(OK, say=[f"Thank you for calling {company}!"])


def _escape(session, say_first):
    """Hidden transfer digit: deflect the first time, connect the second"""
    uses = session.bump(ESCAPE)
    logger.info(f"Call {session.call_id} used the hidden transfer option ({uses})")
    if uses >= 2:
        return Outcome('transfer', say=["Let me connect you with our team."])
    return Outcome('escape', say=[say_first])


def handle_main_menu(engine, session, text):
    extraction = engine.extractor.extract(text, 'menu_choice')
    if not extraction.ok:
        return Outcome(UNRECOGNIZED, say=[RETRY_MESSAGE], extraction=extraction)

    choice = extraction.value
    if choice == 'escape':
        outcome = _escape(session, ESCAPE_DEFLECTION)
        if outcome.input_class == 'escape':
            outcome.fields = {'menu_choice': 'quote'}
        outcome.extraction = extraction
        return outcome
    if choice == 'book':
        return Outcome('book', {'menu_choice': 'book'}, extraction=extraction)
    return Outcome('quote', {'menu_choice': 'quote'}, say=["Perfect!"], extraction=extraction)


def handle_service_type(engine, session, text):
    if (text or '').strip() == '9' or engine.extractor.validator.wants_person(text):
        return _escape(session, ESCAPE_DEFLECTION)
    outcome = collect(engine, text, 'service_category', 'service_category')
    if outcome.input_class == OK:
        label = 'movers and a truck' if outcome.fields['service_category'] == 'full-service-moving' else 'labor only'
        outcome.say.append(f"Got it, {label}.")
    return outcome


def _address_handler(target):
    def handler(engine, session, text):
        return collect(engine, text, 'address', target)
    handler.__name__ = f"handle_{target}"
    return handler


def _home_type_handler(target):
    def handler(engine, session, text):
        return collect(engine, text, 'home_type', target)
    handler.__name__ = f"handle_{target}"
    return handler


def _bedrooms_handler(target):
    def handler(engine, session, text):
        return collect(engine, text, 'bedrooms', target)
    handler.__name__ = f"handle_{target}"
    return handler


def _stairs_handler(target):
    def handler(engine, session, text):
        outcome = collect(engine, text, 'stairs', target)
        if outcome.input_class == OK and outcome.extraction.source == 'default':
            outcome.say.append("I'll note no stairs there.")
        return outcome
    handler.__name__ = f"handle_{target}"
    return handler


def _items_question(field_name, flag, details_target):
    """Yes/no question that also accepts the items named right away"""
    def handler(engine, session, text):
        listed = engine.extractor.extract(text, field_name)
        if listed.ok and listed.source == 'rules':
            return Outcome('listed', {flag: True, details_target: listed.value}, extraction=listed)

        answer = engine.extractor.extract(text, 'yes_no')
        if not answer.ok:
            return Outcome(UNRECOGNIZED, say=[RETRY_MESSAGE], extraction=answer)
        if answer.value:
            return Outcome('yes', {flag: True}, extraction=answer)
        return Outcome('no', {flag: False, details_target: []}, extraction=answer)
    handler.__name__ = f"handle_{flag}"
    return handler


def _items_details(field_name, target):
    def handler(engine, session, text):
        return collect(engine, text, field_name, target, say=["Got it."])
    handler.__name__ = f"handle_{target}_details"
    return handler


def handle_packing(engine, session, text):
    outcome = collect(engine, text, 'packing', 'packing')
    if outcome.input_class == OK and outcome.fields['packing']:
        outcome.say.append("Great, we'll include packing.")
    return outcome


HANDLERS = {
    GREETING: handle_greeting,
    MAIN_MENU: handle_main_menu,
    SERVICE_TYPE: handle_service_type,
    PICKUP_ADDRESS: _address_handler('pickup_address'),
    PICKUP_HOME_TYPE: _home_type_handler('pickup_home_type'),
    PICKUP_BEDROOMS: _bedrooms_handler('pickup_bedrooms'),
    PICKUP_STAIRS: _stairs_handler('pickup_stairs'),
    DELIVERY_ADDRESS: _address_handler('delivery_address'),
    DELIVERY_HOME_TYPE: _home_type_handler('delivery_home_type'),
    DELIVERY_BEDROOMS: _bedrooms_handler('delivery_bedrooms'),
    DELIVERY_STAIRS: _stairs_handler('delivery_stairs'),
    APPLIANCES: _items_question('appliances', 'has_appliances', 'appliances'),
    APPLIANCES_DETAILS: _items_details('appliances', 'appliances'),
    HEAVY_ITEMS: _items_question('heavy_items', 'has_heavy_items', 'heavy_items'),
    HEAVY_ITEMS_DETAILS: _items_details('heavy_items', 'heavy_items'),
    PACKING_SERVICES: handle_packing,
}
