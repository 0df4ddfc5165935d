"""
Call protocol: stage names, the transition table and the prompt read on
entering each stage.

TRANSITIONS[stage][input_class] gives the next stage. Two edges are implicit
for every stage that takes caller input: 'unrecognized' re-prompts the same
stage, and 'exhausted' (retry budget spent) goes to TRANSFER.
"""

from dataclasses import dataclass, field
from typing import List, Optional

GREETING = 'greeting'
MAIN_MENU = 'main-menu'
SEND_BOOKING_LINK = 'send-booking-link'
SERVICE_TYPE = 'service-type'
PICKUP_ADDRESS = 'pickup-address'
PICKUP_HOME_TYPE = 'pickup-home-type'
PICKUP_BEDROOMS = 'pickup-bedrooms'
PICKUP_STAIRS = 'pickup-stairs'
DELIVERY_ADDRESS = 'delivery-address'
DELIVERY_HOME_TYPE = 'delivery-home-type'
DELIVERY_BEDROOMS = 'delivery-bedrooms'
DELIVERY_STAIRS = 'delivery-stairs'
APPLIANCES = 'appliances'
APPLIANCES_DETAILS = 'appliances-details'
HEAVY_ITEMS = 'heavy-items'
HEAVY_ITEMS_DETAILS = 'heavy-items-details'
PACKING_SERVICES = 'packing-services'
CALCULATE_DISTANCE = 'calculate-distance'
FINALIZE_QUOTE = 'finalize-quote'
DECISION = 'decision'
BOOKING_START = 'booking-start'
BOOKING_CONTACT = 'booking-contact'
BOOKING_DATE = 'booking-date'
BOOKING_SLOT = 'booking-slot'
BOOKING_CREATE = 'booking-create'
EMAIL_QUOTE = 'email-quote'
TRANSFER = 'transfer'

PROTOCOL_ORDER = [
    GREETING, MAIN_MENU, SEND_BOOKING_LINK, SERVICE_TYPE,
    PICKUP_ADDRESS, PICKUP_HOME_TYPE, PICKUP_BEDROOMS, PICKUP_STAIRS,
    DELIVERY_ADDRESS, DELIVERY_HOME_TYPE, DELIVERY_BEDROOMS, DELIVERY_STAIRS,
    APPLIANCES, APPLIANCES_DETAILS, HEAVY_ITEMS, HEAVY_ITEMS_DETAILS, PACKING_SERVICES,
    CALCULATE_DISTANCE, FINALIZE_QUOTE, DECISION,
    BOOKING_START, BOOKING_CONTACT, BOOKING_DATE, BOOKING_SLOT, BOOKING_CREATE,
    EMAIL_QUOTE, TRANSFER,
]

# Stages that run without waiting for the caller
AUTO_STAGES = {GREETING, CALCULATE_DISTANCE, FINALIZE_QUOTE, BOOKING_CREATE, SEND_BOOKING_LINK, TRANSFER}

# Completing one of these ends the call
TERMINAL_STAGES = {SEND_BOOKING_LINK, BOOKING_CREATE, EMAIL_QUOTE, TRANSFER}

OK = 'ok'
UNRECOGNIZED = 'unrecognized'
EXHAUSTED = 'exhausted'
DONE = 'done'

TRANSITIONS = {
    GREETING: {OK: MAIN_MENU},
    MAIN_MENU: {'quote': SERVICE_TYPE, 'book': SEND_BOOKING_LINK, 'escape': SERVICE_TYPE, 'transfer': TRANSFER},
    SEND_BOOKING_LINK: {DONE: SEND_BOOKING_LINK},
    SERVICE_TYPE: {OK: PICKUP_ADDRESS, 'escape': SERVICE_TYPE, 'transfer': TRANSFER},
    PICKUP_ADDRESS: {OK: PICKUP_HOME_TYPE},
    PICKUP_HOME_TYPE: {OK: PICKUP_BEDROOMS},
    PICKUP_BEDROOMS: {OK: PICKUP_STAIRS},
    PICKUP_STAIRS: {OK: DELIVERY_ADDRESS},
    DELIVERY_ADDRESS: {OK: DELIVERY_HOME_TYPE},
    DELIVERY_HOME_TYPE: {OK: DELIVERY_BEDROOMS},
    DELIVERY_BEDROOMS: {OK: DELIVERY_STAIRS},
    DELIVERY_STAIRS: {OK: APPLIANCES},
    APPLIANCES: {'yes': APPLIANCES_DETAILS, 'no': HEAVY_ITEMS, 'listed': HEAVY_ITEMS},
    APPLIANCES_DETAILS: {OK: HEAVY_ITEMS},
    HEAVY_ITEMS: {'yes': HEAVY_ITEMS_DETAILS, 'no': PACKING_SERVICES, 'listed': PACKING_SERVICES},
    HEAVY_ITEMS_DETAILS: {OK: PACKING_SERVICES},
    PACKING_SERVICES: {OK: CALCULATE_DISTANCE},
    CALCULATE_DISTANCE: {OK: FINALIZE_QUOTE},
    FINALIZE_QUOTE: {OK: DECISION, 'failed': TRANSFER},
    DECISION: {'yes': BOOKING_START, 'no': EMAIL_QUOTE, 'transfer': TRANSFER, 'restart': PICKUP_ADDRESS},
    BOOKING_START: {OK: BOOKING_CONTACT},
    BOOKING_CONTACT: {OK: BOOKING_DATE},
    BOOKING_DATE: {OK: BOOKING_SLOT, 'full': TRANSFER},
    BOOKING_SLOT: {OK: BOOKING_CREATE, 'restart': BOOKING_DATE},
    BOOKING_CREATE: {DONE: BOOKING_CREATE, 'taken': BOOKING_DATE, 'failed': TRANSFER},
    EMAIL_QUOTE: {DONE: EMAIL_QUOTE},
    TRANSFER: {DONE: TRANSFER},
}

# The only backward moves allowed
RESTART_EDGES = {
    (DECISION, PICKUP_ADDRESS),
    (BOOKING_SLOT, BOOKING_DATE),
    (BOOKING_CREATE, BOOKING_DATE),
}

# Which stages may write each collected field
FIELD_OWNERS = {
    'menu_choice': (MAIN_MENU,),
    'booking_link_status': (SEND_BOOKING_LINK,),
    'service_category': (SERVICE_TYPE,),
    'pickup_address': (PICKUP_ADDRESS,),
    'pickup_home_type': (PICKUP_HOME_TYPE,),
    'pickup_bedrooms': (PICKUP_BEDROOMS,),
    'pickup_stairs': (PICKUP_STAIRS,),
    'delivery_address': (DELIVERY_ADDRESS,),
    'delivery_home_type': (DELIVERY_HOME_TYPE,),
    'delivery_bedrooms': (DELIVERY_BEDROOMS,),
    'delivery_stairs': (DELIVERY_STAIRS,),
    'has_appliances': (APPLIANCES,),
    'appliances': (APPLIANCES, APPLIANCES_DETAILS),
    'has_heavy_items': (HEAVY_ITEMS,),
    'heavy_items': (HEAVY_ITEMS, HEAVY_ITEMS_DETAILS),
    'packing': (PACKING_SERVICES,),
    'distance_miles': (CALCULATE_DISTANCE,),
    'drive_minutes': (CALCULATE_DISTANCE,),
    'distance_source': (CALCULATE_DISTANCE,),
    'crew_size': (FINALIZE_QUOTE,),
    'hours': (FINALIZE_QUOTE,),
    'decision': (DECISION,),
    'first_name': (BOOKING_START,),
    'last_name': (BOOKING_START,),
    'email': (BOOKING_CONTACT,),
    'move_date': (BOOKING_DATE,),
    'offered_slots': (BOOKING_DATE,),
    'slot': (BOOKING_SLOT,),
    'booking_id': (BOOKING_CREATE,),
    'calendar_synced': (BOOKING_CREATE,),
    'quote_email': (EMAIL_QUOTE,),
    'quote_email_status': (EMAIL_QUOTE,),
}


def is_forward(before, after):
    return PROTOCOL_ORDER.index(after) >= PROTOCOL_ORDER.index(before)


def is_allowed_move(before, after):
    return is_forward(before, after) or (before, after) in RESTART_EDGES


@dataclass
class Outcome:
    """What a stage handler made of one event"""
    input_class: str
    fields: dict = field(default_factory=dict)
    say: List[str] = field(default_factory=list)
    extraction: Optional[object] = None


@dataclass
class Action:
    """What the telephony gateway should do next"""
    say: List[str] = field(default_factory=list)
    gather: bool = False
    redirect: bool = False
    transfer_to: Optional[str] = None
    hangup: bool = False
    hints: Optional[str] = None


HOLD_MESSAGES = {
    CALCULATE_DISTANCE: "Thanks. Give me just a moment while I look up the distance.",
    FINALIZE_QUOTE: "Now let me put your quote together.",
    BOOKING_CREATE: "Great, one moment while I lock in your booking.",
    SEND_BOOKING_LINK: "Great! I'll text you a link to book online.",
}

PROMPTS = {
    MAIN_MENU: ("I can help you get a moving quote and schedule your move. Press 1 or say quote to get started. "
                "Or, if you've already received a quote and want to book, press 2."),
    SERVICE_TYPE: ("What type of service do you need? Press 1 or say movers and truck if you need us to bring "
                   "the truck. Press 2 or say labor only if you have your own truck and just need help loading."),
    PICKUP_ADDRESS: "What's the address you're moving from? Please include the street and city.",
    PICKUP_HOME_TYPE: ("What type of home are you moving from? Press 1 for a house, 2 for an apartment, "
                       "3 for a condo, 4 for a townhouse, or 5 for a storage unit."),
    PICKUP_BEDROOMS: "How many bedrooms are there? You can say studio, or a number.",
    PICKUP_STAIRS: "How many flights of stairs are there at the pickup? Say none if it's ground floor or there's an elevator.",
    DELIVERY_ADDRESS: "And what's the address you're moving to?",
    DELIVERY_HOME_TYPE: ("What type of home are you moving into? Press 1 for a house, 2 for an apartment, "
                         "3 for a condo, 4 for a townhouse, or 5 for a storage unit."),
    DELIVERY_BEDROOMS: "How many bedrooms are at the new place?",
    DELIVERY_STAIRS: "How many flights of stairs are at the new place?",
    APPLIANCES: "Are we moving any large appliances, like a washer, dryer, or refrigerator? Press 1 for yes or 2 for no.",
    APPLIANCES_DETAILS: "Which appliances? For example washer, dryer, refrigerator, freezer, stove, or dishwasher.",
    HEAVY_ITEMS: "Any heavy specialty items, like a piano, pool table, hot tub, or safe? Press 1 for yes or 2 for no.",
    HEAVY_ITEMS_DETAILS: "Which ones? A piano, pool table, hot tub, or safe?",
    PACKING_SERVICES: "Would you like us to handle packing for you? Press 1 for yes or 2 for no.",
    DECISION: ("Would you like to schedule this move now? Press 1 or say yes to book. Press 2 or say no if you "
               "just need the quote for now. You can also say start over to change your details."),
    BOOKING_START: "Excellent! Let me get some information to complete your booking. What's your full name?",
    BOOKING_CONTACT: "Perfect. What's your email address? Please say it slowly, like john at gmail dot com.",
    BOOKING_DATE: "When would you like to move? Please say the date, like December 20th.",
    BOOKING_SLOT: "Would you like the morning or the afternoon? Press 1 for morning or 2 for afternoon.",
    EMAIL_QUOTE: "No problem. What email address should I send your quote to? Or say no thanks.",
}

SPEECH_HINTS = {
    MAIN_MENU: 'quote,book,one,two',
    SERVICE_TYPE: 'movers and truck,labor only',
    PICKUP_HOME_TYPE: 'house,apartment,condo,townhouse,storage unit',
    DELIVERY_HOME_TYPE: 'house,apartment,condo,townhouse,storage unit',
    PICKUP_BEDROOMS: 'studio,one,two,three,four,five',
    DELIVERY_BEDROOMS: 'studio,one,two,three,four,five',
    APPLIANCES_DETAILS: 'washer,dryer,refrigerator,freezer,stove,dishwasher',
    HEAVY_ITEMS_DETAILS: 'piano,pool table,hot tub,safe',
    BOOKING_SLOT: 'morning,afternoon,different day',
}
