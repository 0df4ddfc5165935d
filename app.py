from flask import Flask, request, jsonify
from twilio.twiml.voice_response import VoiceResponse, Gather
from dotenv import load_dotenv

load_dotenv()

from config import get_config
from handlers.call_flow import CallFlowEngine
from services.ai_service import AIService
from services.booking_coordinator import BookingCoordinator
from services.booking_service import build_booking_store
from services.calendar_service import CalendarService
from services.distance_service import DistanceService
from services.email_service import EmailService
from services.extraction_service import ExtractionService
from services.notification_service import NotificationService
from services.pricing_service import PricingService
from services.schedule_store import build_schedule_stores
from services.session_service import SessionStore
from services.sms_service import SMSService
from services.validation_service import ValidationService
from utils.logger import setup_logger

app = Flask(__name__)
logger = setup_logger()
cfg = get_config()
app.config.from_object(cfg)

END_STATUSES = {'completed', 'failed', 'busy', 'no-answer', 'canceled'}


def build_engine(cfg):
    """Wire the call flow to real backends, or in-memory ones where credentials are missing"""
    booking_store = build_booking_store(cfg)
    calendars = build_schedule_stores(cfg)
    calendar_service = CalendarService([booking_store] + calendars, horizon_days=cfg.BOOKING_HORIZON_DAYS)
    notifier = NotificationService(EmailService(cfg), SMSService(cfg))
    extractor = ExtractionService(
        ValidationService(),
        AIService(api_key=cfg.OPENAI_API_KEY or '', model=cfg.OPENAI_MODEL, timeout=cfg.OPENAI_TIMEOUT),
    )
    return CallFlowEngine(
        sessions=SessionStore(cfg.SESSION_IDLE_MINUTES),
        extractor=extractor,
        pricing=PricingService(cfg),
        distance=DistanceService(api_key=cfg.GOOGLE_MAPS_API_KEY or '', timeout=cfg.DISTANCE_TIMEOUT),
        calendar=calendar_service,
        coordinator=BookingCoordinator(booking_store, calendar_service, calendars, notifier, cfg),
        notifier=notifier,
        config=cfg,
    )


engine = build_engine(cfg)


def _make_gather(
    hints=None,
    input_types='speech dtmf',
    action='/voice/process',
    method='POST',
    timeout=5,
    speech_timeout='auto',
    action_on_empty=True,
):
    """Create a Twilio Gather with enhanced ASR and domain hints."""
    return Gather(
        input=input_types,
        action=action,
        method=method,
        timeout=timeout,
        speech_timeout=speech_timeout,
        language=cfg.SPEECH_LANGUAGE,
        enhanced=cfg.SPEECH_ENHANCED,
        speech_model=cfg.SPEECH_MODEL,
        hints=hints or cfg.SPEECH_HINTS,
        actionOnEmptyResult=action_on_empty,
    )


def render_action(action):
    """Turn an engine Action into TwiML"""
    response = VoiceResponse()
    voice = cfg.VOICE_NAME

    if action.gather:
        gather = _make_gather(hints=action.hints)
        for line in action.say:
            gather.say(line, voice=voice)
        response.append(gather)
        # No input at all: come back to the same stage, which counts as unrecognized
        response.redirect('/voice/process', method='POST')
        return str(response)

    for line in action.say:
        response.say(line, voice=voice)
    if action.redirect:
        response.redirect('/voice/process', method='POST')
    elif action.transfer_to:
        response.dial(action.transfer_to)
    elif action.hangup:
        response.hangup()
    return str(response)


@app.route('/voice/inbound', methods=['GET', 'POST'])
def handle_inbound_call():
    """Handle incoming calls"""
    call_sid = request.values.get('CallSid')
    from_number = request.values.get('From')

    engine.expire_idle()
    action = engine.start_call(call_sid, from_number)
    return render_action(action)


@app.route('/voice/process', methods=['POST'])
def process_speech():
    """Process speech or keypad input (or a hold redirect) for the current stage"""
    call_sid = request.values.get('CallSid')
    try:
        action = engine.handle_turn(
            call_sid,
            digits=request.values.get('Digits'),
            speech=request.values.get('SpeechResult'),
            caller=request.values.get('From'),
        )
    except Exception as e:
        logger.error(f"Error processing call {call_sid}: {e}", exc_info=True)
        response = VoiceResponse()
        response.say("I'm sorry, something went wrong. Let me connect you with our team.", voice=cfg.VOICE_NAME)
        response.dial(cfg.TRANSFER_NUMBER)
        return str(response)
    return render_action(action)


@app.route('/voice/status', methods=['GET', 'POST'])
def handle_call_status():
    """Handle call status callbacks"""
    call_sid = request.values.get('CallSid')
    call_status = request.values.get('CallStatus')

    logger.info(f"Call {call_sid} status: {call_status}")
    if call_status in END_STATUSES:
        engine.end_call(call_sid, call_status)
    return '', 200


@app.route('/health', methods=['GET'])
def health_check():
    """Health check endpoint"""
    return jsonify({
        'status': 'healthy',
        'service': f"{cfg.COMPANY_NAME} Call Agent",
        'active_calls': len(engine.sessions),
    })


if __name__ == '__main__':
    try:
        cfg.validate_config()
    except ValueError as e:
        logger.warning(f"{e}; missing backends run in memory")
    logger.info(f"Starting call agent on port {cfg.PORT}")
    app.run(host='0.0.0.0', port=cfg.PORT, debug=cfg.FLASK_DEBUG)
