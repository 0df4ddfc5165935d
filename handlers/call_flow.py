"""
Call flow engine.

One inbound telephony event in, one Action out. The engine looks up the
session, runs the handler for the current stage, checks the handler's
input class against the transition table, writes the stage's fields,
appends a history turn and decides what the caller hears next.
"""

from handlers import conversation_handlers, estimate_handlers
from handlers.stages import (
    AUTO_STAGES, DECISION, DONE, EXHAUSTED, FIELD_OWNERS, GREETING, HOLD_MESSAGES, PICKUP_ADDRESS, PROMPTS,
    BOOKING_SLOT, SPEECH_HINTS, TRANSFER, TRANSITIONS, UNRECOGNIZED, Action, Outcome, is_allowed_move,
)
from config import Config
from services.session_service import AMBIGUOUS_INPUT, Turn
from utils.logger import call_logger, logger

HANDLERS = dict(conversation_handlers.HANDLERS)
HANDLERS.update(estimate_handlers.HANDLERS)


class CallFlowEngine:
    def __init__(self, sessions, extractor, pricing, distance, calendar, coordinator, notifier, config=None):
        self.sessions = sessions
        self.extractor = extractor
        self.pricing = pricing
        self.distance = distance
        self.calendar = calendar
        self.coordinator = coordinator
        self.notifier = notifier
        self.config = config or Config
        self.handlers = HANDLERS

    def start_call(self, call_id, caller):
        """Open a session for a new call and greet the caller"""
        session = self.sessions.create(call_id, caller, GREETING)
        logger.info(f"Call {call_id} started from {caller}")
        return self._run(session, None)

    def handle_turn(self, call_id, digits=None, speech=None, caller=None):
        """Process the caller's keypress or utterance (or a redirect) for the current stage"""
        session = self.sessions.touch(call_id)
        if session is None:
            logger.warning(f"Call {call_id} has no session; starting over")
            return self.start_call(call_id, caller)

        text = self._select_input(digits, speech)
        call_logger(call_id).info(f"Stage: {session.stage} - Digits='{digits or ''}' "
                    f"Speech='{speech or ''}' -> Used='{text or ''}'")
        if session.stage in AUTO_STAGES:
            text = None
        return self._run(session, text)

    def end_call(self, call_id, status=None):
        """Telephony reported the call over; drop whatever is left of the session"""
        session = self.sessions.close(call_id)
        if session:
            logger.info(f"Call {call_id} ended ({status}) at stage {session.stage}")
        return session

    def expire_idle(self, now=None):
        return self.sessions.expire_idle(now)

    @staticmethod
    def _select_input(digits, speech):
        digits = (digits or '').strip()
        if digits:
            return digits
        return (speech or '').strip()

    def _run(self, session, text, lead=None):
        stage = session.stage
        try:
            outcome = self.handlers[stage](self, session, text)
        except Exception as e:
            call_logger(session.call_id).error(f"Handler for {stage} failed: {e}", exc_info=True)
            outcome = Outcome(EXHAUSTED, say=["I'm sorry, something went wrong on my end."])
        return self._apply(session, text, outcome, lead or [])

    def _next_stage(self, session, outcome):
        before = session.stage
        input_class = outcome.input_class

        if input_class == UNRECOGNIZED:
            if session.bump(AMBIGUOUS_INPUT) > self.config.MAX_STAGE_RETRIES:
                call_logger(session.call_id).info(f"Retries exhausted at {before}")
                input_class = EXHAUSTED
            else:
                return input_class, before

        if input_class == EXHAUSTED:
            return input_class, TRANSFER

        after = TRANSITIONS[before].get(input_class)
        if after is None or not is_allowed_move(before, after):
            call_logger(session.call_id).error(f"No transition from {before} on {input_class}")
            return EXHAUSTED, TRANSFER
        return input_class, after

    def _write_fields(self, session, stage, fields):
        for name in fields:
            if stage not in FIELD_OWNERS.get(name, ()):
                raise ValueError(f"Stage {stage} may not write field {name}")
        session.collected.update(fields)

    def _apply(self, session, text, outcome, lead):
        before = session.stage
        input_class, after = self._next_stage(session, outcome)

        self._write_fields(session, before, outcome.fields)
        if after != before:
            session.attempts[AMBIGUOUS_INPUT] = 0
        if (before, after) == (DECISION, PICKUP_ADDRESS):
            session.clear_quote()

        extraction = outcome.extraction
        session.record(Turn(
            stage_before=before,
            stage_after=after,
            input=text,
            extraction_kind=extraction.kind if extraction else None,
            extraction_value=extraction.value if extraction else None,
            confidence=extraction.confidence if extraction else None,
        ))
        session.stage = after
        call_logger(session.call_id).info(f"{before} -> {after} ({input_class})")

        say = lead + list(outcome.say)
        if input_class == DONE:
            return self._finish(session, say)
        if after == TRANSFER:
            # Nothing external to wait on, so connect in this same response
            return self._run(session, None, lead=say)
        if after in AUTO_STAGES:
            return Action(say=say + [HOLD_MESSAGES[after]], redirect=True)
        return Action(say=say + [self.prompt_for(after, session)], gather=True, hints=SPEECH_HINTS.get(after))

    def prompt_for(self, stage, session):
        if stage == BOOKING_SLOT and session.collected.get('offered_slots'):
            return self.calendar.format_slots_message(session.collected['move_date'],
                                                      session.collected['offered_slots'])
        return PROMPTS[stage]

    def _finish(self, session, say):
        if session.stage == TRANSFER:
            action = Action(say=say, transfer_to=self.config.TRANSFER_NUMBER)
        else:
            action = Action(say=say, hangup=True)
        self.sessions.close(session.call_id)
        logger.info(f"Call {session.call_id} finished at {session.stage}")
        self.notifier.send_transcript(session)
        return action
