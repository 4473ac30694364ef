import json
import logging
from datetime import date, timedelta

from sqlalchemy.orm import Session

from backend.agents.llm import AgentReply, build_chat_model, invoke_model
from backend.agents.prompts import APPOINTMENT_PROMPT
from backend.core import config
from backend.services.availability import get_schedule_and_availability

logger = logging.getLogger(__name__)


class AppointmentAgent:
    """Answers availability questions from the doctor's open slots for the coming week."""

    temperature = 0.5

    def __init__(self, model=None) -> None:
        self.model = model if model is not None else build_chat_model(self.temperature)

    def find_available_slots(self, db: Session, doctor_id: int, today: date | None = None) -> list[dict[str, str]]:
        start = today or date.today()
        end = start + timedelta(days=config.AGENT_LOOKAHEAD_DAYS)
        result = get_schedule_and_availability(db, doctor_id, start, end)
        return [
            {"date": slot.date.isoformat(), "timeSlot": slot.time_slot}
            for slot in result.available_slots
        ]

    def invoke(
        self,
        user_input: str,
        db: Session | None = None,
        doctor_id: int | None = None,
        history=(),
        today: date | None = None,
    ) -> AgentReply:
        system_prompt = APPOINTMENT_PROMPT
        available_slots: list[dict[str, str]] = []

        if doctor_id is not None and db is not None:
            available_slots = self.find_available_slots(db, doctor_id, today=today)
            system_prompt = f"{system_prompt}\n\nAvailable slots: {json.dumps(available_slots)}"
            logger.debug("Doctor %s has %d open slot(s) this week", doctor_id, len(available_slots))

        content = invoke_model(self.model, system_prompt, history, user_input, "appointment_agent")
        return AgentReply(content=content, metadata={"available_slots": available_slots})
