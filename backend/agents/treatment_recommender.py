import json

from sqlalchemy.orm import Session, selectinload

from backend.agents.llm import AgentReply, build_chat_model, invoke_model
from backend.agents.prompts import NO_MATCH_REPLY, TREATMENT_PROMPT
from backend.models import Treatment
from backend.services.recommender import ScoredTreatment, recommend_treatments


def serialize_match(match: ScoredTreatment) -> dict:
    treatment = match.treatment
    doctor = getattr(treatment, "doctor", None)
    return {
        "id": treatment.id,
        "name": treatment.name,
        "category": getattr(treatment.category, "value", treatment.category),
        "description": treatment.description,
        "duration": treatment.duration,
        "price": treatment.price,
        "doctor": doctor.name if doctor is not None else None,
        "score": match.score,
    }


class TreatmentRecommenderAgent:
    """Matches symptoms to treatments by keyword and has the LLM explain the matches."""

    temperature = 0.6

    def __init__(self, model=None) -> None:
        self._model = model

    @property
    def model(self):
        # Built on first use so the no-match path never needs an LLM.
        if self._model is None:
            self._model = build_chat_model(self.temperature)
        return self._model

    def load_treatments(self, db: Session, doctor_id: int | None = None) -> list[Treatment]:
        query = db.query(Treatment).options(selectinload(Treatment.doctor))
        if doctor_id is not None:
            query = query.filter(Treatment.doctor_id == doctor_id)
        return query.order_by(Treatment.id.asc()).all()

    def invoke(self, user_input: str, db: Session, doctor_id: int | None = None, history=()) -> AgentReply:
        treatments = self.load_treatments(db, doctor_id)
        matches = recommend_treatments(user_input, treatments)

        if matches is None:
            return AgentReply(content=NO_MATCH_REPLY, metadata={"recommended_treatments": []})

        recommended = [serialize_match(match) for match in matches]
        system_prompt = f"{TREATMENT_PROMPT}\n\nMatching treatments: {json.dumps(recommended)}"
        content = invoke_model(self.model, system_prompt, history, user_input, "treatment_recommender")
        return AgentReply(content=content, metadata={"recommended_treatments": recommended})
