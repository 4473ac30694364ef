import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.agents.graph import AGENT_TREATMENT
from backend.agents.treatment_recommender import TreatmentRecommenderAgent
from backend.database import database_unavailable, get_db

router = APIRouter(tags=['ai'])

logger = logging.getLogger(__name__)


class AgentRequest(BaseModel):
    message: str = Field(..., min_length=1, max_length=2000)
    doctor_id: int | None = None
    patient_id: int | None = None


class AgentResponse(BaseModel):
    success: bool = True
    output: str
    response: str
    agent_type: str = AGENT_TREATMENT
    metadata: dict[str, Any] = {}


def get_treatment_agent() -> TreatmentRecommenderAgent:
    return TreatmentRecommenderAgent()


@router.post('/agent', response_model=AgentResponse)
def run_treatment_agent(
    data: AgentRequest,
    db: Session = Depends(get_db),
    agent: TreatmentRecommenderAgent = Depends(get_treatment_agent),
):
    try:
        reply = agent.invoke(data.message.strip(), db=db, doctor_id=data.doctor_id)
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc
    except Exception as exc:
        logger.exception('Treatment agent failed')
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail='AI agent error',
        ) from exc

    return AgentResponse(output=reply.content, response=reply.content, metadata=reply.metadata)
