import logging
from typing import Any
from uuid import uuid4

from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import BaseModel, Field, field_validator
from sqlalchemy.orm import Session

from backend.agents.graph import run_clinic_chat
from backend.database import get_db
from backend.services.chat_sessions import ChatSessionStore

router = APIRouter(tags=['chat'])

logger = logging.getLogger(__name__)

MAX_CHAT_MESSAGE_LENGTH = 2000
CHAT_FAILED_DETAIL = 'Failed to process message'


class ChatRequest(BaseModel):
    message: str = Field(..., min_length=1, max_length=MAX_CHAT_MESSAGE_LENGTH)
    conversation_id: str | None = None
    doctor_id: int | None = None
    patient_id: int | None = None

    @field_validator('message')
    @classmethod
    def validate_message(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError('Message is required')
        return normalized


class ChatResponse(BaseModel):
    success: bool = True
    conversation_id: str
    response: str
    agent: str
    metadata: dict[str, Any] = {}


def get_chat_sessions(request: Request) -> ChatSessionStore:
    return request.app.state.chat_sessions


@router.post('', response_model=ChatResponse)
def chat(
    data: ChatRequest,
    db: Session = Depends(get_db),
    sessions: ChatSessionStore = Depends(get_chat_sessions),
):
    conversation_id = data.conversation_id or f'conv_{uuid4().hex}'
    history = sessions.get(conversation_id) or []

    try:
        state = run_clinic_chat(
            db,
            data.message,
            history=history,
            context={'doctor_id': data.doctor_id, 'patient_id': data.patient_id},
        )
    except Exception as exc:
        logger.exception('Chat workflow failed for conversation %s', conversation_id)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=CHAT_FAILED_DETAIL,
        ) from exc

    sessions.put(conversation_id, state.get('memory') or [])
    response = state['response']
    return ChatResponse(
        conversation_id=conversation_id,
        response=response['output'],
        agent=response['agent_type'],
        metadata=response['metadata'],
    )


@router.delete('/{conversation_id}')
def clear_conversation(conversation_id: str, sessions: ChatSessionStore = Depends(get_chat_sessions)):
    if not sessions.delete(conversation_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='Conversation not found')
    return {'success': True, 'message': 'Conversation cleared'}
