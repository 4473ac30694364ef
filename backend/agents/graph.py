"""LangGraph workflow behind the clinic chat.

router -> agent -> memory_update -> formatter. The router picks an agent by
keyword, the agent node runs it against the database session for this
request, and the memory node appends the turn to the rolling history.
"""

import logging
from typing import Any, Callable, Mapping, TypedDict

from langgraph.graph import END, StateGraph
from sqlalchemy.orm import Session

from backend.agents.appointment_agent import AppointmentAgent
from backend.agents.clinic_assistant import ClinicAssistantAgent
from backend.agents.treatment_recommender import TreatmentRecommenderAgent
from backend.core import config

logger = logging.getLogger(__name__)

AGENT_APPOINTMENT = "appointment"
AGENT_TREATMENT = "treatment"
AGENT_CLINIC = "clinic"

APPOINTMENT_KEYWORDS = ("appointment", "book", "schedule", "available", "slot")
TREATMENT_KEYWORDS = ("treatment", "pain", "symptom", "cavity", "tooth", "procedure", "price", "cost")

ERROR_REPLY = "I apologize, but I encountered an error. Please try again or contact support."

DEFAULT_AGENT_FACTORIES: dict[str, Callable[[], Any]] = {
    AGENT_APPOINTMENT: AppointmentAgent,
    AGENT_TREATMENT: TreatmentRecommenderAgent,
    AGENT_CLINIC: ClinicAssistantAgent,
}


class ClinicState(TypedDict, total=False):
    input: str
    agent_type: str
    output: str
    memory: list[dict[str, str]]
    context: dict[str, Any]
    metadata: dict[str, Any]
    response: dict[str, Any]


def classify_message(message: str) -> str:
    lowered = message.lower()
    if any(keyword in lowered for keyword in APPOINTMENT_KEYWORDS):
        return AGENT_APPOINTMENT
    if any(keyword in lowered for keyword in TREATMENT_KEYWORDS):
        return AGENT_TREATMENT
    return AGENT_CLINIC


def create_clinic_graph(db: Session, agent_factories: Mapping[str, Callable[[], Any]] | None = None):
    """Compile the chat graph for one request.

    ``agent_factories`` maps agent type to a zero-argument callable returning
    an object with ``invoke(user_input, db=..., doctor_id=..., history=...)``.
    """
    factories = dict(DEFAULT_AGENT_FACTORIES)
    if agent_factories:
        factories.update(agent_factories)

    def router(state: ClinicState) -> dict:
        agent_type = classify_message(state["input"])
        logger.debug("Routing chat message to %s agent", agent_type)
        return {"agent_type": agent_type}

    def run_agent(state: ClinicState) -> dict:
        agent_type = state["agent_type"]
        context = state.get("context") or {}
        try:
            agent = factories[agent_type]()
            reply = agent.invoke(
                state["input"],
                db=db,
                doctor_id=context.get("doctor_id"),
                history=state.get("memory") or [],
            )
        except Exception as exc:
            logger.exception("%s agent failed", agent_type)
            return {"output": ERROR_REPLY, "metadata": {"error": type(exc).__name__}}
        return {"output": reply.content, "metadata": reply.metadata}

    def update_memory(state: ClinicState) -> dict:
        memory = list(state.get("memory") or [])
        memory.append({"role": "user", "content": state["input"]})
        memory.append({"role": "assistant", "content": state.get("output", "")})
        return {"memory": memory[-config.CHAT_HISTORY_MAX_MESSAGES:]}

    def format_response(state: ClinicState) -> dict:
        return {
            "response": {
                "output": state.get("output", ""),
                "agent_type": state["agent_type"],
                "metadata": state.get("metadata") or {},
            }
        }

    workflow = StateGraph(ClinicState)
    workflow.add_node("router", router)
    workflow.add_node("agent", run_agent)
    workflow.add_node("memory_update", update_memory)
    workflow.add_node("formatter", format_response)

    workflow.set_entry_point("router")
    workflow.add_edge("router", "agent")
    workflow.add_edge("agent", "memory_update")
    workflow.add_edge("memory_update", "formatter")
    workflow.add_edge("formatter", END)

    return workflow.compile()


def run_clinic_chat(
    db: Session,
    message: str,
    history: list[dict[str, str]] | None = None,
    context: dict[str, Any] | None = None,
    agent_factories: Mapping[str, Callable[[], Any]] | None = None,
) -> ClinicState:
    graph = create_clinic_graph(db, agent_factories)
    return graph.invoke({
        "input": message,
        "memory": list(history or []),
        "context": dict(context or {}),
        "metadata": {},
    })
