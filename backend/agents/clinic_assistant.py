from backend.agents.llm import AgentReply, build_chat_model, invoke_model
from backend.agents.prompts import CLINIC_ASSISTANT_PROMPT


class ClinicAssistantAgent:
    """General clinic questions; no data access."""

    temperature = 0.7

    def __init__(self, model=None) -> None:
        self.model = model if model is not None else build_chat_model(self.temperature)

    def invoke(self, user_input: str, db=None, doctor_id: int | None = None, history=()) -> AgentReply:
        del db, doctor_id
        content = invoke_model(self.model, CLINIC_ASSISTANT_PROMPT, history, user_input, "clinic_assistant")
        return AgentReply(content=content)
