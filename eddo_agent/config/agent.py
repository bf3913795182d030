import os
from enum import Enum

from pydantic import BaseModel, Field
from typing_extensions import Annotated


class PersonaId(str, Enum):
    Butler = "butler"
    GtdCoach = "gtd_coach"
    ZenMaster = "zen_master"


class AgentConfig(BaseModel):
    persona: Annotated[PersonaId, Field(
        description="Persona the agent speaks as",
        default_factory=lambda: PersonaId(os.environ.get("BOT_PERSONA_ID", PersonaId.Butler.value)),
    )]
    max_iterations: Annotated[int, Field(
        description="Maximum number of model/tool rounds per message",
        default=10,
        ge=1,
    )]
    execution_budget_seconds: Annotated[float, Field(
        description="Wall-clock budget for handling one message",
        default=120.0,
        gt=0,
    )]
    state_log_dir: Annotated[str | None, Field(
        description="Directory for final agent state dumps, disabled when unset",
        default=None,
    )]
    template_lang: Annotated[str, Field(default="en")]
