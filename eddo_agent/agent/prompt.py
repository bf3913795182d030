from eddo_agent.actions.registry import ActionRegistry
from eddo_agent.template import TemplateEnvironment
from eddo_agent.vcr.clock import LogicalClock
from .persona import Persona


class SystemPromptBuilder:
    TEMPLATE_NAME = "system_prompt.jinja2"

    def __init__(
            self,
            registry: ActionRegistry,
            persona: Persona,
            clock: LogicalClock,
            template_env: TemplateEnvironment | None = None,
            lang: str = "en",
    ):
        self.registry = registry
        self.persona = persona
        self.clock = clock
        template_env = template_env or TemplateEnvironment(default_lang=lang)
        self.template = template_env.load_template(self.TEMPLATE_NAME, lang=lang)

    def build(self) -> str:
        return self.template.render(
            persona=self.persona,
            now=self.clock.now().isoformat(),
            tools_live=self.registry.live_available,
            action_groups=self.registry.describe_actions(),
        )
