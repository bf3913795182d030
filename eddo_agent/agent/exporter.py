import logging
import os
import re
from pathlib import Path

import yaml

from .state import AgentState

logger = logging.getLogger(__name__)


class AgentStateExporter:
    """Writes the final state of each agent run to a YAML file for debugging."""

    def __init__(self, output_dir: Path | str) -> None:
        self.output_dir = Path(output_dir)
        os.makedirs(self.output_dir, exist_ok=True)

    def export(self, state: AgentState, iterations: int, user_id: str, run_id: str) -> Path:
        safe_user = re.sub(r"[^a-zA-Z0-9\-_]", "_", user_id)
        path = self.output_dir / f"agent_state_{safe_user}_{run_id}.yaml"
        data = {
            "user_id": user_id,
            "iterations": iterations,
            "state": state.to_dict(),
        }
        with open(path, "w", encoding="utf-8") as fh:
            yaml.dump(
                data,
                fh,
                default_flow_style=False,
                allow_unicode=True,
                sort_keys=False,
            )
        logger.debug("Agent state exported to %s", path)
        return path
