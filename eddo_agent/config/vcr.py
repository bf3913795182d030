import os
from enum import Enum

from pydantic import BaseModel, Field
from typing_extensions import Annotated


class ReplayMode(str, Enum):
    Record = "record"
    Playback = "playback"
    Auto = "auto"


class ReplayConfig(BaseModel):
    mode: Annotated[ReplayMode, Field(
        description="record: always call the model; playback: only replay; auto: replay, record on miss",
        default_factory=lambda: ReplayMode(os.environ.get("VCR_MODE", ReplayMode.Auto.value)),
    )]
    cassettes_dir: Annotated[str, Field(
        description="Directory holding cassette files",
        default="cassettes",
    )]
    cassette: Annotated[str | None, Field(
        description="Cassette to load for the CLI run, replay disabled when unset",
        default=None,
    )]
