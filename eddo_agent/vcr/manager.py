import logging
import time
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Awaitable, Callable, Iterator, Mapping, Sequence

from eddo_agent.config.vcr import ReplayConfig, ReplayMode
from eddo_agent.exceptions import CassetteNotFoundError, NoCassetteLoadedError, ReplayMissError
from eddo_agent.llm.generator import ResponseGenerator
from eddo_agent.types import ConversationTurn
from .cassette import (
    Cassette,
    InteractionMetadata,
    InteractionRequest,
    LLMInteraction,
    RecordedMessage,
    compute_request_hash,
    dump_cassette_file,
    load_cassette_file,
    normalize_system_prompt,
    sanitize_cassette_name,
    truncate_for_storage,
)
from .clock import LogicalClock

logger = logging.getLogger(__name__)


class CassetteManager:
    """Records and replays model interactions for one test run.

    A manager owns a single cassette and its cursor, so it must not be shared
    between concurrent runs. Replay walks forward from the cursor: requests are
    answered in the order they were recorded, even when several share a hash.
    """

    def __init__(
            self,
            cassettes_dir: Path | str,
            mode: ReplayMode = ReplayMode.Auto,
            clock: LogicalClock | None = None,
    ):
        self.cassettes_dir = Path(cassettes_dir)
        self.mode = ReplayMode(mode)
        self.clock = clock or LogicalClock()
        self.cassette: Cassette | None = None
        self.cursor = 0
        self._modified = False
        self._path: Path | None = None

    @classmethod
    def from_config(cls, config: ReplayConfig, clock: LogicalClock | None = None) -> 'CassetteManager':
        return cls(config.cassettes_dir, config.mode, clock)

    @property
    def is_replaying(self) -> bool:
        return self.cassette is not None and self.mode != ReplayMode.Record

    @property
    def modified(self) -> bool:
        return self._modified

    def cassette_path(self, name: str) -> Path:
        return self.cassettes_dir / f"{sanitize_cassette_name(name)}.yaml"

    def load_cassette(self, name: str) -> Cassette:
        """Load (or start) the cassette for a test and freeze the clock at its recorded time.

        Raises:
            CassetteNotFoundError: in playback mode when no cassette is stored.
        """
        if self.cassette is not None:
            self.eject_cassette()
        path = self.cassette_path(name)
        if self.mode != ReplayMode.Record and path.exists():
            cassette = load_cassette_file(path)
            logger.info(f"Loaded cassette {name} with {len(cassette.interactions)} interactions ({self.mode.value})")
        elif self.mode == ReplayMode.Playback:
            raise CassetteNotFoundError(str(path))
        else:
            now = self.clock.now().astimezone(timezone.utc).isoformat()
            cassette = Cassette(test_name=name, created_at=now, frozen_time=now)
            logger.info(f"Created new cassette {name} ({self.mode.value})")
        self.cassette = cassette
        self.cursor = 0
        self._modified = False
        self._path = path
        self.clock.freeze(cassette.frozen_time)
        return cassette

    def save_cassette(self) -> Path:
        if self.cassette is None or self._path is None:
            raise NoCassetteLoadedError()
        dump_cassette_file(self.cassette, self._path)
        self._modified = False
        logger.info(f"Saved cassette {self.cassette.test_name} to {self._path}")
        return self._path

    def eject_cassette(self) -> None:
        if self.cassette is not None and self._modified:
            self.save_cassette()
        self.clock.unfreeze()
        self.cassette = None
        self._path = None
        self.cursor = 0
        self._modified = False

    @contextmanager
    def use_cassette(self, name: str) -> Iterator['CassetteManager']:
        self.load_cassette(name)
        try:
            yield self
        finally:
            self.eject_cassette()

    def _find_from_cursor(self, request_hash: str) -> int | None:
        assert self.cassette is not None
        for index in range(self.cursor, len(self.cassette.interactions)):
            if self.cassette.interactions[index].request_hash == request_hash:
                return index
        return None

    async def handle_interaction(
            self,
            model: str,
            system_prompt: str,
            messages: Sequence[Mapping[str, Any]],
            call: Callable[[], Awaitable[str]],
    ) -> str:
        """Answer one model request from the cassette or by calling through, depending on the mode.

        Raises:
            NoCassetteLoadedError: if no cassette has been loaded.
            ReplayMissError: in playback mode when no recorded interaction matches.
        """
        if self.cassette is None:
            raise NoCassetteLoadedError()
        request_hash = compute_request_hash(model, system_prompt, messages)

        if self.mode != ReplayMode.Record:
            index = self._find_from_cursor(request_hash)
            if index is not None:
                if index > self.cursor:
                    skipped = [i.request_hash for i in self.cassette.interactions[self.cursor:index]]
                    logger.warning(f"Hash mismatch at index {self.cursor}: skipped {skipped} to reach {request_hash}")
                self.cursor = index + 1
                logger.debug(f"Replaying interaction {index} ({request_hash})")
                return self.cassette.interactions[index].response
            if self.mode == ReplayMode.Playback:
                raise ReplayMissError(request_hash, self.cursor, self.cassette.test_name)
            if self.cursor < len(self.cassette.interactions):
                logger.warning(
                    f"Hash mismatch at index {self.cursor} ({request_hash}), "
                    f"dropping {len(self.cassette.interactions) - self.cursor} stale interactions")
                del self.cassette.interactions[self.cursor:]
                self._modified = True

        started = time.perf_counter()
        response = await call()
        elapsed_ms = (time.perf_counter() - started) * 1000
        self.cassette.interactions.append(LLMInteraction(
            request_hash=request_hash,
            request=InteractionRequest(
                model=model,
                system_prompt=normalize_system_prompt(system_prompt),
                messages=[
                    RecordedMessage(role=m["role"], content=truncate_for_storage(m["content"]))
                    for m in messages
                ],
            ),
            response=response,
            metadata=InteractionMetadata(
                recorded_at=datetime.now(timezone.utc).isoformat(),
                response_time_ms=round(elapsed_ms, 3),
            ),
        ))
        self.cursor = len(self.cassette.interactions)
        self._modified = True
        logger.debug(f"Recorded interaction {self.cursor - 1} ({request_hash}) in {elapsed_ms:.0f}ms")
        return response


class CachedResponseGenerator:
    """ResponseGenerator that routes every call through a CassetteManager."""

    def __init__(self, generator: ResponseGenerator, manager: CassetteManager):
        self.generator = generator
        self.manager = manager
        self.model_name = generator.model_name

    async def generate(self, history: Sequence[ConversationTurn], system_prompt: str) -> str:
        messages = [{"role": turn.role.value, "content": turn.content} for turn in history]
        return await self.manager.handle_interaction(
            self.model_name,
            system_prompt,
            messages,
            lambda: self.generator.generate(history, system_prompt),
        )
