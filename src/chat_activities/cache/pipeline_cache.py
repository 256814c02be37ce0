"""
Staged pipeline cache.

Each distinct input gets a run directory identified by the digest of the
input. Every pipeline stage stores its full output in that directory, so
re-running the pipeline on the same input resumes from the last completed
stage.

Layout:
    <cache_dir>/runs/<sanitized-source>-<hash8>/run.json
    <cache_dir>/runs/<sanitized-source>-<hash8>/stages/<stage>.json

There is no cross-process lock: two processes writing the same stage of the
same run race and the last atomic replace wins.
"""

import json
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, List, Optional, Set, Type, TypeVar, Union

import structlog
from pydantic import TypeAdapter
from pydantic_core import to_jsonable_python

from ..models.cache import PipelineRun
from ..version import get_component_versions
from .backends import atomic_write_text
from .keys import hash_content, hash_file_identity, sanitize_name


logger = structlog.get_logger(__name__)

T = TypeVar("T")

RUN_METADATA_FILE = "run.json"
STAGE_NAME_PATTERN = re.compile(r"^[A-Za-z0-9_][A-Za-z0-9_.-]*$")


class PipelineCache:
    """
    Per-run, per-stage key/value store.

    Args:
        cache_dir: Root cache directory
        skip_cache: When True, stages written before this instance was
            created read as absent, so every stage recomputes and overwrites.
            Stages that are never recomputed are left on disk.
    """

    def __init__(self, cache_dir: Union[str, Path], skip_cache: bool = False):
        self.cache_dir = Path(cache_dir).expanduser()
        self.runs_dir = self.cache_dir / "runs"
        self.skip_cache = skip_cache
        self.run: Optional[PipelineRun] = None
        self._fresh_stages: Set[str] = set()

    # ------------------------------------------------------------------
    # Runs
    # ------------------------------------------------------------------

    def get_or_create_run(self, source_name: str, content: Union[str, bytes]) -> PipelineRun:
        """
        Find or create the run for raw input content.

        Args:
            source_name: Input file name (used for the directory name only)
            content: Raw input

        Returns:
            The active PipelineRun
        """
        return self._activate(source_name, hash_content(content))

    def init_run_from_file(self, path: Union[str, Path]) -> PipelineRun:
        """Find or create the run for a file, identified by name + mtime."""
        path = Path(path)
        return self._activate(path.name, hash_file_identity(path))

    def find_run(self, input_hash: str) -> Optional[PipelineRun]:
        for run in self.list_runs():
            if run.input_hash == input_hash:
                return run
        return None

    def list_runs(self) -> List[PipelineRun]:
        """All runs in the cache directory, oldest first."""
        if not self.runs_dir.exists():
            return []
        runs = []
        for meta_path in sorted(self.runs_dir.glob(f"*/{RUN_METADATA_FILE}")):
            try:
                runs.append(PipelineRun.model_validate_json(meta_path.read_text(encoding="utf-8")))
            except (OSError, ValueError) as e:
                logger.warning("pipeline_run_metadata_unreadable", path=str(meta_path), error=str(e))
        return sorted(runs, key=lambda r: r.created_at)

    def _activate(self, source_name: str, input_hash: str) -> PipelineRun:
        run = self.find_run(input_hash)
        if run is None:
            run_id = f"{sanitize_name(source_name)}-{input_hash[:8]}"
            run_dir = self.runs_dir / run_id
            run = PipelineRun(
                run_id=run_id,
                input_hash=input_hash,
                source_name=source_name,
                created_at=datetime.now(timezone.utc),
                run_dir=str(run_dir),
                versions=get_component_versions(),
            )
            atomic_write_text(run_dir / RUN_METADATA_FILE, run.model_dump_json(by_alias=True, indent=2))
            logger.info("pipeline_run_created", run_id=run_id, source_name=source_name)
        else:
            logger.info("pipeline_run_reused", run_id=run.run_id, skip_cache=self.skip_cache)

        self.run = run
        self._fresh_stages = set()
        return run

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    def _stage_path(self, name: str) -> Path:
        if self.run is None:
            raise RuntimeError("No active pipeline run; call get_or_create_run() first")
        if not STAGE_NAME_PATTERN.match(name):
            raise ValueError(f"Invalid stage name: {name!r}")
        return Path(self.run.run_dir) / "stages" / f"{name}.json"

    def has_stage(self, name: str) -> bool:
        path = self._stage_path(name)
        if self.skip_cache and name not in self._fresh_stages:
            return False
        return path.exists()

    def get_stage(self, name: str, type_: Optional[Type[T]] = None) -> Optional[Any]:
        """
        Read a stage payload.

        Args:
            name: Stage name (e.g. "candidates.all")
            type_: Optional type to validate the payload into
                (e.g. List[Candidate]); raw JSON data otherwise

        Returns:
            The payload, or None when the stage is absent
        """
        if not self.has_stage(name):
            return None
        data = json.loads(self._stage_path(name).read_text(encoding="utf-8"))
        if type_ is None:
            return data
        return TypeAdapter(type_).validate_python(data)

    def set_stage(self, name: str, payload: Any) -> None:
        """Write a stage payload, replacing any previous value."""
        path = self._stage_path(name)
        data = to_jsonable_python(payload, by_alias=True)
        atomic_write_text(path, json.dumps(data, ensure_ascii=False))
        self._fresh_stages.add(name)
        logger.debug("pipeline_stage_written", run_id=self.run.run_id, stage=name)

    def list_stages(self) -> List[str]:
        if self.run is None:
            return []
        stages_dir = Path(self.run.run_dir) / "stages"
        if not stages_dir.exists():
            return []
        return sorted(p.stem for p in stages_dir.glob("*.json"))
