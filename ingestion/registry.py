"""
Pipeline registry: name -> PipelineDefinition, in registration order
"""

import logging
from typing import Dict, Iterable, Iterator, List, Optional

from core.exceptions import ConfigurationError, PipelineNotFoundError
from ingestion.pipelines.base import PipelineDefinition

logger = logging.getLogger(__name__)


class PipelineRegistry:
    """
    Immutable lookup over a fixed set of pipeline definitions.

    Built once at startup from a static sequence; duplicate names are a
    configuration error.
    """

    def __init__(self, definitions: Iterable[PipelineDefinition]):
        self._pipelines: Dict[str, PipelineDefinition] = {}

        for definition in definitions:
            if definition.name in self._pipelines:
                raise ConfigurationError(
                    f"Duplicate pipeline name: {definition.name}",
                    context={"pipeline": definition.name},
                )
            self._pipelines[definition.name] = definition

        logger.debug(f"Pipeline registry initialized: {self.names()}")

    @classmethod
    def default(cls) -> "PipelineRegistry":
        from ingestion.pipelines import PIPELINES
        return cls(PIPELINES)

    def get(self, name: str) -> PipelineDefinition:
        definition = self._pipelines.get(name)
        if definition is None:
            raise PipelineNotFoundError(
                f"Pipeline not found: {name}",
                context={"pipeline": name, "available": ", ".join(self.names())},
            )
        return definition

    def find(self, name: str) -> Optional[PipelineDefinition]:
        return self._pipelines.get(name)

    def names(self) -> List[str]:
        return list(self._pipelines)

    def __contains__(self, name: object) -> bool:
        return name in self._pipelines

    def __iter__(self) -> Iterator[PipelineDefinition]:
        return iter(self._pipelines.values())

    def __len__(self) -> int:
        return len(self._pipelines)
