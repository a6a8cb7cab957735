"""
Extractors that feed pipelines from external systems.

Available extractors:
    dental-groups: Salesforce -> DENTAL_GROUPS_SOURCEPATH
    dental-practices: Salesforce -> DENTAL_PRACTICES_SOURCEPATH
    magictouch-orders: MagicTouch -> SOURCEPATH

Usage:
    extractor = create_extractor("dental-groups", storage)
    result = await extractor.extract()
"""

from functools import partial
from typing import Callable, Dict, List, Optional

from core.config import Settings
from core.exceptions import ConfigurationError
from core.storage import S3Storage
from ingestion.extractors.base import BaseExtractor
from ingestion.extractors.magictouch import MagicTouchExtractor
from ingestion.extractors.salesforce import QUERIES, SalesforceExtractor

ExtractorFactory = Callable[..., BaseExtractor]

EXTRACTORS: Dict[str, ExtractorFactory] = {
    **{name: partial(SalesforceExtractor, query) for name, query in QUERIES.items()},
    MagicTouchExtractor.name: MagicTouchExtractor,
}

# Pipelines whose extractor runs first on `run <pipeline>`
PIPELINE_EXTRACTORS: Dict[str, str] = {
    "dental-groups": "dental-groups",
    "dental-practices": "dental-practices",
    "orders": "magictouch-orders",
}


def available_extractors() -> List[str]:
    return list(EXTRACTORS)


def create_extractor(
    name: str,
    storage: S3Storage,
    config: Optional[Settings] = None,
    **kwargs,
) -> BaseExtractor:
    factory = EXTRACTORS.get(name)
    if factory is None:
        raise ConfigurationError(
            f"Unknown extractor: {name}",
            context={"extractor": name, "available": ", ".join(EXTRACTORS)},
        )
    return factory(storage, config=config, **kwargs)


__all__ = [
    "BaseExtractor",
    "SalesforceExtractor",
    "MagicTouchExtractor",
    "EXTRACTORS",
    "PIPELINE_EXTRACTORS",
    "available_extractors",
    "create_extractor",
]
