import logging
from pathlib import Path
from typing import List

from pydantic import TypeAdapter, ValidationError

from repo_tracker.domain.exceptions import ConfigurationException
from repo_tracker.domain.models import RepositoryConfig

logger = logging.getLogger(__name__)

_CATALOGUE = TypeAdapter(List[RepositoryConfig])


def load_repositories(path: Path) -> List[RepositoryConfig]:
    """
    Reads the list of tracked repositories from a JSON file.

    The file holds a JSON array of ``{"identifier", "dependencies", "name"}``
    objects. Repeated identifiers are dropped; the first entry wins.
    """
    try:
        text = Path(path).read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigurationException(f"Could not read repository list {path}: {e}") from e

    try:
        configs = _CATALOGUE.validate_json(text)
    except ValidationError as e:
        raise ConfigurationException(f"Invalid repository list {path}: {e}") from e

    seen = set()
    unique = []
    for config in configs:
        if config.identifier in seen:
            logger.warning(f"Repository {config.identifier} is listed more than once in {path}. Ignoring duplicate.")
            continue
        seen.add(config.identifier)
        unique.append(config)
    return unique
