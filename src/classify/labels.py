from __future__ import annotations

import logging
import os

from contracts.manifest import UNKNOWN_DOC_TYPE
from staging.config import ClassifyConfig
from staging.data_access import HIDDEN_PREFIX
from staging.errors import ConfigurationError
from staging.natural_sort import natural_sorted

logger = logging.getLogger(__name__)

# Quoting punctuation small models tend to wrap answers in.
_STRIP_CHARS = ".\"'`«»“”‘’"
_STRIP_TABLE = str.maketrans("", "", _STRIP_CHARS)


def normalize_label(raw: str) -> str:
    return raw.strip().lower().translate(_STRIP_TABLE).strip()


def load_allowed_labels(config: ClassifyConfig) -> tuple[str, ...]:
    """
    Allowed classification labels: the inline `classify.labels` list if given,
    otherwise one label per entry name in `classify.labelsDir` (file suffixes
    dropped, hidden entries ignored).
    """

    if config.labels is not None:
        names = list(config.labels)
    else:
        if config.labels_dir is None:
            raise ConfigurationError("classify.labelsDir is required when classify.labels is not set")
        try:
            with os.scandir(config.labels_dir) as it:
                names = [os.path.splitext(e.name)[0] for e in it if not e.name.startswith(HIDDEN_PREFIX)]
        except OSError as e:
            raise ConfigurationError(f"Cannot list labels directory {config.labels_dir}: {e}") from e

    labels = {normalize_label(n) for n in names}
    labels.discard("")
    labels.discard(UNKNOWN_DOC_TYPE)
    if not labels:
        raise ConfigurationError("No classification labels configured")
    return tuple(natural_sorted(labels))
