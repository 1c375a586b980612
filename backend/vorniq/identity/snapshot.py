"""
Local principal snapshot.

The last confirmed principal is mirrored to local storage so a fresh process
can paint a signed-in shell before the provider answers. The snapshot is a
hint only; the provider's answer always replaces it.
"""

import json
import logging
from pathlib import Path
from typing import Optional, Protocol, Union

from vorniq.identity.models import Principal

logger = logging.getLogger(__name__)


class PrincipalSnapshotStore(Protocol):
    def load(self) -> Optional[Principal]:
        ...

    def save(self, principal: Principal) -> None:
        ...

    def clear(self) -> None:
        ...


class FilePrincipalSnapshotStore:
    """JSON file snapshot. Unreadable or corrupt files load as no principal."""

    def __init__(self, path: Union[str, Path]):
        self._path = Path(path).expanduser()

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> Optional[Principal]:
        if not self._path.exists():
            return None
        try:
            with self._path.open("r", encoding="utf-8") as handle:
                raw = json.load(handle)
            return Principal.from_dict(raw)
        except (OSError, ValueError, KeyError, TypeError) as e:
            logger.warning(
                "Discarding unreadable principal snapshot",
                extra={"path": str(self._path), "error": str(e)},
            )
            return None

    def save(self, principal: Principal) -> None:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = self._path.with_suffix(self._path.suffix + ".tmp")
            with tmp_path.open("w", encoding="utf-8") as handle:
                json.dump(principal.to_dict(), handle)
            tmp_path.replace(self._path)
        except OSError as e:
            logger.warning("Could not write principal snapshot", extra={"path": str(self._path), "error": str(e)})

    def clear(self) -> None:
        try:
            self._path.unlink(missing_ok=True)
        except OSError as e:
            logger.warning("Could not clear principal snapshot", extra={"path": str(self._path), "error": str(e)})


class InMemoryPrincipalSnapshotStore:
    def __init__(self, principal: Optional[Principal] = None):
        self._principal = principal

    def load(self) -> Optional[Principal]:
        return self._principal

    def save(self, principal: Principal) -> None:
        self._principal = principal

    def clear(self) -> None:
        self._principal = None
