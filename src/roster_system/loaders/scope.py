from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional, Sequence

from ..identities.model import creator_view
from ..identities.repository import IdentityRepository
from .batch import BatchLoader

CreatorLoader = BatchLoader[int, Dict[str, Any]]


@dataclass
class RequestLoaders:
    """Loaders for one inbound request. Never shared across requests."""

    creators: CreatorLoader

    def dispatch_all(self) -> None:
        self.creators.dispatch()


class LoaderFactory:
    def __init__(self, identities: IdentityRepository, *, max_batch_size: Optional[int] = None):
        self._identities = identities
        self._max_batch_size = max_batch_size

    def _load_creators(self, identity_ids: Sequence[int]) -> Dict[int, Dict[str, Any]]:
        found = self._identities.find_by_ids(identity_ids)
        return {i.identity_id: creator_view(i) for i in found}

    def creators(self) -> CreatorLoader:
        return BatchLoader(self._load_creators, max_batch_size=self._max_batch_size, name="creators")

    def new_scope(self) -> RequestLoaders:
        return RequestLoaders(creators=self.creators())
