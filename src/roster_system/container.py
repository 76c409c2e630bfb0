from __future__ import annotations

from dataclasses import dataclass
from types import ModuleType
from typing import Optional

from .authz.guard import AuthorizationGuard
from .cache.store import CacheStore
from .core.constants import DEFAULT_CACHE_TTL_SECONDS, MAX_PAGE_SIZE
from .database.connection import DBConfig, DatabaseConnection
from .identities.mysql_identity_repository import MySQLIdentityRepository
from .identities.repository import IdentityRepository
from .identities.service import AuthService
from .loaders.scope import LoaderFactory
from .records.invalidator import WriteInvalidator
from .records.mysql_person_repository import MySQLPersonRepository
from .records.query import QueryBuilder
from .records.reader import CacheAsideReader
from .records.repository import PersonRepository
from .records.service import RecordService
from .stats.service import StatsAggregator


@dataclass(frozen=True)
class Container:
    conn: Optional[DatabaseConnection]
    cache: CacheStore

    persons_repo: PersonRepository
    identities_repo: IdentityRepository

    query_builder: QueryBuilder
    loader_factory: LoaderFactory
    reader: CacheAsideReader
    invalidator: WriteInvalidator
    stats: StatsAggregator
    guard: AuthorizationGuard

    record_service: RecordService
    auth_service: AuthService


def build_container(
    *,
    settings: ModuleType,
    persons_repo: Optional[PersonRepository] = None,
    identities_repo: Optional[IdentityRepository] = None,
    cache: Optional[CacheStore] = None,
) -> Container:
    """Construct every component once; repositories/cache may be injected (tests)."""

    conn: Optional[DatabaseConnection] = None
    if persons_repo is None or identities_repo is None:
        conn = DatabaseConnection(
            DBConfig.from_dict(getattr(settings, "DB_CONFIG"), pool_size=getattr(settings, "DB_POOL_SIZE", 5))
        )
        persons_repo = persons_repo or MySQLPersonRepository(conn)
        identities_repo = identities_repo or MySQLIdentityRepository(conn)

    if cache is None:
        cache = CacheStore.from_url(getattr(settings, "REDIS_URL"))

    query_builder = QueryBuilder(max_page_size=int(getattr(settings, "MAX_PAGE_SIZE", MAX_PAGE_SIZE)))
    loader_factory = LoaderFactory(identities_repo)
    reader = CacheAsideReader(
        persons_repo,
        cache,
        loader_factory,
        query_builder=query_builder,
        ttl_seconds=int(getattr(settings, "CACHE_TTL_SECONDS", DEFAULT_CACHE_TTL_SECONDS)),
    )
    invalidator = WriteInvalidator(cache)
    stats = StatsAggregator(persons_repo)
    guard = AuthorizationGuard()

    record_service = RecordService(persons_repo, reader, invalidator, stats, guard)
    auth_service = AuthService(identities_repo, persons_repo)

    return Container(
        conn=conn,
        cache=cache,
        persons_repo=persons_repo,
        identities_repo=identities_repo,
        query_builder=query_builder,
        loader_factory=loader_factory,
        reader=reader,
        invalidator=invalidator,
        stats=stats,
        guard=guard,
        record_service=record_service,
        auth_service=auth_service,
    )
