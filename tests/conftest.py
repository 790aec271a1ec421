"""Shared test fixtures for WeKan rules.

Provides in-memory SQLite engine, session, repository and service fixtures,
plus the fake board/mail collaborators from fakes.py.
"""

import pytest
from sqlalchemy.orm import Session, sessionmaker

from fakes import FakeBoard, FakeMailer
from wekan_rules.actions.dispatcher import ActionDispatcher, DispatchContext
from wekan_rules.engine import RuleEngine
from wekan_rules.models.config import RulesConfig
from wekan_rules.permissions.service import RoleService
from wekan_rules.rules.store import RuleStore
from wekan_rules.storage.engine import create_rules_engine, init_db
from wekan_rules.storage.sqlite import (
    SqliteRoleRepository,
    SqliteRuleLogRepository,
    SqliteRuleRepository,
)
from wekan_rules.storage.unit import StorageUnit
from wekan_rules.triggers.matcher import TriggerMatcher

BOARD = "b1"
ADMIN = "u-admin"


@pytest.fixture
def engine():
    """In-memory SQLite engine with all tables created."""
    eng = create_rules_engine(":memory:")
    init_db(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session(engine):
    """Session closed after each test."""
    SessionLocal = sessionmaker(bind=engine, expire_on_commit=False)
    sess = SessionLocal()
    yield sess
    sess.rollback()
    sess.close()


@pytest.fixture
def storage(session: Session) -> StorageUnit:
    return StorageUnit(session)


@pytest.fixture
def rule_repo(session: Session) -> SqliteRuleRepository:
    return SqliteRuleRepository(session)


@pytest.fixture
def role_repo(session: Session) -> SqliteRoleRepository:
    return SqliteRoleRepository(session)


@pytest.fixture
def log_repo(session: Session) -> SqliteRuleLogRepository:
    return SqliteRuleLogRepository(session)


@pytest.fixture
def roles(role_repo, storage) -> RoleService:
    return RoleService(role_repo, storage)


@pytest.fixture
def store(rule_repo, storage) -> RuleStore:
    return RuleStore(rule_repo, storage)


@pytest.fixture
def fake_board() -> FakeBoard:
    return FakeBoard()


@pytest.fixture
def mailer() -> FakeMailer:
    return FakeMailer()


@pytest.fixture
def admin(roles) -> str:
    """A BoardAdmin on b1 and b2; returns the user id."""
    roles.assign_role(ADMIN, "b1", "BoardAdmin")
    roles.assign_role(ADMIN, "b2", "BoardAdmin")
    return ADMIN


@pytest.fixture
def dispatcher(roles) -> ActionDispatcher:
    return ActionDispatcher(roles)


@pytest.fixture
def context(admin, fake_board, mailer) -> DispatchContext:
    return DispatchContext(
        actor_id=admin,
        board_api=fake_board,
        directory=fake_board,
        mail_api=mailer,
    )


@pytest.fixture
def rule_engine(store, dispatcher, fake_board, mailer, log_repo, storage) -> RuleEngine:
    return RuleEngine(
        store,
        TriggerMatcher(),
        dispatcher,
        board_api=fake_board,
        directory=fake_board,
        mail_api=mailer,
        log_repo=log_repo,
        storage=storage,
        config=RulesConfig(),
    )


# ------------------------------------------------------------------
# Shared rule shapes
# ------------------------------------------------------------------


def label_trigger(label_id: str = "L1") -> dict:
    return {
        "activityType": "addedLabel",
        "conditions": [{"field": "labelId", "operator": "equals", "value": label_id}],
    }


def color_action(color: str = "red") -> dict:
    return {"type": "card-action", "parameters": {"type": "set-color", "color": color}}
