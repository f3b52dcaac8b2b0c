"""
Row-Access Emulation Wrapper.

Runs a block inside one transaction while impersonating a subject and a
role. The identity is exposed the way PostgreSQL row-level security
helpers expect it: as the request settings ``request.jwt.claim.sub`` and
``request.jwt.claim.role``, readable from SQL with
``request_setting(name)`` and from Python with ``db.setting(name)``.

Invariants:
    - Outside the wrapper the role is ADMIN_ROLE and the subject is None
    - Both settings are reset before the transaction commits or rolls
      back, whatever the block did
    - The wrapper never nests transactions

How to change safely:
    - Keep the reset in the finally block ahead of commit/rollback
    - Adding claims means adding settings here and to default_settings()

Example:
    >>> run_as = with_identity(Identity(subject=user_id, role="authenticated"), session)
    >>> rows = await run_as(lambda db: db.execute("SELECT request_setting('request.jwt.claim.sub') AS sub"))
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Optional, TypeVar

from ..engine.base import ADMIN_ROLE, ROLE_SETTING, SUBJECT_SETTING, default_settings

if TYPE_CHECKING:
    from ..engine.database import Database
    from ..engine.session import EngineSession

logger = logging.getLogger(__name__)

T = TypeVar("T")

Block = Callable[["Database"], Awaitable[T]]


@dataclass(frozen=True)
class Identity:
    """Subject and role to impersonate.

    Attributes:
        subject: Subject identifier (request.jwt.claim.sub), None for none
        role: Role name (request.jwt.claim.role)
    """

    subject: Optional[str]
    role: str

    def __post_init__(self) -> None:
        if not self.role or not self.role.strip():
            raise ValueError("Identity role cannot be empty")

    @property
    def is_admin(self) -> bool:
        return self.role == ADMIN_ROLE

    def to_dict(self) -> dict[str, Any]:
        return {"subject": self.subject, "role": self.role}


def current_identity(session: EngineSession) -> Identity:
    """Identity the session's statements currently run as."""
    db = session.db
    return Identity(subject=db.setting(SUBJECT_SETTING), role=db.setting(ROLE_SETTING) or ADMIN_ROLE)


def with_identity(identity: Identity, session: EngineSession) -> Callable[[Block[T]], Awaitable[T]]:
    """Build a runner that executes blocks as ``identity``.

    Args:
        identity: Subject and role to impersonate
        session: Session whose connection the block runs on

    Returns:
        ``async run(block)``; block is ``async (db) -> T`` and run returns T

    Raises:
        RuntimeError: From run() if a transaction is already open
    """

    async def run(block: Block[T]) -> T:
        db = session.db
        defaults = default_settings()
        async with db.transaction():
            db.set_setting(SUBJECT_SETTING, identity.subject)
            db.set_setting(ROLE_SETTING, identity.role)
            logger.debug(
                f"Running block as {identity.role}",
                extra={"session_id": session.id, "subject": identity.subject},
            )
            try:
                return await block(db)
            finally:
                db.set_setting(SUBJECT_SETTING, defaults[SUBJECT_SETTING])
                db.set_setting(ROLE_SETTING, defaults[ROLE_SETTING])

    return run
