# campusgate/services/entry_code_service.py
"""
Guest entry codes: short numeric codes, unique across every guest ever issued.

The code space is small (4 digits by default), so collisions are expected.
Each attempt checks the table first, then claims the code with a conditional
UPDATE inside a SAVEPOINT; the unique index on guests.entry_code catches any
concurrent approval that grabbed the same code in between. A collision costs
one retry. After ENTRY_CODE_MAX_ATTEMPTS the guest is reported as failed.
Codes are never regenerated once set.
"""

import random
import secrets
from functools import partial
from typing import Callable, Optional
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from campusgate import errors
from campusgate.config import settings
from campusgate.models.guest_request import Guest
from campusgate.utils.clock import utcnow
from campusgate.utils.logger import get_logger

logger = get_logger(__name__)

CodeGenerator = Callable[[], str]


def generate_code(rng=None) -> str:
    """Random code in the configured range, from `secrets` unless a random.Random is given."""
    low, high = settings.ENTRY_CODE_RANGE
    if rng is None:
        return str(low + secrets.randbelow(high - low + 1))
    return str(rng.randint(low, high))


def seeded_generator(seed) -> CodeGenerator:
    """Reproducible CodeGenerator for replays and load runs."""
    return partial(generate_code, random.Random(seed))


def _code_taken(db: Session, code: str) -> bool:
    return db.query(Guest.id).filter(Guest.entry_code == code).first() is not None


def _claim(db: Session, guest: Guest, code: str) -> bool:
    """
    Try to attach `code` to `guest`. Raises CodeCollision if the code is taken.
    Returns False if the guest already received a code from someone else.
    """
    if _code_taken(db, code):
        raise errors.CodeCollision(f"Entry code {code} already issued")
    try:
        with db.begin_nested():
            result = db.execute(
                update(Guest)
                .where(Guest.id == guest.id, Guest.entry_code.is_(None))
                .values(entry_code=code, code_issued_at=utcnow())
                .execution_options(synchronize_session=False)
            )
    except IntegrityError as exc:
        raise errors.CodeCollision(f"Entry code {code} already issued") from exc
    return result.rowcount == 1


def issue_entry_code(db: Session, guest: Guest, generator: Optional[CodeGenerator] = None,
                     max_attempts: Optional[int] = None) -> str:
    """Give `guest` a unique code, retrying on collision. Existing codes are returned untouched."""
    if guest.entry_code:
        return guest.entry_code

    generator = generator or generate_code
    attempts = max_attempts or settings.ENTRY_CODE_MAX_ATTEMPTS
    for attempt in range(1, attempts + 1):
        code = generator()
        try:
            claimed = _claim(db, guest, code)
        except errors.CodeCollision:
            logger.debug(f"[Codes] Collision on {code} for guest {guest.id} (attempt {attempt}/{attempts})")
            continue
        db.refresh(guest)
        if not claimed:
            logger.info(f"[Codes] Guest {guest.id} already holds code {guest.entry_code}")
        return guest.entry_code

    raise errors.CodeIssuanceFailed(guest.id, attempts)
