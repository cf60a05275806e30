"""
Login Throttling Service

WHY: Prevent brute-force password attacks by limiting failed login attempts.
After too many failures, the account is temporarily locked.

SECURITY FEATURES:
- Counts failed attempts on the user row (login_attempts)
- Lockout after MAX_FAILED_ATTEMPTS failures
- Lockout duration: LOCKOUT_DURATION
- A failure after an expired lock restarts the count at 1
- Successful login clears both the counter and the lock
"""

import logging
from datetime import timedelta

from ..extensions import db
from ..models import User
from twsystem.time_utils import utcnow

logger = logging.getLogger(__name__)

# Configuration constants
MAX_FAILED_ATTEMPTS = 5  # Lock on the 5th consecutive failure
LOCKOUT_DURATION = timedelta(hours=2)


def is_account_locked(user: User) -> tuple[bool, int | None]:
    """
    Check if an account is currently locked due to too many failed attempts.

    Returns:
    - (True, seconds_remaining) if locked
    - (False, None) if not locked
    """
    if user.lock_until is None:
        return False, None

    now = utcnow()
    lock_until = user.lock_until.replace(tzinfo=None)
    if now < lock_until:
        return True, int((lock_until - now).total_seconds())
    return False, None


def record_failed_attempt(user: User) -> int:
    """
    Record a failed login attempt and lock the account at the threshold.

    Returns the attempt count after this failure.
    """
    now = utcnow()

    if user.lock_until is not None and user.lock_until.replace(tzinfo=None) <= now:
        # Previous lock has expired: start a fresh count
        user.lock_until = None
        user.login_attempts = 1
    else:
        user.login_attempts = (user.login_attempts or 0) + 1
        locked, _ = is_account_locked(user)
        if user.login_attempts >= MAX_FAILED_ATTEMPTS and not locked:
            user.lock_until = now + LOCKOUT_DURATION
            logger.warning("Account %s locked after %s failed attempts", user.email, user.login_attempts)

    db.session.commit()
    return user.login_attempts


def reset_failed_attempts(user: User) -> None:
    """Clear the counter and any lock (caller commits)."""
    user.login_attempts = 0
    user.lock_until = None


def get_lockout_status(user: User) -> dict:
    """
    Get detailed lockout status for an account.

    Returns dict with:
    - locked: bool
    - failed_attempts: int
    - max_attempts: int
    - seconds_until_unlock: int | None
    """
    is_locked, seconds_remaining = is_account_locked(user)

    return {
        "locked": is_locked,
        "failed_attempts": user.login_attempts or 0,
        "max_attempts": MAX_FAILED_ATTEMPTS,
        "seconds_until_unlock": seconds_remaining,
        "lockout_duration_minutes": int(LOCKOUT_DURATION.total_seconds() / 60),
    }
