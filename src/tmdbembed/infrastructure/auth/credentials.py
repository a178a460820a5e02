"""Single-account credential check."""

from __future__ import annotations

import hmac


def authenticate(
    username: str,
    password: str,
    *,
    expected_username: str,
    expected_password: str,
) -> bool:
    """Compare submitted credentials against the configured account.

    Both comparisons always run so timing does not reveal which field
    was wrong.  An unconfigured account (empty password) never matches.
    """
    if not expected_password:
        return False
    user_ok = hmac.compare_digest(username.encode(), expected_username.encode())
    pass_ok = hmac.compare_digest(password.encode(), expected_password.encode())
    return user_ok and pass_ok
