"""
web/forms.py -- Parse and validate HTML form submissions.

Each parse_* function turns raw form strings into a typed dataclass plus a
list of user-facing error messages. Route handlers only touch storage when
the list is empty. All rules are checked and every violation is reported in
one response, not just the first.

Missing form fields arrive as "" (the route declares Form(default="")), so no
function here has to handle None.
"""

import re
from collections.abc import Callable
from dataclasses import dataclass

from core.sanitize import clean_text
from records.models import Reservation

USERNAME_MIN = 3
USERNAME_MAX = 10
PASSWORD_MIN = 12
PASSWORD_MAX = 70

_USERNAME_RE = re.compile(r"[A-Za-z0-9]+")

LOGIN_FAILED = "Invalid username or password"
USERNAME_TAKEN = "That username is already taken."
TOO_MANY_ATTEMPTS = "Too many attempts. Please wait a minute and try again."


@dataclass
class Credentials:
    username: str
    password: str


@dataclass
class PostDraft:
    title: str
    body: str


def parse_login(username: str, password: str) -> tuple[Credentials, list[str]]:
    """Parse a login form. Blank fields get the same generic message as bad credentials."""
    creds = Credentials(username=username.strip(), password=password)
    if not creds.username or not creds.password:
        return creds, [LOGIN_FAILED]
    return creds, []


def parse_registration(
    username: str,
    password: str,
    is_taken: Callable[[str], bool],
) -> tuple[Credentials, list[str]]:
    """Parse a registration form.

    is_taken is only consulted once the username passes its own rules, so a
    malformed name never costs a query. Note that USERNAME_TAKEN tells the
    caller the account exists, unlike the login flow's single message.
    """
    creds = Credentials(username=username.strip(), password=password)
    errors = username_errors(creds.username)
    if not errors and is_taken(creds.username):
        errors.append(USERNAME_TAKEN)
    return creds, errors + password_errors(creds.password)


def username_errors(username: str) -> list[str]:
    if not username:
        return ["You must provide a username."]
    errors = []
    if len(username) < USERNAME_MIN:
        errors.append(f"Username must be at least {USERNAME_MIN} characters.")
    if len(username) > USERNAME_MAX:
        errors.append(f"Username cannot exceed {USERNAME_MAX} characters.")
    if not _USERNAME_RE.fullmatch(username):
        errors.append("Username can only contain letters and numbers.")
    return errors


def password_errors(password: str) -> list[str]:
    if not password:
        return ["You must provide a password."]
    errors = []
    if len(password) < PASSWORD_MIN:
        errors.append(f"Password must be at least {PASSWORD_MIN} characters.")
    if len(password) > PASSWORD_MAX:
        errors.append(f"Password cannot exceed {PASSWORD_MAX} characters.")
    return errors


def parse_post(title: str, body: str) -> tuple[PostDraft, list[str]]:
    """Sanitize a post form. Fields that strip down to nothing are rejected."""
    draft = PostDraft(title=clean_text(title), body=clean_text(body))
    errors = []
    if not draft.title:
        errors.append("You must provide a title.")
    if not draft.body:
        errors.append("You must provide a body.")
    return draft, errors


def parse_reservation(raw: str) -> Reservation:
    """Parse the parking form's "place,spot,spots_left,rating" field.

    Raises ValueError with a user-facing message when the field count is
    wrong, the place is empty after sanitizing, or a number does not parse.
    """
    parts = [p.strip() for p in raw.split(",")]
    if len(parts) != 4:
        raise ValueError("Park data must have 4 comma-separated fields: place,spot,spots_left,rating.")
    place = clean_text(parts[0])
    if not place:
        raise ValueError("You must provide a place.")
    numbers = []
    for label, value in zip(("parking spot", "spots left", "rating"), parts[1:]):
        try:
            numbers.append(int(value))
        except ValueError:
            raise ValueError(f"The {label} must be a whole number.") from None
    return Reservation(place=place, parking_spot=numbers[0], spots_left=numbers[1], rating=numbers[2])
