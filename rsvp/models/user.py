"""User model for people who RSVP to events.

Accounts are issued by the authentication service; this table only mirrors
the identifiers attendance records point at.
"""

from sqlmodel import Field, SQLModel


class User(SQLModel, table=True):
    """A person who can hold attendance records.

    Attributes:
        id: User identifier assigned by the authentication service.
        display_name: Human-readable name, if available.
        email: Contact address, if available.
    """
    id: int = Field(primary_key=True)
    display_name: str | None = None
    email: str | None = None
