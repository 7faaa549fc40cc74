"""
Persons Module

This module handles person records for the shared expense ledger.

Persons are owned by the user-management side of the product; the ledger
only needs a stable id and a display name to validate givers, takers and
settlement parties.

Data Model:
    Person stored at: ledgers/{ledger_id}/persons/{person_id}
    Fields:
        - person_id: string (U001, U002, ... format)
        - name: string
        - email: string or None
        - role: string (admin, user)

Functions:
    add_person: Add a new person to a ledger.
    get_persons: Get all persons of a ledger.
    get_person: Get one person by id.
    get_person_ids: Get the set of known person ids.
"""

from typing import Optional

from activity_log import CreateEntry, EntityDetails, record_activity
from cache import snapshot_cache
from config.settings import VALID_ROLES
from errors import NotFoundError, ValidationError
from firebase_store import (
    PERSONS,
    ledger_collection,
    next_sequential_id,
    require_db,
    validate_ledger_id
)
from logging_setup import get_logger
from utils import validate_non_empty_string


_logger = get_logger("shared_expense_ledger.persons")


class Person:
    """
    Represents a person who can give to, take from, or settle expenses.

    Attributes:
        person_id (str): Unique identifier in U### format.
        name (str): Display name.
        email (str | None): Optional contact email.
        role (str): "admin" or "user".
    """

    def __init__(
        self,
        name: str,
        person_id: Optional[str] = None,
        email: Optional[str] = None,
        role: str = "user"
    ):
        self.person_id = person_id
        self.name = name
        self.email = email
        self.role = role

    def to_dict(self) -> dict:
        """Convert person to dictionary for Firestore storage."""
        return {
            "person_id": self.person_id,
            "name": self.name,
            "email": self.email,
            "role": self.role
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Person":
        """Create a Person instance from a dictionary."""
        return cls(
            person_id=data.get("person_id"),
            name=data.get("name"),
            email=data.get("email"),
            role=data.get("role", "user")
        )

    def __repr__(self) -> str:
        return f"Person(id='{self.person_id}', name='{self.name}', role='{self.role}')"


def add_person(
    ledger_id: str,
    name: str,
    email: Optional[str] = None,
    role: str = "user"
) -> Person:
    """
    Add a new person to a ledger.

    Args:
        ledger_id: The ID of the ledger.
        name: Display name.
        email: Optional email address.
        role: "admin" or "user".

    Returns:
        Person: The created person object.

    Raises:
        ValidationError: If input validation fails.
        RuntimeError: If Firestore is not available.
    """
    validate_ledger_id(ledger_id)
    name = validate_non_empty_string(name, "name")
    if role not in VALID_ROLES:
        raise ValidationError(f"role must be one of {VALID_ROLES}, got: {role}")

    db = require_db()
    persons_ref = ledger_collection(db, ledger_id, PERSONS)

    person = Person(
        name=name,
        person_id=next_sequential_id(persons_ref, "U"),
        email=email.strip() if email else None,
        role=role
    )
    persons_ref.document(person.person_id).set(person.to_dict())
    # Persons appear in every period snapshot
    snapshot_cache.invalidate(ledger_id)

    record_activity(ledger_id, CreateEntry(details=EntityDetails(
        entity="person",
        entity_id=person.person_id,
        summary=person.name
    )))

    _logger.info("Added person %s (%s) to ledger %s", person.person_id, person.name, ledger_id)
    return person


def get_persons(ledger_id: str) -> list[Person]:
    """
    Get all persons of a ledger, ordered by person_id.

    Raises:
        ValidationError: If ledger_id is invalid.
        RuntimeError: If Firestore is not available.
    """
    validate_ledger_id(ledger_id)
    db = require_db()

    docs = ledger_collection(db, ledger_id, PERSONS).stream()
    persons = [Person.from_dict(doc.to_dict()) for doc in docs]
    persons.sort(key=lambda p: p.person_id)
    return persons


def get_person(ledger_id: str, person_id: str) -> Person:
    """
    Get a single person.

    Raises:
        NotFoundError: If the person does not exist.
    """
    validate_ledger_id(ledger_id)
    person_id = validate_non_empty_string(person_id, "person_id")
    db = require_db()

    doc = ledger_collection(db, ledger_id, PERSONS).document(person_id).get()
    if not doc.exists:
        raise NotFoundError(f"Person {person_id} not found in ledger {ledger_id}")
    return Person.from_dict(doc.to_dict())


def get_person_ids(ledger_id: str) -> set[str]:
    """Get all person IDs of a ledger."""
    validate_ledger_id(ledger_id)
    db = require_db()
    return {doc.id for doc in ledger_collection(db, ledger_id, PERSONS).stream()}
