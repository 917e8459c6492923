"""
PostgreSQL repository.
Users carry the connection as flat ``office_*`` columns; token columns hold
Fernet ciphertext. Schema lives in app/db/schema.sql.
"""

from typing import Any

from app.db.helpers import DatabaseError, fetch_all, fetch_one, with_db_retry
from app.infrastructure.observability.logging import get_logger
from app.models.domain.booking_domain import Booking, Contact, User
from app.models.domain.connection_domain import (
    ACCESS_TOKEN_COLUMN,
    CONNECTION_COLUMNS,
    REFRESH_TOKEN_COLUMN,
    from_columns,
    to_columns,
)
from app.services.infrastructure.encryption_service import TokenCipher

logger = get_logger(__name__)

USER_SELECT_COLUMNS = """
    id::text AS id, email, name, is_private_mode,
    office_connection_status, office_connection_type,
    office_access_token, office_refresh_token, office_calendar_id
"""

BOOKING_SELECT_COLUMNS = """
    id, user_id::text AS user_id, title, description, start_time, end_time,
    contact_id, type, status, location, is_all_day, is_private,
    office_event_id, office_event_url
"""

CONTACT_SELECT_COLUMNS = """
    id, user_id::text AS user_id, name, email, role, avatar, status,
    is_private, office_contact_id
"""

# Domain field -> column, for the patchable fields only
USER_PATCH_COLUMNS = {
    "email": "email",
    "display_name": "name",
    "is_private_mode": "is_private_mode",
}

BOOKING_PATCH_COLUMNS = {
    "title": "title",
    "description": "description",
    "start_time": "start_time",
    "end_time": "end_time",
    "contact_id": "contact_id",
    "type": "type",
    "status": "status",
    "location": "location",
    "is_all_day": "is_all_day",
    "is_private": "is_private",
    "external_event_id": "office_event_id",
    "external_event_url": "office_event_url",
}

TOKEN_COLUMNS = (ACCESS_TOKEN_COLUMN, REFRESH_TOKEN_COLUMN)


def _like_pattern(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


class PostgresRepository:
    """Repository backed by the shared psycopg pool."""

    def __init__(self, cipher: TokenCipher | None = None):
        self.cipher = cipher or TokenCipher()

    # =================================================================
    # ROW MAPPING
    # =================================================================

    def _row_to_user(self, row: dict | None) -> User | None:
        if not row:
            return None

        columns = {column: row.get(column) for column in CONNECTION_COLUMNS}
        for column in TOKEN_COLUMNS:
            columns[column] = self.cipher.decrypt_optional(columns[column])

        return User(
            id=row["id"],
            email=row["email"],
            display_name=row.get("name"),
            is_private_mode=bool(row.get("is_private_mode")),
            connection=from_columns(columns),
        )

    @staticmethod
    def _row_to_booking(row: dict | None) -> Booking | None:
        if not row:
            return None
        return Booking(
            id=row["id"],
            user_id=row["user_id"],
            title=row["title"],
            description=row.get("description"),
            start_time=row["start_time"],
            end_time=row["end_time"],
            contact_id=row.get("contact_id"),
            type=row["type"],
            status=row["status"],
            location=row.get("location"),
            is_all_day=bool(row.get("is_all_day")),
            is_private=bool(row.get("is_private")),
            external_event_id=row.get("office_event_id"),
            external_event_url=row.get("office_event_url"),
        )

    @staticmethod
    def _row_to_contact(row: dict | None) -> Contact | None:
        if not row:
            return None
        return Contact(
            id=row["id"],
            user_id=row["user_id"],
            name=row["name"],
            email=row.get("email"),
            role=row.get("role"),
            avatar=row.get("avatar"),
            status=row["status"],
            is_private=bool(row.get("is_private")),
            external_contact_id=row.get("office_contact_id"),
        )

    # =================================================================
    # USERS
    # =================================================================

    @with_db_retry()
    async def get_user(self, user_id: str) -> User | None:
        row = await fetch_one(f"SELECT {USER_SELECT_COLUMNS} FROM users WHERE id = %s", (user_id,))
        return self._row_to_user(row)

    @with_db_retry()
    async def create_user(self, user: User) -> User:
        """Insert a freshly authenticated user; concurrent first requests share one row."""
        query = f"""
            INSERT INTO users (id, email, name, is_private_mode)
            VALUES (%s, %s, %s, %s)
            ON CONFLICT (id) DO NOTHING
            RETURNING {USER_SELECT_COLUMNS}
        """
        row = await fetch_one(
            query, (user.id, user.email, user.display_name, user.is_private_mode)
        )
        if row is None:
            existing = await self.get_user(user.id)
            if existing is None:
                raise DatabaseError("Failed to create user", operation="create_user")
            return existing

        logger.info("User stored", user_id=user.id)
        return self._row_to_user(row)

    @with_db_retry()
    async def update_user(self, user_id: str, patch: dict[str, Any]) -> User | None:
        """
        Update user fields.

        A ``connection`` entry is flattened with to_columns() so all five
        connection columns are written together.
        """
        assignments: dict[str, Any] = {}

        if "connection" in patch:
            columns = to_columns(patch["connection"])
            for column in TOKEN_COLUMNS:
                columns[column] = self.cipher.encrypt_optional(columns[column])
            assignments.update(columns)

        for field, column in USER_PATCH_COLUMNS.items():
            if field in patch:
                assignments[column] = patch[field]

        unknown = set(patch) - set(USER_PATCH_COLUMNS) - {"connection"}
        if unknown:
            raise DatabaseError(
                f"Unsupported user fields: {sorted(unknown)}",
                operation="update_user",
                recoverable=False,
            )
        if not assignments:
            return await self.get_user(user_id)

        set_clause = ", ".join(f"{column} = %s" for column in assignments)
        query = f"""
            UPDATE users SET {set_clause}
            WHERE id = %s
            RETURNING {USER_SELECT_COLUMNS}
        """
        row = await fetch_one(query, (*assignments.values(), user_id))
        return self._row_to_user(row)

    # =================================================================
    # BOOKINGS
    # =================================================================

    @with_db_retry()
    async def get_bookings(self, user_id: str) -> list[Booking]:
        rows = await fetch_all(
            f"SELECT {BOOKING_SELECT_COLUMNS} FROM bookings WHERE user_id = %s ORDER BY start_time",
            (user_id,),
        )
        return [self._row_to_booking(row) for row in rows]

    @with_db_retry()
    async def get_booking(self, booking_id: int) -> Booking | None:
        row = await fetch_one(
            f"SELECT {BOOKING_SELECT_COLUMNS} FROM bookings WHERE id = %s", (booking_id,)
        )
        return self._row_to_booking(row)

    async def create_booking(self, booking: Booking) -> Booking:
        query = f"""
            INSERT INTO bookings (
                user_id, title, description, start_time, end_time, contact_id,
                type, status, location, is_all_day, is_private,
                office_event_id, office_event_url
            )
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
            RETURNING {BOOKING_SELECT_COLUMNS}
        """
        row = await fetch_one(
            query,
            (
                booking.user_id,
                booking.title,
                booking.description,
                booking.start_time,
                booking.end_time,
                booking.contact_id,
                booking.type,
                booking.status.value,
                booking.location,
                booking.is_all_day,
                booking.is_private,
                booking.external_event_id,
                booking.external_event_url,
            ),
        )
        if not row:
            raise DatabaseError("Failed to create booking", operation="create_booking")

        logger.info("Booking stored", user_id=booking.user_id, booking_id=row["id"])
        return self._row_to_booking(row)

    @with_db_retry()
    async def update_booking(self, booking_id: int, patch: dict[str, Any]) -> Booking | None:
        assignments = {
            BOOKING_PATCH_COLUMNS[field]: getattr(value, "value", value)
            for field, value in patch.items()
            if field in BOOKING_PATCH_COLUMNS
        }
        if len(assignments) != len(patch):
            raise DatabaseError(
                f"Unsupported booking fields: {sorted(set(patch) - set(BOOKING_PATCH_COLUMNS))}",
                operation="update_booking",
                recoverable=False,
            )
        if not assignments:
            return await self.get_booking(booking_id)

        set_clause = ", ".join(f"{column} = %s" for column in assignments)
        query = f"""
            UPDATE bookings SET {set_clause}
            WHERE id = %s
            RETURNING {BOOKING_SELECT_COLUMNS}
        """
        row = await fetch_one(query, (*assignments.values(), booking_id))
        return self._row_to_booking(row)

    # =================================================================
    # CONTACTS
    # =================================================================

    @with_db_retry()
    async def get_contacts(self, user_id: str) -> list[Contact]:
        rows = await fetch_all(
            f"SELECT {CONTACT_SELECT_COLUMNS} FROM contacts WHERE user_id = %s ORDER BY lower(name)",
            (user_id,),
        )
        return [self._row_to_contact(row) for row in rows]

    @with_db_retry()
    async def get_contact_by_name(self, name: str, user_id: str) -> Contact | None:
        if not name.strip():
            return None
        query = f"""
            SELECT {CONTACT_SELECT_COLUMNS} FROM contacts
            WHERE user_id = %s AND name ILIKE %s ESCAPE '\\'
            ORDER BY id
            LIMIT 1
        """
        row = await fetch_one(query, (user_id, _like_pattern(name.strip())))
        return self._row_to_contact(row)

    @with_db_retry()
    async def get_contact_by_external_id(self, external_id: str, user_id: str) -> Contact | None:
        query = f"""
            SELECT {CONTACT_SELECT_COLUMNS} FROM contacts
            WHERE user_id = %s AND office_contact_id = %s
            LIMIT 1
        """
        row = await fetch_one(query, (user_id, external_id))
        return self._row_to_contact(row)

    async def create_contact(self, contact: Contact) -> Contact:
        query = f"""
            INSERT INTO contacts (
                user_id, name, email, role, avatar, status, is_private, office_contact_id
            )
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s)
            RETURNING {CONTACT_SELECT_COLUMNS}
        """
        row = await fetch_one(
            query,
            (
                contact.user_id,
                contact.name,
                contact.email,
                contact.role,
                contact.avatar,
                contact.status,
                contact.is_private,
                contact.external_contact_id,
            ),
        )
        if not row:
            raise DatabaseError("Failed to create contact", operation="create_contact")
        return self._row_to_contact(row)
