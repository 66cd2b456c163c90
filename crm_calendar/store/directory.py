"""
Tool: SQLite Directory
Purpose: Read-only user/team lookup used by visibility and audience filtering

Administration of users and teams lives elsewhere; add_user/add_team exist
so the directory can be seeded for local runs and tests.

Usage:
    from crm_calendar.store.directory import SQLiteDirectory

    directory = SQLiteDirectory(db_path)
    directory.add_user("u1", "org-1", Role.SALES, cities=["Malmö"])
    directory.add_team("t1", "org-1", name="Crew A", member_ids=["u2", "u3"])
"""

import json
import sqlite3
from pathlib import Path

from crm_calendar import get_connection
from crm_calendar.errors import PersistenceError
from crm_calendar.models import Role, Team, UserProfile
from crm_calendar.store.base import Directory


class SQLiteDirectory(Directory):
    """Directory over the directory_* tables."""

    def __init__(self, db_path: Path | str | None = None):
        self.db_path = Path(db_path) if db_path else None

    def _query(self, sql: str, params: tuple = ()) -> list[sqlite3.Row]:
        try:
            conn = get_connection(self.db_path)
        except sqlite3.Error as e:
            raise PersistenceError(f"Could not open directory: {e}") from e
        try:
            cursor = conn.cursor()
            cursor.execute(sql, params)
            return cursor.fetchall()
        except sqlite3.Error as e:
            raise PersistenceError(f"Directory lookup failed: {e}") from e
        finally:
            conn.close()

    def _members(self, team_id: str) -> list[str]:
        rows = self._query(
            "SELECT user_id FROM directory_team_members WHERE team_id = ? ORDER BY user_id",
            (team_id,),
        )
        return [row["user_id"] for row in rows]

    def _row_to_user(self, row: sqlite3.Row) -> UserProfile:
        return UserProfile(
            id=row["id"],
            organisation_id=row["organisation_id"],
            role=Role(row["role"]),
            full_name=row["full_name"] or "",
            cities=json.loads(row["cities"]) if row["cities"] else [],
        )

    def _row_to_team(self, row: sqlite3.Row) -> Team:
        return Team(
            id=row["id"],
            organisation_id=row["organisation_id"],
            name=row["name"] or "",
            cities=json.loads(row["cities"]) if row["cities"] else [],
            member_ids=self._members(row["id"]),
        )

    # =========================================================================
    # Directory interface
    # =========================================================================

    def get_user(self, user_id: str) -> UserProfile | None:
        rows = self._query("SELECT * FROM directory_users WHERE id = ?", (user_id,))
        return self._row_to_user(rows[0]) if rows else None

    def get_team(self, team_id: str) -> Team | None:
        rows = self._query("SELECT * FROM directory_teams WHERE id = ?", (team_id,))
        return self._row_to_team(rows[0]) if rows else None

    def teams_for_user(self, user_id: str) -> list[Team]:
        rows = self._query(
            """
            SELECT t.* FROM directory_teams t
            JOIN directory_team_members m ON m.team_id = t.id
            WHERE m.user_id = ?
            ORDER BY t.name, t.id
            """,
            (user_id,),
        )
        return [self._row_to_team(row) for row in rows]

    def list_users(self, organisation_id: str) -> list[UserProfile]:
        rows = self._query(
            "SELECT * FROM directory_users WHERE organisation_id = ? ORDER BY full_name, id",
            (organisation_id,),
        )
        return [self._row_to_user(row) for row in rows]

    def list_teams(self, organisation_id: str) -> list[Team]:
        rows = self._query(
            "SELECT * FROM directory_teams WHERE organisation_id = ? ORDER BY name, id",
            (organisation_id,),
        )
        return [self._row_to_team(row) for row in rows]

    # =========================================================================
    # Seeding helpers
    # =========================================================================

    def add_user(
        self,
        user_id: str,
        organisation_id: str,
        role: Role | str,
        full_name: str = "",
        cities: list[str] | None = None,
    ) -> UserProfile:
        """Insert or replace a user."""
        user = UserProfile(
            id=user_id,
            organisation_id=organisation_id,
            role=Role(role),
            full_name=full_name,
            cities=list(cities or []),
        )
        conn = get_connection(self.db_path)
        try:
            conn.execute(
                """
                INSERT OR REPLACE INTO directory_users (id, organisation_id, full_name, role, cities)
                VALUES (?, ?, ?, ?, ?)
                """,
                (user.id, user.organisation_id, user.full_name, user.role.value, json.dumps(user.cities)),
            )
            conn.commit()
        finally:
            conn.close()
        return user

    def add_team(
        self,
        team_id: str,
        organisation_id: str,
        name: str = "",
        cities: list[str] | None = None,
        member_ids: list[str] | None = None,
    ) -> Team:
        """Insert or replace a team and its membership."""
        team = Team(
            id=team_id,
            organisation_id=organisation_id,
            name=name,
            cities=list(cities or []),
            member_ids=sorted(member_ids or []),
        )
        conn = get_connection(self.db_path)
        try:
            conn.execute(
                "INSERT OR REPLACE INTO directory_teams (id, organisation_id, name, cities) VALUES (?, ?, ?, ?)",
                (team.id, team.organisation_id, team.name, json.dumps(team.cities)),
            )
            conn.execute("DELETE FROM directory_team_members WHERE team_id = ?", (team.id,))
            conn.executemany(
                "INSERT INTO directory_team_members (team_id, user_id) VALUES (?, ?)",
                [(team.id, user_id) for user_id in team.member_ids],
            )
            conn.commit()
        finally:
            conn.close()
        return team
