"""
SQLite persistence for knowledge units and recipes.

One database backs both stores, so a recipe's knowledge points and the
units they cite live side by side.

Schema:
    knowledge_units          id, content, level, category, timestamps
    recipes                  id, level, procedure, description, timestamps
    recipe_knowledge_points  recipe_id, position, unit_id

``recipe_knowledge_points`` keeps the author's order (``position``) and
allows the same unit to appear more than once in a recipe. Unit ids are
not foreign keys: whether a reference may dangle is decided by the
repository, not the schema.

Usage:
    db = SQLiteDatabase("music_kb.db")
    repo = KnowledgeBaseRepository(
        unit_store=SQLiteKnowledgeUnitStore(db),
        recipe_store=SQLiteRecipeStore(db),
    )
"""

import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator

from .levels import Category, Level
from .models import KnowledgeUnit, Recipe
from .recipe_store import (
    RecipeNotFoundError,
    RecipeValidationError,
    recipe_matches,
    validate_recipe,
)
from .unit_store import (
    KnowledgeUnitNotFoundError,
    KnowledgeUnitValidationError,
    unit_matches,
    validate_unit,
)


logger = logging.getLogger(__name__)


def _dump_time(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def _load_time(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


class SQLiteDatabase:
    """
    Connection handling and schema for the SQLite stores.

    For ":memory:" a single shared connection is kept open, otherwise each
    operation opens its own connection.
    """

    def __init__(self, db_path: str | Path = ":memory:"):
        """
        Initialize the database.

        Args:
            db_path: Path to SQLite database, or ":memory:" for in-memory
        """
        self.db_path = str(db_path)
        self._is_memory = self.db_path == ":memory:"
        self._shared_conn: sqlite3.Connection | None = None

        if self._is_memory:
            self._shared_conn = sqlite3.connect(":memory:", check_same_thread=False)
            self._shared_conn.row_factory = sqlite3.Row
        else:
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

        self._init_schema()

    @contextmanager
    def connection(self) -> Iterator[sqlite3.Connection]:
        """Get a database connection; commit on success, roll back on error."""
        if self._is_memory and self._shared_conn:
            try:
                yield self._shared_conn
                self._shared_conn.commit()
            except Exception:
                self._shared_conn.rollback()
                raise
        else:
            conn = sqlite3.connect(self.db_path)
            conn.row_factory = sqlite3.Row
            try:
                yield conn
                conn.commit()
            except Exception:
                conn.rollback()
                raise
            finally:
                conn.close()

    def _init_schema(self) -> None:
        """Initialize database schema."""
        with self.connection() as conn:
            conn.executescript("""
                CREATE TABLE IF NOT EXISTS knowledge_units (
                    id INTEGER PRIMARY KEY,
                    content TEXT NOT NULL,
                    level TEXT NOT NULL,
                    category TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    updated_at TEXT
                );

                CREATE INDEX IF NOT EXISTS idx_units_level
                    ON knowledge_units(level);

                CREATE TABLE IF NOT EXISTS recipes (
                    id INTEGER PRIMARY KEY,
                    level TEXT NOT NULL,
                    procedure TEXT NOT NULL,
                    description TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    updated_at TEXT
                );

                CREATE INDEX IF NOT EXISTS idx_recipes_level
                    ON recipes(level);

                -- Ordered knowledge points; an id may repeat
                CREATE TABLE IF NOT EXISTS recipe_knowledge_points (
                    recipe_id INTEGER NOT NULL,
                    position INTEGER NOT NULL,
                    unit_id INTEGER NOT NULL,
                    PRIMARY KEY (recipe_id, position)
                );

                CREATE INDEX IF NOT EXISTS idx_recipe_points_unit
                    ON recipe_knowledge_points(unit_id);
            """)

    def next_id(self, table: str) -> int:
        """Next free id in ``knowledge_units`` or ``recipes``."""
        if table not in ("knowledge_units", "recipes"):
            raise ValueError(f"Unknown table: {table}")
        with self.connection() as conn:
            row = conn.execute(f"SELECT COALESCE(MAX(id), 0) + 1 FROM {table}").fetchone()
        return row[0]

    def count(self, table: str) -> int:
        """Row count of ``knowledge_units`` or ``recipes``."""
        if table not in ("knowledge_units", "recipes"):
            raise ValueError(f"Unknown table: {table}")
        with self.connection() as conn:
            return conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0]

    def close(self) -> None:
        """Close the shared in-memory connection, if any."""
        if self._shared_conn is not None:
            self._shared_conn.close()
            self._shared_conn = None


class SQLiteKnowledgeUnitStore:
    """SQLite-backed KnowledgeUnitStore."""

    def __init__(self, db: SQLiteDatabase) -> None:
        self._db = db

    def next_id(self) -> int:
        return self._db.next_id("knowledge_units")

    def count(self) -> int:
        return self._db.count("knowledge_units")

    def create(self, unit: KnowledgeUnit) -> KnowledgeUnit:
        """Create a new knowledge unit."""
        validate_unit(unit)
        try:
            with self._db.connection() as conn:
                conn.execute("""
                    INSERT INTO knowledge_units (id, content, level, category, created_at, updated_at)
                    VALUES (?, ?, ?, ?, ?, ?)
                """, (
                    unit.id,
                    unit.content,
                    unit.level.value,
                    unit.category.value,
                    _dump_time(unit.created_at),
                    _dump_time(unit.updated_at),
                ))
        except sqlite3.IntegrityError as exc:
            raise KnowledgeUnitValidationError(f"Knowledge unit already exists: {unit.id}") from exc
        logger.info(f"Created knowledge unit: {unit.id} ({unit.level.value}/{unit.category.value})")
        return unit

    def get(self, unit_id: int) -> KnowledgeUnit | None:
        """Get a knowledge unit by ID."""
        with self._db.connection() as conn:
            row = conn.execute(
                "SELECT * FROM knowledge_units WHERE id = ?",
                (unit_id,)
            ).fetchone()
        return self._row_to_unit(row) if row else None

    def update(self, unit: KnowledgeUnit) -> KnowledgeUnit:
        """Replace an existing knowledge unit."""
        validate_unit(unit)
        with self._db.connection() as conn:
            cursor = conn.execute("""
                UPDATE knowledge_units
                SET content = ?, level = ?, category = ?, updated_at = ?
                WHERE id = ?
            """, (
                unit.content,
                unit.level.value,
                unit.category.value,
                _dump_time(datetime.now(timezone.utc)),
                unit.id,
            ))
            if cursor.rowcount == 0:
                raise KnowledgeUnitNotFoundError(f"Knowledge unit not found: {unit.id}", unit_id=unit.id)
        logger.info(f"Updated knowledge unit: {unit.id}")
        return self.get(unit.id)

    def delete(self, unit_id: int) -> bool:
        """Delete a knowledge unit by ID."""
        with self._db.connection() as conn:
            cursor = conn.execute("DELETE FROM knowledge_units WHERE id = ?", (unit_id,))
            deleted = cursor.rowcount > 0
        if deleted:
            logger.info(f"Deleted knowledge unit: {unit_id}")
        return deleted

    def list_units(self, level: Level | None = None, keyword: str | None = None) -> list[KnowledgeUnit]:
        """List knowledge units, newest first."""
        query = "SELECT * FROM knowledge_units"
        params: list = []
        if level is not None:
            query += " WHERE level = ?"
            params.append(level.value)
        query += " ORDER BY id DESC"

        with self._db.connection() as conn:
            rows = conn.execute(query, params).fetchall()

        # Keyword matching stays in Python so it behaves like the in-memory store
        units = [self._row_to_unit(row) for row in rows]
        return [unit for unit in units if unit_matches(unit, None, keyword)]

    def _row_to_unit(self, row: sqlite3.Row) -> KnowledgeUnit:
        """Convert a database row to KnowledgeUnit."""
        return KnowledgeUnit(
            id=row["id"],
            content=row["content"],
            level=Level(row["level"]),
            category=Category(row["category"]),
            created_at=_load_time(row["created_at"]),
            updated_at=_load_time(row["updated_at"]),
        )


class SQLiteRecipeStore:
    """SQLite-backed RecipeStore."""

    def __init__(self, db: SQLiteDatabase) -> None:
        self._db = db

    def next_id(self) -> int:
        return self._db.next_id("recipes")

    def count(self) -> int:
        return self._db.count("recipes")

    def create(self, recipe: Recipe) -> Recipe:
        """Create a new recipe with its knowledge points."""
        validate_recipe(recipe)
        try:
            with self._db.connection() as conn:
                conn.execute("""
                    INSERT INTO recipes (id, level, procedure, description, created_at, updated_at)
                    VALUES (?, ?, ?, ?, ?, ?)
                """, (
                    recipe.id,
                    recipe.level.value,
                    recipe.procedure,
                    recipe.description,
                    _dump_time(recipe.created_at),
                    _dump_time(recipe.updated_at),
                ))
                self._write_points(conn, recipe)
        except sqlite3.IntegrityError as exc:
            raise RecipeValidationError(f"Recipe already exists: {recipe.id}") from exc
        logger.info(f"Created recipe: {recipe.id} ({recipe.level.value})")
        return recipe

    def get(self, recipe_id: int) -> Recipe | None:
        """Get a recipe by ID."""
        with self._db.connection() as conn:
            row = conn.execute("SELECT * FROM recipes WHERE id = ?", (recipe_id,)).fetchone()
            return self._row_to_recipe(conn, row) if row else None

    def update(self, recipe: Recipe) -> Recipe:
        """Replace an existing recipe and its knowledge points."""
        validate_recipe(recipe)
        with self._db.connection() as conn:
            cursor = conn.execute("""
                UPDATE recipes
                SET level = ?, procedure = ?, description = ?, updated_at = ?
                WHERE id = ?
            """, (
                recipe.level.value,
                recipe.procedure,
                recipe.description,
                _dump_time(datetime.now(timezone.utc)),
                recipe.id,
            ))
            if cursor.rowcount == 0:
                raise RecipeNotFoundError(f"Recipe not found: {recipe.id}", recipe_id=recipe.id)
            conn.execute("DELETE FROM recipe_knowledge_points WHERE recipe_id = ?", (recipe.id,))
            self._write_points(conn, recipe)
        logger.info(f"Updated recipe: {recipe.id}")
        return self.get(recipe.id)

    def delete(self, recipe_id: int) -> bool:
        """Delete a recipe and its knowledge point rows."""
        with self._db.connection() as conn:
            conn.execute("DELETE FROM recipe_knowledge_points WHERE recipe_id = ?", (recipe_id,))
            cursor = conn.execute("DELETE FROM recipes WHERE id = ?", (recipe_id,))
            deleted = cursor.rowcount > 0
        if deleted:
            logger.info(f"Deleted recipe: {recipe_id}")
        return deleted

    def list_recipes(self, level: Level | None = None, keyword: str | None = None) -> list[Recipe]:
        """List recipes, newest first."""
        query = "SELECT * FROM recipes"
        params: list = []
        if level is not None:
            query += " WHERE level = ?"
            params.append(level.value)
        query += " ORDER BY id DESC"

        with self._db.connection() as conn:
            rows = conn.execute(query, params).fetchall()
            recipes = [self._row_to_recipe(conn, row) for row in rows]

        return [recipe for recipe in recipes if recipe_matches(recipe, None, keyword)]

    def list_referencing(self, unit_id: int) -> list[Recipe]:
        """Recipes citing the given knowledge unit, oldest first."""
        with self._db.connection() as conn:
            rows = conn.execute("""
                SELECT * FROM recipes
                WHERE id IN (
                    SELECT recipe_id FROM recipe_knowledge_points WHERE unit_id = ?
                )
                ORDER BY id
            """, (unit_id,)).fetchall()
            return [self._row_to_recipe(conn, row) for row in rows]

    def _write_points(self, conn: sqlite3.Connection, recipe: Recipe) -> None:
        conn.executemany(
            "INSERT INTO recipe_knowledge_points (recipe_id, position, unit_id) VALUES (?, ?, ?)",
            [(recipe.id, position, unit_id) for position, unit_id in enumerate(recipe.knowledge_point_ids)],
        )

    def _row_to_recipe(self, conn: sqlite3.Connection, row: sqlite3.Row) -> Recipe:
        """Convert a database row (plus its knowledge points) to Recipe."""
        points = conn.execute(
            "SELECT unit_id FROM recipe_knowledge_points WHERE recipe_id = ? ORDER BY position",
            (row["id"],)
        ).fetchall()
        return Recipe(
            id=row["id"],
            knowledge_point_ids=tuple(point["unit_id"] for point in points),
            level=Level(row["level"]),
            procedure=row["procedure"],
            description=row["description"],
            created_at=_load_time(row["created_at"]),
            updated_at=_load_time(row["updated_at"]),
        )
