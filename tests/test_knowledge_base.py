"""
Unit tests for the music knowledge base repository, composition
validation and the storage backends.
"""
import pathlib
import sys
import pytest

sys.path.insert(0, str(pathlib.Path(__file__).parent.parent / "src"))

from kb_core import (
    KnowledgeBaseRepository,
    KnowledgeUnit, Recipe, Level, Category,
    CompositionValidator, CheckStatus, UnusableReason,
    EmptyCompositionError, MissingKnowledgePointsError, UnusableKnowledgePointsError,
    KnowledgeUnitNotFoundError, KnowledgeUnitValidationError,
    DeletionBlockedError, UnitUpdateBlockedError,
    RecipeNotFoundError, RecipeValidationError,
    InMemoryKnowledgeUnitStore, InMemoryRecipeStore,
    SQLiteDatabase, SQLiteKnowledgeUnitStore, SQLiteRecipeStore,
)


class TestCompositionValidator:
    """Validation against a plain dict lookup; no store involved."""

    def setup_method(self):
        self.units = {
            5: KnowledgeUnit(id=5, content="Chorus returns three times", level=Level.WORK, category=Category.FORM),
            7: KnowledgeUnit(id=7, content="A slow ballad", level=Level.WORK, category=Category.MATERIAL),
            8: KnowledgeUnit(id=8, content="Pre-chorus climbs by step", level=Level.SECTION, category=Category.MATERIAL),
        }
        self.calls = []

        def lookup(unit_id):
            self.calls.append(unit_id)
            return self.units.get(unit_id)

        self.validator = CompositionValidator(lookup)

    def test_accepts_and_explains_effective_categories(self):
        check = self.validator.validate(Level.COLLECTION, [5])
        assert check.accepted
        assert check.status == CheckStatus.ACCEPTED
        assert check.effective_categories == {5: Category.MATERIAL}
        check.raise_for_rejection()

    def test_accepted_ids_are_returned_verbatim(self):
        check = self.validator.validate(Level.WORK, [7, 5, 7])
        assert check.accepted
        assert check.knowledge_point_ids == (7, 5, 7)

    def test_empty_reference_set_is_rejected(self):
        check = self.validator.validate(Level.WORK, [])
        assert check.status == CheckStatus.EMPTY
        with pytest.raises(EmptyCompositionError):
            check.raise_for_rejection()

    def test_missing_ids_are_named(self):
        """Recipe at work citing [5, 9] where 9 does not exist."""
        check = self.validator.validate(Level.WORK, [5, 9])
        assert not check.accepted
        assert check.status == CheckStatus.MISSING_KNOWLEDGE_POINTS
        assert check.missing_ids == (9,)
        with pytest.raises(MissingKnowledgePointsError) as exc_info:
            check.raise_for_rejection()
        assert exc_info.value.missing_ids == [9]

    def test_unusable_ids_are_named_with_level(self):
        check = self.validator.validate(Level.MOTIF, [8, 5])
        assert check.status == CheckStatus.UNUSABLE_AT_LEVEL
        assert check.unusable_ids == (5,)
        assert check.reasons == {5: UnusableReason.TOO_FAR}
        assert check.effective_categories == {8: Category.FORM}
        with pytest.raises(UnusableKnowledgePointsError) as exc_info:
            check.raise_for_rejection()
        assert exc_info.value.unusable_ids == [5]
        assert exc_info.value.target_level == Level.MOTIF
        assert "motif" in str(exc_info.value)

    def test_missing_takes_precedence_over_unusable(self):
        check = self.validator.validate(Level.COLLECTION, [7, 42])
        assert check.status == CheckStatus.MISSING_KNOWLEDGE_POINTS
        assert check.missing_ids == (42,)
        # usability is still reported for the ids that exist
        assert check.unusable_ids == (7,)
        with pytest.raises(MissingKnowledgePointsError):
            check.raise_for_rejection()

    def test_duplicates_are_reported_once(self):
        check = self.validator.validate(Level.COLLECTION, [9, 7, 9, 7])
        assert check.missing_ids == (9,)
        assert check.unusable_ids == (7,)

    def test_each_distinct_id_is_looked_up_once(self):
        self.validator.validate(Level.WORK, [5, 5, 7, 5])
        assert self.calls == [5, 7]

    def test_validate_is_idempotent(self):
        first = self.validator.validate(Level.MOTIF, [8, 5, 9])
        second = self.validator.validate(Level.MOTIF, [8, 5, 9])
        assert first == second


class TestKnowledgeUnitCRUD:
    """Knowledge unit operations through the repository."""

    def setup_method(self):
        self.kb = KnowledgeBaseRepository(mode="memory")

    def test_ids_start_at_one_and_increase(self):
        first = self.kb.create_unit("Rule", Level.WORK, Category.FORM)
        second = self.kb.create_unit("Fact", Level.WORK, Category.MATERIAL)
        assert (first.id, second.id) == (1, 2)

    def test_create_trims_content(self):
        unit = self.kb.create_unit("  Call and response  ", Level.SECTION, Category.FORM)
        assert self.kb.get_unit(unit.id).content == "Call and response"

    def test_blank_content_is_rejected(self):
        with pytest.raises(KnowledgeUnitValidationError):
            self.kb.create_unit("   ", Level.WORK, Category.FORM)
        assert self.kb.list_units() == []

    def test_string_level_is_rejected(self):
        with pytest.raises(KnowledgeUnitValidationError):
            self.kb.create_unit("Rule", "work", Category.FORM)

    def test_list_is_newest_first_and_filterable(self):
        self.kb.create_unit("Chorus hook", Level.WORK, Category.FORM)
        self.kb.create_unit("Verse melody", Level.SECTION, Category.MATERIAL)
        self.kb.create_unit("Chorus lift", Level.SECTION, Category.FORM)

        assert [u.id for u in self.kb.list_units()] == [3, 2, 1]
        assert [u.id for u in self.kb.list_units(level=Level.SECTION)] == [3, 2]
        assert [u.id for u in self.kb.list_units(keyword="CHORUS")] == [3, 1]
        assert [u.id for u in self.kb.list_units(level=Level.WORK, keyword="verse")] == []

    def test_update_keeps_unchanged_fields(self):
        unit = self.kb.create_unit("Rule", Level.WORK, Category.FORM)
        updated = self.kb.update_unit(unit.id, content="Better rule")
        assert updated.content == "Better rule"
        assert updated.level == Level.WORK
        assert updated.category == Category.FORM
        assert updated.created_at == unit.created_at
        assert updated.updated_at is not None

    def test_update_unknown_unit(self):
        with pytest.raises(KnowledgeUnitNotFoundError):
            self.kb.update_unit(99, content="x")

    def test_delete_unit(self):
        unit = self.kb.create_unit("Delete me", Level.MOTIF, Category.MATERIAL)
        assert self.kb.delete_unit(unit.id) is True
        assert self.kb.get_unit(unit.id) is None
        assert self.kb.delete_unit(unit.id) is False


class TestUsabilityPreview:
    """resolve_usability and usable_levels on stored units."""

    def test_preview_for_stored_unit(self, kb_repository, sample_units):
        result = kb_repository.resolve_usability(sample_units["verse_chorus"].id, Level.COLLECTION)
        assert result.usable
        assert result.source_level == Level.WORK
        assert result.source_category == Category.FORM
        assert result.effective_category == Category.MATERIAL

    def test_preview_of_unusable_unit(self, kb_repository, sample_units):
        result = kb_repository.resolve_usability(sample_units["ballad"].id, Level.COLLECTION)
        assert not result.usable
        assert result.reason == UnusableReason.MATERIAL_CANNOT_RISE

    def test_preview_for_unknown_unit(self, kb_repository):
        with pytest.raises(KnowledgeUnitNotFoundError) as exc_info:
            kb_repository.resolve_usability(404, Level.WORK)
        assert exc_info.value.unit_id == 404

    def test_usable_levels(self, kb_repository, sample_units):
        assert kb_repository.usable_levels(sample_units["pre_chorus_lift"].id) == [Level.SECTION, Level.MOTIF]
        assert kb_repository.usable_levels(sample_units["hook_repeat"].id) == [Level.SECTION, Level.MOTIF]


class TestRecipeCRUD:
    """Recipes are validated on every write."""

    def test_create_valid_recipe(self, kb_repository, recipe_store, sample_units):
        recipe = kb_repository.create_recipe(
            [sample_units["album_arc"].id, sample_units["verse_chorus"].id],
            Level.COLLECTION,
            "Sequence the album around the repeated chorus idea",
            "Album pacing",
        )
        assert recipe.id == 1
        assert recipe.knowledge_point_ids == (1, 2)
        assert recipe_store.get(1) == recipe

    def test_duplicates_are_stored_verbatim(self, kb_repository, sample_units):
        ids = [sample_units["verse_chorus"].id, sample_units["ballad"].id, sample_units["verse_chorus"].id]
        recipe = kb_repository.create_recipe(ids, Level.WORK, "Write it", "Ballad form")
        assert kb_repository.get_recipe(recipe.id).knowledge_point_ids == (2, 3, 2)

    def test_missing_knowledge_point_is_not_stored(self, kb_repository, recipe_store, sample_units):
        with pytest.raises(MissingKnowledgePointsError) as exc_info:
            kb_repository.create_recipe([2, 9], Level.WORK, "Procedure", "Description")
        assert exc_info.value.missing_ids == [9]
        assert len(recipe_store) == 0

    def test_unusable_knowledge_point_is_not_stored(self, kb_repository, recipe_store, sample_units):
        """Recipe at motif citing a work-level form (two hops away)."""
        with pytest.raises(UnusableKnowledgePointsError) as exc_info:
            kb_repository.create_recipe(
                [sample_units["hook_repeat"].id, sample_units["verse_chorus"].id],
                Level.MOTIF,
                "Procedure",
                "Description",
            )
        assert exc_info.value.unusable_ids == [sample_units["verse_chorus"].id]
        assert exc_info.value.target_level == Level.MOTIF
        assert len(recipe_store) == 0

    def test_empty_recipe_is_rejected(self, kb_repository):
        with pytest.raises(EmptyCompositionError):
            kb_repository.create_recipe([], Level.WORK, "Procedure", "Description")

    def test_blank_text_is_rejected(self, kb_repository, recipe_store, sample_units):
        with pytest.raises(RecipeValidationError):
            kb_repository.create_recipe([2], Level.WORK, "   ", "Description")
        assert len(recipe_store) == 0

    def test_level_change_is_revalidated(self, kb_repository, sample_units):
        recipe = kb_repository.create_recipe([2], Level.WORK, "Procedure", "Description")

        # work form at collection flips to material, so this is fine
        moved = kb_repository.update_recipe(recipe.id, level=Level.COLLECTION)
        assert moved.level == Level.COLLECTION

        # but work form at section is not allowed
        with pytest.raises(UnusableKnowledgePointsError):
            kb_repository.update_recipe(recipe.id, level=Level.SECTION)
        assert kb_repository.get_recipe(recipe.id).level == Level.COLLECTION

    def test_update_ids_is_revalidated(self, kb_repository, sample_units):
        recipe = kb_repository.create_recipe([2], Level.WORK, "Procedure", "Description")
        with pytest.raises(MissingKnowledgePointsError):
            kb_repository.update_recipe(recipe.id, knowledge_point_ids=[2, 77])
        updated = kb_repository.update_recipe(recipe.id, knowledge_point_ids=[3, 2], description="New")
        assert updated.knowledge_point_ids == (3, 2)
        assert updated.description == "New"
        assert updated.procedure == "Procedure"

    def test_update_unknown_recipe(self, kb_repository):
        with pytest.raises(RecipeNotFoundError):
            kb_repository.update_recipe(5, description="x")

    def test_list_recipes_filters(self, kb_repository, sample_units):
        kb_repository.create_recipe([2], Level.WORK, "Build the chorus", "Pop song")
        kb_repository.create_recipe([1, 2], Level.COLLECTION, "Order tracks", "Album arc")
        assert [r.id for r in kb_repository.list_recipes()] == [2, 1]
        assert [r.id for r in kb_repository.list_recipes(level=Level.WORK)] == [1]
        assert [r.id for r in kb_repository.list_recipes(keyword="album")] == [2]

    def test_delete_recipe(self, kb_repository, sample_units):
        recipe = kb_repository.create_recipe([2], Level.WORK, "Procedure", "Description")
        assert kb_repository.delete_recipe(recipe.id) is True
        assert kb_repository.get_recipe(recipe.id) is None
        assert kb_repository.delete_recipe(recipe.id) is False


class TestReferenceIntegrity:
    """Referenced units cannot be deleted or edited out from under a recipe."""

    def test_delete_referenced_unit_is_blocked(self, kb_repository, sample_units):
        recipe = kb_repository.create_recipe([2], Level.WORK, "Procedure", "Description")
        with pytest.raises(DeletionBlockedError) as exc_info:
            kb_repository.delete_unit(2)
        assert exc_info.value.blocking_recipes == [recipe.id]
        assert kb_repository.get_unit(2) is not None

        kb_repository.delete_recipe(recipe.id)
        assert kb_repository.delete_unit(2) is True

    def test_edit_that_breaks_a_recipe_is_blocked(self, kb_repository, sample_units):
        recipe = kb_repository.create_recipe([2], Level.COLLECTION, "Procedure", "Description")
        # work material cannot rise to collection
        with pytest.raises(UnitUpdateBlockedError) as exc_info:
            kb_repository.update_unit(2, category=Category.MATERIAL)
        assert exc_info.value.blocking_recipes == [recipe.id]
        assert kb_repository.get_unit(2).category == Category.FORM

    def test_edit_that_keeps_recipes_valid_is_allowed(self, kb_repository, sample_units):
        kb_repository.create_recipe([1], Level.COLLECTION, "Procedure", "Description")
        updated = kb_repository.update_unit(1, category=Category.MATERIAL, content="Reworded")
        assert updated.category == Category.MATERIAL
        assert updated.content == "Reworded"

    def test_audit_reports_recipes_stored_behind_the_repository(self, kb_repository, recipe_store, sample_units):
        kb_repository.create_recipe([2], Level.WORK, "Procedure", "Valid")
        recipe_store.create(Recipe(
            id=recipe_store.next_id(),
            knowledge_point_ids=(2, 99),
            level=Level.TIMBRE,
            procedure="Imported",
            description="Legacy",
        ))
        failures = kb_repository.audit_recipes()
        assert len(failures) == 1
        recipe, check = failures[0]
        assert recipe.description == "Legacy"
        assert check.missing_ids == (99,)
        assert check.unusable_ids == (2,)


class TestConfiguration:
    """Mode selection from arguments and environment."""

    def test_injected_empty_stores_are_used(self):
        units, recipes = InMemoryKnowledgeUnitStore(), InMemoryRecipeStore()
        kb = KnowledgeBaseRepository(unit_store=units, recipe_store=recipes)
        unit = kb.create_unit("Rule", Level.WORK, Category.FORM)
        kb.create_recipe([unit.id], Level.WORK, "Procedure", "Description")
        assert len(units) == 1
        assert len(recipes) == 1

    def test_injected_empty_sqlite_stores_are_used(self, tmp_path):
        db = SQLiteDatabase(tmp_path / "injected.db")
        units, recipes = SQLiteKnowledgeUnitStore(db), SQLiteRecipeStore(db)
        kb = KnowledgeBaseRepository(unit_store=units, recipe_store=recipes, mode="sqlite")
        kb.create_unit("Rule", Level.WORK, Category.FORM)
        assert units.count() == 1
        assert kb.health_check()["units"] == 1

    def test_memory_is_default(self, monkeypatch):
        monkeypatch.delenv("MUSIC_KB_MODE", raising=False)
        assert KnowledgeBaseRepository().mode == "memory"

    def test_unknown_mode(self):
        with pytest.raises(ValueError):
            KnowledgeBaseRepository(mode="postgres")

    def test_sqlite_mode_from_environment(self, monkeypatch, tmp_path):
        db_path = tmp_path / "kb" / "music.db"
        monkeypatch.setenv("MUSIC_KB_MODE", "sqlite")
        monkeypatch.setenv("MUSIC_KB_DB_PATH", str(db_path))

        kb = KnowledgeBaseRepository()
        assert kb.mode == "sqlite"
        unit = kb.create_unit("Persistent rule", Level.WORK, Category.FORM)
        kb.create_recipe([unit.id], Level.COLLECTION, "Procedure", "Description")

        reopened = KnowledgeBaseRepository()
        assert reopened.get_unit(unit.id).content == "Persistent rule"
        assert reopened.health_check() == {"ok": True, "mode": "sqlite", "units": 1, "recipes": 1}

    def test_health_check(self, kb_repository, sample_units):
        assert kb_repository.health_check() == {"ok": True, "mode": "memory", "units": 6, "recipes": 0}


class TestSQLiteStores:
    """SQLite backends behave like the in-memory ones."""

    def setup_method(self):
        self.db = SQLiteDatabase(":memory:")
        self.units = SQLiteKnowledgeUnitStore(self.db)
        self.recipes = SQLiteRecipeStore(self.db)

    def teardown_method(self):
        self.db.close()

    def _unit(self, level=Level.WORK, category=Category.FORM, content="Rule"):
        return self.units.create(KnowledgeUnit(
            id=self.units.next_id(), content=content, level=level, category=category,
        ))

    def test_unit_round_trip(self):
        unit = self._unit()
        assert unit.id == 1
        loaded = self.units.get(1)
        assert loaded == unit
        assert self.units.get(2) is None

    def test_duplicate_unit_id(self):
        unit = self._unit()
        with pytest.raises(KnowledgeUnitValidationError):
            self.units.create(unit)

    def test_unit_update_and_delete(self):
        unit = self._unit()
        updated = self.units.update(KnowledgeUnit(
            id=unit.id, content="Changed", level=Level.SECTION, category=Category.MATERIAL,
        ))
        assert updated.content == "Changed"
        assert updated.level == Level.SECTION
        assert updated.created_at == unit.created_at
        assert updated.updated_at is not None
        assert self.units.delete(unit.id) is True
        assert self.units.delete(unit.id) is False

    def test_update_missing_unit(self):
        with pytest.raises(KnowledgeUnitNotFoundError):
            self.units.update(KnowledgeUnit(id=3, content="x", level=Level.WORK, category=Category.FORM))

    def test_unit_listing(self):
        self._unit(content="Chorus hook")
        self._unit(level=Level.MOTIF, content="Motif cell")
        self._unit(content="Chorus return")
        assert [u.id for u in self.units.list_units()] == [3, 2, 1]
        assert [u.id for u in self.units.list_units(level=Level.WORK, keyword="chorus")] == [3, 1]

    def test_recipe_keeps_order_and_duplicates(self):
        recipe = self.recipes.create(Recipe(
            id=self.recipes.next_id(),
            knowledge_point_ids=(4, 1, 4),
            level=Level.WORK,
            procedure="Procedure",
            description="Description",
        ))
        assert self.recipes.get(recipe.id).knowledge_point_ids == (4, 1, 4)
        assert [r.id for r in self.recipes.list_referencing(4)] == [recipe.id]
        assert self.recipes.list_referencing(2) == []

    def test_recipe_update_replaces_points(self):
        recipe = self.recipes.create(Recipe(
            id=1, knowledge_point_ids=(1, 2), level=Level.WORK, procedure="P", description="D",
        ))
        updated = self.recipes.update(Recipe(
            id=recipe.id, knowledge_point_ids=(3,), level=Level.SECTION, procedure="P2", description="D",
        ))
        assert updated.knowledge_point_ids == (3,)
        assert updated.level == Level.SECTION
        assert self.recipes.list_referencing(1) == []

    def test_update_missing_recipe_leaves_points_untouched(self):
        with pytest.raises(RecipeNotFoundError):
            self.recipes.update(Recipe(id=8, knowledge_point_ids=(1,), level=Level.WORK, procedure="P", description="D"))
        assert self.recipes.list_referencing(1) == []

    def test_recipe_delete(self):
        self.recipes.create(Recipe(id=1, knowledge_point_ids=(1,), level=Level.WORK, procedure="P", description="D"))
        assert self.recipes.delete(1) is True
        assert self.recipes.list_referencing(1) == []
        assert self.recipes.delete(1) is False

    def test_counts(self):
        self._unit()
        self._unit()
        assert self.units.count() == 2
        assert self.recipes.count() == 0
        with pytest.raises(ValueError):
            self.db.count("sqlite_master")

    def test_repository_over_sqlite_blocks_deletes(self):
        kb = KnowledgeBaseRepository(unit_store=self.units, recipe_store=self.recipes)
        unit = kb.create_unit("Rule", Level.WORK, Category.FORM)
        kb.create_recipe([unit.id], Level.COLLECTION, "Procedure", "Description")
        with pytest.raises(DeletionBlockedError):
            kb.delete_unit(unit.id)


class TestInMemoryStores:
    """Store-level validation independent of the repository."""

    def test_duplicate_recipe_id(self):
        store = InMemoryRecipeStore()
        recipe = Recipe(id=1, knowledge_point_ids=(1,), level=Level.WORK, procedure="P", description="D")
        store.create(recipe)
        with pytest.raises(RecipeValidationError):
            store.create(recipe)

    def test_non_positive_id(self):
        store = InMemoryKnowledgeUnitStore()
        with pytest.raises(KnowledgeUnitValidationError):
            store.create(KnowledgeUnit(id=0, content="x", level=Level.WORK, category=Category.FORM))


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
