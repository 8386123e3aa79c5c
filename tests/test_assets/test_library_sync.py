"""
Tests for library sync

Tests for scriptflow/assets/library_sync.py
"""

from scriptflow.assets.library_sync import check_sync, sync_entity, upsert_ref
from scriptflow.core.models import AssetRef, Character, CharacterVariation, Prop, ScriptData


class TestCheckSync:
    """Tests for check_sync."""

    def test_classifies_refs(self):
        refs = [
            AssetRef("lib-a", 1),
            AssetRef("lib-b", 2),
            AssetRef("lib-gone", 1),
            AssetRef("lib-local", 1, "local-only"),
        ]
        library = [
            Character(id="lib-a", name="A", version=2),
            Character(id="lib-b", name="B", version=2),
        ]

        result = check_sync(refs, library)

        assert [r.entity_id for r in result.outdated_refs] == ["lib-a"]
        assert [r.entity_id for r in result.missing_in_library] == ["lib-gone"]
        assert not result.in_sync

    def test_missing_version_counts_as_one(self):
        result = check_sync([AssetRef("lib-a", 1)], [Prop(id="lib-a", name="Lamp")])

        assert result.in_sync


class TestUpsertRef:
    """Tests for upsert_ref."""

    def test_replace_in_place(self):
        refs = [AssetRef("a", 1), AssetRef("b", 1)]

        updated = upsert_ref(refs, AssetRef("a", 3))

        assert [(r.entity_id, r.synced_version) for r in updated] == [("a", 3), ("b", 1)]
        assert refs[0].synced_version == 1

    def test_append(self):
        assert [r.entity_id for r in upsert_ref([], AssetRef("a"))] == ["a"]


class TestSyncEntity:
    """Tests for sync_entity."""

    def test_reapplies_library_version(self):
        local = Character(
            id="char_local",
            name="Anna",
            visual_prompt="old",
            library_id="lib-anna",
            library_version=1,
            variations=[CharacterVariation(id="v1", name="Soaked")],
        )
        other = Character(id="char-2", name="Tom")
        script = ScriptData(characters=[local, other])
        library_asset = Character(
            id="lib-anna",
            name="Anna Lee",
            visual_prompt="new library prompt",
            reference_image="https://lib/anna-v4.png",
            version=4,
        )

        new_script, refs = sync_entity(script, [AssetRef("lib-anna", 1)], library_asset)

        synced = new_script.characters[0]
        assert synced.id == "char_local"
        assert synced.name == "Anna Lee"
        assert synced.visual_prompt == "new library prompt"
        assert synced.library_version == 4
        assert synced.variations[0].name == "Soaked"
        assert new_script.characters[1] == other
        assert [r.to_dict() for r in refs] == [{"entity_id": "lib-anna", "synced_version": 4, "sync_status": "synced"}]
        assert script.characters[0].visual_prompt == "old"

    def test_unlinked_entities_untouched(self):
        script = ScriptData(props=[Prop(id="p1", name="Lamp")])

        new_script, refs = sync_entity(script, [], Prop(id="lib-lamp", name="Lamp", version=2))

        assert new_script.props[0] == script.props[0]
        assert refs[0].entity_id == "lib-lamp"
