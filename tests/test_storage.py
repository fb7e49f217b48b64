"""Tests for storage layer (ManifestStore and InstalledModulesStore)."""

import json
from pathlib import Path

import pytest

from modex_cli.errors import NotFound, RegistryUnavailable, ValidationError
from modex_cli.models import ModuleManifest
from modex_cli.storage import InstalledModulesStore, ManifestStore, write_json_atomic


class TestWriteJsonAtomic:

    def test_writes_and_leaves_no_temp_files(self, temp_dir: Path):
        """Test writing replaces the file without temp files."""
        target = temp_dir / "nested" / "doc.json"
        write_json_atomic(target, {"a": 1})
        write_json_atomic(target, {"a": 2})

        assert json.loads(target.read_text()) == {"a": 2}
        assert [p.name for p in target.parent.iterdir()] == ["doc.json"]

    def test_failed_write_keeps_previous_document(self, temp_dir: Path):
        """Test a failed write keeps the previous document."""
        target = temp_dir / "doc.json"
        write_json_atomic(target, {"ok": True})

        with pytest.raises(TypeError):
            write_json_atomic(target, {"bad": object()})

        assert json.loads(target.read_text()) == {"ok": True}
        assert [p.name for p in temp_dir.iterdir()] == ["doc.json"]


class TestManifestStoreLifecycle:
    """Tests for init/load/save."""

    def test_load_missing_registry(self, modex_root: Path):
        """Test loading a missing registry."""
        with pytest.raises(RegistryUnavailable) as exc_info:
            ManifestStore().load()
        assert "modex registry sync" in str(exc_info.value)

    def test_load_corrupt_registry(self, modex_root: Path):
        """Test loading a registry that is not valid JSON."""
        store = ManifestStore()
        store.registry_file.parent.mkdir(parents=True)
        store.registry_file.write_text("{not json")

        with pytest.raises(RegistryUnavailable) as exc_info:
            store.load()
        assert exc_info.value.reason == "unreadable"

    @pytest.mark.parametrize("document", [
        {"version": "1.0.0", "categories": [{"id": "x"}]},
        {"version": "1.0.0", "categories": {}, "stats": ["bad"]},
        {"version": "1.0.0", "categories": {"ui": {"id": "x"}}},
        {"version": "1.0.0", "categories": "ui"},
        [{"id": "x"}],
    ])
    def test_load_wrong_shape_registry(self, modex_root: Path, document):
        """Test loading valid JSON with the wrong document shape."""
        store = ManifestStore()
        store.registry_file.parent.mkdir(parents=True)
        store.registry_file.write_text(json.dumps(document))

        with pytest.raises(RegistryUnavailable) as exc_info:
            store.load()
        assert exc_info.value.reason == "unreadable"

    def test_init_creates_empty_document(self, modex_root: Path):
        """Test init writes an empty document."""
        store = ManifestStore()
        assert store.init() is True

        document = json.loads(store.registry_file.read_text())
        assert document["version"] == "1.0.0"
        assert set(document["categories"]) == {"ui", "logic", "data", "integration"}
        assert document["stats"]["total_modules"] == 0

    def test_init_is_idempotent_unless_forced(self, empty_store: ManifestStore, manifest_factory):
        """Test init keeps an existing registry unless forced."""
        empty_store.register(manifest_factory())
        assert ManifestStore().init() is False
        assert len(ManifestStore().load()) == 1

        assert ManifestStore().init(force=True) is True
        assert len(ManifestStore().load()) == 0

    def test_persists_across_instances(self, empty_store: ManifestStore, manifest_factory):
        """Test registered modules persist across instances."""
        empty_store.register(manifest_factory(id="persisted", category="data"))

        reloaded = ManifestStore().load()
        assert reloaded.get("persisted").category == "data"

        document = json.loads(reloaded.registry_file.read_text())
        assert [m["id"] for m in document["categories"]["data"]] == ["persisted"]

    def test_unreadable_records_are_kept(self, empty_store: ManifestStore, manifest_factory):
        """Test unreadable records survive a save."""
        document = json.loads(empty_store.registry_file.read_text())
        document["categories"]["logic"] = [
            manifest_factory(id="good-one"),
            {"id": "bad-one", "category": "logic"},
        ]
        document["categories"]["ui"] = [manifest_factory(id="wrong-group", category="data")]
        empty_store.registry_file.write_text(json.dumps(document))

        store = ManifestStore().load()
        assert [m.id for m in store.list()] == ["good-one"]
        assert sorted(store.unreadable()) == [("bad-one", "logic"), ("wrong-group", "ui")]

        store.register(manifest_factory(id="another"))
        saved = json.loads(store.registry_file.read_text())
        assert {"id": "bad-one", "category": "logic"} in saved["categories"]["logic"]


class TestManifestStoreCrud:
    """Tests for register/get/list/remove."""

    def test_round_trip(self, empty_store: ManifestStore, manifest_factory):
        """Test a manifest round trip with defaults."""
        data = manifest_factory(
            id="user-profile-ui",
            category="ui",
            keywords=["user", "profile"],
            exports={"components": [{"name": "UserCard", "path": "src/UserCard.tsx", "example": "<UserCard />"}]},
            dependencies={"modules": ["user-logic"], "packages": ["react"]},
        )
        empty_store.register(data)

        stored = ManifestStore().load().get("user-profile-ui").to_dict()
        for key, value in data.items():
            if key == "exports":
                assert stored["exports"]["components"] == value["components"]
            else:
                assert stored[key] == value
        # Server-assigned defaults
        assert stored["status"] == "stable"
        assert stored["exports"]["hooks"] == []
        assert stored["use_cases"] == []
        assert stored["path"] == "modules/ui/user-profile-ui"

    def test_register_invalid_lists_all_errors(self, empty_store: ManifestStore, manifest_factory):
        """Test registering an invalid manifest reports every field."""
        bad = manifest_factory(id="Bad Id", version="1.0", category="frontend", description="short", keywords=[])

        with pytest.raises(ValidationError) as exc_info:
            empty_store.register(bad)

        fields = {error.split(":")[0] for error in exc_info.value.errors}
        assert fields == {"id", "version", "category", "description", "keywords"}
        assert len(empty_store) == 0
        assert ManifestStore().load().list() == []

    def test_register_replaces_and_moves_category(self, empty_store: ManifestStore, manifest_factory):
        """Test re-registering replaces and moves category."""
        empty_store.register(manifest_factory(id="mover", category="logic"))
        empty_store.register(manifest_factory(id="mover", category="data", version="1.1.0"))

        assert len(empty_store) == 1
        assert empty_store.get("mover").version == "1.1.0"
        assert [m.id for m in empty_store.list("data")] == ["mover"]
        assert empty_store.list("logic") == []

    def test_register_manifest_object(self, empty_store: ManifestStore, manifest_factory):
        """Test registering a manifest object."""
        manifest = ModuleManifest.from_dict(manifest_factory(id="from-object"))
        empty_store.register(manifest)
        assert "from-object" in ManifestStore().load()

    def test_get_missing(self, empty_store: ManifestStore):
        """Test getting an unknown module."""
        with pytest.raises(NotFound):
            empty_store.get("nope")

    def test_remove_missing(self, empty_store: ManifestStore):
        """Test removing an unknown module."""
        with pytest.raises(NotFound):
            empty_store.remove("nope")

    def test_list_by_category(self, synced_store: ManifestStore):
        """Test listing by category."""
        assert [m.id for m in synced_store.list("ui")] == ["products-ui", "user-profile-ui"]
        assert [m.id for m in synced_store.list("logic")] == ["orders-logic", "user-logic"]


class TestStats:
    """Tests for compute_stats()."""

    def test_counts_after_register_and_remove(self, empty_store: ManifestStore, manifest_factory):
        """Test stats after registering and removing."""
        layout = {"ui": 3, "logic": 2, "data": 1, "integration": 0}
        for category, count in layout.items():
            for i in range(count):
                empty_store.register(manifest_factory(id=f"{category}-{i}", category=category), save=False)

        stats = empty_store.compute_stats()
        assert stats.total_modules == 6
        assert {c: stats.count(c) for c in layout} == layout

        empty_store.remove("ui-1")
        stats = empty_store.compute_stats()
        assert stats.total_modules == 5
        assert stats.ui == 2
        assert stats.logic == 2

    def test_stats_written_to_document(self, synced_store: ManifestStore):
        """Test stats are written to the document."""
        document = json.loads(synced_store.registry_file.read_text())
        assert document["stats"]["total_modules"] == 6
        assert document["stats"]["logic"] == 2
        assert "last_sync" in document["stats"]

    def test_reusability_monotonic(self, empty_store: ManifestStore, manifest_factory):
        """Test reusability grows with dependency references."""
        exports = {"services": [{"name": "Svc", "path": "svc.ts"}]}
        empty_store.register(manifest_factory(id="core", exports=exports), save=False)
        empty_store.register(manifest_factory(id="a", exports=exports), save=False)
        empty_store.register(manifest_factory(id="b", exports=exports), save=False)
        before = empty_store.compute_stats().reusability_score

        empty_store.register(manifest_factory(id="a", exports=exports, dependencies={"modules": ["core"]}), save=False)
        middle = empty_store.compute_stats().reusability_score

        empty_store.register(manifest_factory(id="b", exports=exports, dependencies={"modules": ["core", "a"]}), save=False)
        after = empty_store.compute_stats().reusability_score

        assert before == 0
        assert before <= middle <= after
        assert after == 100

    def test_reusability_ignores_unknown_and_self_dependencies(self, empty_store: ManifestStore, manifest_factory):
        """Test self and unknown dependencies are ignored."""
        empty_store.register(manifest_factory(
            id="solo",
            exports={"utils": [{"name": "fn", "path": "fn.ts"}]},
            dependencies={"modules": ["solo", "not-registered"]},
        ))
        assert empty_store.compute_stats().reusability_score == 0


class TestSync:
    """Tests for rebuilding the registry from a modules tree."""

    def test_sync_registers_valid_manifests(self, synced_store: ManifestStore):
        """Test sync registers every valid manifest."""
        assert [m.id for m in synced_store.list()] == [
            "orders-logic",
            "products-ui",
            "stripe-integration",
            "user-data",
            "user-logic",
            "user-profile-ui",
        ]

    def test_sync_sets_relative_path(self, synced_store: ManifestStore):
        """Test sync records the module path."""
        assert synced_store.get("user-logic").path == "modules/logic/user-logic"

    def test_sync_folds_ai_block(self, synced_store: ManifestStore):
        """Test sync folds the ai block."""
        manifest = synced_store.get("user-profile-ui")
        assert "perfil" in manifest.keywords
        assert manifest.use_cases[0] == "Show the logged-in user's profile"
        assert manifest.examples

    def test_sync_reports_skipped(self, modules_tree: Path):
        """Test sync reports skipped directories."""
        (modules_tree / "ui" / "no-manifest").mkdir()
        misplaced = modules_tree / "data" / "misplaced"
        misplaced.mkdir()
        (misplaced / "module.json").write_text(json.dumps({
            "id": "misplaced",
            "name": "Misplaced",
            "version": "1.0.0",
            "category": "ui",
            "description": "Declares ui but lives under data",
            "keywords": ["x"],
        }))

        report = ManifestStore().sync()

        assert "logic/broken-logic" in report.skipped
        assert "version" in report.skipped["logic/broken-logic"]
        assert report.skipped["ui/no-manifest"] == "no module.json"
        assert "does not match" in report.skipped["data/misplaced"]
        assert len(report.synced) == 6

    def test_sync_replaces_registry(self, synced_store: ManifestStore, manifest_factory):
        """Test sync replaces the registry contents."""
        synced_store.register(manifest_factory(id="manual-only"))
        synced_store.sync()
        assert "manual-only" not in ManifestStore().load()

    def test_sync_skipped_keys_include_category(self, modules_tree: Path):
        """Test same-named directories in two categories are both reported."""
        (modules_tree / "ui" / "dup").mkdir()
        (modules_tree / "logic" / "dup").mkdir()

        report = ManifestStore().sync()

        assert report.skipped["ui/dup"] == "no module.json"
        assert report.skipped["logic/dup"] == "no module.json"

    def test_sync_missing_modules_dir(self, modex_root: Path):
        """Test sync without a modules directory."""
        report = ManifestStore().sync()
        assert report.synced == []
        assert len(ManifestStore().load()) == 0


class TestInstalledModulesStore:
    """Tests for installed.json tracking."""

    def test_missing_document_is_empty(self, modex_root: Path):
        """Test a missing document is empty."""
        assert InstalledModulesStore().load().list() == []

    def test_install_list_deactivate(self, synced_store: ManifestStore):
        """Test installing, listing and deactivating."""
        installed = InstalledModulesStore().load()
        item = installed.install(synced_store.get("user-logic"))
        installed.install(synced_store.get("user-data"))

        assert item.version == "2.0.1"
        assert item.path == "modules/logic/user-logic"

        reloaded = InstalledModulesStore().load()
        assert [m.id for m in reloaded.list()] == ["user-data", "user-logic"]

        reloaded.deactivate("user-data")
        again = InstalledModulesStore().load()
        assert [m.id for m in again.list(active_only=True)] == ["user-logic"]

        document = json.loads(again.installed_file.read_text())
        assert {"id", "version", "installedAt", "path", "active"} <= set(document["modules"][0])

    def test_deactivate_missing(self, modex_root: Path):
        """Test deactivating an unknown module."""
        with pytest.raises(NotFound):
            InstalledModulesStore().load().deactivate("ghost")
