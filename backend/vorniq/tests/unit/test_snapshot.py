import json

from vorniq.identity.models import Principal
from vorniq.identity.snapshot import FilePrincipalSnapshotStore


class TestFilePrincipalSnapshotStore:
    def test_round_trip(self, tmp_path, principal):
        store = FilePrincipalSnapshotStore(tmp_path / "nested" / "principal.json")
        store.save(principal)
        assert store.load() == principal
        assert json.loads(store.path.read_text())["photoURL"] is None

    def test_missing_file(self, tmp_path):
        assert FilePrincipalSnapshotStore(tmp_path / "none.json").load() is None

    def test_corrupt_file_loads_as_none(self, tmp_path):
        path = tmp_path / "principal.json"
        path.write_text("{not json")
        assert FilePrincipalSnapshotStore(path).load() is None

    def test_incomplete_snapshot_loads_as_none(self, tmp_path):
        path = tmp_path / "principal.json"
        path.write_text(json.dumps({"id": "u1", "email": ""}))
        assert FilePrincipalSnapshotStore(path).load() is None

    def test_clear(self, tmp_path):
        store = FilePrincipalSnapshotStore(tmp_path / "principal.json")
        store.save(Principal(id="u1", email="u1@x.com"))
        store.clear()
        store.clear()
        assert store.load() is None
        assert not store.path.exists()
