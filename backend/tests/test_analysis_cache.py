"""
Unit tests for the analysis cache.
"""
import json

from inboxswipe.config import get_settings
from inboxswipe.models.analysis import Classification, EmailAnalysis
from inboxswipe.services.analysis_cache import CACHE_KEY, AnalysisCache, cache_path_for, get_analysis_cache


def analysis(email_id, summary="Summary"):
    return EmailAnalysis(email_id=email_id, classification=Classification.WORK, summary=summary)


class TestAnalysisCache:
    """Test the versioned JSON store."""

    def test_missing_file_is_empty(self, analysis_cache):
        """Test a cache that was never written is empty."""
        assert analysis_cache.get_all() == {}
        assert analysis_cache.get("a") is None

    def test_put_then_get(self, analysis_cache):
        """Test a written analysis reads back unchanged."""
        analysis_cache.put([analysis("a"), analysis("b")])

        assert analysis_cache.get("a") == analysis("a")
        assert set(analysis_cache.get_all()) == {"a", "b"}

    def test_put_overwrites_by_id(self, analysis_cache):
        """Test re-analysis replaces the record for that id."""
        analysis_cache.put([analysis("a", "old")])
        analysis_cache.put([analysis("a", "new"), analysis("c")])

        assert analysis_cache.get("a").summary == "new"
        assert set(analysis_cache.get_all()) == {"a", "c"}

    def test_uncached_of_keeps_order(self, analysis_cache):
        """Test only uncached ids are returned, in input order."""
        analysis_cache.put([analysis("b")])
        assert analysis_cache.uncached_of(["c", "b", "a"]) == ["c", "a"]

    def test_record_format(self, analysis_cache):
        """Test the on-disk record shape."""
        analysis_cache.put([analysis("a")])

        record = json.loads(analysis_cache.path.read_text())
        assert record["key"] == CACHE_KEY
        assert record["version"] == 1
        assert record["timestamp"] > 0
        assert record["analyses"]["a"]["emailId"] == "a"
        assert record["analyses"]["a"]["classification"] == "work"

    def test_other_version_reads_as_empty(self, tmp_path):
        """Test a store from another version is ignored entirely."""
        path = tmp_path / "analyses.json"
        AnalysisCache(path, version=1).put([analysis("a")])

        newer = AnalysisCache(path, version=2)
        assert newer.get_all() == {}
        assert newer.uncached_of(["a"]) == ["a"]

        newer.put([analysis("b")])
        assert set(newer.get_all()) == {"b"}
        assert AnalysisCache(path, version=1).get_all() == {}

    def test_corrupt_file_reads_as_empty(self, analysis_cache):
        """Test an unparseable store counts as empty and is replaced."""
        analysis_cache.path.parent.mkdir(parents=True, exist_ok=True)
        analysis_cache.path.write_text("{not json")

        assert analysis_cache.get_all() == {}

        analysis_cache.put([analysis("a")])
        assert set(analysis_cache.get_all()) == {"a"}

    def test_wrong_key_reads_as_empty(self, analysis_cache):
        """Test a record under another key is ignored."""
        analysis_cache.path.parent.mkdir(parents=True, exist_ok=True)
        analysis_cache.path.write_text(json.dumps({"key": "other", "version": 1, "analyses": {}}))

        assert analysis_cache.get_all() == {}

    def test_put_nothing_writes_nothing(self, analysis_cache):
        """Test an empty put doesn't create the file."""
        analysis_cache.put([])
        assert not analysis_cache.path.exists()

    def test_clear(self, analysis_cache):
        """Test clearing drops everything and is repeatable."""
        analysis_cache.put([analysis("a")])
        analysis_cache.clear()

        assert analysis_cache.get_all() == {}
        analysis_cache.clear()


class TestPerUserCache:
    """Test that every user gets their own store."""

    def test_paths_differ_per_user(self, tmp_path, monkeypatch):
        """Test users map to distinct files beside the configured path."""
        monkeypatch.setattr(get_settings(), "analysis_cache_path", str(tmp_path / "analyses.json"))

        alice, bob = cache_path_for("alice"), cache_path_for("bob")

        assert alice != bob
        assert alice.parent == tmp_path == bob.parent
        assert alice.name.startswith("analyses-") and alice.suffix == ".json"
        assert cache_path_for("alice") == alice

    def test_user_id_is_not_used_raw(self, tmp_path, monkeypatch):
        """Test path characters in a user id can't escape the directory."""
        monkeypatch.setattr(get_settings(), "analysis_cache_path", str(tmp_path / "analyses.json"))
        assert cache_path_for("../../etc/passwd").parent == tmp_path

    def test_records_are_not_shared(self, tmp_path, monkeypatch):
        """Test one user's analyses are invisible to another."""
        monkeypatch.setattr(get_settings(), "analysis_cache_path", str(tmp_path / "analyses.json"))
        get_analysis_cache.cache_clear()
        try:
            get_analysis_cache("alice").put([analysis("a", "alice's mail")])

            assert get_analysis_cache("bob").get_all() == {}
            assert get_analysis_cache("alice").get("a").summary == "alice's mail"
            assert get_analysis_cache("alice") is get_analysis_cache("alice")
        finally:
            get_analysis_cache.cache_clear()
