"""Tests for the pbac authoring CLI."""

import pytest

from pbac.cli import main
from pbac.registry import TypeKind
from pbac.rules import RuleEffect, SqlPolicyStore


@pytest.fixture
def db_url(tmp_path) -> str:
    """SQLite database file for one test."""
    return f"sqlite:///{tmp_path / 'pbac.db'}"


def run(db_url: str, *args: str) -> int:
    return main(["--database-url", db_url, *args])


class TestTypeCommands:
    """register-type and set-active."""

    def test_register_type(self, db_url, capsys):
        assert run(db_url, "register-type", "resource", "Document", "--description", "Docs") == 0
        assert "Registered resource type: Document" in capsys.readouterr().out

        record = SqlPolicyStore(db_url).get(TypeKind.RESOURCE, "Document")
        assert record.description == "Docs"
        assert record.is_active is True

    def test_register_inactive(self, db_url):
        assert run(db_url, "register-type", "target", "AccessTeam", "--inactive") == 0
        assert SqlPolicyStore(db_url).resolve(TypeKind.TARGET, "AccessTeam").active is False

    def test_set_active(self, db_url):
        run(db_url, "register-type", "target", "AccessTeam")
        assert run(db_url, "set-active", "target", "AccessTeam", "off") == 0
        assert SqlPolicyStore(db_url).resolve(TypeKind.TARGET, "AccessTeam").usable is False

    def test_set_active_unknown_type_fails(self, db_url, capsys):
        assert run(db_url, "set-active", "resource", "Missing", "on") == 1
        assert "not registered" in capsys.readouterr().out


class TestCreateRule:
    """create-rule validation and persistence."""

    def test_create_rule(self, db_url, capsys):
        run(db_url, "register-type", "resource", "Document")
        run(db_url, "register-type", "target", "AccessGroup")

        code = run(
            db_url, "create-rule", "view,update", "deny",
            "--resource-type", "Document", "--resource-id", "7",
            "--target-type", "AccessGroup", "--target-id", "5",
            "--priority", "20", "--conditions", '{"min_level": 3}',
        )
        assert code == 0
        assert "Created rule" in capsys.readouterr().out

        [rule] = SqlPolicyStore(db_url).list_rules()
        assert rule.actions == frozenset({"view", "update"})
        assert rule.effect == RuleEffect.DENY
        assert (rule.resource_type, rule.resource_id) == ("Document", 7)
        assert (rule.target_type, rule.target_id) == ("AccessGroup", 5)
        assert rule.priority == 20
        assert rule.conditions == {"min_level": 3}

    def test_unsupported_action(self, db_url, capsys):
        assert run(db_url, "create-rule", "fly") == 1
        assert "Invalid action" in capsys.readouterr().out

    def test_invalid_effect(self, db_url):
        assert run(db_url, "create-rule", "view", "maybe") == 1

    def test_id_without_type(self, db_url, capsys):
        assert run(db_url, "create-rule", "view", "--resource-id", "7") == 1
        assert "resource_id requires resource_type" in capsys.readouterr().out

    def test_unregistered_type(self, db_url, capsys):
        assert run(db_url, "create-rule", "view", "--resource-type", "Report") == 1
        assert "Resource type 'Report' is not registered" in capsys.readouterr().out
        assert SqlPolicyStore(db_url).list_rules() == []

    def test_invalid_conditions_json(self, db_url):
        assert run(db_url, "create-rule", "view", "--conditions", "{not json") == 1
        assert run(db_url, "create-rule", "view", "--conditions", "[1, 2]") == 1


class TestListAndImport:
    """list-rules and import."""

    def test_list_rules_empty(self, db_url, capsys):
        assert run(db_url, "list-rules") == 0
        assert "No rules defined" in capsys.readouterr().out

    def test_import_then_list(self, db_url, tmp_path, capsys):
        path = tmp_path / "policies.yaml"
        path.write_text(
            "rules:\n"
            "  - effect: allow\n"
            "    actions: [view]\n"
            "    resource: {type: Document}\n"
            "  - effect: deny\n"
            "    actions: [delete]\n"
            "    priority: 50\n"
        )
        assert run(db_url, "import", str(path)) == 0
        assert "Imported 2 rules" in capsys.readouterr().out

        assert run(db_url, "list-rules") == 0
        lines = capsys.readouterr().out.strip().splitlines()
        assert len(lines) == 2
        assert "deny [delete]" in lines[0]
        assert "allow [view]" in lines[1]

    def test_import_rejects_unsupported_action(self, db_url, tmp_path, capsys):
        path = tmp_path / "bad.yaml"
        path.write_text("rules:\n  - actions: [fly]\n")
        assert run(db_url, "import", str(path)) == 1
        assert "Import failed" in capsys.readouterr().out

    def test_import_missing_file(self, db_url, tmp_path):
        assert run(db_url, "import", str(tmp_path / "missing.yaml")) == 1
