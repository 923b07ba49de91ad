"""Tests for symlink layout planning and application."""

import os

from tether.install.layout import (
    LinkAction,
    LinkSpec,
    apply_layout,
    ensure_layout,
    merge_tree,
    plan_layout,
)


class TestPlanLayout:
    def test_actions_for_each_starting_state(self, tmp_path):
        target = tmp_path / "persistent"
        target.mkdir()
        other = tmp_path / "elsewhere"
        other.mkdir()

        missing = tmp_path / "missing"
        correct = tmp_path / "correct"
        correct.symlink_to(target)
        wrong = tmp_path / "wrong"
        wrong.symlink_to(other)
        real_dir = tmp_path / "real"
        real_dir.mkdir()
        plain = tmp_path / "plain"
        plain.write_text("x")

        actions = plan_layout(
            [
                LinkSpec(missing, target),
                LinkSpec(correct, target),
                LinkSpec(wrong, target),
                LinkSpec(real_dir, target),
                LinkSpec(real_dir, target, migrate=False),
                LinkSpec(plain, target),
            ]
        )

        assert [a.action for a in actions] == [
            LinkAction.CREATE,
            LinkAction.NONE,
            LinkAction.RELINK,
            LinkAction.MIGRATE,
            LinkAction.REPLACE,
            LinkAction.REPLACE,
        ]

    def test_relative_symlink_to_target_is_correct(self, tmp_path):
        target = tmp_path / "persistent"
        target.mkdir()
        link = tmp_path / "link"
        link.symlink_to("persistent")

        (action,) = plan_layout([LinkSpec(link, target)])

        assert action.action == LinkAction.NONE


class TestApplyLayout:
    def test_creates_missing_link_and_parents(self, tmp_path):
        target = tmp_path / "persistent"
        target.mkdir()
        link = tmp_path / "home" / ".local" / "share" / "claude"

        result = ensure_layout([LinkSpec(link, target)])

        assert link.is_symlink()
        assert os.readlink(link) == str(target)
        assert len(result.applied) == 1
        assert result.errors == []

    def test_is_idempotent(self, tmp_path):
        target = tmp_path / "persistent"
        target.mkdir()
        link = tmp_path / ".claude"

        ensure_layout([LinkSpec(link, target)])
        second = ensure_layout([LinkSpec(link, target)])

        assert second.applied == []
        assert second.errors == []

    def test_migrates_directory_without_overwriting(self, tmp_path):
        target = tmp_path / "persistent"
        target.mkdir()
        (target / "keep.json").write_text("persistent")
        home_dir = tmp_path / ".claude"
        (home_dir / "projects").mkdir(parents=True)
        (home_dir / "keep.json").write_text("ephemeral")
        (home_dir / "projects" / "new.jsonl").write_text("{}")

        ensure_layout([LinkSpec(home_dir, target)])

        assert home_dir.is_symlink()
        assert (target / "keep.json").read_text() == "persistent"
        assert (target / "projects" / "new.jsonl").read_text() == "{}"

    def test_relinks_wrong_target(self, tmp_path):
        target = tmp_path / "persistent"
        target.mkdir()
        other = tmp_path / "other"
        other.mkdir()
        link = tmp_path / "link"
        link.symlink_to(other)

        ensure_layout([LinkSpec(link, target)])

        assert os.readlink(link) == str(target)
        assert other.is_dir()

    def test_failure_is_reported_and_later_links_still_applied(self, tmp_path):
        target = tmp_path / "persistent"
        target.mkdir()
        blocker = tmp_path / "blocker"
        blocker.write_text("file, not a directory")
        bad = LinkSpec(blocker / "child", target)
        good = LinkSpec(tmp_path / "good", target)

        result = apply_layout(plan_layout([bad, good]))

        assert len(result.errors) == 1
        assert "blocker" in result.errors[0]
        assert [a.spec for a in result.applied] == [good]
        assert (tmp_path / "good").is_symlink()


def test_merge_tree_counts_copied_files(tmp_path):
    src = tmp_path / "src"
    (src / "a").mkdir(parents=True)
    (src / "a" / "one.txt").write_text("1")
    (src / "two.txt").write_text("2")
    dst = tmp_path / "dst"
    dst.mkdir()
    (dst / "two.txt").write_text("existing")

    copied = merge_tree(src, dst)

    assert copied == 1
    assert (dst / "a" / "one.txt").read_text() == "1"
    assert (dst / "two.txt").read_text() == "existing"
