"""Tests for git error classification."""

import pytest

from gitpilot.git.classifier import ERROR_PATTERNS, REMEDIATION_HINTS, classify, remediation_hint
from gitpilot.git.types import ErrorKind


class TestClassify:
    """Fixture table of real git diagnostics."""

    @pytest.mark.parametrize(
        "text,expected",
        [
            ("fatal: not a git repository (or any of the parent directories): .git", ErrorKind.NOT_A_REPOSITORY),
            ("nothing to commit, working tree clean", ErrorKind.NOTHING_TO_COMMIT),
            ('no changes added to commit (use "git add" and/or "git commit -a")', ErrorKind.NOTHING_TO_COMMIT),
            ("Nothing specified, nothing added.\nMaybe you wanted to say 'git add .'?", ErrorKind.NOTHING_TO_STAGE),
            ("No local changes to save", ErrorKind.NOTHING_TO_STAGE),
            (
                "Auto-merging a.txt\nCONFLICT (content): Merge conflict in a.txt\n"
                "Automatic merge failed; fix conflicts and then commit the result.",
                ErrorKind.MERGE_CONFLICT,
            ),
            (
                "error: could not apply 1a2b3c4... change\n"
                "hint: Resolve all conflicts manually, mark them as resolved with\n"
                'hint: "git add/rm <conflicted_files>", then run "git rebase --continue".',
                ErrorKind.REBASE_CONFLICT,
            ),
            (
                "error: could not apply 1a2b3c4... change\n"
                "hint: after resolving the conflicts, mark the corrected paths\n"
                "hint: and commit the result with 'git cherry-pick --continue'",
                ErrorKind.CHERRY_PICK_CONFLICT,
            ),
            ("fatal: Authentication failed for 'https://example.com/repo.git/'", ErrorKind.AUTHENTICATION_FAILURE),
            ("git@github.com: Permission denied (publickey).", ErrorKind.AUTHENTICATION_FAILURE),
            (
                "fatal: could not read Username for 'https://github.com': terminal prompts disabled",
                ErrorKind.AUTHENTICATION_FAILURE,
            ),
            ("ssh: Could not resolve hostname example.invalid: Name or service not known", ErrorKind.NETWORK_UNREACHABLE),
            ("error: open(\".git/index.lock\"): Permission denied", ErrorKind.PERMISSION_DENIED),
            (
                " ! [rejected]        main -> main (fetch first)\n"
                "error: failed to push some refs to 'origin'",
                ErrorKind.REMOTE_REJECTED,
            ),
            (
                "fatal: The current branch feature has no upstream branch.\n"
                "To push the current branch and set the remote as upstream, use\n\n"
                "    git push --set-upstream origin feature",
                ErrorKind.NO_UPSTREAM,
            ),
            (
                "fatal: ambiguous argument 'nope': unknown revision or path not in the working tree.",
                ErrorKind.INVALID_REFERENCE,
            ),
            ("error: pathspec 'missing' did not match any file(s) known to git", ErrorKind.INVALID_REFERENCE),
            ("fatal: a branch named 'main' already exists", ErrorKind.INVALID_REFERENCE),
            ("command timed out after 30000ms", ErrorKind.TIMEOUT),
        ],
    )
    def test_known_diagnostics(self, text, expected):
        """Each documented diagnostic maps to its kind."""
        assert classify(text) is expected

    def test_unmatched_text_is_unknown(self):
        """Text no pattern recognises is UNKNOWN."""
        assert classify("something entirely different happened") is ErrorKind.UNKNOWN

    def test_empty_input_is_unknown(self):
        """Empty or missing text is UNKNOWN."""
        assert classify("") is ErrorKind.UNKNOWN
        assert classify(None) is ErrorKind.UNKNOWN

    def test_merge_conflict_marker_is_case_sensitive(self):
        """Lower-case 'conflict' in prose is not a merge conflict."""
        assert classify("no conflict here") is ErrorKind.UNKNOWN

    def test_first_match_wins(self):
        """Repository errors outrank everything mentioned after them."""
        text = "fatal: not a git repository\nCONFLICT (content): Merge conflict in a.txt"
        assert classify(text) is ErrorKind.NOT_A_REPOSITORY


class TestRemediationHints:
    """Tests for remediation hints."""

    def test_every_kind_has_a_hint(self):
        """All error kinds have a non-empty hint."""
        for kind in ErrorKind:
            assert remediation_hint(kind)

    def test_hint_table_covers_pattern_kinds(self):
        """Every kind the classifier can produce has a hint entry."""
        for kind, _ in ERROR_PATTERNS:
            assert kind in REMEDIATION_HINTS

    def test_conflict_hint_names_continue_command(self):
        assert "git rebase --continue" in remediation_hint(ErrorKind.REBASE_CONFLICT)
