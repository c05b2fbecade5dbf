"""Tests for commit message construction."""

import string

from hypothesis import given
from hypothesis import strategies as st

from vault_backup.messages import (
    build_commit_message,
    build_hidden_files_commit_message,
    build_single_file_commit_message,
    format_file_name,
    has_net_deletions,
)
from vault_backup.models import FileDiffStat


def stat(path: str, additions: int = 1, deletions: int = 0) -> FileDiffStat:
    return FileDiffStat.from_counts(path, additions, deletions)


def test_empty_batch_uses_generic_message() -> None:
    assert build_commit_message([]) == "chore: update files"


def test_batch_message_sorts_and_tags_deletions() -> None:
    """Verifies alphabetical ordering and the [DELETES] suffix on net-negative files."""
    files = [stat("b.md", 5, 2), stat("a.md", 1, 10)]

    assert build_commit_message(files) == "chore: update a.md [DELETES], b.md"


def test_batch_message_truncates_after_max_files() -> None:
    """Verifies that only `max_files` names are listed before 'and N more'."""
    files = [stat(f"file{i}.md") for i in range(10)]

    message = build_commit_message(files, max_files=3)

    assert message == "chore: update file0.md, file1.md, file2.md and 7 more"


def test_batch_message_exactly_max_files_is_not_truncated() -> None:
    files = [stat(f"note{i}.md") for i in range(5)]

    message = build_commit_message(files, max_files=5)

    assert "more" not in message
    assert message.count(", ") == 4


def test_zero_net_change_is_not_a_deletion() -> None:
    """Verifies that balanced edits never show the [DELETES] suffix."""
    balanced = stat("even.md", 3, 3)

    assert not has_net_deletions(balanced)
    assert format_file_name(balanced) == "even.md"


def test_single_file_message() -> None:
    assert build_single_file_commit_message(stat("daily.md", 0, 4)) == (
        "chore: update daily.md [DELETES]"
    )
    assert build_single_file_commit_message(stat("daily.md", 4, 0)) == (
        "chore: update daily.md"
    )


def test_hidden_files_message_lists_every_file() -> None:
    """Verifies that the hidden-files message is sorted and never truncated."""
    files = [stat(".zshrc"), stat(".bashrc"), stat(".env")]

    assert build_hidden_files_commit_message(files) == (
        "chore: update hidden files (.bashrc, .env, .zshrc)"
    )

    many = [stat(f".config/{i:02d}") for i in range(20)]
    assert "more" not in build_hidden_files_commit_message(many)


def test_empty_hidden_files_message() -> None:
    assert build_hidden_files_commit_message([]) == "chore: update hidden files"


def test_duplicate_paths_keep_input_order() -> None:
    """Verifies that repeated paths stay adjacent, in the order they were given."""
    files = [stat("b.md", 0, 2), stat("a.md"), stat("b.md", 2, 0)]

    assert build_commit_message(files) == (
        "chore: update a.md, b.md [DELETES], b.md"
    )
    assert build_commit_message(list(reversed(files))) == (
        "chore: update a.md, b.md, b.md [DELETES]"
    )


paths_strategy = st.text(alphabet=string.ascii_lowercase + "./_-", min_size=1)
stat_strategy = st.builds(
    FileDiffStat.from_counts,
    paths_strategy,
    st.integers(min_value=0, max_value=1000),
    st.integers(min_value=0, max_value=1000),
)


@given(
    files=st.lists(stat_strategy, max_size=30, unique_by=lambda s: s.path),
    max_files=st.integers(1, 10),
)
def test_message_is_independent_of_input_order(
    files: list[FileDiffStat], max_files: int
) -> None:
    """
    Property: For distinct paths, reordering the input never changes the message,
    since names are always sorted before formatting.
    """
    assert build_commit_message(files, max_files) == build_commit_message(
        list(reversed(files)), max_files
    )


@given(
    files=st.lists(stat_strategy, min_size=1, max_size=30),
    max_files=st.integers(1, 10),
)
def test_truncation_lists_at_most_max_files(
    files: list[FileDiffStat], max_files: int
) -> None:
    """
    Property: A truncated message names exactly `max_files` files and reports the
    remainder in its 'and N more' suffix.
    """
    message = build_commit_message(files, max_files)

    assert message.startswith("chore: update ")
    if len(files) > max_files:
        assert message.endswith(f" and {len(files) - max_files} more")
    else:
        assert " more" not in message
