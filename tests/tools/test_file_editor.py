import asyncio
import time
from pathlib import Path
from unittest.mock import patch

import pytest

from tools.base import ToolError
from tools.file_editor import FileEditor
from tools.patching import messages
from utils.file_logger import file_history
from utils.file_ops import make_output, read_file


@pytest.fixture
def editor(tmp_path: Path) -> FileEditor:
    """FileEditor rooted at the test's tmp_path."""
    return FileEditor(project_root=tmp_path)


@pytest.fixture
def sample_file(tmp_path: Path) -> Path:
    path = tmp_path / "sample.txt"
    path.write_text("Line 1: Alpha\nLine 2: Beta\nLine 3: Gamma")
    return path


# ---------------------------------------------------------------------------
# view
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_view_file_full(editor: FileEditor, sample_file: Path):
    """Test viewing a file's full content."""
    result = await editor.view(sample_file)
    assert result == make_output(sample_file.read_text(), str(sample_file))


@pytest.mark.asyncio
@pytest.mark.parametrize("view_range, expected_lines", [
    ([1, 3], ["Line 1: Alpha", "Line 2: Beta", "Line 3: Gamma"]),
    ([2, 2], ["Line 2: Beta"]),
    ([3, -1], ["Line 3: Gamma"]),
    ([1, 100], ["Line 1: Alpha", "Line 2: Beta", "Line 3: Gamma"]),  # end is clamped
])
async def test_view_file_with_range(editor: FileEditor, sample_file: Path, view_range, expected_lines):
    """Line numbers in the output follow the file, not the slice."""
    result = await editor.view("sample.txt", view_range)
    expected = make_output("\n".join(expected_lines), "sample.txt", init_line=view_range[0])
    assert result == expected, f"Output mismatch for range {view_range}:\n{result}"


@pytest.mark.asyncio
@pytest.mark.parametrize("invalid_range, error_message_part", [
    ([0, 2], "Its first element `0` should be within the range of lines of the file: [1, 3]"),
    ([10, 12], "Its first element `10` should be within the range of lines"),
    ([1, 0], "Its second element `0` should be larger or equal than its first `1`"),
    ([2, 1], "Its second element `1` should be larger or equal than its first `2`"),
])
async def test_view_file_invalid_range(editor: FileEditor, sample_file: Path, invalid_range, error_message_part):
    result = await editor.view(sample_file, invalid_range)
    assert result.startswith("Invalid `view_range`")
    assert error_message_part in result


@pytest.mark.asyncio
async def test_view_ignores_malformed_range(editor: FileEditor, sample_file: Path):
    result = await editor.view(sample_file, [1, None])
    assert result == make_output(sample_file.read_text(), str(sample_file))


@pytest.mark.asyncio
async def test_view_truncates_long_files(tmp_path: Path, sample_file: Path):
    editor = FileEditor(project_root=tmp_path, max_view_tokens=5)
    result = await editor.view(sample_file)
    assert "characters truncated" in result
    assert result.endswith("3 total lines in file. Use view_range to see specific sections.")


@pytest.mark.asyncio
async def test_view_directory(editor: FileEditor, tmp_path: Path):
    """Directory listings go two levels deep and skip hidden entries."""
    test_dir = tmp_path / "pkg"
    (test_dir / "subdir" / ".hidden_subdir").mkdir(parents=True)
    (test_dir / "file1.txt").write_text("content1")
    (test_dir / "subdir" / "file2.txt").write_text("content2")
    (test_dir / ".hidden.txt").write_text("hidden")

    result = await editor.view("pkg")

    assert result.startswith(
        "Here's the files and directories up to 2 levels deep in pkg, excluding hidden items (3 entries):"
    )
    listed = result.split("\n")[1:-1]
    assert listed == ["pkg/file1.txt", "pkg/subdir", "pkg/subdir/file2.txt"]


@pytest.mark.asyncio
async def test_view_directory_with_range(editor: FileEditor, tmp_path: Path):
    for name in "abcde":
        (tmp_path / f"{name}.txt").write_text(name)
    result = await editor.view(".", [2, 3])
    assert result.split("\n")[1:-1] == ["b.txt", "c.txt"]


@pytest.mark.asyncio
async def test_view_missing_path_raises(editor: FileEditor):
    with pytest.raises(ToolError, match="does not exist"):
        await editor.view("nope.txt")


@pytest.mark.asyncio
async def test_paths_outside_root_are_rejected(editor: FileEditor, tmp_path: Path):
    outside = tmp_path.parent / "elsewhere.txt"
    with pytest.raises(ToolError, match="Access denied"):
        await editor.view(outside)
    with pytest.raises(ToolError, match="Access denied"):
        await editor.create("../escape.txt", "x")


# ---------------------------------------------------------------------------
# create
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_create_writes_file_and_audits(editor: FileEditor, tmp_path: Path):
    result = await editor.create("new/dir/file.py", "print('hi')\n")

    target = tmp_path / "new" / "dir" / "file.py"
    assert result == "File created successfully at: new/dir/file.py"
    assert target.read_text() == "print('hi')\n"
    assert not target.with_name("file.py.tmp").exists()
    assert [op["operation"] for op in file_history(target.resolve())] == ["create"]


@pytest.mark.asyncio
async def test_create_overwrites(editor: FileEditor, sample_file: Path):
    await editor.create(sample_file, "replaced")
    assert sample_file.read_text() == "replaced"


# ---------------------------------------------------------------------------
# str_replace
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_exact_replace_is_reversible(editor: FileEditor, tmp_path: Path):
    path = tmp_path / "module.py"
    original = "import os\n\ndef main():\n    return os.getcwd()\n"
    path.write_text(original)

    first = await editor.str_replace(path, "return os.getcwd()", "return os.getpid()")
    second = await editor.str_replace(path, "return os.getpid()", "return os.getcwd()")

    assert "has been edited" in first and "has been edited" in second
    assert path.read_bytes() == original.encode()


@pytest.mark.asyncio
async def test_spaces_match_tab_indented_file(editor: FileEditor, tmp_path: Path):
    path = tmp_path / "tabs.py"
    path.write_text("def f(x):\n\tif x:\n\t\treturn 1\n\treturn 0\n")
    new = "    if x:\n        return 2"

    result = await editor.str_replace(path, "    if x:\n        return 1", new)

    assert "has been edited" in result
    assert path.read_text() == "def f(x):\n" + new + "\n\treturn 0\n"


@pytest.mark.asyncio
async def test_in_line_edit_keeps_rest_of_line(editor: FileEditor, tmp_path: Path):
    path = tmp_path / "calc.py"
    path.write_text("def f(a, b):\n\tresult = compute(a,b) + offset\n\treturn result\n")

    result = await editor.str_replace(path, "compute(a, b)", "compute(a, b, c)")

    assert "has been edited" in result
    assert path.read_text() == "def f(a, b):\n\tresult = compute(a, b, c) + offset\n\treturn result\n"


@pytest.mark.asyncio
async def test_blank_line_above_match_survives(editor: FileEditor, tmp_path: Path):
    path = tmp_path / "gap.py"
    path.write_text("a = 1\n\n\tfoo(  x)\nb = 2\n")

    await editor.str_replace(path, "foo( x)", "foo(y)")

    assert path.read_text() == "a = 1\n\nfoo(y)\nb = 2\n"


@pytest.mark.asyncio
async def test_undecodable_bytes_are_preserved(editor: FileEditor, tmp_path: Path):
    path = tmp_path / "latin1.txt"
    path.write_bytes(b"caf\xe9\nkeep\ntarget = 1\n")

    result = await editor.str_replace(path, "target = 1", "target = 2")

    assert "has been edited" in result
    assert path.read_bytes() == b"caf\xe9\nkeep\ntarget = 2\n"


@pytest.mark.asyncio
async def test_exact_region_wins_over_near_duplicate(editor: FileEditor, tmp_path: Path):
    path = tmp_path / "dupes.py"
    path.write_text("def a():\n    x = 1\n\ndef b():\n    x  =  1\n")

    await editor.str_replace(path, "    x = 1", "    x = 2")

    assert path.read_text() == "def a():\n    x = 2\n\ndef b():\n    x  =  1\n"


@pytest.mark.asyncio
async def test_ambiguous_single_line_leaves_file_alone(editor: FileEditor, tmp_path: Path):
    path = tmp_path / "ambiguous.py"
    lines = [f"step_{i}()" for i in range(1, 11)]
    lines[2] = lines[8] = "    total = add(x,y)"
    path.write_text("\n".join(lines))
    before = path.read_bytes()

    result = await editor.str_replace(path, "total = add(x, y)", "total = 0")

    assert result.startswith("Single line search string")
    assert "3, 9" in result
    assert path.read_bytes() == before


@pytest.mark.asyncio
async def test_start_line_picks_one_of_several(editor: FileEditor, tmp_path: Path):
    path = tmp_path / "ambiguous.py"
    lines = [f"step_{i}()" for i in range(1, 11)]
    lines[2] = lines[8] = "    total = add(x,y)"
    path.write_text("\n".join(lines))

    result = await editor.str_replace(path, "total = add(x, y)", "total = add(x, y, z)", start_line=9)

    after = path.read_text().split("\n")
    assert "has been edited" in result
    assert after[2] == "    total = add(x,y)"
    assert after[8].strip() == "total = add(x, y, z)"


@pytest.mark.asyncio
async def test_large_block_interior_range(editor: FileEditor, tmp_path: Path):
    path = tmp_path / "table.js"
    path.write_text("\n".join(f"\tline{n}: {n}," for n in range(50)) + "\n")
    old = "\n".join(f"    line{n}: {n}," for n in range(10, 40))
    new = "\n".join(f"\tline{n}: {n * 10}," for n in range(10, 40))

    result = await editor.str_replace(path, old, new)

    lines = path.read_text().split("\n")
    assert "has been edited" in result
    assert lines[0] == "\tline0: 0,"
    assert lines[9] == "\tline9: 9,"
    assert lines[10] == "\tline10: 100,"
    assert lines[39] == "\tline39: 390,"
    assert lines[40] == "\tline40: 40,"
    assert lines[49] == "\tline49: 49,"
    assert len(lines) == 51


@pytest.mark.asyncio
async def test_concurrent_edits_are_serialized(editor: FileEditor, tmp_path: Path):
    path = tmp_path / "values.py"
    path.write_text("\n".join(f"value_{n} = {n}" for n in range(20)) + "\n")
    reads: list = []

    def slow_read(target):
        # Hold the read long enough for the other edit to be scheduled
        reads.append(target)
        time.sleep(0.05)
        return read_file(target)

    with patch("tools.file_editor.read_file", side_effect=slow_read):
        results = await asyncio.gather(
            editor.str_replace(path, "value_2 = 2\n", "value_2 = 200\n"),
            editor.str_replace(path, "value_15 = 15\n", "value_15 = 1500\n"),
        )

    content = path.read_text()
    assert len(reads) == 2
    assert all("has been edited" in r for r in results)
    assert "value_2 = 200\n" in content
    assert "value_15 = 1500\n" in content


@pytest.mark.asyncio
async def test_concurrent_edits_to_different_files_both_land(editor: FileEditor, tmp_path: Path):
    first, second = tmp_path / "a.py", tmp_path / "b.py"
    first.write_text("a = 1\n")
    second.write_text("b = 1\n")

    await asyncio.gather(
        editor.str_replace(first, "a = 1", "a = 2"),
        editor.str_replace(second, "b = 1", "b = 2"),
    )

    assert first.read_text() == "a = 2\n"
    assert second.read_text() == "b = 2\n"


@pytest.mark.asyncio
async def test_no_match_leaves_file_untouched(editor: FileEditor, tmp_path: Path):
    path = tmp_path / "untouched.py"
    path.write_text("alpha = 1\nbeta = 2\n")
    before = path.read_bytes()

    result = await editor.str_replace(path, "zeta = 26\neta = 27", "gamma = 3")

    assert result.startswith(messages.NO_REPLACEMENT)
    assert path.read_bytes() == before
    assert file_history(path.resolve()) == []


@pytest.mark.asyncio
async def test_same_string_and_empty_old_str(editor: FileEditor, sample_file: Path):
    assert await editor.str_replace(sample_file, "Beta", "Beta") == messages.SAME_STRING
    assert (await editor.str_replace(sample_file, "", "x")).startswith("Invalid `old_str`")


@pytest.mark.asyncio
async def test_str_replace_none_new_str_deletes(editor: FileEditor, sample_file: Path):
    await editor.str_replace(sample_file, "Line 2: Beta\n", None)
    assert sample_file.read_text() == "Line 1: Alpha\nLine 3: Gamma"


@pytest.mark.asyncio
async def test_str_replace_on_directory_raises(editor: FileEditor, tmp_path: Path):
    (tmp_path / "adir").mkdir()
    with pytest.raises(ToolError, match="only the `view` command"):
        await editor.str_replace("adir", "a", "b")


@pytest.mark.asyncio
async def test_str_replace_records_tier(editor: FileEditor, tmp_path: Path):
    path = tmp_path / "tier.py"
    path.write_text("def f():\n\treturn 1\n")
    await editor.str_replace(path, "def f():\n    return 1", "def f():\n    return 2")

    history = file_history(path.resolve())
    assert [op["operation"] for op in history] == ["str_replace"]


# ---------------------------------------------------------------------------
# insert
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.parametrize("insert_line, expected", [
    (0, "X\na\nb\nc"),
    (1, "a\nX\nb\nc"),
    (3, "a\nb\nc\nX"),
])
async def test_insert(editor: FileEditor, tmp_path: Path, insert_line, expected):
    path = tmp_path / "abc.txt"
    path.write_text("a\nb\nc")

    result = await editor.insert(path, insert_line, "X")

    assert result.startswith(f"The file {path} has been edited.")
    assert "a snippet of the edited file" in result
    assert path.read_text() == expected


@pytest.mark.asyncio
@pytest.mark.parametrize("insert_line", [-1, 4])
async def test_insert_out_of_range(editor: FileEditor, tmp_path: Path, insert_line):
    path = tmp_path / "abc.txt"
    path.write_text("a\nb\nc")

    result = await editor.insert(path, insert_line, "X")

    assert result == (
        f"Invalid `insert_line` parameter: {insert_line}. It should be within the range "
        "of lines of the file: [0, 3]"
    )
    assert path.read_text() == "a\nb\nc"


@pytest.mark.asyncio
async def test_insert_snippet_numbering(editor: FileEditor, tmp_path: Path):
    path = tmp_path / "long.txt"
    path.write_text("\n".join(f"row {i}" for i in range(1, 21)))

    result = await editor.insert(path, 10, "inserted")

    assert "     7\trow 7" in result
    assert "    11\tinserted" in result
    assert "    15\trow 14" in result
    assert "row 6\n" not in result


@pytest.mark.asyncio
async def test_lock_all_writes_serializes_inserts(tmp_path: Path):
    editor = FileEditor(project_root=tmp_path, lock_all_writes=True)
    path = tmp_path / "log.txt"
    path.write_text("start")

    await asyncio.gather(*(editor.insert(path, 1, f"entry {i}") for i in range(5)))

    assert len(path.read_text().split("\n")) == 6
