import pytest

from draft_engine.buffer import BufferDocument, BufferValidationError, Point, TextEdit


def test_from_text_splits_paragraphs_on_blank_lines() -> None:
    document = BufferDocument.from_text("First line.\n\n  Second para.  \n")

    blocks = [document.block_text(block.key) for block in document.iter_text_blocks()]

    assert blocks == ["First line.", "Second para."]
    assert document.text_content() == "First line.Second para."
    assert document.version == 0


def test_from_text_keeps_single_paragraph_verbatim() -> None:
    document = BufferDocument.from_text("  one paragraph\nwith a newline ")

    assert document.text_content() == "  one paragraph\nwith a newline "


def test_blank_text_yields_one_empty_paragraph() -> None:
    document = BufferDocument.from_text("   ")

    assert len(list(document.iter_text_blocks())) == 1
    assert list(document.iter_text_nodes()) == []
    assert document.text_content() == ""


def test_leaf_table_concatenates_leaves_in_order() -> None:
    document = BufferDocument.from_blocks([["Hello ", "world"], ["!"]])

    table = document.leaf_table()

    assert [(leaf.start, leaf.end) for leaf in table] == [(0, 6), (6, 11), (11, 12)]
    assert document.offset_of(table[1].key) == 6


def test_point_at_respects_affinity_on_leaf_boundaries() -> None:
    document = BufferDocument.from_blocks([["Hello ", "world"]])
    first, second = (leaf.key for leaf in document.leaf_table())

    assert document.point_at(6) == Point(first, 6)
    assert document.point_at(6, affinity="forward") == Point(second, 0)
    assert document.point_at(0) == Point(first, 0)
    assert document.point_at(11, affinity="forward") == Point(second, 5)


def test_point_at_rejects_offsets_outside_document() -> None:
    document = BufferDocument.from_text("abc")

    with pytest.raises(BufferValidationError):
        document.point_at(4)
    with pytest.raises(BufferValidationError):
        document.point_at(-1)


def test_split_and_merge_keep_text_and_bump_version() -> None:
    document = BufferDocument.from_text("Hello world")
    (leaf,) = document.leaf_table()

    tail = document.split_text(leaf.key, 5)

    assert document.get(leaf.key).text == "Hello"
    assert document.get(tail).text == " world"
    assert document.text_content() == "Hello world"
    assert document.version == 1

    document.merge_text(leaf.key)

    assert not document.has(tail)
    assert document.get(leaf.key).text == "Hello world"


def test_apply_edits_rewrites_leaves_without_reshaping() -> None:
    document = BufferDocument.from_blocks([["a", "b", "c"]])
    keys = [leaf.key for leaf in document.leaf_table()]

    document.apply_edits([TextEdit(keys[0], "x"), TextEdit(keys[1], "")])

    assert [leaf.key for leaf in document.leaf_table()] == keys
    assert document.text_content() == "xc"


def test_text_operations_reject_structural_nodes() -> None:
    document = BufferDocument.from_text("abc")
    block = next(document.iter_text_blocks())

    with pytest.raises(BufferValidationError):
        document.set_text(block.key, "nope")
    with pytest.raises(BufferValidationError):
        document.get(999)
    with pytest.raises(ValueError):
        document.append_block("table")


def test_copy_is_independent() -> None:
    document = BufferDocument.from_text("abc")
    (leaf,) = document.leaf_table()
    clone = document.copy()

    document.set_text(leaf.key, "changed")

    assert clone.text_content() == "abc"
    assert clone.version == 0


def test_remove_node_drops_subtree() -> None:
    document = BufferDocument.from_blocks([["a"], ["b", "c"]])
    _, second = (block.key for block in document.iter_text_blocks())

    document.remove_node(second)

    assert document.text_content() == "a"
    assert len(document.leaf_table()) == 1
