from text_chunker import OVERLAP_LINES, chunk_references


def test_section_within_limit_is_single_identical_chunk() -> None:
    section = "line one\nline two"
    assert chunk_references(section, max_chars=len(section)) == [section]
    assert chunk_references(section, max_chars=1000) == [section]


def test_oversized_section_reassembles_after_removing_overlap() -> None:
    lines = [f"line {i:03d}" for i in range(100)]
    section = "\n".join(lines)

    chunks = chunk_references(section, max_chars=100)

    assert len(chunks) > 1
    rebuilt = chunks[0].split("\n")
    for chunk in chunks[1:]:
        rebuilt.extend(chunk.split("\n")[OVERLAP_LINES:])
    assert rebuilt == lines


def test_each_chunk_repeats_last_five_lines_of_previous() -> None:
    lines = [f"line {i:03d}" for i in range(60)]
    chunks = chunk_references("\n".join(lines), max_chars=100)

    for previous, current in zip(chunks, chunks[1:]):
        assert current.split("\n")[:OVERLAP_LINES] == previous.split("\n")[-OVERLAP_LINES:]


def test_chunks_respect_max_chars() -> None:
    lines = [f"line {i:03d}" for i in range(100)]
    chunks = chunk_references("\n".join(lines), max_chars=100)

    assert all(len(chunk) <= 100 for chunk in chunks)


def test_short_final_chunk_is_emitted() -> None:
    # 11 lines of 8 chars fill a 100-char chunk exactly; one more line spills over.
    lines = [f"line {i:03d}" for i in range(12)]
    chunks = chunk_references("\n".join(lines), max_chars=100)

    assert len(chunks) == 2
    assert chunks[1].split("\n") == lines[6:]
