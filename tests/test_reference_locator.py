from reference_locator import locate_references_section

_PAPER = """Attention Mechanisms Revisited
Abstract
We study attention.
References
[1] A. Vaswani, N. Shazeer. Attention is all you need. 2017.

[2] K. He, X. Zhang. Deep residual learning for image recognition. 2016.
Appendix
A. Proof of Theorem 1
"""


def test_collects_lines_between_heading_and_stop_heading() -> None:
    section = locate_references_section(_PAPER)

    assert section.splitlines() == [
        "[1] A. Vaswani, N. Shazeer. Attention is all you need. 2017.",
        "",
        "[2] K. He, X. Zhang. Deep residual learning for image recognition. 2016.",
    ]


def test_returns_full_text_when_no_heading() -> None:
    text = "Just a body of text\nwith no reference list."
    assert locate_references_section(text) == text


def test_heading_match_is_case_insensitive_and_whole_line() -> None:
    text = "See the references below.\n  WORKS CITED  \nSmith, J. A paper title. 2001."
    assert locate_references_section(text) == "Smith, J. A paper title. 2001."


def test_heading_must_stand_alone() -> None:
    text = "References and further reading\nSmith, J. A paper title. 2001."
    assert locate_references_section(text) == text


def test_stops_at_figure_or_table_caption() -> None:
    text = "Bibliography\nSmith, J. A paper title. 2001.\nTable 3: Ablation results\nmore text"
    assert locate_references_section(text) == "Smith, J. A paper title. 2001."


def test_short_uppercase_line_without_year_ends_section() -> None:
    text = "References\nSmith, J. A paper title. 2001.\nSUPPLEMENTARY MATERIAL\nExtra."
    assert locate_references_section(text) == "Smith, J. A paper title. 2001."


def test_short_uppercase_line_with_year_is_kept() -> None:
    text = "References\nSmith, J. A paper title.\nNEURIPS 2017\nJones, K. Another title. 2019."
    assert locate_references_section(text).splitlines() == [
        "Smith, J. A paper title.",
        "NEURIPS 2017",
        "Jones, K. Another title. 2019.",
    ]


def test_acknowledgements_spelling_variants_stop_collection() -> None:
    for heading in ("Acknowledgments", "acknowledgements", "Proofs"):
        text = f"References\nSmith, J. A paper title. 2001.\n{heading}\nThanks."
        assert locate_references_section(text) == "Smith, J. A paper title. 2001."
