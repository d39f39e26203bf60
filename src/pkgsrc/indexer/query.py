"""
Substring search over the package index.

A record matches a term when the term appears, case-insensitively, in
the record's name or in its description. Records are visited in index
order and terms in argument order; a record that matches several terms
is reported once per matching term unless `unique` is set.
"""

from typing import Sequence

from .tree import PackageRecord


def search(
    records: Sequence[PackageRecord],
    terms: Sequence[str],
    unique: bool = False,
) -> list[int]:
    """Return the positions of the records matching any of `terms`.

    Args:
        records: Index records, in index order
        terms: Search terms; no terms means no matches
        unique: Report each record at most once (first matching term)

    Returns:
        Record positions in match order, possibly repeated when unique is False.
    """
    folded_terms = [term.lower() for term in terms]
    hits: list[int] = []
    for i, record in enumerate(records):
        name = record.name.lower()
        description = record.description.lower()
        for term in folded_terms:
            if term in name or term in description:
                hits.append(i)
                if unique:
                    break
    return hits
