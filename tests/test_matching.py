import itertools

from matching import match


def assert_partition(voters, selections, outcome):
    seen = []
    for a, b in outcome.pairs:
        assert selections[a] == b and selections[b] == a
        seen.extend([a, b])
    seen.extend(outcome.leftovers)
    assert sorted(seen) == sorted(voters)


def test_three_voters_one_pair():
    selections = {"A": "B", "B": "A", "C": "A"}
    outcome = match(["A", "B", "C"], selections)
    assert outcome.pairs == [("A", "B")]
    assert outcome.leftovers == ["C"]


def test_two_voters_pick_each_other():
    outcome = match(["A", "B"], {"B": "A", "A": "B"})
    assert outcome.pairs == [("B", "A")]
    assert outcome.leftovers == []


def test_no_mutual_choice_everyone_left_over():
    selections = {"A": "B", "B": "C", "C": "A"}
    outcome = match(["A", "B", "C"], selections)
    assert outcome.pairs == []
    assert outcome.leftovers == ["A", "B", "C"]


def test_two_pairs_and_leftover():
    voters = ["A", "B", "C", "D", "E"]
    selections = {"A": "B", "C": "D", "E": "A", "B": "A", "D": "C"}
    outcome = match(voters, selections)
    assert sorted(tuple(sorted(p)) for p in outcome.pairs) == [("A", "B"), ("C", "D")]
    assert outcome.leftovers == ["E"]


def test_selection_for_non_voter_is_ignored():
    outcome = match(["A", "B"], {"A": "X", "B": "A", "X": "A"})
    assert outcome.pairs == []
    assert outcome.leftovers == ["A", "B"]


def test_partition_independent_of_visit_order():
    voters = ["A", "B", "C", "D"]
    base = {"A": "B", "B": "A", "C": "A", "D": "C"}
    expected = None
    for order in itertools.permutations(base):
        selections = {k: base[k] for k in order}
        outcome = match(voters, selections)
        assert_partition(voters, selections, outcome)
        partition = (sorted(tuple(sorted(p)) for p in outcome.pairs), sorted(outcome.leftovers))
        if expected is None:
            expected = partition
        assert partition == expected


def test_every_selection_map_is_a_partition():
    voters = ["A", "B", "C", "D"]
    for choices in itertools.product(voters, repeat=len(voters)):
        selections = {v: c for v, c in zip(voters, choices) if v != c}
        outcome = match(voters, selections)
        assert_partition(voters, selections, outcome)


def test_does_not_mutate_input():
    selections = {"A": "B", "B": "A"}
    match(["A", "B"], selections)
    assert selections == {"A": "B", "B": "A"}
