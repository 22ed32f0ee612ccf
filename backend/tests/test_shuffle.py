from geoquiz.services.games.shuffle import _hash_seed, build_mc_options, shuffle_with_seed


def test_same_seed_same_order():
    items = ['Luisenplatz', 'Marktplatz', 'Herrngarten', 'Mathildenhoehe']
    assert shuffle_with_seed(items, '42') == shuffle_with_seed(items, '42')


def test_shuffle_is_a_permutation_and_leaves_input_alone():
    items = list(range(10))
    result = shuffle_with_seed(items, 'round-7')
    assert sorted(result) == items
    assert items == list(range(10))


def test_trivial_inputs():
    assert shuffle_with_seed([], 'x') == []
    assert shuffle_with_seed(['only'], 'x') == ['only']


def test_hash_seed_is_signed_32_bit():
    assert _hash_seed('') == 0
    assert _hash_seed('a') == 97
    for seed in ('1', 'a much longer seed string that overflows', '99999'):
        assert -2 ** 31 <= _hash_seed(seed) < 2 ** 31


def test_different_seeds_eventually_differ():
    items = list(range(8))
    orders = {tuple(shuffle_with_seed(items, str(seed))) for seed in range(20)}
    assert len(orders) > 1


def test_build_mc_options_contains_answer_once():
    options = build_mc_options('Marktplatz', ['Luisenplatz', 'Herrngarten', 'Schloss'], '3')
    assert len(options) == 4
    assert options.count('Marktplatz') == 1
    assert set(options) == {'Marktplatz', 'Luisenplatz', 'Herrngarten', 'Schloss'}
