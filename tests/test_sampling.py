import pytest


torch = pytest.importorskip("torch", reason="torch not installed")


from logtrains.sampling import Sampler


def _logit_stream(n: int, vocab: int = 32):
    gen = torch.Generator().manual_seed(7)
    return [torch.randn(vocab, generator=gen) for _ in range(n)]


def test_same_seed_gives_same_tokens():
    stream = _logit_stream(50)
    first = Sampler(0.7, 0.9, seed=299792458)
    second = Sampler(0.7, 0.9, seed=299792458)
    assert [first.sample(l) for l in stream] == [second.sample(l) for l in stream]


def test_generator_is_not_reseeded_per_call():
    logits = torch.zeros(32)
    sampler = Sampler(1.0, 1.0, seed=3)
    draws = {sampler.sample(logits) for _ in range(40)}
    assert len(draws) > 1


def test_only_last_row_of_multi_row_logits_is_used():
    rows = torch.zeros(3, 8)
    rows[0, 1] = 100.0
    rows[1, 2] = 100.0
    rows[2, 5] = 100.0
    assert Sampler(0.7, 0.9, seed=1).sample(rows) == 5
    assert Sampler(0.7, 0.9, seed=1).sample(rows.unsqueeze(0)) == 5


def test_nucleus_keeps_only_the_dominant_token():
    logits = torch.tensor([0.0, 10.0, 0.0, 0.0])
    sampler = Sampler(1.0, 0.9, seed=11)
    assert {sampler.sample(logits) for _ in range(100)} == {1}


def test_nucleus_keeps_token_that_crosses_threshold():
    # probabilities 0.5, 0.3, 0.2 -> top_p 0.6 keeps the first two
    probs = torch.tensor([0.5, 0.3, 0.2])
    sampler = Sampler(1.0, 0.6, seed=5)
    draws = {sampler.sample(probs.log()) for _ in range(200)}
    assert draws == {0, 1}


def test_zero_temperature_is_greedy():
    logits = torch.tensor([0.1, 0.3, 0.2])
    assert Sampler(0.0, 0.9, seed=0).sample(logits) == 1
