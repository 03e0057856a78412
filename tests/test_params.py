from bitrace.params import Params, TraceStatus, TurnPolicy, default_params, version


def test_defaults_match_documented_values():
    p = default_params()
    assert p.turdsize == 2
    assert p.turnpolicy is TurnPolicy.MINORITY
    assert p.alphamax == 1.0
    assert p.opticurve is True
    assert p.opttolerance == 0.2
    assert p.progress.callback is None
    assert (p.progress.low, p.progress.high, p.progress.epsilon) == (0.0, 1.0, 0.0)


def test_default_params_are_independent():
    a = default_params()
    b = default_params()
    a.turdsize = 0
    a.progress.epsilon = 0.3
    assert b.turdsize == 2
    assert b.progress.epsilon == 0.0
    assert b == Params()


def test_turn_policy_codes():
    assert [int(t) for t in TurnPolicy] == list(range(7))
    assert TurnPolicy(4) is TurnPolicy.MINORITY
    assert TurnPolicy.RANDOM == 6


def test_status_codes():
    assert TraceStatus(0) is TraceStatus.OK
    assert TraceStatus(1) is TraceStatus.INCOMPLETE


def test_version_string():
    assert version().endswith("1.16")
    assert version().startswith("bitrace")