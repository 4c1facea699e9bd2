# Testing script for the demonstration entry point
# Test by running: python -m scalargrad.test

import pytest

from .demo import main, manual_tanh, build_neuron_graph, parse_args


def test_unknown_action_exits_non_zero(capsys):
    with pytest.raises(SystemExit) as e:
        main(["bogus"])
    assert e.value.code != 0
    assert "Unknown action 'bogus'" in capsys.readouterr().err


def test_tanh_scenario(capsys):
    assert main(["tanh"]) == 0
    out = capsys.readouterr().out
    assert "tanh { data: 0.7071, grad: 1.0000 }" in out
    assert "sum { data: 0.8814, grad: 0.5000 }" in out
    assert "w1 { data: -3.0000, grad: 1.0000 }" in out


def test_ops_scenario(capsys):
    assert main(["ops"]) == 0
    out = capsys.readouterr().out
    assert "a { data: 3.0000, grad: 2.0000 }" in out
    assert "manual_tanh { data: 0.7071, grad: 1.0000 }" in out


def test_nn_and_train_scenarios(capsys):
    assert main(["nn", "--seed", "1"]) == 0
    assert "MLP parameters: 41" in capsys.readouterr().out
    assert main(["train", "--seed", "1", "--epochs", "3"]) == 0
    assert "Targets:" in capsys.readouterr().out


def test_parse_args_defaults():
    args = parse_args(["train"])
    assert args.epochs == 20
    assert args.learning_rate == 0.05
    assert args.seed is None
    assert args.log_level == "INFO"


def test_log_level_is_validated(capsys):
    assert parse_args(["tanh", "--log-level", "debug"]).log_level == "DEBUG"
    with pytest.raises(SystemExit) as e:
        parse_args(["tanh", "--log-level", "verbose"])
    assert e.value.code != 0
    err = capsys.readouterr().err
    assert "--log-level" in err and "VERBOSE" in err


def test_manual_tanh_helper():
    g = build_neuron_graph()
    assert manual_tanh(g["sum"]).data == pytest.approx(g["sum"].tanh().data)


if __name__ == "__main__":
    raise SystemExit(pytest.main([__file__, "-v"]))
