import pytest

from heatbugs.heatbugs_cli import (
    ErrorCode,
    HeatbugsError,
    UnhappinessWriter,
    main,
    parse_params,
    run_simulation,
    validate_params,
)
from heatbugs.heatbugs_model import Params
from heatbugs.plot_unhappiness import load_results, plot_unhappiness
from heatbugs import plot_unhappiness as plot_module


def test_defaults_match_the_reference_program():
    params, args = parse_params([])
    assert params.iterations == 1000
    assert params.bugs == 100
    assert (params.width, params.height) == (100, 100)
    assert params.diffusion_rate == pytest.approx(0.9)
    assert params.evaporation_rate == pytest.approx(0.01)
    assert params.random_move_chance == 0.0
    assert (params.temperature_min_ideal, params.temperature_max_ideal) == (10, 40)
    assert (params.heat_min_output, params.heat_max_output) == (5, 25)
    assert isinstance(params.seed, int)
    assert args.plot is False


def test_short_options():
    params, _ = parse_params([
        "-i", "7", "-n", "12", "-w", "8", "-W", "6", "-d", "0.5", "-e", "0.2",
        "-r", "3.5", "-t", "1", "-T", "9", "-h", "2", "-H", "4", "-s", "42",
        "-f", "out.csv",
    ])
    assert params == Params(
        iterations=7, bugs=12, width=8, height=6, diffusion_rate=0.5,
        evaporation_rate=0.2, random_move_chance=3.5,
        temperature_min_ideal=1, temperature_max_ideal=9,
        heat_min_output=2, heat_max_output=4, seed=42,
        output_filename="out.csv",
    )
    assert params.world_size == 48


def test_missing_option_argument():
    with pytest.raises(HeatbugsError) as exc:
        parse_params(["-n"])
    assert exc.value.code == ErrorCode.PARAM_ARG_MISSING


def test_unknown_option():
    with pytest.raises(HeatbugsError) as exc:
        parse_params(["--bogus"])
    assert exc.value.code == ErrorCode.PARAM_OPTION_UNKNOWN


def test_bad_option_value():
    with pytest.raises(HeatbugsError) as exc:
        parse_params(["-n", "many"])
    assert exc.value.code == ErrorCode.PARAM_PARSING


@pytest.mark.parametrize("changes, code", [
    (dict(width=0), ErrorCode.INVALID_PARAMETER),
    (dict(diffusion_rate=1.5), ErrorCode.INVALID_PARAMETER),
    (dict(evaporation_rate=-0.1), ErrorCode.INVALID_PARAMETER),
    (dict(random_move_chance=101.0), ErrorCode.INVALID_PARAMETER),
    (dict(bugs=0), ErrorCode.BUGS_ZERO),
    (dict(bugs=100), ErrorCode.BUGS_OVERFLOW),
    (dict(temperature_min_ideal=30, temperature_max_ideal=20), ErrorCode.TEMPERATURE_OVERLAP),
    (dict(temperature_max_ideal=200), ErrorCode.TEMPERATURE_OUT_RANGE),
    (dict(heat_min_output=9, heat_max_output=8), ErrorCode.OUTPUT_HEAT_OVERLAP),
    (dict(heat_max_output=100), ErrorCode.OUTPUT_HEAT_OUT_RANGE),
])
def test_validation_errors(changes, code):
    base = dict(bugs=10, width=10, height=10, seed=1)
    base.update(changes)
    with pytest.raises(HeatbugsError) as exc:
        validate_params(Params(**base))
    assert exc.value.code == code


def test_equal_range_bounds_are_valid():
    validate_params(Params(bugs=10, width=10, height=10,
                           temperature_min_ideal=20, temperature_max_ideal=20,
                           heat_min_output=5, heat_max_output=5))


def test_crowded_world_warns(capsys):
    validate_params(Params(bugs=85, width=10, height=10))
    assert "near available world slots" in capsys.readouterr().err


def test_writer_uses_full_precision(tmp_path):
    path = tmp_path / "nested" / "out.csv"
    with UnhappinessWriter(path) as writer:
        writer(0.1)
        writer(25.0)
    assert path.read_text() == "0.10000000000000001\n25\n"
    assert writer.count == 2


def test_run_simulation_reports_progress(capsys):
    values = []
    params = Params(iterations=6, bugs=5, width=6, height=6, seed=3)
    model = run_simulation(params, values.append, report_every=3)
    assert model.ticks == 6
    assert len(values) == 7
    out = capsys.readouterr().out
    assert "t=000003" in out and "t=000006" in out


def test_main_writes_one_line_per_step(tmp_path, capsys):
    out = tmp_path / "results.csv"
    argv = ["-i", "20", "-n", "15", "-w", "10", "-W", "10", "-s", "5", "-f", str(out)]
    assert main(argv) == 0
    first = out.read_text()
    assert len(first.splitlines()) == 21
    assert "Simulation finished after 20 ticks" in capsys.readouterr().out

    assert main(argv) == 0
    assert out.read_text() == first

    series = load_results(out)
    assert len(series) == 21
    assert series.index.name == "step"


def test_main_reports_configuration_errors(tmp_path, capsys):
    code = main(["-n", "0", "-f", str(tmp_path / "x.csv")])
    assert code == 6
    assert "Error: There are no bugs." in capsys.readouterr().err
    assert not (tmp_path / "x.csv").exists()


def test_main_reports_unwritable_output(tmp_path, capsys):
    blocker = tmp_path / "afile"
    blocker.write_text("")
    code = main(["-i", "2", "-n", "3", "-w", "5", "-W", "5", "-f", str(blocker / "out.csv")])
    assert code == 12
    assert "Could not open output file" in capsys.readouterr().err


def test_plot_unhappiness(tmp_path):
    out = tmp_path / "results.csv"
    out.write_text("30\n28.5\n27\n27.25\n")
    series = load_results(out)
    fig = plot_unhappiness(series, window=2)
    ax = fig.axes[0]
    assert len(ax.lines) == 2
    assert list(ax.lines[0].get_ydata()) == [30.0, 28.5, 27.0, 27.25]


def test_plot_main_saves_file(tmp_path):
    results = tmp_path / "results.csv"
    results.write_text("10\n9\n8\n")
    png = tmp_path / "plot.png"
    plot_module.main([str(results), "--outfile", str(png)])
    assert png.exists()


def test_plot_world():
    from heatbugs.heatbugs_model import HeatbugsModel

    model = HeatbugsModel(Params(iterations=2, bugs=4, width=6, height=5, seed=9))
    model.run()
    fig = plot_module.plot_world(model)
    assert fig.axes[0].images[0].get_array().shape == (5, 6, 3)


def test_unprintable_argument():
    with pytest.raises(HeatbugsError) as exc:
        parse_params(["\x01"])
    assert exc.value.code == ErrorCode.PARAM_CHAR_UNKNOWN


def test_ctrl_c_stops_between_whole_steps(monkeypatch, capsys):
    import signal

    from heatbugs.heatbugs_model import MovementKernel

    original_step = MovementKernel.bug_step
    calls = []

    def interrupted_step(self, world, swarm, random_move_chance):
        calls.append(1)
        if len(calls) == 3:
            signal.raise_signal(signal.SIGINT)
        original_step(self, world, swarm, random_move_chance)

    monkeypatch.setattr(MovementKernel, "bug_step", interrupted_step)
    handler_before = signal.getsignal(signal.SIGINT)

    values = []
    params = Params(iterations=10, bugs=40, width=10, height=10, seed=1)
    model = run_simulation(params, values.append)

    assert model.ticks == 3
    assert len(values) == model.ticks + 1
    assert model.mean_unhappiness() == values[-1]
    assert "Interrupted after 3 ticks." in capsys.readouterr().out
    assert signal.getsignal(signal.SIGINT) is handler_before
