# main.py
import json
import logging
import os

import click

from benchmark import BenchmarkRunner
from cache import Geometry
from errors import SimulationError
from simulator import Simulator
from tracefile import ON_ERROR_POLICIES, TraceReader
from visualize import plot_hit_miss_rate, plot_miss_rate_sweep

DEFAULT_CONFIG = "config.json"

logger = logging.getLogger(__name__)


def load_config(path=DEFAULT_CONFIG):
    if path == DEFAULT_CONFIG and not os.path.exists(path):
        return {}
    with open(path, "r") as f:
        return json.load(f)


def _read_config(path):
    try:
        cfg = load_config(path)
    except (OSError, ValueError) as e:
        raise click.ClickException(f"cannot read config {path}: {e}")
    if not isinstance(cfg, dict):
        raise click.ClickException(f"config {path} must hold a JSON object")
    return cfg


def _pick(value, section, key):
    return value if value is not None else section.get(key)


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.option("--log-level", default="WARNING", show_default=True,
              type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False))
def cli(log_level):
    """Set-associative LRU cache simulator."""
    logging.basicConfig(level=log_level.upper(), format="%(levelname)s %(name)s: %(message)s")


@cli.command()
@click.option("-s", "set_bits", type=int, help="Number of set index bits (2^s sets).")
@click.option("-E", "lines_per_set", type=int, help="Number of lines per set.")
@click.option("-b", "block_bits", type=int, help="Number of block offset bits (2^b byte blocks).")
@click.option("-t", "trace_file", type=click.Path(exists=True, dir_okay=False), required=True,
              help="Valgrind memory trace to replay.")
@click.option("-v", "verbose", is_flag=True, help="Print the outcome of every access.")
@click.option("--on-error", type=click.Choice(ON_ERROR_POLICIES),
              help="Abort on the first malformed trace line, or skip it.")
@click.option("--config", "config_path", default=DEFAULT_CONFIG, type=click.Path(dir_okay=False),
              help="JSON config supplying defaults.")
@click.option("--plot", is_flag=True, help="Save a hit/miss pie chart.")
def simulate(set_bits, lines_per_set, block_bits, trace_file, verbose, on_error, config_path, plot):
    """Replay a trace and report hits, misses and evictions."""
    cfg = _read_config(config_path)
    cache_cfg = cfg.get("cache", {})
    set_bits = _pick(set_bits, cache_cfg, "set_bits")
    lines_per_set = _pick(lines_per_set, cache_cfg, "lines_per_set")
    block_bits = _pick(block_bits, cache_cfg, "block_bits")
    if None in (set_bits, lines_per_set, block_bits):
        raise click.UsageError("-s, -E and -b are required (on the command line or in the config)")
    on_error = _pick(on_error, cfg.get("trace", {}), "on_error") or "abort"

    logger.info("s: %s", set_bits)
    logger.info("E: %s", lines_per_set)
    logger.info("b: %s", block_bits)
    logger.info("Tracefile: %s", trace_file)
    if verbose:
        logger.info("Verbose mode enabled.")

    try:
        sim = Simulator(Geometry(set_bits, lines_per_set, block_bits), keep_trail=verbose)
        with open(trace_file, "r") as f:
            reader = TraceReader(f, on_error=on_error)
            snap = sim.run(reader)
        logger.info("cache state: %s", sim.cache.stats())
    except (SimulationError, ValueError) as e:
        raise click.ClickException(str(e))

    for access in sim.trail:
        click.echo(access.format())
    if reader.skipped:
        click.echo(f"skipped {reader.skipped} malformed line(s)", err=True)
    click.echo(f"hits:{snap.hits} misses:{snap.misses} evictions:{snap.evictions}")

    if plot:
        out_cfg = cfg.get("output", {})
        path = out_cfg.get("hitmiss_plot", "results/hit_miss_rate.png")
        plot_hit_miss_rate(sim.stats.hit_rate, path)
        click.echo(f"Plot saved to: {path}")


@cli.command()
@click.option("--config", "config_path", default=DEFAULT_CONFIG, type=click.Path(dir_okay=False),
              help="JSON config with benchmark and output sections.")
def benchmark(config_path):
    """Sweep a synthetic workload over several cache geometries."""
    cfg = _read_config(config_path)
    out_cfg = cfg.get("output", {})
    try:
        runner = BenchmarkRunner(cfg)
        click.echo(f"Starting benchmark with config: {cfg.get('benchmark', {})}")
        summaries = runner.run()
    except (SimulationError, ValueError) as e:
        raise click.ClickException(str(e))

    for s in summaries:
        click.echo(f"{s['label']}: hits:{s['hits']} misses:{s['misses']} "
                   f"evictions:{s['evictions']} hit_rate:{s['hit_rate']:.4f}")
    results_path = runner.save_results(summaries, out_cfg)
    click.echo(f"Results saved to: {results_path}")

    plot_path = out_cfg.get("sweep_plot", "results/miss_rate_sweep.png")
    plot_miss_rate_sweep(summaries, plot_path)
    click.echo(f"Plot saved to: {plot_path}")


if __name__ == "__main__":
    cli()
