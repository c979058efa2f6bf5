"""Run a cultural transmission model and save its summary series."""

import argparse
import dataclasses
import os

from model import ConfigError, TransmissionModel, repetition_seeds, run_model, summarize_runs
from network import compute_network_metrics
from rules import RULES, make_rule


def float_tuple(text: str):
    values = tuple(float(v) for v in text.split(","))
    return values[0] if len(values) == 1 else values


def optional_float(text: str):
    return None if text.lower() in ("none", "off") else float(text)


def add_rule_arguments(parser: argparse.ArgumentParser, params_class) -> None:
    for field in dataclasses.fields(params_class):
        if not field.metadata.get("cli", True):
            continue
        option = "--{:s}".format(field.name.replace("_", "-"))
        default = field.default
        if isinstance(default, bool):
            parser.add_argument(option, dest=field.name, action="store_true", default=default)
        elif isinstance(default, tuple):
            parser.add_argument(option, dest=field.name, type=float_tuple, default=default)
        elif default is None or "None" in str(field.type):
            parser.add_argument(option, dest=field.name, type=optional_float, default=default)
        else:
            parser.add_argument(option, dest=field.name, type=type(default), default=default)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--n", type=int, default=100, help="Population size")
    parser.add_argument("--t-max", type=int, default=200, help="Generations per run")
    parser.add_argument("--r-max", type=int, default=5, help="Independent runs")
    parser.add_argument("--seed", type=int, default=42)
    parser.add_argument("--workers", type=int, default=1, help="Parallel worker processes")
    parser.add_argument("--output", default="results", help="Directory for the summary CSV")
    subparsers = parser.add_subparsers(dest="rule", required=True)
    for name, rule_class in RULES.items():
        doc = (rule_class.__doc__ or name).strip().splitlines()[0]
        add_rule_arguments(subparsers.add_parser(name, help=doc), rule_class.params_class)
    return parser


def main(argv=None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    params = {
        field.name: getattr(args, field.name)
        for field in dataclasses.fields(RULES[args.rule].params_class)
        if hasattr(args, field.name)
    }
    try:
        rule = make_rule(args.rule, **params)
        frame = run_model(rule, n=args.n, t_max=args.t_max, r_max=args.r_max, seed=args.seed, workers=args.workers)
    except ConfigError as exc:
        parser.error(str(exc))

    print(f"Model {args.rule}: N={args.n}, {args.t_max} generations x {args.r_max} runs")
    summary = summarize_runs(frame)
    stride = max(1, len(summary) // 10)
    for generation, row in summary.iloc[::stride].iterrows():
        values = " ".join(f"{key}={value:.3f}" for key, value in row.items())
        print(f"Generation {generation} | {values}")

    print("\n" + "=" * 30 + " FINAL GENERATION " + "=" * 30)
    final = frame[frame["generation"] == frame["generation"].max()]
    for column in rule.reporters:
        print(f"{column:22} mean={final[column].mean():8.3f} min={final[column].min():8.3f} max={final[column].max():8.3f}")

    if args.rule == "network":
        first = TransmissionModel(rule, n=args.n, seed=repetition_seeds(args.seed, 1)[0])
        metrics = compute_network_metrics(first.population.environment["graph"])
        print(
            f"\nNetwork (run 0): clustering={metrics.clustering:.3f} "
            f"path_len={metrics.avg_path_len:.3f} "
            f"degree={metrics.degree_mean:.2f}+/-{metrics.degree_std:.2f}"
        )

    os.makedirs(args.output, exist_ok=True)
    path = os.path.join(args.output, f"{args.rule}_summary.csv")
    frame.to_csv(path, index=False)
    print(f"\nSummary saved to {path}")


if __name__ == "__main__":
    main()
