#!/usr/bin/env python3
"""Self-check for the cultural transmission models.

Confirms the installed stack, that every registered rule builds from its
defaults, that runs are reproducible, and that the simulated critical
population size of skill imitation agrees with the analytic value.
"""
import sys
from importlib import metadata

import pandas as pd

REQUIRED = {"mesa": 3, "numpy": 1, "pandas": 2, "networkx": 3}


def check_dependencies():
    """Installed distributions meet the minimum major versions."""
    print("Checking dependencies...")
    ok = True
    for package, major in REQUIRED.items():
        try:
            version = metadata.version(package)
        except metadata.PackageNotFoundError:
            print(f"  ✗ {package} not installed")
            ok = False
            continue
        found = int(version.split(".")[0])
        if found < major or (package == "mesa" and found != major):
            print(f"  ✗ {package} {version} (need {major}.x)")
            ok = False
        else:
            print(f"  ✓ {package} {version}")
    if not ok:
        print("  Install with: pip install -e .")
    return ok


def check_rules():
    """Every rule validates its default parameters and declares its reporters."""
    print("\nChecking rule registry...")
    from rules import RULES, make_rule

    ok = True
    for name, rule_class in RULES.items():
        rule = make_rule(name)
        rule.params.validate()
        reporters = tuple(rule.reporters)
        if not isinstance(rule, rule_class) or not reporters or len(set(reporters)) != len(reporters):
            print(f"  ✗ {name}: reporters {reporters!r}")
            ok = False
        else:
            print(f"  ✓ {name}: {', '.join(reporters)}")
    return ok


def run_quick_test():
    """Runs every rule twice from the same seed and compares the frames."""
    print("\nRunning quick smoke test...")
    from model import run_model
    from rules import RULES, make_rule

    for name in RULES:
        rule = make_rule(name)
        first = run_model(rule, n=20, t_max=5, r_max=2, seed=42)
        second = run_model(rule, n=20, t_max=5, r_max=2, seed=42)
        expected = ["run", "generation", *rule.reporters]
        if list(first.columns) != expected or len(first) != 2 * 6:
            print(f"  ✗ {name}: unexpected frame {list(first.columns)} with {len(first)} rows")
            return False
        if not first.equals(second):
            print(f"  ✗ {name}: same seed gave different series")
            return False
        print(f"  ✓ {name}: {len(first)} rows")
    return True


def check_critical_size(alpha=7.0, beta=1.0, tolerance=2.0):
    """Fitted critical population size of skill imitation is close to exp(alpha / beta - euler_gamma)."""
    print("\nChecking critical population size...")
    from demography import SkillParams, analytic_critical_population_size
    from sweep import estimate_critical_population_size

    params = SkillParams(alpha=alpha, beta=beta, floor=None)
    n_star, table = estimate_critical_population_size([50, 200, 1000, 5000], params, t_max=20, r_max=10, seed=2)
    expected = analytic_critical_population_size(alpha, beta)
    with pd.option_context("display.float_format", "{:.3f}".format):
        print(table.to_string(index=False))
    if expected / tolerance < n_star < expected * tolerance:
        print(f"  ✓ N*={n_star:.1f}, analytic {expected:.1f}")
        return True
    print(f"  ✗ N*={n_star:.1f}, analytic {expected:.1f}")
    return False


def main():
    """Run all verification checks."""
    print("="*60)
    print("CULTURAL TRANSMISSION MODELS VERIFICATION")
    print("="*60)

    results = {"Dependencies": check_dependencies()}
    checks = [
        ("Rule Registry", check_rules),
        ("Quick Test", run_quick_test),
        ("Critical Size", check_critical_size),
    ]
    # simulations only make sense on a complete install
    if results["Dependencies"]:
        for name, check_func in checks:
            try:
                results[name] = check_func()
            except Exception as e:
                print(f"\n  ✗ Unexpected error in {name}: {e}")
                results[name] = False

    print("\n" + "="*60)
    print("SUMMARY")
    print("="*60)
    for name, passed in results.items():
        status = "✓ PASS" if passed else "✗ FAIL"
        print(f"{status}: {name}")

    if all(results.values()):
        print("\n✓ ALL CHECKS PASSED")
        return 0
    print("\n✗ SOME CHECKS FAILED")
    return 1


if __name__ == "__main__":
    sys.exit(main())
