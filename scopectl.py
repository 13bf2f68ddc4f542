#!/usr/bin/env python3
"""
Frozenscope command line tool

Usage:
    python scopectl.py bench [--size N] [--seed S]
    python scopectl.py inspect <file.json> [--dump]
    python scopectl.py config

Examples:
    python scopectl.py bench                      # Build and query maps, time the stack cache
    python scopectl.py bench --size 100000        # Bigger maps
    python scopectl.py inspect data.json          # Trie statistics and validation
    python scopectl.py inspect data.json --dump   # Also print the trie
    python scopectl.py --trace 2 bench            # Trace stack transitions to stderr
    python scopectl.py --config my.toml config    # Show effective settings
"""

import argparse
import json
import random
import sys
import time
from typing import Dict, List, Optional

from ctxstack import Context, ContextError, ContextStack, ContextVar
from frozenmap import FrozenMap, FrozenMapError
from frozenmap.diagnostics import collect_stats, dump, validate
from scope_config import ConfigError, ScopeConfig, load_config


class CLIError(Exception):
    """Command line usage or input error"""
    pass


def _ms(seconds: float) -> str:
    return f"{seconds * 1000:.2f} ms"


def _nested_get(stack: ContextStack, var: ContextVar, depth: int, reads: int) -> float:
    """Time `reads` lookups of var with `depth` extra layers pushed."""
    if depth == 0:
        start = time.perf_counter()
        for _ in range(reads):
            stack.get(var)
        return time.perf_counter() - start
    return stack.push(Context(), _nested_get, stack, var, depth - 1, reads)


def run_bench(config: ScopeConfig, size: int, seed: int, out=None) -> Dict[str, float]:
    """Compare per-key including() against one mutation, then time lookups."""
    out = out if out is not None else sys.stdout
    rng = random.Random(seed)
    keys = rng.sample(range(size * 16), size)
    timings: Dict[str, float] = {}

    start = time.perf_counter()
    by_including = FrozenMap()
    for i, key in enumerate(keys):
        by_including = by_including.including(key, i)
    timings["including"] = time.perf_counter() - start

    start = time.perf_counter()
    with FrozenMap().mutating() as mm:
        for i, key in enumerate(keys):
            mm[key] = i
        by_mutation = mm.finish()
    timings["mutation"] = time.perf_counter() - start

    if by_including != by_mutation:
        raise CLIError("maps built by including() and by mutation differ")

    start = time.perf_counter()
    for key in keys:
        by_including[key]
    timings["lookup"] = time.perf_counter() - start

    var = ContextVar("bench")
    reads = max(size, 1000)
    stack = config.new_stack()
    stack.set(var, 1)
    timings["stack_reads"] = _nested_get(stack, var, 8, reads)
    stack.close()

    print(f"[BENCH] {size} keys, seed {seed}", file=out)
    print(f"[BENCH] including: {_ms(timings['including'])}", file=out)
    print(f"[BENCH] mutation:  {_ms(timings['mutation'])}", file=out)
    print(f"[BENCH] lookup:    {_ms(timings['lookup'])}", file=out)
    cache = "on" if config.lookup_cache else "off"
    print(f"[BENCH] {reads} reads through 9 layers, lookup cache {cache}: "
          f"{_ms(timings['stack_reads'])}", file=out)
    for line in collect_stats(by_including).to_lines():
        print(f"[STATS] {line}", file=out)
    return timings


def run_inspect(source_path: str, show_dump: bool = False, out=None) -> List[str]:
    """Load a JSON object into a FrozenMap and report on its trie."""
    out = out if out is not None else sys.stdout
    try:
        with open(source_path, "r") as f:
            data = json.load(f)
    except OSError as e:
        raise CLIError(f"cannot read {source_path}: {e.strerror or e}")
    except json.JSONDecodeError as e:
        raise CLIError(f"{source_path} is not valid JSON: {e}")
    if not isinstance(data, dict):
        raise CLIError(f"{source_path} must hold a JSON object, got {type(data).__name__}")

    m = FrozenMap(data)
    for line in collect_stats(m).to_lines():
        print(f"[STATS] {line}", file=out)
    problems = validate(m)
    if problems:
        for problem in problems:
            print(f"[INVALID] {problem}", file=out)
    else:
        print("[STATS] trie is valid", file=out)
    if show_dump:
        dump(m, file=out)
    return problems


def show_config(config: ScopeConfig, out=None):
    out = out if out is not None else sys.stdout
    print(f"# source: {config.source or 'defaults'}", file=out)
    for key, value in config.to_dict().items():
        if key == "source":
            continue
        if isinstance(value, bool):
            value = str(value).lower()
        print(f"{key} = {value}", file=out)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="scopectl",
        description="Frozenscope map and context stack tool",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s bench                      Build and query maps, time the stack cache
  %(prog)s bench --size 100000        Bigger maps
  %(prog)s inspect data.json --dump   Trie statistics, validation and dump
  %(prog)s config                     Show effective settings
        """
    )
    parser.add_argument("--config", help="TOML settings file (default: frozenscope.toml)")
    parser.add_argument("--trace", type=int, choices=range(0, 4), metavar="LEVEL",
                        help="Trace level 0-3, overrides the config file")

    sub = parser.add_subparsers(dest="command", required=True)

    bench = sub.add_parser("bench", help="Time map building, lookups and stack reads")
    bench.add_argument("--size", type=int, help="Number of keys (default: bench_size setting)")
    bench.add_argument("--seed", type=int, help="Random seed (default: bench_seed setting)")

    inspect = sub.add_parser("inspect", help="Report trie statistics for a JSON object")
    inspect.add_argument("source", help="JSON file holding an object")
    inspect.add_argument("--dump", action="store_true", help="Print the trie")

    sub.add_parser("config", help="Print the effective configuration")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = load_config(args.config)
        if args.trace is not None:
            config.trace_level = args.trace
        config.apply()

        if args.command == "bench":
            size = args.size if args.size is not None else config.bench_size
            seed = args.seed if args.seed is not None else config.bench_seed
            if size <= 0:
                raise CLIError("--size must be positive")
            run_bench(config, size, seed)
        elif args.command == "inspect":
            if run_inspect(args.source, show_dump=args.dump):
                return 1
        elif args.command == "config":
            show_config(config)
        return 0
    except (CLIError, ConfigError, FrozenMapError, ContextError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except Exception as e:
        print(f"Internal error: {e}", file=sys.stderr)
        import traceback
        traceback.print_exc()
        return 2


if __name__ == "__main__":
    sys.exit(main())
