"""CLI app entrypoint and error mapping."""

from __future__ import annotations

import sys

from pmpulse import ConfigError, PmPulseError, ProviderError, StoreError

EXIT_CONFIG = 2
EXIT_UPSTREAM = 3


def _report(exc: PmPulseError) -> None:
    print(f"error: {exc}", file=sys.stderr)
    if exc.remediation:
        print(f"hint: {exc.remediation}", file=sys.stderr)


def main(argv: list[str] | None = None) -> int:
    import pmpulse.cli as cli

    parser = cli.build_parser()
    args = parser.parse_args(argv)

    if args.verbose:
        cli.logging.basicConfig(level=cli.logging.DEBUG, format="%(name)s %(message)s", stream=sys.stderr)

    runners = {
        "aggregate": cli._run_aggregate,
        "analyze-epic": cli._run_analyze_epic,
        "cycle-time": cli._run_cycle_time,
        "velocity": cli._run_velocity,
        "record-forecast": cli._run_record_forecast,
        "reliability": cli._run_reliability,
    }

    try:
        return cli.asyncio.run(runners[args.command](args))
    except (ConfigError, StoreError) as exc:
        _report(exc)
        return EXIT_CONFIG
    except ProviderError as exc:
        _report(exc)
        return EXIT_UPSTREAM
    except PmPulseError as exc:
        _report(exc)
        return 1
    except Exception as exc:  # pragma: no cover - defensive fallback
        print(f"error: {exc}", file=sys.stderr)
        return 1


__all__ = ["main"]
