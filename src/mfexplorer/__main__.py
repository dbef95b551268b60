"""Module entrypoint for `python -m mfexplorer`."""

try:
    from .cli import run
except ImportError:
    # Executed as a script path outside package context.
    from mfexplorer.cli import run


if __name__ == "__main__":
    raise SystemExit(run())
