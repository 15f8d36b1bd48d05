"""Run a generation from the command line."""

from src.threadgen.cli import main

raise SystemExit(main())
