#!/usr/bin/env python3
"""tfharness - drive terraform from tests."""

from tfharness.cli.main import main

if __name__ == "__main__":
    main()
