#!/usr/bin/env python3
"""
Allow running ferretwatch as a module: python -m ferretwatch
"""

from ferretwatch.cli import main

if __name__ == "__main__":
    raise SystemExit(main())
