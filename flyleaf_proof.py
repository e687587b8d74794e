#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Export per-book dust jacket proofs from a job file.
"""

# Standard Library
import sys

# local repo modules
import flyleaf_layout.cli


if __name__ == "__main__":
	sys.exit(flyleaf_layout.cli.main())
